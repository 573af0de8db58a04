"""Tests for telemetry primitives: Span, trace_span, @traced."""

from __future__ import annotations

from collections.abc import Generator

import pytest

from archnav.infrastructure.inventory import Inventory
from archnav.services.result import ServiceResult
from archnav.services.telemetry import (
    Span,
    _current_span,
    disable_telemetry,
    enable_telemetry,
    get_current_span,
    trace_span,
    traced,
)
from tests.conftest import chain_snapshot, rebuild


@pytest.fixture(autouse=True)
def _reset_telemetry_state() -> Generator[None]:
    """Ensure clean telemetry state for every test."""
    yield
    disable_telemetry()
    _current_span.set(None)


class TestSpan:
    def test_duration_before_end_is_zero(self) -> None:
        assert Span(name="test").duration_ms == 0.0

    def test_to_dict(self) -> None:
        root = Span(name="root")
        child = Span(name="child", parent=root)
        root.children.append(child)
        child.annotate("rows", 42)
        child.end()
        root.end()
        d = root.to_dict()
        assert d["name"] == "root"
        assert "annotations" not in d
        assert d["children"][0]["annotations"] == {"rows": 42}


class TestTraceSpan:
    def test_disabled_yields_none(self) -> None:
        with trace_span("test") as span:
            assert span is None

    def test_no_root_yields_none(self) -> None:
        enable_telemetry()
        with trace_span("test") as span:
            assert span is None
        assert get_current_span() is None

    def test_nested_spans(self) -> None:
        enable_telemetry()
        root = Span(name="root")
        token = _current_span.set(root)
        try:
            with trace_span("a"):
                with trace_span("b") as inner:
                    assert get_current_span() is inner
            assert [c.name for c in root.children] == ["a"]
            assert [c.name for c in root.children[0].children] == ["b"]
            assert root.children[0].end_time is not None
        finally:
            _current_span.reset(token)


class TestTracedDecorator:
    def test_noop_when_disabled(self) -> None:
        @traced
        def op() -> ServiceResult:
            return ServiceResult(ok=True, op="test")

        assert op().meta is None

    def test_preserves_existing_meta(self) -> None:
        @traced
        def op() -> ServiceResult:
            return ServiceResult(ok=True, op="test", meta={"existing": "data"})

        enable_telemetry()
        result = op()
        assert result.meta is not None
        assert result.meta["existing"] == "data"
        assert result.meta["telemetry"]["duration_ms"] >= 0

    def test_non_service_result_passthrough(self) -> None:
        @traced
        def op() -> str:
            return "hello"

        enable_telemetry()
        assert op() == "hello"

    def test_exception_resets_span(self) -> None:
        @traced
        def op() -> ServiceResult:
            raise RuntimeError("boom")

        enable_telemetry()
        with pytest.raises(RuntimeError):
            op()
        assert get_current_span() is None

    def test_rebuild_stages_are_recorded(self, inventory: Inventory) -> None:
        from archnav.services.rollup import RollupService

        chain_snapshot(inventory)
        rebuild(inventory)
        enable_telemetry()
        result = RollupService(inventory).rebuild("acme")
        assert result.meta is not None
        tree = result.meta["telemetry"]
        assert tree["name"] == "RollupService.rebuild"
        assert tree.get("children")
