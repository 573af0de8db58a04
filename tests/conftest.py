"""Shared pytest fixtures and test helpers for archnav tests."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from archnav.config.settings import ArchnavSettings
from archnav.infrastructure.inventory import Inventory

WS = "acme"


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Temporary project directory; the store lands in ``.archnav/`` below it."""
    return tmp_path


@pytest.fixture
def settings(project_root: Path) -> ArchnavSettings:
    return ArchnavSettings.from_cli(project_root=project_root)


@pytest.fixture
def inventory(settings: ArchnavSettings) -> Iterator[Inventory]:
    """Fully initialized inventory on a temp store (no plugin event bus)."""
    inv = Inventory(settings)
    try:
        yield inv
    finally:
        inv.close()


@pytest.fixture
def _isolated_project(project_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Change CWD to a temp project root so the CLI creates an isolated store.

    Use via ``@pytest.mark.usefixtures("_isolated_project")`` on command
    test classes.
    """
    monkeypatch.chdir(project_root)
    monkeypatch.delenv("ARCHNAV_WORKSPACE", raising=False)


# ---------------------------------------------------------------------------
# Shared test helpers (used across service test modules)
# ---------------------------------------------------------------------------


def obj(object_id: str, object_type: str, parent_id: str | None = None, **kwargs: Any) -> dict:
    """Snapshot object dict; ``name`` defaults to the id."""
    return {
        "id": object_id,
        "object_type": object_type,
        "name": kwargs.pop("name", object_id),
        "parent_id": parent_id,
        **kwargs,
    }


def rel(
    relation_id: str, relation_type: str, subject_id: str, object_id: str, **kwargs: Any
) -> dict:
    """Snapshot relation dict (APPROVED and MANUAL unless overridden)."""
    return {
        "id": relation_id,
        "relation_type": relation_type,
        "subject_id": subject_id,
        "object_id": object_id,
        **kwargs,
    }


def load_snapshot(
    inventory: Inventory,
    objects: list[dict],
    relations: list[dict] | None = None,
    *,
    workspace_id: str = WS,
) -> dict[str, Any]:
    """Load a snapshot via SnapshotService, asserting success."""
    from archnav.services.snapshot import SnapshotService

    result = SnapshotService(inventory).load(
        workspace_id, {"objects": objects, "relations": relations or []}
    )
    assert result.ok, result.error
    return result.data


def rebuild(inventory: Inventory, *, workspace_id: str = WS, **kwargs: Any) -> dict[str, Any]:
    """Rebuild the rollup via RollupService, asserting success."""
    from archnav.services.rollup import RollupService

    result = RollupService(inventory).rebuild(workspace_id, **kwargs)
    assert result.ok, result.error
    return result.data


def chain_snapshot(inventory: Inventory, *, workspace_id: str = WS) -> None:
    """Three services calling in a chain: svc-a -> svc-b -> svc-c."""
    load_snapshot(
        inventory,
        [obj("svc-a", "service"), obj("svc-b", "service"), obj("svc-c", "service")],
        [rel("r1", "call", "svc-a", "svc-b"), rel("r2", "call", "svc-b", "svc-c")],
        workspace_id=workspace_id,
    )


def shop_snapshot(inventory: Inventory, *, workspace_id: str = WS) -> None:
    """A small shop: web calls orders via its endpoint, orders and billing share a db.

    Layout::

        svc-web --call--> ep-create (exposed by svc-orders)
        svc-orders --write--> tbl-orders (in db-main)
        svc-billing --read--> tbl-orders
        svc-orders --produce--> topic-order-created (in broker-main)
        svc-billing --consume--> topic-order-created
    """
    load_snapshot(
        inventory,
        [
            obj("svc-web", "service"),
            obj("svc-orders", "service", name="orders-api"),
            obj("svc-billing", "service", name="billing-worker"),
            obj("ep-create", "api_endpoint", "svc-orders"),
            obj("db-main", "database"),
            obj("tbl-orders", "db_table", "db-main"),
            obj("broker-main", "message_broker"),
            obj("topic-order-created", "topic", "broker-main"),
        ],
        [
            rel("r01", "expose", "svc-orders", "ep-create"),
            rel("r02", "call", "svc-web", "ep-create"),
            rel("r03", "write", "svc-orders", "tbl-orders"),
            rel("r04", "read", "svc-billing", "tbl-orders"),
            rel("r05", "produce", "svc-orders", "topic-order-created"),
            rel("r06", "consume", "svc-billing", "topic-order-created"),
        ],
        workspace_id=workspace_id,
    )
