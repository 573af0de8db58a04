"""Tests for query CLI commands."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from archnav.cli import cli
from tests.commands.conftest import invoke_json


@pytest.mark.usefixtures("_isolated_project", "loaded_shop")
class TestImpactCommand:
    def test_relation_level(self, cli_runner: CliRunner) -> None:
        data = invoke_json(cli_runner, "query", "impact", "svc-web", "-w", "acme")
        assert data["ok"] is True
        assert [n["id"] for n in data["data"]["nodes"]] == ["ep-create"]

    def test_upstream_with_hop_limit(self, cli_runner: CliRunner) -> None:
        data = invoke_json(
            cli_runner,
            "query", "impact", "tbl-orders", "-w", "acme",
            "--direction", "upstream", "--max-hops", "1",
        )  # fmt: skip
        assert [n["id"] for n in data["data"]["nodes"]] == ["svc-billing", "svc-orders"]

    def test_rollup_level_needs_generation(self, cli_runner: CliRunner) -> None:
        args = ["query", "impact", "svc-web", "-w", "acme", "--level", "SERVICE_TO_SERVICE"]
        result = cli_runner.invoke(cli, args)
        assert result.exit_code == 1
        assert "NO_ACTIVE_GENERATION" in result.output

        invoke_json(cli_runner, "rollup", "rebuild", "-w", "acme")
        data = invoke_json(cli_runner, *args)
        assert [n["id"] for n in data["data"]["nodes"]] == ["svc-orders"]
        assert data["meta"]["generation_version"] == 1

    def test_relation_type_filter(self, cli_runner: CliRunner) -> None:
        data = invoke_json(
            cli_runner,
            "query", "impact", "svc-orders", "-w", "acme", "--relation-type", "write",
        )  # fmt: skip
        assert [n["id"] for n in data["data"]["nodes"]] == ["tbl-orders"]

    def test_unknown_object_exits_1(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["query", "impact", "ghost", "-w", "acme"])
        assert result.exit_code == 1
        assert "NOT_FOUND" in result.output


@pytest.mark.usefixtures("_isolated_project", "loaded_shop")
class TestOtherQueries:
    def test_path(self, cli_runner: CliRunner) -> None:
        data = invoke_json(
            cli_runner, "query", "path", "svc-orders", "tbl-orders", "-w", "acme", "--top-k", "1"
        )
        assert data["data"]["paths"][0]["nodes"] == ["svc-orders", "tbl-orders"]

    def test_usage_atomic_fallback(self, cli_runner: CliRunner) -> None:
        invoke_json(cli_runner, "rollup", "rebuild", "-w", "acme")
        data = invoke_json(
            cli_runner,
            "query", "usage", "tbl-orders", "-w", "acme", "--level", "SERVICE_TO_DATABASE",
        )  # fmt: skip
        assert [n["id"] for n in data["data"]["nodes"]] == ["svc-billing", "svc-orders"]
        assert data["data"]["summary"]["atomic_fallback"] is True

    def test_domain_summary(self, cli_runner: CliRunner) -> None:
        invoke_json(cli_runner, "rollup", "rebuild", "-w", "acme")
        data = invoke_json(cli_runner, "query", "domain", "dom-orders", "-w", "acme")
        assert data["data"]["summary"]["domain_id"] == "dom-orders"
        assert data["data"]["summary"]["member_count"] == 0

    def test_human_output(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["query", "impact", "svc-orders", "-w", "acme"])
        assert result.exit_code == 0
        assert "IMPACT_ANALYSIS" in result.output
        assert "tbl-orders" in result.output


@pytest.mark.usefixtures("_isolated_project", "loaded_shop")
class TestRunCommand:
    def test_single_request(self, cli_runner: CliRunner, project_root: Path) -> None:
        request = {
            "workspace_id": "acme",
            "query_type": "USAGE_DISCOVERY",
            "scope": {},
            "params": {"object_id": "tbl-orders"},
        }
        path = project_root / "request.json"
        path.write_text(json.dumps(request), encoding="utf-8")
        data = invoke_json(cli_runner, "query", "run", str(path))
        assert [n["id"] for n in data["data"]["nodes"]] == ["svc-billing", "svc-orders"]

    def test_batch_from_stdin(self, cli_runner: CliRunner) -> None:
        requests = [
            {
                "workspace_id": "acme",
                "query_type": "IMPACT_ANALYSIS",
                "scope": {},
                "params": {"object_id": "svc-web"},
            },
            {"workspace_id": "acme", "query_type": "DOMAIN_SUMMARY", "scope": {}, "params": {}},
        ]
        result = cli_runner.invoke(
            cli, ["--json", "query", "run", "-"], input=json.dumps(requests)
        )
        assert result.exit_code == 1
        parsed = json.loads(result.stdout)
        assert [r["ok"] for r in parsed] == [True, False]
        assert parsed[1]["error"]["code"] == "VALIDATION_ERROR"

    def test_not_json(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["query", "run", "-"], input="not json")
        assert result.exit_code == 2
        assert "not valid JSON" in result.output
