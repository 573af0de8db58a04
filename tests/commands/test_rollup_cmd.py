"""Tests for rollup CLI commands."""

from __future__ import annotations

import pytest
from click.testing import CliRunner

from archnav.cli import cli
from tests.commands.conftest import invoke_json


@pytest.mark.usefixtures("_isolated_project", "loaded_shop")
class TestRollupCommands:
    def test_rebuild(self, cli_runner: CliRunner) -> None:
        data = invoke_json(cli_runner, "rollup", "rebuild", "-w", "acme")
        assert data["op"] == "rebuild"
        assert data["data"]["generation_version"] == 1
        assert data["data"]["edge_counts"]["SERVICE_TO_SERVICE"] == 1
        assert data["data"]["edge_counts"]["SERVICE_TO_DATABASE"] == 2

    def test_quiet_rebuild_prints_version(self, cli_runner: CliRunner) -> None:
        cli_runner.invoke(cli, ["rollup", "rebuild", "-w", "acme"])
        result = cli_runner.invoke(cli, ["-q", "rollup", "rebuild", "-w", "acme"])
        assert result.exit_code == 0
        assert result.stdout.strip() == "2"

    def test_generations_and_prune(self, cli_runner: CliRunner) -> None:
        for _ in range(3):
            invoke_json(cli_runner, "rollup", "rebuild", "-w", "acme")
        listed = invoke_json(cli_runner, "rollup", "generations", "-w", "acme")
        assert listed["data"]["active_version"] == 3
        assert [g["status"] for g in listed["data"]["items"]] == ["ACTIVE", "ARCHIVED", "ARCHIVED"]

        invoke_json(cli_runner, "rollup", "prune", "-w", "acme", "--keep", "0")
        listed = invoke_json(cli_runner, "rollup", "generations", "-w", "acme")
        assert [g["generation_version"] for g in listed["data"]["items"]] == [3]

    def test_unknown_profile_exits_1(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["rollup", "rebuild", "-w", "acme", "--profile", "nope"])
        assert result.exit_code == 1
        assert "NOT_FOUND" in result.output
