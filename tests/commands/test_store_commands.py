"""Tests for init, load and upgrade commands."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from archnav.cli import cli
from tests.commands.conftest import SHOP, invoke_json


@pytest.mark.usefixtures("_isolated_project")
class TestInitCommand:
    def test_init_current_directory(self, cli_runner: CliRunner, project_root: Path) -> None:
        data = invoke_json(cli_runner, "init")
        assert data["ok"] is True
        assert data["data"]["created_config"] is True
        assert (project_root / "archnav.toml").is_file()
        assert (project_root / ".archnav" / "archnav.db").is_file()

    def test_init_other_path(self, cli_runner: CliRunner, project_root: Path) -> None:
        result = cli_runner.invoke(cli, ["init", "nested"])
        assert result.exit_code == 0
        assert (project_root / "nested" / "archnav.toml").is_file()


@pytest.mark.usefixtures("_isolated_project")
class TestLoadCommand:
    def test_load_snapshot(self, cli_runner: CliRunner, project_root: Path) -> None:
        snapshot = project_root / "snap.json"
        snapshot.write_text(json.dumps(SHOP), encoding="utf-8")
        data = invoke_json(cli_runner, "load", str(snapshot), "-w", "acme")
        assert data["data"]["object_count"] == len(SHOP["objects"])
        assert data["data"]["relation_count"] == len(SHOP["relations"])

    def test_workspace_from_env(
        self, cli_runner: CliRunner, project_root: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        snapshot = project_root / "snap.json"
        snapshot.write_text(json.dumps(SHOP), encoding="utf-8")
        monkeypatch.setenv("ARCHNAV_WORKSPACE", "acme")
        data = invoke_json(cli_runner, "load", str(snapshot))
        assert data["data"]["workspace_id"] == "acme"

    def test_workspace_required(self, cli_runner: CliRunner, project_root: Path) -> None:
        snapshot = project_root / "snap.json"
        snapshot.write_text("{}", encoding="utf-8")
        result = cli_runner.invoke(cli, ["load", str(snapshot)])
        assert result.exit_code == 2

    def test_invalid_snapshot_exits_1(self, cli_runner: CliRunner, project_root: Path) -> None:
        snapshot = project_root / "bad.json"
        snapshot.write_text('{"objects": [{"id": "x", "object_type": "planet"}]}')
        result = cli_runner.invoke(cli, ["load", str(snapshot), "-w", "acme"])
        assert result.exit_code == 1
        assert "VALIDATION_ERROR" in result.output

    def test_missing_file_exits_1(self, cli_runner: CliRunner, project_root: Path) -> None:
        result = cli_runner.invoke(cli, ["load", str(project_root / "nope.json"), "-w", "acme"])
        assert result.exit_code == 1
        assert "LOAD_FAILED" in result.output


@pytest.mark.usefixtures("_isolated_project")
class TestUpgradeCommand:
    def test_check_after_init(self, cli_runner: CliRunner) -> None:
        invoke_json(cli_runner, "init")
        data = invoke_json(cli_runner, "upgrade", "--check")
        assert data["data"]["pending_count"] == 0

    def test_apply_is_noop_when_current(self, cli_runner: CliRunner) -> None:
        invoke_json(cli_runner, "init")
        result = cli_runner.invoke(cli, ["upgrade"])
        assert result.exit_code == 0
        assert "already up to date" in result.output
