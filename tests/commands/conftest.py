"""Fixtures and helpers shared by CLI command tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from archnav.cli import cli


def _rel(relation_id: str, relation_type: str, subject_id: str, object_id: str) -> dict:
    return {
        "id": relation_id,
        "relation_type": relation_type,
        "subject_id": subject_id,
        "object_id": object_id,
    }


SHOP: dict[str, list[dict[str, Any]]] = {
    "objects": [
        {"id": "svc-web", "object_type": "service", "name": "web"},
        {"id": "svc-orders", "object_type": "service", "name": "orders-api"},
        {"id": "svc-billing", "object_type": "service", "name": "billing-worker"},
        {
            "id": "ep-create",
            "object_type": "api_endpoint",
            "name": "POST /orders",
            "parent_id": "svc-orders",
        },
        {"id": "db-main", "object_type": "database", "name": "main"},
        {"id": "tbl-orders", "object_type": "db_table", "name": "orders", "parent_id": "db-main"},
        {"id": "dom-orders", "object_type": "domain", "name": "Orders"},
    ],
    "relations": [
        _rel("r01", "expose", "svc-orders", "ep-create"),
        _rel("r02", "call", "svc-web", "ep-create"),
        _rel("r03", "write", "svc-orders", "tbl-orders"),
        _rel("r04", "read", "svc-billing", "tbl-orders"),
    ],
}


def invoke_json(runner: CliRunner, *args: str) -> dict[str, Any]:
    """Run ``archnav --json ARGS`` and return the parsed payload (must succeed)."""
    result = runner.invoke(cli, ["--json", *args])
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


@pytest.fixture
def loaded_shop(cli_runner: CliRunner, project_root: Path) -> Path:
    """Initialized project with the shop snapshot loaded into workspace ``acme``."""
    invoke_json(cli_runner, "init")
    snapshot = project_root / "snapshot.json"
    snapshot.write_text(json.dumps(SHOP), encoding="utf-8")
    invoke_json(cli_runner, "load", str(snapshot), "-w", "acme")
    return snapshot
