"""Tests for SnapshotService: validation and upsert of inventory snapshots."""

from __future__ import annotations

import json
from pathlib import Path

from archnav.infrastructure.inventory import Inventory
from archnav.services.snapshot import SnapshotService
from tests.conftest import WS, load_snapshot, obj, rel


class TestLoad:
    def test_load_document(self, inventory: Inventory) -> None:
        data = load_snapshot(
            inventory,
            [obj("svc", "service"), obj("ep", "api_endpoint", "svc")],
            [rel("r1", "expose", "svc", "ep")],
        )
        assert data == {
            "workspace_id": WS,
            "object_count": 2,
            "relation_count": 1,
            "repathed_count": 0,
        }
        ep = inventory.store.get_object(WS, "ep")
        assert ep is not None
        assert ep.path == "/svc/ep"
        assert ep.depth == 1

    def test_load_file(self, inventory: Inventory, tmp_path: Path) -> None:
        snapshot = tmp_path / "snapshot.json"
        snapshot.write_text(
            json.dumps({"objects": [obj("svc", "service")], "relations": []}), encoding="utf-8"
        )
        result = SnapshotService(inventory).load(WS, snapshot)
        assert result.ok
        assert result.data["object_count"] == 1

    def test_reload_is_upsert(self, inventory: Inventory) -> None:
        objects = [obj("svc", "service", name="orders")]
        load_snapshot(inventory, objects)
        load_snapshot(inventory, [obj("svc", "service", name="orders-v2")])
        stored = inventory.store.list_objects(WS)
        assert [o.name for o in stored] == ["orders-v2"]

    def test_reparent_rewrites_subtree_paths(self, inventory: Inventory) -> None:
        load_snapshot(inventory, [obj("svc", "service"), obj("ep", "api_endpoint", "svc")])
        data = load_snapshot(inventory, [obj("dom", "domain"), obj("svc", "service", "dom")])
        assert data["repathed_count"] == 1
        ep = inventory.store.get_object(WS, "ep")
        assert ep is not None
        assert ep.path == "/dom/svc/ep"
        assert ep.depth == 2

    def test_workspaces_are_separate(self, inventory: Inventory) -> None:
        load_snapshot(inventory, [obj("svc", "service")])
        assert inventory.store.list_objects("other") == []


class TestLoadErrors:
    def test_missing_file(self, inventory: Inventory, tmp_path: Path) -> None:
        result = SnapshotService(inventory).load(WS, tmp_path / "nope.json")
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "LOAD_FAILED"

    def test_invalid_json(self, inventory: Inventory, tmp_path: Path) -> None:
        snapshot = tmp_path / "broken.json"
        snapshot.write_text("{not json", encoding="utf-8")
        result = SnapshotService(inventory).load(WS, snapshot)
        assert result.error is not None
        assert result.error.code == "LOAD_FAILED"

    def test_bad_shape(self, inventory: Inventory) -> None:
        result = SnapshotService(inventory).load(
            WS, {"objects": [{"id": "x", "object_type": "mainframe", "name": "x"}]}
        )
        assert result.error is not None
        assert result.error.code == "VALIDATION_ERROR"
        assert result.error.detail["errors"][0]["field"].startswith("objects.0")

    def test_atomic_under_atomic(self, inventory: Inventory) -> None:
        result = SnapshotService(inventory).load(
            WS,
            {
                "objects": [
                    obj("svc", "service"),
                    obj("ep", "api_endpoint", "svc"),
                    obj("fn", "function", "ep"),
                ]
            },
        )
        assert result.error is not None
        assert result.error.code == "VALIDATION_ERROR"
        assert result.error.detail["errors"][0]["field"] == "objects.fn"
        assert inventory.store.list_objects(WS) == []

    def test_dangling_relation(self, inventory: Inventory) -> None:
        result = SnapshotService(inventory).load(
            WS,
            {"objects": [obj("svc", "service")], "relations": [rel("r1", "call", "svc", "ghost")]},
        )
        assert result.error is not None
        assert result.error.code == "VALIDATION_ERROR"
        assert result.error.detail["errors"] == [
            {"field": "relations.r1", "reason": "unknown object 'ghost'"}
        ]

    def test_empty_workspace_id(self, inventory: Inventory) -> None:
        result = SnapshotService(inventory).load("", {"objects": []})
        assert result.error is not None
        assert result.error.code == "VALIDATION_ERROR"
