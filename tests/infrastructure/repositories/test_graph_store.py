"""Tests for GraphStore: the SQLAlchemy Core adapter over the store."""

from __future__ import annotations

from archnav.domain.rollup import ProjectedEdge
from archnav.domain.types import RollupLevel
from archnav.infrastructure.inventory import Inventory
from tests.conftest import WS, chain_snapshot, load_snapshot, obj, rel, shop_snapshot


def _edge(subject: str, obj_id: str, weight: float = 1.0) -> ProjectedEdge:
    return ProjectedEdge(
        level=RollupLevel.SERVICE_TO_SERVICE,
        subject_id=subject,
        object_id=obj_id,
        edge_weight=weight,
        relation_type="call",
        relation_count=1,
        confidence=None,
    )


class TestObjects:
    def test_paths_are_materialized(self, inventory: Inventory) -> None:
        shop_snapshot(inventory)
        table = inventory.store.get_object(WS, "tbl-orders")
        assert table is not None
        assert table.path == "/db-main/tbl-orders"
        assert table.depth == 1

    def test_list_filters(self, inventory: Inventory) -> None:
        shop_snapshot(inventory)
        load_snapshot(inventory, [obj("svc-old", "service", visibility="HIDDEN")])
        store = inventory.store
        services = [o.id for o in store.list_objects(WS, object_types=["service"])]
        assert sorted(services) == ["svc-billing", "svc-old", "svc-orders", "svc-web"]
        visible = [o.id for o in store.list_objects(WS, visible_only=True)]
        assert "svc-old" not in visible

    def test_workspace_isolation(self, inventory: Inventory) -> None:
        chain_snapshot(inventory)
        assert inventory.store.get_object("other", "svc-a") is None
        assert inventory.store.list_objects("other") == []

    def test_only_approved_relations(self, inventory: Inventory) -> None:
        chain_snapshot(inventory)
        load_snapshot(inventory, [], [rel("r9", "call", "svc-c", "svc-a", status="PENDING")])
        ids = [r.id for r in inventory.store.list_approved_relations(WS)]
        assert ids == ["r1", "r2"]

    def test_relation_snapshot(self, inventory: Inventory) -> None:
        chain_snapshot(inventory)
        chain_snapshot(inventory, workspace_id="other")
        load_snapshot(inventory, [], [rel("r9", "call", "svc-c", "svc-a", status="PENDING")])
        objs, rels = inventory.store.relation_snapshot(WS)
        assert [o.id for o in objs] == [o.id for o in inventory.store.list_objects(WS)]
        assert [r.id for r in rels] == ["r1", "r2"]
        assert inventory.store.relation_snapshot("missing") == ([], [])


class TestGenerations:
    def test_allocate_activate_archive(self, inventory: Inventory) -> None:
        store = inventory.store
        with inventory.transaction() as txn:
            v1 = store.allocate_generation(txn.conn, WS, txn.now)
            store.insert_rollup_edges(txn.conn, WS, v1, [_edge("a", "b")], txn.now)
            assert store.activate_generation(txn.conn, WS, v1, txn.now) is None
        with inventory.transaction() as txn:
            v2 = store.allocate_generation(txn.conn, WS, txn.now)
            assert store.activate_generation(txn.conn, WS, v2, txn.now) == v1

        assert (v1, v2) == (1, 2)
        assert store.get_active_generation(WS) == 2
        gen1 = store.get_generation(WS, 1)
        assert gen1 is not None
        assert gen1["status"] == "ARCHIVED"
        assert gen1["archived"] is not None
        listed = store.list_generations(WS)
        assert [(g["generation_version"], g["edge_count"]) for g in listed] == [(2, 0), (1, 1)]

    def test_edges_are_per_generation(self, inventory: Inventory) -> None:
        store = inventory.store
        with inventory.transaction() as txn:
            v1 = store.allocate_generation(txn.conn, WS, txn.now)
            store.insert_rollup_edges(txn.conn, WS, v1, [_edge("a", "b")], txn.now)
            v2 = store.allocate_generation(txn.conn, WS, txn.now)
            store.insert_rollup_edges(
                txn.conn, WS, v2, [_edge("b", "c"), _edge("a", "c", 0.8)], txn.now
            )
        level = RollupLevel.SERVICE_TO_SERVICE

        def pairs(version: int) -> list[tuple[str, str]]:
            return [
                (e["subject_id"], e["object_id"])
                for e in store.list_rollup_edges(WS, version, level)
            ]

        assert pairs(1) == [("a", "b")]
        assert pairs(2) == [("a", "c"), ("b", "c")]

    def test_delete_never_removes_active(self, inventory: Inventory) -> None:
        store = inventory.store
        with inventory.transaction() as txn:
            v1 = store.allocate_generation(txn.conn, WS, txn.now)
            store.activate_generation(txn.conn, WS, v1, txn.now)
            assert store.delete_generations(txn.conn, WS, [v1]) == 0
        assert store.get_generation(WS, v1) is not None


class TestAffinities:
    def test_upsert_replaces_same_domain(self, inventory: Inventory) -> None:
        store = inventory.store
        with inventory.transaction() as txn:
            store.upsert_affinities(
                txn.conn, WS, "svc-a", {"dom-a": 0.6, "dom-b": 0.4}, source="MANUAL", now=txn.now
            )
            store.upsert_affinities(
                txn.conn, WS, "svc-a", {"dom-a": 0.9}, source="APPROVED_INFERENCE", now=txn.now
            )
        rows = [(r["domain_id"], r["affinity"], r["source"]) for r in store.list_affinities(WS)]
        assert rows == [("dom-a", 0.9, "APPROVED_INFERENCE"), ("dom-b", 0.4, "MANUAL")]
        members = store.domain_memberships(WS, "dom-b")
        assert members == [{"object_id": "svc-a", "affinity": 0.4, "source": "MANUAL"}]
