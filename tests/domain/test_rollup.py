"""Tests for the pure rollup projection."""

from __future__ import annotations

import pytest

from archnav.domain.models import RelationRecord
from archnav.domain.rollup import project_relations, qualifying_relations
from archnav.domain.types import ObjectType, RelationStatus, RollupLevel

T = ObjectType
L = RollupLevel

PARENTS: dict[str, str | None] = {
    "web": None,
    "orders": None,
    "billing": None,
    "ep": "orders",
    "db": None,
    "tbl": "db",
    "broker": None,
    "topic": "broker",
}
TYPES = {
    "web": T.SERVICE,
    "orders": T.SERVICE,
    "billing": T.SERVICE,
    "ep": T.API_ENDPOINT,
    "db": T.DATABASE,
    "tbl": T.DB_TABLE,
    "broker": T.MESSAGE_BROKER,
    "topic": T.TOPIC,
}


def _rel(rid: str, rtype: str, s: str, o: str, **kwargs: object) -> RelationRecord:
    return RelationRecord(id=rid, relation_type=rtype, subject_id=s, object_id=o, **kwargs)


def _pairs(edges: list) -> list[tuple[str, str, float]]:
    return [(e.subject_id, e.object_id, e.edge_weight) for e in edges]


class TestProjection:
    def test_call_to_exposed_endpoint_lands_on_owner(self) -> None:
        rels = [_rel("r1", "expose", "orders", "ep"), _rel("r2", "call", "web", "ep")]
        out = project_relations(rels, PARENTS, TYPES)
        assert _pairs(out[L.SERVICE_TO_SERVICE]) == [("web", "orders", 1.0)]

    def test_database_and_broker_levels(self) -> None:
        rels = [
            _rel("r1", "write", "orders", "tbl"),
            _rel("r2", "produce", "orders", "topic"),
            _rel("r3", "consume", "billing", "topic"),
        ]
        out = project_relations(rels, PARENTS, TYPES)
        assert _pairs(out[L.SERVICE_TO_DATABASE]) == [("orders", "db", 0.8)]
        assert _pairs(out[L.SERVICE_TO_BROKER]) == [
            ("billing", "broker", 0.6),
            ("orders", "broker", 0.6),
        ]
        assert out[L.SERVICE_TO_SERVICE] == []

    def test_parallel_relations_keep_max_weight(self) -> None:
        rels = [
            _rel("r1", "depend_on", "web", "orders"),
            _rel("r2", "call", "web", "orders"),
        ]
        (edge,) = project_relations(rels, PARENTS, TYPES)[L.SERVICE_TO_SERVICE]
        assert edge.edge_weight == 1.0
        assert edge.relation_type == "call"
        assert edge.relation_count == 2

    def test_self_edges_dropped(self) -> None:
        rels = [_rel("r1", "call", "orders", "ep")]
        out = project_relations(rels, PARENTS, TYPES)
        assert out[L.SERVICE_TO_SERVICE] == []

    def test_unapproved_and_derived_ignored(self) -> None:
        rels = [
            _rel("r1", "call", "web", "orders", status=RelationStatus.PENDING),
            _rel("r2", "call", "web", "billing", is_derived=True),
        ]
        assert qualifying_relations(rels) == []
        out = project_relations(rels, PARENTS, TYPES)
        assert all(edges == [] for edges in out.values())

    def test_custom_weights(self) -> None:
        rels = [_rel("r1", "call", "web", "orders")]
        (edge,) = project_relations(rels, PARENTS, TYPES, weights={"call": 3.0})[
            L.SERVICE_TO_SERVICE
        ]
        assert edge.edge_weight == 3.0

    def test_idempotent(self) -> None:
        rels = [
            _rel("r2", "call", "web", "ep"),
            _rel("r1", "expose", "orders", "ep"),
            _rel("r3", "read", "billing", "tbl"),
        ]
        first = project_relations(rels, PARENTS, TYPES)
        second = project_relations(list(reversed(rels)), PARENTS, TYPES)
        for level in RollupLevel:
            assert [e.key for e in first[level]] == [e.key for e in second[level]]


class TestDomainLevel:
    def test_memberships_scale_weight(self) -> None:
        rels = [_rel("r1", "call", "web", "orders")]
        memberships = {"web": {"dom-front": 1.0}, "orders": {"dom-sales": 0.5}}
        (edge,) = project_relations(rels, PARENTS, TYPES, memberships=memberships)[
            L.DOMAIN_TO_DOMAIN
        ]
        assert (edge.subject_id, edge.object_id) == ("dom-front", "dom-sales")
        assert edge.edge_weight == pytest.approx(0.5)

    def test_low_membership_skipped(self) -> None:
        rels = [_rel("r1", "call", "web", "orders")]
        memberships = {"web": {"dom-front": 1.0}, "orders": {"dom-sales": 0.1}}
        out = project_relations(rels, PARENTS, TYPES, memberships=memberships, min_membership=0.2)
        assert out[L.DOMAIN_TO_DOMAIN] == []

    def test_same_domain_no_self_edge(self) -> None:
        rels = [_rel("r1", "call", "web", "orders")]
        memberships = {"web": {"dom": 1.0}, "orders": {"dom": 1.0}}
        out = project_relations(rels, PARENTS, TYPES, memberships=memberships)
        assert out[L.DOMAIN_TO_DOMAIN] == []
