"""Tests for lifecycle transitions, ids and derived type attributes."""

from __future__ import annotations

import pytest

from archnav.domain.ids import CLUSTER_ID_PATTERN, cluster_id, discovered_domain_name, generate_id
from archnav.domain.lifecycle import (
    CANDIDATE_TRANSITIONS,
    GENERATION_TRANSITIONS,
    READABLE_GENERATION_STATUSES,
    is_valid_transition,
)
from archnav.domain.models import ObjectRecord, RelationRecord, Snapshot
from archnav.domain.types import Category, Granularity, ObjectType, RelationType


class TestTransitions:
    def test_generation_forward_only(self) -> None:
        assert is_valid_transition("BUILDING", "ACTIVE", GENERATION_TRANSITIONS)
        assert is_valid_transition("ACTIVE", "ARCHIVED", GENERATION_TRANSITIONS)
        assert not is_valid_transition("ARCHIVED", "ACTIVE", GENERATION_TRANSITIONS)
        assert not is_valid_transition("BUILDING", "ARCHIVED", GENERATION_TRANSITIONS)

    def test_candidate_reviewed_once(self) -> None:
        assert is_valid_transition("PENDING", "APPROVED", CANDIDATE_TRANSITIONS)
        assert not is_valid_transition("APPROVED", "REJECTED", CANDIDATE_TRANSITIONS)

    def test_building_not_readable(self) -> None:
        assert "BUILDING" not in READABLE_GENERATION_STATUSES


class TestIds:
    def test_prefixes(self) -> None:
        assert generate_id("domain").startswith("dom_")
        assert generate_id("candidate").startswith("cand_")
        assert generate_id("run") != generate_id("run")

    def test_unknown_kind(self) -> None:
        with pytest.raises(KeyError):
            generate_id("widget")

    def test_cluster_names(self) -> None:
        assert CLUSTER_ID_PATTERN.match(cluster_id(3))
        assert discovered_domain_name(0) == "discovered:cluster-0"


class TestObjectModels:
    def test_derived_attributes(self) -> None:
        rec = ObjectRecord(id="tbl", object_type="db_table", name="orders")
        assert rec.category is Category.STORAGE
        assert rec.granularity is Granularity.ATOMIC

    def test_own_parent_rejected(self) -> None:
        with pytest.raises(ValueError):
            ObjectRecord(id="svc", object_type=ObjectType.SERVICE, name="svc", parent_id="svc")

    def test_relation_semantics(self) -> None:
        rec = RelationRecord(id="r", relation_type=RelationType.READ, subject_id="a", object_id="b")
        assert rec.interaction_kind.value == "DATA"
        assert rec.direction.value == "IN"

    def test_confidence_bounds(self) -> None:
        with pytest.raises(ValueError):
            RelationRecord(
                id="r", relation_type="call", subject_id="a", object_id="b", confidence=2
            )

    def test_snapshot_duplicate_ids(self) -> None:
        with pytest.raises(ValueError, match="duplicate object id"):
            Snapshot.model_validate(
                {
                    "objects": [
                        {"id": "a", "object_type": "service", "name": "a"},
                        {"id": "a", "object_type": "service", "name": "b"},
                    ]
                }
            )
