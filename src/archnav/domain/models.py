"""Pydantic models for objects, relations and inventory snapshots.

A snapshot is the read-only hand-off from the external registration and
scanning collaborators: objects plus relations, validated here before
the store accepts them.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, model_validator

from archnav.domain.types import (
    RELATION_SEMANTICS,
    Category,
    FlowDirection,
    Granularity,
    InteractionKind,
    ObjectType,
    RelationSource,
    RelationStatus,
    RelationType,
    Visibility,
    category_of,
    granularity_of,
)


class ObjectRecord(BaseModel):
    """A node of the architecture graph.

    ``path`` and ``depth`` are materialized by the store from the parent
    chain; they are ``None`` on records that have not been stored yet.
    """

    model_config = {"frozen": True}

    id: str = Field(min_length=1)
    object_type: ObjectType
    name: str = Field(min_length=1)
    display_name: str | None = None
    parent_id: str | None = None
    visibility: Visibility = Visibility.VISIBLE
    metadata: dict[str, Any] = Field(default_factory=dict)
    path: str | None = None
    depth: int | None = None

    @property
    def category(self) -> Category:
        return category_of(self.object_type)

    @property
    def granularity(self) -> Granularity:
        return granularity_of(self.object_type)

    @model_validator(mode="after")
    def _no_self_parent(self) -> ObjectRecord:
        if self.parent_id == self.id:
            msg = f"object {self.id!r} cannot be its own parent"
            raise ValueError(msg)
        return self


class RelationRecord(BaseModel):
    """A directed, typed edge between two objects."""

    model_config = {"frozen": True}

    id: str = Field(min_length=1)
    relation_type: RelationType
    subject_id: str = Field(min_length=1)
    object_id: str = Field(min_length=1)
    status: RelationStatus = RelationStatus.APPROVED
    source: RelationSource = RelationSource.MANUAL
    is_derived: bool = False
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)

    @property
    def interaction_kind(self) -> InteractionKind:
        return RELATION_SEMANTICS[self.relation_type][0]

    @property
    def direction(self) -> FlowDirection:
        return RELATION_SEMANTICS[self.relation_type][1]


class Snapshot(BaseModel):
    """Objects and relations for one workspace, as handed over for loading."""

    objects: list[ObjectRecord] = Field(default_factory=list)
    relations: list[RelationRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_ids(self) -> Snapshot:
        seen: set[str] = set()
        for obj in self.objects:
            if obj.id in seen:
                msg = f"duplicate object id {obj.id!r}"
                raise ValueError(msg)
            seen.add(obj.id)
        rel_ids = [r.id for r in self.relations]
        if len(rel_ids) != len(set(rel_ids)):
            msg = "duplicate relation id in snapshot"
            raise ValueError(msg)
        return self
