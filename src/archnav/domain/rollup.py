"""Rollup projection: compress approved relations into coarse levels.

Every qualifying relation is projected onto a (subject-owner,
object-owner) pair at one or more levels and weighted by its relation
type. Parallel projections of the same ordered pair merge into a single
edge that keeps the maximum observed weight.

Pure function of its inputs: projecting the same relations twice yields
the same edges, which is what makes rebuilds idempotent.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from archnav.domain.hierarchy import resolve_ancestor
from archnav.domain.models import RelationRecord
from archnav.domain.scoring import base_weight, mean_confidence
from archnav.domain.types import ObjectType, RelationStatus, RelationType, RollupLevel

DEFAULT_MIN_MEMBERSHIP = 0.2

_SERVICE = frozenset({ObjectType.SERVICE})
_DATABASE = frozenset({ObjectType.DATABASE})
_BROKER = frozenset({ObjectType.MESSAGE_BROKER})

# Relation types projected onto each object-side owner.
SERVICE_RELATIONS = frozenset({RelationType.CALL, RelationType.DEPEND_ON})
DATABASE_RELATIONS = frozenset({RelationType.READ, RelationType.WRITE, RelationType.DEPEND_ON})
BROKER_RELATIONS = frozenset({RelationType.PRODUCE, RelationType.CONSUME, RelationType.DEPEND_ON})


@dataclass(frozen=True)
class ProjectedEdge:
    """One merged rollup edge, before it is tagged with a generation."""

    level: RollupLevel
    subject_id: str
    object_id: str
    edge_weight: float
    relation_type: str
    relation_count: int
    confidence: float | None

    @property
    def key(self) -> tuple[str, str, str, float]:
        """Generation-independent identity used for idempotency checks."""
        return (self.level.value, self.subject_id, self.object_id, self.edge_weight)


@dataclass
class _Merge:
    weight: float
    relation_type: str
    count: int = 0
    confidences: list[float | None] = field(default_factory=list)

    def add(self, weight: float, relation_type: str, confidence: float | None, count: int) -> None:
        if weight > self.weight or (weight == self.weight and relation_type < self.relation_type):
            self.weight = weight
            self.relation_type = relation_type
        self.count += count
        self.confidences.append(confidence)


class _LevelAccumulator:
    def __init__(self, level: RollupLevel) -> None:
        self.level = level
        self._pairs: dict[tuple[str, str], _Merge] = {}

    def add(
        self,
        subject_id: str,
        object_id: str,
        weight: float,
        relation_type: str,
        confidence: float | None,
        count: int = 1,
    ) -> None:
        if subject_id == object_id:
            return
        key = (subject_id, object_id)
        merged = self._pairs.get(key)
        if merged is None:
            merged = self._pairs[key] = _Merge(weight=weight, relation_type=relation_type)
        merged.add(weight, relation_type, confidence, count)

    def edges(self) -> list[ProjectedEdge]:
        return [
            ProjectedEdge(
                level=self.level,
                subject_id=s,
                object_id=o,
                edge_weight=m.weight,
                relation_type=m.relation_type,
                relation_count=m.count,
                confidence=mean_confidence(m.confidences),
            )
            for (s, o), m in sorted(self._pairs.items())
        ]


def qualifying_relations(relations: Iterable[RelationRecord]) -> list[RelationRecord]:
    """Approved, non-derived relations in deterministic order."""
    picked = [r for r in relations if r.status is RelationStatus.APPROVED and not r.is_derived]
    return sorted(picked, key=lambda r: r.id)


def endpoint_owners(
    relations: Iterable[RelationRecord],
    parents: Mapping[str, str | None],
    types: Mapping[str, ObjectType],
) -> dict[str, str]:
    """Map each exposed endpoint to the service exposing it (first by relation id)."""
    owners: dict[str, str] = {}
    for rel in relations:
        if rel.relation_type is not RelationType.EXPOSE:
            continue
        service = resolve_ancestor(rel.subject_id, parents, types, _SERVICE)
        if service is not None:
            owners.setdefault(rel.object_id, service)
    return owners


def project_relations(
    relations: Iterable[RelationRecord],
    parents: Mapping[str, str | None],
    types: Mapping[str, ObjectType],
    *,
    weights: Mapping[str, float] | None = None,
    memberships: Mapping[str, Mapping[str, float]] | None = None,
    min_membership: float = DEFAULT_MIN_MEMBERSHIP,
) -> dict[RollupLevel, list[ProjectedEdge]]:
    """Project *relations* onto all four rollup levels.

    Args:
        relations: candidate input relations; only APPROVED, non-derived
            ones are used.
        parents: object id -> parent id for the whole workspace.
        types: object id -> object type for the whole workspace.
        weights: per-relation-type base weights (defaults if omitted).
        memberships: object id -> {domain id: affinity} used for the
            domain-to-domain level.
        min_membership: affinities below this do not project.

    Returns:
        Edges per level, each sorted by (subject, object).
    """
    rels = qualifying_relations(relations)
    owners = endpoint_owners(rels, parents, types)
    levels = {level: _LevelAccumulator(level) for level in RollupLevel}

    for rel in rels:
        subject = resolve_ancestor(rel.subject_id, parents, types, _SERVICE)
        if subject is None:
            continue
        rtype = rel.relation_type
        weight = base_weight(rtype, weights)

        if rtype in SERVICE_RELATIONS:
            target = owners.get(rel.object_id) or resolve_ancestor(
                rel.object_id, parents, types, _SERVICE
            )
            if target is not None:
                levels[RollupLevel.SERVICE_TO_SERVICE].add(
                    subject, target, weight, rtype.value, rel.confidence
                )
        if rtype in DATABASE_RELATIONS:
            database = resolve_ancestor(rel.object_id, parents, types, _DATABASE)
            if database is not None:
                levels[RollupLevel.SERVICE_TO_DATABASE].add(
                    subject, database, weight, rtype.value, rel.confidence
                )
        if rtype in BROKER_RELATIONS:
            broker = resolve_ancestor(rel.object_id, parents, types, _BROKER)
            if broker is not None:
                levels[RollupLevel.SERVICE_TO_BROKER].add(
                    subject, broker, weight, rtype.value, rel.confidence
                )

    service_edges = levels[RollupLevel.SERVICE_TO_SERVICE].edges()
    _project_domains(
        service_edges,
        memberships or {},
        min_membership,
        levels[RollupLevel.DOMAIN_TO_DOMAIN],
    )

    result = {level: acc.edges() for level, acc in levels.items()}
    result[RollupLevel.SERVICE_TO_SERVICE] = service_edges
    return result


def _project_domains(
    service_edges: list[ProjectedEdge],
    memberships: Mapping[str, Mapping[str, float]],
    min_membership: float,
    acc: _LevelAccumulator,
) -> None:
    for edge in service_edges:
        left = memberships.get(edge.subject_id, {})
        right = memberships.get(edge.object_id, {})
        for x, ax in sorted(left.items()):
            if ax < min_membership:
                continue
            for y, by in sorted(right.items()):
                if by < min_membership:
                    continue
                acc.add(
                    x,
                    y,
                    edge.edge_weight * ax * by,
                    edge.relation_type,
                    edge.confidence,
                    edge.relation_count,
                )
