"""GraphEngine: NetworkX graphs built from the store on demand.

Two kinds of graph:

- the live relation graph (APPROVED relations), rebuilt per call since
  relations may change between calls;
- rollup graphs, one per (workspace, generation, level). Generations are
  immutable once written, so these are cached by generation version and
  can never mix edges of two generations.

Parallel relations between the same ordered pair collapse into one edge
holding the maximum base weight.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from collections.abc import Collection, Mapping
from typing import TYPE_CHECKING, Any

import networkx as nx

from archnav.domain.rollup import qualifying_relations
from archnav.domain.scoring import base_weight, mean_confidence
from archnav.domain.types import RelationType, RollupLevel

if TYPE_CHECKING:
    from archnav.domain.models import ObjectRecord
    from archnav.infrastructure.repositories.graph_store import GraphStore

type _Graph = nx.DiGraph

_ROLLUP_CACHE_SIZE = 16


def _node_attrs(obj: ObjectRecord) -> dict[str, Any]:
    return {
        "object_type": obj.object_type.value,
        "name": obj.name,
        "visibility": obj.visibility.value,
        "granularity": obj.granularity.value,
        "parent_id": obj.parent_id,
    }


class GraphEngine:
    """Builds directed graphs over a workspace's objects."""

    def __init__(self, store: GraphStore) -> None:
        self._store = store
        self._rollups: OrderedDict[tuple[str, int, str], _Graph] = OrderedDict()
        self._lock = threading.Lock()

    def relation_graph(
        self,
        workspace_id: str,
        *,
        weights: Mapping[str, float] | None = None,
        relation_types: Collection[RelationType] | None = None,
    ) -> _Graph:
        """DiGraph of APPROVED, non-derived relations with every object as a node."""
        g: _Graph = nx.DiGraph()
        objs, rels = self._store.relation_snapshot(workspace_id)
        for obj in objs:
            g.add_node(obj.id, **_node_attrs(obj))

        merged: dict[tuple[str, str], dict[str, Any]] = {}
        for rel in qualifying_relations(rels):
            if relation_types is not None and rel.relation_type not in relation_types:
                continue
            if rel.subject_id == rel.object_id:
                continue
            weight = base_weight(rel.relation_type, weights)
            entry = merged.setdefault(
                (rel.subject_id, rel.object_id),
                {
                    "weight": weight,
                    "relation_type": rel.relation_type.value,
                    "confidences": [],
                    "relation_ids": [],
                },
            )
            if weight > entry["weight"] or (
                weight == entry["weight"] and rel.relation_type.value < entry["relation_type"]
            ):
                entry["weight"] = weight
                entry["relation_type"] = rel.relation_type.value
            entry["confidences"].append(rel.confidence)
            entry["relation_ids"].append(rel.id)

        for (s, o), entry in merged.items():
            g.add_edge(
                s,
                o,
                weight=entry["weight"],
                relation_type=entry["relation_type"],
                confidence=mean_confidence(entry["confidences"]),
                relation_ids=entry["relation_ids"],
            )
        return g

    def rollup_graph(self, workspace_id: str, version: int, level: RollupLevel) -> _Graph:
        """DiGraph of one generation's rollup edges at *level* (cached)."""
        key = (workspace_id, version, level.value)
        with self._lock:
            cached = self._rollups.get(key)
            if cached is not None:
                self._rollups.move_to_end(key)
                return cached

        g = self._build_rollup(workspace_id, version, level)
        with self._lock:
            self._rollups[key] = g
            while len(self._rollups) > _ROLLUP_CACHE_SIZE:
                self._rollups.popitem(last=False)
        return g

    def invalidate(self) -> None:
        """Drop cached rollup graphs (e.g. after generations were pruned)."""
        with self._lock:
            self._rollups.clear()

    def _build_rollup(self, workspace_id: str, version: int, level: RollupLevel) -> _Graph:
        g: _Graph = nx.DiGraph()
        rows = self._store.list_rollup_edges(workspace_id, version, level)
        endpoints = {r["subject_id"] for r in rows} | {r["object_id"] for r in rows}
        if endpoints:
            for obj in self._store.list_objects(workspace_id):
                if obj.id in endpoints:
                    g.add_node(obj.id, **_node_attrs(obj))
        for row in rows:
            g.add_edge(
                row["subject_id"],
                row["object_id"],
                weight=row["edge_weight"],
                relation_type=row["relation_type"],
                confidence=row["confidence"],
                relation_count=row["relation_count"],
            )
        return g
