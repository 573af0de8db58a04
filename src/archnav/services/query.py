"""QueryService: bounded, read-only graph queries.

Every request goes through the same stages::

    PARSE -> VALIDATE -> TRAVERSE (bounded) -> RANK/FORMAT -> RESPOND

PARSE and VALIDATE reject malformed requests before any graph is built.
A query over a rollup level pins one generation up front and reads only
that generation's edges. Budget or deadline exhaustion during TRAVERSE
is not an error: the result comes back ``ok`` with ``truncated`` set.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

import networkx as nx
from pydantic import ValidationError

from archnav.domain.lifecycle import READABLE_GENERATION_STATUSES
from archnav.domain.query import QueryRequest
from archnav.domain.types import (
    Direction,
    DomainKind,
    Granularity,
    ObjectType,
    QueryType,
    RollupLevel,
    Visibility,
    VisibilityFilter,
)
from archnav.services._helpers import elapsed_ms, pydantic_errors
from archnav.services.base import BaseService
from archnav.services.contracts import QueryResultData, dump_validated
from archnav.services.profiles import ProfileService
from archnav.services.result import ErrorCode, ServiceResult
from archnav.services.telemetry import trace_span, traced
from archnav.services.traversal import (
    Reach,
    TraversalBudget,
    neighbors,
    reachable,
    top_paths,
)

logger = logging.getLogger(__name__)

OP = "query"


@dataclass(frozen=True)
class _Plan:
    """A validated request with budgets resolved and generation pinned."""

    request: QueryRequest
    generation_version: int | None
    max_hops: int
    max_visited: int
    timeout_ms: int
    top_k: int
    hub_degree_threshold: int


class _Rejected(Exception):
    """Carries a failure result out of validation helpers."""

    def __init__(self, result: ServiceResult) -> None:
        super().__init__(result.error.message if result.error else "rejected")
        self.result = result


def _node_item(g: nx.DiGraph, node_id: str, depth: int | None = None) -> dict[str, Any]:
    attrs = g.nodes[node_id] if node_id in g else {}
    return {
        "id": node_id,
        "object_type": attrs.get("object_type"),
        "name": attrs.get("name"),
        "depth": depth,
    }


def _edge_item(g: nx.DiGraph, u: str, v: str) -> dict[str, Any]:
    data = g.get_edge_data(u, v) or {}
    return {
        "subject_id": u,
        "object_id": v,
        "relation_type": data.get("relation_type"),
        "weight": data.get("weight", 0.0),
        "confidence": data.get("confidence"),
    }


class QueryService(BaseService):
    """Impact, path, usage and domain summary queries."""

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    @traced
    def execute(
        self,
        request: QueryRequest | Mapping[str, Any],
        *,
        cancel: threading.Event | None = None,
    ) -> ServiceResult:
        """Run one query.

        Args:
            request: a :class:`QueryRequest` or its dict form.
            cancel: set by the caller to stop traversal early; the result
                is then truncated with reason ``cancelled``.
        """
        started = time.perf_counter()
        try:
            plan = self._plan(request)
        except _Rejected as rejected:
            return rejected.result

        req = plan.request
        budget = TraversalBudget.start(
            max_hops=plan.max_hops,
            max_visited=plan.max_visited,
            timeout_ms=plan.timeout_ms,
            hub_degree_threshold=plan.hub_degree_threshold,
            cancel=cancel,
        )
        with trace_span("traverse") as span:
            if req.query_type is QueryType.IMPACT_ANALYSIS:
                data = self._impact(plan, budget)
            elif req.query_type is QueryType.PATH_DISCOVERY:
                data = self._path(plan, budget)
            elif req.query_type is QueryType.USAGE_DISCOVERY:
                data = self._usage(plan, budget)
            else:
                data = self._domain_summary(plan)
            if span:
                span.annotate("nodes", len(data["nodes"]))
                span.annotate("truncated", data["truncated"])

        if data["truncated"]:
            logger.info(
                "Query %s truncated (%s)", req.query_type.value, data["truncation_reason"]
            )
        return ServiceResult(
            ok=True,
            op=OP,
            data=dump_validated(QueryResultData, data),
            meta={
                "generation_version": plan.generation_version,
                "execution_ms": elapsed_ms(started),
            },
        )

    def execute_many(
        self,
        requests: Sequence[QueryRequest | Mapping[str, Any]],
        *,
        cancel: threading.Event | None = None,
    ) -> list[ServiceResult]:
        """Run independent queries in parallel; results keep input order."""
        if not requests:
            return []
        workers = self._settings.query.max_workers or os.cpu_count() or 1
        with ThreadPoolExecutor(max_workers=min(workers, len(requests))) as pool:
            return list(pool.map(lambda r: self.execute(r, cancel=cancel), requests))

    def impact(self, workspace_id: str, object_id: str, **options: Any) -> ServiceResult:
        return self.execute(
            self._request(workspace_id, QueryType.IMPACT_ANALYSIS, object_id=object_id, **options)
        )

    def path(
        self, workspace_id: str, object_id: str, to_object_id: str, **options: Any
    ) -> ServiceResult:
        return self.execute(
            self._request(
                workspace_id,
                QueryType.PATH_DISCOVERY,
                object_id=object_id,
                to_object_id=to_object_id,
                **options,
            )
        )

    def usage(self, workspace_id: str, object_id: str, **options: Any) -> ServiceResult:
        return self.execute(
            self._request(workspace_id, QueryType.USAGE_DISCOVERY, object_id=object_id, **options)
        )

    def domain_summary(self, workspace_id: str, domain_id: str, **options: Any) -> ServiceResult:
        return self.execute(
            self._request(workspace_id, QueryType.DOMAIN_SUMMARY, domain_id=domain_id, **options)
        )

    @staticmethod
    def _request(workspace_id: str, query_type: QueryType, **options: Any) -> dict[str, Any]:
        """Split keyword options into scope, params and generation."""
        scope = {
            k: options.pop(k)
            for k in ("level", "relation_types", "object_types", "visibility")
            if options.get(k) is not None
        }
        generation_version = options.pop("generation_version", None)
        params = {k: v for k, v in options.items() if v is not None}
        return {
            "workspace_id": workspace_id,
            "query_type": query_type,
            "scope": scope,
            "params": params,
            "generation_version": generation_version,
        }

    # ------------------------------------------------------------------
    # PARSE / VALIDATE
    # ------------------------------------------------------------------

    def _plan(self, request: QueryRequest | Mapping[str, Any]) -> _Plan:
        if isinstance(request, QueryRequest):
            req = request
        else:
            try:
                req = QueryRequest.model_validate(request)
            except ValidationError as exc:
                raise _Rejected(
                    ServiceResult.failure(
                        OP,
                        ErrorCode.VALIDATION_ERROR,
                        "Malformed query request",
                        errors=pydantic_errors(exc.errors()),
                    )
                ) from exc

        missing = req.missing_params()
        if missing:
            raise _Rejected(
                ServiceResult.failure(
                    OP, ErrorCode.VALIDATION_ERROR, "Missing query parameters", errors=missing
                )
            )

        ws = req.workspace_id
        params = req.params
        for field_name in ("object_id", "to_object_id"):
            object_id = getattr(params, field_name)
            if object_id is not None and self._store.get_object(ws, object_id) is None:
                raise _Rejected(
                    ServiceResult.failure(
                        OP,
                        ErrorCode.NOT_FOUND,
                        f"No object {object_id!r} in workspace {ws!r}",
                        field=f"params.{field_name}",
                        object_id=object_id,
                    )
                )
        if req.query_type is QueryType.DOMAIN_SUMMARY:
            domain = self._store.get_object(ws, params.domain_id or "")
            if domain is None or domain.object_type is not ObjectType.DOMAIN:
                raise _Rejected(
                    ServiceResult.failure(
                        OP,
                        ErrorCode.NOT_FOUND,
                        f"No domain {params.domain_id!r} in workspace {ws!r}",
                        field="params.domain_id",
                        domain_id=params.domain_id,
                    )
                )

        needs_generation = (
            req.scope.level.rollup_level is not None
            or req.query_type is QueryType.DOMAIN_SUMMARY
        )
        version = self._pin_generation(ws, req.generation_version) if needs_generation else None

        cfg = self._settings.query
        return _Plan(
            request=req,
            generation_version=version,
            max_hops=params.max_hops or cfg.max_hops,
            max_visited=params.max_visited or cfg.max_visited,
            timeout_ms=params.timeout_ms or cfg.timeout_ms,
            top_k=params.top_k or cfg.top_k_paths,
            hub_degree_threshold=params.hub_degree_threshold or cfg.hub_degree_threshold,
        )

    def _pin_generation(self, workspace_id: str, requested: int | None) -> int:
        """Resolve the one generation this query will read."""
        if requested is None:
            active = self._store.get_active_generation(workspace_id)
            if active is None:
                raise _Rejected(
                    ServiceResult.failure(
                        OP,
                        ErrorCode.NO_ACTIVE_GENERATION,
                        f"Workspace {workspace_id!r} has no active rollup generation",
                        workspace_id=workspace_id,
                    )
                )
            return active

        generation = self._store.get_generation(workspace_id, requested)
        if generation is None:
            raise _Rejected(
                ServiceResult.failure(
                    OP,
                    ErrorCode.NOT_FOUND,
                    f"No generation {requested} in workspace {workspace_id!r}",
                    generation_version=requested,
                )
            )
        if generation["status"] not in READABLE_GENERATION_STATUSES:
            raise _Rejected(
                ServiceResult.failure(
                    OP,
                    ErrorCode.INCONSISTENT_STATE,
                    f"Generation {requested} was never finalized",
                    generation_version=requested,
                    status=generation["status"],
                )
            )
        return requested

    # ------------------------------------------------------------------
    # Graph selection
    # ------------------------------------------------------------------

    def _graph(self, plan: _Plan, *keep: str | None) -> nx.DiGraph:
        """The scoped, filtered graph a query traverses.

        Nodes named in *keep* (the query endpoints) survive the node
        filters so a hidden origin can still be walked from.
        """
        req = plan.request
        scope = req.scope
        level = scope.level.rollup_level
        engine = self._inventory.graph
        if level is None:
            weights = ProfileService(self._inventory).resolve(req.workspace_id).edge_weights
            g = engine.relation_graph(
                req.workspace_id, weights=weights, relation_types=scope.relation_types
            )
        else:
            assert plan.generation_version is not None
            g = engine.rollup_graph(req.workspace_id, plan.generation_version, level)
        return self._filtered(g, plan, {k for k in keep if k is not None})

    @staticmethod
    def _filtered(g: nx.DiGraph, plan: _Plan, keep: set[str]) -> nx.DiGraph:
        scope = plan.request.scope
        hide_hidden = scope.visibility is VisibilityFilter.VISIBLE_ONLY
        object_types = {t.value for t in scope.object_types} if scope.object_types else None
        relation_types = (
            {t.value for t in scope.relation_types} if scope.relation_types else None
        )
        if not hide_hidden and object_types is None and relation_types is None:
            return g

        def node_ok(n: str) -> bool:
            if n in keep:
                return True
            attrs = g.nodes[n]
            if hide_hidden and attrs.get("visibility") == Visibility.HIDDEN.value:
                return False
            return object_types is None or attrs.get("object_type") in object_types

        def edge_ok(u: str, v: str) -> bool:
            return relation_types is None or g.edges[u, v].get("relation_type") in relation_types

        return nx.subgraph_view(g, filter_node=node_ok, filter_edge=edge_ok)

    # ------------------------------------------------------------------
    # TRAVERSE + FORMAT
    # ------------------------------------------------------------------

    @staticmethod
    def _base(plan: _Plan) -> dict[str, Any]:
        req = plan.request
        return {
            "workspace_id": req.workspace_id,
            "query_type": req.query_type.value,
            "level": req.scope.level.value,
            "nodes": [],
            "edges": [],
            "paths": None,
            "truncated": False,
            "truncation_reason": None,
            "summary": {},
        }

    @staticmethod
    def _apply_reach(data: dict[str, Any], g: nx.DiGraph, reach: Reach) -> None:
        ordered = sorted(reach.depths.items(), key=lambda kv: (kv[1], kv[0]))
        data["nodes"] = [_node_item(g, n, d) for n, d in ordered]
        data["edges"] = [_edge_item(g, u, v) for u, v in sorted(reach.edges)]
        data["truncated"] = reach.truncated
        data["truncation_reason"] = reach.reason
        data["summary"] = {
            "origin": reach.origin,
            "visited": len(reach.depths),
            "max_depth": max(reach.depths.values(), default=0),
            "hubs_capped": sorted(reach.hubs_capped),
        }

    def _impact(self, plan: _Plan, budget: TraversalBudget) -> dict[str, Any]:
        params = plan.request.params
        g = self._graph(plan, params.object_id)
        data = self._base(plan)
        origin = params.object_id or ""
        self._apply_reach(data, g, reachable(g, origin, params.direction, budget))
        data["summary"]["direction"] = params.direction.value
        data["summary"]["origin_in_graph"] = origin in g
        return data

    def _usage(self, plan: _Plan, budget: TraversalBudget) -> dict[str, Any]:
        req = plan.request
        origin = req.params.object_id or ""
        g = self._graph(plan, origin)
        data = self._base(plan)

        if origin not in g and req.scope.level.rollup_level is not None:
            # Atomic objects have no rollup node; fall back to their
            # direct consumers among approved relations.
            obj = self._store.get_object(req.workspace_id, origin)
            if obj is not None and obj.granularity is Granularity.ATOMIC:
                return self._atomic_usage(plan, data, origin)

        reach = reachable(g, origin, Direction.UPSTREAM, budget)
        self._apply_reach(data, g, reach)
        # Usage is a flat set: order by id, not by distance.
        data["nodes"].sort(key=lambda n: n["id"])
        data["summary"]["direction"] = Direction.UPSTREAM.value
        return data

    def _atomic_usage(self, plan: _Plan, data: dict[str, Any], origin: str) -> dict[str, Any]:
        ws = plan.request.workspace_id
        live = self._filtered(self._inventory.graph.relation_graph(ws), plan, {origin})
        consumers = neighbors(live, origin, Direction.UPSTREAM) if origin in live else []
        data["nodes"] = [_node_item(live, n, 1) for n, _ in consumers]
        data["edges"] = [_edge_item(live, u, v) for _, (u, v) in consumers]
        data["summary"] = {
            "origin": origin,
            "visited": len(consumers),
            "direction": Direction.UPSTREAM.value,
            "atomic_fallback": True,
        }
        return data

    def _path(self, plan: _Plan, budget: TraversalBudget) -> dict[str, Any]:
        params = plan.request.params
        source, target = params.object_id or "", params.to_object_id or ""
        g = self._graph(plan, source, target)
        data = self._base(plan)
        search = top_paths(g, source, target, params.direction, budget, top_k=plan.top_k)

        on_paths: set[str] = set()
        edges: set[tuple[str, str]] = set()
        for p in search.paths:
            on_paths.update(p.nodes)
            for u, v in zip(p.nodes, p.nodes[1:], strict=False):
                edges.add((u, v) if g.has_edge(u, v) else (v, u))
        on_paths.discard(source)

        data["nodes"] = [_node_item(g, n) for n in sorted(on_paths)]
        data["edges"] = [_edge_item(g, u, v) for u, v in sorted(edges)]
        data["paths"] = [
            {
                "nodes": list(p.nodes),
                "hops": p.hops,
                "score": p.score,
                "avg_confidence": p.avg_confidence,
                "min_edge_weight": p.min_edge_weight,
                "key": p.key,
            }
            for p in search.paths
        ]
        data["truncated"] = search.truncated
        data["truncation_reason"] = search.reason
        data["summary"] = {
            "from": source,
            "to": target,
            "path_count": len(search.paths),
            "expanded": search.expanded,
            "direction": params.direction.value,
        }
        return data

    def _domain_summary(self, plan: _Plan) -> dict[str, Any]:
        req = plan.request
        ws = req.workspace_id
        domain_id = req.params.domain_id or ""
        assert plan.generation_version is not None
        data = self._base(plan)

        engine = self._inventory.graph
        d2d = engine.rollup_graph(ws, plan.generation_version, RollupLevel.DOMAIN_TO_DOMAIN)
        s2s = engine.rollup_graph(ws, plan.generation_version, RollupLevel.SERVICE_TO_SERVICE)

        objects = {o.id: o for o in self._store.list_objects(ws)}
        hide_hidden = req.scope.visibility is VisibilityFilter.VISIBLE_ONLY
        members = [
            m
            for m in self._store.domain_memberships(ws, domain_id)
            if m["object_id"] in objects
            and not (hide_hidden and objects[m["object_id"]].visibility is Visibility.HIDDEN)
        ]
        member_ids = {m["object_id"] for m in members}

        nodes = []
        for m in members:
            obj = objects[m["object_id"]]
            nodes.append(
                {
                    "id": obj.id,
                    "object_type": obj.object_type.value,
                    "name": obj.name,
                    "affinity": m["affinity"],
                    "source": m["source"],
                }
            )

        edges = []
        if domain_id in d2d:
            for u, v in sorted({*d2d.in_edges(domain_id), *d2d.out_edges(domain_id)}):
                edges.append({**_edge_item(d2d, u, v), "level": RollupLevel.DOMAIN_TO_DOMAIN.value})
        for u, v in sorted(s2s.subgraph(member_ids).edges()):
            edges.append({**_edge_item(s2s, u, v), "level": RollupLevel.SERVICE_TO_SERVICE.value})

        domain = objects[domain_id]
        data["nodes"] = nodes
        data["edges"] = edges
        data["summary"] = {
            "domain_id": domain_id,
            "name": domain.name,
            "kind": domain.metadata.get("kind", DomainKind.SEED.value),
            "member_count": len(nodes),
            "domain_edge_count": sum(
                1 for e in edges if e["level"] == RollupLevel.DOMAIN_TO_DOMAIN.value
            ),
            "internal_edge_count": sum(
                1 for e in edges if e["level"] == RollupLevel.SERVICE_TO_SERVICE.value
            ),
        }
        return data
