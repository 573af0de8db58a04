"""Bounded graph traversal used by the query engine.

Pure functions over a NetworkX ``DiGraph``; nothing here touches the
store. Every expansion step checks the budget (hops, visited nodes,
wall-clock deadline, caller cancellation), so a traversal returns a
partial result with a truncation reason instead of running away.

Reachability walks cap hub nodes (degree above ``hub_degree_threshold``
in the walk direction): only their first ``hub_degree_threshold``
neighbors in id order are followed. Path search never caps hubs; its
fan-out is bounded by ``max_visited`` alone.
"""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field

import networkx as nx

from archnav.domain.scoring import DEFAULT_CONFIDENCE, path_score
from archnav.domain.types import Direction

# Truncation reasons, in the order they are reported.
MAX_HOPS = "max_hops"
MAX_VISITED = "max_visited"
TIMEOUT = "timeout"
CANCELLED = "cancelled"


@dataclass
class TraversalBudget:
    """Limits one traversal must respect."""

    max_hops: int
    max_visited: int
    deadline: float
    hub_degree_threshold: int
    cancel: threading.Event | None = None

    @classmethod
    def start(
        cls,
        *,
        max_hops: int,
        max_visited: int,
        timeout_ms: int,
        hub_degree_threshold: int,
        cancel: threading.Event | None = None,
    ) -> TraversalBudget:
        """Budget whose deadline is *timeout_ms* from now (monotonic clock)."""
        return cls(
            max_hops=max_hops,
            max_visited=max_visited,
            deadline=time.monotonic() + timeout_ms / 1000,
            hub_degree_threshold=hub_degree_threshold,
            cancel=cancel,
        )

    def interrupted(self) -> str | None:
        """``cancelled`` or ``timeout`` if the traversal must stop now."""
        if self.cancel is not None and self.cancel.is_set():
            return CANCELLED
        if time.monotonic() >= self.deadline:
            return TIMEOUT
        return None


@dataclass
class Reach:
    """Outcome of a reachability walk. The origin is not in ``depths``."""

    origin: str
    depths: dict[str, int] = field(default_factory=dict)
    edges: list[tuple[str, str]] = field(default_factory=list)
    hubs_capped: list[str] = field(default_factory=list)
    truncated: bool = False
    reason: str | None = None

    def truncate(self, reason: str) -> None:
        # The first reason wins; later ones are consequences.
        if not self.truncated:
            self.truncated = True
            self.reason = reason


def neighbors(
    g: nx.DiGraph, node: str, direction: Direction
) -> list[tuple[str, tuple[str, str]]]:
    """Sorted ``(neighbor, (u, v))`` pairs in the walk direction.

    ``(u, v)`` is the edge as stored in *g*, so callers can read its
    attributes whichever way the walk runs.
    """
    found: dict[str, tuple[str, str]] = {}
    if direction in (Direction.DOWNSTREAM, Direction.BOTH):
        for nbr in g.successors(node):
            found[nbr] = (node, nbr)
    if direction in (Direction.UPSTREAM, Direction.BOTH):
        for nbr in g.predecessors(node):
            found.setdefault(nbr, (nbr, node))
    found.pop(node, None)
    return [(nbr, found[nbr]) for nbr in sorted(found)]


def reachable(
    g: nx.DiGraph,
    origin: str,
    direction: Direction,
    budget: TraversalBudget,
) -> Reach:
    """Breadth-first reachability from *origin* under *budget*.

    ``max_visited`` counts the origin, so at most ``max_visited - 1``
    nodes are returned. A node sitting at ``max_hops`` that still has
    unvisited neighbors marks the result truncated.
    """
    reach = Reach(origin=origin)
    if origin not in g:
        return reach

    visited: dict[str, int] = {origin: 0}
    seen_edges: set[tuple[str, str]] = set()
    queue: deque[str] = deque([origin])

    while queue:
        stop = budget.interrupted()
        if stop is not None:
            reach.truncate(stop)
            break
        node = queue.popleft()
        depth = visited[node]
        nbrs = neighbors(g, node, direction)

        if depth >= budget.max_hops:
            if any(nbr not in visited for nbr, _ in nbrs):
                reach.truncate(MAX_HOPS)
            continue
        if len(nbrs) > budget.hub_degree_threshold:
            nbrs = nbrs[: budget.hub_degree_threshold]
            reach.hubs_capped.append(node)

        exhausted = False
        for nbr, edge in nbrs:
            if nbr not in visited:
                if len(visited) >= budget.max_visited:
                    reach.truncate(MAX_VISITED)
                    exhausted = True
                    break
                visited[nbr] = depth + 1
                queue.append(nbr)
            if edge not in seen_edges:
                seen_edges.add(edge)
                reach.edges.append(edge)
        if exhausted:
            break

    reach.depths = {n: d for n, d in visited.items() if n != origin}
    return reach


@dataclass(frozen=True)
class ScoredPath:
    nodes: tuple[str, ...]
    score: float
    avg_confidence: float
    min_edge_weight: float

    @property
    def hops(self) -> int:
        return len(self.nodes) - 1

    @property
    def key(self) -> str:
        return ">".join(self.nodes)

    def sort_key(self) -> tuple[float, int, str]:
        """Best first: higher score, then fewer hops, then path key."""
        return (-self.score, self.hops, self.key)


def edge_data(g: nx.DiGraph, u: str, v: str) -> dict:
    """Attributes of the edge between *u* and *v* in either orientation."""
    data = g.get_edge_data(u, v)
    if data is None:
        data = g.get_edge_data(v, u) or {}
    return data


def score_path(g: nx.DiGraph, nodes: tuple[str, ...]) -> ScoredPath:
    """Score a path; edges with unknown confidence count as fully confident."""
    weights: list[float] = []
    confidences: list[float] = []
    for u, v in zip(nodes, nodes[1:], strict=False):
        data = edge_data(g, u, v)
        weights.append(float(data.get("weight", 0.0)))
        conf = data.get("confidence")
        confidences.append(DEFAULT_CONFIDENCE if conf is None else float(conf))
    avg_conf = math.fsum(confidences) / len(confidences)
    min_w = min(weights)
    return ScoredPath(
        nodes=nodes,
        score=path_score(avg_conf, min_w, len(nodes) - 1),
        avg_confidence=avg_conf,
        min_edge_weight=min_w,
    )


@dataclass
class PathSearch:
    """Outcome of a bounded path enumeration."""

    paths: list[ScoredPath] = field(default_factory=list)
    expanded: int = 0
    truncated: bool = False
    reason: str | None = None

    def truncate(self, reason: str) -> None:
        if not self.truncated:
            self.truncated = True
            self.reason = reason


def _simple_paths(
    g: nx.DiGraph,
    source: str,
    target: str,
    direction: Direction,
    budget: TraversalBudget,
    search: PathSearch,
) -> Iterator[tuple[str, ...]]:
    # Breadth-first over partial paths, so paths come out in non-decreasing
    # hop order and a spent visit budget never hides a shorter path.
    queue: deque[tuple[str, ...]] = deque([(source,)])
    while queue:
        stop = budget.interrupted()
        if stop is not None:
            search.truncate(stop)
            return
        path = queue.popleft()
        for nbr, _ in neighbors(g, path[-1], direction):
            if nbr == target:
                yield (*path, nbr)
                continue
            if nbr in path:
                continue
            if len(path) >= budget.max_hops:
                search.truncate(MAX_HOPS)
                continue
            if search.expanded >= budget.max_visited:
                # Queued paths are still checked for a direct edge to target.
                search.truncate(MAX_VISITED)
                continue
            search.expanded += 1
            queue.append((*path, nbr))


def top_paths(
    g: nx.DiGraph,
    source: str,
    target: str,
    direction: Direction,
    budget: TraversalBudget,
    *,
    top_k: int,
) -> PathSearch:
    """Top-*top_k* simple paths from *source* to *target* within *budget*.

    Paths longer than ``max_hops`` are never returned. ``max_visited``
    bounds the number of partial paths extended; paths reaching the
    target from an already extended partial path are still found once
    it is spent. An empty ``paths`` list with ``truncated`` unset means
    no path exists within ``max_hops``.
    """
    search = PathSearch()
    if source not in g or target not in g or source == target:
        return search
    found = [
        score_path(g, nodes)
        for nodes in _simple_paths(g, source, target, direction, budget, search)
    ]
    found.sort(key=ScoredPath.sort_key)
    search.paths = found[:top_k]
    return search
