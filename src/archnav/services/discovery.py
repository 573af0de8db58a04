"""DiscoveryService: Track B, seed-less domain discovery.

Builds an undirected weighted graph from one generation's
service-to-service rollup and runs Louvain community detection over it.
Communities of at least ``min_cluster_size`` members become new
DISCOVERED domain objects with one membership row per member.

A run is atomic: the run record, its domain objects and memberships are
written in a single transaction. If that fails a FAILED run is recorded
on its own so the attempt stays visible.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import networkx as nx

from archnav.config.logging import log_context
from archnav.domain.ids import cluster_id, discovered_domain_name, generate_id
from archnav.domain.lifecycle import READABLE_GENERATION_STATUSES, RunStatus
from archnav.domain.types import DomainKind, RollupLevel
from archnav.services._helpers import now_iso
from archnav.services.base import BaseService
from archnav.services.contracts import DiscoveryResultData, dump_validated
from archnav.services.profiles import ProfileNotFoundError, ProfileService
from archnav.services.result import ErrorCode, ServiceResult
from archnav.services.telemetry import trace_span, traced

if TYPE_CHECKING:
    from archnav.infrastructure.inventory import InventoryTransaction

logger = logging.getLogger(__name__)

ALGO = "louvain"
ALGO_VERSION = f"networkx-{nx.__version__}"
INPUT_LAYERS = [RollupLevel.SERVICE_TO_SERVICE.value]


def undirected_rollup(edges: list[dict[str, Any]]) -> nx.Graph:
    """Collapse directed rollup edges into an undirected graph.

    Both directions between a pair land on one edge keyed by the sorted
    pair; the heavier weight wins.
    """
    ug = nx.Graph()
    merged: dict[tuple[str, str], float] = {}
    for edge in edges:
        s, o = edge["subject_id"], edge["object_id"]
        if s == o:
            continue
        key = (s, o) if s < o else (o, s)
        merged[key] = max(merged.get(key, 0.0), float(edge["edge_weight"]))
    for (a, b), weight in sorted(merged.items()):
        ug.add_edge(a, b, weight=weight)
    return ug


def detect_communities(
    ug: nx.Graph,
    *,
    resolution: float,
    seed: int,
    min_cluster_size: int,
) -> list[list[str]]:
    """Louvain communities of *ug* with at least *min_cluster_size* members.

    Returned in a stable order (size descending, then smallest member id),
    each community's members sorted.
    """
    if ug.number_of_nodes() == 0:
        return []
    communities = nx.community.louvain_communities(
        ug, weight="weight", resolution=resolution, seed=seed
    )
    kept = [sorted(c) for c in communities if len(c) >= min_cluster_size]
    return sorted(kept, key=lambda members: (-len(members), members[0]))


class DiscoveryService(BaseService):
    """Runs community detection and materializes discovered domains."""

    @traced
    def discover(
        self,
        workspace_id: str,
        generation_version: int | None = None,
        *,
        min_cluster_size: int | None = None,
        resolution: float | None = None,
        profile_id: str | None = None,
    ) -> ServiceResult:
        """Discover domains from the service-to-service rollup.

        Args:
            workspace_id: workspace to cluster.
            generation_version: finalized generation to read; the ACTIVE
                one when omitted.
            min_cluster_size: smallest community kept (profile/settings
                default otherwise).
            resolution: Louvain resolution (profile/settings default
                otherwise).
            profile_id: inference profile supplying the defaults.
        """
        op = "discover"
        warnings: list[str] = []
        try:
            profile = ProfileService(self._inventory).resolve(workspace_id, profile_id)
        except ProfileNotFoundError as exc:
            return ServiceResult.failure(op, ErrorCode.NOT_FOUND, str(exc), profile_id=profile_id)
        min_size = profile.min_cluster_size if min_cluster_size is None else min_cluster_size
        res = profile.resolution if resolution is None else resolution
        if min_size < 1 or res <= 0:
            return ServiceResult.failure(
                op,
                ErrorCode.VALIDATION_ERROR,
                "min_cluster_size must be >= 1 and resolution > 0",
                min_cluster_size=min_size,
                resolution=res,
            )

        if generation_version is None:
            generation_version = self._store.get_active_generation(workspace_id)
            if generation_version is None:
                return ServiceResult.failure(
                    op,
                    ErrorCode.NO_ACTIVE_GENERATION,
                    f"Workspace {workspace_id!r} has no active rollup generation",
                    workspace_id=workspace_id,
                )
        generation = self._store.get_generation(workspace_id, generation_version)
        if generation is None:
            return ServiceResult.failure(
                op,
                ErrorCode.NOT_FOUND,
                f"No generation {generation_version} in workspace {workspace_id!r}",
                generation_version=generation_version,
            )
        if generation["status"] not in READABLE_GENERATION_STATUSES:
            return ServiceResult.failure(
                op,
                ErrorCode.INCONSISTENT_STATE,
                f"Generation {generation_version} was never finalized",
                generation_version=generation_version,
                status=generation["status"],
            )

        seed = self._settings.discovery.seed
        parameters = {"min_cluster_size": min_size, "resolution": res, "seed": seed}
        run_id = generate_id("run")
        started = now_iso()

        with log_context(workspace_id=workspace_id, op=op, run_id=run_id):
            stats: dict[str, int] = {}
            try:
                with trace_span("cluster") as span:
                    ug = undirected_rollup(
                        self._store.list_rollup_edges(
                            workspace_id, generation_version, RollupLevel.SERVICE_TO_SERVICE
                        )
                    )
                    clusters = detect_communities(
                        ug, resolution=res, seed=seed, min_cluster_size=min_size
                    )
                    stats = {
                        "node_count": ug.number_of_nodes(),
                        "edge_count": ug.number_of_edges(),
                        "cluster_count": len(clusters),
                    }
                    if span:
                        for key, value in stats.items():
                            span.annotate(key, value)

                with trace_span("persist"), self._inventory.transaction() as txn:
                    self._store.insert_run(
                        txn.conn,
                        {
                            "id": run_id,
                            "workspace_id": workspace_id,
                            "generation_version": generation_version,
                            "algo": ALGO,
                            "algo_version": ALGO_VERSION,
                            "input_layers": INPUT_LAYERS,
                            "parameters": parameters,
                            "graph_stats": stats,
                            "status": RunStatus.COMPLETED.value,
                            "started": started,
                            "finished": txn.now,
                        },
                    )
                    items = self._materialize(txn, workspace_id, run_id, clusters)
            except Exception as exc:
                logger.exception("Discovery run %s failed", run_id)
                self._record_failed_run(
                    workspace_id,
                    run_id,
                    generation_version,
                    parameters,
                    stats,
                    started,
                    exc,
                    warnings,
                )
                return ServiceResult.failure(
                    op,
                    ErrorCode.DISCOVERY_FAILED,
                    f"Discovery failed: {exc}",
                    warnings=warnings,
                    run_id=run_id,
                    generation_version=generation_version,
                    graph_stats=stats,
                )

        logger.info("Discovery run %s found %d clusters", run_id, len(items))
        self._dispatch_event(
            "post_discovery",
            {
                "workspace_id": workspace_id,
                "run_id": run_id,
                "cluster_count": len(items),
                "domain_ids": [c["domain_id"] for c in items],
            },
            warnings,
            workspace_id=workspace_id,
        )
        return ServiceResult(
            ok=True,
            op=op,
            data=dump_validated(
                DiscoveryResultData,
                {
                    "workspace_id": workspace_id,
                    "run_id": run_id,
                    "generation_version": generation_version,
                    "cluster_count": len(items),
                    "graph_stats": stats,
                    "clusters": items,
                },
            ),
            warnings=warnings,
        )

    def _materialize(
        self,
        txn: InventoryTransaction,
        workspace_id: str,
        run_id: str,
        clusters: list[list[str]],
    ) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        memberships: list[dict[str, Any]] = []
        for index, members in enumerate(clusters):
            cid = cluster_id(index)
            domain_id = generate_id("domain")
            name = discovered_domain_name(index)
            self._store.insert_domain_object(
                txn.conn,
                workspace_id,
                object_id=domain_id,
                name=name,
                display_name=f"Discovered cluster {index}",
                metadata={
                    "kind": DomainKind.DISCOVERED.value,
                    "cluster_id": cid,
                    "algo": ALGO,
                    "algo_version": ALGO_VERSION,
                    "run_id": run_id,
                    "label_candidates": [],
                },
                now=txn.now,
            )
            memberships.extend(
                {
                    "run_id": run_id,
                    "domain_id": domain_id,
                    "object_id": member,
                    "cluster_id": cid,
                    "affinity": 1.0,
                    "purity": 1.0,
                }
                for member in members
            )
            items.append(
                {
                    "cluster_id": cid,
                    "domain_id": domain_id,
                    "name": name,
                    "size": len(members),
                    "members": members,
                }
            )
        self._store.insert_memberships(txn.conn, memberships)
        return items

    def _record_failed_run(
        self,
        workspace_id: str,
        run_id: str,
        generation_version: int,
        parameters: dict[str, Any],
        stats: dict[str, int],
        started: str,
        exc: Exception,
        warnings: list[str],
    ) -> None:
        try:
            with self._inventory.transaction() as txn:
                self._store.insert_run(
                    txn.conn,
                    {
                        "id": run_id,
                        "workspace_id": workspace_id,
                        "generation_version": generation_version,
                        "algo": ALGO,
                        "algo_version": ALGO_VERSION,
                        "input_layers": INPUT_LAYERS,
                        "parameters": parameters,
                        "graph_stats": stats or None,
                        "status": RunStatus.FAILED.value,
                        "error": str(exc),
                        "started": started,
                        "finished": txn.now,
                    },
                )
        except Exception:
            logger.warning("Could not record failed discovery run %s", run_id, exc_info=True)
            warnings.append(f"Could not record failed discovery run {run_id}")

    @traced
    def runs(self, workspace_id: str) -> ServiceResult:
        """List discovery runs of *workspace_id*, newest first."""
        items = self._store.list_runs(workspace_id)
        return ServiceResult(
            ok=True,
            op="runs",
            data={"workspace_id": workspace_id, "count": len(items), "items": items},
        )
