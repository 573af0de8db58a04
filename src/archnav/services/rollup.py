"""RollupService: rebuild, list and prune rollup generations.

A rebuild never touches the ACTIVE generation until its last step:

1. allocate the next version as BUILDING (own transaction);
2. project approved relations onto every level in memory;
3. write the new edges tagged with that version (own transaction);
4. archive the old ACTIVE, activate the new one and move the pointer
   (one transaction, the only change readers observe).

If any stage fails the BUILDING row stays behind with the failure in its
metadata and the previous ACTIVE generation keeps serving reads.
"""

from __future__ import annotations

import logging
from typing import Any

from archnav.config.logging import log_context
from archnav.domain.lifecycle import GenerationStatus
from archnav.domain.rollup import project_relations
from archnav.domain.types import ObjectType, RollupLevel
from archnav.services.base import BaseService
from archnav.services.contracts import (
    GenerationListData,
    RebuildResultData,
    dump_validated,
)
from archnav.services.profiles import ProfileNotFoundError, ProfileService
from archnav.services.result import ErrorCode, ServiceResult
from archnav.services.telemetry import trace_span, traced

logger = logging.getLogger(__name__)


class RollupService(BaseService):
    """Owns the generation lifecycle of a workspace's rollup edges."""

    @traced
    def rebuild(self, workspace_id: str, *, profile_id: str | None = None) -> ServiceResult:
        """Build a new generation from the current approved relations.

        Safe to call concurrently: rebuilds of one workspace queue on the
        inventory's workspace lock. Readers keep seeing the previous ACTIVE
        generation until activation commits.
        """
        op = "rebuild"
        warnings: list[str] = []
        if not workspace_id:
            return ServiceResult.failure(op, ErrorCode.VALIDATION_ERROR, "workspace_id is required")
        try:
            profile = ProfileService(self._inventory).resolve(workspace_id, profile_id)
        except ProfileNotFoundError as exc:
            return ServiceResult.failure(op, ErrorCode.NOT_FOUND, str(exc), profile_id=profile_id)

        with log_context(workspace_id=workspace_id, op=op), self._inventory.workspace_lock(
            workspace_id
        ):
            stage = "allocate"
            version: int | None = None
            relation_count = 0
            edge_counts: dict[str, int] = {}
            try:
                with self._inventory.transaction() as txn:
                    version = self._store.allocate_generation(txn.conn, workspace_id, txn.now)
                logger.info("Allocated rollup generation %d for %s", version, workspace_id)

                stage = "load"
                with trace_span("load") as span:
                    objs = self._store.list_objects(workspace_id)
                    rels = self._store.list_approved_relations(workspace_id)
                    memberships = self._memberships(workspace_id)
                    relation_count = len(rels)
                    if span:
                        span.annotate("objects", len(objs))
                        span.annotate("relations", relation_count)

                stage = "project"
                with trace_span("project") as span:
                    parents = {o.id: o.parent_id for o in objs}
                    types: dict[str, ObjectType] = {o.id: o.object_type for o in objs}
                    projected = project_relations(
                        rels,
                        parents,
                        types,
                        weights=profile.edge_weights,
                        memberships=memberships,
                        min_membership=self._settings.rollup.min_membership,
                    )
                    if span:
                        span.annotate("edges", sum(len(e) for e in projected.values()))

                stage = "write"
                with trace_span("write"), self._inventory.transaction() as txn:
                    for level in RollupLevel:
                        edge_counts[level.value] = self._store.insert_rollup_edges(
                            txn.conn, workspace_id, version, projected[level], txn.now
                        )

                stage = "activate"
                meta = {
                    "relation_count": relation_count,
                    "edge_counts": edge_counts,
                    "profile_id": profile.profile_id,
                }
                with trace_span("activate"), self._inventory.transaction() as txn:
                    previous = self._store.activate_generation(
                        txn.conn, workspace_id, version, txn.now, meta=meta
                    )
            except Exception as exc:
                logger.exception("Rollup rebuild failed at stage %s", stage)
                if version is not None:
                    self._record_failure(workspace_id, version, stage, exc, warnings)
                return ServiceResult.failure(
                    op,
                    ErrorCode.REBUILD_FAILED,
                    f"Rollup rebuild failed during {stage}: {exc}",
                    warnings=warnings,
                    stage=stage,
                    generation_version=version,
                    relation_count=relation_count,
                    edge_counts=edge_counts,
                )

        logger.info(
            "Activated rollup generation %d for %s (previous %s)", version, workspace_id, previous
        )
        self._dispatch_event(
            "post_rebuild",
            {
                "workspace_id": workspace_id,
                "generation_version": version,
                "previous_version": previous,
                "edge_counts": edge_counts,
            },
            warnings,
            workspace_id=workspace_id,
        )
        return ServiceResult(
            ok=True,
            op=op,
            data=dump_validated(
                RebuildResultData,
                {
                    "workspace_id": workspace_id,
                    "generation_version": version,
                    "previous_version": previous,
                    "relation_count": relation_count,
                    "edge_counts": edge_counts,
                },
            ),
            warnings=warnings,
        )

    def _memberships(self, workspace_id: str) -> dict[str, dict[str, float]]:
        """object id -> {domain id: affinity} from approvals and the latest discovery run."""
        memberships: dict[str, dict[str, float]] = {}
        run = self._store.latest_completed_run(workspace_id)
        if run is not None:
            for row in self._store.run_memberships(run["id"]):
                memberships.setdefault(row["object_id"], {})[row["domain_id"]] = row["affinity"]
        for row in self._store.list_affinities(workspace_id):
            memberships.setdefault(row["object_id"], {})[row["domain_id"]] = row["affinity"]
        return memberships

    def _record_failure(
        self,
        workspace_id: str,
        version: int,
        stage: str,
        exc: Exception,
        warnings: list[str],
    ) -> None:
        try:
            with self._inventory.transaction() as txn:
                self._store.set_generation_meta(
                    txn.conn,
                    workspace_id,
                    version,
                    {"failed_stage": stage, "error": str(exc), "failed_at": txn.now},
                )
        except Exception:
            logger.warning("Could not record failure on generation %d", version, exc_info=True)
            warnings.append(f"Could not record failure on generation {version}")

    @traced
    def generations(self, workspace_id: str) -> ServiceResult:
        """List every generation of *workspace_id*, newest first."""
        rows = self._store.list_generations(workspace_id)
        return ServiceResult(
            ok=True,
            op="generations",
            data=dump_validated(
                GenerationListData,
                {
                    "workspace_id": workspace_id,
                    "active_version": self._store.get_active_generation(workspace_id),
                    "count": len(rows),
                    "items": rows,
                },
            ),
        )

    @traced
    def prune(self, workspace_id: str, *, keep: int | None = None) -> ServiceResult:
        """Delete non-active generations beyond the newest *keep*.

        BUILDING rows left behind by failed rebuilds count like archived
        ones. The ACTIVE generation is never deleted and does not count
        against *keep*.
        """
        op = "prune"
        keep = self._settings.rollup.keep_generations if keep is None else keep
        if keep < 0:
            return ServiceResult.failure(
                op, ErrorCode.VALIDATION_ERROR, "keep must be >= 0", keep=keep
            )

        with self._inventory.workspace_lock(workspace_id):
            rows = self._store.list_generations(workspace_id)
            inactive = [r for r in rows if r["status"] != GenerationStatus.ACTIVE.value]
            doomed = [r["generation_version"] for r in inactive[keep:]]
            with self._inventory.transaction() as txn:
                deleted = self._store.delete_generations(txn.conn, workspace_id, doomed)
        if deleted:
            self._inventory.graph.invalidate()
            logger.info("Pruned %d generations of %s", deleted, workspace_id)

        data: dict[str, Any] = {
            "workspace_id": workspace_id,
            "keep": keep,
            "deleted": deleted,
            "deleted_versions": sorted(doomed),
        }
        return ServiceResult(ok=True, op=op, data=data)
