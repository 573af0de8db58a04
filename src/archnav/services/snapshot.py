"""SnapshotService: load the read-only inventory snapshot into the store.

Scanners and manual registration live outside archnav; they hand over a
JSON document ``{"objects": [...], "relations": [...]}``. Loading
validates the whole document (model fields, hierarchy invariants,
relation endpoints) before writing anything, then upserts it in one
transaction.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from archnav.config.logging import log_context
from archnav.domain.hierarchy import HierarchyError, materialize_paths
from archnav.domain.models import ObjectRecord, Snapshot
from archnav.services._helpers import pydantic_errors
from archnav.services.base import BaseService
from archnav.services.result import ErrorCode, ServiceResult
from archnav.services.telemetry import trace_span, traced

logger = logging.getLogger(__name__)


class SnapshotService(BaseService):
    """Validates and ingests inventory snapshots."""

    @traced
    def load(self, workspace_id: str, source: Path | Mapping[str, Any]) -> ServiceResult:
        """Load *source* (a JSON file path or an already-parsed document)."""
        op = "load"
        if not workspace_id:
            return ServiceResult.failure(op, ErrorCode.VALIDATION_ERROR, "workspace_id is required")

        if isinstance(source, Path):
            try:
                document = json.loads(source.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                return ServiceResult.failure(
                    op,
                    ErrorCode.LOAD_FAILED,
                    f"Cannot read snapshot {source}: {exc}",
                    path=str(source),
                )
        else:
            document = dict(source)

        try:
            snapshot = Snapshot.model_validate(document)
        except ValidationError as exc:
            return ServiceResult.failure(
                op,
                ErrorCode.VALIDATION_ERROR,
                "Snapshot does not match the expected shape",
                errors=pydantic_errors(exc.errors()),
            )

        with log_context(workspace_id=workspace_id, op=op):
            existing = {o.id: o for o in self._store.list_objects(workspace_id)}
            incoming = {o.id: o for o in snapshot.objects}
            merged: dict[str, ObjectRecord] = {**existing, **incoming}

            try:
                with trace_span("hierarchy"):
                    paths = materialize_paths(
                        {oid: o.parent_id for oid, o in merged.items()},
                        {oid: o.object_type for oid, o in merged.items()},
                    )
            except HierarchyError as exc:
                return ServiceResult.failure(
                    op,
                    ErrorCode.VALIDATION_ERROR,
                    f"Invalid object hierarchy: {exc}",
                    errors=[{"field": f"objects.{exc.object_id}", "reason": exc.reason}],
                )

            dangling = [
                {"field": f"relations.{r.id}", "reason": f"unknown object {endpoint!r}"}
                for r in snapshot.relations
                for endpoint in (r.subject_id, r.object_id)
                if endpoint not in merged
            ]
            if dangling:
                return ServiceResult.failure(
                    op,
                    ErrorCode.VALIDATION_ERROR,
                    "Relations reference unknown objects",
                    errors=dangling,
                )

            # Re-parenting moves whole subtrees; rewrite every stale path.
            moved = [
                o
                for oid, o in existing.items()
                if oid not in incoming and o.path != paths[oid]
            ]
            to_write = [*incoming.values(), *moved]

            try:
                with self._inventory.transaction() as txn:
                    object_count = self._store.upsert_objects(
                        txn.conn, workspace_id, to_write, paths, txn.now
                    )
                    relation_count = self._store.upsert_relations(
                        txn.conn, workspace_id, snapshot.relations, txn.now
                    )
            except Exception as exc:
                logger.exception("Snapshot load failed for %s", workspace_id)
                return ServiceResult.failure(
                    op, ErrorCode.LOAD_FAILED, f"Snapshot load failed: {exc}"
                )

        logger.info(
            "Loaded %d objects and %d relations into %s",
            len(incoming),
            relation_count,
            workspace_id,
        )
        # Rollup graphs carry object attributes such as visibility.
        self._inventory.graph.invalidate()
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "workspace_id": workspace_id,
                "object_count": len(incoming),
                "relation_count": relation_count,
                "repathed_count": object_count - len(incoming),
            },
        )
