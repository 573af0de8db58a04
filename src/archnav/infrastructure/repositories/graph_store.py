"""GraphStore: the graph store adapter over the SQLite tables.

Read methods open their own short-lived connection. Write methods take
the caller's :class:`~sqlalchemy.Connection` so services decide the
transaction boundaries (one rebuild stage, one discovery run).
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy import Connection, Select, delete, func, insert, select, update
from sqlalchemy.engine import Engine

from archnav.domain.lifecycle import CandidateStatus, GenerationStatus, RunStatus
from archnav.domain.models import ObjectRecord, RelationRecord
from archnav.domain.rollup import ProjectedEdge
from archnav.domain.types import (
    ObjectType,
    RelationStatus,
    RollupLevel,
    Visibility,
    category_of,
    granularity_of,
)
from archnav.infrastructure.database.schema import (
    discovery_memberships,
    discovery_runs,
    domain_affinities,
    domain_candidates,
    generation_counters,
    generation_pointers,
    inference_profiles,
    objects,
    relations,
    rollup_edges,
    rollup_generations,
)


def _object_from_row(row: Any) -> ObjectRecord:
    return ObjectRecord(
        id=row["id"],
        object_type=row["object_type"],
        name=row["name"],
        display_name=row["display_name"],
        parent_id=row["parent_id"],
        visibility=row["visibility"],
        metadata=row["metadata"] or {},
        path=row["path"],
        depth=row["depth"],
    )


def _relation_from_row(row: Any) -> RelationRecord:
    return RelationRecord(
        id=row["id"],
        relation_type=row["relation_type"],
        subject_id=row["subject_id"],
        object_id=row["object_id"],
        status=row["status"],
        source=row["source"],
        is_derived=bool(row["is_derived"]),
        confidence=row["confidence"],
    )


def _approved_relations(workspace_id: str) -> Select:
    return (
        select(relations)
        .where(
            relations.c.workspace_id == workspace_id,
            relations.c.status == RelationStatus.APPROVED.value,
        )
        .order_by(relations.c.id)
    )


class GraphStore:
    """Encapsulates SQL for objects, relations and everything derived from them."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    # ------------------------------------------------------------------
    # Objects and relations
    # ------------------------------------------------------------------

    def list_objects(
        self,
        workspace_id: str,
        *,
        object_types: Iterable[ObjectType | str] | None = None,
        visible_only: bool = False,
    ) -> list[ObjectRecord]:
        """All objects of a workspace, optionally filtered, ordered by path."""
        stmt = select(objects).where(objects.c.workspace_id == workspace_id)
        if object_types is not None:
            stmt = stmt.where(objects.c.object_type.in_([str(t) for t in object_types]))
        if visible_only:
            stmt = stmt.where(objects.c.visibility == Visibility.VISIBLE.value)
        stmt = stmt.order_by(objects.c.path)

        with self._engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [_object_from_row(r) for r in rows]

    def relation_snapshot(
        self, workspace_id: str
    ) -> tuple[list[ObjectRecord], list[RelationRecord]]:
        """Objects and APPROVED relations of a workspace read as one view.

        Both SELECTs run in a single read transaction, so a snapshot load
        committing in between cannot pair old objects with new relations.
        """
        with self._engine.connect() as conn:
            # pysqlite only opens transactions for writes; pin the WAL snapshot.
            conn.exec_driver_sql("BEGIN")
            object_rows = conn.execute(
                select(objects)
                .where(objects.c.workspace_id == workspace_id)
                .order_by(objects.c.path)
            ).mappings().all()
            relation_rows = conn.execute(_approved_relations(workspace_id)).mappings().all()
            conn.rollback()
        return (
            [_object_from_row(r) for r in object_rows],
            [_relation_from_row(r) for r in relation_rows],
        )

    def get_object(self, workspace_id: str, object_id: str) -> ObjectRecord | None:
        """One object of *workspace_id*, or None if it does not exist there."""
        stmt = select(objects).where(
            objects.c.id == object_id,
            objects.c.workspace_id == workspace_id,
        )
        with self._engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        return _object_from_row(row) if row is not None else None

    def object_paths(self, workspace_id: str) -> dict[str, tuple[ObjectType, str]]:
        """Type and stored path of every object in the workspace."""
        stmt = select(objects.c.id, objects.c.object_type, objects.c.path).where(
            objects.c.workspace_id == workspace_id
        )
        with self._engine.connect() as conn:
            return {
                r.id: (ObjectType(r.object_type), r.path) for r in conn.execute(stmt)
            }

    def list_approved_relations(self, workspace_id: str) -> list[RelationRecord]:
        """Every APPROVED relation of a workspace, ordered by id."""
        with self._engine.connect() as conn:
            rows = conn.execute(_approved_relations(workspace_id)).mappings().all()
        return [_relation_from_row(r) for r in rows]

    def upsert_objects(
        self,
        conn: Connection,
        workspace_id: str,
        records: Sequence[ObjectRecord],
        paths: dict[str, str],
        now: str,
    ) -> int:
        """Insert or replace *records*, parents first. Returns rows written."""
        ordered = sorted(records, key=lambda r: (paths[r.id].count("/"), paths[r.id]))
        existing = set(
            conn.execute(
                select(objects.c.id).where(objects.c.id.in_([r.id for r in ordered]))
            ).scalars()
        )
        for rec in ordered:
            path = paths[rec.id]
            values = {
                "workspace_id": workspace_id,
                "object_type": rec.object_type.value,
                "category": category_of(rec.object_type).value,
                "granularity": granularity_of(rec.object_type).value,
                "name": rec.name,
                "display_name": rec.display_name,
                "parent_id": rec.parent_id,
                "path": path,
                "depth": path.count("/") - 1,
                "visibility": rec.visibility.value,
                "metadata": rec.metadata,
                "modified": now,
            }
            if rec.id in existing:
                conn.execute(update(objects).where(objects.c.id == rec.id).values(**values))
            else:
                conn.execute(insert(objects).values(id=rec.id, created=now, **values))
        return len(ordered)

    def upsert_relations(
        self,
        conn: Connection,
        workspace_id: str,
        records: Sequence[RelationRecord],
        now: str,
    ) -> int:
        """Insert or replace *records*. Returns rows written."""
        existing = set(
            conn.execute(
                select(relations.c.id).where(relations.c.id.in_([r.id for r in records]))
            ).scalars()
        )
        for rec in records:
            values = {
                "workspace_id": workspace_id,
                "relation_type": rec.relation_type.value,
                "subject_id": rec.subject_id,
                "object_id": rec.object_id,
                "status": rec.status.value,
                "source": rec.source.value,
                "is_derived": int(rec.is_derived),
                "confidence": rec.confidence,
                "interaction_kind": rec.interaction_kind.value,
                "direction": rec.direction.value,
                "modified": now,
            }
            if rec.id in existing:
                conn.execute(update(relations).where(relations.c.id == rec.id).values(**values))
            else:
                conn.execute(insert(relations).values(id=rec.id, created=now, **values))
        return len(records)

    def insert_domain_object(
        self,
        conn: Connection,
        workspace_id: str,
        *,
        object_id: str,
        name: str,
        display_name: str,
        metadata: dict[str, Any],
        now: str,
    ) -> None:
        """Create a root COMPOUND domain object."""
        conn.execute(
            insert(objects).values(
                id=object_id,
                workspace_id=workspace_id,
                object_type=ObjectType.DOMAIN.value,
                category=category_of(ObjectType.DOMAIN).value,
                granularity=granularity_of(ObjectType.DOMAIN).value,
                name=name,
                display_name=display_name,
                parent_id=None,
                path=f"/{object_id}",
                depth=0,
                visibility=Visibility.VISIBLE.value,
                metadata=metadata,
                created=now,
                modified=now,
            )
        )

    # ------------------------------------------------------------------
    # Generations
    # ------------------------------------------------------------------

    def get_active_generation(self, workspace_id: str) -> int | None:
        """The generation the pointer row currently designates, if any."""
        stmt = select(generation_pointers.c.active_version).where(
            generation_pointers.c.workspace_id == workspace_id
        )
        with self._engine.connect() as conn:
            return conn.execute(stmt).scalar_one_or_none()

    def get_generation(self, workspace_id: str, version: int) -> dict[str, Any] | None:
        stmt = select(rollup_generations).where(
            rollup_generations.c.workspace_id == workspace_id,
            rollup_generations.c.generation_version == version,
        )
        with self._engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        return dict(row) if row is not None else None

    def list_generations(self, workspace_id: str) -> list[dict[str, Any]]:
        """Generations of a workspace, newest first, with their edge counts."""
        edge_count = (
            select(func.count(rollup_edges.c.id))
            .where(
                rollup_edges.c.workspace_id == rollup_generations.c.workspace_id,
                rollup_edges.c.generation_version == rollup_generations.c.generation_version,
            )
            .scalar_subquery()
        )
        stmt = (
            select(rollup_generations, edge_count.label("edge_count"))
            .where(rollup_generations.c.workspace_id == workspace_id)
            .order_by(rollup_generations.c.generation_version.desc())
        )
        with self._engine.connect() as conn:
            return [dict(r) for r in conn.execute(stmt).mappings()]

    def allocate_generation(self, conn: Connection, workspace_id: str, now: str) -> int:
        """Insert the next generation as BUILDING and return its version.

        Versions come from the per-workspace counter of the highest version
        ever allocated, so neither a failed BUILDING generation nor a
        pruned one is ever reissued.
        """
        counter = conn.execute(
            select(generation_counters.c.last_version).where(
                generation_counters.c.workspace_id == workspace_id
            )
        ).scalar_one_or_none()
        present = conn.execute(
            select(func.max(rollup_generations.c.generation_version)).where(
                rollup_generations.c.workspace_id == workspace_id
            )
        ).scalar_one()
        version = max(counter or 0, present or 0) + 1
        if counter is None:
            conn.execute(
                insert(generation_counters).values(
                    workspace_id=workspace_id, last_version=version, modified=now
                )
            )
        else:
            conn.execute(
                update(generation_counters)
                .where(generation_counters.c.workspace_id == workspace_id)
                .values(last_version=version, modified=now)
            )
        conn.execute(
            insert(rollup_generations).values(
                workspace_id=workspace_id,
                generation_version=version,
                status=GenerationStatus.BUILDING.value,
                meta={},
                created=now,
            )
        )
        return version

    def insert_rollup_edges(
        self,
        conn: Connection,
        workspace_id: str,
        version: int,
        edges: Sequence[ProjectedEdge],
        now: str,
    ) -> int:
        if not edges:
            return 0
        conn.execute(
            insert(rollup_edges),
            [
                {
                    "workspace_id": workspace_id,
                    "generation_version": version,
                    "level": e.level.value,
                    "subject_id": e.subject_id,
                    "object_id": e.object_id,
                    "edge_weight": e.edge_weight,
                    "relation_type": e.relation_type,
                    "relation_count": e.relation_count,
                    "confidence": e.confidence,
                    "created": now,
                }
                for e in edges
            ],
        )
        return len(edges)

    def activate_generation(
        self,
        conn: Connection,
        workspace_id: str,
        version: int,
        now: str,
        *,
        meta: dict[str, Any] | None = None,
    ) -> int | None:
        """Flip *version* to ACTIVE, archive the previous one, move the pointer.

        Must run inside one transaction: it is the only state change
        readers can observe. Returns the previously active version.
        """
        previous = conn.execute(
            select(generation_pointers.c.active_version).where(
                generation_pointers.c.workspace_id == workspace_id
            )
        ).scalar_one_or_none()

        conn.execute(
            update(rollup_generations)
            .where(
                rollup_generations.c.workspace_id == workspace_id,
                rollup_generations.c.status == GenerationStatus.ACTIVE.value,
            )
            .values(status=GenerationStatus.ARCHIVED.value, archived=now)
        )
        values: dict[str, Any] = {"status": GenerationStatus.ACTIVE.value, "activated": now}
        if meta is not None:
            values["meta"] = meta
        conn.execute(
            update(rollup_generations)
            .where(
                rollup_generations.c.workspace_id == workspace_id,
                rollup_generations.c.generation_version == version,
            )
            .values(**values)
        )
        if previous is None:
            conn.execute(
                insert(generation_pointers).values(
                    workspace_id=workspace_id, active_version=version, modified=now
                )
            )
        else:
            conn.execute(
                update(generation_pointers)
                .where(generation_pointers.c.workspace_id == workspace_id)
                .values(active_version=version, modified=now)
            )
        return previous

    def set_generation_meta(
        self, conn: Connection, workspace_id: str, version: int, meta: dict[str, Any]
    ) -> None:
        conn.execute(
            update(rollup_generations)
            .where(
                rollup_generations.c.workspace_id == workspace_id,
                rollup_generations.c.generation_version == version,
            )
            .values(meta=meta)
        )

    def delete_generations(self, conn: Connection, workspace_id: str, versions: list[int]) -> int:
        """Remove generations and their edges. Never pass the ACTIVE one."""
        if not versions:
            return 0
        conn.execute(
            delete(rollup_edges).where(
                rollup_edges.c.workspace_id == workspace_id,
                rollup_edges.c.generation_version.in_(versions),
            )
        )
        result = conn.execute(
            delete(rollup_generations).where(
                rollup_generations.c.workspace_id == workspace_id,
                rollup_generations.c.generation_version.in_(versions),
                rollup_generations.c.status != GenerationStatus.ACTIVE.value,
            )
        )
        return result.rowcount

    def list_rollup_edges(
        self,
        workspace_id: str,
        version: int,
        level: RollupLevel | str,
    ) -> list[dict[str, Any]]:
        """Rollup edges of one generation and level, ordered by pair."""
        stmt = (
            select(rollup_edges)
            .where(
                rollup_edges.c.workspace_id == workspace_id,
                rollup_edges.c.generation_version == version,
                rollup_edges.c.level == str(level),
            )
            .order_by(rollup_edges.c.subject_id, rollup_edges.c.object_id)
        )
        with self._engine.connect() as conn:
            return [dict(r) for r in conn.execute(stmt).mappings()]

    # ------------------------------------------------------------------
    # Domain memberships
    # ------------------------------------------------------------------

    def list_affinities(
        self, workspace_id: str, *, domain_id: str | None = None
    ) -> list[dict[str, Any]]:
        """Approved object-to-domain affinities."""
        stmt = select(domain_affinities).where(domain_affinities.c.workspace_id == workspace_id)
        if domain_id is not None:
            stmt = stmt.where(domain_affinities.c.domain_id == domain_id)
        stmt = stmt.order_by(domain_affinities.c.object_id, domain_affinities.c.domain_id)
        with self._engine.connect() as conn:
            return [dict(r) for r in conn.execute(stmt).mappings()]

    def upsert_affinities(
        self,
        conn: Connection,
        workspace_id: str,
        object_id: str,
        scores: dict[str, float],
        *,
        source: str,
        now: str,
    ) -> None:
        """Replace the object's affinities toward the domains in *scores*."""
        conn.execute(
            delete(domain_affinities).where(
                domain_affinities.c.object_id == object_id,
                domain_affinities.c.domain_id.in_(list(scores)),
            )
        )
        for domain_id, affinity in scores.items():
            conn.execute(
                insert(domain_affinities).values(
                    workspace_id=workspace_id,
                    object_id=object_id,
                    domain_id=domain_id,
                    affinity=affinity,
                    source=source,
                    created=now,
                )
            )

    def domain_memberships(self, workspace_id: str, domain_id: str) -> list[dict[str, Any]]:
        """Members of a domain from approved affinities and discovery runs."""
        approved = self.list_affinities(workspace_id, domain_id=domain_id)
        stmt = (
            select(discovery_memberships)
            .join(discovery_runs, discovery_runs.c.id == discovery_memberships.c.run_id)
            .where(
                discovery_runs.c.workspace_id == workspace_id,
                discovery_memberships.c.domain_id == domain_id,
            )
            .order_by(discovery_memberships.c.object_id)
        )
        with self._engine.connect() as conn:
            discovered = [dict(r) for r in conn.execute(stmt).mappings()]

        members: dict[str, dict[str, Any]] = {}
        for row in discovered:
            members[row["object_id"]] = {
                "object_id": row["object_id"],
                "affinity": row["affinity"],
                "source": "DISCOVERY",
            }
        for row in approved:
            members[row["object_id"]] = {
                "object_id": row["object_id"],
                "affinity": row["affinity"],
                "source": row["source"],
            }
        return [members[k] for k in sorted(members)]

    # ------------------------------------------------------------------
    # Inference profiles and candidates
    # ------------------------------------------------------------------

    def get_profile(self, workspace_id: str, profile_id: str) -> dict[str, Any] | None:
        stmt = select(inference_profiles).where(
            inference_profiles.c.workspace_id == workspace_id,
            (inference_profiles.c.id == profile_id) | (inference_profiles.c.name == profile_id),
        )
        with self._engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        return dict(row) if row is not None else None

    def get_default_profile(self, workspace_id: str) -> dict[str, Any] | None:
        stmt = select(inference_profiles).where(
            inference_profiles.c.workspace_id == workspace_id,
            inference_profiles.c.is_default == 1,
        )
        with self._engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        return dict(row) if row is not None else None

    def list_profiles(self, workspace_id: str) -> list[dict[str, Any]]:
        stmt = (
            select(inference_profiles)
            .where(inference_profiles.c.workspace_id == workspace_id)
            .order_by(inference_profiles.c.name)
        )
        with self._engine.connect() as conn:
            return [dict(r) for r in conn.execute(stmt).mappings()]

    def upsert_profile(
        self,
        conn: Connection,
        workspace_id: str,
        name: str,
        values: dict[str, Any],
        *,
        profile_id: str,
        now: str,
    ) -> str:
        """Create or update the profile called *name*; returns its id."""
        if values.get("is_default"):
            conn.execute(
                update(inference_profiles)
                .where(inference_profiles.c.workspace_id == workspace_id)
                .values(is_default=0)
            )
        existing = conn.execute(
            select(inference_profiles.c.id).where(
                inference_profiles.c.workspace_id == workspace_id,
                inference_profiles.c.name == name,
            )
        ).scalar_one_or_none()
        if existing is not None:
            conn.execute(
                update(inference_profiles)
                .where(inference_profiles.c.id == existing)
                .values(modified=now, **values)
            )
            return str(existing)
        conn.execute(
            insert(inference_profiles).values(
                id=profile_id,
                workspace_id=workspace_id,
                name=name,
                created=now,
                modified=now,
                **values,
            )
        )
        return profile_id

    def replace_pending_candidate(
        self, conn: Connection, candidate: dict[str, Any]
    ) -> int:
        """Insert *candidate*, dropping PENDING ones for the same object first.

        Returns the number of PENDING candidates replaced.
        """
        result = conn.execute(
            delete(domain_candidates).where(
                domain_candidates.c.workspace_id == candidate["workspace_id"],
                domain_candidates.c.object_id == candidate["object_id"],
                domain_candidates.c.status == CandidateStatus.PENDING.value,
            )
        )
        conn.execute(insert(domain_candidates).values(**candidate))
        return result.rowcount

    def list_candidates(
        self,
        workspace_id: str,
        *,
        status: str | None = None,
        object_id: str | None = None,
    ) -> list[dict[str, Any]]:
        stmt = select(domain_candidates).where(domain_candidates.c.workspace_id == workspace_id)
        if status is not None:
            stmt = stmt.where(domain_candidates.c.status == status)
        if object_id is not None:
            stmt = stmt.where(domain_candidates.c.object_id == object_id)
        stmt = stmt.order_by(domain_candidates.c.object_id, domain_candidates.c.created)
        with self._engine.connect() as conn:
            return [dict(r) for r in conn.execute(stmt).mappings()]

    def get_candidate(self, candidate_id: str) -> dict[str, Any] | None:
        stmt = select(domain_candidates).where(domain_candidates.c.id == candidate_id)
        with self._engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        return dict(row) if row is not None else None

    def set_candidate_status(
        self, conn: Connection, candidate_id: str, status: str, now: str
    ) -> None:
        conn.execute(
            update(domain_candidates)
            .where(domain_candidates.c.id == candidate_id)
            .values(status=status, reviewed=now)
        )

    # ------------------------------------------------------------------
    # Discovery runs
    # ------------------------------------------------------------------

    def insert_run(self, conn: Connection, run: dict[str, Any]) -> None:
        conn.execute(insert(discovery_runs).values(**run))

    def insert_memberships(self, conn: Connection, rows: list[dict[str, Any]]) -> None:
        if rows:
            conn.execute(insert(discovery_memberships), rows)

    def get_run(self, run_id: str) -> dict[str, Any] | None:
        stmt = select(discovery_runs).where(discovery_runs.c.id == run_id)
        with self._engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        return dict(row) if row is not None else None

    def list_runs(self, workspace_id: str) -> list[dict[str, Any]]:
        stmt = (
            select(discovery_runs)
            .where(discovery_runs.c.workspace_id == workspace_id)
            .order_by(discovery_runs.c.started.desc())
        )
        with self._engine.connect() as conn:
            return [dict(r) for r in conn.execute(stmt).mappings()]

    def latest_completed_run(self, workspace_id: str) -> dict[str, Any] | None:
        stmt = (
            select(discovery_runs)
            .where(
                discovery_runs.c.workspace_id == workspace_id,
                discovery_runs.c.status == RunStatus.COMPLETED.value,
            )
            .order_by(discovery_runs.c.started.desc(), discovery_runs.c.id.desc())
            .limit(1)
        )
        with self._engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        return dict(row) if row is not None else None

    def run_memberships(self, run_id: str) -> list[dict[str, Any]]:
        stmt = (
            select(discovery_memberships)
            .where(discovery_memberships.c.run_id == run_id)
            .order_by(discovery_memberships.c.cluster_id, discovery_memberships.c.object_id)
        )
        with self._engine.connect() as conn:
            return [dict(r) for r in conn.execute(stmt).mappings()]
