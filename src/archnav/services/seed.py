"""SeedInferenceService: Track A, affinity toward human-defined domains.

Every service object is scored against every seed domain from three
signals (name overlap, shared databases, shared topics/queues). The
nonzero scores are normalized into an affinity distribution and stored
as one PENDING candidate per service, which a reviewer then approves or
rejects.

Re-running replaces the PENDING candidate of each object; reviewed
candidates are kept as history.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from archnav.config.logging import log_context
from archnav.domain.affinity import normalize_affinity
from archnav.domain.hierarchy import resolve_ancestor
from archnav.domain.ids import generate_id
from archnav.domain.lifecycle import CANDIDATE_TRANSITIONS, CandidateStatus, is_valid_transition
from archnav.domain.models import ObjectRecord, RelationRecord
from archnav.domain.rollup import qualifying_relations
from archnav.domain.signals import (
    code_signal,
    combine_signals,
    domain_tokens,
    name_tokens,
    overlap_signal,
)
from archnav.domain.types import AffinitySource, DomainKind, ObjectType, RelationType
from archnav.services.base import BaseService
from archnav.services.contracts import CandidateItem, SeedInferenceData, dump_validated
from archnav.services.profiles import ProfileNotFoundError, ProfileService, ResolvedProfile
from archnav.services.result import ErrorCode, ServiceResult
from archnav.services.telemetry import trace_span, traced

logger = logging.getLogger(__name__)

_SERVICE = frozenset({ObjectType.SERVICE})
_STORAGE = frozenset({ObjectType.DATABASE})
_CHANNELS = frozenset({ObjectType.TOPIC, ObjectType.QUEUE})

_STORAGE_RELATIONS = frozenset({RelationType.READ, RelationType.WRITE, RelationType.DEPEND_ON})
_CHANNEL_RELATIONS = frozenset({RelationType.PRODUCE, RelationType.CONSUME})


def is_seed_domain(obj: ObjectRecord) -> bool:
    """True for domain objects authored by people (not produced by discovery)."""
    if obj.object_type is not ObjectType.DOMAIN:
        return False
    return obj.metadata.get("kind") != DomainKind.DISCOVERED.value


def resource_usage(
    relations: Iterable[RelationRecord],
    parents: Mapping[str, str | None],
    types: Mapping[str, ObjectType],
) -> tuple[dict[str, set[str]], dict[str, set[str]]]:
    """Databases and topics/queues touched by each service.

    Returns ``(storage, channels)``, both keyed by service id.
    """
    storage: dict[str, set[str]] = {}
    channels: dict[str, set[str]] = {}
    for rel in qualifying_relations(relations):
        service = resolve_ancestor(rel.subject_id, parents, types, _SERVICE)
        if service is None:
            continue
        if rel.relation_type in _STORAGE_RELATIONS:
            db = resolve_ancestor(rel.object_id, parents, types, _STORAGE)
            if db is not None:
                storage.setdefault(service, set()).add(db)
        if rel.relation_type in _CHANNEL_RELATIONS and types.get(rel.object_id) in _CHANNELS:
            channels.setdefault(service, set()).add(rel.object_id)
    return storage, channels


def _candidate_item(row: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": row["id"],
        "object_id": row["object_id"],
        "affinity_map": row["affinity_map"],
        "purity": row["purity"],
        "primary_domain_id": row["primary_domain_id"],
        "secondary_domain_ids": row["secondary_domain_ids"],
        "signals": row["signals"],
        "status": row["status"],
    }


class SeedInferenceService(BaseService):
    """Track A domain inference and candidate review."""

    @traced
    def infer_seeded(
        self,
        workspace_id: str,
        profile_id: str | None = None,
    ) -> ServiceResult:
        """Score every service against the seed domains of *workspace_id*.

        No-op (``candidate_count == 0``) when the workspace has no seed.
        """
        op = "infer_seeded"
        warnings: list[str] = []
        try:
            profile = ProfileService(self._inventory).resolve(workspace_id, profile_id)
        except ProfileNotFoundError as exc:
            return ServiceResult.failure(op, ErrorCode.NOT_FOUND, str(exc), profile_id=profile_id)

        with log_context(workspace_id=workspace_id, op=op):
            objs = self._store.list_objects(workspace_id)
            seeds = [o for o in objs if is_seed_domain(o)]
            services = [o for o in objs if o.object_type is ObjectType.SERVICE]
            empty = {
                "workspace_id": workspace_id,
                "run_id": None,
                "profile_id": profile.profile_id,
                "seed_count": len(seeds),
                "scanned_count": 0,
                "candidate_count": 0,
                "replaced_count": 0,
                "items": [],
            }
            if not seeds:
                warnings.append("No seed domains in workspace; nothing to infer")
                return ServiceResult(
                    ok=True,
                    op=op,
                    data=dump_validated(SeedInferenceData, empty),
                    warnings=warnings,
                )

            with trace_span("signals") as span:
                parents = {o.id: o.parent_id for o in objs}
                types = {o.id: o.object_type for o in objs}
                storage, channels = resource_usage(
                    self._store.list_approved_relations(workspace_id), parents, types
                )
                members = {
                    seed.id: {
                        m["object_id"]
                        for m in self._store.domain_memberships(workspace_id, seed.id)
                    }
                    for seed in seeds
                }
                tokens = {
                    seed.id: domain_tokens(seed.name, seed.metadata)
                    | name_tokens(seed.display_name or "")
                    for seed in seeds
                }
                scored = [
                    (svc, self._score(svc, seeds, tokens, members, storage, channels, profile))
                    for svc in services
                ]
                if span:
                    span.annotate("services", len(services))
                    span.annotate("seeds", len(seeds))

            run_id = generate_id("run")
            rows: list[dict[str, Any]] = []
            replaced = 0
            try:
                with trace_span("persist"), self._inventory.transaction() as txn:
                    for svc, (raw, signals) in scored:
                        if not any(v > 0 for v in raw.values()):
                            continue
                        dist = normalize_affinity(raw)
                        row = {
                            "id": generate_id("candidate"),
                            "workspace_id": workspace_id,
                            "object_id": svc.id,
                            "run_id": run_id,
                            "profile_id": profile.profile_id,
                            "affinity_map": dict(sorted(dist.scores.items())),
                            "purity": dist.purity,
                            "primary_domain_id": dist.primary,
                            "secondary_domain_ids": dist.secondary(profile.secondary_threshold),
                            "signals": {d: signals[d] for d in sorted(dist.scores)},
                            "status": CandidateStatus.PENDING.value,
                            "created": txn.now,
                        }
                        replaced += self._store.replace_pending_candidate(txn.conn, row)
                        rows.append(row)
            except Exception as exc:
                logger.exception("Seed inference failed for %s", workspace_id)
                return ServiceResult.failure(
                    op,
                    ErrorCode.INFERENCE_FAILED,
                    f"Seed inference failed: {exc}",
                    run_id=run_id,
                    scanned_count=len(services),
                )

        logger.info(
            "Seed inference %s: %d candidates from %d services", run_id, len(rows), len(services)
        )
        self._dispatch_event(
            "post_seed_inference",
            {"workspace_id": workspace_id, "run_id": run_id, "candidate_count": len(rows)},
            warnings,
            workspace_id=workspace_id,
        )
        data = {
            **empty,
            "run_id": run_id,
            "scanned_count": len(services),
            "candidate_count": len(rows),
            "replaced_count": replaced,
            "items": [_candidate_item(r) for r in rows],
        }
        return ServiceResult(
            ok=True,
            op=op,
            data=dump_validated(SeedInferenceData, data),
            warnings=warnings,
        )

    @staticmethod
    def _score(
        svc: ObjectRecord,
        seeds: list[ObjectRecord],
        tokens: Mapping[str, set[str]],
        members: Mapping[str, set[str]],
        storage: Mapping[str, set[str]],
        channels: Mapping[str, set[str]],
        profile: ResolvedProfile,
    ) -> tuple[dict[str, float], dict[str, dict[str, float]]]:
        raw: dict[str, float] = {}
        signals: dict[str, dict[str, float]] = {}
        own_db = storage.get(svc.id, set())
        own_msg = channels.get(svc.id, set())
        for seed in seeds:
            # The service's own footprint must not vouch for itself.
            peers = members[seed.id] - {svc.id}
            domain_db: set[str] = set().union(*(storage.get(p, set()) for p in peers))
            domain_msg: set[str] = set().union(*(channels.get(p, set()) for p in peers))
            code = code_signal(svc.name, tokens[seed.id], profile.heuristic_domain_cap)
            db = overlap_signal(own_db, domain_db)
            msg = overlap_signal(own_msg, domain_msg)
            raw[seed.id] = combine_signals(
                code, db, msg, w_code=profile.w_code, w_db=profile.w_db, w_msg=profile.w_msg
            )
            signals[seed.id] = {"code": code, "db": db, "msg": msg, "raw": raw[seed.id]}
        return raw, signals

    @traced
    def candidates(
        self,
        workspace_id: str,
        *,
        status: CandidateStatus | str | None = None,
        object_id: str | None = None,
    ) -> ServiceResult:
        """List candidates, optionally by status or object."""
        rows = self._store.list_candidates(
            workspace_id,
            status=str(status) if status is not None else None,
            object_id=object_id,
        )
        items = [
            CandidateItem.model_validate(_candidate_item(r)).model_dump(mode="json") for r in rows
        ]
        return ServiceResult(
            ok=True,
            op="candidates",
            data={"workspace_id": workspace_id, "count": len(items), "items": items},
        )

    @traced
    def review_candidate(self, candidate_id: str, *, approve: bool) -> ServiceResult:
        """Approve or reject a PENDING candidate.

        Approval turns the primary and secondary domains into
        APPROVED_INFERENCE affinities, which domain summaries and the
        domain-to-domain rollup then pick up.
        """
        op = "review_candidate"
        warnings: list[str] = []
        row = self._store.get_candidate(candidate_id)
        if row is None:
            return ServiceResult.failure(
                op, ErrorCode.NOT_FOUND, f"No candidate {candidate_id!r}", candidate_id=candidate_id
            )
        target = CandidateStatus.APPROVED if approve else CandidateStatus.REJECTED
        if not is_valid_transition(row["status"], target.value, CANDIDATE_TRANSITIONS):
            return ServiceResult.failure(
                op,
                ErrorCode.INVALID_TRANSITION,
                f"Candidate {candidate_id} is {row['status']}, cannot become {target}",
                candidate_id=candidate_id,
                current=row["status"],
                target=target.value,
            )

        workspace_id = row["workspace_id"]
        affinities: dict[str, float] = {}
        if approve:
            keep = [row["primary_domain_id"], *row["secondary_domain_ids"]]
            affinities = {d: row["affinity_map"][d] for d in keep}
        with self._inventory.transaction() as txn:
            self._store.set_candidate_status(txn.conn, candidate_id, target.value, txn.now)
            if affinities:
                self._store.upsert_affinities(
                    txn.conn,
                    workspace_id,
                    row["object_id"],
                    affinities,
                    source=AffinitySource.APPROVED_INFERENCE.value,
                    now=txn.now,
                )

        self._dispatch_event(
            "post_candidate_review",
            {
                "workspace_id": workspace_id,
                "candidate_id": candidate_id,
                "status": target.value,
                "affinities": affinities,
            },
            warnings,
            workspace_id=workspace_id,
        )
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "candidate_id": candidate_id,
                "object_id": row["object_id"],
                "status": target.value,
                "affinities": affinities,
            },
            warnings=warnings,
        )
