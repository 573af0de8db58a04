"""ProfileService: per-workspace inference profiles.

A profile overrides any subset of the tunables for one workspace.
Resolution order for every tunable: explicit call argument, then the
requested (or default) profile, then ``archnav.toml`` / built-in defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from archnav.domain.ids import generate_id
from archnav.domain.scoring import DEFAULT_EDGE_WEIGHTS
from archnav.services._helpers import pydantic_errors
from archnav.services.base import BaseService
from archnav.services.result import ErrorCode, ServiceResult
from archnav.services.telemetry import traced

_PROFILE_FIELDS = (
    "w_code",
    "w_db",
    "w_msg",
    "heuristic_domain_cap",
    "secondary_threshold",
    "edge_weights",
    "min_cluster_size",
    "resolution",
)


class ProfileValues(BaseModel):
    """Overrides a profile may carry; None means "inherit"."""

    model_config = {"frozen": True, "extra": "forbid"}

    w_code: float | None = Field(default=None, ge=0.0)
    w_db: float | None = Field(default=None, ge=0.0)
    w_msg: float | None = Field(default=None, ge=0.0)
    heuristic_domain_cap: float | None = Field(default=None, ge=0.0, le=1.0)
    secondary_threshold: float | None = Field(default=None, ge=0.0, le=1.0)
    edge_weights: dict[str, float] | None = None
    min_cluster_size: int | None = Field(default=None, ge=1)
    resolution: float | None = Field(default=None, gt=0.0)

    @field_validator("edge_weights")
    @classmethod
    def _known_relation_types(cls, v: dict[str, float] | None) -> dict[str, float] | None:
        if v is None:
            return v
        unknown = set(v) - set(DEFAULT_EDGE_WEIGHTS)
        if unknown:
            msg = f"unknown relation types: {sorted(unknown)}"
            raise ValueError(msg)
        if any(w < 0 for w in v.values()):
            msg = "edge weights must be non-negative"
            raise ValueError(msg)
        return v


@dataclass(frozen=True)
class ResolvedProfile:
    """Effective tunables for one workspace after applying overrides."""

    profile_id: str | None
    w_code: float
    w_db: float
    w_msg: float
    heuristic_domain_cap: float
    secondary_threshold: float
    min_cluster_size: int
    resolution: float
    edge_weights: dict[str, float] = field(default_factory=dict)


class ProfileNotFoundError(LookupError):
    """Raised when an explicitly requested profile does not exist."""


class ProfileService(BaseService):
    """Create, list and resolve inference profiles."""

    def resolve(self, workspace_id: str, profile_id: str | None = None) -> ResolvedProfile:
        """Effective tunables for *workspace_id*.

        Raises:
            ProfileNotFoundError: *profile_id* was given but does not exist.
        """
        if profile_id is not None:
            row = self._store.get_profile(workspace_id, profile_id)
            if row is None:
                msg = f"No inference profile {profile_id!r} in workspace {workspace_id!r}"
                raise ProfileNotFoundError(msg)
        else:
            row = self._store.get_default_profile(workspace_id)
        row = row or {}

        settings = self._settings
        inference = settings.inference
        discovery = settings.discovery

        def pick(name: str, fallback: Any) -> Any:
            value = row.get(name)
            return fallback if value is None else value

        return ResolvedProfile(
            profile_id=row.get("id"),
            w_code=pick("w_code", inference.w_code),
            w_db=pick("w_db", inference.w_db),
            w_msg=pick("w_msg", inference.w_msg),
            heuristic_domain_cap=pick("heuristic_domain_cap", inference.heuristic_domain_cap),
            secondary_threshold=pick("secondary_threshold", inference.secondary_threshold),
            min_cluster_size=pick("min_cluster_size", discovery.min_cluster_size),
            resolution=pick("resolution", discovery.resolution),
            edge_weights={**settings.rollup.edge_weights, **(row.get("edge_weights") or {})},
        )

    @traced
    def set_profile(
        self,
        workspace_id: str,
        name: str,
        *,
        default: bool = False,
        **values: Any,
    ) -> ServiceResult:
        """Create or update the profile *name* with the given overrides."""
        op = "set_profile"
        try:
            parsed = ProfileValues.model_validate(values)
        except ValidationError as exc:
            return ServiceResult.failure(
                op,
                ErrorCode.VALIDATION_ERROR,
                "Invalid profile values",
                errors=pydantic_errors(exc.errors()),
            )

        row_values = {k: v for k, v in parsed.model_dump().items() if v is not None}
        if default:
            row_values["is_default"] = 1
        with self._inventory.transaction() as txn:
            profile_id = self._store.upsert_profile(
                txn.conn,
                workspace_id,
                name,
                row_values,
                profile_id=generate_id("profile"),
                now=txn.now,
            )
        stored = self._store.get_profile(workspace_id, profile_id) or {}
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "workspace_id": workspace_id,
                "id": profile_id,
                "name": name,
                "is_default": bool(stored.get("is_default")),
                "overrides": {k: stored[k] for k in _PROFILE_FIELDS if stored.get(k) is not None},
            },
        )

    @traced
    def list_profiles(self, workspace_id: str) -> ServiceResult:
        rows = self._store.list_profiles(workspace_id)
        items = [
            {
                "id": r["id"],
                "name": r["name"],
                "is_default": bool(r["is_default"]),
                "overrides": {k: r[k] for k in _PROFILE_FIELDS if r.get(k) is not None},
            }
            for r in rows
        ]
        return ServiceResult(
            ok=True,
            op="list_profiles",
            data={"workspace_id": workspace_id, "count": len(items), "items": items},
        )
