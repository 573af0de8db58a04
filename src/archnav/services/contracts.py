"""Typed payload contracts for service boundaries.

These models validate operation payload shapes before they leave the
service layer, so a renamed key breaks tests instead of callers.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def dump_validated[T: BaseModel](model_cls: type[T], data: dict[str, Any]) -> dict[str, Any]:
    """Validate *data* against *model_cls* and return a normalized payload dict."""
    model = model_cls.model_validate(data)
    return model.model_dump(mode="json")


# ------------------------------------------------------------------
# Rollup
# ------------------------------------------------------------------


class RebuildResultData(BaseModel):
    """Payload contract for ``RollupService.rebuild``."""

    workspace_id: str
    generation_version: int
    previous_version: int | None = None
    relation_count: int
    edge_counts: dict[str, int]


class GenerationItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    generation_version: int
    status: str
    created: str
    activated: str | None = None
    archived: str | None = None
    edge_count: int = 0
    meta: dict[str, Any] | None = None


class GenerationListData(BaseModel):
    """Payload contract for ``RollupService.generations``."""

    workspace_id: str
    active_version: int | None
    count: int
    items: list[GenerationItem]


# ------------------------------------------------------------------
# Domain inference
# ------------------------------------------------------------------


class CandidateItem(BaseModel):
    """One Track A domain candidate."""

    model_config = ConfigDict(extra="ignore")

    id: str
    object_id: str
    affinity_map: dict[str, float]
    purity: float = Field(ge=0.0, le=1.0)
    primary_domain_id: str
    secondary_domain_ids: list[str]
    signals: dict[str, dict[str, float]]
    status: str


class SeedInferenceData(BaseModel):
    """Payload contract for ``SeedInferenceService.infer_seeded``."""

    workspace_id: str
    run_id: str | None
    profile_id: str | None
    seed_count: int
    scanned_count: int
    candidate_count: int
    replaced_count: int
    items: list[CandidateItem]


class ClusterItem(BaseModel):
    cluster_id: str
    domain_id: str
    name: str
    size: int
    members: list[str]


class DiscoveryResultData(BaseModel):
    """Payload contract for ``DiscoveryService.discover``."""

    workspace_id: str
    run_id: str
    generation_version: int
    cluster_count: int
    graph_stats: dict[str, int]
    clusters: list[ClusterItem]


# ------------------------------------------------------------------
# Query
# ------------------------------------------------------------------


class QueryNode(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    object_type: str | None = None
    name: str | None = None
    depth: int | None = None


class QueryEdge(BaseModel):
    model_config = ConfigDict(extra="allow")

    subject_id: str
    object_id: str
    relation_type: str | None = None
    weight: float
    confidence: float | None = None


class QueryPath(BaseModel):
    nodes: list[str]
    hops: int
    score: float
    avg_confidence: float
    min_edge_weight: float
    key: str


class QueryResultData(BaseModel):
    """Payload contract for ``QueryService.execute``."""

    workspace_id: str
    query_type: str
    level: str
    nodes: list[QueryNode]
    edges: list[QueryEdge]
    paths: list[QueryPath] | None = None
    truncated: bool
    truncation_reason: str | None = None
    summary: dict[str, Any] = Field(default_factory=dict)
