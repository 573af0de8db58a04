"""Query request models.

A request is parsed into these frozen models first; required-parameter
checks per query type run as a second, explicit validation step so the
engine can reject a request before touching any graph.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from archnav.domain.types import (
    Direction,
    ObjectType,
    QueryType,
    RelationType,
    ScopeLevel,
    VisibilityFilter,
)

# Parameters each query type cannot run without.
REQUIRED_PARAMS: dict[QueryType, tuple[str, ...]] = {
    QueryType.IMPACT_ANALYSIS: ("object_id",),
    QueryType.PATH_DISCOVERY: ("object_id", "to_object_id"),
    QueryType.USAGE_DISCOVERY: ("object_id",),
    QueryType.DOMAIN_SUMMARY: ("domain_id",),
}


class QueryScope(BaseModel):
    """Which graph a query reads and which parts of it are visible."""

    model_config = {"frozen": True, "extra": "forbid"}

    level: ScopeLevel = ScopeLevel.RELATION
    relation_types: list[RelationType] | None = None
    object_types: list[ObjectType] | None = None
    visibility: VisibilityFilter = VisibilityFilter.VISIBLE_ONLY


class QueryParams(BaseModel):
    """Query parameters. Budgets left as None fall back to configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    object_id: str | None = None
    to_object_id: str | None = None
    domain_id: str | None = None
    direction: Direction = Direction.DOWNSTREAM
    max_hops: int | None = Field(default=None, ge=1, le=64)
    max_visited: int | None = Field(default=None, ge=1)
    timeout_ms: int | None = Field(default=None, ge=1)
    top_k: int | None = Field(default=None, ge=1, le=100)
    hub_degree_threshold: int | None = Field(default=None, ge=1)


class QueryRequest(BaseModel):
    """One query against a workspace graph."""

    model_config = {"frozen": True, "extra": "forbid"}

    workspace_id: str = Field(min_length=1)
    query_type: QueryType
    scope: QueryScope
    params: QueryParams = Field(default_factory=QueryParams)
    generation_version: int | None = Field(default=None, ge=1)

    def missing_params(self) -> list[dict[str, str]]:
        """Field-level reasons for required parameters this request lacks."""
        problems: list[dict[str, str]] = []
        for name in REQUIRED_PARAMS[self.query_type]:
            if not getattr(self.params, name):
                problems.append(
                    {
                        "field": f"params.{name}",
                        "reason": f"required for {self.query_type.value}",
                    }
                )
        return problems
