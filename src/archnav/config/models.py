"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, archnav.toml only contains
overrides. Inference profiles stored per workspace override these again
for the workspaces that define them.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from archnav.domain.scoring import DEFAULT_EDGE_WEIGHTS

# --- archnav.toml sections ---


class StoreConfig(BaseModel):
    """[store] section."""

    model_config = {"frozen": True}

    db_dir: str = ".archnav"
    db_name: str = "archnav.db"
    busy_timeout_s: float = 30.0


class QueryConfig(BaseModel):
    """[query] section."""

    model_config = {"frozen": True}

    max_hops: int = Field(default=6, ge=1)
    max_visited: int = Field(default=20_000, ge=1)
    timeout_ms: int = Field(default=2_000, ge=1)
    top_k_paths: int = Field(default=3, ge=1)
    hub_degree_threshold: int = Field(default=200, ge=1)
    max_workers: int | None = None


class RollupConfig(BaseModel):
    """[rollup] section."""

    model_config = {"frozen": True}

    edge_weights: dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_EDGE_WEIGHTS))
    min_membership: float = Field(default=0.2, ge=0.0, le=1.0)
    keep_generations: int = Field(default=5, ge=0)

    @field_validator("edge_weights")
    @classmethod
    def _fill_weights(cls, v: dict[str, float]) -> dict[str, float]:
        unknown = set(v) - set(DEFAULT_EDGE_WEIGHTS)
        if unknown:
            msg = f"unknown relation types in edge_weights: {sorted(unknown)}"
            raise ValueError(msg)
        return {**DEFAULT_EDGE_WEIGHTS, **v}


class InferenceConfig(BaseModel):
    """[inference] section."""

    model_config = {"frozen": True}

    w_code: float = Field(default=0.5, ge=0.0)
    w_db: float = Field(default=0.3, ge=0.0)
    w_msg: float = Field(default=0.2, ge=0.0)
    heuristic_domain_cap: float = Field(default=0.3, ge=0.0, le=1.0)
    secondary_threshold: float = Field(default=0.25, ge=0.0, le=1.0)


class DiscoveryConfig(BaseModel):
    """[discovery] section."""

    model_config = {"frozen": True}

    min_cluster_size: int = Field(default=3, ge=1)
    resolution: float = Field(default=1.0, gt=0.0)
    seed: int = 42


class PluginsConfig(BaseModel):
    """[plugins] section."""

    model_config = {"frozen": True}

    enabled: bool = True
