"""SQLAlchemy Core table definitions for the archnav store.

Objects and relations mirror the snapshot handed over by the external
registration/scanning collaborators. Everything else is written by the
core itself: rollup generations and edges, domain affinities and
candidates, discovery runs and memberships, and the event WAL.
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    REAL,
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()

objects = Table(
    "objects",
    metadata,
    Column("id", Text, primary_key=True),
    Column("workspace_id", Text, nullable=False),
    Column("object_type", Text, nullable=False),
    Column("category", Text, nullable=False),  # derived from object_type
    Column("granularity", Text, nullable=False),  # derived from object_type
    Column("name", Text, nullable=False),
    Column("display_name", Text),
    Column("parent_id", Text, ForeignKey("objects.id")),
    Column("path", Text, nullable=False),  # /root/.../id
    Column("depth", Integer, nullable=False, default=0, server_default="0"),
    Column("visibility", Text, nullable=False, default="VISIBLE", server_default="VISIBLE"),
    Column("metadata", JSON, nullable=False, default=dict),
    Column("created", Text, nullable=False),
    Column("modified", Text, nullable=False),
)

Index("ix_objects_workspace_type", objects.c.workspace_id, objects.c.object_type)
Index("ix_objects_parent", objects.c.parent_id)

relations = Table(
    "relations",
    metadata,
    Column("id", Text, primary_key=True),
    Column("workspace_id", Text, nullable=False),
    Column("relation_type", Text, nullable=False),
    Column("subject_id", Text, ForeignKey("objects.id"), nullable=False),
    Column("object_id", Text, ForeignKey("objects.id"), nullable=False),
    Column("status", Text, nullable=False, default="PENDING", server_default="PENDING"),
    Column("source", Text, nullable=False, default="MANUAL", server_default="MANUAL"),
    Column("is_derived", Integer, nullable=False, default=0, server_default="0"),
    Column("confidence", REAL),
    Column("interaction_kind", Text, nullable=False),
    Column("direction", Text, nullable=False),
    Column("created", Text, nullable=False),
    Column("modified", Text, nullable=False),
)

Index("ix_relations_workspace_status", relations.c.workspace_id, relations.c.status)
Index("ix_relations_subject", relations.c.subject_id)
Index("ix_relations_object", relations.c.object_id)

rollup_generations = Table(
    "rollup_generations",
    metadata,
    Column("workspace_id", Text, nullable=False),
    Column("generation_version", Integer, nullable=False),
    Column("status", Text, nullable=False),  # BUILDING | ACTIVE | ARCHIVED
    Column("meta", JSON),  # edge counts, failure stage
    Column("created", Text, nullable=False),
    Column("activated", Text),
    Column("archived", Text),
    PrimaryKeyConstraint("workspace_id", "generation_version"),
)

# At most one ACTIVE generation per workspace, enforced by SQLite itself.
Index(
    "ux_rollup_generations_active",
    rollup_generations.c.workspace_id,
    unique=True,
    sqlite_where=rollup_generations.c.status == "ACTIVE",
)

generation_pointers = Table(
    "generation_pointers",
    metadata,
    Column("workspace_id", Text, primary_key=True),
    Column("active_version", Integer, nullable=False),
    Column("modified", Text, nullable=False),
)

# Highest version ever allocated per workspace; pruning never lowers it.
generation_counters = Table(
    "generation_counters",
    metadata,
    Column("workspace_id", Text, primary_key=True),
    Column("last_version", Integer, nullable=False),
    Column("modified", Text, nullable=False),
)

rollup_edges = Table(
    "rollup_edges",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("workspace_id", Text, nullable=False),
    Column("generation_version", Integer, nullable=False),
    Column("level", Text, nullable=False),
    Column("subject_id", Text, nullable=False),
    Column("object_id", Text, nullable=False),
    Column("edge_weight", REAL, nullable=False),
    Column("relation_type", Text, nullable=False),  # dominant underlying type
    Column("relation_count", Integer, nullable=False, default=1, server_default="1"),
    Column("confidence", REAL),
    Column("created", Text, nullable=False),
    UniqueConstraint("workspace_id", "generation_version", "level", "subject_id", "object_id"),
)

Index(
    "ix_rollup_edges_generation_level",
    rollup_edges.c.workspace_id,
    rollup_edges.c.generation_version,
    rollup_edges.c.level,
)

domain_affinities = Table(
    "domain_affinities",
    metadata,
    Column("workspace_id", Text, nullable=False),
    Column("object_id", Text, ForeignKey("objects.id"), nullable=False),
    Column("domain_id", Text, ForeignKey("objects.id"), nullable=False),
    Column("affinity", REAL, nullable=False),
    Column("source", Text, nullable=False),  # MANUAL | APPROVED_INFERENCE | DISCOVERY
    Column("created", Text, nullable=False),
    PrimaryKeyConstraint("object_id", "domain_id"),
)

Index("ix_domain_affinities_domain", domain_affinities.c.domain_id)

inference_profiles = Table(
    "inference_profiles",
    metadata,
    Column("id", Text, primary_key=True),
    Column("workspace_id", Text, nullable=False),
    Column("name", Text, nullable=False),
    Column("is_default", Integer, nullable=False, default=0, server_default="0"),
    Column("w_code", REAL),
    Column("w_db", REAL),
    Column("w_msg", REAL),
    Column("heuristic_domain_cap", REAL),
    Column("secondary_threshold", REAL),
    Column("edge_weights", JSON),  # relation type -> base weight overrides
    Column("min_cluster_size", Integer),
    Column("resolution", REAL),
    Column("created", Text, nullable=False),
    Column("modified", Text, nullable=False),
    UniqueConstraint("workspace_id", "name"),
)

domain_candidates = Table(
    "domain_candidates",
    metadata,
    Column("id", Text, primary_key=True),
    Column("workspace_id", Text, nullable=False),
    Column("object_id", Text, ForeignKey("objects.id"), nullable=False),
    Column("run_id", Text, nullable=False),
    Column("profile_id", Text),
    Column("affinity_map", JSON, nullable=False),
    Column("purity", REAL, nullable=False),
    Column("primary_domain_id", Text, nullable=False),
    Column("secondary_domain_ids", JSON, nullable=False),
    Column("signals", JSON, nullable=False),
    Column("status", Text, nullable=False, default="PENDING", server_default="PENDING"),
    Column("created", Text, nullable=False),
    Column("reviewed", Text),
)

Index(
    "ix_domain_candidates_object_status",
    domain_candidates.c.workspace_id,
    domain_candidates.c.object_id,
    domain_candidates.c.status,
)

discovery_runs = Table(
    "discovery_runs",
    metadata,
    Column("id", Text, primary_key=True),
    Column("workspace_id", Text, nullable=False),
    Column("generation_version", Integer, nullable=False),
    Column("algo", Text, nullable=False),
    Column("algo_version", Text, nullable=False),
    Column("input_layers", JSON, nullable=False),
    Column("parameters", JSON, nullable=False),
    Column("graph_stats", JSON),
    Column("status", Text, nullable=False),  # RUNNING | COMPLETED | FAILED
    Column("error", Text),
    Column("started", Text, nullable=False),
    Column("finished", Text),
)

Index("ix_discovery_runs_workspace", discovery_runs.c.workspace_id, discovery_runs.c.status)

discovery_memberships = Table(
    "discovery_memberships",
    metadata,
    Column("run_id", Text, ForeignKey("discovery_runs.id"), nullable=False),
    Column("domain_id", Text, ForeignKey("objects.id"), nullable=False),
    Column("object_id", Text, nullable=False),
    Column("cluster_id", Text, nullable=False),
    Column("affinity", REAL, nullable=False, default=1.0, server_default="1.0"),
    Column("purity", REAL),
    PrimaryKeyConstraint("run_id", "domain_id", "object_id"),
)

Index("ix_discovery_memberships_domain", discovery_memberships.c.domain_id)

event_wal = Table(
    "event_wal",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("hook_name", Text, nullable=False),
    Column("payload", JSON, nullable=False),
    Column("status", Text, nullable=False),  # pending | completed | failed | dead_letter
    Column("error", Text),
    Column("retries", Integer, default=0, server_default="0"),
    Column("workspace_id", Text),
    Column("created", Text, nullable=False),
    Column("completed", Text),
)
