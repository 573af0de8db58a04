"""Baseline schema: objects, relations, rollups, inference, discovery.

Revision ID: 001_baseline
Revises: None
Create Date: 2026-10-19

Stores created by ``archnav init`` are stamped at this revision without
running it; it is applied when ``archnav upgrade`` meets an empty file.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision: str = "001_baseline"
down_revision: str | None = None
branch_labels: tuple[str, ...] | None = None
depends_on: tuple[str, ...] | None = None


def upgrade() -> None:
    op.create_table(
        "objects",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("workspace_id", sa.Text, nullable=False),
        sa.Column("object_type", sa.Text, nullable=False),
        sa.Column("category", sa.Text, nullable=False),
        sa.Column("granularity", sa.Text, nullable=False),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("display_name", sa.Text),
        sa.Column("parent_id", sa.Text, sa.ForeignKey("objects.id")),
        sa.Column("path", sa.Text, nullable=False),
        sa.Column("depth", sa.Integer, nullable=False, server_default="0"),
        sa.Column("visibility", sa.Text, nullable=False, server_default="VISIBLE"),
        sa.Column("metadata", sa.JSON, nullable=False),
        sa.Column("created", sa.Text, nullable=False),
        sa.Column("modified", sa.Text, nullable=False),
    )
    op.create_index("ix_objects_workspace_type", "objects", ["workspace_id", "object_type"])
    op.create_index("ix_objects_parent", "objects", ["parent_id"])

    op.create_table(
        "relations",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("workspace_id", sa.Text, nullable=False),
        sa.Column("relation_type", sa.Text, nullable=False),
        sa.Column("subject_id", sa.Text, sa.ForeignKey("objects.id"), nullable=False),
        sa.Column("object_id", sa.Text, sa.ForeignKey("objects.id"), nullable=False),
        sa.Column("status", sa.Text, nullable=False, server_default="PENDING"),
        sa.Column("source", sa.Text, nullable=False, server_default="MANUAL"),
        sa.Column("is_derived", sa.Integer, nullable=False, server_default="0"),
        sa.Column("confidence", sa.REAL),
        sa.Column("interaction_kind", sa.Text, nullable=False),
        sa.Column("direction", sa.Text, nullable=False),
        sa.Column("created", sa.Text, nullable=False),
        sa.Column("modified", sa.Text, nullable=False),
    )
    op.create_index("ix_relations_workspace_status", "relations", ["workspace_id", "status"])
    op.create_index("ix_relations_subject", "relations", ["subject_id"])
    op.create_index("ix_relations_object", "relations", ["object_id"])

    op.create_table(
        "rollup_generations",
        sa.Column("workspace_id", sa.Text, nullable=False),
        sa.Column("generation_version", sa.Integer, nullable=False),
        sa.Column("status", sa.Text, nullable=False),
        sa.Column("meta", sa.JSON),
        sa.Column("created", sa.Text, nullable=False),
        sa.Column("activated", sa.Text),
        sa.Column("archived", sa.Text),
        sa.PrimaryKeyConstraint("workspace_id", "generation_version"),
    )
    op.create_index(
        "ux_rollup_generations_active",
        "rollup_generations",
        ["workspace_id"],
        unique=True,
        sqlite_where=sa.text("status = 'ACTIVE'"),
    )

    op.create_table(
        "generation_pointers",
        sa.Column("workspace_id", sa.Text, primary_key=True),
        sa.Column("active_version", sa.Integer, nullable=False),
        sa.Column("modified", sa.Text, nullable=False),
    )

    op.create_table(
        "rollup_edges",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("workspace_id", sa.Text, nullable=False),
        sa.Column("generation_version", sa.Integer, nullable=False),
        sa.Column("level", sa.Text, nullable=False),
        sa.Column("subject_id", sa.Text, nullable=False),
        sa.Column("object_id", sa.Text, nullable=False),
        sa.Column("edge_weight", sa.REAL, nullable=False),
        sa.Column("relation_type", sa.Text, nullable=False),
        sa.Column("relation_count", sa.Integer, nullable=False, server_default="1"),
        sa.Column("confidence", sa.REAL),
        sa.Column("created", sa.Text, nullable=False),
        sa.UniqueConstraint(
            "workspace_id", "generation_version", "level", "subject_id", "object_id"
        ),
    )
    op.create_index(
        "ix_rollup_edges_generation_level",
        "rollup_edges",
        ["workspace_id", "generation_version", "level"],
    )

    op.create_table(
        "domain_affinities",
        sa.Column("workspace_id", sa.Text, nullable=False),
        sa.Column("object_id", sa.Text, sa.ForeignKey("objects.id"), nullable=False),
        sa.Column("domain_id", sa.Text, sa.ForeignKey("objects.id"), nullable=False),
        sa.Column("affinity", sa.REAL, nullable=False),
        sa.Column("source", sa.Text, nullable=False),
        sa.Column("created", sa.Text, nullable=False),
        sa.PrimaryKeyConstraint("object_id", "domain_id"),
    )
    op.create_index("ix_domain_affinities_domain", "domain_affinities", ["domain_id"])

    op.create_table(
        "inference_profiles",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("workspace_id", sa.Text, nullable=False),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("is_default", sa.Integer, nullable=False, server_default="0"),
        sa.Column("w_code", sa.REAL),
        sa.Column("w_db", sa.REAL),
        sa.Column("w_msg", sa.REAL),
        sa.Column("heuristic_domain_cap", sa.REAL),
        sa.Column("secondary_threshold", sa.REAL),
        sa.Column("edge_weights", sa.JSON),
        sa.Column("min_cluster_size", sa.Integer),
        sa.Column("resolution", sa.REAL),
        sa.Column("created", sa.Text, nullable=False),
        sa.Column("modified", sa.Text, nullable=False),
        sa.UniqueConstraint("workspace_id", "name"),
    )

    op.create_table(
        "domain_candidates",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("workspace_id", sa.Text, nullable=False),
        sa.Column("object_id", sa.Text, sa.ForeignKey("objects.id"), nullable=False),
        sa.Column("run_id", sa.Text, nullable=False),
        sa.Column("profile_id", sa.Text),
        sa.Column("affinity_map", sa.JSON, nullable=False),
        sa.Column("purity", sa.REAL, nullable=False),
        sa.Column("primary_domain_id", sa.Text, nullable=False),
        sa.Column("secondary_domain_ids", sa.JSON, nullable=False),
        sa.Column("signals", sa.JSON, nullable=False),
        sa.Column("status", sa.Text, nullable=False, server_default="PENDING"),
        sa.Column("created", sa.Text, nullable=False),
        sa.Column("reviewed", sa.Text),
    )
    op.create_index(
        "ix_domain_candidates_object_status",
        "domain_candidates",
        ["workspace_id", "object_id", "status"],
    )

    op.create_table(
        "discovery_runs",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("workspace_id", sa.Text, nullable=False),
        sa.Column("generation_version", sa.Integer, nullable=False),
        sa.Column("algo", sa.Text, nullable=False),
        sa.Column("algo_version", sa.Text, nullable=False),
        sa.Column("input_layers", sa.JSON, nullable=False),
        sa.Column("parameters", sa.JSON, nullable=False),
        sa.Column("graph_stats", sa.JSON),
        sa.Column("status", sa.Text, nullable=False),
        sa.Column("error", sa.Text),
        sa.Column("started", sa.Text, nullable=False),
        sa.Column("finished", sa.Text),
    )
    op.create_index("ix_discovery_runs_workspace", "discovery_runs", ["workspace_id", "status"])

    op.create_table(
        "discovery_memberships",
        sa.Column("run_id", sa.Text, sa.ForeignKey("discovery_runs.id"), nullable=False),
        sa.Column("domain_id", sa.Text, sa.ForeignKey("objects.id"), nullable=False),
        sa.Column("object_id", sa.Text, nullable=False),
        sa.Column("cluster_id", sa.Text, nullable=False),
        sa.Column("affinity", sa.REAL, nullable=False, server_default="1.0"),
        sa.Column("purity", sa.REAL),
        sa.PrimaryKeyConstraint("run_id", "domain_id", "object_id"),
    )
    op.create_index(
        "ix_discovery_memberships_domain", "discovery_memberships", ["domain_id"]
    )

    op.create_table(
        "event_wal",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("hook_name", sa.Text, nullable=False),
        sa.Column("payload", sa.JSON, nullable=False),
        sa.Column("status", sa.Text, nullable=False),
        sa.Column("error", sa.Text),
        sa.Column("retries", sa.Integer, server_default="0"),
        sa.Column("workspace_id", sa.Text),
        sa.Column("created", sa.Text, nullable=False),
        sa.Column("completed", sa.Text),
    )


def downgrade() -> None:
    for table in (
        "event_wal",
        "discovery_memberships",
        "discovery_runs",
        "domain_candidates",
        "inference_profiles",
        "domain_affinities",
        "rollup_edges",
        "generation_pointers",
        "rollup_generations",
        "relations",
        "objects",
    ):
        op.drop_table(table)
