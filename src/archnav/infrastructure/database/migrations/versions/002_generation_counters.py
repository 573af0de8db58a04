"""Per-workspace generation counter.

Revision ID: 002_generation_counters
Revises: 001_baseline
Create Date: 2026-10-19

Generation versions used to be ``max(existing) + 1``, which handed out a
pruned version again. The counter keeps the highest version ever
allocated; it is seeded from the generations still present. Opening a
store runs ``create_all``, so the table may already exist here.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision: str = "002_generation_counters"
down_revision: str | None = "001_baseline"
branch_labels: tuple[str, ...] | None = None
depends_on: tuple[str, ...] | None = None


def upgrade() -> None:
    if "generation_counters" not in sa.inspect(op.get_bind()).get_table_names():
        op.create_table(
            "generation_counters",
            sa.Column("workspace_id", sa.Text, primary_key=True),
            sa.Column("last_version", sa.Integer, nullable=False),
            sa.Column("modified", sa.Text, nullable=False),
        )
    op.execute(
        "INSERT OR IGNORE INTO generation_counters (workspace_id, last_version, modified) "
        "SELECT workspace_id, MAX(generation_version), MAX(created) "
        "FROM rollup_generations GROUP BY workspace_id"
    )


def downgrade() -> None:
    op.drop_table("generation_counters")
