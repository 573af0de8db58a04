"""Alembic migration infrastructure for the archnav store.

Provides programmatic Alembic configuration, no alembic.ini needed.
The migration scripts live alongside this module.
"""

from __future__ import annotations

from pathlib import Path

from alembic.config import Config


def build_config(db_path: Path) -> Config:
    """Build an Alembic Config pointing at our migration scripts."""
    cfg = Config()
    cfg.set_main_option("script_location", str(Path(__file__).parent))
    cfg.set_main_option("sqlalchemy.url", f"sqlite:///{db_path}")
    return cfg


def stamp_head(db_path: Path) -> None:
    """Stamp a freshly created store as at the current head revision.

    Called by ``archnav init`` after ``metadata.create_all`` so new
    stores start at the right revision without replaying migrations.
    """
    from alembic import command

    command.stamp(build_config(db_path), "head")


def upgrade_head(db_path: Path) -> None:
    """Apply every pending migration to the store at *db_path*."""
    from alembic import command

    command.upgrade(build_config(db_path), "head")
