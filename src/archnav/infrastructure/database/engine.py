"""Database engine setup for SQLite with WAL mode.

WAL lets queries keep reading a pinned generation while a rebuild
writes the next one. The store lives at
``{project_root}/.archnav/archnav.db`` unless configured otherwise.

SQLAlchemy Core (not ORM) is used: rows flow straight into pydantic
models and networkx graphs, an identity map would only get in the way.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from archnav.infrastructure.database.schema import metadata


def create_db_engine(db_path: Path, *, busy_timeout_s: float = 30.0) -> Engine:
    """Create a SQLite engine with WAL mode and foreign keys enabled.

    The engine is shared across the query worker threads, so the pysqlite
    same-thread check is disabled; SQLAlchemy's pool hands each thread its
    own connection.
    """
    engine = create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        connect_args={"check_same_thread": False, "timeout": busy_timeout_s},
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn: Any, _: Any) -> None:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def init_database(db_path: Path, *, busy_timeout_s: float = 30.0) -> Engine:
    """Create the store directory and all tables at *db_path*.

    Idempotent: safe to call on an existing store.

    Returns the engine ready for use.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_db_engine(db_path, busy_timeout_s=busy_timeout_s)
    metadata.create_all(engine)
    return engine
