"""SQLite store engine and schema via SQLAlchemy Core."""

from archnav.infrastructure.database.engine import create_db_engine, init_database
from archnav.infrastructure.database.schema import metadata

__all__ = ["create_db_engine", "init_database", "metadata"]
