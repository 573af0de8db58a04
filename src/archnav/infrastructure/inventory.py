"""Inventory: the single dependency injected into every service.

Owns the database engine, the graph store adapter, the graph engine,
the optional plugin event bus and the per-workspace rebuild locks.
:meth:`Inventory.transaction` wraps ``engine.begin()`` so a block of
writes commits or rolls back as a unit.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from archnav.infrastructure.database.engine import init_database
from archnav.infrastructure.graph.engine import GraphEngine
from archnav.infrastructure.repositories.graph_store import GraphStore

if TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy import Connection
    from sqlalchemy.engine import Engine

    from archnav.config.settings import ArchnavSettings
    from archnav.plugins.event_bus import EventBus

logger = logging.getLogger(__name__)


@dataclass
class InventoryTransaction:
    """An open write transaction.

    ``now`` is fixed when the transaction starts so every row written in
    it carries the same timestamp.
    """

    conn: Connection
    now: str = field(default_factory=lambda: datetime.now(UTC).isoformat())


class Inventory:
    """Repository facade over the archnav store.

    Constructed once per process (CLI invocation, API worker) from
    :class:`ArchnavSettings`. Services receive it through their
    :class:`BaseService` constructor.
    """

    def __init__(self, settings: ArchnavSettings) -> None:
        self._settings = settings
        self._engine: Engine = init_database(
            settings.db_path, busy_timeout_s=settings.store.busy_timeout_s
        )
        self._store = GraphStore(self._engine)
        self._graph = GraphEngine(self._store)
        self._event_bus: EventBus | None = None
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def settings(self) -> ArchnavSettings:
        return self._settings

    @property
    def db_path(self) -> Path:
        return self._settings.db_path

    @property
    def engine(self) -> Engine:
        """The underlying SQLAlchemy engine (for direct access when needed)."""
        return self._engine

    @property
    def store(self) -> GraphStore:
        return self._store

    @property
    def graph(self) -> GraphEngine:
        return self._graph

    @property
    def event_bus(self) -> EventBus | None:
        """The plugin event bus (None if not initialized)."""
        return self._event_bus

    def init_event_bus(self, *, sync: bool = False) -> None:
        """Discover entry-point plugins and wire up the WAL-backed event bus.

        Called by the CLI context when the inventory is first accessed.
        No-op when ``[plugins] enabled = false``.
        """
        if not self._settings.plugins.enabled:
            return
        from archnav.plugins.event_bus import EventBus
        from archnav.plugins.manager import PluginManager

        pm = PluginManager()
        pm.discover_and_load()
        self._event_bus = EventBus(self._engine, pm, sync=sync)

    @contextmanager
    def transaction(self) -> Iterator[InventoryTransaction]:
        """Open a write transaction; commit on success, roll back on error.

        Usage::

            with inventory.transaction() as txn:
                inventory.store.insert_run(txn.conn, {...})
        """
        with self._engine.begin() as conn:
            yield InventoryTransaction(conn=conn)

    @contextmanager
    def workspace_lock(self, workspace_id: str) -> Iterator[None]:
        """Serialize batch writers of one workspace within this process."""
        with self._locks_guard:
            lock = self._locks.setdefault(workspace_id, threading.Lock())
        with lock:
            yield

    def close(self) -> None:
        """Flush pending plugin events and release database connections."""
        if self._event_bus is not None:
            self._event_bus.shutdown()
            self._event_bus = None
        self._engine.dispose()
