"""WAL-backed event dispatch via pluggy + ThreadPoolExecutor.

Events are written to the ``event_wal`` table before dispatch, so a
lifecycle event survives a process that exits mid-flight; ``drain()``
retries whatever is still pending or failed.

INVARIANT: Plugin failures are warnings, never errors.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import insert, select, update

from archnav.infrastructure.database.schema import event_wal

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from archnav.plugins.manager import PluginManager

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(UTC).isoformat()


class EventBus:
    """Dispatch lifecycle hooks asynchronously (or synchronously with ``sync``).

    Parameters:
        engine: SQLAlchemy engine with the ``event_wal`` table.
        plugin_manager: Loaded PluginManager for hook dispatch.
        sync: Dispatch inline (``--sync`` and tests).
        max_retries: Attempts before an event is marked ``dead_letter``.
        max_workers: ThreadPoolExecutor worker count.
    """

    def __init__(
        self,
        engine: Engine,
        plugin_manager: PluginManager,
        *,
        sync: bool = False,
        max_retries: int = 3,
        max_workers: int = 2,
    ) -> None:
        self._engine = engine
        self._pm = plugin_manager
        self._sync = sync
        self._max_retries = max_retries
        self._executor: ThreadPoolExecutor | None = (
            None if sync else ThreadPoolExecutor(max_workers=max_workers)
        )
        self._futures: list[Future[None]] = []

    def dispatch(
        self,
        hook_name: str,
        payload: dict[str, Any],
        *,
        workspace_id: str | None = None,
    ) -> int:
        """Write the event to the WAL, then run its hook. Returns the WAL row id."""
        event_id = self._write_wal(hook_name, payload, workspace_id=workspace_id)
        if self._executor is None:
            self._execute_hook(event_id, hook_name, payload)
        else:
            self._futures.append(
                self._executor.submit(self._execute_hook, event_id, hook_name, payload)
            )
        return event_id

    def drain(self) -> list[dict[str, Any]]:
        """Retry pending/failed events synchronously.

        Returns ``{id, hook_name, status}`` for each retried event.
        """
        self._wait_futures()
        with self._engine.connect() as conn:
            rows = conn.execute(
                select(event_wal.c.id, event_wal.c.hook_name, event_wal.c.payload)
                .where(event_wal.c.status.in_(["pending", "failed"]))
                .order_by(event_wal.c.id)
            ).fetchall()

        results: list[dict[str, Any]] = []
        for row in rows:
            self._execute_hook(row.id, row.hook_name, row.payload)
            with self._engine.connect() as conn:
                status = conn.execute(
                    select(event_wal.c.status).where(event_wal.c.id == row.id)
                ).scalar_one()
            results.append({"id": row.id, "hook_name": row.hook_name, "status": status})
        return results

    def shutdown(self) -> None:
        """Wait for in-flight events and stop the executor."""
        self._wait_futures()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _write_wal(
        self,
        hook_name: str,
        payload: dict[str, Any],
        *,
        workspace_id: str | None = None,
    ) -> int:
        with self._engine.begin() as conn:
            result = conn.execute(
                insert(event_wal).values(
                    hook_name=hook_name,
                    payload=payload,
                    status="pending",
                    retries=0,
                    workspace_id=workspace_id,
                    created=_now(),
                )
            )
            event_id = result.inserted_primary_key[0]
        return int(event_id)

    def _execute_hook(self, event_id: int, hook_name: str, payload: dict[str, Any]) -> None:
        hook_fn = getattr(self._pm.hook, hook_name, None)
        if hook_fn is None:
            self._mark_completed(event_id)
            return
        try:
            hook_fn(**payload)
        except Exception as exc:
            logger.warning("Hook %s failed: %s", hook_name, exc)
            self._mark_failed(event_id, str(exc))
        else:
            self._mark_completed(event_id)

    def _mark_completed(self, event_id: int) -> None:
        with self._engine.begin() as conn:
            conn.execute(
                update(event_wal)
                .where(event_wal.c.id == event_id)
                .values(status="completed", completed=_now())
            )

    def _mark_failed(self, event_id: int, error: str) -> None:
        """Increment retries; mark ``failed`` or, past the limit, ``dead_letter``."""
        with self._engine.begin() as conn:
            retries = conn.execute(
                select(event_wal.c.retries).where(event_wal.c.id == event_id)
            ).scalar_one()
            retries = (retries or 0) + 1
            status = "dead_letter" if retries >= self._max_retries else "failed"
            conn.execute(
                update(event_wal)
                .where(event_wal.c.id == event_id)
                .values(
                    status=status,
                    error=error,
                    retries=retries,
                    completed=_now() if status == "dead_letter" else None,
                )
            )

    def _wait_futures(self) -> None:
        for future in self._futures:
            try:
                future.result(timeout=30)
            except Exception:
                logger.debug("Event future raised", exc_info=True)
        self._futures.clear()
