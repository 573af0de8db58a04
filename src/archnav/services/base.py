"""BaseService: foundation for all archnav services.

Every service receives an :class:`Inventory` at construction time and
owns its transaction boundaries via ``self._inventory.transaction()``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from archnav.config.settings import ArchnavSettings
    from archnav.infrastructure.inventory import Inventory
    from archnav.infrastructure.repositories.graph_store import GraphStore

logger = logging.getLogger(__name__)


class BaseService:
    """Base for all service-layer classes.

    Usage::

        class RollupService(BaseService):
            def rebuild(self, workspace_id: str) -> ServiceResult:
                with self._inventory.transaction() as txn:
                    ...
    """

    def __init__(self, inventory: Inventory) -> None:
        self._inventory = inventory

    @property
    def _store(self) -> GraphStore:
        return self._inventory.store

    @property
    def _settings(self) -> ArchnavSettings:
        return self._inventory.settings

    def _dispatch_event(
        self,
        hook_name: str,
        payload: dict[str, Any],
        warnings: list[str],
        *,
        workspace_id: str | None = None,
    ) -> None:
        """Dispatch a lifecycle event. No-op if the event bus is not initialized.

        INVARIANT: Plugin failures are warnings, never errors.
        """
        bus = self._inventory.event_bus
        if bus is None:
            return
        try:
            bus.dispatch(hook_name, payload, workspace_id=workspace_id)
        except Exception:
            logger.debug("Event dispatch failed for %s", hook_name, exc_info=True)
            warnings.append(f"Event dispatch failed for {hook_name}")
