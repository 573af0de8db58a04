"""UpgradeService: store schema migrations with Alembic.

Pipeline: CHECK -> BACKUP -> MIGRATE -> REPORT
"""

from __future__ import annotations

import logging
import shutil
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from alembic import command
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory

from archnav.infrastructure.database.migrations import build_config, stamp_head
from archnav.services.base import BaseService
from archnav.services.result import ErrorCode, ServiceResult

logger = logging.getLogger(__name__)


class UpgradeService(BaseService):
    """Checks for and applies pending schema migrations."""

    def check_pending(self) -> ServiceResult:
        """List pending migrations without applying them."""
        op = "upgrade"
        try:
            script = ScriptDirectory.from_config(build_config(self._inventory.db_path))
            head = script.get_current_head()
            with self._inventory.engine.connect() as conn:
                current = MigrationContext.configure(conn).get_current_revision()

            pending: list[dict[str, Any]] = []
            if current != head:
                for rev in script.iterate_revisions(head, current):
                    pending.append({"revision": rev.revision, "description": rev.doc or ""})
        except Exception as exc:
            return ServiceResult.failure(
                op, ErrorCode.UPGRADE_FAILED, f"Failed to check migrations: {exc}"
            )
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "pending_count": len(pending),
                "pending": pending,
                "current": current,
                "head": head,
            },
        )

    def apply(self) -> ServiceResult:
        """Back up the store, then migrate it to head."""
        op = "upgrade"
        check = self.check_pending()
        if not check.ok:
            return check
        if check.data["pending_count"] == 0:
            return ServiceResult(
                ok=True,
                op=op,
                data={
                    "applied_count": 0,
                    "current": check.data["head"],
                    "message": "Store is already up to date",
                },
            )

        try:
            backup_path = self._backup_db()
        except OSError as exc:
            return ServiceResult.failure(op, ErrorCode.UPGRADE_FAILED, f"Backup failed: {exc}")

        cfg = build_config(self._inventory.db_path)
        try:
            if check.data["current"] is None:
                # Tables come from metadata.create_all; only version tracking is missing.
                command.stamp(cfg, "head")
            else:
                command.upgrade(cfg, "head")
        except Exception as exc:
            logger.exception("Migration failed")
            return ServiceResult.failure(
                op,
                ErrorCode.UPGRADE_FAILED,
                f"Migration failed: {exc}. Backup at: {backup_path}",
                backup_path=str(backup_path),
            )

        return ServiceResult(
            ok=True,
            op=op,
            data={
                "applied_count": check.data["pending_count"],
                "current": check.data["head"],
                "backup_path": str(backup_path),
            },
        )

    def stamp_current(self) -> ServiceResult:
        """Stamp a freshly created store as at head (used by ``init``)."""
        op = "upgrade"
        try:
            stamp_head(self._inventory.db_path)
            head = ScriptDirectory.from_config(
                build_config(self._inventory.db_path)
            ).get_current_head()
        except Exception as exc:
            return ServiceResult.failure(
                op, ErrorCode.UPGRADE_FAILED, f"Failed to stamp store: {exc}"
            )
        return ServiceResult(ok=True, op=op, data={"stamped": True, "current": head})

    def _backup_db(self) -> Path:
        db_path = self._inventory.db_path
        backup_dir = db_path.parent / "backups"
        backup_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S")
        target = backup_dir / f"{db_path.stem}-{stamp}{db_path.suffix}"
        shutil.copy2(db_path, target)
        return target
