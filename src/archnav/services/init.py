"""InitService: create a new archnav project directory.

Writes a default ``archnav.toml``, creates the SQLite store and stamps
it at the current migration head.
"""

from __future__ import annotations

from pathlib import Path

from archnav.config.discovery import CONFIG_FILENAME
from archnav.services.result import ErrorCode, ServiceResult

DEFAULT_CONFIG = """\
# archnav project configuration. Every key is optional.

[query]
max_hops = 6
max_visited = 20000
timeout_ms = 2000
top_k_paths = 3
hub_degree_threshold = 200

[rollup]
min_membership = 0.2
keep_generations = 5

[inference]
w_code = 0.5
w_db = 0.3
w_msg = 0.2
heuristic_domain_cap = 0.3
secondary_threshold = 0.25

[discovery]
min_cluster_size = 3
resolution = 1.0
seed = 42
"""


class InitService:
    """Project scaffolding; runs before any Inventory exists."""

    @staticmethod
    def init_project(path: Path) -> ServiceResult:
        """Initialize an archnav project rooted at *path* (idempotent)."""
        from archnav.config.settings import ArchnavSettings
        from archnav.infrastructure.inventory import Inventory
        from archnav.services.upgrade import UpgradeService

        op = "init"
        warnings: list[str] = []
        try:
            path.mkdir(parents=True, exist_ok=True)
            config_path = path / CONFIG_FILENAME
            created_config = not config_path.exists()
            if created_config:
                config_path.write_text(DEFAULT_CONFIG, encoding="utf-8")
            else:
                warnings.append(f"{config_path} already exists; left unchanged")
        except OSError as exc:
            return ServiceResult.failure(
                op, ErrorCode.VALIDATION_ERROR, f"Cannot initialize {path}: {exc}", path=str(path)
            )

        settings = ArchnavSettings.from_cli(config_path=str(config_path), project_root=path)
        existed = settings.db_path.exists()
        inventory = Inventory(settings)
        try:
            stamped = UpgradeService(inventory).stamp_current()
        finally:
            inventory.close()
        if not stamped.ok:
            return stamped

        if existed:
            warnings.append(f"Store {settings.db_path} already existed")
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "project_root": str(path),
                "config_path": str(config_path),
                "db_path": str(settings.db_path),
                "created_config": created_config,
                "revision": stamped.data.get("current"),
            },
            warnings=warnings,
        )
