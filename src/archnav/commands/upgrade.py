"""Command: store schema migration."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from archnav.commands._base import ArchnavCommand

if TYPE_CHECKING:
    from archnav.commands._context import AppContext


@click.command(
    cls=ArchnavCommand,
    examples="""\
  archnav upgrade
  archnav upgrade --check
  archnav --json upgrade --check""",
)
@click.option(
    "--check", "check_only", is_flag=True, help="Show pending migrations without applying."
)
@click.pass_obj
def upgrade(app: AppContext, check_only: bool) -> None:
    """Run pending store migrations."""
    from archnav.services.upgrade import UpgradeService

    svc = UpgradeService(app.inventory)
    app.emit(svc.check_pending() if check_only else svc.apply())
