"""Command: load an inventory snapshot."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from archnav.commands._base import ArchnavCommand, workspace_option

if TYPE_CHECKING:
    from archnav.commands._context import AppContext


@click.command(
    cls=ArchnavCommand,
    examples="""\
  archnav load snapshot.json -w acme
  ARCHNAV_WORKSPACE=acme archnav load snapshot.json
  archnav --json load snapshot.json -w acme""",
)
@click.argument("snapshot", type=click.Path(dir_okay=False, path_type=Path))
@workspace_option
@click.pass_obj
def load(app: AppContext, snapshot: Path, workspace_id: str) -> None:
    """Validate SNAPSHOT (objects + relations JSON) and upsert it."""
    from archnav.services.snapshot import SnapshotService

    app.emit(SnapshotService(app.inventory).load(workspace_id, snapshot))
