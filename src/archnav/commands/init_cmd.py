"""Command: project initialization (named init_cmd to avoid shadowing builtins)."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from archnav.commands._base import ArchnavCommand

if TYPE_CHECKING:
    from archnav.commands._context import AppContext

_INIT_EXAMPLES = """\
  archnav init
  archnav init /srv/inventory
  archnav --json init ."""


@click.command("init", cls=ArchnavCommand, examples=_INIT_EXAMPLES)
@click.argument("path", required=False, default=".")
@click.pass_obj
def init_cmd(app: AppContext, path: str) -> None:
    """Create archnav.toml and the store in PATH."""
    from archnav.services.init import InitService

    app.emit(InitService.init_project(Path(path).resolve()))
