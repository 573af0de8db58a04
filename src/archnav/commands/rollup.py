"""Command group: rollup generations."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from archnav.commands._base import ArchnavGroup, workspace_option
from archnav.services.rollup import RollupService

if TYPE_CHECKING:
    from archnav.commands._context import AppContext

_ROLLUP_EXAMPLES = """\
  archnav rollup rebuild -w acme
  archnav rollup generations -w acme
  archnav rollup prune -w acme --keep 2"""


@click.group(cls=ArchnavGroup, examples=_ROLLUP_EXAMPLES)
@click.pass_obj
def rollup(app: AppContext) -> None:
    """Build and manage rollup generations."""


@rollup.command(
    examples="""\
  archnav rollup rebuild -w acme
  archnav rollup rebuild -w acme --profile strict
  archnav -q rollup rebuild -w acme"""
)
@workspace_option
@click.option("--profile", "profile_id", default=None, help="Inference profile (id or name).")
@click.pass_obj
def rebuild(app: AppContext, workspace_id: str, profile_id: str | None) -> None:
    """Project approved relations into a new ACTIVE generation."""
    app.emit(RollupService(app.inventory).rebuild(workspace_id, profile_id=profile_id))


@rollup.command(
    examples="""\
  archnav rollup generations -w acme
  archnav --json rollup generations -w acme"""
)
@workspace_option
@click.pass_obj
def generations(app: AppContext, workspace_id: str) -> None:
    """List generations, newest first."""
    app.emit(RollupService(app.inventory).generations(workspace_id))


@rollup.command(
    examples="""\
  archnav rollup prune -w acme
  archnav rollup prune -w acme --keep 0"""
)
@workspace_option
@click.option(
    "--keep", type=int, default=None, help="Non-active generations to keep (default from config)."
)
@click.pass_obj
def prune(app: AppContext, workspace_id: str, keep: int | None) -> None:
    """Delete old generations; the ACTIVE one is never removed."""
    app.emit(RollupService(app.inventory).prune(workspace_id, keep=keep))
