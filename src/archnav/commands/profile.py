"""Command group: inference profiles."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import click

from archnav.commands._base import ArchnavGroup, workspace_option
from archnav.services.profiles import ProfileService

if TYPE_CHECKING:
    from archnav.commands._context import AppContext


@click.group(
    cls=ArchnavGroup,
    examples="""\
  archnav profile set strict -w acme --secondary-threshold 0.4 --default
  archnav profile list -w acme""",
)
@click.pass_obj
def profile(app: AppContext) -> None:
    """Manage per-workspace inference profiles."""


def _edge_weights(
    _ctx: click.Context, _param: click.Parameter, value: str | None
) -> dict[str, float] | None:
    if value is None:
        return None
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"not valid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise click.BadParameter("expected a JSON object of relation type -> weight")
    return parsed


@profile.command(
    "set",
    examples="""\
  archnav profile set strict -w acme --w-code 0.3 --w-db 0.5
  archnav profile set heavy-calls -w acme --edge-weights '{"call": 1.5}'
  archnav profile set default -w acme --resolution 0.8 --default""",
)
@click.argument("name")
@workspace_option
@click.option("--w-code", type=float, default=None)
@click.option("--w-db", type=float, default=None)
@click.option("--w-msg", type=float, default=None)
@click.option("--heuristic-domain-cap", type=float, default=None)
@click.option("--secondary-threshold", type=float, default=None)
@click.option("--min-cluster-size", type=int, default=None)
@click.option("--resolution", type=float, default=None)
@click.option("--edge-weights", callback=_edge_weights, default=None, help="JSON object.")
@click.option("--default", "is_default", is_flag=True, help="Make this the workspace default.")
@click.pass_obj
def set_profile(
    app: AppContext, name: str, workspace_id: str, is_default: bool, **values: Any
) -> None:
    """Create or update the profile NAME."""
    overrides = {k: v for k, v in values.items() if v is not None}
    app.emit(
        ProfileService(app.inventory).set_profile(
            workspace_id, name, default=is_default, **overrides
        )
    )


@profile.command(
    "list",
    examples="""\
  archnav profile list -w acme""",
)
@workspace_option
@click.pass_obj
def list_profiles(app: AppContext, workspace_id: str) -> None:
    """List profiles of a workspace."""
    app.emit(ProfileService(app.inventory).list_profiles(workspace_id))
