"""Command group: domain inference (seeded affinity and discovery)."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from archnav.commands._base import ArchnavGroup, workspace_option
from archnav.domain.lifecycle import CandidateStatus

if TYPE_CHECKING:
    from archnav.commands._context import AppContext

_INFER_EXAMPLES = """\
  archnav infer seeded -w acme
  archnav infer candidates -w acme --status PENDING
  archnav infer review cand_0f3a... --approve
  archnav infer discover -w acme --min-cluster-size 4"""


@click.group(cls=ArchnavGroup, examples=_INFER_EXAMPLES)
@click.pass_obj
def infer(app: AppContext) -> None:
    """Infer and discover domains."""


@infer.command(
    examples="""\
  archnav infer seeded -w acme
  archnav infer seeded -w acme --profile strict"""
)
@workspace_option
@click.option("--profile", "profile_id", default=None, help="Inference profile (id or name).")
@click.pass_obj
def seeded(app: AppContext, workspace_id: str, profile_id: str | None) -> None:
    """Score services against seed domains; emit PENDING candidates."""
    from archnav.services.seed import SeedInferenceService

    app.emit(SeedInferenceService(app.inventory).infer_seeded(workspace_id, profile_id))


@infer.command(
    examples="""\
  archnav infer candidates -w acme
  archnav -q infer candidates -w acme --status PENDING"""
)
@workspace_option
@click.option(
    "--status",
    type=click.Choice([s.value for s in CandidateStatus], case_sensitive=False),
    default=None,
    help="Only candidates with this status.",
)
@click.option("--object", "object_id", default=None, help="Only candidates for this object.")
@click.pass_obj
def candidates(
    app: AppContext, workspace_id: str, status: str | None, object_id: str | None
) -> None:
    """List domain candidates."""
    from archnav.services.seed import SeedInferenceService

    app.emit(
        SeedInferenceService(app.inventory).candidates(
            workspace_id,
            status=status.upper() if status else None,
            object_id=object_id,
        )
    )


@infer.command(
    examples="""\
  archnav infer review cand_0f3a... --approve
  archnav infer review cand_0f3a... --reject"""
)
@click.argument("candidate_id")
@click.option("--approve/--reject", required=True, help="Approve or reject the candidate.")
@click.pass_obj
def review(app: AppContext, candidate_id: str, approve: bool) -> None:
    """Approve or reject a PENDING candidate."""
    from archnav.services.seed import SeedInferenceService

    app.emit(SeedInferenceService(app.inventory).review_candidate(candidate_id, approve=approve))


@infer.command(
    examples="""\
  archnav infer discover -w acme
  archnav infer discover -w acme --generation 3 --resolution 0.8
  archnav --json infer discover -w acme --min-cluster-size 4"""
)
@workspace_option
@click.option(
    "--generation", "generation_version", type=int, default=None, help="Default: active."
)
@click.option("--min-cluster-size", type=int, default=None, help="Smallest cluster kept.")
@click.option("--resolution", type=float, default=None, help="Louvain resolution.")
@click.option("--profile", "profile_id", default=None, help="Inference profile (id or name).")
@click.pass_obj
def discover(
    app: AppContext,
    workspace_id: str,
    generation_version: int | None,
    min_cluster_size: int | None,
    resolution: float | None,
    profile_id: str | None,
) -> None:
    """Discover domains by community detection over the service rollup."""
    from archnav.services.discovery import DiscoveryService

    app.emit(
        DiscoveryService(app.inventory).discover(
            workspace_id,
            generation_version,
            min_cluster_size=min_cluster_size,
            resolution=resolution,
            profile_id=profile_id,
        )
    )


@infer.command(
    examples="""\
  archnav infer runs -w acme"""
)
@workspace_option
@click.pass_obj
def runs(app: AppContext, workspace_id: str) -> None:
    """List discovery runs."""
    from archnav.services.discovery import DiscoveryService

    app.emit(DiscoveryService(app.inventory).runs(workspace_id))
