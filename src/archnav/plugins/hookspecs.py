"""Pluggy hook specifications for archnav lifecycle events.

Events fire after the owning transaction committed, so a plugin always
sees the state the event describes (e.g. the new ACTIVE generation).
"""

from __future__ import annotations

from typing import Any

import pluggy

PROJECT_NAME = "archnav"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class ArchnavHookSpec:
    """Hook specifications for the archnav plugin system."""

    @hookspec
    def post_rebuild(
        self,
        workspace_id: str,
        generation_version: int,
        previous_version: int | None,
        edge_counts: dict[str, int],
    ) -> None:
        """Called after a rollup generation became ACTIVE."""

    @hookspec
    def post_seed_inference(
        self,
        workspace_id: str,
        run_id: str,
        candidate_count: int,
    ) -> None:
        """Called after Track A persisted its candidates."""

    @hookspec
    def post_discovery(
        self,
        workspace_id: str,
        run_id: str,
        cluster_count: int,
        domain_ids: list[str],
    ) -> None:
        """Called after a completed discovery run."""

    @hookspec
    def post_candidate_review(
        self,
        workspace_id: str,
        candidate_id: str,
        status: str,
        affinities: dict[str, Any],
    ) -> None:
        """Called after a candidate was approved or rejected."""
