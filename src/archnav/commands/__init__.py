"""Subcommand modules for archnav.

register_commands() uses deferred imports to keep ``archnav --help`` fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all command groups and standalone commands on the root CLI group."""
    # --- Groups ---
    from archnav.commands.infer import infer
    from archnav.commands.profile import profile
    from archnav.commands.query import query
    from archnav.commands.rollup import rollup

    cli.add_command(rollup)
    cli.add_command(infer)
    cli.add_command(profile)
    cli.add_command(query)

    # --- Standalone commands ---
    from archnav.commands.init_cmd import init_cmd
    from archnav.commands.load import load
    from archnav.commands.upgrade import upgrade

    cli.add_command(init_cmd)
    cli.add_command(load)
    cli.add_command(upgrade)
