"""Custom Click base classes with --examples support.

ArchnavCommand and ArchnavGroup accept an ``examples`` parameter. With
``--examples`` the command prints its usage examples and exits, which
keeps ``--help`` short.
"""

from __future__ import annotations

from typing import Any

import click

# Shared by every command that targets one workspace.
workspace_option = click.option(
    "-w",
    "--workspace",
    "workspace_id",
    required=True,
    envvar="ARCHNAV_WORKSPACE",
    help="Workspace id (or ARCHNAV_WORKSPACE).",
)


def _add_examples_option(cmd: click.Command, examples: str) -> None:
    """Attach an eager ``--examples`` flag to a Click command or group."""

    def show_examples(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
        if not value:
            return
        click.echo(f"Examples for '{ctx.command_path}':\n")
        click.echo(examples)
        ctx.exit(0)

    cmd.params.append(
        click.Option(
            ["--examples"],
            is_flag=True,
            expose_value=False,
            is_eager=True,
            callback=show_examples,
            help="Show usage examples.",
        )
    )


class ArchnavCommand(click.Command):
    """Click Command subclass that supports an ``--examples`` flag."""

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.examples = examples
        if examples:
            _add_examples_option(self, examples)


class ArchnavGroup(click.Group):
    """Click Group whose subcommands default to :class:`ArchnavCommand`."""

    command_class = ArchnavCommand

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.examples = examples
        if examples:
            _add_examples_option(self, examples)
