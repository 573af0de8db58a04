"""AppContext: shared Click context for all commands.

Created once by the root CLI group and handed to subcommands through
``@click.pass_obj``. Builds the Inventory lazily and routes results to
stdout/stderr with the right exit code.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from archnav.output.formatters import OutputSettings, format_result

if TYPE_CHECKING:
    from archnav.config.settings import ArchnavSettings
    from archnav.infrastructure.inventory import Inventory
    from archnav.services.result import ServiceResult


class AppContext:
    """Shared context flowing through Click's command hierarchy.

    The inventory is created on first access so ``--help`` and
    ``--version`` never open the store.
    """

    def __init__(self, settings: ArchnavSettings) -> None:
        self.settings = settings
        self._inventory: Inventory | None = None

        from archnav.config.logging import configure_logging

        configure_logging(verbose=settings.verbose, log_json=settings.log_json)

        if settings.verbose:
            from archnav.services.telemetry import enable_telemetry

            enable_telemetry()

    @property
    def inventory(self) -> Inventory:
        """The inventory instance (created lazily on first access)."""
        if self._inventory is None:
            from archnav.infrastructure.inventory import Inventory

            self._inventory = Inventory(self.settings)
            self._inventory.init_event_bus(sync=self.settings.sync)
        return self._inventory

    def close(self) -> None:
        """Drain plugin events and release the store (registered on the Click context)."""
        if self._inventory is not None:
            self._inventory.close()
            self._inventory = None

    def emit(self, result: ServiceResult) -> None:
        """Format and output a ServiceResult with correct exit semantics.

        * Success: writes to stdout; warnings go to stderr so they do not
          pollute piped output.
        * Failure: writes to stderr and exits with code 1.
        """
        settings = OutputSettings(
            json_output=self.settings.json_output,
            quiet=self.settings.quiet,
            verbose=self.settings.verbose,
        )
        output = format_result(result, settings=settings)
        if result.ok:
            click.echo(output)
            # In JSON mode, warnings are already in the serialized payload.
            if not settings.json_output:
                for warning in result.warnings:
                    click.echo(f"WARNING: {warning}", err=True)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)

    def emit_many(self, results: list[ServiceResult]) -> None:
        """Output several results in order; exit 1 if any of them failed.

        In JSON mode the results are printed as one JSON array.
        """
        settings = OutputSettings(
            json_output=self.settings.json_output,
            quiet=self.settings.quiet,
            verbose=self.settings.verbose,
        )
        if settings.json_output:
            rendered = [format_result(r, settings=settings) for r in results]
            click.echo("[" + ",\n".join(rendered) + "]")
        else:
            for result in results:
                click.echo(format_result(result, settings=settings), err=not result.ok)
        if not all(r.ok for r in results):
            raise SystemExit(1)
