"""AppContext - shared click context for all commands.

Created once by the root group and handed to subcommands via
``@click.pass_obj``. Owns logging setup and result emission (stdout or
stderr routing plus exit codes).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from parcelctl.output.formatters import OutputSettings, format_result

if TYPE_CHECKING:
    from parcelctl.config.settings import ParcelSettings
    from parcelctl.services.resolve import ResolveService
    from parcelctl.services.result import ServiceResult


class AppContext:
    """Shared context flowing through click's command hierarchy."""

    def __init__(self, settings: ParcelSettings) -> None:
        self.settings = settings

        from parcelctl.config.logging import configure_logging

        configure_logging(verbose=settings.verbose, log_json=settings.log_json)

        if settings.verbose:
            from parcelctl.services.telemetry import enable_telemetry

            enable_telemetry()

    def service(self) -> ResolveService:
        from parcelctl.services.resolve import ResolveService

        return ResolveService(self.settings)

    def emit(self, result: ServiceResult) -> None:
        """Print *result* and apply exit semantics.

        * Success: stdout, normal return. Warnings go to stderr so piped
          output stays clean.
        * Failure: stderr, exit code 1.
        """
        settings = OutputSettings(
            json_output=self.settings.json_output,
            quiet=self.settings.quiet,
            verbose=self.settings.verbose,
        )
        output = format_result(result, settings=settings)
        if result.ok:
            click.echo(output)
            # JSON already carries the warnings in its payload.
            if not settings.json_output:
                for warning in result.warnings:
                    click.echo(f"WARNING: {warning}", err=True)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)
