"""Root CLI group for parcelctl with global flags and command registration."""

from __future__ import annotations

import click

from parcelctl import __version__
from parcelctl.commands import register_commands
from parcelctl.commands._base import ParcelGroup
from parcelctl.commands._context import AppContext
from parcelctl.config.settings import ParcelSettings


@click.group(
    cls=ParcelGroup,
    invoke_without_command=True,
    examples="""\
  parcelctl check invoice.toml
  parcelctl resolve invoice.toml --opt-in server --choose cli=second
  parcelctl members invoice.toml server""",
)
@click.version_option(version=__version__, prog_name="parcelctl")
@click.option("--json", "json_output", is_flag=True, help="Structured JSON output.")
@click.option("-q", "--quiet", is_flag=True, help="Minimal output (parcel names only).")
@click.option("-v", "--verbose", is_flag=True, help="Detailed output with debug logs and timing.")
@click.option("--log-json", is_flag=True, help="Structured JSON log output to stderr.")
@click.option("-c", "--config", "config_path", default=None, help="Override config file path.")
@click.pass_context
def cli(
    ctx: click.Context,
    json_output: bool,
    quiet: bool,
    verbose: bool,
    log_json: bool,
    config_path: str | None,
) -> None:
    """parcelctl - resolve bindle invoices into parcel selections."""
    settings = ParcelSettings.from_cli(
        config_path=config_path,
        json_output=json_output,
        quiet=quiet,
        verbose=verbose,
        log_json=log_json,
    )
    ctx.obj = AppContext(settings)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)
