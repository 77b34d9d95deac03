"""Command: resolve an invoice into its selected parcels."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from parcelctl.commands._base import ParcelCommand
from parcelctl.domain.types import AnyOfReading

if TYPE_CHECKING:
    from parcelctl.commands._context import AppContext


def _parse_choices(
    _ctx: click.Context, _param: click.Parameter, values: tuple[str, ...]
) -> dict[str, str]:
    """Turn repeated ``GROUP=PARCEL`` options into a mapping."""
    choices: dict[str, str] = {}
    for raw in values:
        group, sep, parcel = raw.partition("=")
        if not sep or not group or not parcel:
            msg = f"expected GROUP=PARCEL, got {raw!r}"
            raise click.BadParameter(msg)
        if group in choices and choices[group] != parcel:
            msg = f"conflicting choices for group {group!r}"
            raise click.BadParameter(msg)
        choices[group] = parcel
    return choices


@click.command(
    cls=ParcelCommand,
    examples="""\
  parcelctl resolve invoice.toml
  parcelctl resolve ./mybindle --opt-in server
  parcelctl resolve invoice.toml --choose cli=second --choose utility=third
  parcelctl resolve invoice.toml --anyof-reading optional
  parcelctl --json resolve invoice.toml
  parcelctl -q resolve invoice.toml""",
)
@click.argument("invoice", type=click.Path(path_type=Path))
@click.option(
    "--opt-in",
    "opted_in",
    multiple=True,
    metavar="GROUP",
    help="Require an optional group (repeatable).",
)
@click.option(
    "--choose",
    "choices",
    multiple=True,
    metavar="GROUP=PARCEL",
    callback=_parse_choices,
    help="Answer a oneOf/anyOf choice non-interactively (repeatable).",
)
@click.option(
    "--anyof-reading",
    type=click.Choice([r.value for r in AnyOfReading]),
    default=None,
    help=(
        "How required anyOf groups behave: require-one needs a chosen member, "
        "optional never blocks. Invoices may assume either; defaults to config."
    ),
)
@click.option(
    "--allow-yanked",
    is_flag=True,
    default=None,
    help="Resolve even if the invoice is yanked.",
)
@click.pass_obj
def resolve(
    app: AppContext,
    invoice: Path,
    opted_in: tuple[str, ...],
    choices: dict[str, str],
    anyof_reading: str | None,
    allow_yanked: bool | None,
) -> None:
    """Resolve INVOICE (a file or a directory with invoice.toml)."""
    app.emit(
        app.service().resolve(
            invoice,
            opted_in=opted_in,
            choices=choices,
            anyof_reading=anyof_reading,
            allow_yanked=allow_yanked or None,
        )
    )
