"""Command: list the members of a group."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from parcelctl.commands._base import ParcelCommand

if TYPE_CHECKING:
    from parcelctl.commands._context import AppContext


@click.command(
    cls=ParcelCommand,
    examples="""\
  parcelctl members invoice.toml
  parcelctl members invoice.toml server
  parcelctl -q members invoice.toml cli""",
)
@click.argument("invoice", type=click.Path(path_type=Path))
@click.argument("group", required=False)
@click.pass_obj
def members(app: AppContext, invoice: Path, group: str | None) -> None:
    """List parcels in GROUP (the global group when omitted)."""
    app.emit(app.service().members(invoice, group))
