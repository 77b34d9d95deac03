"""Command: structural check of an invoice."""

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
  parcelctl check invoice.toml
  parcelctl -v check ./mybindle
  parcelctl --json check invoice.toml""",
)
@click.argument("invoice", type=click.Path(path_type=Path))
@click.pass_obj
def check(app: AppContext, invoice: Path) -> None:
    """Validate INVOICE: schema, group references, and cycles."""
    app.emit(app.service().check(invoice))
