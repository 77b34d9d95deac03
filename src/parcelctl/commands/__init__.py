"""Subcommand modules for parcelctl.

:func:`register_commands` imports each command inside the function so
``parcelctl --help`` does not load the resolver stack.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register the standalone commands on the root CLI group."""
    from parcelctl.commands.check import check
    from parcelctl.commands.members import members
    from parcelctl.commands.resolve import resolve

    cli.add_command(resolve)
    cli.add_command(check)
    cli.add_command(members)
