"""Rich Console factory and theme for parcelctl output.

Consoles render into a StringIO buffer so renderers stay ``-> str``.
Outside a terminal (tests, pipes) rich drops colour codes on its own.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

PARCEL_THEME = Theme(
    {
        "pc.ok": "bold green",
        "pc.error": "bold red",
        "pc.warning": "bold yellow",
        "pc.op": "bold cyan",
        "pc.key": "dim",
        "pc.parcel": "bold blue",
        "pc.group": "magenta",
        "pc.digest": "dim",
        "pc.policy.allof": "green",
        "pc.policy.oneof": "yellow",
        "pc.policy.anyof": "cyan",
    }
)


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer.

    Args:
        no_color: Disable ANSI escape codes.
        width: Override terminal width (stable output in tests).
    """
    return Console(
        file=StringIO(),
        theme=PARCEL_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_policy(satisfied_by: str) -> str:
    """Rich style name for a ``satisfiedBy`` policy."""
    if satisfied_by in ("allOf", "oneOf", "anyOf"):
        return f"pc.policy.{satisfied_by.lower()}"
    return ""
