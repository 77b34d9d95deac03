"""Invoice decoding: TOML file to validated :class:`Invoice`.

A thin adapter: tomllib does the decoding, :func:`build_invoice` does the
validation. Nothing here knows about groups or resolution.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from parcelctl.domain.errors import SchemaError
from parcelctl.domain.model import Invoice, build_invoice

INVOICE_FILENAME = "invoice.toml"


def parse_invoice(text: str, *, collect_all: bool = False, source: str = "invoice") -> Invoice:
    """Decode TOML *text* into a validated invoice.

    Raises:
        SchemaError: The text is not valid TOML or the invoice is malformed.
        UnknownGroupReference: A condition names an undeclared group.
    """
    try:
        raw = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise SchemaError.single(source, f"Invalid TOML: {exc}") from exc
    return build_invoice(raw, collect_all=collect_all)


def load_invoice(path: Path, *, collect_all: bool = False) -> Invoice:
    """Read and validate an invoice file.

    A directory is accepted and resolved to its ``invoice.toml``.

    Raises:
        FileNotFoundError: No invoice file at *path*.
        OSError: The file exists but cannot be read.
        SchemaError: The file is not UTF-8, not TOML, or not a valid invoice.
    """
    if path.is_dir():
        path = path / INVOICE_FILENAME
    if not path.is_file():
        raise FileNotFoundError(path)
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise SchemaError.single(str(path), "Invoice is not valid UTF-8") from exc
    return parse_invoice(text, collect_all=collect_all, source=str(path))
