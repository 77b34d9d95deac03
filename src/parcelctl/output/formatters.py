"""Output mode selection for ServiceResult.

The CLI prints results for humans (rich tables), for scripts (``--json``),
or as bare parcel names (``--quiet``). :func:`format_result` picks the
renderer; the renderers themselves live in :mod:`parcelctl.output.renderers`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from parcelctl.output.renderers import render_quiet, render_result

if TYPE_CHECKING:
    from parcelctl.services.result import ServiceResult


@dataclass(frozen=True)
class OutputSettings:
    json_output: bool = False
    quiet: bool = False
    verbose: bool = False


def format_result(result: ServiceResult, *, settings: OutputSettings | None = None) -> str:
    """Format *result* according to *settings* (human output by default).

    JSON takes precedence over quiet.
    """
    settings = settings or OutputSettings()
    if settings.json_output:
        return result.model_dump_json(indent=2)
    if settings.quiet:
        return render_quiet(result)
    return render_result(result, verbose=settings.verbose)
