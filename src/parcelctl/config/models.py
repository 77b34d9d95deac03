"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: every default lives here and ``parcelctl.toml``
only carries overrides. An empty file (or none at all) is valid.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from parcelctl.domain.types import AnyOfReading


class ResolverConfig(BaseModel):
    """[resolver] section."""

    model_config = {"frozen": True}

    anyof_reading: AnyOfReading = AnyOfReading.REQUIRE_ONE
    allow_yanked: bool = False
    collect_all_errors: bool = False


class ParcelConfig(BaseModel):
    """Root of ``parcelctl.toml``."""

    model_config = {"frozen": True}

    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
