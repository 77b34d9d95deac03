"""Unified settings: CLI flags, env vars, and TOML config in one object.

Priority chain (highest to lowest):
  1. Init kwargs - CLI flags passed by click
  2. Env vars - ``PARCELCTL_*`` prefix, ``__`` for nesting
     (``PARCELCTL_RESOLVER__ANYOF_READING=optional``)
  3. TOML file - ``parcelctl.toml`` discovered via walk-up
  4. Code defaults - baked into :mod:`parcelctl.config.models`
"""

from __future__ import annotations

import threading
import tomllib
from pathlib import Path
from typing import Any

import click
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from parcelctl.config.discovery import find_config
from parcelctl.config.models import ResolverConfig


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Settings source backed by a ``parcelctl.toml`` file."""

    def __init__(self, settings_cls: type[BaseSettings], toml_path: Path | None) -> None:
        super().__init__(settings_cls)
        self._data: dict[str, Any] = {}
        if toml_path and toml_path.is_file():
            try:
                self._data = tomllib.loads(toml_path.read_text(encoding="utf-8"))
            except tomllib.TOMLDecodeError as exc:
                msg = f"Invalid TOML in {toml_path}: {exc}"
                raise click.ClickException(msg) from exc

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        val = self._data.get(field_name)
        return val, field_name, field_name in self._data

    def __call__(self) -> dict[str, Any]:
        return self._data


# TOML path handed to settings_customise_sources during from_cli().
_tls = threading.local()


class ParcelSettings(BaseSettings):
    """Settings for the whole CLI, frozen after construction.

    Stored on ``click.Context.obj`` (via AppContext) at the CLI root.

    Attributes:
        project_root: Directory holding ``parcelctl.toml``, or cwd.
        config_path: The config file actually used, if any.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "PARCELCTL_",
        "env_nested_delimiter": "__",
    }

    project_root: Path = Field(default_factory=Path.cwd)
    config_path: Path | None = None

    # --- CLI flags ---
    json_output: bool = False
    quiet: bool = False
    verbose: bool = False
    log_json: bool = False

    # --- TOML sections ---
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Insert the TOML source between env vars and defaults."""
        return (
            init_settings,
            env_settings,
            TomlSettingsSource(settings_cls, getattr(_tls, "toml_path", None)),
        )

    @classmethod
    def from_cli(
        cls,
        *,
        config_path: str | None = None,
        project_root: Path | None = None,
        **cli_flags: Any,
    ) -> ParcelSettings:
        """Build settings for one CLI invocation.

        An explicit *config_path* that does not exist is ignored, like an
        undiscovered file.
        """
        toml_path: Path | None = None
        if config_path:
            p = Path(config_path)
            if p.is_file():
                toml_path = p
        else:
            toml_path = find_config(project_root)

        root = project_root
        if root is None:
            root = toml_path.parent if toml_path else Path.cwd()

        _tls.toml_path = toml_path
        try:
            return cls(project_root=root, config_path=toml_path, **cli_flags)
        finally:
            _tls.toml_path = None
