"""Config file discovery and loading.

Walks up from the working directory looking for ``parcelctl.toml``, the
way git finds ``.git/``. ``PARCELCTL_CONFIG`` and ``--config`` override
the walk.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from parcelctl.config.models import ParcelConfig

CONFIG_FILENAME = "parcelctl.toml"
CONFIG_ENV_VAR = "PARCELCTL_CONFIG"


def find_config(start: Path | None = None) -> Path | None:
    """Return the nearest ``parcelctl.toml`` at or above *start* (default: cwd).

    ``PARCELCTL_CONFIG`` wins when set; if it points at a missing file the
    result is None rather than a fallback to the walk.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        p = Path(env_path)
        return p if p.is_file() else None

    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        if current.parent == current:
            return None
        current = current.parent


def load_config(path: Path | None = None, cwd: Path | None = None) -> ParcelConfig:
    """Load and validate a config file; defaults when none is found."""
    if path is None:
        path = find_config(cwd)
    if path is None:
        return ParcelConfig()

    data: dict[str, Any] = tomllib.loads(path.read_text(encoding="utf-8"))
    return ParcelConfig.model_validate(data)
