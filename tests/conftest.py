"""Shared pytest fixtures and invoice builders for parcelctl tests."""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Generator, Iterable
from pathlib import Path
from typing import Any

import pytest
import structlog
from click.testing import CliRunner

from parcelctl.config.settings import ParcelSettings
from parcelctl.domain.model import Invoice, build_invoice
from parcelctl.services.telemetry import _open_stage, disable_telemetry

# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def digest(name: str) -> str:
    """Stable fake sha256 for a parcel name."""
    return hashlib.sha256(name.encode()).hexdigest()


def group(name: str, satisfied_by: str = "allOf", *, required: bool = False) -> dict[str, Any]:
    return {"name": name, "satisfiedBy": satisfied_by, "required": required}


def parcel(
    name: str,
    *,
    member_of: Iterable[str] | None = None,
    requires: Iterable[str] | None = None,
    size: int = 100,
    media_type: str = "application/octet-stream",
) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "label": {
            "name": name,
            "mediaType": media_type,
            "size": size,
            "sha256": digest(name),
        }
    }
    conditions: dict[str, Any] = {}
    if member_of is not None:
        conditions["memberOf"] = list(member_of)
    if requires is not None:
        conditions["requires"] = list(requires)
    if conditions:
        entry["conditions"] = conditions
    return entry


def invoice_data(
    *,
    groups: Iterable[dict[str, Any]] = (),
    parcels: Iterable[dict[str, Any]] = (),
    name: str = "example",
    version: str = "1.0.0",
    **extra: Any,
) -> dict[str, Any]:
    """Raw invoice mapping as a TOML decoder would produce it."""
    data: dict[str, Any] = {
        "bindleVersion": "1.0.0",
        "bindle": {"name": name, "version": version},
        **extra,
    }
    groups = list(groups)
    parcels = list(parcels)
    if groups:
        data["group"] = groups
    if parcels:
        data["parcel"] = parcels
    return data


def make_invoice(**kwargs: Any) -> Invoice:
    return build_invoice(invoice_data(**kwargs))


def scenario_data() -> dict[str, Any]:
    """server(allOf), cli(oneOf, required), utility(anyOf) with four parcels."""
    return invoice_data(
        groups=[
            group("server", "allOf"),
            group("cli", "oneOf", required=True),
            group("utility", "anyOf"),
        ],
        parcels=[
            parcel("daemon", member_of=["server"], requires=["utility"]),
            parcel("first", member_of=["cli", "utility"]),
            parcel("second", member_of=["cli"]),
            parcel("third", member_of=["utility"]),
        ],
    )


SCENARIO_TOML = """\
bindleVersion = "1.0.0"

[bindle]
name = "example"
version = "1.0.0"
description = "Worked example"

[[group]]
name = "server"
satisfiedBy = "allOf"

[[group]]
name = "cli"
satisfiedBy = "oneOf"
required = true

[[group]]
name = "utility"
satisfiedBy = "anyOf"

[[parcel]]
label.name = "daemon"
label.mediaType = "application/x-executable"
label.size = 2048
label.sha256 = "{daemon}"
conditions.memberOf = ["server"]
conditions.requires = ["utility"]

[[parcel]]
label.name = "first"
label.size = 10
label.sha256 = "{first}"
conditions.memberOf = ["cli", "utility"]

[[parcel]]
label.name = "second"
label.size = 20
label.sha256 = "{second}"
conditions.memberOf = ["cli"]

[[parcel]]
label.name = "third"
label.size = 30
label.sha256 = "{third}"
conditions.memberOf = ["utility"]
""".format(**{n: digest(n) for n in ("daemon", "first", "second", "third")})


CYCLE_TOML = """\
bindleVersion = "1.0.0"

[bindle]
name = "loop"
version = "0.1.0"

[[group]]
name = "A"

[[group]]
name = "B"

[[parcel]]
label.name = "p"
label.sha256 = "{p}"
conditions.memberOf = ["A"]
conditions.requires = ["B"]

[[parcel]]
label.name = "q"
label.sha256 = "{q}"
conditions.memberOf = ["B"]
conditions.requires = ["A"]
""".format(p=digest("p"), q=digest("q"))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def scenario() -> Invoice:
    """The worked example invoice, validated."""
    return build_invoice(scenario_data())


@pytest.fixture
def scenario_file(tmp_path: Path) -> Path:
    path = tmp_path / "invoice.toml"
    path.write_text(SCENARIO_TOML, encoding="utf-8")
    return path


@pytest.fixture
def cycle_file(tmp_path: Path) -> Path:
    path = tmp_path / "cycle.toml"
    path.write_text(CYCLE_TOML, encoding="utf-8")
    return path


@pytest.fixture
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ParcelSettings:
    """Default settings isolated from the caller's environment."""
    monkeypatch.delenv("PARCELCTL_CONFIG", raising=False)
    for var in ("PARCELCTL_RESOLVER__ANYOF_READING", "PARCELCTL_RESOLVER__ALLOW_YANKED"):
        monkeypatch.delenv(var, raising=False)
    return ParcelSettings.from_cli(project_root=tmp_path)


@pytest.fixture
def _isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run from an empty temp directory so no parcelctl.toml is discovered."""
    monkeypatch.delenv("PARCELCTL_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture(autouse=True)
def _reset_telemetry() -> Generator[None]:
    """The CLI enables telemetry under -v; keep it from leaking between tests."""
    yield
    disable_telemetry()
    _open_stage.set(None)


@pytest.fixture(autouse=True)
def _restore_root_logging() -> Generator[None]:
    """CLI invocations point the root handler at CliRunner's streams; undo that."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    logging.getLogger("parcelctl").setLevel(logging.NOTSET)
    structlog.reset_defaults()
