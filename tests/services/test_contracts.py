"""Tests for service payload contracts."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from parcelctl.config.settings import ParcelSettings
from parcelctl.services.contracts import (
    CheckResultData,
    MembersResultData,
    ResolveResultData,
    dump_validated,
)
from parcelctl.services.resolve import ResolveService


class TestDumpValidated:
    def test_missing_key_fails(self) -> None:
        with pytest.raises(ValidationError):
            dump_validated(MembersResultData, {"invoice": "x/1.0.0", "group": "cli"})

    def test_extra_parcel_fields_kept(self) -> None:
        data = dump_validated(
            MembersResultData,
            {
                "invoice": "x/1.0.0",
                "group": "cli",
                "satisfied_by": "oneOf",
                "required": True,
                "count": 1,
                "items": [
                    {
                        "name": "a",
                        "media_type": "text/plain",
                        "member_of": ["cli"],
                        "requires": [],
                        "origin": "upstream",
                    }
                ],
            },
        )
        assert data["items"][0]["origin"] == "upstream"
        assert data["items"][0]["size"] is None


class TestServicePayloads:
    def test_resolve_payload_matches_contract(
        self, settings: ParcelSettings, scenario_file: Path
    ) -> None:
        result = ResolveService(settings).resolve(scenario_file, choices={"cli": "first"})
        ResolveResultData.model_validate(result.data)

    def test_check_payload_matches_contract(
        self, settings: ParcelSettings, scenario_file: Path
    ) -> None:
        result = ResolveService(settings).check(scenario_file)
        CheckResultData.model_validate(result.data)
