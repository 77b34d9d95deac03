"""Tests for the Rich renderers behind human and quiet output."""

from __future__ import annotations

import re
from typing import Any

from parcelctl.output.console import create_console, get_output, style_for_policy
from parcelctl.output.renderers import render_quiet, render_result
from parcelctl.services.result import ServiceError, ServiceResult


def _parcel(name: str, **extra: Any) -> dict[str, Any]:
    item = {
        "name": name,
        "media_type": "application/octet-stream",
        "size": 10,
        "sha256": "ab" * 8,
        "member_of": ["cli"],
        "requires": [],
    }
    item.update(extra)
    return item


def _resolve_result(**extra: Any) -> ServiceResult:
    data = {
        "invoice": "example/1.0.0",
        "count": 2,
        "parcels": [_parcel("first"), _parcel("daemon", requires=["utility"], size=None)],
        "groups": [
            {
                "name": "<global>",
                "satisfied_by": "allOf",
                "status": "satisfied",
                "selected": [],
                "required_because": ["global group"],
            },
            {
                "name": "cli",
                "satisfied_by": "oneOf",
                "status": "satisfied",
                "selected": ["first"],
                "required_because": ["declared required"],
            },
        ],
        "iterations": 2,
        "opted_in": [],
        "anyof_reading": "require-one",
    }
    data.update(extra)
    return ServiceResult(ok=True, op="resolve", data=data)


def _error(code: str, message: str, detail: dict[str, Any]) -> ServiceResult:
    return ServiceResult(
        ok=False,
        op="resolve",
        error=ServiceError(code=code, message=message, detail=detail),
    )


class TestConsole:
    def test_plain_text_outside_terminal(self) -> None:
        console = create_console()
        console.print("[pc.ok]OK[/pc.ok]")
        assert get_output(console) == "OK\n"

    def test_policy_styles(self) -> None:
        assert style_for_policy("oneOf") == "pc.policy.oneof"
        assert style_for_policy("AllOf") == ""
        assert style_for_policy("bogus") == ""


class TestRenderResolve:
    def test_summary_and_table(self) -> None:
        output = render_result(_resolve_result())
        assert output.startswith("OK")
        assert "example/1.0.0" in output
        assert re.search(r"parcels:\s+2", output)
        assert "Parcel" in output
        assert "first" in output
        assert "SHA-256" not in output
        assert "Required because" not in output

    def test_verbose_adds_report(self) -> None:
        output = render_result(_resolve_result(), verbose=True)
        assert "SHA-256" in output
        assert "Required because" in output
        assert "declared required" in output
        assert re.search(r"iterations:\s+2", output)

    def test_opted_in_listed(self) -> None:
        output = render_result(_resolve_result(opted_in=["server", "tools"]))
        assert "server, tools" in output

    def test_empty_selection(self) -> None:
        output = render_result(_resolve_result(count=0, parcels=[]))
        assert "Parcel" not in output

    def test_telemetry_tree(self) -> None:
        result = _resolve_result().model_copy(
            update={
                "meta": {
                    "telemetry": {
                        "stage": "resolve",
                        "ms": 3.5,
                        "outcome": "ok",
                        "stages": [
                            {"stage": "load_invoice", "ms": 0.4, "counts": {"parcels": 4}},
                            {
                                "stage": "resolve",
                                "ms": 1.25,
                                "counts": {"chooser_calls": 1, "iterations": 2},
                            },
                        ],
                    }
                }
            }
        )
        output = render_result(result, verbose=True)
        assert "meta:" in output
        assert "3.50ms  resolve ok" in output
        assert "0.40ms  load_invoice  (parcels=4)" in output
        assert "1.25ms  resolve  (chooser_calls=1, iterations=2)" in output

    def test_failed_stage_outcome(self) -> None:
        result = ServiceResult(
            ok=False,
            op="resolve",
            error=ServiceError(code="RESOLUTION_FAILED", message="1 resolution problem"),
            meta={"telemetry": {"stage": "resolve", "ms": 2.0, "outcome": "RESOLUTION_FAILED"}},
        )
        output = render_result(result, verbose=True)
        assert "2.00ms  resolve RESOLUTION_FAILED" in output


class TestRenderCheck:
    def _check(self, *, healthy: bool, warnings: list[str]) -> ServiceResult:
        return ServiceResult(
            ok=True,
            op="check",
            data={
                "invoice": "example/1.0.0",
                "bindle_version": "1.0.0",
                "yanked": False,
                "group_count": 1,
                "parcel_count": 1,
                "edge_count": 1,
                "groups": [
                    {"name": "cli", "satisfied_by": "oneOf", "required": True, "members": 1}
                ],
                "healthy": healthy,
            },
            warnings=warnings,
        )

    def test_healthy(self) -> None:
        output = render_result(self._check(healthy=True, warnings=[]))
        assert output.startswith("OK  example/1.0.0 is well-formed.")

    def test_warnings(self) -> None:
        output = render_result(self._check(healthy=False, warnings=["x", "y"]))
        assert "WARN  example/1.0.0 is well-formed with 2 warning(s)." in output

    def test_verbose_group_table(self) -> None:
        output = render_result(self._check(healthy=True, warnings=[]), verbose=True)
        assert "Members" in output
        assert "yes" in output


class TestRenderErrors:
    def test_resolution_issues(self) -> None:
        output = render_result(
            _error(
                "RESOLUTION_FAILED",
                "Resolution failed with 1 issue",
                {"issues": [{"code": "AMBIGUOUS_SELECTION", "message": "pick one"}]},
            )
        )
        assert output.startswith("ERROR")
        assert "ambiguous-selection: pick one" in output

    def test_schema_problems(self) -> None:
        output = render_result(
            _error(
                "SCHEMA_ERROR",
                "Invalid invoice",
                {"problems": [{"location": "parcel[0].label", "message": "missing sha256"}]},
            )
        )
        assert "parcel[0].label: missing sha256" in output

    def test_unknown_group_references(self) -> None:
        output = render_result(
            _error(
                "UNKNOWN_GROUP",
                "Unknown group",
                {"references": [{"group": "ghost", "source": "daemon", "field": "requires"}]},
            )
        )
        assert "ghost referenced by daemon (requires)" in output

    def test_detail_only_when_verbose(self) -> None:
        result = _error("NOT_FOUND", "No invoice found at x", {"path": "x"})
        assert "detail" not in render_result(result)
        assert re.search(r"path: x", render_result(result, verbose=True))


class TestRenderMembersAndGeneric:
    def test_members(self) -> None:
        result = ServiceResult(
            ok=True,
            op="members",
            data={
                "invoice": "example/1.0.0",
                "group": "utility",
                "satisfied_by": "anyOf",
                "required": False,
                "count": 1,
                "items": [_parcel("third", member_of=["utility"])],
            },
        )
        output = render_result(result)
        assert re.search(r"group:\s+utility", output)
        assert "anyOf" in output
        assert "third" in output

    def test_generic_fallback(self) -> None:
        result = ServiceResult(ok=True, op="other", data={"n": 1, "xs": [1, 2]})
        output = render_result(result)
        assert re.search(r"n:\s+1", output)
        assert "[1,2]" in output


class TestRenderQuiet:
    def test_parcels(self) -> None:
        assert render_quiet(_resolve_result()) == "first\ndaemon"

    def test_items(self) -> None:
        result = ServiceResult(ok=True, op="members", data={"items": [{"name": "x"}]})
        assert render_quiet(result) == "x"

    def test_no_items(self) -> None:
        assert render_quiet(ServiceResult(ok=True, op="check")) == "OK: check"

    def test_error(self) -> None:
        result = _error("NOT_FOUND", "gone", {})
        assert render_quiet(result) == "ERROR: resolve - gone"
