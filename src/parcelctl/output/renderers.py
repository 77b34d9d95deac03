"""Operation-specific Rich renderers for ServiceResult.

Each renderer writes to a Rich Console backed by StringIO; the caller
extracts the text via ``get_output(console)``. Renderers are dispatched by
``result.op`` in :func:`render_result`. Unknown ops fall through to a
generic key-value renderer.
"""

from __future__ import annotations

import json as _json
from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text

from parcelctl.output.console import create_console, get_output, style_for_policy

if TYPE_CHECKING:
    from rich.console import Console

    from parcelctl.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich.

    Plain text (no ANSI) when Rich detects no terminal, which is the case
    inside click's CliRunner and in piped output.
    """
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Minimal output for ``--quiet``: one parcel name per line."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op} - {msg}"

    items = result.data.get("parcels") or result.data.get("items")
    if items and isinstance(items, list):
        return "\n".join(str(item["name"]) for item in items if isinstance(item, dict))

    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _status_line(console: Console, result: ServiceResult) -> None:
    label = Text("OK", style="pc.ok")
    op = Text(f"  {result.op}", style="pc.op")
    console.print(label, op, end="")
    console.print()


def _field(console: Console, key: str, value: Any) -> None:
    """Print a single indented key-value field."""
    k = Text(f"  {key}: ", style="pc.key")
    if key in ("parcel", "invoice"):
        v = Text(str(value), style="pc.parcel")
    elif key == "group":
        v = Text(str(value), style="pc.group")
    else:
        v = Text(str(value))
    console.print(k, v, end="")
    console.print()


def _render_meta(console: Console, result: ServiceResult) -> None:
    """Print the meta block, including the stage timing tree."""
    if not result.meta:
        return

    console.print()
    console.print(Text("  meta:", style="dim"))

    for k, v in result.meta.items():
        if k == "telemetry":
            _render_stage(console, v, indent=4)
        else:
            console.print(f"    {k}: {v}")


def _render_stage(console: Console, stage: dict[str, Any], indent: int = 4) -> None:
    prefix = " " * indent
    ms = stage.get("ms", 0.0)
    style = "bold red" if ms > 1000 else "yellow" if ms > 100 else "dim"

    line = f"{prefix}[{style}]{ms:>8.2f}ms[/{style}]  {stage.get('stage', '?')}"
    if outcome := stage.get("outcome"):
        line += f" [{'green' if outcome == 'ok' else 'red'}]{outcome}[/]"
    if counts := stage.get("counts"):
        line += "  (" + ", ".join(f"{k}={v}" for k, v in counts.items()) + ")"
    console.print(line)

    for child in stage.get("stages", []):
        _render_stage(console, child, indent=indent + 4)


def _parcel_table(items: list[dict[str, Any]], *, verbose: bool = False) -> Table:
    """Build a Rich Table of parcels."""
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("Parcel", style="pc.parcel", no_wrap=True)
    table.add_column("Media type")
    table.add_column("Size", justify="right")
    table.add_column("Groups", style="pc.group")
    if verbose:
        table.add_column("Requires")
        table.add_column("SHA-256", style="pc.digest")

    for item in items:
        size = item.get("size")
        row = [
            str(item.get("name", "")),
            str(item.get("media_type", "")),
            "" if size is None else str(size),
            ", ".join(item.get("member_of", [])),
        ]
        if verbose:
            row.append(", ".join(item.get("requires", [])))
            row.append(str(item.get("sha256") or ""))
        table.add_row(*row)

    return table


def _policy_text(satisfied_by: str) -> Text:
    return Text(satisfied_by, style=style_for_policy(satisfied_by))


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    label = Text("ERROR", style="pc.error")
    op = Text(f"  {result.op}", style="pc.op")
    console.print(label, op, Text(" - "), msg)
    if err is None:
        return

    detail = err.detail
    if err.code == "RESOLUTION_FAILED":
        for issue in detail.get("issues", []):
            code = str(issue.get("code", "")).lower().replace("_", "-")
            console.print(f"  [pc.error]{code}[/pc.error]: {issue.get('message', '')}")
    elif err.code == "SCHEMA_ERROR":
        for problem in detail.get("problems", []):
            console.print(f"  {problem.get('location')}: {problem.get('message')}")
    elif err.code == "UNKNOWN_GROUP":
        for ref in detail.get("references", []):
            console.print(
                f"  [pc.group]{ref.get('group')}[/pc.group] "
                f"referenced by {ref.get('source')} ({ref.get('field')})"
            )
    elif verbose and detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in detail.items():
            console.print(f"    {k}: {v}")
    if verbose:
        _render_meta(console, result)


# ── Operation renderers ───────────────────────────────────────────────


def _render_resolve(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render the selected parcels, plus the group report when verbose."""
    d = result.data
    _status_line(console, result)
    _field(console, "invoice", d.get("invoice", ""))
    _field(console, "parcels", d.get("count", 0))
    if d.get("opted_in"):
        _field(console, "opted_in", ", ".join(d["opted_in"]))

    parcels = d.get("parcels", [])
    if parcels:
        console.print()
        console.print(_parcel_table(parcels, verbose=verbose))

    if verbose:
        _field(console, "iterations", d.get("iterations", 0))
        _field(console, "anyof_reading", d.get("anyof_reading", ""))
        console.print()
        table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
        table.add_column("Group", style="pc.group", no_wrap=True)
        table.add_column("Policy")
        table.add_column("Status")
        table.add_column("Selected")
        table.add_column("Required because")
        for group in d.get("groups", []):
            table.add_row(
                str(group.get("name", "")),
                _policy_text(str(group.get("satisfied_by", ""))),
                str(group.get("status", "")),
                ", ".join(group.get("selected", [])),
                ", ".join(group.get("required_because", [])),
            )
        console.print(table)
        _render_meta(console, result)


def _render_check(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render structural check results: counts and the declared groups."""
    d = result.data
    if d.get("healthy"):
        console.print(f"[pc.ok]OK[/pc.ok]  {d.get('invoice', '')} is well-formed.")
    else:
        console.print(
            f"[pc.warning]WARN[/pc.warning]  {d.get('invoice', '')} is well-formed "
            f"with {len(result.warnings)} warning(s)."
        )
    _field(console, "bindle_version", d.get("bindle_version", ""))
    _field(console, "groups", d.get("group_count", 0))
    _field(console, "parcels", d.get("parcel_count", 0))
    _field(console, "edges", d.get("edge_count", 0))
    if d.get("yanked"):
        _field(console, "yanked", True)

    if verbose:
        console.print()
        table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
        table.add_column("Group", style="pc.group", no_wrap=True)
        table.add_column("Policy")
        table.add_column("Required")
        table.add_column("Members", justify="right")
        for group in d.get("groups", []):
            table.add_row(
                str(group.get("name", "")),
                _policy_text(str(group.get("satisfied_by", ""))),
                "yes" if group.get("required") else "no",
                str(group.get("members", 0)),
            )
        console.print(table)
        _render_meta(console, result)


def _render_members(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    d = result.data
    _status_line(console, result)
    _field(console, "group", d.get("group", ""))
    k = Text("  satisfied_by: ", style="pc.key")
    console.print(k, _policy_text(str(d.get("satisfied_by", ""))), end="")
    console.print()
    _field(console, "required", d.get("required", False))
    _field(console, "count", d.get("count", 0))

    items = d.get("items", [])
    if items:
        console.print()
        console.print(_parcel_table(items, verbose=verbose))
    if verbose:
        _render_meta(console, result)


# ── Generic fallback ──────────────────────────────────────────────────


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        if isinstance(value, (dict, list)):
            _field(console, key, _json.dumps(value, separators=(",", ":")))
        else:
            _field(console, key, value)
    if verbose:
        _render_meta(console, result)


# ── Dispatch table ────────────────────────────────────────────────────

_OP_RENDERERS: dict[str, Any] = {
    "resolve": _render_resolve,
    "check": _render_check,
    "members": _render_members,
}
