"""ResolveService: invoice file in, ServiceResult out.

Wraps the decode → graph → resolve pipeline for the CLI. Domain exceptions
are caught here and only here; callers receive a :class:`ServiceResult`
whose ``error.code`` is the exception's ``code``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from parcelctl.config.logging import invoice_scope
from parcelctl.domain.errors import ParcelctlError
from parcelctl.domain.model import ensure_not_yanked
from parcelctl.domain.types import GLOBAL_GROUP, GLOBAL_GROUP_DISPLAY, AnyOfReading, display_group
from parcelctl.infrastructure.graph.engine import build_graph
from parcelctl.infrastructure.manifest import load_invoice
from parcelctl.services.base import BaseService
from parcelctl.services.contracts import (
    CheckResultData,
    MembersResultData,
    ResolveResultData,
    dump_validated,
)
from parcelctl.services.resolver import Resolver, SelectionPolicy, chooser_from_map
from parcelctl.services.result import ServiceError, ServiceResult
from parcelctl.services.telemetry import record, stage, traced

if TYPE_CHECKING:
    from parcelctl.domain.model import Invoice, Parcel
    from parcelctl.infrastructure.graph.engine import DependencyGraph
    from parcelctl.services.resolver import Chooser


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------


def _parcel_item(parcel: Parcel) -> dict[str, Any]:
    return {
        "name": parcel.name,
        "media_type": parcel.label.media_type,
        "size": parcel.label.size,
        "sha256": parcel.label.sha256,
        "member_of": [display_group(g) for g in parcel.member_groups()],
        "requires": list(parcel.required_groups()),
    }


def structure_warnings(graph: DependencyGraph) -> list[str]:
    """Findings that do not block resolution but usually indicate a mistake."""
    warnings = [
        f"Parcel '{name}' has an empty memberOf and can never be selected"
        for name in graph.ungrouped_parcels()
    ]
    warnings.extend(
        f"Group '{name}' has no members"
        for name, members in graph.members.items()
        if name != GLOBAL_GROUP and not members
    )
    return warnings


# ---------------------------------------------------------------------------
# ResolveService
# ---------------------------------------------------------------------------


class ResolveService(BaseService):
    """Resolution, structural checks, and group listings for invoice files."""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @traced
    @invoice_scope
    def resolve(
        self,
        path: Path,
        *,
        opted_in: Iterable[str] = (),
        choices: Mapping[str, str] | None = None,
        chooser: Chooser | None = None,
        anyof_reading: AnyOfReading | str | None = None,
        allow_yanked: bool | None = None,
    ) -> ServiceResult:
        """Resolve the invoice at *path* into its selected parcels.

        ``choices`` (group → parcel) answers ambiguities non-interactively;
        an explicit ``chooser`` takes precedence over it. Unset
        ``anyof_reading`` and ``allow_yanked`` fall back to the
        ``[resolver]`` settings.
        """
        op = "resolve"
        cfg = self._settings.resolver
        reading = AnyOfReading(anyof_reading or cfg.anyof_reading)
        yanked_ok = cfg.allow_yanked if allow_yanked is None else allow_yanked
        answers = dict(choices or {})
        warnings: list[str] = []

        loaded = self._load(op, path)
        if isinstance(loaded, ServiceResult):
            return loaded
        invoice = loaded

        policy = SelectionPolicy(
            opted_in=frozenset(opted_in),
            chooser=chooser or chooser_from_map(answers),
            anyof_reading=reading,
        )
        try:
            ensure_not_yanked(invoice, allow_yanked=yanked_ok)
            if invoice.yanked:
                warnings.append(f"Invoice {invoice.name} is yanked")
            with stage("build_graph"):
                graph = build_graph(invoice)
                record("edges", graph.graph.number_of_edges())
            warnings.extend(structure_warnings(graph))
            warnings.extend(
                f"Choice for undeclared group '{name}' ignored"
                for name in answers
                if name not in graph.groups
            )
            with stage("resolve"):
                manifest = Resolver(graph, policy).resolve()
        except ParcelctlError as exc:
            return self._failure(op, exc, warnings=warnings)

        data = {
            "invoice": manifest.invoice,
            "count": len(manifest.parcels),
            "parcels": [_parcel_item(p) for p in manifest.parcels],
            "groups": [
                {**entry.model_dump(mode="json"), "name": entry.display_name}
                for entry in manifest.report
            ],
            "iterations": manifest.iterations,
            "opted_in": sorted(policy.opted_in),
            "anyof_reading": str(reading),
        }
        return ServiceResult(
            ok=True,
            op=op,
            data=dump_validated(ResolveResultData, data),
            warnings=warnings,
        )

    @traced
    @invoice_scope
    def check(self, path: Path) -> ServiceResult:
        """Validate model, references, and cycles without resolving."""
        op = "check"
        loaded = self._load(op, path)
        if isinstance(loaded, ServiceResult):
            return loaded
        invoice = loaded

        try:
            with stage("build_graph"):
                graph = build_graph(invoice)
                record("edges", graph.graph.number_of_edges())
        except ParcelctlError as exc:
            return self._failure(op, exc)

        warnings = structure_warnings(graph)
        if invoice.yanked:
            warnings.insert(0, f"Invoice {invoice.name} is yanked")

        data = {
            "invoice": invoice.name,
            "bindle_version": invoice.bindle_version,
            "yanked": invoice.yanked,
            "group_count": len(invoice.groups),
            "parcel_count": len(invoice.parcels),
            "edge_count": graph.graph.number_of_edges(),
            "groups": [
                {
                    "name": display_group(name),
                    "satisfied_by": str(group.satisfied_by),
                    "required": group.required,
                    "members": len(graph.members[name]),
                }
                for name, group in graph.groups.items()
            ],
            "ungrouped": list(graph.ungrouped_parcels()),
            "empty_groups": [
                name
                for name, members in graph.members.items()
                if name != GLOBAL_GROUP and not members
            ],
            "healthy": not warnings,
        }
        return ServiceResult(
            ok=True,
            op=op,
            data=dump_validated(CheckResultData, data),
            warnings=warnings,
        )

    @traced
    @invoice_scope
    def members(self, path: Path, group: str | None = None) -> ServiceResult:
        """List the members of *group* (the global group when omitted)."""
        op = "members"
        name = GLOBAL_GROUP if group is None or group == GLOBAL_GROUP_DISPLAY else group

        loaded = self._load(op, path)
        if isinstance(loaded, ServiceResult):
            return loaded
        invoice = loaded

        try:
            graph = build_graph(invoice, check_cycles=False)
        except ParcelctlError as exc:
            return self._failure(op, exc)

        if name not in graph.groups:
            return ServiceResult(
                ok=False,
                op=op,
                error=ServiceError(
                    code="NOT_FOUND",
                    message=f"No group named '{name}' in {invoice.name}",
                    detail={"group": name, "invoice": invoice.name},
                ),
            )

        declared = graph.groups[name]
        items = [_parcel_item(graph.parcels[m]) for m in graph.members[name]]
        data = {
            "invoice": invoice.name,
            "group": display_group(name),
            "satisfied_by": str(declared.satisfied_by),
            "required": declared.required,
            "count": len(items),
            "items": items,
        }
        return ServiceResult(ok=True, op=op, data=dump_validated(MembersResultData, data))

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _load(self, op: str, path: Path) -> Invoice | ServiceResult:
        """Decode and validate the invoice, or return the failed result."""
        collect_all = self._settings.resolver.collect_all_errors
        try:
            with stage("load_invoice"):
                invoice = load_invoice(Path(path), collect_all=collect_all)
                record("parcels", len(invoice.parcels))
                record("groups", len(invoice.groups))
        except FileNotFoundError:
            return ServiceResult(
                ok=False,
                op=op,
                error=ServiceError(
                    code="NOT_FOUND",
                    message=f"No invoice found at {path}",
                    detail={"path": str(path)},
                ),
            )
        except OSError as exc:
            return ServiceResult(
                ok=False,
                op=op,
                error=ServiceError(
                    code="READ_ERROR",
                    message=f"Cannot read invoice at {path}: {exc.strerror or exc}",
                    detail={"path": str(path), "errno": exc.errno},
                ),
            )
        except ParcelctlError as exc:
            return self._failure(op, exc)
        return invoice

