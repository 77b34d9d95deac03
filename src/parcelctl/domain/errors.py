"""Error taxonomy for invoice validation and resolution.

Two families:

- Structural errors (``SchemaError``, ``UnknownGroupReference``,
  ``CycleDetected``, ``YankedInvoice``) abort before resolution begins.
- ``ResolutionError`` carries every ``ResolutionIssue`` collected during a
  resolution run. A run never yields a partial manifest.

Every error exposes a stable ``code`` and ``to_detail()`` so adapters can
turn it into a structured payload without inspecting the message.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, ClassVar, Literal

from pydantic import BaseModel

from parcelctl.domain.types import display_group

# ---------------------------------------------------------------------------
# Problem records
# ---------------------------------------------------------------------------


class SchemaProblem(BaseModel):
    """One malformed field, located by group name or parcel label name."""

    model_config = {"frozen": True}

    location: str
    message: str


class GroupReference(BaseModel):
    """A reference to an undeclared group."""

    model_config = {"frozen": True}

    group: str
    source: str
    field: Literal["memberOf", "requires", "optIn"]


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ParcelctlError(Exception):
    """Base class for all parcelctl errors."""

    code: ClassVar[str] = "PARCELCTL_ERROR"

    def to_detail(self) -> dict[str, Any]:
        return {}


class StructuralError(ParcelctlError):
    """An invoice that cannot be resolved at all."""


class SchemaError(StructuralError):
    """Malformed or incomplete invoice input."""

    code = "SCHEMA_ERROR"

    def __init__(self, problems: Sequence[SchemaProblem]) -> None:
        if not problems:
            msg = "SchemaError requires at least one problem"
            raise ValueError(msg)
        self.problems: tuple[SchemaProblem, ...] = tuple(problems)
        first = self.problems[0]
        message = f"{first.location}: {first.message}"
        if len(self.problems) > 1:
            message += f" (and {len(self.problems) - 1} more)"
        super().__init__(message)

    @classmethod
    def single(cls, location: str, message: str) -> SchemaError:
        return cls([SchemaProblem(location=location, message=message)])

    def to_detail(self) -> dict[str, Any]:
        return {"problems": [p.model_dump() for p in self.problems]}


class UnknownGroupReference(StructuralError):
    """A condition or opt-in names a group absent from the declared list."""

    code = "UNKNOWN_GROUP"

    def __init__(self, references: Sequence[GroupReference]) -> None:
        if not references:
            msg = "UnknownGroupReference requires at least one reference"
            raise ValueError(msg)
        self.references: tuple[GroupReference, ...] = tuple(references)
        first = self.references[0]
        message = f"Unknown group {first.group!r} referenced by {first.source} ({first.field})"
        if len(self.references) > 1:
            message += f" (and {len(self.references) - 1} more)"
        super().__init__(message)

    @property
    def group(self) -> str:
        """Name of the first unknown group."""
        return self.references[0].group

    def to_detail(self) -> dict[str, Any]:
        return {"references": [r.model_dump() for r in self.references]}


class CycleDetected(StructuralError):
    """Membership and requirement edges form a cycle.

    ``path`` alternates group and parcel names and repeats its first node
    at the end, e.g. ``["A", "p", "B", "q", "A"]``. It is empty when the
    resolver's iteration bound tripped instead.
    """

    code = "CYCLE_DETECTED"

    def __init__(self, path: Sequence[str], *, reason: str | None = None) -> None:
        self.path: tuple[str, ...] = tuple(path)
        self.reason = reason
        if self.path:
            message = "Dependency cycle: " + " -> ".join(self.path)
        else:
            message = reason or "Dependency cycle detected"
        super().__init__(message)

    def to_detail(self) -> dict[str, Any]:
        detail: dict[str, Any] = {"path": list(self.path)}
        if self.reason:
            detail["reason"] = self.reason
        return detail


class YankedInvoice(StructuralError):
    """Resolution was refused because the invoice is yanked."""

    code = "YANKED"

    def __init__(self, invoice: str) -> None:
        self.invoice = invoice
        super().__init__(f"Invoice {invoice} is yanked")

    def to_detail(self) -> dict[str, Any]:
        return {"invoice": self.invoice}


# ---------------------------------------------------------------------------
# Resolution issues
# ---------------------------------------------------------------------------


class ResolutionIssue(BaseModel):
    """One problem found while resolving. Collected, never raised alone."""

    model_config = {"frozen": True}

    code: ClassVar[str] = "RESOLUTION_ISSUE"

    group: str

    @property
    def message(self) -> str:
        return f"Group {display_group(self.group)} failed to resolve"

    def to_detail(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.model_dump(mode="json")}


class UnsatisfiableGroup(ResolutionIssue):
    """A required group that no reachable selection satisfies."""

    code: ClassVar[str] = "UNSATISFIABLE_GROUP"

    reason: str

    @property
    def message(self) -> str:
        return f"Group {display_group(self.group)} cannot be satisfied: {self.reason}"


class OverSatisfied(ResolutionIssue):
    """More than one member selected for a ``oneOf`` group."""

    code: ClassVar[str] = "OVER_SATISFIED"

    selected: tuple[str, ...]

    @property
    def message(self) -> str:
        names = ", ".join(self.selected)
        return f"Group {display_group(self.group)} allows one member but {names} are selected"


class AmbiguousSelection(ResolutionIssue):
    """A ``oneOf`` group with several viable candidates and no decision."""

    code: ClassVar[str] = "AMBIGUOUS_SELECTION"

    candidates: tuple[str, ...]

    @property
    def message(self) -> str:
        names = ", ".join(self.candidates)
        return f"Group {display_group(self.group)} needs a choice among: {names}"


class ResolutionError(ParcelctlError):
    """Resolution failed; ``issues`` holds every problem found in the run."""

    code = "RESOLUTION_FAILED"

    def __init__(self, issues: Sequence[ResolutionIssue]) -> None:
        if not issues:
            msg = "ResolutionError requires at least one issue"
            raise ValueError(msg)
        self.issues: tuple[ResolutionIssue, ...] = tuple(issues)
        noun = "issue" if len(self.issues) == 1 else "issues"
        super().__init__(f"Resolution failed with {len(self.issues)} {noun}")

    def to_detail(self) -> dict[str, Any]:
        return {"issues": [issue.to_detail() for issue in self.issues]}
