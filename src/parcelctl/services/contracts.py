"""Typed payload contracts for service and adapter boundaries.

Each ``ResolveService`` operation validates its ``data`` payload against
one of these models before returning, so a renamed key fails in tests
instead of surfacing as a broken ``--json`` consumer.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


def dump_validated[T: BaseModel](model_cls: type[T], data: dict[str, Any]) -> dict[str, Any]:
    """Validate *data* against *model_cls* and return a normalized payload dict."""
    model = model_cls.model_validate(data)
    return model.model_dump(mode="json")


class ParcelItem(BaseModel):
    """One selected or listed parcel."""

    model_config = ConfigDict(extra="allow")

    name: str
    media_type: str
    size: int | None = None
    sha256: str | None = None
    member_of: list[str]
    requires: list[str]


class GroupItem(BaseModel):
    """Per-group audit row of a resolution."""

    name: str
    satisfied_by: str
    required: bool
    satisfied: bool
    status: str
    selected: list[str]
    required_because: list[str]


class ResolveResultData(BaseModel):
    """Payload contract for ``ResolveService.resolve``."""

    invoice: str
    count: int
    parcels: list[ParcelItem]
    groups: list[GroupItem]
    iterations: int
    opted_in: list[str]
    anyof_reading: str


class GroupSummary(BaseModel):
    """Declared group as reported by ``check``."""

    name: str
    satisfied_by: str
    required: bool
    members: int


class CheckResultData(BaseModel):
    """Payload contract for ``ResolveService.check``."""

    invoice: str
    bindle_version: str
    yanked: bool
    group_count: int
    parcel_count: int
    edge_count: int
    groups: list[GroupSummary]
    ungrouped: list[str]
    empty_groups: list[str]
    healthy: bool


class MembersResultData(BaseModel):
    """Payload contract for ``ResolveService.members``."""

    invoice: str
    group: str
    satisfied_by: str
    required: bool
    count: int
    items: list[ParcelItem]
