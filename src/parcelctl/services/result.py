"""ServiceResult and ServiceError: the contract between services and adapters.

Every ``ResolveService`` operation returns a :class:`ServiceResult`. The
CLI renders it; nothing outside the service layer sees raw exceptions
from the resolver.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ServiceError(BaseModel):
    """Structured error payload.

    ``code`` is one of ``SCHEMA_ERROR``, ``UNKNOWN_GROUP``,
    ``CYCLE_DETECTED``, ``YANKED``, ``RESOLUTION_FAILED``, ``NOT_FOUND`` or
    ``READ_ERROR``.
    """

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)


class ServiceResult(BaseModel):
    """Return type of every service operation.

    Attributes:
        ok: Whether the operation succeeded.
        op: Operation name (``"resolve"``, ``"check"``, ``"members"``).
        data: Operation payload on success.
        warnings: Non-fatal findings, e.g. parcels outside every group.
        error: Structured error if ``ok`` is False.
        meta: Optional metadata (telemetry spans when verbose).
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None
    meta: dict[str, Any] | None = None
