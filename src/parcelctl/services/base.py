"""BaseService: shared foundation for parcelctl services.

Services receive resolved :class:`ParcelSettings` at construction and
return :class:`ServiceResult` from every public operation.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from parcelctl.services.result import ServiceError, ServiceResult

if TYPE_CHECKING:
    from parcelctl.config.settings import ParcelSettings
    from parcelctl.domain.errors import ParcelctlError

logger = logging.getLogger(__name__)


class BaseService:
    """Base for service-layer classes.

    Usage::

        class ResolveService(BaseService):
            def resolve(self, path: Path) -> ServiceResult:
                ...
    """

    def __init__(self, settings: ParcelSettings | None = None) -> None:
        if settings is None:
            from parcelctl.config.settings import ParcelSettings

            settings = ParcelSettings()
        self._settings = settings

    @property
    def settings(self) -> ParcelSettings:
        return self._settings

    @staticmethod
    def _failure(
        op: str,
        exc: ParcelctlError,
        *,
        warnings: list[str] | None = None,
        meta: dict[str, Any] | None = None,
    ) -> ServiceResult:
        """Translate a domain exception into a failed result."""
        logger.debug("%s failed: %s %s", op, exc.code, exc)
        return ServiceResult(
            ok=False,
            op=op,
            warnings=warnings or [],
            error=ServiceError(code=exc.code, message=str(exc), detail=exc.to_detail()),
            meta=meta,
        )
