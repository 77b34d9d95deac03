"""structlog setup for parcelctl.

Everything goes to stderr; stdout carries only results. ``--log-json``
switches the console renderer for one JSON object per line, and stdlib
loggers (networkx, our own ``logging.getLogger`` users) are routed through
the same processors so both kinds of line look alike.

Service operations run inside :func:`invoice_scope`, so every line logged
while an invoice is being decoded, graphed or resolved carries ``op`` and
``invoice_path`` without the resolver having to pass them around.
"""

from __future__ import annotations

import functools
import logging
import sys
from collections.abc import Callable
from typing import Any, Concatenate, ParamSpec, TypeVar

import structlog

LOGGER_NAME = "parcelctl"

# Third-party loggers held at WARNING even under --verbose.
_QUIET_LIBRARIES = ("networkx",)

_P = ParamSpec("_P")
_R = TypeVar("_R")


def _processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_json: bool) -> structlog.types.Processor:
    if log_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def configure_logging(*, verbose: bool = False, log_json: bool = False) -> None:
    """Route structlog and stdlib logging to a single stderr handler.

    Safe to call more than once: the root handler is replaced, not added.
    """
    shared = _processors()
    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(log_json),
            ],
        )
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(logging.WARNING)

    logging.getLogger(LOGGER_NAME).setLevel(logging.DEBUG if verbose else logging.WARNING)
    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)


def invoice_scope(
    func: Callable[Concatenate[Any, Any, _P], _R],
) -> Callable[Concatenate[Any, Any, _P], _R]:
    """Bind ``op`` and ``invoice_path`` for a service method taking ``(self, path, ...)``."""

    @functools.wraps(func)
    def wrapper(self: Any, path: Any, /, *args: _P.args, **kwargs: _P.kwargs) -> _R:
        with structlog.contextvars.bound_contextvars(op=func.__name__, invoice_path=str(path)):
            return func(self, path, *args, **kwargs)

    return wrapper
