"""Stage timing for the resolve pipeline.

With ``--verbose`` each traced service operation records a tree of stages
(``load_invoice``, ``build_graph``, ``resolve``) with their durations and
counters. The resolver reports its own counters (iterations, chooser calls,
issues) into whichever stage is open via :func:`count` and :func:`record`,
so it never needs to know whether telemetry is on. The tree lands in
``ServiceResult.meta["telemetry"]``.
"""

from __future__ import annotations

import functools
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, ParamSpec, TypeVar

import structlog

from parcelctl.services.result import ServiceResult

log = structlog.get_logger("parcelctl.telemetry")

_enabled: ContextVar[bool] = ContextVar("_enabled", default=False)
_open_stage: ContextVar[Stage | None] = ContextVar("_open_stage", default=None)


@dataclass
class Stage:
    """One timed step of an operation, with integer counters."""

    name: str
    counters: dict[str, int] = field(default_factory=dict)
    stages: list[Stage] = field(default_factory=list)
    outcome: str | None = None
    _started: float = field(default_factory=time.perf_counter, repr=False)
    _elapsed: float | None = field(default=None, repr=False)

    @property
    def ms(self) -> float:
        if self._elapsed is None:
            return 0.0
        return self._elapsed * 1000

    def finish(self) -> None:
        self._elapsed = time.perf_counter() - self._started

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"stage": self.name, "ms": round(self.ms, 2)}
        if self.outcome is not None:
            d["outcome"] = self.outcome
        if self.counters:
            d["counts"] = dict(self.counters)
        if self.stages:
            d["stages"] = [s.to_dict() for s in self.stages]
        return d


@contextmanager
def stage(name: str) -> Generator[Stage | None]:
    """Time a nested stage; yields None outside a traced operation."""
    parent = _open_stage.get() if _enabled.get() else None
    if parent is None:
        yield None
        return

    child = Stage(name=name)
    parent.stages.append(child)
    token = _open_stage.set(child)
    try:
        yield child
    finally:
        child.finish()
        _open_stage.reset(token)


def count(key: str, n: int = 1) -> None:
    """Add *n* to a counter of the open stage. No-op when nothing is traced."""
    current = _open_stage.get()
    if current is not None:
        current.counters[key] = current.counters.get(key, 0) + n


def record(key: str, value: int) -> None:
    """Set a counter of the open stage. No-op when nothing is traced."""
    current = _open_stage.get()
    if current is not None:
        current.counters[key] = value


_P = ParamSpec("_P")
_R = TypeVar("_R")


def traced(func: Callable[_P, _R]) -> Callable[_P, _R]:  # noqa: UP047
    """Record a service operation as the root stage of its ``ServiceResult``.

    The root stage is named after the operation and its ``outcome`` is
    ``ok`` or the error code of a failed result.
    """

    @functools.wraps(func)
    def wrapper(*args: _P.args, **kwargs: _P.kwargs) -> _R:
        if not _enabled.get():
            return func(*args, **kwargs)

        root = Stage(name=func.__name__)
        token = _open_stage.set(root)
        try:
            result = func(*args, **kwargs)
        finally:
            root.finish()
            _open_stage.reset(token)

        if isinstance(result, ServiceResult):
            root.outcome = "ok" if result.ok else (result.error.code if result.error else "error")
            meta = {**(result.meta or {}), "telemetry": root.to_dict()}
            result = result.model_copy(update={"meta": meta})  # type: ignore[assignment]
        log.debug("stage.finished", stage=root.name, ms=round(root.ms, 2), outcome=root.outcome)
        return result

    return wrapper


def enable_telemetry() -> None:
    """Turn stage recording on (AppContext does this under ``--verbose``)."""
    _enabled.set(True)


def disable_telemetry() -> None:
    _enabled.set(False)
