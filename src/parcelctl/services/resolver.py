"""Resolver: fixpoint computation of an invoice's parcel selection.

State per run (never shared between runs):

- ``required``: groups that must be satisfied, each with the reasons it
  became required (``global``, ``declared``, ``opted-in``, ``parcel:<name>``).
- ``selection``: selected parcel names.

Each iteration makes ordered passes over the required groups, each pass in
declaration order:

1. ``allOf``: select every member.
2. ``oneOf`` with no selected member once step 1 is done: auto-select a
   sole viable candidate, otherwise ask the chooser (at most once per
   group per run).
3. ``anyOf``: never selected automatically.
4. Parcels selected so far add the groups they require.

When an iteration changes nothing, required ``anyOf`` groups still lacking
a member (``require-one`` reading) are offered to the chooser once. The
loop ends at a fixpoint; every required group is then re-evaluated and any
failure is reported. Problems are collected across the whole run and
raised together as :class:`ResolutionError`.

The iteration bound ``|groups| + |parcels| + 1`` is never reached by a
well-formed graph, since every iteration that changes state adds a group or
a parcel. Exceeding it is reported as :class:`CycleDetected`.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel

from parcelctl.domain.errors import (
    AmbiguousSelection,
    CycleDetected,
    GroupReference,
    OverSatisfied,
    ResolutionError,
    ResolutionIssue,
    UnknownGroupReference,
    UnsatisfiableGroup,
)
from parcelctl.domain.model import Group, Label, Parcel, ensure_not_yanked
from parcelctl.domain.satisfaction import SatisfactionEvaluator, selected_members
from parcelctl.domain.types import (
    GLOBAL_GROUP,
    SKIP,
    AnyOfReading,
    GroupStatus,
    SatisfiedBy,
    Skip,
    Verdict,
    display_group,
)
from parcelctl.services.telemetry import count, record

if TYPE_CHECKING:
    from parcelctl.domain.model import Invoice
    from parcelctl.infrastructure.graph.engine import DependencyGraph

log = structlog.get_logger(__name__)

type Chooser = Callable[[Group, tuple[Parcel, ...]], Parcel | str | Skip]

REASON_GLOBAL = "global"
REASON_DECLARED = "declared"
REASON_OPTED_IN = "opted-in"


# ---------------------------------------------------------------------------
# Choosers and policy
# ---------------------------------------------------------------------------


def skip_all(group: Group, candidates: tuple[Parcel, ...]) -> Skip:
    """Chooser that never decides."""
    return SKIP


def chooser_from_map(choices: Mapping[str, str]) -> Chooser:
    """Chooser answering from a ``group name -> parcel name`` map.

    Groups absent from the map are skipped, so an interactive caller can
    collect the reported ambiguities, fill in the map, and resolve again.
    """
    answers = dict(choices)

    def choose(group: Group, candidates: tuple[Parcel, ...]) -> str | Skip:
        return answers.get(group.name, SKIP)

    return choose


@dataclass(frozen=True)
class SelectionPolicy:
    """Caller decisions for one resolution run.

    Attributes:
        opted_in: Groups required in addition to the root-required set.
        chooser: Decides ``oneOf`` ambiguities and deferred ``anyOf`` groups.
        anyof_reading: How ``anyOf`` groups behave once required.
    """

    opted_in: frozenset[str] = frozenset()
    chooser: Chooser = skip_all
    anyof_reading: AnyOfReading = AnyOfReading.REQUIRE_ONE

    def __post_init__(self) -> None:
        opted_in = self.opted_in
        if isinstance(opted_in, str):
            opted_in = (opted_in,)
        object.__setattr__(self, "opted_in", frozenset(opted_in))
        object.__setattr__(self, "anyof_reading", AnyOfReading(self.anyof_reading))


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


class GroupReport(BaseModel):
    """Audit record of one group after resolution."""

    model_config = {"frozen": True}

    name: str
    satisfied_by: SatisfiedBy
    required: bool
    satisfied: bool
    status: GroupStatus
    selected: tuple[str, ...] = ()
    required_because: tuple[str, ...] = ()

    @property
    def display_name(self) -> str:
        return display_group(self.name)


class ResolvedManifest(BaseModel):
    """Successful resolution: selected parcels plus a per-group report.

    ``parcels`` keeps invoice declaration order, so identical inputs and
    chooser answers always serialize identically.
    """

    model_config = {"frozen": True}

    invoice: str
    parcels: tuple[Parcel, ...]
    report: tuple[GroupReport, ...]
    iterations: int

    @property
    def labels(self) -> tuple[Label, ...]:
        return tuple(p.label for p in self.parcels)

    @property
    def parcel_names(self) -> tuple[str, ...]:
        return tuple(p.name for p in self.parcels)

    def group_report(self, name: str) -> GroupReport:
        for entry in self.report:
            if entry.name == name:
                return entry
        raise KeyError(name)


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


@dataclass
class _ResolutionState:
    required: dict[str, list[str]] = field(default_factory=dict)
    selection: set[str] = field(default_factory=set)
    expanded: set[str] = field(default_factory=set)
    decisions: dict[str, str | Skip] = field(default_factory=dict)
    pending: dict[str, ResolutionIssue] = field(default_factory=dict)

    def snapshot(self) -> tuple[int, int]:
        # Both collections only grow, so their sizes identify a state.
        return len(self.required), len(self.selection)


class Resolver:
    """Computes a :class:`ResolvedManifest` from a dependency graph.

    Usage::

        graph = build_graph(invoice)
        manifest = Resolver(graph, SelectionPolicy(opted_in={"server"})).resolve()
    """

    def __init__(self, graph: DependencyGraph, policy: SelectionPolicy | None = None) -> None:
        self._graph = graph
        self._policy = policy or SelectionPolicy()
        self._evaluator = SatisfactionEvaluator(
            graph.groups,
            graph.members,
            reading=self._policy.anyof_reading,
        )

    @property
    def max_iterations(self) -> int:
        return len(self._graph.groups) + len(self._graph.parcels) + 1

    def resolve(self) -> ResolvedManifest:
        """Run the fixpoint loop.

        Raises:
            UnknownGroupReference: The policy opts into an undeclared group.
            CycleDetected: The iteration bound was exceeded.
            ResolutionError: One or more required groups failed.
        """
        self._check_opt_ins()
        state = _ResolutionState()
        self._seed(state)
        invoice = self._graph.invoice.name
        log.debug(
            "resolution.start",
            invoice=invoice,
            opted_in=sorted(self._policy.opted_in),
            anyof_reading=str(self._policy.anyof_reading),
        )

        iterations = 0
        while True:
            iterations += 1
            if iterations > self.max_iterations:
                msg = f"Resolution did not reach a fixpoint within {self.max_iterations} iterations"
                raise CycleDetected([], reason=msg)
            if not self._iterate(state):
                break

        record("iterations", iterations)
        issues = self._final_check(state)
        record("issues", len(issues))
        if issues:
            log.debug(
                "resolution.failed",
                invoice=invoice,
                iterations=iterations,
                issues=[issue.code for issue in issues],
            )
            raise ResolutionError(issues)

        log.debug(
            "resolution.complete",
            invoice=invoice,
            iterations=iterations,
            selected=len(state.selection),
        )
        return self._manifest(state, iterations)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def _check_opt_ins(self) -> None:
        unknown = [
            GroupReference(group=name, source="selection policy", field="optIn")
            for name in sorted(self._policy.opted_in)
            if name == GLOBAL_GROUP or name not in self._graph.groups
        ]
        if unknown:
            raise UnknownGroupReference(unknown)

    def _seed(self, state: _ResolutionState) -> None:
        for name, group in self._graph.groups.items():
            if name == GLOBAL_GROUP:
                self._require(state, name, REASON_GLOBAL)
            elif group.required:
                self._require(state, name, REASON_DECLARED)
            if name in self._policy.opted_in:
                self._require(state, name, REASON_OPTED_IN)

    # ------------------------------------------------------------------
    # Iteration
    # ------------------------------------------------------------------

    def _iterate(self, state: _ResolutionState) -> bool:
        """Run one iteration. Returns True if the state changed."""
        before = state.snapshot()

        # Every allOf member is in place before any oneOf group is judged.
        required = self._required_in_order(state)
        for name in required:
            if self._graph.groups[name].satisfied_by == SatisfiedBy.ALL_OF:
                for member in self._graph.members[name]:
                    self._select(state, member, via=name)
        for name in required:
            if self._graph.groups[name].satisfied_by == SatisfiedBy.ONE_OF:
                self._settle_one_of(state, name)

        self._expand_requirements(state)

        if state.snapshot() == before:
            self._offer_any_of(state)
            self._expand_requirements(state)

        return state.snapshot() != before

    def _settle_one_of(self, state: _ResolutionState, name: str) -> None:
        members = self._graph.members[name]
        if selected_members(members, state.selection):
            # One member: satisfied. Several: judged by the final check.
            return
        if not members:
            state.pending[name] = UnsatisfiableGroup(group=name, reason="oneOf group has no members")
            return
        if name in state.decisions:
            return

        viable = self._viable(state, name, members)
        if not viable:
            state.pending[name] = UnsatisfiableGroup(
                group=name,
                reason="every member conflicts with another oneOf group",
            )
            return
        if len(viable) == 1:
            log.debug("resolution.auto_select", group=display_group(name), parcel=viable[0])
            self._select(state, viable[0], via=name)
            return

        picked = self._ask(state, name, viable)
        if picked is None:
            state.pending[name] = AmbiguousSelection(group=name, candidates=viable)
        else:
            self._select(state, picked, via=name)

    def _offer_any_of(self, state: _ResolutionState) -> None:
        if self._policy.anyof_reading == AnyOfReading.OPTIONAL:
            return
        for name in self._required_in_order(state):
            if self._graph.groups[name].satisfied_by != SatisfiedBy.ANY_OF:
                continue
            members = self._graph.members[name]
            if not members or name in state.decisions:
                continue
            if selected_members(members, state.selection):
                continue
            viable = self._viable(state, name, members)
            if not viable:
                continue
            picked = self._ask(state, name, viable)
            if picked is not None:
                self._select(state, picked, via=name)

    def _expand_requirements(self, state: _ResolutionState) -> None:
        fresh = self._in_parcel_order(state.selection - state.expanded)
        for parcel in fresh:
            state.expanded.add(parcel)
            for group in self._graph.requires_groups[parcel]:
                self._require(state, group, f"parcel:{parcel}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require(self, state: _ResolutionState, name: str, reason: str) -> None:
        reasons = state.required.setdefault(name, [])
        if reason not in reasons:
            reasons.append(reason)

    def _select(self, state: _ResolutionState, parcel: str, *, via: str) -> None:
        if parcel in state.selection:
            return
        state.selection.add(parcel)
        log.debug("resolution.select", parcel=parcel, group=display_group(via))

    def _viable(
        self,
        state: _ResolutionState,
        name: str,
        members: Iterable[str],
    ) -> tuple[str, ...]:
        """Members whose selection would not over-satisfy another required oneOf group."""
        blocked: set[str] = set()
        for other in state.required:
            if other == name or self._graph.groups[other].satisfied_by != SatisfiedBy.ONE_OF:
                continue
            other_members = self._graph.members[other]
            if selected_members(other_members, state.selection):
                blocked.update(other_members)
        return tuple(m for m in members if m not in blocked)

    def _ask(self, state: _ResolutionState, name: str, viable: tuple[str, ...]) -> str | None:
        """Consult the chooser once for *name*; return a viable parcel or None."""
        group = self._graph.groups[name]
        candidates = tuple(self._graph.parcels[m] for m in viable)
        answer = self._policy.chooser(group, candidates)
        count("chooser_calls")

        if answer is SKIP:
            state.decisions[name] = SKIP
            log.debug("resolution.chooser", group=display_group(name), answer="skip")
            return None

        picked = answer.name if isinstance(answer, Parcel) else str(answer)
        if picked not in viable:
            state.decisions[name] = SKIP
            log.warning(
                "resolution.chooser_rejected",
                group=display_group(name),
                answer=picked,
                candidates=list(viable),
            )
            return None

        state.decisions[name] = picked
        log.debug("resolution.chooser", group=display_group(name), answer=picked)
        return picked

    def _required_in_order(self, state: _ResolutionState) -> list[str]:
        return sorted(state.required, key=self._graph.group_index)

    def _in_parcel_order(self, names: Iterable[str]) -> list[str]:
        return sorted(names, key=self._graph.parcel_index)

    # ------------------------------------------------------------------
    # Termination
    # ------------------------------------------------------------------

    def _final_check(self, state: _ResolutionState) -> list[ResolutionIssue]:
        issues: list[ResolutionIssue] = []
        for name in self._required_in_order(state):
            verdict = self._evaluator.verdict(name, state.selection, required=True)
            if verdict is Verdict.SATISFIED:
                continue
            if verdict is Verdict.OVER_SATISFIED:
                chosen = selected_members(self._graph.members[name], state.selection)
                issues.append(OverSatisfied(group=name, selected=chosen))
                continue
            pending = state.pending.get(name)
            issues.append(pending or self._unsatisfied(name))
        return issues

    def _unsatisfied(self, name: str) -> UnsatisfiableGroup:
        policy = self._graph.groups[name].satisfied_by
        if not self._graph.members[name]:
            reason = f"{policy} group has no members"
        elif policy == SatisfiedBy.ANY_OF:
            reason = "anyOf group is required but no member is selected"
        elif policy == SatisfiedBy.ONE_OF:
            reason = "no member is selected"
        else:
            reason = "not every member is selected"
        return UnsatisfiableGroup(group=name, reason=reason)

    def _manifest(self, state: _ResolutionState, iterations: int) -> ResolvedManifest:
        report: list[GroupReport] = []
        for name, group in self._graph.groups.items():
            required = name in state.required
            report.append(
                GroupReport(
                    name=name,
                    satisfied_by=group.satisfied_by,
                    required=required,
                    satisfied=self._evaluator.satisfied(name, state.selection, required=required),
                    status=GroupStatus.SATISFIED if required else GroupStatus.NOT_REQUIRED,
                    selected=selected_members(self._graph.members[name], state.selection),
                    required_because=tuple(state.required.get(name, ())),
                )
            )
        parcels = tuple(p for name, p in self._graph.parcels.items() if name in state.selection)
        return ResolvedManifest(
            invoice=self._graph.invoice.name,
            parcels=parcels,
            report=tuple(report),
            iterations=iterations,
        )


# ---------------------------------------------------------------------------
# Module-level shortcuts
# ---------------------------------------------------------------------------


def resolve(graph: DependencyGraph, policy: SelectionPolicy | None = None) -> ResolvedManifest:
    """Resolve *graph* under *policy*. See :class:`Resolver`."""
    return Resolver(graph, policy).resolve()


def resolve_invoice(
    invoice: Invoice,
    policy: SelectionPolicy | None = None,
    *,
    allow_yanked: bool = False,
) -> ResolvedManifest:
    """Yank check, graph construction, cycle check, and resolution in one call."""
    from parcelctl.infrastructure.graph.engine import build_graph

    ensure_not_yanked(invoice, allow_yanked=allow_yanked)
    return resolve(build_graph(invoice), policy)
