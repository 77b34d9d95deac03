"""Classification enums and sentinels shared across the resolver.

Group satisfaction policies, the ``anyOf`` reading switch, and the typed
node/edge kinds of the group/parcel dependency graph.
"""

from __future__ import annotations

from enum import Enum, StrEnum

# The implicit global group has no name. Declared group names must be
# non-empty, so the empty string can never collide with a user group.
GLOBAL_GROUP = ""
GLOBAL_GROUP_DISPLAY = "<global>"

# Manifest version token of the v1 invoice format.
BINDLE_VERSION_1 = "1.0.0"


class SatisfiedBy(StrEnum):
    """How many members of a group must be selected."""

    ALL_OF = "allOf"
    ONE_OF = "oneOf"
    ANY_OF = "anyOf"


class AnyOfReading(StrEnum):
    """Interpretation of ``anyOf`` groups once they become required.

    The invoice format describes ``anyOf`` groups both as satisfiable with
    zero members and, in its worked example, as needing at least one member
    once another parcel requires them. Both readings are supported.
    """

    REQUIRE_ONE = "require-one"
    OPTIONAL = "optional"


class Verdict(StrEnum):
    """Outcome of evaluating one group against a selection."""

    SATISFIED = "satisfied"
    UNSATISFIED = "unsatisfied"
    OVER_SATISFIED = "over-satisfied"


class GroupStatus(StrEnum):
    """Per-group status in a resolved manifest report."""

    SATISFIED = "satisfied"
    NOT_REQUIRED = "not-required"


class NodeKind(StrEnum):
    """Typed nodes of the dependency graph."""

    GROUP = "group"
    PARCEL = "parcel"


class EdgeKind(StrEnum):
    """Typed edges of the dependency graph."""

    MEMBERSHIP = "membership"  # group -> parcel
    REQUIREMENT = "requirement"  # parcel -> group


class Skip(Enum):
    """Chooser answer meaning "no decision for this group"."""

    SKIP = "skip"


SKIP = Skip.SKIP


def display_group(name: str) -> str:
    """Human-readable group name (the global group has none)."""
    return GLOBAL_GROUP_DISPLAY if name == GLOBAL_GROUP else name
