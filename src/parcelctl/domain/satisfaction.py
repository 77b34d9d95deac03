"""Group satisfaction rules.

A group is satisfied by a selection according to its ``satisfiedBy``
policy:

- ``allOf``: every member is selected (vacuously true with no members).
- ``oneOf``: exactly one member is selected. Two or more is a violation
  (``OVER_SATISFIED``), not a success.
- ``anyOf``: depends on :class:`AnyOfReading`. Under ``require-one`` a
  required group needs at least one selected member and a non-required
  group is trivially satisfied. Under ``optional`` the group is always
  satisfied.

Everything here is pure: no logging, no state.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping
from typing import TYPE_CHECKING

from parcelctl.domain.types import AnyOfReading, SatisfiedBy, Verdict

if TYPE_CHECKING:
    from collections.abc import Iterable

    from parcelctl.domain.model import Group


def selected_members(members: Iterable[str], selection: Collection[str]) -> tuple[str, ...]:
    """Members present in *selection*, in membership order."""
    return tuple(m for m in members if m in selection)


def evaluate(
    policy: SatisfiedBy,
    members: Collection[str],
    selection: Collection[str],
    *,
    required: bool,
    reading: AnyOfReading = AnyOfReading.REQUIRE_ONE,
) -> Verdict:
    """Evaluate one group's members against a selection."""
    count = len(selected_members(members, selection))

    if policy == SatisfiedBy.ALL_OF:
        return Verdict.SATISFIED if count == len(members) else Verdict.UNSATISFIED

    if policy == SatisfiedBy.ONE_OF:
        if count == 1:
            return Verdict.SATISFIED
        return Verdict.OVER_SATISFIED if count > 1 else Verdict.UNSATISFIED

    # anyOf
    if reading == AnyOfReading.OPTIONAL or not required:
        return Verdict.SATISFIED
    return Verdict.SATISFIED if count >= 1 else Verdict.UNSATISFIED


def satisfied(
    policy: SatisfiedBy,
    members: Collection[str],
    selection: Collection[str],
    *,
    required: bool,
    reading: AnyOfReading = AnyOfReading.REQUIRE_ONE,
) -> bool:
    return evaluate(policy, members, selection, required=required, reading=reading) is (
        Verdict.SATISFIED
    )


class SatisfactionEvaluator:
    """Evaluates groups by name against a fixed membership relation.

    Args:
        groups: Group name to group, including the global group.
        members: Group name to member parcel names.
        reading: How ``anyOf`` groups behave once required.
    """

    def __init__(
        self,
        groups: Mapping[str, Group],
        members: Mapping[str, Collection[str]],
        *,
        reading: AnyOfReading = AnyOfReading.REQUIRE_ONE,
    ) -> None:
        self._groups = groups
        self._members = members
        self.reading = reading

    def verdict(self, group: str, selection: Collection[str], *, required: bool) -> Verdict:
        return evaluate(
            self._groups[group].satisfied_by,
            self._members.get(group, ()),
            selection,
            required=required,
            reading=self.reading,
        )

    def satisfied(self, group: str, selection: Collection[str], *, required: bool) -> bool:
        return self.verdict(group, selection, required=required) is Verdict.SATISFIED
