"""DependencyGraph: NetworkX DiGraph derived from an invoice.

Built once per invoice, never mutated, no cross-invocation cache.
Nodes are typed ``(NodeKind, name)`` tuples; edges carry an ``edge_type``:

- ``membership``: group -> parcel (the parcel is a member of the group)
- ``requirement``: parcel -> group (selecting the parcel requires the group)

Objects never point at each other; every relation is a name-indexed
lookup, so group/parcel cycles in the data never become reference cycles.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import cached_property
from types import MappingProxyType
from typing import TYPE_CHECKING

import networkx as nx

from parcelctl.domain.errors import GroupReference, UnknownGroupReference
from parcelctl.domain.model import Group
from parcelctl.domain.types import GLOBAL_GROUP, EdgeKind, NodeKind, display_group

if TYPE_CHECKING:
    from parcelctl.domain.model import Invoice, Parcel

logger = logging.getLogger(__name__)

type Node = tuple[NodeKind, str]
type _Graph = nx.DiGraph


def group_node(name: str) -> Node:
    return (NodeKind.GROUP, name)


def parcel_node(name: str) -> Node:
    return (NodeKind.PARCEL, name)


def display_node(node: Node) -> str:
    """Human-readable node name (group or parcel name)."""
    kind, name = node
    return display_group(name) if kind is NodeKind.GROUP else name


@dataclass(frozen=True)
class DependencyGraph:
    """Static group/parcel relations of one invoice.

    Attributes:
        invoice: The invoice the graph was derived from.
        groups: Group name to group, global group first, then declaration order.
        parcels: Parcel name to parcel, in declaration order.
        members: Group name to member parcel names (declaration order).
        requires_groups: Parcel name to the groups it requires.
        required_by: Group name to the parcels that require it.
        root_required: Groups required unconditionally (global + ``required``).
        graph: Typed NetworkX view of the two relations.
    """

    invoice: Invoice
    groups: Mapping[str, Group]
    parcels: Mapping[str, Parcel]
    members: Mapping[str, tuple[str, ...]]
    requires_groups: Mapping[str, tuple[str, ...]]
    required_by: Mapping[str, tuple[str, ...]]
    root_required: tuple[str, ...]
    graph: _Graph = field(repr=False)

    def group(self, name: str) -> Group:
        return self.groups[name]

    def parcel(self, name: str) -> Parcel:
        return self.parcels[name]

    def group_index(self, name: str) -> int:
        """Position of a group in declaration order (global is 0)."""
        return self._group_order[name]

    def parcel_index(self, name: str) -> int:
        return self._parcel_order[name]

    def display(self, node: Node) -> str:
        return display_node(node)

    @cached_property
    def _group_order(self) -> dict[str, int]:
        return {name: i for i, name in enumerate(self.groups)}

    @cached_property
    def _parcel_order(self) -> dict[str, int]:
        return {name: i for i, name in enumerate(self.parcels)}

    def ungrouped_parcels(self) -> tuple[str, ...]:
        """Parcels with an explicit empty ``memberOf``; never selectable."""
        grouped = {p for names in self.members.values() for p in names}
        return tuple(name for name in self.parcels if name not in grouped)


def build_graph(invoice: Invoice, *, check_cycles: bool = True) -> DependencyGraph:
    """Derive the dependency graph of *invoice*.

    Args:
        invoice: A validated invoice.
        check_cycles: Run cycle detection before returning.

    Raises:
        UnknownGroupReference: A condition names an undeclared group.
        CycleDetected: Membership and requirement edges form a cycle.
    """
    groups: dict[str, Group] = {GLOBAL_GROUP: Group.global_group()}
    for group in invoice.groups:
        groups[group.name] = group

    parcels: dict[str, Parcel] = {p.name: p for p in invoice.parcels}

    members: dict[str, list[str]] = {name: [] for name in groups}
    requires_groups: dict[str, tuple[str, ...]] = {}
    required_by: dict[str, list[str]] = {name: [] for name in groups}
    unknown: list[GroupReference] = []

    g: _Graph = nx.DiGraph()
    for name in groups:
        g.add_node(group_node(name), kind=NodeKind.GROUP)
    for name in parcels:
        g.add_node(parcel_node(name), kind=NodeKind.PARCEL)

    for parcel in invoice.parcels:
        for group_name in dict.fromkeys(parcel.member_groups()):
            if group_name not in groups:
                unknown.append(GroupReference(group=group_name, source=parcel.name, field="memberOf"))
                continue
            members[group_name].append(parcel.name)
            g.add_edge(
                group_node(group_name),
                parcel_node(parcel.name),
                edge_type=EdgeKind.MEMBERSHIP,
            )

        required = tuple(dict.fromkeys(parcel.required_groups()))
        for group_name in required:
            if group_name not in groups:
                unknown.append(GroupReference(group=group_name, source=parcel.name, field="requires"))
                continue
            required_by[group_name].append(parcel.name)
            g.add_edge(
                parcel_node(parcel.name),
                group_node(group_name),
                edge_type=EdgeKind.REQUIREMENT,
            )
        requires_groups[parcel.name] = required

    if unknown:
        raise UnknownGroupReference(unknown)

    root_required = tuple(name for name, group in groups.items() if group.required)

    dependency_graph = DependencyGraph(
        invoice=invoice,
        groups=MappingProxyType(groups),
        parcels=MappingProxyType(parcels),
        members=MappingProxyType({k: tuple(v) for k, v in members.items()}),
        requires_groups=MappingProxyType(requires_groups),
        required_by=MappingProxyType({k: tuple(v) for k, v in required_by.items()}),
        root_required=root_required,
        graph=g,
    )
    logger.debug(
        "Built dependency graph for %s: %d groups, %d parcels, %d edges",
        invoice.name,
        len(groups),
        len(parcels),
        g.number_of_edges(),
    )

    if check_cycles:
        from parcelctl.infrastructure.graph.cycles import check_cycles as _check

        _check(dependency_graph)

    return dependency_graph
