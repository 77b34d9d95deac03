"""Cycle detection over the group/parcel dependency graph.

Iterative depth-first search with three-colour marking:

- WHITE: not visited yet
- GRAY: on the current traversal stack
- BLACK: fully explored

An edge into a GRAY node closes a cycle. The cycle is the slice of the
traversal stack from that node to the current one, with the node repeated
at the end. Roots and successors are visited in insertion order, which is
invoice declaration order, so the reported cycle is deterministic. Only
the first cycle found is reported.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from enum import IntEnum
from typing import TYPE_CHECKING

from parcelctl.domain.errors import CycleDetected
from parcelctl.infrastructure.graph.engine import display_node

if TYPE_CHECKING:
    from parcelctl.infrastructure.graph.engine import DependencyGraph, Node

logger = logging.getLogger(__name__)


class _Color(IntEnum):
    WHITE = 0
    GRAY = 1
    BLACK = 2


def find_cycle_nodes(dependency_graph: DependencyGraph) -> list[Node] | None:
    """Return the first cycle as typed nodes, or None if the graph is acyclic."""
    g = dependency_graph.graph
    color: dict[Node, _Color] = dict.fromkeys(g.nodes, _Color.WHITE)

    for root in g.nodes:
        if color[root] is not _Color.WHITE:
            continue

        stack: list[Node] = [root]
        frames: list[Iterator[Node]] = [iter(g.successors(root))]
        color[root] = _Color.GRAY

        while frames:
            successor = next(frames[-1], None)
            if successor is None:
                color[stack.pop()] = _Color.BLACK
                frames.pop()
                continue

            state = color[successor]
            if state is _Color.GRAY:
                start = stack.index(successor)
                return [*stack[start:], successor]
            if state is _Color.WHITE:
                color[successor] = _Color.GRAY
                stack.append(successor)
                frames.append(iter(g.successors(successor)))

    return None


def find_cycle(dependency_graph: DependencyGraph) -> list[str] | None:
    """Return the first cycle as alternating group/parcel names, or None."""
    nodes = find_cycle_nodes(dependency_graph)
    if nodes is None:
        return None
    return [display_node(node) for node in nodes]


def check_cycles(dependency_graph: DependencyGraph) -> None:
    """Raise :class:`CycleDetected` if the graph contains a cycle."""
    path = find_cycle(dependency_graph)
    if path is not None:
        logger.debug("Cycle detected in %s: %s", dependency_graph.invoice.name, path)
        raise CycleDetected(path)
