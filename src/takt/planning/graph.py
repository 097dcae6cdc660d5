# src/takt/planning/graph.py

"""
Traversal helpers over predecessor -> successor edges.

The store only guarantees no self-loops and no duplicate edges. These helpers
let callers that care about ordering (planners, pickers) reason about longer
chains without touching storage.
"""

from __future__ import annotations

from collections import defaultdict, deque
from collections.abc import Iterable

from ..core.models import Dependency


def _forward(edges: Iterable[Dependency]) -> dict[int, set[int]]:
    graph: dict[int, set[int]] = defaultdict(set)
    for e in edges:
        graph[e.predecessor_id].add(e.successor_id)
    return graph


def _backward(edges: Iterable[Dependency]) -> dict[int, set[int]]:
    graph: dict[int, set[int]] = defaultdict(set)
    for e in edges:
        graph[e.successor_id].add(e.predecessor_id)
    return graph


def _reachable(graph: dict[int, set[int]], start: int) -> set[int]:
    seen: set[int] = set()
    queue = deque(graph.get(start, ()))
    while queue:
        node = queue.popleft()
        if node in seen:
            continue
        seen.add(node)
        queue.extend(n for n in graph.get(node, ()) if n not in seen)
    return seen


def would_create_cycle(edges: Iterable[Dependency], predecessor_id: int, successor_id: int) -> bool:
    """True if adding predecessor -> successor closes a cycle (self-loops included)."""
    if predecessor_id == successor_id:
        return True
    return predecessor_id in _reachable(_forward(edges), successor_id)


def all_successors(edges: Iterable[Dependency], item_id: int) -> set[int]:
    """Direct and transitive successors."""
    return _reachable(_forward(edges), item_id)


def all_predecessors(edges: Iterable[Dependency], item_id: int) -> set[int]:
    """Direct and transitive predecessors."""
    return _reachable(_backward(edges), item_id)


def invalid_predecessors(edges: Iterable[Dependency], item_id: int) -> set[int]:
    """Items that cannot become predecessors of `item_id` without a cycle."""
    return {item_id} | all_successors(edges, item_id)
