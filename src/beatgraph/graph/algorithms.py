"""Traversal algorithms over the dependency store.

Pure functions that read the store without modifying it. Everything the
mutation guard and the higher-level analyses need is built on these:
reachability, cycle enumeration, Kahn ordering with levels, transitive
closure and causality chains.

All traversals are iterative so deep or malformed graphs cannot exhaust the
interpreter stack.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from beatgraph.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterator

    from beatgraph.graph.store import DependencyStore

log = get_logger(__name__)


@dataclass
class TopologicalOrder:
    """Result of :func:`topological_order`.

    Attributes:
        order: Beat IDs in prerequisite-respecting order. Partial when the
            graph has a cycle.
        levels: Beat ID -> longest-path distance from a prerequisite-free beat.
        has_valid_order: False if some beats could not be ordered.
        cycles: Cycles found when the order is invalid.
    """

    order: list[str] = field(default_factory=list)
    levels: dict[str, int] = field(default_factory=dict)
    has_valid_order: bool = True
    cycles: list[list[str]] = field(default_factory=list)


@dataclass
class CausalityChain:
    """A maximal run of beats linked by single-dependent edges.

    Attributes:
        id: Stable identifier within one analysis run (``chain_0``, ...).
        name: Name of the beat the chain starts from.
        beats: Ordered beat IDs.
        is_complete: Always True for chains traced from a root beat.
        missing_beats: Reserved for chains with gaps.
    """

    id: str
    name: str
    beats: list[str]
    is_complete: bool = True
    missing_beats: list[str] = field(default_factory=list)


def would_create_cycle(store: DependencyStore, from_id: str, to_id: str) -> bool:
    """Check whether adding ``from_id -> to_id`` would close a loop.

    Breadth-first search from *to_id* along dependents. If *from_id* is
    reachable, the new edge would close a cycle. A self-loop
    (``from_id == to_id``) is always a cycle.

    Args:
        store: Graph store to search.
        from_id: Proposed edge source.
        to_id: Proposed edge target.

    Returns:
        True if the edge would create a cycle.
    """
    visited: set[str] = set()
    queue: deque[str] = deque([to_id])

    while queue:
        current = queue.popleft()
        if current == from_id:
            return True
        if current in visited:
            continue
        visited.add(current)

        node = store.get_node(current)
        if node is not None:
            queue.extend(node.dependents)

    return False


def detect_cycles(store: DependencyStore) -> list[list[str]]:
    """Enumerate cycles with a depth-first search over all beats.

    Whenever a dependent is reached that is still on the DFS path, the path
    slice from that dependent to the current beat is recorded, closed by
    repeating the dependent (``[a, b, c, a]``).

    Used for bulk validation of data that bypassed the mutation guard; a
    graph built only through the guard never has cycles.

    Returns:
        List of cycles, each a list of beat IDs. Empty for an acyclic graph.
    """
    cycles: list[list[str]] = []
    visited: set[str] = set()
    on_path: set[str] = set()
    path: list[str] = []

    def dependents_of(node_id: str) -> Iterator[str]:
        node = store.get_node(node_id)
        return iter(node.dependents if node is not None else ())

    for start in store.node_ids():
        if start in visited:
            continue

        visited.add(start)
        on_path.add(start)
        path.append(start)
        stack: list[Iterator[str]] = [dependents_of(start)]

        while stack:
            child = next(stack[-1], None)
            if child is None:
                stack.pop()
                on_path.discard(path.pop())
                continue

            if child not in visited:
                visited.add(child)
                on_path.add(child)
                path.append(child)
                stack.append(dependents_of(child))
            elif child in on_path:
                cycle_start = path.index(child)
                cycles.append([*path[cycle_start:], child])

    if cycles:
        log.debug("cycles_detected", count=len(cycles))
    return cycles


def topological_order(store: DependencyStore) -> TopologicalOrder:
    """Order beats with Kahn's algorithm and assign levels.

    A beat's level is ``max(level of each prerequisite) + 1``; beats with no
    prerequisites sit at level 0. Prerequisites that are not in the node set
    (orphan edges) do not hold a beat back.

    Ties are broken by node insertion order, so the caller's beat list order
    is preserved where the graph allows it.

    Returns:
        TopologicalOrder. If fewer beats are emitted than exist, the order is
        marked invalid and ``cycles`` lists the cycles responsible.
    """
    in_degree: dict[str, int] = {}
    for node in store.nodes():
        in_degree[node.id] = sum(1 for dep in node.dependencies if store.has_node(dep))

    levels: dict[str, int] = {}
    queue: deque[str] = deque()
    for node_id, degree in in_degree.items():
        if degree == 0:
            queue.append(node_id)
            levels[node_id] = 0

    order: list[str] = []
    while queue:
        current = queue.popleft()
        order.append(current)
        current_level = levels[current]

        node = store.get_node(current)
        if node is None:
            continue
        for dependent_id in node.dependents:
            if dependent_id not in in_degree:
                continue
            levels[dependent_id] = max(levels.get(dependent_id, 0), current_level + 1)
            in_degree[dependent_id] -= 1
            if in_degree[dependent_id] == 0:
                queue.append(dependent_id)

    if len(order) < store.node_count():
        cycles = detect_cycles(store)
        log.warning(
            "topological_order_incomplete",
            ordered=len(order),
            total=store.node_count(),
            cycles=len(cycles),
        )
        emitted = set(order)
        return TopologicalOrder(
            order=order,
            levels={nid: lvl for nid, lvl in levels.items() if nid in emitted},
            has_valid_order=False,
            cycles=cycles,
        )

    return TopologicalOrder(order=order, levels=levels)


def _closure(store: DependencyStore, start_id: str, *, upstream: bool) -> list[str]:
    """Breadth-first transitive closure along one adjacency direction."""
    found: dict[str, None] = {}
    queue: deque[str] = deque([start_id])

    while queue:
        node = store.get_node(queue.popleft())
        if node is None:
            continue
        for neighbour in node.dependencies if upstream else node.dependents:
            if neighbour not in found:
                found[neighbour] = None
                queue.append(neighbour)

    return list(found)


def all_prerequisites(store: DependencyStore, node_id: str) -> list[str]:
    """All beats *node_id* transitively depends on, in BFS discovery order."""
    return _closure(store, node_id, upstream=True)


def all_dependents(store: DependencyStore, node_id: str) -> list[str]:
    """All beats that transitively depend on *node_id*, in BFS discovery order."""
    return _closure(store, node_id, upstream=False)


def causality_chains(store: DependencyStore) -> list[CausalityChain]:
    """Trace linear chains from every prerequisite-free beat.

    From each root the chain follows a beat's dependent as long as it has
    exactly one; a branch point (or a leaf) ends the chain. A beat placed in
    one chain is not reused by another. Single-beat chains are dropped.

    Returns:
        Chains in root order, numbered ``chain_0``, ``chain_1``, ...
    """
    chains: list[CausalityChain] = []
    visited: set[str] = set()
    roots = [node for node in store.nodes() if not node.dependencies]

    for root in roots:
        if root.id in visited:
            continue

        beats: list[str] = []
        current = store.get_node(root.id)
        while current is not None and current.id not in visited:
            visited.add(current.id)
            beats.append(current.id)
            if len(current.dependents) != 1:
                break
            current = store.get_node(current.dependents[0])

        if len(beats) > 1:
            chains.append(
                CausalityChain(id=f"chain_{len(chains)}", name=root.name, beats=beats)
            )

    return chains
