"""In-memory storage for the beat dependency graph.

DependencyStore holds the canonical node and edge sets plus the mirrored
adjacency lists (``dependencies`` / ``dependents`` on every node). It does no
validation: :class:`~beatgraph.graph.dependency_graph.DependencyGraph` owns
the acyclicity guard and is the only caller of :meth:`insert_edge_unchecked`.

Adjacency lists are unique-valued and keep insertion order so traversals are
deterministic. Several edges may connect the same pair of beats; the pair
count tracks them so the adjacency entry disappears only with the last one.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from beatgraph.models import Beat, Dependency


@dataclass
class BeatNode:
    """A beat in the graph with its derived adjacency.

    Attributes:
        id: Beat ID.
        name: Display label.
        order: Caller-assigned position, used only as a tie-break.
        dependencies: IDs of beats this beat requires.
        dependents: IDs of beats that require this beat.
    """

    id: str
    name: str
    order: int = 0
    dependencies: list[str] = field(default_factory=list)
    dependents: list[str] = field(default_factory=list)


class DependencyStore:
    """Node/edge container with mirrored adjacency and deepcopy savepoints."""

    def __init__(self) -> None:
        self._nodes: dict[str, BeatNode] = {}
        self._edges: dict[str, Dependency] = {}
        self._pair_counts: Counter[tuple[str, str]] = Counter()
        self._savepoints: dict[str, dict[str, Any]] = {}

    # -- Nodes -----------------------------------------------------------------

    def clear(self) -> None:
        """Drop all nodes, edges and savepoints."""
        self._nodes.clear()
        self._edges.clear()
        self._pair_counts.clear()
        self._savepoints.clear()

    def add_node(self, beat: Beat) -> None:
        """Insert (or replace) a node. Replacing keeps no adjacency."""
        self._nodes[beat.id] = BeatNode(id=beat.id, name=beat.name, order=beat.order)

    def get_node(self, node_id: str) -> BeatNode | None:
        return self._nodes.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def nodes(self) -> list[BeatNode]:
        """All nodes in insertion order."""
        return list(self._nodes.values())

    def node_ids(self) -> list[str]:
        return list(self._nodes.keys())

    def node_count(self) -> int:
        return len(self._nodes)

    # -- Edges -----------------------------------------------------------------

    def insert_edge_unchecked(self, dependency: Dependency) -> None:
        """Record an edge and update adjacency on whichever endpoints exist.

        No cycle check happens here. Edges to missing beats are kept so
        validation can report them as orphans.
        """
        self._edges[dependency.id] = dependency
        source, target = dependency.source_id, dependency.target_id
        self._pair_counts[(source, target)] += 1

        source_node = self._nodes.get(source)
        if source_node is not None and target not in source_node.dependents:
            source_node.dependents.append(target)

        target_node = self._nodes.get(target)
        if target_node is not None and source not in target_node.dependencies:
            target_node.dependencies.append(source)

    def replace_edge(self, dependency: Dependency) -> None:
        """Swap the stored record for an edge whose endpoints are unchanged."""
        self._edges[dependency.id] = dependency

    def remove_edge(self, dependency_id: str) -> Dependency | None:
        """Remove an edge by ID.

        Returns:
            The removed dependency, or None if the ID is unknown.
        """
        dependency = self._edges.pop(dependency_id, None)
        if dependency is None:
            return None

        pair = (dependency.source_id, dependency.target_id)
        self._pair_counts[pair] -= 1
        if self._pair_counts[pair] > 0:
            # Another edge still connects this pair
            return dependency
        del self._pair_counts[pair]

        source_node = self._nodes.get(dependency.source_id)
        if source_node is not None and dependency.target_id in source_node.dependents:
            source_node.dependents.remove(dependency.target_id)

        target_node = self._nodes.get(dependency.target_id)
        if target_node is not None and dependency.source_id in target_node.dependencies:
            target_node.dependencies.remove(dependency.source_id)

        return dependency

    def get_edge(self, dependency_id: str) -> Dependency | None:
        return self._edges.get(dependency_id)

    def has_edge(self, dependency_id: str) -> bool:
        return dependency_id in self._edges

    def edges(self) -> list[Dependency]:
        """All edges in insertion order."""
        return list(self._edges.values())

    def edges_from(self, node_id: str) -> list[Dependency]:
        """Edges whose source is *node_id* (what depends on this beat)."""
        return [e for e in self._edges.values() if e.source_id == node_id]

    def edges_to(self, node_id: str) -> list[Dependency]:
        """Edges whose target is *node_id* (what this beat depends on)."""
        return [e for e in self._edges.values() if e.target_id == node_id]

    def edge_count(self) -> int:
        return len(self._edges)

    # -- Savepoints ------------------------------------------------------------

    def savepoint(self, name: str) -> None:
        """Save a named snapshot of current state.

        Dependencies are frozen, so copying the containers is enough; node
        adjacency lists are copied per node.
        """
        self._savepoints[name] = {
            "nodes": {
                node_id: (node.name, node.order, list(node.dependencies), list(node.dependents))
                for node_id, node in self._nodes.items()
            },
            "edges": dict(self._edges),
            "pairs": Counter(self._pair_counts),
        }

    def rollback_to(self, name: str) -> None:
        """Restore state from a named snapshot. The snapshot stays available.

        State is written back into the existing BeatNode objects, so nodes a
        caller already holds keep tracking the live graph.
        """
        if name not in self._savepoints:
            raise ValueError(f"No savepoint named '{name}'")
        snapshot = self._savepoints[name]

        restored: dict[str, BeatNode] = {}
        for node_id, (node_name, order, dependencies, dependents) in snapshot["nodes"].items():
            node = self._nodes.get(node_id) or BeatNode(id=node_id, name=node_name)
            node.name = node_name
            node.order = order
            node.dependencies[:] = dependencies
            node.dependents[:] = dependents
            restored[node_id] = node
        self._nodes.clear()
        self._nodes.update(restored)

        self._edges.clear()
        self._edges.update(snapshot["edges"])
        self._pair_counts.clear()
        self._pair_counts.update(snapshot["pairs"])

    def release(self, name: str) -> None:
        """Discard a named snapshot."""
        self._savepoints.pop(name, None)

    def __repr__(self) -> str:
        return f"DependencyStore(nodes={self.node_count()}, edges={self.edge_count()})"
