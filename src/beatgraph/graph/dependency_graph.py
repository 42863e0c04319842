"""Beat dependency graph: guarded mutations and analysis queries.

DependencyGraph is the object a story project owns. It wraps a
DependencyStore and is the only way edges get into it: every insertion is
preceded by a reachability check so the edge set never contains a cycle.

Rejected mutations return a :class:`Finding` and leave the graph exactly as
it was. Queries delegate to :mod:`beatgraph.graph.algorithms` and
:mod:`beatgraph.graph.analysis`.

One instance per project; the engine has no shared global state. Callers
running it behind concurrent requests should go through
:class:`beatgraph.registry.GraphRegistry`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from beatgraph.graph import algorithms, analysis
from beatgraph.graph.errors import NodeNotFoundError
from beatgraph.graph.store import DependencyStore
from beatgraph.graph.validation_types import Finding
from beatgraph.models import Beat, Dependency, DependencyUpdate
from beatgraph.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from beatgraph.config import AnalysisSettings
    from beatgraph.graph.algorithms import CausalityChain, TopologicalOrder
    from beatgraph.graph.analysis import ImpactAnalysis, ReorderCheck
    from beatgraph.graph.store import BeatNode
    from beatgraph.graph.validation_types import ValidationReport
    from beatgraph.visualization import DependencyView

log = get_logger(__name__)

_UPDATE_SAVEPOINT = "update_edge"


def _cycle_finding(source_id: str, target_id: str, message: str) -> Finding:
    return Finding(
        kind="cycle",
        severity="error",
        message=message,
        affected_beats=[source_id, target_id],
        suggestion="Review the dependency chain and remove conflicting dependencies",
    )


class DependencyGraph:
    """Acyclic dependency graph over the beats of one story project.

    Attributes:
        settings: Analysis settings (impact warning threshold).
    """

    def __init__(
        self,
        settings: AnalysisSettings | None = None,
        *,
        store: DependencyStore | None = None,
    ) -> None:
        """Create an empty graph.

        Args:
            settings: Analysis settings. Resolved from the environment and
                defaults if omitted.
            store: Pre-built store. A fresh one is created if omitted.
        """
        if settings is None:
            from beatgraph.config import AnalysisSettings

            settings = AnalysisSettings.from_dict({})
        self.settings = settings
        self._store = store if store is not None else DependencyStore()

    @property
    def store(self) -> DependencyStore:
        """The underlying store (read access for renderers and tests)."""
        return self._store

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def initialize(
        self,
        beats: Iterable[Beat | Mapping[str, Any]],
        dependencies: Iterable[Dependency | Mapping[str, Any]],
    ) -> list[Finding]:
        """Rebuild the graph from a beat list and dependency rows.

        Clears all state, inserts the beats, then adds each dependency
        through :meth:`add_edge`, the same guarded path live edits use.
        Rows that would close a cycle are skipped.

        Args:
            beats: Beats or beat dicts (``id``, ``name``, ``order``).
            dependencies: Dependencies or dependency row dicts.

        Returns:
            Findings for the rows that were rejected (empty if all loaded).
        """
        self._store.clear()
        for beat in beats:
            self._store.add_node(beat if isinstance(beat, Beat) else Beat.model_validate(beat))

        rejected: list[Finding] = []
        for row in dependencies:
            dependency = row if isinstance(row, Dependency) else Dependency.model_validate(row)
            finding = self.add_edge(dependency)
            if finding is not None:
                rejected.append(finding)

        log.info(
            "graph_initialized",
            beats=self._store.node_count(),
            dependencies=self._store.edge_count(),
            rejected=len(rejected),
        )
        return rejected

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def add_edge(self, dependency: Dependency) -> Finding | None:
        """Add a dependency unless it would create a cycle.

        Adding an ID that already exists replaces the whole stored record,
        description included, through :meth:`update_edge`.

        Args:
            dependency: Edge to add.

        Returns:
            None on success, or a ``cycle`` finding if the edge was rejected.
            The graph is unchanged on rejection.
        """
        if self._store.has_edge(dependency.id):
            return self.update_edge(
                dependency.id,
                source_id=dependency.source_id,
                target_id=dependency.target_id,
                type=dependency.type,
                strength=dependency.strength,
                description=dependency.description,
            )

        if self.would_create_cycle(dependency.source_id, dependency.target_id):
            log.info(
                "dependency_rejected",
                dependency_id=dependency.id,
                source=dependency.source_id,
                target=dependency.target_id,
            )
            return _cycle_finding(
                dependency.source_id,
                dependency.target_id,
                "Adding this dependency would create a circular dependency",
            )

        self._store.insert_edge_unchecked(dependency)
        log.debug(
            "dependency_added",
            dependency_id=dependency.id,
            source=dependency.source_id,
            target=dependency.target_id,
            strength=dependency.strength,
        )
        return None

    def remove_edge(self, dependency_id: str) -> bool:
        """Remove a dependency. Removing an edge can never create a cycle.

        Returns:
            True if an edge was removed, False if the ID is unknown.
        """
        removed = self._store.remove_edge(dependency_id)
        if removed is None:
            return False
        log.debug("dependency_removed", dependency_id=dependency_id)
        return True

    def update_edge(self, dependency_id: str, **updates: Any) -> Finding | None:
        """Update fields of an existing dependency.

        Moving an endpoint removes the old edge, checks the new endpoints for
        a cycle, then either inserts the updated edge or rolls the store back
        to the exact state before the call, in the same node objects.
        Changes to ``type``, ``strength`` or ``description`` apply in place
        without a check.

        Args:
            dependency_id: Edge to update.
            **updates: Any of ``source_id``, ``target_id``, ``type``,
                ``strength``, ``description``. ``description=None`` clears
                the description; None for the other fields is ignored.

        Returns:
            None on success (or if the ID is unknown), or a ``cycle``
            finding if the new endpoints were rejected.

        Raises:
            pydantic.ValidationError: If *updates* names an unknown field or
                carries an invalid value.
        """
        existing = self._store.get_edge(dependency_id)
        if existing is None:
            log.warning("dependency_not_found", dependency_id=dependency_id, op="update")
            return None

        update = DependencyUpdate.model_validate(updates)
        updated = existing.with_updates(update)

        if not update.changes_endpoints(existing):
            self._store.replace_edge(updated)
            log.debug("dependency_updated", dependency_id=dependency_id, endpoints=False)
            return None

        self._store.savepoint(_UPDATE_SAVEPOINT)
        try:
            self._store.remove_edge(dependency_id)
            if self.would_create_cycle(updated.source_id, updated.target_id):
                self._store.rollback_to(_UPDATE_SAVEPOINT)
                log.info(
                    "dependency_update_rejected",
                    dependency_id=dependency_id,
                    source=updated.source_id,
                    target=updated.target_id,
                )
                return _cycle_finding(
                    updated.source_id,
                    updated.target_id,
                    "This change would create a circular dependency",
                )
            self._store.insert_edge_unchecked(updated)
        finally:
            self._store.release(_UPDATE_SAVEPOINT)

        log.debug("dependency_updated", dependency_id=dependency_id, endpoints=True)
        return None

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get_beat(self, beat_id: str) -> BeatNode | None:
        return self._store.get_node(beat_id)

    def require_beat(self, beat_id: str, *, context: str = "") -> BeatNode:
        """Get a beat, raising NodeNotFoundError with suggestions if missing."""
        node = self._store.get_node(beat_id)
        if node is None:
            raise NodeNotFoundError(beat_id, available=self._store.node_ids(), context=context)
        return node

    @property
    def beats(self) -> list[BeatNode]:
        return self._store.nodes()

    def get_dependency(self, dependency_id: str) -> Dependency | None:
        return self._store.get_edge(dependency_id)

    @property
    def dependencies(self) -> list[Dependency]:
        """All dependencies in insertion order."""
        return self._store.edges()

    def beat_dependencies(self, beat_id: str) -> tuple[list[Dependency], list[Dependency]]:
        """Edges touching one beat.

        Returns:
            ``(prerequisites, dependents)``: edges targeting the beat and
            edges sourced at it.
        """
        return self._store.edges_to(beat_id), self._store.edges_from(beat_id)

    # -------------------------------------------------------------------------
    # Analysis
    # -------------------------------------------------------------------------

    def would_create_cycle(self, from_id: str, to_id: str) -> bool:
        return algorithms.would_create_cycle(self._store, from_id, to_id)

    def detect_cycles(self) -> list[list[str]]:
        return algorithms.detect_cycles(self._store)

    def topological_order(self) -> TopologicalOrder:
        return algorithms.topological_order(self._store)

    def all_prerequisites(self, beat_id: str) -> list[str]:
        return algorithms.all_prerequisites(self._store, beat_id)

    def all_dependents(self, beat_id: str) -> list[str]:
        return algorithms.all_dependents(self._store, beat_id)

    def causality_chains(self) -> list[CausalityChain]:
        return algorithms.causality_chains(self._store)

    def validate(self, current_orders: Mapping[str, int] | None = None) -> ValidationReport:
        """Validate the graph against a beat ordering.

        Args:
            current_orders: Beat ID -> position. Defaults to each beat's
                stored ``order``.
        """
        if current_orders is None:
            current_orders = self.current_orders()
        return analysis.validate_order(self._store, current_orders)

    def analyze_impact(self, beat_id: str) -> ImpactAnalysis:
        return analysis.analyze_impact(
            self._store,
            beat_id,
            warning_threshold=self.settings.impact_warning_threshold,
        )

    def is_valid_reorder(
        self,
        beat_id: str,
        new_position: int,
        current_orders: Mapping[str, int] | None = None,
    ) -> ReorderCheck:
        if current_orders is None:
            current_orders = self.current_orders()
        return analysis.check_reorder(self._store, beat_id, new_position, current_orders)

    def suggest_optimal_order(self) -> list[str]:
        return analysis.suggest_optimal_order(self._store)

    def visualization_data(self) -> DependencyView:
        """Node/edge summary with levels and degree counts for rendering."""
        from beatgraph.visualization import build_dependency_view

        return build_dependency_view(self)

    def current_orders(self) -> dict[str, int]:
        """Beat ID -> stored ``order`` for every beat."""
        return {node.id: node.order for node in self._store.nodes()}

    # -------------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------------

    def validate_invariants(self) -> list[str]:
        """Check structural invariants and return any violations.

        Invariants checked:
        1. Adjacency lists mirror the edge set between present beats.
        2. No cycle exists.

        Orphan edges are not violations here; :meth:`validate` reports them.

        Returns:
            List of violation messages (empty if valid).
        """
        violations: list[str] = []
        expected_dependents: dict[str, set[str]] = {n.id: set() for n in self._store.nodes()}
        expected_dependencies: dict[str, set[str]] = {n.id: set() for n in self._store.nodes()}

        for edge in self._store.edges():
            if edge.source_id in expected_dependents:
                expected_dependents[edge.source_id].add(edge.target_id)
            if edge.target_id in expected_dependencies:
                expected_dependencies[edge.target_id].add(edge.source_id)

        for node in self._store.nodes():
            if set(node.dependents) != expected_dependents[node.id]:
                violations.append(f"Beat '{node.id}': dependents do not match edge set")
            if set(node.dependencies) != expected_dependencies[node.id]:
                violations.append(f"Beat '{node.id}': dependencies do not match edge set")
            if len(set(node.dependents)) != len(node.dependents):
                violations.append(f"Beat '{node.id}': duplicate dependents")

        for cycle in self.detect_cycles():
            violations.append(f"Cycle: {' → '.join(cycle)}")

        return violations

    def __repr__(self) -> str:
        return (
            f"DependencyGraph(beats={self._store.node_count()}, "
            f"dependencies={self._store.edge_count()})"
        )
