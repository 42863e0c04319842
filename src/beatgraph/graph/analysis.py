"""Derived views over the dependency graph.

Validation of a caller's beat ordering, impact analysis for editing or
removing a beat, reorder checks and the suggested ordering. All functions
are read-only and always succeed; problems come back as findings or
reasons, never as exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from beatgraph.graph.algorithms import (
    all_dependents,
    all_prerequisites,
    detect_cycles,
    topological_order,
)
from beatgraph.graph.validation_types import Finding, ValidationReport
from beatgraph.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Mapping

    from beatgraph.graph.store import DependencyStore
    from beatgraph.models import Dependency

log = get_logger(__name__)

DEFAULT_IMPACT_WARNING_THRESHOLD = 50


@dataclass
class ImpactAnalysis:
    """Blast radius of changing or removing one beat.

    Attributes:
        beat_id: The beat analysed.
        directly_affected: Immediate dependents.
        transitively_affected: Further dependents, excluding the direct ones.
        impact_score: Percentage (0-100) of all beats affected.
        warnings: Human-readable warnings.
    """

    beat_id: str
    directly_affected: list[str] = field(default_factory=list)
    transitively_affected: list[str] = field(default_factory=list)
    impact_score: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def total_affected(self) -> int:
        return len(self.directly_affected) + len(self.transitively_affected)


@dataclass
class ReorderCheck:
    """Outcome of moving a beat to a new position."""

    valid: bool
    errors: list[str] = field(default_factory=list)


def _name(store: DependencyStore, node_id: str) -> str:
    node = store.get_node(node_id)
    return node.name if node is not None else node_id


def validate_order(store: DependencyStore, current_orders: Mapping[str, int]) -> ValidationReport:
    """Check the graph and a caller's linear ordering against the edge set.

    Produces, in this order:

    - ``cycle`` errors for every cycle found by a full DFS;
    - ``order_violation`` errors for ``required`` edges whose source is not
      strictly before the target in *current_orders*;
    - ``orphan`` errors for every edge endpoint missing from the node set;
    - ``order_violation`` warnings for ``suggested`` edges, same rule.

    ``optional`` edges never produce findings. Edges with an endpoint that
    has no position in *current_orders* are skipped by the order checks.

    Args:
        store: Graph store.
        current_orders: Beat ID -> position in the caller's current ordering.

    Returns:
        ValidationReport (possibly empty).
    """
    findings: list[Finding] = []

    for cycle in detect_cycles(store):
        findings.append(
            Finding(
                kind="cycle",
                severity="error",
                message=f"Circular dependency detected: {' → '.join(cycle)}",
                affected_beats=cycle,
                suggestion="Remove one of the dependencies to break the cycle",
            )
        )

    edges = store.edges()

    for dependency in edges:
        if dependency.strength == "required" and _out_of_order(dependency, current_orders):
            source = _name(store, dependency.source_id)
            target = _name(store, dependency.target_id)
            findings.append(
                Finding(
                    kind="order_violation",
                    severity="error",
                    message=f'"{source}" must come before "{target}" but is placed after',
                    affected_beats=[dependency.source_id, dependency.target_id],
                    suggestion=f'Move "{source}" to a position before "{target}"',
                )
            )

    for dependency in edges:
        for missing, other in (
            (dependency.source_id, dependency.target_id),
            (dependency.target_id, dependency.source_id),
        ):
            if not store.has_node(missing):
                findings.append(
                    Finding(
                        kind="orphan",
                        severity="error",
                        message=f"Dependency {dependency.id} references non-existent beat: {missing}",
                        affected_beats=[other],
                        suggestion="Remove this dependency or add the missing beat",
                    )
                )

    for dependency in edges:
        if dependency.strength == "suggested" and _out_of_order(dependency, current_orders):
            source = _name(store, dependency.source_id)
            target = _name(store, dependency.target_id)
            findings.append(
                Finding(
                    kind="order_violation",
                    severity="warning",
                    message=f'Suggested: "{source}" should come before "{target}"',
                    affected_beats=[dependency.source_id, dependency.target_id],
                    suggestion="Consider reordering for better narrative flow",
                )
            )

    report = ValidationReport(findings=findings)
    log.info("graph_validated", findings=len(findings), summary=report.summary)
    return report


def _out_of_order(dependency: Dependency, current_orders: Mapping[str, int]) -> bool:
    source_pos = current_orders.get(dependency.source_id)
    target_pos = current_orders.get(dependency.target_id)
    if source_pos is None or target_pos is None:
        return False
    return source_pos >= target_pos


def analyze_impact(
    store: DependencyStore,
    node_id: str,
    *,
    warning_threshold: int = DEFAULT_IMPACT_WARNING_THRESHOLD,
) -> ImpactAnalysis:
    """Quantify how much of the story depends on *node_id*.

    ``impact_score = round(100 * (direct + transitive) / node_count)``.
    A warning is added when any outgoing edge is ``required`` and another
    when the score exceeds *warning_threshold*. An unknown beat has no
    dependents and scores 0.

    Args:
        store: Graph store.
        node_id: Beat to analyse.
        warning_threshold: Score above which the "affects more than" warning
            is emitted.

    Returns:
        ImpactAnalysis for the beat.
    """
    node = store.get_node(node_id)
    directly_affected = list(node.dependents) if node is not None else []
    direct = set(directly_affected)
    transitively_affected = [d for d in all_dependents(store, node_id) if d not in direct]

    total = len(directly_affected) + len(transitively_affected)
    node_count = store.node_count()
    # Python's round() is banker's rounding; scores use half-up.
    impact_score = int(100 * total / node_count + 0.5) if node_count else 0
    impact_score = min(impact_score, 100)

    warnings: list[str] = []
    required = [e for e in store.edges_from(node_id) if e.strength == "required"]
    if required:
        warnings.append(f"{len(required)} beat(s) have a required dependency on this beat")
    if impact_score > warning_threshold:
        warnings.append(f"This beat affects more than {warning_threshold}% of the story")

    return ImpactAnalysis(
        beat_id=node_id,
        directly_affected=directly_affected,
        transitively_affected=transitively_affected,
        impact_score=impact_score,
        warnings=warnings,
    )


def check_reorder(
    store: DependencyStore,
    node_id: str,
    new_position: int,
    current_orders: Mapping[str, int],
) -> ReorderCheck:
    """Check whether moving *node_id* to *new_position* respects the graph.

    Every transitive prerequisite must sit strictly before the new position
    and every transitive dependent strictly after it. Beats without a
    position in *current_orders* are not checked.

    Returns:
        ReorderCheck with one reason per offending beat.
    """
    if not store.has_node(node_id):
        return ReorderCheck(valid=False, errors=["Beat not found"])

    errors: list[str] = []
    for prereq_id in all_prerequisites(store, node_id):
        position = current_orders.get(prereq_id)
        if position is not None and position >= new_position:
            errors.append(f'Cannot place before prerequisite "{_name(store, prereq_id)}"')

    for dependent_id in all_dependents(store, node_id):
        position = current_orders.get(dependent_id)
        if position is not None and position <= new_position:
            errors.append(f'Cannot place after dependent "{_name(store, dependent_id)}"')

    return ReorderCheck(valid=not errors, errors=errors)


def suggest_optimal_order(store: DependencyStore) -> list[str]:
    """Sort beats by (topological level, current order).

    The sort is stable, so beats on the same level keep the caller's
    relative order. Returns an empty list if the graph has a cycle.
    """
    topo = topological_order(store)
    if not topo.has_valid_order:
        return []

    nodes = sorted(store.nodes(), key=lambda n: (topo.levels.get(n.id, 0), n.order))
    return [n.id for n in nodes]
