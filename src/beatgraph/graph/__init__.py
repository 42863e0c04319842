"""Graph package - the beat dependency graph engine.

DependencyGraph owns a DependencyStore and guards every edge insertion
against cycles. Analyses (ordering, validation, impact, causality chains,
reorder checks) are pure functions over the store, exposed as methods on
DependencyGraph.
"""

from beatgraph.graph.algorithms import CausalityChain, TopologicalOrder
from beatgraph.graph.analysis import ImpactAnalysis, ReorderCheck
from beatgraph.graph.dependency_graph import DependencyGraph
from beatgraph.graph.errors import (
    GraphCorruptionError,
    GraphIntegrityError,
    NodeNotFoundError,
)
from beatgraph.graph.store import BeatNode, DependencyStore
from beatgraph.graph.validation_types import Finding, ValidationReport

__all__ = [
    "BeatNode",
    "CausalityChain",
    "DependencyGraph",
    "DependencyStore",
    "Finding",
    "GraphCorruptionError",
    "GraphIntegrityError",
    "ImpactAnalysis",
    "NodeNotFoundError",
    "ReorderCheck",
    "TopologicalOrder",
    "ValidationReport",
]
