"""Pydantic models for engine input.

The owning application loads beats and dependency rows from its data layer
and validates them through these models before handing them to
:class:`beatgraph.graph.DependencyGraph`.
"""

from beatgraph.models.beats import (
    Beat,
    Dependency,
    DependencyStrength,
    DependencyType,
    DependencyUpdate,
)

__all__ = [
    "Beat",
    "Dependency",
    "DependencyStrength",
    "DependencyType",
    "DependencyUpdate",
]
