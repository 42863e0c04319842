"""Settings and project file loading."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path  # noqa: TC003 - used at runtime
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError
from ruamel.yaml import YAML

from beatgraph.graph.analysis import DEFAULT_IMPACT_WARNING_THRESHOLD
from beatgraph.graph.dependency_graph import DependencyGraph
from beatgraph.models import Beat, Dependency

if TYPE_CHECKING:
    from beatgraph.graph.validation_types import Finding

IMPACT_THRESHOLD_ENV = "BEATGRAPH_IMPACT_THRESHOLD"


@dataclass
class AnalysisSettings:
    """Tunable analysis behaviour.

    Resolution order for each field:
    1. Environment variable (e.g., BEATGRAPH_IMPACT_THRESHOLD)
    2. Project file ``settings`` block
    3. Default

    Attributes:
        impact_warning_threshold: Impact score (percent) above which
            analyze_impact adds a "affects more than" warning.
    """

    impact_warning_threshold: int = DEFAULT_IMPACT_WARNING_THRESHOLD

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnalysisSettings:
        """Create settings from a ``settings`` block, applying env overrides.

        Raises:
            ValueError: If a threshold is not an integer in [0, 100].
        """
        raw = os.getenv(IMPACT_THRESHOLD_ENV) or data.get(
            "impact_warning_threshold", DEFAULT_IMPACT_WARNING_THRESHOLD
        )
        threshold = int(raw)
        if not 0 <= threshold <= 100:
            raise ValueError(f"impact_warning_threshold must be within 0-100, got {threshold}")
        return cls(impact_warning_threshold=threshold)


@dataclass
class ProjectFile:
    """Beats and dependency rows of one story project, as read from disk."""

    name: str
    beats: list[Beat] = field(default_factory=list)
    dependencies: list[Dependency] = field(default_factory=list)
    settings: AnalysisSettings = field(default_factory=AnalysisSettings)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProjectFile:
        """Create a project from a parsed file.

        Args:
            data: Mapping with ``name``, ``beats``, ``dependencies`` and an
                optional ``settings`` block.

        Raises:
            pydantic.ValidationError: If a beat or dependency row is invalid.
            ValueError: If the settings block is invalid.
        """
        return cls(
            name=str(data.get("name") or "unnamed"),
            beats=[Beat.model_validate(dict(b)) for b in data.get("beats") or []],
            dependencies=[
                Dependency.model_validate(dict(d)) for d in data.get("dependencies") or []
            ],
            settings=AnalysisSettings.from_dict(dict(data.get("settings") or {})),
        )

    def build_graph(self) -> tuple[DependencyGraph, list[Finding]]:
        """Build a DependencyGraph from this project.

        Returns:
            The graph and the findings for dependency rows rejected during
            initialization.
        """
        graph = DependencyGraph(self.settings)
        rejected = graph.initialize(self.beats, self.dependencies)
        return graph, rejected

    def current_orders(self) -> dict[str, int]:
        """Beat ID -> ``order`` as recorded in the file."""
        return {beat.id: beat.order for beat in self.beats}


class ProjectFileError(Exception):
    """Raised when a project file cannot be loaded."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load project file at {path}: {reason}")


def load_project(path: Path) -> ProjectFile:
    """Load a project file (YAML, or JSON as a YAML subset).

    Args:
        path: Path to the project file.

    Returns:
        ProjectFile instance.

    Raises:
        ProjectFileError: If the file cannot be read or is malformed.
    """
    if not path.exists():
        raise ProjectFileError(path, "File not found")

    yaml = YAML(typ="safe")
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)

        if data is None:
            raise ProjectFileError(path, "Empty file")
        if not isinstance(data, dict):
            raise ProjectFileError(path, "Top level must be a mapping")

        return ProjectFile.from_dict(data)
    except ValidationError as e:
        raise ProjectFileError(path, f"{e.error_count()} invalid field(s): {e}") from e
    except Exception as e:
        if isinstance(e, ProjectFileError):
            raise
        raise ProjectFileError(path, str(e)) from e
