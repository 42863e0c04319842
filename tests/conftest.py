"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from beatgraph.graph.dependency_graph import DependencyGraph  # noqa: TC001
from tests.fixtures.graph_fixtures import make_graph


@pytest.fixture
def abc_graph() -> DependencyGraph:
    """Beats A, B, C with required edges A→B and B→C."""
    return make_graph(["A", "B", "C"], [("A", "B"), ("B", "C")])


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


SAMPLE_PROJECT_YAML = """\
name: The Long Night
beats:
  - {id: beat-1, name: Opening, order: 0}
  - {id: beat-2, name: Inciting Incident, order: 1}
  - {id: beat-3, name: Midpoint, order: 2}
  - {id: beat-4, name: Climax, order: 3}
dependencies:
  - id: dep-1
    source_beat_id: beat-1
    target_beat_id: beat-2
    dependency_type: sequential
    strength: required
    created_at: '2024-01-15T10:00:00Z'
  - id: dep-2
    source_beat_id: beat-2
    target_beat_id: beat-3
    dependency_type: causal
    strength: required
  - id: dep-3
    source_beat_id: beat-3
    target_beat_id: beat-4
    dependency_type: causal
    strength: suggested
settings:
  impact_warning_threshold: 50
"""


@pytest.fixture
def project_file(tmp_path: Path) -> Path:
    """A valid four-beat project file."""
    path = tmp_path / "story.yaml"
    path.write_text(SAMPLE_PROJECT_YAML, encoding="utf-8")
    return path
