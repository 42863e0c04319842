"""Tests for the per-project graph registry."""

from __future__ import annotations

import threading

import pytest

from beatgraph.config import AnalysisSettings
from beatgraph.graph.errors import GraphCorruptionError
from beatgraph.registry import GraphRegistry
from tests.fixtures.graph_fixtures import make_beats, make_dep


@pytest.fixture
def registry() -> GraphRegistry:
    reg = GraphRegistry()
    reg.open("story-1", make_beats(["A", "B", "C"]), [make_dep("A-B", "A", "B")])
    return reg


class TestLifecycle:
    def test_open_and_close(self, registry: GraphRegistry) -> None:
        assert registry.is_open("story-1")
        assert registry.project_ids() == ["story-1"]

        assert registry.close("story-1") is True
        assert not registry.is_open("story-1")
        assert registry.close("story-1") is False

    def test_open_returns_rejected_rows(self) -> None:
        reg = GraphRegistry()
        rejected = reg.open(
            "p",
            make_beats(["A", "B"]),
            [make_dep("A-B", "A", "B"), make_dep("B-A", "B", "A")],
        )
        assert [f.kind for f in rejected] == ["cycle"]

    def test_reopen_reinitializes(self, registry: GraphRegistry) -> None:
        registry.open("story-1", make_beats(["X"]), [])

        with registry.exclusive("story-1") as graph:
            assert [b.id for b in graph.beats] == ["X"]

    def test_projects_are_isolated(self, registry: GraphRegistry) -> None:
        registry.open("story-2", make_beats(["A", "B"]), [])

        with registry.exclusive("story-2") as graph:
            graph.add_edge(make_dep("B-A", "B", "A"))

        with registry.exclusive("story-1") as graph:
            assert [d.id for d in graph.dependencies] == ["A-B"]

    def test_settings_passed_to_graphs(self) -> None:
        reg = GraphRegistry(AnalysisSettings(impact_warning_threshold=5))
        reg.open("p", make_beats(["A"]), [])

        with reg.exclusive("p") as graph:
            assert graph.settings.impact_warning_threshold == 5


class TestAccess:
    def test_unknown_project(self, registry: GraphRegistry) -> None:
        with pytest.raises(KeyError, match="not open"):
            with registry.exclusive("missing"):
                pass

    def test_lock_is_reentrant(self, registry: GraphRegistry) -> None:
        with registry.mutate("story-1") as outer, registry.exclusive("story-1") as inner:
            assert outer is inner

    def test_mutate_passes_on_clean_graph(self, registry: GraphRegistry) -> None:
        with registry.mutate("story-1") as graph:
            assert graph.add_edge(make_dep("B-C", "B", "C")) is None

        with registry.exclusive("story-1") as graph:
            assert len(graph.dependencies) == 2

    def test_mutate_detects_corruption(self, registry: GraphRegistry) -> None:
        with pytest.raises(GraphCorruptionError) as exc_info:
            with registry.mutate("story-1") as graph:
                graph.store.insert_edge_unchecked(make_dep("B-A", "B", "A"))

        assert exc_info.value.project_id == "story-1"
        assert any(v.startswith("Cycle:") for v in exc_info.value.violations)

    def test_concurrent_writers_never_close_a_loop(self) -> None:
        """Writers racing opposite edges on one project: at most one lands."""
        reg = GraphRegistry()
        ids = [f"b{i}" for i in range(6)]
        reg.open("p", make_beats(ids), [])
        barrier = threading.Barrier(8)

        def writer(n: int) -> None:
            barrier.wait()
            for i in range(50):
                s, t = ids[(n + i) % 6], ids[(n * 7 + i * 3) % 6]
                with reg.mutate("p") as graph:
                    graph.add_edge(make_dep(f"w{n}-{i}", s, t))

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        with reg.exclusive("p") as graph:
            assert graph.detect_cycles() == []
            assert graph.validate_invariants() == []


class TestLocks:
    def test_reopened_project_shares_lock(self, registry: GraphRegistry) -> None:
        """Closing keeps the project's lock for later openers."""
        lock = registry._lock_for("story-1")

        registry.close("story-1")
        registry.open("story-1", make_beats(["A"]), [])

        assert registry._lock_for("story-1") is lock
