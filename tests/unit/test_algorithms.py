"""Tests for graph traversal algorithms."""

from __future__ import annotations

from beatgraph.graph.algorithms import (
    all_dependents,
    all_prerequisites,
    causality_chains,
    detect_cycles,
    topological_order,
    would_create_cycle,
)
from beatgraph.graph.store import DependencyStore
from beatgraph.models import Beat
from tests.fixtures.graph_fixtures import make_dep, make_diamond_graph, make_graph


def _raw_store(beat_ids: list[str], edges: list[tuple[str, str]]) -> DependencyStore:
    """Store built without the cycle guard, for legacy/bulk data."""
    store = DependencyStore()
    for i, beat_id in enumerate(beat_ids):
        store.add_node(Beat(id=beat_id, order=i))
    for s, t in edges:
        store.insert_edge_unchecked(make_dep(f"{s}-{t}", s, t))
    return store


class TestWouldCreateCycle:
    """Reachability check used by the mutation guard."""

    def test_back_edge_closes_cycle(self) -> None:
        """C→A on A→B→C would close a loop."""
        store = make_graph(["A", "B", "C"], [("A", "B"), ("B", "C")]).store
        assert would_create_cycle(store, "C", "A")

    def test_forward_edge_is_safe(self) -> None:
        """A→C on A→B→C is a shortcut, not a cycle."""
        store = make_graph(["A", "B", "C"], [("A", "B"), ("B", "C")]).store
        assert not would_create_cycle(store, "A", "C")

    def test_self_loop(self) -> None:
        """An edge from a beat to itself is always a cycle."""
        store = make_graph(["A"]).store
        assert would_create_cycle(store, "A", "A")

    def test_unrelated_beats(self) -> None:
        """Disconnected beats never form a cycle."""
        store = make_graph(["A", "B", "C"], [("A", "B")]).store
        assert not would_create_cycle(store, "C", "A")
        assert not would_create_cycle(store, "B", "C")

    def test_unknown_beats(self) -> None:
        """Unknown IDs have no dependents, so only a self-loop is a cycle."""
        store = make_graph(["A"]).store
        assert not would_create_cycle(store, "ghost", "A")
        assert would_create_cycle(store, "ghost", "ghost")

    def test_matches_reachability_on_diamond(self) -> None:
        """True exactly when the target already reaches the source."""
        graph = make_diamond_graph()
        store = graph.store
        for a in store.node_ids():
            for b in store.node_ids():
                reaches = a == b or a in all_dependents(store, b)
                assert would_create_cycle(store, a, b) is reaches, (a, b)


class TestDetectCycles:
    """Cycle enumeration over unguarded data."""

    def test_acyclic_graph_has_none(self) -> None:
        """A guarded graph never has cycles."""
        assert detect_cycles(make_diamond_graph().store) == []

    def test_three_cycle(self) -> None:
        """A→B→C→A is reported as a closed path."""
        store = _raw_store(["A", "B", "C"], [("A", "B"), ("B", "C"), ("C", "A")])
        assert detect_cycles(store) == [["A", "B", "C", "A"]]

    def test_self_loop(self) -> None:
        """A self-loop is a cycle of one beat."""
        store = _raw_store(["A"], [("A", "A")])
        assert detect_cycles(store) == [["A", "A"]]

    def test_cycle_behind_prefix(self) -> None:
        """Only the looping slice of the DFS path is recorded."""
        store = _raw_store(["A", "B", "C", "D"], [("A", "B"), ("B", "C"), ("C", "D"), ("D", "B")])
        assert detect_cycles(store) == [["B", "C", "D", "B"]]

    def test_deep_chain_does_not_overflow(self) -> None:
        """Iterative DFS handles chains deeper than the recursion limit."""
        ids = [f"b{i}" for i in range(5000)]
        edges = list(zip(ids, ids[1:], strict=False))
        edges.append((ids[-1], ids[0]))
        store = _raw_store(ids, edges)

        cycles = detect_cycles(store)

        assert len(cycles) == 1
        assert len(cycles[0]) == 5001


class TestTopologicalOrder:
    """Kahn ordering with levels."""

    def test_chain(self) -> None:
        """A→B→C orders as A, B, C at levels 0, 1, 2."""
        store = make_graph(["A", "B", "C"], [("A", "B"), ("B", "C")]).store
        topo = topological_order(store)

        assert topo.has_valid_order
        assert topo.order == ["A", "B", "C"]
        assert topo.levels == {"A": 0, "B": 1, "C": 2}
        assert topo.cycles == []

    def test_level_is_longest_path(self) -> None:
        """A beat's level is one more than its deepest prerequisite."""
        graph = make_graph(["A", "B", "C", "D"], [("A", "B"), ("B", "C"), ("A", "D"), ("C", "D")])
        topo = topological_order(graph.store)
        assert topo.levels["D"] == 3

    def test_every_edge_increases_level(self) -> None:
        """For every edge s→t, level(t) > level(s)."""
        graph = make_diamond_graph()
        topo = topological_order(graph.store)

        assert len(topo.order) == graph.store.node_count()
        for dep in graph.dependencies:
            assert topo.levels[dep.target_id] > topo.levels[dep.source_id]

    def test_independent_beats_keep_insertion_order(self) -> None:
        """Ties are broken by the order beats were supplied."""
        store = make_graph(["C", "A", "B"]).store
        assert topological_order(store).order == ["C", "A", "B"]

    def test_cycle_marks_order_invalid(self) -> None:
        """Beats on or behind a cycle cannot be ordered."""
        store = _raw_store(["A", "B", "C", "D"], [("A", "B"), ("B", "C"), ("C", "B"), ("C", "D")])
        topo = topological_order(store)

        assert not topo.has_valid_order
        assert topo.order == ["A"]
        assert topo.levels == {"A": 0}
        assert topo.cycles == [["B", "C", "B"]]

    def test_orphan_prerequisite_does_not_block(self) -> None:
        """An edge from a missing beat does not hold its target back."""
        store = _raw_store(["A", "B"], [("ghost", "B"), ("A", "B")])
        topo = topological_order(store)
        assert topo.has_valid_order
        assert topo.order == ["A", "B"]


class TestTransitiveClosure:
    """getAllPrerequisites / getAllDependents."""

    def test_prerequisites(self) -> None:
        """E depends on everything upstream of it."""
        store = make_diamond_graph().store
        assert all_prerequisites(store, "E") == ["D", "B", "C", "A"]

    def test_dependents(self) -> None:
        """Everything downstream of A depends on it."""
        store = make_diamond_graph().store
        assert all_dependents(store, "A") == ["B", "C", "D", "E"]

    def test_leaf_and_unknown(self) -> None:
        """Leaves and unknown beats have empty closures."""
        store = make_diamond_graph().store
        assert all_dependents(store, "E") == []
        assert all_prerequisites(store, "missing") == []

    def test_closure_is_closed(self) -> None:
        """Prerequisites of a prerequisite are already in the closure."""
        store = make_diamond_graph().store
        closure = set(all_prerequisites(store, "E"))
        for beat_id in closure:
            assert set(all_prerequisites(store, beat_id)) <= closure


class TestCausalityChains:
    """Linear single-dependent chains."""

    def test_linear_chain(self) -> None:
        """A chain follows single dependents to the end."""
        graph = make_graph(["A", "B", "C"], [("A", "B"), ("B", "C")])
        chains = causality_chains(graph.store)

        assert len(chains) == 1
        assert chains[0].id == "chain_0"
        assert chains[0].name == "Beat A"
        assert chains[0].beats == ["A", "B", "C"]
        assert chains[0].is_complete

    def test_branch_point_ends_chain(self) -> None:
        """A beat with two dependents terminates the chain at itself."""
        graph = make_graph(["A", "B", "C", "D"], [("A", "B"), ("B", "C"), ("B", "D")])
        chains = causality_chains(graph.store)
        assert [c.beats for c in chains] == [["A", "B"]]

    def test_single_beat_chains_dropped(self) -> None:
        """Roots that branch immediately produce no chain."""
        graph = make_diamond_graph()
        assert causality_chains(graph.store) == []

    def test_beats_not_reused_across_chains(self) -> None:
        """Two roots merging into one beat: the second chain stops short."""
        graph = make_graph(["A", "X", "M", "Z"], [("A", "M"), ("X", "M"), ("M", "Z")])
        chains = causality_chains(graph.store)

        assert [c.beats for c in chains] == [["A", "M", "Z"]]

    def test_isolated_beats(self) -> None:
        """Beats without edges form no chains."""
        assert causality_chains(make_graph(["A", "B"]).store) == []
