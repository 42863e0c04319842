"""Per-project graph ownership for multi-user hosts.

A cycle check and the insertion it gates are two separate steps, so two
writers interleaving on one project's graph could both pass their checks and
together close a loop. GraphRegistry serialises all access to a project's
graph behind one re-entrant lock per project. Analyses take the same lock,
so they never observe a half-applied mutation.

Locking is per project, never finer.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from beatgraph.graph.dependency_graph import DependencyGraph
from beatgraph.graph.errors import GraphCorruptionError
from beatgraph.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping

    from beatgraph.config import AnalysisSettings
    from beatgraph.graph.validation_types import Finding
    from beatgraph.models import Beat, Dependency

log = get_logger(__name__)


class GraphRegistry:
    """Owns one DependencyGraph per project, each behind its own lock.

    Structure:
    - graphs[project_id] = the project's graph
    - locks[project_id] = RLock serialising every operation on it

    A project's lock outlives :meth:`close`. A thread may already be
    waiting on it, and handing a later opener a fresh lock would let two
    writers into the same project. The lock map therefore grows by one small
    entry per distinct project id ever used.
    """

    def __init__(self, settings: AnalysisSettings | None = None) -> None:
        self.settings = settings
        self._graphs: dict[str, DependencyGraph] = {}
        self._locks: dict[str, threading.RLock] = {}
        # Guards the two dicts above, never held while a graph is in use
        self._registry_lock = threading.Lock()

    def _lock_for(self, project_id: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(project_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[project_id] = lock
            return lock

    def open(
        self,
        project_id: str,
        beats: Iterable[Beat | Mapping[str, Any]],
        dependencies: Iterable[Dependency | Mapping[str, Any]],
    ) -> list[Finding]:
        """(Re)initialize a project's graph under its lock.

        Returns:
            Findings for dependency rows rejected during initialization.
        """
        with self._lock_for(project_id):
            with self._registry_lock:
                graph = self._graphs.get(project_id)
                if graph is None:
                    graph = DependencyGraph(self.settings)
                    self._graphs[project_id] = graph
            rejected = graph.initialize(beats, dependencies)

        log.info("project_opened", project_id=project_id, rejected=len(rejected))
        return rejected

    def close(self, project_id: str) -> bool:
        """Drop a project's graph. Returns False if it was not open.

        The project's lock is kept, so a reopened project is serialised by
        the same lock as any thread still queued on the old one.
        """
        with self._lock_for(project_id), self._registry_lock:
            removed = self._graphs.pop(project_id, None)
        if removed is not None:
            log.info("project_closed", project_id=project_id)
        return removed is not None

    def is_open(self, project_id: str) -> bool:
        with self._registry_lock:
            return project_id in self._graphs

    def project_ids(self) -> list[str]:
        with self._registry_lock:
            return sorted(self._graphs)

    def _graph(self, project_id: str) -> DependencyGraph:
        with self._registry_lock:
            graph = self._graphs.get(project_id)
        if graph is None:
            raise KeyError(f"Project '{project_id}' is not open")
        return graph

    @contextmanager
    def exclusive(self, project_id: str) -> Iterator[DependencyGraph]:
        """Hold the project's lock and yield its graph.

        Raises:
            KeyError: If the project is not open.
        """
        with self._lock_for(project_id):
            yield self._graph(project_id)

    @contextmanager
    def mutate(self, project_id: str) -> Iterator[DependencyGraph]:
        """Like :meth:`exclusive`, then check invariants before releasing.

        Raises:
            KeyError: If the project is not open.
            GraphCorruptionError: If the graph violates its invariants after
                the block ran.
        """
        with self._lock_for(project_id):
            graph = self._graph(project_id)
            yield graph
            violations = graph.validate_invariants()
            if violations:
                log.error(
                    "graph_corruption_detected",
                    project_id=project_id,
                    violations=violations[:5],
                )
                raise GraphCorruptionError(violations, project_id=project_id)
