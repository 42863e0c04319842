"""Graph error types.

Graph-rule outcomes (cycles, ordering problems, orphans) are returned as
:class:`~beatgraph.graph.validation_types.Finding` data, never raised. The
exceptions here cover the two remaining cases: a caller naming a beat that
does not exist, and a post-mutation invariant check finding the graph in a
state that should be impossible.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from difflib import get_close_matches


class GraphIntegrityError(Exception):
    """Base class for errors a caller can act on.

    Subclasses must implement to_feedback() to give a message suitable for
    showing to the person who issued the command.
    """

    def to_feedback(self) -> str:
        """Format error as actionable feedback.

        Returns:
            Human-readable error message explaining what's wrong and how to
            fix it.
        """
        raise NotImplementedError


@dataclass
class NodeNotFoundError(GraphIntegrityError):
    """Raised when a beat ID does not exist in the graph.

    Attributes:
        node_id: The ID that was referenced but doesn't exist.
        available: Valid beat IDs that could be used instead.
        context: Description of where the reference occurred.
    """

    node_id: str
    available: list[str] = field(default_factory=list)
    context: str = ""

    def __post_init__(self) -> None:
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = f"Beat '{self.node_id}' not found"
        if self.context:
            msg += f" ({self.context})"
        return msg

    def suggestions(self) -> list[str]:
        """Find similar IDs that might be typos."""
        return get_close_matches(self.node_id, self.available, n=3, cutoff=0.6)

    def to_feedback(self) -> str:
        """Format as actionable feedback."""
        lines = [f"Beat '{self.node_id}' does not exist in this project."]

        suggestions = self.suggestions()
        if suggestions:
            lines.append("Did you mean: " + ", ".join(suggestions) + "?")
        elif self.available:
            shown = sorted(self.available)[:10]
            more = len(self.available) - len(shown)
            listing = ", ".join(shown) + (f" ... and {more} more" if more > 0 else "")
            lines.append(f"Known beats: {listing}")

        return "\n".join(lines)


@dataclass
class GraphCorruptionError(Exception):
    """Raised when post-mutation invariant checks detect graph corruption.

    Unlike a rejected mutation, this indicates a code bug: the mirrored
    adjacency lists disagree with the edge set, or a cycle slipped past the
    guard.

    Attributes:
        violations: List of invariant violations found.
        project_id: Project whose graph was being mutated.
    """

    violations: list[str]
    project_id: str = ""

    def __post_init__(self) -> None:
        msg = f"Graph corruption detected in project {self.project_id or 'unknown'}"
        if self.violations:
            msg += f": {len(self.violations)} violation(s)"
        super().__init__(msg)

    def __str__(self) -> str:
        lines = [f"Graph corruption detected in project {self.project_id or 'unknown'}:"]
        for v in self.violations[:5]:
            lines.append(f"  - {v}")
        if len(self.violations) > 5:
            lines.append(f"  - ... and {len(self.violations) - 5} more")
        return "\n".join(lines)
