"""Tests for beat and dependency input models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from beatgraph.models import Beat, Dependency, DependencyUpdate


class TestBeat:
    """Beat model defaults and coercion."""

    def test_name_defaults_to_id(self) -> None:
        """A beat without a name is labelled by its ID."""
        beat = Beat(id="beat-1")
        assert beat.name == "beat-1"
        assert beat.order == 0

    def test_none_order_becomes_zero(self) -> None:
        """Rows with a null order are placed at 0."""
        beat = Beat.model_validate({"id": "beat-1", "name": "Opening", "order": None})
        assert beat.order == 0

    def test_empty_id_rejected(self) -> None:
        """Beat IDs must be non-empty."""
        with pytest.raises(ValidationError):
            Beat(id="")

    def test_extra_row_fields_ignored(self) -> None:
        """Data-layer columns the engine does not use are dropped."""
        beat = Beat.model_validate({"id": "b", "name": "B", "pacing_score": 0.4})
        assert not hasattr(beat, "pacing_score")


class TestDependency:
    """Dependency model aliases and validation."""

    def test_row_spelling_accepted(self) -> None:
        """Persistence rows use source_beat_id / target_beat_id / dependency_type."""
        dep = Dependency.model_validate(
            {
                "id": "dep-1",
                "source_beat_id": "beat-1",
                "target_beat_id": "beat-2",
                "dependency_type": "causal",
                "strength": "suggested",
                "created_at": "2024-01-15T10:00:00Z",
            }
        )
        assert dep.source_id == "beat-1"
        assert dep.target_id == "beat-2"
        assert dep.type == "causal"
        assert dep.strength == "suggested"

    def test_camel_case_spelling_accepted(self) -> None:
        """UI payloads use sourceId / targetId."""
        dep = Dependency.model_validate({"id": "d", "sourceId": "a", "targetId": "b"})
        assert (dep.source_id, dep.target_id) == ("a", "b")

    def test_defaults(self) -> None:
        """Type defaults to sequential and strength to required."""
        dep = Dependency(id="d", source_id="a", target_id="b")
        assert dep.type == "sequential"
        assert dep.strength == "required"
        assert dep.description is None

    def test_invalid_strength_rejected(self) -> None:
        """Only required / suggested / optional are valid strengths."""
        with pytest.raises(ValidationError):
            Dependency(id="d", source_id="a", target_id="b", strength="mandatory")  # type: ignore[arg-type]

    def test_frozen(self) -> None:
        """Stored dependencies cannot be mutated in place."""
        dep = Dependency(id="d", source_id="a", target_id="b")
        with pytest.raises(ValidationError):
            dep.strength = "optional"  # type: ignore[misc]

    def test_with_updates_applies_set_fields(self) -> None:
        """with_updates merges only the fields that were set."""
        dep = Dependency(id="d", source_id="a", target_id="b", description="why")
        updated = dep.with_updates(DependencyUpdate(strength="optional"))
        assert updated.strength == "optional"
        assert updated.description == "why"
        assert updated.id == "d"

    def test_with_updates_clears_description(self) -> None:
        """An explicit description=None clears the text."""
        dep = Dependency(id="d", source_id="a", target_id="b", description="why")
        updated = dep.with_updates(DependencyUpdate(description=None))
        assert updated.description is None

    def test_with_updates_ignores_none_for_required_fields(self) -> None:
        """None for a required field leaves it unchanged."""
        dep = Dependency(id="d", source_id="a", target_id="b", strength="suggested")
        updated = dep.with_updates(DependencyUpdate(strength=None, target_id=None))
        assert updated.strength == "suggested"
        assert updated.target_id == "b"


class TestDependencyUpdate:
    """Partial update model."""

    def test_id_cannot_be_updated(self) -> None:
        """Unknown fields, including id, are rejected."""
        with pytest.raises(ValidationError):
            DependencyUpdate.model_validate({"id": "other"})

    def test_changes_endpoints(self) -> None:
        """Only a differing source or target counts as an endpoint change."""
        dep = Dependency(id="d", source_id="a", target_id="b")
        assert DependencyUpdate(target_id="c").changes_endpoints(dep)
        assert not DependencyUpdate(target_id="b").changes_endpoints(dep)
        assert not DependencyUpdate(strength="optional").changes_endpoints(dep)
