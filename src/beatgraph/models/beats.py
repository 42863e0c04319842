"""Beat and dependency input models.

These models define what the owning application hands to the engine: the
beat list of a story project and its dependency rows. Rows coming straight
from the data layer use ``source_beat_id`` / ``target_beat_id`` /
``dependency_type``; those spellings are accepted as aliases so rows can be
validated without a translation step.

Edge direction: ``source -> target`` means the target depends on the source
(the source must happen first).
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

DependencyType = Literal["sequential", "parallel", "causal"]
DependencyStrength = Literal["required", "suggested", "optional"]

_NULLABLE_FIELDS = frozenset({"description"})


class Beat(BaseModel):
    """A structural unit of a story, as supplied by the caller."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    name: str = ""
    order: int = 0

    @field_validator("order", mode="before")
    @classmethod
    def _missing_order_is_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @model_validator(mode="after")
    def _default_name(self) -> Beat:
        if not self.name:
            self.name = self.id
        return self


class Dependency(BaseModel):
    """A directed relationship between two beats.

    ``type`` is carried through for reporting only; ``strength`` decides
    whether an ordering violation is an error (required), a warning
    (suggested) or ignored (optional).
    """

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    id: str = Field(min_length=1)
    source_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("source_id", "source_beat_id", "sourceId"),
    )
    target_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("target_id", "target_beat_id", "targetId"),
    )
    type: DependencyType = Field(
        default="sequential",
        validation_alias=AliasChoices("type", "dependency_type"),
    )
    strength: DependencyStrength = "required"
    description: str | None = None

    def with_updates(self, updates: DependencyUpdate) -> Dependency:
        """Return a validated copy with the fields set on *updates* applied.

        An explicit ``description=None`` clears the description. ``None`` for
        any other field leaves it unchanged, since those fields are required.
        """
        data = self.model_dump()
        for name, value in updates.model_dump(exclude_unset=True).items():
            if value is not None or name in _NULLABLE_FIELDS:
                data[name] = value
        return Dependency.model_validate(data)


class DependencyUpdate(BaseModel):
    """Partial update for an existing dependency. The id cannot change."""

    model_config = ConfigDict(extra="forbid")

    source_id: str | None = Field(default=None, min_length=1)
    target_id: str | None = Field(default=None, min_length=1)
    type: DependencyType | None = None
    strength: DependencyStrength | None = None
    description: str | None = None

    def changes_endpoints(self, current: Dependency) -> bool:
        """True if this update moves either end of *current*."""
        return (self.source_id is not None and self.source_id != current.source_id) or (
            self.target_id is not None and self.target_id != current.target_id
        )
