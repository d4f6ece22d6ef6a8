"""Typed partial updates for workspace entities.

A patch lists exactly the fields a caller may change. Unknown fields are
rejected, identity fields (``id``) and structural fields (``children``,
``created_at``) are not patchable, and only fields that were explicitly set
are applied. Setting an optional field to ``None`` (e.g. ``icon=None``)
clears it.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dtree.models.entities import ABILITY_NAMES, EXTRA_NAMES


class _Patch(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    def changes(self) -> dict[str, Any]:
        """Fields the caller explicitly set, keyed by attribute name."""
        return self.model_dump(exclude_unset=True)

    def is_empty(self) -> bool:
        return not self.model_fields_set


class NodePatch(_Patch):
    """Editable node fields."""

    title: str | None = None
    body: str | None = None
    type: str | None = None
    x: float | None = None
    y: float | None = None
    color: str | None = None
    icon: str | None = None
    images: list[str] | None = None

    @field_validator("title", "body", "type", "x", "y", "color", "images")
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("field cannot be cleared")
        return value


class CharacterPatch(_Patch):
    """Editable character fields.

    ``stats`` and ``extras`` are partial: only the listed scores or extras
    change. Scores are clamped when committed to the character.
    """

    name: str | None = None
    occupation: str | None = None
    age: str | None = None
    gender: str | None = None
    race: str | None = None
    alignment: str | None = None
    bio: str | None = None
    portrait: str | None = None
    fullbody: str | None = None
    stats: dict[str, Any] | None = None
    extras: dict[str, str] | None = None

    @field_validator("stats")
    @classmethod
    def _known_stats(cls, value: dict[str, Any] | None) -> dict[str, Any] | None:
        if value is not None:
            unknown = sorted(set(value) - set(ABILITY_NAMES))
            if unknown:
                raise ValueError(f"unknown ability score(s): {', '.join(unknown)}")
        return value

    @field_validator("extras")
    @classmethod
    def _known_extras(cls, value: dict[str, str] | None) -> dict[str, str] | None:
        if value is not None:
            unknown = sorted(set(value) - set(EXTRA_NAMES))
            if unknown:
                raise ValueError(f"unknown extra field(s): {', '.join(unknown)}")
        return value


class StoryPatch(_Patch):
    """Editable story fields."""

    title: str | None = None
    body: str | None = None
    char_ids: list[str] | None = Field(default=None, alias="charIds")
    node_id: str | None = Field(default=None, alias="nodeId")

    @field_validator("title", "body", "char_ids")
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("field cannot be cleared")
        return value


class RelationshipPatch(_Patch):
    """Editable relationship fields. The character pair is fixed."""

    label_a: str | None = Field(default=None, alias="labelA")
    label_b: str | None = Field(default=None, alias="labelB")
    description: str | None = None


class WorkspacePatch(_Patch):
    """Editable workspace fields."""

    title: str | None = None
    autosave: bool | None = None
