"""Workspace entity models.

Every entity is a pydantic model with ``validate_assignment`` enabled, so
in-place mutations are checked against the same rules as construction.
Python attributes are snake_case; the camelCase aliases match the portable
``.dtree.json`` format and are used when serializing with ``by_alias=True``.

Entity kinds:
- Node: a narrative unit; ``children`` is the sole edge representation
- Character: a participant with six ability scores and free-text extras
- Story: a narrative event linking characters and optionally one node
- Relationship: one shared record per character pair, with a label per side
- Workspace: an isolated container of all of the above
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_NODE_TYPE = "Narrative"
DEFAULT_COLOR = "none"

# Palette ids understood by the canvas; other values are stored as-is.
PALETTE = ("none", "amber", "rose", "sky", "sage", "violet", "peach")

ABILITY_NAMES = (
    "strength",
    "dexterity",
    "constitution",
    "intelligence",
    "wisdom",
    "charisma",
)
ABILITY_LABELS = {
    "strength": "STR",
    "dexterity": "DEX",
    "constitution": "CON",
    "intelligence": "INT",
    "wisdom": "WIS",
    "charisma": "CHA",
}
ABILITY_MIN = 1
ABILITY_MAX = 30
ABILITY_DEFAULT = 10

EXTRA_NAMES = ("hp", "ac", "speed", "level", "proficiency")


def now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(UTC).isoformat()


def is_known_color(color: str) -> bool:
    """Whether *color* is one of the palette ids."""
    return color in PALETTE


def clamp_ability(value: Any) -> int:
    """Commit a raw ability score edit.

    Non-numeric input falls back to the default score; numeric input is
    truncated to an integer and clamped to [1, 30].
    """
    try:
        score = int(float(value))
    except (TypeError, ValueError):
        return ABILITY_DEFAULT
    return max(ABILITY_MIN, min(ABILITY_MAX, score))


def ability_modifier(score: int) -> int:
    """Modifier for an ability score: floor((score - 10) / 2)."""
    return (score - 10) // 2


def format_modifier(score: int) -> str:
    """Signed modifier text, e.g. ``+4`` or ``-2``."""
    mod = ability_modifier(score)
    return f"+{mod}" if mod >= 0 else str(mod)


class _Entity(BaseModel):
    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the portable (camelCase) field names."""
        return self.model_dump(by_alias=True)


class Node(_Entity):
    """A narrative graph vertex with markdown content and directed children."""

    id: str = Field(min_length=1, frozen=True)
    title: str = ""
    body: str = ""
    type: str = DEFAULT_NODE_TYPE
    edited_at: str = Field(default_factory=now_iso, alias="editedAt")
    x: float = 0
    y: float = 0
    children: list[str] = Field(default_factory=list)
    color: str = DEFAULT_COLOR
    icon: str | None = None
    images: list[str] = Field(default_factory=list)

    def touch(self) -> None:
        self.edited_at = now_iso()


class AbilityScores(BaseModel):
    """The six ability scores. Every assignment is clamped to [1, 30]."""

    model_config = ConfigDict(validate_assignment=True)

    strength: int = ABILITY_DEFAULT
    dexterity: int = ABILITY_DEFAULT
    constitution: int = ABILITY_DEFAULT
    intelligence: int = ABILITY_DEFAULT
    wisdom: int = ABILITY_DEFAULT
    charisma: int = ABILITY_DEFAULT

    @field_validator(*ABILITY_NAMES, mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> int:
        return clamp_ability(value)

    def modifier(self, name: str) -> int:
        if name not in ABILITY_NAMES:
            raise KeyError(name)
        return ability_modifier(getattr(self, name))

    def modifiers(self) -> dict[str, int]:
        return {name: ability_modifier(getattr(self, name)) for name in ABILITY_NAMES}


class CharacterExtras(BaseModel):
    """Free-text sheet fields; never validated beyond being strings."""

    model_config = ConfigDict(validate_assignment=True)

    hp: str = ""
    ac: str = ""
    speed: str = ""
    level: str = ""
    proficiency: str = ""


class Character(_Entity):
    """A participant entity."""

    id: str = Field(min_length=1, frozen=True)
    name: str = "New Character"
    occupation: str = ""
    age: str = ""
    gender: str = ""
    race: str = ""
    alignment: str = ""
    bio: str = ""
    portrait: str | None = None
    fullbody: str | None = None
    stats: AbilityScores = Field(default_factory=AbilityScores)
    extras: CharacterExtras = Field(default_factory=CharacterExtras)
    created_at: str = Field(default_factory=now_iso, alias="createdAt")
    updated_at: str = Field(default_factory=now_iso, alias="updatedAt")

    def touch(self) -> None:
        self.updated_at = now_iso()

    @property
    def subtitle(self) -> str:
        """Race and occupation joined for list display, or "-" when both are empty."""
        return " · ".join(p for p in (self.race, self.occupation) if p) or "-"


class Story(_Entity):
    """A narrative development event."""

    id: str = Field(min_length=1, frozen=True)
    title: str = "New Story Event"
    body: str = ""
    char_ids: list[str] = Field(default_factory=list, alias="charIds")
    node_id: str | None = Field(default=None, alias="nodeId")
    created_at: str = Field(default_factory=now_iso, alias="createdAt")
    updated_at: str = Field(default_factory=now_iso, alias="updatedAt")

    @field_validator("char_ids")
    @classmethod
    def _dedupe(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))

    def touch(self) -> None:
        self.updated_at = now_iso()


class Relationship(_Entity):
    """A symmetric link between two characters, stored once for both sides.

    ``label_a`` is how character A describes the relationship ("My mentor"),
    ``label_b`` how character B does ("My student").
    """

    id: str = Field(min_length=1, frozen=True)
    char_a_id: str = Field(alias="charAId")
    char_b_id: str = Field(alias="charBId")
    label_a: str = Field(default="", alias="labelA")
    label_b: str = Field(default="", alias="labelB")
    description: str = ""
    created_at: str = Field(default_factory=now_iso, alias="createdAt")

    def involves(self, char_id: str) -> bool:
        return char_id in (self.char_a_id, self.char_b_id)

    def pair(self) -> frozenset[str]:
        return frozenset((self.char_a_id, self.char_b_id))

    def counterpart(self, char_id: str) -> str:
        """The id on the other side of the relationship from *char_id*."""
        if char_id == self.char_a_id:
            return self.char_b_id
        if char_id == self.char_b_id:
            return self.char_a_id
        raise ValueError(f"Character '{char_id}' is not part of relationship '{self.id}'")

    def label_for(self, char_id: str) -> str:
        """How *char_id* refers to this relationship."""
        if char_id == self.char_a_id:
            return self.label_a
        if char_id == self.char_b_id:
            return self.label_b
        raise ValueError(f"Character '{char_id}' is not part of relationship '{self.id}'")


class WorkspaceSettings(BaseModel):
    """UI hints stored with a workspace. Not interpreted by the engine."""

    model_config = ConfigDict(validate_assignment=True)

    autosave: bool = False


class Workspace(_Entity):
    """An isolated collection of nodes, characters, stories and relationships."""

    id: str = Field(min_length=1, frozen=True)
    title: str = ""
    nodes: dict[str, Node] = Field(default_factory=dict)
    characters: dict[str, Character] = Field(default_factory=dict)
    stories: dict[str, Story] = Field(default_factory=dict)
    relationships: dict[str, Relationship] = Field(default_factory=dict)
    settings: WorkspaceSettings = Field(default_factory=WorkspaceSettings)

    def __repr__(self) -> str:
        return (
            f"Workspace(id={self.id!r}, title={self.title!r}, nodes={len(self.nodes)}, "
            f"characters={len(self.characters)}, stories={len(self.stories)}, "
            f"relationships={len(self.relationships)})"
        )
