"""Entity factories.

Factories stamp a fresh id and creation timestamps and fill every field
with a valid zero value, so a new entity satisfies all workspace invariants
as soon as it is created. They read the clock (and, for node placement, a
random source) but touch no other state.
"""

from __future__ import annotations

import random
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from dtree.config import LayoutConfig
from dtree.ids import get_id_generator
from dtree.models.entities import (
    Character,
    Node,
    Relationship,
    Story,
    Workspace,
    now_iso,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from dtree.ids import IdGenerator

DEFAULT_NODE_TITLE = "New Node"
DEFAULT_NODE_BODY = "Write something here..."

STORY_TEMPLATE_BODY = """## What Happened

*Describe the event, encounter, or moment in detail.*

## Impact

*How did this change the character(s) involved? What shifted internally or externally?*

## Consequences

- *Immediate effect:*
- *Long-term ripple:*

## Character Reflections

> *What does the character think or feel in the aftermath?*"""


def node_position(
    parent: Node | None,
    layout: LayoutConfig | None = None,
    rng: random.Random | None = None,
) -> tuple[float, float]:
    """Where a new node lands on the canvas.

    Children sit a fixed distance below their parent with a random
    horizontal jitter; parentless nodes use the default position.
    """
    layout = layout or LayoutConfig()
    if parent is None:
        return (layout.default_x, layout.default_y)
    jitter = (rng or random).uniform(-layout.child_jitter_x, layout.child_jitter_x)
    return (parent.x + jitter, parent.y + layout.child_offset_y)


def mk_node(
    title: str = DEFAULT_NODE_TITLE,
    *,
    body: str = DEFAULT_NODE_BODY,
    node_type: str = "Narrative",
    parent: Node | None = None,
    layout: LayoutConfig | None = None,
    ids: IdGenerator | None = None,
    rng: random.Random | None = None,
) -> Node:
    """Create a node positioned relative to *parent*.

    The node is not linked to the parent here; linking is the graph
    store's job.
    """
    ids = ids or get_id_generator()
    x, y = node_position(parent, layout, rng)
    return Node(id=ids.fresh_id(), title=title, body=body, type=node_type, x=x, y=y)


def mk_character(name: str = "New Character", *, ids: IdGenerator | None = None) -> Character:
    """Create a character with default ability scores of 10."""
    ids = ids or get_id_generator()
    stamp = now_iso()
    return Character(id=ids.fresh_id(), name=name, created_at=stamp, updated_at=stamp)


def mk_story(
    title: str = "New Story Event",
    *,
    use_template: bool = False,
    char_ids: Iterable[str] = (),
    node_id: str | None = None,
    ids: IdGenerator | None = None,
) -> Story:
    """Create a story event, optionally seeded with the four-section template."""
    ids = ids or get_id_generator()
    stamp = now_iso()
    return Story(
        id=ids.fresh_id(),
        title=title or "New Story Event",
        body=STORY_TEMPLATE_BODY if use_template else "",
        char_ids=list(char_ids),
        node_id=node_id or None,
        created_at=stamp,
        updated_at=stamp,
    )


def mk_relationship(
    char_a_id: str,
    char_b_id: str,
    label_a: str = "",
    label_b: str = "",
    description: str = "",
    *,
    ids: IdGenerator | None = None,
) -> Relationship:
    ids = ids or get_id_generator()
    return Relationship(
        id=ids.fresh_id(),
        char_a_id=char_a_id,
        char_b_id=char_b_id,
        label_a=label_a,
        label_b=label_b,
        description=description,
    )


def mk_workspace(
    title: str,
    nodes: dict[str, Node] | None = None,
    *,
    ids: IdGenerator | None = None,
) -> Workspace:
    """Create a workspace holding *nodes* and no other entities."""
    ids = ids or get_id_generator()
    return Workspace(id=ids.fresh_id(), title=title, nodes=dict(nodes or {}))


def _stamp(year: int, month: int, day: int, hour: int, minute: int) -> str:
    return datetime(year, month, day, hour, minute, tzinfo=UTC).isoformat()


def seed_nodes() -> dict[str, Node]:
    """The demo graph a fresh registry starts with.

    Returns new objects on every call so workspaces never share nodes.
    """
    specs = [
        (
            "1",
            "The Beginning",
            "# Chapter One\n\nEvery story starts with a **choice**. This is yours.\n\n"
            "What path will you take?",
            _stamp(2025, 1, 10, 9, 0),
            (400, 80),
            ["2", "3"],
            "none",
        ),
        (
            "2",
            "The Forest Path",
            "## Into the Woods\n\nYou step into a _dense forest_, the canopy blocking most "
            "of the sun.\n\n> The air smells of pine and something else...\n\n"
            "Ahead the path splits again.",
            _stamp(2025, 1, 11, 14, 22),
            (180, 280),
            ["4", "5"],
            "sage",
        ),
        (
            "3",
            "The Mountain Road",
            "## Upward Bound\n\nThe road winds steeply. Your legs burn but the view is "
            "**breathtaking**.",
            _stamp(2025, 1, 12, 10, 5),
            (630, 280),
            ["6"],
            "sky",
        ),
        (
            "4",
            "The Clearing",
            "### A Hidden Place\n\nYou find a sun-drenched clearing. In its center: a well.",
            _stamp(2025, 1, 13, 16, 40),
            (60, 480),
            [],
            "sage",
        ),
        (
            "5",
            "The Dark Grove",
            "### Shadows and Whispers\n\nThe trees grow close here. Something watches you.",
            _stamp(2025, 1, 14, 11, 15),
            (310, 480),
            [],
            "violet",
        ),
        (
            "6",
            "The Tower",
            "### At the Summit\n\nThe tower door is unlocked. Inside: a spiral stair and a "
            "**book** with your name.",
            _stamp(2025, 1, 15, 9, 30),
            (630, 480),
            [],
            "sky",
        ),
    ]
    return {
        node_id: Node(
            id=node_id,
            title=title,
            body=body,
            edited_at=edited_at,
            x=x,
            y=y,
            children=list(children),
            color=color,
        )
        for node_id, title, body, edited_at, (x, y), children, color in specs
    }
