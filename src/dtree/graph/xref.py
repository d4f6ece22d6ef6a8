"""Cross-reference maintenance between entity kinds.

Stories point at characters and at most one node; relationships point at
two characters. When a referenced entity is deleted these helpers repair
every dependent record so callers never have to know which kinds depend
on which.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from dtree.graph.errors import InvalidStoryScopeError, StoryNotFoundError
from dtree.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from dtree.models.entities import Story, Workspace

log = get_logger(__name__)


class StoryDeleteScope(str, Enum):
    """How far a story deletion reaches.

    ALL removes the story from the workspace. THIS only detaches one
    character (the one whose view initiated the deletion) and keeps the
    story with its other links.
    """

    ALL = "all"
    THIS = "this"


def unlink_nodes(workspace: Workspace, node_ids: Iterable[str]) -> list[str]:
    """Clear ``node_id`` on every story that points at a deleted node.

    Returns:
        Ids of the stories that were unlinked.
    """
    gone = set(node_ids)
    touched: list[str] = []
    for sid, story in workspace.stories.items():
        if story.node_id is not None and story.node_id in gone:
            story.node_id = None
            touched.append(sid)
    if touched:
        log.debug("stories_unlinked_from_nodes", stories=touched, nodes=sorted(gone))
    return touched


def detach_character(workspace: Workspace, char_id: str) -> tuple[list[str], list[str]]:
    """Remove every reference to *char_id* outside the character itself.

    The character is pruned from every story's ``char_ids``; stories left
    without characters stay in place (see ``orphaned_stories``). Every
    relationship with the character at either end is deleted.

    Returns:
        (ids of stories that were pruned, ids of relationships deleted)
    """
    pruned: list[str] = []
    for sid, story in workspace.stories.items():
        if char_id in story.char_ids:
            story.char_ids = [c for c in story.char_ids if c != char_id]
            pruned.append(sid)

    dropped = [rid for rid, rel in workspace.relationships.items() if rel.involves(char_id)]
    for rid in dropped:
        del workspace.relationships[rid]

    log.debug(
        "character_detached",
        character=char_id,
        stories=pruned,
        relationships=dropped,
    )
    return pruned, dropped


def delete_story(
    workspace: Workspace,
    story_id: str,
    scope: StoryDeleteScope,
    from_char_id: str | None = None,
) -> Story | None:
    """Delete a story or detach one character from it.

    Args:
        workspace: Workspace holding the story.
        story_id: Story to act on.
        scope: ``StoryDeleteScope.ALL`` to remove the story entirely,
            ``StoryDeleteScope.THIS`` to only remove *from_char_id* from it.
        from_char_id: Character whose view initiated a THIS deletion.

    Returns:
        The surviving story for THIS, or None for ALL.

    Raises:
        StoryNotFoundError: If the story doesn't exist.
        InvalidStoryScopeError: If THIS is requested without a character.
    """
    scope = StoryDeleteScope(scope)
    story = workspace.stories.get(story_id)
    if story is None:
        raise StoryNotFoundError(
            story_id, available=list(workspace.stories), context="delete_story"
        )

    if scope is StoryDeleteScope.ALL:
        del workspace.stories[story_id]
        log.info("story_deleted", story=story_id)
        return None

    if not from_char_id:
        raise InvalidStoryScopeError(story_id, "scope 'this' needs the initiating character")

    story.char_ids = [c for c in story.char_ids if c != from_char_id]
    story.touch()
    log.info("story_detached", story=story_id, character=from_char_id)
    return story


def orphaned_stories(workspace: Workspace) -> list[Story]:
    """Stories with no characters and no linked node.

    Character and node deletions deliberately keep such stories; this
    query lets a caller surface them.
    """
    return [s for s in workspace.stories.values() if not s.char_ids and s.node_id is None]
