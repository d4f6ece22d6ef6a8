"""Character, story and relationship records for one workspace.

Cast is the CRUD surface for the non-node entity kinds. Deletions delegate
to ``dtree.graph.xref`` so dependent records are repaired in the same call.
Stories and relationships may only reference entities that exist in the
workspace at the time they are written.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from dtree.graph import xref
from dtree.graph.errors import (
    CharacterNotFoundError,
    DuplicateRelationshipError,
    NodeNotFoundError,
    RelationshipNotFoundError,
    StoryNotFoundError,
)
from dtree.ids import get_id_generator
from dtree.models.entities import AbilityScores, CharacterExtras, Story
from dtree.models.factories import mk_character, mk_relationship, mk_story
from dtree.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from dtree.ids import IdGenerator
    from dtree.models.entities import Character, Relationship, Workspace
    from dtree.models.patches import CharacterPatch, RelationshipPatch, StoryPatch

log = get_logger(__name__)


class Cast:
    """Entity store for characters, stories and relationships."""

    def __init__(self, workspace: Workspace, *, ids: IdGenerator | None = None) -> None:
        self.workspace = workspace
        self._ids = ids or get_id_generator()

    # -------------------------------------------------------------------------
    # Lookup helpers
    # -------------------------------------------------------------------------

    def character(self, char_id: str, context: str = "") -> Character:
        found = self.workspace.characters.get(char_id)
        if found is None:
            raise CharacterNotFoundError(
                char_id, available=list(self.workspace.characters), context=context
            )
        return found

    def story(self, story_id: str, context: str = "") -> Story:
        found = self.workspace.stories.get(story_id)
        if found is None:
            raise StoryNotFoundError(
                story_id, available=list(self.workspace.stories), context=context
            )
        return found

    def relationship(self, rel_id: str, context: str = "") -> Relationship:
        found = self.workspace.relationships.get(rel_id)
        if found is None:
            raise RelationshipNotFoundError(
                rel_id, available=list(self.workspace.relationships), context=context
            )
        return found

    def _check_refs(self, char_ids: Iterable[str], node_id: str | None, context: str) -> None:
        for cid in char_ids:
            self.character(cid, context)
        if node_id is not None and node_id not in self.workspace.nodes:
            raise NodeNotFoundError(node_id, available=list(self.workspace.nodes), context=context)

    # -------------------------------------------------------------------------
    # Characters
    # -------------------------------------------------------------------------

    def add_character(self, name: str = "New Character") -> Character:
        char = mk_character(name, ids=self._ids)
        self.workspace.characters[char.id] = char
        log.info("character_added", character=char.id)
        return char

    def update_character(self, char_id: str, patch: CharacterPatch) -> Character:
        """Commit a character edit.

        Ability scores in ``patch.stats`` are clamped to [1, 30] as they are
        committed; scores not named in the patch keep their value.
        """
        char = self.character(char_id, "update_character")
        changes: dict[str, Any] = patch.changes()
        stats = changes.pop("stats", None)
        extras = changes.pop("extras", None)
        for name, value in changes.items():
            setattr(char, name, value)
        if stats:
            char.stats = AbilityScores.model_validate({**char.stats.model_dump(), **stats})
        if extras:
            char.extras = CharacterExtras.model_validate({**char.extras.model_dump(), **extras})
        char.touch()
        log.debug("character_updated", character=char_id, fields=sorted(patch.changes()))
        return char

    def delete_character(self, char_id: str) -> None:
        """Delete a character, pruning it from stories and dropping its relationships."""
        self.character(char_id, "delete_character")
        del self.workspace.characters[char_id]
        xref.detach_character(self.workspace, char_id)
        log.info("character_deleted", character=char_id)

    # -------------------------------------------------------------------------
    # Stories
    # -------------------------------------------------------------------------

    def create_story(
        self,
        title: str = "New Story Event",
        *,
        use_template: bool = True,
        char_ids: Iterable[str] = (),
        node_id: str | None = None,
    ) -> Story:
        """Create a story event linked to existing characters and node."""
        char_ids = list(char_ids)
        self._check_refs(char_ids, node_id, "create_story")
        story = mk_story(
            title, use_template=use_template, char_ids=char_ids, node_id=node_id, ids=self._ids
        )
        self.workspace.stories[story.id] = story
        log.info("story_created", story=story.id, characters=story.char_ids, node=node_id)
        return story

    def save_story(self, story_id: str, patch: StoryPatch) -> Story:
        """Commit edits to an existing story and re-stamp ``updated_at``."""
        story = self.story(story_id, "save_story")
        changes: dict[str, Any] = patch.changes()
        self._check_refs(
            changes.get("char_ids", ()),
            changes.get("node_id"),
            "save_story",
        )
        for name, value in changes.items():
            setattr(story, name, value)
        story.touch()
        log.debug("story_saved", story=story_id, fields=sorted(changes))
        return story

    def toggle_story_character(self, story_id: str, char_id: str) -> bool:
        """Add *char_id* to the story, or remove it if already involved.

        Returns:
            True if the character is now involved.
        """
        story = self.story(story_id, "toggle_story_character")
        if char_id in story.char_ids:
            story.char_ids = [c for c in story.char_ids if c != char_id]
            involved = False
        else:
            self.character(char_id, "toggle_story_character")
            story.char_ids = [*story.char_ids, char_id]
            involved = True
        story.touch()
        return involved

    def delete_story(
        self,
        story_id: str,
        scope: xref.StoryDeleteScope,
        from_char_id: str | None = None,
    ) -> Story | None:
        return xref.delete_story(self.workspace, story_id, scope, from_char_id)

    def stories_for_character(self, char_id: str) -> list[Story]:
        return [s for s in self.workspace.stories.values() if char_id in s.char_ids]

    # -------------------------------------------------------------------------
    # Relationships
    # -------------------------------------------------------------------------

    def find_relationship(self, char_a_id: str, char_b_id: str) -> Relationship | None:
        """The relationship joining the two characters, in either order."""
        pair = frozenset((char_a_id, char_b_id))
        for rel in self.workspace.relationships.values():
            if rel.pair() == pair:
                return rel
        return None

    def add_relationship(
        self,
        char_a_id: str,
        char_b_id: str,
        label_a: str = "",
        label_b: str = "",
        description: str = "",
    ) -> Relationship:
        """Create the single shared relationship record for a character pair.

        Raises:
            CharacterNotFoundError: If either character doesn't exist.
            DuplicateRelationshipError: If the pair is already related.
        """
        self.character(char_a_id, "add_relationship")
        self.character(char_b_id, "add_relationship")
        existing = self.find_relationship(char_a_id, char_b_id)
        if existing is not None:
            raise DuplicateRelationshipError(char_a_id, char_b_id, existing.id)
        rel = mk_relationship(char_a_id, char_b_id, label_a, label_b, description, ids=self._ids)
        self.workspace.relationships[rel.id] = rel
        log.info("relationship_added", relationship=rel.id, pair=[char_a_id, char_b_id])
        return rel

    def update_relationship(self, rel_id: str, patch: RelationshipPatch) -> Relationship:
        rel = self.relationship(rel_id, "update_relationship")
        for name, value in patch.changes().items():
            setattr(rel, name, value)
        return rel

    def delete_relationship(self, rel_id: str) -> None:
        self.relationship(rel_id, "delete_relationship")
        del self.workspace.relationships[rel_id]
        log.info("relationship_deleted", relationship=rel_id)

    def relationships_for(self, char_id: str) -> list[Relationship]:
        return [r for r in self.workspace.relationships.values() if r.involves(char_id)]

    def available_partners(self, char_id: str) -> list[Character]:
        """Characters *char_id* could still start a relationship with."""
        taken = {r.counterpart(char_id) for r in self.relationships_for(char_id)}
        return [
            c
            for cid, c in self.workspace.characters.items()
            if cid != char_id and cid not in taken
        ]
