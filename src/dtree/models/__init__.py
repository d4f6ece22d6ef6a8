"""Entity models, typed patches and factories for workspaces."""

from dtree.models.entities import (
    ABILITY_LABELS,
    ABILITY_NAMES,
    PALETTE,
    AbilityScores,
    Character,
    CharacterExtras,
    Node,
    Relationship,
    Story,
    Workspace,
    WorkspaceSettings,
    ability_modifier,
    clamp_ability,
    format_modifier,
    is_known_color,
    now_iso,
)
from dtree.models.factories import (
    STORY_TEMPLATE_BODY,
    mk_character,
    mk_node,
    mk_relationship,
    mk_story,
    mk_workspace,
    node_position,
    seed_nodes,
)
from dtree.models.patches import (
    CharacterPatch,
    NodePatch,
    RelationshipPatch,
    StoryPatch,
    WorkspacePatch,
)

__all__ = [
    "ABILITY_LABELS",
    "ABILITY_NAMES",
    "PALETTE",
    "STORY_TEMPLATE_BODY",
    "AbilityScores",
    "Character",
    "CharacterExtras",
    "CharacterPatch",
    "Node",
    "NodePatch",
    "Relationship",
    "RelationshipPatch",
    "Story",
    "StoryPatch",
    "Workspace",
    "WorkspacePatch",
    "WorkspaceSettings",
    "ability_modifier",
    "clamp_ability",
    "format_modifier",
    "is_known_color",
    "mk_character",
    "mk_node",
    "mk_relationship",
    "mk_story",
    "mk_workspace",
    "node_position",
    "now_iso",
    "seed_nodes",
]
