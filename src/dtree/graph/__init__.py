"""Graph package - node graph and cross-referenced entity storage.

NodeGraph edits the parent→child adjacency of one workspace, Cast edits
its characters, stories and relationships, and the xref helpers keep the
references between them consistent on deletion.
"""

from dtree.graph.algorithms import (
    collect_subtree,
    edge_pairs,
    find_violations,
    has_cycle,
    parents_of,
    root_ids,
)
from dtree.graph.cast import Cast
from dtree.graph.errors import (
    CharacterNotFoundError,
    DtreeError,
    DuplicateRelationshipError,
    EdgeEndpointError,
    EmptySelectionError,
    EntityNotFoundError,
    GraphCorruptionError,
    InvalidPatchError,
    InvalidStoryScopeError,
    InvariantGuardError,
    LastWorkspaceError,
    NodeNotFoundError,
    NoWorkspaceError,
    ReferenceMissError,
    RelationshipNotFoundError,
    StoryNotFoundError,
    WorkspaceNotFoundError,
)
from dtree.graph.nodes import NodeGraph
from dtree.graph.xref import (
    StoryDeleteScope,
    delete_story,
    detach_character,
    orphaned_stories,
    unlink_nodes,
)

__all__ = [
    "Cast",
    "CharacterNotFoundError",
    "DtreeError",
    "DuplicateRelationshipError",
    "EdgeEndpointError",
    "EmptySelectionError",
    "EntityNotFoundError",
    "GraphCorruptionError",
    "InvalidPatchError",
    "InvalidStoryScopeError",
    "InvariantGuardError",
    "LastWorkspaceError",
    "NoWorkspaceError",
    "NodeGraph",
    "NodeNotFoundError",
    "ReferenceMissError",
    "RelationshipNotFoundError",
    "StoryDeleteScope",
    "StoryNotFoundError",
    "WorkspaceNotFoundError",
    "collect_subtree",
    "delete_story",
    "detach_character",
    "edge_pairs",
    "find_violations",
    "has_cycle",
    "orphaned_stories",
    "parents_of",
    "root_ids",
    "unlink_nodes",
]
