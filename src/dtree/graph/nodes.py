"""Node graph operations for one workspace.

NodeGraph owns the parent→child adjacency stored in each node's
``children`` list and keeps it free of dangling edges:

- Node creation links the new node under an optional parent
- Updates go through typed ``NodePatch`` records and re-stamp ``edited_at``
- Deletion scrubs the removed ids from every ``children`` list and
  unlinks stories that pointed at them
- ``toggle_connect`` is the single-gesture connect/disconnect primitive;
  it is the only operation that refuses self-loops
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from dtree.graph import algorithms, xref
from dtree.graph.errors import EdgeEndpointError, NodeNotFoundError
from dtree.ids import get_id_generator
from dtree.models.factories import DEFAULT_NODE_BODY, DEFAULT_NODE_TITLE, mk_node
from dtree.observability.logging import get_logger

if TYPE_CHECKING:
    import random
    from collections.abc import Iterable

    from dtree.config import LayoutConfig
    from dtree.ids import IdGenerator
    from dtree.models.entities import Node, Story, Workspace
    from dtree.models.patches import NodePatch

log = get_logger(__name__)


class NodeGraph:
    """Graph store bound to a single workspace.

    All operations mutate ``workspace.nodes`` (and, on deletion,
    ``workspace.stories``) in place.

    Attributes:
        workspace: The workspace whose node graph this store edits.
    """

    def __init__(
        self,
        workspace: Workspace,
        *,
        layout: LayoutConfig | None = None,
        ids: IdGenerator | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.workspace = workspace
        self._layout = layout
        self._ids = ids or get_id_generator()
        self._rng = rng

    @property
    def nodes(self) -> dict[str, Node]:
        return self.workspace.nodes

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get(self, node_id: str) -> Node | None:
        return self.nodes.get(node_id)

    def require(self, node_id: str, context: str = "") -> Node:
        """Return the node or raise NodeNotFoundError with suggestions."""
        node = self.nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id, available=list(self.nodes), context=context)
        return node

    def parents_of(self, node_id: str) -> list[str]:
        return algorithms.parents_of(self.nodes, node_id)

    def root_ids(self) -> list[str]:
        return algorithms.root_ids(self.nodes)

    def children_of(self, node_id: str) -> list[Node]:
        """Existing child nodes of *node_id*, in edge order."""
        node = self.require(node_id, "children_of")
        return [self.nodes[c] for c in node.children if c in self.nodes]

    def stories_for_node(self, node_id: str) -> list[Story]:
        return [s for s in self.workspace.stories.values() if s.node_id == node_id]

    def edge_count(self) -> int:
        return sum(len(n.children) for n in self.nodes.values())

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def add_node(
        self,
        parent_id: str | None = None,
        *,
        title: str = DEFAULT_NODE_TITLE,
        body: str = DEFAULT_NODE_BODY,
        node_type: str = "Narrative",
    ) -> str:
        """Create a node, optionally as a child of *parent_id*.

        With an existing parent the node is placed below it (random
        horizontal jitter) and appended to its children. A missing parent
        is treated as no parent and the node uses the default position.

        Returns:
            The new node's id.
        """
        parent = self.nodes.get(parent_id) if parent_id else None
        node = mk_node(
            title,
            body=body,
            node_type=node_type,
            parent=parent,
            layout=self._layout,
            ids=self._ids,
            rng=self._rng,
        )
        self.nodes[node.id] = node
        if parent is not None:
            parent.children.append(node.id)
        log.debug("node_added", node=node.id, parent=parent.id if parent else None)
        return node.id

    def update_node(self, node_id: str, patch: NodePatch) -> Node:
        """Apply a typed partial update and re-stamp ``edited_at``.

        Raises:
            NodeNotFoundError: If the node doesn't exist.
        """
        node = self.require(node_id, "update_node - node must exist before updating")
        changes: dict[str, Any] = patch.changes()
        for name, value in changes.items():
            setattr(node, name, value)
        node.touch()
        log.debug("node_updated", node=node_id, fields=sorted(changes))
        return node

    def delete_node(self, node_id: str) -> None:
        """Delete a node and every edge and story link pointing at it.

        Raises:
            NodeNotFoundError: If the node doesn't exist.
        """
        self.require(node_id, "delete_node")
        self._remove({node_id})
        log.info("node_deleted", node=node_id)

    def delete_nodes(self, node_ids: Iterable[str]) -> list[str]:
        """Delete several nodes in one pass.

        Equivalent to deleting each id in turn. Ids that don't exist are
        ignored.

        Returns:
            Ids that were actually deleted.
        """
        wanted = list(dict.fromkeys(node_ids))
        present = [nid for nid in wanted if nid in self.nodes]
        if present:
            self._remove(set(present))
        log.info("nodes_deleted", nodes=present, ignored=len(wanted) - len(present))
        return present

    def _remove(self, gone: set[str]) -> None:
        for nid in gone:
            del self.nodes[nid]
        for node in self.nodes.values():
            if any(c in gone for c in node.children):
                node.children = [c for c in node.children if c not in gone]
        xref.unlink_nodes(self.workspace, gone)

    def toggle_connect(self, from_id: str, to_id: str) -> bool | None:
        """Connect *from_id* → *to_id*, or disconnect it if already present.

        Returns:
            True if the edge was added, False if it was removed, None for a
            self-pair (ignored).

        Raises:
            NodeNotFoundError: If *from_id* doesn't exist.
            EdgeEndpointError: If the edge would be added to a missing target.
        """
        if from_id == to_id:
            return None
        node = self.require(from_id, "toggle_connect")
        if to_id in node.children:
            node.children = [c for c in node.children if c != to_id]
            log.debug("nodes_disconnected", source=from_id, target=to_id)
            return False
        if to_id not in self.nodes:
            raise EdgeEndpointError(from_id, to_id, missing="to")
        node.children.append(to_id)
        log.debug("nodes_connected", source=from_id, target=to_id)
        return True

    def disconnect_nodes(self, from_id: str, to_id: str) -> bool:
        """Remove the edge *from_id* → *to_id* if present. Idempotent.

        Returns:
            True if an edge was removed.

        Raises:
            NodeNotFoundError: If *from_id* doesn't exist.
        """
        node = self.require(from_id, "disconnect_nodes")
        if to_id not in node.children:
            return False
        node.children = [c for c in node.children if c != to_id]
        log.debug("nodes_disconnected", source=from_id, target=to_id)
        return True

    def replace_nodes(self, nodes: dict[str, Node]) -> None:
        """Swap in a complete node mapping (e.g. the result of a merge)."""
        self.workspace.nodes = nodes

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate_invariants(self) -> list[str]:
        """Check the owning workspace's invariants; see ``find_violations``."""
        return algorithms.find_violations(self.workspace)

    def __repr__(self) -> str:
        return f"NodeGraph(workspace={self.workspace.id!r}, nodes={len(self.nodes)})"
