"""Shared graph algorithms over a workspace's node mapping.

Pure functions that read nodes without modifying them. The node graph may
contain cycles, so every traversal keeps a visited set.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from dtree.models.entities import Node, Workspace


def collect_subtree(nodes: Mapping[str, Node], root_ids: Iterable[str]) -> set[str]:
    """Compute the subtree closure of *root_ids*.

    Breadth-first traversal along ``children`` edges. Each id is visited at
    most once, so cycles terminate; unknown ids (as roots or as dangling
    children) are skipped.

    Args:
        nodes: Node mapping to traverse.
        root_ids: Starting node ids.

    Returns:
        Set of reachable node ids, roots included.
    """
    visited: set[str] = set()
    queue = deque(root_ids)
    while queue:
        node_id = queue.popleft()
        if node_id in visited or node_id not in nodes:
            continue
        visited.add(node_id)
        queue.extend(nodes[node_id].children)
    return visited


def parents_of(nodes: Mapping[str, Node], node_id: str) -> list[str]:
    """Ids of nodes that list *node_id* as a child, in mapping order."""
    return [nid for nid, node in nodes.items() if node_id in node.children]


def root_ids(nodes: Mapping[str, Node]) -> list[str]:
    """Ids of nodes with no parent.

    These are the default export roots. A graph that is one big cycle has
    no roots.
    """
    has_parent = {child for node in nodes.values() for child in node.children}
    return [nid for nid in nodes if nid not in has_parent]


def edge_pairs(nodes: Mapping[str, Node], within: set[str] | None = None) -> list[tuple[str, str]]:
    """Directed (from, to) pairs, optionally restricted to endpoints in *within*."""
    pairs: list[tuple[str, str]] = []
    for nid, node in nodes.items():
        if within is not None and nid not in within:
            continue
        for child in node.children:
            if within is None or child in within:
                pairs.append((nid, child))
    return pairs


def has_cycle(nodes: Mapping[str, Node]) -> bool:
    """Whether following ``children`` edges can return to a visited node.

    Iterative three-colour DFS; dangling children are ignored.
    """
    white, grey, black = 0, 1, 2
    colour = dict.fromkeys(nodes, white)

    for start in nodes:
        if colour[start] != white:
            continue
        stack: list[tuple[str, int]] = [(start, 0)]
        colour[start] = grey
        while stack:
            nid, idx = stack[-1]
            children = nodes[nid].children
            if idx < len(children):
                stack[-1] = (nid, idx + 1)
                child = children[idx]
                state = colour.get(child)
                if state == grey:
                    return True
                if state == white:
                    colour[child] = grey
                    stack.append((child, 0))
            else:
                colour[nid] = black
                stack.pop()
    return False


def find_violations(workspace: Workspace) -> list[str]:
    """Check workspace invariants and return any violations.

    Invariants checked:
    1. Every child id references an existing node
    2. No node lists the same child twice
    3. Every story character id references an existing character
    4. Every story node id, if set, references an existing node
    5. Every relationship endpoint references an existing character
    6. No two relationships share the same character pair

    This detects code bugs and corrupt data, not user input errors.

    Returns:
        List of violation messages (empty if valid).
    """
    violations: list[str] = []
    nodes = workspace.nodes

    for nid, node in nodes.items():
        seen: set[str] = set()
        for child in node.children:
            if child not in nodes:
                violations.append(f"Node '{nid}': child '{child}' does not exist")
            if child in seen:
                violations.append(f"Node '{nid}': duplicate edge to '{child}'")
            seen.add(child)

    for sid, story in workspace.stories.items():
        for cid in story.char_ids:
            if cid not in workspace.characters:
                violations.append(f"Story '{sid}': character '{cid}' does not exist")
        if story.node_id is not None and story.node_id not in nodes:
            violations.append(f"Story '{sid}': node '{story.node_id}' does not exist")

    pairs: dict[frozenset[str], str] = {}
    for rid, rel in workspace.relationships.items():
        for cid in (rel.char_a_id, rel.char_b_id):
            if cid not in workspace.characters:
                violations.append(f"Relationship '{rid}': character '{cid}' does not exist")
        pair = rel.pair()
        if pair in pairs:
            violations.append(f"Relationship '{rid}' duplicates pair of '{pairs[pair]}'")
        pairs[pair] = rid

    return violations
