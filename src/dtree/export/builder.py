"""Build portable graph payloads from a workspace."""

from __future__ import annotations

import math
import re
from enum import Enum
from typing import TYPE_CHECKING, Any

from dtree.export.payload import (
    FILE_SUFFIX,
    FORMAT_VERSION,
    ExportedEdge,
    ExportedNode,
    GraphPayload,
)
from dtree.graph.algorithms import collect_subtree, edge_pairs, root_ids
from dtree.graph.errors import EmptySelectionError
from dtree.models.entities import DEFAULT_COLOR, now_iso
from dtree.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Mapping

    from dtree.models.entities import Node, Workspace

log = get_logger(__name__)


class ExportMode(str, Enum):
    """Which nodes an export covers."""

    ALL = "all"
    SUBTREE = "subtree"


def _round(value: float) -> int:
    # half-up, so 2.5 -> 3 and -2.5 -> -2; non-finite positions export as 0
    if not math.isfinite(value):
        return 0
    return math.floor(value + 0.5)


def build_export(
    nodes: Mapping[str, Node],
    node_ids: Collection[str],
    label: str,
    *,
    exported_at: str | None = None,
) -> dict[str, Any]:
    """Serialize the given nodes and the edges among them.

    Nodes are emitted in workspace order. Ids not present in *nodes* are
    skipped. Edges are kept only when both endpoints are exported.

    Args:
        nodes: Node mapping of the source workspace.
        node_ids: Ids to export.
        label: Human-readable label stored in the payload.
        exported_at: Override the export timestamp (for tests).

    Returns:
        Payload dict in the portable format.
    """
    selected = {nid for nid in node_ids if nid in nodes}
    ordered = [node for nid, node in nodes.items() if nid in selected]
    edges = [
        ExportedEdge(from_id=src, to_id=dst)
        for src, dst in edge_pairs({n.id: n for n in ordered}, within=selected)
    ]
    payload = GraphPayload(
        dtree=FORMAT_VERSION,
        exported_at=exported_at or now_iso(),
        label=label,
        node_count=len(ordered),
        edge_count=len(edges),
        nodes=[
            ExportedNode(
                id=n.id,
                title=n.title,
                body=n.body,
                type=n.type,
                edited_at=n.edited_at,
                x=_round(n.x),
                y=_round(n.y),
                color=n.color or DEFAULT_COLOR,
                icon=n.icon or None,
                images=list(n.images or []),
            )
            for n in ordered
        ],
        edges=edges,
    )
    return payload.to_dict()


def select_nodes(
    workspace: Workspace,
    mode: ExportMode | str = ExportMode.ALL,
    roots: Iterable[str] | None = None,
) -> set[str]:
    """Resolve the node ids an export covers.

    ``ALL`` takes every node. ``SUBTREE`` takes the closure of *roots*,
    defaulting to the workspace's parentless nodes.
    """
    mode = ExportMode(mode)
    if mode is ExportMode.ALL:
        return set(workspace.nodes)
    start = list(roots) if roots is not None else root_ids(workspace.nodes)
    return collect_subtree(workspace.nodes, start)


def export_workspace(
    workspace: Workspace,
    *,
    mode: ExportMode | str = ExportMode.ALL,
    roots: Iterable[str] | None = None,
    label: str | None = None,
) -> dict[str, Any]:
    """Export a workspace's node graph, or a subtree selection of it.

    Characters, stories and relationships are not part of the portable
    format.

    Raises:
        EmptySelectionError: If the selection contains no nodes.
    """
    node_ids = select_nodes(workspace, mode, roots)
    if not node_ids:
        raise EmptySelectionError()
    payload = build_export(workspace.nodes, node_ids, label or workspace.title)
    log.info(
        "graph_exported",
        workspace=workspace.id,
        mode=ExportMode(mode).value,
        nodes=payload["nodeCount"],
        edges=payload["edgeCount"],
    )
    return payload


def export_filename(label: str | None, default: str = "tree") -> str:
    """File name for an export: lowercase slug of *label* plus ``.dtree.json``."""
    stem = (label or default).lower()
    stem = re.sub(r"\s+", "-", stem)
    stem = re.sub(r"[^a-z0-9-]", "", stem)
    return f"{stem}{FILE_SUFFIX}"
