"""Validate and merge portable graph payloads.

Import is a three-step pipeline: ``parse_payload`` turns text into JSON,
``validate_import`` gates the structure, and ``merge_import`` remaps the
incoming nodes onto fresh ids and unions them with an existing mapping.
Nothing in this module mutates its inputs; callers swap the merged mapping
in as a whole, so a failed import leaves the workspace untouched.
"""

from __future__ import annotations

import json
import math
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from dtree.export.errors import ImportParseError, ImportValidationError
from dtree.export.payload import FORMAT_TAG, FORMAT_VERSION
from dtree.ids import get_id_generator
from dtree.models.entities import DEFAULT_COLOR, DEFAULT_NODE_TYPE, Node, now_iso
from dtree.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Mapping

    from dtree.ids import IdGenerator

log = get_logger(__name__)

DEFAULT_MERGE_OFFSET = (100.0, 100.0)


def validate_import(obj: Any) -> str | None:
    """Check that *obj* is a supported graph payload.

    Checks run in order and stop at the first failure:
    1. *obj* is a JSON object
    2. the version tag equals the supported version exactly
    3. ``nodes`` is an array
    4. ``edges`` is an array
    5. every node has a non-empty id and title

    Returns:
        None if the payload is valid, otherwise a displayable reason.
    """
    if not obj or not isinstance(obj, dict):
        return "Not a valid JSON object."
    version = obj.get(FORMAT_TAG)
    if version != FORMAT_VERSION:
        shown = "undefined" if version is None else version
        return f'Unknown version "{shown}". Expected "{FORMAT_VERSION}".'
    if not isinstance(obj.get("nodes"), list):
        return "Missing 'nodes' array."
    if not isinstance(obj.get("edges"), list):
        return "Missing 'edges' array."
    for node in obj["nodes"]:
        if not isinstance(node, dict) or not node.get("id") or not node.get("title"):
            return "Node missing required fields."
    return None


def parse_payload(text: str) -> dict[str, Any]:
    """Parse and validate payload text.

    Raises:
        ImportParseError: If *text* is not well-formed JSON.
        ImportValidationError: If the JSON is not a valid payload.
    """
    try:
        obj = json.loads(text)
    except json.JSONDecodeError as e:
        raise ImportParseError(str(e)) from e
    reason = validate_import(obj)
    if reason is not None:
        log.info("import_rejected", reason=reason)
        raise ImportValidationError(reason)
    return obj


def _coord(value: Any) -> float:
    # json.loads accepts NaN and Infinity literals; neither is a position
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _images(raw: dict[str, Any]) -> list[Any]:
    value = raw.get("images")
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ImportValidationError(f"Node '{raw['id']}' has invalid fields.")
    return list(value)


def _node_from_raw(raw: dict[str, Any], node_id: str, offset: tuple[float, float]) -> Node:
    off_x, off_y = offset
    try:
        return Node(
            id=node_id,
            title=str(raw["title"]),
            body=raw.get("body") or "",
            type=raw.get("type") or DEFAULT_NODE_TYPE,
            edited_at=raw.get("editedAt") or now_iso(),
            x=_coord(raw.get("x")) + off_x,
            y=_coord(raw.get("y")) + off_y,
            color=raw.get("color") or DEFAULT_COLOR,
            icon=raw.get("icon") or None,
            images=_images(raw),
            children=[],
        )
    except ValidationError as e:
        raise ImportValidationError(f"Node '{raw['id']}' has invalid fields.") from e


def _link(nodes: dict[str, Node], edges: list[Any], remap: Mapping[str, str]) -> None:
    # edges with an unknown endpoint are dropped, duplicates collapse
    for edge in edges:
        if not isinstance(edge, dict):
            continue
        src = remap.get(str(edge.get("from")))
        dst = remap.get(str(edge.get("to")))
        if src and dst and src in nodes and dst not in nodes[src].children:
            nodes[src].children.append(dst)


def load_nodes(payload: dict[str, Any]) -> dict[str, Node]:
    """Build nodes from a validated payload, keeping the payload's own ids.

    Used to inspect or re-slice a file on its own. Defaults are filled in
    as for ``merge_import``; positions are not shifted. When the payload
    repeats an id, the last node with that id wins.
    """
    nodes: dict[str, Node] = {}
    for raw in payload["nodes"]:
        nid = str(raw["id"])
        nodes[nid] = _node_from_raw(raw, nid, (0.0, 0.0))
    _link(nodes, payload["edges"], {nid: nid for nid in nodes})
    return nodes


def merge_import(
    existing: Mapping[str, Node],
    payload: dict[str, Any],
    offset: tuple[float, float] = DEFAULT_MERGE_OFFSET,
    *,
    ids: IdGenerator | None = None,
) -> dict[str, Node]:
    """Merge a validated payload into a copy of *existing*.

    Every incoming node gets a fresh id, so imported ids can never collide
    with workspace ids. Missing optional fields get defaults, positions are
    shifted by *offset*, and children are rebuilt from the payload's edges.

    Args:
        existing: Current node mapping; not modified.
        payload: A payload that passed ``validate_import``.
        offset: (x, y) shift for imported nodes. Use (0, 0) when the payload
            becomes a new workspace.
        ids: Id generator for the new node ids.

    Returns:
        New mapping holding the existing nodes and the imported ones.
    """
    ids = ids or get_id_generator()

    remap: dict[str, str] = {}
    for raw in payload["nodes"]:
        remap[str(raw["id"])] = ids.fresh_id()

    imported: dict[str, Node] = {}
    for raw in payload["nodes"]:
        new_id = remap[str(raw["id"])]
        imported[new_id] = _node_from_raw(raw, new_id, offset)
    _link(imported, payload["edges"], remap)

    log.info(
        "graph_merged",
        imported=len(imported),
        existing=len(existing),
        offset=list(offset),
    )
    return {**existing, **imported}
