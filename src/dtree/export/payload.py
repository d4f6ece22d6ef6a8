"""Portable graph file format (``*.dtree.json``).

The payload carries only the node graph: nodes with their content and
position, plus directed edges between them. The version tag is an
exact-match gate; there is one supported version.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

FORMAT_TAG = "dtree"
FORMAT_VERSION = "1.0"
FILE_SUFFIX = ".dtree.json"


class ExportedNode(BaseModel):
    """A node as written to the portable format."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    body: str = ""
    type: str = "Narrative"
    edited_at: str = Field(alias="editedAt")
    x: int
    y: int
    color: str = "none"
    icon: str | None = None
    images: list[str] = Field(default_factory=list)


class ExportedEdge(BaseModel):
    """A directed parent→child edge."""

    model_config = ConfigDict(populate_by_name=True)

    from_id: str = Field(alias="from")
    to_id: str = Field(alias="to")


class GraphPayload(BaseModel):
    """Complete export document.

    ``node_count`` and ``edge_count`` always equal the lengths of the
    emitted arrays; they are computed by the builder, never supplied.
    """

    model_config = ConfigDict(populate_by_name=True)

    dtree: str = FORMAT_VERSION
    exported_at: str = Field(alias="exportedAt")
    label: str
    node_count: int = Field(alias="nodeCount")
    edge_count: int = Field(alias="edgeCount")
    nodes: list[ExportedNode]
    edges: list[ExportedEdge]

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class PayloadSummary(BaseModel):
    """Preview of a validated payload, for confirming an import."""

    label: str
    node_count: int
    edge_count: int
    titles: list[tuple[str, str]]

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> PayloadSummary:
        """Summarize a payload that already passed ``validate_import``."""
        return cls(
            label=str(payload.get("label") or "Untitled"),
            node_count=len(payload["nodes"]),
            edge_count=len(payload["edges"]),
            titles=[
                (str(n["title"]), str(n.get("type") or "Narrative")) for n in payload["nodes"]
            ],
        )
