"""Workbench facade.

The workbench is the outward contract of the engine. Every public
operation returns an :class:`Outcome` instead of raising: engine errors
(missing references, refused guards, bad imports) are reported as a failed
outcome with a ``kind`` and a displayable message, and the registry is
rolled back to the state it had before the operation started.

Example:
    >>> bench = Workbench.from_config(WorkbenchConfig())
    >>> out = bench.add_node(title="Gate")
    >>> out.ok, out.kind
    (True, 'ok')
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from dtree.config import WorkbenchConfig
from dtree.export.builder import ExportMode, export_filename, export_workspace
from dtree.export.files import read_data_url, read_text, save_json
from dtree.export.importer import merge_import, parse_payload
from dtree.export.payload import PayloadSummary
from dtree.graph.algorithms import find_violations
from dtree.graph.errors import DtreeError, GraphCorruptionError, InvalidPatchError
from dtree.graph.xref import StoryDeleteScope
from dtree.ids import IdGenerator
from dtree.models.entities import DEFAULT_NODE_TYPE
from dtree.models.factories import DEFAULT_NODE_BODY, DEFAULT_NODE_TITLE
from dtree.models.patches import (
    CharacterPatch,
    NodePatch,
    RelationshipPatch,
    StoryPatch,
    WorkspacePatch,
)
from dtree.observability.logging import get_logger, operation_context
from dtree.workspace.registry import WorkspaceRegistry

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from dtree.models.entities import Character, Node, Relationship, Story, Workspace

log = get_logger(__name__)

T = TypeVar("T")
P = TypeVar("P", bound=BaseModel)


@dataclass
class Outcome(Generic[T]):
    """Result of a workbench operation.

    Attributes:
        ok: Whether the operation succeeded.
        value: Operation result on success.
        error: The engine error on failure.
        kind: ``"ok"`` on success, otherwise the error kind (``validation``,
            ``parse``, ``reference``, ``guard`` or ``read``).
        message: Displayable summary.
    """

    ok: bool
    value: T | None = None
    error: DtreeError | None = None
    kind: str = "ok"
    message: str = ""

    @classmethod
    def success(cls, value: T | None = None, message: str = "") -> Outcome[T]:
        return cls(ok=True, value=value, message=message)

    @classmethod
    def failure(cls, error: DtreeError) -> Outcome[T]:
        return cls(ok=False, error=error, kind=error.kind, message=str(error))

    def unwrap(self) -> T:
        """Return the value, re-raising the error of a failed outcome."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    def __bool__(self) -> bool:
        return self.ok


def _patch(model: type[P], label: str, fields: dict[str, Any]) -> P:
    try:
        return model.model_validate(fields)
    except ValidationError as e:
        detail = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or label}: {err['msg']}" for err in e.errors()
        )
        raise InvalidPatchError(label, detail) from e


class Workbench:
    """Atomic, outcome-returning operations over a workspace registry.

    Node and cast operations address the active workspace. Each operation
    runs inside a registry savepoint, and after a successful mutation the
    touched workspace is re-checked for dangling references. A failure of
    that check means a bug, so it rolls back and raises
    :class:`GraphCorruptionError` rather than returning an outcome.
    """

    def __init__(self, registry: WorkspaceRegistry | None = None, *, verify: bool = True) -> None:
        self.registry = registry or WorkspaceRegistry()
        self.verify = verify
        self._counter = itertools.count(1)

    @classmethod
    def from_config(cls, config: WorkbenchConfig | None = None, **kwargs: Any) -> Workbench:
        """Build a workbench with its own id generator seeded from *config*."""
        config = config or WorkbenchConfig()
        registry = WorkspaceRegistry(config, ids=IdGenerator(config.id_seed))
        return cls(registry, **kwargs)

    @property
    def config(self) -> WorkbenchConfig:
        return self.registry.config

    @property
    def active(self) -> Workspace:
        return self.registry.active

    # -------------------------------------------------------------------------
    # Transaction
    # -------------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        fn: Callable[[], T],
        message: Callable[[T], str] | str = "",
        *,
        ws_id: str | None = None,
    ) -> Outcome[T]:
        # only the target workspace (the active one unless given) is copied
        scope = ws_id
        if scope is None and len(self.registry):
            scope = self.registry.active_id
        name = f"{operation}-{next(self._counter)}"
        with operation_context(operation, scope):
            self.registry.savepoint(name, scope)
            try:
                value = fn()
                if self.verify:
                    self._check(operation, scope)
            except DtreeError as e:
                self.registry.rollback_to(name)
                log.warning("operation_failed", kind=e.kind, error=str(e))
                return Outcome.failure(e)
            except Exception:
                self.registry.rollback_to(name)
                log.exception("operation_aborted")
                raise
            finally:
                self.registry.release(name)
            log.debug("operation_succeeded")
        text = message(value) if callable(message) else message
        return Outcome.success(value, text)

    def _check(self, operation: str, scope: str | None) -> None:
        # the scoped workspace and whichever one is active afterwards
        touched = {scope, self.registry.active_id if len(self.registry) else None}
        violations: list[str] = []
        for ws_id in touched:
            if ws_id is not None and ws_id in self.registry:
                violations.extend(find_violations(self.registry.get(ws_id)))
        if violations:
            log.error("workspace_corrupted", violations=violations)
            raise GraphCorruptionError(violations, operation)

    # -------------------------------------------------------------------------
    # Workspaces
    # -------------------------------------------------------------------------

    def create_workspace(self, title: str | None = None) -> Outcome[Workspace]:
        """Create an empty workspace and make it active."""
        return self._run(
            "create_workspace",
            lambda: self.registry.create_workspace(title or "New Workspace"),
            lambda ws: f'Workspace "{ws.title}" created.',
        )

    def activate_workspace(self, ws_id: str) -> Outcome[Workspace]:
        return self._run("activate_workspace", lambda: self.registry.activate(ws_id))

    def rename_workspace(self, ws_id: str, title: str) -> Outcome[Workspace]:
        return self.update_workspace(ws_id, title=title)

    def update_workspace(self, ws_id: str, **fields: Any) -> Outcome[Workspace]:
        """Change a workspace's title or its ``autosave`` setting."""

        def op() -> Workspace:
            patch = _patch(WorkspacePatch, "workspace", fields)
            return self.registry.update_workspace(ws_id, patch)

        return self._run("update_workspace", op, ws_id=ws_id)

    def delete_workspace(self, ws_id: str) -> Outcome[str]:
        """Delete a workspace; the value is the active id afterwards."""
        return self._run(
            "delete_workspace",
            lambda: self.registry.delete_workspace(ws_id),
            "Workspace deleted.",
        )

    # -------------------------------------------------------------------------
    # Nodes
    # -------------------------------------------------------------------------

    def add_node(
        self,
        parent_id: str | None = None,
        *,
        title: str = DEFAULT_NODE_TITLE,
        body: str = DEFAULT_NODE_BODY,
        node_type: str = DEFAULT_NODE_TYPE,
    ) -> Outcome[str]:
        """Create a node (as a child of *parent_id* when it exists)."""
        return self._run(
            "add_node",
            lambda: self.registry.nodes().add_node(
                parent_id, title=title, body=body, node_type=node_type
            ),
        )

    def update_node(self, node_id: str, **fields: Any) -> Outcome[Node]:
        def op() -> Node:
            patch = _patch(NodePatch, "node", fields)
            return self.registry.nodes().update_node(node_id, patch)

        return self._run("update_node", op)

    def delete_node(self, node_id: str) -> Outcome[None]:
        return self._run("delete_node", lambda: self.registry.nodes().delete_node(node_id))

    def delete_nodes(self, node_ids: Iterable[str]) -> Outcome[list[str]]:
        ids = list(node_ids)
        return self._run(
            "delete_nodes",
            lambda: self.registry.nodes().delete_nodes(ids),
            lambda gone: f"Deleted {len(gone)} nodes.",
        )

    def toggle_connect(self, from_id: str, to_id: str) -> Outcome[bool | None]:
        """Connect or disconnect two nodes; see ``NodeGraph.toggle_connect``."""
        return self._run(
            "toggle_connect", lambda: self.registry.nodes().toggle_connect(from_id, to_id)
        )

    def disconnect_nodes(self, from_id: str, to_id: str) -> Outcome[bool]:
        return self._run(
            "disconnect_nodes", lambda: self.registry.nodes().disconnect_nodes(from_id, to_id)
        )

    async def attach_node_image(self, node_id: str, path: Path | str) -> Outcome[Node]:
        """Read an image file and append it to the node's images."""
        try:
            url = await read_data_url(path)
        except DtreeError as e:
            return Outcome.failure(e)

        def op() -> Node:
            node = self.registry.nodes().require(node_id, "attach_node_image")
            return self.registry.nodes().update_node(
                node_id, NodePatch(images=[*node.images, url])
            )

        return self._run("attach_node_image", op)

    # -------------------------------------------------------------------------
    # Characters
    # -------------------------------------------------------------------------

    def add_character(self, name: str = "New Character") -> Outcome[Character]:
        return self._run("add_character", lambda: self.registry.cast().add_character(name))

    def update_character(self, char_id: str, **fields: Any) -> Outcome[Character]:
        """Commit a character edit. ``stats`` and ``extras`` are partial dicts."""

        def op() -> Character:
            patch = _patch(CharacterPatch, "character", fields)
            return self.registry.cast().update_character(char_id, patch)

        return self._run("update_character", op)

    def delete_character(self, char_id: str) -> Outcome[None]:
        return self._run(
            "delete_character", lambda: self.registry.cast().delete_character(char_id)
        )

    async def set_character_image(
        self, char_id: str, path: Path | str, *, fullbody: bool = False
    ) -> Outcome[Character]:
        """Read an image file into the character's portrait (or full-body) slot."""
        try:
            url = await read_data_url(path)
        except DtreeError as e:
            return Outcome.failure(e)
        slot = "fullbody" if fullbody else "portrait"
        return self.update_character(char_id, **{slot: url})

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
    ) -> Outcome[Story]:
        chars = list(char_ids)
        return self._run(
            "create_story",
            lambda: self.registry.cast().create_story(
                title, use_template=use_template, char_ids=chars, node_id=node_id
            ),
        )

    def save_story(self, story_id: str, **fields: Any) -> Outcome[Story]:
        def op() -> Story:
            patch = _patch(StoryPatch, "story", fields)
            return self.registry.cast().save_story(story_id, patch)

        return self._run("save_story", op)

    def toggle_story_character(self, story_id: str, char_id: str) -> Outcome[bool]:
        return self._run(
            "toggle_story_character",
            lambda: self.registry.cast().toggle_story_character(story_id, char_id),
        )

    def delete_story(
        self,
        story_id: str,
        scope: StoryDeleteScope | str = StoryDeleteScope.ALL,
        from_char_id: str | None = None,
    ) -> Outcome[Story | None]:
        """Delete a story everywhere, or remove one character from it."""
        return self._run(
            "delete_story",
            lambda: self.registry.cast().delete_story(
                story_id, StoryDeleteScope(scope), from_char_id
            ),
        )

    # -------------------------------------------------------------------------
    # Relationships
    # -------------------------------------------------------------------------

    def add_relationship(
        self,
        char_a_id: str,
        char_b_id: str,
        label_a: str = "",
        label_b: str = "",
        description: str = "",
    ) -> Outcome[Relationship]:
        return self._run(
            "add_relationship",
            lambda: self.registry.cast().add_relationship(
                char_a_id, char_b_id, label_a, label_b, description
            ),
        )

    def update_relationship(self, rel_id: str, **fields: Any) -> Outcome[Relationship]:
        def op() -> Relationship:
            patch = _patch(RelationshipPatch, "relationship", fields)
            return self.registry.cast().update_relationship(rel_id, patch)

        return self._run("update_relationship", op)

    def delete_relationship(self, rel_id: str) -> Outcome[None]:
        return self._run(
            "delete_relationship", lambda: self.registry.cast().delete_relationship(rel_id)
        )

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    def export_nodes(
        self,
        mode: ExportMode | str = ExportMode.ALL,
        roots: Iterable[str] | None = None,
        label: str | None = None,
        path: Path | str | None = None,
    ) -> Outcome[dict[str, Any]]:
        """Export the active workspace's graph (or a subtree selection).

        Args:
            mode: ``all`` nodes, or the ``subtree`` closure of *roots*.
            roots: Subtree roots; defaults to the parentless nodes.
            label: Payload label; defaults to the workspace title.
            path: File or directory to write to. A directory receives a file
                named after the label. Nothing is written when omitted.
        """
        roots = list(roots) if roots is not None else None

        def op() -> dict[str, Any]:
            ws = self.registry.active
            return export_workspace(ws, mode=mode, roots=roots, label=label)

        outcome = self._run("export_nodes", op)
        if not outcome.ok or outcome.value is None:
            return outcome
        payload = outcome.value
        target = self._write(payload, path)
        name = target.name if target else export_filename(payload["label"])
        outcome.message = f"Exported {payload['nodeCount']} nodes → {name}"
        return outcome

    def save_workspace(
        self, ws_id: str | None = None, path: Path | str | None = None
    ) -> Outcome[dict[str, Any]]:
        """Export a whole workspace, labelled with its title."""

        def op() -> dict[str, Any]:
            ws = self.registry.get(ws_id) if ws_id else self.registry.active
            return export_workspace(ws, mode=ExportMode.ALL)

        outcome = self._run("save_workspace", op)
        if not outcome.ok or outcome.value is None:
            return outcome
        target = self._write(outcome.value, path)
        name = target.name if target else export_filename(outcome.value["label"])
        outcome.message = f'Workspace "{outcome.value["label"]}" saved → {name}'
        return outcome

    def _write(self, payload: dict[str, Any], path: Path | str | None) -> Path | None:
        if path is None:
            return None
        target = Path(path)
        if target.is_dir():
            target = target / export_filename(payload["label"])
        return save_json(payload, target)

    # -------------------------------------------------------------------------
    # Import
    # -------------------------------------------------------------------------

    def preview_import(self, text: str) -> Outcome[PayloadSummary]:
        """Parse and validate payload text without importing it."""
        return self._run(
            "preview_import",
            lambda: PayloadSummary.from_payload(parse_payload(text)),
            lambda s: f'"{s.label}": {s.node_count} nodes, {s.edge_count} edges.',
        )

    def import_nodes(
        self, text: str, offset: tuple[float, float] | None = None
    ) -> Outcome[list[str]]:
        """Merge payload text into the active workspace.

        Imported nodes get fresh ids and are shifted by *offset* (the
        configured merge offset by default). The value lists the new ids.
        """
        shift = offset if offset is not None else self.config.layout.merge_offset

        def op() -> list[str]:
            payload = parse_payload(text)
            graph = self.registry.nodes()
            before = set(graph.nodes)
            graph.replace_nodes(merge_import(graph.nodes, payload, shift, ids=self.registry.ids))
            return [nid for nid in graph.nodes if nid not in before]

        def message(new_ids: list[str]) -> str:
            ws = self.registry.active
            edges = sum(len(ws.nodes[nid].children) for nid in new_ids)
            return f"Imported {len(new_ids)} nodes, {edges} edges."

        return self._run("import_nodes", op, message)

    def import_workspace(self, text: str) -> Outcome[Workspace]:
        """Create and activate a new workspace from payload text."""
        return self._run(
            "import_workspace",
            lambda: self.registry.import_workspace_from_payload(parse_payload(text)),
            lambda ws: f'Workspace "{ws.title}" imported.',
        )

    async def import_nodes_file(
        self, path: Path | str, offset: tuple[float, float] | None = None
    ) -> Outcome[list[str]]:
        """Read a payload file, then merge it like :meth:`import_nodes`."""
        try:
            text = await read_text(path)
        except DtreeError as e:
            return Outcome.failure(e)
        return self.import_nodes(text, offset)

    async def import_workspace_file(self, path: Path | str) -> Outcome[Workspace]:
        """Read a payload file, then import it like :meth:`import_workspace`."""
        try:
            text = await read_text(path)
        except DtreeError as e:
            return Outcome.failure(e)
        return self.import_workspace(text)

    def __repr__(self) -> str:
        return f"Workbench({self.registry!r})"
