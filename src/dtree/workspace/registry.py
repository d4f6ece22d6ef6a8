"""Workspace registry.

The registry owns every workspace and records which one is active. It
never reaches zero workspaces through ``delete_workspace``, and resolving
the active workspace always succeeds while any workspace exists: a stale
active id falls back to the first workspace in creation order.
"""

from __future__ import annotations

import copy
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from dtree.config import WorkbenchConfig
from dtree.export.errors import ImportValidationError
from dtree.export.importer import merge_import, validate_import
from dtree.graph.cast import Cast
from dtree.graph.errors import LastWorkspaceError, NoWorkspaceError, WorkspaceNotFoundError
from dtree.graph.nodes import NodeGraph
from dtree.ids import get_id_generator
from dtree.models.factories import mk_workspace, seed_nodes
from dtree.observability.logging import get_logger

if TYPE_CHECKING:
    import random
    from collections.abc import Mapping

    from dtree.ids import IdGenerator
    from dtree.models.entities import Node, Workspace
    from dtree.models.patches import WorkspacePatch

log = get_logger(__name__)


class WorkspaceRegistry:
    """Collection of isolated workspaces plus the active workspace id.

    Attributes:
        config: Engine configuration (layout and seeding).
        ids: Id generator shared by every entity the registry creates.
    """

    def __init__(
        self,
        config: WorkbenchConfig | None = None,
        *,
        ids: IdGenerator | None = None,
        rng: random.Random | None = None,
        seed_demo: bool | None = None,
    ) -> None:
        """Initialize the registry.

        Args:
            config: Engine configuration. Defaults to built-in values.
            ids: Id generator. Defaults to the process-wide generator.
            rng: Random source for node placement jitter.
            seed_demo: Start with one workspace holding the demo graph.
                Defaults to ``config.seed_demo_workspace``.
        """
        self.config = config or WorkbenchConfig()
        self.ids = ids or get_id_generator()
        self._rng = rng
        self._workspaces: dict[str, Workspace] = {}
        self._active_id: str | None = None
        self._savepoints: dict[str, tuple[dict[str, Workspace], str | None, str | None]] = {}

        if seed_demo is None:
            seed_demo = self.config.seed_demo_workspace
        if seed_demo:
            demo = seed_nodes()
            self.ids.ensure_above(demo)
            self.create_workspace(self.config.default_workspace_title, demo)

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    @property
    def workspaces(self) -> Mapping[str, Workspace]:
        """Read-only view of all workspaces, in creation order."""
        return MappingProxyType(self._workspaces)

    def get(self, ws_id: str) -> Workspace:
        """Return a workspace by id.

        Raises:
            WorkspaceNotFoundError: If no such workspace exists.
        """
        ws = self._workspaces.get(ws_id)
        if ws is None:
            raise WorkspaceNotFoundError(ws_id, available=list(self._workspaces))
        return ws

    @property
    def active_id(self) -> str:
        return self.active.id

    @property
    def active(self) -> Workspace:
        """The active workspace, falling back to the first one.

        Raises:
            NoWorkspaceError: If the registry is empty.
        """
        if self._active_id is not None and self._active_id in self._workspaces:
            return self._workspaces[self._active_id]
        for ws in self._workspaces.values():
            return ws
        raise NoWorkspaceError()

    def activate(self, ws_id: str) -> Workspace:
        ws = self.get(ws_id)
        self._active_id = ws_id
        log.debug("workspace_activated", workspace=ws_id)
        return ws

    def nodes(self, ws_id: str | None = None) -> NodeGraph:
        """Graph store for a workspace (the active one by default)."""
        ws = self.get(ws_id) if ws_id is not None else self.active
        return NodeGraph(ws, layout=self.config.layout, ids=self.ids, rng=self._rng)

    def cast(self, ws_id: str | None = None) -> Cast:
        """Character/story/relationship store for a workspace."""
        ws = self.get(ws_id) if ws_id is not None else self.active
        return Cast(ws, ids=self.ids)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def create_workspace(self, title: str, nodes: dict[str, Node] | None = None) -> Workspace:
        """Create a workspace (optionally pre-seeded with nodes) and activate it."""
        ws = mk_workspace(title, nodes, ids=self.ids)
        self._workspaces[ws.id] = ws
        self._active_id = ws.id
        log.info("workspace_created", workspace=ws.id, title=title, nodes=len(ws.nodes))
        return ws

    def update_workspace(self, ws_id: str, patch: WorkspacePatch) -> Workspace:
        """Rename a workspace or change its settings."""
        ws = self.get(ws_id)
        changes: dict[str, Any] = patch.changes()
        if "title" in changes:
            ws.title = changes["title"]
        if "autosave" in changes:
            ws.settings.autosave = changes["autosave"]
        return ws

    def delete_workspace(self, ws_id: str) -> str:
        """Delete a workspace.

        Refused when it is the only workspace. If the deleted workspace was
        active, the first remaining workspace becomes active.

        Returns:
            The active workspace id after deletion.

        Raises:
            WorkspaceNotFoundError: If no such workspace exists.
            LastWorkspaceError: If it is the last remaining workspace.
        """
        self.get(ws_id)
        if len(self._workspaces) <= 1:
            raise LastWorkspaceError(ws_id)
        del self._workspaces[ws_id]
        if self._active_id == ws_id or self._active_id not in self._workspaces:
            self._active_id = next(iter(self._workspaces))
        log.info("workspace_deleted", workspace=ws_id, active=self._active_id)
        return self._active_id

    def import_workspace_from_payload(self, payload: dict[str, Any]) -> Workspace:
        """Create and activate a new workspace from a graph payload.

        The payload is validated first; on failure nothing changes.

        Raises:
            ImportValidationError: If the payload is not valid.
        """
        reason = validate_import(payload)
        if reason is not None:
            raise ImportValidationError(reason)
        nodes = merge_import({}, payload, (0, 0), ids=self.ids)
        return self.create_workspace(str(payload.get("label") or "Imported"), nodes)

    # -------------------------------------------------------------------------
    # Savepoints
    # -------------------------------------------------------------------------

    def savepoint(self, name: str, ws_id: str | None = None) -> None:
        """Save a named snapshot of the registry.

        Args:
            name: Snapshot name.
            ws_id: Copy only this workspace's contents. Other workspaces are
                kept by reference, so they must not be mutated before the
                snapshot is released. By default every workspace is copied.
        """
        if ws_id is None:
            workspaces = copy.deepcopy(self._workspaces)
        else:
            workspaces = self._copy_one(self._workspaces, ws_id)
        self._savepoints[name] = (workspaces, self._active_id, ws_id)

    def rollback_to(self, name: str) -> None:
        """Restore state from a named snapshot. The snapshot stays available."""
        if name not in self._savepoints:
            raise ValueError(f"No savepoint named '{name}'")
        workspaces, active_id, ws_id = self._savepoints[name]
        if ws_id is None:
            self._workspaces = copy.deepcopy(workspaces)
        else:
            self._workspaces = self._copy_one(workspaces, ws_id)
        self._active_id = active_id

    def release(self, name: str) -> None:
        """Discard a named snapshot."""
        self._savepoints.pop(name, None)

    @staticmethod
    def _copy_one(workspaces: dict[str, Workspace], ws_id: str) -> dict[str, Workspace]:
        return {k: copy.deepcopy(ws) if k == ws_id else ws for k, ws in workspaces.items()}

    # -------------------------------------------------------------------------
    # Utility
    # -------------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._workspaces)

    def __contains__(self, ws_id: object) -> bool:
        return ws_id in self._workspaces

    def __repr__(self) -> str:
        active = self._active_id if self._active_id in self._workspaces else None
        return f"WorkspaceRegistry(workspaces={len(self._workspaces)}, active={active})"
