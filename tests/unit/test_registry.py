"""Tests for the workspace registry."""

from __future__ import annotations

import pytest

from dtree.config import WorkbenchConfig
from dtree.export import ImportValidationError
from dtree.graph import LastWorkspaceError, NoWorkspaceError, WorkspaceNotFoundError
from dtree.ids import IdGenerator
from dtree.models import WorkspacePatch
from dtree.workspace import WorkspaceRegistry
from tests.fixtures.payloads import chain_payload


class TestSeeding:
    """Test the initial registry state."""

    def test_demo_workspace(self, registry: WorkspaceRegistry) -> None:
        """A fresh registry holds one Default workspace with the demo graph."""
        assert len(registry) == 1
        ws = registry.active
        assert ws.title == "Default"
        assert list(ws.nodes) == ["1", "2", "3", "4", "5", "6"]

    def test_ids_start_above_demo(self) -> None:
        """The id counter is moved past the demo node ids."""
        ids = IdGenerator(1)
        registry = WorkspaceRegistry(ids=ids)
        assert int(registry.active.id) > 6
        assert registry.nodes().add_node() not in {"1", "2", "3", "4", "5", "6"}

    def test_without_demo(self) -> None:
        registry = WorkspaceRegistry(ids=IdGenerator(), seed_demo=False)
        assert len(registry) == 0
        with pytest.raises(NoWorkspaceError, match="No workspace found."):
            _ = registry.active

    def test_config_controls_seeding(self) -> None:
        config = WorkbenchConfig(seed_demo_workspace=False)
        assert len(WorkspaceRegistry(config, ids=IdGenerator())) == 0
        config = WorkbenchConfig(default_workspace_title="Home")
        assert WorkspaceRegistry(config, ids=IdGenerator()).active.title == "Home"


class TestLifecycle:
    """Test workspace create/update/delete."""

    def test_create_activates(self, registry: WorkspaceRegistry) -> None:
        ws = registry.create_workspace("Second")
        assert registry.active_id == ws.id
        assert ws.nodes == {}
        assert ws.id in registry

    def test_workspaces_are_isolated(self, registry: WorkspaceRegistry) -> None:
        """Edits in one workspace never show up in another."""
        first = registry.active
        second = registry.create_workspace("Second")
        registry.nodes(second.id).add_node(title="Only here")
        assert len(first.nodes) == 6
        assert len(second.nodes) == 1

    def test_update(self, registry: WorkspaceRegistry) -> None:
        ws = registry.update_workspace(
            registry.active_id, WorkspacePatch(title="Renamed", autosave=True)
        )
        assert ws.title == "Renamed"
        assert ws.settings.autosave is True

    def test_delete_last_refused(self, registry: WorkspaceRegistry) -> None:
        """The last workspace cannot be deleted."""
        with pytest.raises(LastWorkspaceError):
            registry.delete_workspace(registry.active_id)
        assert len(registry) == 1

    def test_delete_active_falls_back_to_first(self, registry: WorkspaceRegistry) -> None:
        first = registry.active
        registry.create_workspace("Second")
        third = registry.create_workspace("Third")
        assert registry.delete_workspace(third.id) == first.id
        assert registry.active is first

    def test_delete_inactive_keeps_active(self, registry: WorkspaceRegistry) -> None:
        first = registry.active
        second = registry.create_workspace("Second")
        registry.delete_workspace(first.id)
        assert registry.active is second

    def test_unknown_workspace(self, registry: WorkspaceRegistry) -> None:
        with pytest.raises(WorkspaceNotFoundError):
            registry.get("ghost")
        with pytest.raises(WorkspaceNotFoundError):
            registry.activate("ghost")
        with pytest.raises(WorkspaceNotFoundError):
            registry.delete_workspace("ghost")

    def test_activate(self, registry: WorkspaceRegistry) -> None:
        first = registry.active
        registry.create_workspace("Second")
        registry.activate(first.id)
        assert registry.active_id == first.id

    def test_workspaces_view_is_read_only(self, registry: WorkspaceRegistry) -> None:
        with pytest.raises(TypeError):
            registry.workspaces["x"] = registry.active  # type: ignore[index]


class TestImportWorkspace:
    """Test creating workspaces from payloads."""

    def test_import_creates_and_activates(self, registry: WorkspaceRegistry) -> None:
        ws = registry.import_workspace_from_payload(chain_payload("Imported Chain"))
        assert registry.active is ws
        assert ws.title == "Imported Chain"
        assert len(ws.nodes) == 4
        assert len(registry) == 2

    def test_no_offset_applied(self, registry: WorkspaceRegistry) -> None:
        payload = chain_payload()
        payload["nodes"][0]["x"] = 12
        ws = registry.import_workspace_from_payload(payload)
        assert min(n.x for n in ws.nodes.values()) == 0
        assert max(n.x for n in ws.nodes.values()) == 12

    def test_missing_label(self, registry: WorkspaceRegistry) -> None:
        payload = chain_payload()
        del payload["label"]
        assert registry.import_workspace_from_payload(payload).title == "Imported"

    def test_invalid_payload_changes_nothing(self, registry: WorkspaceRegistry) -> None:
        with pytest.raises(ImportValidationError):
            registry.import_workspace_from_payload({"dtree": "1.0", "nodes": []})
        assert len(registry) == 1


class TestSavepoints:
    """Test snapshot and rollback."""

    def test_rollback_restores_everything(self, registry: WorkspaceRegistry) -> None:
        first_id = registry.active_id
        registry.savepoint("before")
        registry.nodes().delete_node("1")
        registry.create_workspace("Extra")

        registry.rollback_to("before")

        assert len(registry) == 1
        assert registry.active_id == first_id
        assert "1" in registry.active.nodes
        assert registry.active.nodes["1"].children == ["2", "3"]

    def test_rollback_can_repeat(self, registry: WorkspaceRegistry) -> None:
        """A savepoint survives rollback until released."""
        registry.savepoint("sp")
        registry.nodes().delete_node("2")
        registry.rollback_to("sp")
        registry.nodes().delete_node("3")
        registry.rollback_to("sp")
        assert {"2", "3"} <= set(registry.active.nodes)

    def test_release(self, registry: WorkspaceRegistry) -> None:
        registry.savepoint("sp")
        registry.release("sp")
        with pytest.raises(ValueError, match="No savepoint"):
            registry.rollback_to("sp")

    def test_release_unknown_is_noop(self, registry: WorkspaceRegistry) -> None:
        registry.release("never")

    def test_scoped_savepoint_restores_target(self, registry: WorkspaceRegistry) -> None:
        """A savepoint scoped to one workspace restores that workspace's contents."""
        target = registry.active_id
        registry.savepoint("sp", target)
        registry.nodes().delete_node("1")
        registry.create_workspace("Extra")

        registry.rollback_to("sp")

        assert len(registry) == 1
        assert registry.active_id == target
        assert registry.active.nodes["1"].children == ["2", "3"]

    def test_scoped_savepoint_keeps_other_workspaces(self, registry: WorkspaceRegistry) -> None:
        """Workspaces outside the scope are restored as the same objects."""
        other = registry.active
        target = registry.create_workspace("Target")
        registry.savepoint("sp", target.id)
        registry.nodes(target.id).add_node(title="Scratch")

        registry.rollback_to("sp")

        assert registry.get(other.id) is other
        assert registry.get(target.id).nodes == {}
