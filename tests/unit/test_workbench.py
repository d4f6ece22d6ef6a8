"""Tests for the Workbench facade - outcomes, atomicity and file import."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from dtree.config import LayoutConfig, WorkbenchConfig
from dtree.graph import GraphCorruptionError, NodeNotFoundError
from dtree.workspace import Outcome, Workbench
from tests.fixtures.payloads import chain_payload, make_payload, raw_node, write_payload

if TYPE_CHECKING:
    from pathlib import Path


class TestOutcome:
    """Test the result type."""

    def test_success(self) -> None:
        out = Outcome.success(5, "done")
        assert out.ok
        assert out.kind == "ok"
        assert out.unwrap() == 5

    def test_failure(self) -> None:
        err = NodeNotFoundError("x")
        out: Outcome[int] = Outcome.failure(err)
        assert not out
        assert out.kind == "reference"
        assert out.message == "Node 'x' not found"
        with pytest.raises(NodeNotFoundError):
            out.unwrap()


class TestConstruction:
    """Test building a workbench from config."""

    def test_from_config_uses_seed(self) -> None:
        bench = Workbench.from_config(WorkbenchConfig(id_seed=5000))
        assert bench.add_node().value == "5001"  # 5000 went to the demo workspace

    def test_from_config_without_demo(self) -> None:
        bench = Workbench.from_config(WorkbenchConfig(seed_demo_workspace=False))
        out = bench.add_node()
        assert not out.ok
        assert out.kind == "guard"
        assert out.message == "No workspace found."


class TestNodeOperations:
    """Test node operations through the facade."""

    def test_add_and_update(self, bench: Workbench) -> None:
        nid = bench.add_node("1", title="Side path").unwrap()
        assert nid in bench.active.nodes["1"].children
        node = bench.update_node(nid, title="Renamed", color="amber").unwrap()
        assert node.title == "Renamed"
        assert node.color == "amber"

    def test_update_unknown_node(self, bench: Workbench) -> None:
        out = bench.update_node("ghost", title="x")
        assert out.kind == "reference"
        assert isinstance(out.error, NodeNotFoundError)

    def test_update_invalid_fields(self, bench: Workbench) -> None:
        """Unknown or invalid patch fields are validation failures."""
        out = bench.update_node("1", children=["2"])
        assert out.kind == "validation"
        assert "node" in out.message
        out = bench.update_node("1", x="far")
        assert out.kind == "validation"

    def test_delete_many(self, bench: Workbench) -> None:
        out = bench.delete_nodes(["2", "3", "ghost"])
        assert out.value == ["2", "3"]
        assert out.message == "Deleted 2 nodes."
        assert bench.active.nodes["1"].children == []

    def test_toggle_and_disconnect(self, bench: Workbench) -> None:
        assert bench.toggle_connect("4", "5").value is True
        assert bench.toggle_connect("4", "4").value is None
        assert bench.disconnect_nodes("4", "5").value is True
        assert bench.toggle_connect("4", "ghost").kind == "reference"

    def test_delete_missing_node(self, bench: Workbench) -> None:
        assert bench.delete_node("ghost").kind == "reference"
        assert len(bench.active.nodes) == 6

    @pytest.mark.asyncio
    async def test_attach_image(self, bench: Workbench, tmp_path: Path) -> None:
        path = tmp_path / "map.png"
        path.write_bytes(b"png")
        node = (await bench.attach_node_image("1", path)).unwrap()
        assert len(node.images) == 1
        assert node.images[0].startswith("data:image/png;base64,")

    @pytest.mark.asyncio
    async def test_attach_missing_image(self, bench: Workbench, tmp_path: Path) -> None:
        out = await bench.attach_node_image("1", tmp_path / "none.png")
        assert out.kind == "read"


class TestCastOperations:
    """Test character, story and relationship operations."""

    def test_character_stats_clamped(self, bench: Workbench) -> None:
        char = bench.add_character("Mira").unwrap()
        bench.update_character(char.id, stats={"strength": 0, "charisma": 99})
        assert char.stats.strength == 1
        assert char.stats.charisma == 30

    def test_unknown_stat(self, bench: Workbench) -> None:
        char = bench.add_character().unwrap()
        assert bench.update_character(char.id, stats={"luck": 3}).kind == "validation"

    def test_relationship_guard(self, bench: Workbench) -> None:
        a = bench.add_character("A").unwrap()
        b = bench.add_character("B").unwrap()
        assert bench.add_relationship(a.id, b.id, "Friend", "Friend").ok
        out = bench.add_relationship(b.id, a.id)
        assert out.kind == "guard"
        assert len(bench.active.relationships) == 1

    def test_delete_character_cascade(self, bench: Workbench) -> None:
        a = bench.add_character("A").unwrap()
        b = bench.add_character("B").unwrap()
        story = bench.create_story("Meeting", char_ids=[a.id, b.id]).unwrap()
        rel = bench.add_relationship(a.id, b.id).unwrap()
        assert bench.delete_character(a.id).ok
        assert bench.active.stories[story.id].char_ids == [b.id]
        assert rel.id not in bench.active.relationships

    def test_story_flow(self, bench: Workbench) -> None:
        a = bench.add_character("A").unwrap()
        story = bench.create_story("Event", node_id="2").unwrap()
        assert bench.toggle_story_character(story.id, a.id).value is True
        saved = bench.save_story(story.id, title="Renamed", nodeId=None).unwrap()
        assert saved.title == "Renamed"
        assert saved.node_id is None
        assert bench.delete_story(story.id, "this", a.id).value is story
        assert bench.delete_story(story.id, "all").ok
        assert story.id not in bench.active.stories

    def test_story_bad_refs(self, bench: Workbench) -> None:
        assert bench.create_story("X", char_ids=["ghost"]).kind == "reference"
        assert bench.save_story("ghost", title="x").kind == "reference"
        assert bench.active.stories == {}

    def test_update_relationship(self, bench: Workbench) -> None:
        a = bench.add_character().unwrap()
        b = bench.add_character().unwrap()
        rel = bench.add_relationship(a.id, b.id).unwrap()
        assert bench.update_relationship(rel.id, label_a="Mentor").unwrap().label_a == "Mentor"
        assert bench.delete_relationship(rel.id).ok
        assert bench.delete_relationship(rel.id).kind == "reference"


class TestWorkspaceOperations:
    """Test workspace operations."""

    def test_last_workspace_guard(self, bench: Workbench) -> None:
        out = bench.delete_workspace(bench.active.id)
        assert out.kind == "guard"
        assert len(bench.registry) == 1

    def test_create_rename_delete(self, bench: Workbench) -> None:
        first = bench.active.id
        ws = bench.create_workspace("Second").unwrap()
        assert bench.rename_workspace(ws.id, "Sequel").unwrap().title == "Sequel"
        assert bench.update_workspace(ws.id, autosave=True).unwrap().settings.autosave
        assert bench.delete_workspace(ws.id).value == first

    def test_activate_unknown(self, bench: Workbench) -> None:
        assert bench.activate_workspace("ghost").kind == "reference"


class TestAtomicity:
    """Test rollback on failure."""

    def test_failed_operation_leaves_state_unchanged(self, bench: Workbench) -> None:
        before = bench.active.model_dump()
        bench.toggle_connect("1", "ghost")
        bench.update_node("ghost", title="x")
        bench.import_nodes("{broken")
        assert bench.active.model_dump() == before

    def test_corruption_rolls_back_and_raises(self, bench: Workbench) -> None:
        """A dangling edge after an operation is a bug, not an outcome."""

        def corrupt() -> None:
            bench.active.nodes["1"].children.append("ghost")

        with pytest.raises(GraphCorruptionError):
            bench._run("corrupt", corrupt)
        assert bench.active.nodes["1"].children == ["2", "3"]

    def test_unexpected_error_rolls_back_and_raises(self, bench: Workbench) -> None:
        """A non-engine exception undoes partial changes before propagating."""

        def half_done() -> None:
            bench.active.nodes["1"].children.clear()
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            bench._run("half_done", half_done)
        assert bench.active.nodes["1"].children == ["2", "3"]

    def test_check_is_scoped_to_touched_workspace(self, bench: Workbench) -> None:
        """Operations on the active workspace do not re-check the others."""
        first = bench.active
        bench.create_workspace("Second")
        first.nodes["1"].children.append("ghost")

        assert bench.add_node(title="Gate").ok
        with pytest.raises(GraphCorruptionError):
            bench.rename_workspace(first.id, "Renamed")
        assert bench.registry.get(first.id).title == "Default"


class TestExport:
    """Test exports through the facade."""

    def test_export_all(self, bench: Workbench) -> None:
        out = bench.export_nodes()
        assert out.value is not None
        assert out.value["nodeCount"] == 6
        assert out.message == "Exported 6 nodes → default.dtree.json"

    def test_export_subtree_to_directory(self, bench: Workbench, tmp_path: Path) -> None:
        out = bench.export_nodes("subtree", ["2"], label="Forest", path=tmp_path)
        written = tmp_path / "forest.dtree.json"
        assert written.exists()
        assert json.loads(written.read_text(encoding="utf-8"))["nodeCount"] == 3
        assert out.message == "Exported 3 nodes → forest.dtree.json"

    def test_export_nothing(self, bench: Workbench) -> None:
        out = bench.export_nodes("subtree", ["ghost"])
        assert out.kind == "guard"
        assert out.message == "Nothing selected."

    def test_save_workspace(self, bench: Workbench, tmp_path: Path) -> None:
        out = bench.save_workspace(path=tmp_path / "saved.json")
        assert (tmp_path / "saved.json").exists()
        assert out.message == 'Workspace "Default" saved → saved.json'


class TestImport:
    """Test imports through the facade."""

    def test_preview(self, bench: Workbench) -> None:
        out = bench.preview_import(json.dumps(chain_payload("Chain")))
        assert out.value is not None
        assert out.value.node_count == 4
        assert out.message == '"Chain": 4 nodes, 2 edges.'
        assert len(bench.active.nodes) == 6

    def test_import_nodes(self, bench: Workbench) -> None:
        out = bench.import_nodes(json.dumps(chain_payload()))
        assert out.message == "Imported 4 nodes, 2 edges."
        assert len(out.value or []) == 4
        assert len(bench.active.nodes) == 10

    def test_import_uses_configured_offset(self) -> None:
        config = WorkbenchConfig(layout=LayoutConfig(merge_offset_x=7, merge_offset_y=9))
        bench = Workbench.from_config(config)
        new_ids = bench.import_nodes(json.dumps(make_payload([raw_node("a")]))).unwrap()
        node = bench.active.nodes[new_ids[0]]
        assert (node.x, node.y) == (7, 9)

    def test_import_parse_vs_validation(self, bench: Workbench) -> None:
        """Parse failures and validation failures are reported distinctly."""
        parse = bench.import_nodes("not json")
        assert parse.kind == "parse"
        assert parse.message.startswith("Parse error: ")
        invalid = bench.import_nodes(json.dumps({"dtree": "1.0"}))
        assert invalid.kind == "validation"
        assert invalid.message == "Missing 'nodes' array."

    def test_non_list_images_rejected(self, bench: Workbench) -> None:
        payload = make_payload([raw_node("a", images=5)])
        out = bench.import_nodes(json.dumps(payload))
        assert out.kind == "validation"
        assert out.message == "Node 'a' has invalid fields."
        assert len(bench.active.nodes) == 6

    def test_non_finite_coordinates_still_export(self, bench: Workbench) -> None:
        """NaN and Infinity literals parse as JSON but land at the merge offset."""
        text = (
            '{"dtree": "1.0", "edges": [],'
            ' "nodes": [{"id": "a", "title": "A", "x": NaN, "y": Infinity}]}'
        )
        new_id = bench.import_nodes(text).unwrap()[0]
        node = bench.active.nodes[new_id]
        assert (node.x, node.y) == (100, 100)

        payload = bench.export_nodes().unwrap()
        assert payload["nodeCount"] == 7

    def test_import_workspace(self, bench: Workbench) -> None:
        out = bench.import_workspace(json.dumps(chain_payload("Saga")))
        assert out.message == 'Workspace "Saga" imported.'
        assert bench.active.title == "Saga"
        assert len(bench.registry) == 2

    @pytest.mark.asyncio
    async def test_import_nodes_file(self, bench: Workbench, tmp_path: Path) -> None:
        path = write_payload(tmp_path / "chain.dtree.json", chain_payload())
        out = await bench.import_nodes_file(path)
        assert out.ok
        assert len(bench.active.nodes) == 10

    @pytest.mark.asyncio
    async def test_import_workspace_file(self, bench: Workbench, tmp_path: Path) -> None:
        path = write_payload(tmp_path / "saga.dtree.json", chain_payload("Saga"))
        out = await bench.import_workspace_file(path)
        assert out.ok
        assert bench.active.title == "Saga"

    @pytest.mark.asyncio
    async def test_import_file_errors(self, bench: Workbench, tmp_path: Path) -> None:
        """Read, parse and validation failures keep their own kinds."""
        missing = await bench.import_nodes_file(tmp_path / "missing.json")
        assert missing.kind == "read"

        bad = tmp_path / "bad.json"
        bad.write_text("{", encoding="utf-8")
        assert (await bench.import_workspace_file(bad)).kind == "parse"

        wrong = write_payload(tmp_path / "wrong.json", {"dtree": "9.9", "nodes": [], "edges": []})
        assert (await bench.import_nodes_file(wrong)).kind == "validation"
        assert len(bench.registry) == 1
        assert len(bench.active.nodes) == 6
