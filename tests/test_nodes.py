"""Tests for node types outside of a full tree refresh."""

from __future__ import annotations

from herotree.client.records import DynoRecord
from herotree.tree import CommandNode, Process, ProcessState, ResourceTree, Stage


class TestStage:
    """Test the stage vocabulary."""

    def test_display_order(self) -> None:
        assert [stage.value for stage in Stage] == [
            "test", "review", "development", "staging", "production",
        ]

    def test_parse(self) -> None:
        assert Stage.parse("Production") is Stage.PRODUCTION
        assert Stage.parse("canary") is None
        assert Stage.parse(None) is None

    def test_title(self) -> None:
        assert Stage.STAGING.title == "Staging"


class TestProcess:
    """Test leaf updates and projection memoization."""

    def make(self, state: str = "up") -> Process:
        record = DynoRecord.model_validate(
            {"id": "d1", "name": "web.1", "state": state, "command": "npm start"}
        )
        return Process.from_record(record)

    def test_from_record(self) -> None:
        process = self.make("idle")
        assert process.node_id == "dyno:d1"
        assert process.remote_id == "d1"
        assert process.state is ProcessState.IDLE
        assert process.process_type is None

    def test_unchanged_update_keeps_version(self) -> None:
        process = self.make()
        record = DynoRecord.model_validate(
            {"id": "d1", "name": "web.1", "state": "up", "command": "npm start"}
        )
        assert not process.update_from_record(record)
        assert process.version == 0

    def test_projection_memoized_by_version(self) -> None:
        process = self.make()
        item = process.tree_item()
        assert process.tree_item() is item

        record = DynoRecord.model_validate(
            {"id": "d1", "name": "web.1", "state": "crashed", "command": "npm start"}
        )
        assert process.update_from_record(record)

        changed = process.tree_item()
        assert changed is not item
        assert changed.color == "herotree.processState.crashed"
        assert changed.description == "crashed"

    def test_detached_node_has_no_parent(self) -> None:
        assert self.make().parent is None


async def test_command_node_is_never_dirty(tree: ResourceTree) -> None:
    entry = tree.roots[-1]
    assert isinstance(entry, CommandNode)

    entry.mark_dirty()
    await entry.refresh()

    assert not entry.dirty
    assert await tree.get_children(entry) == []
    assert entry.tree_item().label == "Create new app"
