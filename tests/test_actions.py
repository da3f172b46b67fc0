"""Tests for remote mutations on tree nodes."""

from __future__ import annotations

import pytest

from herotree.actions import (
    InvalidQuantityError,
    create_application,
    create_process,
    delete_application,
    list_formations,
    parse_quantity,
    restart_all_processes,
    restart_process,
    scale_formation,
    stop_process,
)
from herotree.errors import HerotreeError
from herotree.tree import Application, CommandNode, ProcessState, ResourceTree
from tests.utils import FakeClient, dyno_record, formation_record


async def loaded_app(tree: ResourceTree, remote_id: str = "a1") -> Application:
    await tree.get_children()
    app = tree.find_application(remote_id)
    assert app is not None
    await tree.get_children(app)
    return app


class TestParseQuantity:
    """Test validation of user-typed dyno counts."""

    @pytest.mark.parametrize(("value", "expected"), [(0, 0), (3, 3), ("2", 2), (" 10 ", 10)])
    def test_valid(self, value: object, expected: int) -> None:
        assert parse_quantity(value) == expected

    @pytest.mark.parametrize("value", [-1, "-1", "1.5", 1.5, "two", "", None, True])
    def test_invalid(self, value: object) -> None:
        with pytest.raises(InvalidQuantityError):
            parse_quantity(value)

    def test_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            parse_quantity("x")


class TestApplications:
    """Test creating and deleting apps."""

    async def test_create_application_adds_root(
        self, client: FakeClient, tree: ResourceTree
    ) -> None:
        client.add_app("a1", "zulu")
        await tree.get_children()

        app = await create_application(tree, name="alpha")

        roots = tree.roots
        assert [root.name for root in roots[:-1]] == ["alpha", "zulu"]
        assert isinstance(roots[-1], CommandNode)
        assert roots[0] is app
        assert client.count("list", "apps") == 1

    async def test_delete_application(self, client: FakeClient, tree: ResourceTree) -> None:
        client.add_app("a1", "alpha")
        client.add_app("b1", "bravo")
        app = await loaded_app(tree)

        await delete_application(tree, app)

        assert [root.name for root in tree.roots[:-1]] == ["bravo"]
        assert [record["id"] for record in client.apps] == ["b1"]


class TestProcesses:
    """Test dyno actions."""

    async def test_create_process_refreshes_app(
        self, client: FakeClient, tree: ResourceTree
    ) -> None:
        client.add_app("a1", "alpha", dynos=[dyno_record("d1", "web.1")])
        app = await loaded_app(tree)

        process = await create_process(tree, app, "rails console")

        assert process in app.processes
        assert process.command == "rails console"
        assert app.state is ProcessState.STARTING

    async def test_create_process_requires_command(
        self, client: FakeClient, tree: ResourceTree
    ) -> None:
        client.add_app("a1", "alpha")
        app = await loaded_app(tree)

        with pytest.raises(HerotreeError):
            await create_process(tree, app, "  ")
        assert client.count("create", "dynos", "a1") == 0

    async def test_restart_process(self, client: FakeClient, tree: ResourceTree) -> None:
        client.add_app("a1", "alpha", dynos=[dyno_record("d1", "web.1")])
        app = await loaded_app(tree)

        await restart_process(tree, app.processes[0])

        assert ("delete", "dynos", "a1", "d1") in client.calls
        assert client.count("list", "dynos", "a1") == 2

    async def test_stop_process(self, client: FakeClient, tree: ResourceTree) -> None:
        client.add_app("a1", "alpha", dynos=[dyno_record("d1", "web.1")])
        app = await loaded_app(tree)
        process = app.processes[0]

        await stop_process(tree, process)

        assert ("action:stop", "dynos", "a1", "d1") in client.calls
        assert process.state is ProcessState.DOWN
        assert process.tree_item().context_value == "dynoDown"

    async def test_restart_all(self, client: FakeClient, tree: ResourceTree) -> None:
        client.add_app("a1", "alpha", dynos=[dyno_record("d1", "web.1")])
        app = await loaded_app(tree)

        await restart_all_processes(tree, app)

        assert ("delete", "dynos", "a1", None) in client.calls


class TestFormation:
    """Test listing and scaling process formation."""

    async def test_list_formations(self, client: FakeClient, tree: ResourceTree) -> None:
        client.add_app("a1", "alpha")
        client.formation["a1"] = [formation_record("f1", "web", 2)]
        app = await loaded_app(tree)

        formations = await list_formations(tree, app)

        assert [(f.type, f.quantity) for f in formations] == [("web", 2)]

    async def test_scale(self, client: FakeClient, tree: ResourceTree) -> None:
        client.add_app("a1", "alpha")
        client.formation["a1"] = [formation_record("f1", "web", 1)]
        app = await loaded_app(tree)

        formation = await scale_formation(tree, app, "f1", "3")

        assert formation.quantity == 3
        assert client.formation["a1"][0]["quantity"] == 3
        assert client.count("list", "dynos", "a1") == 2

    async def test_scale_rejects_negative(self, client: FakeClient, tree: ResourceTree) -> None:
        client.add_app("a1", "alpha")
        client.formation["a1"] = [formation_record("f1", "web", 1)]
        app = await loaded_app(tree)

        with pytest.raises(InvalidQuantityError):
            await scale_formation(tree, app, "f1", -2)
        assert client.count("update", "formation", "a1") == 0
