"""Remote mutations on tree nodes.

Each action issues the remote call through the tree's client, then brings
the cache back in line: app creation and deletion edit the root collection
directly, dyno actions refresh the owning application.
"""

from __future__ import annotations

from typing import Any

from herotree.client.records import AppRecord, DynoRecord, FormationRecord, parse_records
from herotree.errors import HerotreeError
from herotree.logging import get_logger
from herotree.tree.cache import ResourceTree
from herotree.tree.nodes import Application, Process

log = get_logger("actions")


class InvalidQuantityError(HerotreeError, ValueError):
    """A formation quantity that is not a non-negative integer."""


def parse_quantity(value: Any) -> int:
    """Validate a dyno count typed by a user.

    Accepts ints and digit-only strings.

    Raises:
        InvalidQuantityError: For negatives, fractions and anything non-numeric.
    """
    if isinstance(value, bool):
        raise InvalidQuantityError(f"Invalid quantity {value!r}")
    if isinstance(value, int):
        quantity = value
    elif isinstance(value, str) and value.strip().isdigit():
        quantity = int(value.strip())
    else:
        raise InvalidQuantityError(f"Invalid quantity {value!r}: expected a whole number")
    if quantity < 0:
        raise InvalidQuantityError(f"Invalid quantity {quantity}: must be 0 or more")
    return quantity


def _owning_app(process: Process) -> Application:
    branch = process.parent
    app = branch.parent if branch is not None else None
    if not isinstance(app, Application):
        raise HerotreeError(f"Dyno {process.name} is not attached to an app")
    return app


async def create_application(
    tree: ResourceTree,
    name: str | None = None,
    region: str | None = None,
) -> Application:
    """Create an app remotely and insert it as a root."""
    body: dict[str, Any] = {}
    if name:
        body["name"] = name
    if region:
        body["region"] = region
    data = await tree.client.create("apps", None, body)
    record = AppRecord.model_validate(data)
    log.info("Created app %s", record.name)
    return tree.add_application(record)


async def delete_application(tree: ResourceTree, app: Application) -> None:
    """Destroy an app remotely and drop it from the tree."""
    await tree.client.delete("apps", None, app.remote_id)
    log.info("Deleted app %s", app.name)
    tree.remove_application(app)


async def create_process(tree: ResourceTree, app: Application, command: str) -> Process:
    """Run a one-off dyno with ``command`` and return its node."""
    if not command.strip():
        raise HerotreeError("A command is required to start a dyno")
    data = await tree.client.create("dynos", app.remote_id, {"command": command})
    record = DynoRecord.model_validate(data)
    log.info("Started dyno %s on %s", record.name, app.name)
    await tree.refresh(app)
    for process in app.processes:
        if process.remote_id == record.id:
            return process
    # One-off dynos can finish before the refresh lists them
    return Process.from_record(record)


async def list_formations(tree: ResourceTree, app: Application) -> list[FormationRecord]:
    """Formation entries (process types and their counts) of an app."""
    data = await tree.client.list("formation", app.remote_id)
    return parse_records(FormationRecord, data)


async def scale_formation(
    tree: ResourceTree,
    app: Application,
    formation_id: str,
    quantity: Any,
) -> FormationRecord:
    """Set the dyno count of one process type.

    Raises:
        InvalidQuantityError: If ``quantity`` is not an integer >= 0.
    """
    count = parse_quantity(quantity)
    data = await tree.client.update(
        "formation", app.remote_id, formation_id, {"quantity": count}
    )
    formation = FormationRecord.model_validate(data)
    log.info("Scaled %s/%s to %d", app.name, formation.type, formation.quantity)
    await tree.refresh(app)
    return formation


async def restart_process(tree: ResourceTree, process: Process) -> None:
    """Restart one dyno."""
    app = _owning_app(process)
    await tree.client.delete("dynos", app.remote_id, process.remote_id)
    log.info("Restarted dyno %s on %s", process.name, app.name)
    await tree.refresh(app)


async def stop_process(tree: ResourceTree, process: Process) -> None:
    """Stop one dyno."""
    app = _owning_app(process)
    await tree.client.action("dynos", app.remote_id, process.remote_id, "stop")
    log.info("Stopped dyno %s on %s", process.name, app.name)
    await tree.refresh(app)


async def restart_all_processes(tree: ResourceTree, app: Application) -> None:
    """Restart every dyno of an app."""
    await tree.client.delete("dynos", app.remote_id)
    log.info("Restarted all dynos on %s", app.name)
    await tree.refresh(app)
