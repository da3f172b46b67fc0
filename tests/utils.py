"""Shared test utilities for herotree tests."""

from __future__ import annotations

import asyncio
import copy
import itertools
from typing import Any

from herotree.errors import RemoteAPIError


def app_record(app_id: str, name: str, **extra: Any) -> dict[str, Any]:
    """Build a raw app record as the API returns it."""
    return {
        "id": app_id,
        "name": name,
        "web_url": f"https://{name}.herokuapp.com/",
        "git_url": f"https://git.heroku.com/{name}.git",
        **extra,
    }


def dyno_record(
    dyno_id: str,
    name: str,
    state: str = "up",
    command: str = "npm start",
    **extra: Any,
) -> dict[str, Any]:
    return {
        "id": dyno_id,
        "name": name,
        "state": state,
        "command": command,
        "type": name.split(".")[0],
        "size": "basic",
        **extra,
    }


def addon_record(
    addon_id: str,
    name: str,
    state: str = "provisioned",
    service: str = "heroku-postgresql",
    plan: str = "heroku-postgresql:mini",
) -> dict[str, Any]:
    return {
        "id": addon_id,
        "name": name,
        "state": state,
        "addon_service": {"id": f"svc-{addon_id}", "name": service},
        "plan": {"id": f"plan-{addon_id}", "name": plan},
        "config_vars": ["DATABASE_URL"],
    }


def pipeline_record(pipeline_id: str, name: str) -> dict[str, Any]:
    return {"id": pipeline_id, "name": name}


def coupling_record(
    coupling_id: str, app_id: str, stage: str, pipeline_id: str | None = None
) -> dict[str, Any]:
    record: dict[str, Any] = {"id": coupling_id, "stage": stage, "app": {"id": app_id}}
    if pipeline_id is not None:
        record["pipeline"] = {"id": pipeline_id}
    return record


def formation_record(formation_id: str, process_type: str, quantity: int = 1) -> dict[str, Any]:
    return {"id": formation_id, "type": process_type, "quantity": quantity, "command": "npm start"}


class FakeClient:
    """In-memory ``ResourceClient`` backed by plain lists of records.

    Every call is recorded in ``calls`` as ``(method, collection, parent_id,
    record_id)`` and yields to the event loop once, like a real request.
    Failures are injected per ``(collection, parent_id)`` with ``fail()``.

    Example:
        client = FakeClient()
        client.add_app("a1", "alpha", dynos=[dyno_record("d1", "web.1")])
        tree = ResourceTree(client)
    """

    def __init__(self) -> None:
        self.apps: list[dict[str, Any]] = []
        self.pipelines: list[dict[str, Any]] = []
        self.dynos: dict[str, list[dict[str, Any]]] = {}
        self.addons: dict[str, list[dict[str, Any]]] = {}
        self.couplings: dict[str, list[dict[str, Any]]] = {}
        self.formation: dict[str, list[dict[str, Any]]] = {}
        self.calls: list[tuple[str, str, str | None, str | None]] = []
        self._failures: dict[tuple[str, str | None], Exception] = {}
        self._delays: dict[tuple[str, str | None], int] = {}
        self._ids = itertools.count(1)

    # -------------------------------------------------------------------------
    # Fixture setup
    # -------------------------------------------------------------------------

    def add_app(
        self,
        app_id: str,
        name: str,
        dynos: list[dict[str, Any]] | None = None,
        addons: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        record = app_record(app_id, name)
        self.apps.append(record)
        self.dynos[app_id] = list(dynos or [])
        self.addons[app_id] = list(addons or [])
        return record

    def add_pipeline(
        self, pipeline_id: str, name: str, couplings: list[tuple[str, str]] | None = None
    ) -> dict[str, Any]:
        """Add a pipeline coupled to ``(app_id, stage)`` pairs."""
        record = pipeline_record(pipeline_id, name)
        self.pipelines.append(record)
        self.couplings[pipeline_id] = [
            coupling_record(f"{pipeline_id}-c{index}", app_id, stage, pipeline_id)
            for index, (app_id, stage) in enumerate(couplings or [])
        ]
        return record

    def set_dyno_state(self, app_id: str, dyno_id: str, state: str) -> None:
        for dyno in self.dynos[app_id]:
            if dyno["id"] == dyno_id:
                dyno["state"] = state
                return
        raise KeyError(dyno_id)

    def fail(
        self, collection: str, parent_id: str | None = None, error: Exception | None = None
    ) -> None:
        """Make every call on a collection raise until ``recover()``."""
        self._failures[(collection, parent_id)] = error or RemoteAPIError(
            "Service unavailable", status=503, error_id="unavailable"
        )

    def recover(self, collection: str, parent_id: str | None = None) -> None:
        self._failures.pop((collection, parent_id), None)

    def delay(self, collection: str, parent_id: str | None = None, ticks: int = 10) -> None:
        """Make calls on a collection yield ``ticks`` extra times before answering."""
        self._delays[(collection, parent_id)] = ticks

    def count(self, method: str, collection: str, parent_id: str | None = None) -> int:
        """Number of recorded calls matching method, collection and parent."""
        return sum(
            1
            for call in self.calls
            if call[0] == method and call[1] == collection and call[2] == parent_id
        )

    # -------------------------------------------------------------------------
    # ResourceClient
    # -------------------------------------------------------------------------

    def _store(self, collection: str, parent_id: str | None) -> list[dict[str, Any]]:
        match collection:
            case "apps":
                return self.apps
            case "pipelines":
                return self.pipelines
            case "dynos":
                return self.dynos.setdefault(parent_id or "", [])
            case "addons":
                return self.addons.setdefault(parent_id or "", [])
            case "pipeline-couplings":
                return self.couplings.setdefault(parent_id or "", [])
            case "formation":
                return self.formation.setdefault(parent_id or "", [])
        raise ValueError(f"unknown collection {collection}")

    async def _call(
        self, method: str, collection: str, parent_id: str | None, record_id: str | None = None
    ) -> None:
        self.calls.append((method, collection, parent_id, record_id))
        for _ in range(1 + self._delays.get((collection, parent_id), 0)):
            await asyncio.sleep(0)
        error = self._failures.get((collection, parent_id))
        if error is not None:
            raise error

    async def list(self, collection: str, parent_id: str | None = None) -> list[dict[str, Any]]:
        await self._call("list", collection, parent_id)
        return copy.deepcopy(self._store(collection, parent_id))

    async def get(self, collection: str, parent_id: str | None, record_id: str) -> dict[str, Any]:
        await self._call("get", collection, parent_id, record_id)
        for record in self._store(collection, parent_id):
            if record["id"] == record_id:
                return copy.deepcopy(record)
        raise RemoteAPIError("Not found", status=404, error_id="not_found")

    async def create(
        self, collection: str, parent_id: str | None, body: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        await self._call("create", collection, parent_id)
        body = dict(body or {})
        record_id = body.pop("id", None) or f"new-{next(self._ids)}"
        if collection == "apps":
            record = app_record(record_id, body.get("name") or record_id)
            self.dynos[record_id] = []
            self.addons[record_id] = []
        elif collection == "dynos":
            record = dyno_record(record_id, f"run.{next(self._ids)}", state="starting",
                                 command=body.get("command", ""))
        else:
            record = {"id": record_id, **body}
        self._store(collection, parent_id).append(record)
        return copy.deepcopy(record)

    async def update(
        self, collection: str, parent_id: str | None, record_id: str, body: dict[str, Any]
    ) -> dict[str, Any]:
        await self._call("update", collection, parent_id, record_id)
        for record in self._store(collection, parent_id):
            if record["id"] == record_id:
                record.update(body)
                return copy.deepcopy(record)
        raise RemoteAPIError("Not found", status=404, error_id="not_found")

    async def delete(
        self, collection: str, parent_id: str | None, record_id: str | None = None
    ) -> dict[str, Any]:
        await self._call("delete", collection, parent_id, record_id)
        # Deleting dynos restarts them; they stay listed
        if collection == "dynos":
            return {}
        store = self._store(collection, parent_id)
        for record in list(store):
            if record["id"] == record_id:
                store.remove(record)
                return copy.deepcopy(record)
        raise RemoteAPIError("Not found", status=404, error_id="not_found")

    async def action(
        self, collection: str, parent_id: str | None, record_id: str, name: str
    ) -> dict[str, Any]:
        await self._call(f"action:{name}", collection, parent_id, record_id)
        if collection == "dynos" and name == "stop":
            for record in self._store(collection, parent_id):
                if record["id"] == record_id:
                    record["state"] = "down"
        return {}


def labels(nodes: list[Any]) -> list[str]:
    """Display labels of nodes from their cached projections."""
    return [node.tree_item().label for node in nodes]
