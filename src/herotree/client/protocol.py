"""Remote resource client protocol."""

from __future__ import annotations

from typing import Any, Literal, Protocol

Collection = Literal[
    "apps",
    "dynos",
    "addons",
    "pipelines",
    "pipeline-couplings",
    "formation",
]

# Collections that live under a parent resource (an app or a pipeline)
NESTED_COLLECTIONS: frozenset[str] = frozenset(
    {"dynos", "addons", "pipeline-couplings", "formation"}
)


class ResourceClient(Protocol):
    """Request/response access to the remote resource API.

    Every call is a suspension point. Records are plain JSON objects;
    ``parent_id`` is the owning app (dynos, addons, formation) or pipeline
    (pipeline-couplings) and must be None for top-level collections.

    Implementations:
    - HerokuClient: Heroku Platform API over httpx
    - tests.utils.FakeClient: in-memory fixture data
    """

    async def list(
        self, collection: Collection, parent_id: str | None = None
    ) -> list[dict[str, Any]]:
        """List every record of a collection."""
        ...

    async def get(
        self, collection: Collection, parent_id: str | None, record_id: str
    ) -> dict[str, Any]:
        """Fetch one record."""
        ...

    async def create(
        self,
        collection: Collection,
        parent_id: str | None,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Create a record and return it."""
        ...

    async def update(
        self,
        collection: Collection,
        parent_id: str | None,
        record_id: str,
        body: dict[str, Any],
    ) -> dict[str, Any]:
        """Patch a record and return the new version."""
        ...

    async def delete(
        self, collection: Collection, parent_id: str | None, record_id: str | None = None
    ) -> dict[str, Any]:
        """Delete a record (or, with no id, every record of the collection)."""
        ...

    async def action(
        self, collection: Collection, parent_id: str | None, record_id: str, name: str
    ) -> dict[str, Any]:
        """Invoke a named action on a record (e.g., "stop" on a dyno)."""
        ...
