"""Heroku Platform API client over httpx.

Maps the generic ``ResourceClient`` collections onto Heroku v3 REST paths:

    apps                -> /apps
    dynos               -> /apps/{app}/dynos
    addons              -> /apps/{app}/addons
    formation           -> /apps/{app}/formation
    pipelines           -> /pipelines
    pipeline-couplings  -> /pipelines/{pipeline}/pipeline-couplings (list)
                           /pipeline-couplings/{id} (single record)

Usage:
    async with HerokuClient(api_key) as client:
        apps = await client.list("apps")
"""

from __future__ import annotations

from typing import Any

import httpx

from herotree.client.protocol import NESTED_COLLECTIONS, Collection
from herotree.config.schema import DEFAULT_BASE_URL, ApiConfig
from herotree.errors import RateLimitedError, RemoteAPIError
from herotree.logging import TRACE, get_logger

log = get_logger("client")

ACCEPT = "application/vnd.heroku+json; version=3"

_APP_SCOPED = {"dynos", "addons", "formation"}


def collection_path(
    collection: Collection, parent_id: str | None = None, record_id: str | None = None
) -> str:
    """Build the request path for a collection, optionally for one record.

    Raises:
        ValueError: If a nested collection is listed without a parent id.
    """
    if collection == "pipeline-couplings" and record_id is not None:
        return f"/pipeline-couplings/{record_id}"

    if collection in NESTED_COLLECTIONS:
        if parent_id is None:
            raise ValueError(f"{collection} requires a parent id")
        owner = "apps" if collection in _APP_SCOPED else "pipelines"
        path = f"/{owner}/{parent_id}/{collection}"
    else:
        path = f"/{collection}"

    if record_id is not None:
        path = f"{path}/{record_id}"
    return path


def _error_from_response(response: httpx.Response) -> RemoteAPIError:
    error_id: str | None = None
    message = response.reason_phrase or "request failed"
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error_id = body.get("id")
        message = body.get("message", message)

    if response.status_code == 429:
        return RateLimitedError(message, status=429, error_id=error_id)
    return RemoteAPIError(message, status=response.status_code, error_id=error_id)


class HerokuClient:
    """Async Heroku Platform API client implementing ``ResourceClient``.

    Owns an ``httpx.AsyncClient``; close it with ``aclose()`` or use the
    client as an async context manager. A pre-built ``http`` client can be
    injected (tests pass one with ``httpx.MockTransport``).
    """

    def __init__(
        self,
        api_key: str,
        config: ApiConfig | None = None,
        *,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        config = config or ApiConfig()
        self.base_url = config.base_url or DEFAULT_BASE_URL
        self._http = http or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=config.timeout,
        )
        self._headers = {
            "Accept": ACCEPT,
            "Authorization": f"Bearer {api_key}",
            "User-Agent": config.user_agent,
        }
        self.rate_limit_remaining: int | None = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        request_headers = dict(self._headers)
        if headers:
            request_headers.update(headers)

        try:
            response = await self._http.request(
                method, path, json=json, headers=request_headers
            )
        except httpx.HTTPError as e:
            raise RemoteAPIError(f"{method} {path} failed: {e}") from e

        remaining = response.headers.get("RateLimit-Remaining")
        if remaining is not None and remaining.isdigit():
            self.rate_limit_remaining = int(remaining)
            log.log(TRACE, "%s %s -> %d (rate limit remaining %s)",
                    method, path, response.status_code, remaining)

        if response.status_code >= 400:
            error = _error_from_response(response)
            log.debug("%s %s failed: %s", method, path, error)
            raise error
        return response

    async def list(
        self, collection: Collection, parent_id: str | None = None
    ) -> list[dict[str, Any]]:
        """List a collection, following ``Next-Range`` pagination."""
        path = collection_path(collection, parent_id)
        records: list[dict[str, Any]] = []
        headers: dict[str, str] | None = None

        while True:
            response = await self._request("GET", path, headers=headers)
            page = response.json()
            if isinstance(page, list):
                records.extend(page)
            next_range = response.headers.get("Next-Range")
            if response.status_code != 206 or not next_range:
                break
            headers = {"Range": next_range}

        log.debug("Listed %d %s", len(records), collection)
        return records

    async def get(
        self, collection: Collection, parent_id: str | None, record_id: str
    ) -> dict[str, Any]:
        response = await self._request("GET", collection_path(collection, parent_id, record_id))
        return response.json()

    async def create(
        self,
        collection: Collection,
        parent_id: str | None,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        response = await self._request("POST", collection_path(collection, parent_id), json=body or {})
        return response.json()

    async def update(
        self,
        collection: Collection,
        parent_id: str | None,
        record_id: str,
        body: dict[str, Any],
    ) -> dict[str, Any]:
        response = await self._request(
            "PATCH", collection_path(collection, parent_id, record_id), json=body
        )
        return response.json()

    async def delete(
        self, collection: Collection, parent_id: str | None, record_id: str | None = None
    ) -> dict[str, Any]:
        response = await self._request("DELETE", collection_path(collection, parent_id, record_id))
        if not response.content:
            return {}
        return response.json()

    async def action(
        self, collection: Collection, parent_id: str | None, record_id: str, name: str
    ) -> dict[str, Any]:
        """POST to ``<record>/actions/<name>`` (e.g., stopping a dyno)."""
        path = f"{collection_path(collection, parent_id, record_id)}/actions/{name}"
        response = await self._request("POST", path)
        if not response.content:
            return {}
        return response.json()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> HerokuClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()
