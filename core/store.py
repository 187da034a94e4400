# =============================================================================
# core/store.py  -  Record Store Client
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   A thin async adapter over the Notion REST API.  It translates six calls
#   into HTTP requests and the JSON answers into Record/Block snapshots:
#
#     query(collection_id, filter, sorts)  ->  POST  /databases/{id}/query
#     create(collection_id, properties)    ->  POST  /pages
#     update(record_id, properties)        ->  PATCH /pages/{id}
#     list_children(block_id)              ->  GET   /blocks/{id}/children
#     append_children(block_id, children)  ->  PATCH /blocks/{id}/children
#     archive(block_id)                    ->  PATCH /blocks/{id}
#
# CONTRACT:
#   - No state beyond the HTTP connection pool.  No caching.
#   - Each call is issued exactly once.  No retry: retry policy, if any,
#     belongs to whoever invokes the operation.
#   - Every failure surfaces as StoreError carrying the store's own status,
#     code and message.
#
# The operations depend on the RecordStore protocol, not on NotionStore, so
# tests can hand them an in-memory store.
# =============================================================================

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol, Sequence, runtime_checkable

import httpx

from core.errors import StoreError
from core.models import Block, FieldUpdates, Record

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100


@runtime_checkable
class RecordStore(Protocol):
    """What the operations need from the document store."""

    async def query(
        self,
        collection_id: str,
        filter: dict[str, Any],
        sorts: Optional[Sequence[dict[str, Any]]] = None,
    ) -> list[Record]: ...

    async def create(self, collection_id: str, properties: FieldUpdates) -> Record: ...

    async def update(self, record_id: str, properties: FieldUpdates) -> Record: ...

    async def list_children(
        self, block_id: str, page_size: int = DEFAULT_PAGE_SIZE,
    ) -> list[Block]: ...

    async def append_children(
        self, block_id: str, children: Sequence[dict[str, Any]],
    ) -> list[Block]: ...

    async def archive(self, block_id: str) -> None: ...


# -----------------------------------------------------------------------------
# Response parsing
# -----------------------------------------------------------------------------
def record_from_json(data: dict[str, Any]) -> Record:
    """Build a Record snapshot from a page object."""
    return Record(
        id=data["id"],
        object=data.get("object", "page"),
        archived=bool(data.get("archived", False)),
        in_trash=bool(data.get("in_trash", False)),
        last_edited_time=data.get("last_edited_time"),
        properties=data.get("properties") or {},
    )


def block_from_json(data: dict[str, Any]) -> Block:
    """Build a Block snapshot from a block object.

    The leading text is the ``plain_text`` of the first rich-text run in the
    block's type-specific payload; blocks without one get "".
    """
    block_type = data.get("type", "")
    payload = data.get(block_type)
    text = ""
    if isinstance(payload, dict):
        runs = payload.get("rich_text") or []
        if runs and isinstance(runs[0], dict):
            text = runs[0].get("plain_text") or ""
    return Block(
        id=data["id"],
        type=block_type,
        text=text,
        archived=bool(data.get("archived", False)),
    )


# -----------------------------------------------------------------------------
# NotionStore
# -----------------------------------------------------------------------------
class NotionStore:
    """RecordStore backed by the Notion HTTP API."""

    def __init__(
        self,
        token: str,
        *,
        api_url: str = "https://api.notion.com/v1",
        api_version: str = "2022-06-28",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_url = api_url.rstrip("/")
        headers = {
            "Authorization": f"Bearer {token}",
            "Notion-Version": api_version,
            "Content-Type": "application/json",
        }
        self._client = httpx.AsyncClient(
            base_url=self._api_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings) -> "NotionStore":
        return cls(
            settings.notion_token,
            api_url=settings.api_url,
            api_version=settings.api_version,
            timeout=settings.timeout,
        )

    @property
    def closed(self) -> bool:
        return self._client.is_closed

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "NotionStore":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        logger.debug("%s %s", method, path)
        try:
            resp = await self._client.request(method, path, json=json, params=params)
        except httpx.HTTPError as e:
            raise StoreError(f"{method} {path} failed: {e}") from e

        if resp.status_code >= 400:
            code = None
            message = resp.text
            try:
                body = resp.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                code = body.get("code")
                message = body.get("message") or message
            raise StoreError(
                f"{method} {path} -> {resp.status_code}"
                + (f" {code}" if code else "")
                + (f": {message}" if message else ""),
                status=resp.status_code,
                code=code,
            )

        try:
            return resp.json()
        except ValueError as e:
            raise StoreError(f"{method} {path} returned a non-JSON body") from e

    # --- Records ---

    async def query(
        self,
        collection_id: str,
        filter: dict[str, Any],
        sorts: Optional[Sequence[dict[str, Any]]] = None,
    ) -> list[Record]:
        """Return the first page of records matching ``filter``, in store order."""
        body: dict[str, Any] = {"filter": filter}
        if sorts:
            body["sorts"] = list(sorts)
        data = await self._request("POST", f"/databases/{collection_id}/query", json=body)
        return [record_from_json(r) for r in data.get("results", [])]

    async def create(self, collection_id: str, properties: FieldUpdates) -> Record:
        data = await self._request("POST", "/pages", json={
            "parent": {"database_id": collection_id},
            "properties": dict(properties),
        })
        return record_from_json(data)

    async def update(self, record_id: str, properties: FieldUpdates) -> Record:
        data = await self._request("PATCH", f"/pages/{record_id}", json={
            "properties": dict(properties),
        })
        return record_from_json(data)

    # --- Child nodes ---

    async def list_children(
        self, block_id: str, page_size: int = DEFAULT_PAGE_SIZE,
    ) -> list[Block]:
        """Return the first page of direct children (no pagination)."""
        data = await self._request(
            "GET", f"/blocks/{block_id}/children", params={"page_size": page_size},
        )
        return [block_from_json(b) for b in data.get("results", [])]

    async def append_children(
        self, block_id: str, children: Sequence[dict[str, Any]],
    ) -> list[Block]:
        data = await self._request("PATCH", f"/blocks/{block_id}/children", json={
            "children": list(children),
        })
        return [block_from_json(b) for b in data.get("results", [])]

    async def archive(self, block_id: str) -> None:
        await self._request("PATCH", f"/blocks/{block_id}", json={"archived": True})
