"""
Shared pytest fixtures for the Real Estate Ops tests.

Provides an in-memory record store so the operations can be exercised
without a Notion workspace.
"""

import asyncio
import itertools
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Sequence

import pytest

from core.config import CollectionRegistry, Settings
from core.models import Block, Record

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
HUB = "hub-page"
COLLECTIONS = {
    "seguimientos": "db-seguimientos",
    "propiedades": "db-propiedades",
    "clientes": "db-clientes",
}


def iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def title(text: str) -> dict[str, Any]:
    """A title property value as the store returns it."""
    return {"type": "title", "title": [{"type": "text", "plain_text": text}]}


def make_record(
    id: str,
    *,
    name: Optional[str] = None,
    titulo: Optional[str] = None,
    edited: datetime = NOW,
    archived: bool = False,
    **properties: Any,
) -> Record:
    props: dict[str, Any] = dict(properties)
    if name is not None:
        props["Name"] = title(name)
    if titulo is not None:
        props["Título"] = title(titulo)
    return Record(id=id, archived=archived, last_edited_time=iso(edited), properties=props)


def _property_value(prop: Any, kind: str) -> Any:
    if not isinstance(prop, dict):
        return None
    if kind in ("number", "email"):
        return prop.get(kind)
    runs = prop.get("rich_text") or prop.get("title") or []
    return "".join(r.get("plain_text", "") for r in runs)


def _leading_text(payload: dict[str, Any]) -> str:
    runs = payload.get("rich_text") or []
    if not runs:
        return ""
    run = runs[0]
    return run.get("plain_text") or run.get("text", {}).get("content", "")


class FakeStore:
    """In-memory RecordStore.

    Honors property-equality filters, the last_edited_time recency filter,
    descending sorts, page sizes and block archiving.  Every call is
    recorded in ``calls`` as ``(method, *args)``.
    """

    def __init__(self, *, yield_on_query: bool = False):
        self.collections: dict[str, list[Record]] = {}
        self.blocks: dict[str, Block] = {}
        self.parents: dict[str, str] = {}
        self.payloads: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple] = []
        self.yield_on_query = yield_on_query
        self._ids = itertools.count(1)

    # --- Seeding helpers ---

    def add_records(self, collection_id: str, *records: Record) -> None:
        self.collections.setdefault(collection_id, []).extend(records)

    def add_block(self, parent_id: str, block_id: str, type: str, text: str = "") -> Block:
        block = Block(id=block_id, type=type, text=text)
        self.blocks[block_id] = block
        self.parents[block_id] = parent_id
        return block

    def live_children(self, parent_id: str) -> list[Block]:
        return [
            b for bid, b in self.blocks.items()
            if self.parents[bid] == parent_id and not b.archived
        ]

    def calls_to(self, method: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == method]

    # --- RecordStore ---

    async def query(
        self,
        collection_id: str,
        filter: dict[str, Any],
        sorts: Optional[Sequence[dict[str, Any]]] = None,
    ) -> list[Record]:
        self.calls.append(("query", collection_id, filter, sorts))
        records = list(self.collections.get(collection_id, []))

        if filter.get("timestamp") == "last_edited_time":
            cutoff = parse_iso(filter["last_edited_time"]["on_or_after"])
            records = [r for r in records if parse_iso(r.last_edited_time) >= cutoff]
        else:
            prop = filter["property"]
            (kind, cond), = [(k, v) for k, v in filter.items() if k != "property"]
            records = [
                r for r in records
                if _property_value(r.properties.get(prop), kind) == cond["equals"]
            ]

        if sorts:
            records.sort(key=lambda r: parse_iso(r.last_edited_time), reverse=True)
        if self.yield_on_query:
            # Hand control to other tasks after the snapshot is taken.
            await asyncio.sleep(0)
        return records[:100]

    async def create(self, collection_id: str, properties: dict[str, Any]) -> Record:
        self.calls.append(("create", collection_id, properties))
        record = Record(
            id=f"page-{next(self._ids)}",
            last_edited_time=iso(NOW),
            properties=dict(properties),
        )
        self.add_records(collection_id, record)
        return record

    async def update(self, record_id: str, properties: dict[str, Any]) -> Record:
        self.calls.append(("update", record_id, properties))
        for records in self.collections.values():
            for i, record in enumerate(records):
                if record.id == record_id:
                    records[i] = replace(record, properties={**record.properties, **properties})
                    return records[i]
        raise KeyError(record_id)

    async def list_children(self, block_id: str, page_size: int = 100) -> list[Block]:
        self.calls.append(("list_children", block_id, page_size))
        return self.live_children(block_id)[:page_size]

    async def append_children(
        self, block_id: str, children: Sequence[dict[str, Any]],
    ) -> list[Block]:
        self.calls.append(("append_children", block_id, list(children)))
        created = []
        for child in children:
            child_id = f"block-{next(self._ids)}"
            payload = child[child["type"]]
            self.payloads[child_id] = payload
            created.append(self.add_block(block_id, child_id, child["type"], _leading_text(payload)))
        return created

    async def archive(self, block_id: str) -> None:
        self.calls.append(("archive", block_id))
        self.blocks[block_id] = replace(self.blocks[block_id], archived=True)


@pytest.fixture
def registry() -> CollectionRegistry:
    return CollectionRegistry(COLLECTIONS)


@pytest.fixture
def settings(registry) -> Settings:
    return Settings(registry=registry, hub_page_id=HUB, notion_token="secret-token")


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def clock():
    """Fixed clock for the rebuild cutoff."""
    return lambda: NOW


def days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)
