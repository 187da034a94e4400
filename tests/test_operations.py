"""Tests for the operation handler and the optional write queue."""

import asyncio
from dataclasses import replace

import pytest

from conftest import COLLECTIONS, HUB, FakeStore, days_ago, make_record
from core.errors import UnknownCollection
from core.hub_summary import is_summary_block
from core.operations import make_operations
from core.write_queue import NullWriteQueue, WriteQueue, make_write_queue

CLIENTES = COLLECTIONS["clientes"]
PROPS = {"Email": {"type": "email", "email": "ana@example.com"}}


class TestMakeOperations:

    def test_queue_follows_settings(self, settings, store):
        assert isinstance(make_operations(settings, store).write_queue, NullWriteQueue)
        serialized = replace(settings, serialize_writes=True)
        assert isinstance(make_operations(serialized, store).write_queue, WriteQueue)

    def test_shared_queue_is_kept(self, settings, store):
        queue = WriteQueue()
        a = make_operations(settings, store, queue)
        b = make_operations(settings, store, queue)
        assert a.write_queue is b.write_queue is queue

    def test_default_store_is_notion(self, settings):
        from core.store import NotionStore
        assert isinstance(make_operations(settings).store, NotionStore)

    @pytest.mark.asyncio
    async def test_upsert(self, settings, store):
        ops = make_operations(settings, store)
        result = await ops.upsert("clientes", "Email", "ana@example.com", PROPS)
        assert result.action == "created"

    @pytest.mark.asyncio
    async def test_rebuild_defaults_to_configured_collection(self, settings, store, clock):
        store.add_records(COLLECTIONS["seguimientos"], make_record("p", name="Casa", edited=days_ago(1)))
        ops = make_operations(settings, store, now=clock)
        result = await ops.rebuild_hub_summary()
        assert str(result) == "hub-updated:1"
        assert store.calls[0][1] == COLLECTIONS["seguimientos"]

    @pytest.mark.asyncio
    async def test_unknown_collection_fails_before_store(self, settings, store):
        ops = make_operations(settings, store)
        with pytest.raises(UnknownCollection):
            await ops.upsert("ventas", "Ref", "x", {})
        with pytest.raises(UnknownCollection):
            await ops.rebuild_hub_summary(db="ventas")
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_empty_collection_name_is_not_defaulted(self, settings, store, clock):
        store.add_records(COLLECTIONS["seguimientos"], make_record("p", name="Casa", edited=days_ago(1)))
        ops = make_operations(settings, store, now=clock)
        with pytest.raises(UnknownCollection):
            await ops.rebuild_hub_summary(db="")
        with pytest.raises(UnknownCollection):
            await ops.upsert("", "Ref", "x", {})
        assert store.calls == []


class TestWriteQueue:

    def test_factory(self):
        assert isinstance(make_write_queue(True), WriteQueue)
        assert isinstance(make_write_queue(False), NullWriteQueue)

    def test_one_lock_per_key(self):
        queue = WriteQueue()
        assert queue.lock_for("collection:a") is queue.lock_for("collection:a")
        assert queue.lock_for("collection:a") is not queue.lock_for("collection:b")

    @pytest.mark.asyncio
    async def test_without_queue_concurrent_upserts_duplicate(self, settings):
        store = FakeStore(yield_on_query=True)
        ops = make_operations(settings, store, NullWriteQueue())

        results = await asyncio.gather(
            ops.upsert("clientes", "Email", "ana@example.com", PROPS),
            ops.upsert("clientes", "Email", "ana@example.com", PROPS),
        )

        assert [r.action for r in results] == ["created", "created"]
        assert len(store.collections[CLIENTES]) == 2

    @pytest.mark.asyncio
    async def test_queue_serializes_concurrent_upserts(self, settings):
        store = FakeStore(yield_on_query=True)
        ops = make_operations(settings, store, WriteQueue())

        results = await asyncio.gather(
            ops.upsert("clientes", "Email", "ana@example.com", PROPS),
            ops.upsert("clientes", "Email", "ana@example.com", PROPS),
        )

        assert sorted(r.action for r in results) == ["created", "updated"]
        assert len({r.record_id for r in results}) == 1
        assert len(store.collections[CLIENTES]) == 1

    @pytest.mark.asyncio
    async def test_queue_serializes_concurrent_rebuilds(self, settings, clock):
        store = FakeStore(yield_on_query=True)
        store.add_records(COLLECTIONS["seguimientos"], make_record("p", name="Casa", edited=days_ago(1)))
        ops = make_operations(settings, store, WriteQueue(), now=clock)

        await asyncio.gather(ops.rebuild_hub_summary(), ops.rebuild_hub_summary())

        live = [b for b in store.live_children(HUB) if is_summary_block(b)]
        assert len(live) == 1
