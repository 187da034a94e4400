# =============================================================================
# core/write_queue.py  -  Optional Single-Writer Serialization
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   The store has no compare-and-swap, so concurrent upserts for the same
#   value can both create, and concurrent rebuilds can leave two summaries.
#   When SERIALIZE_WRITES is on, every operation first takes an
#   asyncio.Lock keyed by what it mutates:
#
#     upsert               ->  "collection:<collection id>"
#     rebuild-hub-summary  ->  "hub:<hub page id>"
#
#   Calls on different keys still run concurrently.  This only covers one
#   process: several server processes against the same store still race.
#
#   When the option is off, NullWriteQueue keeps the call path identical
#   but takes no lock.
# =============================================================================

import asyncio
import contextlib
from typing import AsyncIterator, Union


class WriteQueue:
    """Per-key asyncio locks, created on first use."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    @contextlib.asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        async with self.lock_for(key):
            yield


class NullWriteQueue:
    """Same interface as WriteQueue, no serialization."""

    @contextlib.asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        yield


AnyWriteQueue = Union[WriteQueue, NullWriteQueue]


def make_write_queue(serialize: bool) -> AnyWriteQueue:
    return WriteQueue() if serialize else NullWriteQueue()
