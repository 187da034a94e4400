# =============================================================================
# core/operations.py  -  Operation Handler & Factory
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Bundles the two operations behind one small object bound to the shared,
#   immutable configuration:
#
#     handler = make_operations(settings, store)     # cheap, stateless
#     await handler.upsert("clientes", "Email", "ana@x.com", {...})
#     await handler.rebuild_hub_summary(since_days=14)
#
#   The handler holds only references: the Settings, the store client and
#   the write queue.  The transport layer may build one per session or share
#   one; there is no per-call state to leak between sessions either way.
# =============================================================================

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from core.config import Settings
from core.hub_summary import (
    DEFAULT_SINCE_DAYS,
    HubSummaryResult,
    utcnow,
    rebuild_hub_summary,
)
from core.models import FieldUpdates
from core.store import NotionStore, RecordStore
from core.upsert import UpsertResult, upsert_record
from core.write_queue import AnyWriteQueue, make_write_queue


@dataclass(frozen=True)
class Operations:
    """The two remote-callable operations, bound to one configuration."""

    settings: Settings
    store: RecordStore
    write_queue: AnyWriteQueue
    now: Callable[[], datetime] = field(default=utcnow, repr=False)

    async def upsert(
        self,
        db: str,
        unique_prop: str,
        unique_value: Any,
        properties: FieldUpdates,
    ) -> UpsertResult:
        """Find-unique-or-create in collection ``db``.  See core/upsert.py."""
        registry = self.settings.registry
        # Resolve outside the lock so an unknown name fails immediately.
        collection_id = registry.resolve(db)
        async with self.write_queue.hold(f"collection:{collection_id}"):
            return await upsert_record(
                self.store, registry, db, unique_prop, unique_value, properties,
            )

    async def rebuild_hub_summary(
        self,
        since_days: int = DEFAULT_SINCE_DAYS,
        db: Optional[str] = None,
    ) -> HubSummaryResult:
        """Republish the hub's AUTO summary.  See core/hub_summary.py."""
        # Only an omitted name is defaulted; "" must fail resolution.
        if db is None:
            db = self.settings.default_collection
        self.settings.registry.resolve(db)
        hub = self.settings.hub_page_id
        async with self.write_queue.hold(f"hub:{hub}"):
            return await rebuild_hub_summary(
                self.store,
                self.settings.registry,
                hub,
                since_days=since_days,
                db=db,
                now=self.now,
            )


def make_operations(
    settings: Settings,
    store: Optional[RecordStore] = None,
    write_queue: Optional[AnyWriteQueue] = None,
    *,
    now: Callable[[], datetime] = utcnow,
) -> Operations:
    """Build an Operations handler from the shared configuration.

    ``store`` defaults to a NotionStore built from ``settings``;
    ``write_queue`` defaults to what ``settings.serialize_writes`` asks for.
    Pass the same write queue to every handler that should serialize with
    the others.
    """
    if store is None:
        store = NotionStore.from_settings(settings)
    if write_queue is None:
        write_queue = make_write_queue(settings.serialize_writes)
    return Operations(settings=settings, store=store, write_queue=write_queue, now=now)
