# =============================================================================
# core/hub_summary.py  -  Rebuild the AUTO Summary Block on the Hub
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Publishes a callout under the hub page listing the records of one
#   collection that changed in the last N days:
#
#     1. resolve the collection (UnknownCollection before any store call)
#     2. cutoff = now - N days
#     3. query records edited on/after cutoff, newest first
#     4. list the hub's direct children (first page, up to 100)
#     5. archive every callout whose text starts with "AUTO · Resumen"
#     6. append a new callout "AUTO · Resumen (últimos N días)"
#     7. append one bullet per record (top 25, newest first) under it
#     8. report "hub-updated:<bullet count>"
#
# KNOWN LIMITATIONS:
#   - Not atomic.  A failure between steps 5 and 7 leaves the hub with no
#     summary, or with an empty callout.  Re-running repairs it.
#   - Two concurrent rebuilds can interleave and leave two live callouts.
#     The write queue (core/write_queue.py) serializes rebuilds per hub.
#   - Only the first 100 hub children are scanned for old summaries.
# =============================================================================

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Sequence

from core.config import CollectionRegistry
from core.errors import MalformedResult, StoreError
from core.models import Block, Record
from core.store import RecordStore

logger = logging.getLogger(__name__)

SUMMARY_MARKER = "AUTO · Resumen"
SUMMARY_ICON = "🟩"
MAX_BULLETS = 25
HUB_SCAN_LIMIT = 100
MIN_SINCE_DAYS = 1
MAX_SINCE_DAYS = 90
DEFAULT_SINCE_DAYS = 14

# Title fields tried in order when naming a bullet.
TITLE_FIELDS = ("Name", "Título")
UNTITLED = "Sin título"


# -----------------------------------------------------------------------------
# Display names
# -----------------------------------------------------------------------------
def _title_text(record: Record, field_name: str) -> str:
    """Plain text of the first run of a title field.

    Raises:
        MalformedResult: the field is absent or not shaped like a title.
    """
    try:
        text = record.properties[field_name]["title"][0]["plain_text"]
    except (KeyError, IndexError, TypeError) as e:
        raise MalformedResult(f"{record.id}: no {field_name!r} title") from e
    if not isinstance(text, str):
        raise MalformedResult(f"{record.id}: {field_name!r} title is not text")
    return text


def display_name(record: Record) -> str:
    """First non-empty of the "Name" or "Título" title, else "Sin título"."""
    for field_name in TITLE_FIELDS:
        try:
            text = _title_text(record, field_name)
        except MalformedResult as e:
            logger.debug("%s", e)
            continue
        if text:
            return text
    return UNTITLED


# -----------------------------------------------------------------------------
# Block payloads
# -----------------------------------------------------------------------------
def _text_run(content: str) -> list[dict[str, Any]]:
    return [{"type": "text", "text": {"content": content}}]


def summary_title(since_days: int) -> str:
    return f"{SUMMARY_MARKER} (últimos {since_days} días)"


def callout_block(title: str) -> dict[str, Any]:
    return {
        "object": "block",
        "type": "callout",
        "callout": {
            "icon": {"emoji": SUMMARY_ICON},
            "rich_text": _text_run(title),
        },
    }


def bullet_block(text: str) -> dict[str, Any]:
    return {
        "object": "block",
        "type": "bulleted_list_item",
        "bulleted_list_item": {"rich_text": _text_run(text)},
    }


def is_summary_block(block: Block) -> bool:
    """True for a callout whose leading text starts with the AUTO marker."""
    return block.type == "callout" and block.text.startswith(SUMMARY_MARKER)


def recent_changes_filter(cutoff: datetime) -> dict[str, Any]:
    iso = cutoff.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return {
        "timestamp": "last_edited_time",
        "last_edited_time": {"on_or_after": iso.replace("+00:00", "Z")},
    }


NEWEST_FIRST: Sequence[dict[str, Any]] = (
    {"timestamp": "last_edited_time", "direction": "descending"},
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class HubSummaryResult:
    """Outcome of one rebuild."""

    bullets: int
    archived: int = 0
    callout_id: Optional[str] = None

    def __str__(self) -> str:
        return f"hub-updated:{self.bullets}"


# -----------------------------------------------------------------------------
# The operation
# -----------------------------------------------------------------------------
async def rebuild_hub_summary(
    store: RecordStore,
    registry: CollectionRegistry,
    hub_page_id: str,
    since_days: int = DEFAULT_SINCE_DAYS,
    db: str = "seguimientos",
    *,
    now: Callable[[], datetime] = utcnow,
) -> HubSummaryResult:
    """Replace the hub's AUTO summary with the latest changes of ``db``.

    Args:
        store: Record store client.
        registry: Logical-name -> collection-id mapping.
        hub_page_id: Page the summary callout lives under.
        since_days: Lookback window in days (1-90).
        db: Logical collection name.
        now: Clock, injectable for tests.

    Returns:
        A HubSummaryResult; ``str(result)`` is ``hub-updated:<n>``.

    Raises:
        UnknownCollection: ``db`` is not configured (no store call is made).
        ValueError: ``since_days`` is outside 1-90.
        StoreError: a remote call failed; earlier mutations stay committed.
    """
    collection_id = registry.resolve(db)
    if not MIN_SINCE_DAYS <= since_days <= MAX_SINCE_DAYS:
        raise ValueError(
            f"since_days must be between {MIN_SINCE_DAYS} and {MAX_SINCE_DAYS}, got {since_days}"
        )

    cutoff = now() - timedelta(days=since_days)
    records = await store.query(
        collection_id, recent_changes_filter(cutoff), sorts=NEWEST_FIRST,
    )
    logger.info("%d records in %s changed since %s", len(records), db, cutoff.isoformat())

    archived = 0
    for block in await store.list_children(hub_page_id, page_size=HUB_SCAN_LIMIT):
        if is_summary_block(block):
            await store.archive(block.id)
            archived += 1
            logger.info("Archived previous summary %s", block.id)

    created = await store.append_children(
        hub_page_id, [callout_block(summary_title(since_days))],
    )
    if not created:
        raise StoreError(f"Appending the summary callout to {hub_page_id} returned no block")
    callout_id = created[0].id

    bullets = [bullet_block(display_name(r)) for r in records[:MAX_BULLETS]]
    if bullets:
        await store.append_children(callout_id, bullets)
    logger.info("Published summary %s with %d bullets", callout_id, len(bullets))

    return HubSummaryResult(bullets=len(bullets), archived=archived, callout_id=callout_id)
