# =============================================================================
# core/upsert.py  -  Find-Unique-or-Create
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Given a logical collection, a field name, a candidate value and a set
#   of field updates:
#     1. resolve the collection (UnknownCollection before any store call)
#     2. build the unique-match filter from the value's kind
#     3. query the collection
#     4. first result live?  -> update it,       report "updated:<id>"
#        otherwise           -> create a record, report "created:<id>"
#
#   Exactly one create-or-update call reaches the store per invocation.
#
# KNOWN LIMITATIONS:
#   - Only the first query result is looked at.  If the field is not
#     actually unique in the store, the other matches are left alone.
#   - No compare-and-swap: two concurrent upserts for the same value can
#     both see "no match" and both create.  Enable the write queue
#     (core/write_queue.py) to serialize upserts per collection.
# =============================================================================

import logging
from dataclasses import dataclass
from typing import Any

from core.config import CollectionRegistry
from core.models import FieldUpdates, UniqueValue, classify_unique_value
from core.store import RecordStore

logger = logging.getLogger(__name__)


def build_unique_filter(prop: str, value: Any) -> dict[str, Any]:
    """Build the store filter matching ``prop == value``.

    The filter kind is a pure function of the value's shape::

        >>> build_unique_filter("Id", 42)
        {'property': 'Id', 'number': {'equals': 42}}
        >>> build_unique_filter("Email", "ana@example.com")
        {'property': 'Email', 'email': {'equals': 'ana@example.com'}}
        >>> build_unique_filter("Ref", "A-17")
        {'property': 'Ref', 'rich_text': {'equals': 'A-17'}}
    """
    unique: UniqueValue = classify_unique_value(value)
    return {
        "property": prop,
        unique.filter_kind: {"equals": unique.filter_operand()},
    }


@dataclass(frozen=True)
class UpsertResult:
    """Outcome of one upsert: which action ran and on which record."""

    action: str        # "updated" or "created"
    record_id: str

    def __str__(self) -> str:
        return f"{self.action}:{self.record_id}"


async def upsert_record(
    store: RecordStore,
    registry: CollectionRegistry,
    db: str,
    unique_prop: str,
    unique_value: Any,
    properties: FieldUpdates,
) -> UpsertResult:
    """Update the record whose ``unique_prop`` equals ``unique_value``, or create one.

    Args:
        store: Record store client.
        registry: Logical-name -> collection-id mapping.
        db: Logical collection name.
        unique_prop: Name of the field that identifies the record.
        unique_value: Candidate value (number, email-shaped text or text).
        properties: Field updates, written as given on update or create.

    Returns:
        An UpsertResult; ``str(result)`` is ``updated:<id>`` or ``created:<id>``.

    Raises:
        UnknownCollection: ``db`` is not configured (no store call is made).
        StoreError: a remote call failed; nothing is rolled back.
    """
    collection_id = registry.resolve(db)
    unique_filter = build_unique_filter(unique_prop, unique_value)

    matches = await store.query(collection_id, unique_filter)
    first = matches[0] if matches else None

    if first is not None and first.is_live:
        await store.update(first.id, properties)
        logger.info("Updated %s in %s (%s=%r)", first.id, db, unique_prop, unique_value)
        return UpsertResult("updated", first.id)

    created = await store.create(collection_id, properties)
    logger.info("Created %s in %s (%s=%r)", created.id, db, unique_prop, unique_value)
    return UpsertResult("created", created.id)
