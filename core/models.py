# =============================================================================
# core/models.py  -  Data Models (the "nouns" of the system)
# =============================================================================
#
# These dataclasses define the shape of everything that flows between the
# operations and the record store.  Records and blocks are read-only
# snapshots of what the store returned; the operations never mutate them.
#
# THE UNIQUE VALUE IS A TAGGED UNION:
#   The caller hands us "some scalar" for the unique field.  We decide its
#   kind exactly once, at the boundary (classify_unique_value), and from then
#   on the filter builder just dispatches on the type:
#
#     NumberValue  ->  number equality
#     EmailValue   ->  email equality
#     TextValue    ->  rich text equality
# =============================================================================

import re
from dataclasses import dataclass, field
from typing import Any, Optional, Union


# Loose on purpose: anything shaped like "<non-space>@<non-space>".
EMAIL_PATTERN = re.compile(r"\S+@\S+")


# -----------------------------------------------------------------------------
# Unique value variants
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class NumberValue:
    """A numeric candidate value (int or float, never bool)."""

    value: Union[int, float]

    @property
    def filter_kind(self) -> str:
        return "number"

    def filter_operand(self) -> Union[int, float]:
        return self.value


@dataclass(frozen=True)
class EmailValue:
    """A text candidate value shaped like an email address."""

    value: str

    @property
    def filter_kind(self) -> str:
        return "email"

    def filter_operand(self) -> str:
        return self.value


@dataclass(frozen=True)
class TextValue:
    """Any other candidate value, compared as its text form."""

    value: str

    @property
    def filter_kind(self) -> str:
        return "rich_text"

    def filter_operand(self) -> str:
        return self.value


UniqueValue = Union[NumberValue, EmailValue, TextValue]

# Field updates go to the store as-is, in the caller's order.  Their shape
# (title, rich_text, number, email, ...) is owned by the store.
FieldUpdates = dict[str, Any]


def _as_text(raw: Any) -> str:
    # Mirrors how the values would print on the wire (true/false, null).
    if isinstance(raw, bool):
        return "true" if raw else "false"
    if raw is None:
        return "null"
    return str(raw)


def classify_unique_value(raw: Any) -> UniqueValue:
    """Decide the kind of a caller-supplied unique value.

    Numbers (int/float, bool excluded) become ``NumberValue``.  Everything
    else is compared as text: ``EmailValue`` if the text contains
    ``<non-space>@<non-space>``, ``TextValue`` otherwise.

    Already-classified values pass through unchanged.
    """
    if isinstance(raw, (NumberValue, EmailValue, TextValue)):
        return raw
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return NumberValue(raw)
    text = _as_text(raw)
    if EMAIL_PATTERN.search(text):
        return EmailValue(text)
    return TextValue(text)


# -----------------------------------------------------------------------------
# Record - one row/page in a collection
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class Record:
    """A record snapshot as returned by the store."""

    id: str
    object: str = "page"
    archived: bool = False
    in_trash: bool = False
    last_edited_time: Optional[str] = None     # ISO-8601, as sent by the store
    properties: dict[str, Any] = field(default_factory=dict)

    @property
    def is_live(self) -> bool:
        """True for a page that is neither archived nor trashed."""
        return self.object == "page" and not self.archived and not self.in_trash


# -----------------------------------------------------------------------------
# Block - one child node under a page or another block
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class Block:
    """A child node snapshot.

    ``text`` is the plain text of the block's first rich-text run, or ""
    when the block has none.
    """

    id: str
    type: str
    text: str = ""
    archived: bool = False
