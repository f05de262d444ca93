"""Domain models: content items, slot keys and partition instance names (WI_0002).

Slot keys use a zero-indexed month: ``slot_key(2024, 2, 14) == "2024-2-14"``
is March 14th. Items in the unscheduled holding area carry the ``POOL``
sentinel as their location.
"""

from __future__ import annotations

import calendar
import dataclasses
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any

from slotboard.errors import InvalidSlotKey

POOL = "pool"

# Storage keys of the item partitions inside a project document.
INSTANCE_KEYS: tuple[str, ...] = ("instagram", "fbig", "tiktok")

# UI-facing instance names that are stored under a different key.
_INSTANCE_ALIASES: dict[str, str] = {"facebook": "fbig"}

_SLOT_KEY_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")

MONTH_NAMES: tuple[str, ...] = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Instances
# ---------------------------------------------------------------------------


def storage_instance(instance: str) -> str:
    """Map a UI instance name to its storage key (``facebook`` → ``fbig``).

    Raises:
        ValueError: If *instance* is not a known instance.
    """
    key = _INSTANCE_ALIASES.get(instance.strip().lower(), instance.strip().lower())
    if key not in INSTANCE_KEYS:
        known = ", ".join(sorted(set(INSTANCE_KEYS) | set(_INSTANCE_ALIASES)))
        raise ValueError(f"Unknown instance '{instance}'. Known instances: {known}")
    return key


# ---------------------------------------------------------------------------
# Slot keys
# ---------------------------------------------------------------------------


def slot_key(year: int, month: int, day: int) -> str:
    """Build the slot key for a calendar day (month is zero-indexed).

    Raises:
        InvalidSlotKey: If the triple does not name a real calendar day.
    """
    if not (1 <= year <= 9999 and 0 <= month <= 11):
        raise InvalidSlotKey(f"{year}-{month}-{day}")
    if not 1 <= day <= calendar.monthrange(year, month + 1)[1]:
        raise InvalidSlotKey(f"{year}-{month}-{day}")
    return f"{year}-{month}-{day}"


def parse_slot_key(key: str) -> tuple[int, int, int]:
    """Return ``(year, month, day)`` for *key*, month zero-indexed."""
    match = _SLOT_KEY_RE.match(key) if isinstance(key, str) else None
    if not match:
        raise InvalidSlotKey(key)
    year, month, day = (int(g) for g in match.groups())
    # Round-trip to reject non-canonical forms such as "2024-02-14".
    if slot_key(year, month, day) != key:
        raise InvalidSlotKey(key)
    return year, month, day


def is_slot_key(value: object) -> bool:
    try:
        parse_slot_key(value)  # type: ignore[arg-type]
    except InvalidSlotKey:
        return False
    return True


def is_valid_location(value: object) -> bool:
    """True for the pool sentinel or a well-formed slot key."""
    return value == POOL or is_slot_key(value)


def slot_key_for_date(day: date) -> str:
    return slot_key(day.year, day.month - 1, day.day)


def date_for_slot_key(key: str) -> date:
    year, month, day = parse_slot_key(key)
    return date(year, month + 1, day)


def describe_location(location: str) -> str:
    """Human-readable location: ``"March 14, 2024"`` or ``"the pool"``."""
    if location == POOL:
        return "the pool"
    year, month, day = parse_slot_key(location)
    return f"{MONTH_NAMES[month]} {day}, {year}"


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


@dataclass
class Item:
    """One content card.

    Text fields are never ``None`` and list fields are never missing: the
    remote store rejects undefined values, so defaults are normalized here.

    Attributes:
        id: Stable item id (key inside the partition map).
        url: Media URL (blob store download URL).
        title: Display title.
        location: ``POOL`` or a slot key; validated on construction.
        last_moved: Timezone-aware timestamp of the last location change.
    """

    id: str
    url: str
    title: str
    location: str = POOL
    last_moved: datetime = field(default_factory=utcnow)
    description: str = ""
    caption: str = ""
    label: str = ""
    comment: str = ""
    video_embed: str = ""
    content_type: str = ""
    comments: list[Any] = field(default_factory=list)
    attachments: list[Any] = field(default_factory=list)
    carousel_arrangement: list[Any] = field(default_factory=list)
    script: str = ""
    samples: list[Any] = field(default_factory=list)
    instance: str = ""

    def __post_init__(self) -> None:
        if not is_valid_location(self.location):
            raise InvalidSlotKey(self.location)

    def moved_to(self, location: str, when: datetime | None = None) -> Item:
        """Return a copy at *location* with a refreshed ``last_moved``."""
        return dataclasses.replace(
            self,
            location=location,
            last_moved=when or utcnow(),
            caption=self.caption or "",
        )

    def to_remote(self) -> dict[str, Any]:
        """Serialize to the remote (camelCase) representation."""
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "description": self.description,
            "caption": self.caption or "",
            "label": self.label,
            "comment": self.comment,
            "videoEmbed": self.video_embed,
            "contentType": self.content_type,
            "location": self.location,
            "lastMoved": self.last_moved.isoformat(),
            "comments": list(self.comments),
            "attachments": list(self.attachments),
            "carouselArrangement": list(self.carousel_arrangement),
            "script": self.script,
            "samples": list(self.samples),
            "instance": self.instance,
        }


# Fields callers may change through an edit (location changes go through moves).
EDITABLE_FIELDS: frozenset[str] = frozenset(
    f.name for f in dataclasses.fields(Item) if f.name not in ("id", "location", "last_moved")
)
