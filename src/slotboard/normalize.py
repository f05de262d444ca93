"""Snapshot normalization at the remote boundary (WI_0010).

Remote payloads are untyped maps written by several client versions. Every
entry is converted into an ``Item`` here so internal code never handles missing
domain fields:

  - entries without a URL or title are dropped (reported, never raised);
  - text fields default to ``""`` and list fields to ``[]``;
  - a missing or malformed location falls back to the pool;
  - timestamps go through ``coerce_datetime``, which never raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Mapping

from slotboard.errors import MalformedSnapshot
from slotboard.models import POOL, Item, is_valid_location, utcnow

logger = logging.getLogger(__name__)

_TEXT_FIELDS: dict[str, str] = {
    # remote key -> Item attribute
    "description": "description",
    "label": "label",
    "comment": "comment",
    "contentType": "content_type",
    "script": "script",
}

_LIST_FIELDS: dict[str, str] = {
    "comments": "comments",
    "attachments": "attachments",
    "carouselArrangement": "carousel_arrangement",
    "samples": "samples",
}


@dataclass
class NormalizedPartition:
    """Result of normalizing one partition map."""

    items: dict[str, Item] = field(default_factory=dict)
    dropped: list[MalformedSnapshot] = field(default_factory=list)


def coerce_datetime(value: Any, *, now: datetime | None = None) -> datetime:
    """Convert a timestamp-like value to an aware UTC ``datetime``.

    Accepts ``datetime``/``date`` objects, objects exposing ``to_datetime()``
    (store-native timestamps), ISO-8601 strings, and epoch milliseconds (as
    numbers or digit strings). Anything else falls back to *now*.
    """
    fallback = now or utcnow()
    if value is None or value == "" or isinstance(value, bool):
        return fallback

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    to_datetime = getattr(value, "to_datetime", None)
    if callable(to_datetime):
        try:
            converted = to_datetime()
        except Exception:  # noqa: BLE001
            return fallback
        return coerce_datetime(converted, now=fallback) if isinstance(converted, (datetime, date)) else fallback

    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return _from_epoch_ms(int(text), fallback)
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return fallback
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)

    if isinstance(value, (int, float)):
        return _from_epoch_ms(value, fallback)

    return fallback


def _from_epoch_ms(value: float, fallback: datetime) -> datetime:
    try:
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return fallback


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def normalize_item(item_id: str, raw: Any, instance: str = "") -> Item:
    """Build an ``Item`` from one remote entry.

    Raises:
        MalformedSnapshot: If the entry is not a map or lacks a URL or title.
    """
    if not isinstance(raw, Mapping):
        raise MalformedSnapshot(item_id, "entry is not a map")
    url = raw.get("url")
    title = raw.get("title")
    if not isinstance(url, str) or not url:
        raise MalformedSnapshot(item_id, "missing url")
    if not isinstance(title, str) or not title:
        raise MalformedSnapshot(item_id, "missing title")

    location = raw.get("location") or POOL
    if not is_valid_location(location):
        logger.warning(
            "Invalid location on remote entry, moving it to the pool",
            extra={"event": "snapshot_bad_location", "context": {"item_id": item_id, "location": location}},
        )
        location = POOL

    kwargs: dict[str, Any] = {attr: _text(raw.get(key)) for key, attr in _TEXT_FIELDS.items()}
    kwargs.update({attr: _list(raw.get(key)) for key, attr in _LIST_FIELDS.items()})

    return Item(
        id=item_id,
        url=url,
        title=title,
        location=location,
        last_moved=coerce_datetime(raw.get("lastMoved")),
        caption=_text(raw.get("caption")),
        video_embed=_text(raw.get("videoEmbed")),
        instance=_text(raw.get("instance")) or instance,
        **kwargs,
    )


def normalize_partition(raw: Any, instance: str = "") -> NormalizedPartition:
    """Normalize a whole partition map, dropping malformed entries with a warning."""
    result = NormalizedPartition()
    if not isinstance(raw, Mapping):
        return result
    for item_id, entry in raw.items():
        try:
            result.items[str(item_id)] = normalize_item(str(item_id), entry, instance)
        except MalformedSnapshot as exc:
            logger.warning(
                "Skipping invalid entry",
                extra={"event": "snapshot_entry_dropped", "context": {"item_id": exc.item_id, "reason": exc.reason}},
            )
            result.dropped.append(exc)
    return result


def sanitize_for_store(value: Any) -> Any:
    """Strip ``None`` values recursively before writing; a missing caption becomes ``""``."""
    if isinstance(value, Mapping):
        cleaned: dict[str, Any] = {}
        for key, inner in value.items():
            if inner is not None:
                cleaned[key] = sanitize_for_store(inner)
            elif key == "caption":
                cleaned[key] = ""
        return cleaned
    if isinstance(value, (list, tuple)):
        return [sanitize_for_store(v) for v in value if v is not None]
    if isinstance(value, datetime):
        return value.isoformat()
    return value
