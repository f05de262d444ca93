"""Drag transfer payload encoding and decoding.

Native drags carry the item id in several formats because some mobile browsers
drop the primary one. Decoding tries, in order:

  1. ``imageId``
  2. ``text/plain`` parsed as JSON (``{"id": ...}`` or ``{"imageId": ...}``)
  3. ``text/plain`` taken verbatim when it is long enough to be an id
"""

from __future__ import annotations

import json
from typing import Mapping

ITEM_FORMAT = "imageId"
TEXT_FORMAT = "text/plain"
SOURCE_FORMAT = "sourceKey"

# Generated ids are longer than this; shorter raw text is treated as noise.
_MIN_RAW_ID_LENGTH = 10


class DataTransfer:
    """Minimal stand-in for a platform drag payload: string data keyed by format."""

    def __init__(self, data: Mapping[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(data or {})

    def set_data(self, fmt: str, value: str) -> None:
        self._data[fmt] = value

    def get_data(self, fmt: str) -> str:
        """Return the data for *fmt*, or ``""`` when absent (as platforms do)."""
        return self._data.get(fmt, "")

    def clear(self) -> None:
        self._data.clear()

    @property
    def types(self) -> list[str]:
        return list(self._data)


def encode_item(transfer: DataTransfer, item_id: str, source_key: str | None = None) -> None:
    transfer.set_data(ITEM_FORMAT, item_id)
    transfer.set_data(TEXT_FORMAT, json.dumps({"id": item_id}))
    if source_key:
        transfer.set_data(SOURCE_FORMAT, source_key)


def decode_item_id(transfer: DataTransfer) -> str | None:
    """Recover the dragged item id, or None if no format yields one."""
    primary = transfer.get_data(ITEM_FORMAT).strip()
    if primary:
        return primary

    text = transfer.get_data(TEXT_FORMAT).strip()
    if not text:
        return None
    try:
        parsed = json.loads(text)
    except ValueError:
        parsed = None
    if isinstance(parsed, dict):
        for key in ("id", ITEM_FORMAT):
            value = parsed.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None
    if len(text) > _MIN_RAW_ID_LENGTH:
        return text
    return None


def decode_source_key(transfer: DataTransfer) -> str | None:
    return transfer.get_data(SOURCE_FORMAT).strip() or None
