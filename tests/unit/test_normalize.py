"""Tests for snapshot normalization (WI_0010)."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

import pytest

from slotboard.errors import MalformedSnapshot
from slotboard.models import POOL
from slotboard.normalize import coerce_datetime, normalize_item, normalize_partition, sanitize_for_store

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


class _StoreTimestamp:
    def __init__(self, value: datetime) -> None:
        self._value = value

    def to_datetime(self) -> datetime:
        return self._value


# ---------------------------------------------------------------------------
# coerce_datetime
# ---------------------------------------------------------------------------


def test_coerce_datetime_accepts_aware_and_naive() -> None:
    aware = datetime(2024, 1, 2, 3, 4, tzinfo=timezone.utc)
    assert coerce_datetime(aware) == aware
    assert coerce_datetime(datetime(2024, 1, 2)).tzinfo == timezone.utc


def test_coerce_datetime_accepts_store_timestamps_and_dates() -> None:
    value = datetime(2024, 2, 2, tzinfo=timezone.utc)
    assert coerce_datetime(_StoreTimestamp(value)) == value
    assert coerce_datetime(date(2024, 2, 2)) == value


def test_coerce_datetime_parses_iso_and_epoch_ms() -> None:
    assert coerce_datetime("2024-03-01T10:00:00Z") == datetime(2024, 3, 1, 10, tzinfo=timezone.utc)
    assert coerce_datetime(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)
    assert coerce_datetime("86400000") == datetime(1970, 1, 2, tzinfo=timezone.utc)


@pytest.mark.parametrize("value", [None, "", "not a date", True, {"seconds": 1}, [1]])
def test_coerce_datetime_falls_back_to_now(value) -> None:
    assert coerce_datetime(value, now=NOW) == NOW


# ---------------------------------------------------------------------------
# normalize_item / normalize_partition
# ---------------------------------------------------------------------------


def test_normalize_item_fills_defaults() -> None:
    item = normalize_item("a", {"url": "u", "title": "t"}, "instagram")
    assert item.location == POOL
    assert item.caption == ""
    assert item.comments == []
    assert item.instance == "instagram"


def test_normalize_item_maps_camel_case() -> None:
    item = normalize_item(
        "a",
        {
            "url": "u",
            "title": "t",
            "location": "2024-2-14",
            "contentType": "Reel",
            "carouselArrangement": ["x"],
            "caption": None,
        },
    )
    assert item.location == "2024-2-14"
    assert item.content_type == "Reel"
    assert item.carousel_arrangement == ["x"]
    assert item.caption == ""


def test_malformed_location_falls_back_to_pool(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="slotboard.normalize"):
        item = normalize_item("a", {"url": "u", "title": "t", "location": "2024-13-1"})
    assert item.location == POOL
    assert "pool" in caplog.text


@pytest.mark.parametrize(
    "raw,reason",
    [("nope", "entry is not a map"), ({"title": "t"}, "missing url"), ({"url": "u", "title": ""}, "missing title")],
)
def test_normalize_item_rejects_entries(raw, reason) -> None:
    with pytest.raises(MalformedSnapshot) as exc_info:
        normalize_item("a", raw)
    assert exc_info.value.reason == reason


def test_partition_drops_bad_entries_and_keeps_the_rest(caplog) -> None:
    raw = {
        "good": {"url": "u", "title": "t"},
        "no-url": {"title": "t"},
        "junk": 5,
    }
    with caplog.at_level(logging.WARNING, logger="slotboard.normalize"):
        result = normalize_partition(raw, "fbig")
    assert list(result.items) == ["good"]
    assert sorted(d.item_id for d in result.dropped) == ["junk", "no-url"]
    assert "Skipping invalid entry" in caplog.text


def test_partition_that_is_not_a_map_is_empty() -> None:
    result = normalize_partition(None)
    assert result.items == {} and result.dropped == []


# ---------------------------------------------------------------------------
# sanitize_for_store
# ---------------------------------------------------------------------------


def test_sanitize_removes_none_recursively() -> None:
    cleaned = sanitize_for_store({"a": None, "b": {"c": None, "d": 1}, "e": [None, 2]})
    assert cleaned == {"b": {"d": 1}, "e": [2]}


def test_sanitize_keeps_empty_caption_and_formats_datetimes() -> None:
    when = datetime(2024, 1, 1, tzinfo=timezone.utc)
    cleaned = sanitize_for_store({"caption": None, "lastMoved": when})
    assert cleaned == {"caption": "", "lastMoved": when.isoformat()}
