"""Tests for drag payload encoding and decoding."""

import json

import pytest

from slotboard.gesture.transfer import (
    ITEM_FORMAT,
    SOURCE_FORMAT,
    TEXT_FORMAT,
    DataTransfer,
    decode_item_id,
    decode_source_key,
    encode_item,
)

ITEM_ID = "a1b2c3d4e5f6a7b8"


def test_encode_writes_every_format() -> None:
    transfer = DataTransfer()
    encode_item(transfer, ITEM_ID, "2024-2-14")
    assert transfer.get_data(ITEM_FORMAT) == ITEM_ID
    assert json.loads(transfer.get_data(TEXT_FORMAT)) == {"id": ITEM_ID}
    assert decode_source_key(transfer) == "2024-2-14"
    assert transfer.types == [ITEM_FORMAT, TEXT_FORMAT, SOURCE_FORMAT]


def test_encode_without_source_key() -> None:
    transfer = DataTransfer()
    encode_item(transfer, ITEM_ID)
    assert decode_source_key(transfer) is None
    assert SOURCE_FORMAT not in transfer.types


def test_primary_format_wins() -> None:
    transfer = DataTransfer({ITEM_FORMAT: ITEM_ID, TEXT_FORMAT: json.dumps({"id": "other-item-id"})})
    assert decode_item_id(transfer) == ITEM_ID


@pytest.mark.parametrize(
    "text",
    [json.dumps({"id": ITEM_ID}), json.dumps({"imageId": ITEM_ID}), f"  {ITEM_ID}  "],
    ids=["json-id", "json-imageId", "raw-text"],
)
def test_fallback_formats(text: str) -> None:
    assert decode_item_id(DataTransfer({TEXT_FORMAT: text})) == ITEM_ID


@pytest.mark.parametrize(
    "data",
    [
        {},
        {ITEM_FORMAT: "   "},
        {TEXT_FORMAT: "short"},
        {TEXT_FORMAT: json.dumps({"name": "no id here at all"})},
        {TEXT_FORMAT: json.dumps({"id": ""})},
    ],
    ids=["empty", "blank-primary", "short-text", "json-without-id", "json-empty-id"],
)
def test_undecodable_payloads(data: dict) -> None:
    assert decode_item_id(DataTransfer(data)) is None


def test_get_data_missing_format_is_empty_string() -> None:
    transfer = DataTransfer({ITEM_FORMAT: ITEM_ID})
    assert transfer.get_data("text/html") == ""
    transfer.clear()
    assert transfer.types == []
