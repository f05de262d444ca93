"""Tests for the in-process document store."""

from __future__ import annotations

import asyncio

import pytest

from slotboard.remote.base import StoreError
from slotboard.remote.memory import MemoryDocumentStore


@pytest.mark.asyncio
async def test_read_returns_independent_copy() -> None:
    store = MemoryDocumentStore({"projects/p": {"a": {"b": 1}}})
    document = await store.read("projects/p")
    document["a"]["b"] = 2
    assert (await store.read("projects/p"))["a"]["b"] == 1
    assert await store.read("projects/missing") is None


@pytest.mark.asyncio
async def test_field_write_replaces_only_subtree() -> None:
    store = MemoryDocumentStore({"projects/p": {"imageMetadata": {"instagram": {"x": {}}, "tiktok": {"t": {}}}}})
    await store.write("projects/p", {"y": {"title": "Y"}}, field="imageMetadata.instagram")
    document = await store.read("projects/p")
    assert document["imageMetadata"]["instagram"] == {"y": {"title": "Y"}}
    assert document["imageMetadata"]["tiktok"] == {"t": {}}


@pytest.mark.asyncio
async def test_field_write_creates_missing_document() -> None:
    store = MemoryDocumentStore()
    await store.write("projects/new", {}, field="imageMetadata.fbig")
    assert await store.read("projects/new") == {"imageMetadata": {"fbig": {}}}


@pytest.mark.asyncio
async def test_update_fields_patches_scalars() -> None:
    store = MemoryDocumentStore({"projects/p": {"imageMetadata": {"instagram": {"x": {"label": ""}}}}})
    await store.update_fields("projects/p", {"imageMetadata.instagram.x.label": "Approved"})
    document = await store.read("projects/p")
    assert document["imageMetadata"]["instagram"]["x"]["label"] == "Approved"


@pytest.mark.asyncio
async def test_update_fields_rejects_nested_values_and_missing_documents() -> None:
    store = MemoryDocumentStore({"projects/p": {}})
    with pytest.raises(ValueError, match="scalar"):
        await store.update_fields("projects/p", {"imageMetadata.instagram": {"x": {}}})
    with pytest.raises(ValueError, match="Invalid field path"):
        await store.update_fields("projects/p", {"a..b": 1})
    with pytest.raises(StoreError):
        await store.update_fields("projects/missing", {"a": 1})
    assert store.writes == 0


@pytest.mark.asyncio
async def test_subscribe_delivers_current_and_later_states() -> None:
    store = MemoryDocumentStore({"projects/p": {"v": 1}})
    seen: list = []
    unsubscribe = store.subscribe("projects/p", seen.append)
    await store.write("projects/p", {"v": 2})
    unsubscribe()
    await store.write("projects/p", {"v": 3})
    assert seen == [{"v": 1}, {"v": 2}]
    assert store.subscriber_count("projects/p") == 0


@pytest.mark.asyncio
async def test_fail_next_injects_errors_in_order() -> None:
    store = MemoryDocumentStore()
    store.fail_next(1, RuntimeError("quota exceeded"))
    with pytest.raises(RuntimeError, match="quota"):
        await store.write("a/b", {})
    await store.write("a/b", {"ok": True})
    assert store.writes == 1


@pytest.mark.asyncio
async def test_pause_blocks_writes_until_resumed() -> None:
    store = MemoryDocumentStore()
    store.pause_writes()
    task = asyncio.ensure_future(store.write("a/b", {"v": 1}))
    await asyncio.sleep(0)
    assert not task.done()
    assert await store.read("a/b") is None
    store.resume_writes()
    await task
    assert await store.read("a/b") == {"v": 1}


def test_emit_error_reaches_error_callbacks() -> None:
    store = MemoryDocumentStore()
    errors: list = []
    store.subscribe("a/b", lambda doc: None, errors.append)
    store.emit_error("a/b", StoreError("denied"))
    assert [str(e) for e in errors] == ["denied"]


@pytest.mark.asyncio
async def test_list_paths_returns_direct_children() -> None:
    store = MemoryDocumentStore()
    await store.write("users/u1/notifications/n1", {})
    await store.write("users/u1/notifications/n2", {})
    await store.write("users/u1/notifications/n2/replies/r1", {})
    await store.write("users/u2/notifications/n3", {})
    assert store.list_paths("users/u1/notifications") == [
        "users/u1/notifications/n1",
        "users/u1/notifications/n2",
    ]
