"""Tests for the local blob store."""

import pytest

from slotboard.remote.base import StoreError
from slotboard.remote.blob import LocalBlobStore


@pytest.mark.asyncio
async def test_upload_copies_by_content_hash(tmp_path) -> None:
    source = tmp_path / "Photo.JPG"
    source.write_bytes(b"jpeg bytes")
    store = LocalBlobStore(tmp_path / "uploads")

    url = await store.upload(source)

    assert url.startswith("file://")
    assert url.endswith(".jpg")
    stored = list((tmp_path / "uploads").iterdir())
    assert len(stored) == 1
    assert stored[0].read_bytes() == b"jpeg bytes"


@pytest.mark.asyncio
async def test_same_bytes_same_url(tmp_path) -> None:
    first = tmp_path / "a.png"
    second = tmp_path / "b.png"
    first.write_bytes(b"same")
    second.write_bytes(b"same")
    store = LocalBlobStore(tmp_path / "uploads")
    assert await store.upload(first) == await store.upload(second)


@pytest.mark.asyncio
async def test_missing_file_raises(tmp_path) -> None:
    with pytest.raises(StoreError, match="not a file"):
        await LocalBlobStore(tmp_path).upload(tmp_path / "nope.png")
