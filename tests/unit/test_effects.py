"""Tests for side-effect collaborators (WI_0016)."""

from __future__ import annotations

import asyncio
import logging

import pytest

from slotboard.effects import (
    Actor,
    LogNotifier,
    StoreActivityLog,
    StoreCollaborationNotifier,
    fire_and_forget,
    move_action,
    wait_background,
)
from slotboard.models import POOL
from slotboard.remote.memory import MemoryDocumentStore


def test_move_action_text() -> None:
    assert move_action(POOL) == "moved the card to the Content Pool"
    assert move_action("2024-2-14") == "scheduled the card for March 14, 2024"


def test_log_notifier_levels(caplog) -> None:
    with caplog.at_level(logging.INFO, logger="slotboard.effects"):
        LogNotifier().notify("Day full", "warning")
        LogNotifier().notify("Write failed")
    levels = [(r.getMessage(), r.levelname) for r in caplog.records]
    assert levels == [("Day full", "INFO"), ("Write failed", "ERROR")]


@pytest.mark.asyncio
async def test_activity_entry_shape(store, make_item) -> None:
    await StoreActivityLog(store).record(make_item("x", "2024-2-14"), "scheduled the card", Actor("u1", "Ada"))
    (path,) = store.list_paths("images/x/activities")
    entry = await store.read(path)
    assert path.endswith(entry["id"])
    assert entry["id"].startswith("activity_")
    assert entry["imageId"] == "x"
    assert entry["userName"] == "Ada"
    assert entry["action"] == "scheduled the card"
    assert entry["timestamp"] == entry["createdAt"]


@pytest.mark.asyncio
async def test_notification_message_and_fan_out(store, make_item) -> None:
    item = make_item("x", "2024-2-14", title="Launch teaser")
    await StoreCollaborationNotifier(store).notify_edit("p1", item, Actor("u9", "Ada"), "instagram")

    for member in ("u1", "u2"):
        (path,) = store.list_paths(f"users/{member}/notifications")
        body = await store.read(path)
        assert body["message"] == (
            "Ada edited the card with title \"Launch teaser\" placed at 'March 14, 2024' • instagram"
        )
        assert body["read"] is False
        assert body["count"] == 1
        assert body["metadata"]["contentId"] == "x"


@pytest.mark.asyncio
async def test_pool_item_message_has_no_location(store, make_item) -> None:
    await StoreCollaborationNotifier(store).notify_edit("p1", make_item("x"), Actor("u1", "Ada"))
    (path,) = store.list_paths("users/u1/notifications")
    assert (await store.read(path))["message"] == 'Ada edited the card with title "Card x"'


@pytest.mark.asyncio
async def test_no_members_no_notifications(make_item) -> None:
    store = MemoryDocumentStore({"projects/p1": {"memberIds": []}})
    await StoreCollaborationNotifier(store).notify_edit("p1", make_item("x"), Actor("u1"))
    assert store.writes == 0


@pytest.mark.asyncio
async def test_fire_and_forget_logs_failures(caplog) -> None:
    async def broken() -> None:
        raise RuntimeError("offline")

    async def fine() -> str:
        await asyncio.sleep(0)
        return "ok"

    with caplog.at_level(logging.WARNING, logger="slotboard.effects"):
        failing = fire_and_forget(broken(), name="activity_log")
        succeeding = fire_and_forget(fine(), name="collaboration_notify")
        await wait_background()

    assert failing.done() and succeeding.result() == "ok"
    assert [r.__dict__.get("event") for r in caplog.records] == ["side_effect_failed"]
    assert caplog.records[0].__dict__["context"] == {"name": "activity_log"}
