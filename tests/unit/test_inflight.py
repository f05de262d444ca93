"""Tests for the in-flight tracker (WI_0007)."""

from __future__ import annotations

import logging

import pytest

from slotboard.inflight import InFlightTracker
from slotboard.scheduler import ManualScheduler


def test_mark_and_clear(tracker) -> None:
    tracker.mark("a")
    assert tracker.is_in_flight("a")
    assert "a" in tracker
    assert tracker.clear("a") is True
    assert not tracker.is_in_flight("a")
    assert tracker.clear("a") is False


def test_entry_expires_after_ttl(scheduler, tracker, caplog) -> None:
    tracker.mark("a")
    scheduler.advance(0.39)
    assert tracker.is_in_flight("a")
    with caplog.at_level(logging.WARNING, logger="slotboard.inflight"):
        scheduler.advance(0.02)
    assert not tracker.is_in_flight("a")
    assert any(r.__dict__.get("event") == "in_flight_expired" for r in caplog.records)


def test_mark_refreshes_expiry(scheduler, tracker) -> None:
    tracker.mark("a")
    scheduler.advance(0.3)
    tracker.mark("a")
    scheduler.advance(0.3)
    assert tracker.is_in_flight("a")
    scheduler.advance(0.11)
    assert not tracker.is_in_flight("a")


def test_custom_ttl_per_mark(scheduler, tracker) -> None:
    tracker.mark("a", ttl=2.0)
    scheduler.advance(1.5)
    assert tracker.is_in_flight("a")


def test_active_ids_and_len(tracker) -> None:
    tracker.mark("a")
    tracker.mark("b")
    assert tracker.active_ids() == frozenset({"a", "b"})
    assert len(tracker) == 2


def test_drain_fires_when_last_entry_leaves(scheduler, tracker) -> None:
    drained: list[int] = []
    tracker.on_drain(lambda: drained.append(len(tracker)))
    tracker.mark("a")
    tracker.mark("b")
    tracker.clear("a")
    assert drained == []
    scheduler.advance(1)  # "b" expires
    assert drained == [0]


def test_drain_unregister(tracker) -> None:
    drained: list[bool] = []
    unregister = tracker.on_drain(lambda: drained.append(True))
    unregister()
    tracker.mark("a")
    tracker.clear("a")
    assert drained == []


def test_clear_cancels_expiry_timer(scheduler, tracker) -> None:
    tracker.mark("a")
    tracker.clear("a")
    assert scheduler.pending == 0


def test_ttl_must_be_positive() -> None:
    with pytest.raises(ValueError):
        InFlightTracker(ManualScheduler(), ttl=0)
