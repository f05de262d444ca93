"""Optimistic mutation pipeline (WI_0009).

Every item change flows through the same path:

  validate → apply locally → mark in flight → persist (with retries)
           → on failure roll back → release the in-flight entry

Persisting reads the project document, merges the changed items into the
active partition and writes the whole partition back. Only one read-merge-write
runs at a time per pipeline; backoff sleeps happen outside that lock. With a
batch window, changes to different items that land inside the window share one
write while each caller still gets its own outcome or failure.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable

from slotboard.effects import ActivityLog, Actor, CollaborationNotifier, fire_and_forget, move_action
from slotboard.errors import InvalidSlotKey, ItemNotFound, PersistenceFailure, PipelineClosed, SlotFull
from slotboard.inflight import InFlightTracker
from slotboard.models import EDITABLE_FIELDS, Item, is_valid_location, utcnow
from slotboard.normalize import sanitize_for_store
from slotboard.remote.base import DocumentStore
from slotboard.remote.partition import PartitionRef
from slotboard.scheduler import Handle, Scheduler
from slotboard.slots import CALENDAR_CAPACITY
from slotboard.state import LocalItemStore

logger = logging.getLogger(__name__)


class MutationStatus(Enum):
    APPLIED = "applied"
    NOOP = "noop"


@dataclass(frozen=True)
class MutationOutcome:
    item_id: str
    status: MutationStatus
    location: str
    attempts: int = 0


@dataclass
class PipelineSettings:
    """Tunables for persistence.

    Attributes:
        capacity: Maximum items per slot on this surface.
        max_attempts: Total write attempts before giving up (>= 1).
        backoff_base: Delay in seconds before the second attempt; doubles after each failure.
        batch_window: Seconds to coalesce changes into one write (0 disables batching).
    """

    capacity: int = CALENDAR_CAPACITY
    max_attempts: int = 3
    backoff_base: float = 1.0
    batch_window: float = 0.0

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ValueError("capacity must be >= 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.backoff_base < 0 or self.batch_window < 0:
            raise ValueError("backoff_base and batch_window must be >= 0")


@dataclass
class _Change:
    item_id: str
    previous: Item | None  # None for a newly added item
    value: Item
    waiters: list[asyncio.Future[int]] = field(default_factory=list)


def _edited(current: Item, name: str, value: Any) -> Any:
    """Check one edited field the way remote entries are read; ``None`` clears it."""
    if isinstance(getattr(current, name), list):
        if value is None:
            return []
        if not isinstance(value, (list, tuple)):
            raise ValueError(f"Field '{name}' must be a list")
        return list(value)
    if value is None:
        value = ""
    if not isinstance(value, str):
        raise ValueError(f"Field '{name}' must be text")
    if name in ("url", "title") and not value:
        raise ValueError(f"Field '{name}' cannot be empty")
    return value


class MutationPipeline:
    """Applies item changes optimistically and reconciles them with the remote store."""

    def __init__(
        self,
        store: DocumentStore,
        partition: PartitionRef,
        items: LocalItemStore,
        tracker: InFlightTracker,
        *,
        scheduler: Scheduler,
        settings: PipelineSettings | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        activity: ActivityLog | None = None,
        collaboration: CollaborationNotifier | None = None,
        actor: Actor | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._partition = partition
        self._items = items
        self._tracker = tracker
        self._scheduler = scheduler
        self.settings = settings or PipelineSettings()
        self._sleep = sleep
        self._activity = activity
        self._collaboration = collaboration
        self._actor = actor
        self._clock = clock
        self._pending_counts: dict[str, int] = {}
        self._queue: dict[str, _Change] = {}
        self._timer: Handle | None = None
        self._flushes: set[asyncio.Task[None]] = set()
        # One partition write at a time, so overlapping changes never read stale entries.
        self._write_lock = asyncio.Lock()
        self._closed = False

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def move_item(self, item_id: str, target: str) -> MutationOutcome:
        """Move an item to a slot key or the pool.

        Raises:
            ItemNotFound: If *item_id* is not in local state.
            InvalidSlotKey: If *target* is neither the pool nor a valid slot key.
            SlotFull: If the target slot is at capacity (excluding the item itself).
            PersistenceFailure: If every write attempt failed; local state is rolled back.
            PipelineClosed: If ``close`` has already been called.
        """
        current = self._items.get(item_id)
        if current is None:
            raise ItemNotFound(item_id)
        if not is_valid_location(target):
            raise InvalidSlotKey(target)
        if current.location == target:
            return MutationOutcome(item_id, MutationStatus.NOOP, target)
        if not self._items.slot_index.has_capacity(target, item_id, self.settings.capacity):
            raise SlotFull(target, self.settings.capacity)

        moved = current.moved_to(target, self._clock())
        attempts = await self._submit(self._apply(current, moved))
        logger.info(
            "Moved %s to %s",
            item_id,
            target,
            extra={"event": "item_moved", "context": {"item_id": item_id, "location": target, "attempts": attempts}},
        )
        self._after_success(moved, move_action(target))
        return MutationOutcome(item_id, MutationStatus.APPLIED, target, attempts)

    async def add_item(self, item: Item) -> MutationOutcome:
        """Add a new item (upload/draft flow). A failed write removes it again.

        Raises:
            ValueError: If an item with the same id already exists.
            SlotFull: If the item's location is a full slot.
            PersistenceFailure: If every write attempt failed.
        """
        if item.id in self._items:
            raise ValueError(f"Item '{item.id}' already exists")
        if not self._items.slot_index.has_capacity(item.location, item.id, self.settings.capacity):
            raise SlotFull(item.location, self.settings.capacity)
        if not item.instance:
            item = dataclasses.replace(item, instance=self._partition.instance)
        attempts = await self._submit(self._apply(None, item))
        logger.info(
            "Added %s",
            item.id,
            extra={"event": "item_added", "context": {"item_id": item.id, "location": item.location}},
        )
        self._after_success(item, "added the card")
        return MutationOutcome(item.id, MutationStatus.APPLIED, item.location, attempts)

    async def update_item(self, item_id: str, **fields: Any) -> MutationOutcome:
        """Edit content fields of an item (title, caption, label...).

        Location changes are moves and go through ``move_item``.

        Raises:
            ItemNotFound: If *item_id* is not in local state.
            ValueError: If a field is unknown, not editable or of the wrong type.
            PersistenceFailure: If every write attempt failed; local state is rolled back.
        """
        current = self._items.get(item_id)
        if current is None:
            raise ItemNotFound(item_id)
        rejected = sorted(set(fields) - EDITABLE_FIELDS)
        if rejected:
            hint = " (use move_item to change location)" if "location" in rejected else ""
            raise ValueError(f"Cannot edit field(s) {', '.join(rejected)}{hint}")

        edits = {name: _edited(current, name, value) for name, value in fields.items()}
        updated = dataclasses.replace(current, **edits)
        if updated == current:
            return MutationOutcome(item_id, MutationStatus.NOOP, current.location)
        attempts = await self._submit(self._apply(current, updated))
        self._after_success(updated, "edited the card")
        return MutationOutcome(item_id, MutationStatus.APPLIED, updated.location, attempts)

    async def flush(self) -> None:
        """Write any queued batch now. Failures are delivered to the waiting callers."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if not self._queue:
            return
        changes = list(self._queue.values())
        self._queue = {}
        try:
            attempts = await self._commit(changes)
        except PersistenceFailure as exc:
            for change in changes:
                failure = PersistenceFailure([change.item_id], exc.attempts, exc.cause)
                for waiter in change.waiters:
                    if not waiter.done():
                        waiter.set_exception(failure)
            return
        for change in changes:
            for waiter in change.waiters:
                if not waiter.done():
                    waiter.set_result(attempts)

    async def close(self) -> None:
        """Flush pending changes and refuse further ones."""
        self._closed = True
        await self.flush()
        if self._flushes:
            await asyncio.gather(*list(self._flushes), return_exceptions=True)

    @property
    def queued_ids(self) -> list[str]:
        return list(self._queue)

    # ------------------------------------------------------------------
    # Local application
    # ------------------------------------------------------------------

    def _apply(self, previous: Item | None, value: Item) -> _Change:
        if self._closed:
            raise PipelineClosed()
        self._items.put(value)
        self._pending_counts[value.id] = self._pending_counts.get(value.id, 0) + 1
        self._tracker.mark(value.id, ttl=self.settings.batch_window + self._tracker.ttl)
        return _Change(item_id=value.id, previous=previous, value=value)

    def _rollback(self, change: _Change) -> None:
        if self._items.get(change.item_id) != change.value:
            # A newer local change owns the item now.
            logger.info(
                "Skipping rollback of superseded change",
                extra={"event": "rollback_skipped", "context": {"item_id": change.item_id}},
            )
            return
        if change.previous is None:
            self._items.remove(change.item_id)
        else:
            self._items.put(change.previous)
        logger.warning(
            "Rolled back %s",
            change.item_id,
            extra={"event": "rolled_back", "context": {"item_id": change.item_id}},
        )

    def _release(self, item_id: str) -> None:
        remaining = self._pending_counts.get(item_id, 0) - 1
        if remaining > 0:
            self._pending_counts[item_id] = remaining
            return
        self._pending_counts.pop(item_id, None)
        self._tracker.clear(item_id)

    # ------------------------------------------------------------------
    # Submission and batching
    # ------------------------------------------------------------------

    async def _submit(self, change: _Change) -> int:
        if self.settings.batch_window <= 0:
            return await self._commit([change])

        queued = self._queue.get(change.item_id)
        if queued is not None:
            # Same item inside the window: keep the oldest rollback target.
            change.previous = queued.previous
            change.waiters = queued.waiters
            self._pending_counts[change.item_id] -= 1
        waiter: asyncio.Future[int] = asyncio.get_running_loop().create_future()
        change.waiters.append(waiter)
        self._queue[change.item_id] = change
        if self._timer is None:
            self._timer = self._scheduler.call_later(self.settings.batch_window, self._on_batch_timer)
        return await waiter

    def _on_batch_timer(self) -> None:
        self._timer = None
        task = asyncio.ensure_future(self.flush())
        self._flushes.add(task)
        task.add_done_callback(self._flushes.discard)

    async def _commit(self, changes: list[_Change]) -> int:
        try:
            return await self._persist(changes)
        except PersistenceFailure:
            for change in changes:
                self._rollback(change)
            raise
        finally:
            for change in changes:
                self._release(change.item_id)

    async def _persist(self, changes: list[_Change]) -> int:
        item_ids = [c.item_id for c in changes]
        path = self._partition.document_path
        last_error: Exception | None = None

        for attempt in range(1, self.settings.max_attempts + 1):
            try:
                async with self._write_lock:
                    for item_id in item_ids:
                        self._tracker.mark(item_id)
                    document = await self._store.read(path)
                    partition = self._partition.extract(document)
                    for change in changes:
                        partition[change.item_id] = change.value.to_remote()
                    await self._store.write(path, sanitize_for_store(partition), field=self._partition.field_path)
                return attempt
            except Exception as exc:  # noqa: BLE001
                last_error = exc
                logger.warning(
                    "Write attempt %d/%d failed: %s",
                    attempt,
                    self.settings.max_attempts,
                    exc,
                    extra={"event": "persist_attempt_failed", "context": {"item_ids": item_ids, "attempt": attempt}},
                )
            if attempt < self.settings.max_attempts:
                delay = self.settings.backoff_base * 2 ** (attempt - 1)
                for item_id in item_ids:
                    self._tracker.mark(item_id, ttl=delay + self._tracker.ttl)
                await self._sleep(delay)

        logger.error(
            "Giving up on %s after %d attempts",
            ", ".join(item_ids),
            self.settings.max_attempts,
            extra={"event": "persist_failed", "context": {"item_ids": item_ids}},
        )
        raise PersistenceFailure(item_ids, self.settings.max_attempts, last_error)

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------

    def _after_success(self, item: Item, action: str) -> None:
        if self._actor is None:
            return
        if self._activity is not None:
            fire_and_forget(self._activity.record(item, action, self._actor), name="activity_log")
        if self._collaboration is not None:
            fire_and_forget(
                self._collaboration.notify_edit(
                    self._partition.project_id, item, self._actor, self._partition.instance
                ),
                name="collaboration_notify",
            )
