"""Board controller: the surface exposed to views (WI_0015).

A board wires one partition's local state, in-flight tracker, mutation
pipeline, remote listener and gesture recognizer together, and turns pipeline
failures into transient notices. Nothing here raises to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Callable

from slotboard.config import SlotboardConfig
from slotboard.effects import (
    ActivityLog,
    Actor,
    CollaborationNotifier,
    LogNotifier,
    Notifier,
    StoreActivityLog,
    StoreCollaborationNotifier,
)
from slotboard.errors import InvalidSlotKey, ItemNotFound, PersistenceFailure, PipelineClosed, SlotFull
from slotboard.gesture.hittest import HitTester
from slotboard.gesture.recognizer import GestureRecognizer, GestureSettings, ScrollLock
from slotboard.inflight import InFlightTracker
from slotboard.listener import MergePolicy, RemoteListener
from slotboard.models import POOL, Item, slot_key
from slotboard.pipeline import MutationOutcome, MutationPipeline, PipelineSettings
from slotboard.remote.base import DocumentStore
from slotboard.remote.partition import PartitionRef
from slotboard.scheduler import Scheduler
from slotboard.state import LocalItemStore

logger = logging.getLogger(__name__)

MSG_SLOT_FULL = "This day already has {capacity} cards. Maximum reached."
MSG_MOVE_FAILED = "Failed to move card. Please try again."
MSG_NOT_FOUND = "Item not found. Please try again."


class Surface(Enum):
    """Where the board is shown; decides slot capacity and merge policy."""

    CALENDAR = "calendar"
    MOBILE = "mobile"


class BoardController:
    """Drop handling and read access for one partition."""

    def __init__(
        self,
        items: LocalItemStore,
        tracker: InFlightTracker,
        pipeline: MutationPipeline,
        scheduler: Scheduler,
        *,
        listener: RemoteListener | None = None,
        notifier: Notifier | None = None,
        gesture_settings: GestureSettings | None = None,
        hit_tester: HitTester | None = None,
        on_tap: Callable[[str], None] | None = None,
        haptics: Callable[[], None] | None = None,
        scroll_lock: ScrollLock | None = None,
    ) -> None:
        self.items = items
        self.tracker = tracker
        self.pipeline = pipeline
        self.listener = listener
        self._notifier = notifier or LogNotifier()
        self._tasks: set[asyncio.Task[Any]] = set()
        self.recognizer = GestureRecognizer(
            scheduler,
            can_accept=self.can_accept,
            on_commit=self._on_commit,
            on_tap=on_tap,
            hit_tester=hit_tester,
            haptics=haptics,
            scroll_lock=scroll_lock,
            settings=gesture_settings,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def capacity(self) -> int:
        return self.pipeline.settings.capacity

    def can_accept(self, slot_key: str, item_id: str) -> bool:
        return self.items.slot_index.has_capacity(slot_key, item_id, self.capacity)

    def get_slot(self, slot_key: str) -> list[Item]:
        return self.items.slot_index.get(slot_key)

    def pool(self) -> list[Item]:
        return self.items.slot_index.pool()

    @property
    def cards_in_transit(self) -> frozenset[str]:
        """Item ids with an unconfirmed local change (spinner rendering)."""
        return self.tracker.active_ids()

    @property
    def dragged_item_id(self) -> str | None:
        return self.recognizer.dragged_item_id

    @property
    def hovered_slot_key(self) -> str | None:
        return self.recognizer.hovered_slot_key

    @property
    def is_loading(self) -> bool:
        return self.listener.is_loading if self.listener is not None else False

    # ------------------------------------------------------------------
    # Drops
    # ------------------------------------------------------------------

    async def on_drop(self, day: int, month: int, year: int, item_id: str) -> MutationOutcome | None:
        """Move *item_id* to the calendar day (month zero-indexed)."""
        try:
            target = slot_key(year, month, day)
        except InvalidSlotKey:
            logger.debug("Drop on invalid day ignored", extra={"event": "drop_invalid_day"})
            return None
        return await self.move(item_id, target)

    async def on_pool_drop(self, item_id: str) -> MutationOutcome | None:
        return await self.move(item_id, POOL)

    async def move(self, item_id: str, target: str) -> MutationOutcome | None:
        """Run a move and convert failures into notices. Returns None on failure."""
        try:
            return await self.pipeline.move_item(item_id, target)
        except SlotFull as exc:
            self._notifier.notify(MSG_SLOT_FULL.format(capacity=exc.capacity), "warning")
        except PersistenceFailure:
            self._notifier.notify(MSG_MOVE_FAILED)
        except ItemNotFound:
            self._notifier.notify(MSG_NOT_FOUND)
        except InvalidSlotKey:
            logger.debug("Move to invalid location ignored", extra={"event": "move_invalid_target"})
        except PipelineClosed:
            logger.debug("Move after close ignored", extra={"event": "move_after_close"})
        return None

    def _on_commit(self, item_id: str, target: str) -> None:
        task = asyncio.ensure_future(self.move(item_id, target))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for moves started by gestures to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self.listener is not None:
            self.listener.start()

    async def close(self) -> None:
        self.recognizer.cancel()
        await self.drain()
        await self.pipeline.close()
        if self.listener is not None:
            self.listener.stop()


def open_board(
    store: DocumentStore,
    partition: PartitionRef,
    *,
    scheduler: Scheduler,
    config: SlotboardConfig | None = None,
    surface: Surface = Surface.CALENDAR,
    notifier: Notifier | None = None,
    actor: Actor | None = None,
    activity: ActivityLog | None = None,
    collaboration: CollaborationNotifier | None = None,
    hit_tester: HitTester | None = None,
    on_tap: Callable[[str], None] | None = None,
    haptics: Callable[[], None] | None = None,
    scroll_lock: ScrollLock | None = None,
    start: bool = True,
) -> BoardController:
    """Build a board for *partition* from *config* and start listening.

    When an actor is given and no side-effect collaborators are passed, the
    activity log and collaborator notifications are written to *store*.
    """
    cfg = config or SlotboardConfig()
    calendar = surface is Surface.CALENDAR

    items = LocalItemStore()
    tracker = InFlightTracker(scheduler, ttl=cfg.in_flight.ttl_ms / 1000)
    if actor is not None:
        activity = activity or StoreActivityLog(store)
        collaboration = collaboration or StoreCollaborationNotifier(store)
    pipeline = MutationPipeline(
        store,
        partition,
        items,
        tracker,
        scheduler=scheduler,
        settings=PipelineSettings(
            capacity=cfg.slots.calendar_capacity if calendar else cfg.slots.mobile_capacity,
            max_attempts=cfg.pipeline.max_attempts,
            backoff_base=cfg.pipeline.backoff_base_ms / 1000,
            batch_window=cfg.pipeline.batch_window_ms / 1000,
        ),
        activity=activity,
        collaboration=collaboration,
        actor=actor,
    )
    listener = RemoteListener(
        store,
        partition,
        items,
        tracker,
        scheduler,
        policy=MergePolicy(cfg.listener.calendar_policy if calendar else cfg.listener.mobile_policy),
        debounce=cfg.listener.debounce_ms / 1000,
        notifier=notifier,
    )
    board = BoardController(
        items,
        tracker,
        pipeline,
        scheduler,
        listener=listener,
        notifier=notifier,
        gesture_settings=GestureSettings(
            long_press=cfg.gesture.long_press_ms / 1000,
            move_threshold=float(cfg.gesture.move_threshold_px),
            frame_interval=cfg.gesture.frame_interval_ms / 1000,
        ),
        hit_tester=hit_tester,
        on_tap=on_tap,
        haptics=haptics,
        scroll_lock=scroll_lock,
    )
    if start:
        board.start()
    return board
