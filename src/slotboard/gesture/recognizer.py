"""Gesture recognizer: native drag events and touch long-press drags (WI_0004).

Both modalities share one lifecycle and one session slot:

  IDLE ──touch_start──▶ PENDING ──long press──▶ ARMED ──move──▶ DRAGGING
    ▲                      │                                      │
    │          tap / scroll / cancel              commit / cancel │
    └──────────────────────┴──────────────────────────────────────┘

Native ``drag_start`` enters DRAGGING directly. The recognizer never mutates
item state: a committed drop is handed to ``on_commit(item_id, slot_key)``.
Failed drops (undecodable payload, full or invalid target, the slot the drag
started from) are silent. While a touch drag is armed the page scroll is held
through ``scroll_lock``; the session releases it on teardown.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from slotboard.gesture.hittest import HitTester, slot_key_for
from slotboard.gesture.session import DragSession, GestureState, Modality, Point
from slotboard.gesture.transfer import DataTransfer, decode_item_id, decode_source_key, encode_item
from slotboard.models import is_valid_location
from slotboard.scheduler import Scheduler

logger = logging.getLogger(__name__)

CanAccept = Callable[[str, str], bool]  # (slot_key, item_id) -> bool
CommitHandler = Callable[[str, str], None]  # (item_id, slot_key)
TapHandler = Callable[[str], None]
ScrollLock = Callable[[], Callable[[], None]]  # acquire -> release


@dataclass
class GestureSettings:
    long_press: float = 0.5
    move_threshold: float = 10.0
    frame_interval: float = 0.016

    def __post_init__(self) -> None:
        if self.long_press <= 0 or self.move_threshold < 0 or self.frame_interval < 0:
            raise ValueError("gesture timings must be positive")


class DropEffect(Enum):
    MOVE = "move"
    NONE = "none"


class GestureOutcome(Enum):
    TAP = "tap"
    SCROLL = "scroll"
    COMMITTED = "committed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class DropResult:
    accepted: bool
    item_id: str | None = None
    slot_key: str | None = None
    reason: str = ""


class GestureRecognizer:
    """Owns the single active drag session."""

    def __init__(
        self,
        scheduler: Scheduler,
        *,
        can_accept: CanAccept,
        on_commit: CommitHandler,
        on_tap: TapHandler | None = None,
        hit_tester: HitTester | None = None,
        haptics: Callable[[], None] | None = None,
        scroll_lock: ScrollLock | None = None,
        settings: GestureSettings | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._can_accept = can_accept
        self._on_commit = on_commit
        self._on_tap = on_tap
        self.hit_tester = hit_tester
        self._haptics = haptics
        self._scroll_lock = scroll_lock
        self.settings = settings or GestureSettings()
        self._session: DragSession | None = None
        self._scrolled = False

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def session(self) -> DragSession | None:
        return self._session

    @property
    def state(self) -> GestureState:
        return self._session.state if self._session else GestureState.IDLE

    @property
    def dragged_item_id(self) -> str | None:
        """Item being dragged, once the gesture is a drag (not while a press is pending)."""
        if self._session is None or not self._session.armed:
            return None
        return self._session.item_id

    @property
    def hovered_slot_key(self) -> str | None:
        return self._session.hovered_slot_key if self._session else None

    def cancel(self) -> None:
        """Abort the active gesture (escape key, view teardown)."""
        self._end_session()

    # ------------------------------------------------------------------
    # Native drag
    # ------------------------------------------------------------------

    def drag_start(self, item_id: str, transfer: DataTransfer, origin_slot_key: str | None = None) -> None:
        session = self._begin(item_id, Modality.NATIVE, origin_slot_key)
        session.state = GestureState.DRAGGING
        encode_item(transfer, item_id, origin_slot_key)

    def drag_over(self, slot_key: str, item_id: str | None = None) -> DropEffect:
        """Preview a drop on *slot_key*; only acceptable slots are highlighted."""
        session = self._session
        candidate = item_id or (session.item_id if session else None)
        if candidate is None or not self._accepts(slot_key, candidate):
            if session is not None and session.hovered_slot_key == slot_key:
                session.hovered_slot_key = None
            return DropEffect.NONE
        if session is not None:
            session.hovered_slot_key = slot_key
            session.moved = True
        return DropEffect.MOVE

    def drag_leave(self, slot_key: str) -> None:
        if self._session is not None and self._session.hovered_slot_key == slot_key:
            self._session.hovered_slot_key = None

    def drop(self, slot_key: str, transfer: DataTransfer) -> DropResult:
        item_id = decode_item_id(transfer)
        source = decode_source_key(transfer)
        session = self._session
        if source is None and session is not None and session.item_id == item_id:
            source = session.origin_slot_key
        try:
            if item_id is None:
                logger.debug("Drop ignored: no item id in payload", extra={"event": "drop_undecodable"})
                return DropResult(False, None, slot_key, "undecodable")
            if source == slot_key:
                logger.debug("Drop on origin slot ignored", extra={"event": "drop_same_slot"})
                return DropResult(False, item_id, slot_key, "same_slot")
            if not self._accepts(slot_key, item_id):
                return DropResult(False, item_id, slot_key, "rejected")
        finally:
            self._end_session()
        self._on_commit(item_id, slot_key)
        return DropResult(True, item_id, slot_key)

    def drag_end(self) -> None:
        """Native drag finished; a session still open here means nothing was dropped."""
        if self._session is not None and self._session.modality is Modality.NATIVE:
            self._end_session()

    # ------------------------------------------------------------------
    # Touch
    # ------------------------------------------------------------------

    def touch_start(self, item_id: str, x: float, y: float, origin_slot_key: str | None = None) -> None:
        session = self._begin(item_id, Modality.TOUCH, origin_slot_key, Point(x, y))
        session.own(self._scheduler.call_later(self.settings.long_press, self._on_long_press))

    def touch_move(self, x: float, y: float) -> bool:
        """Track the finger. Returns True when default scrolling must be prevented."""
        session = self._session
        if session is None or session.modality is not Modality.TOUCH:
            return False
        session.current_pointer = Point(x, y)

        if session.state is GestureState.PENDING:
            if session.pointer_origin and session.current_pointer.distance_to(session.pointer_origin) > self.settings.move_threshold:
                self._scrolled = True
                self._end_session()
            return False

        session.state = GestureState.DRAGGING
        session.moved = True
        if session.frame_pending is None:
            session.frame_pending = session.own(
                self._scheduler.call_later(self.settings.frame_interval, self._on_frame)
            )
        return True

    def touch_end(self) -> GestureOutcome:
        session = self._session
        if session is None or session.modality is not Modality.TOUCH:
            outcome = GestureOutcome.SCROLL if self._scrolled else GestureOutcome.CANCELLED
            self._scrolled = False
            return outcome

        if not session.armed:
            item_id = session.item_id
            self._end_session()
            if self._on_tap is not None:
                self._on_tap(item_id)
            return GestureOutcome.TAP

        # Apply the latest position even if its frame has not run yet.
        self._update_hover(session)
        target = session.hovered_slot_key
        item_id = session.item_id
        self._end_session()
        if target is None or not self._accepts(target, item_id):
            return GestureOutcome.CANCELLED
        self._on_commit(item_id, target)
        return GestureOutcome.COMMITTED

    def touch_cancel(self) -> GestureOutcome:
        return self.touch_end()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _begin(
        self,
        item_id: str,
        modality: Modality,
        origin_slot_key: str | None,
        point: Point | None = None,
    ) -> DragSession:
        self._end_session()
        self._scrolled = False
        self._session = DragSession(
            item_id=item_id,
            modality=modality,
            origin_slot_key=origin_slot_key,
            pointer_origin=point,
            current_pointer=point,
        )
        return self._session

    def _end_session(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            session.teardown()

    def _accepts(self, slot_key: str, item_id: str) -> bool:
        return is_valid_location(slot_key) and self._can_accept(slot_key, item_id)

    def _on_long_press(self) -> None:
        session = self._session
        if session is None or session.state is not GestureState.PENDING:
            return
        session.state = GestureState.ARMED
        logger.debug("Long press armed", extra={"event": "gesture_armed", "context": {"item_id": session.item_id}})
        if self._scroll_lock is not None:
            session.add_cleanup(self._scroll_lock())
        if self._haptics is not None:
            try:
                self._haptics()
            except Exception:  # noqa: BLE001
                logger.debug("Haptic feedback unavailable", exc_info=True)

    def _on_frame(self) -> None:
        session = self._session
        if session is None:
            return
        session.frame_pending = None
        self._update_hover(session)

    def _update_hover(self, session: DragSession) -> None:
        if self.hit_tester is None or session.current_pointer is None:
            session.hovered_slot_key = None
            return
        point = session.current_pointer
        key = slot_key_for(self.hit_tester.element_at(point.x, point.y))
        session.hovered_slot_key = key if key is not None and self._accepts(key, session.item_id) else None
