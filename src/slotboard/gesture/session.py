"""Drag session: the single owner of a gesture's timers and cleanups."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from slotboard.scheduler import Handle

logger = logging.getLogger(__name__)


class GestureState(Enum):
    IDLE = "idle"
    PENDING = "pending"  # touch down, long-press timer running
    ARMED = "armed"
    DRAGGING = "dragging"


class Modality(Enum):
    NATIVE = "native"
    TOUCH = "touch"


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def distance_to(self, other: Point) -> float:
        return math.hypot(self.x - other.x, self.y - other.y)


@dataclass(eq=False)
class DragSession:
    """One gesture from press/drag-start to its terminal transition.

    Every timer the gesture starts is registered with ``own`` and every
    listener-style side effect with ``add_cleanup``; ``teardown`` releases all
    of them and is safe to call more than once.
    """

    item_id: str
    modality: Modality
    origin_slot_key: str | None = None
    pointer_origin: Point | None = None
    current_pointer: Point | None = None
    state: GestureState = GestureState.PENDING
    moved: bool = False
    hovered_slot_key: str | None = None
    frame_pending: Handle | None = None
    _handles: list[Handle] = field(default_factory=list)
    _cleanups: list[Callable[[], None]] = field(default_factory=list)
    _closed: bool = False

    @property
    def armed(self) -> bool:
        return self.state in (GestureState.ARMED, GestureState.DRAGGING)

    @property
    def closed(self) -> bool:
        return self._closed

    def own(self, handle: Handle) -> Handle:
        self._handles.append(handle)
        return handle

    def add_cleanup(self, callback: Callable[[], None]) -> None:
        self._cleanups.append(callback)

    def teardown(self) -> None:
        if self._closed:
            return
        self._closed = True
        for handle in self._handles:
            handle.cancel()
        self._handles.clear()
        self.frame_pending = None
        cleanups, self._cleanups = self._cleanups, []
        for callback in reversed(cleanups):
            try:
                callback()
            except Exception:  # noqa: BLE001
                logger.exception(
                    "Drag session cleanup failed",
                    extra={"event": "gesture_cleanup_failed", "context": {"item_id": self.item_id}},
                )
        self.state = GestureState.IDLE
        self.hovered_slot_key = None
