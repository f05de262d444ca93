"""In-flight tracker: items with a local mutation not yet confirmed remotely (WI_0007).

While an item is in flight, snapshot merges must not overwrite it; this keeps a
stale or same-tick remote echo from snapping a card back before the user's own
write has round-tripped.

Entries are released by ``clear()`` (called from the pipeline's ``finally``
path) or by a hard expiry timer in case the clearing path never runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from slotboard.scheduler import Handle, Scheduler

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 0.4


@dataclass
class InFlightEntry:
    item_id: str
    expires_at: float
    handle: Handle


class InFlightTracker:
    """Set of in-flight item ids with per-entry expiry and drain notifications."""

    def __init__(self, scheduler: Scheduler, ttl: float = DEFAULT_TTL_SECONDS) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be > 0")
        self._scheduler = scheduler
        self.ttl = ttl
        self._entries: dict[str, InFlightEntry] = {}
        self._drain_callbacks: list[Callable[[], None]] = []

    def mark(self, item_id: str, ttl: float | None = None) -> None:
        """Add *item_id*, or push its expiry out if it is already in flight."""
        lifetime = self.ttl if ttl is None else ttl
        previous = self._entries.get(item_id)
        if previous is not None:
            previous.handle.cancel()
        handle = self._scheduler.call_later(lifetime, lambda: self._expire(item_id))
        self._entries[item_id] = InFlightEntry(
            item_id=item_id,
            expires_at=self._scheduler.now() + lifetime,
            handle=handle,
        )

    def clear(self, item_id: str) -> bool:
        """Release *item_id*. Returns False if it was not in flight."""
        return self._remove(item_id)

    def is_in_flight(self, item_id: str) -> bool:
        entry = self._entries.get(item_id)
        if entry is None:
            return False
        if entry.expires_at <= self._scheduler.now():
            self._expire(item_id)
            return False
        return True

    def active_ids(self) -> frozenset[str]:
        return frozenset(i for i in list(self._entries) if self.is_in_flight(i))

    def __contains__(self, item_id: object) -> bool:
        return isinstance(item_id, str) and self.is_in_flight(item_id)

    def __len__(self) -> int:
        return len(self.active_ids())

    def on_drain(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Call *callback* whenever the tracker becomes empty. Returns an unregister function."""
        self._drain_callbacks.append(callback)

        def _unregister() -> None:
            if callback in self._drain_callbacks:
                self._drain_callbacks.remove(callback)

        return _unregister

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _expire(self, item_id: str) -> None:
        if item_id in self._entries:
            logger.warning(
                "In-flight entry expired before it was cleared",
                extra={"event": "in_flight_expired", "context": {"item_id": item_id}},
            )
            self._remove(item_id)

    def _remove(self, item_id: str) -> bool:
        entry = self._entries.pop(item_id, None)
        if entry is None:
            return False
        entry.handle.cancel()
        if not self._entries:
            for callback in list(self._drain_callbacks):
                callback()
        return True
