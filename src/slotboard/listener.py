"""Remote listener: debounced snapshot merges into local state (WI_0010).

Each snapshot restarts the debounce timer and replaces the held snapshot, so
only the latest one is merged. Items in flight always keep their local value.

Policies:
  COARSE  while anything is in flight the whole merge waits until the tracker
          drains (desktop calendar and pool)
  FINE    merge immediately, skipping only the in-flight items (mobile list)
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable

from slotboard.effects import LogNotifier, Notifier
from slotboard.errors import MalformedSnapshot
from slotboard.inflight import InFlightTracker
from slotboard.models import Item
from slotboard.normalize import normalize_partition
from slotboard.remote.base import DocumentStore
from slotboard.remote.partition import PartitionRef
from slotboard.scheduler import Handle, Scheduler
from slotboard.state import LocalItemStore

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.25


class MergePolicy(Enum):
    COARSE = "coarse"
    FINE = "fine"


class RemoteListener:
    """Subscribes to one partition and keeps ``LocalItemStore`` converged with it."""

    def __init__(
        self,
        store: DocumentStore,
        partition: PartitionRef,
        items: LocalItemStore,
        tracker: InFlightTracker,
        scheduler: Scheduler,
        *,
        policy: MergePolicy = MergePolicy.COARSE,
        debounce: float = DEFAULT_DEBOUNCE_SECONDS,
        notifier: Notifier | None = None,
    ) -> None:
        if debounce < 0:
            raise ValueError("debounce must be >= 0")
        self._store = store
        self._partition = partition
        self._items = items
        self._tracker = tracker
        self._scheduler = scheduler
        self.policy = policy
        self.debounce = debounce
        self._notifier = notifier or LogNotifier()

        self._unsubscribe: Callable[[], None] | None = None
        self._unregister_drain: Callable[[], None] | None = None
        self._timer: Handle | None = None
        self._latest: dict[str, Any] | None = None
        self._has_latest = False
        self._deferred = False
        self._loading = True
        self.merge_count = 0
        self.last_dropped: list[MalformedSnapshot] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._unsubscribe is not None:
            return
        self._loading = True
        self._unregister_drain = self._tracker.on_drain(self._on_drain)
        self._unsubscribe = self._store.subscribe(
            self._partition.document_path, self._on_snapshot, self._on_error
        )

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._unregister_drain is not None:
            self._unregister_drain()
            self._unregister_drain = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._latest = None
        self._has_latest = False
        self._deferred = False

    @property
    def is_running(self) -> bool:
        return self._unsubscribe is not None

    @property
    def is_loading(self) -> bool:
        """True until the first snapshot has been merged (or the subscription failed)."""
        return self._loading

    @property
    def is_deferred(self) -> bool:
        return self._deferred

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def _on_snapshot(self, document: dict[str, Any] | None) -> None:
        self._latest = document
        self._has_latest = True
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._scheduler.call_later(self.debounce, self._fire)

    def _on_error(self, error: Exception) -> None:
        self._loading = False
        logger.error(
            "Snapshot subscription failed: %s",
            error,
            extra={"event": "subscription_error", "context": {"path": self._partition.document_path}},
        )
        self._notifier.notify(f"Failed to load {self._partition.instance} data. Please try again.")

    def _fire(self) -> None:
        self._timer = None
        if self.policy is MergePolicy.COARSE and len(self._tracker) > 0:
            self._deferred = True
            logger.debug(
                "Deferring merge while items are in flight",
                extra={"event": "merge_deferred", "context": {"in_flight": sorted(self._tracker.active_ids())}},
            )
            return
        self._merge()

    def _on_drain(self) -> None:
        if self._deferred and self._timer is None:
            self._merge()

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------

    def _merge(self) -> None:
        self._deferred = False
        if not self._has_latest:
            return
        normalized = normalize_partition(self._partition.extract(self._latest), self._partition.instance)
        merged: dict[str, Item] = dict(normalized.items)

        for item_id in self._tracker.active_ids():
            local = self._items.get(item_id)
            if local is not None:
                merged[item_id] = local
            else:
                merged.pop(item_id, None)

        self._items.replace_all(merged)
        self.last_dropped = normalized.dropped
        self.merge_count += 1
        self._loading = False
        logger.debug(
            "Merged snapshot",
            extra={
                "event": "snapshot_merged",
                "context": {"items": len(merged), "dropped": len(normalized.dropped)},
            },
        )
