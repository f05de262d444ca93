"""Typed failures raised by the reconciliation layer (WI_0005).

Propagation:
  - InvalidSlotKey / SlotFull / ItemNotFound are raised before any local mutation.
  - PersistenceFailure is raised only after the local mutation has been rolled back.
  - MalformedSnapshot is never raised out of a merge; the normalizer collects
    instances as diagnostics and drops the offending entry.
"""

from __future__ import annotations


class SlotboardError(Exception):
    """Base class for all slotboard errors."""


class InvalidSlotKey(SlotboardError, ValueError):
    """Raised when a location is neither the pool sentinel nor a well-formed slot key."""

    def __init__(self, value: object) -> None:
        super().__init__(f"Invalid slot key: {value!r}")
        self.value = value


class ItemNotFound(SlotboardError, KeyError):
    """Raised when an item id is unknown to local state. No remote effect is attempted."""

    def __init__(self, item_id: str) -> None:
        super().__init__(item_id)
        self.item_id = item_id

    def __str__(self) -> str:
        return f"Item not found: {self.item_id!r}"


class SlotFull(SlotboardError):
    """Raised when a drop would push a slot past its capacity. Not retryable."""

    def __init__(self, slot_key: str, capacity: int) -> None:
        super().__init__(f"Slot {slot_key} already holds {capacity} items")
        self.slot_key = slot_key
        self.capacity = capacity


class PersistenceFailure(SlotboardError):
    """Raised when a remote write exhausted its retries.

    Local state has already been rolled back when this is raised; the user may
    retry by repeating the gesture.
    """

    def __init__(self, item_ids: list[str], attempts: int, cause: BaseException | None = None) -> None:
        ids = ", ".join(item_ids) or "(none)"
        super().__init__(f"Failed to persist {ids} after {attempts} attempt(s): {cause}")
        self.item_ids = list(item_ids)
        self.attempts = attempts
        self.cause = cause


class MalformedSnapshot(SlotboardError):
    """Describes one remote entry that could not be normalized."""

    def __init__(self, item_id: str, reason: str) -> None:
        super().__init__(f"Malformed entry {item_id!r}: {reason}")
        self.item_id = item_id
        self.reason = reason


class PipelineClosed(SlotboardError, RuntimeError):
    """Raised when a change is submitted after the pipeline was closed."""

    def __init__(self) -> None:
        super().__init__("Pipeline is closed")
