"""Slot index: derived mapping from slot key to the items occupying it (WI_0006).

The index is a pure function of the item collection and is never mutated in
place; ``LocalItemStore.slot_index`` rebuilds it whenever the collection
changes. Capacity is a property of the surface (desktop calendar vs mobile
list), so it is passed to the checks rather than stored on the index.
"""

from __future__ import annotations

from typing import Iterable, Iterator

from slotboard.models import POOL, Item, parse_slot_key

CALENDAR_CAPACITY = 4
MOBILE_CAPACITY = 3


class SlotIndex:
    """Read-only view of scheduled items grouped by slot key.

    Items inside a slot are ordered by ``last_moved`` ascending (ties keep
    collection order), so successive drops append to the end of the slot.
    Pool items are held separately, newest first.
    """

    def __init__(self, slots: dict[str, list[Item]], pool: list[Item]) -> None:
        self._slots = slots
        self._pool = pool

    @classmethod
    def build(cls, items: Iterable[Item]) -> SlotIndex:
        slots: dict[str, list[Item]] = {}
        pool: list[Item] = []
        for item in items:
            if item.location == POOL:
                pool.append(item)
            else:
                slots.setdefault(item.location, []).append(item)
        for members in slots.values():
            members.sort(key=lambda i: i.last_moved)
        pool.sort(key=lambda i: i.last_moved, reverse=True)
        return cls(slots, pool)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, slot_key: str) -> list[Item]:
        """Items in *slot_key* (empty list for an empty or unknown slot)."""
        return list(self._slots.get(slot_key, ()))

    def pool(self) -> list[Item]:
        """Unscheduled items, most recently moved first."""
        return list(self._pool)

    def keys(self) -> list[str]:
        return list(self._slots)

    def __contains__(self, slot_key: object) -> bool:
        return slot_key in self._slots

    def __iter__(self) -> Iterator[str]:
        return iter(self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    def slots_for_month(self, year: int, month: int) -> dict[str, list[Item]]:
        """Occupied slots of one month (zero-indexed), ordered by day."""
        selected: list[tuple[int, str]] = []
        for key in self._slots:
            y, m, d = parse_slot_key(key)
            if y == year and m == month:
                selected.append((d, key))
        return {key: self.get(key) for _, key in sorted(selected)}

    # ------------------------------------------------------------------
    # Capacity
    # ------------------------------------------------------------------

    def count_excluding(self, slot_key: str, item_id: str | None) -> int:
        """Occupancy of *slot_key* not counting *item_id* itself."""
        return sum(1 for item in self._slots.get(slot_key, ()) if item.id != item_id)

    def has_capacity(self, slot_key: str, item_id: str | None, capacity: int) -> bool:
        """True if *item_id* may be placed in *slot_key*. The pool is unbounded."""
        if slot_key == POOL:
            return True
        return self.count_excluding(slot_key, item_id) < capacity
