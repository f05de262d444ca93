"""Local item store: the single mutable collection behind the board (WI_0008).

Only the mutation pipeline and the remote listener write to it. Everything
else (gesture recognizer, board views) reads, mostly through ``slot_index``,
which is rebuilt lazily after each change.
"""

from __future__ import annotations

from typing import Callable, Iterable, Mapping

from slotboard.models import Item
from slotboard.slots import SlotIndex

ChangeListener = Callable[["LocalItemStore"], None]


class LocalItemStore:
    """Item collection keyed by id, with a change counter and listeners."""

    def __init__(self, items: Iterable[Item] = ()) -> None:
        self._items: dict[str, Item] = {item.id: item for item in items}
        self._version = 0
        self._index: SlotIndex | None = None
        self._index_version = -1
        self._listeners: list[ChangeListener] = []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, item_id: str) -> Item | None:
        return self._items.get(item_id)

    def items(self) -> list[Item]:
        return list(self._items.values())

    def as_dict(self) -> dict[str, Item]:
        return dict(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    @property
    def version(self) -> int:
        """Incremented on every write."""
        return self._version

    @property
    def slot_index(self) -> SlotIndex:
        if self._index is None or self._index_version != self._version:
            self._index = SlotIndex.build(self._items.values())
            self._index_version = self._version
        return self._index

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def put(self, item: Item) -> None:
        self._items[item.id] = item
        self._changed()

    def remove(self, item_id: str) -> Item | None:
        item = self._items.pop(item_id, None)
        if item is not None:
            self._changed()
        return item

    def replace_all(self, items: Mapping[str, Item]) -> None:
        """Swap in a whole new collection (used by snapshot merges)."""
        self._items = dict(items)
        self._changed()

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _changed(self) -> None:
        self._version += 1
        for listener in list(self._listeners):
            listener(self)
