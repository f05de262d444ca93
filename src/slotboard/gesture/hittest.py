"""Point-in-element lookup for touch drags.

Touch events keep targeting the element where the touch started, so the slot
under the finger is found by looking up the element at the raw coordinates and
walking its ancestors until one identifies a slot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from slotboard.models import POOL, is_valid_location

SLOT_ATTRIBUTES = ("data-row-key", "data-slot-key")
POOL_ATTRIBUTE = "data-pool"


@dataclass(eq=False)
class Element:
    attributes: dict[str, str] = field(default_factory=dict)
    parent: Element | None = None

    def ancestors(self):
        """Yield this element and then each ancestor up to the root."""
        node: Element | None = self
        while node is not None:
            yield node
            node = node.parent


class HitTester(Protocol):
    def element_at(self, x: float, y: float) -> Element | None: ...


def slot_key_for(element: Element | None) -> str | None:
    """Return the slot key (or ``POOL``) identified by *element* or its nearest ancestor."""
    if element is None:
        return None
    for node in element.ancestors():
        if POOL_ATTRIBUTE in node.attributes:
            return POOL
        for name in SLOT_ATTRIBUTES:
            value = node.attributes.get(name)
            if value is not None:
                return value if is_valid_location(value) else None
    return None


@dataclass
class Rect:
    x: float
    y: float
    width: float
    height: float

    def contains(self, x: float, y: float) -> bool:
        return self.x <= x < self.x + self.width and self.y <= y < self.y + self.height


class RectHitTester:
    """Hit tester over registered rectangles; later registrations are on top."""

    def __init__(self) -> None:
        self._layers: list[tuple[Rect, Element]] = []

    def add(self, rect: Rect, element: Element) -> Element:
        self._layers.append((rect, element))
        return element

    def element_at(self, x: float, y: float) -> Element | None:
        for rect, element in reversed(self._layers):
            if rect.contains(x, y):
                return element
        return None
