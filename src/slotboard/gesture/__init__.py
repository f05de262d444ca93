"""Drag and touch gesture recognition."""

from slotboard.gesture.hittest import Element, HitTester, Rect, RectHitTester, slot_key_for
from slotboard.gesture.recognizer import (
    DropEffect,
    DropResult,
    GestureOutcome,
    GestureRecognizer,
    GestureSettings,
)
from slotboard.gesture.session import DragSession, GestureState, Modality, Point
from slotboard.gesture.transfer import DataTransfer, decode_item_id, encode_item

__all__ = [
    "DataTransfer",
    "DragSession",
    "DropEffect",
    "DropResult",
    "Element",
    "GestureOutcome",
    "GestureRecognizer",
    "GestureSettings",
    "GestureState",
    "HitTester",
    "Modality",
    "Point",
    "Rect",
    "RectHitTester",
    "decode_item_id",
    "encode_item",
    "slot_key_for",
]
