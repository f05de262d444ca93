"""Slotboard: drag-and-drop content scheduling with optimistic sync."""

__version__ = "0.4.0"
