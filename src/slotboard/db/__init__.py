"""Slotboard database layer."""

from slotboard.db.connection import Database
from slotboard.db.migrations import MIGRATIONS, collection_of, run_migrations

__all__ = ["Database", "MIGRATIONS", "collection_of", "run_migrations"]
