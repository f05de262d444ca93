"""SQLite connection layer for the local document store."""

from __future__ import annotations

import sqlite3
from pathlib import Path

# Several CLI invocations may write the same board file at once.
DEFAULT_BUSY_TIMEOUT_MS = 5_000


class Database:
    """One board's SQLite file of JSON documents.

    Usage:
        with Database(project_dir / ".slotboard.db") as conn:
            store = SqliteDocumentStore(conn)
    """

    def __init__(self, db_path: Path | str, *, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> None:
        """
        Args:
            db_path: Board database file. Parent directories are created on connect.
            busy_timeout_ms: How long a writer waits for another writer's lock.
        """
        self.db_path = Path(db_path)
        self.busy_timeout_ms = busy_timeout_ms
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        """Open a new connection; the caller closes it."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout_ms / 1000)
        conn.row_factory = sqlite3.Row
        conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout_ms)}")
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
        return conn

    def __enter__(self) -> sqlite3.Connection:
        self._conn = self.connect()
        return self._conn

    def __exit__(self, *args: object) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
