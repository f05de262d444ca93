"""Durable single-file document store backed by SQLite (WI_0013).

Documents are stored as JSON text keyed by path. Subscribers are in-process
only: a write through this store notifies the subscribers registered on the
same instance. Other processes see the change on their next ``read``.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Mapping

from slotboard.db.migrations import collection_of, run_migrations
from slotboard.remote.base import (
    DocumentStore,
    ErrorCallback,
    SnapshotCallback,
    StoreError,
    Unsubscribe,
    check_scalar_fields,
    set_dotted,
)

logger = logging.getLogger(__name__)


class SqliteDocumentStore(DocumentStore):
    """Document store over an open ``sqlite3.Connection``.

    The connection is owned by the caller (see ``slotboard.db.Database``);
    migrations are applied on construction.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        run_migrations(conn)
        self._subscribers: dict[str, list[tuple[SnapshotCallback, ErrorCallback | None]]] = {}

    # ------------------------------------------------------------------
    # DocumentStore
    # ------------------------------------------------------------------

    async def read(self, path: str) -> dict[str, Any] | None:
        return self._load(path)

    async def write(self, path: str, value: dict[str, Any], *, field: str | None = None) -> None:
        document = value if field is None else set_dotted(self._load(path) or {}, field, value)
        self._store(path, document)
        self._deliver(path, document)

    async def update_fields(self, path: str, fields: Mapping[str, Any]) -> None:
        check_scalar_fields(fields)
        document = self._load(path)
        if document is None:
            raise StoreError(f"No document at '{path}'")
        for name, value in fields.items():
            document = set_dotted(document, name, value)
        self._store(path, document)
        self._deliver(path, document)

    def subscribe(
        self,
        path: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Unsubscribe:
        entry = (on_snapshot, on_error)
        self._subscribers.setdefault(path, []).append(entry)
        try:
            on_snapshot(self._load(path))
        except StoreError as exc:
            if on_error is None:
                raise
            on_error(exc)

        def _unsubscribe() -> None:
            subscribers = self._subscribers.get(path, [])
            if entry in subscribers:
                subscribers.remove(entry)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def list_paths(self, prefix: str) -> list[str]:
        """Return document paths directly below collection *prefix*, in insertion order."""
        rows = self._conn.execute(
            "SELECT path FROM documents WHERE collection = ? ORDER BY rowid",
            (prefix.rstrip("/") + "/",),
        ).fetchall()
        return [row["path"] for row in rows]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load(self, path: str) -> dict[str, Any] | None:
        try:
            row = self._conn.execute(
                "SELECT body FROM documents WHERE path = ?", (path,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to read '{path}': {exc}") from exc
        if row is None:
            return None
        try:
            body = json.loads(row["body"])
        except json.JSONDecodeError as exc:
            raise StoreError(f"Corrupt document at '{path}': {exc}") from exc
        return body if isinstance(body, dict) else None

    def _store(self, path: str, document: dict[str, Any]) -> None:
        try:
            self._conn.execute(
                """
                INSERT INTO documents (path, collection, body, updated_at)
                VALUES (?, ?, ?, datetime('now'))
                ON CONFLICT(path) DO UPDATE SET body = excluded.body, updated_at = excluded.updated_at
                """,
                (path, collection_of(path), json.dumps(document, sort_keys=True)),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to write '{path}': {exc}") from exc

    def _deliver(self, path: str, document: dict[str, Any]) -> None:
        for on_snapshot, _ in list(self._subscribers.get(path, ())):
            on_snapshot(json.loads(json.dumps(document)))
