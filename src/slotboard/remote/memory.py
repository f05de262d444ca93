"""In-process document store shared by several clients (WI_0012).

Every board created against the same ``MemoryDocumentStore`` instance sees the
others' writes through ``subscribe``, which makes it the collaborator used by
tests and local replays. Snapshots are deep copies, so no client can mutate
another's view.

Fault injection:
    store.fail_next(3)          # next three writes raise StoreError
    store.pause_writes()        # writes block until resume_writes()
    store.emit(path, document)  # deliver a snapshot without storing it
"""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any, Mapping

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


class MemoryDocumentStore(DocumentStore):
    """Dict-backed document store with synchronous snapshot delivery."""

    def __init__(self, documents: Mapping[str, dict[str, Any]] | None = None) -> None:
        self._docs: dict[str, dict[str, Any]] = copy.deepcopy(dict(documents or {}))
        self._subscribers: dict[str, list[tuple[SnapshotCallback, ErrorCallback | None]]] = {}
        self._failures: list[Exception] = []
        self._gate: asyncio.Event | None = None
        self.reads = 0
        self.writes = 0

    # ------------------------------------------------------------------
    # Fault injection
    # ------------------------------------------------------------------

    def fail_next(self, count: int = 1, error: Exception | None = None) -> None:
        """Make the next *count* write/update calls raise *error*."""
        for _ in range(count):
            self._failures.append(error or StoreError("injected write failure"))

    def pause_writes(self) -> None:
        self._gate = asyncio.Event()

    def resume_writes(self) -> None:
        if self._gate is not None:
            self._gate.set()
            self._gate = None

    def emit(self, path: str, document: dict[str, Any] | None) -> None:
        """Deliver *document* to subscribers of *path* without storing it."""
        self._deliver(path, document)

    def emit_error(self, path: str, error: Exception) -> None:
        for _, on_error in list(self._subscribers.get(path, ())):
            if on_error is not None:
                on_error(error)

    # ------------------------------------------------------------------
    # DocumentStore
    # ------------------------------------------------------------------

    async def read(self, path: str) -> dict[str, Any] | None:
        self.reads += 1
        document = self._docs.get(path)
        return copy.deepcopy(document) if document is not None else None

    async def write(self, path: str, value: dict[str, Any], *, field: str | None = None) -> None:
        await self._before_write()
        if field is None:
            self._docs[path] = copy.deepcopy(value)
        else:
            self._docs[path] = set_dotted(self._docs.get(path, {}), field, value)
        self.writes += 1
        self._deliver(path, self._docs[path])

    async def update_fields(self, path: str, fields: Mapping[str, Any]) -> None:
        check_scalar_fields(fields)
        await self._before_write()
        if path not in self._docs:
            raise StoreError(f"No document at '{path}'")
        document = self._docs[path]
        for name, value in fields.items():
            document = set_dotted(document, name, value)
        self._docs[path] = document
        self.writes += 1
        self._deliver(path, document)

    def subscribe(
        self,
        path: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Unsubscribe:
        entry = (on_snapshot, on_error)
        self._subscribers.setdefault(path, []).append(entry)
        on_snapshot(copy.deepcopy(self._docs.get(path)))

        def _unsubscribe() -> None:
            subscribers = self._subscribers.get(path, [])
            if entry in subscribers:
                subscribers.remove(entry)

        return _unsubscribe

    def subscriber_count(self, path: str) -> int:
        return len(self._subscribers.get(path, ()))

    def list_paths(self, prefix: str) -> list[str]:
        """Document paths directly below collection *prefix*, in insertion order."""
        base = prefix.rstrip("/") + "/"
        return [p for p in self._docs if p.startswith(base) and "/" not in p[len(base):]]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _before_write(self) -> None:
        if self._gate is not None:
            await self._gate.wait()
        if self._failures:
            raise self._failures.pop(0)

    def _deliver(self, path: str, document: dict[str, Any] | None) -> None:
        for on_snapshot, _ in list(self._subscribers.get(path, ())):
            on_snapshot(copy.deepcopy(document))
