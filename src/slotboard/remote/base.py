"""Remote document store and blob store interfaces (WI_0011).

The reconciliation layer treats the remote store as an opaque collaborator:

  read(path)                      → current document (or None)
  write(path, value, field=None)  → replace the document, or one whole subtree
  update_fields(path, fields)     → dotted-path patch, scalar values only
  subscribe(path, on_snapshot)    → push every new document state

``update_fields`` is deliberately limited to scalars; dynamic nested item maps
are always replaced whole through ``write(..., field=...)``.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Mapping

SnapshotCallback = Callable[[dict[str, Any] | None], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]

_SCALAR_TYPES = (str, int, float, bool)


class StoreError(Exception):
    """Raised by a document store when a remote operation fails."""


class DocumentStore(ABC):
    """Abstract async document store."""

    @abstractmethod
    async def read(self, path: str) -> dict[str, Any] | None:
        """Return a copy of the document at *path*, or None if it does not exist."""

    @abstractmethod
    async def write(self, path: str, value: dict[str, Any], *, field: str | None = None) -> None:
        """Replace the document at *path*, or only the subtree at dotted *field*.

        Writing a field of a missing document creates the document.
        """

    @abstractmethod
    async def update_fields(self, path: str, fields: Mapping[str, Any]) -> None:
        """Patch scalar values at dotted paths of an existing document.

        Raises:
            ValueError: If any value is not a scalar.
            StoreError: If the document does not exist.
        """

    @abstractmethod
    def subscribe(
        self,
        path: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Unsubscribe:
        """Deliver the current and every subsequent state of *path* to *on_snapshot*."""


class BlobStore(ABC):
    """Abstract file upload target."""

    @abstractmethod
    async def upload(self, path: Path) -> str:
        """Upload the file at *path* and return its download URL."""


# ---------------------------------------------------------------------------
# Helpers shared by store implementations
# ---------------------------------------------------------------------------


def check_scalar_fields(fields: Mapping[str, Any]) -> None:
    """Raise ValueError unless every value in *fields* is a scalar."""
    for name, value in fields.items():
        if not name or any(not part for part in name.split(".")):
            raise ValueError(f"Invalid field path: '{name}'")
        if not isinstance(value, _SCALAR_TYPES):
            raise ValueError(
                f"update_fields only accepts scalar values; '{name}' is {type(value).__name__}. "
                "Replace nested maps with write(path, value, field=...)."
            )


def set_dotted(document: dict[str, Any], field: str, value: Any) -> dict[str, Any]:
    """Return a copy of *document* with *value* stored at dotted *field*."""
    result = copy.deepcopy(document)
    parts = field.split(".")
    node = result
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[parts[-1]] = copy.deepcopy(value)
    return result


def get_dotted(document: Mapping[str, Any] | None, field: str) -> Any:
    """Return the value at dotted *field*, or None if any segment is missing."""
    node: Any = document
    for part in field.split("."):
        if not isinstance(node, Mapping):
            return None
        node = node.get(part)
    return node
