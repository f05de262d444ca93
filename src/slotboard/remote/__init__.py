"""Remote document and blob stores."""

from slotboard.remote.base import BlobStore, DocumentStore, StoreError
from slotboard.remote.blob import LocalBlobStore
from slotboard.remote.memory import MemoryDocumentStore
from slotboard.remote.partition import PartitionRef
from slotboard.remote.sqlite import SqliteDocumentStore

__all__ = [
    "BlobStore",
    "DocumentStore",
    "LocalBlobStore",
    "MemoryDocumentStore",
    "PartitionRef",
    "SqliteDocumentStore",
    "StoreError",
]
