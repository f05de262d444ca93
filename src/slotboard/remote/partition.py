"""Partition addressing inside a project document (WI_0011).

One project document holds every item, partitioned by instance:

    projects/{project_id}
        imageMetadata:
            instagram: {item_id: {...}, ...}
            fbig:      {...}
            tiktok:    {...}

Only one partition is reconciled at a time. Writes replace the whole partition
(last writer wins at partition granularity).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from slotboard.models import storage_instance
from slotboard.remote.base import get_dotted

PARTITIONS_FIELD = "imageMetadata"


@dataclass(frozen=True)
class PartitionRef:
    project_id: str
    instance: str

    @classmethod
    def for_instance(cls, project_id: str, instance: str) -> PartitionRef:
        """Build a reference from a UI instance name (``facebook`` is stored as ``fbig``)."""
        if not project_id:
            raise ValueError("project_id must not be empty")
        return cls(project_id=project_id, instance=storage_instance(instance))

    @property
    def document_path(self) -> str:
        return f"projects/{self.project_id}"

    @property
    def field_path(self) -> str:
        return f"{PARTITIONS_FIELD}.{self.instance}"

    def extract(self, document: Mapping[str, Any] | None) -> dict[str, Any]:
        """Return the raw partition map from *document* (empty if absent or malformed)."""
        partition = get_dotted(document, self.field_path)
        return dict(partition) if isinstance(partition, Mapping) else {}
