"""Local blob store: copies uploads into a project directory."""

from __future__ import annotations

import hashlib
import shutil
from pathlib import Path

from slotboard.remote.base import BlobStore, StoreError


class LocalBlobStore(BlobStore):
    """Stores files under *root* by content hash and returns ``file://`` URLs.

    Uploading the same bytes twice returns the same URL.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    async def upload(self, path: Path) -> str:
        source = Path(path)
        if not source.is_file():
            raise StoreError(f"Cannot upload '{source}': not a file")
        digest = hashlib.sha256(source.read_bytes()).hexdigest()[:16]
        target = self.root / f"{digest}{source.suffix.lower()}"
        if not target.exists():
            self.root.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
        return target.resolve().as_uri()
