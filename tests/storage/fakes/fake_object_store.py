"""
Fake object store implementation for testing.

This implementation explicitly subclasses ObjectStore to ensure interface changes
break CI immediately, preventing silent drift.
"""
from __future__ import annotations

import threading
from pathlib import Path
from typing import Dict, Optional

from modelops_blobserver.atomic_write import write_stream_atomically
from modelops_blobserver.storage.base import ObjectStore
from modelops_blobserver.storage.errors import ObjectNotFoundError

__all__ = ["FakeObjectStore"]


class FakeObjectStore(ObjectStore):
    """
    In-memory object store keyed by identifier for testing.

    This is a test double; not for production use.
    Counts calls so tests can assert which tiers were contacted, and can be
    told to fail downloads or uploads with a given exception.
    """

    def __init__(self) -> None:
        self._objects: Dict[str, bytes] = {}
        self._lock = threading.Lock()
        self.download_calls = 0
        self.upload_calls = 0
        self.fail_download: Optional[BaseException] = None
        self.fail_upload: Optional[Exception] = None

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._objects

    def download(self, key: str, destination_path: Path) -> int:
        with self._lock:
            self.download_calls += 1
            data = self._objects.get(key)
        if self.fail_download is not None:
            raise self.fail_download
        if data is None:
            raise ObjectNotFoundError(f"object not found: {key}", key=key)
        return write_stream_atomically(Path(destination_path), [data])

    def upload(self, source_path: Path, key: str) -> bool:
        with self._lock:
            self.upload_calls += 1
        if self.fail_upload is not None:
            raise self.fail_upload
        data = Path(source_path).read_bytes()
        with self._lock:
            if key in self._objects:
                return False
            self._objects[key] = data
        return True

    def put(self, key: str, data: bytes) -> None:
        """Seed an object directly (test utility)."""
        with self._lock:
            self._objects[key] = data

    def get(self, key: str) -> Optional[bytes]:
        """Read an object directly (test utility)."""
        with self._lock:
            return self._objects.get(key)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._objects)

    def clear(self) -> None:
        """Clear all stored data (test utility)."""
        with self._lock:
            self._objects.clear()
