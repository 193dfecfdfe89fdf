"""
Storage interfaces for the blob cache.

These protocols define the boundary between the cache and durable store
implementations, enabling clean dependency injection and testing with fakes.
"""
from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

__all__ = ["ObjectStore"]


@runtime_checkable
class ObjectStore(Protocol):
    """
    Protocol for a durable object store keyed by content identifier.

    The object key is the identifier itself. Writes are idempotent: content
    is immutable per key, so "skip if present" is always correct.
    """

    def exists(self, key: str) -> bool:
        """
        Check whether an object exists without fetching content.

        Raises:
            ObjectStoreError: For errors other than absence
        """
        ...

    def download(self, key: str, destination_path: Path) -> int:
        """
        Download object `key` into destination_path (atomic publish).

        Args:
            key: Object key (content identifier)
            destination_path: Local file to publish

        Returns:
            Number of bytes written

        Raises:
            ObjectNotFoundError: If the object does not exist
            ObjectStoreError: For every other store failure
            OSError: If the local file cannot be written
        """
        ...

    def upload(self, source_path: Path, key: str) -> bool:
        """
        Upload a local file as object `key` unless it already exists.

        Args:
            source_path: Local file to upload
            key: Object key (content identifier)

        Returns:
            True if the object was written, False if it was already present

        Raises:
            ObjectStoreError: For store failures
            OSError: If the local file cannot be read
        """
        ...
