"""
Content-addressed blob cache.

The local cache root holds one file per cached blob, named exactly as its
identifier. A file's presence means the blob is cached: files are only
published by atomic rename, so a present file is always complete. On a
local miss the DownloadCoordinator pulls the blob through the durable store
and origin tiers.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO, Iterable, Optional

from .coordinator import DownloadCoordinator, Tier
from .errors import BlobCacheError
from .fetcher import RetryingFetcher
from .origins import OriginRegistry, registry_from_settings
from .path_safety import safe_identifier
from .settings import Settings
from .storage.base import ObjectStore

__all__ = ["BlobCache"]

logger = logging.getLogger(__name__)


class BlobCache:
    """
    Tiered blob lookup: local disk, then durable store, then origin.

    Never deletes cached blobs and performs no integrity check; identical
    identifiers are trusted to mean identical bytes.
    """

    def __init__(self, base_dir: Path, *, coordinator: DownloadCoordinator) -> None:
        """
        Initialize the cache.

        Args:
            base_dir: Local cache root (created if missing)
            coordinator: Coordinator that resolves local misses
        """
        self.base_dir = Path(base_dir)
        self.coordinator = coordinator

        self.base_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        store: Optional[ObjectStore] = None,
        origins: Optional[OriginRegistry] = None,
        fetcher: Optional[RetryingFetcher] = None,
    ) -> BlobCache:
        """
        Build a cache and its collaborators from settings.

        Any collaborator can be injected (tests pass fakes); the rest are
        created from settings.
        """
        if store is None:
            from .storage.object_store import object_store_for
            store = object_store_for(settings)
        if origins is None:
            origins = registry_from_settings(settings.origins_file)
        if fetcher is None:
            fetcher = RetryingFetcher(
                attempts=settings.fetch_attempts,
                retry_delay_s=settings.fetch_retry_delay_s,
                timeout_s=settings.http_timeout_s,
            )

        coordinator = DownloadCoordinator(
            store=store,
            origins=origins,
            fetcher=fetcher,
            max_workers=settings.max_workers,
        )
        logger.debug(f"Blob cache at {settings.cache_path} with {len(origins)} known origins")
        return cls(settings.cache_path, coordinator=coordinator)

    def path_for(self, identifier: str) -> Path:
        """Local cache path for identifier."""
        return self.base_dir / safe_identifier(identifier)

    def is_cached(self, identifier: str) -> bool:
        return self.path_for(identifier).is_file()

    def get_blob(self, identifier: str, *, timeout: Optional[float] = None) -> BinaryIO:
        """
        Open a complete local copy of a blob, fetching it first if needed.

        A local hit involves no coordination and no network access.

        Args:
            identifier: Content identifier
            timeout: Seconds to wait for a resolution (the resolution itself continues)

        Returns:
            Binary file handle opened for reading; caller closes it

        Raises:
            InvalidIdentifierError: If identifier cannot name a cache file
            UnknownBlobError, DurableStoreError, OriginFetchError, BlobWriteError:
                Propagated from the resolution
        """
        path = self.path_for(identifier)
        try:
            return open(path, "rb")
        except FileNotFoundError:
            pass

        tier = self.coordinator.materialize(identifier, path, timeout=timeout)
        logger.debug(f"Blob {identifier} materialized from {tier} tier")

        try:
            return open(path, "rb")
        except FileNotFoundError as e:
            # Resolution reported success, so the file must have been published
            raise BlobCacheError(f"blob {identifier} missing at {path} after successful download") from e

    def ensure(self, identifier: str, *, timeout: Optional[float] = None) -> Path:
        """Make sure a blob is cached locally and return its path."""
        with self.get_blob(identifier, timeout=timeout) as f:
            return Path(f.name)

    def preload(self, identifiers: Iterable[str]) -> None:
        """Fetch blobs ahead of serving; the first failure is raised."""
        for identifier in identifiers:
            path = self.ensure(identifier)
            logger.info(f"Preloaded blob {identifier} at {path}")

    def materialize(self, identifier: str, *, timeout: Optional[float] = None) -> Tier:
        """Resolve a blob into the local cache, reporting which tier supplied it."""
        path = self.path_for(identifier)
        if path.is_file():
            return "local"
        return self.coordinator.materialize(identifier, path, timeout=timeout)

    def close(self) -> None:
        """Wait for running resolutions and background uploads, then release clients."""
        self.coordinator.shutdown(wait=True)
        self.coordinator.fetcher.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
