"""
Blob cache error classes.

Every failure of a tiered resolution surfaces as one of these, so callers
(HTTP front-end, CLI) can map them without knowing which tier failed.
A durable-store "not found" is not an error at this level: it is the
signal to fall through to the origin tier.
"""
from __future__ import annotations

__all__ = [
    "BlobCacheError",
    "InvalidIdentifierError",
    "UnknownBlobError",
    "OriginFetchError",
    "BlobWriteError",
    "DurableStoreError",
    "UploadError",
]


class BlobCacheError(Exception):
    """Base class for all blob cache errors."""
    pass


class InvalidIdentifierError(BlobCacheError, ValueError):
    """
    Identifier cannot be used as a single local filename.

    Raised for empty identifiers, path separators, "." / ".." and
    identifiers starting with a dot (reserved for temp files).
    """
    pass


class UnknownBlobError(BlobCacheError):
    """
    Blob is in neither the local cache nor the durable store, and the
    origin registry has no entry for it.
    """

    def __init__(self, identifier: str):
        super().__init__(f"blob {identifier!r} not known")
        self.identifier = identifier


class OriginFetchError(BlobCacheError):
    """
    Download from the origin failed.

    Raised for transport errors and non-200 responses. After retries are
    exhausted the error of the final attempt is what callers see.
    """

    def __init__(self, message: str, url: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class BlobWriteError(BlobCacheError):
    """Writing or publishing a file in the local cache failed (disk full, permissions)."""
    pass


class DurableStoreError(BlobCacheError):
    """
    Durable store failed for a reason other than "object does not exist".

    Network, permission and transient errors are fatal for the attempt;
    they are never treated as a cache miss.
    """
    pass


class UploadError(BlobCacheError):
    """
    Populating the durable store after an origin fetch failed.

    The blob itself was retrieved; this is only logged by the background
    uploader and never fails the retrieval.
    """
    pass
