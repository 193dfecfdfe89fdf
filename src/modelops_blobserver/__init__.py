"""
ModelOps blob server.

Content-addressed cache for large model artifacts, pulled through local
disk, a durable object store and the origin.
"""
from .cache import BlobCache
from .coordinator import DownloadCoordinator
from .errors import (
    BlobCacheError,
    BlobWriteError,
    DurableStoreError,
    InvalidIdentifierError,
    OriginFetchError,
    UnknownBlobError,
    UploadError,
)
from .origins import KnownOrigin, OriginRegistry
from .settings import Settings

__all__ = [
    "BlobCache",
    "DownloadCoordinator",
    "KnownOrigin",
    "OriginRegistry",
    "Settings",
    "BlobCacheError",
    "BlobWriteError",
    "DurableStoreError",
    "InvalidIdentifierError",
    "OriginFetchError",
    "UnknownBlobError",
    "UploadError",
]
