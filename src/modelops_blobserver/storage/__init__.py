"""Durable object store adapters for the blob cache."""
from .base import ObjectStore
from .errors import ObjectStoreError, ObjectNotFoundError, ObjectStoreAuthError
from .object_store import AzureObjectStore, GCSObjectStore, object_store_for

__all__ = [
    "ObjectStore",
    "ObjectStoreError",
    "ObjectNotFoundError",
    "ObjectStoreAuthError",
    "AzureObjectStore",
    "GCSObjectStore",
    "object_store_for",
]
