"""
Object store error classes.

Provides a clear taxonomy of errors that can occur during durable store
operations. SDK exceptions are mapped onto these so the cache pipeline can
tell a plain miss apart from every other failure, regardless of provider.
"""
from __future__ import annotations


class ObjectStoreError(Exception):
    """
    Base class for all object store errors.

    Anything other than ObjectNotFoundError is fatal for a resolution
    attempt: network failures, throttling, misconfiguration.
    """
    pass


class ObjectNotFoundError(ObjectStoreError):
    """
    Object does not exist in the bucket.

    Raised when:
    - GCS NotFound (HTTP 404)
    - Azure ResourceNotFoundError
    """

    def __init__(self, message: str, key: str | None = None):
        super().__init__(message)
        self.key = key


class ObjectStoreAuthError(ObjectStoreError):
    """
    Authentication or authorization error.

    Raised when:
    - HTTP 401 Unauthorized (invalid credentials)
    - HTTP 403 Forbidden (insufficient permissions)
    """
    pass
