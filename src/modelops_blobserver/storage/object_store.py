"""
Object store adapters for the durable cache tier.

Implements the ObjectStore protocol for Google Cloud Storage and Azure Blob
Storage. The adapter is chosen from the scheme of the configured bucket URL.
SDKs are imported lazily so a deployment only needs the one it uses.
"""
from __future__ import annotations

import logging
import threading
import time
from pathlib import Path

from ..atomic_write import write_stream_atomically
from ..settings import Settings
from .base import ObjectStore
from .errors import ObjectNotFoundError, ObjectStoreAuthError, ObjectStoreError
from .uri import parse_bucket_uri

__all__ = ["GCSObjectStore", "AzureObjectStore", "object_store_for"]

logger = logging.getLogger(__name__)


class GCSObjectStore(ObjectStore):
    """
    ObjectStore adapter for Google Cloud Storage.

    Uses google-cloud-storage with application default credentials.
    Uploads use a generation precondition (if_generation_match=0) so a
    concurrent writer from another replica turns into a harmless skip.
    """

    def __init__(self, bucket: str, *, settings: Settings, client=None) -> None:
        """
        Initialize GCS adapter.

        Args:
            bucket: Bucket name (without gs:// prefix)
            settings: Settings with durable store timeout
            client: Optional pre-built google.cloud.storage.Client
        """
        self.bucket = bucket
        self._settings = settings
        self._client = client
        self._client_lock = threading.Lock()

        logger.debug(f"GCS adapter for bucket {bucket}, timeout: {settings.ext_timeout_s}s")

    def _get_bucket(self):
        """Get a bucket handle, creating the storage client on first use."""
        try:
            from google.cloud import storage
            from google.auth.exceptions import DefaultCredentialsError
        except ImportError:
            raise ImportError("google-cloud-storage package required for GCS durable storage")

        with self._client_lock:
            if self._client is None:
                try:
                    self._client = storage.Client()
                except DefaultCredentialsError as e:
                    raise ObjectStoreAuthError(f"creating GCS storage client: {e}") from e
        return self._client.bucket(self.bucket)

    def _url(self, key: str) -> str:
        return f"gs://{self.bucket}/{key}"

    def _map_error(self, e: Exception, key: str) -> ObjectStoreError:
        """Map google-api-core exceptions onto the store error taxonomy."""
        from google.api_core import exceptions as gexc

        url = self._url(key)
        if isinstance(e, gexc.NotFound):
            return ObjectNotFoundError(f"object not found in GCS: {url}", key=key)
        if isinstance(e, (gexc.Unauthorized, gexc.Forbidden)):
            return ObjectStoreAuthError(f"access denied for {url}: {e}")
        return ObjectStoreError(f"GCS error for {url}: {e}")

    def exists(self, key: str) -> bool:
        from google.api_core.exceptions import GoogleAPICallError

        blob = self._get_bucket().blob(key)
        try:
            return blob.exists(timeout=self._settings.ext_timeout_s)
        except GoogleAPICallError as e:
            raise self._map_error(e, key) from e

    def download(self, key: str, destination_path: Path) -> int:
        """
        Stream object into destination_path.

        Raises:
            ObjectNotFoundError: If the object does not exist
            ObjectStoreError: For other GCS errors
        """
        from google.api_core.exceptions import GoogleAPICallError

        url = self._url(key)
        blob = self._get_bucket().blob(key)

        logger.info(f"Downloading blob from {url} to {destination_path}")
        started_at = time.monotonic()

        try:
            with blob.open("rb", timeout=self._settings.ext_timeout_s) as reader:
                n = write_stream_atomically(Path(destination_path), reader)
        except GoogleAPICallError as e:
            raise self._map_error(e, key) from e

        logger.info(
            f"Downloaded blob from {url} to {destination_path}: "
            f"{n} bytes in {time.monotonic() - started_at:.1f}s"
        )
        return n

    def upload(self, source_path: Path, key: str) -> bool:
        """
        Upload source_path as `key` unless the object already exists.

        Returns:
            True if uploaded, False if already present
        """
        from google.api_core.exceptions import GoogleAPICallError, PreconditionFailed

        url = self._url(key)
        if self.exists(key):
            logger.info(f"Object already exists in GCS: {url}")
            return False

        logger.info(f"Uploading blob {source_path} to {url}")
        started_at = time.monotonic()

        blob = self._get_bucket().blob(key)
        try:
            blob.upload_from_filename(
                str(source_path),
                if_generation_match=0,
                timeout=self._settings.ext_timeout_s,
            )
        except PreconditionFailed:
            logger.info(f"Object appeared in GCS during upload, skipping: {url}")
            return False
        except GoogleAPICallError as e:
            raise self._map_error(e, key) from e

        logger.info(f"Uploaded blob to {url} in {time.monotonic() - started_at:.1f}s")
        return True


class AzureObjectStore(ObjectStore):
    """
    ObjectStore adapter for Azure Blob Storage.

    Uses azure-storage-blob SDK with connection string or account+key authentication.
    Supports custom endpoints for Azurite and private Azure clouds.
    """

    def __init__(self, container: str, *, settings: Settings) -> None:
        """
        Initialize Azure adapter with settings.

        Args:
            container: Container name (without az:// prefix)
            settings: Settings containing Azure authentication and configuration

        Raises:
            ValueError: If Azure authentication is not properly configured
        """
        self.container = container
        self._settings = settings
        self._validate_azure_auth()
        self._container_client = None
        self._client_lock = threading.Lock()

        # Log configuration (without secrets)
        if settings.az_connection_string:
            logger.debug("Azure adapter using connection string auth")
        else:
            logger.debug(f"Azure adapter using account+key auth for {settings.az_account}")
        if settings.az_blob_endpoint:
            logger.debug(f"Azure adapter using custom endpoint: {settings.az_blob_endpoint}")

    def _validate_azure_auth(self) -> None:
        """Validate Azure authentication configuration."""
        has_conn_str = bool(self._settings.az_connection_string)
        has_account_key = bool(self._settings.az_account and self._settings.az_key)

        if not has_conn_str and not has_account_key:
            raise ValueError("Azure authentication not configured: need AZURE_STORAGE_CONNECTION_STRING or (AZURE_STORAGE_ACCOUNT + AZURE_STORAGE_KEY)")

    def _get_container_client(self):
        """
        Get the Azure container client, built once per adapter.

        Handles the connection patterns for Azure Blob Storage:

        1. Connection string, optionally with a custom endpoint: the account
           name is extracted from the connection string and the endpoint
           overrides the cloud URL (Azurite/private clouds).
        2. Account+key: https://{account}.blob.core.windows.net, or
           {endpoint}/{account} when a custom endpoint is configured.

        All patterns include retry configuration (5 retries, 0.4s backoff) for resilience
        against transient network issues and Azure throttling.
        """
        try:
            from azure.storage.blob import BlobServiceClient
        except ImportError:
            raise ImportError("azure-storage-blob package required for Azure durable storage")

        with self._client_lock:
            if self._container_client is not None:
                return self._container_client

            settings = self._settings
            client_kwargs = dict(
                connection_timeout=settings.ext_timeout_s,
                retry_total=5,
                retry_backoff_factor=0.4,
            )

            if settings.az_connection_string:
                account_name = None
                if settings.az_blob_endpoint:
                    import re
                    account_match = re.search(r'AccountName=([^;]+)', settings.az_connection_string)
                    account_name = account_match.group(1) if account_match else None

                if account_name:
                    endpoint_url = f"{settings.az_blob_endpoint.rstrip('/')}/{account_name}"
                    service_client = BlobServiceClient(
                        account_url=endpoint_url,
                        credential=None,  # Azurite typically doesn't need real credentials
                        **client_kwargs,
                    )
                else:
                    service_client = BlobServiceClient.from_connection_string(
                        settings.az_connection_string,
                        **client_kwargs,
                    )
            else:
                if settings.az_blob_endpoint:
                    account_url = f"{settings.az_blob_endpoint.rstrip('/')}/{settings.az_account}"
                else:
                    account_url = f"https://{settings.az_account}.blob.core.windows.net"
                service_client = BlobServiceClient(
                    account_url=account_url,
                    credential=settings.az_key,
                    **client_kwargs,
                )

            self._container_client = service_client.get_container_client(self.container)
            return self._container_client

    def _url(self, key: str) -> str:
        return f"az://{self.container}/{key}"

    def _map_error(self, e: Exception, key: str) -> ObjectStoreError:
        """Map azure-core exceptions onto the store error taxonomy."""
        from azure.core.exceptions import ClientAuthenticationError, ResourceNotFoundError

        url = self._url(key)
        if isinstance(e, ResourceNotFoundError):
            return ObjectNotFoundError(f"blob not found in Azure: {url}", key=key)
        if isinstance(e, ClientAuthenticationError):
            return ObjectStoreAuthError(f"access denied for {url}: {e}")
        return ObjectStoreError(f"Azure blob error for {url}: {e}")

    def exists(self, key: str) -> bool:
        from azure.core.exceptions import AzureError

        blob_client = self._get_container_client().get_blob_client(key)
        try:
            return blob_client.exists()
        except AzureError as e:
            raise self._map_error(e, key) from e

    def download(self, key: str, destination_path: Path) -> int:
        """
        Stream blob into destination_path.

        Raises:
            ObjectNotFoundError: If blob does not exist
            ObjectStoreError: For other Azure/network errors
        """
        from azure.core.exceptions import AzureError

        url = self._url(key)
        blob_client = self._get_container_client().get_blob_client(key)

        logger.info(f"Downloading blob from {url} to {destination_path}")
        started_at = time.monotonic()

        try:
            downloader = blob_client.download_blob(timeout=int(self._settings.ext_timeout_s))
            n = write_stream_atomically(Path(destination_path), downloader.chunks())
        except AzureError as e:
            raise self._map_error(e, key) from e

        logger.info(
            f"Downloaded blob from {url} to {destination_path}: "
            f"{n} bytes in {time.monotonic() - started_at:.1f}s"
        )
        return n

    def upload(self, source_path: Path, key: str) -> bool:
        """
        Upload source_path as `key` unless the blob already exists.

        Returns:
            True if uploaded, False if already present
        """
        from azure.core.exceptions import AzureError, ResourceExistsError

        url = self._url(key)
        if self.exists(key):
            logger.info(f"Blob already exists in Azure: {url}")
            return False

        logger.info(f"Uploading blob {source_path} to {url}")
        started_at = time.monotonic()

        blob_client = self._get_container_client().get_blob_client(key)
        try:
            with open(source_path, "rb") as src:
                blob_client.upload_blob(src, overwrite=False)
        except ResourceExistsError:
            logger.info(f"Blob appeared in Azure during upload, skipping: {url}")
            return False
        except AzureError as e:
            raise self._map_error(e, key) from e

        logger.info(f"Uploaded blob to {url} in {time.monotonic() - started_at:.1f}s")
        return True


def object_store_for(settings: Settings, *, client=None) -> ObjectStore:
    """
    Create the durable store adapter for the configured bucket URL.

    Args:
        settings: Settings with cache_bucket (gs://... or az://...)
        client: Optional pre-built SDK client (GCS only)

    Returns:
        ObjectStore adapter for the URI scheme

    Raises:
        ValueError: For invalid bucket URLs or missing Azure auth
    """
    parsed = parse_bucket_uri(settings.cache_bucket)

    if parsed.scheme == "gs":
        logger.info(f"Using GCS cache bucket {parsed.bucket}")
        return GCSObjectStore(parsed.bucket, settings=settings, client=client)
    elif parsed.scheme == "az":
        logger.info(f"Using Azure cache container {parsed.bucket}")
        return AzureObjectStore(parsed.bucket, settings=settings)
    else:
        # This shouldn't happen since parse_bucket_uri validates schemes
        raise ValueError(f"Unsupported bucket scheme: {parsed.scheme}")
