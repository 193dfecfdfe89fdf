"""
Settings and configuration for the ModelOps blob server.

Centralizes configuration values and provides validation with fail-fast behavior.
Loads settings from environment variables at construction time.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

__all__ = ["Settings", "create_settings_from_env", "DEFAULT_CACHE_DIR", "DEFAULT_LISTEN"]

DEFAULT_CACHE_DIR = "~/.cache/blobserver/blobs"
DEFAULT_LISTEN = ":8080"


@dataclass(frozen=True)
class Settings:
    """
    Configuration settings for the blob server.

    Cache Settings:
        cache_bucket: Durable store URL (gs://<bucket> or az://<container>)
        cache_dir: Local cache root directory ("~/" is expanded)
        listen: Listen address as host:port (empty host binds all interfaces)
        origins_file: YAML/JSON origin registry (built-in registry when unset)
        preload: Identifiers to fetch once at startup

    Origin Fetch Settings:
        fetch_attempts: Number of attempts for an origin download (>= 1)
        fetch_retry_delay_s: Fixed delay between attempts in seconds
        http_timeout_s: HTTP request timeout in seconds
        max_workers: Worker threads running resolution pipelines

    Durable Storage Settings (Azure):
        az_connection_string: Azure storage connection string
        az_account: Azure storage account name
        az_key: Azure storage account key
        az_blob_endpoint: Custom Azure blob endpoint (for Azurite/private endpoints)
        ext_timeout_s: Durable store operation timeout
    """
    cache_bucket: str
    cache_dir: str = DEFAULT_CACHE_DIR
    listen: str = DEFAULT_LISTEN
    origins_file: Optional[str] = None
    preload: Tuple[str, ...] = field(default_factory=tuple)

    # Origin fetch settings
    fetch_attempts: int = 5
    fetch_retry_delay_s: float = 5.0
    http_timeout_s: float = 30.0
    max_workers: int = 8

    # Durable storage settings (Azure)
    az_connection_string: Optional[str] = None
    az_account: Optional[str] = None
    az_key: Optional[str] = None
    az_blob_endpoint: Optional[str] = None
    ext_timeout_s: float = 60.0

    def __post_init__(self):
        """Validate settings on construction."""
        if not self.cache_bucket:
            raise ValueError("cache_bucket is required")

        # Bucket URL must carry a supported scheme
        if not re.match(r"^(gs|az)://[^/]+/?$", self.cache_bucket):
            raise ValueError(
                f"Invalid cache_bucket format: {self.cache_bucket}. "
                "Must be a bucket URL (gs://<bucket> or az://<container>)"
            )

        if not self.cache_dir:
            raise ValueError("cache_dir is required")

        # host:port, host may be empty or bracketed IPv6
        if not re.match(r"^(\[[0-9a-fA-F:.]+\]|[a-zA-Z0-9.-]*):[0-9]{1,5}$", self.listen):
            raise ValueError(f"Invalid listen address: {self.listen}. Expected host:port")

        if self.fetch_attempts < 1:
            raise ValueError(f"fetch_attempts must be at least 1, got {self.fetch_attempts}")

        if self.fetch_retry_delay_s < 0:
            raise ValueError(f"fetch_retry_delay_s must be non-negative, got {self.fetch_retry_delay_s}")

        # Validate timeouts are positive
        if self.http_timeout_s <= 0:
            raise ValueError(f"http_timeout_s must be positive, got {self.http_timeout_s}")

        if self.ext_timeout_s <= 0:
            raise ValueError(f"ext_timeout_s must be positive, got {self.ext_timeout_s}")

        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")

        # Validate Azure auth: require either connection string OR (account + key)
        has_conn_str = bool(self.az_connection_string)
        has_account_key = bool(self.az_account and self.az_key)

        if has_conn_str and has_account_key:
            raise ValueError("Specify either az_connection_string OR (az_account + az_key), not both")

        # Azure auth is only needed for az:// buckets, but if partially configured it must be complete
        if self.az_account and not self.az_key:
            raise ValueError("az_account specified but az_key is missing")
        if self.az_key and not self.az_account:
            raise ValueError("az_key specified but az_account is missing")

    @property
    def cache_path(self) -> Path:
        """Local cache root with "~/" expanded to the user's home directory."""
        return Path(self.cache_dir).expanduser()

    @property
    def listen_host(self) -> str:
        """Host part of the listen address; empty means all interfaces."""
        host = self.listen.rsplit(":", 1)[0]
        return host.strip("[]") or "0.0.0.0"

    @property
    def listen_port(self) -> int:
        return int(self.listen.rsplit(":", 1)[1])


# Settings loading functions (no caching)


def create_settings_from_env() -> Settings:
    """
    Load settings from environment variables.

    Environment Variables:
        Cache:
        - CACHE_BUCKET (required, gs://<bucket> or az://<container>)
        - CACHE_DIR (default: ~/.cache/blobserver/blobs)
        - BLOBSERVER_LISTEN (default: :8080)
        - BLOBSERVER_ORIGINS_FILE (optional)
        - BLOBSERVER_PRELOAD (optional, comma separated identifiers)

        Origin fetch:
        - BLOBSERVER_FETCH_ATTEMPTS (default: 5)
        - BLOBSERVER_FETCH_RETRY_DELAY (default: 5.0)
        - BLOBSERVER_HTTP_TIMEOUT (default: 30.0)
        - BLOBSERVER_MAX_WORKERS (default: 8)

        Durable Storage (Azure):
        - AZURE_STORAGE_CONNECTION_STRING (optional)
        - AZURE_STORAGE_ACCOUNT (optional)
        - AZURE_STORAGE_KEY (optional)
        - BLOBSERVER_AZURE_BLOB_ENDPOINT (optional, for Azurite/custom endpoints)
        - BLOBSERVER_EXT_TIMEOUT (default: 60.0)

    Returns:
        Settings object with validated configuration

    Raises:
        ValueError: If configuration is invalid or required values missing

    Note:
        Creates a fresh Settings instance every time (no caching).
    """
    return _load_settings_impl()


def _load_settings_impl() -> Settings:
    """Internal implementation of settings loading."""
    def get_float(key: str, default: float) -> float:
        value = os.getenv(key)
        return float(value) if value else default

    def get_int(key: str, default: int) -> int:
        value = os.getenv(key)
        return int(value) if value else default

    cache_bucket = os.getenv("CACHE_BUCKET")
    if not cache_bucket:
        raise ValueError("CACHE_BUCKET environment variable is required")

    preload_raw = os.getenv("BLOBSERVER_PRELOAD", "")
    preload = tuple(item.strip() for item in preload_raw.split(",") if item.strip())

    return Settings(
        cache_bucket=cache_bucket,
        cache_dir=os.getenv("CACHE_DIR") or DEFAULT_CACHE_DIR,
        listen=os.getenv("BLOBSERVER_LISTEN") or DEFAULT_LISTEN,
        origins_file=os.getenv("BLOBSERVER_ORIGINS_FILE") or None,
        preload=preload,
        fetch_attempts=get_int("BLOBSERVER_FETCH_ATTEMPTS", 5),
        fetch_retry_delay_s=get_float("BLOBSERVER_FETCH_RETRY_DELAY", 5.0),
        http_timeout_s=get_float("BLOBSERVER_HTTP_TIMEOUT", 30.0),
        max_workers=get_int("BLOBSERVER_MAX_WORKERS", 8),
        az_connection_string=os.getenv("AZURE_STORAGE_CONNECTION_STRING"),
        az_account=os.getenv("AZURE_STORAGE_ACCOUNT"),
        az_key=os.getenv("AZURE_STORAGE_KEY"),
        az_blob_endpoint=os.getenv("BLOBSERVER_AZURE_BLOB_ENDPOINT"),
        ext_timeout_s=get_float("BLOBSERVER_EXT_TIMEOUT", 60.0),
    )
