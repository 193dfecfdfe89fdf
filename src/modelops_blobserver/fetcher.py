"""
Origin fetcher with bounded retry.

Downloads a URL into the local cache through the atomic writer. Each
attempt writes its own temp file, so a failed attempt never leaves a
partial file behind.
"""
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Optional

import httpx
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from .atomic_write import CHUNK_SIZE, write_stream_atomically
from .errors import BlobWriteError, OriginFetchError

__all__ = ["RetryingFetcher"]

logger = logging.getLogger(__name__)

USER_AGENT = "modelops-blobserver/0.1.0"


def _log_retry(retry_state) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    url = retry_state.args[0] if retry_state.args else "?"
    logger.warning(f"Downloading {url} failed on attempt {retry_state.attempt_number}, will retry: {exc}")


class RetryingFetcher:
    """
    HTTP GET into a file, retried with a fixed delay.

    Only origin errors (transport failures and non-200 responses) are
    retried. Local write failures are raised immediately as BlobWriteError.
    When attempts run out, the final attempt's OriginFetchError is raised.
    """

    def __init__(
        self,
        *,
        attempts: int = 5,
        retry_delay_s: float = 5.0,
        timeout_s: float = 30.0,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize the fetcher.

        Args:
            attempts: Total number of attempts (>= 1)
            retry_delay_s: Fixed delay between attempts
            timeout_s: Connect/read timeout per attempt
            client: HTTP client (tests inject one with a MockTransport)
            sleep: Sleep function used between attempts
        """
        if attempts < 1:
            raise ValueError(f"attempts must be at least 1, got {attempts}")

        self.attempts = attempts
        self.retry_delay_s = retry_delay_s
        self._sleep = sleep
        self._owns_client = client is None
        self.client = client or httpx.Client(
            timeout=httpx.Timeout(timeout_s, connect=min(timeout_s, 10.0)),
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        )

    def fetch(self, url: str, destination_path: Path) -> int:
        """
        Download url into destination_path.

        Returns:
            Number of bytes written

        Raises:
            OriginFetchError: If every attempt failed at the origin
            BlobWriteError: If the local file could not be written
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_fixed(self.retry_delay_s),
            retry=retry_if_exception_type(OriginFetchError),
            before_sleep=_log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        return retrying(self._fetch_once, url, Path(destination_path))

    def _fetch_once(self, url: str, destination_path: Path) -> int:
        logger.info(f"Downloading blob from {url} to {destination_path}")
        started_at = time.monotonic()

        try:
            with self.client.stream("GET", url) as response:
                if response.status_code != 200:
                    raise OriginFetchError(
                        f"unexpected status downloading from upstream source: "
                        f"{response.status_code} {response.reason_phrase}",
                        url=url,
                        status_code=response.status_code,
                    )
                n = write_stream_atomically(destination_path, response.iter_bytes(CHUNK_SIZE))
        except httpx.HTTPError as e:
            raise OriginFetchError(f"downloading from upstream source {url}: {e}", url=url) from e
        except OSError as e:
            raise BlobWriteError(f"writing {destination_path}: {e}") from e

        logger.info(
            f"Downloaded blob from {url}: {n} bytes in {time.monotonic() - started_at:.1f}s"
        )
        return n

    def close(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._owns_client:
            self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
