"""
Single-flight download coordination.

At most one resolution pipeline runs per identifier. The first caller
registers a DownloadJob and hands the pipeline to a worker thread; every
caller for that identifier, the first included, waits on the job's future
and sees the same result or the same exception.

Pipelines run on the coordinator's own executor, so a caller that stops
waiting (timeout, client disconnect) never cancels a download other callers
will want.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait as wait_futures
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Literal, Optional, Set

from .errors import BlobWriteError, DurableStoreError, UploadError
from .fetcher import RetryingFetcher
from .origins import OriginRegistry
from .storage.base import ObjectStore
from .storage.errors import ObjectNotFoundError, ObjectStoreError

__all__ = ["DownloadCoordinator", "DownloadJob", "Tier"]

logger = logging.getLogger(__name__)

# Tier that satisfied a resolution
Tier = Literal["local", "durable", "origin"]


@dataclass
class DownloadJob:
    """
    An in-flight resolution for one identifier.

    Owned by the coordinator; removed from the job map when the pipeline
    finishes, whatever the outcome.
    """
    identifier: str
    destination_path: Path
    future: Future = field(default_factory=Future)


class DownloadCoordinator:
    """
    Runs tiered resolutions (durable store, then origin) with one job per identifier.

    The job map is the only shared mutable state. Its lock is held for map
    lookups and mutation only, never across I/O.
    """

    def __init__(
        self,
        *,
        store: ObjectStore,
        origins: OriginRegistry,
        fetcher: RetryingFetcher,
        max_workers: int = 8,
    ) -> None:
        self.store = store
        self.origins = origins
        self.fetcher = fetcher

        self._lock = threading.Lock()
        self._jobs: Dict[str, DownloadJob] = {}
        self._pending_uploads: Set[Future] = set()

        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="blob-resolve")
        self._upload_executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="blob-upload")

    def materialize(self, identifier: str, destination_path: Path, *, timeout: Optional[float] = None) -> Tier:
        """
        Make sure the blob exists at destination_path.

        Joins the in-flight job for identifier if there is one, otherwise
        starts a new one. Blocks until the job finishes.

        Args:
            identifier: Content identifier (object key and registry key)
            destination_path: Local cache path to populate
            timeout: Seconds to wait; the job keeps running if this expires

        Returns:
            Tier that supplied the blob

        Raises:
            UnknownBlobError: No durable object and no origin entry
            DurableStoreError: Durable store failed with something other than a miss
            OriginFetchError: Origin download failed after all retries
            BlobWriteError: Local file could not be written
            concurrent.futures.TimeoutError: If timeout expired first
        """
        job = self._join_or_start(identifier, Path(destination_path))
        return job.future.result(timeout=timeout)

    def _join_or_start(self, identifier: str, destination_path: Path) -> DownloadJob:
        with self._lock:
            job = self._jobs.get(identifier)
            if job is not None:
                logger.debug(f"Joining in-flight download of {identifier}")
                return job
            job = DownloadJob(identifier=identifier, destination_path=destination_path)
            self._jobs[identifier] = job

        try:
            self._executor.submit(self._run_job, job)
        except RuntimeError as e:
            # Executor already shut down
            self._finish(job)
            job.future.set_exception(e)
        return job

    def _run_job(self, job: DownloadJob) -> None:
        try:
            tier = self._resolve(job.identifier, job.destination_path)
        except BaseException as e:
            logger.error(f"Resolving blob {job.identifier} failed: {e!r}")
            # Waiters must be released whatever escaped the pipeline
            self._finish(job)
            job.future.set_exception(e)
            if not isinstance(e, Exception):
                raise
        else:
            self._finish(job)
            job.future.set_result(tier)

    def _finish(self, job: DownloadJob) -> None:
        with self._lock:
            if self._jobs.get(job.identifier) is job:
                del self._jobs[job.identifier]

    def _resolve(self, identifier: str, destination_path: Path) -> Tier:
        """Tiered fetch: durable store, then origin; populate the store afterwards."""
        # A job that finished just before this one was registered already published the file
        if destination_path.exists():
            logger.debug(f"Blob {identifier} already present at {destination_path}")
            return "local"

        try:
            self.store.download(identifier, destination_path)
            return "durable"
        except ObjectNotFoundError:
            logger.info(f"Blob {identifier} not found in durable store; will download from upstream")
        except ObjectStoreError as e:
            raise DurableStoreError(f"downloading blob {identifier} from durable store: {e}") from e
        except OSError as e:
            raise BlobWriteError(f"writing blob {identifier} to {destination_path}: {e}") from e

        source = self.origins.resolve(identifier)
        self.fetcher.fetch(source, destination_path)

        self._schedule_upload(identifier, destination_path)
        return "origin"

    def _schedule_upload(self, identifier: str, source_path: Path) -> None:
        """Populate the durable store in the background; failures are only logged."""
        try:
            future = self._upload_executor.submit(self._upload, identifier, source_path)
        except RuntimeError:
            logger.warning(f"Not uploading blob {identifier}: coordinator is shutting down")
            return

        with self._lock:
            self._pending_uploads.add(future)
        future.add_done_callback(self._upload_done)

    def _upload(self, identifier: str, source_path: Path) -> bool:
        try:
            return self.store.upload(source_path, identifier)
        except (ObjectStoreError, OSError) as e:
            raise UploadError(f"uploading blob {identifier} to durable store: {e}") from e

    def _upload_done(self, future: Future) -> None:
        with self._lock:
            self._pending_uploads.discard(future)
        exc = future.exception()
        if exc is not None:
            logger.error(f"Durable store population failed: {exc}")

    def in_flight(self) -> List[str]:
        """Identifiers with a running resolution."""
        with self._lock:
            return sorted(self._jobs)

    def wait_for_uploads(self, timeout: Optional[float] = None) -> None:
        """Block until background uploads scheduled so far have finished."""
        with self._lock:
            pending = list(self._pending_uploads)
        if pending:
            wait_futures(pending, timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        """
        Stop accepting work.

        With wait=True, running resolutions finish first, then the uploads
        they scheduled.
        """
        self._executor.shutdown(wait=wait)
        self._upload_executor.shutdown(wait=wait)
