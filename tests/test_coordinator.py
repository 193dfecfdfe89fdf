"""
Tests for single-flight download coordination.

Concurrent callers are lined up with a barrier and the origin gate, so the
first request is held open while the others arrive.
"""
from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError

import pytest

from modelops_blobserver.coordinator import DownloadCoordinator
from modelops_blobserver.errors import (
    BlobWriteError,
    DurableStoreError,
    OriginFetchError,
    UnknownBlobError,
)
from modelops_blobserver.storage.errors import ObjectStoreError


class AbortResolution(BaseException):
    """Non-Exception error escaping a resolution pipeline."""


@pytest.fixture
def make_coordinator(store, origin, fetcher):
    coordinators = []

    def _make(**kwargs) -> DownloadCoordinator:
        coordinator = DownloadCoordinator(
            store=kwargs.pop("store", store),
            origins=kwargs.pop("origins", None) or origin.registry(),
            fetcher=kwargs.pop("fetcher", fetcher),
            max_workers=kwargs.pop("max_workers", 4),
        )
        coordinators.append(coordinator)
        return coordinator

    yield _make

    if origin.gate is not None:
        origin.gate.set()
    for coordinator in coordinators:
        coordinator.shutdown(wait=True)


def _run_concurrently(n, fn):
    """Call fn from n threads released together; return results or exceptions."""
    barrier = threading.Barrier(n)

    def call():
        barrier.wait()
        try:
            return fn()
        except Exception as e:
            return e

    with ThreadPoolExecutor(max_workers=n) as pool:
        return list(pool.map(lambda _: call(), range(n)))


class TestTieredResolution:
    """Test tier order within one resolution."""

    def test_durable_hit(self, make_coordinator, store, origin, tmp_path):
        """Test that a durable object short-circuits the origin."""
        store.put("abc", b"from store")
        origin.add("abc", b"from origin")
        coordinator = make_coordinator()
        dest = tmp_path / "abc"

        assert coordinator.materialize("abc", dest) == "durable"
        assert dest.read_bytes() == b"from store"
        assert origin.request_count == 0

        coordinator.wait_for_uploads()
        assert store.upload_calls == 0

    def test_origin_fallback_populates_store(self, make_coordinator, store, origin, tmp_path):
        """Test that an origin download is uploaded to the durable store."""
        origin.add("abc", b"from origin")
        coordinator = make_coordinator()
        dest = tmp_path / "abc"

        assert coordinator.materialize("abc", dest) == "origin"
        assert dest.read_bytes() == b"from origin"
        assert origin.request_count == 1

        coordinator.wait_for_uploads(timeout=5)
        assert store.get("abc") == b"from origin"

    def test_unknown_blob(self, make_coordinator, store, origin, tmp_path):
        """Test that a blob in neither tier fails without creating files."""
        coordinator = make_coordinator()

        with pytest.raises(UnknownBlobError):
            coordinator.materialize("nope", tmp_path / "nope")

        assert store.download_calls == 1
        assert origin.request_count == 0
        assert list(tmp_path.iterdir()) == []

    def test_existing_destination_skips_tiers(self, make_coordinator, store, tmp_path):
        """Test that a job finding the file already published contacts nothing."""
        dest = tmp_path / "abc"
        dest.write_bytes(b"already here")
        coordinator = make_coordinator()

        assert coordinator.materialize("abc", dest) == "local"
        assert store.download_calls == 0

    def test_durable_transport_error(self, make_coordinator, store, origin, tmp_path):
        """Test that non-miss store failures abort without trying the origin."""
        store.fail_download = ObjectStoreError("connection reset by peer")
        origin.add("abc", b"from origin")
        coordinator = make_coordinator()

        with pytest.raises(DurableStoreError, match="connection reset by peer"):
            coordinator.materialize("abc", tmp_path / "abc")

        assert origin.request_count == 0

    def test_durable_write_error(self, make_coordinator, store, tmp_path):
        """Test that local write failures from the store tier surface as BlobWriteError."""
        store.fail_download = PermissionError("read-only filesystem")
        coordinator = make_coordinator()

        with pytest.raises(BlobWriteError):
            coordinator.materialize("abc", tmp_path / "abc")

    def test_upload_failure_is_not_fatal(self, make_coordinator, store, origin, tmp_path, caplog):
        """Test that a failed store upload is logged while the caller succeeds."""
        store.fail_upload = ObjectStoreError("permission denied")
        origin.add("abc", b"from origin")
        coordinator = make_coordinator()
        dest = tmp_path / "abc"

        with caplog.at_level("ERROR", logger="modelops_blobserver.coordinator"):
            assert coordinator.materialize("abc", dest) == "origin"
            coordinator.wait_for_uploads(timeout=5)
            # Done callbacks may run just after wait returns
            coordinator.shutdown(wait=True)

        assert dest.read_bytes() == b"from origin"
        assert "Durable store population failed" in caplog.text


class TestSingleFlight:
    """Test that concurrent requests share one pipeline."""

    def test_concurrent_callers_share_download(self, make_coordinator, store, origin, tmp_path):
        """Test that N concurrent misses cause one origin request."""
        origin.add("abc", b"shared bytes")
        origin.gate = threading.Event()
        coordinator = make_coordinator()
        dest = tmp_path / "abc"

        def release_gate():
            origin.request_started.wait(timeout=5)
            time.sleep(0.2)
            origin.gate.set()

        threading.Thread(target=release_gate, daemon=True).start()
        results = _run_concurrently(8, lambda: coordinator.materialize("abc", dest, timeout=10))

        assert origin.request_count == 1
        assert store.download_calls <= 8
        assert all(r in ("origin", "local") for r in results)
        assert dest.read_bytes() == b"shared bytes"

    def test_concurrent_callers_share_failure(self, make_coordinator, origin, tmp_path):
        """Test that joined callers see the same error as the first caller."""
        origin.add("abc", b"never served")
        origin.script("abc", 500, 500, 500)
        origin.gate = threading.Event()
        coordinator = make_coordinator()

        def release_gate():
            origin.request_started.wait(timeout=5)
            time.sleep(0.2)
            origin.gate.set()

        threading.Thread(target=release_gate, daemon=True).start()
        results = _run_concurrently(5, lambda: coordinator.materialize("abc", tmp_path / "abc", timeout=10))

        assert all(isinstance(r, OriginFetchError) for r in results)
        # One pipeline: three attempts, however many callers
        assert origin.request_count == 3
        assert not (tmp_path / "abc").exists()

    def test_distinct_identifiers_run_independently(self, make_coordinator, origin, tmp_path):
        origin.add("one", b"1")
        origin.add("two", b"2")
        coordinator = make_coordinator()

        assert coordinator.materialize("one", tmp_path / "one") == "origin"
        assert coordinator.materialize("two", tmp_path / "two") == "origin"
        assert sorted(origin.requests) == ["one", "two"]

    def test_job_removed_after_failure(self, make_coordinator, origin, tmp_path):
        """Test that a later request after a failure starts a fresh pipeline."""
        origin.add("abc", b"second time lucky")
        origin.script("abc", 500, 500, 500)
        coordinator = make_coordinator()
        dest = tmp_path / "abc"

        with pytest.raises(OriginFetchError):
            coordinator.materialize("abc", dest)
        assert coordinator.in_flight() == []

        assert coordinator.materialize("abc", dest) == "origin"
        assert origin.request_count == 4
        assert dest.read_bytes() == b"second time lucky"

    def test_caller_timeout_does_not_cancel_job(self, make_coordinator, origin, tmp_path):
        """Test that a waiter giving up leaves the download running."""
        origin.add("abc", b"eventually")
        origin.gate = threading.Event()
        coordinator = make_coordinator()
        dest = tmp_path / "abc"

        with pytest.raises(FutureTimeoutError):
            coordinator.materialize("abc", dest, timeout=0.1)

        assert coordinator.in_flight() == ["abc"]
        origin.gate.set()

        assert coordinator.materialize("abc", dest, timeout=10) in ("origin", "local")
        assert origin.request_count == 1
        assert dest.read_bytes() == b"eventually"

    def test_base_exception_releases_waiters(self, make_coordinator, store, tmp_path):
        """Test that a BaseException from the pipeline still completes the job."""
        store.fail_download = AbortResolution("worker aborted")
        coordinator = make_coordinator()

        with pytest.raises(AbortResolution):
            coordinator.materialize("abc", tmp_path / "abc", timeout=10)

        assert coordinator.in_flight() == []

    def test_materialize_after_shutdown_raises(self, make_coordinator, origin, tmp_path):
        origin.add("abc", b"x")
        coordinator = make_coordinator()
        coordinator.shutdown()

        with pytest.raises(RuntimeError):
            coordinator.materialize("abc", tmp_path / "abc")
        assert coordinator.in_flight() == []
