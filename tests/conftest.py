"""Root pytest configuration for modelops-blobserver tests."""
import pytest

from modelops_blobserver.cache import BlobCache
from modelops_blobserver.fetcher import RetryingFetcher
from modelops_blobserver.settings import Settings

from .storage.fakes import FakeObjectStore, FakeOrigin


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test (requires cloud credentials)"
    )
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow (may take significant time)"
    )


# Set up test environment variables
@pytest.fixture(autouse=True)
def test_env(monkeypatch, tmp_path):
    """Automatically set up test environment variables."""
    monkeypatch.setenv("CACHE_BUCKET", "gs://test-bucket")
    monkeypatch.setenv("CACHE_DIR", str(tmp_path / "env-cache"))
    for var in (
        "BLOBSERVER_LISTEN",
        "BLOBSERVER_ORIGINS_FILE",
        "BLOBSERVER_PRELOAD",
        "AZURE_STORAGE_CONNECTION_STRING",
        "AZURE_STORAGE_ACCOUNT",
        "AZURE_STORAGE_KEY",
    ):
        monkeypatch.delenv(var, raising=False)


# Standardized test fixtures
@pytest.fixture
def cache_dir(tmp_path):
    """Local cache root for the cache under test."""
    return tmp_path / "cache"


@pytest.fixture
def settings(cache_dir):
    """Standard test settings."""
    return Settings(
        cache_bucket="gs://test-bucket",
        cache_dir=str(cache_dir),
        fetch_attempts=3,
        fetch_retry_delay_s=0.0,
        max_workers=4,
    )


@pytest.fixture
def store():
    """Standard fake durable store for testing."""
    return FakeObjectStore()


@pytest.fixture
def origin():
    """Standard fake origin for testing."""
    fake = FakeOrigin()
    yield fake
    # Never leave a gated request hanging
    if fake.gate is not None:
        fake.gate.set()


@pytest.fixture
def fetcher(origin):
    """Fetcher wired to the fake origin, with no delay between attempts."""
    return RetryingFetcher(
        attempts=3,
        retry_delay_s=0.0,
        client=origin.client(),
        sleep=lambda seconds: None,
    )


@pytest.fixture
def make_cache(settings, store, origin, fetcher):
    """
    Factory for a BlobCache over the fakes.

    Build the cache after registering origin blobs: the origin registry is
    fixed at construction time.
    """
    caches = []

    def _make(**overrides) -> BlobCache:
        cache = BlobCache.from_settings(
            overrides.pop("settings", settings),
            store=overrides.pop("store", store),
            origins=overrides.pop("origins", None) or origin.registry(),
            fetcher=overrides.pop("fetcher", fetcher),
        )
        caches.append(cache)
        return cache

    yield _make

    if origin.gate is not None:
        origin.gate.set()
    for cache in caches:
        cache.close()
