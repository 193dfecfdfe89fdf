# Fake implementations for testing

from .fake_object_store import FakeObjectStore
from .fake_origin import FakeOrigin, ORIGIN_BASE_URL

__all__ = ["FakeObjectStore", "FakeOrigin", "ORIGIN_BASE_URL"]
