"""
Tests for identifier safety validation.

Tests the path_safety module and its use by the cache when turning an
identifier into a local path.
"""
from __future__ import annotations

import pytest

from modelops_blobserver.errors import InvalidIdentifierError
from modelops_blobserver.path_safety import safe_identifier


class TestSafeIdentifier:
    """Test safe_identifier function directly."""

    def test_hex_hashes_allowed(self):
        """Test that ordinary content hashes pass unchanged."""
        h = "ecb6908345e7a10be94511eae715b6b6eadbc518b7c1dd0fd5ba8816b62b4dc9"
        assert safe_identifier(h) == h
        assert safe_identifier("abc123") == "abc123"

    def test_non_hex_identifiers_allowed(self):
        """Test that identifiers are opaque: only filesystem safety is checked."""
        assert safe_identifier("model-v1.gguf") == "model-v1.gguf"

    @pytest.mark.parametrize("identifier", ["", ".", ".."])
    def test_empty_and_dot_rejected(self, identifier):
        """Test that empty and dot identifiers are rejected."""
        with pytest.raises(InvalidIdentifierError, match="unsafe identifier"):
            safe_identifier(identifier)

    @pytest.mark.parametrize("identifier", ["a/b", "../etc/passwd", "/abs", "dir\\file", "nul\x00byte"])
    def test_separators_rejected(self, identifier):
        """Test that identifiers that would leave the cache root are rejected."""
        with pytest.raises(InvalidIdentifierError):
            safe_identifier(identifier)

    def test_leading_dot_rejected(self):
        """Test that hidden names are reserved for temp files."""
        with pytest.raises(InvalidIdentifierError):
            safe_identifier(".blob.tmp.abc")

    def test_error_is_value_error(self):
        """Test that callers catching ValueError still see the error."""
        with pytest.raises(ValueError):
            safe_identifier("a/b")


class TestCachePathSafety:
    """Test that the cache refuses unsafe identifiers before any I/O."""

    def test_get_blob_rejects_traversal(self, make_cache, store, origin):
        """Test that traversal attempts never reach a tier."""
        cache = make_cache()

        with pytest.raises(InvalidIdentifierError):
            cache.get_blob("../secrets")

        assert store.download_calls == 0
        assert origin.request_count == 0
