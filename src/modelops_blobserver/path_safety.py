"""
Identifier safety utilities for the blob server.

A content identifier is used verbatim as a local filename, so it must name
exactly one file directly inside the cache root.
"""
from __future__ import annotations

from .errors import InvalidIdentifierError

__all__ = ["safe_identifier"]


def safe_identifier(identifier: str) -> str:
    """
    Validate an identifier before it is joined onto the cache root.

    This function enforces the following safety rules:
    - No empty strings, "." or ".."
    - No path separators ('/' or '\\') or NUL bytes
    - No leading '.' (reserved for in-progress temp files)

    Content is never checked against the identifier; this only guards the
    filesystem.

    Args:
        identifier: Caller-supplied content identifier

    Returns:
        The identifier unchanged

    Raises:
        InvalidIdentifierError: If identifier violates safety rules

    Examples:
        >>> safe_identifier("ecb6908345e7a10be94511eae715b6b6eadbc518b7c1dd0fd5ba8816b62b4dc9")
        'ecb6908345e7a10be94511eae715b6b6eadbc518b7c1dd0fd5ba8816b62b4dc9'

        >>> safe_identifier("../etc/passwd")
        InvalidIdentifierError: unsafe identifier: '../etc/passwd'
    """
    if not identifier or identifier in (".", ".."):
        raise InvalidIdentifierError(f"unsafe identifier: {identifier!r}")
    if "/" in identifier or "\\" in identifier or "\x00" in identifier:
        raise InvalidIdentifierError(f"unsafe identifier: {identifier!r}")
    if identifier.startswith("."):
        raise InvalidIdentifierError(f"unsafe identifier: {identifier!r}")
    return identifier
