"""
URI parsing utilities for durable store buckets.

Provides consistent parsing and validation of bucket URLs across the
supported cloud providers (GCS, Azure).
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

__all__ = ["ParsedBucketURI", "parse_bucket_uri"]


@dataclass(frozen=True)
class ParsedBucketURI:
    """
    Parsed components of a bucket URL.

    Attributes:
        scheme: Storage provider scheme (gs, az)
        bucket: Bucket/container name
        original: Original URI string for error messages
    """
    scheme: Literal["gs", "az"]
    bucket: str
    original: str


def parse_bucket_uri(uri: str) -> ParsedBucketURI:
    """
    Parse and validate a bucket URL.

    Accepts URIs in the form: {gs|az}://bucket (one trailing slash allowed).
    Object keys are never part of the bucket URL: the key is the content
    identifier.

    Args:
        uri: Bucket URL to parse

    Returns:
        ParsedBucketURI with validated components

    Raises:
        ValueError: If URI format is invalid

    Examples:
        >>> parse_bucket_uri("gs://model-cache")
        ParsedBucketURI(scheme='gs', bucket='model-cache', original='gs://model-cache')
    """
    if not uri:
        raise ValueError("Bucket URI cannot be empty")

    if "\\" in uri:
        raise ValueError(f"Bucket URI contains backslashes (use forward slashes): {uri}")

    match = re.match(r"^(gs|az)://(.*)$", uri)
    if not match:
        raise ValueError(f"Invalid bucket URI format, expected gs://<bucket> or az://<container>: {uri}")

    scheme, remainder = match.groups()
    bucket = remainder[:-1] if remainder.endswith("/") else remainder

    if not bucket:
        raise ValueError(f"Bucket name cannot be empty: {uri}")

    if "/" in bucket:
        raise ValueError(f"Bucket URI must not contain a path: {uri}")

    return ParsedBucketURI(
        scheme=scheme,  # type: ignore  # We validated it's one of the literals
        bucket=bucket,
        original=uri,
    )
