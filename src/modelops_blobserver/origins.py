"""
Origin registry for known blobs.

Maps a content identifier to the upstream URL it can be downloaded from.
The registry is immutable once built; lookups are exact matches.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

import yaml

from .errors import UnknownBlobError

__all__ = ["KnownOrigin", "OriginRegistry", "DEFAULT_ORIGINS", "load_origins", "registry_from_settings"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KnownOrigin:
    """
    A blob with a known upstream source.

    Invariants:
    - identifier: non-empty, used verbatim as cache filename and object key
    - url: absolute http(s) URL
    """
    identifier: str
    url: str

    def __post_init__(self) -> None:
        if not self.identifier:
            raise ValueError("identifier must be non-empty")
        if not (self.url.startswith("https://") or self.url.startswith("http://")):
            raise ValueError(f"origin url must be http(s), got {self.url!r}")


# Hashes come from the x-linked-etag header of a HEAD request against the file.
DEFAULT_ORIGINS: tuple[KnownOrigin, ...] = (
    KnownOrigin(
        identifier="77ebb031649ac7a16b89b4078feb197d56a61941b703a980233069a2670c811b",
        url="https://huggingface.co/unsloth/Llama-3.3-70B-Instruct-GGUF/resolve/main/Llama-3.3-70B-Instruct-Q6_K/Llama-3.3-70B-Instruct-Q6_K-00001-of-00002.gguf",
    ),
    KnownOrigin(
        identifier="f50428a8c9912e949f5273174e66c9febdc7cd21617595de2dc0e5c9df536434",
        url="https://huggingface.co/unsloth/Llama-3.3-70B-Instruct-GGUF/resolve/main/Llama-3.3-70B-Instruct-Q6_K/Llama-3.3-70B-Instruct-Q6_K-00002-of-00002.gguf",
    ),
    KnownOrigin(
        identifier="ecb6908345e7a10be94511eae715b6b6eadbc518b7c1dd0fd5ba8816b62b4dc9",
        url="https://huggingface.co/unsloth/gemma-3-12b-it-GGUF/resolve/main/gemma-3-12b-it-Q4_K_M.gguf",
    ),
)


class OriginRegistry:
    """Static, exact-match lookup from identifier to origin URL."""

    def __init__(self, entries: Iterable[KnownOrigin] = DEFAULT_ORIGINS) -> None:
        self._entries: Dict[str, KnownOrigin] = {}
        for entry in entries:
            # Later registrations for the same identifier win
            self._entries[entry.identifier] = entry

    def resolve(self, identifier: str) -> str:
        """
        Get the origin URL for an identifier.

        Raises:
            UnknownBlobError: If the identifier has no registered origin
        """
        entry = self._entries.get(identifier)
        if entry is None:
            raise UnknownBlobError(identifier)
        return entry.url

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._entries

    def __iter__(self) -> Iterator[KnownOrigin]:
        return iter(sorted(self._entries.values(), key=lambda e: e.identifier))

    def __len__(self) -> int:
        return len(self._entries)


def load_origins(path: Path) -> OriginRegistry:
    """
    Load an origin registry from a YAML or JSON file.

    Accepted layouts, either top-level or under an "origins" key:

        origins:
          - identifier: ecb6908345e7...
            url: https://huggingface.co/.../gemma-3-12b-it-Q4_K_M.gguf

    or a mapping of identifier to URL.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file content has the wrong shape
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")

    if path.suffix == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)

    if isinstance(data, dict) and "origins" in data:
        data = data["origins"]

    entries: List[KnownOrigin] = []
    if isinstance(data, dict):
        for identifier, url in data.items():
            entries.append(KnownOrigin(identifier=str(identifier), url=str(url)))
    elif isinstance(data, list):
        for i, item in enumerate(data):
            if not isinstance(item, dict) or "identifier" not in item or "url" not in item:
                raise ValueError(f"origin entry {i} in {path} must have 'identifier' and 'url'")
            entries.append(KnownOrigin(identifier=str(item["identifier"]), url=str(item["url"])))
    else:
        raise ValueError(f"origins file {path} must contain a list or mapping")

    logger.debug(f"Loaded {len(entries)} origins from {path}")
    return OriginRegistry(entries)


def registry_from_settings(origins_file: Optional[str]) -> OriginRegistry:
    """Build the registry from the configured file, or the built-in list."""
    if origins_file:
        return load_origins(Path(origins_file).expanduser())
    return OriginRegistry(DEFAULT_ORIGINS)
