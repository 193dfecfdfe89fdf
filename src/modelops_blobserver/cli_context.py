"""
CLI Context for managing application dependencies.

Provides a clean way to manage CLI-level dependencies like settings and the
blob cache, avoiding global state and enabling proper dependency injection.
"""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Optional

from .cache import BlobCache
from .settings import Settings, create_settings_from_env


@dataclass
class CLIContext:
    """
    Shared context for CLI commands.

    Manages application-level dependencies (settings, cache) that are
    initialized once and shared across a CLI command execution.
    """
    settings: Settings
    _cache: Optional[BlobCache] = None

    @classmethod
    def from_env(cls, *, cache_dir: Optional[str] = None, listen: Optional[str] = None) -> CLIContext:
        """
        Create CLI context from environment variables.

        Command-line values, when given, override the environment.

        Returns:
            CLIContext with settings loaded from environment
        """
        settings = create_settings_from_env()
        overrides = {}
        if cache_dir:
            overrides["cache_dir"] = cache_dir
        if listen:
            overrides["listen"] = listen
        if overrides:
            settings = dataclasses.replace(settings, **overrides)
        return cls(settings=settings)

    @property
    def cache(self) -> BlobCache:
        """
        Get or create the blob cache (lazy initialization).

        The cache owns the download coordinator, so exactly one exists per
        command execution.
        """
        if self._cache is None:
            self._cache = BlobCache.from_settings(self.settings)
        return self._cache

    def close(self) -> None:
        if self._cache is not None:
            self._cache.close()
            self._cache = None
