"""
ModelOps blob server CLI

Implements 3 CLI verbs:
- serve: Run the HTTP blob server
- get: Fetch a blob through the cache tiers
- origins: List the blobs with a known upstream source
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.logging import RichHandler

from .atomic_write import write_stream_atomically
from .cli_context import CLIContext
from .operations import run_and_exit
from .operations.printers import print_get_summary, print_origins
from .origins import registry_from_settings
from .path_safety import safe_identifier
from .settings import DEFAULT_CACHE_DIR

app = typer.Typer(name="modelops-blobserver", help="ModelOps blob server CLI")

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=verbose)],
        force=True,
    )


@app.callback()
def _main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """ModelOps blob server: content-addressed model artifact cache."""
    _configure_logging(verbose)


@app.command()
def serve(
    listen: Optional[str] = typer.Option(None, "--listen", help="Listen address (host:port)"),
    cache_dir: Optional[str] = typer.Option(None, "--cache-dir", help="Local cache directory"),
) -> None:
    """Serve blobs over HTTP, pulling misses through the durable store and origin."""

    def _serve() -> None:
        import uvicorn

        from .server import create_app

        context = CLIContext.from_env(cache_dir=cache_dir, listen=listen)
        settings = context.settings
        try:
            cache = context.cache
            if settings.preload:
                cache.preload(settings.preload)

            logger.info(f"Serving on {settings.listen!r} from {cache.base_dir}")
            uvicorn.run(
                create_app(cache),
                host=settings.listen_host,
                port=settings.listen_port,
                log_config=None,
            )
        finally:
            context.close()

    run_and_exit(_serve)


@app.command()
def get(
    identifier: str = typer.Argument(..., help="Content identifier of the blob"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Copy the blob to this path"),
    cache_dir: Optional[str] = typer.Option(None, "--cache-dir", help="Local cache directory"),
) -> None:
    """Fetch a blob into the local cache, optionally copying it out."""

    def _get() -> None:
        safe_identifier(identifier)
        context = CLIContext.from_env(cache_dir=cache_dir)
        try:
            cache = context.cache
            tier = cache.materialize(identifier)
            path = cache.path_for(identifier)
            if output is not None:
                with open(path, "rb") as src:
                    write_stream_atomically(output, src)
            print_get_summary(identifier, path, tier, output)
        finally:
            context.close()

    run_and_exit(_get)


@app.command()
def origins(
    origins_file: Optional[str] = typer.Option(
        None, "--origins-file", envvar="BLOBSERVER_ORIGINS_FILE", help="YAML/JSON origin registry"
    ),
    cache_dir: str = typer.Option(
        DEFAULT_CACHE_DIR, "--cache-dir", envvar="CACHE_DIR", help="Local cache directory"
    ),
) -> None:
    """List blobs with a known origin and whether they are cached locally."""

    def _origins() -> None:
        registry = registry_from_settings(origins_file)
        cache_path = Path(cache_dir).expanduser()
        cached = {p.name for p in cache_path.iterdir() if p.is_file()} if cache_path.is_dir() else set()
        print_origins(registry, cached=cached)

    run_and_exit(_origins)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
