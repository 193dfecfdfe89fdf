"""
Human-readable output formatting.

Centralizes all CLI output formatting so commands stay thin.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ..origins import OriginRegistry

_console = Console()


def print_origins(registry: OriginRegistry, cached: Optional[set] = None) -> None:
    """
    Print the origin registry as a table.

    Args:
        registry: Registry to display
        cached: Identifiers present in the local cache, if known
    """
    if not len(registry):
        _console.print("[dim]No origins registered[/]")
        return

    table = Table(title=f"Known origins ({len(registry)})")
    table.add_column("Identifier", style="cyan", no_wrap=True)
    table.add_column("URL", style="yellow")
    if cached is not None:
        table.add_column("Cached", style="green")

    for entry in registry:
        row = [entry.identifier, entry.url]
        if cached is not None:
            row.append("yes" if entry.identifier in cached else "")
        table.add_row(*row)

    _console.print(table)


def print_get_summary(identifier: str, path: Path, tier: str, output: Optional[Path] = None) -> None:
    """
    Print the outcome of a blob fetch.

    Args:
        identifier: Content identifier
        path: Local cache path
        tier: Tier that supplied the blob
        output: Copy destination, if one was requested
    """
    size = path.stat().st_size
    typer.echo(f"Blob: {identifier}")
    typer.echo(f"Source: {tier}")
    typer.echo(f"Cached at: {path} ({_format_bytes(size)})")
    if output is not None:
        typer.echo(f"Copied to: {output}")


def _format_bytes(size_bytes: int) -> str:
    """
    Format byte count as human-readable string.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted string (e.g., "1.5 MB", "42 KB")
    """
    if size_bytes == 0:
        return "0 B"
    elif size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    else:
        return f"{size_bytes / (1024 * 1024 * 1024):.1f} GB"
