"""
Error mapping and CLI utilities.

Provides centralized exception-to-exit-code mapping and CLI command wrappers
to ensure consistent error handling across all Typer commands.
"""
from __future__ import annotations

import logging
from typing import Callable, TypeVar

import typer

T = TypeVar('T')

logger = logging.getLogger(__name__)

EXIT_CODES = {
    "UnknownBlobError": 1,
    "InvalidIdentifierError": 2,
    "ValueError": 2,
    "OriginFetchError": 3,
    "DurableStoreError": 3,
    "BlobWriteError": 4,
}


def exit_code_for(exc: BaseException) -> int:
    """
    Map exception to standardized exit code.

    Returns exit codes:
    - 0: Success
    - 1: Blob not known to any tier (UnknownBlobError)
    - 2: Invalid input or configuration (InvalidIdentifierError, ValueError)
    - 3: Network/store error (OriginFetchError, DurableStoreError) or unknown error
    - 4: Local cache write failure (BlobWriteError)

    Args:
        exc: Exception to map

    Returns:
        Exit code (1-4, with 3 as fallback for unknown exceptions)
    """
    return EXIT_CODES.get(type(exc).__name__, 3)


def run_and_exit(func: Callable[[], T]) -> T:
    """
    Unified error wrapper for CLI commands.

    Executes the given function and maps any exceptions to appropriate
    exit codes using typer.Exit, after reporting the error on stderr.

    Args:
        func: Function to execute

    Returns:
        Function result if successful

    Raises:
        typer.Exit: With appropriate exit code if function raises exception
    """
    try:
        return func()
    except typer.Exit:
        raise
    except Exception as e:
        logger.debug("Command failed", exc_info=True)
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=exit_code_for(e)) from e
