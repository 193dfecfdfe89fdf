"""
Operations package - error mapping and output formatting for the CLI.

Keeps CLI commands thin: exceptions bubble up to a single mapping point and
all human-readable output goes through the printers.
"""
from .mappers import exit_code_for, run_and_exit

__all__ = ["exit_code_for", "run_and_exit"]
