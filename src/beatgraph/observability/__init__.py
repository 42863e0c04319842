"""Observability module for beatgraph.

Provides structured logging for the engine and the CLI.
"""

from beatgraph.observability.logging import (
    close_file_logging,
    configure_logging,
    get_logger,
    get_logs_dir,
)

__all__ = [
    "close_file_logging",
    "configure_logging",
    "get_logger",
    "get_logs_dir",
]
