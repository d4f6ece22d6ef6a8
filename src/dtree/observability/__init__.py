"""Observability module for dtree.

Provides structured logging for the workspace engine and CLI.
"""

from dtree.observability.logging import (
    close_file_logging,
    configure_logging,
    get_logger,
    get_logs_dir,
    operation_context,
)

__all__ = [
    "close_file_logging",
    "configure_logging",
    "get_logger",
    "get_logs_dir",
    "operation_context",
]
