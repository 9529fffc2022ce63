"""Observability module for Parley.

Provides structured logging shared by the engine, backends and CLI.
"""

from parley.observability.logging import (
    close_file_logging,
    configure_logging,
    get_logger,
    log_context,
)

__all__ = [
    "close_file_logging",
    "configure_logging",
    "get_logger",
    "log_context",
]
