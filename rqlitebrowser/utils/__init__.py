"""Shared utilities: exceptions and logging"""

from .exceptions import (
    ConfigurationError,
    CSVParseError,
    RqliteBrowserError,
    RqliteError,
    RqliteTimeoutError,
    TransferStateError,
    TransportError,
    ValidationError,
    WorkerError,
)
from .logging import LoggingManager, get_logger

__all__ = [
    "ConfigurationError",
    "CSVParseError",
    "LoggingManager",
    "RqliteBrowserError",
    "RqliteError",
    "RqliteTimeoutError",
    "TransferStateError",
    "TransportError",
    "ValidationError",
    "WorkerError",
    "get_logger",
]
