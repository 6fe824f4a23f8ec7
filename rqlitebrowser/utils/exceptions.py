"""
Exception hierarchy for rqlitebrowser.

Transport failures, application errors embedded in successful responses and
worker-side failures are kept apart so callers can react to each of them.
"""

from typing import Any, Dict, Optional


class RqliteBrowserError(Exception):
    """Base exception for all rqlitebrowser errors"""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.error_code,
            "message": self.message,
            "context": self.context,
        }


class ConfigurationError(RqliteBrowserError):
    """Invalid or missing configuration"""


class ValidationError(RqliteBrowserError):
    """Invalid input supplied by the caller"""


class CSVParseError(ValidationError):
    """Malformed delimited-text line (strict parsing only)"""

    def __init__(self, message: str, line: str, position: int):
        super().__init__(message, context={"line": line, "position": position})
        self.line = line
        self.position = position


class TransportError(RqliteBrowserError):
    """Network failure talking to the remote store"""


class RqliteTimeoutError(TransportError):
    """A call to the remote store exceeded its timeout"""


class RqliteError(RqliteBrowserError):
    """Application error reported inside a successful HTTP response"""

    def __init__(self, message: str, sql_error: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.sql_error = sql_error or message


class WorkerError(RqliteBrowserError):
    """A pipeline worker failed and reported an error message"""


class TransferStateError(RqliteBrowserError):
    """Illegal progress transition, e.g. updating a finished operation"""
