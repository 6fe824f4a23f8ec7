"""
rqlitebrowser - browse, edit and bulk-transfer data in an rqlite cluster.

Streaming CSV/SQL import and paged CSV/SQL export run on a worker thread
per operation, with progress reporting and cooperative cancellation.
"""

__version__ = "0.3.0"

from .config import (
    BrowserSettings,
    ConfigManager,
    LoggingSettings,
    RqliteSettings,
    TransferSettings,
)
from .database import (
    ColumnDef,
    ConnectionStore,
    DatabaseConnection,
    ParameterizedStatement,
    QueryResult,
    RqliteClient,
)
from .transfer import (
    ExportJob,
    ExportManager,
    ExportProgress,
    ImportJob,
    ImportManager,
    ImportProgress,
    Phase,
    TransferFormat,
)
from .utils import (
    ConfigurationError,
    CSVParseError,
    LoggingManager,
    RqliteBrowserError,
    RqliteError,
    RqliteTimeoutError,
    TransferStateError,
    TransportError,
    ValidationError,
    WorkerError,
    get_logger,
)

__all__ = [
    "__version__",
    # Configuration
    "BrowserSettings",
    "ConfigManager",
    "LoggingSettings",
    "RqliteSettings",
    "TransferSettings",
    # Remote store and local connections
    "ColumnDef",
    "ConnectionStore",
    "DatabaseConnection",
    "ParameterizedStatement",
    "QueryResult",
    "RqliteClient",
    # Bulk transfer
    "ExportJob",
    "ExportManager",
    "ExportProgress",
    "ImportJob",
    "ImportManager",
    "ImportProgress",
    "Phase",
    "TransferFormat",
    # Utilities
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
