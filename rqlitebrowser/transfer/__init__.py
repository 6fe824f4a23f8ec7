"""Streaming bulk import and export"""

from .csv_format import format_csv_row, format_csv_value, parse_csv_line
from .decoder import (
    ByteSource,
    IncrementalTextDecoder,
    LineSplitter,
    StatementSplitter,
    StreamDecoder,
    iter_units,
)
from .exporter import ExportJob, ExportManager, format_rows
from .formats import TransferFormat, resolve_format
from .importer import ImportJob, ImportManager, parse_csv_source, parse_sql_source
from .progress import (
    CancellationFlag,
    ExportProgress,
    ImportProgress,
    Phase,
    ProgressTracker,
)
from .sql_format import (
    format_insert_statement,
    format_sql_header,
    format_sql_value,
    is_insert_statement,
    iter_insert_statements,
)
from .worker import MessageKind, Worker, WorkerMessage, wait_first_error

__all__ = [
    "ByteSource",
    "CancellationFlag",
    "ExportJob",
    "ExportManager",
    "ExportProgress",
    "ImportJob",
    "ImportManager",
    "ImportProgress",
    "IncrementalTextDecoder",
    "LineSplitter",
    "MessageKind",
    "Phase",
    "ProgressTracker",
    "StatementSplitter",
    "StreamDecoder",
    "TransferFormat",
    "Worker",
    "WorkerMessage",
    "format_csv_row",
    "format_csv_value",
    "format_insert_statement",
    "format_rows",
    "format_sql_header",
    "format_sql_value",
    "is_insert_statement",
    "iter_insert_statements",
    "iter_units",
    "parse_csv_line",
    "parse_csv_source",
    "parse_sql_source",
    "resolve_format",
    "wait_first_error",
]
