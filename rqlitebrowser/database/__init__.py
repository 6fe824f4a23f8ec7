"""Remote store client, statement builders and saved connections"""

from .client import RqliteClient, generate_table_ddl, primary_key_columns
from .connections import ConnectionStore, SavedConnection
from .models import ColumnDef, DatabaseConnection, ExecuteResult, QueryResult
from .statements import (
    ParameterizedStatement,
    build_insert_statement,
    build_select_page,
    build_update_statement,
    quote_identifier,
)

__all__ = [
    "ColumnDef",
    "ConnectionStore",
    "DatabaseConnection",
    "ExecuteResult",
    "ParameterizedStatement",
    "QueryResult",
    "RqliteClient",
    "SavedConnection",
    "build_insert_statement",
    "build_select_page",
    "build_update_statement",
    "generate_table_ddl",
    "primary_key_columns",
    "quote_identifier",
]
