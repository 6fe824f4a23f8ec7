"""
SQL dump handling: INSERT-only statement filter and INSERT formatting.

The filter fails open. Dumps normally carry schema, pragmas and transaction
control next to the data; anything that is not an INSERT is skipped silently.
"""

import json
import math
import re
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Optional, Sequence

from ..database.statements import quote_identifier

_FIRST_KEYWORD = re.compile(r"\s*([A-Za-z]+)")


def is_insert_statement(statement: str) -> bool:
    match = _FIRST_KEYWORD.match(statement)
    return bool(match) and match.group(1).upper() == "INSERT"


def iter_insert_statements(statements: Iterable[str]) -> Iterator[str]:
    for statement in statements:
        statement = statement.strip()
        if statement and is_insert_statement(statement):
            yield statement


def format_sql_value(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return "NULL"
        return repr(value)
    if isinstance(value, (dict, list)):
        text = json.dumps(value, default=str)
    else:
        text = str(value)
    return "'" + text.replace("'", "''") + "'"


def format_insert_statement(
    table: str, headers: Sequence[str], row: Sequence[Any]
) -> str:
    columns = ", ".join(quote_identifier(h) for h in headers)
    values = ", ".join(format_sql_value(v) for v in row)
    return f"INSERT INTO {quote_identifier(table)} ({columns}) VALUES ({values});"


def format_sql_header(table: str, timestamp: Optional[datetime] = None) -> str:
    timestamp = timestamp or datetime.now(timezone.utc)
    return (
        f"-- Export of table {quote_identifier(table)}\n"
        f"-- Generated at {timestamp.isoformat()}\n"
        "\n"
    )
