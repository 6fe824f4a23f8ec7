"""
Parameterized statement helpers.

User data never gets interpolated into SQL text for writes: values travel as
bound parameters next to a template made of placeholders. Only identifiers
(table and column names) are embedded, always double-quoted.
"""

from dataclasses import dataclass, field
from typing import Any, List, Sequence, Tuple

from ..utils.exceptions import ValidationError


def quote_identifier(name: str) -> str:
    """Double-quote an SQL identifier, doubling embedded quotes"""
    if not name:
        raise ValidationError("Identifier must not be empty")
    return '"' + name.replace('"', '""') + '"'


@dataclass(frozen=True)
class ParameterizedStatement:
    """SQL template plus ordered bound values"""

    sql: str
    params: Tuple[Any, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # Normalise lists passed by callers into an immutable tuple
        object.__setattr__(self, "params", tuple(self.params))

    def to_wire(self) -> List[Any]:
        """rqlite encodes a statement as [sql, param1, param2, ...]"""
        return [self.sql, *self.params]


def build_insert_statement(
    table: str, columns: Sequence[str], values: Sequence[Any]
) -> ParameterizedStatement:
    if len(columns) != len(values):
        raise ValidationError(
            f"Column/value count mismatch for {table}: "
            f"{len(columns)} columns, {len(values)} values"
        )
    column_list = ", ".join(quote_identifier(c) for c in columns)
    placeholders = ", ".join("?" for _ in columns)
    sql = f"INSERT INTO {quote_identifier(table)} ({column_list}) VALUES ({placeholders})"
    return ParameterizedStatement(sql, tuple(values))


def build_update_statement(
    table: str,
    column: str,
    new_value: Any,
    primary_key: str,
    primary_key_value: Any,
) -> ParameterizedStatement:
    """Single-cell edit keyed by primary key"""
    sql = (
        f"UPDATE {quote_identifier(table)} SET {quote_identifier(column)} = ? "
        f"WHERE {quote_identifier(primary_key)} = ?"
    )
    return ParameterizedStatement(sql, (new_value, primary_key_value))


def build_select_page(
    table: str, page: int, page_size: int, order_by: Sequence[str] = ()
) -> str:
    """SELECT for a 1-based page; limit/offset are integers, never user text.

    Keyless tables are paged in rowid order so concurrent pages never overlap.
    """
    if page < 1:
        raise ValidationError(f"Page numbers start at 1, got {page}")
    if page_size <= 0:
        raise ValidationError(f"Page size must be positive, got {page_size}")
    offset = (int(page) - 1) * int(page_size)
    sql = f"SELECT * FROM {quote_identifier(table)}"
    if order_by:
        sql += " ORDER BY " + ", ".join(quote_identifier(c) for c in order_by)
    else:
        sql += " ORDER BY rowid"
    return f"{sql} LIMIT {int(page_size)} OFFSET {offset}"
