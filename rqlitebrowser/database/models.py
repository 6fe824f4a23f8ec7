"""
Pydantic models for remote-store responses and saved connections.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ColumnDef(BaseModel):
    """One column from PRAGMA table_info, in declaration order"""

    name: str
    type: str = ""
    primary_key: bool = False
    # 1-based position inside a composite key, 0 when not part of the key
    primary_key_position: int = 0
    not_null: bool = False
    default_value: Optional[str] = None


class QueryResult(BaseModel):
    """One per-statement result of a read.

    rqlite answers in either shape: ``values`` (array form, column order kept)
    or ``rows`` (associative form). ``records()`` always returns ordered dicts.
    """

    model_config = ConfigDict(extra="ignore")

    columns: List[str] = Field(default_factory=list)
    # A list in array form, a column -> type mapping in associative form
    types: Union[List[str], Dict[str, str]] = Field(default_factory=list)
    values: Optional[List[List[Any]]] = None
    rows: Optional[List[Dict[str, Any]]] = None
    error: Optional[str] = None
    rows_affected: Optional[int] = None
    last_insert_id: Optional[int] = None
    time: Optional[float] = None

    def records(self) -> List[Dict[str, Any]]:
        if self.values is not None:
            return [dict(zip(self.columns, row)) for row in self.values]
        if self.rows is None:
            return []
        if not self.columns:
            return list(self.rows)
        return [{col: row.get(col) for col in self.columns} for row in self.rows]

    @property
    def is_write(self) -> bool:
        return self.rows_affected is not None and not self.columns


class ExecuteResult(BaseModel):
    """Per-statement result of a write"""

    model_config = ConfigDict(extra="ignore")

    rows_affected: Optional[int] = None
    last_insert_id: Optional[int] = None
    raft_index: Optional[int] = None
    error: Optional[str] = None
    time: Optional[float] = None


class DatabaseConnection(BaseModel):
    """Saved connection metadata"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    url: str
    username: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)
    created_at: datetime
