"""Supported bulk transfer formats"""

from enum import Enum
from typing import Optional, Union

from ..utils.exceptions import ValidationError


class TransferFormat(str, Enum):
    CSV = "csv"
    SQL = "sql"

    @property
    def media_type(self) -> str:
        return "text/csv" if self is TransferFormat.CSV else "application/sql"


def resolve_format(
    fmt: Optional[Union[str, TransferFormat]], suffix: str = ""
) -> TransferFormat:
    """Explicit format wins; otherwise detect from a file suffix"""
    if fmt is not None:
        try:
            return TransferFormat(str(getattr(fmt, "value", fmt)).lower())
        except ValueError:
            raise ValidationError(f"Unsupported transfer format: {fmt}")

    suffix = suffix.lower().lstrip(".")
    if suffix in ("csv", "txt"):
        return TransferFormat.CSV
    if suffix == "sql":
        return TransferFormat.SQL
    raise ValidationError(
        f"Cannot detect format from suffix '.{suffix}'; pass format='csv' or 'sql'"
    )
