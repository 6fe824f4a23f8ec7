"""
Delimited-text (CSV) line parsing and value formatting.
"""

import json
from typing import Any, Iterable, List

from ..utils.exceptions import CSVParseError


def parse_csv_line(
    line: str, separator: str = ",", quote: str = '"', strict: bool = False
) -> List[str]:
    """Split one logical line into field values.

    Two states, unquoted and quoted. Inside quotes a doubled quote is a
    literal quote and the separator is ordinary text. Whitespace around a
    field is trimmed, whitespace inside quotes is kept. An unterminated quote
    is closed at end of line unless ``strict`` is set, in which case
    ``CSVParseError`` is raised.
    """
    fields: List[str] = []
    current: List[str] = []
    in_quotes = False
    # Span of the field text that came from inside quotes; never trimmed
    quoted_from = -1
    quoted_to = -1
    opened_at = 0

    def end_field() -> None:
        value = "".join(current)
        if quoted_from < 0:
            fields.append(value.strip())
        else:
            fields.append(
                value[:quoted_from].lstrip()
                + value[quoted_from:quoted_to]
                + value[quoted_to:].rstrip()
            )

    i = 0
    length = len(line)
    while i < length:
        char = line[i]
        if in_quotes:
            if char == quote:
                if i + 1 < length and line[i + 1] == quote:
                    current.append(quote)
                    i += 1
                else:
                    in_quotes = False
                    quoted_to = len(current)
            else:
                current.append(char)
        elif char == quote:
            in_quotes = True
            opened_at = i
            if quoted_from < 0:
                quoted_from = len(current)
        elif char == separator:
            end_field()
            current = []
            quoted_from = quoted_to = -1
        else:
            current.append(char)
        i += 1

    if in_quotes:
        if strict:
            raise CSVParseError(
                f"Unterminated quoted field starting at column {opened_at}",
                line=line,
                position=opened_at,
            )
        quoted_to = len(current)
    end_field()
    return fields


def _needs_quotes(text: str, separator: str, quote: str) -> bool:
    return (
        separator in text
        or quote in text
        or "\n" in text
        or "\r" in text
        or text != text.strip()
    )


def _quote_text(text: str, quote: str) -> str:
    return quote + text.replace(quote, quote + quote) + quote


def format_csv_value(value: Any, separator: str = ",", quote: str = '"') -> str:
    """Render one value.

    None is an empty field; dicts and lists become a quoted JSON string;
    text containing the separator, a quote, a line break or surrounding
    whitespace is quoted with inner quotes doubled.
    """
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return _quote_text(json.dumps(value, default=str), quote)
    if isinstance(value, bool):
        text = "true" if value else "false"
    else:
        text = str(value)
    if _needs_quotes(text, separator, quote):
        return _quote_text(text, quote)
    return text


def format_csv_row(values: Iterable[Any], separator: str = ",", quote: str = '"') -> str:
    return separator.join(format_csv_value(v, separator, quote) for v in values)
