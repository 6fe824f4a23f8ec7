"""
Streaming decoding and unit splitting.

Bytes arrive in fixed-size chunks. They are decoded incrementally (a
multi-byte character split across two chunks is carried over, never
corrupted) and reassembled into logical units: lines for delimited text,
statements for SQL dumps. Memory stays bounded by the longest unit.
"""

import codecs
import io
import os
import re
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, List, Optional, Union

from ..utils.exceptions import ValidationError

DEFAULT_CHUNK_SIZE = 64 * 1024


class IncrementalTextDecoder:
    """bytes -> str across chunk boundaries.

    The default ``utf-8-sig`` codec drops a leading byte order mark.
    Undecodable bytes are replaced rather than raised.
    """

    def __init__(self, encoding: str = "utf-8-sig"):
        try:
            factory = codecs.getincrementaldecoder(encoding)
        except LookupError as e:
            raise ValidationError(f"Unknown encoding: {encoding}") from e
        self._decoder = factory(errors="replace")

    def decode(self, chunk: bytes) -> str:
        return self._decoder.decode(chunk, final=False)

    def flush(self) -> str:
        return self._decoder.decode(b"", final=True)


class LineSplitter:
    """Splits text on a separator, keeping the incomplete tail buffered"""

    def __init__(self, separator: str = "\n"):
        self.separator = separator
        self._buffer = ""

    def feed(self, text: str) -> List[str]:
        self._buffer += text
        cut = self._buffer.rfind(self.separator)
        if cut == -1:
            return []
        complete = self._buffer[:cut]
        self._buffer = self._buffer[cut + len(self.separator) :]
        return self._clean(complete.split(self.separator))

    def finish(self) -> List[str]:
        tail, self._buffer = self._buffer, ""
        return self._clean([tail])

    @staticmethod
    def _clean(units: Iterable[str]) -> List[str]:
        return [u.rstrip("\r") for u in units if u.strip()]


# Characters that can change the scanner state outside quotes and comments
_STATEMENT_SPECIALS = re.compile(r"[;'\"\-/]")

# Second character of each two-character comment opener
_COMMENT_OPENERS = {"-": "-", "/": "*"}


class StatementSplitter:
    """Splits SQL text on a terminator outside quoted literals.

    ``--`` line comments and ``/* */`` block comments are stripped from the
    statement text. Quote and comment state carry over between ``feed``
    calls, so a chunk boundary landing inside a literal or a comment does
    not split the statement.
    """

    def __init__(self, terminator: str = ";"):
        if len(terminator) != 1:
            raise ValidationError("Statement terminator must be one character")
        self.terminator = terminator
        self._specials = (
            _STATEMENT_SPECIALS
            if terminator == ";"
            else re.compile("[" + re.escape(terminator + "'\"-/") + "]")
        )
        self._parts: List[str] = []
        self._quote: Optional[str] = None
        self._in_comment = False
        self._in_block = False
        self._held = ""

    def feed(self, text: str) -> List[str]:
        text = self._held + text
        self._held = ""
        units: List[str] = []
        start = 0
        pos = 0
        end = len(text)

        while pos < end:
            if self._in_comment:
                newline = text.find("\n", pos)
                if newline == -1:
                    pos = start = end
                    break
                self._in_comment = False
                pos = start = newline
                continue

            if self._in_block:
                close = text.find("*/", pos)
                if close == -1:
                    # A trailing "*" may be the first half of "*/"
                    if end - 1 >= pos and text[end - 1] == "*":
                        self._held = "*"
                    pos = start = end
                    break
                self._in_block = False
                self._parts.append(" ")
                pos = start = close + 2
                continue

            if self._quote is not None:
                close = text.find(self._quote, pos)
                if close == -1:
                    pos = end
                    break
                self._quote = None
                pos = close + 1
                continue

            match = self._specials.search(text, pos)
            if match is None:
                pos = end
                break
            index = match.start()
            char = text[index]

            if char == self.terminator:
                self._parts.append(text[start:index])
                units.append("".join(self._parts))
                self._parts = []
                pos = start = index + 1
            elif char in _COMMENT_OPENERS:
                if index + 1 == end:
                    # Cannot tell "-" from "--" or "/" from "/*" until the
                    # next chunk arrives
                    self._parts.append(text[start:index])
                    self._held = char
                    pos = start = end
                    break
                if text[index + 1] == _COMMENT_OPENERS[char]:
                    self._parts.append(text[start:index])
                    if char == "-":
                        self._in_comment = True
                    else:
                        self._in_block = True
                    pos = start = index + 2
                else:
                    pos = index + 1
            else:
                self._quote = char
                pos = index + 1

        if not (self._in_comment or self._in_block):
            self._parts.append(text[start:end])
        return self._clean(units)

    def finish(self) -> List[str]:
        tail = "".join(self._parts)
        if not self._in_block:
            tail += self._held
        self._parts = []
        self._held = ""
        self._quote = None
        self._in_comment = False
        self._in_block = False
        return self._clean([tail])

    @staticmethod
    def _clean(units: Iterable[str]) -> List[str]:
        return [u.strip() for u in units if u.strip()]


Splitter = Union[LineSplitter, StatementSplitter]


class StreamDecoder:
    """Byte chunks in, complete logical units out"""

    def __init__(self, splitter: Splitter, encoding: str = "utf-8-sig"):
        self.splitter = splitter
        self._decoder = IncrementalTextDecoder(encoding)

    def feed(self, chunk: bytes) -> List[str]:
        return self.splitter.feed(self._decoder.decode(chunk))

    def finish(self) -> List[str]:
        units = self.splitter.feed(self._decoder.flush())
        return units + self.splitter.finish()


def iter_units(
    chunks: Iterable[bytes], splitter: Splitter, encoding: str = "utf-8-sig"
) -> Iterator[str]:
    """Lazily yield units from an iterable of byte chunks"""
    decoder = StreamDecoder(splitter, encoding)
    for chunk in chunks:
        yield from decoder.feed(chunk)
    yield from decoder.finish()


class ByteSource:
    """A byte-streamable import source: a path, raw bytes or a binary file"""

    def __init__(
        self,
        source: Union[str, os.PathLike, bytes, BinaryIO],
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        if chunk_size <= 0:
            raise ValidationError("chunk_size must be greater than zero")
        self.chunk_size = chunk_size
        self._path: Optional[Path] = None
        self._data: Optional[bytes] = None
        self._stream: Optional[BinaryIO] = None

        if isinstance(source, (bytes, bytearray)):
            self._data = bytes(source)
            self.name = "<bytes>"
            self.total_bytes = len(self._data)
        elif isinstance(source, (str, os.PathLike)):
            self._path = Path(source)
            if not self._path.is_file():
                raise ValidationError(f"Import file not found: {self._path}")
            self.name = self._path.name
            self.total_bytes = self._path.stat().st_size
        elif hasattr(source, "read"):
            self._stream = source
            self.name = getattr(source, "name", "<stream>")
            self.total_bytes = self._stream_size(source)
        else:
            raise ValidationError(
                f"Unsupported import source type: {type(source).__name__}"
            )

    @property
    def suffix(self) -> str:
        return Path(str(self.name)).suffix.lower()

    @staticmethod
    def _stream_size(stream: BinaryIO) -> int:
        try:
            if not stream.seekable():
                return 0
            current = stream.tell()
            size = stream.seek(0, io.SEEK_END)
            stream.seek(current)
            return size - current
        except (OSError, ValueError):
            return 0

    def chunks(self) -> Iterator[bytes]:
        if self._data is not None:
            for offset in range(0, len(self._data), self.chunk_size):
                yield self._data[offset : offset + self.chunk_size]
            return
        if self._path is not None:
            with open(self._path, "rb") as f:
                yield from self._read(f)
            return
        yield from self._read(self._stream)

    def _read(self, stream: BinaryIO) -> Iterator[bytes]:
        while True:
            chunk = stream.read(self.chunk_size)
            if not chunk:
                return
            yield chunk
