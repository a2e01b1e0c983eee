"""Chat replay archive reader.

Archives can hold hundreds of thousands of comments, so records are decoded
one object at a time from a sliding text buffer instead of loading the whole
array. Each iteration re-opens the file, which makes a reader reusable.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, TextIO

from shared.logging.logger import get_logger
from shared.storage.chat_replay.writer import ARCHIVE_ENCODING

log = get_logger("shared.chat_replay.reader")

DEFAULT_CHUNK_SIZE = 64 * 1024

_DECODER = json.JSONDecoder()
_WHITESPACE = " \t\r\n"


class MalformedArchiveError(ValueError):
    """Raised when an archive is not a well-formed JSON array of objects."""


class _ArrayScanner:
    def __init__(self, handle: TextIO, chunk_size: int) -> None:
        self._handle = handle
        self._chunk_size = chunk_size
        self._buffer = ""
        self._pos = 0
        self._eof = False

    def _fill(self) -> bool:
        if self._eof:
            return False
        chunk = self._handle.read(self._chunk_size)
        if not chunk:
            self._eof = True
            return False
        # Drop consumed text so the buffer never grows past one record
        self._buffer = self._buffer[self._pos:] + chunk
        self._pos = 0
        return True

    def peek(self) -> Optional[str]:
        """Return the next non-whitespace character, or None at end of file."""
        while True:
            while self._pos < len(self._buffer) and self._buffer[self._pos] in _WHITESPACE:
                self._pos += 1
            if self._pos < len(self._buffer):
                return self._buffer[self._pos]
            if not self._fill():
                return None

    def advance(self) -> None:
        self._pos += 1

    def decode_value(self) -> Any:
        while True:
            try:
                value, end = _DECODER.raw_decode(self._buffer, self._pos)
            except json.JSONDecodeError as exc:
                if self._fill():
                    continue
                raise MalformedArchiveError(f"invalid JSON record: {exc.msg}") from exc
            self._pos = end
            return value


class ChatReplayReader:
    """Forward-only reader yielding raw comment records in file order."""

    def __init__(self, path: Path | str, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._path = Path(path)
        self._chunk_size = chunk_size

    @property
    def path(self) -> Path:
        return self._path

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        return self._iter_records()

    def _iter_records(self) -> Iterator[Dict[str, Any]]:
        with self._path.open("r", encoding=ARCHIVE_ENCODING) as handle:
            scanner = _ArrayScanner(handle, self._chunk_size)

            if scanner.peek() != "[":
                raise MalformedArchiveError(f"{self._path}: archive is not a JSON array")
            scanner.advance()

            count = 0
            if scanner.peek() == "]":
                scanner.advance()
            else:
                while True:
                    if scanner.peek() != "{":
                        raise MalformedArchiveError(
                            f"{self._path}: element {count} is not a JSON object"
                        )
                    yield scanner.decode_value()
                    count += 1

                    token = scanner.peek()
                    if token == ",":
                        scanner.advance()
                        continue
                    if token == "]":
                        scanner.advance()
                        break
                    if token is None:
                        raise MalformedArchiveError(
                            f"{self._path}: archive ends before the closing bracket"
                        )
                    raise MalformedArchiveError(
                        f"{self._path}: unexpected {token!r} after element {count - 1}"
                    )

            if scanner.peek() is not None:
                raise MalformedArchiveError(f"{self._path}: trailing data after the array")

            log.debug(f"Read {count} records from {self._path}")


def iter_records(path: Path | str, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[Dict[str, Any]]:
    return iter(ChatReplayReader(path, chunk_size=chunk_size))


__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "ChatReplayReader",
    "MalformedArchiveError",
    "iter_records",
]
