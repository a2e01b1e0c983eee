"""Chat replay archive writer.

Appends raw comment records to a JSON array on disk as they arrive, so a
download never holds more than one page in memory. The closing bracket is
only written when the writing block exits cleanly; an interrupted download
leaves an unterminated array behind.
"""

from __future__ import annotations

import json
from pathlib import Path
from types import TracebackType
from typing import Any, Dict, Optional, TextIO, Type

from shared.logging.logger import get_logger

log = get_logger("shared.chat_replay.writer")

ARCHIVE_ENCODING = "utf-8-sig"


class ChatReplayWriter:
    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._handle: Optional[TextIO] = None
        self._count = 0

    @property
    def path(self) -> Path:
        return self._path

    @property
    def count(self) -> int:
        return self._count

    def __enter__(self) -> "ChatReplayWriter":
        self._handle = self._path.open("w", encoding=ARCHIVE_ENCODING, newline="")
        self._handle.write("[")
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        handle = self._handle
        self._handle = None
        if handle is None:
            return
        try:
            if exc_type is None:
                handle.write("]")
                log.debug(f"Closed archive {self._path} ({self._count} records)")
            else:
                log.warning(
                    f"Archive {self._path} left unterminated after "
                    f"{self._count} records ({exc_type.__name__})"
                )
        finally:
            handle.close()

    def write(self, record: Dict[str, Any]) -> None:
        if self._handle is None:
            raise RuntimeError("ChatReplayWriter.write called outside of a with block")

        if self._count:
            self._handle.write(",")
        json.dump(record, self._handle, ensure_ascii=False, separators=(",", ":"))
        self._count += 1


__all__ = ["ARCHIVE_ENCODING", "ChatReplayWriter"]
