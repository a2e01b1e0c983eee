"""Chat replay archive storage.

An archive is a single UTF-8 (BOM) JSON array of raw comment records, written
incrementally by the fetcher and read back one record at a time by the
transcript renderer.
"""

from shared.storage.chat_replay.reader import (
    ChatReplayReader,
    MalformedArchiveError,
    iter_records,
)
from shared.storage.chat_replay.writer import ARCHIVE_ENCODING, ChatReplayWriter

__all__ = [
    "ARCHIVE_ENCODING",
    "ChatReplayReader",
    "ChatReplayWriter",
    "MalformedArchiveError",
    "iter_records",
]
