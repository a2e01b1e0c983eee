"""Transcript rendering for chat replay archives.

Turns an archive written by the comments downloader into a plain text file
with one readable line per message:

    [01:02:05] @Foo (foo_login): hello
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Iterator, Optional

from services.twitch.models.comment import RechatMessage
from shared.logging.logger import get_logger
from shared.storage.chat_replay import ARCHIVE_ENCODING, iter_records
from shared.storage.paths import default_transcript_path, ensure_output_path
from shared.utils.file_times import copy_file_times

log = get_logger("twitch.transcript")

TRANSCRIPT_ENCODING = ARCHIVE_ENCODING

_ONE_MILLISECOND = timedelta(milliseconds=1)


@dataclass
class RenderResult:
    source: Path
    destination: Path
    line_count: int
    warning: Optional[str] = None

    @property
    def has_warning(self) -> bool:
        return self.warning is not None


def iter_messages(path: Path | str) -> Iterator[RechatMessage]:
    """Yield one RechatMessage per archived record, reading incrementally."""
    for record in iter_records(path):
        yield RechatMessage.from_record(record)


def format_timestamp(value: timedelta, show_milliseconds: bool = False) -> str:
    total_ms = value // _ONE_MILLISECOND
    hours, remainder = divmod(total_ms, 3_600_000)
    minutes, remainder = divmod(remainder, 60_000)
    seconds, millis = divmod(remainder, 1000)

    text = f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    if show_milliseconds:
        text += f".{millis:03d}"
    return text


def format_badges(message: RechatMessage) -> str:
    return "".join(
        marker
        for marker, present in (
            ("*", message.user_is_admin),
            ("#", message.user_is_broadcaster),
            ("@", message.user_is_moderator),
            ("+", message.user_is_subscriber),
        )
        if present
    )


def format_user_name(message: RechatMessage) -> str:
    if message.user_display_name.lower() == message.user_name.lower():
        return message.user_display_name
    return f"{message.user_display_name} ({message.user_name})"


def to_readable_line(
    message: RechatMessage,
    show_badges: bool = False,
    show_milliseconds: bool = False,
) -> Optional[str]:
    """
    Render a message as a transcript line.

    Returns None for messages that should not appear in the transcript;
    currently every message is rendered, including non-chat comments.
    """
    timestamp = format_timestamp(message.content_offset, show_milliseconds)
    badges = format_badges(message) if show_badges else ""
    # Action ("/me") messages read as narration, so no colon
    separator = "" if message.is_action else ":"
    return f"[{timestamp}] {badges}{format_user_name(message)}{separator} {message.message_text}"


def process_file(
    path_in: Path | str,
    path_out: Path | str | None = None,
    overwrite: bool = False,
    show_badges: bool = False,
    show_milliseconds: bool = False,
) -> RenderResult:
    """
    Render an archive to a transcript file.

    Raises OutputExistsError before reading anything when the destination
    exists and overwrite is disabled. Malformed records abort rendering; the
    partially written transcript is left in place.
    """
    source = Path(path_in)
    destination = Path(path_out) if path_out is not None else default_transcript_path(source)
    ensure_output_path(destination, overwrite)
    if not source.is_file():
        raise FileNotFoundError(f"Archive not found: {source}")

    log.info(f"Rendering {source} -> {destination}")

    line_count = 0
    with destination.open("w", encoding=TRANSCRIPT_ENCODING, newline="") as handle:
        for message in iter_messages(source):
            line = to_readable_line(message, show_badges, show_milliseconds)
            if line is None:
                continue
            handle.write(line)
            handle.write("\n")
            line_count += 1

    warning = None
    try:
        copy_file_times(source, destination)
    except OSError as exc:
        warning = f"Unable to set file created/modified time: {exc}"
        log.warning(f"{destination}: {warning}")

    log.info(f"Wrote {line_count} lines to {destination}")
    return RenderResult(
        source=source,
        destination=destination,
        line_count=line_count,
        warning=warning,
    )


__all__ = [
    "RenderResult",
    "format_badges",
    "format_timestamp",
    "format_user_name",
    "iter_messages",
    "process_file",
    "to_readable_line",
]
