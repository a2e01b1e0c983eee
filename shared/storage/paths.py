"""
Shared storage path utilities.

This module defines how archive and transcript locations are derived and
guarded before any output is written.

Design goals:
- Single source of truth for output naming
- Precondition checks happen before any side effect
- No directories or files are created here
"""

from __future__ import annotations

from pathlib import Path

ARCHIVE_SUFFIX = ".json"
TRANSCRIPT_SUFFIX = ".txt"


class OutputExistsError(FileExistsError):
    """Raised when an output path already exists and overwrite is disabled."""


# ----------------------------------------------------------------------
# PATH HELPERS
# ----------------------------------------------------------------------

def default_archive_path(video_id: int, directory: Path | str = ".") -> Path:
    """
    Return the archive path used when the caller does not name one.

    Example:
        default_archive_path(123456) -> ./123456.json
    """

    return Path(directory) / f"{video_id}{ARCHIVE_SUFFIX}"


def default_transcript_path(source: Path | str) -> Path:
    """
    Return the transcript path for an archive.

    The extension is replaced by .txt. A source that is already a .txt file
    gets a "-p" suffix so rendering never targets its own input.
    """

    source = Path(source)
    if source.suffix.lower() == TRANSCRIPT_SUFFIX:
        return source.with_name(f"{source.stem}-p{TRANSCRIPT_SUFFIX}")
    return source.with_suffix(TRANSCRIPT_SUFFIX)


def ensure_output_path(path: Path | str, overwrite: bool) -> Path:
    """
    Check that `path` may be written.

    This function DOES NOT write files.
    """

    path = Path(path)
    if path.exists() and not overwrite:
        raise OutputExistsError(f"Output file already exists: {path}")
    return path


__all__ = [
    "ARCHIVE_SUFFIX",
    "TRANSCRIPT_SUFFIX",
    "OutputExistsError",
    "default_archive_path",
    "default_transcript_path",
    "ensure_output_path",
]
