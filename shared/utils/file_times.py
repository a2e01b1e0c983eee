"""File timestamp helpers for archives and transcripts.

Modification time is applied everywhere through ``os.utime``. Creation time can
only be written on Windows; other platforms keep the filesystem's own birth
time and the request is logged at debug level.
"""
from __future__ import annotations

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Tuple

from shared.logging.logger import get_logger

log = get_logger("shared.utils.file_times")

_UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_WINDOWS_EPOCH = datetime(1601, 1, 1, tzinfo=timezone.utc)

_FILE_WRITE_ATTRIBUTES = 0x0100
_FILE_SHARE_ALL = 0x0001 | 0x0002 | 0x0004
_OPEN_EXISTING = 3
_FILE_ATTRIBUTE_NORMAL = 0x0080


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_ns(value: datetime) -> int:
    return ((_to_utc(value) - _UNIX_EPOCH) // timedelta(microseconds=1)) * 1000


def _from_timestamp(seconds: float) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def get_file_times(path: Path | str) -> Tuple[Optional[datetime], datetime]:
    """Return ``(created, modified)`` for a file; ``created`` may be unknown."""

    stat = os.stat(path)
    birth = getattr(stat, "st_birthtime", None)
    if birth is None and sys.platform == "win32":
        birth = stat.st_ctime
    created = _from_timestamp(birth) if birth is not None else None
    return created, _from_timestamp(stat.st_mtime)


def _set_windows_creation_time(path: Path, created: datetime) -> None:
    import ctypes
    from ctypes import wintypes

    kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)
    kernel32.CreateFileW.restype = wintypes.HANDLE
    kernel32.CreateFileW.argtypes = [
        wintypes.LPCWSTR,
        wintypes.DWORD,
        wintypes.DWORD,
        wintypes.LPVOID,
        wintypes.DWORD,
        wintypes.DWORD,
        wintypes.HANDLE,
    ]
    kernel32.SetFileTime.argtypes = [
        wintypes.HANDLE,
        ctypes.POINTER(wintypes.FILETIME),
        ctypes.POINTER(wintypes.FILETIME),
        ctypes.POINTER(wintypes.FILETIME),
    ]
    kernel32.SetFileTime.restype = wintypes.BOOL
    kernel32.CloseHandle.argtypes = [wintypes.HANDLE]

    # FILETIME counts 100ns ticks since 1601-01-01 UTC
    ticks = ((_to_utc(created) - _WINDOWS_EPOCH) // timedelta(microseconds=1)) * 10
    filetime = wintypes.FILETIME(ticks & 0xFFFFFFFF, ticks >> 32)

    handle = kernel32.CreateFileW(
        str(path),
        _FILE_WRITE_ATTRIBUTES,
        _FILE_SHARE_ALL,
        None,
        _OPEN_EXISTING,
        _FILE_ATTRIBUTE_NORMAL,
        None,
    )
    if handle is None or handle == wintypes.HANDLE(-1).value:
        raise ctypes.WinError(ctypes.get_last_error())
    try:
        if not kernel32.SetFileTime(handle, ctypes.byref(filetime), None, None):
            raise ctypes.WinError(ctypes.get_last_error())
    finally:
        kernel32.CloseHandle(handle)


def set_file_times(
    path: Path | str,
    *,
    created: Optional[datetime],
    modified: datetime,
) -> None:
    """Stamp modification (and, where supported, creation) time onto a file.

    Raises ``OSError`` when the filesystem rejects the change.
    """

    path = Path(path)
    stat = os.stat(path)
    os.utime(path, ns=(stat.st_atime_ns, _to_ns(modified)))

    if created is None:
        return
    if sys.platform == "win32":
        _set_windows_creation_time(path, created)
    else:
        log.debug(
            f"Creation time {created.isoformat()} not applied to {path}: "
            f"unsupported on {sys.platform}"
        )


def copy_file_times(source: Path | str, destination: Path | str) -> None:
    created, modified = get_file_times(source)
    set_file_times(destination, created=created, modified=modified)


__all__ = ["get_file_times", "set_file_times", "copy_file_times"]
