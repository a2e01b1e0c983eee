from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx

from services.twitch.models.comment import (
    MalformedCommentError,
    RechatMessage,
    try_get_content_offset,
)
from shared.config.rechat import RechatApiConfig, load_rechat_config
from shared.logging.logger import get_logger
from shared.storage.chat_replay import ChatReplayWriter
from shared.storage.paths import ensure_output_path
from shared.utils.file_times import set_file_times

log = get_logger("twitch.comments", runtime="rechat")

ProgressCallback = Callable[[int, Optional[timedelta]], None]


class MalformedPageError(ValueError):
    """Raised when a comments page is not the expected JSON shape."""


@dataclass
class CommentPage:
    comments: List[Dict[str, Any]] = field(default_factory=list)
    next_cursor: Optional[str] = None


@dataclass
class DownloadResult:
    path: Path
    page_count: int
    comment_count: int
    video_started_at: Optional[datetime] = None
    last_message_at: Optional[datetime] = None
    warning: Optional[str] = None

    @property
    def has_warning(self) -> bool:
        return self.warning is not None


class TwitchCommentsClient:
    """
    Blocking client for the Twitch v5 video comments endpoint.

    - One httpx.Client per instance; callers own its lifecycle (`close()` or
      use as a context manager).
    - Connection retries and timeouts are delegated to httpx.
    - Non-2xx responses raise httpx.HTTPStatusError.
    """

    def __init__(
        self,
        config: Optional[RechatApiConfig] = None,
        *,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.config = config or load_rechat_config()
        self.client = httpx.Client(
            headers=self.config.headers(),
            timeout=self.config.timeout_seconds,
            transport=transport or httpx.HTTPTransport(retries=self.config.connect_retries),
        )

    def __enter__(self) -> "TwitchCommentsClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self.client.close()

    def comments_url(self, video_id: int) -> str:
        return f"{self.config.base_url}/videos/{video_id}/comments"

    def fetch_page(self, video_id: int, cursor: Optional[str] = None) -> CommentPage:
        if cursor is None:
            params = {"content_offset_seconds": "0"}
        else:
            params = {"cursor": cursor}

        response = self.client.get(self.comments_url(video_id), params=params)
        response.raise_for_status()
        return self._parse_page(response.text)

    @staticmethod
    def _parse_page(text: str) -> CommentPage:
        try:
            payload = json.loads(text)
        except ValueError as exc:
            raise MalformedPageError(f"Comments page is not valid JSON: {exc}") from exc

        if not isinstance(payload, dict):
            raise MalformedPageError("Comments page root is not an object")

        comments = payload.get("comments")
        if not isinstance(comments, list):
            raise MalformedPageError("Comments page has no 'comments' list")
        if not all(isinstance(comment, dict) for comment in comments):
            raise MalformedPageError("Comments page contains a non-object comment")

        if "_next" not in payload:
            raise MalformedPageError("Comments page has no '_next' field")
        next_cursor = payload["_next"]
        if next_cursor is not None and not isinstance(next_cursor, str):
            raise MalformedPageError("Comments page '_next' is not a string")

        return CommentPage(comments=comments, next_cursor=next_cursor or None)


def _report_progress(
    callback: Optional[ProgressCallback],
    page_count: int,
    last_comment: Optional[Dict[str, Any]],
) -> None:
    if callback is None:
        return
    content_offset = try_get_content_offset(last_comment)
    try:
        callback(page_count, content_offset)
    except Exception as e:
        log.warning(f"Progress callback failed on page {page_count}: {e}")


def download_file(
    video_id: int,
    path: Path | str,
    overwrite: bool = False,
    progress_callback: Optional[ProgressCallback] = None,
    *,
    client: Optional[TwitchCommentsClient] = None,
) -> DownloadResult:
    """
    Download every comment of a video into an archive file.

    Pages are requested strictly in sequence, each with the cursor of the
    previous response, and records are streamed to disk as they arrive.
    Only the first and last records stay in memory, for the file times.
    """
    path = ensure_output_path(path, overwrite)

    owns_client = client is None
    if client is None:
        client = TwitchCommentsClient()

    first_comment: Optional[Dict[str, Any]] = None
    last_comment: Optional[Dict[str, Any]] = None
    page_count = 0

    log.info(f"Downloading comments for video {video_id} -> {path}")

    try:
        with ChatReplayWriter(path) as writer:
            cursor: Optional[str] = None
            while True:
                page = client.fetch_page(video_id, cursor)
                for comment in page.comments:
                    writer.write(comment)
                    if first_comment is None:
                        first_comment = comment
                    last_comment = comment

                page_count += 1
                log.debug(
                    f"[video {video_id}] page {page_count}: "
                    f"{len(page.comments)} comments (total={writer.count})"
                )
                _report_progress(progress_callback, page_count, last_comment)

                if page.next_cursor is None:
                    break
                cursor = page.next_cursor
            comment_count = writer.count
    finally:
        if owns_client:
            client.close()

    result = DownloadResult(path=path, page_count=page_count, comment_count=comment_count)
    log.info(f"Downloaded {comment_count} comments in {page_count} pages for video {video_id}")

    if first_comment is None or last_comment is None:
        return result

    try:
        first_message = RechatMessage.from_record(first_comment)
        last_message = RechatMessage.from_record(last_comment)
        result.video_started_at = first_message.video_started_at
        result.last_message_at = last_message.created_at
        set_file_times(
            path,
            created=result.video_started_at,
            modified=result.last_message_at,
        )
    except (MalformedCommentError, OverflowError, OSError) as e:
        result.warning = f"Unable to set file created/modified time: {e}"
        log.warning(f"{path}: {result.warning}")

    return result


__all__ = [
    "CommentPage",
    "DownloadResult",
    "MalformedPageError",
    "ProgressCallback",
    "TwitchCommentsClient",
    "download_file",
]
