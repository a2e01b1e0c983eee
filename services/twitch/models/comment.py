from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional, Tuple

# Twitch emits up to nanosecond precision; datetime keeps microseconds
_FRACTION_RE = re.compile(r"\.(\d+)")


class MalformedCommentError(ValueError):
    """Raised when a comment record lacks a required field or has a bad value."""


@dataclass(frozen=True)
class UserBadge:
    id: str
    version: str


def _parse_created_at(value: Any) -> datetime:
    if not isinstance(value, str) or not value:
        raise MalformedCommentError("created_at is missing or not a string")

    normalized = value.strip()
    if normalized.endswith(("Z", "z")):
        normalized = normalized[:-1] + "+00:00"
    normalized = _FRACTION_RE.sub(
        lambda m: "." + m.group(1)[:6].ljust(6, "0"), normalized, count=1
    )
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise MalformedCommentError(f"created_at is not an ISO 8601 timestamp: {value!r}") from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _parse_content_offset(value: Any) -> timedelta:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedCommentError("content_offset_seconds is missing or not a number")
    if not math.isfinite(value):
        raise MalformedCommentError(f"content_offset_seconds is not finite: {value}")
    if value < 0:
        raise MalformedCommentError(f"content_offset_seconds is negative: {value}")
    try:
        return timedelta(seconds=value)
    except (OverflowError, ValueError) as exc:
        raise MalformedCommentError(f"content_offset_seconds is out of range: {value}") from exc


def _require_object(record: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = record.get(key)
    if not isinstance(value, Mapping):
        raise MalformedCommentError(f"{key} is missing or not an object")
    return value


def _require_string(obj: Mapping[str, Any], key: str, owner: str) -> str:
    value = obj.get(key)
    if not isinstance(value, str):
        raise MalformedCommentError(f"{owner}.{key} is missing or not a string")
    return value


def _parse_badges(value: Any) -> Tuple[UserBadge, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise MalformedCommentError("message.user_badges is not a list")

    badges = []
    for entry in value:
        if not isinstance(entry, Mapping):
            raise MalformedCommentError("message.user_badges entry is not an object")
        badge_id = entry.get("_id", entry.get("id"))
        if not isinstance(badge_id, str):
            raise MalformedCommentError("message.user_badges entry has no string id")
        version = entry.get("version")
        badges.append(UserBadge(id=badge_id, version="" if version is None else str(version)))
    return tuple(badges)


@dataclass(frozen=True)
class RechatMessage:
    """
    Typed, immutable view of one archived comment record.

    Instances are built on demand from the raw JSON (`from_record`) and are
    never persisted in this form; the archive keeps the record as received.
    """

    created_at: datetime
    content_offset: timedelta
    is_action: bool
    # Not from the live chat (the user posted a comment on the VOD)
    is_non_chat: bool
    message_text: str
    user_name: str
    user_display_name: str
    user_badges: Tuple[UserBadge, ...] = ()
    source_json: Optional[Dict[str, Any]] = field(
        default=None, compare=False, repr=False
    )

    @classmethod
    def from_record(cls, record: Any) -> "RechatMessage":
        if not isinstance(record, Mapping):
            raise MalformedCommentError("comment record is not an object")

        commenter = _require_object(record, "commenter")
        message = _require_object(record, "message")

        is_action = message.get("is_action", False)
        if is_action is None:
            is_action = False
        if not isinstance(is_action, bool):
            raise MalformedCommentError("message.is_action is not a boolean")

        source = record.get("source")
        is_non_chat = not (isinstance(source, str) and source.lower() == "chat")

        return cls(
            created_at=_parse_created_at(record.get("created_at")),
            content_offset=_parse_content_offset(record.get("content_offset_seconds")),
            is_action=is_action,
            is_non_chat=is_non_chat,
            message_text=_require_string(message, "body", "message"),
            user_name=_require_string(commenter, "name", "commenter"),
            user_display_name=_require_string(commenter, "display_name", "commenter").rstrip(" "),
            user_badges=_parse_badges(message.get("user_badges")),
            source_json=dict(record),
        )

    def _has_badge(self, badge_id: str) -> bool:
        return any(badge.id.lower() == badge_id for badge in self.user_badges)

    @property
    def user_is_admin(self) -> bool:
        return self._has_badge("admin")

    @property
    def user_is_broadcaster(self) -> bool:
        return self._has_badge("broadcaster")

    @property
    def user_is_moderator(self) -> bool:
        return self._has_badge("moderator")

    @property
    def user_is_subscriber(self) -> bool:
        return self._has_badge("subscriber")

    @property
    def video_started_at(self) -> datetime:
        """Inferred start of the video: absolute time minus content offset."""
        return self.created_at - self.content_offset


def try_get_content_offset(record: Optional[Mapping[str, Any]]) -> Optional[timedelta]:
    """Content offset of a raw record, or None when absent or unparseable."""
    if record is None:
        return None
    try:
        return RechatMessage.from_record(record).content_offset
    except MalformedCommentError:
        return None


__all__ = [
    "MalformedCommentError",
    "RechatMessage",
    "UserBadge",
    "try_get_content_offset",
]
