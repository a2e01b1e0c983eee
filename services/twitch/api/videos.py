from typing import Optional
from urllib.parse import urlsplit

VIDEO_HOSTS = {"twitch.tv", "www.twitch.tv"}
_VIDEO_PATH_PREFIX = "/videos/"


def _parse_int(value: str) -> Optional[int]:
    value = value.strip()
    if not (value.isascii() and value.isdigit()):
        return None
    return int(value)


def parse_video_id_from_url(value: str) -> Optional[int]:
    """
    Extract the numeric id from a Twitch VOD URL.

    Accepts URLs with or without a scheme, e.g.
    `twitch.tv/videos/123` or `https://www.twitch.tv/videos/123`.
    """
    value = value.strip()
    if not value.lower().startswith("http"):
        value = "https://" + value

    try:
        parts = urlsplit(value)
    except ValueError:
        return None

    host = (parts.hostname or "").lower()
    if host not in VIDEO_HOSTS:
        return None
    if not parts.path.startswith(_VIDEO_PATH_PREFIX):
        return None
    return _parse_int(parts.path[len(_VIDEO_PATH_PREFIX):])


def parse_video_id(value: str) -> Optional[int]:
    """Accept either a bare numeric video id or a Twitch VOD URL."""
    video_id = _parse_int(value)
    if video_id is not None:
        return video_id
    return parse_video_id_from_url(value)
