from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from shared.logging.logger import get_logger

log = get_logger("shared.config.rechat")

_CONFIG_PATH = Path(__file__).parent / "rechat.json"

DEFAULT_API_BASE_URL = "https://api.twitch.tv/v5"
DEFAULT_CLIENT_ID = "jzkbprff40iqj646a697cyrvl0zt2m6"
DEFAULT_ACCEPT = "application/vnd.twitchtv.v5+json"


@dataclass
class RechatApiConfig:
    base_url: str = DEFAULT_API_BASE_URL
    client_id: str = DEFAULT_CLIENT_ID
    accept: str = DEFAULT_ACCEPT
    timeout_seconds: float = 30.0
    connect_retries: int = 2

    def headers(self) -> Dict[str, str]:
        return {
            "Accept": self.accept,
            "Client-ID": self.client_id,
        }


def _load_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        log.debug(f"rechat.json not found at {path}; using defaults")
        return {}

    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
            return data if isinstance(data, dict) else {}
    except Exception as e:
        log.warning(f"Failed to load rechat.json ({e}); using defaults")
        return {}


def _coerce_float(value: Any, default: float, name: str) -> float:
    if value is None:
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        log.warning(f"Invalid {name} value {value!r}; using {default}")
        return default
    if result <= 0:
        log.warning(f"{name} must be positive; using {default}")
        return default
    return result


def _coerce_int(value: Any, default: int, name: str) -> int:
    if value is None:
        return default
    try:
        result = int(value)
    except (TypeError, ValueError):
        log.warning(f"Invalid {name} value {value!r}; using {default}")
        return default
    if result < 0:
        log.warning(f"{name} must not be negative; using {default}")
        return default
    return result


def _first_set(*values: Any) -> Any:
    for value in values:
        if value is not None and value != "":
            return value
    return None


def load_rechat_config(path: Path | None = None) -> RechatApiConfig:
    """
    Build the API configuration.

    Precedence: environment overrides > rechat.json > built-in defaults.
    The client id and accept header come from the file only.
    """
    raw = _load_json(path or _CONFIG_PATH)
    api = raw.get("api") if isinstance(raw.get("api"), dict) else {}

    base_url = os.getenv("RECHAT_API_BASE_URL") or api.get("base_url") or DEFAULT_API_BASE_URL
    client_id = api.get("client_id") or DEFAULT_CLIENT_ID
    accept = api.get("accept") or DEFAULT_ACCEPT

    timeout = _coerce_float(
        _first_set(os.getenv("RECHAT_HTTP_TIMEOUT"), api.get("timeout_seconds")),
        30.0,
        "timeout_seconds",
    )
    retries = _coerce_int(
        _first_set(os.getenv("RECHAT_HTTP_RETRIES"), api.get("connect_retries")),
        2,
        "connect_retries",
    )

    return RechatApiConfig(
        base_url=str(base_url).rstrip("/"),
        client_id=str(client_id),
        accept=str(accept),
        timeout_seconds=timeout,
        connect_retries=retries,
    )


__all__ = [
    "RechatApiConfig",
    "load_rechat_config",
    "DEFAULT_API_BASE_URL",
    "DEFAULT_CLIENT_ID",
    "DEFAULT_ACCEPT",
]
