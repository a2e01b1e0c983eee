"""
Configuration validation script.

This script validates shared/config/rechat.json against the
expectations of shared.config.rechat.

Design rules:
- No side effects on import
- Validation only (no mutation)
- A missing file is valid (defaults apply)
- Forward-compatible: unknown fields are ignored
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Dict, List


# ------------------------------------------------------------
# Paths
# ------------------------------------------------------------

ROOT = Path(__file__).resolve().parents[1]
CONFIG_PATH = ROOT / "shared" / "config" / "rechat.json"

_STRING_KEYS = ("base_url", "client_id", "accept")


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------

def _load_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}

    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            raise ValueError("Root JSON value must be an object")
    except Exception as e:
        raise ValueError(f"{path.name}: invalid JSON ({e})") from e


def _error(msg: str):
    print(f"[CONFIG ERROR] {msg}", file=sys.stderr)


# ------------------------------------------------------------
# Validators
# ------------------------------------------------------------

def collect_rechat_config_errors(data: Dict[str, Any]) -> List[str]:
    """
    Return validation errors for a parsed rechat.json document.

    Expected (minimal) shape:
    {
        "api": {
            "base_url": "https://...",
            "client_id": "...",
            "accept": "...",
            "timeout_seconds": 30,
            "connect_retries": 2
        }
    }
    """

    api = data.get("api")
    if api is None:
        return []
    if not isinstance(api, dict):
        return ["rechat.json: 'api' must be an object"]

    errors = []
    for key in _STRING_KEYS:
        value = api.get(key)
        if value is not None and (not isinstance(value, str) or not value.strip()):
            errors.append(f"rechat.json: 'api.{key}' must be a non-empty string")

    base_url = api.get("base_url")
    if isinstance(base_url, str) and not base_url.startswith(("http://", "https://")):
        errors.append("rechat.json: 'api.base_url' must be an http(s) URL")

    timeout = api.get("timeout_seconds")
    if timeout is not None and (
        isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0
    ):
        errors.append("rechat.json: 'api.timeout_seconds' must be a positive number")

    retries = api.get("connect_retries")
    if retries is not None and (
        isinstance(retries, bool) or not isinstance(retries, int) or retries < 0
    ):
        errors.append("rechat.json: 'api.connect_retries' must be a non-negative integer")

    return errors


def validate_rechat_config(path: Path = CONFIG_PATH) -> bool:
    try:
        data = _load_json(path)
    except ValueError as e:
        _error(str(e))
        return False

    errors = collect_rechat_config_errors(data)
    for err in errors:
        _error(err)
    return not errors


# ------------------------------------------------------------
# Entry point
# ------------------------------------------------------------

def main() -> int:
    if not validate_rechat_config():
        print("Configuration validation failed.", file=sys.stderr)
        return 1

    print("Configuration validation passed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
