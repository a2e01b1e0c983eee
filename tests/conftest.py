import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from shared.storage.chat_replay import ChatReplayWriter


def build_record(
    *,
    offset: float = 0.0,
    created_at: str = "2020-01-01T00:00:00Z",
    name: str = "foo",
    display_name: str = "Foo",
    body: str = "hi",
    is_action: bool = False,
    source: str = "chat",
    badges: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    message: Dict[str, Any] = {"body": body, "is_action": is_action}
    if badges is not None:
        message["user_badges"] = badges
    return {
        "_id": f"comment-{offset}",
        "created_at": created_at,
        "content_offset_seconds": offset,
        "source": source,
        "commenter": {"name": name, "display_name": display_name},
        "message": message,
    }


@pytest.fixture
def make_record():
    return build_record


@pytest.fixture
def write_archive(tmp_path: Path):
    def _write(records: List[Dict[str, Any]], name: str = "archive.json") -> Path:
        path = tmp_path / name
        with ChatReplayWriter(path) as writer:
            for record in records:
                writer.write(record)
        return path

    return _write


@pytest.fixture
def read_archive():
    def _read(path: Path) -> List[Dict[str, Any]]:
        return json.loads(path.read_text(encoding="utf-8-sig"))

    return _read
