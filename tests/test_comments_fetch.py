import json
import os
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from services.twitch.api.comments import (
    MalformedPageError,
    TwitchCommentsClient,
    download_file,
)
from shared.config.rechat import DEFAULT_ACCEPT, DEFAULT_CLIENT_ID, RechatApiConfig
from shared.storage.paths import OutputExistsError

VIDEO_ID = 123456


class FakeCommentsApi:
    """Serves a fixed list of pages keyed by cursor and records requests."""

    def __init__(self, pages):
        self.pages = pages
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        cursor = request.url.params.get("cursor")
        index = 0 if cursor is None else int(cursor.split("-")[1])
        payload = self.pages[index]
        if isinstance(payload, httpx.Response):
            return payload
        if isinstance(payload, str):
            return httpx.Response(200, text=payload)
        return httpx.Response(200, json=payload)


def _client(api) -> TwitchCommentsClient:
    config = RechatApiConfig(base_url="https://api.example.test/v5")
    return TwitchCommentsClient(config, transport=httpx.MockTransport(api))


def _pages(make_record, sizes):
    pages = []
    offset = 0.0
    for index, size in enumerate(sizes):
        comments = []
        for _ in range(size):
            comments.append(make_record(offset=offset, body=f"msg {offset:g}"))
            offset += 1.5
        next_cursor = f"cursor-{index + 1}" if index + 1 < len(sizes) else None
        pages.append({"comments": comments, "_next": next_cursor})
    return pages


def test_multi_page_download_preserves_order(tmp_path, make_record, read_archive):
    pages = _pages(make_record, [3, 0, 2, 4])
    api = FakeCommentsApi(pages)
    path = tmp_path / "video.json"

    result = download_file(VIDEO_ID, path, client=_client(api))

    expected = [c for page in pages for c in page["comments"]]
    assert read_archive(path) == expected
    assert result.comment_count == len(expected) == 9
    assert result.page_count == 4
    assert result.warning is None


def test_requests_use_offset_then_cursor_and_fixed_headers(tmp_path, make_record):
    api = FakeCommentsApi(_pages(make_record, [1, 1]))

    download_file(VIDEO_ID, tmp_path / "video.json", client=_client(api))

    first, second = api.requests
    assert first.url.path == f"/v5/videos/{VIDEO_ID}/comments"
    assert dict(first.url.params) == {"content_offset_seconds": "0"}
    assert dict(second.url.params) == {"cursor": "cursor-1"}
    for request in api.requests:
        assert request.method == "GET"
        assert request.headers["Accept"] == DEFAULT_ACCEPT
        assert request.headers["Client-ID"] == DEFAULT_CLIENT_ID


def test_progress_reports_pages_and_last_offset(tmp_path, make_record):
    pages = _pages(make_record, [0, 2, 1])
    pages[2]["comments"][0]["created_at"] = "not a time"
    api = FakeCommentsApi(pages)
    calls = []

    download_file(
        VIDEO_ID,
        tmp_path / "video.json",
        progress_callback=lambda count, offset: calls.append((count, offset)),
        client=_client(api),
    )

    assert calls == [
        (1, None),
        (2, timedelta(seconds=1.5)),
        (3, None),
    ]


def test_failing_progress_callback_does_not_abort(tmp_path, make_record, read_archive):
    api = FakeCommentsApi(_pages(make_record, [1, 1]))

    def explode(count, offset):
        raise RuntimeError("display broke")

    path = tmp_path / "video.json"
    result = download_file(VIDEO_ID, path, progress_callback=explode, client=_client(api))

    assert result.comment_count == 2
    assert len(read_archive(path)) == 2


def test_file_times_derived_from_first_and_last_message(tmp_path, make_record):
    pages = [
        {
            "comments": [
                make_record(offset=30.0, created_at="2020-01-01T00:00:30Z"),
                make_record(offset=45.0, created_at="2020-01-01T00:00:45Z"),
            ],
            "_next": "cursor-1",
        },
        {
            "comments": [make_record(offset=600.5, created_at="2020-01-01T00:10:00.500Z")],
            "_next": None,
        },
    ]
    path = tmp_path / "video.json"

    result = download_file(VIDEO_ID, path, client=_client(FakeCommentsApi(pages)))

    assert result.video_started_at == datetime(2020, 1, 1, tzinfo=timezone.utc)
    last = datetime(2020, 1, 1, 0, 10, 0, 500000, tzinfo=timezone.utc)
    assert result.last_message_at == last
    assert os.stat(path).st_mtime_ns == int(last.timestamp()) * 10**9 + 500_000_000


def test_unparseable_boundary_record_is_a_warning(tmp_path, make_record, read_archive):
    record = make_record()
    del record["commenter"]
    api = FakeCommentsApi([{"comments": [record], "_next": None}])
    path = tmp_path / "video.json"

    result = download_file(VIDEO_ID, path, client=_client(api))

    assert result.has_warning
    assert read_archive(path) == [record]


def test_empty_video_writes_empty_array(tmp_path, read_archive):
    api = FakeCommentsApi([{"comments": [], "_next": None}])
    path = tmp_path / "video.json"

    result = download_file(VIDEO_ID, path, client=_client(api))

    assert read_archive(path) == []
    assert result.comment_count == 0
    assert result.video_started_at is None


def test_existing_destination_fails_before_any_request(tmp_path, make_record):
    path = tmp_path / "video.json"
    path.write_text("old", encoding="utf-8")
    api = FakeCommentsApi(_pages(make_record, [1]))

    with pytest.raises(OutputExistsError):
        download_file(VIDEO_ID, path, client=_client(api))

    assert api.requests == []
    assert path.read_text(encoding="utf-8") == "old"


def test_overwrite_replaces_existing_destination(tmp_path, make_record, read_archive):
    path = tmp_path / "video.json"
    path.write_text("old", encoding="utf-8")
    pages = _pages(make_record, [2])

    download_file(VIDEO_ID, path, overwrite=True, client=_client(FakeCommentsApi(pages)))

    assert read_archive(path) == pages[0]["comments"]


def test_http_error_aborts_and_leaves_partial_archive(tmp_path, make_record):
    pages = _pages(make_record, [2, 1])
    pages[1] = httpx.Response(500, text="boom")
    path = tmp_path / "video.json"

    with pytest.raises(httpx.HTTPStatusError):
        download_file(VIDEO_ID, path, client=_client(FakeCommentsApi(pages)))

    text = path.read_text(encoding="utf-8-sig")
    assert text.startswith("[")
    assert not text.endswith("]")


def test_transport_error_propagates(tmp_path):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = TwitchCommentsClient(
        RechatApiConfig(base_url="https://api.example.test/v5"),
        transport=httpx.MockTransport(refuse),
    )

    with pytest.raises(httpx.ConnectError):
        download_file(VIDEO_ID, tmp_path / "video.json", client=client)


@pytest.mark.parametrize(
    "payload",
    [
        "not json",
        "[]",
        json.dumps({"_next": None}),
        json.dumps({"comments": {}, "_next": None}),
        json.dumps({"comments": [1], "_next": None}),
        json.dumps({"comments": []}),
        json.dumps({"comments": [], "_next": 5}),
    ],
)
def test_malformed_pages_are_fatal(tmp_path, payload):
    api = FakeCommentsApi([payload])

    with pytest.raises(MalformedPageError):
        download_file(VIDEO_ID, tmp_path / "video.json", client=_client(api))


def test_empty_cursor_ends_pagination(tmp_path, make_record):
    api = FakeCommentsApi([{"comments": [make_record()], "_next": ""}])

    result = download_file(VIDEO_ID, tmp_path / "video.json", client=_client(api))

    assert result.page_count == 1
    assert len(api.requests) == 1


def test_caller_owned_client_stays_open(tmp_path, make_record):
    client = _client(FakeCommentsApi(_pages(make_record, [1])))

    download_file(VIDEO_ID, tmp_path / "video.json", client=client)

    assert not client.client.is_closed
    client.close()
    assert client.client.is_closed


def test_out_of_range_offset_degrades_progress_and_file_times(tmp_path, make_record, read_archive):
    record = make_record(offset=1e20)
    api = FakeCommentsApi([{"comments": [record], "_next": None}])
    calls = []
    path = tmp_path / "video.json"

    result = download_file(
        VIDEO_ID,
        path,
        progress_callback=lambda count, offset: calls.append((count, offset)),
        client=_client(api),
    )

    assert calls == [(1, None)]
    assert result.has_warning
    assert read_archive(path) == [record]


def test_non_finite_offset_in_page_is_a_warning(tmp_path, make_record):
    record = make_record()
    text = json.dumps({"comments": [record], "_next": None}).replace(
        '"content_offset_seconds": 0.0', '"content_offset_seconds": NaN'
    )
    assert "NaN" in text
    calls = []

    result = download_file(
        VIDEO_ID,
        tmp_path / "video.json",
        progress_callback=lambda count, offset: calls.append((count, offset)),
        client=_client(FakeCommentsApi([text])),
    )

    assert calls == [(1, None)]
    assert result.has_warning


def test_video_start_before_year_one_is_a_warning(tmp_path, make_record):
    record = make_record(offset=10.0, created_at="0001-01-01T00:00:00Z")
    api = FakeCommentsApi([{"comments": [record], "_next": None}])

    result = download_file(VIDEO_ID, tmp_path / "video.json", client=_client(api))

    assert result.comment_count == 1
    assert result.has_warning
    assert result.video_started_at is None
