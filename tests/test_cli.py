import pytest

import rechat_tool
from services.twitch.api.comments import DownloadResult
from services.twitch.api.videos import parse_video_id


@pytest.mark.parametrize(
    "value, expected",
    [
        ("123456789", 123456789),
        (" 42 ", 42),
        ("https://www.twitch.tv/videos/555", 555),
        ("HTTP://twitch.tv/videos/556", 556),
        ("twitch.tv/videos/557", 557),
        ("www.twitch.tv/videos/558?t=1h2m", 558),
        ("https://example.com/videos/1", None),
        ("https://www.twitch.tv/somechannel", None),
        ("https://www.twitch.tv/videos/abc", None),
        ("abc", None),
        ("", None),
    ],
)
def test_parse_video_id(value, expected):
    assert parse_video_id(value) == expected


def test_process_mode_renders_matching_files(tmp_path, write_archive, make_record, capsys):
    write_archive([make_record(offset=1.0)], name="a.json")
    write_archive([make_record(offset=2.0, is_action=True)], name="b.json")

    code = rechat_tool.main(["-p", str(tmp_path / "*.json"), "--badges"])

    assert code == 0
    assert (tmp_path / "a.txt").read_text(encoding="utf-8-sig") == "[00:00:01] Foo: hi\n"
    assert (tmp_path / "b.txt").read_text(encoding="utf-8-sig") == "[00:00:02] Foo hi\n"
    assert "Done!" in capsys.readouterr().out


def test_process_mode_reports_existing_output(tmp_path, write_archive, make_record, capsys):
    archive = write_archive([make_record()])
    archive.with_suffix(".txt").write_text("x", encoding="utf-8")

    code = rechat_tool.main(["-p", str(archive)])

    assert code == 1
    assert "Error: Output file already exists" in capsys.readouterr().err


def test_download_mode_rejects_unknown_video(capsys):
    code = rechat_tool.main(["-d", "https://example.com/videos/1"])

    assert code == 1
    assert "Not a Twitch video id or URL" in capsys.readouterr().err


def test_download_and_process_mode(tmp_path, write_archive, make_record, monkeypatch, capsys):
    calls = []

    def fake_download(video_id, path, overwrite, progress_callback):
        calls.append((video_id, path, overwrite))
        progress_callback(1, None)
        write_archive([make_record(offset=61.0)], name=path.name)
        return DownloadResult(path=path, page_count=1, comment_count=1)

    monkeypatch.setattr(rechat_tool, "download_file", fake_download)
    target = tmp_path / "out.json"

    code = rechat_tool.main(["-D", "twitch.tv/videos/99", str(target)])

    assert code == 0
    assert calls == [(99, target, False)]
    assert (tmp_path / "out.txt").read_text(encoding="utf-8-sig") == "[00:01:01] Foo: hi\n"
    assert "Downloaded 1 page(s)" in capsys.readouterr().out


def test_mode_is_required():
    with pytest.raises(SystemExit) as excinfo:
        rechat_tool.main([])

    assert excinfo.value.code != 0
