"""
======================================================================
 RechatTool — Version v1.1.0 (Build 2026.10)
 Twitch chat replay downloader and transcript renderer
======================================================================
"""

import argparse
import glob
import sys
from datetime import timedelta
from pathlib import Path
from typing import List, Optional, Sequence

from dotenv import load_dotenv

from runtime.version import as_string
from services.twitch.api.comments import download_file
from services.twitch.api.videos import parse_video_id
from services.twitch.transcript import format_timestamp, process_file
from shared.logging.logger import get_logger
from shared.storage.paths import default_archive_path

log = get_logger("rechat.cli", runtime="rechat")


def _print_progress(page_count: int, content_offset: Optional[timedelta]) -> None:
    offset = format_timestamp(content_offset) if content_offset is not None else "--:--:--"
    print(f"\rDownloaded {page_count} page(s), offset = {offset}", end="", flush=True)


def _warn(message: str) -> None:
    print(f"Warning: {message}", file=sys.stderr)


def _expand_paths(pattern: str) -> List[Path]:
    if any(ch in pattern for ch in "*?["):
        return [Path(p) for p in sorted(glob.glob(pattern)) if Path(p).is_file()]
    return [Path(pattern)]


def _download(args: argparse.Namespace, video: str, render: bool) -> None:
    video_id = parse_video_id(video)
    if video_id is None:
        raise ValueError(f"Not a Twitch video id or URL: {video}")

    path = Path(args.path) if args.path else default_archive_path(video_id)
    result = download_file(video_id, path, args.overwrite, _print_progress)
    print()
    print(f"Saved {result.comment_count} comment(s) to {result.path}")
    if result.warning:
        _warn(result.warning)

    if render:
        _render(args, result.path)


def _render(args: argparse.Namespace, path: Path) -> None:
    result = process_file(
        path,
        overwrite=args.overwrite,
        show_badges=args.badges,
        show_milliseconds=args.milliseconds,
    )
    print(f"Wrote {result.line_count} line(s) to {result.destination}")
    if result.warning:
        _warn(result.warning)


def _run(args: argparse.Namespace) -> None:
    load_dotenv()

    if args.download:
        _download(args, args.download, render=False)
    elif args.download_and_process:
        _download(args, args.download_and_process, render=True)
    else:
        if args.path:
            raise ValueError("-p takes a single path argument")
        paths = _expand_paths(args.process)
        if not paths:
            raise FileNotFoundError(f"No files match {args.process}")
        for path in paths:
            print(f"Processing {path.name}")
            _render(args, path)

    print("Done!")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rechat-tool",
        description="Download Twitch chat replays and render readable transcripts",
    )
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument(
        "-d",
        dest="download",
        metavar="VIDEO",
        help="Download the chat replay of a video id or URL",
    )
    mode.add_argument(
        "-D",
        dest="download_and_process",
        metavar="VIDEO",
        help="Download the chat replay and render it (combines -d and -p)",
    )
    mode.add_argument(
        "-p",
        dest="process",
        metavar="PATH",
        help="Render a JSON chat replay to a .txt file next to it (wildcards allowed)",
    )
    parser.add_argument(
        "path",
        nargs="?",
        help="Archive path for -d/-D (default: <videoid>.json in the current directory)",
    )
    parser.add_argument("--overwrite", action="store_true", help="Replace existing output files")
    parser.add_argument(
        "--badges",
        action="store_true",
        help="Prefix names with role markers (* admin, # broadcaster, @ moderator, + subscriber)",
    )
    parser.add_argument(
        "--milliseconds",
        action="store_true",
        help="Include milliseconds in transcript timestamps",
    )
    parser.add_argument("--version", action="version", version=as_string())
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        _run(args)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 1
    except Exception as e:
        print()
        print(f"Error: {e}", file=sys.stderr)
        log.debug("Command failed", exc_info=True)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
