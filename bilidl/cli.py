"""Command-line entry point: resolve, select, download and mux."""
import argparse
import sys
from pathlib import Path
from typing import Sequence

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.table import Table

from bilidl import __version__
from bilidl.core.config import settings
from bilidl.core.logging import get_logger, setup_logging
from bilidl.models.video import Dash
from bilidl.services.bilibili_client import BiliClient
from bilidl.services.cookies import CookieStore, load_netscape_cookies, save_netscape_cookies
from bilidl.services.download_tasks import DownloadJob
from bilidl.services.downloader import Downloader
from bilidl.services.errors import (
    BiliDownloaderError,
    MuxError,
    NoSuitableStreamsError,
    ResolutionError,
)
from bilidl.services.muxer import ffmpeg_mux
from bilidl.services.naming import expand_template, sanitize_filename
from bilidl.services.selector import Selection, StreamSelector

logger = get_logger(__name__)

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)


def positive_int(value: str) -> int:
    """argparse type for 1-based counters."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: '{value}'") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser (a yt-dlp compatible subset of flags)."""
    parser = argparse.ArgumentParser(
        prog="bilidl",
        description="Simple Bilibili video downloader.",
    )
    parser.add_argument("input", help="BV id or a full Bilibili URL")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-p", "--page", type=positive_int, default=1,
        help="Page number (1-based) for multi-part videos",
    )
    parser.add_argument(
        "-q", "--quality", type=int, default=None,
        help="Desired quality id (e.g., 80=1080p, 64=720p). If absent, pick best.",
    )
    parser.add_argument(
        "--fnval", type=int, default=settings.DEFAULT_FNVAL,
        help="fnval flags. 4048 requests DASH.",
    )
    parser.add_argument(
        "--prefer-codec", default=None,
        help="Prefer codec (avc1|hev1|av01). Defaults to avc1 for compatibility.",
    )
    parser.add_argument(
        "-o", "--output", default=None,
        help="Output template (yt-dlp style: %%(title)s.%%(ext)s)",
    )
    parser.add_argument("--out", default=None, help=argparse.SUPPRESS)
    parser.add_argument(
        "--no-mux", action="store_true",
        help="Do not mux audio+video with ffmpeg; keep separate .m4s files",
    )
    parser.add_argument(
        "--print-only", action="store_true",
        help="Only print selected stream URLs, do not download",
    )
    parser.add_argument(
        "-F", "--list-formats", action="store_true",
        help="List available formats and exit",
    )
    parser.add_argument("--user-agent", default=settings.USER_AGENT, help="HTTP User-Agent header")
    parser.add_argument("--referer", default=settings.REFERER, help="HTTP Referer header")
    parser.add_argument(
        "-f", "--format", default=None,
        help='Format selection, e.g. "bestvideo[height<=1080][vcodec^=av01]+bestaudio/best"',
    )
    parser.add_argument(
        "--merge-output-format", choices=("mp4", "mkv"), default=None,
        help=f"Merge output container (default {settings.MERGE_OUTPUT_FORMAT})",
    )
    parser.add_argument("--cookies", default=None, help="Cookies file in Netscape format")
    parser.add_argument(
        "--proxy", default=settings.PROXY,
        help="HTTP/SOCKS proxy URL, e.g. http://127.0.0.1:7890",
    )
    parser.add_argument(
        "--continue", dest="resume", action="store_true",
        help="Resume partially downloaded files",
    )
    parser.add_argument(
        "--no-cleanup", action="store_true",
        help="Keep .m4s parts after a successful mux",
    )
    parser.add_argument(
        "--save-cookies", default=None,
        help="Save cookies (Netscape format) after the run",
    )
    parser.add_argument(
        "--log-level", default=None,
        choices=("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
        help=f"Logging level (default {settings.LOG_LEVEL})",
    )
    return parser


# ---------------------------------------------------------------------------
# Shared steps
# ---------------------------------------------------------------------------


def build_client(args: argparse.Namespace) -> BiliClient:
    """Create the API client with a cookie store built once for this run."""
    store = load_netscape_cookies(args.cookies) if args.cookies else CookieStore()
    return BiliClient(
        user_agent=args.user_agent,
        referer=args.referer,
        cookies=store,
        proxy=args.proxy,
    )


def fetch_dash(client: BiliClient, args: argparse.Namespace) -> tuple[str, int, Dash]:
    """Resolve the input and fetch its DASH manifest.

    Raises:
        ResolutionError: If no DASH data is returned
    """
    bvid, cid = client.resolve_bvid_and_cid(args.input, args.page)
    play = client.get_playurl(bvid, cid, args.quality, args.fnval)
    dash = play.data.dash if play.data else None
    if dash is None:
        raise ResolutionError(
            "No DASH data returned. Try a different quality, or with cookies."
        )
    return bvid, cid, dash


def select(dash: Dash, args: argparse.Namespace) -> Selection:
    selection = StreamSelector.select(
        dash, format_expr=args.format, prefer_codec=args.prefer_codec
    )
    if selection.is_empty:
        raise NoSuitableStreamsError()
    return selection


def output_stem(args: argparse.Namespace, title: str, bvid: str, cid: int, container: str) -> str:
    template = args.output or args.out
    if template:
        return expand_template(template, title, bvid, cid, container)
    return sanitize_filename(title)


def download_track(
    downloader: Downloader, url: str, destination: str, resume: bool, label: str
) -> DownloadJob:
    """Download one track with a rich progress bar."""
    with Progress(
        TextColumn(f"[cyan]{label}"),
        BarColumn(bar_width=40),
        DownloadColumn(),
        TransferSpeedColumn(),
        TextColumn("ETA"),
        TimeRemainingColumn(),
        console=err_console,
        transient=True,
    ) as progress:
        task = progress.add_task(label, total=None)

        def on_progress(job: DownloadJob) -> None:
            progress.update(
                task,
                completed=job.downloaded_bytes,
                total=job.total_bytes or None,
            )

        return downloader.download(url, destination, resume=resume, progress=on_progress)


# ---------------------------------------------------------------------------
# Modes
# ---------------------------------------------------------------------------


def run_list_formats(args: argparse.Namespace) -> int:
    client = build_client(args)
    bvid, cid, dash = fetch_dash(client, args)

    table = Table(title=f"Formats for {bvid} (cid {cid})")
    table.add_column("ID", justify="left")
    table.add_column("type")
    table.add_column("res", justify="right")
    table.add_column("codec")
    table.add_column("br (kbps)", justify="right")
    for row in StreamSelector.format_rows(dash):
        res = f"{row.height or 0}p" if row.kind == "video" else "----"
        table.add_row(str(row.id), row.kind, res, row.codecs, str(row.bitrate_kbps))
    console.print(table)
    return 0


def run_and_print(args: argparse.Namespace) -> int:
    client = build_client(args)
    bvid, cid, dash = fetch_dash(client, args)
    selection = select(dash, args)

    print(f"bvid: {bvid}  cid: {cid}")
    if selection.video is not None:
        v = selection.video
        print(f"video[{v.id} {v.codecs} {v.height or 0}p]: {v.base_url}")
    if selection.audio is not None:
        a = selection.audio
        print(f"audio[{a.id} {a.codecs}]: {a.base_url}")
    return 0


def run_and_download(args: argparse.Namespace) -> int:
    client = build_client(args)
    bvid, cid, dash = fetch_dash(client, args)
    try:
        title = client.get_title(bvid)
    except BiliDownloaderError as e:
        logger.warning(f"Could not fetch title for {bvid}: {e.message}")
        title = bvid

    selection = select(dash, args)
    container = args.merge_output_format or settings.MERGE_OUTPUT_FORMAT
    stem = output_stem(args, title, bvid, cid, container)
    downloader = Downloader(user_agent=args.user_agent, referer=args.referer)

    # Video strictly before audio; both must succeed before muxing
    video_path = audio_path = None
    if selection.video is not None:
        video_path = f"{stem}-v-{selection.video.id}.m4s"
        download_track(downloader, selection.video.base_url, video_path, args.resume, "video")
        console.print(f"Saved video -> {video_path}", markup=False)
    if selection.audio is not None:
        audio_path = f"{stem}-a-{selection.audio.id}.m4s"
        download_track(downloader, selection.audio.base_url, audio_path, args.resume, "audio")
        console.print(f"Saved audio -> {audio_path}", markup=False)

    if args.save_cookies:
        save_netscape_cookies(client.cookies, args.save_cookies)

    if args.no_mux:
        console.print("Saved tracks. Skipping mux (--no-mux). Done.")
        return 0

    if video_path and audio_path:
        out_path = f"{stem}.{container}"
        try:
            ffmpeg_mux(video_path, audio_path, out_path)
        except MuxError as e:
            err_console.print(f"ffmpeg mux failed: {e.message}. Tracks left as-is", markup=False)
            return 0
        console.print(f"Muxed -> {out_path}", markup=False)
        if not args.no_cleanup:
            for path in (video_path, audio_path):
                Path(path).unlink(missing_ok=True)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the CLI and return the process exit code."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    if args.list_formats:
        mode = run_list_formats
    elif args.print_only:
        mode = run_and_print
    else:
        mode = run_and_download

    try:
        return mode(args)
    except BiliDownloaderError as e:
        err_console.print(f"error: {e.message}", markup=False)
        logger.debug(f"Aborted with {e.code}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
