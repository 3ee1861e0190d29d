"""ffmpeg integration for combining video and audio tracks without re-encoding."""

import shutil
import subprocess
from pathlib import Path

from bilidl.core.config import settings
from bilidl.core.logging import get_logger
from bilidl.services.errors import MuxError

logger = get_logger(__name__)


def find_ffmpeg(executable: str | None = None) -> str | None:
    """Return the resolved ffmpeg path, or None if it is not installed."""
    return shutil.which(executable or settings.FFMPEG_PATH)


def build_mux_command(
    ffmpeg: str, video_path: str | Path, audio_path: str | Path, out_path: str | Path
) -> list[str]:
    return [
        ffmpeg,
        "-y",
        "-i", str(video_path),
        "-i", str(audio_path),
        "-c", "copy",
        str(out_path),
    ]


def ffmpeg_mux(
    video_path: str | Path,
    audio_path: str | Path,
    out_path: str | Path,
    executable: str | None = None,
) -> Path:
    """Mux *video_path* and *audio_path* into *out_path* with stream copy.

    Args:
        video_path: Downloaded video track
        audio_path: Downloaded audio track
        out_path: Container file to create (overwritten if present)
        executable: ffmpeg binary; ``settings.FFMPEG_PATH`` when omitted

    Returns:
        The output path

    Raises:
        MuxError: If ffmpeg is missing or exits with a non-zero status
    """
    ffmpeg = find_ffmpeg(executable)
    if ffmpeg is None:
        raise MuxError("ffmpeg not available")

    try:
        check = subprocess.run(
            [ffmpeg, "-version"], capture_output=True, text=True, check=False
        )
    except OSError as e:
        raise MuxError(f"invoke ffmpeg: {e}") from e
    if check.returncode != 0:
        raise MuxError("ffmpeg not available")

    cmd = build_mux_command(ffmpeg, video_path, audio_path, out_path)
    logger.info(f"Muxing {video_path} + {audio_path} -> {out_path}")
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=False)
    except OSError as e:
        raise MuxError(f"ffmpeg mux run: {e}") from e

    if result.returncode != 0:
        stderr_tail = (result.stderr or "").strip().splitlines()[-1:] or [""]
        logger.error(f"ffmpeg exited with {result.returncode}: {stderr_tail[0]}")
        raise MuxError(f"ffmpeg mux failed with status {result.returncode}")
    return Path(out_path)
