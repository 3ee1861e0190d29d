"""Stream selection over a DASH manifest.

Two adapters feed one interface: a structured format expression (see
``format_filter``) and the flat ``--prefer-codec`` / simple-format flags.
Both end in a ``Selection`` of at most one video and one audio stream.

Video ranking is by ``(height, id)`` descending. Audio ranking is by
``id`` descending only; bitrate is not consulted because higher ids are
the platform's higher-quality tiers (30216 = 64k, 30232 = 132k,
30280 = 192k).
"""

from dataclasses import dataclass

from bilidl.core.logging import get_logger
from bilidl.models.video import Dash, DashAudio, DashVideo, FormatRow
from bilidl.services.format_filter import (
    DEFAULT_PREFER_CODEC,
    StreamFilter,
    parse_format_expression,
    parse_simple_format,
)

logger = get_logger(__name__)


@dataclass
class Selection:
    """Result of a stream selection."""

    video: DashVideo | None = None
    audio: DashAudio | None = None

    @property
    def is_empty(self) -> bool:
        return self.video is None and self.audio is None


def _video_rank(video: DashVideo) -> tuple[int, int]:
    # Unknown height sorts below every known height
    return (video.height if video.height is not None else -1, video.id)


def _video_matches(video: DashVideo, f: StreamFilter) -> bool:
    if f.max_height is not None and video.height is not None and video.height > f.max_height:
        return False
    if f.min_height is not None and video.height is not None and video.height < f.min_height:
        return False
    if f.vcodec_eq is not None and video.codecs != f.vcodec_eq:
        return False
    if f.vcodec_prefix is not None and not video.codecs.lower().startswith(
        f.vcodec_prefix.lower()
    ):
        return False
    return True


def pick_video(dash: Dash, f: StreamFilter) -> DashVideo | None:
    """Pick the highest ``(height, id)`` video satisfying *f*."""
    candidates = [v for v in dash.video if _video_matches(v, f)]
    return max(candidates, key=_video_rank, default=None)


def pick_audio(dash: Dash, f: StreamFilter) -> DashAudio | None:
    """Pick the highest-id audio satisfying *f*."""
    candidates = [
        a for a in (dash.audio or []) if f.acodec_eq is None or a.codecs == f.acodec_eq
    ]
    return max(candidates, key=lambda a: a.id, default=None)


def select_streams_with_format(dash: Dash, expression: str) -> Selection:
    """Select streams with a ``/``-separated format expression.

    Alternatives are tried left to right. An alternative wins only if every
    side it asks for produced a pick.

    Args:
        dash: Manifest to select from
        expression: e.g. ``bestvideo[height<=1080][vcodec^=av01]+bestaudio/best``

    Returns:
        The first satisfied selection, or an empty one
    """
    for index, alt in enumerate(parse_format_expression(expression)):
        video = pick_video(dash, alt.video) if alt.want_video else None
        audio = pick_audio(dash, alt.audio) if alt.want_audio else None
        ok_video = not alt.want_video or video is not None
        ok_audio = not alt.want_audio or audio is not None
        if ok_video and ok_audio:
            logger.debug(f"Format alternative #{index + 1} satisfied for '{expression}'")
            return Selection(video=video, audio=audio)
        logger.debug(f"Format alternative #{index + 1} unsatisfied for '{expression}'")
    return Selection()


def select_streams(
    dash: Dash,
    prefer_codec: str | None = None,
    max_height: int | None = None,
    want_video: bool = True,
    want_audio: bool = True,
) -> Selection:
    """Select streams from flat preferences.

    The best video at or below *max_height* whose codec string contains
    *prefer_codec* wins; without a codec match the best remaining video is
    used.
    """
    preferred = (prefer_codec or DEFAULT_PREFER_CODEC).lower()

    video = None
    if want_video:
        videos = sorted(dash.video, key=_video_rank, reverse=True)
        if max_height is not None:
            videos = [v for v in videos if v.height is None or v.height <= max_height]
        video = next((v for v in videos if preferred in v.codecs.lower()), None)
        if video is None and videos:
            video = videos[0]

    audio = None
    if want_audio:
        audio = max(dash.audio or [], key=lambda a: a.id, default=None)
    return Selection(video=video, audio=audio)


class StreamSelector:
    """Single selection entry point over both adapters."""

    @staticmethod
    def select(
        dash: Dash,
        format_expr: str | None = None,
        prefer_codec: str | None = None,
    ) -> Selection:
        """Select streams from *dash*.

        Args:
            dash: Manifest to select from
            format_expr: Structured expression; when given it takes precedence
            prefer_codec: Codec preference for the flag-driven path

        Returns:
            The selection (possibly empty)
        """
        if format_expr:
            return select_streams_with_format(dash, format_expr)
        fmt = parse_simple_format(None, prefer_codec)
        return select_streams(
            dash,
            prefer_codec=fmt.prefer_codec,
            max_height=fmt.max_height,
            want_video=fmt.want_video,
            want_audio=fmt.want_audio,
        )

    @staticmethod
    def format_rows(dash: Dash) -> list[FormatRow]:
        """List representations: videos by (height, id) desc, then audio by id desc."""
        rows = [
            FormatRow(
                id=v.id,
                kind="video",
                height=v.height,
                codecs=v.codecs,
                bitrate_kbps=(v.bandwidth or 0) // 1000,
            )
            for v in sorted(dash.video, key=_video_rank, reverse=True)
        ]
        rows.extend(
            FormatRow(
                id=a.id,
                kind="audio",
                codecs=a.codecs,
                bitrate_kbps=(a.bandwidth or 0) // 1000,
            )
            for a in sorted(dash.audio or [], key=lambda a: a.id, reverse=True)
        )
        return rows
