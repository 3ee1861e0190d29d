"""Parser for yt-dlp style format selection expressions.

Supported grammar (a stable, documented contract of the CLI ``-f`` flag)::

    expression  := alternative ("/" alternative)*
    alternative := token ["+" token]
    token       := name constraint*
    name        := "bestvideo" | "bv" ... | "bestaudio" | "ba" ... | "best" | "b"
    constraint  := "[height<=N]" | "[height>=N]" | "[vcodec=X]"
                 | "[vcodec^=X]" | "[acodec=X]"

Bare codec names (``avc1``, ``hev1``, ``h265``, ``av01``, ``av1``) appearing
anywhere in a token act as an implicit ``vcodec^=`` hint.

Example: ``bestvideo[height<=1080][vcodec^=av01]+bestaudio/best``
"""

import re
from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Order matters: later matches override earlier ones ("av01" beats "av1")
CODEC_HINTS = ("avc1", "hev1", "h265", "av01", "av1")
CODEC_ALIASES = {"h265": "hev1"}

DEFAULT_PREFER_CODEC = "avc1"

_BRACKET_RE = re.compile(r"\[(.*?)\]")
_DIGITS_RE = re.compile(r"\d+")


@dataclass
class StreamFilter:
    """Constraints applied to one side (video or audio) of an alternative."""

    max_height: int | None = None
    min_height: int | None = None
    vcodec_eq: str | None = None
    vcodec_prefix: str | None = None
    acodec_eq: str | None = None


@dataclass
class FormatAlternative:
    """One ``/``-separated alternative of a format expression."""

    want_video: bool = True
    want_audio: bool = True
    video: StreamFilter = field(default_factory=StreamFilter)
    audio: StreamFilter = field(default_factory=StreamFilter)


@dataclass
class FormatSelection:
    """Flat selection produced by the legacy whole-string parser."""

    want_video: bool = True
    want_audio: bool = True
    prefer_codec: str | None = None
    max_height: int | None = None


def is_best_token(token: str) -> bool:
    return token.lower() in ("best", "b")


def is_video_token(token: str) -> bool:
    lowered = token.lower()
    return lowered.startswith("bestvideo") or lowered.startswith("bv")


def is_audio_token(token: str) -> bool:
    lowered = token.lower()
    return lowered.startswith("bestaudio") or lowered.startswith("ba")


def codec_hint(text: str) -> str | None:
    """Return the last codec hint found in *text*, normalized (h265 -> hev1)."""
    lowered = text.lower()
    hint = None
    for codec in CODEC_HINTS:
        if codec in lowered:
            hint = CODEC_ALIASES.get(codec, codec)
    return hint


def _parse_int(value: str) -> int | None:
    try:
        return int(value)
    except ValueError:
        return None


def parse_filter(token: str | None) -> StreamFilter:
    """Parse the bracketed constraints and codec hints of a single token.

    Args:
        token: A token such as ``bestvideo[height<=1080][vcodec^=av01]``

    Returns:
        The constraints found; an empty filter when *token* is None
    """
    f = StreamFilter()
    if token is None:
        return f

    for expr in _BRACKET_RE.findall(token):
        if expr.startswith("height<="):
            value = _parse_int(expr[len("height<="):])
            if value is not None:
                f.max_height = value
        elif expr.startswith("height>="):
            value = _parse_int(expr[len("height>="):])
            if value is not None:
                f.min_height = value
        elif expr.startswith("vcodec^="):
            f.vcodec_prefix = expr[len("vcodec^="):]
        elif expr.startswith("vcodec="):
            f.vcodec_eq = expr[len("vcodec="):]
        elif expr.startswith("acodec="):
            f.acodec_eq = expr[len("acodec="):]

    hint = codec_hint(token)
    if hint is not None:
        f.vcodec_prefix = hint
    return f


def parse_alternative(alternative: str) -> FormatAlternative:
    """Parse one ``video[+audio]`` alternative."""
    parts = alternative.split("+")
    if len(parts) == 2:
        want_video, want_audio = is_video_token(parts[0]), is_audio_token(parts[1])
    elif len(parts) == 1:
        single = parts[0]
        if is_best_token(single):
            want_video, want_audio = True, True
        elif is_video_token(single):
            want_video, want_audio = True, False
        elif is_audio_token(single):
            want_video, want_audio = False, True
        else:
            want_video, want_audio = True, True
    else:
        want_video, want_audio = True, True

    if len(parts) > 1:
        audio_filter = parse_filter(parts[1])
    elif want_audio and not want_video:
        # A lone audio token carries its own constraints ("ba[acodec=flac]")
        audio_filter = parse_filter(parts[0])
    else:
        audio_filter = StreamFilter()

    return FormatAlternative(
        want_video=want_video,
        want_audio=want_audio,
        video=parse_filter(parts[0]),
        audio=audio_filter,
    )


def parse_format_expression(expression: str) -> list[FormatAlternative]:
    """Parse a full ``alt1/alt2/...`` expression, preserving declaration order."""
    return [parse_alternative(alt) for alt in expression.split("/")]


def parse_simple_format(
    fmt: str | None, prefer_codec_flag: str | None = None
) -> FormatSelection:
    """Scan a whole format string for intent, codec hints and a height cap.

    This is the flag-driven adapter used when no structured expression is
    wanted: it looks at the string as a whole rather than per alternative,
    so ``"best av01 [height<=1080]"`` yields both streams, ``av01`` and 1080.

    Args:
        fmt: Optional format string
        prefer_codec_flag: Codec from ``--prefer-codec``, used unless the
            string carries its own hint

    Returns:
        The flat selection
    """
    sel = FormatSelection(prefer_codec=prefer_codec_flag)
    if not fmt:
        return sel

    lowered = fmt.lower()
    if "bestvideo+bestaudio" in lowered or "bv*+ba" in lowered or lowered == "bv+ba":
        sel.want_video, sel.want_audio = True, True
    elif "bestvideo" in lowered or lowered.startswith("bv"):
        sel.want_video, sel.want_audio = True, False
    elif "bestaudio" in lowered or lowered.startswith("ba"):
        sel.want_video, sel.want_audio = False, True
    elif lowered in ("best", "b"):
        sel.want_video, sel.want_audio = True, True

    hint = codec_hint(lowered)
    if hint is not None:
        sel.prefer_codec = hint

    pos = lowered.find("height<=")
    if pos >= 0:
        rest = lowered[pos + len("height<="):].lstrip("[=<")
        match = _DIGITS_RE.match(rest)
        if match:
            sel.max_height = int(match.group(0))
    return sel
