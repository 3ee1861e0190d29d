"""Output filename templating (yt-dlp style ``%(field)s`` tokens)."""

import re

# Characters rejected by common filesystems (Windows being the strictest)
_FORBIDDEN_CHARS_RE = re.compile(r'[<>:"\\/|?*]')
_EDGE_CHARS = " \t\r\n\f\v."


def sanitize_filename(name: str) -> str:
    """Replace forbidden filename characters with ``_`` and trim whitespace and dots."""
    return _FORBIDDEN_CHARS_RE.sub("_", name).strip(_EDGE_CHARS)


def expand_template(template: str, title: str, bvid: str, cid: int, ext: str) -> str:
    """Expand an output template into a file stem (no extension).

    Supported tokens: ``%(title)s``, ``%(id)s``, ``%(cid)s``, ``%(ext)s``.
    A template without ``%(ext)s`` is sanitized as a whole and treated as a
    stem; one with ``%(ext)s`` keeps its directories and has the trailing
    ``.ext`` removed.

    Args:
        template: e.g. ``downloads/%(title)s [%(id)s].%(ext)s``
        title: Video title (sanitized before substitution)
        bvid: BV id
        cid: Content id of the page
        ext: Container extension, e.g. ``mp4``

    Returns:
        The output stem
    """
    out = (
        template.replace("%(title)s", sanitize_filename(title))
        .replace("%(id)s", bvid)
        .replace("%(cid)s", str(cid))
        .replace("%(ext)s", ext)
    )
    if "%(ext)s" not in template:
        return sanitize_filename(out)

    suffix = f".{ext}"
    while out.endswith(suffix):
        out = out[: -len(suffix)]
    return out
