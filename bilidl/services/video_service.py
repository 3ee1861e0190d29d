"""Resolve-and-select service used by the HTTP API."""

import threading
from dataclasses import dataclass

from cachetools import TTLCache

from bilidl.core.config import settings
from bilidl.core.logging import get_logger
from bilidl.models.video import (
    Dash,
    FormatsResponse,
    SelectedStream,
    SelectionResponse,
)
from bilidl.services.bilibili_client import BiliClient
from bilidl.services.errors import NoSuitableStreamsError, ResolutionError
from bilidl.services.selector import StreamSelector

logger = get_logger(__name__)


@dataclass
class ResolvedVideo:
    """A video page resolved down to its manifest."""

    bvid: str
    cid: int
    title: str
    dash: Dash


class VideoService:
    """Resolves inputs to manifests and applies format selection."""

    _manifest_cache: TTLCache | None = None
    _manifest_cache_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Cache helpers (backed by cachetools.TTLCache)
    # ------------------------------------------------------------------

    @classmethod
    def _get_cache(cls) -> TTLCache:
        """Lazy-initialise and return the TTL cache."""
        if cls._manifest_cache is None:
            cls._manifest_cache = TTLCache(
                maxsize=max(1, settings.FORMATS_CACHE_MAXSIZE),
                ttl=max(1, settings.FORMATS_CACHE_TTL_SECONDS),
            )
        return cls._manifest_cache

    @classmethod
    def _cache_enabled(cls) -> bool:
        """Return True when caching is configured on."""
        return settings.FORMATS_CACHE_TTL_SECONDS > 0 and settings.FORMATS_CACHE_MAXSIZE > 0

    @classmethod
    def clear_cache(cls) -> None:
        with cls._manifest_cache_lock:
            cls._manifest_cache = None

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    @staticmethod
    def _client() -> BiliClient:
        return BiliClient()

    @classmethod
    def resolve(cls, text: str, page: int = 1) -> ResolvedVideo:
        """Resolve *text* and *page* to a ``ResolvedVideo`` (cached).

        Raises:
            ResolutionError: If the page returns no DASH manifest
        """
        key = (text.strip(), page)
        if cls._cache_enabled():
            with cls._manifest_cache_lock:
                cached = cls._get_cache().get(key)
            if cached is not None:
                logger.debug(f"Manifest cache hit for {key}")
                return cached

        client = cls._client()
        bvid, cid = client.resolve_bvid_and_cid(text, page)
        play = client.get_playurl(bvid, cid)
        dash = play.data.dash if play.data else None
        if dash is None:
            raise ResolutionError(
                "No DASH data returned (maybe login required or invalid params)"
            )
        try:
            title = client.get_title(bvid)
        except ResolutionError:
            title = bvid

        resolved = ResolvedVideo(bvid=bvid, cid=cid, title=title, dash=dash)
        if cls._cache_enabled():
            with cls._manifest_cache_lock:
                cls._get_cache()[key] = resolved
        return resolved

    @classmethod
    def fetch_formats(cls, text: str, page: int = 1) -> FormatsResponse:
        """List the representations available for a page."""
        video = cls.resolve(text, page)
        return FormatsResponse(
            bvid=video.bvid,
            cid=video.cid,
            title=video.title,
            formats=StreamSelector.format_rows(video.dash),
        )

    @classmethod
    def select(cls, text: str, page: int, format_expr: str) -> SelectionResponse:
        """Apply *format_expr* to a page's manifest.

        Raises:
            NoSuitableStreamsError: If no alternative is satisfiable
        """
        video = cls.resolve(text, page)
        selection = StreamSelector.select(video.dash, format_expr=format_expr)
        if selection.is_empty:
            raise NoSuitableStreamsError(f"No suitable streams for format '{format_expr}'")

        response = SelectionResponse(bvid=video.bvid, cid=video.cid)
        if selection.video is not None:
            response.video = SelectedStream(
                id=selection.video.id,
                codecs=selection.video.codecs,
                url=selection.video.base_url,
                height=selection.video.height,
            )
        if selection.audio is not None:
            response.audio = SelectedStream(
                id=selection.audio.id,
                codecs=selection.audio.codecs,
                url=selection.audio.base_url,
            )
        return response
