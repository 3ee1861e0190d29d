"""HTTP client for the Bilibili web API (view, nav, signed playurl)."""

import re
import time
from typing import Any, TypeVar
from urllib.parse import parse_qs, urlparse

import requests
from pydantic import BaseModel

from bilidl.core.config import settings
from bilidl.core.logging import get_logger
from bilidl.models.video import PlayUrlResponse, ViewData, ViewResponse
from bilidl.services.cookies import CookieStore
from bilidl.services.errors import ApiError, DecodeError, ResolutionError, TransportError
from bilidl.services.wbi import WbiSigner

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)

BVID_RE = re.compile(r"BV[0-9A-Za-z]{10}")


def extract_bvid(text: str) -> str | None:
    """Return the first BV id found in *text* (a bare id or any URL)."""
    match = BVID_RE.search(text)
    return match.group(0) if match else None


def extract_page_param(text: str) -> int | None:
    """Return the ``p`` query parameter of a URL, if it is a positive integer."""
    parsed = urlparse(text)
    if not parsed.scheme or not parsed.netloc:
        return None
    values = parse_qs(parsed.query).get("p")
    if not values or not values[0].isdigit():
        return None
    return int(values[0])


class BiliClient:
    """Signed, retried JSON requests against the platform API.

    The cookie store is passed in by the caller and shared with the
    session, so cookies set by responses can be saved after the run.
    """

    def __init__(
        self,
        user_agent: str | None = None,
        referer: str | None = None,
        cookies: CookieStore | None = None,
        proxy: str | None = None,
    ) -> None:
        self.cookies = cookies or CookieStore()
        self.session = requests.Session()
        self.session.headers.update(
            {
                "User-Agent": user_agent or settings.USER_AGENT,
                "Referer": referer or settings.REFERER,
            }
        )
        # Only allow-listed credentials go out in the header
        if self.cookies.header:
            self.session.headers["Cookie"] = self.cookies.header
        self.session.cookies = self.cookies.jar

        proxy = proxy or settings.PROXY
        if proxy:
            self.session.proxies.update({"http": proxy, "https": proxy})

        self.timeout = (settings.CONNECT_TIMEOUT_SECONDS, settings.READ_TIMEOUT_SECONDS)
        self.retry_delays = settings.retry_delays

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def get_json(
        self,
        url: str,
        model: type[T],
        params: list[tuple[str, str]] | dict[str, Any] | None = None,
    ) -> T:
        """GET *url* and decode the body into *model*, retrying failures.

        Every attempt failure (transport error or non-2xx status) is retried
        the same way until the delay schedule is exhausted. Decode failures
        are not retried.

        Args:
            url: Endpoint URL
            model: Pydantic model describing the expected payload
            params: Query parameters

        Returns:
            The decoded payload

        Raises:
            TransportError: If every attempt failed
            DecodeError: If a 2xx body does not match *model*
        """
        last_error = "request failed"
        for attempt, delay in enumerate(self.retry_delays, start=1):
            if delay > 0:
                time.sleep(delay)
            try:
                resp = self.session.get(url, params=params, timeout=self.timeout)
            except requests.RequestException as e:
                last_error = f"send error: {e} (attempt {attempt})"
                logger.warning(f"GET {url} failed: {last_error}")
                continue

            if 200 <= resp.status_code < 300:
                try:
                    return model.model_validate(resp.json())
                except ValueError as e:
                    raise DecodeError(f"Unexpected payload from {url}: {e}") from e

            last_error = f"http status {resp.status_code} (attempt {attempt})"
            logger.warning(f"GET {url} failed: {last_error}")

        raise TransportError(last_error)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def parse_bvid_and_page(self, text: str) -> tuple[str, int | None]:
        """Find the BV id and optional page in *text*, following short links.

        Raises:
            ResolutionError: If no BV id can be found
            TransportError: If following a short link fails
        """
        bvid = extract_bvid(text)
        if bvid:
            return bvid, extract_page_param(text)

        parsed = urlparse(text)
        if parsed.scheme in ("http", "https") and parsed.netloc:
            page = extract_page_param(text)
            try:
                resp = self.session.get(text, timeout=self.timeout, allow_redirects=True)
            except requests.RequestException as e:
                raise TransportError(f"send error: {e}") from e
            bvid = extract_bvid(resp.url)
            if bvid:
                logger.info(f"Resolved {text} -> {resp.url}")
                return bvid, page

        raise ResolutionError("BV id not found in input")

    def get_view(self, bvid: str) -> ViewData:
        """Fetch title and page list for *bvid*."""
        view = self.get_json(settings.VIEW_URL, ViewResponse, params={"bvid": bvid})
        if view.data is None:
            detail = f" ({view.code}: {view.message})" if view.code else ""
            raise ResolutionError(f"view data missing{detail}")
        return view.data

    def resolve_bvid_and_cid(self, text: str, page: int = 1) -> tuple[str, int]:
        """Resolve user input plus page number to ``(bvid, cid)``.

        A ``?p=`` in the URL is used when *page* is left at its default of 1.

        Raises:
            ResolutionError: If the id is missing or the page is out of range
        """
        bvid, page_from_url = self.parse_bvid_and_page(text)
        if page == 1 and page_from_url:
            page = page_from_url

        data = self.get_view(bvid)
        index = max(page - 1, 0)
        if index >= len(data.pages):
            raise ResolutionError(f"page {page} not found")
        cid = data.pages[index].cid
        logger.info(f"Resolved {bvid} page {page} -> cid {cid}")
        return bvid, cid

    def get_title(self, bvid: str) -> str:
        return self.get_view(bvid).title

    # ------------------------------------------------------------------
    # Playurl
    # ------------------------------------------------------------------

    def get_playurl(
        self,
        bvid: str,
        cid: int,
        quality: int | None = None,
        fnval: int | None = None,
    ) -> PlayUrlResponse:
        """Fetch the signed stream manifest for one page.

        Raises:
            ApiError: If the response carries a non-zero ``code``
        """
        signer = WbiSigner.fetch(self)
        params = [
            ("bvid", bvid),
            ("cid", str(cid)),
            ("fnval", str(settings.DEFAULT_FNVAL if fnval is None else fnval)),
            ("fourk", "1"),
            ("hires", "1"),
        ]
        if quality is not None:
            params.append(("qn", str(quality)))

        signed, _wts, w_rid = signer.sign(params)
        signed.append(("w_rid", w_rid))

        parsed = self.get_json(settings.PLAYURL_URL, PlayUrlResponse, params=signed)
        if parsed.code != 0:
            raise ApiError(parsed.code, parsed.message)
        return parsed
