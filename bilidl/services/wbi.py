"""WBI request signing for privileged Bilibili API calls.

The platform rotates two image URLs on its navigation endpoint. The file
stems of those URLs (``img_key`` and ``sub_key``) are shuffled through a
fixed public table into a 32-character mixin key, which is then appended
to the sorted query string before hashing with MD5 to produce ``w_rid``.
"""

import hashlib
import re
import time
from typing import TYPE_CHECKING, Callable
from urllib.parse import quote_plus

from bilidl.core.config import settings
from bilidl.core.logging import get_logger
from bilidl.models.video import NavResponse
from bilidl.services.errors import ResolutionError

if TYPE_CHECKING:
    from bilidl.services.bilibili_client import BiliClient

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MIXIN_KEY_ENC_TAB: tuple[int, ...] = (
    46, 47, 18, 2, 53, 8, 23, 32, 15, 50, 10, 31, 58, 3, 45, 35, 27, 43, 5, 49,
    33, 9, 42, 19, 29, 28, 14, 39, 12, 38, 41, 13, 37, 48, 7, 16, 24, 55, 40,
    61, 26, 17, 0, 1, 60, 51, 30, 4, 22, 25, 54, 21, 56, 59, 6, 63, 57, 62, 11,
    20, 34, 36, 44, 52,
)

MIXIN_KEY_LENGTH = 32

# e.g. https://i0.hdslb.com/bfs/wbi/7cd084941338484aae1ad9425b84077c.png
_KEY_URL_RE = re.compile(r"/([a-zA-Z0-9]+)\.(png|jpg)$")
_UNSAFE_VALUE_RE = re.compile(r"[!'()*~]")

SignedParams = tuple[list[tuple[str, str]], int, str]


def mixin_key(seed: str) -> str:
    """Derive the mixin key from ``img_key + sub_key``.

    Indices that fall outside a short seed are skipped, so the result can
    be shorter than 32 characters.
    """
    mixed = "".join(seed[i] for i in MIXIN_KEY_ENC_TAB if i < len(seed))
    return mixed[:MIXIN_KEY_LENGTH]


def sanitize(value: str) -> str:
    """Remove the characters ``!'()*~`` the platform strips before hashing."""
    return _UNSAFE_VALUE_RE.sub("", value)


def url_encode(value: str) -> str:
    """Percent-encode a query key or value the way a URL query builder does.

    Spaces become ``+`` and non-ASCII text is encoded as UTF-8 bytes.
    """
    return quote_plus(value, safe="*").replace("~", "%7E")


def extract_key(url: str) -> str:
    """Extract the key fragment (file stem) from a WBI image URL.

    Raises:
        ResolutionError: If the URL does not end in ``/<alnum>.png|jpg``
    """
    match = _KEY_URL_RE.search(url)
    if not match:
        raise ResolutionError(f"failed to parse wbi key from url: {url}")
    return match.group(1)


class WbiSigner:
    """Signs query parameters with a mixin key fetched once per session."""

    def __init__(self, mixin_key: str, clock: Callable[[], float] = time.time) -> None:
        self.mixin_key = mixin_key
        self._clock = clock

    @classmethod
    def from_mixin_key(cls, key: str) -> "WbiSigner":
        """Build a signer from an already known mixin key."""
        return cls(key)

    @classmethod
    def from_nav(cls, nav: NavResponse) -> "WbiSigner":
        """Build a signer from a decoded navigation payload.

        Raises:
            ResolutionError: If the payload lacks the image URLs
        """
        if nav.data is None:
            raise ResolutionError("nav data missing")
        wbi_img = nav.data.wbi_img
        if wbi_img is None or not wbi_img.img_url or not wbi_img.sub_url:
            raise ResolutionError("nav data missing wbi_img")
        img_key = extract_key(wbi_img.img_url)
        sub_key = extract_key(wbi_img.sub_url)
        return cls(mixin_key(img_key + sub_key))

    @classmethod
    def fetch(cls, client: "BiliClient") -> "WbiSigner":
        """Fetch the current key fragments through *client* and build a signer.

        Args:
            client: A ``BiliClient`` used for the retried nav request

        Returns:
            Signer holding the freshly derived mixin key
        """
        nav = client.get_json(settings.NAV_URL, NavResponse)
        signer = cls.from_nav(nav)
        logger.debug("Derived WBI mixin key from nav endpoint")
        return signer

    def sign(
        self, params: list[tuple[str, str]], wts: int | None = None
    ) -> SignedParams:
        """Sign *params* and return ``(sorted_params, wts, w_rid)``.

        Args:
            params: Unordered key/value pairs to sign
            wts: Unix timestamp to embed; the current time when omitted

        Returns:
            The sanitized parameters sorted by key (including ``wts``),
            the timestamp used and the lowercase hex MD5 digest
        """
        if wts is None:
            wts = int(self._clock())

        signed = [(key, sanitize(str(value))) for key, value in params]
        signed.append(("wts", str(wts)))
        signed.sort(key=lambda kv: kv[0])

        query = "&".join(f"{url_encode(k)}={url_encode(v)}" for k, v in signed)
        w_rid = hashlib.md5((query + self.mixin_key).encode("utf-8")).hexdigest()
        return signed, wts, w_rid
