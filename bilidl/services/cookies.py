"""Credential loading from Netscape-format cookie files.

A ``CookieStore`` is built once per run and handed explicitly to the
components that send requests; nothing here keeps module-level state.
"""

import time
from dataclasses import dataclass, field
from pathlib import Path

from requests.cookies import RequestsCookieJar

from bilidl.core.logging import get_logger

logger = get_logger(__name__)

# Cookies the platform needs for logged-in quality tiers
CREDENTIAL_COOKIE_NAMES = (
    "SESSDATA",
    "bili_jct",
    "buvid3",
    "DedeUserID",
    "DedeUserID__ckMd5",
)

HTTPONLY_PREFIX = "#HttpOnly_"
NETSCAPE_HEADER = "# Netscape HTTP Cookie File"


@dataclass
class CookieStore:
    """Cookie jar plus the allow-listed ``Cookie`` header derived from it."""

    jar: RequestsCookieJar = field(default_factory=RequestsCookieJar)
    credentials: list[tuple[str, str]] = field(default_factory=list)

    @property
    def header(self) -> str | None:
        """``name=value; ...`` for allow-listed cookies, or None if there are none."""
        if not self.credentials:
            return None
        return "; ".join(f"{name}={value}" for name, value in self.credentials)

    def __len__(self) -> int:
        return len(self.jar)


def _split_line(line: str) -> list[str] | None:
    stripped = line.strip()
    if not stripped:
        return None
    if stripped.startswith(HTTPONLY_PREFIX):
        line = line.lstrip()[len(HTTPONLY_PREFIX):]
    elif stripped.startswith("#"):
        return None
    parts = line.rstrip("\r\n").split("\t")
    if len(parts) < 7:
        return None
    return [p.strip() for p in parts]


def parse_netscape_cookies(text: str) -> CookieStore:
    """Parse Netscape cookie-file text into a ``CookieStore``.

    Lines are ``domain, include-subdomains, path, secure, expiry, name,
    value`` separated by tabs. Comments, blank lines and short lines are
    skipped.
    """
    store = CookieStore()
    for line in text.splitlines():
        parts = _split_line(line)
        if parts is None:
            continue
        domain, _flag, path, secure, expiry, name, value = parts[:7]
        if not name:
            continue
        try:
            expires = int(expiry) or None
        except ValueError:
            expires = None
        store.jar.set(
            name,
            value,
            domain=domain,
            path=path or "/",
            secure=secure.upper() == "TRUE",
            expires=expires,
        )
        if name in CREDENTIAL_COOKIE_NAMES:
            store.credentials.append((name, value))
    return store


def load_netscape_cookies(path: str | Path) -> CookieStore:
    """Load a cookie file; unreadable or useless files give an empty store.

    Args:
        path: Path to a Netscape-format cookie file

    Returns:
        The parsed store (empty on any read failure)
    """
    try:
        text = Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning(f"Could not read cookies file {path}: {e}")
        return CookieStore()

    store = parse_netscape_cookies(text)
    if not store.credentials:
        logger.warning(f"No useful cookies found in {path}; continuing without login")
    else:
        names = ", ".join(name for name, _ in store.credentials)
        logger.info(f"Loaded {len(store)} cookies from {path} (credentials: {names})")
    return store


def save_netscape_cookies(store: CookieStore, path: str | Path) -> int:
    """Write every cookie in *store* to *path* in Netscape format.

    Returns:
        Number of cookies written
    """
    lines = [NETSCAPE_HEADER, ""]
    now = int(time.time())
    count = 0
    for cookie in store.jar:
        if cookie.expires is not None and cookie.expires < now:
            continue
        domain = cookie.domain or ""
        lines.append(
            "\t".join(
                [
                    domain,
                    "TRUE" if domain.startswith(".") else "FALSE",
                    cookie.path or "/",
                    "TRUE" if cookie.secure else "FALSE",
                    str(cookie.expires or 0),
                    cookie.name,
                    cookie.value or "",
                ]
            )
        )
        count += 1

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text("\n".join(lines) + "\n", encoding="utf-8")
    logger.info(f"Saved {count} cookies to {target}")
    return count
