import logging
from typing import NamedTuple, Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

logger = logging.getLogger(__name__)

CRAWLABLE_SCHEMES = ("http", "https")
DEFAULT_PORTS = {"http": 80, "https": 443}


class NormalizedUrl(NamedTuple):
    url: str # Canonical absolute URL, used as the page identity
    path: str # Normalized path, "/" for the site root


def _normalize_path(path: str) -> str:
    stripped = path.rstrip("/")
    return stripped if stripped else "/"


def normalize_url(url: str, base: str = "") -> Optional[NormalizedUrl]:
    """
    Resolves a URL against a base and reduces it to its canonical form:
    fragment and query cleared, scheme and host lower-cased, default port
    dropped, trailing slash removed from every path except the root.

    Returns None when the result is not a usable http(s) URL.
    """
    try:
        parts = urlsplit(urljoin(base, url.strip()))
        host = parts.hostname
        port = parts.port # Raises ValueError for a malformed port
    except ValueError as e:
        logger.debug(f"Could not normalize URL {url!r} against {base!r}: {e}")
        return None

    if parts.scheme not in CRAWLABLE_SCHEMES or not host:
        return None

    if port == DEFAULT_PORTS[parts.scheme]:
        port = None

    if ":" in host:
        host = f"[{host}]"
    netloc = host if port is None else f"{host}:{port}"
    userinfo, _, _ = parts.netloc.rpartition("@")
    if userinfo:
        netloc = f"{userinfo}@{netloc}"

    path = _normalize_path(parts.path)
    canonical = urlunsplit((parts.scheme, netloc, path, "", ""))
    return NormalizedUrl(url=canonical, path=path)


def origin_of(url: str) -> Optional[str]:
    """Returns scheme://host[:port] of a URL after normalization."""
    normalized = normalize_url(url)
    if normalized is None:
        return None
    parts = urlsplit(normalized.url)
    return f"{parts.scheme}://{parts.netloc}"
