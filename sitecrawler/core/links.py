import logging
from typing import Dict, List
from bs4 import BeautifulSoup, SoupStrainer

from sitecrawler.core.url import normalize_url, origin_of
from sitecrawler.models.work_item import FoundLink

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 2

SKIPPED_HREF_PREFIXES = ("mailto:", "tel:", "javascript:", "data:", "#")

# Paths ending in these extensions are files, not pages
NON_PAGE_EXTENSIONS = (
    # images
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".tif", ".tiff", ".ico", ".svg", ".avif",
    # documents
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx", ".odt", ".ods", ".odp", ".rtf", ".epub",
    # archives
    ".zip", ".rar", ".7z", ".tar", ".gz", ".tgz", ".bz2", ".xz",
    # executables and installers
    ".exe", ".dmg", ".msi", ".pkg", ".deb", ".rpm", ".apk", ".bin", ".iso",
    # data interchange
    ".json", ".xml", ".csv", ".txt", ".yaml", ".yml", ".rss", ".atom",
    # media and fonts
    ".mp3", ".mp4", ".wav", ".avi", ".mov", ".webm", ".ogg", ".woff", ".woff2", ".ttf", ".eot",
    # static assets
    ".css", ".js",
)


def link_priority(parent_depth: int) -> int:
    """Links found on shallower pages are claimed first."""
    return max(0, 10 - parent_depth)


def _is_skipped_href(href: str) -> bool:
    return not href or href.lower().startswith(SKIPPED_HREF_PREFIXES)


def _is_non_page(path: str) -> bool:
    return path.lower().endswith(NON_PAGE_EXTENSIONS)


def _scan_hrefs(html: str) -> List[str]:
    # Only anchors are parsed; html.parser tolerates unclosed and malformed markup
    soup = BeautifulSoup(html, "html.parser", parse_only=SoupStrainer("a"))
    return [a_tag["href"].strip() for a_tag in soup.find_all("a", href=True)]


def extract_links(html: str, base_url: str, current_depth: int, max_depth: int = DEFAULT_MAX_DEPTH) -> List[FoundLink]:
    """
    Extracts the crawlable same-origin links of a page.

    Returns an empty list once the page sits at the depth ceiling. Every link
    gets depth current_depth + 1 and a priority derived from the parent depth;
    the result is de-duplicated by canonical URL, keeping document order.
    """
    if current_depth >= max_depth:
        logger.debug(f"Max depth {max_depth} reached at {base_url}, skipping link extraction.")
        return []

    base_origin = origin_of(base_url)
    if base_origin is None:
        logger.warning(f"Cannot extract links: base URL {base_url!r} is not a crawlable URL.")
        return []

    try:
        hrefs = _scan_hrefs(html or "")
    except Exception as e:
        logger.error(f"Error scanning anchors of {base_url}: {e}", exc_info=True)
        return []

    priority = link_priority(current_depth)
    found: Dict[str, FoundLink] = {}
    for href in hrefs:
        if _is_skipped_href(href):
            continue

        normalized = normalize_url(href, base_url)
        if normalized is None:
            continue
        if _is_non_page(normalized.path):
            continue
        if origin_of(normalized.url) != base_origin:
            continue

        if normalized.url not in found:
            found[normalized.url] = FoundLink(url=normalized.url, depth=current_depth + 1, priority=priority)

    logger.info(f"From {base_url}: Found {len(hrefs)} anchors, {len(found)} unique crawlable links.")
    return list(found.values())
