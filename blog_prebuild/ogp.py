"""Open Graph metadata extraction and cached fetching for link cards."""

from __future__ import annotations

import logging
import time
from typing import List, Optional
from urllib.parse import urljoin, urlparse

import requests
from bs4 import BeautifulSoup

from .config import DEFAULT_FETCH_TIMEOUT, DEFAULT_USER_AGENT
from .models import OgpRecord
from .store import OgpCache
from .utils import now_ms

logger = logging.getLogger("blog_prebuild")

ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
ACCEPT_LANGUAGE = "ja,en;q=0.5"
ICON_RELS = ("icon", "shortcut icon")
CHUNK_SIZE = 16 * 1024
MAX_HTML_BYTES = 2 * 1024 * 1024


def _origin(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def default_favicon(url: str) -> str:
    return urljoin(_origin(url), "/favicon.ico")


def _meta_content(soup: BeautifulSoup, name: str) -> str:
    """Return the ``content`` of a meta tag matched by ``property`` or ``name``."""
    for attr in ("property", "name"):
        for tag in soup.find_all("meta", attrs={attr: True}):
            if tag[attr].strip().lower() != name:
                continue
            content = tag.get("content")
            if content and content.strip():
                return content.strip()
    return ""


def _first(soup: BeautifulSoup, *names: str) -> str:
    for name in names:
        value = _meta_content(soup, name)
        if value:
            return value
    return ""


def _favicon(soup: BeautifulSoup, url: str) -> str:
    for link in soup.find_all("link", href=True):
        rel = link.get("rel") or []
        rel_value = " ".join(rel).lower() if isinstance(rel, list) else str(rel).lower()
        if rel_value in ICON_RELS and link["href"].strip():
            return urljoin(url, link["href"].strip())
    return default_favicon(url)


def parse_ogp_html(html: str, url: str, fetched_at: Optional[int] = None) -> OgpRecord:
    """Extract link-card metadata from an HTML page fetched from ``url``."""
    soup = BeautifulSoup(html, "html.parser")

    title = _first(soup, "og:title", "twitter:title")
    if not title and soup.title and soup.title.string:
        title = soup.title.string.strip()

    description = _first(soup, "og:description", "twitter:description", "description")
    image = _first(soup, "og:image", "twitter:image")
    if image:
        image = urljoin(url, image)
    site_name = _first(soup, "og:site_name") or urlparse(url).hostname or ""

    return OgpRecord(
        url=url,
        title=title,
        description=description or None,
        image=image or None,
        site_name=site_name,
        favicon=_favicon(soup, url),
        fetched_at=now_ms() if fetched_at is None else fetched_at,
    )


def fallback_record(url: str, fetched_at: Optional[int] = None) -> OgpRecord:
    """Minimal record used when the page cannot be fetched."""
    hostname = urlparse(url).hostname or url
    return OgpRecord(
        url=url,
        title=hostname,
        description=None,
        image=None,
        site_name=hostname,
        favicon=default_favicon(url),
        fetched_at=now_ms() if fetched_at is None else fetched_at,
    )


def read_body(resp: requests.Response, deadline: float) -> str:
    """Read a streamed response body, giving up once ``deadline`` has passed.

    The ``requests`` timeout bounds each socket read; ``deadline`` bounds the
    whole body. Bodies are truncated at ``MAX_HTML_BYTES``, the meta tags live
    in ``<head>``.
    """
    chunks: List[bytes] = []
    size = 0
    for chunk in resp.iter_content(CHUNK_SIZE):
        if time.monotonic() > deadline:
            raise requests.Timeout(f"body of {resp.url} not received within the deadline")
        chunks.append(chunk)
        size += len(chunk)
        if size >= MAX_HTML_BYTES:
            logger.debug("  Truncating body of %s at %d bytes", resp.url, size)
            break
    data = b"".join(chunks)
    encoding = resp.encoding or resp.apparent_encoding or "utf-8"
    try:
        return data.decode(encoding, errors="replace")
    except LookupError:
        return data.decode("utf-8", errors="replace")


def fetch_ogp(
    url: str,
    cache: OgpCache,
    session: requests.Session,
    *,
    user_agent: str = DEFAULT_USER_AGENT,
    timeout: float = DEFAULT_FETCH_TIMEOUT,
    now: Optional[int] = None,
) -> OgpRecord:
    """Resolve the OGP record for ``url``, reusing a fresh cache entry when present.

    Fetch failures never raise; they degrade to :func:`fallback_record`. The
    resolved record is stored in ``cache`` either way.
    """
    now = now_ms() if now is None else now
    cached = cache.lookup(url, now)
    if cached is not None:
        logger.debug("Using cached OGP for %s", url)
        return cached

    logger.info("  Fetching OGP: %s", url)
    headers = {
        "User-Agent": user_agent,
        "Accept": ACCEPT,
        "Accept-Language": ACCEPT_LANGUAGE,
    }
    deadline = time.monotonic() + timeout
    try:
        resp = session.get(
            url, headers=headers, timeout=timeout, allow_redirects=True, stream=True
        )
        try:
            html = read_body(resp, deadline) if resp.ok else None
        finally:
            resp.close()
    except requests.RequestException as exc:
        logger.warning("  Error fetching %s: %s", url, exc)
        record = fallback_record(url, now)
    else:
        if html is not None:
            record = parse_ogp_html(html, url, now)
        else:
            logger.warning("  Failed to fetch %s: %s", url, resp.status_code)
            record = fallback_record(url, now)

    cache.put(url, record)
    return record
