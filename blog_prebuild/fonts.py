"""Download the OGP title font from Google Fonts, with an on-disk cache."""

from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import quote

import requests

from .errors import FontFetchError
from .models import FontAsset
from .store import FontStore, detect_font_format, is_embeddable_font

logger = logging.getLogger("blog_prebuild")

FONT_CSS_ENDPOINT = "https://fonts.googleapis.com/css2"
# An old browser user agent makes the CSS API serve TrueType instead of WOFF2.
LEGACY_USER_AGENT = "Mozilla/5.0 (compatible; MSIE 10.0; Windows NT 6.1; Trident/6.0)"
FONT_TIMEOUT = 30.0

TRUETYPE_SRC = re.compile(r"src:\s*url\(([^)]+)\)\s*format\(['\"]truetype['\"]\)")
ANY_SRC = re.compile(r"src:\s*url\(([^)]+)\)")


def font_css_url(family: str, weight: int) -> str:
    return f"{FONT_CSS_ENDPOINT}?family={quote(family)}:wght@{weight}&display=swap"


def extract_font_url(css: str) -> Optional[str]:
    """Pick the TrueType source from a Google Fonts stylesheet.

    Falls back to the first ``url(...)`` when no TrueType source is declared;
    the downloaded bytes are format-checked afterwards either way.
    """
    match = TRUETYPE_SRC.search(css)
    if match:
        return match.group(1).strip().strip("'\"")
    fallback = ANY_SRC.search(css)
    if fallback:
        logger.warning("  Could not find TTF format, using fallback URL")
        return fallback.group(1).strip().strip("'\"")
    return None


def fetch_font(
    family: str,
    weight: int,
    store: FontStore,
    session: requests.Session,
) -> FontAsset:
    """Return the font program for ``family``/``weight``, downloading it if needed.

    Raises :class:`FontFetchError` when the stylesheet or font cannot be
    downloaded, or when the downloaded font is not TrueType/OpenType.
    """
    cached = store.get(family, weight)
    if cached is not None:
        return cached

    logger.info("  Fetching font: %s (weight: %d)", family, weight)
    headers = {"User-Agent": LEGACY_USER_AGENT}
    try:
        css_resp = session.get(font_css_url(family, weight), headers=headers, timeout=FONT_TIMEOUT)
        css_resp.raise_for_status()
    except requests.RequestException as exc:
        raise FontFetchError(f"Failed to fetch font CSS: {exc}") from exc

    font_url = extract_font_url(css_resp.text)
    if not font_url:
        raise FontFetchError("Could not find font URL in CSS")

    try:
        font_resp = session.get(font_url, headers=headers, timeout=FONT_TIMEOUT)
        font_resp.raise_for_status()
    except requests.RequestException as exc:
        raise FontFetchError(f"Failed to fetch font: {exc}") from exc

    data = font_resp.content
    if not is_embeddable_font(data):
        raise FontFetchError(
            f"Font at {font_url} is {detect_font_format(data) or 'not a recognised font'}, "
            "expected TrueType or OpenType"
        )

    asset = FontAsset(family=family, weight=weight, data=data)
    store.put(asset)
    return asset
