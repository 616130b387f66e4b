"""Rewrite standalone URLs in posts as embedded link cards."""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterator, List, Mapping, Optional, Tuple
from urllib.parse import urlparse

import requests

from .config import PrebuildConfig
from .errors import PreconditionError
from .front_matter import ParseFailure, check_slug, parse_front_matter
from .models import LinkCardReport, OgpRecord, SkippedFile
from .ogp import fetch_ogp
from .store import OgpCache
from .utils import READ_ERRORS, list_markdown_files, read_text_exact, write_text_exact

logger = logging.getLogger("blog_prebuild")

STANDALONE_URL = re.compile(r"^https?://[^\s<>\[\]()]+$")
FENCE = "```"
FRONT_MATTER_DELIMITER = "---"


def _classify_lines(content: str) -> Iterator[Tuple[str, bool]]:
    """Yield each line with whether it is eligible for rewriting.

    Lines inside the front matter (between the first two ``---`` lines) and
    inside fenced code blocks, and the delimiter lines themselves, are never
    eligible.
    """
    in_front_matter = False
    in_code_block = False
    delimiters_seen = 0

    for line in content.split("\n"):
        trimmed = line.strip()
        if trimmed == FRONT_MATTER_DELIMITER and delimiters_seen < 2:
            delimiters_seen += 1
            in_front_matter = delimiters_seen == 1
            yield line, False
            continue
        if in_front_matter:
            yield line, False
            continue
        if trimmed.startswith(FENCE):
            in_code_block = not in_code_block
            yield line, False
            continue
        yield line, not in_code_block


def extract_standalone_urls(content: str) -> List[str]:
    """Return the lines that consist of a single bare URL, in document order."""
    return [
        line.strip()
        for line, eligible in _classify_lines(content)
        if eligible and STANDALONE_URL.match(line.strip())
    ]


def escape_html(value: Optional[str]) -> str:
    if not value:
        return ""
    return (
        value.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#39;")
    )


def render_link_card(record: OgpRecord) -> str:
    """Render the HTML snippet for one link card."""
    hostname = escape_html(urlparse(record.url).hostname)
    title = escape_html(record.title) or hostname
    description = escape_html(record.description)
    site_name = escape_html(record.site_name) or hostname
    favicon = escape_html(record.favicon)
    image = escape_html(record.image)
    url = escape_html(record.url)

    description_html = (
        f'<span class="link-card-description">{description}</span>' if description else ""
    )
    favicon_html = (
        f'<img src="{favicon}" alt="" class="link-card-favicon" loading="lazy" '
        f'decoding="async" width="16" height="16" onerror="this.style.display=\'none\'">'
        if favicon
        else ""
    )
    image_html = (
        f'<div class="link-card-image-container"><img src="{image}" alt="" '
        f'class="link-card-image" loading="lazy" decoding="async"></div>'
        if image
        else ""
    )
    return "\n".join(
        [
            '<div class="link-card">',
            f'  <a href="{url}" target="_blank" rel="noopener noreferrer" class="link-card-anchor">',
            '    <div class="link-card-content">',
            '      <div class="link-card-text">',
            f'        <span class="link-card-title">{title}</span>',
            f"        {description_html}",
            '        <span class="link-card-meta">',
            f"          {favicon_html}",
            f'          <span class="link-card-site-name">{site_name}</span>',
            "        </span>",
            "      </div>",
            f"      {image_html}",
            "    </div>",
            "  </a>",
            "</div>",
        ]
    )


def transform_content(content: str, records: Mapping[str, OgpRecord]) -> str:
    """Replace each standalone URL line that has a record with a link card.

    Every other line, front matter and fenced code included, is kept verbatim.
    """
    output: List[str] = []
    for line, eligible in _classify_lines(content):
        url = line.strip()
        if eligible and STANDALONE_URL.match(url) and url in records:
            output.extend(["", render_link_card(records[url]), ""])
            continue
        output.append(line)
    return "\n".join(output)


def _skip_reason(filename: str, content: str) -> Optional[str]:
    """Why a post must be left untouched, or ``None`` when it has a usable slug."""
    parsed = parse_front_matter(content)
    if isinstance(parsed, ParseFailure):
        return parsed.describe()
    slug_check = check_slug(parsed.attributes)
    if slug_check.warning:
        logger.warning("  %s: %s", filename, slug_check.warning)
    return slug_check.error


def enrich_directory(
    config: PrebuildConfig,
    cache: OgpCache,
    session: requests.Session,
) -> LinkCardReport:
    """Rewrite every post in the content directory in place.

    Posts that cannot be read or lack a usable slug are skipped untouched and
    recorded in the report. Raises :class:`PreconditionError` when the
    content directory is missing.
    """
    content_dir = config.content_dir
    if not content_dir.is_dir():
        raise PreconditionError(f"Content directory not found: {content_dir}")

    report = LinkCardReport()
    files = list_markdown_files(content_dir)
    if not files:
        logger.info("No Markdown files found.")
        return report

    for path in files:
        try:
            content = read_text_exact(path)
        except READ_ERRORS as exc:
            logger.warning("  Skipping %s: unreadable (%s)", path.name, exc)
            report.skipped.append(SkippedFile(path.name, f"unreadable: {exc}"))
            continue

        reason = _skip_reason(path.name, content)
        if reason is not None:
            logger.warning("  Skipping %s: %s", path.name, reason)
            report.skipped.append(SkippedFile(path.name, reason))
            continue

        urls = extract_standalone_urls(content)
        if not urls:
            continue

        logger.info("Processing %s (%d URLs):", path.name, len(urls))
        records: Dict[str, OgpRecord] = {}
        for url in urls:
            if url in records:
                continue
            records[url] = fetch_ogp(
                url,
                cache,
                session,
                user_agent=config.user_agent,
                timeout=config.fetch_timeout,
            )

        write_text_exact(path, transform_content(content, records))
        report.files_processed += 1
        report.urls_transformed += len(urls)
        logger.info("  Transformed %d URLs", len(urls))

    return report
