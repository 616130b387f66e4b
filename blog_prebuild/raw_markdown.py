"""Copy raw Markdown posts into the build output so they are served at ``/blog/{slug}.md``."""

from __future__ import annotations

import logging
from pathlib import Path

from .errors import PreconditionError
from .front_matter import ParseFailure, check_slug, parse_front_matter
from .models import CopyReport, SkippedFile
from .utils import READ_ERRORS, list_markdown_files, read_text_exact, write_text_exact

logger = logging.getLogger("blog_prebuild")


def copy_raw_markdown(content_dir: Path, output_dir: Path, build_dir: Path) -> CopyReport:
    """Copy every post with a usable slug to ``{output_dir}/{slug}.md`` verbatim.

    Both ``content_dir`` and ``build_dir`` (the static build output) must exist
    before anything is written; otherwise :class:`PreconditionError` is raised.
    Unreadable files and files without a usable slug are skipped and recorded in the report.
    """
    if not content_dir.is_dir():
        raise PreconditionError(f"Content directory not found: {content_dir}")
    if not build_dir.is_dir():
        raise PreconditionError(
            f"Build output directory not found: {build_dir} (run the site build first)"
        )

    report = CopyReport()
    files = list_markdown_files(content_dir)
    if not files:
        logger.info("No Markdown files found.")
        return report

    output_dir.mkdir(parents=True, exist_ok=True)

    for path in files:
        try:
            content = read_text_exact(path)
        except READ_ERRORS as exc:
            logger.warning("  Skipping %s: unreadable (%s)", path.name, exc)
            report.skipped.append(SkippedFile(path.name, f"unreadable: {exc}"))
            continue

        parsed = parse_front_matter(content)
        if isinstance(parsed, ParseFailure):
            reason = parsed.describe()
            logger.warning("  Skipping %s: %s", path.name, reason)
            report.skipped.append(SkippedFile(path.name, reason))
            continue

        slug_check = check_slug(parsed.attributes)
        if not slug_check.ok:
            logger.warning("  Skipping %s: %s", path.name, slug_check.error)
            report.skipped.append(SkippedFile(path.name, slug_check.error or ""))
            continue
        if slug_check.warning:
            logger.warning("  %s: %s", path.name, slug_check.warning)
            report.warnings.append(f"{path.name}: {slug_check.warning}")

        destination = output_dir / f"{slug_check.slug}.md"
        write_text_exact(destination, content)
        logger.info("  Copied: %s -> %s", path.name, destination.name)
        report.copied += 1

    return report
