"""Command-line entry point for the blog pre-build pipelines."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict, Sequence

import requests

from .config import (
    DEFAULT_FETCH_TIMEOUT,
    DEFAULT_FONT_FAMILY,
    DEFAULT_FONT_WEIGHT,
    DEFAULT_SITE_NAME,
    PrebuildConfig,
    resolve_project_root,
)
from .errors import PreconditionError
from .link_cards import enrich_directory
from .ogp_image import generate_images
from .raw_markdown import copy_raw_markdown
from .store import OgpCache

logger = logging.getLogger("blog_prebuild.cli")


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Project root that relative paths are resolved against (default: $BLOG_PREBUILD_ROOT or cwd)",
    )
    parser.add_argument(
        "--content-dir",
        type=Path,
        default=None,
        help="Directory containing the Markdown posts (default: src/content/blog)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def _add_copy_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--build-dir",
        type=Path,
        default=None,
        help="Static build output that must already exist (default: dist/analog/public)",
    )
    parser.add_argument(
        "--output",
        dest="raw_output_dir",
        type=Path,
        default=None,
        help="Where {slug}.md copies are written (default: <build-dir>/blog)",
    )


def _add_link_card_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--cache",
        dest="ogp_cache_path",
        type=Path,
        default=None,
        help="OGP cache file (default: .ogp-cache.json)",
    )
    parser.add_argument(
        "--timeout",
        dest="fetch_timeout",
        type=float,
        default=DEFAULT_FETCH_TIMEOUT,
        help="Per-URL fetch timeout in seconds",
    )


def _add_image_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--image-output",
        dest="ogp_output_dir",
        type=Path,
        default=None,
        help="Where {slug}.png images are written (default: public/ogp/blog)",
    )
    parser.add_argument(
        "--base-image",
        dest="base_image_path",
        type=Path,
        default=None,
        help="Pre-rendered 1200x630 background (default: src/assets/ogp/blog-ogp-base.svg)",
    )
    parser.add_argument(
        "--font-cache",
        dest="font_cache_dir",
        type=Path,
        default=None,
        help="Directory for downloaded fonts (default: .font-cache)",
    )
    parser.add_argument(
        "--font-family",
        default=DEFAULT_FONT_FAMILY,
        help="Google Fonts family used for the overlay text",
    )
    parser.add_argument(
        "--font-weight",
        type=int,
        default=DEFAULT_FONT_WEIGHT,
        help="Font weight to download",
    )
    parser.add_argument(
        "--site-name",
        default=DEFAULT_SITE_NAME,
        help="Site name printed at the bottom of each image",
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="blog-prebuild",
        description="Build-time content processing for the blog.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    copy_parser = subparsers.add_parser(
        "copy-raw", help="Copy raw Markdown posts into the build output as {slug}.md"
    )
    _add_common_arguments(copy_parser)
    _add_copy_arguments(copy_parser)

    link_parser = subparsers.add_parser(
        "link-cards", help="Rewrite standalone URLs in posts as link cards"
    )
    _add_common_arguments(link_parser)
    _add_link_card_arguments(link_parser)

    image_parser = subparsers.add_parser(
        "ogp-images", help="Generate the OGP preview image for every post"
    )
    _add_common_arguments(image_parser)
    _add_image_arguments(image_parser)

    all_parser = subparsers.add_parser(
        "all", help="Run link-cards and ogp-images in sequence"
    )
    _add_common_arguments(all_parser)
    _add_link_card_arguments(all_parser)
    _add_image_arguments(all_parser)

    return parser.parse_args(list(sys.argv[1:] if argv is None else argv))


_CONFIG_FIELDS = (
    "content_dir",
    "build_dir",
    "raw_output_dir",
    "ogp_output_dir",
    "base_image_path",
    "ogp_cache_path",
    "font_cache_dir",
    "font_family",
    "font_weight",
    "site_name",
    "fetch_timeout",
)


def build_config(args: argparse.Namespace) -> PrebuildConfig:
    overrides: Dict[str, Any] = {
        name: getattr(args, name) for name in _CONFIG_FIELDS if getattr(args, name, None) is not None
    }
    return PrebuildConfig.from_root(resolve_project_root(args.root), **overrides)


def _run_copy_raw(config: PrebuildConfig) -> None:
    logger.info("Copying raw Markdown files for static delivery...")
    report = copy_raw_markdown(config.content_dir, config.raw_output_dir, config.build_dir)
    logger.info(
        "Done! Copied %d Markdown file(s), skipped %d.",
        report.copied,
        len(report.skipped),
    )
    for skipped in report.skipped:
        logger.debug("Skipped %s: %s", skipped.filename, skipped.reason)


def _run_link_cards(config: PrebuildConfig, session: requests.Session) -> None:
    logger.info("Pre-build: Transforming URLs to link cards...")
    with OgpCache.open(config.ogp_cache_path, config.cache_ttl_ms) as cache:
        report = enrich_directory(config, cache, session)
    logger.info(
        "Done! Processed %d file(s) with %d total URLs, skipped %d.",
        report.files_processed,
        report.urls_transformed,
        len(report.skipped),
    )
    for skipped in report.skipped:
        logger.debug("Skipped %s: %s", skipped.filename, skipped.reason)
    if report.files_processed:
        logger.info(
            "Remember to run `git restore %s` after the build to revert the changes.",
            config.content_dir,
        )


def _run_ogp_images(config: PrebuildConfig, session: requests.Session) -> None:
    logger.info("Pre-build: Generating OGP images for blog posts...")
    report = generate_images(config, session)
    logger.info(
        "Done! Generated %d OGP image(s), skipped %d, failed %d.",
        report.generated,
        len(report.skipped),
        len(report.failed),
    )


def run(args: argparse.Namespace) -> int:
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    config = build_config(args)
    overall_start = time.perf_counter()
    try:
        if args.command == "copy-raw":
            _run_copy_raw(config)
        else:
            with requests.Session() as session:
                if args.command in ("link-cards", "all"):
                    _run_link_cards(config, session)
                if args.command in ("ogp-images", "all"):
                    _run_ogp_images(config, session)
    except PreconditionError as exc:
        logger.error("%s", exc)
        return 1
    logger.debug("%s finished in %.2fs", args.command, time.perf_counter() - overall_start)
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    sys.exit(run(parse_args(argv)))


if __name__ == "__main__":
    main()
