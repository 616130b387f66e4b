"""Configuration objects and constants for the pre-build pipelines."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger("blog_prebuild")

ROOT_ENV_VAR = "BLOG_PREBUILD_ROOT"

DEFAULT_CONTENT_DIR = Path("src/content/blog")
DEFAULT_BUILD_DIR = Path("dist/analog/public")
DEFAULT_OGP_OUTPUT_DIR = Path("public/ogp/blog")
DEFAULT_BASE_IMAGE = Path("src/assets/ogp/blog-ogp-base.svg")
DEFAULT_OGP_CACHE = Path(".ogp-cache.json")
DEFAULT_FONT_CACHE_DIR = Path(".font-cache")

DEFAULT_SITE_NAME = "nekorush14.dev"
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; OGPFetcher/1.0; +https://nekorush14.dev)"
DEFAULT_FONT_FAMILY = "Noto Sans JP"
DEFAULT_FONT_WEIGHT = 700
DEFAULT_FETCH_TIMEOUT = 10.0
CACHE_TTL_MS = 24 * 60 * 60 * 1000


@dataclass
class PrebuildConfig:
    """Paths and settings shared by the three pipelines."""

    project_root: Path
    content_dir: Path
    build_dir: Path
    raw_output_dir: Path
    ogp_output_dir: Path
    base_image_path: Path
    ogp_cache_path: Path
    font_cache_dir: Path
    font_family: str = DEFAULT_FONT_FAMILY
    font_weight: int = DEFAULT_FONT_WEIGHT
    site_name: str = DEFAULT_SITE_NAME
    user_agent: str = DEFAULT_USER_AGENT
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    cache_ttl_ms: int = CACHE_TTL_MS

    @classmethod
    def from_root(cls, root: Path, **overrides: Any) -> "PrebuildConfig":
        """Build a config with every default path resolved against ``root``.

        Path overrides may be relative; they are resolved against ``root`` too.
        ``raw_output_dir`` follows ``build_dir`` unless given explicitly.
        """
        root = Path(root).resolve()

        def resolve(name: str, default: Path) -> Path:
            value = overrides.pop(name, None)
            path = Path(value) if value is not None else default
            return path if path.is_absolute() else root / path

        content_dir = resolve("content_dir", DEFAULT_CONTENT_DIR)
        build_dir = resolve("build_dir", DEFAULT_BUILD_DIR)
        raw_output_dir = resolve("raw_output_dir", build_dir / "blog")
        ogp_output_dir = resolve("ogp_output_dir", DEFAULT_OGP_OUTPUT_DIR)
        base_image_path = resolve("base_image_path", DEFAULT_BASE_IMAGE)
        ogp_cache_path = resolve("ogp_cache_path", DEFAULT_OGP_CACHE)
        font_cache_dir = resolve("font_cache_dir", DEFAULT_FONT_CACHE_DIR)
        settings = {key: value for key, value in overrides.items() if value is not None}
        return cls(
            project_root=root,
            content_dir=content_dir,
            build_dir=build_dir,
            raw_output_dir=raw_output_dir,
            ogp_output_dir=ogp_output_dir,
            base_image_path=base_image_path,
            ogp_cache_path=ogp_cache_path,
            font_cache_dir=font_cache_dir,
            **settings,
        )


def resolve_project_root(explicit: Optional[Path] = None) -> Path:
    """Pick the project root from ``--root``, the environment, or the working directory."""
    if explicit is not None:
        return Path(explicit).expanduser().resolve()
    override = os.getenv(ROOT_ENV_VAR)
    if override:
        override_path = Path(override).expanduser()
        if override_path.exists():
            logger.debug("%s override detected at %s", ROOT_ENV_VAR, override_path)
            return override_path.resolve()
        logger.warning(
            "%s is set to %s but the path does not exist; falling back to %s",
            ROOT_ENV_VAR,
            override_path,
            Path.cwd(),
        )
    return Path.cwd().resolve()
