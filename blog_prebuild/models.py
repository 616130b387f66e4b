"""Data models used throughout the pre-build pipelines."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

_WHITESPACE = re.compile(r"\s+")


@dataclass
class OgpRecord:
    """Open Graph metadata for a linked URL, as stored in the OGP cache."""

    url: str
    title: str
    description: Optional[str] = None
    image: Optional[str] = None
    site_name: Optional[str] = None
    favicon: Optional[str] = None
    fetched_at: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "description": self.description or "",
            "image": self.image or "",
            "siteName": self.site_name or "",
            "favicon": self.favicon or "",
            "fetchedAt": self.fetched_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OgpRecord":
        return cls(
            url=str(data["url"]),
            title=str(data.get("title") or ""),
            description=data.get("description") or None,
            image=data.get("image") or None,
            site_name=data.get("siteName") or None,
            favicon=data.get("favicon") or None,
            fetched_at=int(data.get("fetchedAt") or 0),
        )


@dataclass
class FontAsset:
    """Raw font program bytes for one family and weight."""

    family: str
    weight: int
    data: bytes

    @property
    def key(self) -> Tuple[str, int]:
        return (self.family, self.weight)

    @property
    def cache_filename(self) -> str:
        return cache_filename(self.family, self.weight)


def cache_filename(family: str, weight: int) -> str:
    return f"{_WHITESPACE.sub('-', family)}-{weight}.ttf"


@dataclass
class OgpImageSpec:
    """Everything the OGP image shows for one post."""

    title: str
    slug: str
    date: str = ""
    tags: List[str] = field(default_factory=list)

    @property
    def tag_line(self) -> str:
        return "  ".join(f"#{tag}" for tag in self.tags)

    @classmethod
    def from_attributes(cls, attributes: Mapping[str, Any]) -> Optional["OgpImageSpec"]:
        """Derive the image contents from front matter; ``None`` when title or slug is missing."""
        title = attributes.get("title")
        slug = attributes.get("slug")
        if not title or not slug or not isinstance(title, str) or not isinstance(slug, str):
            return None
        tags = attributes.get("tags") or []
        if isinstance(tags, str):
            tags = [tags]
        date = attributes.get("date") or ""
        return cls(
            title=title,
            slug=slug,
            date=str(date),
            tags=[str(tag) for tag in tags if str(tag)],
        )


@dataclass
class SkippedFile:
    """A content file a pipeline did not process, with the reason."""

    filename: str
    reason: str


@dataclass
class CopyReport:
    copied: int = 0
    skipped: List[SkippedFile] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class LinkCardReport:
    files_processed: int = 0
    urls_transformed: int = 0
    skipped: List[SkippedFile] = field(default_factory=list)


@dataclass
class ImageReport:
    generated: int = 0
    skipped: List[SkippedFile] = field(default_factory=list)
    failed: List[SkippedFile] = field(default_factory=list)
