"""On-disk stores for fetched OGP metadata and downloaded fonts."""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional

from filetype import guess

from .config import CACHE_TTL_MS
from .models import FontAsset, OgpRecord, cache_filename

logger = logging.getLogger("blog_prebuild")

EMBEDDABLE_FONT_TYPES = {"ttf", "otf"}


class OgpCache:
    """URL-keyed store of :class:`OgpRecord` entries with a time-to-live.

    The whole map lives in memory during a run and is written back once, either
    explicitly via :meth:`save` or when the :meth:`open` block exits, including
    on error.
    """

    def __init__(self, path: Optional[Path] = None, ttl_ms: int = CACHE_TTL_MS) -> None:
        self.path = path
        self.ttl_ms = ttl_ms
        self._records: Dict[str, OgpRecord] = {}

    @classmethod
    @contextmanager
    def open(cls, path: Path, ttl_ms: int = CACHE_TTL_MS) -> Iterator["OgpCache"]:
        cache = cls(path, ttl_ms)
        cache.load()
        try:
            yield cache
        finally:
            cache.save()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: str) -> bool:
        return key in self._records

    def get(self, key: str) -> Optional[OgpRecord]:
        return self._records.get(key)

    def put(self, key: str, record: OgpRecord) -> None:
        self._records[key] = record

    def is_expired(self, record: OgpRecord, now: int) -> bool:
        return now - record.fetched_at >= self.ttl_ms

    def lookup(self, key: str, now: int) -> Optional[OgpRecord]:
        """Return the cached record for ``key`` only while it is still fresh."""
        record = self.get(key)
        if record is None or self.is_expired(record, now):
            return None
        return record

    def load(self) -> None:
        if self.path is None or not self.path.exists():
            logger.info("No existing OGP cache found")
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable OGP cache %s: %s", self.path, exc)
            return
        if not isinstance(data, dict):
            logger.warning("Ignoring OGP cache %s: expected a JSON object", self.path)
            return
        for key, value in data.items():
            try:
                self._records[key] = OgpRecord.from_dict(value)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Dropping malformed cache entry for %s: %s", key, exc)
        logger.info("Loaded %d cached OGP entries", len(self._records))

    def save(self) -> None:
        if self.path is None:
            return
        data = {key: record.to_dict() for key, record in self._records.items()}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )
        logger.debug("Saved %d OGP entries to %s", len(data), self.path)


def detect_font_format(data: bytes) -> Optional[str]:
    """Detect the font container using filetype; returns lowercase extension."""
    kind = guess(data)
    if kind and kind.mime.startswith(("font/", "application/font")):
        return kind.extension.lower()
    return None


def is_embeddable_font(data: bytes) -> bool:
    return detect_font_format(data) in EMBEDDABLE_FONT_TYPES


class FontStore:
    """Directory of font programs keyed by ``(family, weight)``.

    Entries never expire. A cached file in a web-compressed container (WOFF or
    WOFF2) cannot be embedded and is deleted on read so the caller fetches it
    again.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def path_for(self, family: str, weight: int) -> Path:
        return self.directory / cache_filename(family, weight)

    def get(self, family: str, weight: int) -> Optional[FontAsset]:
        path = self.path_for(family, weight)
        if not path.exists():
            return None
        data = path.read_bytes()
        if not is_embeddable_font(data):
            logger.info(
                "Cached font %s is %s, re-fetching TrueType",
                path.name,
                detect_font_format(data) or "not a recognised font",
            )
            path.unlink()
            return None
        logger.info("Using cached font: %s", path.name)
        return FontAsset(family=family, weight=weight, data=data)

    def put(self, asset: FontAsset) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(asset.family, asset.weight)
        path.write_bytes(asset.data)
        logger.info("Cached font: %s", path.name)
        return path
