"""Utility helpers for slugs, timestamps and content discovery."""

from __future__ import annotations

import re
import time
from pathlib import Path
from typing import List

SLUG_FORMAT = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")
SLUG_PATTERN = re.compile(r"[^a-z0-9]+")
READ_ERRORS = (OSError, UnicodeDecodeError)


def slugify(value: str, fallback: str = "post") -> str:
    """Generate a filesystem-friendly slug using ASCII characters only."""
    normalized = value.encode("ascii", "ignore").decode("ascii")
    normalized = normalized.lower()
    normalized = SLUG_PATTERN.sub("-", normalized).strip("-")
    return normalized or fallback


def is_valid_slug(value: str) -> bool:
    return bool(SLUG_FORMAT.match(value))


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def list_markdown_files(directory: Path) -> List[Path]:
    """Return the ``.md`` files directly inside ``directory`` in a stable order."""
    return sorted(
        path for path in directory.iterdir() if path.is_file() and path.suffix == ".md"
    )


def read_text_exact(path: Path) -> str:
    """Read UTF-8 text without newline translation, so rewrites keep CRLF intact.

    Raises ``OSError`` or ``UnicodeDecodeError``; callers skip the post on either.
    """
    with path.open(encoding="utf-8", newline="") as handle:
        return handle.read()


def write_text_exact(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        handle.write(text)
