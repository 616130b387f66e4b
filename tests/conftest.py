"""
tests/conftest.py
"""
from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import pytest
import requests
from PIL import Image, ImageFont

from blog_prebuild import ogp_image
from blog_prebuild.config import PrebuildConfig

# Smallest byte string filetype recognises as a TrueType font.
FAKE_TTF = b"\x00\x01\x00\x00\x00" + b"\x00" * 64
FAKE_WOFF2 = b"wOF2\x00\x01\x00\x00" + b"\x00" * 64
SVG_BASE = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="1200" height="630">'
    '<rect width="1200" height="630" fill="#142030"/></svg>'
)


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        text: str = "",
        content: Optional[bytes] = None,
        chunks: Optional[List[bytes]] = None,
    ):
        self.status_code = status_code
        self.text = text
        self.content = content if content is not None else text.encode("utf-8")
        self.chunks = chunks
        self.url = ""
        self.encoding: Optional[str] = None
        self.apparent_encoding = "utf-8"
        self.closed = False

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def raise_for_status(self) -> None:
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} Error")

    def iter_content(self, chunk_size: int = 1):
        if self.chunks is not None:
            yield from self.chunks
            return
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start : start + chunk_size]

    def close(self) -> None:
        self.closed = True


Route = Union[FakeResponse, Exception]


class FakeSession:
    """Stands in for ``requests.Session``; unknown URLs raise ``ConnectionError``."""

    def __init__(self, routes: Optional[Dict[str, Route]] = None):
        self.routes: Dict[str, Route] = dict(routes or {})
        self.calls: List[dict] = []

    def get(self, url: str, headers=None, timeout=None, allow_redirects=True, stream=False):
        self.calls.append(
            {"url": url, "headers": headers or {}, "timeout": timeout, "stream": stream}
        )
        route = self.routes.get(url)
        if route is None:
            raise requests.ConnectionError(f"no route to {url}")
        if isinstance(route, Exception):
            raise route
        route.url = url
        return route

    def urls(self) -> List[str]:
        return [call["url"] for call in self.calls]

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A project root with an empty content directory."""
    (tmp_path / "src" / "content" / "blog").mkdir(parents=True)
    return tmp_path


@pytest.fixture
def config(project: Path) -> PrebuildConfig:
    return PrebuildConfig.from_root(project)


@pytest.fixture
def write_post(config: PrebuildConfig) -> Callable[[str, str], Path]:
    def _write(name: str, text: str) -> Path:
        path = config.content_dir / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def base_image(config: PrebuildConfig) -> Path:
    """A plain 1200x630 PNG background, set as the configured base image."""
    path = config.base_image_path.with_suffix(".png")
    path.parent.mkdir(parents=True, exist_ok=True)
    buffer = BytesIO()
    Image.new("RGB", (1200, 630), (20, 24, 48)).save(buffer, format="PNG")
    path.write_bytes(buffer.getvalue())
    config.base_image_path = path
    return path



@pytest.fixture
def svg_base_image(config: PrebuildConfig) -> Path:
    """The SVG background at the default path; skips when libcairo is unavailable."""
    try:
        import cairosvg  # noqa: F401
    except (ImportError, OSError) as exc:
        pytest.skip(f"cairosvg unavailable: {exc}")
    path = config.base_image_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(SVG_BASE, encoding="utf-8")
    return path


@pytest.fixture
def default_font(monkeypatch: pytest.MonkeyPatch) -> None:
    """Render with Pillow's built-in font instead of the downloaded bytes."""
    monkeypatch.setattr(ogp_image, "load_font", lambda data, size: ImageFont.load_default())
