"""Generate the 1200x630 OGP preview image for every blog post.

Each image is described first as a small layout tree (a root box holding the
background and absolutely positioned text nodes) and then rasterised with
Pillow using the downloaded title font. An SVG background is rendered to
pixels with CairoSVG first.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Dict, List, Optional, Union

import requests
from filetype import guess
from PIL import Image, ImageDraw, ImageFont

from .config import PrebuildConfig
from .errors import PreconditionError
from .fonts import fetch_font
from .front_matter import ParseFailure, check_slug, parse_simple_front_matter
from .models import ImageReport, OgpImageSpec, SkippedFile
from .store import FontStore
from .utils import READ_ERRORS, list_markdown_files, read_text_exact

logger = logging.getLogger("blog_prebuild")

ELLIPSIS = "…"
SVG_MIME = "image/svg+xml"


@dataclass(frozen=True)
class TextStyle:
    x: int
    y: int
    font_size: int
    color: str
    max_width: Optional[int] = None
    max_lines: int = 1
    line_height: float = 1.2


@dataclass(frozen=True)
class Layout:
    width: int
    height: int
    title: TextStyle
    tags: TextStyle
    date: TextStyle
    site_name: TextStyle


LAYOUT = Layout(
    width=1200,
    height=630,
    title=TextStyle(
        x=80, y=180, font_size=48, color="#ffffff", max_width=800, max_lines=3, line_height=1.3
    ),
    tags=TextStyle(x=80, y=480, font_size=16, color="#fca605"),
    date=TextStyle(x=80, y=520, font_size=14, color="#b1c9ee"),
    site_name=TextStyle(x=80, y=560, font_size=18, color="#a5a6f2"),
)


@dataclass
class ImageNode:
    src: str
    x: int
    y: int
    width: int
    height: int


@dataclass
class TextNode:
    text: str
    style: TextStyle


@dataclass
class Box:
    width: int
    height: int
    children: List[Union[ImageNode, TextNode]] = field(default_factory=list)


def _looks_like_svg(data: bytes) -> bool:
    head = data[:2048].lstrip(b"\xef\xbb\xbf").lstrip()
    return head.startswith((b"<svg", b"<?xml", b"<!--", b"<!DOCTYPE")) and b"<svg" in head


def to_data_uri(data: bytes) -> str:
    """Embed background image bytes (PNG, JPEG or SVG) as a base64 data URI."""
    kind = guess(data)
    if kind is not None and kind.mime.startswith("image/"):
        mime = kind.mime
    elif _looks_like_svg(data):
        mime = SVG_MIME
    else:
        raise PreconditionError("Base image is neither SVG nor a raster image")
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def data_uri_mime(uri: str) -> str:
    return uri.partition(",")[0][len("data:") :].split(";", 1)[0]


def decode_data_uri(uri: str) -> bytes:
    header, _, payload = uri.partition(",")
    if not header.startswith("data:") or not header.endswith(";base64"):
        raise ValueError(f"Unsupported data URI: {header[:40]}")
    return base64.b64decode(payload)


def load_base_image(path: Path) -> str:
    """Read the pre-rendered background once and return it as a data URI."""
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise PreconditionError(f"Base image not found at {path}") from exc
    return to_data_uri(data)


def build_layout(spec: OgpImageSpec, background_uri: str, site_name: str) -> Box:
    root = Box(width=LAYOUT.width, height=LAYOUT.height)
    root.children.append(ImageNode(background_uri, 0, 0, LAYOUT.width, LAYOUT.height))
    root.children.append(TextNode(spec.title, LAYOUT.title))
    if spec.tag_line:
        root.children.append(TextNode(spec.tag_line, LAYOUT.tags))
    root.children.append(TextNode(spec.date, LAYOUT.date))
    root.children.append(TextNode(site_name, LAYOUT.site_name))
    return root


def load_font(font_data: bytes, size: int) -> ImageFont.FreeTypeFont:
    return ImageFont.truetype(BytesIO(font_data), size)


def _clamp(line: str, font: ImageFont.FreeTypeFont, max_width: int) -> str:
    while line and font.getlength(line + ELLIPSIS) > max_width:
        line = line[:-1]
    return line.rstrip() + ELLIPSIS


def wrap_text(
    text: str,
    font: ImageFont.FreeTypeFont,
    max_width: int,
    max_lines: int,
) -> List[str]:
    """Greedy line wrapping that prefers spaces and falls back to any character.

    Text that needs more than ``max_lines`` lines is cut and ends in an ellipsis.
    """
    text = " ".join(text.split())
    lines: List[str] = []
    current = ""
    for char in text:
        candidate = current + char
        if not current or font.getlength(candidate) <= max_width:
            current = candidate
            continue
        cut = current.rfind(" ")
        if char != " " and cut > 0:
            lines.append(current[:cut])
            current = current[cut + 1 :] + char
        else:
            lines.append(current.rstrip())
            current = char.lstrip()
    if current:
        lines.append(current)

    if len(lines) > max_lines:
        lines = lines[:max_lines]
        lines[-1] = _clamp(lines[-1], font, max_width)
    return lines


def _rasterise_svg(data: bytes, width: int, height: int) -> bytes:
    import cairosvg

    return cairosvg.svg2png(bytestring=data, output_width=width, output_height=height)


def _load_background(node: ImageNode) -> Image.Image:
    data = decode_data_uri(node.src)
    if data_uri_mime(node.src) == SVG_MIME:
        data = _rasterise_svg(data, node.width, node.height)
    with Image.open(BytesIO(data)) as source:
        background = source.convert("RGBA")
    if background.size != (node.width, node.height):
        background = background.resize((node.width, node.height), Image.LANCZOS)
    return background


def render_png(layout: Box, font_data: bytes) -> bytes:
    """Rasterise ``layout`` to PNG bytes at exactly the layout's pixel size."""
    canvas = Image.new("RGBA", (layout.width, layout.height), (0, 0, 0, 255))
    fonts: Dict[int, ImageFont.FreeTypeFont] = {}

    for node in layout.children:
        if isinstance(node, ImageNode):
            canvas.alpha_composite(_load_background(node), (node.x, node.y))
            continue

        style = node.style
        if not node.text:
            continue
        if style.font_size not in fonts:
            fonts[style.font_size] = load_font(font_data, style.font_size)
        font = fonts[style.font_size]
        if style.max_width:
            lines = wrap_text(node.text, font, style.max_width, style.max_lines)
        else:
            lines = [node.text]

        draw = ImageDraw.Draw(canvas)
        line_px = style.font_size * style.line_height
        leading = (line_px - style.font_size) / 2
        for index, line in enumerate(lines):
            top = style.y + index * line_px + leading
            draw.text((style.x, top), line, font=font, fill=style.color)

    buffer = BytesIO()
    canvas.convert("RGB").save(buffer, format="PNG")
    return buffer.getvalue()


def generate_images(
    config: PrebuildConfig,
    session: requests.Session,
    store: Optional[FontStore] = None,
) -> ImageReport:
    """Render ``{slug}.png`` for every post with a title and slug.

    The base image, the font and the content directory are checked before any
    post is processed; a problem with any of them raises
    :class:`PreconditionError`. Per-post problems are recorded in the report.
    """
    output_dir = config.ogp_output_dir
    output_dir.mkdir(parents=True, exist_ok=True)

    background_uri = load_base_image(config.base_image_path)
    store = store or FontStore(config.font_cache_dir)
    font = fetch_font(config.font_family, config.font_weight, store, session)

    if not config.content_dir.is_dir():
        raise PreconditionError(f"Content directory not found at {config.content_dir}")

    report = ImageReport()
    files = list_markdown_files(config.content_dir)
    if not files:
        logger.info("No markdown files found.")
        return report
    logger.info("Found %d blog post(s)", len(files))

    for path in files:
        try:
            content = read_text_exact(path)
        except READ_ERRORS as exc:
            logger.warning("  Skipping %s: unreadable (%s)", path.name, exc)
            report.skipped.append(SkippedFile(path.name, f"unreadable: {exc}"))
            continue

        parsed = parse_simple_front_matter(content)
        if isinstance(parsed, ParseFailure):
            logger.warning("  Skipping %s: %s", path.name, parsed.describe())
            report.skipped.append(SkippedFile(path.name, parsed.describe()))
            continue
        for warning in parsed.warnings:
            logger.warning("  %s: %s", path.name, warning)

        spec = OgpImageSpec.from_attributes(parsed.attributes)
        if spec is None:
            logger.warning("  Skipping %s: missing title or slug", path.name)
            report.skipped.append(SkippedFile(path.name, "missing title or slug"))
            continue
        slug_check = check_slug(parsed.attributes)
        if not slug_check.ok:
            logger.warning("  Skipping %s: %s", path.name, slug_check.error)
            report.skipped.append(SkippedFile(path.name, slug_check.error or ""))
            continue
        if slug_check.warning:
            logger.warning("  %s: %s", path.name, slug_check.warning)

        logger.info("  Generating: %s.png", spec.slug)
        try:
            png = render_png(build_layout(spec, background_uri, config.site_name), font.data)
            (output_dir / f"{spec.slug}.png").write_bytes(png)
        except (OSError, ValueError) as exc:
            logger.error("  Error generating %s.png: %s", spec.slug, exc)
            report.failed.append(SkippedFile(path.name, str(exc)))
            continue
        report.generated += 1

    return report
