"""
tests/test_ogp_image.py
"""
from __future__ import annotations

import logging
from io import BytesIO

import pytest
from PIL import Image, ImageFont

from blog_prebuild.errors import FontFetchError, PreconditionError
from blog_prebuild.fonts import font_css_url
from blog_prebuild.models import OgpImageSpec
from blog_prebuild.ogp_image import (
    ELLIPSIS,
    LAYOUT,
    ImageNode,
    TextNode,
    build_layout,
    decode_data_uri,
    generate_images,
    load_base_image,
    render_png,
    wrap_text,
)

from .conftest import FAKE_TTF, SVG_BASE, FakeResponse, FakeSession

FONT_URL = "https://fonts.gstatic.com/s/notosansjp/font.ttf"
HELLO = """---
title: "Hello World"
slug: hello-world
date: 2024-01-01
tags:
  - a
  - b
---
Body
"""


@pytest.fixture
def font_session() -> FakeSession:
    css = f"src: url({FONT_URL}) format('truetype');"
    return FakeSession(
        {
            font_css_url("Noto Sans JP", 700): FakeResponse(200, css),
            FONT_URL: FakeResponse(200, content=FAKE_TTF),
        }
    )


def test_spec_from_attributes():
    spec = OgpImageSpec.from_attributes(
        {"title": "Hello World", "slug": "hello-world", "tags": ["a", "b"], "date": "2024-01-01"}
    )
    assert spec is not None
    assert spec.tag_line == "#a  #b"
    assert OgpImageSpec.from_attributes({"title": "No slug"}) is None
    assert OgpImageSpec.from_attributes({"slug": "no-title"}) is None
    assert OgpImageSpec(title="T", slug="t").tag_line == ""


def test_layout_tree_places_overlays(base_image):
    uri = load_base_image(base_image)
    spec = OgpImageSpec(title="Hello", slug="hello", date="2024-01-01", tags=["a", "b"])
    root = build_layout(spec, uri, "example.dev")

    assert (root.width, root.height) == (1200, 630)
    background, *texts = root.children
    assert isinstance(background, ImageNode)
    assert background.src.startswith("data:image/png;base64,")
    assert decode_data_uri(background.src) == base_image.read_bytes()
    assert [node.text for node in texts if isinstance(node, TextNode)] == [
        "Hello",
        "#a  #b",
        "2024-01-01",
        "example.dev",
    ]
    assert texts[0].style == LAYOUT.title


def test_layout_omits_tag_line_without_tags(base_image):
    spec = OgpImageSpec(title="Hello", slug="hello", date="2024-01-01")
    root = build_layout(spec, load_base_image(base_image), "example.dev")
    assert [node.style for node in root.children[1:]] == [LAYOUT.title, LAYOUT.date, LAYOUT.site_name]


def test_wrap_text_clamps_with_ellipsis():
    font = ImageFont.load_default()
    text = "a long title that keeps going " * 12
    lines = wrap_text(text, font, max_width=120, max_lines=3)
    assert len(lines) == 3
    assert lines[-1].endswith(ELLIPSIS)
    assert all(font.getlength(line) <= 120 for line in lines)


def test_wrap_text_short_text_is_one_line():
    font = ImageFont.load_default()
    assert wrap_text("Short", font, max_width=800, max_lines=3) == ["Short"]


def test_render_png_has_target_size(base_image, default_font):
    spec = OgpImageSpec(title="Hello World", slug="hello-world", date="2024-01-01", tags=["a"])
    png = render_png(build_layout(spec, load_base_image(base_image), "example.dev"), FAKE_TTF)
    with Image.open(BytesIO(png)) as image:
        assert image.format == "PNG"
        assert image.size == (1200, 630)


def test_generate_writes_png_per_post(config, write_post, base_image, default_font, font_session):
    write_post("hello.md", HELLO)
    write_post("untitled.md", "---\nslug: untitled\n---\n")
    write_post("no-slug.md", "---\ntitle: Missing slug\n---\n")

    report = generate_images(config, font_session)

    assert report.generated == 1
    assert sorted(skip.filename for skip in report.skipped) == ["no-slug.md", "untitled.md"]
    assert report.failed == []
    output = config.ogp_output_dir / "hello-world.png"
    with Image.open(output) as image:
        assert image.size == (1200, 630)
    assert sorted(path.name for path in config.ogp_output_dir.iterdir()) == ["hello-world.png"]


def test_generate_skips_unparseable_front_matter(config, write_post, base_image, default_font, font_session):
    write_post("broken.md", "---\ntitle: T\nslug: t\n- orphan item\n---\n")
    report = generate_images(config, font_session)
    assert report.generated == 0
    assert report.skipped[0].filename == "broken.md"


def test_generate_reads_folded_description_and_ignores_stray_lines(
    config, write_post, base_image, default_font, font_session, caplog
):
    write_post(
        "folded.md",
        "---\ntitle: Folded\nslug: folded\ndescription: >-\n  A long folded\n  description\n"
        "just words\n---\nBody\n",
    )
    with caplog.at_level(logging.WARNING, logger="blog_prebuild"):
        report = generate_images(config, font_session)
    assert report.generated == 1
    assert report.skipped == []
    assert (config.ogp_output_dir / "folded.png").exists()
    assert "ignored line 'just words'" in caplog.text


def test_generate_skips_unreadable_post(config, write_post, base_image, default_font, font_session):
    write_post("hello.md", HELLO)
    (config.content_dir / "bad.md").write_bytes(b"---\ntitle: T\nslug: bad\n---\n\xff\n")
    report = generate_images(config, font_session)
    assert report.generated == 1
    assert [skip.filename for skip in report.skipped] == ["bad.md"]
    assert not (config.ogp_output_dir / "bad.png").exists()


def test_missing_base_image_is_fatal(config, write_post, font_session):
    write_post("hello.md", HELLO)
    with pytest.raises(PreconditionError):
        generate_images(config, font_session)
    assert font_session.calls == []


def test_non_image_base_is_rejected(config, font_session):
    config.base_image_path.parent.mkdir(parents=True)
    config.base_image_path.write_text("plain text, not an image", encoding="utf-8")
    with pytest.raises(PreconditionError):
        generate_images(config, font_session)


def test_svg_base_image_becomes_svg_data_uri(config):
    config.base_image_path.parent.mkdir(parents=True)
    config.base_image_path.write_text('<?xml version="1.0"?>\n' + SVG_BASE, encoding="utf-8")
    uri = load_base_image(config.base_image_path)
    assert uri.startswith("data:image/svg+xml;base64,")
    assert decode_data_uri(uri).endswith(SVG_BASE.encode("utf-8"))


def test_render_png_rasterises_svg_background(svg_base_image, default_font):
    spec = OgpImageSpec(title="Hello", slug="hello", date="2024-01-01")
    png = render_png(build_layout(spec, load_base_image(svg_base_image), "example.dev"), FAKE_TTF)
    with Image.open(BytesIO(png)) as image:
        assert image.size == (1200, 630)
        assert image.convert("RGB").getpixel((1150, 20)) == (0x14, 0x20, 0x30)


def test_generate_with_default_svg_background(config, write_post, svg_base_image, default_font, font_session):
    write_post("hello.md", HELLO)
    report = generate_images(config, font_session)
    assert report.generated == 1
    assert (config.ogp_output_dir / "hello-world.png").exists()


def test_font_failure_is_fatal(config, write_post, base_image):
    write_post("hello.md", HELLO)
    with pytest.raises(FontFetchError):
        generate_images(config, FakeSession())
    assert not (config.ogp_output_dir / "hello-world.png").exists()
