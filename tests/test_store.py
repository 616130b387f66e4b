"""
tests/test_store.py
"""
from __future__ import annotations

import json

import pytest

from blog_prebuild.config import CACHE_TTL_MS
from blog_prebuild.models import FontAsset, OgpRecord
from blog_prebuild.store import FontStore, OgpCache

from .conftest import FAKE_TTF, FAKE_WOFF2

NOW = 1_700_000_000_000


def _record(url: str = "https://example.com/", fetched_at: int = NOW) -> OgpRecord:
    return OgpRecord(
        url=url,
        title="Example",
        description="An example page",
        image="https://example.com/og.png",
        site_name="Example Site",
        favicon="https://example.com/favicon.ico",
        fetched_at=fetched_at,
    )


def test_expiry_uses_ttl():
    cache = OgpCache()
    assert not cache.is_expired(_record(fetched_at=NOW - 1000), NOW)
    assert cache.is_expired(_record(fetched_at=NOW - CACHE_TTL_MS), NOW)
    assert cache.is_expired(_record(fetched_at=NOW - 90_000_000), NOW)


def test_lookup_returns_only_fresh_records():
    cache = OgpCache()
    cache.put("fresh", _record("https://fresh.example/", NOW - 1000))
    cache.put("stale", _record("https://stale.example/", NOW - 90_000_000))
    assert cache.lookup("fresh", NOW) is not None
    assert cache.lookup("stale", NOW) is None
    assert cache.get("stale") is not None
    assert cache.lookup("missing", NOW) is None


def test_open_loads_and_saves_camel_case_json(tmp_path):
    path = tmp_path / ".ogp-cache.json"
    with OgpCache.open(path) as cache:
        assert len(cache) == 0
        cache.put("https://example.com/", _record())

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["https://example.com/"]["siteName"] == "Example Site"
    assert data["https://example.com/"]["fetchedAt"] == NOW

    with OgpCache.open(path) as reloaded:
        assert reloaded.get("https://example.com/") == _record()


def test_open_saves_even_when_the_block_raises(tmp_path):
    path = tmp_path / ".ogp-cache.json"
    with pytest.raises(KeyboardInterrupt):
        with OgpCache.open(path) as cache:
            cache.put("https://example.com/", _record())
            raise KeyboardInterrupt
    assert "https://example.com/" in json.loads(path.read_text(encoding="utf-8"))


def test_load_tolerates_corrupt_file(tmp_path):
    path = tmp_path / ".ogp-cache.json"
    path.write_text("{not json", encoding="utf-8")
    cache = OgpCache(path)
    cache.load()
    assert len(cache) == 0


def test_load_drops_malformed_entries(tmp_path):
    path = tmp_path / ".ogp-cache.json"
    path.write_text(
        json.dumps({"good": _record().to_dict(), "bad": {"title": "no url"}}),
        encoding="utf-8",
    )
    cache = OgpCache(path)
    cache.load()
    assert "good" in cache
    assert "bad" not in cache


def test_font_store_round_trip(tmp_path):
    store = FontStore(tmp_path / ".font-cache")
    assert store.get("Noto Sans JP", 700) is None
    path = store.put(FontAsset("Noto Sans JP", 700, FAKE_TTF))
    assert path.name == "Noto-Sans-JP-700.ttf"
    cached = store.get("Noto Sans JP", 700)
    assert cached is not None
    assert cached.data == FAKE_TTF


def test_font_store_discards_woff2(tmp_path):
    store = FontStore(tmp_path)
    path = store.path_for("Noto Sans JP", 700)
    path.write_bytes(FAKE_WOFF2)
    assert store.get("Noto Sans JP", 700) is None
    assert not path.exists()
