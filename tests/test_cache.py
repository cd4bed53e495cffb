"""Tests for the content-addressed asset cache and its stores."""

from __future__ import annotations

import json

import pytest

from roomweaver.cache import (
    AssetCache,
    CacheStore,
    InMemoryCacheStore,
    JsonFileCacheStore,
    composed_scene_cache_key,
    content_key,
    scene_cache_key,
    speech_cache_key,
    sprite_cache_key,
)
from roomweaver.panorama.prompts import get_panorama_dimensions


class FakeClock:
    def __init__(self, now: int = 0):
        self.now = now

    def __call__(self) -> int:
        return self.now


class BrokenStore(CacheStore):
    async def get(self, key):
        raise RuntimeError("disk unavailable")

    async def set(self, key, value):
        raise RuntimeError("disk unavailable")

    async def delete(self, key):
        raise RuntimeError("disk unavailable")

    async def keys(self, prefix=""):
        raise RuntimeError("disk unavailable")


@pytest.mark.asyncio
async def test_entry_lives_exactly_until_ttl():
    clock = FakeClock(0)
    store = InMemoryCacheStore()
    cache = AssetCache(store, "scene", ttl_ms=1000, clock=clock)

    await cache.set("k", "https://img/1.png")

    clock.now = 1000
    assert await cache.get("k") == "https://img/1.png"

    clock.now = 1001
    assert await cache.get("k") is None
    assert await store.keys() == []


@pytest.mark.asyncio
async def test_capacity_evicts_oldest_write():
    clock = FakeClock(0)
    cache = AssetCache(namespace="sprite", max_entries=50, ttl_ms=10**9, clock=clock)

    for index in range(51):
        clock.now = index
        await cache.set(f"key-{index}", f"url-{index}")

    assert await cache.get("key-0") is None
    assert await cache.get("key-1") == "url-1"
    assert await cache.get("key-50") == "url-50"
    stats = await cache.stats()
    assert stats == {"count": 50, "oldest_timestamp": 1, "newest_timestamp": 50}


@pytest.mark.asyncio
async def test_reads_do_not_refresh_eviction_order():
    clock = FakeClock(0)
    cache = AssetCache(max_entries=2, ttl_ms=10**9, clock=clock)

    await cache.set("a", "1")
    clock.now = 1
    await cache.set("b", "2")
    assert await cache.get("a") == "1"
    clock.now = 2
    await cache.set("c", "3")

    assert await cache.get("a") is None
    assert await cache.get("b") == "2"


@pytest.mark.asyncio
async def test_set_purges_expired_entries():
    clock = FakeClock(0)
    store = InMemoryCacheStore()
    cache = AssetCache(store, "speech", ttl_ms=100, clock=clock)

    await cache.set("old", "1")
    clock.now = 500
    await cache.set("new", "2")

    assert await store.keys() == ["speech:new"]


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"identity": "x"}', '{"url": "u", "timestamp": "soon"}'])
async def test_corrupt_entries_are_misses_and_removed(raw):
    store = InMemoryCacheStore()
    cache = AssetCache(store, "scene", clock=FakeClock(0))
    await store.set("scene:k", raw)

    assert await cache.get("k") is None
    assert await store.get("scene:k") is None


@pytest.mark.asyncio
async def test_store_failures_are_swallowed():
    cache = AssetCache(BrokenStore(), "scene")

    await cache.set("k", "v")
    await cache.delete("k")
    assert await cache.get("k") is None
    assert await cache.clear() == 0
    assert await cache.cleanup() == 0
    assert (await cache.stats())["count"] == 0


@pytest.mark.asyncio
async def test_namespaces_share_a_store_without_colliding():
    store = InMemoryCacheStore()
    scenes = AssetCache(store, "scene")
    sprites = AssetCache(store, "sprite")

    await scenes.set("k", "scene-url")
    await sprites.set("k", "sprite-url")
    assert await scenes.clear() == 1

    assert await scenes.get("k") is None
    assert await sprites.get("k") == "sprite-url"


@pytest.mark.asyncio
async def test_json_store_persists_entry_format(tmp_path):
    clock = FakeClock(1_700_000_000_000)
    cache = AssetCache(JsonFileCacheStore(tmp_path), "scene", clock=clock)

    await cache.set("abc/def", "https://img/p.png", identity="room-1,room-2")

    files = list(tmp_path.glob("*.json"))
    assert len(files) == 1
    payload = json.loads(files[0].read_text("utf-8"))
    assert payload == {
        "url": "https://img/p.png",
        "identity": "room-1,room-2",
        "timestamp": 1_700_000_000_000,
    }

    reopened = AssetCache(JsonFileCacheStore(tmp_path), "scene", clock=clock)
    assert await reopened.get("abc/def") == "https://img/p.png"
    assert await JsonFileCacheStore(tmp_path).keys("scene:") == ["scene:abc/def"]


@pytest.mark.asyncio
async def test_undecodable_file_does_not_block_eviction(tmp_path):
    store = JsonFileCacheStore(tmp_path)
    clock = FakeClock(0)
    cache = AssetCache(store, "sprite", max_entries=50, clock=clock)
    bad_file = tmp_path / "sprite%3Abad.json"
    bad_file.write_bytes(b"\xff\xfe\x00 not utf-8 \xc3")

    for index in range(60):
        clock.now = index
        await cache.set(f"k{index}", f"https://img/{index}.png")

    assert not bad_file.exists()
    assert len(list(tmp_path.glob("*.json"))) == 50
    assert await cache.get("k9") is None
    assert await cache.get("k59") == "https://img/59.png"


@pytest.mark.asyncio
async def test_undecodable_file_is_a_miss_and_removed(tmp_path):
    store = JsonFileCacheStore(tmp_path)
    cache = AssetCache(store, "scene")
    (tmp_path / "scene%3Ak.json").write_bytes(b"\xff\xff\xff")

    assert await cache.get("k") is None
    assert await store.keys() == []


@pytest.mark.asyncio
async def test_json_store_missing_directory_is_empty(tmp_path):
    store = JsonFileCacheStore(tmp_path / "absent")

    assert await store.get("x") is None
    assert await store.keys() == []
    await store.delete("x")


def test_invalid_cache_settings():
    with pytest.raises(ValueError):
        AssetCache(max_entries=0)
    with pytest.raises(ValueError):
        AssetCache(ttl_ms=-1)


def test_key_helpers():
    assert len(content_key("a", "b")) == 64
    assert content_key("ab", "c") != content_key("a", "bc")

    assert sprite_cache_key("Goblin Scout ", "enemy", "forest") == sprite_cache_key("goblin scout", "enemy", "forest")
    assert sprite_cache_key("goblin", "enemy") != sprite_cache_key("goblin", "npc")

    assert speech_cache_key("Hello,   Traveler", "guide") == speech_cache_key("hello, traveler", "guide")
    assert speech_cache_key("hello", "guide") != speech_cache_key("hello", "guide", "happy")

    dims = get_panorama_dimensions(2)
    assert scene_cache_key("p", ["a", "b"], dims) != scene_cache_key("p", ["b", "a"], dims)
    assert scene_cache_key("p", [], dims) != scene_cache_key("p", [], get_panorama_dimensions(3))

    assert composed_scene_cache_key("p", "n", "forest", "meet ") == composed_scene_cache_key("p", "n", "forest", "meet")
