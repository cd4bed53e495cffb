"""
Content-addressed asset cache for generated art, sprites and speech.

Keys are derived from the semantic inputs of a generation request (prompt,
sprite identity, voice, ...), so identical requests hit the same entry and the
provider is not called twice for the same asset.

Policy:
- Entries expire ``ttl_ms`` after they were written. An entry is live while
  ``now - created_at <= ttl_ms``; ``get`` on an expired entry deletes it.
- After every ``set`` the namespace is trimmed: expired entries are purged,
  then the oldest entries (by write time, not by access) are deleted until at
  most ``max_entries`` remain.
- The cache never raises. Store failures and corrupt entries are logged and
  reported as misses, so an unavailable store only costs provider calls.
- No locking: concurrent writers of the same key are last-write-wins, which is
  harmless because same-key payloads are equivalent.

Two stores are included:
1. InMemoryCacheStore - dict-based, lost on exit (tests, short sessions)
2. JsonFileCacheStore - one JSON file per key under a directory
"""

from __future__ import annotations

import asyncio
import hashlib
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence
from urllib.parse import quote, unquote

from roomweaver.config import Config
from roomweaver.logging_utils import log_cache, log_error
from roomweaver.schemas import CacheEntry, PanoramaDimensions


Clock = Callable[[], int]


def system_clock_ms() -> int:
    return int(time.time() * 1000)


# ============================================================================
# Key helpers
# ============================================================================


def content_key(*parts: object) -> str:
    """Stable sha256 hex digest over the given parts."""
    digest = hashlib.sha256()
    for part in parts:
        digest.update(str(part).encode("utf-8"))
        digest.update(b"\x1f")
    return digest.hexdigest()


def scene_cache_key(
    prompt: str,
    reference_images: Sequence[str],
    dimensions: PanoramaDimensions,
) -> str:
    return content_key(
        "scene",
        prompt,
        dimensions.aspect_ratio,
        f"{dimensions.total_width}x{dimensions.total_height}",
        len(reference_images),
        *reference_images,
    )


def sprite_cache_key(prompt: str, sprite_type: str, biome: str | None = None) -> str:
    return content_key(f"{sprite_type}:{biome or 'default'}:{prompt.lower().strip()}")


def normalize_speech_text(text: str) -> str:
    return " ".join(text.lower().split())


def speech_cache_key(text: str, archetype: str | None = None, emotion: str | None = None) -> str:
    parts = [normalize_speech_text(text)]
    if archetype:
        parts.append(archetype)
    if emotion:
        parts.append(emotion)
    return content_key("::".join(parts))


def composed_scene_cache_key(
    player_sprite_url: str,
    npc_sprite_url: str,
    biome: str,
    description: str,
) -> str:
    return content_key("composed", player_sprite_url, npc_sprite_url, biome, description.strip())


# ============================================================================
# Stores
# ============================================================================


class CacheStore(ABC):
    """Raw text key/value medium behind ``AssetCache``.

    Implementations may raise on any operation; ``AssetCache`` absorbs the
    failures.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the stored text, or None when the key is absent."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store text under key, replacing any existing value."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key. Missing keys are ignored."""

    @abstractmethod
    async def keys(self, prefix: str = "") -> List[str]:
        """All stored keys starting with prefix."""


class InMemoryCacheStore(CacheStore):
    """Dict-backed store. Iteration order is insertion order."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        # Re-inserting moves the key to the end, matching a fresh write
        self._data.pop(key, None)
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self, prefix: str = "") -> List[str]:
        return [key for key in self._data if key.startswith(prefix)]


class JsonFileCacheStore(CacheStore):
    """One ``<quoted key>.json`` file per entry under ``base_path``.

    All file I/O runs in the default thread pool.
    """

    SUFFIX = ".json"

    def __init__(self, base_path: Path | str | None = None):
        self.base_path = Path(base_path) if base_path is not None else Config.CACHE_DIR

    def _path(self, key: str) -> Path:
        return self.base_path / f"{quote(key, safe='')}{self.SUFFIX}"

    async def get(self, key: str) -> Optional[str]:
        path = self._path(key)

        def _read() -> Optional[str]:
            if not path.exists():
                return None
            return path.read_text("utf-8")

        return await asyncio.to_thread(_read)

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self.base_path.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread(self._path(key).write_text, value, "utf-8")

    async def delete(self, key: str) -> None:
        path = self._path(key)
        await asyncio.to_thread(path.unlink, missing_ok=True)

    async def keys(self, prefix: str = "") -> List[str]:
        def _list() -> List[str]:
            if not self.base_path.exists():
                return []
            found = []
            for path in sorted(self.base_path.glob(f"*{self.SUFFIX}")):
                key = unquote(path.name[: -len(self.SUFFIX)])
                if key.startswith(prefix):
                    found.append(key)
            return found

        return await asyncio.to_thread(_list)


# ============================================================================
# Cache
# ============================================================================


class AssetCache:
    """Namespaced, expiring, capacity-bounded view over a ``CacheStore``.

    Args:
        store: Backing store (shared stores are fine; namespaces never collide)
        namespace: Key prefix for this subsystem, e.g. ``"scene"`` or ``"sprite"``
        ttl_ms: Entry lifetime in milliseconds (default ``Config.cache_ttl_ms()``)
        max_entries: Capacity of this namespace (default ``Config.CACHE_MAX_ENTRIES``)
        clock: Millisecond clock, injectable for tests
    """

    def __init__(
        self,
        store: CacheStore | None = None,
        namespace: str = "asset",
        *,
        ttl_ms: int | None = None,
        max_entries: int | None = None,
        clock: Clock | None = None,
    ):
        self.store = store or InMemoryCacheStore()
        self.namespace = namespace
        self.ttl_ms = Config.cache_ttl_ms() if ttl_ms is None else ttl_ms
        self.max_entries = Config.CACHE_MAX_ENTRIES if max_entries is None else max_entries
        self.clock = clock or system_clock_ms
        if self.max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        if self.ttl_ms < 0:
            raise ValueError("ttl_ms must be non-negative")

    @property
    def prefix(self) -> str:
        return f"{self.namespace}:"

    def _full_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def _is_expired(self, entry: CacheEntry, now: int) -> bool:
        return now - entry.created_at > self.ttl_ms

    async def _read_entry(self, full_key: str) -> Optional[CacheEntry]:
        """Load and parse one entry; unreadable or corrupt entries are deleted and reported as None."""
        try:
            text = await self.store.get(full_key)
            if text is None:
                return None
            return CacheEntry.from_text(full_key, text)
        except Exception as exc:
            # Undecodable bytes, bad JSON and schema mismatches all land here
            log_error(f"Discarding unreadable cache entry {full_key}: {exc}")
            await self._safe_delete(full_key)
            return None

    async def _safe_delete(self, full_key: str) -> None:
        try:
            await self.store.delete(full_key)
        except Exception as exc:
            log_error(f"Cache delete failed for {full_key}: {exc}")

    async def get(self, key: str) -> Optional[str]:
        """Payload for key, or None when absent, expired, corrupt or unreadable."""
        full_key = self._full_key(key)
        try:
            entry = await self._read_entry(full_key)
        except Exception as exc:
            log_error(f"Cache read failed for {full_key}: {exc}")
            return None

        if entry is None:
            log_cache(f"MISS {full_key[:48]}")
            return None

        if self._is_expired(entry, self.clock()):
            log_cache(f"EXPIRED {full_key[:48]}")
            await self._safe_delete(full_key)
            return None

        log_cache(f"HIT {full_key[:48]}")
        return entry.payload

    async def set(self, key: str, payload: str, identity: str = "") -> None:
        """Store payload, then purge expired entries and enforce capacity."""
        full_key = self._full_key(key)
        entry = CacheEntry(key=full_key, payload=payload, identity=identity, created_at=self.clock())
        try:
            await self.store.set(full_key, entry.to_text())
        except Exception as exc:
            log_error(f"Cache write failed for {full_key}: {exc}")
            return
        await self.cleanup()

    async def delete(self, key: str) -> None:
        await self._safe_delete(self._full_key(key))

    async def _live_entries(self) -> List[CacheEntry]:
        now = self.clock()
        live: List[CacheEntry] = []
        for full_key in await self.store.keys(self.prefix):
            entry = await self._read_entry(full_key)
            if entry is None:
                continue
            if self._is_expired(entry, now):
                await self._safe_delete(full_key)
                continue
            live.append(entry)
        return live

    async def cleanup(self) -> int:
        """Purge expired entries and evict the oldest beyond capacity.

        Returns:
            Number of entries evicted for capacity
        """
        try:
            live = await self._live_entries()
            overflow = len(live) - self.max_entries
            if overflow <= 0:
                return 0
            # sorted() is stable, so equal timestamps keep store order
            oldest = sorted(live, key=lambda entry: entry.created_at)[:overflow]
            for entry in oldest:
                await self._safe_delete(entry.key)
            log_cache(f"Evicted {len(oldest)} oldest entries from '{self.namespace}'")
            return len(oldest)
        except Exception as exc:
            log_error(f"Cache cleanup failed for '{self.namespace}': {exc}")
            return 0

    async def clear(self) -> int:
        try:
            keys = await self.store.keys(self.prefix)
        except Exception as exc:
            log_error(f"Cache clear failed for '{self.namespace}': {exc}")
            return 0
        for full_key in keys:
            await self._safe_delete(full_key)
        log_cache(f"Cleared {len(keys)} entries from '{self.namespace}'")
        return len(keys)

    async def stats(self) -> Dict[str, Optional[int]]:
        """Count and write-time range of live entries in this namespace."""
        try:
            live = await self._live_entries()
        except Exception as exc:
            log_error(f"Cache stats failed for '{self.namespace}': {exc}")
            live = []
        timestamps = [entry.created_at for entry in live]
        return {
            "count": len(live),
            "oldest_timestamp": min(timestamps) if timestamps else None,
            "newest_timestamp": max(timestamps) if timestamps else None,
        }


__all__ = [
    "AssetCache",
    "CacheStore",
    "Clock",
    "InMemoryCacheStore",
    "JsonFileCacheStore",
    "composed_scene_cache_key",
    "content_key",
    "normalize_speech_text",
    "scene_cache_key",
    "speech_cache_key",
    "sprite_cache_key",
    "system_clock_ms",
]
