"""Caching of computed elevation profiles.

Both caches expose the same coroutine interface (``get``/``set``) so the
regeneration pipeline can swap one for the other. Entries carry their own
expiry time and are evicted lazily when read after expiry.
"""

import hashlib
import json
import logging
import time
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

PROFILE_CACHE_TTL_SECONDS = 60 * 60 * 24 * 7  # one week


def make_profile_cache_key(col_id: str) -> str:
    """Cache key for a col's elevation profile."""
    return f"col:elevation:{col_id}"


def _hit_rate(hits: int, misses: int) -> str:
    total = hits + misses
    if total == 0:
        return "0.0%"
    return f"{(hits / total * 100):.1f}%"


class MemoryCache:
    """Dictionary-based cache with per-entry TTL and size-bounded eviction."""

    def __init__(self, max_size: int = 1000, clock=time.time):
        self.max_size = max_size
        self._clock = clock
        self._cache: dict[str, tuple[Any, float | None, float]] = {}
        self._stats = {"hits": 0, "misses": 0}

    async def get(self, key: str) -> Any | None:
        """Get cached value if present and not expired."""
        entry = self._cache.get(key)
        if entry is not None:
            value, expires_at, _ = entry
            if expires_at is None or self._clock() < expires_at:
                self._stats["hits"] += 1
                return value
            del self._cache[key]
        self._stats["misses"] += 1
        return None

    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Store value; the oldest entries go first when over max_size."""
        now = self._clock()
        expires_at = now + ttl_seconds if ttl_seconds is not None else None
        self._cache[key] = (value, expires_at, now)
        if len(self._cache) > self.max_size:
            oldest = sorted(self._cache, key=lambda k: self._cache[k][2])
            for k in oldest[: len(self._cache) - self.max_size]:
                del self._cache[k]

    def clear(self) -> int:
        """Clear all cached entries. Returns number of entries cleared."""
        count = len(self._cache)
        self._cache.clear()
        self._stats = {"hits": 0, "misses": 0}
        return count

    def stats(self) -> dict:
        return {
            "hit_rate": _hit_rate(self._stats["hits"], self._stats["misses"]),
            "hits": self._stats["hits"],
            "misses": self._stats["misses"],
            "size": len(self._cache),
            "max_size": self.max_size,
        }


class DiskCache:
    """JSON-file cache with an index of expiry times.

    One ``<md5>.json`` file per key; ``cache_index.json`` maps the hashed key
    to its expiry timestamp (or null for no expiry).
    """

    def __init__(self, cache_dir: Path, clock=time.time):
        self.cache_dir = Path(cache_dir)
        self.index_path = self.cache_dir / "cache_index.json"
        self._clock = clock
        self._stats = {"hits": 0, "misses": 0}

    def _path(self, hashed: str) -> Path:
        return self.cache_dir / f"{hashed}.json"

    @staticmethod
    def _hash(key: str) -> str:
        return hashlib.md5(key.encode()).hexdigest()

    def _load_index(self) -> dict:
        if self.index_path.exists():
            try:
                with self.index_path.open() as f:
                    return json.load(f)
            except (json.JSONDecodeError, OSError):
                logger.warning("Unreadable cache index %s, starting empty", self.index_path)
                return {}
        return {}

    def _save_index(self, index: dict) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        with self.index_path.open("w") as f:
            json.dump(index, f)

    def _evict(self, hashed: str, index: dict) -> None:
        path = self._path(hashed)
        if path.exists():
            path.unlink()
        index.pop(hashed, None)
        self._save_index(index)

    async def get(self, key: str) -> Any | None:
        hashed = self._hash(key)
        index = self._load_index()
        path = self._path(hashed)
        if hashed in index and path.exists():
            expires_at = index[hashed]
            if expires_at is not None and self._clock() >= expires_at:
                self._evict(hashed, index)
            else:
                try:
                    with path.open() as f:
                        value = json.load(f)
                except (json.JSONDecodeError, OSError):
                    self._evict(hashed, index)
                else:
                    self._stats["hits"] += 1
                    return value
        self._stats["misses"] += 1
        return None

    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        hashed = self._hash(key)
        with self._path(hashed).open("w") as f:
            json.dump(value, f)

        index = self._load_index()
        index[hashed] = self._clock() + ttl_seconds if ttl_seconds is not None else None
        self._save_index(index)

    def clear(self) -> int:
        index = self._load_index()
        count = len(index)
        for hashed in index:
            path = self._path(hashed)
            if path.exists():
                path.unlink()
        if self.index_path.exists():
            self.index_path.unlink()
        self._stats = {"hits": 0, "misses": 0}
        return count

    def stats(self) -> dict:
        index = self._load_index()
        return {
            "hit_rate": _hit_rate(self._stats["hits"], self._stats["misses"]),
            "hits": self._stats["hits"],
            "misses": self._stats["misses"],
            "size": len(index),
        }
