"""Result memoization for the HTTP shell.

Readings are cached by the SHA-256 of their canonical JSON request. The
engine itself never touches this cache.
"""

from __future__ import annotations

import hashlib
import json
import os
import threading
import time
from collections import OrderedDict
from typing import Any, Callable


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


def canonical_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, sort_keys=True, separators=(",", ":"), default=str)


def make_cache_key(namespace: str, payload: Any) -> str:
    digest = hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()
    return f"{namespace}:{digest}"


class CacheManager:
    """Thread-safe in-memory cache with per-entry TTL and LRU eviction."""

    def __init__(self, max_items: int | None = None, default_ttl: int | None = None):
        self._max_items = max_items if max_items is not None else max(1, _env_int("CACHE_MAX_ITEMS", 512))
        self._default_ttl = default_ttl if default_ttl is not None else _env_int("QIMEN_CACHE_TTL", 1800)
        self._store: OrderedDict[str, tuple[Any, float | None]] = OrderedDict()
        self._lock = threading.RLock()
        self.hits = 0
        self.misses = 0

    @property
    def default_ttl(self) -> int:
        return self._default_ttl

    def _now(self) -> float:
        return time.time()

    def _prune_expired_unlocked(self) -> None:
        now = self._now()
        expired = [key for key, (_value, expires_at) in self._store.items() if expires_at is not None and expires_at <= now]
        for key in expired:
            self._store.pop(key, None)

    def _expiry(self, ttl: int | None) -> float | None:
        ttl = self._default_ttl if ttl is None else ttl
        try:
            ttl_int = int(ttl)
        except (TypeError, ValueError):
            ttl_int = 0
        return self._now() + float(ttl_int) if ttl_int > 0 else None

    def get(self, key: str) -> Any:
        with self._lock:
            self._prune_expired_unlocked()
            entry = self._store.get(key)
            if entry is None:
                self.misses += 1
                return None
            self._store.move_to_end(key)
            self.hits += 1
            return entry[0]

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        expires_at = self._expiry(ttl)
        with self._lock:
            self._prune_expired_unlocked()
            self._store[key] = (value, expires_at)
            self._store.move_to_end(key)
            while len(self._store) > self._max_items:
                self._store.popitem(last=False)

    def get_or_compute(self, key: str, factory: Callable[[], Any], ttl: int | None = None) -> tuple[Any, bool]:
        """Return (value, cached). Concurrent misses may compute the value twice."""
        value = self.get(key)
        if value is not None:
            return value, True
        value = factory()
        self.set(key, value, ttl=ttl)
        return value, False

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
            self.hits = 0
            self.misses = 0

    def stats(self) -> dict[str, int]:
        with self._lock:
            self._prune_expired_unlocked()
            return {
                "items": len(self._store),
                "max_items": self._max_items,
                "ttl_sec": self._default_ttl,
                "hits": self.hits,
                "misses": self.misses,
            }

    def __len__(self) -> int:
        with self._lock:
            self._prune_expired_unlocked()
            return len(self._store)


cache = CacheManager()
