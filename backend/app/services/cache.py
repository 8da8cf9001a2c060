"""Key/value stores that can hold serialized conversation windows."""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from functools import lru_cache
from typing import Callable, Protocol

from redis import Redis
from redis.client import Pipeline
from redis.exceptions import RedisError

from app.config import get_settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "conversa:"


class CacheBackend(Protocol):
    """String store with per-key expiry."""

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store ``value``; a non-positive ttl keeps it until evicted."""

    def get(self, key: str) -> str | None:
        """Return the live value or ``None``."""

    def delete(self, key: str) -> None:
        """Drop the key if present."""

    def update(self, key: str, mutate: Callable[[str | None], str | None], ttl_seconds: int) -> None:
        """Atomically replace the value with ``mutate(current)``.

        ``None`` from ``mutate`` deletes the key; returning ``current``
        unchanged writes nothing.
        """


class MemoryCache:
    """Bounded in-process store; the least recently used key is evicted first."""

    def __init__(self, max_entries: int = 1024) -> None:
        self._max_entries = max_entries
        self._entries: OrderedDict[str, tuple[str, float | None]] = OrderedDict()
        self._lock = threading.Lock()

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._store(key, value, ttl_seconds)

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._live_value(key)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def update(self, key: str, mutate: Callable[[str | None], str | None], ttl_seconds: int) -> None:
        with self._lock:
            current = self._live_value(key)
            replacement = mutate(current)
            if replacement == current:
                return
            if replacement is None:
                self._entries.pop(key, None)
            else:
                self._store(key, replacement, ttl_seconds)

    def __len__(self) -> int:
        return len(self._entries)

    # Callers hold the lock.

    def _live_value(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, deadline = entry
        if deadline is not None and deadline <= time.monotonic():
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value

    def _store(self, key: str, value: str, ttl_seconds: int) -> None:
        deadline = time.monotonic() + ttl_seconds if ttl_seconds > 0 else None
        self._entries[key] = (value, deadline)
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)


class RedisCache:
    """Redis-backed store; keys are namespaced with :data:`KEY_PREFIX`."""

    def __init__(self, client: Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCache":
        return cls(Redis.from_url(url, decode_responses=True))

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._client.set(KEY_PREFIX + key, value, ex=ttl_seconds if ttl_seconds > 0 else None)

    def get(self, key: str) -> str | None:
        return self._client.get(KEY_PREFIX + key)

    def delete(self, key: str) -> None:
        self._client.delete(KEY_PREFIX + key)

    def update(self, key: str, mutate: Callable[[str | None], str | None], ttl_seconds: int) -> None:
        """WATCH/MULTI round; redis-py retries the callback when the key changes underneath."""

        full_key = KEY_PREFIX + key

        def apply(pipe: Pipeline) -> None:
            current = pipe.get(full_key)
            replacement = mutate(current)
            if replacement == current:
                return
            pipe.multi()
            if replacement is None:
                pipe.delete(full_key)
            else:
                pipe.set(full_key, replacement, ex=ttl_seconds if ttl_seconds > 0 else None)

        self._client.transaction(apply, full_key)

    def ping(self) -> None:
        self._client.ping()


@lru_cache(maxsize=1)
def get_cache() -> CacheBackend:
    """Redis when ``CACHE_URL`` is set and reachable, otherwise process memory."""

    settings = get_settings()
    if settings.cache_url:
        cache = RedisCache.from_url(settings.cache_url)
        try:
            cache.ping()
        except RedisError:
            logger.warning("Redis cache at %s is unavailable; using process memory", settings.cache_url)
        else:
            return cache
    return MemoryCache()
