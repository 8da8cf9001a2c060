"""Cached newest-window of each conversation's history."""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Callable

from redis.exceptions import RedisError

from app.config import get_settings
from app.models import MessageTarget
from app.services.cache import CacheBackend, get_cache

logger = logging.getLogger(__name__)

FILL_LEASE_SECONDS = 30


def history_cache_key(tenant_id: int, target: MessageTarget) -> str:
    return f"history:{tenant_id}:{target.kind.value}:{target.id}"


def _decode(raw: str | None) -> list[dict[str, Any]] | str | None:
    """Return the cached window, a lease token, or ``None`` for anything else."""

    if raw is None:
        return None
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if isinstance(value, list):
        return value
    if isinstance(value, dict) and isinstance(value.get("lease"), str):
        return value["lease"]
    return None


class ConversationHistoryCache:
    """Keep the newest default-size page of every conversation as JSON.

    Entries hold serialized read models in ascending id order. Every write is
    a compare-and-set through :meth:`CacheBackend.update`:

    * a reader that misses takes a fill lease before querying the database
      and may only store its window while that lease is still in place;
    * a new top-level message is appended to a cached window, and drops a
      lease so that a fill which may predate the message is discarded;
    * any other change invalidates the key, lease or window alike.

    A send can therefore never be lost from a cached window; at worst the
    next read is a miss. Cache failures are logged and treated as misses.
    """

    def __init__(
        self,
        cache: CacheBackend | None = None,
        *,
        window: int | None = None,
        ttl_seconds: int | None = None,
    ) -> None:
        settings = get_settings()
        self._cache = cache if cache is not None else get_cache()
        self.window = window if window is not None else settings.chat_history_default_limit
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.history_cache_ttl_seconds

    def get_window(self, tenant_id: int, target: MessageTarget) -> list[dict[str, Any]] | None:
        key = history_cache_key(tenant_id, target)
        try:
            raw = self._cache.get(key)
        except RedisError:
            logger.warning("History cache read failed for %s", key)
            return None
        value = _decode(raw)
        if raw is not None and value is None:
            self.invalidate(tenant_id, target)
        return value if isinstance(value, list) else None

    def begin_fill(self, tenant_id: int, target: MessageTarget) -> str | None:
        """Claim the right to store a freshly queried window.

        Returns the lease token, or ``None`` when the key is already taken
        by a window or another reader's lease.
        """

        token = uuid.uuid4().hex
        lease = json.dumps({"lease": token})

        def claim(current: str | None) -> str | None:
            return lease if current is None else current

        key = history_cache_key(tenant_id, target)
        if not self._update(key, claim, FILL_LEASE_SECONDS):
            return None
        try:
            held = self._cache.get(key)
        except RedisError:
            logger.warning("History cache read failed for %s", key)
            return None
        return token if held == lease else None

    def store_window(
        self, tenant_id: int, target: MessageTarget, lease: str, items: list[dict[str, Any]]
    ) -> None:
        """Store ``items`` if the lease taken before the query is still held."""

        payload = json.dumps(items[-self.window :])

        def fill(current: str | None) -> str | None:
            return payload if _decode(current) == lease else current

        key = history_cache_key(tenant_id, target)
        if self._update(key, fill, self._ttl):
            logger.debug("History cache filled %s with %d messages", key, len(items[-self.window :]))

    def append(self, tenant_id: int, target: MessageTarget, item: dict[str, Any]) -> None:
        """Add a new message to a cached window; a missing window stays missing."""

        def add(current: str | None) -> str | None:
            value = _decode(current)
            if not isinstance(value, list):
                # Nothing cached, or a fill that may not include this message.
                return None
            if value and value[-1].get("id", 0) >= item.get("id", 0):
                return None
            value.append(item)
            return json.dumps(value[-self.window :])

        self._update(history_cache_key(tenant_id, target), add, self._ttl)

    def invalidate(self, tenant_id: int, target: MessageTarget) -> None:
        key = history_cache_key(tenant_id, target)
        try:
            self._cache.delete(key)
        except RedisError:
            logger.warning("History cache invalidation failed for %s", key)

    def _update(self, key: str, mutate: Callable[[str | None], str | None], ttl_seconds: int) -> bool:
        try:
            self._cache.update(key, mutate, ttl_seconds)
        except RedisError:
            logger.warning("History cache write failed for %s", key)
            return False
        return True


def get_history_cache() -> ConversationHistoryCache:
    """Dependency returning a history cache bound to the configured backend."""

    return ConversationHistoryCache(get_cache())
