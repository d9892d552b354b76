"""
In-process query cache with key-prefix invalidation.

Keys are tuples whose first element names the query family, e.g.
``("laboratories",)`` or ``("purchaseRequests", user_id)``.  Mutations
call ``invalidate("laboratories")`` so the next read refetches.  Fetchers
raising ``BaasError`` are retried ``QUERY_RETRY`` times before the error
propagates.
"""

from __future__ import annotations

import logging
import threading
import time
from functools import lru_cache
from typing import Any, Callable

from conecta2.baas.errors import BaasError
from conecta2.config import get_settings

logger = logging.getLogger(__name__)


class QueryCache:
    def __init__(self, stale_seconds: float, retry: int = 1) -> None:
        self._stale_seconds = stale_seconds
        self._retry = retry
        self._entries: dict[tuple, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def fetch(self, key: tuple, fetcher: Callable[[], Any]) -> Any:
        """Return the cached value for *key*, calling *fetcher* when stale or missing."""
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and now - entry[0] < self._stale_seconds:
                return entry[1]

        attempts = self._retry + 1
        for attempt in range(1, attempts + 1):
            try:
                value = fetcher()
                break
            except BaasError as exc:
                if attempt == attempts:
                    raise
                logger.warning("query %s failed (attempt %d/%d): %s", key, attempt, attempts, exc.message)

        with self._lock:
            self._entries[key] = (time.monotonic(), value)
        return value

    def invalidate(self, *prefix: Any) -> int:
        """Drop every entry whose key starts with *prefix*; returns how many."""
        size = len(prefix)
        with self._lock:
            stale = [key for key in self._entries if key[:size] == prefix]
            for key in stale:
                del self._entries[key]
        if stale:
            logger.debug("invalidated %d cached queries for %s", len(stale), prefix)
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


@lru_cache
def get_query_cache() -> QueryCache:
    settings = get_settings()
    return QueryCache(settings.QUERY_STALE_SECONDS, settings.QUERY_RETRY)
