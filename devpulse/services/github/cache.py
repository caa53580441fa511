"""
TTL caching for GitHub API responses.

Provides a short-lived, in-process cache keyed by resource kind and a
caller-built key (repository, branch or user, time window). One TTLCache
per kind, all sharing the same time-to-live.

The pipeline clears the whole cache at the start of every run so memory
stays bounded in a long-lived process. Within a run, later stages read
what earlier stages stored (e.g. detailed content reuses commit lists).
"""

import logging
import time
from collections.abc import Callable
from typing import Any

from cachetools import TTLCache  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30 * 60
DEFAULT_MAXSIZE = 2048

CACHE_KINDS: tuple[str, ...] = (
    "pages",
    "branches",
    "commits",
    "commit_details",
    "pull_requests",
    "issues",
    "pr_files",
    "pr_reviews",
    "issue_comments",
)


class ResponseCache:
    """In-memory response cache with one TTL bucket per resource kind."""

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        maxsize: int = DEFAULT_MAXSIZE,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self._caches: dict[str, TTLCache[str, Any]] = {
            kind: TTLCache(maxsize=maxsize, ttl=ttl, timer=timer) for kind in CACHE_KINDS
        }

    def get(self, kind: str, key: str) -> Any | None:
        """Return the cached payload, or None if absent or expired."""
        cache = self._caches.get(kind)
        if cache is None:
            return None
        # TTLCache drops expired items on lookup
        payload = cache.get(key)
        if payload is not None:
            logger.debug(f"Cache HIT: {kind} - {key}")
        return payload

    def set(self, kind: str, key: str, payload: Any) -> None:
        cache = self._caches.get(kind)
        if cache is None:
            logger.debug(f"Cache SET ignored for unknown kind: {kind}")
            return
        cache[key] = payload
        logger.debug(f"Cache SET: {kind} - {key}")

    def clear(self, kind: str | None = None) -> None:
        """Clear one kind, or every kind when ``kind`` is None."""
        if kind is not None:
            cache = self._caches.get(kind)
            if cache is not None:
                cache.clear()
            return
        for cache in self._caches.values():
            cache.clear()
        logger.debug("Cleared all GitHub caches")

    def stats(self) -> dict[str, dict[str, int]]:
        """Get current cache statistics for monitoring."""
        return {
            kind: {"size": len(cache), "maxsize": int(cache.maxsize)}
            for kind, cache in self._caches.items()
        }
