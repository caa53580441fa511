"""
Rate-aware fetch layer for the GitHub REST API.

Every remote call in the pipeline goes through GitHubFetcher, which:
- retries transient failures (network errors, timeouts, 5xx) with
  exponential backoff of 2**attempt seconds, up to ``max_attempts``
- sleeps through rate limits until the reported reset time (plus a small
  buffer) without spending an attempt
- gives up immediately on permanent errors (401, 403, 404)
- stores successful pages in the ResponseCache

Failures never propagate: callers get an empty Page with ``ok=False`` and
a log line. Partial data is preferred over a failed run.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from devpulse.services.github.cache import ResponseCache
from devpulse.services.github.exceptions import GitHubAPIError
from devpulse.services.github.helpers import handle_error_response, parse_next_link
from devpulse.services.github.types import Page

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_MAX_RATE_LIMIT_WAITS = 5
RATE_LIMIT_BUFFER_SECONDS = 1.0
DEFAULT_PER_PAGE = 30  # GitHub's default when per_page is omitted

SleepFn = Callable[[float], Awaitable[None]]


class GitHubFetcher:
    """Retrying, rate-limit-aware GET wrapper around a shared httpx client."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: ResponseCache,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        max_rate_limit_waits: int = DEFAULT_MAX_RATE_LIMIT_WAITS,
        sleep: SleepFn = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.client = client
        self.cache = cache
        self.max_attempts = max_attempts
        self.max_rate_limit_waits = max_rate_limit_waits
        self._sleep = sleep
        self._clock = clock

    async def fetch_with_retry(
        self,
        resource: str,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response | None:
        """
        GET ``path`` with retries.

        Args:
            resource: Human-readable description for logs (e.g. "octo/api commits")
            path: API path relative to the client's base URL
            params: Query parameters

        Returns:
            The successful response, or None if the resource is gone,
            access was denied, or retries were exhausted.
        """
        attempt = 0
        rate_limit_waits = 0
        last_error: Exception | None = None

        while attempt < self.max_attempts:
            try:
                response = await self.client.get(path, params=params)
                handle_error_response(response, resource)
                return response
            except GitHubAPIError as e:
                if e.is_rate_limited:
                    if rate_limit_waits >= self.max_rate_limit_waits:
                        logger.error(
                            f"[fetch] {resource}: still rate limited after "
                            f"{rate_limit_waits} waits, giving up"
                        )
                        return None
                    rate_limit_waits += 1
                    wait = self.rate_limit_wait_seconds(e)
                    logger.warning(
                        f"[fetch] {resource}: rate limited, waiting {wait:.1f}s before retrying"
                    )
                    await self._sleep(wait)
                    # Rate-limit waits do not consume the retry budget
                    continue
                if e.is_permanent:
                    logger.warning(f"[fetch] {resource}: {e.message} ({e.status_code}), skipping")
                    return None
                last_error = e
            except httpx.TransportError as e:
                last_error = e

            attempt += 1
            if attempt < self.max_attempts:
                delay = 2**attempt
                logger.warning(
                    f"[fetch] {resource}: attempt {attempt}/{self.max_attempts} failed "
                    f"({last_error}), retrying in {delay}s"
                )
                await self._sleep(delay)

        logger.error(
            f"[fetch] {resource}: failed after {self.max_attempts} attempts: {last_error}"
        )
        return None

    def rate_limit_wait_seconds(self, error: GitHubAPIError) -> float:
        """Seconds to sleep before the next attempt after a rate-limit error."""
        if error.rate_limit_reset is not None:
            return max(error.rate_limit_reset - self._clock(), 0.0) + RATE_LIMIT_BUFFER_SECONDS
        if error.retry_after is not None:
            return max(error.retry_after, 1.0)
        return 60.0

    async def fetch_page(
        self,
        kind: str,
        resource: str,
        path: str,
        params: dict[str, Any] | None = None,
        cache_key: str | None = None,
    ) -> Page:
        """
        Fetch one page of a list endpoint.

        Args:
            kind: Resource kind ("commits", "branches", ...) used in the cache key
            resource: Description for logs
            path: API path
            params: Query parameters, including ``per_page`` and ``page``
            cache_key: If given, the page is served from / stored in the cache

        Returns:
            Page with the decoded items and whether another page follows
        """
        full_key = f"{kind}:{cache_key}" if cache_key else None
        if full_key:
            cached = self.cache.get("pages", full_key)
            if cached is not None:
                return cached

        response = await self.fetch_with_retry(resource, path, params)
        if response is None:
            return Page(items=[], has_more=False, ok=False)

        try:
            data = response.json()
        except ValueError:
            logger.warning(f"[fetch] {resource}: response was not valid JSON")
            return Page(items=[], has_more=False, ok=False)

        items: list[dict[str, Any]] = data if isinstance(data, list) else []

        link_header = response.headers.get("Link")
        if link_header is not None:
            has_more = parse_next_link(link_header) is not None
        else:
            per_page = int((params or {}).get("per_page", DEFAULT_PER_PAGE))
            has_more = len(items) >= per_page

        page = Page(items=items, has_more=has_more)
        if full_key:
            self.cache.set("pages", full_key, page)
        return page

    async def fetch_all(
        self,
        kind: str,
        resource: str,
        path: str,
        params: dict[str, Any] | None = None,
        per_page: int = 100,
        max_pages: int = 10,
        cache_key: str | None = None,
    ) -> Page:
        """
        Follow pagination until the last page or ``max_pages``.

        A failure on the first page yields ``ok=False``. A failure on a later
        page keeps what was already collected.

        Returns:
            Page with all items; ``has_more`` is True when ``max_pages`` cut it short
        """
        items: list[dict[str, Any]] = []
        page_no = 1
        has_more = False

        while page_no <= max_pages:
            page_params = {**(params or {}), "per_page": per_page, "page": page_no}
            page_key = f"{cache_key}:n{per_page}:p{page_no}" if cache_key else None
            page = await self.fetch_page(kind, resource, path, page_params, cache_key=page_key)

            if not page.ok:
                if page_no == 1:
                    return Page(items=[], has_more=False, ok=False)
                logger.warning(
                    f"[fetch] {resource}: page {page_no} failed, keeping {len(items)} items"
                )
                break

            items.extend(page.items)
            has_more = page.has_more and bool(page.items)
            if not has_more:
                break
            page_no += 1

        if has_more:
            logger.info(f"[fetch] {resource}: stopped at page ceiling ({max_pages})")
        return Page(items=items, has_more=has_more)

    async def fetch_json(
        self,
        kind: str,
        resource: str,
        path: str,
        params: dict[str, Any] | None = None,
        cache_key: str | None = None,
    ) -> Any | None:
        """Single-resource GET with caching under ``kind``. Returns None on failure."""
        if cache_key:
            cached = self.cache.get(kind, cache_key)
            if cached is not None:
                return cached

        response = await self.fetch_with_retry(resource, path, params)
        if response is None:
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning(f"[fetch] {resource}: response was not valid JSON")
            return None

        if cache_key:
            self.cache.set(kind, cache_key, data)
        return data
