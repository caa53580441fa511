"""
GitHub API helper utilities.

Provides rate limit handling, error response processing and small
pagination/batching utilities shared by the fetch layer and collectors.
"""

import logging
import re
from collections.abc import Iterator, Sequence
from datetime import datetime
from typing import TypeVar

import httpx

from devpulse.services.github.exceptions import GitHubAPIError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_NEXT_LINK_RE = re.compile(r'<([^>]+)>;\s*rel="next"')


class RateLimitInfo:
    """Rate limit information from GitHub API response."""

    def __init__(self, response: httpx.Response) -> None:
        self.remaining = response.headers.get("X-RateLimit-Remaining")
        self.reset = response.headers.get("X-RateLimit-Reset")
        self.retry_after = response.headers.get("Retry-After")

    @property
    def reset_timestamp(self) -> int | None:
        """Get reset timestamp as integer, or None if not available."""
        try:
            return int(self.reset) if self.reset else None
        except ValueError:
            return None

    @property
    def retry_after_seconds(self) -> float | None:
        """Get Retry-After (secondary rate limits) in seconds, if present."""
        try:
            return float(self.retry_after) if self.retry_after else None
        except ValueError:
            return None

    @property
    def is_exhausted(self) -> bool:
        """Check if rate limit is exhausted."""
        try:
            return self.remaining is not None and int(self.remaining) == 0
        except ValueError:
            return False


def handle_error_response(response: httpx.Response, resource: str) -> None:
    """
    Handle common error responses from GitHub API.

    Args:
        response: The HTTP response from GitHub API
        resource: Resource description for error context (e.g. "owner/repo commits")

    Raises:
        GitHubAPIError: For rate limits, authentication, authorization, or other API errors.
            Rate-limited errors carry ``rate_limit_reset`` or ``retry_after``.
    """
    if response.status_code == 200:
        return

    rate_info = RateLimitInfo(response)

    if response.status_code in (403, 429):
        if rate_info.is_exhausted and rate_info.reset_timestamp is not None:
            raise GitHubAPIError(
                "GitHub API rate limit exceeded",
                response.status_code,
                rate_limit_reset=rate_info.reset_timestamp,
            )
        if rate_info.retry_after_seconds is not None:
            raise GitHubAPIError(
                "GitHub API secondary rate limit exceeded",
                response.status_code,
                retry_after=rate_info.retry_after_seconds,
            )
        if response.status_code == 429:
            raise GitHubAPIError("GitHub API too many requests", 429)
        raise GitHubAPIError(f"GitHub API forbidden: {resource}", 403)
    elif response.status_code == 401:
        raise GitHubAPIError("Invalid or expired GitHub token", 401)
    elif response.status_code == 404:
        raise GitHubAPIError(f"Repository or resource not found: {resource}", 404)
    else:
        raise GitHubAPIError(
            f"GitHub API error: {response.status_code}", response.status_code
        )


def parse_next_link(link_header: str) -> str | None:
    """Extract the ``next`` URL from a GitHub ``Link`` header."""
    match = _NEXT_LINK_RE.search(link_header or "")
    return match.group(1) if match else None


def parse_github_datetime(value: str | None) -> datetime | None:
    """Parse GitHub's ISO 8601 timestamps (``2026-01-15T00:00:00Z``)."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def chunked(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """Split a sequence into consecutive batches of at most ``size`` items."""
    if size < 1:
        raise ValueError("chunk size must be at least 1")
    for i in range(0, len(items), size):
        yield list(items[i : i + size])


def truncate(text: str | None, limit: int) -> str | None:
    """Clip text to ``limit`` characters, marking the cut with an ellipsis."""
    if text is None or len(text) <= limit:
        return text
    return text[:limit] + "..."
