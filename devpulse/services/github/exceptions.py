"""Exceptions for GitHub service."""

# Status codes that will not change on retry
PERMANENT_STATUS_CODES = frozenset({401, 403, 404, 410, 422})


class GitHubAPIError(Exception):
    """Error from GitHub API."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        rate_limit_reset: int | None = None,
        retry_after: float | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.rate_limit_reset = rate_limit_reset  # Unix timestamp when rate limit resets
        self.retry_after = retry_after  # Seconds, from a secondary-limit Retry-After header
        super().__init__(message)

    @property
    def is_rate_limited(self) -> bool:
        """Quota exhausted: callers should wait rather than count a failure."""
        return self.rate_limit_reset is not None or self.retry_after is not None

    @property
    def is_permanent(self) -> bool:
        """Not found, unauthorized or forbidden. Retrying will not help."""
        return not self.is_rate_limited and self.status_code in PERMANENT_STATUS_CODES

    @property
    def is_transient(self) -> bool:
        return not self.is_rate_limited and not self.is_permanent
