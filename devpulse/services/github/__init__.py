"""
GitHub service package.

Usage: `from devpulse.services.github import GitHubReadOperations, RepositoryRef`

Module structure:
- fetcher.py: Retrying, rate-limit-aware GET layer
- read_operations.py: Typed read-only API operations
- cache.py: Per-kind TTL response cache
- http_client.py: AsyncClient factory
- helpers.py: Rate limit handling and error utilities
- types.py: Data types and response models
- exceptions.py: Custom exceptions
"""

from devpulse.services.github.cache import ResponseCache
from devpulse.services.github.exceptions import GitHubAPIError
from devpulse.services.github.fetcher import GitHubFetcher
from devpulse.services.github.helpers import RateLimitInfo, handle_error_response
from devpulse.services.github.http_client import close_github_client, create_github_client
from devpulse.services.github.read_operations import GitHubReadOperations
from devpulse.services.github.types import (
    Comment,
    Commit,
    CommitDetail,
    FileChange,
    Issue,
    Page,
    PullRequest,
    RateLimitStatus,
    RepositoryRef,
    Review,
    TimeWindow,
)

__all__ = [
    # Operation classes
    "GitHubFetcher",
    "GitHubReadOperations",
    # HTTP client lifecycle
    "create_github_client",
    "close_github_client",
    # Cache
    "ResponseCache",
    # Utilities
    "handle_error_response",
    "RateLimitInfo",
    # Exceptions
    "GitHubAPIError",
    # Types
    "Comment",
    "Commit",
    "CommitDetail",
    "FileChange",
    "Issue",
    "Page",
    "PullRequest",
    "RateLimitStatus",
    "RepositoryRef",
    "Review",
    "TimeWindow",
]
