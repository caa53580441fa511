"""
HTTP client factory for GitHub API operations.

Each pipeline context owns one AsyncClient with connection pooling, so
concurrent branch and repository fetches reuse connections instead of
paying a TLS handshake per request.
"""

import logging

import httpx

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"


def github_headers(token: str) -> dict[str, str]:
    """Default headers for GitHub REST calls. Auth is omitted when no token is set."""
    headers = {
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": API_VERSION,
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def create_github_client(
    token: str,
    base_url: str = "https://api.github.com",
    timeout: float = 30.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """
    Create an HTTP client for GitHub API calls.

    Args:
        token: GitHub token (may be empty for unauthenticated, low-quota access)
        base_url: API root
        timeout: Per-request timeout in seconds
        transport: Optional transport override (tests use httpx.MockTransport)

    Returns:
        httpx.AsyncClient configured for GitHub API
    """
    if not token:
        logger.warning("No GitHub token configured, using unauthenticated client")

    client = httpx.AsyncClient(
        base_url=base_url,
        headers=github_headers(token),
        timeout=httpx.Timeout(timeout, connect=5.0),
        limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
        http2=transport is None,
        transport=transport,
    )
    logger.debug("Created GitHub HTTP client with connection pooling")
    return client


async def close_github_client(client: httpx.AsyncClient) -> None:
    """Close a client created by create_github_client."""
    if not client.is_closed:
        await client.aclose()
        logger.debug("Closed GitHub HTTP client")
