"""Root conftest with shared fixtures for unit tests.

Provides:
- A fixed time window and clock
- A fake GitHub API served through httpx.MockTransport
- A GitHubFetcher / GitHubReadOperations stack over it with instant sleeps
"""

from __future__ import annotations

from datetime import datetime

import httpx
import pytest

from devpulse.services.github.cache import ResponseCache
from devpulse.services.github.fetcher import GitHubFetcher
from devpulse.services.github.read_operations import GitHubReadOperations
from devpulse.services.github.types import RepositoryRef, TimeWindow
from tests.helpers.fakes import NOW, FakeSleep
from tests.helpers.github_payloads import FakeGitHubAPI


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def window() -> TimeWindow:
    return TimeWindow.last_days(7, NOW)


@pytest.fixture
def repo() -> RepositoryRef:
    return RepositoryRef(owner="o", name="r")


@pytest.fixture
def fake_api() -> FakeGitHubAPI:
    return FakeGitHubAPI()


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
async def http_client(fake_api):
    client = httpx.AsyncClient(base_url="https://api.github.com", transport=fake_api.transport())
    yield client
    await client.aclose()


@pytest.fixture
def cache() -> ResponseCache:
    return ResponseCache()


@pytest.fixture
def fetcher(http_client, cache, fake_sleep) -> GitHubFetcher:
    return GitHubFetcher(http_client, cache, sleep=fake_sleep, clock=lambda: NOW.timestamp())


@pytest.fixture
def github(fetcher) -> GitHubReadOperations:
    return GitHubReadOperations(fetcher)
