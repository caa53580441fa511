"""Data types for GitHub API responses."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any


@dataclass(frozen=True)
class RepositoryRef:
    """A configured repository, identified by owner and name."""

    owner: str
    name: str

    @property
    def key(self) -> str:
        return f"{self.owner}/{self.name}"

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive time range bounding which events a run counts."""

    start: datetime
    end: datetime

    @classmethod
    def last_days(cls, days: int, now: datetime) -> "TimeWindow":
        return cls(start=now - timedelta(days=days), end=now)

    @property
    def since(self) -> str:
        """Start as an ISO 8601 string for GitHub query params."""
        return self.start.isoformat()

    @property
    def until(self) -> str:
        """End as an ISO 8601 string for GitHub query params."""
        return self.end.isoformat()

    @property
    def cache_key(self) -> str:
        return f"{self.since}:{self.until}"

    def contains(self, moment: datetime | None) -> bool:
        return moment is not None and self.start <= moment <= self.end


@dataclass
class Page:
    """One page (or a merged run of pages) from a list endpoint."""

    items: list[dict[str, Any]]
    has_more: bool = False
    ok: bool = True  # False when the fetch failed or the resource is gone


@dataclass
class FileChange:
    """A single file touched by a commit or pull request."""

    filename: str
    status: str
    additions: int
    deletions: int
    changes: int
    patch: str | None = None


@dataclass
class Commit:
    """Normalized commit from the list-commits endpoint."""

    sha: str
    author_login: str | None  # Platform account, when the email is linked
    author_name: str | None  # Raw git author name
    date: datetime | None
    message: str = ""
    files: list[FileChange] = field(default_factory=list)


@dataclass
class CommitDetail:
    """Single-commit payload with per-file changes."""

    sha: str
    message: str
    date: datetime | None
    files: list[FileChange]

    @property
    def additions(self) -> int:
        return sum(f.additions for f in self.files)

    @property
    def deletions(self) -> int:
        return sum(f.deletions for f in self.files)


@dataclass
class PullRequest:
    """Normalized pull request."""

    number: int
    author_login: str | None
    created_at: datetime | None
    merged_at: datetime | None
    state: str
    title: str = ""

    @property
    def is_merged(self) -> bool:
        return self.merged_at is not None


@dataclass
class Issue:
    """Normalized issue. The issues endpoint also returns pull requests."""

    number: int
    author_login: str | None
    created_at: datetime | None
    state: str
    title: str = ""
    body: str | None = None
    is_pull_request: bool = False


@dataclass
class Review:
    """Pull request review summary."""

    reviewer: str
    state: str
    body: str | None


@dataclass
class Comment:
    """Issue comment summary."""

    user: str
    body: str | None


@dataclass
class RateLimitStatus:
    """Core API quota for the configured token."""

    limit: int
    remaining: int
    reset_timestamp: int
