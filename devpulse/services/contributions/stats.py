"""Mutable statistics accumulators for a single pipeline run.

UserStatistics and RepositoryStatistics are created on first sighting,
mutated during aggregation, scored once every repository batch has
settled, and then frozen into the report. They never outlive the run.
"""

from dataclasses import dataclass, field
from typing import Any

UNKNOWN_CONTRIBUTOR = "Unknown"
NOT_AVAILABLE_GRADE = "N/A"


@dataclass
class CommitSample:
    """A commit with its file changes, kept for narrative scoring."""

    repository: str
    sha: str
    message: str
    date: str | None
    files: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class PullRequestSample:
    repository: str
    number: int
    title: str
    state: str
    created_at: str | None
    merged_at: str | None
    file_count: int = 0
    total_changes: int = 0
    files: list[dict[str, Any]] = field(default_factory=list)
    reviews: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class IssueSample:
    repository: str
    number: int
    title: str
    state: str
    created_at: str | None
    body: str | None
    comments: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class CodeContent:
    """Detailed samples of a contributor's work across repositories."""

    commits: list[CommitSample] = field(default_factory=list)
    pull_requests: list[PullRequestSample] = field(default_factory=list)
    issues: list[IssueSample] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.commits or self.pull_requests or self.issues)


@dataclass
class UserRepoStatistics:
    """One contributor's activity within one repository."""

    commits: int = 0
    pull_requests: int = 0
    issues: int = 0
    lines_added: int = 0
    lines_deleted: int = 0
    lines_modified: int = 0

    @property
    def has_activity(self) -> bool:
        return bool(self.commits or self.pull_requests or self.issues)


@dataclass
class UserStatistics:
    """Per-contributor accumulator."""

    login: str
    total_commits: int = 0
    total_prs: int = 0
    total_issues: int = 0
    lines_added: int = 0
    lines_deleted: int = 0
    lines_modified: int = 0
    repositories: dict[str, UserRepoStatistics] = field(default_factory=dict)
    # Derived fields, set by the scoring phase
    activity_score: int = 0
    effort_grade: str = NOT_AVAILABLE_GRADE
    code_quality_grade: str = NOT_AVAILABLE_GRADE
    code_content: CodeContent | None = None

    def add_lines(self, repo_key: str, added: int, deleted: int) -> None:
        """Add line deltas to both the user total and the repository entry."""
        repo_stats = self.repositories.setdefault(repo_key, UserRepoStatistics())
        repo_stats.lines_added += added
        repo_stats.lines_deleted += deleted
        repo_stats.lines_modified += added + deleted
        self.lines_added += added
        self.lines_deleted += deleted
        self.lines_modified += added + deleted


@dataclass
class RepositoryStatistics:
    """Per-repository accumulator."""

    commits: int = 0
    pull_requests: int = 0
    issues: int = 0
    prs_merged: int = 0
    issues_closed: int = 0
    lines_added: int = 0
    lines_deleted: int = 0
    lines_modified: int = 0
    contributors: list[str] = field(default_factory=list)

    def add_contributor(self, login: str) -> None:
        if login not in self.contributors:
            self.contributors.append(login)


@dataclass
class ContributionStats:
    """The shared maps every repository batch folds into."""

    users: dict[str, UserStatistics] = field(default_factory=dict)
    repositories: dict[str, RepositoryStatistics] = field(default_factory=dict)

    def ensure_repository(self, repo_key: str) -> RepositoryStatistics:
        return self.repositories.setdefault(repo_key, RepositoryStatistics())


def ensure_user(users: dict[str, UserStatistics], login: str) -> UserStatistics:
    """Return the accumulator for ``login``, creating it on first sighting."""
    user = users.get(login)
    if user is None:
        user = UserStatistics(login=login)
        users[login] = user
    return user


def ensure_user_repo(
    users: dict[str, UserStatistics],
    login: str,
    repo_key: str,
) -> UserRepoStatistics:
    """Return the user's entry for ``repo_key``, creating user and entry as needed."""
    user = ensure_user(users, login)
    return user.repositories.setdefault(repo_key, UserRepoStatistics())


def resolve_identity(login: str | None, display_name: str | None = None) -> str:
    """
    Contributor identity: platform login, else the commit author's display
    name, else "Unknown".

    A display-name identity is never merged with a login, even when they
    belong to the same person.
    """
    return login or display_name or UNKNOWN_CONTRIBUTOR
