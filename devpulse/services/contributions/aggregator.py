"""
Folds raw repository events into per-user and per-repository statistics.

Within one repository, commits, pull requests and issues are processed
concurrently. Each stage touches only its own counters, and all mutation
happens on the event loop between awaits, so no locking is needed.
"""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Iterable

from devpulse.config.pipeline import PipelineConfig
from devpulse.services.contributions.stats import (
    ContributionStats,
    UserStatistics,
    ensure_user_repo,
    resolve_identity,
)
from devpulse.services.github.helpers import chunked
from devpulse.services.github.read_operations import GitHubReadOperations
from devpulse.services.github.types import Commit, Issue, PullRequest, RepositoryRef

logger = logging.getLogger(__name__)

COMMIT_DETAIL_BATCH_SIZE = 5


def group_commits_by_author(commits: Iterable[Commit]) -> dict[str, list[Commit]]:
    grouped: dict[str, list[Commit]] = defaultdict(list)
    for commit in commits:
        grouped[resolve_identity(commit.author_login, commit.author_name)].append(commit)
    return dict(grouped)


def group_by_author(items: Iterable[PullRequest | Issue]) -> dict[str, list]:
    grouped: dict[str, list] = defaultdict(list)
    for item in items:
        grouped[resolve_identity(item.author_login)].append(item)
    return dict(grouped)


class ContributionAggregator:
    """Accumulates events into a shared ContributionStats."""

    def __init__(
        self,
        github: GitHubReadOperations,
        config: PipelineConfig,
        stats: ContributionStats | None = None,
    ):
        self.github = github
        self.config = config
        self.stats = stats or ContributionStats()

    async def aggregate(
        self,
        repo: RepositoryRef,
        commits: list[Commit],
        pull_requests: list[PullRequest],
        issues: list[Issue],
    ) -> None:
        """
        Fold one repository's events into the shared statistics.

        Args:
            repo: Repository the events belong to
            commits: Deduplicated commits in the window
            pull_requests: Pull requests created in the window
            issues: Issues created in the window (pull requests are dropped here)
        """
        self.stats.ensure_repository(repo.key)
        await asyncio.gather(
            self._process_commits(repo, commits),
            self._process_pull_requests(repo, pull_requests),
            self._process_issues(repo, issues),
        )

    async def _process_commits(self, repo: RepositoryRef, commits: list[Commit]) -> None:
        repo_stats = self.stats.ensure_repository(repo.key)
        repo_stats.commits += len(commits)
        if not commits:
            logger.debug(f"[aggregator] {repo}: no commits")
            return

        by_author = group_commits_by_author(commits)
        for author, author_commits in by_author.items():
            user_repo = ensure_user_repo(self.stats.users, author, repo.key)
            self.stats.users[author].total_commits += len(author_commits)
            user_repo.commits += len(author_commits)
            repo_stats.add_contributor(author)

        await asyncio.gather(
            *(
                self._accumulate_lines(repo, self.stats.users[author], author_commits)
                for author, author_commits in by_author.items()
            )
        )

    async def _accumulate_lines(
        self,
        repo: RepositoryRef,
        user: UserStatistics,
        commits: list[Commit],
    ) -> None:
        """Fetch detail for a bounded sample of the user's commits and add line deltas."""
        sample = commits[: self.config.commit_sample_size]
        repo_stats = self.stats.ensure_repository(repo.key)

        for batch in chunked(sample, COMMIT_DETAIL_BATCH_SIZE):
            details = await asyncio.gather(
                *(self.github.get_commit_detail(repo, c.sha) for c in batch)
            )
            for detail in details:
                if detail is None:
                    continue
                added, deleted = detail.additions, detail.deletions
                user.add_lines(repo.key, added, deleted)
                repo_stats.lines_added += added
                repo_stats.lines_deleted += deleted
                repo_stats.lines_modified += added + deleted

    async def _process_pull_requests(
        self,
        repo: RepositoryRef,
        pull_requests: list[PullRequest],
    ) -> None:
        repo_stats = self.stats.ensure_repository(repo.key)
        repo_stats.pull_requests += len(pull_requests)
        repo_stats.prs_merged += sum(1 for pr in pull_requests if pr.is_merged)

        for author, author_prs in group_by_author(pull_requests).items():
            user_repo = ensure_user_repo(self.stats.users, author, repo.key)
            self.stats.users[author].total_prs += len(author_prs)
            user_repo.pull_requests += len(author_prs)
            repo_stats.add_contributor(author)

    async def _process_issues(self, repo: RepositoryRef, issues: list[Issue]) -> None:
        actual_issues = [i for i in issues if not i.is_pull_request]
        repo_stats = self.stats.ensure_repository(repo.key)
        repo_stats.issues += len(actual_issues)
        repo_stats.issues_closed += sum(1 for i in actual_issues if i.state == "closed")

        for author, author_issues in group_by_author(actual_issues).items():
            user_repo = ensure_user_repo(self.stats.users, author, repo.key)
            self.stats.users[author].total_issues += len(author_issues)
            user_repo.issues += len(author_issues)
            repo_stats.add_contributor(author)

    def zero_fill(self, repo_keys: Iterable[str]) -> None:
        """Give every known user an entry (zeros by default) for every repository."""
        keys = list(repo_keys)
        for key in keys:
            self.stats.ensure_repository(key)
        for login in list(self.stats.users):
            for key in keys:
                ensure_user_repo(self.stats.users, login, key)

