"""
Detailed-content collection for narrative scoring.

For each repository, the most active contributors get a handful of concrete
samples: commit diffs, pull requests with their files and reviews, and
issues with their comments. Text is truncated at collection time so the
samples stay small. Every remote call is best-effort, so a failure only
means fewer samples.
"""

import asyncio
import logging
from dataclasses import asdict

from devpulse.services.contributions.aggregator import group_by_author, group_commits_by_author
from devpulse.services.contributions.stats import (
    CodeContent,
    CommitSample,
    ContributionStats,
    IssueSample,
    PullRequestSample,
    UserStatistics,
)
from devpulse.services.github.helpers import chunked, truncate
from devpulse.services.github.read_operations import GitHubReadOperations
from devpulse.services.github.types import Commit, Issue, PullRequest, RepositoryRef

logger = logging.getLogger(__name__)

MAX_CONTRIBUTORS_PER_REPO = 10
CONTRIBUTOR_CONCURRENCY = 5
COMMITS_PER_USER = 5
PULL_REQUESTS_PER_USER = 3
ISSUES_PER_USER = 3
FILES_PER_PULL_REQUEST = 5

PATCH_LIMIT = 500
REVIEW_BODY_LIMIT = 200
ISSUE_BODY_LIMIT = 300
COMMENT_BODY_LIMIT = 200


def _iso(moment) -> str | None:
    return moment.isoformat() if moment else None


def top_contributors(stats: ContributionStats, repo_key: str, limit: int) -> list[str]:
    """Repository contributors ranked by commits there (stable for ties), capped at ``limit``."""
    contributors = stats.repositories[repo_key].contributors if repo_key in stats.repositories else []
    if len(contributors) <= limit:
        return list(contributors)

    def repo_commits(login: str) -> int:
        entry = stats.users[login].repositories.get(repo_key)
        return entry.commits if entry else 0

    return sorted(contributors, key=repo_commits, reverse=True)[:limit]


class DetailedContentCollector:
    """Attaches CodeContent samples to the top contributors of a repository."""

    def __init__(self, github: GitHubReadOperations, stats: ContributionStats):
        self.github = github
        self.stats = stats

    async def collect(
        self,
        repo: RepositoryRef,
        commits: list[Commit],
        pull_requests: list[PullRequest],
        issues: list[Issue],
    ) -> None:
        """
        Gather samples for one repository from the events already fetched this run.

        Args:
            repo: Repository the events belong to
            commits: Deduplicated commits in the window
            pull_requests: Pull requests created in the window
            issues: Issues created in the window
        """
        logins = top_contributors(self.stats, repo.key, MAX_CONTRIBUTORS_PER_REPO)
        if not logins:
            logger.debug(f"[content] {repo}: no contributors, skipping")
            return

        commits_by_author = group_commits_by_author(commits)
        prs_by_author = group_by_author(pull_requests)
        issues_by_author = group_by_author(i for i in issues if not i.is_pull_request)

        for chunk in chunked(logins, CONTRIBUTOR_CONCURRENCY):
            await asyncio.gather(
                *(
                    self._collect_user(
                        repo,
                        self.stats.users[login],
                        commits_by_author.get(login, []),
                        prs_by_author.get(login, []),
                        issues_by_author.get(login, []),
                    )
                    for login in chunk
                    if login in self.stats.users
                )
            )
        logger.info(f"[content] {repo}: collected samples for {len(logins)} contributors")

    async def _collect_user(
        self,
        repo: RepositoryRef,
        user: UserStatistics,
        commits: list[Commit],
        pull_requests: list[PullRequest],
        issues: list[Issue],
    ) -> None:
        if user.code_content is None:
            user.code_content = CodeContent()
        content = user.code_content

        commit_samples, pr_samples, issue_samples = await asyncio.gather(
            self._commit_samples(repo, commits[:COMMITS_PER_USER]),
            self._pull_request_samples(repo, pull_requests[:PULL_REQUESTS_PER_USER]),
            self._issue_samples(repo, issues[:ISSUES_PER_USER]),
        )
        content.commits.extend(commit_samples)
        content.pull_requests.extend(pr_samples)
        content.issues.extend(issue_samples)

    async def _commit_samples(self, repo: RepositoryRef, commits: list[Commit]) -> list[CommitSample]:
        details = await asyncio.gather(*(self.github.get_commit_detail(repo, c.sha) for c in commits))
        samples = []
        for commit, detail in zip(commits, details, strict=True):
            if detail is None:
                continue
            files = []
            for change in detail.files:
                entry = asdict(change)
                entry["patch"] = truncate(change.patch, PATCH_LIMIT)
                files.append(entry)
            samples.append(
                CommitSample(
                    repository=repo.key,
                    sha=commit.sha,
                    message=commit.message or detail.message,
                    date=_iso(commit.date),
                    files=files,
                )
            )
        return samples

    async def _pull_request_samples(
        self,
        repo: RepositoryRef,
        pull_requests: list[PullRequest],
    ) -> list[PullRequestSample]:
        async def sample(pr: PullRequest) -> PullRequestSample:
            files, reviews = await asyncio.gather(
                self.github.list_pull_request_files(repo, pr.number),
                self.github.list_pull_request_reviews(repo, pr.number),
            )
            return PullRequestSample(
                repository=repo.key,
                number=pr.number,
                title=pr.title,
                state=pr.state,
                created_at=_iso(pr.created_at),
                merged_at=_iso(pr.merged_at),
                file_count=len(files),
                total_changes=sum(f.changes for f in files),
                files=[
                    {
                        "filename": f.filename,
                        "status": f.status,
                        "additions": f.additions,
                        "deletions": f.deletions,
                        "changes": f.changes,
                    }
                    for f in files[:FILES_PER_PULL_REQUEST]
                ],
                reviews=[
                    {
                        "reviewer": r.reviewer,
                        "state": r.state,
                        "body": truncate(r.body, REVIEW_BODY_LIMIT),
                    }
                    for r in reviews
                ],
            )

        return list(await asyncio.gather(*(sample(pr) for pr in pull_requests)))

    async def _issue_samples(self, repo: RepositoryRef, issues: list[Issue]) -> list[IssueSample]:
        async def sample(issue: Issue) -> IssueSample:
            comments = await self.github.list_issue_comments(repo, issue.number)
            return IssueSample(
                repository=repo.key,
                number=issue.number,
                title=issue.title,
                state=issue.state,
                created_at=_iso(issue.created_at),
                body=truncate(issue.body, ISSUE_BODY_LIMIT),
                comments=[
                    {"user": c.user, "body": truncate(c.body, COMMENT_BODY_LIMIT)}
                    for c in comments
                ],
            )

        return list(await asyncio.gather(*(sample(i) for i in issues)))
