"""
GitHub API read operations.

Provides the read-only calls the contribution pipeline needs:
- Branch listing
- Commit listing (per branch, per author) and single-commit detail
- Pull requests, their files and reviews
- Issues and their comments
- Rate limit status

All calls go through GitHubFetcher, so they never raise on remote
failures; list operations return None or an empty list instead.
"""

import logging
from typing import Any

from devpulse.services.github.fetcher import GitHubFetcher
from devpulse.services.github.helpers import parse_github_datetime
from devpulse.services.github.types import (
    Comment,
    Commit,
    CommitDetail,
    FileChange,
    Issue,
    PullRequest,
    RateLimitStatus,
    RepositoryRef,
    Review,
    TimeWindow,
)

logger = logging.getLogger(__name__)

MAX_PER_PAGE = 100


def _login(user: dict[str, Any] | None) -> str | None:
    return user.get("login") if user else None


def normalize_file(data: dict[str, Any]) -> FileChange:
    """Convert a GitHub file entry (commit or PR) to FileChange."""
    additions = data.get("additions", 0) or 0
    deletions = data.get("deletions", 0) or 0
    return FileChange(
        filename=data.get("filename", ""),
        status=data.get("status", "modified"),
        additions=additions,
        deletions=deletions,
        changes=data.get("changes", additions + deletions) or 0,
        patch=data.get("patch"),
    )


def normalize_commit(data: dict[str, Any]) -> Commit:
    """Convert a list-commits entry to Commit."""
    git_commit = data.get("commit") or {}
    git_author = git_commit.get("author") or {}
    return Commit(
        sha=data["sha"],
        author_login=_login(data.get("author")),
        author_name=git_author.get("name"),
        date=parse_github_datetime(git_author.get("date")),
        message=git_commit.get("message", ""),
        files=[normalize_file(f) for f in data.get("files") or []],
    )


def normalize_pull_request(data: dict[str, Any]) -> PullRequest:
    return PullRequest(
        number=data["number"],
        author_login=_login(data.get("user")),
        created_at=parse_github_datetime(data.get("created_at")),
        merged_at=parse_github_datetime(data.get("merged_at")),
        state=data.get("state", "open"),
        title=data.get("title") or "",
    )


def normalize_issue(data: dict[str, Any]) -> Issue:
    return Issue(
        number=data["number"],
        author_login=_login(data.get("user")),
        created_at=parse_github_datetime(data.get("created_at")),
        state=data.get("state", "open"),
        title=data.get("title") or "",
        body=data.get("body"),
        is_pull_request="pull_request" in data,
    )


class GitHubReadOperations:
    """
    Read-only operations for GitHub API.

    Wraps a GitHubFetcher and turns raw JSON into the typed events the
    collector and aggregator work with.
    """

    def __init__(self, fetcher: GitHubFetcher):
        self.fetcher = fetcher

    @property
    def cache(self):
        return self.fetcher.cache

    async def list_branches(self, repo: RepositoryRef, max_pages: int = 10) -> list[str] | None:
        """
        List branch names for a repository.

        Returns:
            Branch names, or None if the listing failed (caller falls back
            to the default branch)
        """
        page = await self.fetcher.fetch_all(
            "branches",
            f"{repo.key} branches",
            f"/repos/{repo.owner}/{repo.name}/branches",
            per_page=MAX_PER_PAGE,
            max_pages=max_pages,
            cache_key=repo.key,
        )
        if not page.ok:
            return None
        return [b["name"] for b in page.items if b.get("name")]

    async def has_commits_in_window(
        self,
        repo: RepositoryRef,
        window: TimeWindow,
        branch: str | None = None,
    ) -> bool:
        """
        Cheap existence probe: a single commit (per_page=1) in the window.

        A missing branch or failed probe counts as no activity.
        """
        params: dict[str, str | int] = {"since": window.since, "until": window.until}
        if branch:
            params["sha"] = branch
        page = await self.fetcher.fetch_page(
            "commits",
            f"{repo.key} commits ({branch or 'default'}) probe",
            f"/repos/{repo.owner}/{repo.name}/commits",
            {**params, "per_page": 1, "page": 1},
        )
        return page.ok and bool(page.items)

    async def list_commits(
        self,
        repo: RepositoryRef,
        window: TimeWindow,
        branch: str | None = None,
        author: str | None = None,
        per_page: int = MAX_PER_PAGE,
        max_pages: int = 10,
    ) -> list[Commit]:
        """
        List commits in the window, following pagination up to ``max_pages``.

        Args:
            repo: Repository
            window: Time window (since/until)
            branch: Branch name (default: repo's default branch)
            author: Optional GitHub login or email filter
            per_page: Page size (max 100)
            max_pages: Page-count ceiling

        Returns:
            Commits, newest first; empty if the branch is gone or fetching failed
        """
        params: dict[str, str | int] = {"since": window.since, "until": window.until}
        if branch:
            params["sha"] = branch
        if author:
            params["author"] = author

        page = await self.fetcher.fetch_all(
            "commits",
            f"{repo.key} commits ({branch or 'default'})",
            f"/repos/{repo.owner}/{repo.name}/commits",
            params,
            per_page=min(per_page, MAX_PER_PAGE),
            max_pages=max_pages,
            cache_key=f"{repo.key}:{branch or ''}:{author or ''}:{window.cache_key}",
        )
        return [normalize_commit(c) for c in page.items if c.get("sha")]

    async def get_commit_detail(self, repo: RepositoryRef, sha: str) -> CommitDetail | None:
        """
        Fetch a single commit with its per-file changes.

        Returns:
            CommitDetail, or None if the fetch failed
        """
        data = await self.fetcher.fetch_json(
            "commit_details",
            f"{repo.key} commit {sha[:7]}",
            f"/repos/{repo.owner}/{repo.name}/commits/{sha}",
            cache_key=f"{repo.key}:{sha}",
        )
        if not isinstance(data, dict):
            return None
        commit = normalize_commit({**data, "sha": data.get("sha", sha)})
        return CommitDetail(sha=commit.sha, message=commit.message, date=commit.date, files=commit.files)

    async def list_pull_requests(
        self,
        repo: RepositoryRef,
        window: TimeWindow,
        max_pages: int = 10,
    ) -> list[PullRequest]:
        """
        List pull requests created within the window.

        The pulls API has no date filter, so PRs are requested newest-created
        first and paging stops once a page reaches past the window start.
        """
        results: list[PullRequest] = []
        for page_no in range(1, max_pages + 1):
            page = await self.fetcher.fetch_page(
                "pull_requests",
                f"{repo.key} pull requests",
                f"/repos/{repo.owner}/{repo.name}/pulls",
                {
                    "state": "all",
                    "sort": "created",
                    "direction": "desc",
                    "per_page": MAX_PER_PAGE,
                    "page": page_no,
                },
                cache_key=f"{repo.key}:{window.cache_key}:p{page_no}",
            )
            prs = [normalize_pull_request(p) for p in page.items]
            results.extend(pr for pr in prs if window.contains(pr.created_at))

            reached_start = any(pr.created_at and pr.created_at < window.start for pr in prs)
            if not page.ok or not page.has_more or reached_start:
                break
        return results

    async def list_issues(
        self,
        repo: RepositoryRef,
        window: TimeWindow,
        creator: str | None = None,
        max_pages: int = 10,
    ) -> list[Issue]:
        """
        List issues created within the window.

        ``since`` on the issues endpoint filters by update time, so results
        are re-filtered on creation time. Pull requests are returned too
        (flagged ``is_pull_request``); callers decide whether to drop them.
        """
        params: dict[str, str | int] = {"state": "all", "since": window.since}
        if creator:
            params["creator"] = creator

        page = await self.fetcher.fetch_all(
            "issues",
            f"{repo.key} issues",
            f"/repos/{repo.owner}/{repo.name}/issues",
            params,
            per_page=MAX_PER_PAGE,
            max_pages=max_pages,
            cache_key=f"{repo.key}:{creator or ''}:{window.cache_key}",
        )
        issues = [normalize_issue(i) for i in page.items]
        return [i for i in issues if window.contains(i.created_at)]

    async def list_pull_request_files(self, repo: RepositoryRef, number: int) -> list[FileChange]:
        data = await self.fetcher.fetch_json(
            "pr_files",
            f"{repo.key} PR #{number} files",
            f"/repos/{repo.owner}/{repo.name}/pulls/{number}/files",
            params={"per_page": MAX_PER_PAGE},
            cache_key=f"{repo.key}:{number}",
        )
        return [normalize_file(f) for f in data] if isinstance(data, list) else []

    async def list_pull_request_reviews(self, repo: RepositoryRef, number: int) -> list[Review]:
        data = await self.fetcher.fetch_json(
            "pr_reviews",
            f"{repo.key} PR #{number} reviews",
            f"/repos/{repo.owner}/{repo.name}/pulls/{number}/reviews",
            params={"per_page": MAX_PER_PAGE},
            cache_key=f"{repo.key}:{number}",
        )
        if not isinstance(data, list):
            return []
        return [
            Review(
                reviewer=_login(r.get("user")) or "unknown",
                state=r.get("state", ""),
                body=r.get("body"),
            )
            for r in data
        ]

    async def list_issue_comments(self, repo: RepositoryRef, number: int) -> list[Comment]:
        data = await self.fetcher.fetch_json(
            "issue_comments",
            f"{repo.key} issue #{number} comments",
            f"/repos/{repo.owner}/{repo.name}/issues/{number}/comments",
            params={"per_page": MAX_PER_PAGE},
            cache_key=f"{repo.key}:{number}",
        )
        if not isinstance(data, list):
            return []
        return [Comment(user=_login(c.get("user")) or "unknown", body=c.get("body")) for c in data]

    async def get_rate_limit(self) -> RateLimitStatus | None:
        """Current core quota for the token (does not count against the quota)."""
        data = await self.fetcher.fetch_json("rate_limit", "rate limit", "/rate_limit")
        if not isinstance(data, dict):
            return None
        core = (data.get("resources") or {}).get("core") or data.get("rate") or {}
        return RateLimitStatus(
            limit=int(core.get("limit", 0)),
            remaining=int(core.get("remaining", 0)),
            reset_timestamp=int(core.get("reset", 0)),
        )
