"""
Branch-aware commit collection.

Commits reachable from several branches are returned once. Branches are
visited in priority order (likely-primary names first), probed with a
single-item request before full pagination, and fetched in fixed-size
concurrent chunks.
"""

import asyncio
import logging

from devpulse.config.pipeline import BRANCH_PRIORITY_THRESHOLD, PipelineConfig
from devpulse.services.github.helpers import chunked
from devpulse.services.github.read_operations import GitHubReadOperations
from devpulse.services.github.types import Commit, RepositoryRef, TimeWindow

logger = logging.getLogger(__name__)

PRIORITY_BRANCH_PATTERNS: tuple[str, ...] = (
    "main",
    "master",
    "develop",
    "dev",
    "staging",
    "production",
)


def _priority_index(branch: str | None) -> int:
    for index, pattern in enumerate(PRIORITY_BRANCH_PATTERNS):
        if branch and pattern in branch:
            return index
    return len(PRIORITY_BRANCH_PATTERNS)


def prioritize_branches(branches: list[str | None]) -> list[str | None]:
    """
    Order branches so names containing a primary pattern come first.

    Only applied above the threshold branch count. The sort is stable, so
    non-matching branches (and ties) keep their listing order. Nothing is
    filtered out.
    """
    if len(branches) <= BRANCH_PRIORITY_THRESHOLD:
        return list(branches)
    return sorted(branches, key=_priority_index)


class BranchCommitCollector:
    """Collects deduplicated commits for a repository across all its branches."""

    def __init__(self, github: GitHubReadOperations, config: PipelineConfig):
        self.github = github
        self.config = config

    async def collect_commits(self, repo: RepositoryRef, window: TimeWindow) -> list[Commit]:
        """
        Collect every commit in the window reachable from any branch.

        Args:
            repo: Repository to scan
            window: Time window for commit dates

        Returns:
            Commits in branch-priority order, each sha exactly once
        """
        cache_key = f"{repo.key}:{window.cache_key}"
        cached = self.github.cache.get("commits", cache_key)
        if cached is not None:
            logger.debug(f"[collector] {repo}: using cached commits")
            return cached

        branches = await self._branches(repo)
        if not branches:
            logger.info(f"[collector] {repo}: no branches, nothing to collect")
            self.github.cache.set("commits", cache_key, [])
            return []

        ordered = prioritize_branches(branches)
        if len(ordered) > BRANCH_PRIORITY_THRESHOLD:
            logger.info(f"[collector] {repo}: processing {len(ordered)} branches in priority order")

        seen: set[str] = set()
        commits: list[Commit] = []

        for chunk in chunked(ordered, self.config.branch_concurrency):
            results = await asyncio.gather(
                *(self._collect_branch(repo, branch, window) for branch in chunk)
            )
            for branch, branch_commits in zip(chunk, results, strict=True):
                fresh: list[Commit] = []
                # Shifting page boundaries can repeat a sha within one branch
                for commit in branch_commits:
                    if commit.sha in seen:
                        continue
                    seen.add(commit.sha)
                    fresh.append(commit)
                commits.extend(fresh)
                if branch_commits:
                    logger.debug(
                        f"[collector] {repo}@{branch or 'default'}: {len(fresh)} new, "
                        f"{len(branch_commits) - len(fresh)} duplicates"
                    )

        logger.info(f"[collector] {repo}: {len(commits)} unique commits across branches")
        self.github.cache.set("commits", cache_key, commits)
        return commits

    async def _branches(self, repo: RepositoryRef) -> list[str | None]:
        cached = self.github.cache.get("branches", repo.key)
        if cached is not None:
            return cached

        names = await self.github.list_branches(repo)
        if names is None:
            # Listing failed: fall back to the default branch only
            logger.warning(f"[collector] {repo}: branch listing failed, using default branch")
            return [None]

        self.github.cache.set("branches", repo.key, names)
        return list(names)

    async def _collect_branch(
        self,
        repo: RepositoryRef,
        branch: str | None,
        window: TimeWindow,
    ) -> list[Commit]:
        cache_key = f"{repo.key}:{branch or ''}:{window.cache_key}"
        cached = self.github.cache.get("commits", cache_key)
        if cached is not None:
            return cached

        if not await self.github.has_commits_in_window(repo, window, branch=branch):
            self.github.cache.set("commits", cache_key, [])
            return []

        commits = await self.github.list_commits(
            repo,
            window,
            branch=branch,
            per_page=self.config.page_size,
            max_pages=self.config.effective_max_branch_pages,
        )
        self.github.cache.set("commits", cache_key, commits)
        return commits
