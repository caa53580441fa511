"""Unit tests for detailed-content sampling."""

from __future__ import annotations

from datetime import UTC, datetime

from devpulse.services.contributions.detailed_content import (
    COMMITS_PER_USER,
    PATCH_LIMIT,
    DetailedContentCollector,
    top_contributors,
)
from devpulse.services.contributions.stats import ContributionStats, ensure_user_repo
from devpulse.services.github.types import Commit, Issue, PullRequest
from tests.helpers.github_payloads import commit_json, file_json

CREATED = datetime(2026, 1, 14, tzinfo=UTC)


def _commit(sha: str, message: str = "") -> Commit:
    return Commit(sha=sha, author_login="alice", author_name=None, date=CREATED, message=message)


def _stats_with(*logins_and_commits: tuple[str, int]) -> ContributionStats:
    stats = ContributionStats()
    repo_stats = stats.ensure_repository("o/r")
    for login, commits in logins_and_commits:
        ensure_user_repo(stats.users, login, "o/r").commits = commits
        repo_stats.add_contributor(login)
    return stats


class TestTopContributors:
    def test_small_lists_keep_order(self):
        stats = _stats_with(("alice", 1), ("bob", 5))
        assert top_contributors(stats, "o/r", 10) == ["alice", "bob"]

    def test_capped_by_repository_commits(self):
        stats = _stats_with(("a", 1), ("b", 9), ("c", 5))
        assert top_contributors(stats, "o/r", 2) == ["b", "c"]

    def test_unknown_repository(self):
        assert top_contributors(ContributionStats(), "o/missing", 10) == []


class TestDetailedContentCollector:
    async def test_collects_commit_samples_with_truncated_patch(self, github, fake_api, repo):
        fake_api.add(
            "/repos/o/r/commits/a",
            commit_json("a", files=[file_json("a.py", patch="x" * 800)]),
        )
        stats = _stats_with(("alice", 1))
        commits = [_commit("a", message="Fix")]

        await DetailedContentCollector(github, stats).collect(repo, commits, [], [])

        content = stats.users["alice"].code_content
        assert len(content.commits) == 1
        sample = content.commits[0]
        assert sample.message == "Fix"
        assert sample.repository == "o/r"
        assert sample.files[0]["patch"] == "x" * PATCH_LIMIT + "..."

    async def test_commit_samples_are_bounded(self, github, fake_api, repo):
        commits = []
        for i in range(8):
            fake_api.add(f"/repos/o/r/commits/s{i}", commit_json(f"s{i}", files=[]))
            commits.append(_commit(f"s{i}"))
        stats = _stats_with(("alice", 8))

        await DetailedContentCollector(github, stats).collect(repo, commits, [], [])

        assert len(stats.users["alice"].code_content.commits) == COMMITS_PER_USER

    async def test_pull_request_samples_with_files_and_reviews(self, github, fake_api, repo):
        fake_api.add(
            "/repos/o/r/pulls/4/files",
            [file_json(f"f{i}.py", additions=2, deletions=1) for i in range(7)],
        )
        fake_api.add(
            "/repos/o/r/pulls/4/reviews",
            [{"user": {"login": "bob"}, "state": "COMMENTED", "body": "y" * 300}],
        )
        stats = _stats_with(("alice", 0))
        pr = PullRequest(
            number=4, author_login="alice", created_at=CREATED, merged_at=None, state="open"
        )

        await DetailedContentCollector(github, stats).collect(repo, [], [pr], [])

        sample = stats.users["alice"].code_content.pull_requests[0]
        assert sample.file_count == 7
        assert sample.total_changes == 21
        assert len(sample.files) == 5
        assert sample.reviews[0]["reviewer"] == "bob"
        assert len(sample.reviews[0]["body"]) == 203

    async def test_issue_samples_skip_pull_requests(self, github, fake_api, repo):
        fake_api.add(
            "/repos/o/r/issues/1/comments", [{"user": {"login": "bob"}, "body": "same here"}]
        )
        stats = _stats_with(("alice", 0))
        issues = [
            Issue(number=1, author_login="alice", created_at=CREATED, state="open", body="z" * 400),
            Issue(
                number=2,
                author_login="alice",
                created_at=CREATED,
                state="open",
                is_pull_request=True,
            ),
        ]

        await DetailedContentCollector(github, stats).collect(repo, [], [], issues)

        samples = stats.users["alice"].code_content.issues
        assert [s.number for s in samples] == [1]
        assert samples[0].body == "z" * 300 + "..."
        assert samples[0].comments == [{"user": "bob", "body": "same here"}]

    async def test_failed_fetches_mean_fewer_samples(self, github, repo):
        stats = _stats_with(("alice", 1))
        commits = [_commit("gone")]

        await DetailedContentCollector(github, stats).collect(repo, commits, [], [])

        assert stats.users["alice"].code_content.is_empty

    async def test_no_contributors_makes_no_requests(self, github, fake_api, repo):
        stats = ContributionStats()
        stats.ensure_repository("o/r")

        await DetailedContentCollector(github, stats).collect(repo, [], [], [])

        assert fake_api.requests == []
