"""Unit tests for GitHubReadOperations over the in-memory GitHub API."""

from __future__ import annotations

from datetime import UTC, datetime

from devpulse.services.github.read_operations import (
    normalize_commit,
    normalize_issue,
    normalize_pull_request,
)
from tests.helpers.github_payloads import commit_json, file_json, issue_json, pull_json

# ═══════════════════════════════════════════════════════════════════════════
# Normalizers
# ═══════════════════════════════════════════════════════════════════════════


class TestNormalizers:
    def test_commit_with_linked_account(self):
        commit = normalize_commit(commit_json("abc123", login="alice", name="Alice A."))
        assert commit.sha == "abc123"
        assert commit.author_login == "alice"
        assert commit.author_name == "Alice A."
        assert commit.date == datetime(2026, 1, 14, 12, tzinfo=UTC)

    def test_commit_without_linked_account(self):
        commit = normalize_commit(commit_json("abc123", login=None, name="Bob"))
        assert commit.author_login is None
        assert commit.author_name == "Bob"

    def test_commit_files(self):
        commit = normalize_commit(
            commit_json("abc", files=[file_json("a.py", 3, 1), file_json("b.py", 5, 0)])
        )
        assert [f.filename for f in commit.files] == ["a.py", "b.py"]
        assert commit.files[0].changes == 4

    def test_pull_request_merged(self):
        pr = normalize_pull_request(pull_json(7, merged_at="2026-01-14T13:00:00Z", state="closed"))
        assert pr.number == 7
        assert pr.is_merged is True

    def test_pull_request_open(self):
        assert normalize_pull_request(pull_json(7)).is_merged is False

    def test_issue_flags_pull_requests(self):
        assert normalize_issue(issue_json(1)).is_pull_request is False
        assert normalize_issue(issue_json(2, is_pull_request=True)).is_pull_request is True


# ═══════════════════════════════════════════════════════════════════════════
# Branches and commits
# ═══════════════════════════════════════════════════════════════════════════


class TestBranchesAndCommits:
    async def test_list_branches(self, github, fake_api, repo):
        fake_api.add("/repos/o/r/branches", [{"name": "main"}, {"name": "dev"}])
        assert await github.list_branches(repo) == ["main", "dev"]

    async def test_list_branches_failure_is_none(self, github, repo):
        assert await github.list_branches(repo) is None

    async def test_probe_uses_single_item_page(self, github, fake_api, repo, window):
        fake_api.add_branch_commits("o/r", "main", [commit_json("a"), commit_json("b")])

        assert await github.has_commits_in_window(repo, window, "main") is True

        request = fake_api.requests_to("/repos/o/r/commits")[0]
        assert request.url.params["per_page"] == "1"
        assert request.url.params["sha"] == "main"
        assert request.url.params["since"] == window.since

    async def test_probe_on_empty_branch(self, github, fake_api, repo, window):
        fake_api.add_branch_commits("o/r", "stale", [])
        assert await github.has_commits_in_window(repo, window, "stale") is False

    async def test_probe_on_missing_branch(self, github, repo, window):
        assert await github.has_commits_in_window(repo, window, "gone") is False

    async def test_list_commits_follows_pages(self, github, fake_api, repo, window):
        fake_api.add_branch_commits("o/r", "main", [commit_json(f"sha{i}") for i in range(5)])

        commits = await github.list_commits(repo, window, "main", per_page=2)

        assert [c.sha for c in commits] == [f"sha{i}" for i in range(5)]
        assert len(fake_api.requests_to("/repos/o/r/commits")) == 3

    async def test_list_commits_respects_page_ceiling(self, github, fake_api, repo, window):
        fake_api.add_branch_commits("o/r", "main", [commit_json(f"sha{i}") for i in range(5)])
        commits = await github.list_commits(repo, window, "main", per_page=2, max_pages=1)
        assert len(commits) == 2

    async def test_commit_detail_is_cached(self, github, fake_api, repo):
        fake_api.add(
            "/repos/o/r/commits/abc",
            commit_json("abc", files=[file_json(additions=10, deletions=4)]),
        )

        detail = await github.get_commit_detail(repo, "abc")
        again = await github.get_commit_detail(repo, "abc")

        assert detail.additions == 10
        assert detail.deletions == 4
        assert again.sha == "abc"
        assert len(fake_api.requests_to("/repos/o/r/commits/abc")) == 1
        assert github.cache.get("commit_details", "o/r:abc") is not None

    async def test_commit_detail_failure(self, github, repo):
        assert await github.get_commit_detail(repo, "missing") is None


# ═══════════════════════════════════════════════════════════════════════════
# Pull requests and issues
# ═══════════════════════════════════════════════════════════════════════════


class TestPullRequests:
    async def test_filters_to_window(self, github, fake_api, repo, window):
        fake_api.add(
            "/repos/o/r/pulls",
            [
                pull_json(3, created_at="2026-01-16T00:00:00Z"),
                pull_json(2, created_at="2026-01-10T00:00:00Z"),
                pull_json(1, created_at="2026-01-01T00:00:00Z"),
            ],
        )
        prs = await github.list_pull_requests(repo, window)
        assert [pr.number for pr in prs] == [2]

    async def test_stops_paging_past_window_start(self, github, fake_api, repo, window):
        page = [pull_json(n, created_at="2026-01-10T00:00:00Z") for n in range(99)]
        page.append(pull_json(100, created_at="2025-12-01T00:00:00Z"))
        fake_api.add("/repos/o/r/pulls", page)

        prs = await github.list_pull_requests(repo, window)

        assert len(prs) == 99
        assert len(fake_api.requests_to("/repos/o/r/pulls")) == 1

    async def test_requests_newest_created_first(self, github, fake_api, repo, window):
        fake_api.add("/repos/o/r/pulls", [])
        await github.list_pull_requests(repo, window)
        params = fake_api.requests_to("/repos/o/r/pulls")[0].url.params
        assert params["state"] == "all"
        assert params["sort"] == "created"
        assert params["direction"] == "desc"

    async def test_files_and_reviews(self, github, fake_api, repo):
        fake_api.add("/repos/o/r/pulls/5/files", [file_json("x.py")])
        fake_api.add(
            "/repos/o/r/pulls/5/reviews",
            [{"user": {"login": "bob"}, "state": "APPROVED", "body": "LGTM"}],
        )

        files = await github.list_pull_request_files(repo, 5)
        reviews = await github.list_pull_request_reviews(repo, 5)

        assert files[0].filename == "x.py"
        assert reviews[0].reviewer == "bob"
        assert reviews[0].state == "APPROVED"

    async def test_missing_reviews_are_empty(self, github, repo):
        assert await github.list_pull_request_reviews(repo, 99) == []


class TestIssues:
    async def test_filters_on_creation_time(self, github, fake_api, repo, window):
        # ``since`` matches recently updated issues; creation decides membership
        fake_api.add(
            "/repos/o/r/issues",
            [
                issue_json(1, created_at="2026-01-12T00:00:00Z"),
                issue_json(2, created_at="2025-11-01T00:00:00Z"),
            ],
        )
        issues = await github.list_issues(repo, window)
        assert [i.number for i in issues] == [1]

    async def test_keeps_pull_request_flag(self, github, fake_api, repo, window):
        fake_api.add("/repos/o/r/issues", [issue_json(1), issue_json(2, is_pull_request=True)])
        issues = await github.list_issues(repo, window)
        assert [i.is_pull_request for i in issues] == [False, True]

    async def test_creator_filter_is_sent(self, github, fake_api, repo, window):
        fake_api.add("/repos/o/r/issues", [])
        await github.list_issues(repo, window, creator="alice")
        assert fake_api.requests_to("/repos/o/r/issues")[0].url.params["creator"] == "alice"

    async def test_comments(self, github, fake_api, repo):
        fake_api.add("/repos/o/r/issues/1/comments", [{"user": {"login": "carol"}, "body": "+1"}])
        comments = await github.list_issue_comments(repo, 1)
        assert comments[0].user == "carol"
        assert comments[0].body == "+1"


class TestRateLimit:
    async def test_reads_core_quota(self, github, fake_api):
        fake_api.add(
            "/rate_limit",
            {"resources": {"core": {"limit": 5000, "remaining": 4990, "reset": 1700000000}}},
        )
        status = await github.get_rate_limit()
        assert status.remaining == 4990
        assert status.limit == 5000

    async def test_failure_is_none(self, github):
        assert await github.get_rate_limit() is None
