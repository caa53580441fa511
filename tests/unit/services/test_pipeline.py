"""End-to-end tests for the contribution pipeline over the in-memory GitHub API.

Contexts are built with PipelineContext.create and an httpx.MockTransport;
the clock is pinned so window filtering is deterministic.
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import anthropic
import httpx
import pytest

from devpulse.config.pipeline import PipelineConfig
from devpulse.config.settings import Settings
from devpulse.services.contributions.narrative import ContributorAssessment, NarrativeResult
from devpulse.services.contributions.pipeline import (
    FAILURE_MESSAGE,
    PipelineContext,
    generate_and_store,
    generate_user_report,
    latest_report,
    run_in_background,
    run_pipeline,
)
from devpulse.services.contributions.storage import (
    SAVE_FAILED_ID,
    InMemoryReportStore,
    LoggingReportPublisher,
)
from devpulse.services.github.types import RepositoryRef
from tests.helpers.fakes import NOW
from tests.helpers.github_payloads import commit_json, file_json, issue_json, pull_json

REPO = RepositoryRef(owner="o", name="r")
QUIET = RepositoryRef(owner="o", name="quiet")
ANTHROPIC_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def _settings(**overrides) -> Settings:
    values = {
        "github_token": "ghp_test",
        "anthropic_api_key": "",
        "github_repos": [{"owner": "o", "repo": "r"}],
    }
    values.update(overrides)
    return Settings(**values)


def _context(fake_api, *repos: RepositoryRef, **config_overrides) -> PipelineContext:
    config = PipelineConfig(repositories=repos or (REPO,), **config_overrides)
    ctx = PipelineContext.create(_settings(), config, transport=fake_api.transport())
    ctx.clock = lambda: NOW
    return ctx


def _seed_team_repo(fake_api) -> None:
    """main has three commits by alice, dev shares one of them, feature is idle."""
    fake_api.add("/repos/o/r/branches", [{"name": "main"}, {"name": "dev"}, {"name": "feature"}])
    fake_api.add_branch_commits("o/r", "main", [commit_json(f"a{i}") for i in range(1, 4)])
    fake_api.add_branch_commits("o/r", "dev", [commit_json("a3")])
    fake_api.add_branch_commits("o/r", "feature", [])
    fake_api.add("/repos/o/r/pulls", [])
    fake_api.add("/repos/o/r/issues", [])


# ═══════════════════════════════════════════════════════════════════════════
# run_pipeline
# ═══════════════════════════════════════════════════════════════════════════


class TestRunPipeline:
    async def test_counts_each_commit_once(self, fake_api):
        _seed_team_repo(fake_api)

        async with _context(fake_api) as ctx:
            report = await run_pipeline(ctx)

        alice = report.users["alice"]
        assert alice.total_commits == 3
        assert alice.activity_score == 9
        assert alice.effort_grade == "C+"
        assert alice.code_quality_grade == "N/A"
        assert report.repositories["o/r"].commits == 3
        assert report.summary.total_commits == 3
        # No Anthropic key configured
        assert report.narrative is None

    async def test_window_comes_from_clock(self, fake_api):
        _seed_team_repo(fake_api)

        async with _context(fake_api, window_days=14) as ctx:
            report = await run_pipeline(ctx)

        assert report.summary.period.end == NOW
        assert (report.summary.period.end - report.summary.period.start).days == 14
        assert report.generated_at == NOW

    async def test_pull_requests_and_issues(self, fake_api):
        _seed_team_repo(fake_api)
        fake_api.add(
            "/repos/o/r/pulls",
            [
                pull_json(2, login="bob", merged_at="2026-01-14T15:00:00Z", state="closed"),
                pull_json(1, login="bob", created_at="2025-12-01T00:00:00Z"),
            ],
        )
        fake_api.add(
            "/repos/o/r/issues",
            [
                issue_json(5, login="carol", state="closed"),
                issue_json(2, login="bob", is_pull_request=True),
            ],
        )

        async with _context(fake_api) as ctx:
            report = await run_pipeline(ctx)

        assert report.users["bob"].total_prs == 1
        assert report.users["bob"].total_issues == 0
        assert report.users["carol"].total_issues == 1
        repo = report.repositories["o/r"]
        assert (repo.pull_requests, repo.prs_merged) == (1, 1)
        assert (repo.issues, repo.issues_closed) == (1, 1)

    async def test_every_user_has_every_repository(self, fake_api):
        _seed_team_repo(fake_api)
        fake_api.add("/repos/o/quiet/branches", [])
        fake_api.add("/repos/o/quiet/pulls", [])
        fake_api.add("/repos/o/quiet/issues", [issue_json(9, login="dave")])

        async with _context(fake_api, REPO, QUIET) as ctx:
            report = await run_pipeline(ctx)

        for user in report.users.values():
            assert set(user.repositories) == {"o/r", "o/quiet"}
        assert report.users["alice"].repositories["o/quiet"].commits == 0
        assert report.users["dave"].repositories["o/r"].issues == 0
        assert report.summary.repositories == ("o/r", "o/quiet")

    async def test_failed_repository_does_not_sink_report(self, fake_api):
        _seed_team_repo(fake_api)

        async with _context(fake_api, REPO, QUIET, skip_detailed_content=True) as ctx:
            original = ctx.github.list_issues

            async def flaky_list_issues(repo, window, **kwargs):
                if repo == QUIET:
                    raise RuntimeError("boom")
                return await original(repo, window, **kwargs)

            with patch.object(ctx.github, "list_issues", side_effect=flaky_list_issues):
                report = await run_pipeline(ctx)

        assert report.users["alice"].total_commits == 3
        assert report.repositories["o/quiet"].commits == 0

    async def test_memory_optimized_caps_repositories(self, fake_api):
        _seed_team_repo(fake_api)
        repos = (REPO, QUIET, RepositoryRef("o", "third"))

        async with _context(fake_api, *repos, memory_optimized=True, max_repos=1) as ctx:
            report = await run_pipeline(ctx)

        assert list(report.repositories) == ["o/r"]
        assert fake_api.requests_to("/repos/o/quiet/branches") == []

    async def test_skip_detailed_content_makes_no_detail_requests(self, fake_api):
        _seed_team_repo(fake_api)

        async with _context(fake_api, skip_detailed_content=True, commit_sample_size=1) as ctx:
            await run_pipeline(ctx)

        detail_requests = [
            r for r in fake_api.requests if r.url.path.startswith("/repos/o/r/commits/")
        ]
        # Only the line-count sample
        assert len(detail_requests) == 1

    async def test_cache_is_cleared_between_runs(self, fake_api):
        _seed_team_repo(fake_api)

        async with _context(fake_api, skip_detailed_content=True) as ctx:
            await run_pipeline(ctx)
            first_run = len(fake_api.requests_to("/repos/o/r/branches"))
            await run_pipeline(ctx)

        assert len(fake_api.requests_to("/repos/o/r/branches")) == first_run * 2


class TestNarrativeStage:
    async def test_quality_grade_only_from_numeric_score(self, fake_api):
        _seed_team_repo(fake_api)
        fake_api.add("/repos/o/r/commits/a1", commit_json("a1", files=[file_json("x.py")]))
        narrative = NarrativeResult(
            summary="Good week.",
            contributors={
                "alice": ContributorAssessment(assessment="Solid", code_quality_score=9.6),
                "ghost": ContributorAssessment(assessment="?", code_quality_score=5.0),
            },
        )

        async with _context(fake_api) as ctx:
            with patch.object(
                ctx.narrative_scorer, "score_top", new=AsyncMock(return_value=narrative)
            ) as mock_score:
                report = await run_pipeline(ctx)

        assert report.users["alice"].code_quality_grade == "A+"
        assert "ghost" not in report.users
        assert report.narrative.summary == "Good week."
        assert mock_score.await_args.kwargs["detailed"] is True

    async def test_basic_variant_without_samples(self, fake_api):
        _seed_team_repo(fake_api)
        narrative = NarrativeResult(
            summary="ok", contributors={"alice": ContributorAssessment(assessment="fine")}
        )

        async with _context(fake_api) as ctx:
            with patch.object(
                ctx.narrative_scorer, "score_top", new=AsyncMock(return_value=narrative)
            ) as mock_score:
                report = await run_pipeline(ctx)

        assert mock_score.await_args.kwargs["detailed"] is False
        assert report.users["alice"].code_quality_grade == "N/A"

    async def test_skip_narrative(self, fake_api):
        _seed_team_repo(fake_api)

        async with _context(fake_api, skip_narrative=True) as ctx:
            with patch.object(ctx.narrative_scorer, "score_top", new=AsyncMock()) as mock_score:
                report = await run_pipeline(ctx)

        mock_score.assert_not_awaited()
        assert report.narrative is None

    @pytest.mark.parametrize(
        "create",
        [
            AsyncMock(side_effect=anthropic.APIConnectionError(request=ANTHROPIC_REQUEST)),
            AsyncMock(
                return_value=SimpleNamespace(
                    content=[SimpleNamespace(text="I could not assess this team.")],
                    stop_reason="end_turn",
                )
            ),
        ],
        ids=["api-error", "no-json"],
    )
    async def test_failed_narrative_keeps_numeric_report(self, fake_api, create):
        _seed_team_repo(fake_api)

        async with _context(fake_api, skip_narrative=True) as ctx:
            baseline = await run_pipeline(ctx)

        async with _context(fake_api) as ctx:
            ctx.narrative_scorer.api_key = "sk-test"
            ctx.narrative_scorer._client = SimpleNamespace(messages=SimpleNamespace(create=create))
            report = await run_pipeline(ctx)

        create.assert_awaited_once()
        assert report.narrative is None
        assert report.to_dict()["users"] == baseline.to_dict()["users"]
        assert report.to_dict()["repositories"] == baseline.to_dict()["repositories"]

    async def test_failed_projection_keeps_numeric_report(self, fake_api):
        _seed_team_repo(fake_api)

        async with _context(fake_api) as ctx:
            ctx.narrative_scorer.api_key = "sk-test"
            with patch(
                "devpulse.services.contributions.narrative.project_contributor",
                side_effect=KeyError("repositories"),
            ):
                report = await run_pipeline(ctx)

        assert report.narrative is None
        assert report.users["alice"].total_commits == 3


# ═══════════════════════════════════════════════════════════════════════════
# generate_and_store / run_in_background
# ═══════════════════════════════════════════════════════════════════════════


class TestGenerateAndStore:
    async def test_saves_and_publishes(self, fake_api):
        _seed_team_repo(fake_api)
        store = InMemoryReportStore()
        publisher = AsyncMock()

        async with _context(fake_api) as ctx:
            report, report_id = await generate_and_store(ctx, store, publisher)

        assert len(store) == 1
        assert await latest_report(store) is report
        publisher.publish.assert_awaited_once_with(report, report_id)

    async def test_save_failure_still_publishes(self, fake_api):
        _seed_team_repo(fake_api)
        store = AsyncMock()
        store.save.side_effect = RuntimeError("disk full")
        publisher = AsyncMock()

        async with _context(fake_api) as ctx:
            report, report_id = await generate_and_store(ctx, store, publisher)

        assert report_id == SAVE_FAILED_ID
        publisher.publish.assert_awaited_once_with(report, SAVE_FAILED_ID)


class TestRunInBackground:
    async def test_returns_task_and_closes_context(self, fake_api):
        _seed_team_repo(fake_api)
        store = InMemoryReportStore()
        ctx = _context(fake_api)

        task = run_in_background(ctx, store, LoggingReportPublisher())
        assert isinstance(task, asyncio.Task)
        result = await task

        assert result is not None
        assert len(store) == 1
        assert ctx.client.is_closed

    async def test_failure_notifies_publisher(self, fake_api):
        _seed_team_repo(fake_api)
        publisher = AsyncMock()
        publisher.publish.side_effect = RuntimeError("renderer down")

        result = await run_in_background(_context(fake_api), InMemoryReportStore(), publisher)

        assert result is None
        publisher.notify_failure.assert_awaited_once_with(FAILURE_MESSAGE)

    async def test_failed_notice_is_swallowed(self, fake_api):
        _seed_team_repo(fake_api)
        publisher = AsyncMock()
        publisher.publish.side_effect = RuntimeError("renderer down")
        publisher.notify_failure.side_effect = RuntimeError("chat down")

        result = await run_in_background(_context(fake_api), InMemoryReportStore(), publisher)

        assert result is None


# ═══════════════════════════════════════════════════════════════════════════
# generate_user_report / latest_report
# ═══════════════════════════════════════════════════════════════════════════


class TestGenerateUserReport:
    async def test_counts_per_repository(self, fake_api):
        fake_api.add_branch_commits("o/r", None, [commit_json("a1"), commit_json("a2")])
        fake_api.add(
            "/repos/o/r/pulls",
            [pull_json(1, login="Alice"), pull_json(2, login="bob")],
        )
        fake_api.add(
            "/repos/o/r/issues",
            [issue_json(3), issue_json(4, is_pull_request=True)],
        )

        async with _context(fake_api, REPO, QUIET) as ctx:
            report = await generate_user_report(ctx, "alice")

        assert [r.name for r in report.repositories] == ["o/r"]
        activity = report.repositories[0]
        assert (activity.commits, activity.pull_requests, activity.issues) == (2, 1, 1)
        assert report.total_commits == 2
        assert report.period.end == NOW

        commit_request = fake_api.requests_to("/repos/o/r/commits")[0]
        assert commit_request.url.params["author"] == "alice"
        issue_request = fake_api.requests_to("/repos/o/r/issues")[0]
        assert issue_request.url.params["creator"] == "alice"

    async def test_no_activity(self, fake_api):
        async with _context(fake_api) as ctx:
            report = await generate_user_report(ctx, "nobody")

        assert report.repositories == []
        assert report.total_prs == 0


@pytest.mark.parametrize("stored", [0, 2])
async def test_latest_report(fake_api, stored):
    _seed_team_repo(fake_api)
    store = InMemoryReportStore()
    async with _context(fake_api, skip_detailed_content=True) as ctx:
        for _ in range(stored):
            await generate_and_store(ctx, store, LoggingReportPublisher())

    latest = await latest_report(store)
    assert (latest is None) == (stored == 0)
