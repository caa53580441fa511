"""
Contribution report pipeline.

Entry points:
- run_pipeline: collect, aggregate, score and assemble one Report
- generate_and_store: run, persist and publish
- run_in_background: detached generate_and_store with a single failure boundary
- generate_user_report: lightweight per-user activity summary
- latest_report: most recent stored report

Everything a run needs travels in a PipelineContext built once per run.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

import httpx

from devpulse.config.pipeline import PipelineConfig
from devpulse.config.settings import Settings
from devpulse.services.contributions.aggregator import ContributionAggregator
from devpulse.services.contributions.collector import BranchCommitCollector
from devpulse.services.contributions.detailed_content import DetailedContentCollector
from devpulse.services.contributions.narrative import NarrativeResult, NarrativeScorer
from devpulse.services.contributions.report import Report, assemble
from devpulse.services.contributions.scoring import apply_scores, grade_from_quality_score
from devpulse.services.contributions.stats import ContributionStats, UserStatistics
from devpulse.services.contributions.storage import SAVE_FAILED_ID, ReportPublisher, ReportStore
from devpulse.services.github.cache import ResponseCache
from devpulse.services.github.fetcher import GitHubFetcher
from devpulse.services.github.helpers import chunked
from devpulse.services.github.http_client import close_github_client, create_github_client
from devpulse.services.github.read_operations import GitHubReadOperations
from devpulse.services.github.types import (
    Commit,
    Issue,
    PullRequest,
    RepositoryRef,
    TimeWindow,
)

logger = logging.getLogger(__name__)

FAILURE_MESSAGE = (
    "An error occurred while generating the contribution report. Please try again."
)

# Strong references to detached runs so they are not garbage collected mid-flight
_background_tasks: set[asyncio.Task] = set()


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class PipelineContext:
    """Collaborators for one pipeline run."""

    github: GitHubReadOperations
    config: PipelineConfig
    narrative_scorer: NarrativeScorer | None = None
    clock: Callable[[], datetime] = _utcnow
    client: httpx.AsyncClient | None = None

    @property
    def cache(self) -> ResponseCache:
        return self.github.cache

    @classmethod
    def create(
        cls,
        settings: Settings,
        config: PipelineConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "PipelineContext":
        """
        Build a context from settings.

        Args:
            settings: Application settings (credentials, timeouts, cache TTL)
            config: Run configuration (defaults to one derived from settings)
            transport: Optional httpx transport override for the GitHub client
        """
        config = config or PipelineConfig.from_settings(settings)
        client = create_github_client(
            settings.github_token,
            base_url=settings.github_api_url,
            timeout=settings.request_timeout_seconds,
            transport=transport,
        )
        cache = ResponseCache(ttl=settings.cache_ttl_seconds)
        fetcher = GitHubFetcher(client, cache, max_attempts=settings.max_fetch_attempts)
        scorer = NarrativeScorer(
            api_key=settings.anthropic_api_key,
            model=settings.narrative_model,
            window_days=config.window_days,
        )
        return cls(
            github=GitHubReadOperations(fetcher),
            config=config,
            narrative_scorer=scorer,
            client=client,
        )

    async def aclose(self) -> None:
        if self.client is not None:
            await close_github_client(self.client)

    async def __aenter__(self) -> "PipelineContext":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


@dataclass
class RepositoryEvents:
    commits: list[Commit] = field(default_factory=list)
    pull_requests: list[PullRequest] = field(default_factory=list)
    issues: list[Issue] = field(default_factory=list)


async def _fetch_repository(
    ctx: PipelineContext,
    collector: BranchCommitCollector,
    repo: RepositoryRef,
    window: TimeWindow,
) -> RepositoryEvents:
    max_pages = ctx.config.effective_max_branch_pages
    # Let every fetch settle before surfacing a failure, so none outlives the run
    results = await asyncio.gather(
        collector.collect_commits(repo, window),
        ctx.github.list_pull_requests(repo, window, max_pages=max_pages),
        ctx.github.list_issues(repo, window, max_pages=max_pages),
        return_exceptions=True,
    )
    for result in results:
        if isinstance(result, BaseException):
            raise result
    commits, pull_requests, issues = results
    return RepositoryEvents(commits=commits, pull_requests=pull_requests, issues=issues)


async def _process_repository(
    ctx: PipelineContext,
    collector: BranchCommitCollector,
    aggregator: ContributionAggregator,
    repo: RepositoryRef,
    window: TimeWindow,
) -> RepositoryEvents:
    started = time.monotonic()
    try:
        events = await _fetch_repository(ctx, collector, repo, window)
        await aggregator.aggregate(repo, events.commits, events.pull_requests, events.issues)
    except Exception as e:
        # One broken repository must not sink the report
        logger.exception(f"[pipeline] {repo}: processing failed: {e}")
        aggregator.stats.ensure_repository(repo.key)
        return RepositoryEvents()

    logger.info(
        f"[pipeline] {repo}: {len(events.commits)} commits, {len(events.pull_requests)} PRs, "
        f"{len(events.issues)} issues ({time.monotonic() - started:.1f}s)"
    )
    return events


def apply_quality_grades(users: dict[str, UserStatistics], narrative: NarrativeResult) -> None:
    """Set code quality grades for known users that received a numeric score."""
    for login, assessment in narrative.contributors.items():
        user = users.get(login)
        if user is not None and assessment.code_quality_score is not None:
            user.code_quality_grade = grade_from_quality_score(assessment.code_quality_score)


async def run_pipeline(ctx: PipelineContext) -> Report:
    """
    Generate a contribution report for the configured repositories.

    Stages run in order: cache reset, repository batches (fetch + aggregate),
    optional detailed content, zero-fill, scoring, optional narrative,
    assembly. Remote failures degrade to partial data; nothing here raises
    for a missing or unreachable resource.
    """
    config = ctx.config
    started = time.monotonic()

    ctx.cache.clear()
    window = TimeWindow.last_days(config.window_days, ctx.clock())
    repositories = config.selected_repositories()
    if len(repositories) < len(config.repositories):
        logger.info(
            f"[pipeline] Memory-optimized: processing {len(repositories)} of "
            f"{len(config.repositories)} repositories"
        )
    logger.info(
        f"[pipeline] Starting run for {len(repositories)} repositories "
        f"({window.start:%Y-%m-%d} to {window.end:%Y-%m-%d})"
    )

    stats = ContributionStats()
    collector = BranchCommitCollector(ctx.github, config)
    aggregator = ContributionAggregator(ctx.github, config, stats)
    events_by_repo: dict[RepositoryRef, RepositoryEvents] = {}

    for chunk in chunked(repositories, config.repo_concurrency):
        results = await asyncio.gather(
            *(_process_repository(ctx, collector, aggregator, repo, window) for repo in chunk)
        )
        if not config.skip_detailed_content:
            events_by_repo.update(zip(chunk, results, strict=True))

    if config.skip_detailed_content:
        logger.info("[pipeline] Skipping detailed content")
    else:
        content = DetailedContentCollector(ctx.github, stats)
        for chunk in chunked(list(events_by_repo.items()), config.repo_concurrency):
            await asyncio.gather(
                *(
                    content.collect(repo, events.commits, events.pull_requests, events.issues)
                    for repo, events in chunk
                )
            )
        events_by_repo.clear()

    repo_keys = [repo.key for repo in repositories]
    aggregator.zero_fill(repo_keys)
    apply_scores(stats.users.values())

    narrative: NarrativeResult | None = None
    if config.skip_narrative or ctx.narrative_scorer is None:
        logger.info("[pipeline] Skipping narrative analysis")
    else:
        detailed = not config.skip_detailed_content and any(
            user.code_content is not None and not user.code_content.is_empty
            for user in stats.users.values()
        )
        narrative = await ctx.narrative_scorer.score_top(
            stats.users.values(),
            sample_size=config.narrative_sample_size,
            detailed=detailed,
        )
        if narrative is not None:
            apply_quality_grades(stats.users, narrative)

    report = assemble(
        period=window,
        repository_keys=repo_keys,
        users=stats.users,
        repositories={key: stats.repositories[key] for key in repo_keys},
        narrative=narrative,
        generated_at=ctx.clock(),
    )
    logger.info(
        f"[pipeline] Completed: {report.summary.total_commits} commits, "
        f"{len(report.users)} contributors ({time.monotonic() - started:.1f}s)"
    )
    return report


async def generate_and_store(
    ctx: PipelineContext,
    store: ReportStore,
    publisher: ReportPublisher,
) -> tuple[Report, str]:
    """
    Run the pipeline, save the report and publish it.

    A failed save does not lose the report: it is still published, with
    SAVE_FAILED_ID in place of a real id.
    """
    report = await run_pipeline(ctx)
    try:
        report_id = await store.save(report)
    except Exception as e:
        logger.exception(f"[pipeline] Failed to save report: {e}")
        report_id = SAVE_FAILED_ID
    await publisher.publish(report, report_id)
    return report, report_id


async def _run_guarded(
    ctx: PipelineContext,
    store: ReportStore,
    publisher: ReportPublisher,
    close_context: bool,
) -> tuple[Report, str] | None:
    try:
        return await generate_and_store(ctx, store, publisher)
    except Exception as e:
        logger.exception(f"[pipeline] Background run failed: {e}")
        try:
            await publisher.notify_failure(FAILURE_MESSAGE)
        except Exception as notify_error:
            logger.error(f"[pipeline] Could not deliver failure notice: {notify_error}")
        return None
    finally:
        if close_context:
            await ctx.aclose()


def run_in_background(
    ctx: PipelineContext,
    store: ReportStore,
    publisher: ReportPublisher,
    close_context: bool = True,
) -> asyncio.Task:
    """
    Start generate_and_store as a detached task and return it immediately.

    The caller can acknowledge its request right away; the result arrives
    through the publisher. The task never raises: failures are logged and
    reported through ``publisher.notify_failure``.
    """
    task = asyncio.create_task(
        _run_guarded(ctx, store, publisher, close_context),
        name="contribution-report",
    )
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


@dataclass
class UserRepositoryActivity:
    name: str
    commits: int
    pull_requests: int
    issues: int


@dataclass
class UserContributionReport:
    """One user's activity per repository over the window."""

    username: str
    period: TimeWindow
    repositories: list[UserRepositoryActivity] = field(default_factory=list)

    @property
    def total_commits(self) -> int:
        return sum(r.commits for r in self.repositories)

    @property
    def total_prs(self) -> int:
        return sum(r.pull_requests for r in self.repositories)

    @property
    def total_issues(self) -> int:
        return sum(r.issues for r in self.repositories)


async def generate_user_report(ctx: PipelineContext, username: str) -> UserContributionReport:
    """
    Count one user's commits, PRs and issues in each configured repository.

    Repositories are visited one at a time to stay light on the rate limit.
    Commits come from the default branch only (author filter). Only
    repositories with activity are listed.
    """
    window = TimeWindow.last_days(ctx.config.window_days, ctx.clock())
    report = UserContributionReport(username=username, period=window)
    login = username.lower()
    max_pages = ctx.config.effective_max_branch_pages

    for repo in ctx.config.repositories:
        try:
            commits = await ctx.github.list_commits(
                repo, window, author=username, per_page=ctx.config.page_size, max_pages=max_pages
            )
            pull_requests = await ctx.github.list_pull_requests(repo, window, max_pages=max_pages)
            issues = await ctx.github.list_issues(repo, window, creator=username, max_pages=max_pages)
        except Exception as e:
            logger.exception(f"[pipeline] {repo}: user report for {username} failed: {e}")
            continue

        user_prs = [pr for pr in pull_requests if (pr.author_login or "").lower() == login]
        user_issues = [i for i in issues if not i.is_pull_request]
        if commits or user_prs or user_issues:
            report.repositories.append(
                UserRepositoryActivity(
                    name=repo.key,
                    commits=len(commits),
                    pull_requests=len(user_prs),
                    issues=len(user_issues),
                )
            )

    logger.info(
        f"[pipeline] User report for {username}: {report.total_commits} commits, "
        f"{report.total_prs} PRs, {report.total_issues} issues"
    )
    return report


async def latest_report(store: ReportStore) -> Report | None:
    """Most recent stored report, or None when nothing has been generated yet."""
    report = await store.find_latest()
    if report is None:
        logger.info("[pipeline] No previous reports found")
    return report
