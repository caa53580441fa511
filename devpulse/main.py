"""Process entry point.

Usage:
    python -m devpulse.main report            # generate one report and exit
    python -m devpulse.main user <username>   # per-user activity summary
    python -m devpulse.main serve             # run the weekly scheduler
    python -m devpulse.main token             # token presence and API quota
"""

import argparse
import asyncio
import logging
import sys
from datetime import UTC, datetime

from devpulse.config import PipelineConfig, settings


def setup_logging() -> None:
    """Configure application logging."""
    # Format: timestamp - level - logger name - message
    log_format = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
    date_format = "%H:%M:%S"

    # Configure root logger
    logging.basicConfig(
        level=logging.INFO,
        format=log_format,
        datefmt=date_format,
        stream=sys.stdout,
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


async def run_report(skip_detailed_content: bool, skip_narrative: bool) -> int:
    from devpulse.services.contributions import (
        InMemoryReportStore,
        LoggingReportPublisher,
        PipelineContext,
        generate_and_store,
    )

    overrides = {}
    if skip_detailed_content:
        overrides["skip_detailed_content"] = True
    if skip_narrative:
        overrides["skip_narrative"] = True
    config = PipelineConfig.from_settings(settings, **overrides)

    async with PipelineContext.create(settings, config) as ctx:
        await generate_and_store(ctx, InMemoryReportStore(), LoggingReportPublisher())
    return 0


async def run_user_report(username: str) -> int:
    from devpulse.services.contributions import PipelineContext, generate_user_report

    async with PipelineContext.create(settings) as ctx:
        report = await generate_user_report(ctx, username)

    logger.info(
        f"GitHub contributions for {report.username} "
        f"({report.period.start:%Y-%m-%d} to {report.period.end:%Y-%m-%d})"
    )
    for repo in report.repositories:
        logger.info(
            f"  {repo.name}: {repo.commits} commits | {repo.pull_requests} PRs | {repo.issues} issues"
        )
    return 0


async def run_token_info() -> int:
    from devpulse.services.contributions import PipelineContext

    logger.info(f"GitHub token configured: {'yes' if settings.github_enabled else 'no'}")
    async with PipelineContext.create(settings) as ctx:
        status = await ctx.github.get_rate_limit()

    if status is None:
        logger.error("Could not read the GitHub rate limit")
        return 1

    reset_at = datetime.fromtimestamp(status.reset_timestamp, UTC)
    logger.info(
        f"Rate limit: {status.remaining}/{status.limit} remaining, "
        f"resets at {reset_at:%Y-%m-%d %H:%M:%S} UTC"
    )
    return 0


async def serve() -> int:
    from devpulse.services.scheduler import Scheduler

    scheduler = Scheduler()
    scheduler.start()
    logger.info("devpulse scheduler running, press Ctrl+C to stop")
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.stop()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="devpulse", description="GitHub contribution reports")
    subcommands = parser.add_subparsers(dest="command")

    report_cmd = subcommands.add_parser("report", help="Generate a team report once")
    report_cmd.add_argument("--skip-detailed-content", action="store_true")
    report_cmd.add_argument("--skip-narrative", action="store_true")

    user_cmd = subcommands.add_parser("user", help="Summarize one user's activity")
    user_cmd.add_argument("username")

    subcommands.add_parser("serve", help="Run the weekly report scheduler")
    subcommands.add_parser("token", help="Show token status and remaining API quota")

    args = parser.parse_args(argv)
    setup_logging()

    if not settings.github_repos:
        logger.warning("No repositories configured (GITHUB_REPOS is empty)")

    if args.command == "user":
        return asyncio.run(run_user_report(args.username))
    if args.command == "token":
        return asyncio.run(run_token_info())
    if args.command == "serve":
        try:
            return asyncio.run(serve())
        except KeyboardInterrupt:
            return 0
    return asyncio.run(
        run_report(
            skip_detailed_content=getattr(args, "skip_detailed_content", False),
            skip_narrative=getattr(args, "skip_narrative", False),
        )
    )


if __name__ == "__main__":
    sys.exit(main())
