"""Internal task scheduler using APScheduler.

Runs the weekly contribution report inside the host process. An in-process
lock skips a run when the previous one is still going.
"""

import asyncio
import logging
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from devpulse.config.settings import Settings, settings
from devpulse.services.contributions.pipeline import PipelineContext, generate_and_store
from devpulse.services.contributions.storage import (
    InMemoryReportStore,
    LoggingReportPublisher,
    ReportPublisher,
    ReportStore,
)

logger = logging.getLogger(__name__)

WEEKLY_REPORT_JOB_ID = "weekly_report"


class Scheduler:
    """Manages the APScheduler instance and job registration."""

    def __init__(
        self,
        app_settings: Settings | None = None,
        store: ReportStore | None = None,
        publisher: ReportPublisher | None = None,
    ) -> None:
        self.settings = app_settings or settings
        self.store: ReportStore = store or InMemoryReportStore()
        self.publisher: ReportPublisher = publisher or LoggingReportPublisher()
        self._scheduler: AsyncIOScheduler | None = None
        self._run_lock = asyncio.Lock()

    async def run_weekly_report(self) -> dict[str, Any] | None:
        """
        Generate, store and publish the weekly report.

        Returns a small summary dict if executed, None if skipped or failed.
        """
        if self._run_lock.locked():
            logger.info("[scheduler] Weekly-report: skipped (previous run still in progress)")
            return None

        async with self._run_lock:
            logger.info("[scheduler] Weekly-report: starting")
            try:
                async with PipelineContext.create(self.settings) as ctx:
                    report, report_id = await generate_and_store(ctx, self.store, self.publisher)
            except Exception as e:
                logger.exception(f"[scheduler] Weekly-report: failed with error: {e}")
                await self.publisher.notify_failure(
                    "The weekly contribution report could not be generated."
                )
                return None

            logger.info(
                f"[scheduler] Weekly-report: completed "
                f"({report.summary.total_commits} commits, "
                f"{len(report.users)} contributors, id {report_id})"
            )
            return {
                "report_id": report_id,
                "total_commits": report.summary.total_commits,
                "contributors": len(report.users),
            }

    def start(self) -> None:
        """Start the scheduler and register jobs."""
        if not self.settings.scheduler_enabled:
            logger.info("[scheduler] Disabled via SCHEDULER_ENABLED=false")
            return

        self._scheduler = AsyncIOScheduler(timezone="UTC")

        # Weekly report: configured day and hour (UTC)
        self._scheduler.add_job(
            self.run_weekly_report,
            trigger=CronTrigger(
                day_of_week=self.settings.weekly_report_day,
                hour=self.settings.weekly_report_hour,
                minute=0,
                timezone="UTC",
            ),
            id=WEEKLY_REPORT_JOB_ID,
            name="Weekly Contribution Report",
            replace_existing=True,
        )

        self._scheduler.start()
        logger.info(
            f"[scheduler] Started with weekly-report on {self.settings.weekly_report_day} "
            f"at {self.settings.weekly_report_hour:02d}:00 UTC"
        )

    def stop(self) -> None:
        """Gracefully shut down the scheduler."""
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("[scheduler] Stopped")

    async def trigger_now(self, job_id: str) -> dict[str, Any] | None:
        """
        Manually trigger a job immediately (for testing/debugging).

        Returns the job result or None if job not found.
        """
        if job_id == WEEKLY_REPORT_JOB_ID:
            return await self.run_weekly_report()
        return None
