"""
Persistence and presentation collaborators.

The pipeline hands finished reports to a ReportStore and a ReportPublisher.
Both are protocols; the implementations here keep reports in memory and
write summaries to the log, which is enough for the CLI entry point,
the scheduler and tests.
"""

import logging
import uuid
from typing import Protocol

from devpulse.services.contributions.report import Report

logger = logging.getLogger(__name__)

# Returned in place of a report id when saving failed
SAVE_FAILED_ID = "error-saving-report"


class ReportStore(Protocol):
    async def save(self, report: Report) -> str:
        """Persist a report and return its id."""
        ...

    async def find_latest(self) -> Report | None:
        """Most recently generated report, or None if nothing was stored."""
        ...


class ReportPublisher(Protocol):
    async def publish(self, report: Report, report_id: str) -> None:
        """Hand a finished report off for rendering."""
        ...

    async def notify_failure(self, message: str) -> None:
        """Tell the requester that a run failed."""
        ...


class InMemoryReportStore:
    """Process-local store keyed by generation timestamp."""

    def __init__(self) -> None:
        self._reports: dict[str, Report] = {}

    async def save(self, report: Report) -> str:
        report_id = f"{report.generated_at.strftime('%Y%m%dT%H%M%S')}-{uuid.uuid4().hex[:8]}"
        self._reports[report_id] = report
        return report_id

    async def find_latest(self) -> Report | None:
        if not self._reports:
            return None
        return max(self._reports.values(), key=lambda r: r.generated_at)

    def __len__(self) -> int:
        return len(self._reports)


class LoggingReportPublisher:
    """Writes a team summary and contributor ranking to the log."""

    def __init__(self, top_n: int = 10) -> None:
        self.top_n = top_n
        self.failures: list[str] = []

    async def publish(self, report: Report, report_id: str) -> None:
        totals = report.summary.totals
        period = report.summary.period
        logger.info(
            f"[report] {report_id}: {period.start:%Y-%m-%d} to {period.end:%Y-%m-%d} | "
            f"{totals.total_commits} commits, {totals.total_prs} PRs "
            f"({totals.prs_merged} merged), {totals.total_issues} issues "
            f"({totals.issues_closed} closed), {totals.total_lines_modified} lines modified"
        )
        for rank, user in enumerate(report.ranked_users()[: self.top_n], start=1):
            logger.info(
                f"[report] {rank:>2}. {user.login}: score {user.activity_score}, "
                f"{user.total_commits} commits, {user.total_prs} PRs, {user.total_issues} issues, "
                f"effort {user.effort_grade}, quality {user.code_quality_grade}"
            )
        if report.narrative:
            logger.info(f"[report] Summary: {report.narrative.summary}")

    async def notify_failure(self, message: str) -> None:
        self.failures.append(message)
        logger.error(f"[report] Run failed: {message}")
