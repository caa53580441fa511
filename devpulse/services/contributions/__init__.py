"""
Contribution reporting package.

Usage: `from devpulse.services.contributions import PipelineContext, run_pipeline`

Module structure:
- pipeline.py: Run orchestration and entry points
- collector.py: Branch-aware, deduplicating commit collection
- aggregator.py: Per-user and per-repository statistics
- detailed_content.py: Code, PR and issue samples for narrative scoring
- scoring.py: Activity score and letter grades
- narrative.py: Claude-backed contributor assessment
- report.py: Immutable report value objects
- storage.py: Persistence and presentation collaborators
- stats.py: Mutable run-scoped accumulators
"""

from devpulse.services.contributions.aggregator import ContributionAggregator
from devpulse.services.contributions.collector import BranchCommitCollector
from devpulse.services.contributions.narrative import NarrativeResult, NarrativeScorer
from devpulse.services.contributions.pipeline import (
    PipelineContext,
    UserContributionReport,
    generate_and_store,
    generate_user_report,
    latest_report,
    run_in_background,
    run_pipeline,
)
from devpulse.services.contributions.report import Report, assemble
from devpulse.services.contributions.scoring import (
    activity_score,
    effort_grade,
    grade_from_quality_score,
)
from devpulse.services.contributions.storage import (
    SAVE_FAILED_ID,
    InMemoryReportStore,
    LoggingReportPublisher,
    ReportPublisher,
    ReportStore,
)

__all__ = [
    # Entry points
    "PipelineContext",
    "run_pipeline",
    "generate_and_store",
    "run_in_background",
    "generate_user_report",
    "latest_report",
    "UserContributionReport",
    # Components
    "BranchCommitCollector",
    "ContributionAggregator",
    "NarrativeScorer",
    "NarrativeResult",
    # Report
    "Report",
    "assemble",
    # Scoring
    "activity_score",
    "effort_grade",
    "grade_from_quality_score",
    # Collaborators
    "ReportStore",
    "ReportPublisher",
    "InMemoryReportStore",
    "LoggingReportPublisher",
    "SAVE_FAILED_ID",
]
