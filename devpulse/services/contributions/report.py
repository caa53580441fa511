"""
Report assembly.

assemble() freezes the run's mutable statistics into read-only value
objects. Summary totals are always a fold over the repository map, so they
agree with the per-repository numbers by construction.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

from devpulse.services.contributions.narrative import NarrativeResult
from devpulse.services.contributions.stats import (
    RepositoryStatistics,
    UserRepoStatistics,
    UserStatistics,
)
from devpulse.services.github.types import TimeWindow


def _frozen(mapping: dict) -> Mapping:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class ReportPeriod:
    start: datetime
    end: datetime

    def to_dict(self) -> dict[str, str]:
        return {"start_date": self.start.isoformat(), "end_date": self.end.isoformat()}


@dataclass(frozen=True)
class ReportTotals:
    total_commits: int = 0
    total_prs: int = 0
    total_issues: int = 0
    prs_merged: int = 0
    issues_closed: int = 0
    total_lines_added: int = 0
    total_lines_deleted: int = 0
    total_lines_modified: int = 0


@dataclass(frozen=True)
class ReportSummary:
    totals: ReportTotals
    period: ReportPeriod
    repositories: tuple[str, ...]

    @property
    def total_commits(self) -> int:
        return self.totals.total_commits

    @property
    def total_prs(self) -> int:
        return self.totals.total_prs

    @property
    def total_issues(self) -> int:
        return self.totals.total_issues


@dataclass(frozen=True)
class UserRepoSummary:
    commits: int
    pull_requests: int
    issues: int
    lines_added: int
    lines_deleted: int
    lines_modified: int

    @classmethod
    def from_stats(cls, stats: UserRepoStatistics) -> "UserRepoSummary":
        return cls(
            commits=stats.commits,
            pull_requests=stats.pull_requests,
            issues=stats.issues,
            lines_added=stats.lines_added,
            lines_deleted=stats.lines_deleted,
            lines_modified=stats.lines_modified,
        )


@dataclass(frozen=True)
class UserSummary:
    login: str
    total_commits: int
    total_prs: int
    total_issues: int
    lines_added: int
    lines_deleted: int
    lines_modified: int
    activity_score: int
    effort_grade: str
    code_quality_grade: str
    repositories: Mapping[str, UserRepoSummary] = field(default_factory=dict)

    @classmethod
    def from_stats(cls, user: UserStatistics) -> "UserSummary":
        return cls(
            login=user.login,
            total_commits=user.total_commits,
            total_prs=user.total_prs,
            total_issues=user.total_issues,
            lines_added=user.lines_added,
            lines_deleted=user.lines_deleted,
            lines_modified=user.lines_modified,
            activity_score=user.activity_score,
            effort_grade=user.effort_grade,
            code_quality_grade=user.code_quality_grade,
            repositories=_frozen(
                {key: UserRepoSummary.from_stats(s) for key, s in user.repositories.items()}
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "login": self.login,
            "total_commits": self.total_commits,
            "total_prs": self.total_prs,
            "total_issues": self.total_issues,
            "lines_added": self.lines_added,
            "lines_deleted": self.lines_deleted,
            "lines_modified": self.lines_modified,
            "activity_score": self.activity_score,
            "effort_grade": self.effort_grade,
            "code_quality_grade": self.code_quality_grade,
            "repositories": {key: vars(s).copy() for key, s in self.repositories.items()},
        }


@dataclass(frozen=True)
class RepositorySummary:
    commits: int
    pull_requests: int
    issues: int
    prs_merged: int
    issues_closed: int
    lines_added: int
    lines_deleted: int
    lines_modified: int
    contributors: tuple[str, ...]

    @classmethod
    def from_stats(cls, stats: RepositoryStatistics) -> "RepositorySummary":
        return cls(
            commits=stats.commits,
            pull_requests=stats.pull_requests,
            issues=stats.issues,
            prs_merged=stats.prs_merged,
            issues_closed=stats.issues_closed,
            lines_added=stats.lines_added,
            lines_deleted=stats.lines_deleted,
            lines_modified=stats.lines_modified,
            contributors=tuple(stats.contributors),
        )

    def to_dict(self) -> dict[str, Any]:
        data = vars(self).copy()
        data["contributors"] = list(self.contributors)
        return data


@dataclass(frozen=True)
class Report:
    """Immutable result of one pipeline run."""

    summary: ReportSummary
    users: Mapping[str, UserSummary]
    repositories: Mapping[str, RepositorySummary]
    narrative: NarrativeResult | None = None
    generated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def ranked_users(self) -> list[UserSummary]:
        """Users by activity score, highest first."""
        return sorted(self.users.values(), key=lambda u: u.activity_score, reverse=True)

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible document for persistence."""
        return {
            "generated_at": self.generated_at.isoformat(),
            "summary": {
                **vars(self.summary.totals),
                "period": self.summary.period.to_dict(),
                "repositories": list(self.summary.repositories),
            },
            "users": {login: u.to_dict() for login, u in self.users.items()},
            "repositories": {key: r.to_dict() for key, r in self.repositories.items()},
            "narrative": self.narrative.to_dict() if self.narrative else None,
        }


def fold_totals(repositories: Iterable[RepositorySummary]) -> ReportTotals:
    """Sum per-repository counters into report totals."""
    repos = list(repositories)
    return ReportTotals(
        total_commits=sum(r.commits for r in repos),
        total_prs=sum(r.pull_requests for r in repos),
        total_issues=sum(r.issues for r in repos),
        prs_merged=sum(r.prs_merged for r in repos),
        issues_closed=sum(r.issues_closed for r in repos),
        total_lines_added=sum(r.lines_added for r in repos),
        total_lines_deleted=sum(r.lines_deleted for r in repos),
        total_lines_modified=sum(r.lines_modified for r in repos),
    )


def assemble(
    period: TimeWindow,
    repository_keys: Iterable[str],
    users: Mapping[str, UserStatistics],
    repositories: Mapping[str, RepositoryStatistics],
    narrative: NarrativeResult | None = None,
    generated_at: datetime | None = None,
) -> Report:
    """
    Freeze run statistics into a Report.

    Args:
        period: The run's time window
        repository_keys: Processed repositories ("owner/name"), in processing order
        users: Scored user statistics
        repositories: Repository statistics
        narrative: Optional narrative result
        generated_at: Generation timestamp (defaults to now, UTC)

    Returns:
        Report with read-only user and repository maps
    """
    repo_summaries = {key: RepositorySummary.from_stats(s) for key, s in repositories.items()}
    summary = ReportSummary(
        totals=fold_totals(repo_summaries.values()),
        period=ReportPeriod(start=period.start, end=period.end),
        repositories=tuple(repository_keys),
    )
    return Report(
        summary=summary,
        users=_frozen({login: UserSummary.from_stats(u) for login, u in users.items()}),
        repositories=_frozen(repo_summaries),
        narrative=narrative,
        generated_at=generated_at or datetime.now(UTC),
    )
