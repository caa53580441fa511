"""Activity scoring and letter grades.

Pure functions with no I/O. Grades depend only on the numbers passed in,
never on insertion order or prior calls.
"""

from collections.abc import Iterable

from devpulse.services.contributions.stats import UserStatistics

COMMIT_WEIGHT = 3
PULL_REQUEST_WEIGHT = 5
ISSUE_WEIGHT = 1

# (lines_modified threshold, activity_score threshold, grade), checked top-down.
# A band matches when either value exceeds its threshold.
EFFORT_BANDS: tuple[tuple[int, int, str], ...] = (
    (1000, 50, "A+"),
    (750, 40, "A"),
    (500, 30, "A-"),
    (300, 20, "B+"),
    (200, 15, "B"),
    (100, 10, "B-"),
    (50, 5, "C+"),
    (25, 3, "C"),
    (10, 1, "C-"),
)
LOWEST_EFFORT_GRADE = "D"

# (minimum score, grade), checked top-down
QUALITY_BANDS: tuple[tuple[float, str], ...] = (
    (9.5, "A+"),
    (9.0, "A"),
    (8.5, "A-"),
    (8.0, "B+"),
    (7.5, "B"),
    (7.0, "B-"),
    (6.5, "C+"),
    (6.0, "C"),
    (5.5, "C-"),
    (5.0, "D+"),
    (4.0, "D"),
)
LOWEST_QUALITY_GRADE = "F"


def activity_score(commits: int, pull_requests: int, issues: int) -> int:
    """Weighted activity: commits x3, pull requests x5, issues x1."""
    return commits * COMMIT_WEIGHT + pull_requests * PULL_REQUEST_WEIGHT + issues * ISSUE_WEIGHT


def effort_grade(lines_modified: int, score: int) -> str:
    for lines_threshold, score_threshold, grade in EFFORT_BANDS:
        if lines_modified > lines_threshold or score > score_threshold:
            return grade
    return LOWEST_EFFORT_GRADE


def grade_from_quality_score(score: float) -> str:
    """Map a 1-10 quality score to a letter grade."""
    for minimum, grade in QUALITY_BANDS:
        if score >= minimum:
            return grade
    return LOWEST_QUALITY_GRADE


def apply_scores(users: Iterable[UserStatistics]) -> None:
    """Compute activity score and effort grade for every user, in place."""
    for user in users:
        user.activity_score = activity_score(user.total_commits, user.total_prs, user.total_issues)
        user.effort_grade = effort_grade(user.lines_modified, user.activity_score)
