"""
Narrative scoring of top contributors with Claude.

Projects the most active contributors into a small, truncated payload and
asks Claude for a team summary plus a per-contributor assessment. Two
prompt variants exist: the basic one works from counts alone, the detailed
one also sees code, PR and issue samples and returns quality scores and
letter grades.

This stage is optional. Missing credentials, API failures and replies that
do not contain a usable JSON object all yield None, and the numeric report
is unaffected.
"""

import json
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import anthropic

from devpulse.services.contributions.stats import UserStatistics
from devpulse.services.github.helpers import truncate
from devpulse.services.interpreter.base import DEFAULT_MODEL, BaseInterpreter

logger = logging.getLogger(__name__)

MAX_SAMPLE_SIZE = 5
NO_CONTRIBUTIONS_SUMMARY = (
    "No significant contributions found in the analyzed repositories during this period."
)

# Per-contributor sample budgets in the detailed prompt
SAMPLES_PER_KIND = 2
FILES_PER_SAMPLE = 2
PATCH_LIMIT = 300
REVIEW_COMMENT_LIMIT = 150
ISSUE_DESCRIPTION_LIMIT = 200
ISSUE_COMMENT_LIMIT = 150

_GREEDY_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


@dataclass
class NarrativeInput:
    contributors: list[dict[str, Any]]
    detailed: bool = False


@dataclass
class ContributorAssessment:
    """Claude's view of one contributor."""

    assessment: str = ""
    strengths: list[str] = field(default_factory=list)
    areas_for_improvement: list[str] = field(default_factory=list)
    code_insights: str | None = None
    code_quality_score: float | None = None
    code_quality_grade: str | None = None
    effort_grade: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "assessment": self.assessment,
            "strengths": list(self.strengths),
            "areas_for_improvement": list(self.areas_for_improvement),
        }
        for key in ("code_insights", "code_quality_score", "code_quality_grade", "effort_grade"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass
class NarrativeResult:
    summary: str
    contributors: dict[str, ContributorAssessment] = field(default_factory=dict)
    detailed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "detailed": self.detailed,
            "contributors": {login: a.to_dict() for login, a in self.contributors.items()},
        }


def extract_json_object(text: str) -> dict[str, Any] | None:
    """
    Return the first JSON object embedded in free-form text.

    Scans for the first balanced ``{...}`` (ignoring braces inside strings);
    if that does not decode, falls back to the widest ``{...}`` span.
    """
    start = text.find("{")
    while start != -1:
        end = _balanced_end(text, start)
        if end is None:
            break
        try:
            parsed = json.loads(text[start : end + 1])
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(parsed, dict):
            return parsed
        start = text.find("{", end + 1)

    match = _GREEDY_OBJECT_RE.search(text)
    if match:
        try:
            parsed = json.loads(match.group())
        except json.JSONDecodeError:
            return None
        return parsed if isinstance(parsed, dict) else None
    return None


def _balanced_end(text: str, start: int) -> int | None:
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return None


def _float_or_none(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None]


def _optional_str(value: Any) -> str | None:
    return str(value) if value is not None else None


def project_contributor(user: UserStatistics, detailed: bool) -> dict[str, Any]:
    """Truncated, PII-light view of a contributor for the prompt."""
    contributor: dict[str, Any] = {
        "username": user.login,
        "activityScore": user.activity_score,
        "totalCommits": user.total_commits,
        "totalPRs": user.total_prs,
        "totalIssues": user.total_issues,
    }
    if detailed:
        contributor["linesAdded"] = user.lines_added
        contributor["linesDeleted"] = user.lines_deleted
        contributor["linesModified"] = user.lines_modified

    repositories = []
    for repo_key, stats in user.repositories.items():
        if not stats.has_activity:
            continue
        entry: dict[str, Any] = {
            "repo": repo_key,
            "commits": stats.commits,
            "pullRequests": stats.pull_requests,
            "issues": stats.issues,
        }
        if detailed:
            entry["linesAdded"] = stats.lines_added
            entry["linesDeleted"] = stats.lines_deleted
            entry["linesModified"] = stats.lines_modified
        repositories.append(entry)
    contributor["repositories"] = repositories

    content = user.code_content
    if not detailed or content is None:
        return contributor

    if content.commits:
        contributor["commitSamples"] = [
            {
                "message": commit.message,
                "date": commit.date,
                "files": [
                    {
                        "filename": f.get("filename"),
                        "changes": {
                            "additions": f.get("additions", 0),
                            "deletions": f.get("deletions", 0),
                            "total": f.get("changes", 0),
                        },
                        "patch": truncate(f.get("patch"), PATCH_LIMIT),
                    }
                    for f in commit.files[:FILES_PER_SAMPLE]
                ],
            }
            for commit in content.commits[:SAMPLES_PER_KIND]
        ]
    if content.pull_requests:
        contributor["prSamples"] = [
            {
                "title": pr.title,
                "state": pr.state,
                "fileCount": pr.file_count,
                "totalChanges": pr.total_changes,
                "files": [
                    {
                        "filename": f.get("filename"),
                        "changes": {
                            "additions": f.get("additions", 0),
                            "deletions": f.get("deletions", 0),
                            "total": f.get("changes", 0),
                        },
                    }
                    for f in pr.files[:FILES_PER_SAMPLE]
                ],
                "reviews": [
                    {
                        "reviewer": r.get("reviewer"),
                        "state": r.get("state"),
                        "comment": truncate(r.get("body"), REVIEW_COMMENT_LIMIT),
                    }
                    for r in pr.reviews[:SAMPLES_PER_KIND]
                ],
            }
            for pr in content.pull_requests[:SAMPLES_PER_KIND]
        ]
    if content.issues:
        contributor["issueSamples"] = [
            {
                "title": issue.title,
                "state": issue.state,
                "description": truncate(issue.body, ISSUE_DESCRIPTION_LIMIT),
                "comments": [
                    {
                        "user": c.get("user"),
                        "content": truncate(c.get("body"), ISSUE_COMMENT_LIMIT),
                    }
                    for c in issue.comments[:SAMPLES_PER_KIND]
                ],
            }
            for issue in content.issues[:SAMPLES_PER_KIND]
        ]
    return contributor


BASIC_PROMPT = """As a GitHub contribution analyst, please review the following contributor data and provide:
1. A brief overall summary of team activity (2-3 sentences)
2. For each contributor, provide:
   - Brief assessment of their contribution pattern
   - Strengths and potential areas for improvement
   - Specific insights based on their commit/PR/issue distribution

Contribution data for the past {window_label}:
{data}

IMPORTANT: Keep each contributor's analysis concise (3-4 sentences maximum).
Focus on patterns like:
- Ratio between different contribution types (commits/PRs/issues)
- Concentration in specific repositories
- Activity score relative to others

Respond in this JSON format:
{{
  "summary": "Overall team activity summary",
  "contributors": {{
    "username1": {{
      "assessment": "Concise assessment",
      "strengths": ["Strength 1", "Strength 2"],
      "areasForImprovement": ["Area 1", "Area 2"]
    }}
  }}
}}"""

DETAILED_PROMPT = """As a GitHub contribution analyst with software engineering expertise, please review the following contributor data and provide:

1. A brief overall summary of team activity (2-3 sentences)
2. For each contributor, provide:
   - Assessment of their contribution pattern
   - Code quality evaluation based on:
     * Commit message quality and descriptiveness
     * Complexity of code changes
     * Code organization and readability
     * Test coverage and robustness
   - Technical strengths and areas for improvement
   - Specific insights based on their code, PR, and issue content
   - A letter grade for code quality (A+, A, A-, B+, B, etc.)
   - A letter grade for effort shown over the period

Contribution data for the past {window_label}:
{data}

IMPORTANT:
- Evaluate both quantity AND quality of contributions
- Examine actual code samples when available
- Look for patterns in PR reviews and comments
- Consider issue descriptions and level of detail
- Keep each contributor's analysis concise (3-5 sentences maximum)
- For effort grade, consider: lines of code added/modified, number and complexity of PRs, and overall activity
- For code quality grade, consider: code organization, complexity management, and readability

Respond in this JSON format:
{{
  "summary": "Overall team activity summary with code quality assessment",
  "contributors": {{
    "username1": {{
      "assessment": "Concise assessment of contribution pattern and code quality",
      "codeInsights": "Specific observations about their code style, quality, and patterns",
      "strengths": ["Technical strength 1", "Technical strength 2"],
      "areasForImprovement": ["Technical area 1", "Technical area 2"],
      "codeQualityScore": 8.5,
      "codeQualityGrade": "B+",
      "effortGrade": "A-"
    }}
  }}
}}

For codeQualityScore, use a scale of 1-10 where:
1-3: Needs significant improvement (D or F grade)
4-6: Average quality code (C grade)
7-8: Good quality code with minor issues (B grade)
9-10: Excellent, well-structured, maintainable code (A grade)

For letter grades:
A+: Exceptional
A: Excellent
A-: Very good
B+: Good with some notable strengths
B: Solid, good
B-: Slightly above average
C+: Average with some positive aspects
C: Average
C-: Below average but acceptable
D+: Barely acceptable
D: Poor
F: Failing/Unacceptable"""


class NarrativeScorer(BaseInterpreter[NarrativeInput, NarrativeResult | None]):
    """Claude-backed qualitative assessment of the top contributors."""

    max_tokens: int = 1500

    def __init__(self, api_key: str, model: str = DEFAULT_MODEL, window_days: int = 7):
        super().__init__(api_key=api_key, model=model)
        self.window_days = window_days

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    def get_system_prompt(self, input_data: NarrativeInput) -> str:
        if input_data.detailed:
            return (
                "You are a GitHub contribution analyst and senior software engineer. "
                "You always answer with a single JSON object."
            )
        return "You are a GitHub contribution analyst. You always answer with a single JSON object."

    def format_input(self, input_data: NarrativeInput) -> str:
        window_label = "week" if self.window_days == 7 else f"{self.window_days} days"
        template = DETAILED_PROMPT if input_data.detailed else BASIC_PROMPT
        return template.format(
            window_label=window_label,
            data=json.dumps(input_data.contributors, indent=2),
        )

    def parse_output(self, response_text: str) -> NarrativeResult | None:
        parsed = extract_json_object(response_text)
        if parsed is None:
            logger.warning(
                f"[narrative] Could not extract JSON from response: {response_text[:200]!r}"
            )
            return None

        raw_contributors = parsed.get("contributors")
        contributors: dict[str, ContributorAssessment] = {}
        if isinstance(raw_contributors, dict):
            for login, raw in raw_contributors.items():
                if not isinstance(raw, dict):
                    continue
                contributors[str(login)] = ContributorAssessment(
                    assessment=str(raw.get("assessment") or ""),
                    strengths=_str_list(raw.get("strengths")),
                    areas_for_improvement=_str_list(raw.get("areasForImprovement")),
                    code_insights=_optional_str(raw.get("codeInsights")),
                    code_quality_score=_float_or_none(raw.get("codeQualityScore")),
                    code_quality_grade=_optional_str(raw.get("codeQualityGrade")),
                    effort_grade=_optional_str(raw.get("effortGrade")),
                )

        return NarrativeResult(summary=str(parsed.get("summary") or ""), contributors=contributors)

    async def score_top(
        self,
        users: Iterable[UserStatistics],
        sample_size: int = MAX_SAMPLE_SIZE,
        detailed: bool = False,
    ) -> NarrativeResult | None:
        """
        Assess the top contributors by activity score.

        Args:
            users: All contributors of the run (already scored)
            sample_size: How many top contributors to include (at most 5)
            detailed: Use the detailed prompt with code samples and grades

        Returns:
            NarrativeResult, or None when the stage is unavailable or failed
        """
        variant = "detailed" if detailed else "basic"
        try:
            size = max(0, min(sample_size, MAX_SAMPLE_SIZE))
            ranked = sorted(users, key=lambda u: u.activity_score, reverse=True)[:size]
            contributors = [project_contributor(user, detailed) for user in ranked]

            if not contributors:
                return NarrativeResult(summary=NO_CONTRIBUTIONS_SUMMARY, detailed=detailed)

            if not self.available:
                logger.info("[narrative] No Anthropic API key configured, skipping analysis")
                return None

            logger.info(
                f"[narrative] Requesting {variant} analysis of {len(contributors)} contributors"
            )
            result = await self.interpret(NarrativeInput(contributors=contributors, detailed=detailed))
        except anthropic.APIError as e:
            logger.error(f"[narrative] Anthropic API error: {e}")
            return None
        except Exception as e:
            logger.exception(f"[narrative] Analysis failed: {e}")
            return None

        if result is not None:
            result.detailed = detailed
            logger.info(f"[narrative] {variant.capitalize()} analysis generated")
        return result
