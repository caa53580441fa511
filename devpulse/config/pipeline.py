"""Run-scoped pipeline configuration.

A PipelineConfig is built once per run (from Settings, plus per-call
overrides such as a user-requested skip of the narrative stage) and threaded
through every component. Nothing reads feature toggles from process-wide
state, so overlapping runs cannot interfere with each other.
"""

from dataclasses import dataclass, replace
from typing import Any

from devpulse.config.settings import Settings
from devpulse.services.github.types import RepositoryRef

# Page sizes per mode. GitHub caps per_page at 100.
PAGE_SIZE = 100
MEMORY_OPTIMIZED_PAGE_SIZE = 50
MEMORY_OPTIMIZED_MAX_BRANCH_PAGES = 2

BRANCH_CONCURRENCY = 5
REPO_CONCURRENCY = 5
MEMORY_OPTIMIZED_REPO_CONCURRENCY = 2

# Minimum branch count before primary-pattern reordering kicks in
BRANCH_PRIORITY_THRESHOLD = 3


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable knobs for a single pipeline run."""

    repositories: tuple[RepositoryRef, ...]
    window_days: int = 7
    memory_optimized: bool = False
    max_repos: int = 3
    max_branch_pages: int = 10
    commit_sample_size: int = 20
    skip_detailed_content: bool = False
    skip_narrative: bool = False
    branch_concurrency: int = BRANCH_CONCURRENCY
    narrative_sample_size: int = 5

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "PipelineConfig":
        """Build a config from application settings, applying per-run overrides."""
        config = cls(
            repositories=tuple(
                RepositoryRef(owner=r.owner, name=r.repo) for r in settings.github_repos
            ),
            window_days=settings.window_days,
            memory_optimized=settings.memory_optimized,
            max_repos=settings.max_repos,
            max_branch_pages=settings.max_branch_pages,
            commit_sample_size=settings.commit_sample_size,
            skip_detailed_content=settings.skip_detailed_content,
            skip_narrative=settings.skip_narrative,
        )
        return replace(config, **overrides) if overrides else config

    @property
    def page_size(self) -> int:
        return MEMORY_OPTIMIZED_PAGE_SIZE if self.memory_optimized else PAGE_SIZE

    @property
    def effective_max_branch_pages(self) -> int:
        if self.memory_optimized:
            return min(self.max_branch_pages, MEMORY_OPTIMIZED_MAX_BRANCH_PAGES)
        return self.max_branch_pages

    @property
    def repo_concurrency(self) -> int:
        return MEMORY_OPTIMIZED_REPO_CONCURRENCY if self.memory_optimized else REPO_CONCURRENCY

    def selected_repositories(self) -> tuple[RepositoryRef, ...]:
        """Repositories to process this run, capped at max_repos in memory-optimized mode."""
        if self.memory_optimized:
            return self.repositories[: self.max_repos]
        return self.repositories
