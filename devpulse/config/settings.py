import re

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Control characters are never valid inside an Authorization header
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


class RepositorySetting(BaseModel):
    """One entry of GITHUB_REPOS: {"owner": "...", "repo": "..."}."""

    owner: str
    repo: str


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # GitHub
    github_token: str = ""
    # JSON list, e.g. [{"owner":"octo","repo":"api"},{"owner":"octo","repo":"web"}]
    github_repos: list[RepositorySetting] = []
    github_api_url: str = "https://api.github.com"

    # AI / Anthropic
    anthropic_api_key: str = ""
    narrative_model: str = "claude-sonnet-4-20250514"

    # Pipeline tuning
    window_days: int = 7
    memory_optimized: bool = False
    max_repos: int = 3  # Only applied in memory-optimized mode
    max_branch_pages: int = 10
    commit_sample_size: int = 20

    # Feature toggles for the expensive stages
    skip_detailed_content: bool = False
    skip_narrative: bool = False

    # Fetch layer
    cache_ttl_seconds: int = 1800
    request_timeout_seconds: float = 30.0
    max_fetch_attempts: int = 3

    # Scheduler settings
    # Enable/disable the internal APScheduler (set False for local dev to avoid noise)
    scheduler_enabled: bool = True
    # Weekly report: day of week and hour (UTC)
    weekly_report_day: str = "mon"
    weekly_report_hour: int = 9

    @field_validator("github_token", mode="before")
    @classmethod
    def sanitize_token(cls, value: object) -> str:
        """Strip whitespace, wrapping quotes and control characters from the token."""
        if value is None:
            return ""
        token = str(value).strip()
        if len(token) >= 2 and token[0] == token[-1] and token[0] in ("'", '"'):
            token = token[1:-1]
        return _CONTROL_CHARS.sub("", token)

    @field_validator("window_days", "max_repos", "max_branch_pages", "max_fetch_attempts")
    @classmethod
    def must_be_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @property
    def github_enabled(self) -> bool:
        """Check if a GitHub token is configured."""
        return bool(self.github_token)

    @property
    def narrative_enabled(self) -> bool:
        """Check if Anthropic is configured (has API key)."""
        return bool(self.anthropic_api_key)


settings = Settings()
