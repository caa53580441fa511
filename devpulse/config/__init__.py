"""Configuration package."""

from devpulse.config.pipeline import PipelineConfig
from devpulse.config.settings import RepositorySetting, Settings, settings

__all__ = [
    "PipelineConfig",
    "RepositorySetting",
    "Settings",
    "settings",
]
