"""Settings for threadfeed.

Configuration is explicit, validated, and environment-driven: every field
can be set through a ``THREADFEED_``-prefixed environment variable or a
``.env`` file, and is type-checked when the settings object is built.

Fields
──────
root_cache_size     : Capacity of the per-instance RootCache
roots_recent_limit  : Recent replies attached to each "roots" item
latest_recent_limit : recentLimit used by the "latest" participation fallback
default_page_limit  : Page size for "roots" when the caller passes no limit
log_level           : Structlog log level
log_format          : ``console`` or ``json``

Examples:
    >>> FeedSettings(root_cache_size=10).root_cache_size
    10
    >>> # THREADFEED_ROOTS_RECENT_LIMIT=5 in the environment
    >>> get_settings().roots_recent_limit
    5
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FeedSettings(BaseSettings):
    """Tunables for the participating-feed pipelines."""

    model_config = SettingsConfigDict(
        env_prefix="THREADFEED_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Pipeline ─────────────────────────────────────────────────
    root_cache_size: int = Field(default=100, ge=1)
    roots_recent_limit: int = Field(default=3, ge=0)
    latest_recent_limit: int = Field(default=0, ge=0)
    default_page_limit: int | None = Field(default=None, ge=1)

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        value = value.upper()
        if value not in {"DEBUG", "INFO", "WARNING", "ERROR"}:
            raise ValueError(f"unknown log level {value!r}")
        return value


@lru_cache(maxsize=1)
def get_settings() -> FeedSettings:
    """Return the process-wide settings, read once from the environment."""
    return FeedSettings()


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()
