"""Settings management using Pydantic for type validation and configuration."""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from calendarcore.calendar.enums import CalendarView

logger = logging.getLogger(__name__)

DEFAULT_MAX_RECURRENCE_CANDIDATES = 1000


class CalendarCoreSettings(BaseSettings):
    """Library settings with environment variable support.

    Every field can be set through a ``CALENDARCORE_``-prefixed environment
    variable (e.g. ``CALENDARCORE_WEEK_START_DAY=7``) or a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="CALENDARCORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Calendar behaviour
    week_start_day: int = Field(default=1, ge=1, le=7, description="First day of week (1=Mon, 7=Sun)")
    hide_weekends: bool = Field(default=False, description="Remove Sat/Sun from visible grids")
    allow_same_day_range: bool = Field(
        default=True, description="Second range tap on the start day selects a one-day range"
    )
    default_view: CalendarView = Field(default=CalendarView.MONTH, description="Initial view")

    # Recurrence expansion
    max_recurrence_candidates: int = Field(
        default=DEFAULT_MAX_RECURRENCE_CANDIDATES,
        ge=1,
        description="Hard cap on cursor advances per recurrence expansion",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    debug: bool = Field(default=False, description="Enable debug logging for calendarcore")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            logger.warning("Invalid CALENDARCORE_LOG_LEVEL=%r; using INFO", value)
            return "INFO"
        return level


def load_settings(env_file: Path | str | None = None) -> CalendarCoreSettings:
    """Build settings from the environment and an optional .env file.

    Args:
        env_file: Path to a .env file; defaults to ``.env`` in the working directory

    Returns:
        Validated settings
    """
    if env_file is None:
        settings = CalendarCoreSettings()
    else:
        path = Path(env_file)
        if not path.exists():
            logger.debug("No .env file found at %s", path)
        settings = CalendarCoreSettings(_env_file=path)  # type: ignore[call-arg]

    logger.debug(
        "Settings loaded: week_start_day=%d, hide_weekends=%s, max_recurrence_candidates=%d",
        settings.week_start_day,
        settings.hide_weekends,
        settings.max_recurrence_candidates,
    )
    return settings


@lru_cache(maxsize=1)
def get_settings() -> CalendarCoreSettings:
    """Process-wide settings instance (built on first use)."""
    return load_settings()


def reset_settings_cache() -> None:
    """Drop the cached settings so the next get_settings() re-reads the environment."""
    get_settings.cache_clear()
