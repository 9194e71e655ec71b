"""Shared fixtures for the calendarcore test suite."""

import logging
import os
from datetime import datetime
from typing import Any

import pytest

from calendarcore.calendar.enums import EventPriority, EventStatus, RecurrenceFrequency
from calendarcore.calendar.models import CalendarEvent
from calendarcore.calendar.recurrence import RecurrenceRule, end_after
from calendarcore.core.config_manager import CalendarCoreSettings, reset_settings_cache
from calendarcore.core.date_utils import TEST_TIME_ENV
from calendarcore.core.logging_config import CALENDARCORE_MODULES
from calendarcore.domain.controller import CalendarController


def pytest_configure(config: Any) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Strip CALENDARCORE_* variables and the cached settings around every test."""
    for key in list(os.environ):
        if key.startswith("CALENDARCORE_"):
            monkeypatch.delenv(key, raising=False)
    reset_settings_cache()
    yield
    reset_settings_cache()


@pytest.fixture
def restore_log_levels():
    """Put root and calendarcore logger levels back after a logging test."""
    names = ["", *CALENDARCORE_MODULES]
    saved = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


@pytest.fixture
def frozen_now(monkeypatch):
    """Pin the current time to 2024-01-15 09:30 via CALENDARCORE_TEST_TIME."""
    monkeypatch.setenv(TEST_TIME_ENV, "2024-01-15T09:30:00")
    return datetime(2024, 1, 15, 9, 30)


@pytest.fixture
def settings() -> CalendarCoreSettings:
    """Default settings that ignore the environment and any .env file."""
    return CalendarCoreSettings(_env_file=None)


@pytest.fixture
def controller(settings) -> CalendarController:
    """Controller focused on Monday 2024-01-15."""
    return CalendarController(initial_date=datetime(2024, 1, 15), settings=settings)


@pytest.fixture
def timed_event() -> CalendarEvent:
    return CalendarEvent(
        id="standup",
        title="Standup",
        start=datetime(2024, 1, 15, 9, 0),
        end=datetime(2024, 1, 15, 9, 15),
        category="work",
        priority=EventPriority.HIGH,
    )


@pytest.fixture
def all_day_event() -> CalendarEvent:
    return CalendarEvent(
        id="offsite",
        title="Offsite",
        start=datetime(2024, 1, 15),
        end=datetime(2024, 1, 17),
        is_all_day=True,
        category="work",
    )


@pytest.fixture
def weekly_event() -> CalendarEvent:
    """Mondays 10:00-11:00 starting 2024-01-01, four occurrences."""
    return CalendarEvent(
        id="review",
        title="Weekly review",
        start=datetime(2024, 1, 1, 10, 0),
        end=datetime(2024, 1, 1, 11, 0),
        status=EventStatus.TENTATIVE,
        recurrence_rule=RecurrenceRule(
            frequency=RecurrenceFrequency.WEEKLY,
            by_week_day=[1],
            end_condition=end_after(4),
        ),
    )
