"""Calendar behaviour configuration."""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from calendarcore.calendar.enums import CalendarView
from calendarcore.core.date_utils import DateLike, to_date


def _day_key(value: Any) -> Any:
    return to_date(value) if isinstance(value, date) else value


class CalendarConfig(BaseModel):
    """Immutable configuration a CalendarController can be built from.

    Holidays are stored as calendar days; datetimes are reduced to their day.

    Example:
        >>> config = CalendarConfig(
        ...     initial_view=CalendarView.WEEK,
        ...     week_start_day=7,
        ...     holidays=[date(2024, 12, 25)],
        ...     holiday_names={date(2024, 12, 25): "Christmas"},
        ... )
        >>> config.get_holiday_name(date(2024, 12, 25))
        'Christmas'
    """

    model_config = ConfigDict(frozen=True)

    # View settings
    initial_view: CalendarView = Field(default=CalendarView.MONTH)
    week_start_day: int = Field(default=1, ge=1, le=7, description="1=Monday ... 7=Sunday")

    # Date constraints
    min_date: Optional[date] = Field(default=None, description="Earliest navigable day")
    max_date: Optional[date] = Field(default=None, description="Latest navigable day")

    # Feature flags
    enable_range_selection: bool = False
    allow_same_day_range: bool = True
    hide_weekends: bool = False
    show_holidays: bool = True
    max_events_per_day: int = Field(default=3, ge=1)

    # Holidays
    holidays: tuple[date, ...] = Field(default_factory=tuple)
    holiday_names: dict[date, str] = Field(default_factory=dict)

    @field_validator("min_date", "max_date", mode="before")
    @classmethod
    def _reduce_bound(cls, value: Any) -> Any:
        return _day_key(value)

    @field_validator("holidays", mode="before")
    @classmethod
    def _reduce_holidays(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple, set, frozenset)):
            return tuple(_day_key(v) for v in value)
        return value

    @field_validator("holiday_names", mode="before")
    @classmethod
    def _reduce_holiday_names(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {_day_key(k): v for k, v in value.items()}
        return value

    @model_validator(mode="after")
    def _check_bounds(self) -> CalendarConfig:
        if self.min_date and self.max_date and self.min_date > self.max_date:
            raise ValueError("min_date must not be after max_date")
        return self

    def is_holiday(self, day: DateLike) -> bool:
        return to_date(day) in self.holidays

    def get_holiday_name(self, day: DateLike) -> Optional[str]:
        """Name registered for ``day``, or None."""
        return self.holiday_names.get(to_date(day))

    def is_within_bounds(self, day: DateLike) -> bool:
        """Check ``day`` against the optional min/max dates (inclusive)."""
        target = to_date(day)
        if self.min_date and target < self.min_date:
            return False
        if self.max_date and target > self.max_date:
            return False
        return True

    def copy_with(self, **changes: Any) -> CalendarConfig:
        """Return a validated copy with the given fields replaced."""
        return type(self)(**{**dict(self), **changes})
