"""Civil date utilities for calendarcore.

All helpers work on timezone-naive civil dates. Day-granular functions accept
either ``date`` or ``datetime`` and compare only the (year, month, day)
triple; functions that return whole days return ``date`` objects.

Weekdays follow ISO numbering throughout: 1=Monday ... 7=Sunday.
"""

import logging
import os
from datetime import date, datetime, time, timedelta
from typing import Optional, Union

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime]

SATURDAY = 6
SUNDAY = 7

TEST_TIME_ENV = "CALENDARCORE_TEST_TIME"


def now() -> datetime:
    """Return the current naive local datetime.

    Can be overridden for testing via the CALENDARCORE_TEST_TIME environment
    variable (ISO 8601, e.g. "2024-01-15T09:30:00"). Timezone-aware overrides
    keep their wall-clock value and drop the offset.

    Returns:
        Current civil datetime (no tzinfo)
    """
    test_time = os.environ.get(TEST_TIME_ENV)
    if test_time:
        try:
            dt = date_parser.isoparse(test_time)
            return dt.replace(tzinfo=None)
        except (ValueError, OverflowError) as e:
            logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)

    return datetime.now()


def today() -> date:
    """Return today's civil date (honors CALENDARCORE_TEST_TIME)."""
    return now().date()


def to_date(value: DateLike) -> date:
    """Reduce a date or datetime to its calendar day."""
    if isinstance(value, datetime):
        return value.date()
    return value


def as_datetime(value: DateLike) -> datetime:
    """Promote a date to midnight; naive datetimes pass through unchanged.

    Timezone-aware datetimes keep their wall-clock value and lose the offset.
    """
    if isinstance(value, datetime):
        return value.replace(tzinfo=None) if value.tzinfo is not None else value
    return datetime.combine(value, time.min)


def is_same_day(a: DateLike, b: DateLike) -> bool:
    """Check whether two values fall on the same calendar day.

    Examples:
        >>> is_same_day(datetime(2024, 1, 15, 10, 30), datetime(2024, 1, 15, 18, 45))
        True
    """
    return a.year == b.year and a.month == b.month and a.day == b.day


def is_same_month(a: DateLike, b: DateLike) -> bool:
    """Check whether two values fall in the same month of the same year."""
    return a.year == b.year and a.month == b.month


def is_same_week(a: DateLike, b: DateLike, week_start_day: int) -> bool:
    """Check whether two values fall in the same week for the given week start."""
    return get_start_of_week(a, week_start_day) == get_start_of_week(b, week_start_day)


def is_today(value: DateLike) -> bool:
    """Check whether the value is today."""
    return is_same_day(value, now())


def is_weekend(value: DateLike) -> bool:
    """Check whether the value is a Saturday or Sunday."""
    return value.isoweekday() in (SATURDAY, SUNDAY)


def is_past_day(value: DateLike) -> bool:
    """Check whether the day is before today. Today is not past."""
    return to_date(value) < today()


def is_future_day(value: DateLike) -> bool:
    """Check whether the day is after today. Today is not future."""
    return to_date(value) > today()


def add_months(value: DateLike, months: int) -> DateLike:
    """Add calendar months, clamping the day to the end of the target month.

    Never spills into the following month, and preserves the time of day.

    Args:
        value: Starting date or datetime
        months: Number of months to add (may be negative)

    Returns:
        Same type as ``value``

    Examples:
        >>> add_months(date(2024, 1, 31), 1)
        datetime.date(2024, 2, 29)
        >>> add_months(date(2023, 1, 31), 1)
        datetime.date(2023, 2, 28)
    """
    return value + relativedelta(months=months)


def add_years(value: DateLike, years: int) -> DateLike:
    """Add calendar years; Feb 29 clamps to Feb 28 on non-leap years."""
    return value + relativedelta(years=years)


def get_days_in_month(value: DateLike) -> int:
    """Number of days (28-31) in the month containing ``value``."""
    return get_end_of_month(value).day


def get_start_of_month(value: DateLike) -> date:
    """First day of the month containing ``value``."""
    return date(value.year, value.month, 1)


def get_end_of_month(value: DateLike) -> date:
    """Last day of the month containing ``value``."""
    return get_start_of_month(value) + relativedelta(months=1, days=-1)


def get_days_in_month_list(value: DateLike) -> list[date]:
    """Every day of the month containing ``value``, in order."""
    return get_date_range(get_start_of_month(value), get_end_of_month(value))


def get_start_of_week(value: DateLike, week_start_day: int) -> date:
    """Walk back to the nearest day whose ISO weekday equals ``week_start_day``.

    Examples:
        >>> get_start_of_week(date(2024, 1, 17), 1)
        datetime.date(2024, 1, 15)
    """
    days_from_start = (value.isoweekday() - week_start_day) % 7
    return to_date(value) - timedelta(days=days_from_start)


def get_end_of_week(value: DateLike, week_start_day: int) -> date:
    """Last day of the week containing ``value``."""
    return get_start_of_week(value, week_start_day) + timedelta(days=6)


def get_week_days(value: DateLike, week_start_day: int) -> list[date]:
    """The seven days of the week containing ``value``."""
    start = get_start_of_week(value, week_start_day)
    return [start + timedelta(days=offset) for offset in range(7)]


def get_date_range(start: DateLike, end: DateLike) -> list[date]:
    """Inclusive ordered list of every calendar day from start to end.

    Time components are ignored. Returns an empty list when end is before start.
    """
    current = to_date(start)
    last = to_date(end)

    days: list[date] = []
    while current <= last:
        days.append(current)
        current += timedelta(days=1)

    return days


def get_visible_days(
    focused: DateLike, week_start_day: int, hide_weekends: bool = False
) -> list[date]:
    """Month grid for the month containing ``focused``.

    The month is padded with days of the neighbouring months to whole weeks at
    the configured week start. With ``hide_weekends`` the weekend days are
    removed from the sequence, shortening each row to five days.
    """
    grid_start = get_start_of_week(get_start_of_month(focused), week_start_day)
    grid_end = get_end_of_week(get_end_of_month(focused), week_start_day)

    days = get_date_range(grid_start, grid_end)
    if hide_weekends:
        days = [d for d in days if not is_weekend(d)]
    return days


def get_week_number(value: DateLike) -> int:
    """ISO week number (1-53) of ``value``."""
    return value.isocalendar()[1]


def copy_time_to_date(day: DateLike, time_source: datetime) -> datetime:
    """Combine the calendar day of ``day`` with the time of ``time_source``."""
    return datetime.combine(to_date(day), time_source.time().replace(tzinfo=None))


def get_start_of_day(value: DateLike) -> datetime:
    """Midnight at the start of the day."""
    return datetime.combine(to_date(value), time.min)


def get_end_of_day(value: DateLike) -> datetime:
    """Last representable instant of the day (23:59:59.999999)."""
    return datetime.combine(to_date(value), time.max)


def parse_civil_datetime(value: Optional[object]) -> Optional[datetime]:
    """Parse a structural date value into a naive datetime.

    Accepted representations: ``datetime``, ``date`` (midnight), and ISO 8601
    strings (date-only or date-time, optional offset or trailing "Z", which is
    dropped). Anything else, including unparseable strings, yields None.
    """
    if value is None:
        return None
    if isinstance(value, date):
        return as_datetime(value)
    if isinstance(value, str) and value.strip():
        try:
            return date_parser.isoparse(value.strip()).replace(tzinfo=None)
        except (ValueError, OverflowError):
            logger.debug("Unparseable date value %r", value)
            return None
    return None
