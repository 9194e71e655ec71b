"""Recurrence rule models for calendarcore.

``RecurrenceEndCondition`` is a tagged union of three frozen models keyed by
``type``: ``NeverEnd``, ``UntilEnd`` (carries a date) and ``CountEnd``
(carries a positive count). Invalid combinations such as a count together
with an until-date cannot be represented.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from calendarcore.calendar.decoding import coerce_enum, coerce_int, coerce_int_set, pick
from calendarcore.calendar.enums import RecurrenceEndType, RecurrenceFrequency
from calendarcore.core.date_utils import DateLike, as_datetime, parse_civil_datetime
from calendarcore.core.exceptions import RecurrenceDecodeError

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


class NeverEnd(BaseModel):
    """The series continues indefinitely."""

    model_config = ConfigDict(frozen=True)

    type: Literal["never"] = "never"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type}

    def __str__(self) -> str:
        return "Never ends"


class UntilEnd(BaseModel):
    """The series stops after the given civil date-time (inclusive)."""

    model_config = ConfigDict(frozen=True)

    type: Literal["until"] = "until"
    until: datetime

    @field_validator("until", mode="before")
    @classmethod
    def _promote_date(cls, value: Any) -> Any:
        if isinstance(value, date):
            return as_datetime(value)
        return value

    @field_validator("until")
    @classmethod
    def _drop_tzinfo(cls, value: datetime) -> datetime:
        return as_datetime(value)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "until": self.until.isoformat()}

    def __str__(self) -> str:
        return f"Until {self.until.isoformat()}"


class CountEnd(BaseModel):
    """The series stops after ``count`` occurrences."""

    model_config = ConfigDict(frozen=True)

    type: Literal["count"] = "count"
    count: int = Field(..., ge=1)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "count": self.count}

    def __str__(self) -> str:
        return f"After {self.count} occurrences"


RecurrenceEndCondition = Annotated[
    Union[NeverEnd, UntilEnd, CountEnd], Field(discriminator="type")
]


def end_never() -> NeverEnd:
    return NeverEnd()


def end_until(until: DateLike) -> UntilEnd:
    return UntilEnd(until=until)


def end_after(count: int) -> CountEnd:
    return CountEnd(count=count)


def decode_end_condition(data: Any) -> Union[NeverEnd, UntilEnd, CountEnd]:
    """Decode an end condition map, falling back to ``NeverEnd``.

    - absent / non-mapping / unknown ``type`` -> NeverEnd
    - ``until`` with a missing or unparseable date -> NeverEnd
    - ``count`` given as int or numeric string; missing, junk or < 1 -> 1
    """
    if data is None:
        return NeverEnd()
    if not isinstance(data, Mapping):
        logger.warning("Ignoring non-mapping end condition %r", data)
        return NeverEnd()

    end_type = coerce_enum(RecurrenceEndType, data.get("type"), RecurrenceEndType.NEVER, "end_condition.type")

    if end_type is RecurrenceEndType.UNTIL:
        until = parse_civil_datetime(data.get("until"))
        if until is None:
            logger.warning("End condition 'until' without a valid date %r; treating as never", data.get("until"))
            return NeverEnd()
        return UntilEnd(until=until)

    if end_type is RecurrenceEndType.COUNT:
        count = coerce_int(data.get("count"), 1, "end_condition.count")
        if count < 1:
            logger.warning("End condition count %d is not positive; using 1", count)
            count = 1
        return CountEnd(count=count)

    return NeverEnd()


def _normalize_filter(value: Any, low: int, high: int, name: str) -> Optional[tuple[int, ...]]:
    if value is None:
        return None
    if not isinstance(value, Iterable) or isinstance(value, (str, bytes)):
        raise ValueError(f"{name} must be a collection of integers")

    # De-duplicate keeping the caller's order; monthly stepping forces the first day listed
    items = list(dict.fromkeys(int(v) for v in value))
    if not items:
        return None
    for item in items:
        if not low <= item <= high:
            raise ValueError(f"{name} values must be between {low} and {high}, got {item}")
    return tuple(items)


class RecurrenceRule(BaseModel):
    """Immutable recurrence pattern.

    Filters are stored as de-duplicated tuples in the order given; an empty filter is
    the same as no filter. A missing end condition is stored as ``NeverEnd``.

    Example:
        >>> rule = RecurrenceRule(
        ...     frequency=RecurrenceFrequency.WEEKLY,
        ...     interval=2,
        ...     by_week_day=[1, 3],
        ...     end_condition=end_after(10),
        ... )
        >>> str(rule)
        'Every 2 weeks on Mon, Wed, After 10 occurrences'
    """

    model_config = ConfigDict(frozen=True)

    frequency: RecurrenceFrequency
    interval: int = 1
    by_week_day: Optional[tuple[int, ...]] = None
    by_month_day: Optional[tuple[int, ...]] = None
    by_month: Optional[tuple[int, ...]] = None
    end_condition: RecurrenceEndCondition = Field(default_factory=NeverEnd)

    @field_validator("interval")
    @classmethod
    def _check_interval(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Interval must be greater than 0")
        return value

    @field_validator("by_week_day", mode="before")
    @classmethod
    def _normalize_week_days(cls, value: Any) -> Optional[tuple[int, ...]]:
        return _normalize_filter(value, 1, 7, "by_week_day")

    @field_validator("by_month_day", mode="before")
    @classmethod
    def _normalize_month_days(cls, value: Any) -> Optional[tuple[int, ...]]:
        return _normalize_filter(value, 1, 31, "by_month_day")

    @field_validator("by_month", mode="before")
    @classmethod
    def _normalize_months(cls, value: Any) -> Optional[tuple[int, ...]]:
        return _normalize_filter(value, 1, 12, "by_month")

    @field_validator("end_condition", mode="before")
    @classmethod
    def _default_end_condition(cls, value: Any) -> Any:
        return NeverEnd() if value is None else value

    def matches(self, value: DateLike) -> bool:
        """Check the cursor against every active filter."""
        if self.by_week_day and value.isoweekday() not in self.by_week_day:
            return False
        if self.by_month_day and value.day not in self.by_month_day:
            return False
        if self.by_month and value.month not in self.by_month:
            return False
        return True

    def generate_occurrences(
        self,
        anchor: DateLike,
        range_start: DateLike,
        range_end: DateLike,
        max_candidates: Optional[int] = None,
    ) -> list[datetime]:
        """Occurrences in ``[range_start, range_end)`` for a series anchored at ``anchor``."""
        from calendarcore.calendar.rrule_expander import DEFAULT_MAX_CANDIDATES, generate_occurrences

        return generate_occurrences(
            self,
            anchor,
            range_start,
            range_end,
            max_candidates=max_candidates or DEFAULT_MAX_CANDIDATES,
        )

    def copy_with(self, **changes: Any) -> RecurrenceRule:
        """Return a validated copy with the given fields replaced."""
        return type(self)(**{**dict(self), **changes})

    def to_rrule(self) -> str:
        """RRULE-style string, e.g. ``FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE;COUNT=10``."""
        from calendarcore.calendar.rrule_expander import format_rrule

        return format_rrule(self)

    @classmethod
    def from_rrule(cls, rrule_string: str) -> RecurrenceRule:
        """Parse an RRULE-style string (see ``rrule_expander.parse_rrule``)."""
        from calendarcore.calendar.rrule_expander import parse_rrule

        return parse_rrule(rrule_string)

    def to_dict(self) -> dict[str, Any]:
        """Structural map; filters become lists (or None)."""
        return {
            "frequency": self.frequency.value,
            "interval": self.interval,
            "by_week_day": list(self.by_week_day) if self.by_week_day else None,
            "by_month_day": list(self.by_month_day) if self.by_month_day else None,
            "by_month": list(self.by_month) if self.by_month else None,
            "end_condition": self.end_condition.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> RecurrenceRule:
        """Decode a structural map defensively.

        Keys are accepted in snake_case or camelCase (``byWeekDay``,
        ``endCondition``). Unknown frequency tokens fall back to daily, bad or
        non-positive intervals to 1, invalid filter entries are dropped and a
        missing end condition means never.

        Raises:
            RecurrenceDecodeError: If ``data`` is not a mapping
        """
        if not isinstance(data, Mapping):
            raise RecurrenceDecodeError(f"Recurrence rule must be a mapping, got {type(data).__name__}")

        frequency = coerce_enum(
            RecurrenceFrequency, data.get("frequency"), RecurrenceFrequency.DAILY, "frequency"
        )
        interval = coerce_int(data.get("interval"), 1, "interval")
        if interval < 1:
            logger.warning("Recurrence interval %d is not positive; using 1", interval)
            interval = 1

        return cls(
            frequency=frequency,
            interval=interval,
            by_week_day=coerce_int_set(pick(data, "by_week_day", "byWeekDay"), 1, 7, "by_week_day"),
            by_month_day=coerce_int_set(pick(data, "by_month_day", "byMonthDay"), 1, 31, "by_month_day"),
            by_month=coerce_int_set(pick(data, "by_month", "byMonth"), 1, 12, "by_month"),
            end_condition=decode_end_condition(pick(data, "end_condition", "endCondition")),
        )

    def describe(self) -> str:
        """Human-readable summary, e.g. ``Every 2 weeks on Mon, Wed, After 10 occurrences``."""
        unit = {
            RecurrenceFrequency.DAILY: ("Daily", "days"),
            RecurrenceFrequency.WEEKLY: ("Weekly", "weeks"),
            RecurrenceFrequency.MONTHLY: ("Monthly", "months"),
            RecurrenceFrequency.YEARLY: ("Yearly", "years"),
        }[self.frequency]
        text = unit[0] if self.interval == 1 else f"Every {self.interval} {unit[1]}"

        if self.frequency is RecurrenceFrequency.WEEKLY and self.by_week_day:
            text += " on " + ", ".join(WEEKDAY_NAMES[day - 1] for day in self.by_week_day)

        if not isinstance(self.end_condition, NeverEnd):
            text += f", {self.end_condition}"
        return text

    def __str__(self) -> str:
        return self.describe()
