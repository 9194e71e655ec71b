"""Calendar event model for calendarcore."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date, datetime, timedelta
from types import MappingProxyType
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

from calendarcore.calendar.decoding import (
    coerce_bool,
    coerce_enum,
    coerce_int,
    coerce_optional_str,
    pick,
)
from calendarcore.calendar.enums import EventPriority, EventStatus
from calendarcore.calendar.recurrence import RecurrenceRule
from calendarcore.calendar.rrule_expander import DEFAULT_MAX_CANDIDATES, generate_occurrences
from calendarcore.core import date_utils
from calendarcore.core.date_utils import DateLike, as_datetime, parse_civil_datetime, to_date
from calendarcore.core.exceptions import EventDecodeError, RecurrenceDecodeError

logger = logging.getLogger(__name__)


class CalendarEvent(BaseModel):
    """Immutable calendar event.

    Equality and hashing use ``id`` only: two events with the same id are the
    same logical event. Updates go through ``copy_with`` which re-validates
    the whole object.
    """

    model_config = ConfigDict(frozen=True)

    # Core properties
    id: str = Field(..., min_length=1, description="Unique event key")
    title: str = Field(..., description="Event title")
    description: Optional[str] = Field(default=None, description="Event description")
    location: Optional[str] = Field(default=None, description="Event location")
    category: Optional[str] = Field(default=None, description="Free-form category")

    # Time information
    start: datetime = Field(..., description="Event start (civil, naive)")
    end: datetime = Field(..., description="Event end (civil, naive), never before start")
    is_all_day: bool = Field(default=False, description="All-day event flag")
    duration_days: Optional[int] = Field(
        default=None, ge=0, description="Day count for events built with with_duration()"
    )

    # Classification
    priority: EventPriority = Field(default=EventPriority.NORMAL, description="Priority")
    status: EventStatus = Field(default=EventStatus.CONFIRMED, description="Status")

    # Recurrence
    recurrence_rule: Optional[RecurrenceRule] = Field(default=None, description="Recurrence rule")
    exception_dates: tuple[date, ...] = Field(
        default_factory=tuple, description="Days on which the event does not occur"
    )

    # Custom data, stored as a read-only view over a private copy
    metadata: Mapping[str, Any] = Field(default_factory=dict, description="Arbitrary key-value data")

    @field_validator("start", "end", mode="before")
    @classmethod
    def _promote_dates(cls, value: Any) -> Any:
        if isinstance(value, date):
            return as_datetime(value)
        return value

    @field_validator("start", "end")
    @classmethod
    def _drop_tzinfo(cls, value: datetime) -> datetime:
        return as_datetime(value)

    @field_validator("exception_dates", mode="before")
    @classmethod
    def _normalize_exception_dates(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, (list, tuple, set, frozenset)):
            days = set()
            for item in value:
                parsed = parse_civil_datetime(item)
                if parsed is None:
                    raise ValueError(f"Invalid exception date: {item!r}")
                days.add(parsed.date())
            return tuple(sorted(days))
        return value

    @field_validator("metadata", mode="before")
    @classmethod
    def _copy_metadata(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, Mapping):
            return dict(value)
        return value

    @field_validator("metadata")
    @classmethod
    def _freeze_metadata(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(value))

    @model_validator(mode="after")
    def _check_time_order(self) -> CalendarEvent:
        if self.end < self.start:
            raise ValueError("End date must be after or equal to start date")
        return self

    @field_serializer("start", "end")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime to ISO format."""
        return dt.isoformat()

    @field_serializer("metadata")
    def serialize_metadata(self, metadata: Mapping[str, Any]) -> dict[str, Any]:
        """Serialize the read-only metadata view as a plain dict."""
        return dict(metadata)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CalendarEvent):
            return self.id == other.id
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.id)

    @classmethod
    def with_duration(
        cls,
        id: str,
        title: str,
        start: DateLike,
        duration_days: int,
        **fields: Any,
    ) -> CalendarEvent:
        """Create an all-day event spanning ``start`` plus ``duration_days`` days."""
        start_dt = as_datetime(start)
        return cls(
            id=id,
            title=title,
            start=start_dt,
            end=start_dt + timedelta(days=duration_days),
            is_all_day=True,
            duration_days=duration_days,
            **fields,
        )

    # Span helpers

    @property
    def is_multi_day(self) -> bool:
        """All-day event whose start and end fall on different days."""
        return self.is_all_day and not date_utils.is_same_day(self.start, self.end)

    @property
    def is_recurring(self) -> bool:
        return self.recurrence_rule is not None

    @property
    def date_range(self) -> list[date]:
        """Every day from start to end, inclusive."""
        return date_utils.get_date_range(self.start, self.end)

    @property
    def total_days(self) -> int:
        return len(self.date_range) if self.is_multi_day else 1

    def get_current_day(self, day: DateLike) -> Optional[int]:
        """1-based position of ``day`` within a multi-day event, or None."""
        if not self.is_multi_day:
            return None
        offset = (to_date(day) - self.start.date()).days
        if 0 <= offset < self.total_days:
            return offset + 1
        return None

    def is_exception_date(self, day: DateLike) -> bool:
        return to_date(day) in self.exception_dates

    def occurs_on_date(self, day: DateLike, max_candidates: int = DEFAULT_MAX_CANDIDATES) -> bool:
        """Check whether the event occurs on ``day``.

        Exception dates always win. Otherwise the event occurs on every day of
        its own start..end span, and a recurring event additionally on every
        day its rule yields an occurrence for (anchored at ``start``).
        """
        target = to_date(day)
        if target in self.exception_dates:
            return False

        if self.start.date() <= target <= self.end.date():
            return True

        if self.recurrence_rule is not None:
            day_start = as_datetime(target)
            return bool(
                generate_occurrences(
                    self.recurrence_rule,
                    self.start,
                    day_start,
                    day_start + timedelta(days=1),
                    max_candidates=max_candidates,
                )
            )

        return False

    # Duration and timing

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def duration_in_minutes(self) -> int:
        return int(self.duration.total_seconds() // 60)

    @property
    def duration_in_hours(self) -> float:
        return self.duration_in_minutes / 60.0

    def is_happening(self, now: Optional[datetime] = None) -> bool:
        """True when ``now`` (default: current time) lies within [start, end]."""
        current = as_datetime(now) if now is not None else date_utils.now()
        return self.start <= current <= self.end

    def is_past(self, now: Optional[datetime] = None) -> bool:
        current = as_datetime(now) if now is not None else date_utils.now()
        return self.end < current

    def is_future(self, now: Optional[datetime] = None) -> bool:
        current = as_datetime(now) if now is not None else date_utils.now()
        return self.start > current

    @property
    def is_cancelled(self) -> bool:
        return self.status is EventStatus.CANCELLED

    @property
    def is_tentative(self) -> bool:
        return self.status is EventStatus.TENTATIVE

    # Copy and serialization

    def copy_with(self, **changes: Any) -> CalendarEvent:
        """Return a validated copy with the given fields replaced."""
        return type(self)(**{**dict(self), **changes})

    def to_dict(self) -> dict[str, Any]:
        """Structural map with ISO 8601 dates and a nested recurrence map."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "location": self.location,
            "category": self.category,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "is_all_day": self.is_all_day,
            "duration_days": self.duration_days,
            "priority": self.priority.value,
            "status": self.status.value,
            "recurrence_rule": self.recurrence_rule.to_dict() if self.recurrence_rule else None,
            "exception_dates": [d.isoformat() for d in self.exception_dates],
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Any) -> CalendarEvent:
        """Decode a structural map.

        Field sources (first present key wins):
            id, title: str (numbers are stringified) -- mandatory
            start / startDate, end / endDate: ISO 8601 string, date or
                datetime -- mandatory
            is_all_day / isAllDay: bool, 0/1, or true/false-like string
            priority, status: enum value or name, unknown -> normal/confirmed
            recurrence_rule / recurrenceRule: mapping, or an RRULE string
            exception_dates / exceptionDates: list of dates; junk entries dropped
            metadata / customData: mapping

        Raises:
            EventDecodeError: If a mandatory field is missing or unparseable
        """
        if not isinstance(data, Mapping):
            raise EventDecodeError(f"Event must be a mapping, got {type(data).__name__}")

        event_id = coerce_optional_str(data.get("id"))
        if event_id is None:
            raise EventDecodeError("Event is missing 'id'", field="id")
        title = coerce_optional_str(data.get("title"))
        if title is None:
            raise EventDecodeError(f"Event {event_id} is missing 'title'", field="title")

        start = parse_civil_datetime(pick(data, "start", "startDate"))
        if start is None:
            raise EventDecodeError(f"Event {event_id} has a missing or invalid start", field="start")
        end = parse_civil_datetime(pick(data, "end", "endDate"))
        if end is None:
            raise EventDecodeError(f"Event {event_id} has a missing or invalid end", field="end")

        duration_days = pick(data, "duration_days", "durationDays")
        metadata = pick(data, "metadata", "customData")
        if metadata is not None and not isinstance(metadata, Mapping):
            logger.warning("Ignoring non-mapping metadata for event %s", event_id)
            metadata = None

        return cls(
            id=event_id,
            title=title,
            description=coerce_optional_str(data.get("description")),
            location=coerce_optional_str(data.get("location")),
            category=coerce_optional_str(data.get("category")),
            start=start,
            end=end,
            is_all_day=coerce_bool(pick(data, "is_all_day", "isAllDay"), False, "is_all_day"),
            duration_days=(
                coerce_int(duration_days, 0, "duration_days") if duration_days is not None else None
            ),
            priority=coerce_enum(EventPriority, data.get("priority"), EventPriority.NORMAL, "priority"),
            status=coerce_enum(EventStatus, data.get("status"), EventStatus.CONFIRMED, "status"),
            recurrence_rule=_decode_rule(pick(data, "recurrence_rule", "recurrenceRule"), event_id),
            exception_dates=_decode_exception_dates(pick(data, "exception_dates", "exceptionDates"), event_id),
            metadata=dict(metadata or {}),
        )


def _decode_rule(value: Any, event_id: str) -> Optional[RecurrenceRule]:
    if value is None:
        return None
    if isinstance(value, RecurrenceRule):
        return value
    if isinstance(value, str):
        return RecurrenceRule.from_rrule(value)
    try:
        return RecurrenceRule.from_dict(value)
    except RecurrenceDecodeError as e:
        logger.warning("Dropping recurrence rule of event %s: %s", event_id, e)
        return None


def _decode_exception_dates(value: Any, event_id: str) -> list[date]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple, set)):
        logger.warning("Ignoring non-list exception dates for event %s", event_id)
        return []

    days = []
    for item in value:
        parsed = parse_civil_datetime(item)
        if parsed is None:
            logger.warning("Dropping invalid exception date %r for event %s", item, event_id)
            continue
        days.append(parsed.date())
    return days
