"""Enumerations shared by calendarcore models."""

from enum import Enum


class EventPriority(str, Enum):
    """Event priority levels."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class EventStatus(str, Enum):
    """Event status values."""

    CONFIRMED = "confirmed"
    TENTATIVE = "tentative"
    CANCELLED = "cancelled"


class CalendarView(str, Enum):
    """Calendar view types a controller can be focused on."""

    MONTH = "month"
    WEEK = "week"
    DAY = "day"
    YEAR = "year"
    AGENDA = "agenda"
    TIMELINE = "timeline"


class RecurrenceFrequency(str, Enum):
    """Recurrence frequency."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class RecurrenceEndType(str, Enum):
    """Tag of a recurrence end condition."""

    NEVER = "never"
    UNTIL = "until"
    COUNT = "count"

