"""Exception hierarchy for calendarcore.

Construction-invariant violations on models surface as
``pydantic.ValidationError``; the types below cover the remaining failure
modes (decoding mandatory fields, RRULE strings, controller configuration).
"""

from typing import Optional


class CalendarCoreError(Exception):
    """Base exception for all calendarcore errors."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class DecodeError(CalendarCoreError, ValueError):
    """A structural map could not be decoded because no safe default exists.

    Raised when:
    - The payload is not a mapping
    - A mandatory field is missing or empty
    - A mandatory date field cannot be parsed
    """


class EventDecodeError(DecodeError):
    """Decoding a CalendarEvent failed (missing id/title/start/end)."""


class RecurrenceDecodeError(DecodeError):
    """Decoding a RecurrenceRule or end condition failed."""


class RRuleParseError(CalendarCoreError, ValueError):
    """RRULE string is empty or contains no KEY=VALUE parts."""


class ConfigurationError(CalendarCoreError, ValueError):
    """Controller or calendar configuration value is out of range."""
