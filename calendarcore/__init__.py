"""calendarcore - calendar event store, recurrence expansion and selection state.

The package answers "which events occur on day D / in range [A, B]" for a set
of (possibly recurring) events, and keeps the navigation and selection state a
calendar view renders from. It does no rendering and no I/O.
"""

__version__ = "0.1.0"

from calendarcore.calendar.enums import (
    CalendarView,
    EventPriority,
    EventStatus,
    RecurrenceFrequency,
)
from calendarcore.calendar.models import CalendarEvent
from calendarcore.calendar.recurrence import (
    CountEnd,
    NeverEnd,
    RecurrenceRule,
    UntilEnd,
    end_after,
    end_never,
    end_until,
)
from calendarcore.calendar.rrule_expander import (
    OccurrenceExpansion,
    expand_occurrences,
    generate_occurrences,
)
from calendarcore.core.config_manager import CalendarCoreSettings, get_settings, load_settings
from calendarcore.core.exceptions import (
    CalendarCoreError,
    ConfigurationError,
    DecodeError,
    EventDecodeError,
    RecurrenceDecodeError,
    RRuleParseError,
)
from calendarcore.core.logging_config import configure_logging
from calendarcore.domain.calendar_config import CalendarConfig
from calendarcore.domain.controller import CalendarController, ControllerState

__all__ = [
    "CalendarConfig",
    "CalendarController",
    "CalendarCoreError",
    "CalendarCoreSettings",
    "CalendarEvent",
    "CalendarView",
    "ConfigurationError",
    "ControllerState",
    "CountEnd",
    "DecodeError",
    "EventDecodeError",
    "EventPriority",
    "EventStatus",
    "NeverEnd",
    "OccurrenceExpansion",
    "RRuleParseError",
    "RecurrenceDecodeError",
    "RecurrenceFrequency",
    "RecurrenceRule",
    "UntilEnd",
    "configure_logging",
    "end_after",
    "end_never",
    "end_until",
    "expand_occurrences",
    "generate_occurrences",
    "get_settings",
    "load_settings",
]
