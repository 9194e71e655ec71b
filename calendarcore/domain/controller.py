"""Event store, selection state and navigation for a calendar view layer."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, timedelta
from typing import Callable, Optional, Union

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, ConfigDict

from calendarcore.calendar.enums import CalendarView, EventPriority, EventStatus
from calendarcore.calendar.models import CalendarEvent
from calendarcore.core import date_utils
from calendarcore.core.config_manager import CalendarCoreSettings, get_settings
from calendarcore.core.date_utils import DateLike, to_date
from calendarcore.core.exceptions import ConfigurationError
from calendarcore.domain.calendar_config import CalendarConfig

logger = logging.getLogger(__name__)

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


class ControllerState(BaseModel):
    """Immutable snapshot of everything a view renders from."""

    model_config = ConfigDict(frozen=True)

    focused_day: date
    selected_day: Optional[date] = None
    range_start: Optional[date] = None
    range_end: Optional[date] = None
    current_view: CalendarView = CalendarView.MONTH
    events: tuple[CalendarEvent, ...] = ()
    holidays: tuple[date, ...] = ()
    selected_days: tuple[date, ...] = ()
    week_start_day: int = 1
    hide_weekends: bool = False


Listener = Callable[[ControllerState], None]


def _check_week_start_day(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 7:
        raise ConfigurationError(f"Weekday must be between 1 and 7, got {value!r}", field="week_start_day")
    return value


class CalendarController:
    """Owns the events, holidays and selection state of a calendar.

    Every mutating method applies its change completely and then notifies the
    registered listeners once, synchronously, with a ``ControllerState``
    snapshot. Read accessors and queries return new lists, never the internal
    collections.
    """

    def __init__(
        self,
        initial_date: Optional[DateLike] = None,
        initial_view: Optional[CalendarView] = None,
        week_start_day: Optional[int] = None,
        *,
        settings: Optional[CalendarCoreSettings] = None,
    ):
        """Initialize the controller.

        Args:
            initial_date: Focused day, defaults to today
            initial_view: Starting view, defaults to the configured default view
            week_start_day: 1=Monday ... 7=Sunday, defaults to the configured value
            settings: Library settings, defaults to the process-wide settings
        """
        self._settings = settings or get_settings()

        self._focused_day: date = to_date(initial_date) if initial_date else date_utils.today()
        self._selected_day: Optional[date] = None
        self._range_start: Optional[date] = None
        self._range_end: Optional[date] = None
        self._current_view = initial_view or self._settings.default_view

        self._events: list[CalendarEvent] = []
        self._holidays: list[date] = []
        self._selected_days: list[date] = []

        self._week_start_day = _check_week_start_day(
            week_start_day if week_start_day is not None else self._settings.week_start_day
        )
        self._hide_weekends = self._settings.hide_weekends
        self._allow_same_day_range = self._settings.allow_same_day_range
        self._max_candidates = self._settings.max_recurrence_candidates

        self._listeners: list[Listener] = []

        logger.debug(
            "Calendar controller initialized: focused_day=%s, view=%s, week_start_day=%d",
            self._focused_day,
            self._current_view.value,
            self._week_start_day,
        )

    @classmethod
    def from_config(
        cls,
        config: CalendarConfig,
        initial_date: Optional[DateLike] = None,
        *,
        settings: Optional[CalendarCoreSettings] = None,
    ) -> CalendarController:
        """Build a controller from a CalendarConfig (view, week start, weekends, holidays)."""
        controller = cls(
            initial_date=initial_date,
            initial_view=config.initial_view,
            week_start_day=config.week_start_day,
            settings=settings,
        )
        controller._hide_weekends = config.hide_weekends
        controller._allow_same_day_range = config.allow_same_day_range
        controller._holidays = _unique_days(config.holidays)
        return controller

    # Read accessors

    @property
    def focused_day(self) -> date:
        return self._focused_day

    @property
    def selected_day(self) -> Optional[date]:
        return self._selected_day

    @property
    def range_start(self) -> Optional[date]:
        return self._range_start

    @property
    def range_end(self) -> Optional[date]:
        return self._range_end

    @property
    def current_view(self) -> CalendarView:
        return self._current_view

    @property
    def events(self) -> list[CalendarEvent]:
        return list(self._events)

    @property
    def holidays(self) -> list[date]:
        return list(self._holidays)

    @property
    def selected_days(self) -> list[date]:
        return list(self._selected_days)

    @property
    def week_start_day(self) -> int:
        return self._week_start_day

    @property
    def hide_weekends(self) -> bool:
        return self._hide_weekends

    @property
    def has_range_selection(self) -> bool:
        return self._range_start is not None and self._range_end is not None

    @property
    def selected_range(self) -> list[date]:
        """Every day of the completed range selection, or an empty list."""
        if not self.has_range_selection:
            return []
        return date_utils.get_date_range(self._range_start, self._range_end)

    @property
    def state(self) -> ControllerState:
        """Immutable snapshot of the current state."""
        return ControllerState(
            focused_day=self._focused_day,
            selected_day=self._selected_day,
            range_start=self._range_start,
            range_end=self._range_end,
            current_view=self._current_view,
            events=tuple(self._events),
            holidays=tuple(self._holidays),
            selected_days=tuple(self._selected_days),
            week_start_day=self._week_start_day,
            hide_weekends=self._hide_weekends,
        )

    # Navigation

    def _set_focused_day(self, day: DateLike, action: str) -> date:
        old_day = self._focused_day
        self._focused_day = to_date(day)
        logger.debug("%s: %s -> %s", action, old_day, self._focused_day)
        self._notify_change()
        return self._focused_day

    def next_month(self) -> date:
        return self._set_focused_day(date_utils.add_months(self._focused_day, 1), "Next month")

    def previous_month(self) -> date:
        return self._set_focused_day(date_utils.add_months(self._focused_day, -1), "Previous month")

    def next_week(self) -> date:
        return self._set_focused_day(self._focused_day + timedelta(days=7), "Next week")

    def previous_week(self) -> date:
        return self._set_focused_day(self._focused_day - timedelta(days=7), "Previous week")

    def next_day(self) -> date:
        return self._set_focused_day(self._focused_day + timedelta(days=1), "Next day")

    def previous_day(self) -> date:
        return self._set_focused_day(self._focused_day - timedelta(days=1), "Previous day")

    def next_year(self) -> date:
        return self._set_focused_day(date_utils.add_years(self._focused_day, 1), "Next year")

    def previous_year(self) -> date:
        return self._set_focused_day(date_utils.add_years(self._focused_day, -1), "Previous year")

    def navigate_next(self) -> date:
        """Step forward by the unit of the current view (month for agenda/timeline)."""
        if self._current_view is CalendarView.WEEK:
            return self.next_week()
        if self._current_view is CalendarView.DAY:
            return self.next_day()
        if self._current_view is CalendarView.YEAR:
            return self.next_year()
        return self.next_month()

    def navigate_previous(self) -> date:
        """Step backward by the unit of the current view (month for agenda/timeline)."""
        if self._current_view is CalendarView.WEEK:
            return self.previous_week()
        if self._current_view is CalendarView.DAY:
            return self.previous_day()
        if self._current_view is CalendarView.YEAR:
            return self.previous_year()
        return self.previous_month()

    def jump_to_date(self, day: DateLike) -> date:
        return self._set_focused_day(day, "Jumped to date")

    def jump_to_month(self, month: int) -> date:
        """Focus ``month`` of the focused year; the day clamps to the month's end."""
        _check_month(month)
        return self._set_focused_day(self._focused_day + relativedelta(month=month), "Jumped to month")

    def jump_to_year(self, year: int) -> date:
        """Focus the same month and day in ``year``; Feb 29 clamps to Feb 28."""
        return self._set_focused_day(self._focused_day + relativedelta(year=year), "Jumped to year")

    def jump_to_month_year(self, month: int, year: int) -> date:
        """Focus the first day of ``month``/``year``."""
        _check_month(month)
        return self._set_focused_day(date(year, month, 1), "Jumped to month/year")

    def jump_to_today(self) -> date:
        """Focus and select today; any range selection is cleared."""
        today = date_utils.today()
        self._focused_day = today
        self._selected_day = today
        self._range_start = None
        self._range_end = None

        logger.debug("Jumped to today: %s", today)
        self._notify_change()
        return today

    # Selection

    def select_day(self, day: DateLike, clear_range: bool = True) -> None:
        """Select a single day; clears the range selection unless ``clear_range`` is False."""
        self._selected_day = to_date(day)
        if clear_range:
            self._range_start = None
            self._range_end = None

        logger.debug("Selected day %s (clear_range=%s)", self._selected_day, clear_range)
        self._notify_change()

    def select_range(self, start: DateLike, end: DateLike) -> None:
        """Select a complete range (ordered so start <= end) and clear the selected day."""
        first, last = sorted((to_date(start), to_date(end)))
        self._range_start = first
        self._range_end = last
        self._selected_day = None

        logger.debug("Selected range %s .. %s", first, last)
        self._notify_change()

    def handle_range_tap(self, day: DateLike, allow_same_day: Optional[bool] = None) -> None:
        """Advance the three-phase range-tap gesture with a tap on ``day``.

        - no start: the tap becomes the start (and clears the selected day)
        - start only: a different day completes the range (reordered if
          needed); the start day again completes a one-day range when
          ``allow_same_day`` is set, otherwise aborts the selection
        - complete range: the tap starts a new selection

        Args:
            day: Tapped day
            allow_same_day: Defaults to the configured ``allow_same_day_range``
        """
        tapped = to_date(day)
        if allow_same_day is None:
            allow_same_day = self._allow_same_day_range

        if self._range_start is None:
            self._range_start = tapped
            self._range_end = None
            self._selected_day = None
        elif self._range_end is None:
            if tapped == self._range_start:
                if allow_same_day:
                    self._range_end = tapped
                else:
                    self._range_start = None
            else:
                self._range_start, self._range_end = sorted((self._range_start, tapped))
        else:
            self._range_start = tapped
            self._range_end = None

        logger.debug("Range tap on %s -> range %s .. %s", tapped, self._range_start, self._range_end)
        self._notify_change()

    def clear_selection(self) -> None:
        """Clear the selected day, the range and the multi-selection."""
        self._selected_day = None
        self._range_start = None
        self._range_end = None
        self._selected_days.clear()

        logger.debug("Selection cleared")
        self._notify_change()

    def add_selected_day(self, day: DateLike) -> None:
        target = to_date(day)
        if target in self._selected_days:
            return
        self._selected_days.append(target)
        logger.debug("Added %s to multi-selection", target)
        self._notify_change()

    def remove_selected_day(self, day: DateLike) -> None:
        target = to_date(day)
        self._selected_days = [d for d in self._selected_days if d != target]
        logger.debug("Removed %s from multi-selection", target)
        self._notify_change()

    def toggle_selected_day(self, day: DateLike) -> None:
        if to_date(day) in self._selected_days:
            self.remove_selected_day(day)
        else:
            self.add_selected_day(day)

    def is_day_selected(self, day: DateLike) -> bool:
        """True for the selected day and for any multi-selected day."""
        target = to_date(day)
        return target == self._selected_day or target in self._selected_days

    def is_day_in_range(self, day: DateLike) -> bool:
        if not self.has_range_selection:
            return False
        return self._range_start <= to_date(day) <= self._range_end

    def is_range_start(self, day: DateLike) -> bool:
        return self._range_start is not None and self._range_start == to_date(day)

    def is_range_end(self, day: DateLike) -> bool:
        return self._range_end is not None and self._range_end == to_date(day)

    # Views

    def set_view(self, view: Union[CalendarView, str]) -> None:
        try:
            self._current_view = CalendarView(view)
        except ValueError as e:
            raise ConfigurationError(f"Unknown calendar view: {view!r}", field="view") from e

        logger.debug("View set to %s", self._current_view.value)
        self._notify_change()

    def toggle_month_week_view(self) -> None:
        """Switch month -> week; every other view switches to month."""
        self._current_view = (
            CalendarView.WEEK if self._current_view is CalendarView.MONTH else CalendarView.MONTH
        )
        logger.debug("View toggled to %s", self._current_view.value)
        self._notify_change()

    # Event mutation

    def _index_of(self, event_id: str) -> int:
        for index, event in enumerate(self._events):
            if event.id == event_id:
                return index
        return -1

    def _upsert(self, event: CalendarEvent) -> None:
        index = self._index_of(event.id)
        if index == -1:
            self._events.append(event)
        else:
            self._events[index] = event

    def add_event(self, event: CalendarEvent) -> None:
        """Add an event; an event with the same id is replaced in place."""
        self._upsert(event)
        logger.debug("Added event %s (%d total)", event.id, len(self._events))
        self._notify_change()

    def add_events(self, events: Iterable[CalendarEvent]) -> None:
        count = 0
        for event in events:
            self._upsert(event)
            count += 1
        logger.debug("Added %d events (%d total)", count, len(self._events))
        self._notify_change()

    def update_event(self, event_id: str, updated_event: CalendarEvent) -> bool:
        """Replace the event stored under ``event_id``.

        Returns:
            False (and no notification) when no event has that id
        """
        index = self._index_of(event_id)
        if index == -1:
            logger.debug("Update skipped, no event with id %s", event_id)
            return False

        self._events[index] = updated_event
        if updated_event.id != event_id:
            # Keep ids unique when the replacement carries another event's id
            self._events = [
                e for i, e in enumerate(self._events) if i == index or e.id != updated_event.id
            ]

        logger.debug("Updated event %s", event_id)
        self._notify_change()
        return True

    def remove_event(self, event_id: str) -> bool:
        before = len(self._events)
        self._events = [e for e in self._events if e.id != event_id]
        removed = len(self._events) != before

        logger.debug("Removed event %s (found=%s)", event_id, removed)
        self._notify_change()
        return removed

    def remove_events(self, event_ids: Iterable[str]) -> int:
        ids = set(event_ids)
        before = len(self._events)
        self._events = [e for e in self._events if e.id not in ids]
        removed = before - len(self._events)

        logger.debug("Removed %d events", removed)
        self._notify_change()
        return removed

    def clear_events(self) -> None:
        self._events.clear()
        logger.debug("Cleared all events")
        self._notify_change()

    def set_events(self, events: Iterable[CalendarEvent]) -> None:
        """Replace the whole event collection (later duplicates of an id win)."""
        self._events = []
        for event in events:
            self._upsert(event)
        logger.debug("Set %d events", len(self._events))
        self._notify_change()

    # Event queries

    def get_events_for_day(self, day: DateLike) -> list[CalendarEvent]:
        """Events occurring on ``day``: all-day events first, then by start time."""
        matches = [e for e in self._events if e.occurs_on_date(day, self._max_candidates)]
        return sorted(matches, key=lambda e: (not e.is_all_day, e.start))

    def get_events_for_range(self, start: DateLike, end: DateLike) -> list[CalendarEvent]:
        """Events occurring on any day of ``[start, end]``, deduplicated, by start time."""
        found: dict[str, CalendarEvent] = {}
        for day in date_utils.get_date_range(start, end):
            for event in self.get_events_for_day(day):
                found.setdefault(event.id, event)
        return sorted(found.values(), key=lambda e: e.start)

    def get_events_for_month(self) -> list[CalendarEvent]:
        return self.get_events_for_range(
            date_utils.get_start_of_month(self._focused_day),
            date_utils.get_end_of_month(self._focused_day),
        )

    def get_events_for_week(self) -> list[CalendarEvent]:
        return self.get_events_for_range(
            date_utils.get_start_of_week(self._focused_day, self._week_start_day),
            date_utils.get_end_of_week(self._focused_day, self._week_start_day),
        )

    def get_event_by_id(self, event_id: str) -> Optional[CalendarEvent]:
        index = self._index_of(event_id)
        return self._events[index] if index != -1 else None

    def get_events_by_category(self, category: str) -> list[CalendarEvent]:
        return [e for e in self._events if e.category == category]

    def get_events_by_priority(self, priority: EventPriority) -> list[CalendarEvent]:
        return [e for e in self._events if e.priority == priority]

    def get_events_by_status(self, status: EventStatus) -> list[CalendarEvent]:
        return [e for e in self._events if e.status == status]

    def has_events_on_day(self, day: DateLike) -> bool:
        return any(e.occurs_on_date(day, self._max_candidates) for e in self._events)

    def get_event_count_for_day(self, day: DateLike) -> int:
        return len(self.get_events_for_day(day))

    # Holidays

    def add_holiday(self, day: DateLike) -> None:
        target = to_date(day)
        if target in self._holidays:
            return
        self._holidays.append(target)
        logger.debug("Added holiday %s", target)
        self._notify_change()

    def add_holidays(self, days: Iterable[DateLike]) -> None:
        self._holidays = _unique_days([*self._holidays, *days])
        logger.debug("Holidays now %d", len(self._holidays))
        self._notify_change()

    def remove_holiday(self, day: DateLike) -> None:
        target = to_date(day)
        self._holidays = [d for d in self._holidays if d != target]
        logger.debug("Removed holiday %s", target)
        self._notify_change()

    def clear_holidays(self) -> None:
        self._holidays.clear()
        logger.debug("Cleared holidays")
        self._notify_change()

    def set_holidays(self, days: Iterable[DateLike]) -> None:
        self._holidays = _unique_days(days)
        logger.debug("Set %d holidays", len(self._holidays))
        self._notify_change()

    def is_holiday(self, day: DateLike) -> bool:
        return to_date(day) in self._holidays

    def is_today_holiday(self) -> bool:
        return self.is_holiday(date_utils.today())

    def get_holidays_in_range(self, start: DateLike, end: DateLike) -> list[date]:
        """Holidays within ``[start, end]`` by day, in insertion order."""
        first, last = to_date(start), to_date(end)
        return [d for d in self._holidays if first <= d <= last]

    def get_holidays_for_month(self) -> list[date]:
        return self.get_holidays_in_range(
            date_utils.get_start_of_month(self._focused_day),
            date_utils.get_end_of_month(self._focused_day),
        )

    # Configuration

    def set_week_start_day(self, weekday: int) -> None:
        """Set the first day of the week.

        Raises:
            ConfigurationError: If ``weekday`` is not within 1-7
        """
        self._week_start_day = _check_week_start_day(weekday)
        logger.debug("Week start day set to %d", weekday)
        self._notify_change()

    def set_hide_weekends(self, hide: bool) -> None:
        self._hide_weekends = hide
        logger.debug("Hide weekends set to %s", hide)
        self._notify_change()

    def toggle_hide_weekends(self) -> None:
        self.set_hide_weekends(not self._hide_weekends)

    # Utilities

    def is_today(self, day: DateLike) -> bool:
        return date_utils.is_today(day)

    def is_in_focused_month(self, day: DateLike) -> bool:
        return date_utils.is_same_month(day, self._focused_day)

    def is_weekend(self, day: DateLike) -> bool:
        return date_utils.is_weekend(day)

    def get_visible_days(self) -> list[date]:
        """Month grid around the focused day for the configured week start."""
        return date_utils.get_visible_days(self._focused_day, self._week_start_day, self._hide_weekends)

    def get_days_in_week(self) -> list[date]:
        days = date_utils.get_week_days(self._focused_day, self._week_start_day)
        if self._hide_weekends:
            days = [d for d in days if not date_utils.is_weekend(d)]
        return days

    def get_formatted_month_year(self) -> str:
        """e.g. "January 2024" for the focused month."""
        return f"{MONTH_NAMES[self._focused_day.month - 1]} {self._focused_day.year}"

    # Change notification

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener.

        Args:
            listener: Called with a ControllerState after every mutation

        Returns:
            Callable that unregisters the listener
        """
        self._listeners.append(listener)
        logger.debug("Added change listener (%d registered)", len(self._listeners))

        def unsubscribe() -> None:
            self.remove_listener(listener)

        return unsubscribe

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)
            logger.debug("Removed change listener")

    def _notify_change(self) -> None:
        """Notify all registered listeners with a snapshot of the new state."""
        if not self._listeners:
            return
        snapshot = self.state
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Error in calendar change listener")

    def dispose(self) -> None:
        """Drop all collections and listeners."""
        self._events.clear()
        self._holidays.clear()
        self._selected_days.clear()
        self._listeners.clear()
        logger.debug("Calendar controller disposed")

    def __repr__(self) -> str:
        return (
            f"CalendarController(focused_day={self._focused_day!r}, "
            f"view={self._current_view.value}, events={len(self._events)})"
        )


def _check_month(month: int) -> None:
    if not 1 <= month <= 12:
        raise ConfigurationError(f"Month must be between 1 and 12, got {month!r}", field="month")


def _unique_days(days: Iterable[DateLike]) -> list[date]:
    result: list[date] = []
    for day in days:
        target = to_date(day)
        if target not in result:
            result.append(target)
    return result
