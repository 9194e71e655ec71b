"""Tests for CalendarController: navigation, selection, events, holidays and notifications."""

from datetime import date, datetime
from unittest.mock import Mock

import pytest
from pydantic import ValidationError

from calendarcore.calendar.enums import CalendarView, EventPriority, EventStatus, RecurrenceFrequency
from calendarcore.calendar.models import CalendarEvent
from calendarcore.calendar.recurrence import RecurrenceRule
from calendarcore.core.config_manager import CalendarCoreSettings
from calendarcore.core.exceptions import ConfigurationError
from calendarcore.domain.calendar_config import CalendarConfig
from calendarcore.domain.controller import CalendarController, ControllerState

pytestmark = pytest.mark.unit


def _timed(event_id: str, hour: int, day: int = 15, **fields) -> CalendarEvent:
    fields.setdefault("title", event_id.title())
    return CalendarEvent(
        id=event_id,
        start=datetime(2024, 1, day, hour, 0),
        end=datetime(2024, 1, day, hour, 30),
        **fields,
    )


class TestControllerInit:
    """Construction and defaults."""

    def test_defaults(self, controller):
        assert controller.focused_day == date(2024, 1, 15)
        assert controller.current_view is CalendarView.MONTH
        assert controller.week_start_day == 1
        assert controller.selected_day is None
        assert controller.range_start is None
        assert controller.events == []
        assert controller.holidays == []
        assert controller.hide_weekends is False

    def test_defaults_to_today(self, frozen_now, settings):
        assert CalendarController(settings=settings).focused_day == date(2024, 1, 15)

    def test_settings_supply_view_and_week_start(self):
        settings = CalendarCoreSettings(_env_file=None, week_start_day=7, default_view=CalendarView.WEEK, hide_weekends=True)
        controller = CalendarController(initial_date=date(2024, 1, 15), settings=settings)
        assert controller.week_start_day == 7
        assert controller.current_view is CalendarView.WEEK
        assert controller.hide_weekends is True

    def test_settings_from_environment(self, monkeypatch):
        monkeypatch.setenv("CALENDARCORE_WEEK_START_DAY", "6")
        controller = CalendarController(initial_date=date(2024, 1, 15))
        assert controller.week_start_day == 6

    @pytest.mark.parametrize("week_start_day", [0, 8, -1])
    def test_invalid_week_start_day(self, settings, week_start_day):
        with pytest.raises(ConfigurationError):
            CalendarController(week_start_day=week_start_day, settings=settings)

    def test_from_config(self, settings):
        config = CalendarConfig(
            initial_view=CalendarView.DAY,
            week_start_day=7,
            hide_weekends=True,
            allow_same_day_range=False,
            holidays=[date(2024, 1, 1), datetime(2024, 1, 1, 12, 0), date(2024, 12, 25)],
        )
        controller = CalendarController.from_config(config, initial_date=date(2024, 1, 15), settings=settings)
        assert controller.current_view is CalendarView.DAY
        assert controller.week_start_day == 7
        assert controller.hide_weekends is True
        assert controller.holidays == [date(2024, 1, 1), date(2024, 12, 25)]

        controller.handle_range_tap(date(2024, 1, 5))
        controller.handle_range_tap(date(2024, 1, 5))
        assert controller.range_start is None

    def test_repr(self, controller):
        assert "2024, 1, 15" in repr(controller)


class TestNavigation:
    """Focused-day navigation."""

    def test_month_navigation_clamps(self, settings):
        controller = CalendarController(initial_date=date(2024, 1, 31), settings=settings)
        assert controller.next_month() == date(2024, 2, 29)
        controller.jump_to_date(date(2024, 3, 31))
        assert controller.previous_month() == date(2024, 2, 29)

    def test_week_and_day_navigation(self, controller):
        assert controller.next_week() == date(2024, 1, 22)
        assert controller.previous_week() == date(2024, 1, 15)
        assert controller.next_day() == date(2024, 1, 16)
        assert controller.previous_day() == date(2024, 1, 15)

    def test_year_navigation_clamps_leap_day(self, settings):
        controller = CalendarController(initial_date=date(2024, 2, 29), settings=settings)
        assert controller.next_year() == date(2025, 2, 28)
        assert controller.previous_year() == date(2024, 2, 28)

    @pytest.mark.parametrize(
        "view, forward, backward",
        [
            (CalendarView.MONTH, date(2024, 2, 15), date(2023, 12, 15)),
            (CalendarView.WEEK, date(2024, 1, 22), date(2024, 1, 8)),
            (CalendarView.DAY, date(2024, 1, 16), date(2024, 1, 14)),
            (CalendarView.YEAR, date(2025, 1, 15), date(2023, 1, 15)),
            (CalendarView.AGENDA, date(2024, 2, 15), date(2023, 12, 15)),
            (CalendarView.TIMELINE, date(2024, 2, 15), date(2023, 12, 15)),
        ],
    )
    def test_navigate_by_view(self, settings, view, forward, backward):
        controller = CalendarController(initial_date=date(2024, 1, 15), initial_view=view, settings=settings)
        assert controller.navigate_next() == forward
        controller.jump_to_date(date(2024, 1, 15))
        assert controller.navigate_previous() == backward

    def test_jumps(self, settings):
        controller = CalendarController(initial_date=date(2024, 1, 31), settings=settings)
        assert controller.jump_to_month(2) == date(2024, 2, 29)
        assert controller.jump_to_month_year(3, 2025) == date(2025, 3, 1)
        controller.jump_to_date(datetime(2024, 2, 29, 18, 0))
        assert controller.focused_day == date(2024, 2, 29)
        assert controller.jump_to_year(2023) == date(2023, 2, 28)

    @pytest.mark.parametrize("month", [0, 13])
    def test_jump_to_invalid_month(self, controller, month):
        with pytest.raises(ConfigurationError):
            controller.jump_to_month(month)
        with pytest.raises(ConfigurationError):
            controller.jump_to_month_year(month, 2024)

    def test_jump_to_today_selects_and_clears_range(self, controller, monkeypatch):
        monkeypatch.setenv("CALENDARCORE_TEST_TIME", "2024-03-05T08:00:00")
        controller.select_range(date(2024, 1, 1), date(2024, 1, 3))
        assert controller.jump_to_today() == date(2024, 3, 5)
        assert controller.focused_day == date(2024, 3, 5)
        assert controller.selected_day == date(2024, 3, 5)
        assert not controller.has_range_selection

    def test_every_navigation_notifies(self, controller):
        listener = Mock()
        controller.add_listener(listener)
        controller.next_month()
        controller.previous_day()
        controller.jump_to_date(date(2024, 6, 1))
        assert listener.call_count == 3


class TestSelection:
    """Single-day, range and multi-day selection."""

    def test_select_day_clears_range(self, controller):
        controller.select_range(date(2024, 1, 1), date(2024, 1, 5))
        controller.select_day(datetime(2024, 1, 10, 14, 0))
        assert controller.selected_day == date(2024, 1, 10)
        assert controller.range_start is None
        assert controller.range_end is None

    def test_select_day_can_keep_range(self, controller):
        controller.select_range(date(2024, 1, 1), date(2024, 1, 5))
        controller.select_day(date(2024, 1, 10), clear_range=False)
        assert controller.has_range_selection

    def test_select_range_orders_and_clears_day(self, controller):
        controller.select_day(date(2024, 1, 20))
        controller.select_range(date(2024, 1, 9), date(2024, 1, 7))
        assert (controller.range_start, controller.range_end) == (date(2024, 1, 7), date(2024, 1, 9))
        assert controller.selected_day is None
        assert controller.selected_range == [date(2024, 1, 7), date(2024, 1, 8), date(2024, 1, 9)]

    def test_range_tap_same_day_disallowed_aborts(self, controller):
        day5 = date(2024, 1, 5)
        controller.handle_range_tap(day5, allow_same_day=False)
        controller.handle_range_tap(day5, allow_same_day=False)
        assert controller.range_start is None
        assert controller.range_end is None

    def test_range_tap_same_day_allowed(self, controller):
        day5 = date(2024, 1, 5)
        controller.handle_range_tap(day5, allow_same_day=True)
        controller.handle_range_tap(day5, allow_same_day=True)
        assert (controller.range_start, controller.range_end) == (day5, day5)
        assert controller.selected_range == [day5]

    def test_range_tap_default_comes_from_settings(self):
        settings = CalendarCoreSettings(_env_file=None, allow_same_day_range=False)
        controller = CalendarController(initial_date=date(2024, 1, 15), settings=settings)
        controller.handle_range_tap(date(2024, 1, 5))
        controller.handle_range_tap(date(2024, 1, 5))
        assert controller.range_start is None

    def test_range_tap_reorders(self, controller):
        controller.handle_range_tap(date(2024, 1, 10))
        assert controller.range_start == date(2024, 1, 10)
        assert controller.range_end is None
        controller.handle_range_tap(date(2024, 1, 5))
        assert (controller.range_start, controller.range_end) == (date(2024, 1, 5), date(2024, 1, 10))

    def test_range_tap_third_tap_starts_new_range(self, controller):
        controller.handle_range_tap(date(2024, 1, 5))
        controller.handle_range_tap(date(2024, 1, 8))
        controller.handle_range_tap(date(2024, 1, 20))
        assert controller.range_start == date(2024, 1, 20)
        assert controller.range_end is None
        assert not controller.has_range_selection

    def test_first_range_tap_clears_selected_day(self, controller):
        controller.select_day(date(2024, 1, 3))
        controller.handle_range_tap(date(2024, 1, 5))
        assert controller.selected_day is None

    def test_range_predicates(self, controller):
        controller.select_range(date(2024, 1, 5), date(2024, 1, 8))
        assert controller.is_day_in_range(datetime(2024, 1, 6, 23, 0))
        assert controller.is_day_in_range(date(2024, 1, 8))
        assert not controller.is_day_in_range(date(2024, 1, 9))
        assert controller.is_range_start(date(2024, 1, 5))
        assert controller.is_range_end(datetime(2024, 1, 8, 1, 0))
        assert not controller.is_range_end(date(2024, 1, 5))

    def test_incomplete_range_has_no_days(self, controller):
        controller.handle_range_tap(date(2024, 1, 5))
        assert not controller.is_day_in_range(date(2024, 1, 5))
        assert controller.selected_range == []

    def test_multi_select(self, controller):
        listener = Mock()
        controller.add_listener(listener)
        controller.add_selected_day(date(2024, 1, 3))
        controller.add_selected_day(datetime(2024, 1, 3, 12, 0))
        controller.toggle_selected_day(date(2024, 1, 4))
        assert controller.selected_days == [date(2024, 1, 3), date(2024, 1, 4)]
        assert listener.call_count == 2

        controller.toggle_selected_day(date(2024, 1, 3))
        assert controller.selected_days == [date(2024, 1, 4)]
        assert controller.is_day_selected(date(2024, 1, 4))
        assert not controller.is_day_selected(date(2024, 1, 3))

    def test_is_day_selected_includes_selected_day(self, controller):
        controller.select_day(date(2024, 1, 9))
        assert controller.is_day_selected(date(2024, 1, 9))

    def test_clear_selection(self, controller):
        controller.select_day(date(2024, 1, 9))
        controller.add_selected_day(date(2024, 1, 10))
        controller.handle_range_tap(date(2024, 1, 11))
        controller.clear_selection()
        assert controller.selected_day is None
        assert controller.range_start is None
        assert controller.selected_days == []


class TestViews:
    """View switching."""

    def test_set_view(self, controller):
        controller.set_view(CalendarView.AGENDA)
        assert controller.current_view is CalendarView.AGENDA
        controller.set_view("week")
        assert controller.current_view is CalendarView.WEEK

    def test_set_unknown_view(self, controller):
        with pytest.raises(ConfigurationError):
            controller.set_view("fortnight")

    def test_toggle_month_week(self, controller):
        controller.toggle_month_week_view()
        assert controller.current_view is CalendarView.WEEK
        controller.toggle_month_week_view()
        assert controller.current_view is CalendarView.MONTH
        controller.set_view(CalendarView.YEAR)
        controller.toggle_month_week_view()
        assert controller.current_view is CalendarView.MONTH


class TestEventMutation:
    """Adding, updating and removing events."""

    def test_add_events_keeps_insertion_order(self, controller):
        controller.add_event(_timed("b", 14))
        controller.add_events([_timed("a", 9), _timed("c", 8)])
        assert [e.id for e in controller.events] == ["b", "a", "c"]

    def test_add_existing_id_replaces_in_place(self, controller):
        controller.add_events([_timed("a", 9), _timed("b", 10)])
        controller.add_event(_timed("a", 16, title="Moved"))
        assert [e.id for e in controller.events] == ["a", "b"]
        assert controller.get_event_by_id("a").title == "Moved"

    def test_update_event(self, controller):
        controller.add_event(_timed("a", 9))
        listener = Mock()
        controller.add_listener(listener)
        updated = controller.get_event_by_id("a").copy_with(title="Renamed")
        assert controller.update_event("a", updated) is True
        assert controller.get_event_by_id("a").title == "Renamed"
        listener.assert_called_once()

    def test_update_missing_event_is_silent_noop(self, controller):
        listener = Mock()
        controller.add_listener(listener)
        assert controller.update_event("missing", _timed("missing", 9)) is False
        assert controller.events == []
        listener.assert_not_called()

    def test_update_with_new_id_keeps_ids_unique(self, controller):
        controller.add_events([_timed("a", 9), _timed("b", 10)])
        controller.update_event("a", _timed("b", 11))
        assert [e.id for e in controller.events] == ["b"]
        assert controller.events[0].start.hour == 11

    def test_remove_events(self, controller):
        controller.set_events([_timed("a", 9), _timed("b", 10), _timed("c", 11)])
        assert controller.remove_event("b") is True
        assert controller.remove_event("b") is False
        assert controller.remove_events(["a", "zzz"]) == 1
        assert [e.id for e in controller.events] == ["c"]
        controller.clear_events()
        assert controller.events == []

    def test_set_events_replaces_collection(self, controller):
        controller.add_event(_timed("old", 9))
        controller.set_events([_timed("x", 9), _timed("y", 10), _timed("x", 12)])
        assert [e.id for e in controller.events] == ["x", "y"]
        assert controller.get_event_by_id("x").start.hour == 12

    def test_accessors_return_copies(self, controller, timed_event):
        controller.add_event(timed_event)
        controller.events.clear()
        controller.get_events_for_day(date(2024, 1, 15)).clear()
        controller.holidays.append(date(2024, 1, 1))
        assert len(controller.events) == 1
        assert controller.holidays == []


class TestEventQueries:
    """Day, range and attribute queries."""

    def test_day_query_puts_all_day_first(self, controller, all_day_event):
        controller.add_events([_timed("late", 14), _timed("early", 9), all_day_event])
        result = controller.get_events_for_day(date(2024, 1, 15))
        assert [e.id for e in result] == ["offsite", "early", "late"]

    def test_day_query_orders_all_day_events_by_start(self, controller):
        second = CalendarEvent(id="s", title="S", start=date(2024, 1, 15), end=date(2024, 1, 15), is_all_day=True)
        first = CalendarEvent(id="f", title="F", start=date(2024, 1, 14), end=date(2024, 1, 16), is_all_day=True)
        controller.add_events([_timed("t", 7), second, first])
        assert [e.id for e in controller.get_events_for_day(date(2024, 1, 15))] == ["f", "s", "t"]

    def test_single_day_range_matches_day_query(self, controller, all_day_event, timed_event, weekly_event):
        controller.add_events([_timed("late", 14), timed_event, all_day_event, weekly_event])
        day = date(2024, 1, 15)
        assert set(controller.get_events_for_range(day, day)) == set(controller.get_events_for_day(day))

    def test_range_query_dedupes_and_sorts_by_start(self, controller, all_day_event):
        controller.add_events([_timed("wed", 9, day=17), all_day_event, _timed("tue", 12, day=16)])
        result = controller.get_events_for_range(date(2024, 1, 14), date(2024, 1, 20))
        assert [e.id for e in result] == ["offsite", "tue", "wed"]

    def test_range_query_includes_recurring_instances(self, controller, weekly_event):
        controller.add_event(weekly_event)
        assert controller.get_events_for_range(date(2024, 1, 20), date(2024, 1, 23)) == [weekly_event]
        assert controller.get_events_for_range(date(2024, 1, 23), date(2024, 1, 31)) == []

    def test_month_and_week_queries(self, controller, timed_event):
        february = CalendarEvent(id="feb", title="Feb", start=datetime(2024, 2, 1, 9, 0), end=datetime(2024, 2, 1, 10, 0))
        controller.add_events([timed_event, february, _timed("sunday", 9, day=21), _timed("monday", 9, day=22)])
        assert [e.id for e in controller.get_events_for_month()] == ["standup", "sunday", "monday"]
        assert [e.id for e in controller.get_events_for_week()] == ["standup", "sunday"]
        controller.set_week_start_day(7)
        assert [e.id for e in controller.get_events_for_week()] == ["standup"]

    def test_lookup_and_filters(self, controller, timed_event, all_day_event, weekly_event):
        controller.add_events([timed_event, all_day_event, weekly_event])
        assert controller.get_event_by_id("missing") is None
        assert controller.get_event_by_id("standup") is timed_event
        assert controller.get_events_by_category("work") == [timed_event, all_day_event]
        assert controller.get_events_by_priority(EventPriority.HIGH) == [timed_event]
        assert controller.get_events_by_status(EventStatus.TENTATIVE) == [weekly_event]

    def test_day_presence_and_count(self, controller, timed_event, all_day_event):
        controller.add_events([timed_event, all_day_event])
        assert controller.has_events_on_day(date(2024, 1, 16))
        assert not controller.has_events_on_day(date(2024, 1, 18))
        assert controller.get_event_count_for_day(date(2024, 1, 15)) == 2
        assert controller.get_event_count_for_day(date(2024, 1, 17)) == 1

    def test_returned_event_metadata_cannot_change_stored_event(self, controller):
        source = {"k": 1}
        controller.add_event(_timed("a", 9, metadata=source))
        source["k"] = 2

        returned = controller.get_events_for_day(date(2024, 1, 15))[0]
        with pytest.raises(TypeError):
            returned.metadata["k"] = 99
        with pytest.raises(TypeError):
            controller.events[0].metadata["extra"] = True

        stored = controller.get_event_by_id("a")
        assert stored.metadata == {"k": 1}
        assert stored.to_dict()["metadata"] == {"k": 1}
        assert stored.copy_with(metadata={**stored.metadata, "k": 3}).metadata == {"k": 3}
        assert controller.get_event_by_id("a").metadata["k"] == 1

    def test_candidate_cap_from_settings(self):
        settings = CalendarCoreSettings(_env_file=None, max_recurrence_candidates=5)
        controller = CalendarController(initial_date=date(2024, 1, 15), settings=settings)
        daily = CalendarEvent(
            id="daily",
            title="Daily",
            start=datetime(2024, 1, 1, 9, 0),
            end=datetime(2024, 1, 1, 10, 0),
            recurrence_rule=RecurrenceRule(frequency=RecurrenceFrequency.DAILY),
        )
        controller.add_event(daily)
        assert controller.has_events_on_day(date(2024, 1, 3))
        assert not controller.has_events_on_day(date(2024, 1, 20))


class TestHolidays:
    """Holiday collection and queries."""

    def test_add_and_remove(self, controller):
        controller.add_holiday(date(2024, 1, 1))
        controller.add_holiday(datetime(2024, 1, 1, 9, 0))
        controller.add_holidays([date(2024, 12, 25), date(2024, 1, 1), date(2024, 7, 4)])
        assert controller.holidays == [date(2024, 1, 1), date(2024, 12, 25), date(2024, 7, 4)]
        controller.remove_holiday(date(2024, 12, 25))
        assert not controller.is_holiday(date(2024, 12, 25))
        assert controller.is_holiday(datetime(2024, 7, 4, 15, 0))
        controller.clear_holidays()
        assert controller.holidays == []

    def test_set_holidays(self, controller):
        controller.add_holiday(date(2024, 5, 1))
        controller.set_holidays([date(2024, 1, 26), date(2024, 1, 1)])
        assert controller.holidays == [date(2024, 1, 26), date(2024, 1, 1)]

    def test_range_and_month_queries(self, controller):
        controller.set_holidays([date(2024, 1, 1), date(2024, 1, 26), date(2024, 2, 14)])
        assert controller.get_holidays_in_range(date(2024, 1, 26), date(2024, 2, 14)) == [
            date(2024, 1, 26),
            date(2024, 2, 14),
        ]
        assert controller.get_holidays_for_month() == [date(2024, 1, 1), date(2024, 1, 26)]

    def test_is_today_holiday(self, controller, frozen_now):
        assert not controller.is_today_holiday()
        controller.add_holiday(date(2024, 1, 15))
        assert controller.is_today_holiday()


class TestConfigurationAndUtilities:
    """Week start, weekend hiding and day helpers."""

    def test_set_week_start_day(self, controller):
        controller.set_week_start_day(7)
        assert controller.get_days_in_week()[0] == date(2024, 1, 14)
        with pytest.raises(ConfigurationError):
            controller.set_week_start_day(8)
        assert controller.week_start_day == 7

    def test_hide_weekends(self, controller):
        assert len(controller.get_days_in_week()) == 7
        controller.toggle_hide_weekends()
        assert controller.hide_weekends is True
        assert controller.get_days_in_week() == [date(2024, 1, d) for d in range(15, 20)]
        assert len(controller.get_visible_days()) == 25
        controller.set_hide_weekends(False)
        assert len(controller.get_visible_days()) == 35

    def test_day_helpers(self, controller, frozen_now):
        assert controller.is_today(datetime(2024, 1, 15, 20, 0))
        assert controller.is_in_focused_month(date(2024, 1, 31))
        assert not controller.is_in_focused_month(date(2024, 2, 1))
        assert controller.is_weekend(date(2024, 1, 20))
        assert not controller.is_weekend(date(2024, 1, 19))

    def test_formatted_month_year(self, controller):
        assert controller.get_formatted_month_year() == "January 2024"
        controller.jump_to_month_year(12, 2025)
        assert controller.get_formatted_month_year() == "December 2025"


class TestChangeNotification:
    """Listener registry and state snapshots."""

    def test_listener_receives_snapshot_after_update(self, controller):
        seen = []
        controller.add_listener(lambda state: seen.append(state))
        controller.select_day(date(2024, 1, 9))
        assert len(seen) == 1
        assert isinstance(seen[0], ControllerState)
        assert seen[0].selected_day == date(2024, 1, 9)
        assert seen[0].focused_day == date(2024, 1, 15)

    def test_one_notification_per_mutation(self, controller, timed_event):
        listener = Mock()
        controller.add_listener(listener)
        controller.add_events([timed_event, _timed("x", 10)])
        controller.set_holidays([date(2024, 1, 1)])
        controller.handle_range_tap(date(2024, 1, 2))
        assert listener.call_count == 3

    def test_unsubscribe(self, controller):
        listener = Mock()
        unsubscribe = controller.add_listener(listener)
        unsubscribe()
        controller.next_day()
        listener.assert_not_called()

    def test_remove_listener(self, controller):
        listener = Mock()
        controller.add_listener(listener)
        controller.remove_listener(listener)
        controller.remove_listener(listener)
        controller.next_day()
        listener.assert_not_called()

    def test_failing_listener_is_logged(self, controller, caplog):
        failing = Mock(side_effect=RuntimeError("boom"))
        healthy = Mock()
        controller.add_listener(failing)
        controller.add_listener(healthy)
        controller.next_day()
        assert controller.focused_day == date(2024, 1, 16)
        healthy.assert_called_once()
        assert "Error in calendar change listener" in caplog.text

    def test_state_snapshot_is_immutable(self, controller, timed_event):
        controller.add_event(timed_event)
        state = controller.state
        assert state.events == (timed_event,)
        with pytest.raises(ValidationError):
            state.focused_day = date(2025, 1, 1)
        controller.clear_events()
        assert state.events == (timed_event,)

    def test_dispose(self, controller, timed_event):
        listener = Mock()
        controller.add_listener(listener)
        controller.add_event(timed_event)
        controller.add_holiday(date(2024, 1, 1))
        listener.reset_mock()
        controller.dispose()
        assert controller.events == []
        assert controller.holidays == []
        controller.next_day()
        listener.assert_not_called()
