"""Recurrence expansion and RRULE string codec for calendarcore.

The expander walks a cursor forward from the series anchor, one frequency step
at a time, accepting the cursor whenever it satisfies every active filter.
Each cursor advance counts as one candidate; ``max_candidates`` bounds the
total work so that rules whose filters can never be met still terminate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta

from calendarcore.calendar.decoding import coerce_enum, coerce_int, coerce_int_set
from calendarcore.calendar.enums import RecurrenceFrequency
from calendarcore.calendar.recurrence import (
    CountEnd,
    NeverEnd,
    RecurrenceRule,
    UntilEnd,
)
from calendarcore.core.date_utils import DateLike, add_months, add_years, as_datetime, parse_civil_datetime
from calendarcore.core.exceptions import RRuleParseError

logger = logging.getLogger(__name__)

DEFAULT_MAX_CANDIDATES = 1000

# Weekly rules with BYDAY scan at most four weeks ahead for the next weekday
WEEKLY_SCAN_LIMIT_DAYS = 7 * 4

RRULE_WEEKDAYS = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")


@dataclass(frozen=True)
class OccurrenceExpansion:
    """Result of a bounded expansion.

    Attributes:
        occurrences: Accepted dates inside the query window, ascending
        truncated: True when the candidate cap stopped the walk before the
            window end or the rule's end condition was reached
        candidates_examined: Number of cursor advances performed
    """

    occurrences: tuple[datetime, ...] = field(default_factory=tuple)
    truncated: bool = False
    candidates_examined: int = 0


def next_cursor(rule: RecurrenceRule, cursor: datetime) -> datetime:
    """Advance the cursor by one frequency step.

    - daily: ``interval`` days
    - weekly with BYDAY: next day whose weekday is in the set (interval unused)
    - weekly: ``7 * interval`` days
    - monthly: ``interval`` months; BYMONTHDAY forces its smallest day; the day
      clamps to the end of the destination month
    - yearly: ``interval`` years; Feb 29 clamps to Feb 28
    """
    if rule.frequency is RecurrenceFrequency.DAILY:
        return cursor + timedelta(days=rule.interval)

    if rule.frequency is RecurrenceFrequency.WEEKLY:
        if rule.by_week_day:
            candidate = cursor + timedelta(days=1)
            for _ in range(WEEKLY_SCAN_LIMIT_DAYS):
                if candidate.isoweekday() in rule.by_week_day:
                    return candidate
                candidate += timedelta(days=1)
            return candidate
        return cursor + timedelta(weeks=rule.interval)

    if rule.frequency is RecurrenceFrequency.MONTHLY:
        if rule.by_month_day:
            # relativedelta(day=N) clamps N to the last day of the month
            return cursor + relativedelta(months=rule.interval, day=rule.by_month_day[0])
        return add_months(cursor, rule.interval)

    return add_years(cursor, rule.interval)


def expand_occurrences(
    rule: RecurrenceRule,
    anchor: DateLike,
    range_start: DateLike,
    range_end: DateLike,
    max_candidates: int = DEFAULT_MAX_CANDIDATES,
) -> OccurrenceExpansion:
    """Expand ``rule`` from ``anchor`` into the half-open window ``[range_start, range_end)``.

    A cursor equal to ``range_start`` is included, one equal to ``range_end``
    is not. A count end condition counts every filter match from the anchor
    on, including matches before the window, so a series has the same members
    whatever window is queried.

    Args:
        rule: Recurrence rule to expand
        anchor: First cursor position (the series start)
        range_start: Inclusive lower bound of the window
        range_end: Exclusive upper bound of the window
        max_candidates: Hard cap on cursor advances

    Returns:
        OccurrenceExpansion with the accepted dates and a truncation flag
    """
    cursor = as_datetime(anchor)
    window_start = as_datetime(range_start)
    window_end = as_datetime(range_end)
    end_condition = rule.end_condition

    occurrences: list[datetime] = []
    matched = 0
    candidates = 0
    truncated = False

    while cursor < window_end:
        if candidates >= max_candidates:
            truncated = True
            break
        if isinstance(end_condition, UntilEnd) and cursor > end_condition.until:
            break
        if isinstance(end_condition, CountEnd) and matched >= end_condition.count:
            break

        if rule.matches(cursor):
            matched += 1
            if cursor >= window_start:
                occurrences.append(cursor)

        cursor = next_cursor(rule, cursor)
        candidates += 1

    if truncated:
        logger.debug(
            "Recurrence expansion of %s stopped at candidate cap %d (cursor=%s, window_end=%s)",
            rule.to_rrule(),
            max_candidates,
            cursor,
            window_end,
        )

    return OccurrenceExpansion(
        occurrences=tuple(occurrences),
        truncated=truncated,
        candidates_examined=candidates,
    )


def generate_occurrences(
    rule: RecurrenceRule,
    anchor: DateLike,
    range_start: DateLike,
    range_end: DateLike,
    max_candidates: int = DEFAULT_MAX_CANDIDATES,
) -> list[datetime]:
    """Ordered occurrences of ``rule`` in ``[range_start, range_end)``.

    Silently bounded by ``max_candidates``; use ``expand_occurrences`` to learn
    whether the cap was hit.
    """
    return list(expand_occurrences(rule, anchor, range_start, range_end, max_candidates).occurrences)


def _format_rrule_date(value: datetime) -> str:
    return value.strftime("%Y%m%dT%H%M%S")


def format_rrule(rule: RecurrenceRule) -> str:
    """Convert a rule to an RRULE-style string.

    INTERVAL is omitted when 1. UNTIL is written as a floating local time
    (no trailing Z) because all dates are civil dates.

    Example output: "FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE,FR;COUNT=10"
    """
    parts = [f"FREQ={rule.frequency.value.upper()}"]

    if rule.interval > 1:
        parts.append(f"INTERVAL={rule.interval}")
    if rule.by_week_day:
        parts.append("BYDAY=" + ",".join(RRULE_WEEKDAYS[day - 1] for day in rule.by_week_day))
    if rule.by_month_day:
        parts.append("BYMONTHDAY=" + ",".join(str(day) for day in rule.by_month_day))
    if rule.by_month:
        parts.append("BYMONTH=" + ",".join(str(month) for month in rule.by_month))

    if isinstance(rule.end_condition, UntilEnd):
        parts.append(f"UNTIL={_format_rrule_date(rule.end_condition.until)}")
    elif isinstance(rule.end_condition, CountEnd):
        parts.append(f"COUNT={rule.end_condition.count}")

    return ";".join(parts)


def _parse_byday(value: str) -> list[int]:
    days: list[int] = []
    for token in value.split(","):
        token = token.strip().upper()
        # Ordinal prefixes ("1MO", "-1FR") are not supported; keep the weekday
        weekday = token.lstrip("+-0123456789")
        if weekday != token:
            logger.debug("Ignoring ordinal prefix in BYDAY token %r", token)
        if weekday in RRULE_WEEKDAYS:
            days.append(RRULE_WEEKDAYS.index(weekday) + 1)
        elif token:
            logger.warning("Dropping unknown BYDAY token %r", token)
    return days


def parse_rrule(rrule_string: str) -> RecurrenceRule:
    """Parse an RRULE-style string into a RecurrenceRule.

    Tolerant by design of the structural codec: an unknown or missing FREQ
    falls back to daily, a bad INTERVAL to 1, unknown BYDAY tokens are dropped,
    an unparseable UNTIL means never ends, and unsupported keys (BYSETPOS,
    BYHOUR, WKST, ...) are ignored. When both COUNT and UNTIL are present,
    COUNT wins.

    Args:
        rrule_string: e.g. "FREQ=WEEKLY;INTERVAL=1;BYDAY=MO" (optional "RRULE:" prefix)

    Returns:
        Parsed rule

    Raises:
        RRuleParseError: If the string is empty or has no KEY=VALUE parts
    """
    if not rrule_string or not rrule_string.strip():
        raise RRuleParseError("Empty RRULE string")

    text = rrule_string.strip()
    if text.upper().startswith("RRULE:"):
        text = text[len("RRULE:"):]

    components: dict[str, str] = {}
    for part in text.split(";"):
        if "=" not in part:
            continue
        key, value = part.split("=", 1)
        components[key.strip().upper()] = value.strip()

    if not components:
        raise RRuleParseError(f"Invalid RRULE format: {rrule_string}")

    if "FREQ" not in components:
        logger.warning("RRULE %r missing FREQ; using DAILY", rrule_string)
    frequency = coerce_enum(
        RecurrenceFrequency, components.get("FREQ"), RecurrenceFrequency.DAILY, "FREQ"
    )

    interval = coerce_int(components.get("INTERVAL"), 1, "INTERVAL")
    if interval < 1:
        logger.warning("RRULE INTERVAL %d is not positive; using 1", interval)
        interval = 1

    by_week_day: Optional[list[int]] = None
    if "BYDAY" in components:
        by_week_day = _parse_byday(components["BYDAY"])

    end_condition: NeverEnd | UntilEnd | CountEnd = NeverEnd()
    if "COUNT" in components:
        count = coerce_int(components["COUNT"], 1, "COUNT")
        end_condition = CountEnd(count=max(count, 1))
        if "UNTIL" in components:
            logger.warning("RRULE %r has both COUNT and UNTIL; using COUNT", rrule_string)
    elif "UNTIL" in components:
        until = parse_civil_datetime(components["UNTIL"])
        if until is None:
            logger.warning("Unparseable RRULE UNTIL %r; treating as never", components["UNTIL"])
        else:
            end_condition = UntilEnd(until=until)

    ignored = set(components) - {"FREQ", "INTERVAL", "BYDAY", "BYMONTHDAY", "BYMONTH", "COUNT", "UNTIL"}
    if ignored:
        logger.debug("Ignoring unsupported RRULE parts: %s", ", ".join(sorted(ignored)))

    return RecurrenceRule(
        frequency=frequency,
        interval=interval,
        by_week_day=by_week_day,
        by_month_day=coerce_int_set(components.get("BYMONTHDAY"), 1, 31, "BYMONTHDAY"),
        by_month=coerce_int_set(components.get("BYMONTH"), 1, 12, "BYMONTH"),
        end_condition=end_condition,
    )
