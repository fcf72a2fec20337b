"""Recurrence pattern matching for rule-based activities.

``matches`` answers whether a calendar date satisfies a recurrence rule. It is
a pure function: the scan helpers below call it once per candidate date.

Feb-29 anchors of YEARLY rules fall on Feb 28 in non-leap years.
"""

from __future__ import annotations

import calendar
import logging
from collections.abc import Mapping
from datetime import date, timedelta
from typing import Any

from pydantic import ValidationError

from agenda.models import WEEKDAY_CODES, DateRange, Frequency, RecurrenceRule

logger = logging.getLogger(__name__)

# Forward scans for the next occurrence give up after this many days.
NEXT_OCCURRENCE_HORIZON_DAYS = 366


def _coerce_rule(rule: RecurrenceRule | Mapping[str, Any]) -> RecurrenceRule | None:
    if isinstance(rule, RecurrenceRule):
        return rule
    try:
        return RecurrenceRule.model_validate(dict(rule))
    except (ValidationError, TypeError, ValueError):
        logger.debug("Ignoring malformed recurrence rule: %r", rule)
        return None


def weekday_code(day: date) -> str:
    """Two-letter RRULE weekday code (``MO``..``SU``) for *day*."""
    return WEEKDAY_CODES[day.weekday()]


def matches(
    day: date,
    rule: RecurrenceRule | Mapping[str, Any],
    recurrence_start: date,
    recurrence_end: date | None = None,
) -> bool:
    """Return True when *day* is an occurrence of *rule*.

    Dates before ``recurrence_start`` or after ``recurrence_end`` never match.
    A rule with an unrecognized frequency (or one that cannot be parsed at
    all) matches nothing instead of raising.
    """
    if day < recurrence_start:
        return False
    if recurrence_end is not None and day > recurrence_end:
        return False

    parsed = _coerce_rule(rule)
    if parsed is None:
        return False

    match parsed.frequency:
        case Frequency.DAILY:
            return _matches_daily(day, parsed, recurrence_start)
        case Frequency.WEEKLY:
            return _matches_weekly(day, parsed, recurrence_start)
        case Frequency.MONTHLY:
            return _matches_monthly(day, parsed, recurrence_start)
        case Frequency.YEARLY:
            return _matches_yearly(day, parsed, recurrence_start)
        case _:
            logger.debug("Unrecognized recurrence frequency %r", parsed.freq)
            return False


def _matches_daily(day: date, rule: RecurrenceRule, start: date) -> bool:
    return (day - start).days % rule.interval == 0


def _matches_weekly(day: date, rule: RecurrenceRule, start: date) -> bool:
    weeks_since_start = (day - start).days // 7
    if weeks_since_start % rule.interval != 0:
        return False
    if not rule.byday:
        return True
    return weekday_code(day) in rule.byday


def _matches_monthly(day: date, rule: RecurrenceRule, start: date) -> bool:
    months_since_start = (day.year - start.year) * 12 + (day.month - start.month)
    if months_since_start % rule.interval != 0:
        return False

    if rule.bymonthday:
        return day.day in rule.bymonthday

    if rule.byday and rule.bysetpos:
        if weekday_code(day) not in rule.byday:
            return False
        occurrence_in_month = (day.day - 1) // 7 + 1
        days_in_month = calendar.monthrange(day.year, day.month)[1]
        occurrence_from_end = -((days_in_month - day.day) // 7 + 1)
        for pos in rule.bysetpos:
            if pos > 0 and pos == occurrence_in_month:
                return True
            if pos < 0 and pos == occurrence_from_end:
                return True
        return False

    return True


def _matches_yearly(day: date, rule: RecurrenceRule, start: date) -> bool:
    if (day.year - start.year) % rule.interval != 0:
        return False
    if start.month == 2 and start.day == 29 and not calendar.isleap(day.year):
        return day.month == 2 and day.day == 28
    return day.month == start.month and day.day == start.day


def next_occurrence(
    after: date,
    rule: RecurrenceRule | Mapping[str, Any],
    recurrence_start: date,
    recurrence_end: date | None = None,
    *,
    horizon_days: int = NEXT_OCCURRENCE_HORIZON_DAYS,
) -> date | None:
    """First occurrence on or after *after*, or ``None`` within the horizon."""
    candidate = max(after, recurrence_start)
    limit = after + timedelta(days=horizon_days)
    if recurrence_end is not None:
        limit = min(limit, recurrence_end)
    while candidate <= limit:
        if matches(candidate, rule, recurrence_start, recurrence_end):
            return candidate
        candidate += timedelta(days=1)
    return None


def occurrences(
    date_range: DateRange,
    rule: RecurrenceRule | Mapping[str, Any],
    recurrence_start: date,
    recurrence_end: date | None = None,
) -> list[date]:
    """All dates in *date_range* that are occurrences of *rule*."""
    return [
        day
        for day in date_range.days()
        if matches(day, rule, recurrence_start, recurrence_end)
    ]
