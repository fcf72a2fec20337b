"""Per-policy suggestion generation.

Each schedule policy has one handler that turns an activity plus a date range
into zero or more candidate placements. Placement times are computed in the
user's timezone.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import date, datetime, time, timedelta, tzinfo
from typing import assert_never
from zoneinfo import ZoneInfo

from agenda.config import SchedulingOptions
from agenda.conflicts import normalize_datetime
from agenda.core.clock import Clock, SystemClock
from agenda.models import (
    Activity,
    Confidence,
    DateRange,
    SchedulePolicy,
    Suggestion,
    Urgency,
)
from agenda.recurrence import occurrences

logger = logging.getLogger(__name__)

DEFAULT_FLEXIBLE_FREQUENCY_DAYS = 7
EXERCISE_START_HOUR = 7
EVENING_START_HOUR = 19
DEADLINE_AFTERNOON_HOUR = 14

# Successive flexible occurrences shift by STAGGER_STEP, wrapping inside STAGGER_WINDOW.
STAGGER_STEP = timedelta(minutes=30)
STAGGER_WINDOW = timedelta(minutes=120)

WORK_KEYWORDS = frozenset({"work", "meeting", "meetings"})
EXERCISE_KEYWORDS = frozenset(
    {"walk", "walking", "exercise", "workout", "gym", "run", "running", "yoga", "swim"}
)
DEADLINE_WORK_KEYWORDS = frozenset({"work", "project"})

_WORD_PATTERN = re.compile(r"[a-z]+")


def _name_words(name: str) -> set[str]:
    return set(_WORD_PATTERN.findall(name.lower()))


def round_up_to_half_hour(value: datetime) -> datetime:
    """Smallest half-hour boundary at or after *value*."""
    floored = value.replace(minute=(value.minute // 30) * 30, second=0, microsecond=0)
    if floored < value:
        floored += timedelta(minutes=30)
    return floored


def earliest_start(now: datetime, buffer: timedelta, timezone: str | tzinfo) -> datetime:
    """``now + buffer`` in the user's timezone, rounded up to the next half hour."""
    return round_up_to_half_hour(normalize_datetime(now + buffer, timezone))


def _local_midnight(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time(0), tzinfo=tz)


class SuggestionGenerator:
    """Turns activities into candidate time slots for a date range.

    ``now`` is read from the injected clock on every call, so the
    "not earlier than now" bound for today's placements is never cached.
    """

    def __init__(
        self,
        timezone: str,
        options: SchedulingOptions | None = None,
        *,
        clock: Clock | None = None,
    ) -> None:
        self.timezone = timezone
        self.tz = ZoneInfo(timezone)
        self.options = options or SchedulingOptions()
        self.clock = clock or SystemClock()

    def generate_all(
        self, activities: Iterable[Activity], date_range: DateRange
    ) -> list[Suggestion]:
        suggestions: list[Suggestion] = []
        for activity in activities:
            suggestions.extend(self.generate(activity, date_range))
        return suggestions

    def generate(self, activity: Activity, date_range: DateRange) -> list[Suggestion]:
        policy = activity.schedule_type
        match policy:
            case SchedulePolicy.strict:
                return self.suggest_strict(activity, date_range)
            case SchedulePolicy.flexible:
                return self.suggest_flexible(activity, date_range)
            case SchedulePolicy.deadline:
                return self.suggest_deadline(activity, date_range)
            case SchedulePolicy.recurring_strict:
                return self.suggest_recurring(activity, date_range)
            case _:
                assert_never(policy)

    def _duration(self, activity: Activity) -> timedelta:
        return activity.duration or self.options.preferred_duration

    # ------------------------------------------------------------------
    # Strict
    # ------------------------------------------------------------------

    def suggest_strict(self, activity: Activity, date_range: DateRange) -> list[Suggestion]:
        if activity.start_at is None or activity.end_at is None:
            logger.debug("Strict activity %s has no fixed window", activity.activity_id)
            return []

        start_date = max(normalize_datetime(activity.start_at, self.tz).date(), date_range.start)
        end_date = min(normalize_datetime(activity.end_at, self.tz).date(), date_range.end)
        if start_date > end_date:
            return []

        return [
            Suggestion(
                activity=activity,
                title=activity.name,
                description=activity.description,
                start_at=activity.start_at,
                end_at=activity.end_at,
                schedule_type=SchedulePolicy.strict,
                confidence=Confidence.high,
                calendar_id=activity.calendar_id,
            )
        ]

    # ------------------------------------------------------------------
    # Flexible
    # ------------------------------------------------------------------

    def _flexible_base_hour(self, activity: Activity) -> int:
        words = _name_words(activity.name)
        if words & WORK_KEYWORDS:
            return self.options.work_hours_start
        if words & EXERCISE_KEYWORDS:
            return EXERCISE_START_HOUR
        return EVENING_START_HOUR

    def suggest_flexible(self, activity: Activity, date_range: DateRange) -> list[Suggestion]:
        frequency_days = activity.max_frequency_days or DEFAULT_FLEXIBLE_FREQUENCY_DAYS
        duration = self._duration(activity)
        base_hour = self._flexible_base_hour(activity)
        not_before = earliest_start(self.clock.now(), self.options.buffer_time, self.tz)

        suggestions: list[Suggestion] = []
        current = date_range.start
        offset = timedelta(0)
        while current <= date_range.end:
            if self.options.exclude_weekends and current.weekday() >= 5:
                current += timedelta(days=1)
                continue

            start_at = _local_midnight(current, self.tz) + timedelta(hours=base_hour) + offset
            if current == not_before.date() and start_at < not_before:
                start_at = not_before

            if start_at.date() == current and start_at >= not_before:
                suggestions.append(
                    Suggestion(
                        activity=activity,
                        title=activity.name,
                        description=activity.description,
                        start_at=start_at,
                        end_at=start_at + duration,
                        schedule_type=SchedulePolicy.flexible,
                        confidence=Confidence.medium,
                        frequency_note=f"Suggested every {frequency_days} days",
                        calendar_id=activity.calendar_id,
                    )
                )
            else:
                logger.debug(
                    "Skipping %s on %s: slot already passed", activity.name, current.isoformat()
                )

            current += timedelta(days=frequency_days)
            offset = (offset + STAGGER_STEP) % STAGGER_WINDOW

        return suggestions

    # ------------------------------------------------------------------
    # Deadline
    # ------------------------------------------------------------------

    def suggest_deadline(self, activity: Activity, date_range: DateRange) -> list[Suggestion]:
        if activity.deadline is None:
            logger.debug("Deadline activity %s has no deadline", activity.activity_id)
            return []

        now = self.clock.now()
        deadline_local = normalize_datetime(activity.deadline, self.tz)
        if deadline_local.date() not in date_range:
            return []

        remaining = deadline_local - now
        if remaining <= timedelta(days=2):
            days_before = 0
        elif remaining <= timedelta(weeks=1):
            days_before = 1
        else:
            days_before = 3

        scheduled_date = max(
            deadline_local.date() - timedelta(days=days_before), date_range.start
        )
        if _name_words(activity.name) & DEADLINE_WORK_KEYWORDS:
            hour = self.options.work_hours_start
        else:
            hour = DEADLINE_AFTERNOON_HOUR
        start_at = _local_midnight(scheduled_date, self.tz) + timedelta(hours=hour)
        duration = self._duration(activity)
        overdue = deadline_local < now
        if not overdue and start_at + duration > deadline_local:
            start_at = max(
                deadline_local - duration,
                _local_midnight(date_range.start, self.tz),
                earliest_start(now, self.options.buffer_time, self.tz),
            )

        deadline_line = f"Deadline: {deadline_local.strftime('%B %d, %Y at %I:%M %p')}"
        description = (
            f"{activity.description}\n\n{deadline_line}" if activity.description else deadline_line
        )
        return [
            Suggestion(
                activity=activity,
                title=f"Complete: {activity.name}",
                description=description,
                start_at=start_at,
                end_at=start_at + duration,
                schedule_type=SchedulePolicy.deadline,
                confidence=Confidence.high,
                urgency=Urgency.overdue if overdue else Urgency.upcoming,
                deadline=activity.deadline,
                calendar_id=activity.calendar_id,
            )
        ]

    # ------------------------------------------------------------------
    # Recurring strict
    # ------------------------------------------------------------------

    def suggest_recurring(self, activity: Activity, date_range: DateRange) -> list[Suggestion]:
        rule = activity.recurrence_rule
        if rule is None or activity.occurrence_time_start is None:
            logger.debug("Recurring activity %s lacks a rule or time", activity.activity_id)
            return []

        recurrence_start = activity.recurrence_start_date or date_range.start
        suggestions: list[Suggestion] = []
        for day in occurrences(date_range, rule, recurrence_start, activity.recurrence_end_date):
            start_at = datetime.combine(day, activity.occurrence_time_start, tzinfo=self.tz)
            if activity.occurrence_time_end is not None:
                end_at = datetime.combine(day, activity.occurrence_time_end, tzinfo=self.tz)
                if end_at <= start_at:
                    end_at += timedelta(days=1)
            else:
                end_at = start_at + self._duration(activity)
            suggestions.append(
                Suggestion(
                    activity=activity,
                    title=activity.name,
                    description=activity.description,
                    start_at=start_at,
                    end_at=end_at,
                    schedule_type=SchedulePolicy.recurring_strict,
                    confidence=Confidence.high,
                    calendar_id=activity.calendar_id,
                )
            )
        return suggestions
