"""Unit tests for per-policy suggestion generation."""

from __future__ import annotations

from datetime import UTC, date, time, timedelta
from zoneinfo import ZoneInfo

import pytest
from _test_helpers import TZ_NAME, june, local

from agenda.config import SchedulingOptions
from agenda.core.clock import FrozenClock
from agenda.models import Confidence, DateRange, SchedulePolicy, Urgency
from agenda.suggestions import SuggestionGenerator, earliest_start, round_up_to_half_hour

pytestmark = pytest.mark.unit


def _range(first: int, last: int) -> DateRange:
    return DateRange(start=date(2026, 6, first), end=date(2026, 6, last))


class TestTimeHelpers:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (june(1, 8), june(1, 8)),
            (june(1, 8, 1), june(1, 8, 30)),
            (june(1, 8, 30), june(1, 8, 30)),
            (june(1, 8, 45), june(1, 9)),
            (june(1, 23, 45), june(2)),
        ],
    )
    def test_round_up_to_half_hour(self, value, expected):
        assert round_up_to_half_hour(value) == expected

    def test_earliest_start_applies_buffer_in_user_timezone(self):
        utc_now = june(1, 8).astimezone(UTC)
        result = earliest_start(utc_now, timedelta(minutes=15), TZ_NAME)
        assert result == june(1, 8, 30)


class TestStrict:
    def test_inside_range_keeps_exact_window(self, generator, make_activity):
        activity = make_activity(
            "Dentist", "strict", start_at=june(3, 10), end_at=june(3, 11)
        )
        [suggestion] = generator.generate(activity, _range(1, 7))
        assert suggestion.start_at == june(3, 10)
        assert suggestion.end_at == june(3, 11)
        assert suggestion.confidence is Confidence.high
        assert suggestion.schedule_type is SchedulePolicy.strict

    def test_outside_range_yields_nothing(self, generator, make_activity):
        activity = make_activity(
            "Dentist", "strict", start_at=june(3, 10), end_at=june(3, 11)
        )
        assert generator.generate(activity, _range(10, 14)) == []

    def test_missing_window_yields_nothing(self, generator, make_activity):
        activity = make_activity("Dentist", "strict", start_at=june(3, 10))
        assert generator.generate(activity, _range(1, 7)) == []


class TestFlexible:
    def test_spaced_by_frequency_with_stagger(self, generator, make_activity):
        activity = make_activity("Read book", "flexible", max_frequency_days=7)
        suggestions = generator.generate(activity, _range(2, 15))
        assert [s.start_at for s in suggestions] == [june(2, 19), june(9, 19, 30)]
        assert all(s.end_at - s.start_at == timedelta(hours=1) for s in suggestions)
        assert all(s.confidence is Confidence.medium for s in suggestions)
        assert suggestions[0].frequency_note == "Suggested every 7 days"

    def test_default_frequency_is_weekly(self, generator, make_activity):
        activity = make_activity("Read book", "flexible")
        suggestions = generator.generate(activity, _range(2, 15))
        assert len(suggestions) == 2

    def test_work_activities_start_at_work_hours(self, generator, make_activity):
        activity = make_activity("Work review", "flexible", max_frequency_days=30)
        [suggestion] = generator.generate(activity, _range(2, 3))
        assert suggestion.start_at == june(2, 9)

    def test_exercise_activities_start_in_the_morning(self, generator, make_activity):
        activity = make_activity("Morning walk", "flexible", max_frequency_days=30)
        [suggestion] = generator.generate(activity, _range(2, 3))
        assert suggestion.start_at == june(2, 7)

    def test_keywords_match_whole_words(self, generator, make_activity):
        activity = make_activity("Homework catch-up", "flexible", max_frequency_days=30)
        [suggestion] = generator.generate(activity, _range(2, 3))
        assert suggestion.start_at == june(2, 19)

    def test_activity_duration_overrides_preference(self, generator, make_activity):
        activity = make_activity(
            "Read book", "flexible", max_frequency_days=30, duration_minutes=25
        )
        [suggestion] = generator.generate(activity, _range(2, 3))
        assert suggestion.end_at == june(2, 19, 25)

    def test_weekends_are_skipped_when_excluded(self, clock, make_activity):
        generator = SuggestionGenerator(
            TZ_NAME, SchedulingOptions(exclude_weekends=True), clock=clock
        )
        activity = make_activity("Read book", "flexible", max_frequency_days=7)
        suggestions = generator.generate(activity, _range(6, 14))
        assert [s.start_at for s in suggestions] == [june(8, 19)]

    def test_today_never_starts_before_now_plus_buffer(self, make_activity):
        generator = SuggestionGenerator(TZ_NAME, clock=FrozenClock(june(1, 18, 50)))
        activity = make_activity("Read book", "flexible", max_frequency_days=30)
        [suggestion] = generator.generate(activity, _range(1, 3))
        assert suggestion.start_at == june(1, 19, 30)

    def test_day_already_over_is_skipped(self, make_activity):
        generator = SuggestionGenerator(TZ_NAME, clock=FrozenClock(june(1, 23, 50)))
        activity = make_activity("Read book", "flexible", max_frequency_days=1)
        suggestions = generator.generate(activity, _range(1, 2))
        assert [s.start_at for s in suggestions] == [june(2, 19, 30)]

    def test_past_days_are_skipped(self, make_activity):
        generator = SuggestionGenerator(TZ_NAME, clock=FrozenClock(june(3, 8)))
        activity = make_activity("Read book", "flexible", max_frequency_days=1)
        suggestions = generator.generate(activity, _range(1, 4))
        assert [s.start_at.date() for s in suggestions] == [date(2026, 6, 3), date(2026, 6, 4)]


class TestDeadline:
    def test_far_deadline_is_worked_three_days_early(self, generator, make_activity):
        activity = make_activity("Taxes", "deadline", deadline=june(12, 17))
        [suggestion] = generator.generate(activity, _range(1, 15))
        assert suggestion.start_at == june(9, 14)
        assert suggestion.title == "Complete: Taxes"
        assert suggestion.urgency is Urgency.upcoming
        assert suggestion.is_urgent
        assert suggestion.confidence is Confidence.high
        assert suggestion.deadline == june(12, 17)
        assert "Deadline: June 12, 2026 at 05:00 PM" in suggestion.description

    def test_description_is_kept_above_deadline_line(self, generator, make_activity):
        activity = make_activity(
            "Taxes", "deadline", deadline=june(12, 17), description="Federal and state"
        )
        [suggestion] = generator.generate(activity, _range(1, 15))
        assert suggestion.description.startswith("Federal and state\n\nDeadline:")

    def test_deadline_within_a_week_is_worked_the_day_before(self, generator, make_activity):
        activity = make_activity("Taxes", "deadline", deadline=june(5, 17))
        [suggestion] = generator.generate(activity, _range(1, 15))
        assert suggestion.start_at == june(4, 14)

    def test_imminent_deadline_ends_before_it_is_due(self, generator, make_activity):
        activity = make_activity("Taxes", "deadline", deadline=june(2, 12))
        [suggestion] = generator.generate(activity, _range(1, 15))
        assert suggestion.start_at == june(2, 11)
        assert suggestion.end_at == june(2, 12)

    def test_pull_back_stays_inside_range(self, generator, make_activity):
        activity = make_activity("Taxes", "deadline", deadline=june(3, 0, 30))
        window = _range(3, 5)
        [suggestion] = generator.generate(activity, window)
        assert suggestion.start_at == june(3)
        assert suggestion.start_at.date() in window

    def test_pull_back_never_starts_before_now(self, generator, make_activity):
        activity = make_activity("Taxes", "deadline", deadline=june(1, 9))
        [suggestion] = generator.generate(activity, _range(1, 3))
        assert suggestion.start_at == june(1, 8, 30)
        assert suggestion.urgency is Urgency.upcoming

    def test_project_deadlines_use_work_hours(self, generator, make_activity):
        activity = make_activity("Project report", "deadline", deadline=june(12, 17))
        [suggestion] = generator.generate(activity, _range(1, 15))
        assert suggestion.start_at == june(9, 9)

    def test_overdue_deadline_is_flagged(self, generator, make_activity):
        activity = make_activity("Taxes", "deadline", deadline=june(1, 7))
        window = DateRange(start=date(2026, 5, 30), end=date(2026, 6, 5))
        [suggestion] = generator.generate(activity, window)
        assert suggestion.urgency is Urgency.overdue
        assert suggestion.start_at == june(1, 14)

    def test_work_day_is_clipped_to_range_start(self, generator, make_activity):
        activity = make_activity("Taxes", "deadline", deadline=june(12, 17))
        [suggestion] = generator.generate(activity, _range(10, 14))
        assert suggestion.start_at == june(10, 14)

    def test_deadline_outside_range_yields_nothing(self, generator, make_activity):
        activity = make_activity("Taxes", "deadline", deadline=june(20, 17))
        assert generator.generate(activity, _range(1, 15)) == []

    def test_deadline_in_other_timezone_is_localized(self, generator, make_activity):
        # 2026-06-13 02:00 in New York is still June 12 in Los Angeles.
        deadline = local(2026, 6, 13, 2).replace(tzinfo=ZoneInfo("America/New_York"))
        activity = make_activity("Taxes", "deadline", deadline=deadline)
        [suggestion] = generator.generate(activity, _range(1, 12))
        assert suggestion.start_at == june(9, 14)


class TestRecurring:
    def test_weekly_rule_places_each_matching_day(self, generator, make_activity):
        activity = make_activity(
            "Choir",
            "recurring_strict",
            recurrence_rule="RRULE:FREQ=WEEKLY;BYDAY=MO,WE",
            recurrence_start_date=date(2026, 6, 1),
            occurrence_time_start=time(18),
            occurrence_time_end=time(19),
        )
        suggestions = generator.generate(activity, _range(1, 7))
        assert [(s.start_at, s.end_at) for s in suggestions] == [
            (june(1, 18), june(1, 19)),
            (june(3, 18), june(3, 19)),
        ]
        assert all(s.confidence is Confidence.high for s in suggestions)

    def test_window_crossing_midnight_ends_next_day(self, generator, make_activity):
        activity = make_activity(
            "Night shift",
            "recurring_strict",
            recurrence_rule={"freq": "DAILY"},
            occurrence_time_start=time(22),
            occurrence_time_end=time(1),
        )
        suggestions = generator.generate(activity, _range(1, 1))
        assert [(s.start_at, s.end_at) for s in suggestions] == [(june(1, 22), june(2, 1))]

    def test_missing_end_time_uses_duration(self, generator, make_activity):
        activity = make_activity(
            "Standup",
            "recurring_strict",
            recurrence_rule={"freq": "DAILY"},
            occurrence_time_start=time(9),
            duration_minutes=15,
        )
        [suggestion] = generator.generate(activity, _range(2, 2))
        assert suggestion.end_at == june(2, 9, 15)

    def test_missing_rule_yields_nothing(self, generator, make_activity):
        activity = make_activity(
            "Choir", "recurring_strict", occurrence_time_start=time(18)
        )
        assert generator.generate(activity, _range(1, 7)) == []


def test_generate_all_concatenates_in_input_order(generator, make_activity):
    activities = [
        make_activity("Taxes", "deadline", deadline=june(5, 17)),
        make_activity("Dentist", "strict", start_at=june(3, 10), end_at=june(3, 11)),
    ]
    suggestions = generator.generate_all(activities, _range(1, 7))
    assert [s.title for s in suggestions] == ["Complete: Taxes", "Dentist"]
