"""Shared fixtures for the agenda test suite.

All scenarios run in America/Los_Angeles during June 2026 (no DST switch);
2026-06-01 is a Monday and the frozen clock starts at 08:00 local time.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

import pytest
from _test_helpers import TZ_NAME, june

from agenda.config import SchedulingOptions
from agenda.core.clock import FrozenClock
from agenda.models import Activity, ExistingEvent, SchedulePolicy, Suggestion
from agenda.reconciler import ScheduleReconciler
from agenda.suggestions import SuggestionGenerator


@pytest.fixture
def tz_name() -> str:
    return TZ_NAME


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(june(1, 8))


@pytest.fixture
def options() -> SchedulingOptions:
    return SchedulingOptions()


@pytest.fixture
def generator(clock: FrozenClock, options: SchedulingOptions) -> SuggestionGenerator:
    return SuggestionGenerator(TZ_NAME, options, clock=clock)


@pytest.fixture
def reconciler(clock: FrozenClock) -> ScheduleReconciler:
    return ScheduleReconciler(TZ_NAME, clock=clock)


@pytest.fixture
def make_activity() -> Callable[..., Activity]:
    counter = iter(range(1, 10_000))

    def _make(name: str, schedule_type: SchedulePolicy | str, **fields: Any) -> Activity:
        return Activity(
            activity_id=fields.pop("activity_id", f"act-{next(counter)}"),
            name=name,
            schedule_type=schedule_type,
            **fields,
        )

    return _make


@pytest.fixture
def make_event() -> Callable[..., ExistingEvent]:
    def _make(
        start_at: datetime,
        end_at: datetime,
        summary: str = "Busy",
        calendar_id: str = "primary",
        calendar_name: str = "Personal",
    ) -> ExistingEvent:
        return ExistingEvent(
            summary=summary,
            start_at=start_at,
            end_at=end_at,
            calendar_id=calendar_id,
            calendar_name=calendar_name,
        )

    return _make


@pytest.fixture
def make_suggestion(make_activity) -> Callable[..., Suggestion]:
    def _make(
        title: str,
        start_at: datetime,
        end_at: datetime,
        schedule_type: SchedulePolicy = SchedulePolicy.flexible,
        **fields: Any,
    ) -> Suggestion:
        confidence = fields.pop(
            "confidence", "medium" if schedule_type is SchedulePolicy.flexible else "high"
        )
        return Suggestion(
            activity=fields.pop("activity", None) or make_activity(title, schedule_type),
            title=title,
            start_at=start_at,
            end_at=end_at,
            schedule_type=schedule_type,
            confidence=confidence,
            **fields,
        )

    return _make
