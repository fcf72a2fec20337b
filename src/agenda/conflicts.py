"""Interval overlap checks between timezone-normalized instants."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, tzinfo
from typing import Protocol, TypeVar
from zoneinfo import ZoneInfo

from agenda.models import DateRange


class TimeBlock(Protocol):
    @property
    def start_at(self) -> datetime: ...

    @property
    def end_at(self) -> datetime: ...


BlockT = TypeVar("BlockT", bound=TimeBlock)


def _zone(timezone: str | tzinfo) -> tzinfo:
    return ZoneInfo(timezone) if isinstance(timezone, str) else timezone


def normalize_datetime(value: datetime, timezone: str | tzinfo) -> datetime:
    """Express *value* in *timezone*; naive values are taken as already local."""
    tz = _zone(timezone)
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def intervals_overlap(
    a_start: datetime,
    a_end: datetime,
    b_start: datetime,
    b_end: datetime,
) -> bool:
    """Half-open ``[a_start, a_end)`` and ``[b_start, b_end)`` intersect.

    Intervals that only touch (one ends exactly when the other starts) do not.
    """
    return a_start < b_end and a_end > b_start


def find_conflicts(
    start_at: datetime,
    end_at: datetime,
    blockers: Iterable[BlockT],
    timezone: str | tzinfo,
) -> list[BlockT]:
    """Blockers overlapping ``[start_at, end_at)``, compared in *timezone*."""
    tz = _zone(timezone)
    start = normalize_datetime(start_at, tz)
    end = normalize_datetime(end_at, tz)
    return [
        blocker
        for blocker in blockers
        if intervals_overlap(
            start,
            end,
            normalize_datetime(blocker.start_at, tz),
            normalize_datetime(blocker.end_at, tz),
        )
    ]


def has_conflict(
    start_at: datetime,
    end_at: datetime,
    blockers: Iterable[TimeBlock],
    timezone: str | tzinfo,
) -> bool:
    return bool(find_conflicts(start_at, end_at, blockers, timezone))


def falls_within_range(
    start_at: datetime,
    end_at: datetime,
    date_range: DateRange,
    timezone: str | tzinfo,
) -> bool:
    """Whether ``[start_at, end_at]`` touches any local date of *date_range*."""
    tz = _zone(timezone)
    return (
        normalize_datetime(start_at, tz).date() <= date_range.end
        and normalize_datetime(end_at, tz).date() >= date_range.start
    )
