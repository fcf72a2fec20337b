"""Typed records shared by the scheduling engine.

Activities and existing events arrive from external collaborators; suggestions
are produced by the generator and refined by the reconciler. None of these are
persisted here.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import date, datetime, time, timedelta
from enum import StrEnum
from typing import Any
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from agenda.config import validate_timezone

WEEKDAY_CODES = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")

_FREQUENCY_DESCRIPTIONS = {
    1: "Daily",
    30: "Monthly",
    60: "Every 2 months",
    90: "Every 3 months",
    180: "Every 6 months",
    365: "Yearly",
}


class SchedulePolicy(StrEnum):
    """How an activity wants to be placed on the calendar."""

    strict = "strict"
    flexible = "flexible"
    deadline = "deadline"
    recurring_strict = "recurring_strict"


class Confidence(StrEnum):
    high = "high"
    medium = "medium"
    low = "low"


class Urgency(StrEnum):
    overdue = "overdue"
    upcoming = "upcoming"


class Frequency(StrEnum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class RecurrenceRule(BaseModel):
    """RRULE-like description of repeating dates.

    ``freq`` is kept as a free string: an unknown frequency is not a
    validation error, the matcher simply never matches it.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    freq: str
    interval: int = Field(default=1, ge=1)
    byday: tuple[str, ...] = ()
    bymonthday: tuple[int, ...] = ()
    bysetpos: tuple[int, ...] = ()

    @field_validator("freq", mode="before")
    @classmethod
    def _normalize_freq(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("interval", mode="before")
    @classmethod
    def _default_interval(cls, value: Any) -> Any:
        return 1 if value is None else value

    @field_validator("byday", mode="before")
    @classmethod
    def _normalize_byday(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            value = value.split(",")
        return tuple(str(code).strip().upper()[:2] for code in value if str(code).strip())

    @field_validator("bymonthday", "bysetpos", mode="before")
    @classmethod
    def _normalize_int_list(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, (int, str)):
            value = str(value).split(",")
        return tuple(int(item) for item in value)

    @property
    def frequency(self) -> Frequency | None:
        """The recognized frequency, or ``None`` for an unknown one."""
        try:
            return Frequency(self.freq)
        except ValueError:
            return None

    @classmethod
    def from_rrule(cls, rrule: str) -> RecurrenceRule:
        """Parse an RFC 5545 ``RRULE:FREQ=...;INTERVAL=...`` string.

        Only FREQ, INTERVAL, BYDAY, BYMONTHDAY and BYSETPOS are read; other
        parts are ignored.
        """
        body = rrule.strip()
        if body.upper().startswith("RRULE:"):
            body = body[len("RRULE:") :]
        parts: dict[str, str] = {}
        for chunk in body.split(";"):
            if not chunk.strip():
                continue
            key, sep, value = chunk.partition("=")
            if not sep:
                raise ValueError(f"Malformed RRULE component: {chunk!r}")
            parts[key.strip().upper()] = value.strip()
        if "FREQ" not in parts:
            raise ValueError("recurrence rules must include a FREQ component")
        return cls(
            freq=parts["FREQ"],
            interval=int(parts.get("INTERVAL", 1)),
            byday=parts.get("BYDAY"),
            bymonthday=parts.get("BYMONTHDAY"),
            bysetpos=parts.get("BYSETPOS"),
        )


class DateRange(BaseModel):
    """Inclusive range of calendar dates."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @model_validator(mode="after")
    def _validate_order(self) -> DateRange:
        if self.end < self.start:
            raise ValueError("end must not be before start")
        return self

    @classmethod
    def upcoming(cls, today: date, days: int = 14) -> DateRange:
        """``today`` through ``today + days``."""
        return cls(start=today, end=today + timedelta(days=days))

    def __contains__(self, item: object) -> bool:
        if isinstance(item, datetime):
            item = item.date()
        if not isinstance(item, date):
            return False
        return self.start <= item <= self.end

    def days(self) -> Iterator[date]:
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)


class Activity(BaseModel):
    """A user-owned schedulable item.

    Only the fields relevant to ``schedule_type`` are expected to be set;
    upstream validation owns that rule.
    """

    model_config = ConfigDict(extra="ignore")

    activity_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str | None = None
    schedule_type: SchedulePolicy
    # strict
    start_at: datetime | None = None
    end_at: datetime | None = None
    # flexible
    max_frequency_days: int | None = Field(default=None, ge=1)
    # deadline
    deadline: datetime | None = None
    # recurring_strict
    recurrence_rule: RecurrenceRule | None = None
    recurrence_start_date: date | None = None
    recurrence_end_date: date | None = None
    occurrence_time_start: time | None = None
    occurrence_time_end: time | None = None

    duration_minutes: int | None = Field(default=None, ge=1)
    calendar_id: str | None = None

    @field_validator("recurrence_rule", mode="before")
    @classmethod
    def _parse_rrule_string(cls, value: Any) -> Any:
        if isinstance(value, str):
            return RecurrenceRule.from_rrule(value)
        return value

    def is_expired(self, now: datetime) -> bool:
        return self.deadline is not None and self.deadline < now

    @property
    def duration(self) -> timedelta | None:
        if self.duration_minutes is None:
            return None
        return timedelta(minutes=self.duration_minutes)

    @property
    def max_frequency_description(self) -> str:
        if self.max_frequency_days is None:
            return "Never repeat"
        return _FREQUENCY_DESCRIPTIONS.get(
            self.max_frequency_days, f"Every {self.max_frequency_days} days"
        )


class ExistingEvent(BaseModel):
    """A pre-existing, time-blocked calendar commitment."""

    model_config = ConfigDict(frozen=True)

    summary: str = "Busy"
    start_at: datetime
    end_at: datetime
    calendar_id: str | None = None
    calendar_name: str | None = None

    @field_validator("summary", mode="before")
    @classmethod
    def _default_summary(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return "Busy"
        return value

    @field_validator("start_at", "end_at")
    @classmethod
    def _require_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError("existing event boundaries must be timezone-aware")
        return value


class Suggestion(BaseModel):
    """A candidate placement of an activity within the requested range."""

    activity: Activity
    title: str
    description: str | None = None
    start_at: datetime
    end_at: datetime
    schedule_type: SchedulePolicy
    confidence: Confidence
    notes: list[str] = Field(default_factory=list)
    has_conflict: bool = False
    conflict_avoided: bool = False
    urgency: Urgency | None = None
    deadline: datetime | None = None
    frequency_note: str | None = None
    calendar_id: str | None = None

    @property
    def duration(self) -> timedelta:
        return self.end_at - self.start_at

    @property
    def is_urgent(self) -> bool:
        return self.urgency in (Urgency.overdue, Urgency.upcoming)


class UserContext(BaseModel):
    """The user a scheduling run is computed for."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    timezone: str | None = None

    def require_timezone(self) -> ZoneInfo:
        """Return the user's zone; a missing or unknown zone is a ``ConfigError``."""
        return ZoneInfo(validate_timezone(self.timezone))


__all__ = [
    "WEEKDAY_CODES",
    "Activity",
    "Confidence",
    "DateRange",
    "ExistingEvent",
    "Frequency",
    "RecurrenceRule",
    "SchedulePolicy",
    "Suggestion",
    "Urgency",
    "UserContext",
]
