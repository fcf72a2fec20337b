"""Read-only agenda view unifying existing events and suggestions."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import StrEnum
from typing import Any
from zoneinfo import ZoneInfo

from agenda.conflicts import normalize_datetime
from agenda.models import (
    Activity,
    Confidence,
    DateRange,
    ExistingEvent,
    Suggestion,
    Urgency,
)

EXISTING_EVENT_TYPE = "existing"


class AgendaEventSource(StrEnum):
    calendar = "calendar"
    suggestion = "suggestion"


@dataclass(frozen=True)
class AgendaEvent:
    """One agenda row: an existing event or a suggestion, in the user's timezone."""

    source: AgendaEventSource
    item: ExistingEvent | Suggestion
    timezone: ZoneInfo

    @classmethod
    def from_existing(cls, event: ExistingEvent, timezone: ZoneInfo) -> AgendaEvent:
        return cls(source=AgendaEventSource.calendar, item=event, timezone=timezone)

    @classmethod
    def from_suggestion(cls, suggestion: Suggestion, timezone: ZoneInfo) -> AgendaEvent:
        return cls(source=AgendaEventSource.suggestion, item=suggestion, timezone=timezone)

    @property
    def is_existing(self) -> bool:
        return self.source is AgendaEventSource.calendar

    @property
    def is_suggestion(self) -> bool:
        return self.source is AgendaEventSource.suggestion

    @property
    def suggestion(self) -> Suggestion | None:
        return self.item if isinstance(self.item, Suggestion) else None

    @property
    def title(self) -> str:
        if isinstance(self.item, ExistingEvent):
            return self.item.summary
        return self.item.title

    @property
    def start_at(self) -> datetime:
        return normalize_datetime(self.item.start_at, self.timezone)

    @property
    def end_at(self) -> datetime:
        return normalize_datetime(self.item.end_at, self.timezone)

    @property
    def duration(self) -> timedelta:
        return self.end_at - self.start_at

    @property
    def type(self) -> str:
        """``existing`` for calendar events, otherwise the schedule policy."""
        if isinstance(self.item, ExistingEvent):
            return EXISTING_EVENT_TYPE
        return str(self.item.schedule_type)

    @property
    def confidence(self) -> Confidence | None:
        return self.suggestion.confidence if self.suggestion else None

    @property
    def urgency(self) -> Urgency | None:
        return self.suggestion.urgency if self.suggestion else None

    @property
    def frequency_note(self) -> str | None:
        return self.suggestion.frequency_note if self.suggestion else None

    @property
    def notes(self) -> list[str]:
        return list(self.suggestion.notes) if self.suggestion else []

    @property
    def has_conflict(self) -> bool:
        return bool(self.suggestion and self.suggestion.has_conflict)

    @property
    def conflict_avoided(self) -> bool:
        return bool(self.suggestion and self.suggestion.conflict_avoided)

    @property
    def activity(self) -> Activity | None:
        return self.suggestion.activity if self.suggestion else None

    @property
    def calendar_id(self) -> str | None:
        return self.item.calendar_id

    @property
    def calendar_name(self) -> str | None:
        if isinstance(self.item, ExistingEvent):
            return self.item.calendar_name
        return None


@dataclass(frozen=True)
class AgendaSummary:
    total_suggestions: int
    total_existing: int
    total_events: int
    suggestions_by_type: dict[str, int]
    conflicts_avoided: int
    date_range_start: date
    date_range_end: date
    urgent_deadlines: list[AgendaEvent] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "total_suggestions": self.total_suggestions,
            "total_existing": self.total_existing,
            "total_events": self.total_events,
            "suggestions_by_type": dict(self.suggestions_by_type),
            "conflicts_avoided": self.conflicts_avoided,
            "date_range_start": self.date_range_start.isoformat(),
            "date_range_end": self.date_range_end.isoformat(),
            "urgent_deadlines": [event.title for event in self.urgent_deadlines],
        }


class AgendaProposal:
    """Existing events plus surviving suggestions for one date range.

    Derived views are computed once on construction; a new proposal is built
    for every request.
    """

    def __init__(
        self,
        *,
        existing_events: list[ExistingEvent],
        suggestions: list[Suggestion],
        date_range: DateRange,
        timezone: str,
    ) -> None:
        self.raw_existing_events = list(existing_events)
        self.raw_suggestions = list(suggestions)
        self.date_range = date_range
        self.timezone = timezone
        self._tz = ZoneInfo(timezone)

        self.existing_events = [
            AgendaEvent.from_existing(e, self._tz) for e in self.raw_existing_events
        ]
        self.suggestions = [AgendaEvent.from_suggestion(s, self._tz) for s in self.raw_suggestions]
        self._sorted_events = sorted(
            [*self.existing_events, *self.suggestions], key=lambda e: e.start_at
        )
        self._by_date: dict[date, list[AgendaEvent]] = {}
        for event in self._sorted_events:
            self._by_date.setdefault(event.start_at.date(), []).append(event)

    def all_events(self) -> list[AgendaEvent]:
        """Existing events and suggestions, in chronological order."""
        return list(self._sorted_events)

    def events_by_date(self) -> dict[date, list[AgendaEvent]]:
        """Chronological events grouped by their local calendar date."""
        return {day: list(events) for day, events in self._by_date.items()}

    def summary(self) -> AgendaSummary:
        return AgendaSummary(
            total_suggestions=len(self.suggestions),
            total_existing=len(self.existing_events),
            total_events=len(self._sorted_events),
            suggestions_by_type=dict(Counter(event.type for event in self.suggestions)),
            conflicts_avoided=sum(1 for event in self.suggestions if event.conflict_avoided),
            date_range_start=self.date_range.start,
            date_range_end=self.date_range.end,
            urgent_deadlines=[
                event
                for event in self.suggestions
                if event.urgency in (Urgency.overdue, Urgency.upcoming)
            ],
        )

    def any_events(self) -> bool:
        return bool(self.existing_events or self.suggestions)

    def calendar_connected(self) -> bool:
        """Best-effort signal that conflict checking had calendar data to work with."""
        return bool(self.existing_events) or any(
            event.has_conflict or event.conflict_avoided for event in self.suggestions
        )
