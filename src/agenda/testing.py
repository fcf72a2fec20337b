"""In-memory calendar backend for tests and local dry runs."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from agenda.conflicts import falls_within_range
from agenda.models import DateRange, ExistingEvent
from agenda.providers import (
    CalendarEventCreator,
    CalendarEventSource,
    CalendarRequestError,
    CalendarUnavailableError,
)


@dataclass
class CreatedEvent:
    remote_id: str
    title: str
    description: str | None
    start_at: datetime
    end_at: datetime
    calendar_id: str


@dataclass
class FakeCalendarProvider(CalendarEventSource, CalendarEventCreator):
    """Serves a fixed event list and records created events.

    ``fail_titles`` makes ``create_event`` reject those titles;
    ``unavailable`` makes ``list_events`` raise as if the backend were down.
    """

    events: list[ExistingEvent] = field(default_factory=list)
    fail_titles: set[str] = field(default_factory=set)
    unavailable: bool = False
    created: list[CreatedEvent] = field(default_factory=list)
    list_calls: int = 0
    create_calls: list[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return "fake"

    async def list_events(
        self,
        *,
        date_range: DateRange,
        timezone: str,
    ) -> list[ExistingEvent]:
        self.list_calls += 1
        if self.unavailable:
            raise CalendarUnavailableError("calendar backend unreachable")
        return [
            event
            for event in self.events
            if falls_within_range(event.start_at, event.end_at, date_range, timezone)
        ]

    async def create_event(
        self,
        *,
        title: str,
        description: str | None,
        start_at: datetime,
        end_at: datetime,
        calendar_id: str,
    ) -> str:
        self.create_calls.append(title)
        if title in self.fail_titles:
            raise CalendarRequestError(
                status_code=403, message=f"insufficient permission for {title}"
            )
        remote_id = f"evt-{uuid.uuid4().hex[:12]}"
        self.created.append(
            CreatedEvent(
                remote_id=remote_id,
                title=title,
                description=description,
                start_at=start_at,
                end_at=end_at,
                calendar_id=calendar_id,
            )
        )
        return remote_id
