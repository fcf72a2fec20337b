"""Calendar collaborator contracts.

The engine only needs two things from a calendar backend: the events already
booked in a date range, and a way to create new ones. Concrete provider
clients (OAuth, HTTP, retries) live outside this package.
"""

from __future__ import annotations

import abc
import json
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from agenda.conflicts import falls_within_range
from agenda.models import DateRange, ExistingEvent


class CalendarError(RuntimeError):
    """Base error raised by calendar collaborators."""


class CalendarUnavailableError(CalendarError):
    """Raised when the calendar backend cannot be reached or is not connected."""


class CalendarRequestError(CalendarError):
    """Raised when a calendar request is rejected."""

    def __init__(self, *, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Calendar request failed ({status_code}): {message}")


class CalendarEventSource(abc.ABC):
    """Supplies the events already booked on the user's calendars."""

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Source identifier (e.g., ``google``)."""
        ...

    @abc.abstractmethod
    async def list_events(
        self,
        *,
        date_range: DateRange,
        timezone: str,
    ) -> list[ExistingEvent]:
        """Return timed events overlapping *date_range* across all calendars.

        All-day events are not returned. Boundaries must be timezone-aware.
        """
        ...


class CalendarEventCreator(abc.ABC):
    """Creates events on the remote calendar."""

    @abc.abstractmethod
    async def create_event(
        self,
        *,
        title: str,
        description: str | None,
        start_at: datetime,
        end_at: datetime,
        calendar_id: str,
    ) -> str:
        """Create one event and return its remote identifier.

        Raises on failure; callers decide whether to retry.
        """
        ...


_EVENT_LIST = TypeAdapter(list[ExistingEvent])


class JsonFileEventSource(CalendarEventSource):
    """Existing events read from a JSON array on disk.

    Each entry uses the ``ExistingEvent`` field names; events that do not
    overlap the requested range are filtered out.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    @property
    def name(self) -> str:
        return "json-file"

    async def list_events(
        self,
        *,
        date_range: DateRange,
        timezone: str,
    ) -> list[ExistingEvent]:
        try:
            raw: Any = json.loads(self.path.read_text())
        except FileNotFoundError as exc:
            raise CalendarUnavailableError(f"Event file not found: {self.path}") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise CalendarUnavailableError(f"Cannot read {self.path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise CalendarUnavailableError(f"Invalid JSON in {self.path}: {exc}") from exc
        try:
            events = _EVENT_LIST.validate_python(raw)
        except ValidationError as exc:
            raise CalendarUnavailableError(f"Invalid events in {self.path}: {exc}") from exc
        return [
            event
            for event in events
            if falls_within_range(event.start_at, event.end_at, date_range, timezone)
        ]
