"""Dry-run previews and live creation of accepted suggestions."""

from __future__ import annotations

import asyncio
import logging
import re
from collections import Counter
from collections.abc import Sequence
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from agenda.config import DEFAULT_CALENDAR_ID
from agenda.models import Confidence, Suggestion
from agenda.providers import CalendarEventCreator

logger = logging.getLogger(__name__)

NOTHING_TO_SCHEDULE = "Nothing to schedule: no activities fall in the selected date range"
MAX_ERROR_LENGTH = 200


class CommitStatus(StrEnum):
    created = "created"
    failed = "failed"


class TimelineItem(BaseModel):
    activity_name: str
    title: str
    start_at: datetime
    end_at: datetime
    type: str
    confidence: Confidence
    notes: list[str] = Field(default_factory=list)


class DryRunResults(BaseModel):
    total_suggestions: int
    suggestions_by_type: dict[str, int]
    existing_events_count: int
    conflicts_avoided: int
    timeline: list[TimelineItem]
    next_steps: list[str]


class CommitResult(BaseModel):
    activity_id: str
    title: str
    start_at: datetime
    end_at: datetime
    status: CommitStatus
    remote_id: str | None = None
    error: str | None = None
    error_type: str | None = None


class CommitReport(BaseModel):
    results: list[CommitResult]

    @property
    def created_count(self) -> int:
        return sum(1 for r in self.results if r.status is CommitStatus.created)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if r.status is CommitStatus.failed)

    @property
    def all_succeeded(self) -> bool:
        return self.failed_count == 0

    def message(self) -> str:
        if self.all_succeeded:
            return f"Successfully created {self.created_count} calendar events!"
        return (
            f"Created {self.created_count} events, but {self.failed_count} failed. "
            "Check your calendar connection."
        )


def _redact_credential_values(message: str) -> str:
    """Redact token-like values that collaborators sometimes echo in errors."""
    redacted = re.sub(
        r"(?i)\b(client_secret|refresh_token|access_token|token)\s*=\s*([^\s,;]+)",
        r"\1=[REDACTED]",
        message,
    )
    redacted = re.sub(
        r"(?i)\b(client_secret|refresh_token|access_token|token)\s*:\s*([^\s,;]+)",
        r"\1: [REDACTED]",
        redacted,
    )
    return re.sub(r"(?i)\bBearer\s+[A-Za-z0-9._~+/=-]+", "Bearer [REDACTED]", redacted)


def sanitize_error(exc: BaseException) -> str:
    """Single-line, redacted, length-capped description of *exc*."""
    redacted = _redact_credential_values(str(exc) or type(exc).__name__)
    return " ".join(redacted.split())[:MAX_ERROR_LENGTH]


def _timeline_notes(suggestion: Suggestion) -> list[str]:
    notes: list[str] = []
    if suggestion.frequency_note:
        notes.append(suggestion.frequency_note)
    if suggestion.urgency:
        notes.append(f"Urgency: {suggestion.urgency}")
    notes.extend(suggestion.notes)
    return notes


class BatchCommitter:
    """Turns a final suggestion list into a preview or into remote events.

    Live commits isolate failures per suggestion: one rejected creation is
    recorded and the rest of the batch still runs. Nothing is retried.
    """

    def __init__(
        self,
        creator: CalendarEventCreator | None = None,
        *,
        default_calendar_id: str = DEFAULT_CALENDAR_ID,
        max_concurrency: int = 1,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.creator = creator
        self.default_calendar_id = default_calendar_id
        self.max_concurrency = max_concurrency

    def dry_run(
        self,
        suggestions: Sequence[Suggestion],
        *,
        existing_events_count: int = 0,
    ) -> DryRunResults:
        if not suggestions:
            return DryRunResults(
                total_suggestions=0,
                suggestions_by_type={},
                existing_events_count=existing_events_count,
                conflicts_avoided=0,
                timeline=[],
                next_steps=[NOTHING_TO_SCHEDULE],
            )

        conflicts_avoided = (
            sum(1 for s in suggestions if s.conflict_avoided) if existing_events_count else 0
        )
        timeline = [
            TimelineItem(
                activity_name=s.activity.name,
                title=s.title,
                start_at=s.start_at,
                end_at=s.end_at,
                type=str(s.schedule_type),
                confidence=s.confidence,
                notes=_timeline_notes(s),
            )
            for s in suggestions
        ]

        next_steps = ["Review the suggested schedule above"]
        if existing_events_count:
            next_steps.append(
                f"Conflicts with {existing_events_count} existing events have been checked"
            )
        flagged = sum(1 for s in suggestions if s.has_conflict)
        if flagged:
            next_steps.append(f"Resolve {flagged} fixed-time conflicts manually")
        next_steps.append("Adjust date range or preferences if needed")
        next_steps.append("Run again without dry run to create actual calendar events")

        return DryRunResults(
            total_suggestions=len(suggestions),
            suggestions_by_type=dict(Counter(str(s.schedule_type) for s in suggestions)),
            existing_events_count=existing_events_count,
            conflicts_avoided=conflicts_avoided,
            timeline=timeline,
            next_steps=next_steps,
        )

    async def commit(self, suggestions: Sequence[Suggestion]) -> CommitReport:
        """Create one remote event per suggestion, preserving input order."""
        creator = self.creator
        if creator is None:
            raise RuntimeError("BatchCommitter.commit requires a calendar event creator")

        if self.max_concurrency == 1:
            results = [await self._create_one(creator, s) for s in suggestions]
        else:
            semaphore = asyncio.Semaphore(self.max_concurrency)

            async def _bounded(suggestion: Suggestion) -> CommitResult:
                async with semaphore:
                    return await self._create_one(creator, suggestion)

            results = list(await asyncio.gather(*(_bounded(s) for s in suggestions)))

        report = CommitReport(results=results)
        logger.info(
            "Committed %d suggestions: %d created, %d failed",
            len(results),
            report.created_count,
            report.failed_count,
        )
        return report

    async def _create_one(
        self, creator: CalendarEventCreator, suggestion: Suggestion
    ) -> CommitResult:
        base: dict[str, Any] = {
            "activity_id": suggestion.activity.activity_id,
            "title": suggestion.title,
            "start_at": suggestion.start_at,
            "end_at": suggestion.end_at,
        }
        try:
            remote_id = await creator.create_event(
                title=suggestion.title,
                description=suggestion.description,
                start_at=suggestion.start_at,
                end_at=suggestion.end_at,
                calendar_id=suggestion.calendar_id or self.default_calendar_id,
            )
        except Exception as exc:
            logger.error(
                "Failed to create calendar event for activity %s: %s",
                suggestion.activity.activity_id,
                sanitize_error(exc),
            )
            return CommitResult(
                **base,
                status=CommitStatus.failed,
                error=sanitize_error(exc),
                error_type=type(exc).__name__,
            )
        return CommitResult(**base, status=CommitStatus.created, remote_id=remote_id)
