"""Conflict filtering and rescheduling of suggestions.

Authoritative placements (strict, deadline, recurring) are never moved: on a
clash they are kept and flagged. Flexible placements are relocated to a free
same-day slot or dropped when the day is full.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from agenda.conflicts import TimeBlock, find_conflicts, normalize_datetime
from agenda.core.clock import Clock, SystemClock
from agenda.models import Confidence, ExistingEvent, SchedulePolicy, Suggestion
from agenda.suggestions import earliest_start

logger = logging.getLogger(__name__)

RESCHEDULED_NOTE = "Rescheduled to avoid conflict"
CONFLICT_NOTE = "Conflicts with existing calendar event"
OVERLAP_NOTE = "Overlaps another scheduled activity"

# (first hour, last hour) inclusive; every slot starts on :00 or :30.
SLOT_BLOCKS: tuple[tuple[int, int], ...] = (
    (7, 10),  # morning
    (13, 16),  # afternoon
    (18, 20),  # evening
)

_AUTHORITATIVE = frozenset(
    {SchedulePolicy.strict, SchedulePolicy.deadline, SchedulePolicy.recurring_strict}
)


def candidate_slots(day: date, timezone: ZoneInfo) -> list[datetime]:
    """Fixed catalogue of same-day start times, in catalogue order."""
    slots: list[datetime] = []
    for first_hour, last_hour in SLOT_BLOCKS:
        for hour in range(first_hour, last_hour + 1):
            for minute in (0, 30):
                slots.append(datetime.combine(day, time(hour, minute), tzinfo=timezone))
    return slots


class ScheduleReconciler:
    """Removes and relocates suggestions that clash with existing events.

    Suggestions placed earlier in the same pass block later flexible ones, so
    relocated suggestions never collide with each other.
    """

    def __init__(
        self,
        timezone: str,
        *,
        clock: Clock | None = None,
        buffer_time: timedelta = timedelta(minutes=15),
    ) -> None:
        self.timezone = timezone
        self.tz = ZoneInfo(timezone)
        self.clock = clock or SystemClock()
        self.buffer_time = buffer_time

    def reconcile(
        self,
        suggestions: Sequence[Suggestion],
        existing_events: Sequence[ExistingEvent],
    ) -> list[Suggestion]:
        not_before = earliest_start(self.clock.now(), self.buffer_time, self.tz)
        placed: list[Suggestion] = []

        for suggestion in suggestions:
            if suggestion.schedule_type in _AUTHORITATIVE:
                placed.append(self._flag_conflicts(suggestion, existing_events, placed))

        for suggestion in suggestions:
            if suggestion.schedule_type in _AUTHORITATIVE:
                continue
            blockers: list[TimeBlock] = [*existing_events, *placed]
            if not find_conflicts(suggestion.start_at, suggestion.end_at, blockers, self.tz):
                placed.append(suggestion)
                continue
            relocated = self.find_alternative_time(suggestion, blockers, not_before=not_before)
            if relocated is None:
                logger.info("Skipping %s - no available time slots", suggestion.title)
                continue
            placed.append(relocated)

        return sorted(placed, key=lambda s: normalize_datetime(s.start_at, self.tz))

    def _flag_conflicts(
        self,
        suggestion: Suggestion,
        existing_events: Iterable[ExistingEvent],
        placed: Iterable[Suggestion],
    ) -> Suggestion:
        clashing_events = find_conflicts(
            suggestion.start_at, suggestion.end_at, existing_events, self.tz
        )
        clashing_placed = [
            other
            for other in find_conflicts(suggestion.start_at, suggestion.end_at, placed, self.tz)
            if other.schedule_type in _AUTHORITATIVE
        ]
        if not clashing_events and not clashing_placed:
            return suggestion

        notes = list(suggestion.notes)
        if clashing_events:
            summaries = ", ".join(event.summary for event in clashing_events)
            notes.append(f"{CONFLICT_NOTE}: {summaries}")
        if clashing_placed:
            notes.append(OVERLAP_NOTE)
        logger.info(
            "Keeping %s despite conflict (%s is not relocatable)",
            suggestion.title,
            suggestion.schedule_type,
        )
        return suggestion.model_copy(
            update={"has_conflict": True, "confidence": Confidence.low, "notes": notes}
        )

    def find_alternative_time(
        self,
        suggestion: Suggestion,
        blockers: Sequence[TimeBlock],
        *,
        not_before: datetime | None = None,
    ) -> Suggestion | None:
        """Relocate *suggestion* to the first free catalogue slot on its day.

        Slots at or after the original start are tried first, then the
        earlier ones; slots before *not_before* are never used.
        """
        original_start = normalize_datetime(suggestion.start_at, self.tz)
        duration = suggestion.end_at - suggestion.start_at
        slots = candidate_slots(original_start.date(), self.tz)
        ordered = [s for s in slots if s >= original_start] + [
            s for s in slots if s < original_start
        ]

        for slot_start in ordered:
            if not_before is not None and slot_start < not_before:
                continue
            slot_end = slot_start + duration
            if find_conflicts(slot_start, slot_end, blockers, self.tz):
                continue
            return suggestion.model_copy(
                update={
                    "start_at": slot_start,
                    "end_at": slot_end,
                    "conflict_avoided": True,
                    "confidence": Confidence.medium,
                    "notes": [*suggestion.notes, RESCHEDULED_NOTE],
                }
            )
        return None
