"""Scheduling service for one user's activities against one calendar snapshot.

Control flow: load existing events → generate candidates per activity →
reconcile against existing events → wrap into an ``AgendaProposal`` → either
preview (dry run) or create remote events.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from opentelemetry import trace

from agenda.committer import BatchCommitter, CommitReport, DryRunResults
from agenda.config import (
    DEFAULT_CALENDAR_ID,
    DEFAULT_RANGE_DAYS,
    AgendaConfig,
    CommitConfig,
    ConfigError,
    SchedulingOptions,
)
from agenda.conflicts import normalize_datetime
from agenda.core.clock import Clock, SystemClock
from agenda.models import Activity, DateRange, ExistingEvent, Suggestion, UserContext
from agenda.proposal import AgendaEvent, AgendaProposal
from agenda.providers import CalendarError, CalendarEventCreator, CalendarEventSource
from agenda.reconciler import ScheduleReconciler
from agenda.suggestions import SuggestionGenerator

logger = logging.getLogger(__name__)


class SchedulingService:
    """Builds agendas and commits suggestions for a single user.

    Instances are request-scoped: nothing computed here outlives the call
    that produced it.
    """

    def __init__(
        self,
        user: UserContext | None,
        activities: Iterable[Activity],
        *,
        config: AgendaConfig | None = None,
        options: SchedulingOptions | Mapping[str, Any] | None = None,
        event_source: CalendarEventSource | None = None,
        event_creator: CalendarEventCreator | None = None,
        clock: Clock | None = None,
    ) -> None:
        if user is None:
            raise ConfigError("A user is required to schedule activities")
        if not user.user_id or not user.user_id.strip():
            raise ConfigError("User id must be a non-empty string")
        self.user = user
        self.tz = user.require_timezone()
        self.timezone = self.tz.key

        if isinstance(options, SchedulingOptions):
            self.options = options
        elif options is not None:
            self.options = SchedulingOptions.from_mapping(options)
        elif config is not None:
            self.options = config.scheduling
        else:
            self.options = SchedulingOptions()

        self.activities = list(activities)
        self.event_source = event_source
        self.event_creator = event_creator
        self.clock = clock or SystemClock()
        self.calendar_id = config.calendar_id if config else DEFAULT_CALENDAR_ID
        self.default_range_days = config.default_range_days if config else DEFAULT_RANGE_DAYS
        self.commit_config = config.commit if config else CommitConfig()

        self.generator = SuggestionGenerator(self.timezone, self.options, clock=self.clock)
        self.reconciler = ScheduleReconciler(
            self.timezone, clock=self.clock, buffer_time=self.options.buffer_time
        )
        self._existing_events_count = 0
        logger.info("SchedulingService initialized with user timezone: %s", self.timezone)

    def default_date_range(self) -> DateRange:
        today = normalize_datetime(self.clock.now(), self.tz).date()
        return DateRange.upcoming(today, days=self.default_range_days)

    async def load_existing_events(self, date_range: DateRange) -> list[ExistingEvent]:
        """Fetch booked events; an absent or failing calendar yields none."""
        if self.event_source is None:
            self._existing_events_count = 0
            return []
        try:
            events = await self.event_source.list_events(
                date_range=date_range, timezone=self.timezone
            )
        except CalendarError as exc:
            logger.warning("Failed to load existing calendar events: %s", exc)
            events = []
        except Exception as exc:
            logger.warning(
                "Failed to load existing calendar events (%s): %s", type(exc).__name__, exc
            )
            events = []
        else:
            logger.info("Loaded %d existing calendar events for conflict detection", len(events))
        self._existing_events_count = len(events)
        return events

    def generate_suggestions(
        self,
        date_range: DateRange,
        existing_events: Sequence[ExistingEvent],
    ) -> list[Suggestion]:
        candidates = self.generator.generate_all(self.activities, date_range)
        return self.reconciler.reconcile(candidates, existing_events)

    async def generate_agenda(self, date_range: DateRange | None = None) -> AgendaProposal:
        date_range = date_range or self.default_date_range()
        tracer = trace.get_tracer("agenda")
        with tracer.start_as_current_span("agenda.generate") as span:
            existing_events = await self.load_existing_events(date_range)
            suggestions = self.generate_suggestions(date_range, existing_events)
            span.set_attribute("activities", len(self.activities))
            span.set_attribute("existing_events", len(existing_events))
            span.set_attribute("suggestions", len(suggestions))
        return AgendaProposal(
            existing_events=existing_events,
            suggestions=suggestions,
            date_range=date_range,
            timezone=self.timezone,
        )

    def _committer(self) -> BatchCommitter:
        return BatchCommitter(
            self.event_creator,
            default_calendar_id=self.calendar_id,
            max_concurrency=self.commit_config.max_concurrency,
        )

    async def create_calendar_events(
        self,
        suggestions: Sequence[Suggestion | AgendaEvent],
        *,
        dry_run: bool = True,
    ) -> DryRunResults | CommitReport:
        """Preview or create events; agenda rows for existing events are ignored."""
        selected: list[Suggestion] = []
        for item in suggestions:
            if isinstance(item, AgendaEvent):
                if item.suggestion is not None:
                    selected.append(item.suggestion)
            else:
                selected.append(item)

        committer = self._committer()
        if dry_run or not selected:
            return committer.dry_run(selected, existing_events_count=self._existing_events_count)

        if self.event_creator is None:
            raise ConfigError("Creating calendar events requires a connected calendar")

        tracer = trace.get_tracer("agenda")
        with tracer.start_as_current_span("agenda.commit") as span:
            report = await committer.commit(selected)
            span.set_attribute("created", report.created_count)
            span.set_attribute("failed", report.failed_count)
        return report

    async def schedule_activities(
        self,
        date_range: DateRange | None = None,
        *,
        dry_run: bool = True,
    ) -> DryRunResults | CommitReport:
        proposal = await self.generate_agenda(date_range)
        return await self.create_calendar_events(proposal.raw_suggestions, dry_run=dry_run)
