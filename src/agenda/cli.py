"""CLI for agenda: preview and dry-run schedules from local files."""

from __future__ import annotations

import asyncio
import json
import sys
from datetime import date
from pathlib import Path

import click
from pydantic import TypeAdapter, ValidationError

from agenda import __version__
from agenda.config import ConfigError, load_config
from agenda.core.logging import configure_logging
from agenda.models import Activity, DateRange, UserContext
from agenda.providers import JsonFileEventSource
from agenda.service import SchedulingService

_ACTIVITY_LIST = TypeAdapter(list[Activity])


def _load_activities(path: Path) -> list[Activity]:
    try:
        return _ACTIVITY_LIST.validate_json(path.read_bytes())
    except ValidationError as exc:
        click.echo(f"Invalid activities in {path}: {exc}")
        sys.exit(1)


def _build_service(
    config_dir: Path,
    activities_path: Path,
    events_path: Path | None,
    user_id: str,
) -> SchedulingService:
    try:
        config = load_config(config_dir)
    except ConfigError as exc:
        click.echo(f"Config error: {exc}")
        sys.exit(1)

    configure_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_root=Path(config.logging.log_root) if config.logging.log_root else None,
        user_id=user_id,
    )
    activities = _load_activities(activities_path)
    try:
        return SchedulingService(
            UserContext(user_id=user_id, timezone=config.timezone),
            activities,
            config=config,
            event_source=JsonFileEventSource(events_path) if events_path else None,
        )
    except ConfigError as exc:
        click.echo(f"Config error: {exc}")
        sys.exit(1)


def _date_range(
    service: SchedulingService, start: date | None, end: date | None
) -> DateRange | None:
    if start is None and end is None:
        return None
    default = service.default_date_range()
    try:
        return DateRange(start=start or default.start, end=end or default.end)
    except ValidationError:
        click.echo("--end must not be before --start")
        sys.exit(1)


def _common_options(fn):
    fn = click.option("--end", type=click.DateTime(["%Y-%m-%d"]), default=None)(fn)
    fn = click.option("--start", type=click.DateTime(["%Y-%m-%d"]), default=None)(fn)
    fn = click.option("--user", "user_id", default="local", show_default=True)(fn)
    fn = click.option(
        "--events",
        "events_path",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        default=None,
        help="JSON file of existing calendar events",
    )(fn)
    fn = click.option(
        "--activities",
        "activities_path",
        required=True,
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help="JSON file of activities",
    )(fn)
    fn = click.option(
        "--config",
        "config_dir",
        required=True,
        type=click.Path(exists=True, file_okay=False, path_type=Path),
        help="Directory containing agenda.toml",
    )(fn)
    return fn


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """Agenda: reconcile activities against your calendar."""


@cli.command()
@_common_options
def preview(config_dir, activities_path, events_path, user_id, start, end) -> None:
    """Print the proposed agenda grouped by day."""
    service = _build_service(config_dir, activities_path, events_path, user_id)
    date_range = _date_range(
        service, start.date() if start else None, end.date() if end else None
    )
    proposal = asyncio.run(service.generate_agenda(date_range))

    if not proposal.any_events():
        click.echo("No events or suggestions in the selected date range.")
        return

    for day, events in proposal.events_by_date().items():
        click.echo(day.strftime("%A %Y-%m-%d"))
        for event in events:
            marker = "*" if event.is_suggestion else " "
            flags = []
            if event.has_conflict:
                flags.append("CONFLICT")
            if event.conflict_avoided:
                flags.append("moved")
            suffix = f" [{', '.join(flags)}]" if flags else ""
            click.echo(
                f"  {marker} {event.start_at:%H:%M}-{event.end_at:%H:%M} "
                f"{event.title} ({event.type}){suffix}"
            )

    summary = proposal.summary()
    click.echo("")
    click.echo(
        f"{summary.total_suggestions} suggestion(s), {summary.total_existing} existing, "
        f"{summary.conflicts_avoided} conflict(s) avoided"
    )
    for event in summary.urgent_deadlines:
        click.echo(f"! {event.title} is {event.urgency}", err=True)


@cli.command("dry-run")
@_common_options
def dry_run(config_dir, activities_path, events_path, user_id, start, end) -> None:
    """Print the dry-run scheduling results as JSON."""
    service = _build_service(config_dir, activities_path, events_path, user_id)
    date_range = _date_range(
        service, start.date() if start else None, end.date() if end else None
    )
    results = asyncio.run(service.schedule_activities(date_range, dry_run=True))
    click.echo(json.dumps(results.model_dump(mode="json"), indent=2))


def main() -> None:
    cli()
