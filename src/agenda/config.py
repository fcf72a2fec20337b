"""Agenda configuration loading and validation.

Reads agenda.toml from a config directory, parses all sections, and returns
a validated AgendaConfig dataclass.
"""

from __future__ import annotations

import os
import re
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

CONFIG_FILENAME = "agenda.toml"
DEFAULT_CALENDAR_ID = "primary"
DEFAULT_RANGE_DAYS = 14

# Matches ${VAR_NAME} references (letters, digits and underscore).
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


class ConfigError(Exception):
    """Raised when agenda configuration or caller input is missing or invalid."""


@dataclass
class LoggingConfig:
    """Logging configuration from [agenda.logging] section."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"
    log_root: str | None = None


@dataclass
class SchedulingOptions:
    """Placement knobs from [agenda.scheduling].

    Work hours are integer hours of the day in the user's timezone.
    """

    work_hours_start: int = 9
    work_hours_end: int = 17
    preferred_duration: timedelta = timedelta(minutes=60)
    buffer_time: timedelta = timedelta(minutes=15)
    exclude_weekends: bool = False

    def __post_init__(self) -> None:
        if not 0 <= self.work_hours_start < self.work_hours_end <= 24:
            raise ConfigError(
                "work hours must satisfy 0 <= work_hours_start < work_hours_end <= 24, "
                f"got {self.work_hours_start!r}..{self.work_hours_end!r}"
            )
        if self.preferred_duration <= timedelta(0):
            raise ConfigError("preferred_duration must be positive")
        if self.buffer_time < timedelta(0):
            raise ConfigError("buffer_time must not be negative")

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> SchedulingOptions:
        """Build options from a caller/TOML mapping; missing keys keep defaults.

        Durations are given in minutes (``preferred_duration_minutes``,
        ``buffer_minutes``) or directly as ``timedelta`` values.
        """
        if not raw:
            return cls()
        defaults = cls()
        try:
            return cls(
                work_hours_start=int(raw.get("work_hours_start", defaults.work_hours_start)),
                work_hours_end=int(raw.get("work_hours_end", defaults.work_hours_end)),
                preferred_duration=_minutes_option(
                    raw, "preferred_duration", defaults.preferred_duration
                ),
                buffer_time=_minutes_option(
                    raw, "buffer", defaults.buffer_time, alias="buffer_time"
                ),
                exclude_weekends=_bool_option(
                    raw.get("exclude_weekends", defaults.exclude_weekends)
                ),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid scheduling options: {exc}") from exc


@dataclass
class CommitConfig:
    """Batch commit configuration from [agenda.commit] section.

    max_concurrency bounds how many remote creations run at once. The default
    of 1 creates events strictly one after another.
    """

    max_concurrency: int = 1


@dataclass
class AgendaConfig:
    """Parsed agenda.toml."""

    timezone: str
    calendar_id: str = DEFAULT_CALENDAR_ID
    default_range_days: int = DEFAULT_RANGE_DAYS
    scheduling: SchedulingOptions = field(default_factory=SchedulingOptions)
    commit: CommitConfig = field(default_factory=CommitConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _bool_option(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no"):
            return False
    raise ValueError(f"expected a boolean, got {value!r}")


def _minutes_option(
    raw: Mapping[str, Any],
    name: str,
    default: timedelta,
    *,
    alias: str | None = None,
) -> timedelta:
    for key in (name, alias):
        if key is None or key not in raw:
            continue
        value = raw[key]
        if isinstance(value, timedelta):
            return value
        return timedelta(minutes=int(value))
    minutes_key = f"{name}_minutes"
    if minutes_key in raw:
        return timedelta(minutes=int(raw[minutes_key]))
    return default


def validate_timezone(value: Any) -> str:
    """Return the stripped IANA timezone name or raise ``ConfigError``."""
    if value is None:
        raise ConfigError("A user timezone is required")
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"Timezone must be a non-empty IANA identifier, got {value!r}")
    normalized = value.strip()
    try:
        ZoneInfo(normalized)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"timezone must be a valid IANA timezone: {normalized}") from exc
    return normalized


def resolve_env_vars(value: Any) -> Any:
    """Recursively substitute ``${VAR}`` references with environment values.

    Unset variables raise ``ConfigError`` so a half-configured file never loads.
    """
    if isinstance(value, str):
        return _resolve_string(value)
    if isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_env_vars(v) for v in value]
    return value


def _resolve_string(s: str) -> str:
    missing: list[str] = []

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            missing.append(var)
            return match.group(0)
        return resolved

    result = _ENV_VAR_PATTERN.sub(_replace, s)
    if missing:
        raise ConfigError(f"Unresolved environment variable(s): {', '.join(missing)}")
    return result


def load_config(config_dir: Path) -> AgendaConfig:
    """Load and validate an agenda.toml from *config_dir*.

    Parameters
    ----------
    config_dir:
        Directory containing ``agenda.toml``.

    Returns
    -------
    AgendaConfig
        Fully parsed and validated configuration.

    Raises
    ------
    ConfigError
        If the file is missing, contains invalid TOML, or lacks required fields.
    """
    toml_path = config_dir / CONFIG_FILENAME

    if not toml_path.exists():
        raise ConfigError(f"Config file not found: {toml_path}")

    try:
        data = tomllib.loads(toml_path.read_bytes().decode())
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {toml_path}: {exc}") from exc

    data = resolve_env_vars(data)

    # --- [agenda] section (required) ---
    section = data.get("agenda")
    if not isinstance(section, dict):
        raise ConfigError("Missing [agenda] section in config")

    timezone = validate_timezone(section.get("timezone"))

    calendar_id = str(section.get("calendar_id", DEFAULT_CALENDAR_ID)).strip()
    if not calendar_id:
        raise ConfigError("agenda.calendar_id must be a non-empty string")

    default_range_days = int(section.get("default_range_days", DEFAULT_RANGE_DAYS))
    if default_range_days <= 0:
        raise ConfigError(
            f"Invalid agenda.default_range_days: {default_range_days!r}. "
            "Must be a positive integer."
        )

    # --- [agenda.scheduling] sub-section ---
    scheduling = SchedulingOptions.from_mapping(section.get("scheduling", {}))

    # --- [agenda.commit] sub-section ---
    commit_section = section.get("commit", {})
    max_concurrency = int(commit_section.get("max_concurrency", 1))
    if max_concurrency <= 0:
        raise ConfigError(
            f"Invalid agenda.commit.max_concurrency: {max_concurrency!r}. "
            "Must be a positive integer."
        )

    # --- [agenda.logging] sub-section ---
    logging_section = section.get("logging", {})
    log_level = str(logging_section.get("level", "INFO")).upper()
    log_format = str(logging_section.get("format", "text")).lower()
    if log_format not in ("text", "json"):
        raise ConfigError(
            f"Invalid agenda.logging.format: {log_format!r}. Expected 'text' or 'json'."
        )

    return AgendaConfig(
        timezone=timezone,
        calendar_id=calendar_id,
        default_range_days=default_range_days,
        scheduling=scheduling,
        commit=CommitConfig(max_concurrency=max_concurrency),
        logging=LoggingConfig(
            level=log_level,
            format=log_format,
            log_root=logging_section.get("log_root"),
        ),
    )
