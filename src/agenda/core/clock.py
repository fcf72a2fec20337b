"""Injectable wall clock.

Everything that needs "now" takes a ``Clock`` so tests can freeze or advance
time deterministically.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """Return the current instant (timezone-aware)."""
        ...


class SystemClock:
    """Clock backed by the process wall clock, always in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class FrozenClock:
    """Clock pinned to a fixed instant until explicitly moved."""

    def __init__(self, instant: datetime) -> None:
        if instant.tzinfo is None:
            raise ValueError("FrozenClock requires a timezone-aware instant")
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: datetime) -> None:
        if instant.tzinfo is None:
            raise ValueError("FrozenClock requires a timezone-aware instant")
        self._instant = instant

    def advance(self, delta: timedelta) -> None:
        self._instant = self._instant + delta
