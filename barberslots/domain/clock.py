"""
Clock sources for "now".
"""

from typing import Protocol

import pendulum
from pendulum import DateTime


class Clock(Protocol):
    """Protocol describing the clock needed by slot generation."""

    def now(self) -> DateTime:
        """Return the current instant in the shop timezone."""


class SystemClock:
    """Wall clock in the configured shop timezone."""

    def __init__(self, timezone: str = "Europe/Berlin"):
        self.timezone = timezone

    def now(self) -> DateTime:
        return pendulum.now(self.timezone)


class FixedClock:
    """Clock pinned to a single instant, for tests and replays."""

    def __init__(self, instant: DateTime):
        self._instant = instant

    def now(self) -> DateTime:
        return self._instant

    def advance(self, **kwargs) -> None:
        """Move the pinned instant forward, e.g. ``advance(minutes=15)``."""
        self._instant = self._instant.add(**kwargs)
