"""
Game Timer - Wall clock for time-limited games.

The engine owns no clock. A time-limited game asks this timer whether its
time is up and ends itself when it is.
"""

from __future__ import annotations
from collections.abc import Callable
from dataclasses import dataclass, field
import time


@dataclass
class GameTimer:
    """Counts down from a limit once started. The clock is injectable."""
    clock: Callable[[], float] = field(default=time.monotonic)
    limit_seconds: float | None = None
    started_at: float | None = None

    @property
    def running(self) -> bool:
        return self.started_at is not None and self.limit_seconds is not None

    def start(self, limit_seconds: float):
        self.limit_seconds = limit_seconds
        self.started_at = self.clock()

    def stop(self):
        self.started_at = None
        self.limit_seconds = None

    def elapsed(self) -> float:
        if self.started_at is None:
            return 0.0
        return self.clock() - self.started_at

    def remaining(self) -> float | None:
        """Seconds left, never below zero. None when not running."""
        if not self.running:
            return None
        return max(0.0, self.limit_seconds - self.elapsed())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0
