"""
Core Module - System Clock.

============================================================
RESPONSIBILITY
============================================================
Provides a unified, testable clock abstraction for the sync engine.

- Every delay (retry backoff, inter-page, inter-collector,
  inter-asset, scheduler tick) goes through the clock
- Every duration measurement uses the clock's monotonic time
- Enables deterministic tests of delay schedules

============================================================
DESIGN PRINCIPLES
============================================================
- UTC only - no timezone conversions in business logic
- Mockable for testing
- Async sleep so waiting never blocks the event loop

============================================================
"""

import asyncio
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import List, Optional


# ============================================================
# CLOCK PROTOCOL
# ============================================================

class ClockProtocol(ABC):
    """Abstract interface for the system clock."""

    @abstractmethod
    def now(self) -> datetime:
        """Get current UTC datetime."""
        pass

    @abstractmethod
    def monotonic(self) -> float:
        """Get a monotonic reading in seconds, for measuring durations."""
        pass

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Suspend the current task for the given number of seconds."""
        pass

    def elapsed_ms(self, started: float) -> int:
        """Milliseconds elapsed since a previous monotonic() reading."""
        return int(round((self.monotonic() - started) * 1000))


# ============================================================
# SYSTEM CLOCK (PRODUCTION)
# ============================================================

class SystemClock(ClockProtocol):
    """
    Production clock using actual system time.

    All times are in UTC.
    """

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)


# ============================================================
# MOCK CLOCK (TESTING)
# ============================================================

class MockClock(ClockProtocol):
    """
    Mock clock for testing.

    sleep() advances virtual time instantly and records the requested
    delay, so tests can assert exact backoff schedules and durations
    without waiting in real time.
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        """
        Initialize mock clock.

        Args:
            initial_time: Starting time (defaults to current UTC)
        """
        self._time = initial_time or datetime.now(timezone.utc)
        self._monotonic = 0.0
        self._lock = threading.Lock()
        self.sleeps: List[float] = []

    def now(self) -> datetime:
        with self._lock:
            return self._time

    def monotonic(self) -> float:
        with self._lock:
            return self._monotonic

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)
        # Yield so other tasks interleave as they would on a real sleep
        await asyncio.sleep(0)

    def advance(self, seconds: float = 0, **kwargs) -> None:
        """
        Advance time by the specified amount.

        Args:
            seconds: Number of seconds to advance
            **kwargs: Passed to timedelta (hours, minutes, days, etc.)
        """
        delta = timedelta(seconds=seconds, **kwargs)
        with self._lock:
            self._time = self._time + delta
            self._monotonic += delta.total_seconds()

    @property
    def total_slept(self) -> float:
        """Sum of every delay requested through sleep()."""
        return sum(self.sleeps)


# ============================================================
# TIMESTAMP UTILITIES
# ============================================================

def from_unix(value: float, milliseconds: bool = False) -> datetime:
    """Convert a unix timestamp (seconds or ms) to an aware UTC datetime."""
    seconds = value / 1000.0 if milliseconds else value
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def from_iso8601(iso_string: str) -> datetime:
    """Parse ISO 8601 string (accepting a trailing 'Z') to an aware datetime."""
    dt = datetime.fromisoformat(iso_string.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "from_unix",
    "from_iso8601",
]
