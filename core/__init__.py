"""
Core Module Package.

This package contains the core infrastructure components
that all other modules depend on.

Components:
- clock: Unified time abstraction (now, monotonic, async sleep)
"""

from core.clock import (
    ClockProtocol,
    MockClock,
    SystemClock,
    from_iso8601,
    from_unix,
)


__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "from_iso8601",
    "from_unix",
]
