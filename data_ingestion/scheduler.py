"""
Data Ingestion - Sync Scheduler.

============================================================
RESPONSIBILITY
============================================================
Drives the orchestrator on a fixed-rate cadence.

- start(): one pass immediately, then one per interval
- A second start() while running is a logged no-op
- stop(): cancels the timer only while idle; an in-flight
  pass always finishes
- start() after stop() while that pass is still running resumes
  the same loop instead of starting a second one
- Passes never overlap; an overrunning pass delays the next
  tick instead of queueing extra passes

============================================================
SYNC TIERS
============================================================
SYNC_TIERS documents the intended refresh policy per data
family. The scheduler itself drives a single cadence that
runs the whole pass; tiers are consumed by operators and
deployment tooling that schedule the backfill separately.

============================================================
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from core.clock import ClockProtocol, SystemClock
from data_ingestion.exceptions import ConfigurationError


@dataclass(frozen=True)
class SyncTier:
    """Refresh policy for a family of sync tasks."""
    interval_minutes: int
    tasks: Tuple[str, ...]


SYNC_TIERS: Dict[str, SyncTier] = {
    "realtime": SyncTier(5, ("market-data-top-100", "fear-greed")),
    "frequent": SyncTier(15, ("global-metrics", "trending")),
    "hourly": SyncTier(60, ("defi-protocols", "chain-tvl", "yields")),
    "daily": SyncTier(24 * 60, ("historical-backfill", "daily-summaries")),
}


class SyncScheduler:
    """
    Single-instance periodic runner for a SyncOrchestrator.

    Usage:
        scheduler = SyncScheduler(orchestrator)
        scheduler.start(interval_minutes=5)
        ...
        scheduler.stop()
        await scheduler.wait_stopped()
    """

    def __init__(self, orchestrator: Any, clock: Optional[ClockProtocol] = None) -> None:
        self._orchestrator = orchestrator
        self._clock = clock or SystemClock()
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._in_pass = False
        self._interval_seconds = 0.0
        self._passes_run = 0
        self._logger = logging.getLogger("ingestion.scheduler")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def in_pass(self) -> bool:
        return self._in_pass

    @property
    def passes_run(self) -> int:
        return self._passes_run

    def start(self, interval_minutes: float = 5.0) -> bool:
        """
        Start continuous sync. Requires a running event loop.

        Returns:
            True if started, False if a sync loop was already active

        Raises:
            ConfigurationError: If interval_minutes is not positive
        """
        if self._running:
            self._logger.info("Sync already running")
            return False
        if interval_minutes <= 0:
            raise ConfigurationError(
                f"interval_minutes must be positive, got {interval_minutes}",
                config_key="interval_minutes",
            )

        self._interval_seconds = interval_minutes * 60.0
        self._running = True
        if self._in_pass and self._task is not None and not self._task.done():
            # Stopped mid-pass: the loop was not cancelled, keep it going
            self._logger.info(f"Resuming continuous sync every {interval_minutes:g} minutes")
            return True
        self._task = asyncio.get_running_loop().create_task(self._run_loop())
        self._logger.info(f"Starting continuous sync every {interval_minutes:g} minutes")
        return True

    def stop(self) -> None:
        """Stop scheduling further passes. No-op when not running."""
        if not self._running:
            return
        self._running = False
        if self._task is not None and not self._in_pass:
            self._task.cancel()
        self._logger.info("Continuous sync stopped")

    async def wait_stopped(self) -> None:
        """Wait until the loop has exited (after stop())."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _run_loop(self) -> None:
        next_run = self._clock.monotonic()

        while self._running:
            self._in_pass = True
            try:
                await self._orchestrator.run_pass()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._logger.error(f"Sync pass failed unexpectedly: {e}", exc_info=True)
            finally:
                self._in_pass = False
                self._passes_run += 1

            if not self._running:
                break

            next_run += self._interval_seconds
            delay = next_run - self._clock.monotonic()
            if delay <= 0:
                self._logger.warning(
                    f"Sync pass overran the {self._interval_seconds:g}s interval "
                    f"by {-delay:.1f}s, starting the next pass now"
                )
                next_run = self._clock.monotonic()
                delay = 0.0

            await self._clock.sleep(delay)
