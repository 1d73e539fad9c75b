"""
Background maintenance for the telemetry store.

Key patterns:
- One asyncio task per periodic job, with explicit start/stop so tests never
  leak timers
- Error boundary at the tick: a failed tick is logged and the loop carries on
- No overlapping ticks: a tick that overruns its interval causes the missed
  slots to be dropped, not queued
"""

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import structlog

from telemetry.config import TelemetryConfig
from telemetry.domain.result import Result

logger = structlog.get_logger(__name__)

Tick = Callable[[], Any | Awaitable[Any]]


class TickAlreadyRunningError(RuntimeError):
    """Raised into a Result when a tick is requested while one is in flight."""


class PeriodicTask:
    """
    Runs ``tick`` every ``interval_seconds`` on the running event loop.

    The first tick fires one interval after ``start()``. Ticks may be plain
    callables or coroutine functions.
    """

    def __init__(self, name: str, interval_seconds: float, tick: Tick) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self.name = name
        self.interval_seconds = interval_seconds
        self._tick = tick
        self._task: asyncio.Task[None] | None = None
        self._in_tick = False
        self.tick_count = 0
        self.failure_count = 0
        self.last_error: Exception | None = None
        self.logger = logger.bind(task=name)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the loop. Must be called with an event loop running."""
        if self.is_running:
            self.logger.debug("periodic_task_already_running")
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        self.logger.info("periodic_task_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to unwind. Safe to call twice."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self.logger.info("periodic_task_stopped", ticks=self.tick_count)

    async def run_once(self) -> Result[float, Exception]:
        """
        Execute one tick inside the error boundary.

        Returns the tick duration in seconds, or the error it raised.
        """
        if self._in_tick:
            self.logger.warning("tick_skipped_still_running")
            return Result.err(TickAlreadyRunningError(f"{self.name} tick already running"))

        self._in_tick = True
        start_time = time.perf_counter()
        try:
            outcome = self._tick()
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            self.failure_count += 1
            self.last_error = e
            self.logger.exception("tick_failed", error=str(e))
            return Result.err(e)
        finally:
            self._in_tick = False
            self.tick_count += 1

        return Result.ok(time.perf_counter() - start_time)

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_run = loop.time() + self.interval_seconds
        while True:
            await asyncio.sleep(max(0.0, next_run - loop.time()))
            await self.run_once()

            next_run += self.interval_seconds
            now = loop.time()
            if next_run <= now:
                skipped = int((now - next_run) // self.interval_seconds) + 1
                self.logger.warning(
                    "tick_slower_than_interval",
                    interval_seconds=self.interval_seconds,
                    skipped_ticks=skipped,
                )
                next_run += skipped * self.interval_seconds


class MaintenanceTarget(Protocol):
    """What the maintenance ticks operate on (the performance monitor)."""

    def capture_system_snapshot(self) -> Any: ...

    def cleanup_old_data(self) -> Any: ...


class MaintenanceScheduler:
    """
    The two housekeeping jobs of the telemetry store.

    - system monitoring: append a process snapshot every ``snapshot_interval_seconds``
    - data cleanup: prune samples past the retention window every
      ``cleanup_interval_seconds``

    Each job starts and stops independently.
    """

    def __init__(self, target: MaintenanceTarget, config: TelemetryConfig | None = None) -> None:
        config = config or TelemetryConfig()
        self.system_monitoring = PeriodicTask(
            "system_monitoring", config.snapshot_interval_seconds, target.capture_system_snapshot
        )
        self.data_cleanup = PeriodicTask(
            "data_cleanup", config.cleanup_interval_seconds, target.cleanup_old_data
        )

    @property
    def is_running(self) -> bool:
        return self.system_monitoring.is_running or self.data_cleanup.is_running

    def start_system_monitoring(self) -> None:
        self.system_monitoring.start()

    async def stop_system_monitoring(self) -> None:
        await self.system_monitoring.stop()

    def start_data_cleanup(self) -> None:
        self.data_cleanup.start()

    async def stop_data_cleanup(self) -> None:
        await self.data_cleanup.stop()

    def start(self) -> None:
        self.start_system_monitoring()
        self.start_data_cleanup()

    async def stop(self) -> None:
        await asyncio.gather(self.stop_system_monitoring(), self.stop_data_cleanup())
