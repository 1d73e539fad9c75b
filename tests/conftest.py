"""Shared fixtures for the telemetry test suite."""

from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from telemetry.config import TelemetryConfig
from telemetry.services.performance_monitor import PerformanceMonitor

T0 = datetime(2024, 5, 1, 10, 0, 0, tzinfo=UTC)


class FakeClock:
    """Deterministic stand-in for ``datetime.now(UTC)``."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

    def set(self, moment: datetime) -> None:
        self.now = moment


def make_request(
    method: str = "GET", url: str = "/x", **extra: Any
) -> dict[str, Any]:
    return {"method": method, "url": url, **extra}


def make_response(status_code: int = 200) -> dict[str, Any]:
    return {"status_code": status_code}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def telemetry_config() -> TelemetryConfig:
    return TelemetryConfig()


@pytest.fixture
async def monitor(
    telemetry_config: TelemetryConfig, clock: FakeClock
) -> AsyncIterator[PerformanceMonitor]:
    """A monitor on a frozen clock whose background tasks are always stopped."""
    monitor = PerformanceMonitor(telemetry_config, clock=clock)
    yield monitor
    await monitor.stop_monitoring()
