"""
Tests for the performance monitor.

The clock is frozen through the ``monitor`` fixture so every report is
deterministic.
"""

import asyncio
import os
from datetime import datetime, timedelta

import pytest
from structlog.testing import capture_logs

from telemetry.config import TelemetryConfig
from telemetry.domain.models import (
    CpuUsage,
    HealthStatus,
    MemoryUsage,
    SystemSnapshot,
)
from telemetry.services.analytics import api_usage_metrics
from telemetry.services.performance_monitor import PerformanceMonitor
from tests.conftest import T0, FakeClock, make_request, make_response


class StubSystemSource:
    """Counts captures and returns a fixed reading."""

    def __init__(self) -> None:
        self.captures = 0

    def capture(self, timestamp: datetime | None = None) -> SystemSnapshot:
        self.captures += 1
        return SystemSnapshot(
            timestamp=timestamp or T0,
            memory=MemoryUsage(resident_mb=50, heap_total_mb=200, heap_used_mb=40, external_mb=10),
            cpu=CpuUsage(user_seconds=1.0, system_seconds=0.5, percent=3.0),
            uptime_seconds=float(self.captures),
            process_id=4242,
            runtime_version="3.12.0",
        )


class TestRecording:
    def test_two_request_scenario(self, monitor: PerformanceMonitor, clock: FakeClock) -> None:
        monitor.record_request(make_request(url="/users"), make_response(200), 100)
        monitor.record_request(make_request(url="/users"), make_response(500), 200)
        clock.advance(seconds=30)

        overview = monitor.get_dashboard_analytics("1h").overview

        assert overview.total_requests == 2
        assert overview.error_count == 1
        assert overview.error_rate == 50.0
        assert overview.average_response_time == 150.0
        assert monitor.error_rate_for("GET /users") == 50.0

    def test_malformed_input_falls_back_to_sentinels(self, monitor: PerformanceMonitor) -> None:
        monitor.record_request(None, None, 12.5)

        (sample,) = monitor.store.requests
        assert sample.method == "UNKNOWN"
        assert sample.url == "/"
        assert sample.status_code == 500
        assert sample.client_ip == "Unknown"
        assert sample.user_agent == "Unknown"
        assert sample.is_error

    def test_missing_response_records_a_500(self, monitor: PerformanceMonitor) -> None:
        monitor.record_request(make_request(), None, 5, error=ConnectionError("reset by peer"))

        (sample,) = monitor.store.requests
        assert sample.status_code == 500
        assert sample.error == "reset by peer"

    def test_non_numeric_response_time_is_excluded_from_averages(
        self, monitor: PerformanceMonitor
    ) -> None:
        monitor.record_request(make_request(), make_response(), "fast")
        monitor.record_request(make_request(), make_response(), 40)

        overview = monitor.get_dashboard_analytics().overview

        assert overview.total_requests == 2
        assert overview.average_response_time == 40.0

    def test_sample_timestamp_comes_from_the_clock(
        self, monitor: PerformanceMonitor, clock: FakeClock
    ) -> None:
        clock.advance(minutes=3)

        monitor.record_request(make_request(), make_response(), 1)

        assert monitor.store.requests[0].timestamp == T0 + timedelta(minutes=3)

    def test_health_samples_are_recorded_with_clamped_time(
        self, monitor: PerformanceMonitor
    ) -> None:
        monitor.record_service_health(1, "User Service", "online", -3.0)
        monitor.record_service_health(1, "User Service", HealthStatus.OFFLINE, 20.0)

        checks = monitor.store.health_checks
        assert [c.status for c in checks] == [HealthStatus.ONLINE, HealthStatus.OFFLINE]
        assert checks[0].response_time_ms == 0.0

    def test_bad_health_status_is_logged_not_raised(self, monitor: PerformanceMonitor) -> None:
        monitor.record_service_health(1, "User Service", "sideways", 1.0)

        assert monitor.store.health_checks == ()

    def test_non_finite_response_times_never_reach_the_report(
        self, monitor: PerformanceMonitor
    ) -> None:
        monitor.record_request(make_request(), make_response(), 100.0)
        monitor.record_request(make_request(), make_response(), float("inf"))
        monitor.record_request(make_request(), make_response(), float("nan"))

        report = monitor.get_dashboard_analytics("1h")

        assert report.overview.total_requests == 3
        assert report.overview.average_response_time == 100.0
        assert report.api_usage[0].average_response_time == 100.0

    @pytest.mark.parametrize("elapsed", [float("inf"), float("nan")])
    def test_non_finite_health_times_are_dropped(
        self, monitor: PerformanceMonitor, elapsed: float
    ) -> None:
        with capture_logs() as logs:
            monitor.record_service_health(1, "User Service", "online", elapsed)

        assert monitor.store.health_checks == ()
        assert any(e["event"] == "health_recording_failed" for e in logs)
        assert monitor.get_dashboard_analytics("1h").service_health == []

    def test_naive_health_timestamp_is_dropped(
        self, monitor: PerformanceMonitor, clock: FakeClock
    ) -> None:
        monitor.record_service_health(
            1, "User Service", "online", 5.0, timestamp=datetime(2024, 5, 1, 10, 0)
        )
        monitor.record_service_health(1, "User Service", "offline", 5.0)

        report = monitor.get_dashboard_analytics("1h")
        clock.advance(hours=30)
        removed = monitor.cleanup_old_data()

        assert [row.checks for row in report.service_health] == [1]
        assert removed == 0
        assert monitor.store.health_checks == ()


class TestBoundedMemory:
    def test_request_log_keeps_the_most_recent_samples(self, clock: FakeClock) -> None:
        monitor = PerformanceMonitor(
            TelemetryConfig(request_capacity=3), clock=clock, system_source=StubSystemSource()
        )

        for i in range(5):
            clock.advance(seconds=1)
            monitor.record_request(make_request(url=f"/r{i % 2}"), make_response(), i)

        assert [s.url for s in monitor.store.requests] == ["/r0", "/r1", "/r0"]
        replayed = {row.endpoint: row.count for row in api_usage_metrics(monitor.store.requests)}
        assert {k: v.count for k, v in monitor.endpoint_stats().items()} == replayed
        assert monitor.request_count == 5

    def test_snapshot_history_is_bounded(self, clock: FakeClock) -> None:
        source = StubSystemSource()
        monitor = PerformanceMonitor(
            TelemetryConfig(snapshot_capacity=2), clock=clock, system_source=source
        )

        for _ in range(4):
            monitor.capture_system_snapshot()

        history = monitor.system_history()
        assert len(history) == 2
        assert [s.uptime_seconds for s in history] == [3.0, 4.0]


class TestQueries:
    def test_report_is_idempotent_without_new_samples(
        self, monitor: PerformanceMonitor, clock: FakeClock
    ) -> None:
        monitor.record_request(make_request(), make_response(), 10)
        monitor.record_service_health(1, "User Service", "online", 5.0)
        clock.advance(minutes=2)

        first = monitor.get_dashboard_analytics("15m")
        second = monitor.get_dashboard_analytics("15m")

        assert first == second

    def test_clear_metrics_empties_every_view(self, monitor: PerformanceMonitor) -> None:
        monitor.record_request(make_request(), make_response(), 10)
        monitor.record_request(make_request(), make_response(503), 10)
        assert (monitor.request_count, monitor.error_count) == (2, 1)
        monitor.record_service_health(1, "User Service", "online", 5.0)

        monitor.clear_metrics()
        report = monitor.get_dashboard_analytics("24h")

        assert report.overview.total_requests == 0
        assert report.api_usage == []
        assert report.service_health == []
        assert monitor.endpoint_stats() == {}
        assert monitor.request_count == 0
        assert monitor.error_count == 0

    def test_current_system_metrics_come_from_the_live_process(self, clock: FakeClock) -> None:
        monitor = PerformanceMonitor(clock=clock)

        snapshot = monitor.get_current_system_metrics()

        assert snapshot.process_id == os.getpid()
        assert snapshot.memory.resident_mb > 0
        assert snapshot.timestamp == T0
        assert monitor.system_history() == ()

    def test_uptime_tracks_the_clock(self, monitor: PerformanceMonitor, clock: FakeClock) -> None:
        clock.advance(minutes=10)

        assert monitor.uptime() == timedelta(minutes=10)
        assert monitor.get_dashboard_analytics().overview.uptime_seconds == 600.0


class TestMaintenance:
    def test_cleanup_prunes_past_retention_and_resyncs_rollups(
        self, monitor: PerformanceMonitor, clock: FakeClock
    ) -> None:
        monitor.record_request(make_request(url="/old"), make_response(500), 10)
        monitor.record_service_health(1, "User Service", "online", 5.0)
        clock.advance(hours=23)
        monitor.record_request(make_request(url="/new"), make_response(), 10)
        clock.advance(hours=2)

        removed = monitor.cleanup_old_data()

        assert removed == 1
        assert [s.url for s in monitor.store.requests] == ["/new"]
        assert monitor.store.health_checks == ()
        assert set(monitor.endpoint_stats()) == {"GET /new"}

    async def test_monitoring_session_starts_and_stops_tasks(
        self, monitor: PerformanceMonitor
    ) -> None:
        async with monitor.monitoring_session() as active:
            assert active is monitor
            assert monitor.scheduler.is_running

        assert not monitor.scheduler.is_running

    async def test_scheduled_snapshots_accumulate(self, clock: FakeClock) -> None:
        source = StubSystemSource()
        monitor = PerformanceMonitor(
            TelemetryConfig(snapshot_interval_seconds=0.01), clock=clock, system_source=source
        )

        async with monitor.monitoring_session():
            for _ in range(100):
                if len(monitor.system_history()) >= 2:
                    break
                await asyncio.sleep(0.01)

        assert len(monitor.system_history()) >= 2


class TestShutdown:
    async def test_queries_fail_after_shutdown(self, monitor: PerformanceMonitor) -> None:
        monitor.start_monitoring()

        await monitor.shutdown()

        assert not monitor.scheduler.is_running
        with pytest.raises(RuntimeError, match="shut down"):
            monitor.get_dashboard_analytics()
        with pytest.raises(RuntimeError):
            monitor.start_monitoring()

    async def test_recording_after_shutdown_is_dropped(self, monitor: PerformanceMonitor) -> None:
        await monitor.shutdown()

        monitor.record_request(make_request(), make_response(), 10)
        monitor.record_service_health(1, "User Service", "online", 1.0)

        assert monitor.store.requests == ()
        assert monitor.store.health_checks == ()

    async def test_shutdown_twice_is_harmless(self, monitor: PerformanceMonitor) -> None:
        await monitor.shutdown()
        await monitor.shutdown()
