"""
Performance monitor: the telemetry engine's public face.

Owns the sample store, the endpoint aggregator and the maintenance
scheduler. Recording is synchronous and in-memory only so it can run inside
a request-completion hook without adding latency; the only suspending work
is the scheduler's background ticks.
"""

from collections.abc import AsyncIterator, Callable, Mapping
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog

from telemetry.config import TelemetryConfig
from telemetry.domain.models import (
    EndpointStat,
    HealthStatus,
    RequestSample,
    ServiceHealthSample,
    ServiceId,
    SystemSnapshot,
)
from telemetry.domain.reports import DashboardAnalytics
from telemetry.services.aggregator import EndpointAggregator
from telemetry.services.analytics import build_dashboard_analytics
from telemetry.services.sample_store import SampleStore
from telemetry.services.scheduler import MaintenanceScheduler
from telemetry.services.system_metrics import SystemMetricsSource

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class PerformanceMonitor:
    """
    Records request and health telemetry and answers analytics queries.

    Args:
        config: Capacities, retention and maintenance cadence.
        clock: Source of "now"; injectable so tests control time.
        system_source: Process sampler used for system snapshots.
    """

    def __init__(
        self,
        config: TelemetryConfig | None = None,
        *,
        clock: Clock = utc_now,
        system_source: SystemMetricsSource | None = None,
    ) -> None:
        self.config = config or TelemetryConfig()
        self._clock = clock
        self._system_source = system_source or SystemMetricsSource()
        self.store = SampleStore(
            request_capacity=self.config.request_capacity,
            health_capacity=self.config.health_capacity,
            snapshot_capacity=self.config.snapshot_capacity,
        )
        self.aggregator = EndpointAggregator()
        self.scheduler = MaintenanceScheduler(self, self.config)
        self.started_at = clock()
        self.request_count = 0
        self.error_count = 0
        self._closed = False
        self.logger = logger.bind(component="performance_monitor")

    # Recording

    def record_request(
        self,
        request: Mapping[str, Any] | None,
        response: Mapping[str, Any] | None,
        response_time_ms: Any,
        error: BaseException | str | None = None,
    ) -> None:
        """
        Record one completed HTTP request.

        Never raises: telemetry must not break the request it observes.
        """
        if self._closed:
            self.logger.debug("request_dropped_after_shutdown")
            return
        try:
            sample = RequestSample.from_exchange(
                request, response, response_time_ms, error, timestamp=self._clock()
            )
            self._append_request(sample)
        except Exception as e:
            self.logger.exception("request_recording_failed", error=str(e))

    def _append_request(self, sample: RequestSample) -> None:
        self.request_count += 1
        if sample.is_error:
            self.error_count += 1
        evicted = self.store.append_request(sample)
        if evicted is not None:
            self.aggregator.discard(evicted)
        self.aggregator.record(sample)

    def record_service_health(
        self,
        service_id: ServiceId,
        service_name: str,
        status: HealthStatus | str,
        response_time_ms: float,
        timestamp: datetime | None = None,
    ) -> None:
        """Record one health probe outcome."""
        if self._closed:
            self.logger.debug("health_sample_dropped_after_shutdown", service_id=service_id)
            return
        try:
            self.store.append_health(
                ServiceHealthSample(
                    timestamp=timestamp or self._clock(),
                    service_id=service_id,
                    service_name=service_name,
                    status=HealthStatus(status),
                    response_time_ms=max(float(response_time_ms), 0.0),
                )
            )
        except Exception as e:
            self.logger.exception(
                "health_recording_failed", error=str(e), service_id=service_id
            )

    # Queries

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("PerformanceMonitor has been shut down")

    def get_dashboard_analytics(self, time_range: str | None = "1h") -> DashboardAnalytics:
        """Analytics report over the lookback window named by ``time_range``."""
        self._ensure_open()
        return build_dashboard_analytics(
            self.store.requests,
            self.store.health_checks,
            time_range=time_range,
            now=self._clock(),
            started_at=self.started_at,
        )

    def get_current_system_metrics(self) -> SystemSnapshot:
        """A fresh process reading, independent of the stored history."""
        self._ensure_open()
        return self._system_source.capture(timestamp=self._clock())

    def system_history(self) -> tuple[SystemSnapshot, ...]:
        self._ensure_open()
        return self.store.system_snapshots

    def endpoint_stats(self) -> dict[str, EndpointStat]:
        self._ensure_open()
        return self.aggregator.stats()

    def error_rate_for(self, endpoint: str) -> float:
        self._ensure_open()
        return self.aggregator.error_rate_for(endpoint)

    def uptime(self) -> timedelta:
        return self._clock() - self.started_at

    # Maintenance

    def capture_system_snapshot(self) -> SystemSnapshot:
        """Take a process reading and append it to the rolling history."""
        snapshot = self._system_source.capture(timestamp=self._clock())
        self.store.append_system_snapshot(snapshot)
        return snapshot

    def cleanup_old_data(self) -> int:
        """Prune samples older than the retention window. Returns requests removed."""
        cutoff = self._clock() - timedelta(hours=self.config.retention_hours)
        removed = self.store.prune_older_than(cutoff)
        for sample in removed:
            self.aggregator.discard(sample)
        self.logger.info(
            "telemetry_pruned",
            cutoff=cutoff.isoformat(),
            requests_removed=len(removed),
            **self.store.sizes(),
        )
        return len(removed)

    def clear_metrics(self) -> None:
        """Wipe every log and derived counter. For tests and admin use."""
        self.store.clear()
        self.aggregator.clear()
        self.request_count = 0
        self.error_count = 0
        self.logger.info("telemetry_cleared")

    # Lifecycle

    def start_monitoring(self) -> None:
        self._ensure_open()
        self.scheduler.start()

    async def stop_monitoring(self) -> None:
        await self.scheduler.stop()

    @asynccontextmanager
    async def monitoring_session(self) -> AsyncIterator["PerformanceMonitor"]:
        """Run the maintenance tasks for the duration of the block."""
        self.start_monitoring()
        try:
            yield self
        finally:
            await self.stop_monitoring()

    async def shutdown(self) -> None:
        """Stop background work; later queries fail fast."""
        await self.stop_monitoring()
        self._closed = True
        self.logger.info("performance_monitor_shutdown")
