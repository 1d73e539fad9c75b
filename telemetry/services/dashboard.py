"""
Composition root for the dashboard backend.

Wires one of everything from an ``AppConfig``:
1. Performance monitor (sample store, aggregator, maintenance ticks)
2. Service registry seeded from configuration
3. Health checker and the periodic poll loop
4. Request proxy

Nothing is created at import time; the web layer builds a ``DashboardService``
and passes its parts where they are needed.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
import structlog

from telemetry.config import AppConfig, get_config
from telemetry.domain.models import HealthCheckResult, ProxyRequest, ProxyResponse
from telemetry.domain.reports import DashboardAnalytics
from telemetry.services.api_client import ApiClient, validate_request
from telemetry.services.health_checker import HealthChecker
from telemetry.services.health_monitor import ServiceHealthMonitor
from telemetry.services.performance_monitor import Clock, PerformanceMonitor, utc_now
from telemetry.services.service_registry import ServiceRegistry

logger = structlog.get_logger(__name__)


class DashboardService:
    """
    The dashboard's backend services, started and stopped together.

    Args:
        config: Application configuration; defaults to the environment.
        clock: Source of "now" for the telemetry store.
        transport: Optional httpx transport shared by probes and the proxy.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        clock: Clock = utc_now,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or get_config()
        self.logger = logger.bind(component="dashboard_service")

        self.monitor = PerformanceMonitor(self.config.telemetry, clock=clock)
        self.registry = ServiceRegistry()
        for seed in self.config.health.seed_services:
            self.registry.add_service(seed.name, seed.url, seed.description)

        self.health_checker = HealthChecker(
            timeout=self.config.health.probe_timeout_seconds, transport=transport
        )
        self.health_monitor = ServiceHealthMonitor(
            self.registry,
            self.health_checker,
            self.monitor,
            poll_interval_seconds=self.config.health.poll_interval_seconds,
        )
        self.api_client = ApiClient(
            timeout=self.config.health.proxy_timeout_seconds, transport=transport
        )
        self._is_running = False

        self.logger.info(
            "dashboard_service_initialized",
            services=len(self.registry),
            environment=self.config.environment,
        )

    @property
    def is_running(self) -> bool:
        return self._is_running

    def start(self) -> None:
        """Start the poll loop and, when configured, the maintenance ticks."""
        if self._is_running:
            return
        if self.config.telemetry.auto_start:
            self.monitor.start_monitoring()
        self.health_monitor.start()
        self._is_running = True
        self.logger.info("dashboard_service_started")

    async def stop(self) -> None:
        """Gracefully stop every background task."""
        self.logger.info("stopping_dashboard_service")
        await self.health_monitor.stop()
        await self.monitor.stop_monitoring()
        self._is_running = False

    @asynccontextmanager
    async def running(self) -> AsyncIterator["DashboardService"]:
        self.start()
        try:
            yield self
        finally:
            await self.stop()

    async def check_service_health(self, service_id: int) -> HealthCheckResult:
        return await self.health_monitor.check_service(service_id)

    async def check_all_services(self) -> list[HealthCheckResult]:
        return await self.health_monitor.poll_all()

    async def execute_request(self, service_id: int, request: ProxyRequest) -> ProxyResponse:
        """Validate and forward an ad-hoc request. Raises ``ValueError`` on bad input."""
        errors = validate_request(request)
        if errors:
            raise ValueError("; ".join(errors))
        service = self.registry.get_service(service_id)
        return await self.api_client.execute_request(service, request)

    def get_dashboard_analytics(self, time_range: str | None = "1h") -> DashboardAnalytics:
        return self.monitor.get_dashboard_analytics(time_range)
