"""
Periodic health polling of every registered service.

Each poll probes all services concurrently, writes the outcome back to the
registry, feeds one health sample per service into the performance monitor
and hands the batch to any subscribers.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

import structlog

from telemetry.domain.models import HealthCheckResult
from telemetry.services.health_checker import HealthChecker
from telemetry.services.performance_monitor import PerformanceMonitor
from telemetry.services.scheduler import PeriodicTask
from telemetry.services.service_registry import ServiceNotFoundError, ServiceRegistry

logger = structlog.get_logger(__name__)

HealthUpdateHandler = Callable[[list[HealthCheckResult]], Awaitable[None] | None]


class ServiceHealthMonitor:
    """Glue between the registry, the health checker and the telemetry store."""

    def __init__(
        self,
        registry: ServiceRegistry,
        checker: HealthChecker,
        monitor: PerformanceMonitor,
        poll_interval_seconds: float = 30.0,
    ) -> None:
        self.registry = registry
        self.checker = checker
        self.monitor = monitor
        self._handlers: list[HealthUpdateHandler] = []
        self._poller = PeriodicTask("health_poll", poll_interval_seconds, self.poll_all)
        self.logger = logger.bind(component="service_health_monitor")

    @property
    def is_running(self) -> bool:
        return self._poller.is_running

    def subscribe(self, handler: HealthUpdateHandler) -> None:
        self._handlers.append(handler)

    def unsubscribe(self, handler: HealthUpdateHandler) -> None:
        self._handlers.remove(handler)

    def _apply(self, result: HealthCheckResult) -> None:
        self.monitor.record_service_health(
            result.service_id,
            result.service_name,
            result.status,
            result.response_time_ms,
            timestamp=result.checked_at,
        )
        try:
            self.registry.update_status(
                result.service_id,  # type: ignore[arg-type]
                result.status,
                last_check=result.checked_at,
            )
        except ServiceNotFoundError:
            # removed while the probe was in flight
            self.logger.info("health_result_for_removed_service", service_id=result.service_id)

    async def _notify(self, results: list[HealthCheckResult]) -> None:
        for handler in self._handlers:
            try:
                outcome = handler(results)
                if asyncio.iscoroutine(outcome):
                    await outcome
            except Exception as e:
                self.logger.error(
                    "health_update_dispatch_failed",
                    error=str(e),
                    handler=getattr(handler, "__name__", repr(handler)),
                )

    async def check_service(self, service_id: int) -> HealthCheckResult:
        """Probe one service on demand, with the same side effects as a poll."""
        service = self.registry.get_service(service_id)
        result = await self.checker.check_service_health(service)
        self._apply(result)
        await self._notify([result])
        return result

    async def poll_all(self) -> list[HealthCheckResult]:
        services = self.registry.all_services()
        results = await self.checker.check_all_services(services)
        for result in results:
            self._apply(result)
        await self._notify(results)
        self.logger.info(
            "health_poll_completed",
            services=len(results),
            checked_at=datetime.now(UTC).isoformat(),
        )
        return results

    def start(self) -> None:
        self._poller.start()

    async def stop(self) -> None:
        await self._poller.stop()
