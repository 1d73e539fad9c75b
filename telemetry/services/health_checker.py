"""
Health probes against registered services.

A probe is a bounded GET of ``{url}/health``. It never raises: timeouts,
refused connections and non-200 answers all come back as an ``offline``
result carrying the error text. Response time is always measured locally.
"""

import asyncio
import time
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Protocol

import httpx
import structlog

from telemetry.domain.models import HealthCheckResult, HealthStatus, ServiceId
from telemetry.domain.result import Result

logger = structlog.get_logger(__name__)


class ProbeTarget(Protocol):
    """Anything with an id, a name and a base URL."""

    @property
    def id(self) -> ServiceId: ...

    @property
    def name(self) -> str: ...

    @property
    def url(self) -> str: ...


class HealthCheckError(Exception):
    """Why a probe came back offline."""


def health_url(base_url: str) -> str:
    return f"{base_url.rstrip('/')}/health"


def _describe(error: BaseException) -> str:
    return str(error) or type(error).__name__


class HealthChecker:
    """
    Probes services concurrently with a per-probe timeout.

    Args:
        timeout: Seconds before a probe is abandoned and reported offline.
        transport: Optional httpx transport (tests pass a ``MockTransport``).
    """

    def __init__(
        self, timeout: float = 5.0, transport: httpx.AsyncBaseTransport | None = None
    ) -> None:
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self.timeout = timeout
        self._transport = transport
        self.logger = logger.bind(component="health_checker")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _probe(self, client: httpx.AsyncClient, url: str) -> Result[int, HealthCheckError]:
        try:
            response = await asyncio.wait_for(client.get(url), timeout=self.timeout)
        except TimeoutError:
            return Result.err(HealthCheckError(f"Health check timed out after {self.timeout}s"))
        except httpx.HTTPError as e:
            return Result.err(HealthCheckError(_describe(e)))

        if response.status_code != 200:
            return Result.err(
                HealthCheckError(f"Health endpoint returned HTTP {response.status_code}")
            )
        return Result.ok(response.status_code)

    async def _check(self, client: httpx.AsyncClient, service: ProbeTarget) -> HealthCheckResult:
        start_time = time.perf_counter()
        result = await self._probe(client, health_url(service.url))
        elapsed_ms = round((time.perf_counter() - start_time) * 1000, 2)

        if result.is_ok():
            return HealthCheckResult(
                service_id=service.id,
                service_name=service.name,
                status=HealthStatus.ONLINE,
                response_time_ms=elapsed_ms,
            )

        error = str(result.unwrap_err())
        self.logger.warning(
            "health_check_failed", service=service.name, url=service.url, error=error
        )
        return HealthCheckResult(
            service_id=service.id,
            service_name=service.name,
            status=HealthStatus.OFFLINE,
            response_time_ms=elapsed_ms,
            error=error,
        )

    async def check_service_health(self, service: ProbeTarget) -> HealthCheckResult:
        """Probe one service."""
        async with self._client() as client:
            return await self._check(client, service)

    async def check_all_services(
        self, services: Sequence[ProbeTarget]
    ) -> list[HealthCheckResult]:
        """
        Probe every service at once and wait for all of them.

        Uses ``gather(return_exceptions=True)`` rather than a TaskGroup: one
        probe's failure must never cancel its siblings. Output order matches
        input order.
        """
        if not services:
            return []

        start_time = time.perf_counter()
        async with self._client() as client:
            outcomes = await asyncio.gather(
                *(self._check(client, service) for service in services),
                return_exceptions=True,
            )

        results: list[HealthCheckResult] = []
        for service, outcome in zip(services, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                self.logger.error(
                    "unexpected_health_check_error", service=service.name, error=str(outcome)
                )
                outcome = HealthCheckResult(
                    service_id=service.id,
                    service_name=service.name,
                    status=HealthStatus.OFFLINE,
                    response_time_ms=0.0,
                    checked_at=datetime.now(UTC),
                    error=_describe(outcome),
                )
            results.append(outcome)

        self.logger.info(
            "health_checks_completed",
            total_services=len(services),
            online=sum(1 for r in results if r.status == HealthStatus.ONLINE),
            duration_seconds=round(time.perf_counter() - start_time, 3),
        )
        return results
