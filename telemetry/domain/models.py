"""
Domain models for dashboard telemetry.

These models represent the raw observations the dashboard records and the
services it watches. Samples are frozen: once recorded they are never
mutated, only evicted.
"""

import math
from collections.abc import Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

UNKNOWN_METHOD = "UNKNOWN"
DEFAULT_URL = "/"
DEFAULT_STATUS_CODE = 500
UNKNOWN_CLIENT = "Unknown"

ServiceId = int | str


class HealthStatus(str, Enum):
    """Outcome of a single health probe."""

    ONLINE = "online"
    OFFLINE = "offline"


class ServiceStatus(str, Enum):
    """Last known status of a registered service."""

    UNKNOWN = "unknown"
    ONLINE = "online"
    OFFLINE = "offline"


def endpoint_key(method: str, url: str) -> str:
    """Logical endpoint identifier used by every rollup."""
    return f"{method} {url}"


def _header(headers: Any, name: str) -> str | None:
    if not isinstance(headers, Mapping):
        return None
    for key, value in headers.items():
        if isinstance(key, bytes):
            key = key.decode("latin-1")
        if str(key).lower() == name:
            return value.decode("latin-1") if isinstance(value, bytes) else str(value)
    return None


def _finite_ms(value: Any) -> float | None:
    if not isinstance(value, int | float) or isinstance(value, bool):
        return None
    try:
        value = float(value)
    except OverflowError:
        return None
    return value if math.isfinite(value) else None


def _error_message(error: BaseException | str | None) -> str | None:
    if error is None:
        return None
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    return str(error) or None


class RequestSample(BaseModel):
    """One completed HTTP request as seen by the dashboard."""

    model_config = ConfigDict(frozen=True)

    timestamp: AwareDatetime = Field(default_factory=lambda: datetime.now(UTC))
    method: str = UNKNOWN_METHOD
    url: str = DEFAULT_URL
    status_code: int = DEFAULT_STATUS_CODE
    response_time_ms: float | None = Field(
        default=None,
        allow_inf_nan=False,
        description="None when the caller supplied no finite numeric duration",
    )
    client_ip: str = UNKNOWN_CLIENT
    user_agent: str = UNKNOWN_CLIENT
    error: str | None = None
    user_id: str | None = None

    @property
    def endpoint(self) -> str:
        return endpoint_key(self.method, self.url)

    @property
    def is_error(self) -> bool:
        return self.status_code >= 400 or bool(self.error)

    @classmethod
    def from_exchange(
        cls,
        request: Mapping[str, Any] | None,
        response: Mapping[str, Any] | None,
        response_time_ms: Any,
        error: BaseException | str | None = None,
        timestamp: datetime | None = None,
    ) -> "RequestSample":
        """
        Build a sample from loosely shaped request/response mappings.

        Missing fields fall back to sentinel values ("UNKNOWN", "/", 500)
        so a half-populated request never stops the recording path.
        """
        request = request if isinstance(request, Mapping) else {}

        status_code = DEFAULT_STATUS_CODE
        if isinstance(response, Mapping):
            raw_status = response.get("status_code", response.get("status"))
            if isinstance(raw_status, int) and not isinstance(raw_status, bool):
                status_code = raw_status

        elapsed = _finite_ms(response_time_ms)

        user_id = request.get("user_id")

        return cls(
            timestamp=timestamp or datetime.now(UTC),
            method=str(request.get("method") or UNKNOWN_METHOD).upper(),
            url=str(request.get("url") or request.get("path") or DEFAULT_URL),
            status_code=status_code,
            response_time_ms=elapsed,
            client_ip=str(request.get("client_ip") or UNKNOWN_CLIENT),
            user_agent=_header(request.get("headers"), "user-agent") or UNKNOWN_CLIENT,
            error=_error_message(error),
            user_id=str(user_id) if user_id is not None else None,
        )


class ServiceHealthSample(BaseModel):
    """One health probe result for a registered service."""

    model_config = ConfigDict(frozen=True)

    timestamp: AwareDatetime = Field(default_factory=lambda: datetime.now(UTC))
    service_id: ServiceId
    service_name: str
    status: HealthStatus
    response_time_ms: float = Field(default=0.0, ge=0.0, allow_inf_nan=False)


class MemoryUsage(BaseModel):
    """Process memory, in megabytes."""

    model_config = ConfigDict(frozen=True)

    resident_mb: float
    heap_total_mb: float
    heap_used_mb: float
    external_mb: float


class CpuUsage(BaseModel):
    """Cumulative process CPU time plus the utilisation since the last reading."""

    model_config = ConfigDict(frozen=True)

    user_seconds: float
    system_seconds: float
    percent: float = 0.0


class SystemSnapshot(BaseModel):
    """Process-level resource reading taken by the sampling tick."""

    model_config = ConfigDict(frozen=True)

    timestamp: AwareDatetime = Field(default_factory=lambda: datetime.now(UTC))
    memory: MemoryUsage
    cpu: CpuUsage
    uptime_seconds: float
    process_id: int
    runtime_version: str


class EndpointStat(BaseModel):
    """
    Running counters for one logical endpoint.

    A cache over the raw request log, mutable and owned by the aggregator.
    The integer counters always equal a replay of the stored samples;
    ``total_response_time_ms`` matches a replay only up to float rounding,
    since evictions subtract from a running sum.
    """

    count: int = 0
    total_response_time_ms: float = 0.0
    error_count: int = 0
    last_used_at: datetime | None = None


class EndpointDescriptor(BaseModel):
    """An API endpoint a registered service advertises."""

    model_config = ConfigDict(frozen=True)

    method: str
    path: str
    description: str = ""


class ServiceDescriptor(BaseModel):
    """A registered microservice the dashboard polls."""

    id: int
    name: str
    url: str
    description: str = ""
    endpoints: list[EndpointDescriptor] = Field(default_factory=list)
    status: ServiceStatus = ServiceStatus.UNKNOWN
    last_check: datetime | None = None


class HealthCheckResult(BaseModel):
    """Outcome of probing one service. Failures are data, never exceptions."""

    model_config = ConfigDict(frozen=True)

    service_id: ServiceId
    service_name: str
    status: HealthStatus
    response_time_ms: float
    checked_at: AwareDatetime = Field(default_factory=lambda: datetime.now(UTC))
    error: str | None = None


class ProxyRequest(BaseModel):
    """An ad-hoc request the dashboard forwards to a registered service."""

    method: str = ""
    path: str = ""
    data: Any = None
    headers: dict[str, str] = Field(default_factory=dict)


class ProxyResponse(BaseModel):
    """What came back from a proxied request, or why it failed."""

    status: int | None = None
    status_text: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    data: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
