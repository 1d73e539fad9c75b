"""
Analytics report shapes returned by the time-window query engine.

Fields are snake_case in Python; ``model_dump(by_alias=True)`` produces the
camelCase keys the dashboard UI reads.
"""

from datetime import datetime

from pydantic import AliasGenerator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from telemetry.domain.models import HealthStatus, ServiceId


class ReportModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=AliasGenerator(serialization_alias=to_camel),
    )


class OverviewMetrics(ReportModel):
    total_requests: int
    error_count: int
    error_rate: float
    average_response_time: float
    uptime_seconds: float = Field(description="Seconds since the monitor was created")
    requests_per_minute: float


class ApiUsageRow(ReportModel):
    method: str
    url: str
    endpoint: str
    count: int
    error_count: int
    average_response_time: float
    error_rate: float


class ServiceHealthRow(ReportModel):
    service_id: ServiceId
    service_name: str
    checks: int
    online_checks: int
    uptime_percentage: float
    average_response_time: float
    last_status: HealthStatus


class StatusCodeCount(ReportModel):
    status_code: int
    count: int


class EndpointCount(ReportModel):
    endpoint: str
    count: int


class ErrorAnalysis(ReportModel):
    total_errors: int
    errors_by_status: list[StatusCodeCount]
    errors_by_endpoint: list[EndpointCount]


class TrendPoint(ReportModel):
    timestamp: datetime
    request_count: int
    average_response_time: float
    error_rate: float


class DashboardAnalytics(ReportModel):
    """Everything the dashboard shows for one time range."""

    time_range: str
    from_time: datetime
    generated_at: datetime
    overview: OverviewMetrics
    api_usage: list[ApiUsageRow]
    service_health: list[ServiceHealthRow]
    error_analysis: ErrorAnalysis
    performance_trends: list[TrendPoint]
    top_endpoints: list[EndpointCount]
