"""
Time-window analytics over the raw sample logs.

Every view is recomputed from the filtered samples on demand; nothing here
reads the aggregator's cached counters. That keeps the report a pure
function of (samples, now, start time), which is what the idempotence and
replay guarantees rest on.
"""

from collections import Counter, defaultdict
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from telemetry.domain.models import HealthStatus, RequestSample, ServiceHealthSample
from telemetry.domain.reports import (
    ApiUsageRow,
    DashboardAnalytics,
    EndpointCount,
    ErrorAnalysis,
    OverviewMetrics,
    ServiceHealthRow,
    StatusCodeCount,
    TrendPoint,
)

TREND_INTERVAL = timedelta(minutes=5)
TOP_N = 10


class TimeRange(str, Enum):
    """Lookback windows the dashboard offers."""

    FIVE_MINUTES = "5m"
    FIFTEEN_MINUTES = "15m"
    ONE_HOUR = "1h"
    SIX_HOURS = "6h"
    ONE_DAY = "24h"
    ONE_DAY_ALIAS = "1d"
    SEVEN_DAYS = "7d"


DEFAULT_TIME_RANGE = TimeRange.ONE_HOUR

_DURATIONS: dict[TimeRange, timedelta] = {
    TimeRange.FIVE_MINUTES: timedelta(minutes=5),
    TimeRange.FIFTEEN_MINUTES: timedelta(minutes=15),
    TimeRange.ONE_HOUR: timedelta(hours=1),
    TimeRange.SIX_HOURS: timedelta(hours=6),
    TimeRange.ONE_DAY: timedelta(days=1),
    TimeRange.ONE_DAY_ALIAS: timedelta(days=1),
    TimeRange.SEVEN_DAYS: timedelta(days=7),
}


def resolve_time_range(token: str | None) -> TimeRange:
    """Map a token onto a known range; anything unrecognised means one hour."""
    try:
        return TimeRange(token)
    except ValueError:
        return DEFAULT_TIME_RANGE


def parse_time_range(token: str | None) -> timedelta:
    """Lookback duration for a time-range token (``1h`` for unknown tokens)."""
    return _DURATIONS[resolve_time_range(token)]


def round_half_up(value: float, places: int = 2) -> float:
    """Round like a calculator does: 0.125 -> 0.13, never to even."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def percentage(part: int, whole: int) -> float:
    return round_half_up(part / whole * 100) if whole else 0.0


def average_response_time(samples: Iterable[RequestSample]) -> float:
    """Mean over the samples that carry a response time."""
    times = [s.response_time_ms for s in samples if s.response_time_ms is not None]
    return round_half_up(sum(times) / len(times)) if times else 0.0


def error_rate(samples: Sequence[RequestSample]) -> float:
    return percentage(sum(1 for s in samples if s.is_error), len(samples))


def bucket_start(timestamp: datetime, interval: timedelta = TREND_INTERVAL) -> datetime:
    """Wall-clock bucket a timestamp falls in: floor(ts / interval) * interval."""
    step = interval.total_seconds()
    epoch = timestamp.timestamp()
    return datetime.fromtimestamp((epoch // step) * step, UTC)


def overview_metrics(
    requests: Sequence[RequestSample], uptime: timedelta
) -> OverviewMetrics:
    total = len(requests)
    errors = sum(1 for r in requests if r.is_error)
    uptime_seconds = uptime.total_seconds()
    per_minute = total / (uptime_seconds / 60) if total and uptime_seconds > 0 else 0.0
    return OverviewMetrics(
        total_requests=total,
        error_count=errors,
        error_rate=percentage(errors, total),
        average_response_time=average_response_time(requests),
        uptime_seconds=round_half_up(uptime_seconds),
        requests_per_minute=round_half_up(per_minute),
    )


def api_usage_metrics(requests: Sequence[RequestSample]) -> list[ApiUsageRow]:
    by_endpoint: dict[str, list[RequestSample]] = defaultdict(list)
    for request in requests:
        by_endpoint[request.endpoint].append(request)

    rows = [
        ApiUsageRow(
            method=samples[0].method,
            url=samples[0].url,
            endpoint=endpoint,
            count=len(samples),
            error_count=sum(1 for s in samples if s.is_error),
            average_response_time=average_response_time(samples),
            error_rate=error_rate(samples),
        )
        for endpoint, samples in by_endpoint.items()
    ]
    return sorted(rows, key=lambda row: row.count, reverse=True)


def service_health_metrics(checks: Sequence[ServiceHealthSample]) -> list[ServiceHealthRow]:
    by_service: dict[object, list[ServiceHealthSample]] = defaultdict(list)
    for check in checks:
        by_service[check.service_id].append(check)

    rows = []
    for service_id, samples in by_service.items():
        latest = samples[0]
        for sample in samples[1:]:
            if sample.timestamp >= latest.timestamp:
                latest = sample
        online = sum(1 for s in samples if s.status == HealthStatus.ONLINE)
        rows.append(
            ServiceHealthRow(
                service_id=service_id,  # type: ignore[arg-type]
                service_name=latest.service_name,
                checks=len(samples),
                online_checks=online,
                uptime_percentage=percentage(online, len(samples)),
                average_response_time=round_half_up(
                    sum(s.response_time_ms for s in samples) / len(samples)
                ),
                last_status=latest.status,
            )
        )
    return rows


def error_analysis(requests: Sequence[RequestSample]) -> ErrorAnalysis:
    errors = [r for r in requests if r.is_error]
    by_status = Counter(r.status_code for r in errors)
    by_endpoint = Counter(r.endpoint for r in errors)
    return ErrorAnalysis(
        total_errors=len(errors),
        errors_by_status=[
            StatusCodeCount(status_code=code, count=count)
            for code, count in sorted(by_status.items(), key=lambda item: (-item[1], item[0]))
        ],
        errors_by_endpoint=[
            EndpointCount(endpoint=endpoint, count=count)
            for endpoint, count in by_endpoint.most_common(TOP_N)
        ],
    )


def performance_trends(
    requests: Sequence[RequestSample], interval: timedelta = TREND_INTERVAL
) -> list[TrendPoint]:
    buckets: dict[datetime, list[RequestSample]] = defaultdict(list)
    for request in requests:
        buckets[bucket_start(request.timestamp, interval)].append(request)

    return [
        TrendPoint(
            timestamp=start,
            request_count=len(samples),
            average_response_time=average_response_time(samples),
            error_rate=error_rate(samples),
        )
        for start, samples in sorted(buckets.items())
    ]


def top_endpoints(requests: Sequence[RequestSample], limit: int = TOP_N) -> list[EndpointCount]:
    counts = Counter(r.endpoint for r in requests)
    return [EndpointCount(endpoint=e, count=c) for e, c in counts.most_common(limit)]


def build_dashboard_analytics(
    requests: Sequence[RequestSample],
    health_checks: Sequence[ServiceHealthSample],
    *,
    time_range: str | None,
    now: datetime,
    started_at: datetime,
) -> DashboardAnalytics:
    """
    Compose the full report for one time range.

    ``requests`` and ``health_checks`` may be the whole logs; they are
    filtered here to ``timestamp >= now - duration(time_range)``.
    """
    resolved = resolve_time_range(time_range)
    from_time = now - _DURATIONS[resolved]
    window_requests = [r for r in requests if r.timestamp >= from_time]
    window_checks = [h for h in health_checks if h.timestamp >= from_time]

    return DashboardAnalytics(
        time_range=resolved.value,
        from_time=from_time,
        generated_at=now,
        overview=overview_metrics(window_requests, now - started_at),
        api_usage=api_usage_metrics(window_requests),
        service_health=service_health_metrics(window_checks),
        error_analysis=error_analysis(window_requests),
        performance_trends=performance_trends(window_requests),
        top_endpoints=top_endpoints(window_requests),
    )
