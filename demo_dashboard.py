"""
End-to-end walkthrough of the dashboard backend.

This script exercises:
1. Configuration loading and validation
2. Request recording through the performance monitor
3. Health polling of the registered services
4. The analytics report for a time range
5. System snapshot sampling

Run with: uv run python demo_dashboard.py
"""

import asyncio
import random

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from telemetry.config import get_config, print_config_summary, validate_config
from telemetry.domain.reports import DashboardAnalytics
from telemetry.log_config import configure_logging
from telemetry.services.dashboard import DashboardService

console = Console()

SYNTHETIC_ENDPOINTS = [
    ("GET", "/api/services"),
    ("GET", "/api/analytics/dashboard"),
    ("POST", "/api/services/1/request"),
    ("GET", "/api/health/all"),
]


def record_synthetic_traffic(service: DashboardService, count: int = 200) -> None:
    """Feed the monitor a burst of plausible requests."""
    for _ in range(count):
        method, path = random.choice(SYNTHETIC_ENDPOINTS)
        status = random.choices([200, 201, 404, 500], weights=[80, 10, 6, 4])[0]
        service.monitor.record_request(
            {"method": method, "url": path, "client_ip": "127.0.0.1"},
            {"status_code": status},
            random.uniform(5.0, 250.0),
        )


def render_report(report: DashboardAnalytics) -> None:
    overview = report.overview
    summary = Table(title=f"Overview ({report.time_range})")
    summary.add_column("Metric", style="cyan")
    summary.add_column("Value", style="white")
    summary.add_row("Total Requests", str(overview.total_requests))
    summary.add_row("Errors", str(overview.error_count))
    summary.add_row("Error Rate", f"{overview.error_rate:.2f}%")
    summary.add_row("Avg Response Time", f"{overview.average_response_time:.2f}ms")
    summary.add_row("Requests / Minute", f"{overview.requests_per_minute:.2f}")
    console.print(summary)

    usage = Table(title="API Usage")
    usage.add_column("Endpoint", style="cyan")
    usage.add_column("Count", style="magenta")
    usage.add_column("Avg ms", style="green")
    usage.add_column("Error %", style="red")
    for row in report.api_usage:
        usage.add_row(
            row.endpoint,
            str(row.count),
            f"{row.average_response_time:.2f}",
            f"{row.error_rate:.2f}",
        )
    console.print(usage)

    health = Table(title="Service Health")
    health.add_column("Service", style="cyan")
    health.add_column("Checks", style="magenta")
    health.add_column("Uptime %", style="green")
    health.add_column("Last Status", style="yellow")
    for row in report.service_health:
        health.add_row(
            row.service_name, str(row.checks), f"{row.uptime_percentage:.2f}", row.last_status.value
        )
    console.print(health)


async def main() -> None:
    console.print(Panel("Microservices Dashboard Telemetry Demo", style="blue"))

    validate_config()
    print_config_summary()
    config = get_config()
    configure_logging(config.logging)

    service = DashboardService(config)
    if not len(service.registry):
        service.registry.add_service("User Service", "http://localhost:3001", "User management")
        service.registry.add_service("Product Service", "http://localhost:3002")
        service.registry.add_service("Order Service", "http://localhost:3003")

    async with service.running():
        console.print("Recording synthetic traffic...", style="yellow")
        record_synthetic_traffic(service)

        console.print("Polling registered services...", style="yellow")
        results = await service.check_all_services()
        for result in results:
            style = "green" if result.status.value == "online" else "red"
            detail = f" ({result.error})" if result.error else ""
            console.print(
                f"  {result.service_name}: {result.status.value} "
                f"in {result.response_time_ms:.1f}ms{detail}",
                style=style,
            )

        service.monitor.capture_system_snapshot()
        render_report(service.get_dashboard_analytics("1h"))

        snapshot = service.monitor.get_current_system_metrics()
        console.print(
            f"Process {snapshot.process_id} on Python {snapshot.runtime_version}: "
            f"{snapshot.memory.resident_mb:.1f}MB resident, up {snapshot.uptime_seconds:.0f}s",
            style="green",
        )


if __name__ == "__main__":
    asyncio.run(main())
