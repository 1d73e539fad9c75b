"""
Core services for the dashboard backend.

This package contains the telemetry store and its analytics, the background
maintenance tasks, health polling and the request proxy.
"""

from .aggregator import EndpointAggregator
from .analytics import TimeRange, build_dashboard_analytics, parse_time_range, round_half_up
from .api_client import ApiClient, validate_request
from .dashboard import DashboardService
from .health_checker import HealthChecker
from .health_monitor import ServiceHealthMonitor
from .performance_monitor import PerformanceMonitor
from .sample_store import SampleLog, SampleStore
from .scheduler import MaintenanceScheduler, PeriodicTask
from .service_registry import ServiceNotFoundError, ServiceRegistry, validate_service
from .system_metrics import SystemMetricsSource

__all__ = [
    "ApiClient",
    "DashboardService",
    "EndpointAggregator",
    "HealthChecker",
    "MaintenanceScheduler",
    "PerformanceMonitor",
    "PeriodicTask",
    "SampleLog",
    "SampleStore",
    "ServiceHealthMonitor",
    "ServiceNotFoundError",
    "ServiceRegistry",
    "SystemMetricsSource",
    "TimeRange",
    "build_dashboard_analytics",
    "parse_time_range",
    "round_half_up",
    "validate_request",
    "validate_service",
]
