"""Registry of the microservices the dashboard watches."""

import itertools
from collections.abc import Iterable
from datetime import UTC, datetime
from urllib.parse import urlparse

import structlog

from telemetry.domain.models import (
    EndpointDescriptor,
    HealthStatus,
    ServiceDescriptor,
    ServiceStatus,
)

logger = structlog.get_logger(__name__)


class ServiceNotFoundError(KeyError):
    """No registered service has the requested id."""

    def __init__(self, service_id: int) -> None:
        super().__init__(service_id)
        self.service_id = service_id

    def __str__(self) -> str:
        return f"Service not found: {self.service_id}"


def validate_service(name: object, url: object) -> list[str]:
    """Return every problem with a candidate registration (empty when valid)."""
    errors = []

    if not isinstance(name, str) or not name.strip():
        errors.append("Name is required and must be a non-empty string")

    if not isinstance(url, str) or not url:
        errors.append("URL is required and must be a string")
    else:
        parsed = urlparse(url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            errors.append("URL must be a valid http(s) URL")

    return errors


class ServiceRegistry:
    """In-memory set of registered services, keyed by a sequential id."""

    def __init__(self) -> None:
        self._services: dict[int, ServiceDescriptor] = {}
        self._ids = itertools.count(1)
        self.logger = logger.bind(component="service_registry")

    def __len__(self) -> int:
        return len(self._services)

    def all_services(self) -> list[ServiceDescriptor]:
        return [service.model_copy() for service in self._services.values()]

    def get_service(self, service_id: int) -> ServiceDescriptor:
        try:
            return self._services[service_id].model_copy()
        except KeyError:
            raise ServiceNotFoundError(service_id) from None

    def add_service(
        self,
        name: str,
        url: str,
        description: str = "",
        endpoints: Iterable[EndpointDescriptor | dict] = (),
    ) -> ServiceDescriptor:
        errors = validate_service(name, url)
        if errors:
            raise ValueError("; ".join(errors))

        service = ServiceDescriptor(
            id=next(self._ids),
            name=name.strip(),
            url=url.rstrip("/"),
            description=description,
            endpoints=[EndpointDescriptor.model_validate(e) for e in endpoints],
        )
        self._services[service.id] = service
        self.logger.info("service_registered", service_id=service.id, name=service.name)
        return service.model_copy()

    def remove_service(self, service_id: int) -> None:
        if self._services.pop(service_id, None) is None:
            raise ServiceNotFoundError(service_id)
        self.logger.info("service_removed", service_id=service_id)

    def update_status(
        self,
        service_id: int,
        status: ServiceStatus | HealthStatus | str,
        last_check: datetime | None = None,
    ) -> ServiceDescriptor:
        service = self._services.get(service_id)
        if service is None:
            raise ServiceNotFoundError(service_id)

        status_value = status.value if isinstance(status, HealthStatus) else status
        service.status = ServiceStatus(status_value)
        service.last_check = last_check or datetime.now(UTC)
        return service.model_copy()
