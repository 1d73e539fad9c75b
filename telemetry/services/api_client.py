"""
Ad-hoc request proxy to registered services.

Lets the dashboard user fire an arbitrary request at a service and see what
came back. Transport failures are reported inside the ``ProxyResponse``;
only caller mistakes (no service, no method or path) raise.
"""

from typing import Any

import httpx
import structlog

from telemetry.domain.models import ProxyRequest, ProxyResponse, ServiceDescriptor
from telemetry.domain.result import Result

logger = structlog.get_logger(__name__)

ALLOWED_METHODS = frozenset({"GET", "POST", "PUT", "DELETE", "PATCH"})
METHODS_WITH_BODY = frozenset({"POST", "PUT", "PATCH"})


def validate_request(request: ProxyRequest) -> list[str]:
    errors = []

    if not request.method:
        errors.append("Method is required")
    elif request.method.upper() not in ALLOWED_METHODS:
        errors.append("Invalid HTTP method")

    if not request.path:
        errors.append("Path is required")
    elif not request.path.startswith("/"):
        errors.append("Path must start with /")

    return errors


def should_include_body(method: str) -> bool:
    return method.upper() in METHODS_WITH_BODY


def _decode_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class ApiClient:
    """
    Forwards requests to services with a bounded timeout.

    Args:
        timeout: Seconds before the proxied request is abandoned.
        transport: Optional httpx transport (tests pass a ``MockTransport``).
    """

    def __init__(
        self, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None
    ) -> None:
        self.timeout = timeout
        self._transport = transport
        self.logger = logger.bind(component="api_client")

    async def _send(
        self, method: str, url: str, request: ProxyRequest
    ) -> Result[httpx.Response, httpx.HTTPError]:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.request(
                    method,
                    url,
                    headers=request.headers,
                    json=request.data
                    if request.data is not None and should_include_body(method)
                    else None,
                )
                response.raise_for_status()
                return Result.ok(response)
        except httpx.HTTPError as e:
            return Result.err(e)

    async def execute_request(
        self, service: ServiceDescriptor | None, request: ProxyRequest
    ) -> ProxyResponse:
        if service is None:
            raise ValueError("Service not found")
        if not request.method or not request.path:
            raise ValueError("Method and path are required")

        method = request.method.upper()
        url = f"{service.url.rstrip('/')}{request.path}"
        result = await self._send(method, url, request)

        if result.is_ok():
            response = result.unwrap()
            self.logger.info(
                "proxy_request_completed",
                service=service.name,
                method=method,
                url=url,
                status=response.status_code,
            )
            return ProxyResponse(
                status=response.status_code,
                status_text=response.reason_phrase,
                headers=dict(response.headers),
                data=_decode_body(response),
            )

        error = result.unwrap_err()
        self.logger.warning(
            "proxy_request_failed", service=service.name, method=method, url=url, error=str(error)
        )
        if isinstance(error, httpx.HTTPStatusError):
            return ProxyResponse(
                error=str(error),
                status=error.response.status_code,
                status_text=error.response.reason_phrase,
                headers=dict(error.response.headers),
                data=_decode_body(error.response),
            )
        return ProxyResponse(error=str(error) or type(error).__name__)
