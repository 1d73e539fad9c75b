"""
ASGI middleware that feeds completed requests into the performance monitor.

Framework-agnostic: wraps any ASGI application (Starlette, FastAPI, Django
ASGI) without importing one. Recording happens after the response has been
sent and is a synchronous in-memory append.
"""

import fnmatch
import time
from collections.abc import Callable, Coroutine
from typing import Any

from telemetry.services.performance_monitor import PerformanceMonitor

Scope = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, dict[str, Any]]]
Send = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]


def _decode_headers(scope: Scope) -> dict[str, str]:
    headers: list[tuple[bytes, bytes]] = scope.get("headers", [])
    return {
        name.decode("latin-1").lower(): value.decode("latin-1") for name, value in headers
    }


def _client_ip(scope: Scope) -> str | None:
    client = scope.get("client")
    if client:
        return str(client[0])
    return None


def _user_id(scope: Scope) -> str | None:
    # populated by authentication middleware further out, if any
    user = scope.get("user")
    identifier = getattr(user, "id", None) or getattr(user, "identity", None)
    return str(identifier) if identifier else None


class RequestTelemetryMiddleware:
    """
    Times every HTTP request and records it once it completes.

    Args:
        app: The ASGI application to wrap.
        monitor: Where completed requests are recorded.
        exclude_paths: Paths to skip. Supports exact matches and fnmatch
            patterns (e.g. "/static/*").
    """

    def __init__(
        self,
        app: ASGIApp,
        monitor: PerformanceMonitor,
        exclude_paths: list[str] | None = None,
    ) -> None:
        self.app = app
        self.monitor = monitor
        self.exclude_paths = exclude_paths or []

    def _path_excluded(self, path: str) -> bool:
        return any(fnmatch.fnmatch(path, pattern) for pattern in self.exclude_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start_time = time.perf_counter()
        captured: dict[str, Any] = {"status": None, "exception": None}

        async def wrapped_send(message: dict[str, Any]) -> None:
            if message["type"] == "http.response.start":
                captured["status"] = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, wrapped_send)
        except Exception as e:
            captured["exception"] = e
            captured["status"] = 500
            raise
        finally:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            self._record(scope, captured, elapsed_ms)

    def _record(self, scope: Scope, captured: dict[str, Any], elapsed_ms: float) -> None:
        path = scope.get("path", "/")
        if self._path_excluded(path):
            return
        request = {
            "method": scope.get("method"),
            "url": path,
            "headers": _decode_headers(scope),
            "client_ip": _client_ip(scope),
            "user_id": _user_id(scope),
        }
        response = {"status_code": captured["status"]} if captured["status"] is not None else None
        self.monitor.record_request(request, response, elapsed_ms, captured["exception"])
