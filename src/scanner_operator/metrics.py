"""Prometheus instrumentation for the HTTP API."""

from __future__ import annotations

import time

from fastapi import Request
from prometheus_client import Histogram

HTTP_RESPONSE_DURATION = Histogram(
    "http_response_duration_seconds",
    "Duration of HTTP responses in seconds",
    ["path", "method"],
)


def route_path(request: Request) -> str | None:
    """Path template of the matched route, e.g. /scan-results/{image_id}."""
    route = request.scope.get("route")
    if route is None:
        return None
    return getattr(route, "path_format", None) or getattr(route, "path", None)


async def observe_duration(request: Request, call_next):
    """HTTP middleware recording response duration per route and method.

    Requests that match no route are not recorded, so unknown paths cannot
    create new label values.
    """
    start = time.perf_counter()
    response = await call_next(request)
    path = route_path(request)
    if path is not None:
        HTTP_RESPONSE_DURATION.labels(path, request.method).observe(time.perf_counter() - start)
    return response
