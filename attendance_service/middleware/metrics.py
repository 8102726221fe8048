"""Prometheus metrics middleware.

Every request bumps ACTIVE_REQUESTS while in flight, then records
REQUEST_COUNT (method/endpoint/status) and REQUEST_DURATION. The endpoint
label is the matched route template, e.g. ``/v1/classes/{class_id}/close``,
so closing a thousand classes adds one series, not a thousand. Requests
that match no route share the ``unmatched`` label.
"""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from attendance_service.core.metrics import (
    ACTIVE_REQUESTS,
    REQUEST_COUNT,
    REQUEST_DURATION,
)


def _route_template(request: Request) -> str:
    # The router stores the matched route in the shared scope.
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class MetricsMiddleware(BaseHTTPMiddleware):
    """Collect Prometheus metrics for every HTTP request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # Scrapes of /metrics would otherwise inflate the request count.
        if request.url.path == "/metrics":
            return await call_next(request)

        ACTIVE_REQUESTS.inc()
        start = time.monotonic()
        status_code: str | None = None

        try:
            response = await call_next(request)
            status_code = str(response.status_code)
        except Exception:
            status_code = "500"
            raise
        finally:
            duration = time.monotonic() - start
            ACTIVE_REQUESTS.dec()
            endpoint = _route_template(request)
            REQUEST_COUNT.labels(
                method=request.method,
                endpoint=endpoint,
                status_code=status_code if status_code is not None else "500",
            ).inc()
            REQUEST_DURATION.labels(
                method=request.method,
                endpoint=endpoint,
            ).observe(duration)

        return response
