"""Request context middleware: a request ID and a timing line per request.

Concurrent requests interleave their log lines. Closing a class logs one
line per enrollment, so without a shared ID there is no way to tell which
closure a failed write belonged to. The ID lives in a ContextVar because
FastAPI runs many requests on the same thread; thread-locals would leak
between them.

The completion line carries duration_ms, the same value the
REQUEST_DURATION histogram observes in middleware/metrics.py.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


class _RequestContextFilter(logging.Filter):
    """Attach the current request ID to every LogRecord.

    A filter rather than a formatter because only filters can add fields
    to the record before it is formatted.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("-")  # type: ignore[attr-defined]
        return True


# Installed on the root logger so every module inherits it; guarded against
# duplicate installation across reloads.
root_logger = logging.getLogger()
if not any(isinstance(f, _RequestContextFilter) for f in root_logger.filters):
    root_logger.addFilter(_RequestContextFilter())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign a request ID, time the request, and log a summary line.

    1. Reuse the client's X-Request-ID header or generate a UUID
    2. Store it in the ContextVar for the rest of the async chain
    3. Log method, path, status and duration on completion
    4. Echo X-Request-ID on the response
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request_id_var.set(req_id)

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        logger.info(
            "%s %s → %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra={
                "request_id": req_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        response.headers["X-Request-ID"] = req_id
        return response
