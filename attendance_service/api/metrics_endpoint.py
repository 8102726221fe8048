"""Prometheus metrics endpoint.

Returns the text exposition format that Prometheus scrapes, e.g.

  class_closures_total{outcome="closed"} 12.0
  enrollments_finalized_total{status="rejected"} 41.0

Restrict access to /metrics at the ingress in production; closure counts
reveal academic calendar activity.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Expose all Prometheus metrics in text exposition format."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
