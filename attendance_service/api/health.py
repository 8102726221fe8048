"""Health and readiness endpoints.

  /health (liveness): is the process alive? Always 200; the ``status``
      field says whether a dependency is degraded. A 503 here would make
      the orchestrator restart a container that is merely impaired.

  /ready (readiness): can this instance take traffic? 503 when the
      database is configured but unreachable, since every report and
      closure reads from it. Redis is not critical: a period closure
      cannot be queued without it, but class reports and class closures
      still work.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response
from sqlalchemy import text

from attendance_service.db.engine import engine
from attendance_service.db.redis import redis_pool

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _check_database() -> str:
    if engine is None:
        return "not_configured"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return "ok"
    except Exception:
        logger.warning("Database health check failed", exc_info=True)
        return "degraded"


async def _check_redis() -> str:
    if redis_pool is None:
        return "not_configured"
    try:
        await redis_pool.ping()  # type: ignore[misc]
        return "ok"
    except Exception:
        logger.warning("Redis health check failed", exc_info=True)
        return "degraded"


@router.get("/health")
async def health() -> dict:
    checks = {
        "database": await _check_database(),
        "redis": await _check_redis(),
    }
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if await _check_database() == "degraded":
        return Response(status_code=503)
    return Response(status_code=200)
