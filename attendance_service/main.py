from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from attendance_service.api.classes import router as classes_router
from attendance_service.api.entry import router as entry_router
from attendance_service.api.health import router as health_router
from attendance_service.api.metrics_endpoint import router as metrics_router
from attendance_service.api.periods import router as periods_router
from attendance_service.core.config import SETTINGS
from attendance_service.core.logging import setup_logging
from attendance_service.db.engine import lifespan_db
from attendance_service.db.redis import lifespan_redis
from attendance_service.middleware.metrics import MetricsMiddleware
from attendance_service.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order even if one fails.
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="attendance-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

# Last-added runs first: RequestContext (outermost) → Metrics → route handler,
# so every request has an ID before metrics are recorded.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(classes_router)
app.include_router(entry_router)
app.include_router(periods_router)

logger.info(
    "attendance-service started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
