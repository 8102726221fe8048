"""Async SQLAlchemy engine and session factory.

When DATABASE_URL is configured this module provides an asyncpg engine,
a session factory and ``session_scope``, the unit of work shared by API
requests and worker tasks. Without DATABASE_URL every export is None and
the service runs on the in-memory repository.

A class closure is one unit of work: its enrollment writes commit together
with the class status change, or not at all. Per-enrollment savepoints
(PgPeriodRepo.savepoint) keep one student's failure inside that unit.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from attendance_service.core.config import SETTINGS

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all table models."""


if SETTINGS.database_url:
    engine = create_async_engine(
        SETTINGS.database_url,
        echo=SETTINGS.is_dev,  # log SQL in dev only
        pool_size=5,
        max_overflow=10,
        # The worker holds connections across idle hours between closures.
        pool_pre_ping=True,
        connect_args={"server_settings": {"application_name": "attendance-service"}},
    )
    async_session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
else:
    engine = None
    async_session_factory = None


@asynccontextmanager
async def session_scope(label: str = "request") -> AsyncGenerator[AsyncSession, None]:
    """One unit of work: commit on success, roll back on exception.

    ``label`` names the work in the rollback log line ("request",
    "period closure").
    """
    if async_session_factory is None:
        raise RuntimeError(
            "DATABASE_URL is not configured; cannot create database session"
        )
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            logger.warning("Rolled back %s transaction", label)
            raise


@asynccontextmanager
async def lifespan_db():
    """Startup/shutdown hook for the database engine."""
    if engine is None:
        logger.info("No DATABASE_URL configured; using the in-memory repository")
        yield
        return

    logger.info("Database engine created: %s", engine.url)
    yield
    await engine.dispose()
    logger.info("Database engine disposed")
