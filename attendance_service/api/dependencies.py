"""Shared FastAPI dependencies: the repository and the closure orchestrators.

Without DATABASE_URL the routes share one module-level in-memory repo
(tests reset it between cases). With a database each request gets a
PgPeriodRepo bound to its own session; the session commits when the
request finishes.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from attendance_service.core.config import SETTINGS
from attendance_service.db.engine import async_session_factory, session_scope
from attendance_service.repos.period_repo import InMemoryPeriodRepo, PeriodRepo
from attendance_service.repos.pg_period_repo import PgPeriodRepo
from attendance_service.services.class_closure import ClassClosureOrchestrator
from attendance_service.services.cycle_closure import CycleClosureOrchestrator
from attendance_service.services.task_queue import TaskQueue, task_queue

period_repo = InMemoryPeriodRepo()


@asynccontextmanager
async def period_repo_scope(label: str = "request") -> AsyncGenerator[PeriodRepo, None]:
    """One unit of work against whichever store is configured."""
    if async_session_factory is None:
        yield period_repo
        return
    async with session_scope(label) as session:
        yield PgPeriodRepo(session)


async def get_period_repo() -> AsyncGenerator[PeriodRepo, None]:
    async with period_repo_scope() as repo:
        yield repo


def get_task_queue() -> TaskQueue:
    return task_queue


def build_class_closure(repo: PeriodRepo) -> ClassClosureOrchestrator:
    # An AsyncSession cannot serve concurrent statements, so a database-backed
    # closure finalizes one enrollment at a time.
    if isinstance(repo, PgPeriodRepo):
        return ClassClosureOrchestrator(repo, concurrency=1)
    return ClassClosureOrchestrator(repo, concurrency=SETTINGS.closure_concurrency)


def build_cycle_closure(repo: PeriodRepo) -> CycleClosureOrchestrator:
    return CycleClosureOrchestrator(repo, class_closure=build_class_closure(repo))
