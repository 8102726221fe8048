from __future__ import annotations

import datetime
import sys
from dataclasses import replace
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from attendance_service.api.dependencies import period_repo
from attendance_service.main import app
from attendance_service.models.attendance import AccessRecord, AttendanceEvent
from attendance_service.models.enrollment import Enrollment, EnrollmentType
from attendance_service.models.period import CourseClass, LifecycleStatus, Period
from attendance_service.repos.period_repo import InMemoryPeriodRepo, PeriodRepo
from attendance_service.services.task_queue import task_queue

# Ensure repo root is on sys.path so `import attendance_service` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

PERIOD_START = datetime.date(2025, 3, 3)  # a Monday
PERIOD_END = datetime.date(2025, 7, 25)


@pytest.fixture(autouse=True)
def reset_period_repo() -> None:
    """Clear the API's in-memory store between tests."""
    period_repo.clear()


@pytest.fixture(autouse=True)
def reset_task_queue() -> None:
    """Clear task queues between tests."""
    if hasattr(task_queue, "_queues"):
        task_queue._queues.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def repo() -> InMemoryPeriodRepo:
    return InMemoryPeriodRepo()


# ---------------------------------------------------------------------------
# Scenario helpers
# ---------------------------------------------------------------------------
# These write straight to the repo, skipping services/entry.py, so tests
# can build states (closing periods, stored statuses) that entry forbids.


def session_date(session_number: int) -> datetime.date:
    """Weekly sessions starting on the first day of the period."""
    return PERIOD_START + datetime.timedelta(weeks=session_number - 1)


async def seed_period(
    repo: PeriodRepo, *, status: LifecycleStatus = "active"
) -> Period:
    period = Period.new(name="2025-1", start_date=PERIOD_START, end_date=PERIOD_END)
    period = replace(period, status=status)
    await repo.add_period(period)
    return period


async def seed_sync_class(
    repo: PeriodRepo,
    period: Period,
    *,
    planned_sessions: int = 16,
    name: str = "Algebra I",
) -> CourseClass:
    course_class = CourseClass.new(
        period_id=period.id,
        name=name,
        modality="synchronous",
        planned_sessions=planned_sessions,
        weekdays=("monday",),
        class_time="18:00",
    )
    await repo.add_class(course_class)
    return course_class


async def seed_self_paced_class(
    repo: PeriodRepo, period: Period, *, name: str = "Ethics Online"
) -> CourseClass:
    course_class = CourseClass.new(
        period_id=period.id, name=name, modality="self_paced"
    )
    await repo.add_class(course_class)
    return course_class


async def seed_enrollment(
    repo: PeriodRepo,
    course_class: CourseClass,
    *,
    student_id: UUID | None = None,
    type: EnrollmentType = "regular",
    enrollment_date: datetime.date = PERIOD_START,
) -> Enrollment:
    enrollment = Enrollment.new(
        class_id=course_class.id,
        student_id=student_id or uuid4(),
        enrollment_date=enrollment_date,
        type=type,
    )
    await repo.add_enrollment(enrollment)
    return enrollment


async def seed_sessions(
    repo: PeriodRepo,
    course_class: CourseClass,
    student_id: UUID,
    attendance: list[bool],
    *,
    first_session: int = 1,
) -> None:
    """Record one roll-call entry per flag, numbered from ``first_session``."""
    for offset, present in enumerate(attendance):
        number = first_session + offset
        await repo.record_attendance(
            AttendanceEvent(
                class_id=course_class.id,
                student_id=student_id,
                session_number=number,
                session_date=session_date(number),
                present=present,
            )
        )


async def seed_accesses(
    repo: PeriodRepo, course_class: CourseClass, student_id: UUID, count: int
) -> None:
    days = [PERIOD_START + datetime.timedelta(days=10 * i) for i in range(count)]
    days += [None] * (3 - count)
    await repo.record_access(
        AccessRecord(
            class_id=course_class.id,
            student_id=student_id,
            access_1=days[0],
            access_2=days[1],
            access_3=days[2],
        )
    )


async def begin_period_closure(repo: PeriodRepo, period: Period) -> Period:
    """Move the period to closing, the state class closures run in."""
    await repo.set_period_status(period.id, "closing", expected="active")
    closing = await repo.get_period(period.id)
    assert closing is not None
    return closing
