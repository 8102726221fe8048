"""Data entry endpoints: periods, classes, enrollments, attendance, access.

  POST /v1/periods                                 -> create period, 201
  POST /v1/periods/{period_id}/classes             -> create class, 201
  POST /v1/classes/{class_id}/enrollments          -> enroll student, 201
  PUT  /v1/classes/{class_id}/attendance           -> record one roll call
  PUT  /v1/classes/{class_id}/access/{student_id}  -> store access dates

Every write goes through services/entry.py. Validation failures are 422,
unknown ids 404. Once a class leaves ``active`` its entries are locked;
only the access endpoint accepts ``allow_closed`` for administrative
backfills, which a ``reevaluate`` class closure then picks up.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from attendance_service.api.dependencies import get_period_repo
from attendance_service.core.errors import EntryValidationError, NotFoundError
from attendance_service.models.period import CourseClass
from attendance_service.repos.period_repo import PeriodRepo
from attendance_service.services import entry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["entry"])


class PeriodIn(BaseModel):
    name: str
    start_date: str
    end_date: str


class PeriodOut(BaseModel):
    id: str
    name: str
    start_date: str
    end_date: str
    status: str


class ClassIn(BaseModel):
    name: str
    modality: str  # synchronous|self_paced
    planned_sessions: int | None = None
    weekdays: list[str] = []
    class_time: str = ""


class ClassOut(BaseModel):
    id: str
    period_id: str
    name: str
    modality: str
    status: str
    planned_sessions: int | None
    weekdays: list[str]
    class_time: str


class EnrollmentIn(BaseModel):
    student_id: UUID
    enrollment_date: str
    type: str = "regular"  # regular|exceptional


class EnrollmentOut(BaseModel):
    id: str
    class_id: str
    student_id: str
    type: str
    enrollment_date: str
    current_status: str


class AttendanceIn(BaseModel):
    student_id: UUID
    session_number: int
    session_date: str
    present: bool


class AttendanceOut(BaseModel):
    class_id: str
    student_id: str
    session_number: int
    session_date: str
    present: bool


class AccessIn(BaseModel):
    access_1: str | None = None
    access_2: str | None = None
    access_3: str | None = None
    allow_closed: bool = False


class AccessOut(BaseModel):
    class_id: str
    student_id: str
    access_1: str | None
    access_2: str | None
    access_3: str | None


@contextmanager
def _entry_errors(**log_ctx: str) -> Iterator[None]:
    try:
        yield
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    except EntryValidationError as e:
        logger.info("Entry rejected: %s", e, extra=log_ctx)
        raise HTTPException(status_code=422, detail=str(e)) from None
    except ValueError as e:
        # The store's uniqueness check lost a race with another writer.
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail=str(e)
        ) from None


def _class_out(course_class: CourseClass) -> ClassOut:
    return ClassOut(
        id=str(course_class.id),
        period_id=str(course_class.period_id),
        name=course_class.name,
        modality=course_class.modality,
        status=course_class.status,
        planned_sessions=course_class.planned_sessions,
        weekdays=list(course_class.weekdays),
        class_time=course_class.class_time,
    )


def _iso(day) -> str | None:
    return day.isoformat() if day is not None else None


@router.post("/periods", response_model=PeriodOut, status_code=status.HTTP_201_CREATED)
async def create_period(
    body: PeriodIn,
    repo: Annotated[PeriodRepo, Depends(get_period_repo)],
) -> PeriodOut:
    with _entry_errors():
        period = await entry.create_period(
            repo, name=body.name, start_date=body.start_date, end_date=body.end_date
        )
    return PeriodOut(
        id=str(period.id),
        name=period.name,
        start_date=period.start_date.isoformat(),
        end_date=period.end_date.isoformat(),
        status=period.status,
    )


@router.post(
    "/periods/{period_id}/classes",
    response_model=ClassOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_class(
    period_id: UUID,
    body: ClassIn,
    repo: Annotated[PeriodRepo, Depends(get_period_repo)],
) -> ClassOut:
    with _entry_errors(period_id=str(period_id)):
        course_class = await entry.create_class(
            repo,
            period_id=period_id,
            name=body.name,
            modality=body.modality,  # type: ignore[arg-type]
            planned_sessions=body.planned_sessions,
            weekdays=tuple(body.weekdays),
            class_time=body.class_time,
        )
    return _class_out(course_class)


@router.post(
    "/classes/{class_id}/enrollments",
    response_model=EnrollmentOut,
    status_code=status.HTTP_201_CREATED,
)
async def enroll_student(
    class_id: UUID,
    body: EnrollmentIn,
    repo: Annotated[PeriodRepo, Depends(get_period_repo)],
) -> EnrollmentOut:
    with _entry_errors(class_id=str(class_id), student_id=str(body.student_id)):
        enrollment = await entry.enroll_student(
            repo,
            class_id=class_id,
            student_id=body.student_id,
            enrollment_date=body.enrollment_date,
            type=body.type,  # type: ignore[arg-type]
        )
    return EnrollmentOut(
        id=str(enrollment.id),
        class_id=str(enrollment.class_id),
        student_id=str(enrollment.student_id),
        type=enrollment.type,
        enrollment_date=enrollment.enrollment_date.isoformat(),
        current_status=enrollment.current_status,
    )


@router.put("/classes/{class_id}/attendance", response_model=AttendanceOut)
async def record_attendance(
    class_id: UUID,
    body: AttendanceIn,
    repo: Annotated[PeriodRepo, Depends(get_period_repo)],
) -> AttendanceOut:
    with _entry_errors(class_id=str(class_id), student_id=str(body.student_id)):
        event = await entry.record_attendance(
            repo,
            class_id=class_id,
            student_id=body.student_id,
            session_number=body.session_number,
            session_date=body.session_date,
            present=body.present,
        )
    return AttendanceOut(
        class_id=str(event.class_id),
        student_id=str(event.student_id),
        session_number=event.session_number,
        session_date=event.session_date.isoformat(),
        present=event.present,
    )


@router.put("/classes/{class_id}/access/{student_id}", response_model=AccessOut)
async def record_access(
    class_id: UUID,
    student_id: UUID,
    body: AccessIn,
    repo: Annotated[PeriodRepo, Depends(get_period_repo)],
) -> AccessOut:
    log_ctx = {"class_id": str(class_id), "student_id": str(student_id)}
    with _entry_errors(**log_ctx):
        record = await entry.record_access(
            repo,
            class_id=class_id,
            student_id=student_id,
            access_1=body.access_1,
            access_2=body.access_2,
            access_3=body.access_3,
            allow_closed=body.allow_closed,
        )
    if body.allow_closed:
        logger.warning("Access dates backfilled", extra=log_ctx)
    return AccessOut(
        class_id=str(record.class_id),
        student_id=str(record.student_id),
        access_1=_iso(record.access_1),
        access_2=_iso(record.access_2),
        access_3=_iso(record.access_3),
    )
