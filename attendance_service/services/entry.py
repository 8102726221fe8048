"""Data entry with validation.

Everything here runs before data reaches the store, so the engine never
sees a malformed date, an out-of-range session number or an event outside
its period. Writes are refused once the owning class is no longer active.
"""

from __future__ import annotations

import datetime
import logging
from uuid import UUID

from attendance_service.core.errors import EntryValidationError, NotFoundError
from attendance_service.models.attendance import AccessRecord, AttendanceEvent
from attendance_service.models.enrollment import Enrollment, EnrollmentType
from attendance_service.models.period import CourseClass, Modality, Period
from attendance_service.repos.period_repo import PeriodRepo

logger = logging.getLogger(__name__)

WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


def parse_date(value: str | datetime.date, field_name: str) -> datetime.date:
    """Accept a date or an ISO string (a trailing time part is dropped)."""
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    try:
        return datetime.date.fromisoformat(value.split("T")[0].strip())
    except (AttributeError, ValueError):
        raise EntryValidationError(
            f"{field_name} is not a valid date: {value!r}"
        ) from None


def _reject(message: str) -> EntryValidationError:
    logger.warning("Rejected entry: %s", message)
    return EntryValidationError(message)


def _require_in_period(period: Period, day: datetime.date, field_name: str) -> None:
    if not period.contains(day):
        raise _reject(
            f"{field_name} {day.isoformat()} is outside the period "
            f"{period.start_date.isoformat()}..{period.end_date.isoformat()}"
        )


def _require_open(course_class: CourseClass) -> None:
    if course_class.status != "active":
        raise _reject(
            f"class {course_class.id} is {course_class.status}; entries are locked"
        )


async def _load_class(repo: PeriodRepo, class_id: UUID) -> tuple[CourseClass, Period]:
    course_class = await repo.get_class(class_id)
    if course_class is None:
        raise NotFoundError("class", class_id)
    period = await repo.get_period(course_class.period_id)
    if period is None:
        raise NotFoundError("period", course_class.period_id)
    return course_class, period


async def create_period(
    repo: PeriodRepo,
    *,
    name: str,
    start_date: str | datetime.date,
    end_date: str | datetime.date,
) -> Period:
    name = name.strip()
    if not name:
        raise _reject("period name must be non-empty")
    start = parse_date(start_date, "start_date")
    end = parse_date(end_date, "end_date")
    if end < start:
        raise _reject("end_date must be on or after start_date")

    period = Period.new(name=name, start_date=start, end_date=end)
    await repo.add_period(period)
    logger.info(
        "Created period %s (%s..%s)",
        name,
        start,
        end,
        extra={"period_id": str(period.id)},
    )
    return period


async def create_class(
    repo: PeriodRepo,
    *,
    period_id: UUID,
    name: str,
    modality: Modality,
    planned_sessions: int | None = None,
    weekdays: tuple[str, ...] = (),
    class_time: str = "",
) -> CourseClass:
    period = await repo.get_period(period_id)
    if period is None:
        raise NotFoundError("period", period_id)
    if period.status != "active":
        raise _reject(f"period {period_id} is {period.status}; no new classes")
    if modality not in ("synchronous", "self_paced"):
        raise _reject(f"modality must be synchronous|self_paced (got {modality!r})")
    if modality == "synchronous" and (planned_sessions is None or planned_sessions < 1):
        raise _reject("synchronous classes need a positive planned session count")

    days = tuple(d.strip().lower() for d in weekdays)
    unknown = [d for d in days if d not in WEEKDAYS]
    if unknown:
        raise _reject(f"unknown weekday(s): {', '.join(unknown)}")

    course_class = CourseClass.new(
        period_id=period_id,
        name=name.strip(),
        modality=modality,
        planned_sessions=planned_sessions,
        weekdays=days,
        class_time=class_time,
    )
    await repo.add_class(course_class)
    logger.info(
        "Created %s class %s",
        modality,
        course_class.name,
        extra={"class_id": str(course_class.id)},
    )
    return course_class


async def enroll_student(
    repo: PeriodRepo,
    *,
    class_id: UUID,
    student_id: UUID,
    enrollment_date: str | datetime.date,
    type: EnrollmentType = "regular",
    today: datetime.date | None = None,
) -> Enrollment:
    course_class, period = await _load_class(repo, class_id)
    _require_open(course_class)
    if type not in ("regular", "exceptional"):
        raise _reject(f"enrollment type must be regular|exceptional (got {type!r})")

    day = parse_date(enrollment_date, "enrollment_date")
    _require_in_period(period, day, "enrollment_date")
    today = today or datetime.date.today()
    if day > today:
        raise _reject(f"enrollment_date {day.isoformat()} is in the future")

    if await repo.get_enrollment(class_id, student_id) is not None:
        raise _reject(f"student {student_id} is already enrolled in class {class_id}")

    now = int(datetime.datetime.now(datetime.UTC).timestamp())
    enrollment = Enrollment.new(
        class_id=class_id,
        student_id=student_id,
        enrollment_date=day,
        type=type,
        now=now,
    )
    await repo.add_enrollment(enrollment)
    if not course_class.is_synchronous:
        # Self-paced students start with an empty access record.
        await repo.record_access(AccessRecord(class_id=class_id, student_id=student_id))
    return enrollment


async def record_attendance(
    repo: PeriodRepo,
    *,
    class_id: UUID,
    student_id: UUID,
    session_number: int,
    session_date: str | datetime.date,
    present: bool,
) -> AttendanceEvent:
    course_class, period = await _load_class(repo, class_id)
    _require_open(course_class)
    if not course_class.is_synchronous:
        raise _reject("attendance is only recorded for synchronous classes")

    planned = course_class.planned_sessions or 0
    if not 1 <= session_number <= planned:
        raise _reject(
            f"session_number must be between 1 and {planned} (got {session_number})"
        )
    day = parse_date(session_date, "session_date")
    _require_in_period(period, day, "session_date")
    if await repo.get_enrollment(class_id, student_id) is None:
        raise _reject(f"student {student_id} is not enrolled in class {class_id}")

    event = AttendanceEvent(
        class_id=class_id,
        student_id=student_id,
        session_number=session_number,
        session_date=day,
        present=present,
    )
    await repo.record_attendance(event)
    return event


async def record_access(
    repo: PeriodRepo,
    *,
    class_id: UUID,
    student_id: UUID,
    access_1: str | datetime.date | None = None,
    access_2: str | datetime.date | None = None,
    access_3: str | datetime.date | None = None,
    allow_closed: bool = False,
) -> AccessRecord:
    """Store a student's access dates.

    ``allow_closed`` is the administrative backfill path: it lets a closed
    class be corrected so a re-evaluating closure can pick the change up.
    """
    course_class, period = await _load_class(repo, class_id)
    if not allow_closed:
        _require_open(course_class)
    if course_class.is_synchronous:
        raise _reject("access dates are only recorded for self-paced classes")
    if await repo.get_enrollment(class_id, student_id) is None:
        raise _reject(f"student {student_id} is not enrolled in class {class_id}")

    slots: list[datetime.date | None] = []
    entered = (("access_1", access_1), ("access_2", access_2), ("access_3", access_3))
    for field_name, raw in entered:
        if raw is None or raw == "":
            slots.append(None)
            continue
        day = parse_date(raw, field_name)
        _require_in_period(period, day, field_name)
        slots.append(day)

    record = AccessRecord(
        class_id=class_id,
        student_id=student_id,
        access_1=slots[0],
        access_2=slots[1],
        access_3=slots[2],
    )
    await repo.record_access(record)
    return record
