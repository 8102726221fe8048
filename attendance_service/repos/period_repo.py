from __future__ import annotations

import datetime
from collections.abc import AsyncGenerator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from attendance_service.core.errors import (
    AlreadyClosedError,
    ClosureConflictError,
    NotFoundError,
)
from attendance_service.models.attendance import AccessRecord, AttendanceEvent
from attendance_service.models.enrollment import Enrollment, EnrollmentStatus
from attendance_service.models.period import CourseClass, LifecycleStatus, Period


class PeriodRepo(Protocol):
    """Everything the eligibility engine reads and writes.

    Status setters are guarded: the write only happens when the stored
    status equals ``expected``. That conditional update is the single-writer
    point for closures.
    """

    async def get_period(self, period_id: UUID) -> Period | None: ...
    async def get_class(self, class_id: UUID) -> CourseClass | None: ...
    async def list_classes_in_period(self, period_id: UUID) -> list[CourseClass]: ...
    async def list_enrollments(self, class_id: UUID) -> list[Enrollment]: ...
    async def get_enrollment(
        self, class_id: UUID, student_id: UUID
    ) -> Enrollment | None: ...
    async def list_attendance_events(
        self,
        class_id: UUID,
        student_id: UUID | None = None,
        since: datetime.date | None = None,
    ) -> list[AttendanceEvent]: ...
    async def list_session_numbers(self, class_id: UUID) -> set[int]: ...
    async def get_access_record(
        self, class_id: UUID, student_id: UUID
    ) -> AccessRecord | None: ...
    async def update_enrollment_status(
        self,
        class_id: UUID,
        student_id: UUID,
        status: EnrollmentStatus,
        timestamp: int,
    ) -> None: ...
    async def set_class_status(
        self, class_id: UUID, status: LifecycleStatus, *, expected: LifecycleStatus
    ) -> None: ...
    async def set_period_status(
        self, period_id: UUID, status: LifecycleStatus, *, expected: LifecycleStatus
    ) -> None: ...

    def savepoint(self) -> AbstractAsyncContextManager[None]:
        """Isolate one enrollment's reads and write from its siblings.

        A failure inside the block is undone and re-raised; work done
        before the block is kept.
        """
        ...

    # Data entry (validated upstream by services/entry.py)
    async def add_period(self, period: Period) -> None: ...
    async def add_class(self, course_class: CourseClass) -> None: ...
    async def add_enrollment(self, enrollment: Enrollment) -> None: ...
    async def record_attendance(self, event: AttendanceEvent) -> None: ...
    async def record_access(self, record: AccessRecord) -> None: ...


def guard_transition(
    kind: str,
    ident: UUID,
    actual: LifecycleStatus,
    expected: LifecycleStatus,
    status: LifecycleStatus,
) -> None:
    """Raise unless ``actual`` matches ``expected``.

    Shared by the in-memory and Postgres repos so both report lost races
    the same way.
    """
    if actual == expected:
        return
    if actual == "closed" and status == "closed":
        raise AlreadyClosedError(kind, ident)
    raise ClosureConflictError(kind, ident, expected, actual)


class InMemoryPeriodRepo:
    """Dict-backed store used by tests and when DATABASE_URL is unset.

    Every method body runs without an ``await`` in the middle, so on a
    single event loop each call is atomic.
    """

    def __init__(self) -> None:
        self._periods: dict[UUID, Period] = {}
        self._classes: dict[UUID, CourseClass] = {}
        self._enrollments: dict[tuple[UUID, UUID], Enrollment] = {}
        self._attendance: dict[tuple[UUID, UUID, int], AttendanceEvent] = {}
        self._access: dict[tuple[UUID, UUID], AccessRecord] = {}

    def clear(self) -> None:
        self._periods.clear()
        self._classes.clear()
        self._enrollments.clear()
        self._attendance.clear()
        self._access.clear()

    @asynccontextmanager
    async def savepoint(self) -> AsyncGenerator[None, None]:
        # Single-statement writes leave nothing half-done to undo.
        yield

    # --- reads ---

    async def get_period(self, period_id: UUID) -> Period | None:
        return self._periods.get(period_id)

    async def get_class(self, class_id: UUID) -> CourseClass | None:
        return self._classes.get(class_id)

    async def list_classes_in_period(self, period_id: UUID) -> list[CourseClass]:
        return [c for c in self._classes.values() if c.period_id == period_id]

    async def list_enrollments(self, class_id: UUID) -> list[Enrollment]:
        return [e for e in self._enrollments.values() if e.class_id == class_id]

    async def get_enrollment(
        self, class_id: UUID, student_id: UUID
    ) -> Enrollment | None:
        return self._enrollments.get((class_id, student_id))

    async def list_attendance_events(
        self,
        class_id: UUID,
        student_id: UUID | None = None,
        since: datetime.date | None = None,
    ) -> list[AttendanceEvent]:
        events = [
            e
            for e in self._attendance.values()
            if e.class_id == class_id
            and (student_id is None or e.student_id == student_id)
            and (since is None or e.session_date >= since)
        ]
        return sorted(events, key=lambda e: (e.session_date, e.session_number))

    async def list_session_numbers(self, class_id: UUID) -> set[int]:
        return {
            e.session_number
            for e in self._attendance.values()
            if e.class_id == class_id
        }

    async def get_access_record(
        self, class_id: UUID, student_id: UUID
    ) -> AccessRecord | None:
        return self._access.get((class_id, student_id))

    # --- guarded writes ---

    async def update_enrollment_status(
        self,
        class_id: UUID,
        student_id: UUID,
        status: EnrollmentStatus,
        timestamp: int,
    ) -> None:
        key = (class_id, student_id)
        current = self._enrollments.get(key)
        if current is None:
            raise NotFoundError("enrollment", f"{class_id}/{student_id}")
        self._enrollments[key] = replace(
            current, current_status=status, status_updated_at=timestamp
        )

    async def set_class_status(
        self, class_id: UUID, status: LifecycleStatus, *, expected: LifecycleStatus
    ) -> None:
        current = self._classes.get(class_id)
        if current is None:
            raise NotFoundError("class", class_id)
        guard_transition("class", class_id, current.status, expected, status)
        self._classes[class_id] = replace(current, status=status)

    async def set_period_status(
        self, period_id: UUID, status: LifecycleStatus, *, expected: LifecycleStatus
    ) -> None:
        current = self._periods.get(period_id)
        if current is None:
            raise NotFoundError("period", period_id)
        guard_transition("period", period_id, current.status, expected, status)
        self._periods[period_id] = replace(current, status=status)

    # --- data entry ---

    async def add_period(self, period: Period) -> None:
        self._periods[period.id] = period

    async def add_class(self, course_class: CourseClass) -> None:
        if course_class.period_id not in self._periods:
            raise NotFoundError("period", course_class.period_id)
        self._classes[course_class.id] = course_class

    async def add_enrollment(self, enrollment: Enrollment) -> None:
        key = (enrollment.class_id, enrollment.student_id)
        if key in self._enrollments:
            raise ValueError("student already enrolled in class")
        self._enrollments[key] = enrollment

    async def record_attendance(self, event: AttendanceEvent) -> None:
        # One roll-call entry per student per session; re-recording corrects it.
        key = (event.class_id, event.student_id, event.session_number)
        self._attendance[key] = event

    async def record_access(self, record: AccessRecord) -> None:
        self._access[(record.class_id, record.student_id)] = record
