"""PostgreSQL implementation of PeriodRepo."""

from __future__ import annotations

import datetime
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_service.core.errors import NotFoundError, RepositoryError
from attendance_service.db.tables import (
    AccessRecordRow,
    AttendanceEventRow,
    ClassRow,
    EnrollmentRow,
    PeriodRow,
)
from attendance_service.models.attendance import AccessRecord, AttendanceEvent
from attendance_service.models.enrollment import Enrollment, EnrollmentStatus
from attendance_service.models.period import CourseClass, LifecycleStatus, Period
from attendance_service.repos.period_repo import guard_transition


class PgPeriodRepo:
    """Satisfies the PeriodRepo Protocol using PostgreSQL via SQLAlchemy.

    Status transitions are ``UPDATE ... WHERE status = :expected``; a zero
    row count means another writer moved the row first.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # --- reads ---

    async def get_period(self, period_id: UUID) -> Period | None:
        row = await self._get(PeriodRow, period_id)
        return None if row is None else _row_to_period(row)

    async def get_class(self, class_id: UUID) -> CourseClass | None:
        row = await self._get(ClassRow, class_id)
        return None if row is None else _row_to_class(row)

    async def list_classes_in_period(self, period_id: UUID) -> list[CourseClass]:
        stmt = (
            select(ClassRow)
            .where(ClassRow.period_id == period_id)
            .order_by(ClassRow.name)
        )
        rows = (await self._execute(stmt)).scalars().all()
        return [_row_to_class(r) for r in rows]

    async def list_enrollments(self, class_id: UUID) -> list[Enrollment]:
        stmt = select(EnrollmentRow).where(EnrollmentRow.class_id == class_id)
        rows = (await self._execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def get_enrollment(
        self, class_id: UUID, student_id: UUID
    ) -> Enrollment | None:
        stmt = select(EnrollmentRow).where(
            EnrollmentRow.class_id == class_id,
            EnrollmentRow.student_id == student_id,
        )
        row = (await self._execute(stmt)).scalar_one_or_none()
        return None if row is None else _row_to_enrollment(row)

    async def list_attendance_events(
        self,
        class_id: UUID,
        student_id: UUID | None = None,
        since: datetime.date | None = None,
    ) -> list[AttendanceEvent]:
        stmt = select(AttendanceEventRow).where(AttendanceEventRow.class_id == class_id)
        if student_id is not None:
            stmt = stmt.where(AttendanceEventRow.student_id == student_id)
        if since is not None:
            stmt = stmt.where(AttendanceEventRow.session_date >= since)
        stmt = stmt.order_by(
            AttendanceEventRow.session_date, AttendanceEventRow.session_number
        )
        rows = (await self._execute(stmt)).scalars().all()
        return [_row_to_event(r) for r in rows]

    async def list_session_numbers(self, class_id: UUID) -> set[int]:
        stmt = (
            select(AttendanceEventRow.session_number)
            .where(AttendanceEventRow.class_id == class_id)
            .distinct()
        )
        return set((await self._execute(stmt)).scalars().all())

    async def get_access_record(
        self, class_id: UUID, student_id: UUID
    ) -> AccessRecord | None:
        row = await self._get(AccessRecordRow, (class_id, student_id))
        if row is None:
            return None
        return AccessRecord(
            class_id=row.class_id,
            student_id=row.student_id,
            access_1=row.access_1,
            access_2=row.access_2,
            access_3=row.access_3,
        )

    # --- guarded writes ---

    @asynccontextmanager
    async def savepoint(self) -> AsyncGenerator[None, None]:
        # A failed statement aborts the whole Postgres transaction; rolling
        # back to the savepoint keeps the session usable for the next student.
        async with self._session.begin_nested():
            yield

    async def update_enrollment_status(
        self,
        class_id: UUID,
        student_id: UUID,
        status: EnrollmentStatus,
        timestamp: int,
    ) -> None:
        stmt = (
            update(EnrollmentRow)
            .where(EnrollmentRow.class_id == class_id)
            .where(EnrollmentRow.student_id == student_id)
            .values(current_status=status, status_updated_at=timestamp)
        )
        # Savepoint per write: a failed statement must not abort the closure's
        # transaction for the remaining enrollments.
        try:
            async with self._session.begin_nested():
                result = await self._execute(stmt)
        except RepositoryError:
            raise
        except DBAPIError as exc:
            raise RepositoryError(str(exc.orig or exc)) from exc
        if result.rowcount == 0:
            raise NotFoundError("enrollment", f"{class_id}/{student_id}")

    async def set_class_status(
        self, class_id: UUID, status: LifecycleStatus, *, expected: LifecycleStatus
    ) -> None:
        stmt = (
            update(ClassRow)
            .where(ClassRow.id == class_id)
            .where(ClassRow.status == expected)
            .values(status=status)
        )
        result = await self._execute(stmt)
        if result.rowcount == 0:
            stmt = select(ClassRow.status).where(ClassRow.id == class_id)
            actual = (await self._execute(stmt)).scalar_one_or_none()
            if actual is None:
                raise NotFoundError("class", class_id)
            guard_transition("class", class_id, actual, expected, status)

    async def set_period_status(
        self, period_id: UUID, status: LifecycleStatus, *, expected: LifecycleStatus
    ) -> None:
        stmt = (
            update(PeriodRow)
            .where(PeriodRow.id == period_id)
            .where(PeriodRow.status == expected)
            .values(status=status)
        )
        result = await self._execute(stmt)
        if result.rowcount == 0:
            stmt = select(PeriodRow.status).where(PeriodRow.id == period_id)
            actual = (await self._execute(stmt)).scalar_one_or_none()
            if actual is None:
                raise NotFoundError("period", period_id)
            guard_transition("period", period_id, actual, expected, status)

    # --- data entry ---

    async def add_period(self, period: Period) -> None:
        self._session.add(
            PeriodRow(
                id=period.id,
                name=period.name,
                start_date=period.start_date,
                end_date=period.end_date,
                status=period.status,
            )
        )
        await self._flush()

    async def add_class(self, course_class: CourseClass) -> None:
        self._session.add(
            ClassRow(
                id=course_class.id,
                period_id=course_class.period_id,
                name=course_class.name,
                modality=course_class.modality,
                status=course_class.status,
                planned_sessions=course_class.planned_sessions,
                weekdays=list(course_class.weekdays),
                class_time=course_class.class_time,
            )
        )
        await self._flush()

    async def add_enrollment(self, enrollment: Enrollment) -> None:
        self._session.add(
            EnrollmentRow(
                id=enrollment.id,
                class_id=enrollment.class_id,
                student_id=enrollment.student_id,
                type=enrollment.type,
                enrollment_date=enrollment.enrollment_date,
                current_status=enrollment.current_status,
                status_updated_at=enrollment.status_updated_at,
            )
        )
        try:
            await self._flush()
        except IntegrityError:
            raise ValueError("student already enrolled in class") from None

    async def record_attendance(self, event: AttendanceEvent) -> None:
        stmt = insert(AttendanceEventRow).values(
            class_id=event.class_id,
            student_id=event.student_id,
            session_number=event.session_number,
            session_date=event.session_date,
            present=event.present,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["class_id", "student_id", "session_number"],
            set_={"session_date": event.session_date, "present": event.present},
        )
        await self._execute(stmt)

    async def record_access(self, record: AccessRecord) -> None:
        values = {
            "access_1": record.access_1,
            "access_2": record.access_2,
            "access_3": record.access_3,
        }
        stmt = insert(AccessRecordRow).values(
            class_id=record.class_id, student_id=record.student_id, **values
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["class_id", "student_id"], set_=values
        )
        await self._execute(stmt)

    # --- helpers ---

    async def _get(self, model, key):
        try:
            return await self._session.get(model, key)
        except DBAPIError as exc:
            raise RepositoryError(str(exc.orig or exc)) from exc

    async def _execute(self, stmt):
        try:
            return await self._session.execute(stmt)
        except IntegrityError:
            raise
        except DBAPIError as exc:
            raise RepositoryError(str(exc.orig or exc)) from exc

    async def _flush(self) -> None:
        try:
            await self._session.flush()
        except IntegrityError:
            raise
        except DBAPIError as exc:
            raise RepositoryError(str(exc.orig or exc)) from exc


def _row_to_period(row: PeriodRow) -> Period:
    return Period(
        id=row.id,
        name=row.name,
        start_date=row.start_date,
        end_date=row.end_date,
        status=row.status,  # type: ignore[arg-type]
    )


def _row_to_class(row: ClassRow) -> CourseClass:
    return CourseClass(
        id=row.id,
        period_id=row.period_id,
        name=row.name,
        modality=row.modality,  # type: ignore[arg-type]
        status=row.status,  # type: ignore[arg-type]
        planned_sessions=row.planned_sessions,
        weekdays=tuple(row.weekdays) if row.weekdays else (),
        class_time=row.class_time or "",
    )


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        id=row.id,
        class_id=row.class_id,
        student_id=row.student_id,
        type=row.type,  # type: ignore[arg-type]
        enrollment_date=row.enrollment_date,
        current_status=row.current_status,  # type: ignore[arg-type]
        status_updated_at=row.status_updated_at,
    )


def _row_to_event(row: AttendanceEventRow) -> AttendanceEvent:
    return AttendanceEvent(
        class_id=row.class_id,
        student_id=row.student_id,
        session_number=row.session_number,
        session_date=row.session_date,
        present=row.present,
    )
