"""Collapse raw attendance and access data into per-student counters."""

from __future__ import annotations

import datetime
import logging
from uuid import UUID

from attendance_service.models.attendance import AccessRecord
from attendance_service.models.eligibility import AttendanceTally
from attendance_service.models.period import CourseClass
from attendance_service.repos.period_repo import PeriodRepo

logger = logging.getLogger(__name__)


def count_accesses(record: AccessRecord | None) -> int:
    """Number of filled access slots, regardless of their values or order."""
    if record is None:
        return 0
    return sum(1 for slot in record.slots if slot is not None)


class AttendanceAggregator:
    def __init__(self, repo: PeriodRepo) -> None:
        self._repo = repo

    async def tally(
        self,
        course_class: CourseClass,
        student_id: UUID,
        lower_bound: datetime.date | None = None,
    ) -> AttendanceTally:
        if course_class.is_synchronous:
            return await self._tally_sessions(course_class.id, student_id, lower_bound)

        # Self-paced records are never date-filtered, lower_bound or not.
        record = await self._repo.get_access_record(course_class.id, student_id)
        return AttendanceTally(access_count=count_accesses(record))

    async def _tally_sessions(
        self,
        class_id: UUID,
        student_id: UUID,
        lower_bound: datetime.date | None,
    ) -> AttendanceTally:
        events = await self._repo.list_attendance_events(
            class_id, student_id, since=lower_bound
        )
        present = sum(1 for e in events if e.present)
        logger.debug(
            "Tallied %d/%d sessions",
            present,
            len(events),
            extra={"class_id": str(class_id), "student_id": str(student_id)},
        )
        return AttendanceTally(present_count=present, considered_count=len(events))

    async def sessions_held(self, course_class: CourseClass) -> int:
        """Distinct session numbers recorded for the class; 0 when self-paced."""
        if not course_class.is_synchronous:
            return 0
        return len(await self._repo.list_session_numbers(course_class.id))
