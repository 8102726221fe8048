from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Literal
from uuid import UUID, uuid4

EnrollmentType = Literal["regular", "exceptional"]
EnrollmentStatus = Literal["in_progress", "approved", "rejected"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"approved", "rejected"})


@dataclass(frozen=True, slots=True)
class Enrollment:
    id: UUID
    class_id: UUID
    student_id: UUID
    type: EnrollmentType
    enrollment_date: datetime.date
    current_status: EnrollmentStatus = "in_progress"
    status_updated_at: int | None = None

    @staticmethod
    def new(
        *,
        class_id: UUID,
        student_id: UUID,
        enrollment_date: datetime.date,
        type: EnrollmentType = "regular",
        now: int | None = None,
    ) -> Enrollment:
        return Enrollment(
            id=uuid4(),
            class_id=class_id,
            student_id=student_id,
            type=type,
            enrollment_date=enrollment_date,
            status_updated_at=now,
        )

    @property
    def is_final(self) -> bool:
        return self.current_status in TERMINAL_STATUSES
