from __future__ import annotations

import datetime
from dataclasses import dataclass
from uuid import UUID

# Width of an AccessRecord; a self-paced student passes by filling all of them.
ACCESS_SLOTS = 3


@dataclass(frozen=True, slots=True)
class AttendanceEvent:
    """One roll-call entry: a student's presence at one synchronous session.

    Session numbers are shared by every student in the class, so the set of
    distinct numbers across the class is the count of sessions held.
    """

    class_id: UUID
    student_id: UUID
    session_number: int
    session_date: datetime.date
    present: bool = False


@dataclass(frozen=True, slots=True)
class AccessRecord:
    """Self-paced participation: up to ACCESS_SLOTS recorded access dates."""

    class_id: UUID
    student_id: UUID
    access_1: datetime.date | None = None
    access_2: datetime.date | None = None
    access_3: datetime.date | None = None

    @property
    def slots(self) -> tuple[datetime.date | None, ...]:
        return (self.access_1, self.access_2, self.access_3)
