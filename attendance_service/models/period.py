from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Literal
from uuid import UUID, uuid4

LifecycleStatus = Literal["active", "closing", "closed"]
Modality = Literal["synchronous", "self_paced"]


@dataclass(frozen=True, slots=True)
class Period:
    """A bounded teaching term (cycle) that owns one or more classes."""

    id: UUID
    name: str
    start_date: datetime.date
    end_date: datetime.date
    status: LifecycleStatus = "active"  # closing is owned by the cycle closure

    @staticmethod
    def new(*, name: str, start_date: datetime.date, end_date: datetime.date) -> Period:
        return Period(id=uuid4(), name=name, start_date=start_date, end_date=end_date)

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def contains(self, day: datetime.date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True, slots=True)
class CourseClass:
    """One offering of a course inside a period, in a single modality."""

    id: UUID
    period_id: UUID
    name: str
    modality: Modality
    status: LifecycleStatus = "active"
    planned_sessions: int | None = None  # synchronous only
    weekdays: tuple[str, ...] = ()  # e.g. ("monday", "wednesday")
    class_time: str = ""

    @staticmethod
    def new(
        *,
        period_id: UUID,
        name: str,
        modality: Modality,
        planned_sessions: int | None = None,
        weekdays: tuple[str, ...] = (),
        class_time: str = "",
    ) -> CourseClass:
        return CourseClass(
            id=uuid4(),
            period_id=period_id,
            name=name,
            modality=modality,
            planned_sessions=planned_sessions if modality == "synchronous" else None,
            weekdays=weekdays,
            class_time=class_time,
        )

    @property
    def is_synchronous(self) -> bool:
        return self.modality == "synchronous"
