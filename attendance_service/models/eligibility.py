from __future__ import annotations

import datetime
from dataclasses import dataclass
from uuid import UUID

from attendance_service.models.enrollment import EnrollmentStatus
from attendance_service.models.period import Modality


@dataclass(frozen=True, slots=True)
class AttendanceTally:
    """Per-student counters produced by the aggregator.

    Synchronous classes fill present_count/considered_count; self-paced
    classes fill access_count. The unused side stays zero.
    """

    present_count: int = 0
    considered_count: int = 0
    access_count: int = 0


@dataclass(frozen=True, slots=True)
class ProportionalityDecision:
    lower_bound: datetime.date | None = None
    is_proportional: bool = False


@dataclass(frozen=True, slots=True)
class EligibilityResult:
    """Derived per-student outcome. Only ``status`` is ever persisted.

    ``computed_status`` is what the arithmetic says; ``status`` is what may
    be shown or stored, which stays in_progress while the period is active.
    """

    student_id: UUID
    modality: Modality
    status: EnrollmentStatus
    computed_status: EnrollmentStatus
    percentage: float = 0.0
    present_count: int = 0
    considered_count: int = 0
    access_count: int = 0
    is_proportional: bool = False

    @property
    def certifiable(self) -> bool:
        return self.status == "approved"

    @property
    def is_final(self) -> bool:
        return self.status != "in_progress"
