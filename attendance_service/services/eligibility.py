"""Pass/fail rules per modality, gated on the owning period's status.

The gate is the invariant everything else leans on: while a period is
active, nobody gets a terminal status. Percentages are still computed and
returned so the roster can show them, but ``status`` stays in_progress.
"""

from __future__ import annotations

import logging
from uuid import UUID

from attendance_service.core.config import SETTINGS
from attendance_service.core.errors import PeriodStillActiveError
from attendance_service.models.attendance import ACCESS_SLOTS
from attendance_service.models.eligibility import (
    AttendanceTally,
    EligibilityResult,
    ProportionalityDecision,
)
from attendance_service.models.enrollment import Enrollment, EnrollmentStatus
from attendance_service.models.period import CourseClass, Modality, Period
from attendance_service.repos.period_repo import PeriodRepo
from attendance_service.services.aggregator import AttendanceAggregator
from attendance_service.services.proportionality import resolve_lower_bound

logger = logging.getLogger(__name__)


def attendance_percentage(present_count: int, considered_count: int) -> float:
    if considered_count == 0:
        return 0.0
    return present_count / considered_count * 100


class EligibilityEvaluator:
    def __init__(self, *, pass_percentage: float = SETTINGS.pass_percentage) -> None:
        self.pass_percentage = pass_percentage

    def is_approved(self, modality: Modality, tally: AttendanceTally) -> bool:
        if modality == "synchronous":
            if tally.considered_count == 0:
                return self.pass_percentage <= 0
            # Integer cross-multiplication keeps the 60% boundary exact.
            return (
                tally.present_count * 100
                >= self.pass_percentage * tally.considered_count
            )
        # Every slot of the record must be filled.
        return tally.access_count == ACCESS_SLOTS

    def evaluate(
        self,
        *,
        student_id: UUID,
        course_class: CourseClass,
        period: Period,
        tally: AttendanceTally,
        decision: ProportionalityDecision = ProportionalityDecision(),
    ) -> EligibilityResult:
        computed: EnrollmentStatus = (
            "approved" if self.is_approved(course_class.modality, tally) else "rejected"
        )
        status: EnrollmentStatus = "in_progress" if period.is_active else computed
        return EligibilityResult(
            student_id=student_id,
            modality=course_class.modality,
            status=status,
            computed_status=computed,
            percentage=attendance_percentage(
                tally.present_count, tally.considered_count
            ),
            present_count=tally.present_count,
            considered_count=tally.considered_count,
            access_count=tally.access_count,
            is_proportional=decision.is_proportional,
        )

    def evaluate_final(
        self,
        *,
        student_id: UUID,
        course_class: CourseClass,
        period: Period,
        tally: AttendanceTally,
        decision: ProportionalityDecision = ProportionalityDecision(),
    ) -> EligibilityResult:
        """Like evaluate(), but refuses to run against an active period."""
        if period.is_active:
            raise PeriodStillActiveError(period.id)
        return self.evaluate(
            student_id=student_id,
            course_class=course_class,
            period=period,
            tally=tally,
            decision=decision,
        )


class EligibilityService:
    """Resolve → aggregate → evaluate for one enrollment."""

    def __init__(
        self,
        repo: PeriodRepo,
        evaluator: EligibilityEvaluator | None = None,
    ) -> None:
        self._repo = repo
        self.aggregator = AttendanceAggregator(repo)
        self.evaluator = evaluator or EligibilityEvaluator()

    async def evaluate_enrollment(
        self,
        enrollment: Enrollment,
        course_class: CourseClass,
        period: Period,
        *,
        final: bool = False,
    ) -> EligibilityResult:
        decision = resolve_lower_bound(enrollment, course_class)
        tally = await self.aggregator.tally(
            course_class, enrollment.student_id, decision.lower_bound
        )
        evaluate = self.evaluator.evaluate_final if final else self.evaluator.evaluate
        result = evaluate(
            student_id=enrollment.student_id,
            course_class=course_class,
            period=period,
            tally=tally,
            decision=decision,
        )
        logger.debug(
            "Evaluated %s: %.1f%% present=%d considered=%d accesses=%d proportional=%s",
            result.status,
            result.percentage,
            result.present_count,
            result.considered_count,
            result.access_count,
            result.is_proportional,
            extra={
                "class_id": str(course_class.id),
                "student_id": str(enrollment.student_id),
            },
        )
        return result
