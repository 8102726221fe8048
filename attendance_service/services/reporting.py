from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from uuid import UUID

from attendance_service.core.errors import NotFoundError
from attendance_service.models.eligibility import EligibilityResult
from attendance_service.models.period import CourseClass, Period
from attendance_service.repos.period_repo import PeriodRepo
from attendance_service.services.class_closure import (
    IncompleteSessionsWarning,
    incomplete_sessions_warning,
)
from attendance_service.services.eligibility import EligibilityService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ClassEligibilityReport:
    """Read model for the roster screen and exports.

    While the period is active every row reads in_progress; the
    percentages are informational until the period closes.
    """

    course_class: CourseClass
    period: Period
    sessions_held: int
    results: list[EligibilityResult] = field(default_factory=list)
    warning: IncompleteSessionsWarning | None = None

    @property
    def approved(self) -> int:
        return sum(1 for r in self.results if r.status == "approved")

    @property
    def rejected(self) -> int:
        return sum(1 for r in self.results if r.status == "rejected")

    @property
    def in_progress(self) -> int:
        return sum(1 for r in self.results if r.status == "in_progress")


async def build_class_report(
    repo: PeriodRepo,
    class_id: UUID,
    *,
    eligibility: EligibilityService | None = None,
) -> ClassEligibilityReport:
    eligibility = eligibility or EligibilityService(repo)

    course_class = await repo.get_class(class_id)
    if course_class is None:
        raise NotFoundError("class", class_id)
    period = await repo.get_period(course_class.period_id)
    if period is None:
        raise NotFoundError("period", course_class.period_id)

    sessions_held = await eligibility.aggregator.sessions_held(course_class)
    report = ClassEligibilityReport(
        course_class=course_class,
        period=period,
        sessions_held=sessions_held,
        warning=incomplete_sessions_warning(course_class, sessions_held),
    )

    for enrollment in await repo.list_enrollments(class_id):
        result = await eligibility.evaluate_enrollment(enrollment, course_class, period)
        if course_class.status == "closed" and enrollment.is_final:
            # Closed classes report the frozen status, not the recompute.
            if result.status != enrollment.current_status:
                logger.info(
                    "Stored status %s differs from recomputed %s",
                    enrollment.current_status,
                    result.status,
                    extra={
                        "class_id": str(class_id),
                        "student_id": str(enrollment.student_id),
                    },
                )
            result = replace(result, status=enrollment.current_status)
        report.results.append(result)

    return report
