from __future__ import annotations

from attendance_service.models.eligibility import ProportionalityDecision
from attendance_service.models.enrollment import Enrollment
from attendance_service.models.period import CourseClass

_FULL_PERIOD = ProportionalityDecision()


def resolve_lower_bound(
    enrollment: Enrollment, course_class: CourseClass
) -> ProportionalityDecision:
    """Pick the earliest session date an enrollment is judged against.

    Exceptional enrollments in synchronous classes only count sessions on or
    after their enrollment date. Everyone else is judged on every session
    held. The pass threshold is the same either way; only the denominator
    shrinks.
    """
    if enrollment.type == "exceptional" and course_class.is_synchronous:
        return ProportionalityDecision(
            lower_bound=enrollment.enrollment_date, is_proportional=True
        )
    return _FULL_PERIOD
