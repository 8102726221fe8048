"""Class closure: active → closing → closed, finalizing every enrollment.

Closing a class freezes each enrollment's ``current_status``. The run is
resumable rather than transactional:

  1. The class is moved to ``closing`` with a conditional update; a second
     closure racing the first loses that update and is rejected.
  2. Enrollments are finalized independently and concurrently. Ones that
     are already terminal are skipped, so an interrupted run picks up
     where it stopped.
  3. Only when every enrollment is terminal does the class flip to
     ``closed``. If some writes failed, the class stays ``closing`` and
     the summary names the students; run the closure again to finish.

A closure needs the owning period to be ``closing`` or ``closed``. Against
an active period it raises PeriodStillActiveError: final statuses are never
written while the period can still change.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
import time
from dataclasses import dataclass, field
from uuid import UUID

from attendance_service.core.config import SETTINGS
from attendance_service.core.errors import (
    AlreadyClosedError,
    IncompleteSessionsError,
    NotFoundError,
    PeriodStillActiveError,
)
from attendance_service.core.metrics import (
    CLASS_CLOSURE_DURATION,
    CLASS_CLOSURES,
    ENROLLMENT_FINALIZE_FAILURES,
    ENROLLMENTS_FINALIZED,
)
from attendance_service.models.enrollment import Enrollment, EnrollmentStatus
from attendance_service.models.period import CourseClass, LifecycleStatus, Period
from attendance_service.repos.period_repo import PeriodRepo
from attendance_service.services.eligibility import EligibilityService
from attendance_service.services.retry import RetryPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class IncompleteSessionsWarning:
    sessions_held: int
    planned_sessions: int

    @property
    def message(self) -> str:
        if self.sessions_held == 0:
            return "no sessions were recorded for this class"
        return (
            f"only {self.sessions_held} of {self.planned_sessions} planned "
            "sessions were held; grading uses the sessions actually held"
        )


@dataclass(frozen=True, slots=True)
class EnrollmentFailure:
    student_id: UUID
    error: str


@dataclass(frozen=True, slots=True)
class EnrollmentOutcome:
    student_id: UUID
    status: EnrollmentStatus
    skipped: bool = False


@dataclass(slots=True)
class ClassClosureSummary:
    class_id: UUID
    class_status: LifecycleStatus
    sessions_held: int = 0
    planned_sessions: int | None = None
    warnings: list[IncompleteSessionsWarning] = field(default_factory=list)
    outcomes: list[EnrollmentOutcome] = field(default_factory=list)
    failures: list[EnrollmentFailure] = field(default_factory=list)
    already_closed: bool = False

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if not o.skipped)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.skipped)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def closed(self) -> bool:
        return self.class_status == "closed"


def incomplete_sessions_warning(
    course_class: CourseClass, sessions_held: int
) -> IncompleteSessionsWarning | None:
    planned = course_class.planned_sessions
    if not course_class.is_synchronous or planned is None:
        return None
    if sessions_held >= planned:
        return None
    return IncompleteSessionsWarning(
        sessions_held=sessions_held, planned_sessions=planned
    )


def _now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


class ClassClosureOrchestrator:
    def __init__(
        self,
        repo: PeriodRepo,
        *,
        eligibility: EligibilityService | None = None,
        retry: RetryPolicy | None = None,
        concurrency: int = SETTINGS.closure_concurrency,
    ) -> None:
        self._repo = repo
        self._eligibility = eligibility or EligibilityService(repo)
        self._retry = retry or RetryPolicy()
        self._concurrency = concurrency

    async def close(
        self,
        class_id: UUID,
        *,
        acknowledge_incomplete: bool = False,
        reevaluate: bool = False,
    ) -> ClassClosureSummary:
        """Close one class and finalize its enrollments.

        Args:
            acknowledge_incomplete: proceed even though fewer sessions were
                held than planned.
            reevaluate: on an already-closed class, recompute every
                enrollment (e.g. after an administrative backfill) instead
                of returning a no-op summary.
        """
        course_class = await self._repo.get_class(class_id)
        if course_class is None:
            raise NotFoundError("class", class_id)
        period = await self._repo.get_period(course_class.period_id)
        if period is None:
            raise NotFoundError("period", course_class.period_id)

        log_ctx = {"class_id": str(class_id), "period_id": str(period.id)}

        if period.is_active:
            logger.warning("Refusing to close class in an active period", extra=log_ctx)
            raise PeriodStillActiveError(period.id)

        if course_class.status == "closed" and not reevaluate:
            logger.info("Class already closed; nothing to do", extra=log_ctx)
            CLASS_CLOSURES.labels(outcome="already_closed").inc()
            return ClassClosureSummary(
                class_id=class_id,
                class_status="closed",
                planned_sessions=course_class.planned_sessions,
                already_closed=True,
            )

        start = time.monotonic()
        sessions_held = await self._eligibility.aggregator.sessions_held(course_class)
        summary = ClassClosureSummary(
            class_id=class_id,
            class_status=course_class.status,
            sessions_held=sessions_held,
            planned_sessions=course_class.planned_sessions,
        )

        warning = incomplete_sessions_warning(course_class, sessions_held)
        if warning is not None:
            # Resumed and re-evaluated runs were acknowledged when first started.
            if not acknowledge_incomplete and course_class.status == "active":
                raise IncompleteSessionsError(
                    class_id, warning.sessions_held, warning.planned_sessions
                )
            logger.warning(
                "Closing with incomplete sessions: %s", warning.message, extra=log_ctx
            )
            summary.warnings.append(warning)

        if course_class.status == "active":
            await self._repo.set_class_status(class_id, "closing", expected="active")
            summary.class_status = "closing"
        logger.info(
            "Closing class %s (sessions held=%d, reevaluate=%s)",
            course_class.name,
            sessions_held,
            reevaluate,
            extra=log_ctx,
        )

        enrollments = await self._repo.list_enrollments(class_id)
        await self._finalize_all(
            enrollments, course_class, period, summary, reevaluate=reevaluate
        )

        if summary.failures:
            logger.error(
                "Class left in %s: %d of %d enrollments failed to finalize",
                summary.class_status,
                summary.failed,
                len(enrollments),
                extra=log_ctx,
            )
            CLASS_CLOSURES.labels(outcome="partial").inc()
        elif summary.class_status == "closing":
            try:
                await self._repo.set_class_status(
                    class_id, "closed", expected="closing"
                )
            except AlreadyClosedError:
                # A concurrent resume of the same closure got there first.
                logger.info("Class closed concurrently", extra=log_ctx)
            summary.class_status = "closed"
            CLASS_CLOSURES.labels(outcome="closed").inc()
        else:
            CLASS_CLOSURES.labels(outcome="reevaluated").inc()

        CLASS_CLOSURE_DURATION.observe(time.monotonic() - start)
        logger.info(
            "Class closure finished: status=%s finalized=%d skipped=%d failed=%d",
            summary.class_status,
            summary.succeeded,
            summary.skipped,
            summary.failed,
            extra=log_ctx,
        )
        return summary

    async def _finalize_all(
        self,
        enrollments: list[Enrollment],
        course_class: CourseClass,
        period: Period,
        summary: ClassClosureSummary,
        *,
        reevaluate: bool,
    ) -> None:
        # No cross-student dependency, so order does not matter.
        semaphore = asyncio.Semaphore(self._concurrency)

        async def _one(enrollment: Enrollment) -> EnrollmentOutcome | EnrollmentFailure:
            async with semaphore:
                return await self._finalize(
                    enrollment, course_class, period, reevaluate=reevaluate
                )

        results = await asyncio.gather(*(_one(e) for e in enrollments))
        for result in results:
            if isinstance(result, EnrollmentFailure):
                summary.failures.append(result)
            else:
                summary.outcomes.append(result)

    async def _finalize(
        self,
        enrollment: Enrollment,
        course_class: CourseClass,
        period: Period,
        *,
        reevaluate: bool,
    ) -> EnrollmentOutcome | EnrollmentFailure:
        if enrollment.is_final and not reevaluate:
            return EnrollmentOutcome(
                student_id=enrollment.student_id,
                status=enrollment.current_status,
                skipped=True,
            )

        log_ctx = {
            "class_id": str(course_class.id),
            "student_id": str(enrollment.student_id),
        }
        try:
            async with self._repo.savepoint():
                result = await self._eligibility.evaluate_enrollment(
                    enrollment, course_class, period, final=True
                )
                await self._retry.run(
                    lambda: self._repo.update_enrollment_status(
                        course_class.id, enrollment.student_id, result.status, _now()
                    ),
                    label=f"status write for student {enrollment.student_id}",
                )
        except Exception as exc:
            # One student's failure must not abandon the rest of the class.
            logger.exception("Failed to finalize enrollment", extra=log_ctx)
            ENROLLMENT_FINALIZE_FAILURES.inc()
            return EnrollmentFailure(student_id=enrollment.student_id, error=str(exc))

        ENROLLMENTS_FINALIZED.labels(status=result.status).inc()
        logger.info(
            "Finalized enrollment as %s (%.1f%%, proportional=%s)",
            result.status,
            result.percentage,
            result.is_proportional,
            extra={**log_ctx, "enrollment_status": result.status},
        )
        return EnrollmentOutcome(student_id=enrollment.student_id, status=result.status)

