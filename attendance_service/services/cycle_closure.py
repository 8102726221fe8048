"""Period (cycle) closure: close every class, then the period itself.

The period moves ``active → closing`` first. From that moment evaluations
in the period are allowed to be final, which is what lets each class
closure write approved/rejected. Classes that cannot close (unacknowledged
incomplete sessions, failed writes, a concurrent closure) are reported and
keep the period in ``closing`` unless the administrator forces it shut.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import UUID

from attendance_service.core.errors import (
    AlreadyClosedError,
    NotFoundError,
    RepositoryError,
    StateError,
)
from attendance_service.core.metrics import PERIOD_CLOSURES
from attendance_service.models.period import CourseClass, LifecycleStatus
from attendance_service.repos.period_repo import PeriodRepo
from attendance_service.services.class_closure import (
    ClassClosureOrchestrator,
    ClassClosureSummary,
)

logger = logging.getLogger(__name__)

# Back-to-back store failures across classes mean the store is down, not
# that one class is bad.
MAX_CONSECUTIVE_STORE_FAILURES = 2


@dataclass(frozen=True, slots=True)
class ClassClosureError:
    class_id: UUID
    error: str


@dataclass(slots=True)
class CycleClosureSummary:
    period_id: UUID
    period_status: LifecycleStatus
    classes: list[ClassClosureSummary] = field(default_factory=list)
    errors: list[ClassClosureError] = field(default_factory=list)
    forced: bool = False
    already_closed: bool = False

    @property
    def incomplete_class_ids(self) -> list[UUID]:
        open_ids = [c.class_id for c in self.classes if not c.closed]
        return open_ids + [e.class_id for e in self.errors]

    @property
    def closed(self) -> bool:
        return self.period_status == "closed"


def _record_class_error(
    summary: CycleClosureSummary,
    course_class: CourseClass,
    exc: Exception,
    log_ctx: dict[str, str],
) -> None:
    logger.warning(
        "Class %s could not be closed: %s",
        course_class.name,
        exc,
        extra={**log_ctx, "class_id": str(course_class.id)},
    )
    summary.errors.append(ClassClosureError(class_id=course_class.id, error=str(exc)))


class CycleClosureOrchestrator:
    def __init__(
        self,
        repo: PeriodRepo,
        *,
        class_closure: ClassClosureOrchestrator | None = None,
    ) -> None:
        self._repo = repo
        self._class_closure = class_closure or ClassClosureOrchestrator(repo)

    async def close(
        self,
        period_id: UUID,
        *,
        acknowledge_incomplete: bool = False,
        force: bool = False,
    ) -> CycleClosureSummary:
        """Close every class in the period, then the period.

        Args:
            acknowledge_incomplete: passed to each class closure.
            force: close the period even if some classes could not be
                closed. Those classes stay as they are and are listed in
                the summary.
        """
        period = await self._repo.get_period(period_id)
        if period is None:
            raise NotFoundError("period", period_id)

        log_ctx = {"period_id": str(period_id)}

        if period.status == "closed":
            logger.info("Period already closed; nothing to do", extra=log_ctx)
            PERIOD_CLOSURES.labels(outcome="already_closed").inc()
            return CycleClosureSummary(
                period_id=period_id, period_status="closed", already_closed=True
            )

        if period.status == "active":
            await self._repo.set_period_status(period_id, "closing", expected="active")
        summary = CycleClosureSummary(period_id=period_id, period_status="closing")
        logger.info("Closing period %s", period.name, extra=log_ctx)

        store_failures = 0
        for course_class in await self._repo.list_classes_in_period(period_id):
            if course_class.status == "closed":
                continue
            try:
                result = await self._class_closure.close(
                    course_class.id, acknowledge_incomplete=acknowledge_incomplete
                )
            except StateError as exc:
                store_failures = 0
                _record_class_error(summary, course_class, exc, log_ctx)
                continue
            except RepositoryError as exc:
                store_failures += 1
                if store_failures >= MAX_CONSECUTIVE_STORE_FAILURES:
                    logger.error(
                        "Aborting period closure after %d store failures in a row",
                        store_failures,
                        extra=log_ctx,
                    )
                    PERIOD_CLOSURES.labels(outcome="aborted").inc()
                    raise
                _record_class_error(summary, course_class, exc, log_ctx)
                continue
            store_failures = 0
            summary.classes.append(result)

        incomplete = summary.incomplete_class_ids
        if incomplete and not force:
            logger.warning(
                "Period left closing: %d class(es) still open",
                len(incomplete),
                extra=log_ctx,
            )
            PERIOD_CLOSURES.labels(outcome="incomplete").inc()
            return summary

        try:
            await self._repo.set_period_status(period_id, "closed", expected="closing")
        except AlreadyClosedError:
            logger.info("Period closed concurrently", extra=log_ctx)
        summary.period_status = "closed"
        summary.forced = bool(incomplete)
        if incomplete:
            logger.warning(
                "Period force-closed with %d open class(es)",
                len(incomplete),
                extra=log_ctx,
            )
        PERIOD_CLOSURES.labels(outcome="forced" if incomplete else "closed").inc()
        logger.info("Period closed", extra=log_ctx)
        return summary
