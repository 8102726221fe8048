"""Class eligibility report and class closure endpoints.

  GET  /v1/classes/{class_id}/eligibility  -> per-student report
  POST /v1/classes/{class_id}/close        -> finalize enrollments, 200 summary

Closing a class runs inline: one class is small enough for a request. The
whole-period closure is queued instead (see periods.py).
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from attendance_service.api.dependencies import build_class_closure, get_period_repo
from attendance_service.core.errors import (
    ClosureConflictError,
    IncompleteSessionsError,
    NotFoundError,
    PeriodStillActiveError,
)
from attendance_service.repos.period_repo import PeriodRepo
from attendance_service.services.class_closure import ClassClosureSummary
from attendance_service.services.reporting import build_class_report

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/classes", tags=["classes"])


class StudentEligibilityOut(BaseModel):
    student_id: str
    status: str  # in_progress|approved|rejected
    computed_status: str
    percentage: float
    present_count: int
    considered_count: int
    access_count: int
    is_proportional: bool
    certifiable: bool


class ClassReportOut(BaseModel):
    class_id: str
    period_id: str
    name: str
    modality: str
    class_status: str
    period_status: str
    sessions_held: int
    planned_sessions: int | None
    warning: str | None
    approved: int
    rejected: int
    in_progress: int
    students: list[StudentEligibilityOut]


class CloseClassIn(BaseModel):
    acknowledge_incomplete: bool = False
    reevaluate: bool = False


class EnrollmentOutcomeOut(BaseModel):
    student_id: str
    status: str
    skipped: bool


class EnrollmentFailureOut(BaseModel):
    student_id: str
    error: str


class ClassClosureOut(BaseModel):
    class_id: str
    class_status: str
    already_closed: bool
    sessions_held: int
    planned_sessions: int | None
    warnings: list[str]
    succeeded: int
    skipped: int
    failed: int
    outcomes: list[EnrollmentOutcomeOut]
    failures: list[EnrollmentFailureOut]


def closure_summary_out(summary: ClassClosureSummary) -> ClassClosureOut:
    return ClassClosureOut(
        class_id=str(summary.class_id),
        class_status=summary.class_status,
        already_closed=summary.already_closed,
        sessions_held=summary.sessions_held,
        planned_sessions=summary.planned_sessions,
        warnings=[w.message for w in summary.warnings],
        succeeded=summary.succeeded,
        skipped=summary.skipped,
        failed=summary.failed,
        outcomes=[
            EnrollmentOutcomeOut(
                student_id=str(o.student_id), status=o.status, skipped=o.skipped
            )
            for o in summary.outcomes
        ],
        failures=[
            EnrollmentFailureOut(student_id=str(f.student_id), error=f.error)
            for f in summary.failures
        ],
    )


@router.get("/{class_id}/eligibility", response_model=ClassReportOut)
async def get_class_eligibility(
    class_id: UUID,
    repo: Annotated[PeriodRepo, Depends(get_period_repo)],
) -> ClassReportOut:
    try:
        report = await build_class_report(repo, class_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None

    course_class = report.course_class
    return ClassReportOut(
        class_id=str(course_class.id),
        period_id=str(report.period.id),
        name=course_class.name,
        modality=course_class.modality,
        class_status=course_class.status,
        period_status=report.period.status,
        sessions_held=report.sessions_held,
        planned_sessions=course_class.planned_sessions,
        warning=report.warning.message if report.warning else None,
        approved=report.approved,
        rejected=report.rejected,
        in_progress=report.in_progress,
        students=[
            StudentEligibilityOut(
                student_id=str(r.student_id),
                status=r.status,
                computed_status=r.computed_status,
                percentage=r.percentage,
                present_count=r.present_count,
                considered_count=r.considered_count,
                access_count=r.access_count,
                is_proportional=r.is_proportional,
                certifiable=r.certifiable,
            )
            for r in report.results
        ],
    )


@router.post("/{class_id}/close", response_model=ClassClosureOut)
async def close_class(
    class_id: UUID,
    repo: Annotated[PeriodRepo, Depends(get_period_repo)],
    body: CloseClassIn | None = None,
) -> ClassClosureOut:
    body = body or CloseClassIn()
    orchestrator = build_class_closure(repo)
    try:
        summary = await orchestrator.close(
            class_id,
            acknowledge_incomplete=body.acknowledge_incomplete,
            reevaluate=body.reevaluate,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    except (
        PeriodStillActiveError,
        ClosureConflictError,
        IncompleteSessionsError,
    ) as e:
        logger.warning(
            "Class closure rejected: %s", e, extra={"class_id": str(class_id)}
        )
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail=str(e)
        ) from None

    return closure_summary_out(summary)
