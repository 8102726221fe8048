"""Period (cycle) closure endpoint.

  POST /v1/periods/{period_id}/close -> enqueue period_closure -> 202

Closing a period closes every class in it, which can take longer than a
request should. The worker (worker.py) runs the CycleClosureOrchestrator;
the administrator follows up with the class eligibility reports.
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from attendance_service.api.dependencies import get_period_repo, get_task_queue
from attendance_service.core.metrics import QUEUE_DEPTH
from attendance_service.repos.period_repo import PeriodRepo
from attendance_service.services.task_queue import PERIOD_CLOSURE_QUEUE, TaskQueue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/periods", tags=["periods"])


class ClosePeriodIn(BaseModel):
    acknowledge_incomplete: bool = False
    force: bool = False


class ClosePeriodAccepted(BaseModel):
    task_id: str
    period_id: str
    queue: str


@router.post(
    "/{period_id}/close",
    response_model=ClosePeriodAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
async def close_period(
    period_id: UUID,
    repo: Annotated[PeriodRepo, Depends(get_period_repo)],
    queue: Annotated[TaskQueue, Depends(get_task_queue)],
    body: ClosePeriodIn | None = None,
) -> ClosePeriodAccepted:
    body = body or ClosePeriodIn()
    if await repo.get_period(period_id) is None:
        raise HTTPException(status_code=404, detail=f"period not found: {period_id}")

    task = await queue.enqueue(
        PERIOD_CLOSURE_QUEUE,
        {
            "period_id": str(period_id),
            "acknowledge_incomplete": body.acknowledge_incomplete,
            "force": body.force,
        },
    )
    QUEUE_DEPTH.labels(queue_name=PERIOD_CLOSURE_QUEUE).set(
        await queue.queue_length(PERIOD_CLOSURE_QUEUE)
    )
    logger.info(
        "Queued period closure task=%s force=%s",
        task.id,
        body.force,
        extra={"period_id": str(period_id)},
    )
    return ClosePeriodAccepted(
        task_id=task.id, period_id=str(period_id), queue=PERIOD_CLOSURE_QUEUE
    )
