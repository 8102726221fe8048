"""Background worker process.

RUN:  python -m attendance_service.worker

Period closure walks every class and every enrollment in a period, so the
API only queues it (POST /v1/periods/{id}/close) and this process does the
work. Same image, different command:

  api:    uvicorn attendance_service.main:app --host 0.0.0.0 --port 8000
  worker: python -m attendance_service.worker

The loop polls each registered queue, dequeues one task at a time and
dispatches it to its handler. A failed task is logged and dropped; period
closure is resumable, so the administrator re-submits it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any
from uuid import UUID

from attendance_service.api.dependencies import build_cycle_closure, period_repo_scope
from attendance_service.core.config import SETTINGS
from attendance_service.core.logging import setup_logging
from attendance_service.core.metrics import QUEUE_DEPTH
from attendance_service.services.cycle_closure import CycleClosureSummary
from attendance_service.services.task_queue import (
    PERIOD_CLOSURE_QUEUE,
    TaskQueue,
    task_queue,
)

TaskHandler = Callable[[dict], Coroutine[Any, Any, Any]]

logger = logging.getLogger("worker")

HANDLERS: dict[str, TaskHandler] = {}


def register_handler(queue: str):
    """Decorator: register a coroutine as the handler for a queue."""

    def decorator(func):
        HANDLERS[queue] = func
        return func

    return decorator


@register_handler(PERIOD_CLOSURE_QUEUE)
async def handle_period_closure(payload: dict) -> CycleClosureSummary:
    """Close a period and every class in it.

    Payload: ``period_id`` plus the ``acknowledge_incomplete`` and ``force``
    flags the administrator submitted.
    """
    period_id = UUID(payload["period_id"])
    async with period_repo_scope("period closure") as repo:
        summary = await build_cycle_closure(repo).close(
            period_id,
            acknowledge_incomplete=bool(payload.get("acknowledge_incomplete")),
            force=bool(payload.get("force")),
        )

    log_ctx = {"period_id": str(period_id)}
    if summary.closed:
        logger.info(
            "Period closed (forced=%s, classes=%d)",
            summary.forced,
            len(summary.classes),
            extra=log_ctx,
        )
    else:
        logger.warning(
            "Period left in %s; classes still open: %s",
            summary.period_status,
            ", ".join(str(c) for c in summary.incomplete_class_ids),
            extra=log_ctx,
        )
    return summary


async def run_once(queue: TaskQueue = task_queue, *, timeout: int = 1) -> int:
    """Poll every registered queue once. Returns the number of tasks handled."""
    handled = 0
    for queue_name, handler in HANDLERS.items():
        task = await queue.dequeue(queue_name, timeout=timeout)
        QUEUE_DEPTH.labels(queue_name=queue_name).set(
            await queue.queue_length(queue_name)
        )
        if task is None:
            continue

        handled += 1
        try:
            await handler(task.payload)
            logger.info("Task %s on [%s] completed", task.id, queue_name)
        except Exception:
            # No dead-letter queue; the closure can be re-submitted.
            logger.exception("Task %s on [%s] failed", task.id, queue_name)
    return handled


async def run_worker() -> None:
    logger.info("Worker started, listening on queues: %s", list(HANDLERS))
    while True:
        if not await run_once():
            # The in-memory queue does not block on dequeue.
            await asyncio.sleep(0.5)


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())
