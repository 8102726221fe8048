"""Background task queue on Redis lists.

Closing a whole period touches every class and every enrollment in it,
which is too slow for a request/response cycle. The API enqueues a
``period_closure`` task and answers 202; the worker (worker.py) pops it
and runs the cycle closure orchestrator.

  Producer (API):    LPUSH task onto tasks:<queue>
  Consumer (Worker): BRPOP from the tail, so tasks run FIFO

Delivery is at-most-once: a worker crash mid-task loses the task. That is
acceptable here because period closure is resumable; the administrator
re-submits and the orchestrator picks up where it stopped.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from attendance_service.db.redis import redis_pool

PERIOD_CLOSURE_QUEUE = "period_closure"


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    queue: str
    payload: dict


@runtime_checkable
class TaskQueue(Protocol):
    async def enqueue(self, queue: str, payload: dict) -> Task: ...
    async def dequeue(self, queue: str, timeout: int = 0) -> Task | None: ...
    async def queue_length(self, queue: str) -> int: ...


class InMemoryTaskQueue:
    """In-memory task queue for tests and single-process dev runs."""

    def __init__(self) -> None:
        self._queues: dict[str, list[Task]] = {}

    async def enqueue(self, queue: str, payload: dict) -> Task:
        task = Task(id=str(uuid.uuid4()), queue=queue, payload=payload)
        self._queues.setdefault(queue, []).append(task)
        return task

    async def dequeue(self, queue: str, timeout: int = 0) -> Task | None:
        tasks = self._queues.get(queue, [])
        if tasks:
            return tasks.pop(0)
        return None

    async def queue_length(self, queue: str) -> int:
        return len(self._queues.get(queue, []))


class RedisTaskQueue:
    _PREFIX = "tasks:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def enqueue(self, queue: str, payload: dict) -> Task:
        task = Task(id=str(uuid.uuid4()), queue=queue, payload=payload)
        task_json = json.dumps(
            {"id": task.id, "queue": task.queue, "payload": task.payload}
        )
        await self._redis.lpush(f"{self._PREFIX}{queue}", task_json)
        return task

    async def dequeue(self, queue: str, timeout: int = 5) -> Task | None:
        result = await self._redis.brpop(f"{self._PREFIX}{queue}", timeout=timeout)
        if result is None:
            return None
        _, task_json = result
        return Task(**json.loads(task_json))

    async def queue_length(self, queue: str) -> int:
        return await self._redis.llen(f"{self._PREFIX}{queue}")


if redis_pool is not None:
    task_queue: TaskQueue = RedisTaskQueue(redis_pool)
else:
    task_queue = InMemoryTaskQueue()
