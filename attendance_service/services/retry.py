from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from attendance_service.core.config import SETTINGS
from attendance_service.core.errors import RepositoryError
from attendance_service.core.metrics import REPOSITORY_WRITE_RETRIES

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounded exponential backoff for transient repository failures.

    Only RepositoryError is retried; anything else is a bug or a state
    error and is raised on the first attempt.
    """

    attempts: int = SETTINGS.write_retry_attempts
    base_delay: float = SETTINGS.write_retry_base_delay
    multiplier: float = 2.0

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * (self.multiplier ** (attempt - 1))

    async def run(self, operation: Callable[[], Awaitable[T]], *, label: str = "") -> T:
        attempt = 1
        while True:
            try:
                return await operation()
            except RepositoryError:
                if attempt >= self.attempts:
                    raise
                delay = self.delay_for(attempt)
                REPOSITORY_WRITE_RETRIES.inc()
                logger.warning(
                    "Retrying %s after transient failure (attempt %d/%d, %.3fs)",
                    label or "operation",
                    attempt,
                    self.attempts,
                    delay,
                    extra={"attempt": attempt},
                )
                await asyncio.sleep(delay)
                attempt += 1


NO_RETRY = RetryPolicy(attempts=1, base_delay=0.0)
