"""PgPeriodRepo error mapping and savepoints, against a stand-in session.

No database is involved: the session double raises the same DBAPIError a
dropped asyncpg connection would, which is all these paths look at.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from uuid import uuid4

import pytest
from sqlalchemy.exc import DBAPIError

from attendance_service.core.errors import RepositoryError
from attendance_service.repos.pg_period_repo import PgPeriodRepo


class _BrokenSession:
    """Every statement fails; savepoints are counted."""

    def __init__(self) -> None:
        self.savepoints_entered = 0
        self.savepoints_rolled_back = 0

    async def get(self, model, key):
        raise DBAPIError("SELECT", {}, Exception("connection lost"))

    async def execute(self, stmt):
        raise DBAPIError("SELECT", {}, Exception("connection lost"))

    @asynccontextmanager
    async def begin_nested(self):
        self.savepoints_entered += 1
        try:
            yield
        except Exception:
            self.savepoints_rolled_back += 1
            raise


@pytest.mark.parametrize(
    "read",
    [
        lambda repo: repo.get_period(uuid4()),
        lambda repo: repo.get_class(uuid4()),
        lambda repo: repo.list_classes_in_period(uuid4()),
        lambda repo: repo.list_enrollments(uuid4()),
        lambda repo: repo.get_enrollment(uuid4(), uuid4()),
        lambda repo: repo.list_attendance_events(uuid4(), uuid4()),
        lambda repo: repo.list_session_numbers(uuid4()),
        lambda repo: repo.get_access_record(uuid4(), uuid4()),
    ],
)
def test_read_failures_become_repository_errors(read) -> None:
    repo = PgPeriodRepo(_BrokenSession())  # type: ignore[arg-type]
    with pytest.raises(RepositoryError, match="connection lost"):
        asyncio.run(read(repo))


def test_status_write_failure_rolls_back_its_savepoint() -> None:
    session = _BrokenSession()
    repo = PgPeriodRepo(session)  # type: ignore[arg-type]
    with pytest.raises(RepositoryError):
        asyncio.run(
            repo.update_enrollment_status(uuid4(), uuid4(), "approved", 1_700_000_000)
        )
    assert session.savepoints_rolled_back == 1


def test_savepoint_rolls_back_a_failed_read() -> None:
    session = _BrokenSession()
    repo = PgPeriodRepo(session)  # type: ignore[arg-type]

    async def scenario():
        async with repo.savepoint():
            await repo.list_attendance_events(uuid4(), uuid4())

    with pytest.raises(RepositoryError):
        asyncio.run(scenario())
    assert session.savepoints_entered == 1
    assert session.savepoints_rolled_back == 1
