from __future__ import annotations

import asyncio
from uuid import UUID, uuid4

import pytest

from attendance_service.core.errors import NotFoundError, RepositoryError
from attendance_service.repos.period_repo import InMemoryPeriodRepo
from attendance_service.services.class_closure import ClassClosureOrchestrator
from attendance_service.services.cycle_closure import CycleClosureOrchestrator
from tests.conftest import (
    seed_accesses,
    seed_enrollment,
    seed_period,
    seed_self_paced_class,
    seed_sessions,
    seed_sync_class,
)



class UnreachableClassRepo(InMemoryPeriodRepo):
    """Class lookups fail for chosen classes, as if the store dropped them."""

    def __init__(self) -> None:
        super().__init__()
        self.unreachable: set[UUID] = set()

    async def get_class(self, class_id):
        if class_id in self.unreachable:
            raise RepositoryError("connection refused")
        return await super().get_class(class_id)


async def _period_with_two_classes(repo: InMemoryPeriodRepo, *, held: int = 4):
    """A synchronous class with ``held`` of 4 sessions and a self-paced class."""
    period = await seed_period(repo)
    sync = await seed_sync_class(repo, period, planned_sessions=4)
    online = await seed_self_paced_class(repo, period)
    s = await seed_enrollment(repo, sync)
    o = await seed_enrollment(repo, online)
    await seed_sessions(repo, sync, s.student_id, [True] * held)
    await seed_accesses(repo, online, o.student_id, 3)
    return period, sync, online


def test_closes_every_class_then_the_period(repo: InMemoryPeriodRepo) -> None:
    async def scenario():
        period, sync, online = await _period_with_two_classes(repo)
        summary = await CycleClosureOrchestrator(repo).close(period.id)
        return (
            summary,
            await repo.get_period(period.id),
            await repo.get_class(sync.id),
            await repo.get_class(online.id),
        )

    summary, period, sync, online = asyncio.run(scenario())
    assert summary.closed
    assert summary.forced is False
    assert summary.incomplete_class_ids == []
    assert len(summary.classes) == 2
    assert period.status == "closed"
    assert sync.status == "closed"
    assert online.status == "closed"


def test_unacknowledged_incomplete_class_keeps_period_closing(
    repo: InMemoryPeriodRepo,
) -> None:
    async def scenario():
        period, sync, online = await _period_with_two_classes(repo, held=2)
        summary = await CycleClosureOrchestrator(repo).close(period.id)
        return summary, await repo.get_period(period.id), sync, online

    summary, period, sync, online = asyncio.run(scenario())
    assert not summary.closed
    assert period.status == "closing"
    assert summary.incomplete_class_ids == [sync.id]
    assert "acknowledge_incomplete" in summary.errors[0].error
    # The other class still closed.
    assert [c.class_id for c in summary.classes] == [online.id]


def test_acknowledged_incomplete_closes_everything(repo: InMemoryPeriodRepo) -> None:
    async def scenario():
        period, sync, _ = await _period_with_two_classes(repo, held=2)
        summary = await CycleClosureOrchestrator(repo).close(
            period.id, acknowledge_incomplete=True
        )
        return summary, await repo.get_class(sync.id)

    summary, sync = asyncio.run(scenario())
    assert summary.closed
    assert sync.status == "closed"
    assert any(c.warnings for c in summary.classes)


def test_force_closes_period_with_open_classes(repo: InMemoryPeriodRepo) -> None:
    async def scenario():
        period, sync, _ = await _period_with_two_classes(repo, held=2)
        summary = await CycleClosureOrchestrator(repo).close(period.id, force=True)
        return summary, await repo.get_period(period.id), await repo.get_class(sync.id)

    summary, period, sync = asyncio.run(scenario())
    assert summary.closed
    assert summary.forced is True
    assert period.status == "closed"
    # Forcing the period does not close the class behind the administrator's back.
    assert sync.status == "active"


def test_resuming_a_closing_period(repo: InMemoryPeriodRepo) -> None:
    async def scenario():
        period, sync, _ = await _period_with_two_classes(repo, held=2)
        orchestrator = CycleClosureOrchestrator(repo)
        first = await orchestrator.close(period.id)
        # The administrator acknowledges the short class on their own.
        await ClassClosureOrchestrator(repo).close(sync.id, acknowledge_incomplete=True)
        second = await orchestrator.close(period.id)
        return first, second

    first, second = asyncio.run(scenario())
    assert not first.closed
    assert second.closed
    # Classes closed in the first run are not re-run.
    assert second.classes == []


def test_closing_a_closed_period_is_a_no_op(repo: InMemoryPeriodRepo) -> None:
    async def scenario():
        period, _, _ = await _period_with_two_classes(repo)
        orchestrator = CycleClosureOrchestrator(repo)
        await orchestrator.close(period.id)
        return await orchestrator.close(period.id)

    again = asyncio.run(scenario())
    assert again.already_closed is True
    assert again.closed


def test_unknown_period_raises_not_found(repo: InMemoryPeriodRepo) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(CycleClosureOrchestrator(repo).close(uuid4()))


def test_isolated_store_failure_is_recorded_per_class() -> None:
    repo = UnreachableClassRepo()

    async def scenario():
        period, sync, online = await _period_with_two_classes(repo)
        repo.unreachable.add(sync.id)
        summary = await CycleClosureOrchestrator(repo).close(period.id)
        return summary, sync, await repo.get_class(online.id)

    summary, sync, online = asyncio.run(scenario())
    assert [e.class_id for e in summary.errors] == [sync.id]
    assert "connection refused" in summary.errors[0].error
    assert online.status == "closed"
    assert summary.period_status == "closing"


def test_repeated_store_failures_abort_the_period_closure() -> None:
    repo = UnreachableClassRepo()

    async def scenario():
        period, sync, online = await _period_with_two_classes(repo)
        repo.unreachable.update({sync.id, online.id})
        with pytest.raises(RepositoryError):
            await CycleClosureOrchestrator(repo).close(period.id)
        return await repo.get_period(period.id)

    period = asyncio.run(scenario())
    # Left resumable: a later run picks up from closing.
    assert period.status == "closing"
