"""Data entry validation: nothing malformed reaches the store."""

from __future__ import annotations

import asyncio
import datetime
from uuid import uuid4

import pytest

from attendance_service.core.errors import EntryValidationError, NotFoundError
from attendance_service.repos.period_repo import InMemoryPeriodRepo
from attendance_service.services import entry
from tests.conftest import PERIOD_END, PERIOD_START, session_date

_TODAY = datetime.date(2025, 5, 1)


async def _period(repo: InMemoryPeriodRepo):
    return await entry.create_period(
        repo, name=" 2025-1 ", start_date="2025-03-03", end_date="2025-07-25"
    )


async def _sync_class(repo: InMemoryPeriodRepo):
    period = await _period(repo)
    return await entry.create_class(
        repo,
        period_id=period.id,
        name="Algebra I",
        modality="synchronous",
        planned_sessions=16,
        weekdays=("Monday", " wednesday"),
        class_time="18:00",
    )


async def _self_paced_class(repo: InMemoryPeriodRepo):
    period = await _period(repo)
    return await entry.create_class(
        repo, period_id=period.id, name="Ethics", modality="self_paced"
    )


# ---- dates ----


def test_parse_date_accepts_iso_strings_and_dates() -> None:
    assert entry.parse_date("2025-03-03", "d") == PERIOD_START
    assert entry.parse_date("2025-03-03T10:15:00Z", "d") == PERIOD_START
    assert entry.parse_date(PERIOD_START, "d") == PERIOD_START
    assert entry.parse_date(datetime.datetime(2025, 3, 3, 9, 0), "d") == PERIOD_START


@pytest.mark.parametrize("raw", ["03/03/2025", "", "2025-02-30", None])
def test_parse_date_rejects_garbage(raw) -> None:
    with pytest.raises(EntryValidationError, match="session_date"):
        entry.parse_date(raw, "session_date")


# ---- periods and classes ----


def test_create_period_normalizes(repo: InMemoryPeriodRepo) -> None:
    period = asyncio.run(_period(repo))
    assert period.name == "2025-1"
    assert (period.start_date, period.end_date) == (PERIOD_START, PERIOD_END)
    assert period.status == "active"


def test_create_period_rejects_inverted_range(repo: InMemoryPeriodRepo) -> None:
    with pytest.raises(EntryValidationError, match="end_date"):
        asyncio.run(
            entry.create_period(
                repo, name="x", start_date="2025-07-25", end_date="2025-03-03"
            )
        )


def test_create_class_normalizes_weekdays(repo: InMemoryPeriodRepo) -> None:
    course_class = asyncio.run(_sync_class(repo))
    assert course_class.weekdays == ("monday", "wednesday")
    assert course_class.planned_sessions == 16


def test_self_paced_class_has_no_planned_sessions(repo: InMemoryPeriodRepo) -> None:
    assert asyncio.run(_self_paced_class(repo)).planned_sessions is None


def test_synchronous_class_needs_planned_sessions(repo: InMemoryPeriodRepo) -> None:
    async def scenario():
        period = await _period(repo)
        await entry.create_class(
            repo, period_id=period.id, name="x", modality="synchronous"
        )

    with pytest.raises(EntryValidationError, match="planned session"):
        asyncio.run(scenario())


def test_create_class_rejects_unknown_weekday(repo: InMemoryPeriodRepo) -> None:
    async def scenario():
        period = await _period(repo)
        await entry.create_class(
            repo,
            period_id=period.id,
            name="x",
            modality="synchronous",
            planned_sessions=4,
            weekdays=("funday",),
        )

    with pytest.raises(EntryValidationError, match="funday"):
        asyncio.run(scenario())


def test_create_class_in_unknown_period(repo: InMemoryPeriodRepo) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(
            entry.create_class(repo, period_id=uuid4(), name="x", modality="self_paced")
        )


# ---- enrollment ----


def test_enroll_student(repo: InMemoryPeriodRepo) -> None:
    async def scenario():
        course_class = await _sync_class(repo)
        return await entry.enroll_student(
            repo,
            class_id=course_class.id,
            student_id=uuid4(),
            enrollment_date="2025-04-07",
            type="exceptional",
            today=_TODAY,
        )

    enrollment = asyncio.run(scenario())
    assert enrollment.type == "exceptional"
    assert enrollment.current_status == "in_progress"
    assert enrollment.status_updated_at is not None


def test_enrollment_date_must_not_be_in_future(repo: InMemoryPeriodRepo) -> None:
    async def scenario():
        course_class = await _sync_class(repo)
        await entry.enroll_student(
            repo,
            class_id=course_class.id,
            student_id=uuid4(),
            enrollment_date="2025-06-01",
            today=_TODAY,
        )

    with pytest.raises(EntryValidationError, match="future"):
        asyncio.run(scenario())


def test_enrollment_date_must_be_inside_period(repo: InMemoryPeriodRepo) -> None:
    async def scenario():
        course_class = await _sync_class(repo)
        await entry.enroll_student(
            repo,
            class_id=course_class.id,
            student_id=uuid4(),
            enrollment_date="2025-01-10",
            today=_TODAY,
        )

    with pytest.raises(EntryValidationError, match="outside the period"):
        asyncio.run(scenario())


def test_duplicate_enrollment_rejected(repo: InMemoryPeriodRepo) -> None:
    async def scenario():
        course_class = await _sync_class(repo)
        student_id = uuid4()
        for _ in range(2):
            await entry.enroll_student(
                repo,
                class_id=course_class.id,
                student_id=student_id,
                enrollment_date="2025-03-03",
                today=_TODAY,
            )

    with pytest.raises(EntryValidationError, match="already enrolled"):
        asyncio.run(scenario())


def test_self_paced_enrollment_starts_empty_access_record(
    repo: InMemoryPeriodRepo,
) -> None:
    async def scenario():
        course_class = await _self_paced_class(repo)
        enrollment = await entry.enroll_student(
            repo,
            class_id=course_class.id,
            student_id=uuid4(),
            enrollment_date="2025-03-03",
            today=_TODAY,
        )
        return await repo.get_access_record(course_class.id, enrollment.student_id)

    record = asyncio.run(scenario())
    assert record is not None
    assert record.slots == (None, None, None)


# ---- attendance ----


async def _enrolled_sync(repo: InMemoryPeriodRepo):
    course_class = await _sync_class(repo)
    enrollment = await entry.enroll_student(
        repo,
        class_id=course_class.id,
        student_id=uuid4(),
        enrollment_date="2025-03-03",
        today=_TODAY,
    )
    return course_class, enrollment


def test_record_attendance(repo: InMemoryPeriodRepo) -> None:
    async def scenario():
        course_class, enrollment = await _enrolled_sync(repo)
        await entry.record_attendance(
            repo,
            class_id=course_class.id,
            student_id=enrollment.student_id,
            session_number=1,
            session_date=session_date(1),
            present=True,
        )
        # Re-recording a session corrects it rather than adding a second one.
        await entry.record_attendance(
            repo,
            class_id=course_class.id,
            student_id=enrollment.student_id,
            session_number=1,
            session_date=session_date(1),
            present=False,
        )
        return await repo.list_attendance_events(course_class.id, enrollment.student_id)

    events = asyncio.run(scenario())
    assert len(events) == 1
    assert events[0].present is False


@pytest.mark.parametrize("session_number", [0, 17])
def test_session_number_must_be_within_plan(
    repo: InMemoryPeriodRepo, session_number: int
) -> None:
    async def scenario():
        course_class, enrollment = await _enrolled_sync(repo)
        await entry.record_attendance(
            repo,
            class_id=course_class.id,
            student_id=enrollment.student_id,
            session_number=session_number,
            session_date=session_date(1),
            present=True,
        )

    with pytest.raises(EntryValidationError, match="between 1 and 16"):
        asyncio.run(scenario())


def test_attendance_requires_enrollment(repo: InMemoryPeriodRepo) -> None:
    async def scenario():
        course_class = await _sync_class(repo)
        await entry.record_attendance(
            repo,
            class_id=course_class.id,
            student_id=uuid4(),
            session_number=1,
            session_date=session_date(1),
            present=True,
        )

    with pytest.raises(EntryValidationError, match="not enrolled"):
        asyncio.run(scenario())


def test_attendance_locked_once_class_is_closing(repo: InMemoryPeriodRepo) -> None:
    async def scenario():
        course_class, enrollment = await _enrolled_sync(repo)
        await repo.set_class_status(course_class.id, "closing", expected="active")
        await entry.record_attendance(
            repo,
            class_id=course_class.id,
            student_id=enrollment.student_id,
            session_number=1,
            session_date=session_date(1),
            present=True,
        )

    with pytest.raises(EntryValidationError, match="locked"):
        asyncio.run(scenario())


# ---- access records ----


def test_access_only_for_self_paced(repo: InMemoryPeriodRepo) -> None:
    async def scenario():
        course_class, enrollment = await _enrolled_sync(repo)
        await entry.record_access(
            repo,
            class_id=course_class.id,
            student_id=enrollment.student_id,
            access_1="2025-03-10",
        )

    with pytest.raises(EntryValidationError, match="self-paced"):
        asyncio.run(scenario())


def test_record_access_dates(repo: InMemoryPeriodRepo) -> None:
    async def scenario():
        course_class = await _self_paced_class(repo)
        enrollment = await entry.enroll_student(
            repo,
            class_id=course_class.id,
            student_id=uuid4(),
            enrollment_date="2025-03-03",
            today=_TODAY,
        )
        return await entry.record_access(
            repo,
            class_id=course_class.id,
            student_id=enrollment.student_id,
            access_1="2025-03-10",
            access_2="",
            access_3="2025-05-02T08:00:00",
        )

    record = asyncio.run(scenario())
    assert record.slots == (datetime.date(2025, 3, 10), None, datetime.date(2025, 5, 2))


def test_access_date_outside_period_rejected(repo: InMemoryPeriodRepo) -> None:
    async def scenario():
        course_class = await _self_paced_class(repo)
        enrollment = await entry.enroll_student(
            repo,
            class_id=course_class.id,
            student_id=uuid4(),
            enrollment_date="2025-03-03",
            today=_TODAY,
        )
        await entry.record_access(
            repo,
            class_id=course_class.id,
            student_id=enrollment.student_id,
            access_1="2025-09-01",
        )

    with pytest.raises(EntryValidationError, match="access_1"):
        asyncio.run(scenario())
