"""Demo: seed a period through the entry layer, then close it over HTTP.

Run with:
    python scripts/demo_closure_flow.py

Runs against the in-memory store (leave DATABASE_URL and REDIS_URL unset).
"""

from __future__ import annotations

import asyncio
import datetime
from uuid import uuid4

from fastapi.testclient import TestClient

from attendance_service import worker
from attendance_service.api.dependencies import period_repo
from attendance_service.main import app
from attendance_service.repos.period_repo import PeriodRepo
from attendance_service.services import entry
from attendance_service.services.task_queue import task_queue

START = datetime.date(2025, 3, 3)
TODAY = datetime.date(2025, 7, 25)


async def seed(repo: PeriodRepo):
    period = await entry.create_period(
        repo, name="2025-1", start_date=START, end_date="2025-07-25"
    )
    algebra = await entry.create_class(
        repo,
        period_id=period.id,
        name="Algebra I",
        modality="synchronous",
        planned_sessions=16,
        weekdays=("monday",),
        class_time="18:00",
    )
    ethics = await entry.create_class(
        repo, period_id=period.id, name="Ethics Online", modality="self_paced"
    )

    regular, late, online = uuid4(), uuid4(), uuid4()
    await entry.enroll_student(
        repo,
        class_id=algebra.id,
        student_id=regular,
        enrollment_date=START,
        today=TODAY,
    )
    await entry.enroll_student(
        repo,
        class_id=algebra.id,
        student_id=late,
        enrollment_date=START + datetime.timedelta(weeks=5),
        type="exceptional",
        today=TODAY,
    )
    await entry.enroll_student(
        repo, class_id=ethics.id, student_id=online, enrollment_date=START, today=TODAY
    )

    # Ten of sixteen sessions held. Regular: 7/10. Late joiner: 3/5 from week 6.
    for n in range(1, 11):
        day = START + datetime.timedelta(weeks=n - 1)
        await entry.record_attendance(
            repo,
            class_id=algebra.id,
            student_id=regular,
            session_number=n,
            session_date=day,
            present=n <= 7,
        )
        if n >= 6:
            await entry.record_attendance(
                repo,
                class_id=algebra.id,
                student_id=late,
                session_number=n,
                session_date=day,
                present=n in (6, 7, 9),
            )

    await entry.record_access(
        repo,
        class_id=ethics.id,
        student_id=online,
        access_1="2025-03-10",
        access_2="2025-04-14",
    )
    return period, algebra, ethics, online


def main() -> None:
    client = TestClient(app)
    period, algebra, ethics, online = asyncio.run(seed(period_repo))

    # ── Step 1: report while the period is active ───────────────────
    r = client.get(f"/v1/classes/{algebra.id}/eligibility")
    data = r.json()
    print(
        f"1. GET  eligibility (active)  → {r.status_code}  "
        f"in_progress={data['in_progress']}  warning={data['warning']!r}"
    )

    # ── Step 2: class closure is refused while the period is active ─
    r = client.post(
        f"/v1/classes/{algebra.id}/close", json={"acknowledge_incomplete": True}
    )
    print(f"2. POST class close (active) → {r.status_code}  {r.json()['detail']}")

    # ── Step 3: queue the period closure without acknowledgement ────
    r = client.post(f"/v1/periods/{period.id}/close")
    task_id = r.json()["task_id"]
    print(f"3. POST period close         → {r.status_code}  task={task_id[:8]}…")
    asyncio.run(worker.run_once(task_queue, timeout=0))
    r = client.get(f"/v1/classes/{algebra.id}/eligibility")
    print(
        f"   worker ran: period={r.json()['period_status']}  "
        f"algebra={r.json()['class_status']}"
    )

    # ── Step 4: acknowledge the short class and close it ────────────
    r = client.post(
        f"/v1/classes/{algebra.id}/close", json={"acknowledge_incomplete": True}
    )
    summary = r.json()
    print(
        f"4. POST class close (ack)    → {r.status_code}  "
        f"{[o['status'] for o in summary['outcomes']]}  warnings={summary['warnings']}"
    )

    # ── Step 5: re-run the period closure ───────────────────────────
    client.post(f"/v1/periods/{period.id}/close")
    asyncio.run(worker.run_once(task_queue, timeout=0))
    r = client.get(f"/v1/classes/{ethics.id}/eligibility")
    print(
        f"5. period closed: {r.json()['period_status']}  "
        f"ethics rejected={r.json()['rejected']}"
    )

    # ── Step 6: backfill the third access and re-evaluate ───────────
    r = client.put(
        f"/v1/classes/{ethics.id}/access/{online}",
        json={
            "access_1": "2025-03-10",
            "access_2": "2025-04-14",
            "access_3": "2025-06-02",
            "allow_closed": True,
        },
    )
    print(f"6. PUT  access backfill      → {r.status_code}")
    r = client.post(f"/v1/classes/{ethics.id}/close", json={"reevaluate": True})
    print(f"6. POST ethics re-evaluate   → {r.status_code}  {r.json()['outcomes']}")

    print("\nAll steps completed.")


if __name__ == "__main__":
    main()
