"""Data entry over HTTP: validation, locking, and the access backfill path.

Verifies:
1. Periods, classes, enrollments and attendance can be entered and show up
   in the eligibility report
2. Invalid input is 422, unknown ids are 404
3. A closed class refuses new access dates unless allow_closed is set, and
   a reevaluating closure picks the backfill up
"""

from __future__ import annotations

import asyncio
from uuid import UUID, uuid4

from fastapi.testclient import TestClient

from attendance_service.api.dependencies import period_repo
from tests.conftest import PERIOD_END, PERIOD_START, begin_period_closure


def _create_period(client: TestClient) -> str:
    resp = client.post(
        "/v1/periods",
        json={
            "name": "2025-1",
            "start_date": PERIOD_START.isoformat(),
            "end_date": PERIOD_END.isoformat(),
        },
    )
    assert resp.status_code == 201
    return resp.json()["id"]


def _create_class(client: TestClient, period_id: str, **fields) -> str:
    body = {"name": "Algebra I", "modality": "synchronous", "planned_sessions": 2}
    body.update(fields)
    resp = client.post(f"/v1/periods/{period_id}/classes", json=body)
    assert resp.status_code == 201
    return resp.json()["id"]


def _enroll(client: TestClient, class_id: str) -> str:
    student_id = str(uuid4())
    resp = client.post(
        f"/v1/classes/{class_id}/enrollments",
        json={"student_id": student_id, "enrollment_date": PERIOD_START.isoformat()},
    )
    assert resp.status_code == 201
    assert resp.json()["current_status"] == "in_progress"
    return student_id


def _begin_closure(period_id: str) -> None:
    async def _run():
        period = await period_repo.get_period(UUID(period_id))
        await begin_period_closure(period_repo, period)

    asyncio.run(_run())


def test_entered_attendance_reaches_the_report(client: TestClient) -> None:
    period_id = _create_period(client)
    class_id = _create_class(client, period_id, weekdays=["Monday"])
    student_id = _enroll(client, class_id)

    for number, day in ((1, "2025-03-03"), (2, "2025-03-10")):
        resp = client.put(
            f"/v1/classes/{class_id}/attendance",
            json={
                "student_id": student_id,
                "session_number": number,
                "session_date": day,
                "present": True,
            },
        )
        assert resp.status_code == 200
        assert resp.json()["session_date"] == day

    report = client.get(f"/v1/classes/{class_id}/eligibility").json()
    assert report["sessions_held"] == 2
    assert report["students"][0]["present_count"] == 2
    assert report["students"][0]["status"] == "in_progress"


def test_invalid_period_is_422(client: TestClient) -> None:
    resp = client.post(
        "/v1/periods",
        json={"name": "2025-1", "start_date": "2025-07-25", "end_date": "2025-03-03"},
    )
    assert resp.status_code == 422
    assert "end_date" in resp.json()["detail"]


def test_class_in_unknown_period_is_404(client: TestClient) -> None:
    resp = client.post(
        f"/v1/periods/{uuid4()}/classes",
        json={"name": "Algebra I", "modality": "synchronous", "planned_sessions": 4},
    )
    assert resp.status_code == 404


def test_session_number_out_of_range_is_422(client: TestClient) -> None:
    period_id = _create_period(client)
    class_id = _create_class(client, period_id)
    student_id = _enroll(client, class_id)
    resp = client.put(
        f"/v1/classes/{class_id}/attendance",
        json={
            "student_id": student_id,
            "session_number": 3,
            "session_date": "2025-03-17",
            "present": True,
        },
    )
    assert resp.status_code == 422
    assert "session_number" in resp.json()["detail"]


def test_enrolling_twice_is_422(client: TestClient) -> None:
    period_id = _create_period(client)
    class_id = _create_class(client, period_id)
    student_id = _enroll(client, class_id)
    resp = client.post(
        f"/v1/classes/{class_id}/enrollments",
        json={"student_id": student_id, "enrollment_date": PERIOD_START.isoformat()},
    )
    assert resp.status_code == 422
    assert "already enrolled" in resp.json()["detail"]


def test_access_backfill_on_closed_class(client: TestClient) -> None:
    period_id = _create_period(client)
    class_id = _create_class(client, period_id, name="Ethics", modality="self_paced")
    student_id = _enroll(client, class_id)
    access_url = f"/v1/classes/{class_id}/access/{student_id}"
    two_accesses = {"access_1": "2025-03-10", "access_2": "2025-04-14"}
    assert client.put(access_url, json=two_accesses).status_code == 200

    _begin_closure(period_id)
    closed = client.post(f"/v1/classes/{class_id}/close").json()
    assert [o["status"] for o in closed["outcomes"]] == ["rejected"]

    # Entries are locked once the class is closed...
    three_accesses = {**two_accesses, "access_3": "2025-06-02"}
    locked = client.put(access_url, json=three_accesses)
    assert locked.status_code == 422
    assert "locked" in locked.json()["detail"]

    # ...except through the administrative backfill.
    backfill = client.put(access_url, json={**three_accesses, "allow_closed": True})
    assert backfill.status_code == 200
    assert backfill.json()["access_3"] == "2025-06-02"

    rerun = client.post(f"/v1/classes/{class_id}/close", json={"reevaluate": True})
    assert rerun.status_code == 200
    assert [o["status"] for o in rerun.json()["outcomes"]] == ["approved"]
    assert rerun.json()["class_status"] == "closed"
