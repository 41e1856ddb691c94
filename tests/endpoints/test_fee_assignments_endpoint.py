from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from app.application.services import auto_assign_service
from app.config import settings
from tests.helpers.auth import user_header
from tests.helpers.factories import (
    count_assignments,
    create_assignment,
    create_schedule,
    create_structure,
    create_student,
    create_students,
)


@pytest.fixture
def assign_context(db_session, seeded_users, fee_catalog):
    structure = create_structure(
        db_session,
        school_id=seeded_users["north_school"].id,
        academic_year_id=fee_catalog["academic_year"].id,
        category_id=fee_catalog["tuition"].id,
    )
    schedule = create_schedule(db_session, structure=structure)
    create_students(db_session, school_id=structure.school_id, count=3)
    return {
        "structure": structure,
        "schedule": schedule,
        "body": {
            "academic_year_id": fee_catalog["academic_year"].id,
            "structure_id": structure.id,
            "schedule_ids": [schedule.id],
        },
    }


def test_auto_assign_dry_run_is_open_to_staff(client, db_session, seeded_users, assign_context):
    """
    Validate dry run access for read-only roles.

    1. Post an auto-assign dry run as school staff.
    2. Validate preview outcome and rows.
    3. Validate nothing was written.
    """
    response = client.post(
        "/api/v1/fee-assignments/auto-assign",
        headers=user_header(seeded_users["staff"]),
        json={**assign_context["body"], "dry_run": True},
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["outcome"] == "preview"
    assert len(payload["assignments"]) == 3
    assert payload["summary"]["created_assignments"] is None
    assert count_assignments(db_session) == 0


def test_auto_assign_real_run_requires_admin(client, db_session, seeded_users, assign_context):
    """
    Validate real runs are admin only.

    1. Post an auto-assign real run as school staff.
    2. Validate forbidden status.
    3. Validate nothing was written.
    """
    response = client.post(
        "/api/v1/fee-assignments/auto-assign",
        headers=user_header(seeded_users["staff"]),
        json=assign_context["body"],
    )
    assert response.status_code == 403
    assert count_assignments(db_session) == 0


def test_auto_assign_creates_assignments_for_admin(client, db_session, seeded_users, assign_context):
    """
    Validate real auto-assign run.

    1. Post an auto-assign run as school admin.
    2. Validate created outcome, summary and message.
    3. Validate assignment rows exist.
    """
    response = client.post(
        "/api/v1/fee-assignments/auto-assign",
        headers=user_header(seeded_users["admin"]),
        json=assign_context["body"],
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["outcome"] == "created"
    assert payload["summary"]["created_assignments"] == 3
    assert payload["message"] == "Successfully assigned fees to 3 students across 1 payment schedules"
    assert Decimal(payload["assignments"][0]["amount_due"]) == Decimal("300000.00")
    assert count_assignments(db_session) == 3


def test_auto_assign_partial_failure_returns_207(client, db_session, seeded_users, assign_context, monkeypatch):
    """
    Validate multi-status response on batch failure.

    1. Use one-row batches and make the second insert fail.
    2. Post an auto-assign run as school admin.
    3. Validate 207 status with count, errors and summary.
    4. Validate committed batches are kept.
    """
    original_insert = auto_assign_service.insert_assignment_batch
    calls = {"count": 0}

    def flaky_insert(db, rows):
        calls["count"] += 1
        if calls["count"] == 2:
            raise OperationalError("INSERT INTO student_fee_assignments", {}, Exception("deadlock"))
        original_insert(db, rows)

    monkeypatch.setattr(settings, "assignment_batch_size", 1)
    monkeypatch.setattr(auto_assign_service, "insert_assignment_batch", flaky_insert)
    response = client.post(
        "/api/v1/fee-assignments/auto-assign",
        headers=user_header(seeded_users["admin"]),
        json=assign_context["body"],
    )
    assert response.status_code == 207
    payload = response.json()
    assert payload["count"] == 2
    assert payload["errors"] == ["Batch 2: failed to create 1 assignments"]
    assert payload["detail"] == "Created 2 assignments, 1 batches failed"
    assert payload["summary"]["created_assignments"] == 2
    assert count_assignments(db_session) == 2


def test_auto_assign_unknown_schedule_returns_404(client, seeded_users, assign_context):
    """
    Validate missing schedule ids through the API.

    1. Post an auto-assign run with an unknown schedule id.
    2. Validate not found status listing the id.
    """
    body = {**assign_context["body"], "schedule_ids": [assign_context["schedule"].id, 424242]}
    response = client.post(
        "/api/v1/fee-assignments/auto-assign", headers=user_header(seeded_users["admin"]), json=body
    )
    assert response.status_code == 404
    assert "424242" in response.json()["detail"]


def test_auto_assign_requires_schedule_ids(client, seeded_users, assign_context):
    """
    Validate request schema.

    1. Post an auto-assign run with an empty schedule list.
    2. Validate unprocessable entity status.
    """
    body = {**assign_context["body"], "schedule_ids": []}
    response = client.post(
        "/api/v1/fee-assignments/auto-assign", headers=user_header(seeded_users["admin"]), json=body
    )
    assert response.status_code == 422


def test_create_and_cancel_single_assignment(client, db_session, seeded_users, fee_catalog, assign_context):
    """
    Validate single assignment endpoints.

    1. Post one assignment as school admin.
    2. Post the same assignment again and validate conflict.
    3. Cancel the assignment and validate its status.
    4. Cancel it again and validate conflict.
    """
    student = create_student(
        db_session, school_id=seeded_users["north_school"].id, student_code="SOLO", grade_level="Grade 9"
    )
    headers = user_header(seeded_users["admin"])
    body = {
        "student_id": student.id,
        "structure_id": assign_context["structure"].id,
        "schedule_id": assign_context["schedule"].id,
        "academic_year_id": fee_catalog["academic_year"].id,
    }
    created = client.post("/api/v1/fee-assignments", headers=headers, json=body)
    assert created.status_code == 201
    assert created.json()["status"] == "active"
    assert client.post("/api/v1/fee-assignments", headers=headers, json=body).status_code == 409

    assignment_id = created.json()["id"]
    cancelled = client.post(f"/api/v1/fee-assignments/{assignment_id}/cancel", headers=headers)
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert client.post(f"/api/v1/fee-assignments/{assignment_id}/cancel", headers=headers).status_code == 409


def test_list_assignments_searches_student_names(client, db_session, seeded_users, assign_context):
    """
    Validate assignment list search and stats.

    1. Seed one assignment for a uniquely named student.
    2. List assignments searching that name as school staff.
    3. Validate only that assignment is returned.
    4. Validate the south admin sees none.
    """
    student = create_student(
        db_session, school_id=seeded_users["north_school"].id, student_code="FIND", last_name="Findable"
    )
    create_assignment(db_session, student=student, schedule=assign_context["schedule"])

    response = client.get("/api/v1/fee-assignments?search=findable", headers=user_header(seeded_users["staff"]))
    assert response.status_code == 200
    payload = response.json()
    assert [item["student_id"] for item in payload["items"]] == [student.id]
    assert payload["stats"]["active"] == 1

    south = client.get("/api/v1/fee-assignments", headers=user_header(seeded_users["south_admin"]))
    assert south.json()["items"] == []
