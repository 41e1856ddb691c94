from decimal import Decimal

from app.domain.fee_enums import FeeStructureStatus
from tests.helpers.auth import user_header
from tests.helpers.factories import (
    count_structures,
    create_assignment,
    create_schedule,
    create_structure,
    create_student,
)


def _structure_body(fee_catalog, **overrides) -> dict:
    body = {
        "name": "Grade 7 fees",
        "academic_year_id": fee_catalog["academic_year"].id,
        "grade_level": "Grade 7",
        "program_type": "secondary",
        "total_amount": "300000.00",
        "categories": [
            {"category_id": fee_catalog["tuition"].id, "amount": "270000.00"},
            {"category_id": fee_catalog["activities"].id, "amount": "30000.00", "payment_modes": ["cash"]},
        ],
    }
    body.update(overrides)
    return body


def _seed_structure(db_session, seeded_users, fee_catalog, **kwargs):
    return create_structure(
        db_session,
        school_id=seeded_users["north_school"].id,
        academic_year_id=fee_catalog["academic_year"].id,
        category_id=fee_catalog["tuition"].id,
        **kwargs,
    )


def test_get_fee_structures_returns_401_without_token(client):
    """
    Validate fee structures list unauthorized branch.

    1. Call fee structures list endpoint without auth header.
    2. Validate unauthorized status code.
    """
    response = client.get("/api/v1/fee-structures")
    assert response.status_code == 401


def test_create_fee_structure_returns_201_for_admin(client, seeded_users, fee_catalog):
    """
    Validate fee structure creation endpoint.

    1. Post a valid structure as school admin.
    2. Validate created status and draft default.
    3. Validate items carry category names and payment modes.
    """
    response = client.post(
        "/api/v1/fee-structures", headers=user_header(seeded_users["admin"]), json=_structure_body(fee_catalog)
    )
    assert response.status_code == 201
    payload = response.json()
    assert payload["status"] == "draft"
    assert Decimal(payload["total_amount"]) == Decimal("300000.00")
    items = {item["category_name"]: item for item in payload["items"]}
    assert items["Activities"]["payment_modes"] == ["cash"]
    assert items["Activities"]["is_mandatory"] is False


def test_create_fee_structure_returns_403_for_staff(client, db_session, seeded_users, fee_catalog):
    """
    Validate write role enforcement on create.

    1. Post a valid structure as school staff.
    2. Validate forbidden status.
    3. Validate nothing was written.
    """
    response = client.post(
        "/api/v1/fee-structures", headers=user_header(seeded_users["staff"]), json=_structure_body(fee_catalog)
    )
    assert response.status_code == 403
    assert count_structures(db_session, school_id=seeded_users["north_school"].id) == 0


def test_create_fee_structure_reports_category_sum_field(client, seeded_users, fee_catalog):
    """
    Validate category sum error payload.

    1. Post a structure whose category amounts miss the total.
    2. Validate bad request status.
    3. Validate the payload names the categories field.
    """
    body = _structure_body(fee_catalog, total_amount="310000.00")
    response = client.post("/api/v1/fee-structures", headers=user_header(seeded_users["admin"]), json=body)
    assert response.status_code == 400
    assert response.json() == {"detail": "Category amounts must sum to total amount", "field": "categories"}


def test_create_fee_structure_returns_409_for_duplicate_scope(client, db_session, seeded_users, fee_catalog):
    """
    Validate uniqueness conflicts through the API.

    1. Seed a Grade 7 secondary structure.
    2. Post another one with differently cased grade.
    3. Validate conflict status.
    """
    _seed_structure(db_session, seeded_users, fee_catalog)
    response = client.post(
        "/api/v1/fee-structures",
        headers=user_header(seeded_users["admin"]),
        json=_structure_body(fee_catalog, grade_level="GRADE 7"),
    )
    assert response.status_code == 409


def test_get_fee_structures_filters_and_returns_stats_for_staff(client, db_session, seeded_users, fee_catalog):
    """
    Validate list filters and stats for read-only roles.

    1. Seed a published Grade 7 and a draft Grade 8 structure.
    2. List with status filter as school staff.
    3. Validate only the published one is returned.
    4. Validate stats reflect the filtered base query.
    """
    _seed_structure(db_session, seeded_users, fee_catalog)
    _seed_structure(db_session, seeded_users, fee_catalog, grade_level="Grade 8", status=FeeStructureStatus.draft)
    response = client.get(
        "/api/v1/fee-structures?status=published", headers=user_header(seeded_users["staff"])
    )
    assert response.status_code == 200
    payload = response.json()
    assert [item["grade_level"] for item in payload["items"]] == ["Grade 7"]
    assert payload["stats"]["total"] == 1
    assert payload["pagination"]["total"] == 1


def test_get_fee_structure_returns_404_for_other_school(client, db_session, seeded_users, fee_catalog):
    """
    Validate tenant isolation on detail.

    1. Seed a structure in the north school.
    2. Fetch it as the south admin.
    3. Validate not found status.
    """
    structure = _seed_structure(db_session, seeded_users, fee_catalog)
    response = client.get(f"/api/v1/fee-structures/{structure.id}", headers=user_header(seeded_users["south_admin"]))
    assert response.status_code == 404


def test_get_fee_structure_includes_schedules(client, db_session, seeded_users, fee_catalog):
    """
    Validate structure detail payload.

    1. Seed a structure with a per-term schedule.
    2. Fetch the structure as school staff.
    3. Validate the schedule and its installments are embedded.
    """
    structure = _seed_structure(db_session, seeded_users, fee_catalog)
    create_schedule(db_session, structure=structure)
    response = client.get(f"/api/v1/fee-structures/{structure.id}", headers=user_header(seeded_users["staff"]))
    assert response.status_code == 200
    schedules = response.json()["schedules"]
    assert len(schedules) == 1
    assert [row["label"] for row in schedules[0]["installments"]] == ["Term 1", "Term 2", "Term 3"]


def test_update_fee_structure_replaces_items(client, db_session, seeded_users, fee_catalog):
    """
    Validate structure update endpoint.

    1. Seed a draft structure.
    2. Put a new name and category split.
    3. Validate the response carries the new values.
    """
    structure = _seed_structure(db_session, seeded_users, fee_catalog, status=FeeStructureStatus.draft)
    body = _structure_body(fee_catalog, name="Grade 7 fees 2026")
    response = client.put(
        f"/api/v1/fee-structures/{structure.id}", headers=user_header(seeded_users["admin"]), json=body
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["name"] == "Grade 7 fees 2026"
    assert len(payload["items"]) == 2


def test_update_fee_structure_total_with_assignments_returns_409(client, db_session, seeded_users, fee_catalog):
    """
    Validate total changes are refused once students owe the structure.

    1. Seed a published structure with one active assignment.
    2. Put a higher total with a matching category split.
    3. Validate conflict status and the archive hint.
    4. Validate the stored total is unchanged.
    """
    structure = _seed_structure(db_session, seeded_users, fee_catalog)
    schedule = create_schedule(db_session, structure=structure)
    student = create_student(db_session, school_id=seeded_users["north_school"].id, student_code="S-1")
    create_assignment(db_session, student=student, schedule=schedule)

    body = _structure_body(
        fee_catalog,
        total_amount="450000.00",
        categories=[{"category_id": fee_catalog["tuition"].id, "amount": "450000.00"}],
    )
    headers = user_header(seeded_users["admin"])
    response = client.put(f"/api/v1/fee-structures/{structure.id}", headers=headers, json=body)
    assert response.status_code == 409
    assert "Archive it instead" in response.json()["detail"]

    current = client.get(f"/api/v1/fee-structures/{structure.id}", headers=headers)
    assert Decimal(current.json()["total_amount"]) == Decimal("300000.00")


def test_change_status_rejects_reopening_archived(client, db_session, seeded_users, fee_catalog):
    """
    Validate status endpoint transitions.

    1. Seed a published structure.
    2. Archive it and validate the new status.
    3. Try to publish it again and validate conflict status.
    """
    structure = _seed_structure(db_session, seeded_users, fee_catalog)
    headers = user_header(seeded_users["admin"])
    archived = client.post(f"/api/v1/fee-structures/{structure.id}/status", headers=headers, json={"status": "archived"})
    assert archived.status_code == 200
    assert archived.json()["status"] == "archived"

    reopened = client.post(
        f"/api/v1/fee-structures/{structure.id}/status", headers=headers, json={"status": "published"}
    )
    assert reopened.status_code == 409


def test_delete_fee_structure_in_use_returns_409(client, db_session, seeded_users, fee_catalog):
    """
    Validate delete protection through the API.

    1. Seed a published structure with one assignment.
    2. Delete it as school admin.
    3. Validate conflict status.
    """
    structure = _seed_structure(db_session, seeded_users, fee_catalog)
    schedule = create_schedule(db_session, structure=structure)
    student = create_student(db_session, school_id=structure.school_id, student_code="S-1")
    create_assignment(db_session, student=student, schedule=schedule)
    response = client.delete(f"/api/v1/fee-structures/{structure.id}", headers=user_header(seeded_users["admin"]))
    assert response.status_code == 409


def test_delete_unused_fee_structure_returns_204(client, db_session, seeded_users, fee_catalog):
    """
    Validate delete of an unused structure.

    1. Seed a structure without assignments.
    2. Delete it as school admin.
    3. Validate no content status and that it is gone.
    """
    structure = _seed_structure(db_session, seeded_users, fee_catalog)
    headers = user_header(seeded_users["admin"])
    response = client.delete(f"/api/v1/fee-structures/{structure.id}", headers=headers)
    assert response.status_code == 204
    assert client.get(f"/api/v1/fee-structures/{structure.id}", headers=headers).status_code == 404
