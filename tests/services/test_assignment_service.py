from decimal import Decimal

import pytest

from app.application.errors import ConflictError, NotFoundError, ValidationError
from app.application.services.assignment_service import (
    cancel_assignment,
    create_assignment,
    get_assignment_stats,
    list_assignments_query,
)
from app.domain.assignment_status import AssignmentStatus
from app.domain.fee_enums import FeeStructureStatus
from app.domain.installments import ScheduleType
from app.domain.student_status import StudentStatus
from app.interfaces.api.v1.schemas.assignment import StudentFeeAssignmentCreate
from tests.helpers.factories import (
    create_academic_year,
    create_assignment as seed_assignment,
    create_schedule,
    create_structure,
    create_student,
    list_from_query,
)


@pytest.fixture
def assignment_context(db_session, seeded_users, fee_catalog):
    school_id = seeded_users["north_school"].id
    structure = create_structure(
        db_session,
        school_id=school_id,
        academic_year_id=fee_catalog["academic_year"].id,
        category_id=fee_catalog["tuition"].id,
    )
    return {
        "school_id": school_id,
        "academic_year": fee_catalog["academic_year"],
        "structure": structure,
        "schedule": create_schedule(
            db_session, structure=structure, schedule_type=ScheduleType.upfront, discount_percentage="5"
        ),
        "student": create_student(db_session, school_id=school_id, student_code="S-1"),
    }


def _payload(context, **overrides) -> StudentFeeAssignmentCreate:
    values = {
        "student_id": context["student"].id,
        "structure_id": context["structure"].id,
        "schedule_id": context["schedule"].id,
        "academic_year_id": context["academic_year"].id,
    }
    values.update(overrides)
    return StudentFeeAssignmentCreate(**values)


def test_create_assignment_uses_schedule_amount(db_session, assignment_context):
    """
    Validate single assignment creation.

    1. Call create_assignment for a student and a discounted upfront schedule.
    2. Validate the assignment is active with nothing paid.
    3. Validate total_due equals the discounted schedule amount.
    """
    assignment = create_assignment(db_session, assignment_context["school_id"], _payload(assignment_context))
    assert assignment.status == AssignmentStatus.active
    assert assignment.paid_amount == Decimal("0.00")
    assert assignment.total_due == Decimal("285000.00")


def test_create_assignment_rejects_second_active_assignment(db_session, assignment_context):
    """
    Validate one active assignment per student and structure.

    1. Create an assignment for the student.
    2. Create it again.
    3. Validate ConflictError is raised.
    """
    create_assignment(db_session, assignment_context["school_id"], _payload(assignment_context))
    with pytest.raises(ConflictError):
        create_assignment(db_session, assignment_context["school_id"], _payload(assignment_context))


def test_create_assignment_rejects_schedule_of_another_structure(
    db_session, seeded_users, fee_catalog, assignment_context
):
    """
    Validate the schedule must belong to the structure.

    1. Seed a Grade 8 structure with its own schedule.
    2. Reference the Grade 8 schedule with the Grade 7 structure.
    3. Validate NotFoundError is raised.
    """
    grade_eight = create_structure(
        db_session,
        school_id=assignment_context["school_id"],
        academic_year_id=fee_catalog["academic_year"].id,
        category_id=fee_catalog["tuition"].id,
        grade_level="Grade 8",
    )
    other_schedule = create_schedule(db_session, structure=grade_eight)
    with pytest.raises(NotFoundError):
        create_assignment(
            db_session,
            assignment_context["school_id"],
            _payload(assignment_context, schedule_id=other_schedule.id),
        )


def test_create_assignment_rejects_mismatched_year(db_session, assignment_context):
    """
    Validate academic year consistency.

    1. Create a second academic year.
    2. Assign the Grade 7 structure against that year.
    3. Validate ValidationError on academic_year_id.
    """
    other_year = create_academic_year(db_session, school_id=assignment_context["school_id"], name="2027-2028")
    with pytest.raises(ValidationError) as exc:
        create_assignment(
            db_session,
            assignment_context["school_id"],
            _payload(assignment_context, academic_year_id=other_year.id),
        )
    assert exc.value.field == "academic_year_id"


def test_create_assignment_hides_students_of_other_schools(db_session, seeded_users, assignment_context):
    """
    Validate tenant scoping of students.

    1. Seed a student in the south school.
    2. Assign that student through the north school.
    3. Validate NotFoundError is raised.
    """
    outsider = create_student(db_session, school_id=seeded_users["south_school"].id, student_code="S-99")
    with pytest.raises(NotFoundError):
        create_assignment(
            db_session,
            assignment_context["school_id"],
            _payload(assignment_context, student_id=outsider.id),
        )


def test_create_assignment_rejects_archived_structure(db_session, seeded_users, fee_catalog):
    """
    Validate archived structures are closed for assignment.

    1. Seed an archived structure with a schedule and a student.
    2. Call create_assignment.
    3. Validate ConflictError is raised.
    """
    school_id = seeded_users["north_school"].id
    structure = create_structure(
        db_session,
        school_id=school_id,
        academic_year_id=fee_catalog["academic_year"].id,
        category_id=fee_catalog["tuition"].id,
        status=FeeStructureStatus.archived,
    )
    schedule = create_schedule(db_session, structure=structure)
    student = create_student(db_session, school_id=school_id, student_code="S-2")
    with pytest.raises(ConflictError):
        create_assignment(
            db_session,
            school_id,
            StudentFeeAssignmentCreate(
                student_id=student.id,
                structure_id=structure.id,
                schedule_id=schedule.id,
                academic_year_id=structure.academic_year_id,
            ),
        )


def test_create_assignment_rejects_inactive_schedule(db_session, assignment_context):
    """
    Validate inactive schedules are closed for assignment.

    1. Seed an inactive monthly schedule on the Grade 7 structure.
    2. Call create_assignment with it.
    3. Validate ValidationError on schedule_id.
    """
    inactive = create_schedule(
        db_session, structure=assignment_context["structure"], schedule_type=ScheduleType.monthly, is_active=False
    )
    with pytest.raises(ValidationError) as exc:
        create_assignment(
            db_session,
            assignment_context["school_id"],
            _payload(assignment_context, schedule_id=inactive.id),
        )
    assert exc.value.field == "schedule_id"


@pytest.mark.parametrize("student_status", [StudentStatus.inactive, StudentStatus.graduated])
def test_create_assignment_rejects_students_not_enrolled(db_session, assignment_context, student_status):
    """
    Validate only active students receive fees.

    1. Seed a student that is inactive or graduated.
    2. Call create_assignment for that student.
    3. Validate ValidationError on student_id.
    """
    student = create_student(
        db_session, school_id=assignment_context["school_id"], student_code="S-OUT", status=student_status
    )
    with pytest.raises(ValidationError) as exc:
        create_assignment(
            db_session,
            assignment_context["school_id"],
            _payload(assignment_context, student_id=student.id),
        )
    assert exc.value.field == "student_id"


def test_cancel_assignment_only_from_active(db_session, assignment_context):
    """
    Validate assignment cancellation.

    1. Seed an active and a completed assignment.
    2. Cancel the active one and validate its status.
    3. Validate cancelling the completed one raises ConflictError.
    """
    active = seed_assignment(
        db_session, student=assignment_context["student"], schedule=assignment_context["schedule"]
    )
    assert cancel_assignment(db_session, active).status == AssignmentStatus.cancelled

    other_student = create_student(db_session, school_id=assignment_context["school_id"], student_code="S-3")
    completed = seed_assignment(
        db_session,
        student=other_student,
        schedule=assignment_context["schedule"],
        status=AssignmentStatus.completed,
    )
    with pytest.raises(ConflictError) as exc:
        cancel_assignment(db_session, completed)
    assert "completed" in str(exc.value)


def test_list_assignments_filters_and_counts_by_status(db_session, assignment_context):
    """
    Validate assignment listing filters and stats.

    1. Seed one active and one cancelled assignment.
    2. List assignments filtered by active status.
    3. Validate only the active one is returned.
    4. Validate stats over the unfiltered query.
    """
    active = seed_assignment(
        db_session, student=assignment_context["student"], schedule=assignment_context["schedule"]
    )
    other_student = create_student(db_session, school_id=assignment_context["school_id"], student_code="S-4")
    seed_assignment(
        db_session,
        student=other_student,
        schedule=assignment_context["schedule"],
        status=AssignmentStatus.cancelled,
    )
    school_id = assignment_context["school_id"]

    rows = list_from_query(
        db_session, list_assignments_query(school_id=school_id, status=AssignmentStatus.active)
    )
    assert [row.id for row in rows] == [active.id]

    stats = get_assignment_stats(db_session, list_assignments_query(school_id=school_id))
    assert stats == {"total": 2, "active": 1, "completed": 0, "cancelled": 1}
