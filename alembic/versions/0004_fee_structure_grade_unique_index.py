"""fee structure scope uniqueness ignores grade label case

Revision ID: 0004_fee_structure_grade_index
Revises: 0003_students_fee_assignments
Create Date: 2026-10-19 12:00:00
"""

from alembic import op


# revision identifiers, used by Alembic.
revision = "0004_fee_structure_grade_index"
down_revision = "0003_students_fee_assignments"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.drop_constraint("uq_fee_structure_year_grade_program", "fee_structures", type_="unique")
    op.execute(
        "CREATE UNIQUE INDEX uq_fee_structure_year_grade_program "
        "ON fee_structures (academic_year_id, lower(trim(grade_level)), program_type)"
    )


def downgrade() -> None:
    op.drop_index("uq_fee_structure_year_grade_program", table_name="fee_structures")
    op.create_unique_constraint(
        "uq_fee_structure_year_grade_program",
        "fee_structures",
        ["academic_year_id", "grade_level", "program_type"],
    )
