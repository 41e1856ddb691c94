"""students and student fee assignments

Revision ID: 0003_students_fee_assignments
Revises: 0002_fee_catalog
Create Date: 2026-10-19 11:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0003_students_fee_assignments"
down_revision = "0002_fee_catalog"
branch_labels = None
depends_on = None


def upgrade() -> None:
    student_status_enum = sa.Enum("active", "inactive", "graduated", name="student_status")
    assignment_status_enum = sa.Enum("active", "completed", "cancelled", name="assignment_status")

    op.create_table(
        "students",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("school_id", sa.Integer(), sa.ForeignKey("schools.id", ondelete="CASCADE"), nullable=False),
        sa.Column("student_code", sa.String(length=50), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("grade_level", sa.String(length=100), nullable=False),
        sa.Column("status", student_status_enum, nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("school_id", "student_code", name="uq_student_school_code"),
    )
    op.create_index("ix_students_id", "students", ["id"], unique=False)
    op.create_index("ix_students_school_id", "students", ["school_id"], unique=False)
    op.create_index("ix_students_grade_level", "students", ["grade_level"], unique=False)
    op.create_index("ix_students_status", "students", ["status"], unique=False)
    op.execute("CREATE INDEX IF NOT EXISTS ix_students_grade_level_lower ON students (lower(trim(grade_level)))")

    op.create_table(
        "student_fee_assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("school_id", sa.Integer(), sa.ForeignKey("schools.id", ondelete="CASCADE"), nullable=False),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("students.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "structure_id", sa.Integer(), sa.ForeignKey("fee_structures.id", ondelete="RESTRICT"), nullable=False
        ),
        sa.Column(
            "schedule_id", sa.Integer(), sa.ForeignKey("payment_schedules.id", ondelete="RESTRICT"), nullable=False
        ),
        sa.Column(
            "academic_year_id",
            sa.Integer(),
            sa.ForeignKey("academic_years.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("total_due", sa.Numeric(12, 2), nullable=False),
        sa.Column("paid_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("status", assignment_status_enum, nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_student_fee_assignments_id", "student_fee_assignments", ["id"], unique=False)
    for column in ("school_id", "student_id", "structure_id", "schedule_id", "academic_year_id", "status"):
        op.create_index(f"ix_student_fee_assignments_{column}", "student_fee_assignments", [column], unique=False)
    op.create_index(
        "uq_student_fee_assignment_active",
        "student_fee_assignments",
        ["student_id", "structure_id", "schedule_id", "academic_year_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
    )


def downgrade() -> None:
    op.drop_index("uq_student_fee_assignment_active", table_name="student_fee_assignments")
    for column in ("status", "academic_year_id", "schedule_id", "structure_id", "student_id", "school_id"):
        op.drop_index(f"ix_student_fee_assignments_{column}", table_name="student_fee_assignments")
    op.drop_index("ix_student_fee_assignments_id", table_name="student_fee_assignments")
    op.drop_table("student_fee_assignments")
    op.execute("DROP TYPE IF EXISTS assignment_status")

    op.execute("DROP INDEX IF EXISTS ix_students_grade_level_lower")
    op.drop_index("ix_students_status", table_name="students")
    op.drop_index("ix_students_grade_level", table_name="students")
    op.drop_index("ix_students_school_id", table_name="students")
    op.drop_index("ix_students_id", table_name="students")
    op.drop_table("students")
    op.execute("DROP TYPE IF EXISTS student_status")
