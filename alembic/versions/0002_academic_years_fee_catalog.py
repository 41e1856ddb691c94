"""academic years, fee categories, fee structures and payment schedules

Revision ID: 0002_fee_catalog
Revises: 0001_schools_users_profiles
Create Date: 2026-10-19 10:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0002_fee_catalog"
down_revision = "0001_schools_users_profiles"
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


def upgrade() -> None:
    category_type_enum = sa.Enum("tuition", "additional", name="fee_category_type")
    program_type_enum = sa.Enum(
        "all", "kindergarten", "primary", "secondary", "high-school", "university", name="program_type"
    )
    structure_status_enum = sa.Enum("draft", "published", "archived", name="fee_structure_status")
    schedule_type_enum = sa.Enum("upfront", "per-term", "monthly", "custom", name="schedule_type")

    op.create_table(
        "academic_years",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("school_id", sa.Integer(), sa.ForeignKey("schools.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("term_count", sa.Integer(), nullable=False, server_default="3"),
        *_timestamps(),
        sa.UniqueConstraint("school_id", "name", name="uq_academic_year_school_name"),
    )
    op.create_index("ix_academic_years_id", "academic_years", ["id"], unique=False)
    op.create_index("ix_academic_years_school_id", "academic_years", ["school_id"], unique=False)

    op.create_table(
        "fee_categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("school_id", sa.Integer(), sa.ForeignKey("schools.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_mandatory", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("category_type", category_type_enum, nullable=False, server_default="tuition"),
        *_timestamps(),
        sa.UniqueConstraint("school_id", "name", name="uq_fee_category_school_name"),
    )
    op.create_index("ix_fee_categories_id", "fee_categories", ["id"], unique=False)
    op.create_index("ix_fee_categories_school_id", "fee_categories", ["school_id"], unique=False)
    op.create_index("ix_fee_categories_name", "fee_categories", ["name"], unique=False)

    op.create_table(
        "fee_structures",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("school_id", sa.Integer(), sa.ForeignKey("schools.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "academic_year_id",
            sa.Integer(),
            sa.ForeignKey("academic_years.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("grade_level", sa.String(length=100), nullable=False),
        sa.Column("program_type", program_type_enum, nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", structure_status_enum, nullable=False, server_default="draft"),
        *_timestamps(),
        sa.UniqueConstraint(
            "academic_year_id", "grade_level", "program_type", name="uq_fee_structure_year_grade_program"
        ),
    )
    op.create_index("ix_fee_structures_id", "fee_structures", ["id"], unique=False)
    op.create_index("ix_fee_structures_school_id", "fee_structures", ["school_id"], unique=False)
    op.create_index("ix_fee_structures_academic_year_id", "fee_structures", ["academic_year_id"], unique=False)
    op.create_index("ix_fee_structures_grade_level", "fee_structures", ["grade_level"], unique=False)
    op.create_index("ix_fee_structures_program_type", "fee_structures", ["program_type"], unique=False)
    op.create_index("ix_fee_structures_status", "fee_structures", ["status"], unique=False)

    op.create_table(
        "fee_structure_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "structure_id", sa.Integer(), sa.ForeignKey("fee_structures.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "category_id", sa.Integer(), sa.ForeignKey("fee_categories.id", ondelete="RESTRICT"), nullable=False
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("is_mandatory", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("payment_modes", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_fee_structure_items_id", "fee_structure_items", ["id"], unique=False)
    op.create_index("ix_fee_structure_items_structure_id", "fee_structure_items", ["structure_id"], unique=False)
    op.create_index("ix_fee_structure_items_category_id", "fee_structure_items", ["category_id"], unique=False)

    op.create_table(
        "payment_schedules",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("school_id", sa.Integer(), sa.ForeignKey("schools.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "structure_id", sa.Integer(), sa.ForeignKey("fee_structures.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("schedule_type", schedule_type_enum, nullable=False),
        sa.Column("discount_percentage", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="USD"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_payment_schedules_id", "payment_schedules", ["id"], unique=False)
    op.create_index("ix_payment_schedules_school_id", "payment_schedules", ["school_id"], unique=False)
    op.create_index("ix_payment_schedules_structure_id", "payment_schedules", ["structure_id"], unique=False)
    op.create_index("ix_payment_schedules_schedule_type", "payment_schedules", ["schedule_type"], unique=False)

    op.create_table(
        "payment_installments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "schedule_id", sa.Integer(), sa.ForeignKey("payment_schedules.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("installment_number", sa.Integer(), nullable=False),
        sa.Column("label", sa.String(length=100), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("schedule_id", "installment_number", name="uq_payment_installment_schedule_number"),
    )
    op.create_index("ix_payment_installments_id", "payment_installments", ["id"], unique=False)
    op.create_index("ix_payment_installments_schedule_id", "payment_installments", ["schedule_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_payment_installments_schedule_id", table_name="payment_installments")
    op.drop_index("ix_payment_installments_id", table_name="payment_installments")
    op.drop_table("payment_installments")

    op.drop_index("ix_payment_schedules_schedule_type", table_name="payment_schedules")
    op.drop_index("ix_payment_schedules_structure_id", table_name="payment_schedules")
    op.drop_index("ix_payment_schedules_school_id", table_name="payment_schedules")
    op.drop_index("ix_payment_schedules_id", table_name="payment_schedules")
    op.drop_table("payment_schedules")

    op.drop_index("ix_fee_structure_items_category_id", table_name="fee_structure_items")
    op.drop_index("ix_fee_structure_items_structure_id", table_name="fee_structure_items")
    op.drop_index("ix_fee_structure_items_id", table_name="fee_structure_items")
    op.drop_table("fee_structure_items")

    op.drop_index("ix_fee_structures_status", table_name="fee_structures")
    op.drop_index("ix_fee_structures_program_type", table_name="fee_structures")
    op.drop_index("ix_fee_structures_grade_level", table_name="fee_structures")
    op.drop_index("ix_fee_structures_academic_year_id", table_name="fee_structures")
    op.drop_index("ix_fee_structures_school_id", table_name="fee_structures")
    op.drop_index("ix_fee_structures_id", table_name="fee_structures")
    op.drop_table("fee_structures")

    op.drop_index("ix_fee_categories_name", table_name="fee_categories")
    op.drop_index("ix_fee_categories_school_id", table_name="fee_categories")
    op.drop_index("ix_fee_categories_id", table_name="fee_categories")
    op.drop_table("fee_categories")

    op.drop_index("ix_academic_years_school_id", table_name="academic_years")
    op.drop_index("ix_academic_years_id", table_name="academic_years")
    op.drop_table("academic_years")

    for enum_name in ("schedule_type", "fee_structure_status", "program_type", "fee_category_type"):
        op.execute(f"DROP TYPE IF EXISTS {enum_name}")
