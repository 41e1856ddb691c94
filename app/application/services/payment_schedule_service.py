from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.application.errors import ConflictError, ValidationError
from app.application.services.pagination_service import count_grouped
from app.application.services.tenant_lookup_service import get_structure_in_school
from app.config import settings
from app.domain.fee_enums import FeeStructureStatus
from app.domain.installments import (
    ZERO,
    InstallmentDraft,
    ScheduleType,
    YearCalendar,
    apply_discount,
    generate_installments,
    installments_total,
    quantize_money,
)
from app.infrastructure.db.models import AcademicYear, FeeStructure, PaymentInstallment, PaymentSchedule
from app.infrastructure.logging import get_logger
from app.interfaces.api.v1.schemas.payment_schedule import InstallmentInput, PaymentScheduleCreate

logger = get_logger(__name__)


def calendar_for_year(academic_year: AcademicYear) -> YearCalendar:
    return YearCalendar(
        start_date=academic_year.start_date,
        end_date=academic_year.end_date,
        term_count=academic_year.term_count,
    )


def amounts_reconcile(amount: Decimal, expected: Decimal) -> bool:
    return abs(quantize_money(amount) - quantize_money(expected)) <= settings.amount_tolerance


def validate_discount(schedule_type: ScheduleType, discount_percentage: Decimal) -> Decimal:
    discount = Decimal(discount_percentage)
    if discount < ZERO or discount > settings.max_discount_percentage:
        raise ValidationError(
            f"Discount percentage must be between 0 and {settings.max_discount_percentage}",
            field="discount_percentage",
        )
    if discount > ZERO and schedule_type != ScheduleType.upfront:
        raise ValidationError(
            "Early-payment discount only applies to upfront schedules",
            field="discount_percentage",
        )
    return discount


def _custom_drafts(total_amount: Decimal, installments: list[InstallmentInput]) -> list[InstallmentDraft]:
    if not installments:
        raise ValidationError("Custom schedules require at least one installment", field="installments")
    drafts = []
    for index, installment in enumerate(installments, start=1):
        label = installment.label.strip()
        if not label:
            raise ValidationError(f"Installment {index} requires a label", field="installments")
        if installment.amount <= ZERO:
            raise ValidationError(f"Installment {index} amount must be positive", field="installments")
        drafts.append(
            InstallmentDraft(
                installment_number=index,
                label=label,
                amount=quantize_money(installment.amount),
                due_date=installment.due_date,
            )
        )
    if not amounts_reconcile(installments_total([draft.amount for draft in drafts]), total_amount):
        raise ValidationError("Installment amounts must sum to the structure total", field="installments")
    return drafts


def build_installment_drafts(
    *,
    schedule_type: ScheduleType,
    total_amount: Decimal,
    academic_year: AcademicYear,
    discount_percentage: Decimal = ZERO,
    custom_installments: list[InstallmentInput] | None = None,
) -> list[InstallmentDraft]:
    discount = validate_discount(schedule_type, discount_percentage)
    if schedule_type == ScheduleType.custom:
        return _custom_drafts(total_amount, custom_installments or [])
    if custom_installments:
        raise ValidationError("Installments are only accepted for custom schedules", field="installments")
    return generate_installments(schedule_type, total_amount, calendar_for_year(academic_year), discount)


def schedule_amount_due(schedule: PaymentSchedule) -> Decimal:
    return installments_total([installment.amount for installment in schedule.installments])


def _serialize_installments(installments) -> list[dict]:
    return [
        {
            "installment_number": installment.installment_number,
            "label": installment.label,
            "amount": installment.amount,
            "due_date": installment.due_date,
        }
        for installment in installments
    ]


def serialize_payment_schedule_response(schedule: PaymentSchedule) -> dict:
    total_amount = schedule.structure.total_amount
    return {
        "id": schedule.id,
        "school_id": schedule.school_id,
        "structure_id": schedule.structure_id,
        "schedule_type": schedule.schedule_type,
        "currency": schedule.currency,
        "discount_percentage": schedule.discount_percentage,
        "is_active": schedule.is_active,
        "total_amount": total_amount,
        "discounted_total": apply_discount(total_amount, schedule.discount_percentage),
        "amount_due": schedule_amount_due(schedule),
        "installments": _serialize_installments(schedule.installments),
        "created_at": schedule.created_at,
        "updated_at": schedule.updated_at,
    }


def _installment_rows(drafts: list[InstallmentDraft]) -> list[PaymentInstallment]:
    return [
        PaymentInstallment(
            installment_number=draft.installment_number,
            label=draft.label,
            amount=draft.amount,
            due_date=draft.due_date,
        )
        for draft in drafts
    ]


def preview_payment_schedule(db: Session, school_id: int, payload: PaymentScheduleCreate) -> dict:
    structure = get_structure_in_school(db=db, structure_id=payload.structure_id, school_id=school_id)
    drafts = build_installment_drafts(
        schedule_type=payload.schedule_type,
        total_amount=structure.total_amount,
        academic_year=structure.academic_year,
        discount_percentage=payload.discount_percentage,
        custom_installments=payload.installments,
    )
    return {
        "structure_id": structure.id,
        "schedule_type": payload.schedule_type,
        "currency": payload.currency.upper(),
        "discount_percentage": payload.discount_percentage,
        "total_amount": structure.total_amount,
        "discounted_total": apply_discount(structure.total_amount, payload.discount_percentage),
        "amount_due": installments_total([draft.amount for draft in drafts]),
        "installments": _serialize_installments(drafts),
    }


def create_payment_schedule(db: Session, school_id: int, payload: PaymentScheduleCreate) -> PaymentSchedule:
    structure = get_structure_in_school(db=db, structure_id=payload.structure_id, school_id=school_id)
    if structure.status == FeeStructureStatus.archived:
        raise ConflictError("Cannot add payment schedules to an archived fee structure")

    drafts = build_installment_drafts(
        schedule_type=payload.schedule_type,
        total_amount=structure.total_amount,
        academic_year=structure.academic_year,
        discount_percentage=payload.discount_percentage,
        custom_installments=payload.installments,
    )
    schedule = PaymentSchedule(
        school_id=school_id,
        structure_id=structure.id,
        schedule_type=payload.schedule_type,
        discount_percentage=quantize_money(payload.discount_percentage),
        currency=payload.currency.upper(),
        is_active=payload.is_active,
        installments=_installment_rows(drafts),
    )
    db.add(schedule)
    db.commit()
    db.refresh(schedule)
    logger.info(
        "payment_schedule_created",
        school_id=school_id,
        structure_id=structure.id,
        schedule_id=schedule.id,
        schedule_type=schedule.schedule_type.value,
        installments_count=len(drafts),
    )
    return schedule


def ensure_schedules_reconcile(structure: FeeStructure, total_amount: Decimal) -> None:
    """Reject a new total that custom schedules of ``structure`` no longer add up to."""
    for schedule in structure.schedules:
        if schedule.schedule_type != ScheduleType.custom:
            continue
        if not amounts_reconcile(schedule_amount_due(schedule), total_amount):
            raise ValidationError(
                f"Custom payment schedule {schedule.id} no longer sums to the structure total",
                field="total_amount",
            )


def regenerate_structure_schedules(db: Session, structure: FeeStructure, academic_year: AcademicYear) -> None:
    """Recompute generated installments after the structure total or year changed. Caller commits."""
    calendar = calendar_for_year(academic_year)
    for schedule in structure.schedules:
        if schedule.schedule_type == ScheduleType.custom:
            continue
        drafts = generate_installments(
            schedule.schedule_type, structure.total_amount, calendar, schedule.discount_percentage
        )
        schedule.installments.clear()
        db.flush()
        schedule.installments.extend(_installment_rows(drafts))


def list_payment_schedules_query(
    *,
    school_id: int,
    structure_id: int | None = None,
    schedule_type: ScheduleType | None = None,
):
    query = select(PaymentSchedule).where(PaymentSchedule.school_id == school_id)
    if structure_id is not None:
        query = query.where(PaymentSchedule.structure_id == structure_id)
    if schedule_type is not None:
        query = query.where(PaymentSchedule.schedule_type == schedule_type)
    return query.order_by(PaymentSchedule.id.desc())


def get_payment_schedule_stats(db: Session, base_query) -> dict:
    by_type = count_grouped(db, base_query, PaymentSchedule.schedule_type)
    by_active = count_grouped(db, base_query, PaymentSchedule.is_active)
    return {
        "total": sum(by_type.values()),
        "active": by_active.get(True, 0),
        "upfront": by_type.get(ScheduleType.upfront, 0),
        "per_term": by_type.get(ScheduleType.per_term, 0),
        "monthly": by_type.get(ScheduleType.monthly, 0),
        "custom": by_type.get(ScheduleType.custom, 0),
    }
