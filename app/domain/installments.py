from calendar import month_name, monthrange
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from enum import Enum

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
MONTHS_PER_YEAR = 12


class ScheduleType(str, Enum):
    upfront = "upfront"
    per_term = "per-term"
    monthly = "monthly"
    custom = "custom"


@dataclass(frozen=True)
class InstallmentDraft:
    installment_number: int
    label: str
    amount: Decimal
    due_date: date


@dataclass(frozen=True)
class YearCalendar:
    start_date: date
    end_date: date
    term_count: int


def quantize_money(value: Decimal | int | str) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def apply_discount(total: Decimal, discount_percentage: Decimal) -> Decimal:
    """Early-payment price of ``total``; the stored total is never discounted."""
    factor = (Decimal("100") - Decimal(discount_percentage)) / Decimal("100")
    return quantize_money(Decimal(total) * factor)


def split_evenly(total: Decimal, parts: int) -> list[Decimal]:
    """Split ``total`` into ``parts`` cent amounts whose sum is exactly ``total``.

    Every share is ``total / parts`` rounded to the cent, and the last share
    absorbs the rounding remainder.
    """
    if parts < 1:
        raise ValueError("parts must be at least 1")
    total = quantize_money(total)
    for rounding in (ROUND_HALF_UP, ROUND_DOWN):
        share = (total / parts).quantize(CENT, rounding=rounding)
        amounts = [share] * (parts - 1)
        last = total - sum(amounts, ZERO)
        if last >= ZERO:
            return [*amounts, last]
    raise ValueError("total cannot be split")  # unreachable for non-negative totals


def add_months(start: date, months: int) -> date:
    month_index = start.month - 1 + months
    year = start.year + month_index // MONTHS_PER_YEAR
    month = month_index % MONTHS_PER_YEAR + 1
    day = min(start.day, monthrange(year, month)[1])
    return date(year, month, day)


def _upfront(total: Decimal, calendar: YearCalendar, discount_percentage: Decimal) -> list[InstallmentDraft]:
    return [
        InstallmentDraft(
            installment_number=1,
            label="Full payment",
            amount=apply_discount(total, discount_percentage),
            due_date=calendar.start_date,
        )
    ]


def _per_term(total: Decimal, calendar: YearCalendar, _: Decimal) -> list[InstallmentDraft]:
    span_days = (calendar.end_date - calendar.start_date).days
    drafts = []
    for index, amount in enumerate(split_evenly(total, calendar.term_count)):
        drafts.append(
            InstallmentDraft(
                installment_number=index + 1,
                label=f"Term {index + 1}",
                amount=amount,
                due_date=calendar.start_date + timedelta(days=span_days * index // calendar.term_count),
            )
        )
    return drafts


def _monthly(total: Decimal, calendar: YearCalendar, _: Decimal) -> list[InstallmentDraft]:
    drafts = []
    for index, amount in enumerate(split_evenly(total, MONTHS_PER_YEAR)):
        due_date = add_months(calendar.start_date, index)
        drafts.append(
            InstallmentDraft(
                installment_number=index + 1,
                label=f"{month_name[due_date.month]} {due_date.year}",
                amount=amount,
                due_date=due_date,
            )
        )
    return drafts


InstallmentStrategy = Callable[[Decimal, YearCalendar, Decimal], list[InstallmentDraft]]

SCHEDULE_STRATEGIES: dict[ScheduleType, InstallmentStrategy] = {
    ScheduleType.upfront: _upfront,
    ScheduleType.per_term: _per_term,
    ScheduleType.monthly: _monthly,
}


def generate_installments(
    schedule_type: ScheduleType,
    total: Decimal,
    calendar: YearCalendar,
    discount_percentage: Decimal = ZERO,
) -> list[InstallmentDraft]:
    strategy = SCHEDULE_STRATEGIES.get(schedule_type)
    if strategy is None:
        raise ValueError(f"Schedule type {schedule_type.value} has no generated installments")
    return strategy(quantize_money(total), calendar, Decimal(discount_percentage))


def installments_total(amounts: list[Decimal]) -> Decimal:
    return quantize_money(sum(amounts, ZERO))
