"""Student and postgraduate loan repayments."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from ukpayroll.backend.app.models import StudentLoanCalculation, StudentLoanPlanDeduction
from ukpayroll.backend.config.year_config import TaxYearConfiguration

from .period import PeriodContext
from .utils import ZERO, clamp_non_negative, round_currency

POSTGRADUATE_PLAN = "postgraduate"


def active_loan_plans(plans: Iterable[str], has_postgraduate_loan: bool) -> list[str]:
    """Return undergraduate plans in first-seen order, then postgraduate if active."""

    ordered: list[str] = []
    postgraduate = has_postgraduate_loan
    for plan in plans:
        if plan == POSTGRADUATE_PLAN:
            postgraduate = True
        elif plan not in ordered:
            ordered.append(plan)
    if postgraduate:
        ordered.append(POSTGRADUATE_PLAN)
    return ordered


def calculate_student_loans(
    *,
    niable_pay: Decimal,
    plans: Iterable[str],
    has_postgraduate_loan: bool,
    period: PeriodContext,
    config: TaxYearConfiguration,
) -> StudentLoanCalculation:
    """Return the deduction for each active plan, each against its own threshold."""

    active = active_loan_plans(plans, has_postgraduate_loan)
    entries: list[StudentLoanPlanDeduction] = []

    for plan in active:
        settings = config.student_loans.plan(plan)
        threshold = period.period_equivalent(settings.threshold)
        deduction = round_currency(clamp_non_negative(niable_pay - threshold) * settings.rate)
        entries.append(
            StudentLoanPlanDeduction(
                plan=plan,
                active=True,
                period_threshold=round_currency(threshold),
                rate=settings.rate,
                deduction=deduction,
            )
        )

    if POSTGRADUATE_PLAN not in active:
        entries.append(StudentLoanPlanDeduction(plan=POSTGRADUATE_PLAN, active=False))

    total = sum((entry.deduction for entry in entries), ZERO)
    return StudentLoanCalculation(plans=tuple(entries), total_deduction=total)


__all__ = ["POSTGRADUATE_PLAN", "active_loan_plans", "calculate_student_loans"]
