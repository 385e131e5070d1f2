"""Merge one period's figures into the employee's year-to-date totals."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Mapping

from ukpayroll.backend.app.models import YTD_MONETARY_FIELDS, EmployeeYTD

from ..errors import ArithmeticInvariantError
from .student_loan import POSTGRADUATE_PLAN
from .utils import ZERO, round_currency


@dataclass(frozen=True, slots=True)
class PeriodTotals:
    """Per-period components in the shape of the year-to-date record."""

    gross_pay: Decimal = ZERO
    taxable_pay: Decimal = ZERO
    tax_paid: Decimal = ZERO
    niable_pay: Decimal = ZERO
    employee_ni: Decimal = ZERO
    employer_ni: Decimal = ZERO
    pensionable_pay: Decimal = ZERO
    employee_pension: Decimal = ZERO
    employer_pension: Decimal = ZERO
    student_loans: Mapping[str, Decimal] = field(default_factory=dict)


def accumulate_ytd(
    prior: EmployeeYTD,
    period: PeriodTotals,
    *,
    employee_id: str,
    tax_year: str,
    period_number: int,
    payroll_run_id: str | None = None,
) -> EmployeeYTD:
    """Return ``prior`` plus this period's rounded components.

    The merge is not idempotent: applying the same period twice counts it
    twice. Callers must persist the result exactly once.
    """

    loans = dict(prior.student_loan_paid_ytd)
    postgraduate = prior.postgraduate_loan_paid_ytd
    for plan, amount in period.student_loans.items():
        rounded = round_currency(amount)
        if plan == POSTGRADUATE_PLAN:
            postgraduate += rounded
        else:
            loans[plan] = loans.get(plan, ZERO) + rounded

    updated = EmployeeYTD(
        employee_id=employee_id,
        tax_year=tax_year,
        gross_pay_ytd=prior.gross_pay_ytd + round_currency(period.gross_pay),
        taxable_pay_ytd=prior.taxable_pay_ytd + round_currency(period.taxable_pay),
        tax_paid_ytd=prior.tax_paid_ytd + round_currency(period.tax_paid),
        niable_pay_ytd=prior.niable_pay_ytd + round_currency(period.niable_pay),
        employee_ni_paid_ytd=prior.employee_ni_paid_ytd + round_currency(period.employee_ni),
        employer_ni_paid_ytd=prior.employer_ni_paid_ytd + round_currency(period.employer_ni),
        pensionable_pay_ytd=prior.pensionable_pay_ytd
        + round_currency(period.pensionable_pay),
        employee_pension_paid_ytd=prior.employee_pension_paid_ytd
        + round_currency(period.employee_pension),
        employer_pension_paid_ytd=prior.employer_pension_paid_ytd
        + round_currency(period.employer_pension),
        student_loan_paid_ytd=loans,
        postgraduate_loan_paid_ytd=postgraduate,
        last_payroll_run_id=payroll_run_id or prior.last_payroll_run_id,
        last_period_number=period_number,
        version=prior.version + 1,
    )

    _ensure_monotonic(prior, updated)
    return updated


def _ensure_monotonic(prior: EmployeeYTD, updated: EmployeeYTD) -> None:
    for field_name in YTD_MONETARY_FIELDS:
        if getattr(updated, field_name) < getattr(prior, field_name):
            raise ArithmeticInvariantError(f"Year-to-date {field_name} would decrease")
    for plan, amount in prior.student_loan_paid_ytd.items():
        if updated.student_loan_paid_ytd.get(plan, ZERO) < amount:
            raise ArithmeticInvariantError(f"Year-to-date {plan} repayments would decrease")


__all__ = ["PeriodTotals", "accumulate_ytd"]
