"""Structural checks applied before any monetary computation runs."""

from __future__ import annotations

from decimal import Decimal

from ukpayroll.backend.app.models import PayrollCalculationInput

from .period import MAX_PERIOD_NUMBER, is_valid_period_number
from .tax_codes import TaxCodeError, parse_tax_code

RECOGNISED_NI_CATEGORIES = frozenset("ABCFHIJLMSVZ")
RECOGNISED_LOAN_PLANS: tuple[str, ...] = ("plan1", "plan2", "plan4", "postgraduate")


def _check_amount(label: str, value: Decimal, violations: list[str]) -> bool:
    if not value.is_finite():
        violations.append(f"{label} must be a finite amount")
        return False
    if value < 0:
        violations.append(f"{label} cannot be negative")
        return False
    return True


def validate_calculation_input(payload: PayrollCalculationInput) -> list[str]:
    """Return every violation found in ``payload``; an empty list means valid."""

    violations: list[str] = []

    gross_ok = _check_amount("gross pay", payload.gross_pay, violations)

    payments = payload.payments
    payments_ok = True
    for field_name in type(payments).model_fields:
        label = f"payments.{field_name}"
        payments_ok &= _check_amount(label, getattr(payments, field_name), violations)

    if gross_ok and payments_ok:
        earnings = (
            payload.gross_pay
            + payments.bonus
            + payments.commission
            + payments.tronc
            + payments.holiday_pay
            + payments.other
        )
        if payments.salary_sacrifice > earnings:
            violations.append("salary sacrifice cannot exceed earnings for the period")

    if payload.period_start > payload.period_end:
        violations.append("period start must not be after period end")

    if payload.period_type not in MAX_PERIOD_NUMBER:
        allowed = ", ".join(MAX_PERIOD_NUMBER)
        violations.append(
            f"unknown period type '{payload.period_type}' (expected one of {allowed})"
        )
    elif not is_valid_period_number(payload.period_number, payload.period_type):
        violations.append(
            f"period number {payload.period_number} is outside 1-"
            f"{MAX_PERIOD_NUMBER[payload.period_type]} for {payload.period_type} pay"
        )

    config = payload.tax_year_config
    if not config.covers(payload.period_start):
        violations.append(
            f"period start {payload.period_start.isoformat()} is outside tax year "
            f"{config.tax_year}"
        )

    employee = payload.employee
    if not employee.employee_id.strip():
        violations.append("employee id is required")

    if employee.tax_code is None or not employee.tax_code.strip():
        violations.append("employee tax code is required")
    else:
        try:
            parse_tax_code(employee.tax_code)
        except TaxCodeError as error:
            violations.append(str(error))

    category = (employee.ni_category or "").strip().upper()
    if not category:
        violations.append("employee NI category is required")
    elif category not in RECOGNISED_NI_CATEGORIES:
        violations.append(f"unrecognised NI category '{employee.ni_category}'")

    for plan in employee.student_loan_plans:
        if plan not in RECOGNISED_LOAN_PLANS:
            violations.append(f"unrecognised student loan plan '{plan}'")

    rate = employee.pension_employee_rate
    if rate is not None and (not rate.is_finite() or rate < 0 or rate > 1):
        violations.append("pension employee rate must be between 0 and 1")

    ytd = payload.employee_ytd
    if ytd.tax_year is not None and ytd.tax_year != config.tax_year:
        violations.append(
            f"year-to-date record belongs to tax year {ytd.tax_year}, "
            f"not {config.tax_year}"
        )
    if ytd.employee_id is not None and ytd.employee_id != employee.employee_id:
        violations.append("year-to-date record belongs to a different employee")

    return violations


__all__ = [
    "RECOGNISED_LOAN_PLANS",
    "RECOGNISED_NI_CATEGORIES",
    "validate_calculation_input",
]
