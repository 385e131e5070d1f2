"""Orchestrate validation, period normalisation and statutory deductions.

``calculate_payroll`` is the single entry point: it resolves employee
defaults, validates the request, runs the tax, National Insurance, pension and
student loan calculators, merges the period into the year-to-date totals and
assembles the payslip. It never performs I/O and never raises for validation,
configuration or invariant failures; those come back as a rejected
``CalculationOutcome`` so callers can branch on the error kind.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from time import perf_counter
from typing import Any, Literal, Sequence

from pydantic import ValidationError

from ukpayroll.backend.app.models import (
    Employee,
    EmployeeYTD,
    PayrollCalculationInput,
    PayrollCalculationRequest,
    PayrollCalculationResult,
    format_validation_error,
)
from ukpayroll.backend.config.year_config import (
    ConfigurationError,
    TaxYearConfiguration,
    load_or_derive_tax_year_configuration,
)

from .calculators import (
    PeriodTotals,
    accumulate_ytd,
    calculate_income_tax,
    calculate_national_insurance,
    calculate_pension,
    calculate_student_loans,
    default_period_number,
    normalise_period,
    period_number_for,
    round_currency,
    tax_year_for,
    validate_calculation_input,
)
from .calculators.utils import ZERO, clamp_non_negative, format_currency
from .errors import (
    ArithmeticInvariantError,
    CalculationFailure,
    DeductionsExceedPayError,
    ErrorKind,
)

_LOGGER = logging.getLogger(__name__)

DEFAULT_TAX_CODE_BASIS = "cumulative"
DEFAULT_NI_CATEGORY = "A"


def _profiling_enabled() -> bool:
    """Return ``True`` when calculation profiling should be captured."""

    flag = os.getenv("UKPAYROLL_PROFILE_CALCULATIONS", "")
    return flag.strip().lower() in {"1", "true", "yes", "on"}


@contextmanager
def _profile_section(name: str, store: dict[str, float] | None):
    """Capture the duration of a named section when profiling is enabled."""

    if store is None:
        yield
        return

    start = perf_counter()
    try:
        yield
    finally:
        store[name] = perf_counter() - start


@dataclass(frozen=True)
class CalculationOutcome:
    """Terminal state of a calculation: ``completed`` with a result or ``rejected``."""

    state: Literal["completed", "rejected"]
    result: PayrollCalculationResult | None = None
    errors: tuple[CalculationFailure, ...] = ()

    @property
    def completed(self) -> bool:
        return self.state == "completed"

    @property
    def error_kind(self) -> ErrorKind | None:
        return self.errors[0].kind if self.errors else None

    @classmethod
    def rejected(cls, kind: ErrorKind, messages: Sequence[str]) -> CalculationOutcome:
        return cls(
            state="rejected",
            errors=tuple(CalculationFailure(kind=kind, message=message) for message in messages),
        )

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"state": self.state}
        if self.result is not None:
            payload["result"] = self.result.model_dump(mode="json")
        if self.errors:
            payload["errors"] = [failure.as_dict() for failure in self.errors]
        return payload


@dataclass(frozen=True, slots=True)
class GrossFigures:
    """Gross pay split into the bases each deduction is measured against."""

    gross_pay: Decimal
    taxable_pay: Decimal
    niable_pay: Decimal
    pensionable_pay: Decimal


def resolve_employee(
    employee: Employee, config: TaxYearConfiguration
) -> tuple[Employee, list[str]]:
    """Fill missing tax code, basis and NI category from configured defaults."""

    updates: dict[str, Any] = {}
    warnings: list[str] = []

    if employee.tax_code is None or not employee.tax_code.strip():
        updates["tax_code"] = config.default_tax_code
        warnings.append(
            f"No tax code recorded; using default {config.default_tax_code}"
        )
    if employee.tax_code_basis is None:
        updates["tax_code_basis"] = DEFAULT_TAX_CODE_BASIS
        warnings.append(f"No tax code basis recorded; using {DEFAULT_TAX_CODE_BASIS}")
    if employee.ni_category is None or not employee.ni_category.strip():
        updates["ni_category"] = DEFAULT_NI_CATEGORY
        warnings.append(f"No NI category recorded; using category {DEFAULT_NI_CATEGORY}")

    if not updates:
        return employee, warnings

    for message in warnings:
        _LOGGER.warning("Employee %s: %s", employee.employee_id, message)
    return employee.model_copy(update=updates), warnings


def calculate_gross_figures(
    payload: PayrollCalculationInput,
) -> GrossFigures:
    """Split gross pay into taxable, NI-able and pensionable amounts."""

    payments = payload.payments
    earnings_flags = payload.tax_year_config.earnings

    earnings = (
        payload.gross_pay
        + payments.bonus
        + payments.commission
        + payments.tronc
        + payments.holiday_pay
        + payments.other
    )
    taxable = earnings - payments.salary_sacrifice

    niable = taxable
    if not earnings_flags.tronc_niable:
        niable -= payments.tronc

    pensionable = taxable
    if not earnings_flags.tronc_pensionable:
        pensionable -= payments.tronc

    return GrossFigures(
        gross_pay=round_currency(taxable + payments.non_taxable),
        taxable_pay=round_currency(taxable),
        niable_pay=round_currency(clamp_non_negative(niable)),
        pensionable_pay=round_currency(clamp_non_negative(pensionable)),
    )


def _coerce_input(
    payload: PayrollCalculationInput | Mapping[str, Any],
) -> PayrollCalculationInput:
    if isinstance(payload, PayrollCalculationInput):
        return payload
    if not isinstance(payload, Mapping):
        raise ValueError("Payload must be a mapping")
    return PayrollCalculationInput.model_validate(payload)


def _check_invariants(
    figures: GrossFigures,
    deductions: Mapping[str, Decimal],
    total_deductions: Decimal,
    net_pay: Decimal,
) -> None:
    for name, amount in deductions.items():
        if amount < 0:
            raise ArithmeticInvariantError(f"{name} deduction is negative: {amount}")
    if sum(deductions.values(), ZERO) != total_deductions:
        raise ArithmeticInvariantError("Deductions do not sum to the reported total")
    if net_pay < 0:
        raise ArithmeticInvariantError(
            f"Net pay is negative: {format_currency(figures.gross_pay)} gross less "
            f"{format_currency(total_deductions)} deductions"
        )
    if net_pay + total_deductions != figures.gross_pay:
        raise ArithmeticInvariantError("Net pay and deductions do not reconcile to gross pay")


def _run_pipeline(
    payload: PayrollCalculationInput,
    warnings: list[str],
    timings: dict[str, float] | None,
) -> PayrollCalculationResult:
    config = payload.tax_year_config
    employee = payload.employee
    log: list[str] = []

    with _profile_section("normalise_period", timings):
        period = normalise_period(
            payload.period_start, payload.period_type, payload.period_number
        )
    expected_number = period_number_for(payload.period_start, payload.period_type)
    if expected_number != period.period_number:
        warnings.append(
            f"Period number {period.period_number} does not match the period start "
            f"date, which falls in period {expected_number}"
        )
    log.append(
        f"Tax year {config.tax_year}, {payload.period_type} period "
        f"{period.period_number} of {period.periods_per_year}"
    )

    figures = calculate_gross_figures(payload)
    log.append(
        f"Gross {format_currency(figures.gross_pay)}; taxable "
        f"{format_currency(figures.taxable_pay)}; NI-able "
        f"{format_currency(figures.niable_pay)}; pensionable "
        f"{format_currency(figures.pensionable_pay)}"
    )

    ytd = payload.employee_ytd

    with _profile_section("income_tax", timings):
        tax = calculate_income_tax(
            taxable_pay=figures.taxable_pay,
            tax_code=employee.tax_code or config.default_tax_code,
            basis=employee.tax_code_basis or DEFAULT_TAX_CODE_BASIS,
            period=period,
            config=config,
            ytd=ytd,
        )
    log.append(tax.calculation)
    if tax.refund_withheld > 0:
        warnings.append(
            f"Cumulative recalculation implies a refund of "
            f"{format_currency(tax.refund_withheld)}; no refund was made"
        )

    with _profile_section("national_insurance", timings):
        national_insurance = calculate_national_insurance(
            niable_pay=figures.niable_pay,
            category=employee.ni_category or DEFAULT_NI_CATEGORY,
            period=period,
            config=config,
        )
    log.append(national_insurance.calculation)

    with _profile_section("pension", timings):
        pension = calculate_pension(
            pensionable_pay=figures.pensionable_pay,
            enrolled=employee.pension_enrolled,
            employee_rate_override=employee.pension_employee_rate,
            period=period,
            config=config,
        )
    log.append(pension.calculation)

    with _profile_section("student_loans", timings):
        student_loans = calculate_student_loans(
            niable_pay=figures.niable_pay,
            plans=employee.student_loan_plans,
            has_postgraduate_loan=employee.has_postgraduate_loan,
            period=period,
            config=config,
        )
    for entry in student_loans.plans:
        if entry.active:
            log.append(
                f"Student loan {entry.plan}: threshold "
                f"{format_currency(entry.period_threshold)} = "
                f"{format_currency(entry.deduction)}"
            )

    deductions = {
        "tax": tax.tax_due,
        "employee_ni": national_insurance.employee_ni,
        "employee_pension": pension.employee_contribution,
        "student_loans": student_loans.total_deduction,
    }
    total_deductions = sum(deductions.values(), ZERO)
    net_pay = figures.gross_pay - total_deductions
    if total_deductions > figures.gross_pay:
        raise DeductionsExceedPayError(
            f"Deductions of {format_currency(total_deductions)} exceed pay of "
            f"{format_currency(figures.gross_pay)} for the period"
        )
    _check_invariants(figures, deductions, total_deductions, net_pay)
    log.append(
        f"Total deductions {format_currency(total_deductions)}; net pay "
        f"{format_currency(net_pay)}"
    )

    with _profile_section("accumulate_ytd", timings):
        updated_ytd = accumulate_ytd(
            ytd,
            PeriodTotals(
                gross_pay=figures.gross_pay,
                taxable_pay=figures.taxable_pay,
                tax_paid=tax.tax_due,
                niable_pay=figures.niable_pay,
                employee_ni=national_insurance.employee_ni,
                employer_ni=national_insurance.employer_ni,
                pensionable_pay=figures.pensionable_pay,
                employee_pension=pension.employee_contribution,
                employer_pension=pension.employer_contribution,
                student_loans={
                    entry.plan: entry.deduction
                    for entry in student_loans.plans
                    if entry.active
                },
            ),
            employee_id=employee.employee_id,
            tax_year=config.tax_year,
            period_number=period.period_number,
            payroll_run_id=payload.payroll_run_id,
        )

    loan_entries = tuple(
        entry.model_copy(update={"paid_ytd": updated_ytd.student_loan_for(entry.plan)})
        for entry in student_loans.plans
    )

    return PayrollCalculationResult(
        employee_id=employee.employee_id,
        tax_year=config.tax_year,
        period_type=payload.period_type,
        period_number=period.period_number,
        gross_pay_before_deductions=figures.gross_pay,
        taxable_gross_pay=figures.taxable_pay,
        niable_gross_pay=figures.niable_pay,
        pensionable_gross_pay=figures.pensionable_pay,
        tax=tax,
        national_insurance=national_insurance,
        pension=pension,
        student_loans=student_loans.model_copy(update={"plans": loan_entries}),
        total_deductions=total_deductions,
        net_pay=net_pay,
        employer_cost=(
            figures.gross_pay
            + national_insurance.employer_ni
            + pension.employer_contribution
        ),
        updated_ytd=updated_ytd,
        calculation_log=tuple(log),
        warnings=tuple(warnings),
    )


def calculate_payroll(
    payload: PayrollCalculationInput | Mapping[str, Any],
) -> CalculationOutcome:
    """Calculate one employee's payslip for one period."""

    try:
        calculation_input = _coerce_input(payload)
    except ValidationError as exc:
        return CalculationOutcome.rejected(
            ErrorKind.VALIDATION, [format_validation_error(exc)]
        )
    except ValueError as exc:
        return CalculationOutcome.rejected(ErrorKind.VALIDATION, [str(exc)])

    config = calculation_input.tax_year_config
    employee, warnings = resolve_employee(calculation_input.employee, config)
    resolved = calculation_input.model_copy(update={"employee": employee})

    violations = validate_calculation_input(resolved)
    if violations:
        return CalculationOutcome.rejected(ErrorKind.VALIDATION, violations)

    timings: dict[str, float] | None = {} if _profiling_enabled() else None
    overall_start = perf_counter() if timings is not None else None

    try:
        result = _run_pipeline(resolved, warnings, timings)
    except ConfigurationError as error:
        _LOGGER.error(
            "Payroll configuration failure for employee %s: %s; input=%s",
            employee.employee_id,
            error,
            resolved.model_dump_json(),
        )
        return CalculationOutcome.rejected(ErrorKind.CONFIGURATION, [str(error)])
    except DeductionsExceedPayError as error:
        _LOGGER.warning(
            "Payroll rejected for employee %s: %s", employee.employee_id, error
        )
        return CalculationOutcome.rejected(ErrorKind.VALIDATION, [str(error)])
    except ArithmeticInvariantError as error:
        _LOGGER.error(
            "Payroll invariant violated for employee %s: %s; input=%s",
            employee.employee_id,
            error,
            resolved.model_dump_json(),
        )
        return CalculationOutcome.rejected(ErrorKind.ARITHMETIC_INVARIANT, [str(error)])

    if timings is not None and overall_start is not None:
        timings["total"] = perf_counter() - overall_start
        _LOGGER.debug(
            "calculate_payroll timings (ms): %s",
            {name: round(duration * 1000, 3) for name, duration in timings.items()},
        )

    return CalculationOutcome(state="completed", result=result)


def build_calculation_input(
    request: PayrollCalculationRequest | Mapping[str, Any],
) -> PayrollCalculationInput:
    """Resolve configuration, period number and YTD defaults for an HTTP request.

    Tax years without a declared configuration fall back to a copy of the most
    recent one. Raises ``ValueError`` for malformed payloads and
    ``FileNotFoundError`` when no configuration is shipped at all.
    """

    if not isinstance(request, PayrollCalculationRequest):
        try:
            request = PayrollCalculationRequest.model_validate(request)
        except ValidationError as exc:
            raise ValueError(format_validation_error(exc)) from exc

    tax_year = request.tax_year or tax_year_for(request.period_start)
    config = load_or_derive_tax_year_configuration(tax_year)

    period_number = request.period_number
    if period_number is None:
        period_number = default_period_number(request.period_start, request.period_type)

    ytd = request.employee_ytd or EmployeeYTD.zero(request.employee.employee_id, tax_year)

    return PayrollCalculationInput(
        employee=request.employee,
        gross_pay=request.gross_pay,
        period_start=request.period_start,
        period_end=request.period_end,
        period_number=period_number,
        period_type=request.period_type,
        tax_year_config=config,
        employee_ytd=ytd,
        payments=request.payments,
        payroll_run_id=request.payroll_run_id,
    )


__all__ = [
    "CalculationOutcome",
    "GrossFigures",
    "build_calculation_input",
    "calculate_gross_figures",
    "calculate_payroll",
    "resolve_employee",
]
