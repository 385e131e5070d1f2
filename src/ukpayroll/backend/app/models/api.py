"""Pydantic models describing payroll API payloads and calculation results."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ukpayroll.backend.config.schema import Amount

from .payroll import Employee, EmployeeYTD, PaymentComponents, PeriodType

_ZERO = Decimal("0")


class _ResultModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class TaxBandDetail(_ResultModel):
    """Portion of taxable pay allocated to a single band."""

    name: str
    rate: Amount
    taxable_amount: Amount
    tax: Amount


class TaxCalculation(_ResultModel):
    """Income tax outcome for the period."""

    tax_code: str
    basis: str
    region: str
    taxable_pay: Amount
    allowance_applied: Amount
    taxable_pay_to_date: Amount | None = None
    tax_due_to_date: Amount | None = None
    tax_due: Amount
    refund_withheld: Amount = _ZERO
    bands: tuple[TaxBandDetail, ...] = ()
    calculation: str = ""


class NICalculation(_ResultModel):
    """Employee and employer National Insurance for the period."""

    category: str
    niable_pay: Amount
    primary_threshold: Amount
    upper_earnings_limit: Amount
    secondary_threshold: Amount
    employee_rate: Amount
    employee_rate_above_uel: Amount
    employer_rate: Amount
    employee_ni: Amount
    employer_ni: Amount
    calculation: str = ""


class PensionCalculation(_ResultModel):
    """Workplace pension contributions on qualifying earnings."""

    enrolled: bool
    pensionable_pay: Amount
    qualifying_earnings: Amount = _ZERO
    lower_qualifying_earnings: Amount = _ZERO
    upper_qualifying_earnings: Amount = _ZERO
    employee_rate: Amount = _ZERO
    employer_rate: Amount = _ZERO
    employee_contribution: Amount = _ZERO
    employer_contribution: Amount = _ZERO
    meets_earnings_trigger: bool = False
    calculation: str = ""


class StudentLoanPlanDeduction(_ResultModel):
    """Repayment for one loan plan; postgraduate is always present."""

    plan: str
    active: bool
    period_threshold: Amount = _ZERO
    rate: Amount = _ZERO
    deduction: Amount = _ZERO
    paid_ytd: Amount | None = None


class StudentLoanCalculation(_ResultModel):
    """Per-plan loan repayments and their total."""

    plans: tuple[StudentLoanPlanDeduction, ...]
    total_deduction: Amount

    def deduction_for(self, plan: str) -> Decimal:
        for entry in self.plans:
            if entry.plan == plan:
                return entry.deduction
        return _ZERO


class PayrollCalculationResult(_ResultModel):
    """Completed payslip figures together with the updated year-to-date totals."""

    employee_id: str
    tax_year: str
    period_type: str
    period_number: int
    gross_pay_before_deductions: Amount
    taxable_gross_pay: Amount
    niable_gross_pay: Amount
    pensionable_gross_pay: Amount
    tax: TaxCalculation
    national_insurance: NICalculation
    pension: PensionCalculation
    student_loans: StudentLoanCalculation
    total_deductions: Amount
    net_pay: Amount
    employer_cost: Amount
    updated_ytd: EmployeeYTD
    calculation_log: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()


class PayrollCalculationRequest(BaseModel):
    """HTTP payload for a stateless payroll calculation."""

    model_config = ConfigDict(extra="forbid")

    employee: Employee
    gross_pay: Amount
    period_start: date
    period_end: date
    period_type: PeriodType
    period_number: int | None = None
    tax_year: str | None = None
    employee_ytd: EmployeeYTD | None = None
    payments: PaymentComponents = Field(default_factory=PaymentComponents)
    payroll_run_id: str | None = None


class PayrollRunRequest(BaseModel):
    """HTTP payload for a payroll run against stored employee records."""

    model_config = ConfigDict(extra="forbid")

    employee_id: str = Field(min_length=1)
    gross_pay: Amount
    period_start: date
    period_end: date
    period_type: PeriodType
    period_number: int | None = None
    payments: PaymentComponents = Field(default_factory=PaymentComponents)
    payroll_run_id: str | None = None


def format_validation_error(error: ValidationError) -> str:
    """Return a concise human-readable description of validation issues."""

    messages: list[str] = []
    for issue in error.errors():
        location = ".".join(str(part) for part in issue.get("loc", ()))
        message = issue.get("msg", "Invalid value")
        if location:
            messages.append(f"{location}: {message}")
        else:
            messages.append(message)

    details = "; ".join(messages) if messages else str(error)
    return f"Invalid payroll payload: {details}"

