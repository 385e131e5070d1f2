"""Input records consumed by the payroll calculation pipeline."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from ukpayroll.backend.config.schema import Amount, TaxYearConfiguration

_ZERO = Decimal("0")

PeriodType = Literal["weekly", "fortnightly", "four_weekly", "monthly"]
TaxCodeBasis = Literal["cumulative", "week1month1"]


class Employee(BaseModel):
    """Calculation-relevant view of an employee record.

    Tax code, basis and NI category are optional on the record itself; the
    calculation service resolves missing values to configured defaults and
    reports each substitution as a warning.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    employee_id: str
    name: str | None = None
    tax_code: str | None = None
    tax_code_basis: TaxCodeBasis | None = None
    ni_category: str | None = None
    pension_enrolled: bool = False
    pension_employee_rate: Amount | None = None
    student_loan_plans: tuple[str, ...] = ()
    has_postgraduate_loan: bool = False


class PaymentComponents(BaseModel):
    """Supplemental payments paid alongside basic pay for the period."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    bonus: Amount = _ZERO
    commission: Amount = _ZERO
    tronc: Amount = _ZERO
    holiday_pay: Amount = _ZERO
    other: Amount = _ZERO
    non_taxable: Amount = _ZERO
    salary_sacrifice: Amount = _ZERO


class EmployeeYTD(BaseModel):
    """Running totals for one employee within one tax year."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    employee_id: str | None = None
    tax_year: str | None = None
    gross_pay_ytd: Amount = _ZERO
    taxable_pay_ytd: Amount = _ZERO
    tax_paid_ytd: Amount = _ZERO
    niable_pay_ytd: Amount = _ZERO
    employee_ni_paid_ytd: Amount = _ZERO
    employer_ni_paid_ytd: Amount = _ZERO
    pensionable_pay_ytd: Amount = _ZERO
    employee_pension_paid_ytd: Amount = _ZERO
    employer_pension_paid_ytd: Amount = _ZERO
    student_loan_paid_ytd: dict[str, Amount] = Field(default_factory=dict)
    postgraduate_loan_paid_ytd: Amount = _ZERO
    last_payroll_run_id: str | None = None
    last_period_number: int | None = None
    version: int = 0

    @classmethod
    def zero(cls, employee_id: str, tax_year: str) -> EmployeeYTD:
        return cls(employee_id=employee_id, tax_year=tax_year)

    def student_loan_for(self, plan: str) -> Decimal:
        if plan == "postgraduate":
            return self.postgraduate_loan_paid_ytd
        return self.student_loan_paid_ytd.get(plan, _ZERO)


# Monetary totals that must never decrease within a tax year.
YTD_MONETARY_FIELDS: tuple[str, ...] = (
    "gross_pay_ytd",
    "taxable_pay_ytd",
    "tax_paid_ytd",
    "niable_pay_ytd",
    "employee_ni_paid_ytd",
    "employer_ni_paid_ytd",
    "pensionable_pay_ytd",
    "employee_pension_paid_ytd",
    "employer_pension_paid_ytd",
    "postgraduate_loan_paid_ytd",
)


class PayrollCalculationInput(BaseModel):
    """Everything the calculation pipeline needs for one employee and period.

    Values are unconstrained at this level; range checks belong to the input
    validator, which reports every violation at once.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    employee: Employee
    gross_pay: Amount
    period_start: date
    period_end: date
    period_number: int
    period_type: str
    tax_year_config: TaxYearConfiguration
    employee_ytd: EmployeeYTD
    payments: PaymentComponents = Field(default_factory=PaymentComponents)
    payroll_run_id: str | None = None


__all__ = [
    "Employee",
    "EmployeeYTD",
    "PaymentComponents",
    "PayrollCalculationInput",
    "PeriodType",
    "TaxCodeBasis",
    "YTD_MONETARY_FIELDS",
]
