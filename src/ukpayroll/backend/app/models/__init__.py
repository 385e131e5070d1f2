"""Typed inputs, results and HTTP payloads shared across the payroll services.

Inputs are frozen Pydantic models so a calculation can never mutate the
employee record, the tax-year configuration or the prior year-to-date snapshot
it was given. Results reuse the same ``Amount`` type as the configuration
schema, keeping every monetary value a ``Decimal`` until it is serialised.
"""

from __future__ import annotations

from .api import (
    NICalculation,
    PayrollCalculationRequest,
    PayrollCalculationResult,
    PayrollRunRequest,
    PensionCalculation,
    StudentLoanCalculation,
    StudentLoanPlanDeduction,
    TaxBandDetail,
    TaxCalculation,
    format_validation_error,
)
from .payroll import (
    YTD_MONETARY_FIELDS,
    Employee,
    EmployeeYTD,
    PaymentComponents,
    PayrollCalculationInput,
    PeriodType,
    TaxCodeBasis,
)

__all__ = [
    "Employee",
    "EmployeeYTD",
    "NICalculation",
    "PaymentComponents",
    "PayrollCalculationInput",
    "PayrollCalculationRequest",
    "PayrollCalculationResult",
    "PayrollRunRequest",
    "PensionCalculation",
    "PeriodType",
    "StudentLoanCalculation",
    "StudentLoanPlanDeduction",
    "TaxBandDetail",
    "TaxCalculation",
    "TaxCodeBasis",
    "YTD_MONETARY_FIELDS",
    "format_validation_error",
]
