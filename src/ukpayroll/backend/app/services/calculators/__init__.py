"""Statutory deduction calculators used by the payroll pipeline."""

from .national_insurance import calculate_national_insurance
from .pension import calculate_pension
from .period import (
    PeriodContext,
    default_period_number,
    normalise_period,
    period_number_for,
    tax_year_for,
)
from .student_loan import calculate_student_loans
from .tax import calculate_income_tax
from .tax_codes import TaxCodeError, parse_tax_code
from .utils import format_percentage, round_currency
from .validation import validate_calculation_input
from .ytd import PeriodTotals, accumulate_ytd

__all__ = [
    "PeriodContext",
    "PeriodTotals",
    "TaxCodeError",
    "accumulate_ytd",
    "calculate_income_tax",
    "calculate_national_insurance",
    "calculate_pension",
    "calculate_student_loans",
    "default_period_number",
    "format_percentage",
    "normalise_period",
    "parse_tax_code",
    "period_number_for",
    "round_currency",
    "tax_year_for",
    "validate_calculation_input",
]
