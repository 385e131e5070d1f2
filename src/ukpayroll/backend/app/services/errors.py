"""Error taxonomy shared by the calculation service and payroll runs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

PUBLIC_FAILURE_MESSAGE = "calculation failed, contact administrator"


class ErrorKind(str, Enum):
    """Category of a rejected calculation."""

    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    ARITHMETIC_INVARIANT = "arithmetic_invariant"


class PayrollError(Exception):
    """Base class for payroll failures surfaced to callers."""

    kind: ErrorKind = ErrorKind.VALIDATION


class ArithmeticInvariantError(PayrollError):
    """Raised when computed figures break a payroll invariant."""

    kind = ErrorKind.ARITHMETIC_INVARIANT


class RecordNotFoundError(PayrollError, LookupError):
    """Raised when the record store has no entry for the requested key."""


class StaleYTDError(PayrollError):
    """Raised when a year-to-date record changed since it was read."""

    def __init__(self, employee_id: str, tax_year: str, expected: int, actual: int):
        self.employee_id = employee_id
        self.tax_year = tax_year
        self.expected_version = expected
        self.actual_version = actual
        super().__init__(
            f"Year-to-date record for {employee_id} in {tax_year} is at version "
            f"{actual}, expected {expected}"
        )


class DuplicatePeriodError(PayrollError):
    """Raised when a period has already been applied to the year-to-date record."""


class DeductionsExceedPayError(PayrollError):
    """Raised when an employee's deductions for a period are larger than their pay."""


@dataclass(frozen=True)
class CalculationFailure:
    """A single reason a calculation was rejected."""

    kind: ErrorKind
    message: str

    @property
    def public_message(self) -> str:
        """Message safe to show to end users of the surrounding application."""

        if self.kind is ErrorKind.VALIDATION:
            return self.message
        return PUBLIC_FAILURE_MESSAGE

    def as_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "message": self.public_message}


__all__ = [
    "ArithmeticInvariantError",
    "CalculationFailure",
    "DeductionsExceedPayError",
    "DuplicatePeriodError",
    "ErrorKind",
    "PUBLIC_FAILURE_MESSAGE",
    "PayrollError",
    "RecordNotFoundError",
    "StaleYTDError",
]
