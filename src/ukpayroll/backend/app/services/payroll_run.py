"""Payroll runs against a record store, one period per employee at a time."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from threading import Lock
from typing import Any
from weakref import WeakValueDictionary

from ukpayroll.backend.app.models import (
    EmployeeYTD,
    PayrollCalculationInput,
    PayrollCalculationResult,
    PayrollRunRequest,
)
from ukpayroll.backend.config.year_config import ConfigurationError

from .calculation_service import CalculationOutcome, calculate_payroll
from .calculators import default_period_number, tax_year_for
from .errors import (
    DuplicatePeriodError,
    PayrollError,
    RecordNotFoundError,
    StaleYTDError,
)
from .records import PayrollRecordStore

_LOGGER = logging.getLogger(__name__)


class _KeyedLocks:
    """Lazily created locks, one per ``(employee_id, tax_year)`` pair.

    Entries are dropped once no caller holds a reference to their lock.
    """

    def __init__(self) -> None:
        self._locks: WeakValueDictionary[tuple[str, str], Lock] = WeakValueDictionary()
        self._guard = Lock()

    def get(self, key: tuple[str, str]) -> Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = Lock()
                self._locks[key] = lock
            return lock


_RUN_LOCKS = _KeyedLocks()


@dataclass(frozen=True)
class BatchFailure:
    """A single employee that could not be processed in a batch."""

    employee_id: str
    reason: str
    message: str

    def as_dict(self) -> dict[str, Any]:
        return {"employee_id": self.employee_id, "reason": self.reason, "message": self.message}


@dataclass(frozen=True)
class BatchOutcome:
    """Results of a batch run: every failure is reported alongside the successes."""

    completed: tuple[PayrollCalculationResult, ...]
    failures: tuple[BatchFailure, ...]


def _ensure_not_processed(
    ytd: EmployeeYTD, period_number: int, payroll_run_id: str | None
) -> None:
    if payroll_run_id is not None and ytd.last_payroll_run_id == payroll_run_id:
        raise DuplicatePeriodError(
            f"Payroll run {payroll_run_id} has already been applied for "
            f"{ytd.employee_id} in {ytd.tax_year}"
        )
    if ytd.last_period_number is not None and period_number <= ytd.last_period_number:
        raise DuplicatePeriodError(
            f"Period {period_number} for {ytd.employee_id} in {ytd.tax_year} is not "
            f"after the last processed period {ytd.last_period_number}"
        )


def run_employee_payroll(
    store: PayrollRecordStore, request: PayrollRunRequest
) -> CalculationOutcome:
    """Calculate and persist one employee's period.

    The year-to-date record is read, recalculated and written while holding the
    lock for the employee and tax year, and is only written when the
    calculation completes. Raises ``RecordNotFoundError`` for unknown employees
    or tax years, ``DuplicatePeriodError`` when the period was already applied
    and ``StaleYTDError`` when another writer changed the record.
    """

    employee = store.get_employee(request.employee_id)
    tax_year = tax_year_for(request.period_start)
    config = store.get_or_create_tax_year_configuration(tax_year)

    period_number = request.period_number
    if period_number is None:
        period_number = default_period_number(request.period_start, request.period_type)

    with _RUN_LOCKS.get((employee.employee_id, tax_year)):
        ytd = store.get_or_create_employee_ytd(employee.employee_id, tax_year)
        _ensure_not_processed(ytd, period_number, request.payroll_run_id)

        outcome = calculate_payroll(
            PayrollCalculationInput(
                employee=employee,
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
        )
        if outcome.completed and outcome.result is not None:
            store.persist_employee_ytd(
                employee.employee_id,
                tax_year,
                outcome.result.updated_ytd,
                expected_version=ytd.version,
            )

    return outcome


def _failure_reason(error: Exception) -> str:
    if isinstance(error, RecordNotFoundError):
        return "not_found"
    if isinstance(error, (DuplicatePeriodError, StaleYTDError)):
        return "conflict"
    if isinstance(error, ConfigurationError):
        return "configuration"
    if isinstance(error, PayrollError):
        return error.kind.value
    return "validation"


def run_payroll_batch(
    store: PayrollRecordStore, requests: Iterable[PayrollRunRequest]
) -> BatchOutcome:
    """Run each request in turn; one employee's failure never stops the others."""

    completed: list[PayrollCalculationResult] = []
    failures: list[BatchFailure] = []

    for request in requests:
        try:
            outcome = run_employee_payroll(store, request)
        except (PayrollError, ConfigurationError) as error:
            _LOGGER.warning("Payroll run failed for %s: %s", request.employee_id, error)
            failures.append(
                BatchFailure(
                    employee_id=request.employee_id,
                    reason=_failure_reason(error),
                    message=str(error),
                )
            )
            continue

        if outcome.completed and outcome.result is not None:
            completed.append(outcome.result)
            continue

        for failure in outcome.errors:
            failures.append(
                BatchFailure(
                    employee_id=request.employee_id,
                    reason=failure.kind.value,
                    message=failure.public_message,
                )
            )

    return BatchOutcome(completed=tuple(completed), failures=tuple(failures))


__all__ = [
    "BatchFailure",
    "BatchOutcome",
    "run_employee_payroll",
    "run_payroll_batch",
]
