"""Record-store boundary used by payroll runs, with an in-memory implementation."""

from __future__ import annotations

from threading import Lock
from typing import Callable, Iterable, Protocol

from ukpayroll.backend.app.models import Employee, EmployeeYTD
from ukpayroll.backend.config.year_config import (
    TaxYearConfiguration,
    load_or_derive_tax_year_configuration,
)

from .errors import RecordNotFoundError, StaleYTDError

ConfigurationLoader = Callable[[str], TaxYearConfiguration]


class PayrollRecordStore(Protocol):
    """Collaborator interface the payroll run layer reads from and writes to."""

    def get_employee(self, employee_id: str) -> Employee:
        ...

    def get_or_create_tax_year_configuration(self, tax_year: str) -> TaxYearConfiguration:
        ...

    def get_or_create_employee_ytd(self, employee_id: str, tax_year: str) -> EmployeeYTD:
        ...

    def persist_employee_ytd(
        self,
        employee_id: str,
        tax_year: str,
        new_ytd: EmployeeYTD,
        *,
        expected_version: int,
    ) -> EmployeeYTD:
        ...


class InMemoryRecordStore:
    """Thread-safe in-memory store with optimistic versioning of YTD records."""

    def __init__(
        self,
        *,
        employees: Iterable[Employee] = (),
        configuration_loader: ConfigurationLoader | None = None,
    ) -> None:
        self._employees: dict[str, Employee] = {
            employee.employee_id: employee for employee in employees
        }
        self._configurations: dict[str, TaxYearConfiguration] = {}
        self._ytd: dict[tuple[str, str], EmployeeYTD] = {}
        self._loader = configuration_loader or load_or_derive_tax_year_configuration
        self._lock = Lock()

    def add_employee(self, employee: Employee) -> None:
        with self._lock:
            self._employees[employee.employee_id] = employee

    def get_employee(self, employee_id: str) -> Employee:
        with self._lock:
            employee = self._employees.get(employee_id)
        if employee is None:
            raise RecordNotFoundError(f"Employee {employee_id} not found")
        return employee

    def get_or_create_tax_year_configuration(self, tax_year: str) -> TaxYearConfiguration:
        with self._lock:
            cached = self._configurations.get(tax_year)
        if cached is not None:
            return cached

        try:
            configuration = self._loader(tax_year)
        except FileNotFoundError as exc:
            raise RecordNotFoundError(
                f"No configuration available for tax year {tax_year}"
            ) from exc

        with self._lock:
            return self._configurations.setdefault(tax_year, configuration)

    def get_or_create_employee_ytd(self, employee_id: str, tax_year: str) -> EmployeeYTD:
        key = (employee_id, tax_year)
        with self._lock:
            record = self._ytd.get(key)
            if record is None:
                record = EmployeeYTD.zero(employee_id, tax_year)
                self._ytd[key] = record
            return record

    def persist_employee_ytd(
        self,
        employee_id: str,
        tax_year: str,
        new_ytd: EmployeeYTD,
        *,
        expected_version: int,
    ) -> EmployeeYTD:
        """Store ``new_ytd`` if the record is still at ``expected_version``."""

        key = (employee_id, tax_year)
        with self._lock:
            current = self._ytd.get(key)
            current_version = current.version if current is not None else 0
            if current_version != expected_version:
                raise StaleYTDError(employee_id, tax_year, expected_version, current_version)

            stored = new_ytd.model_copy(update={"version": current_version + 1})
            self._ytd[key] = stored
            return stored


__all__ = ["ConfigurationLoader", "InMemoryRecordStore", "PayrollRecordStore"]
