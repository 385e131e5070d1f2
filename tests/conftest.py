"""Test configuration utilities and shared fixtures."""

import sys
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable

# Ensure the ``src`` directory is importable when tests are executed without an
# editable install.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import pytest  # noqa: E402
from flask import Flask  # noqa: E402
from flask.testing import FlaskClient  # noqa: E402

from ukpayroll.backend.app import create_app  # noqa: E402
from ukpayroll.backend.app.models import (  # noqa: E402
    Employee,
    EmployeeYTD,
    PayrollCalculationInput,
)
from ukpayroll.backend.app.services.records import InMemoryRecordStore  # noqa: E402
from ukpayroll.backend.config.year_config import (  # noqa: E402
    TaxYearConfiguration,
    load_tax_year_configuration,
)

EMPLOYEE_ID = "E001"

InputFactory = Callable[..., PayrollCalculationInput]


def build_employee(**overrides: Any) -> Employee:
    """Return a standard 1257L / category A employee with ``overrides`` applied."""

    values: dict[str, Any] = {
        "employee_id": EMPLOYEE_ID,
        "name": "Alex Example",
        "tax_code": "1257L",
        "tax_code_basis": "cumulative",
        "ni_category": "A",
    }
    values.update(overrides)
    return Employee(**values)


@pytest.fixture()
def make_employee() -> Callable[..., Employee]:
    """Expose ``build_employee`` to tests."""

    return build_employee


@pytest.fixture()
def config_2024() -> TaxYearConfiguration:
    """Return the shipped 2024-25 configuration."""

    return load_tax_year_configuration("2024-25")


@pytest.fixture()
def make_input(config_2024: TaxYearConfiguration) -> InputFactory:
    """Return a factory for weekly period-one inputs in 2024-25."""

    def _factory(*, employee: dict[str, Any] | None = None, **overrides: Any):
        values: dict[str, Any] = {
            "employee": build_employee(**(employee or {})),
            "gross_pay": Decimal("500"),
            "period_start": date(2024, 4, 6),
            "period_end": date(2024, 4, 12),
            "period_number": 1,
            "period_type": "weekly",
            "tax_year_config": config_2024,
            "employee_ytd": EmployeeYTD.zero(EMPLOYEE_ID, "2024-25"),
        }
        values.update(overrides)
        return PayrollCalculationInput(**values)

    return _factory


@pytest.fixture()
def record_store() -> InMemoryRecordStore:
    """Return an in-memory store holding the standard employee."""

    return InMemoryRecordStore(employees=[build_employee()])


@pytest.fixture()
def app(record_store: InMemoryRecordStore) -> Flask:
    """Return a configured Flask application for integration tests."""

    application = create_app(store=record_store)
    application.config.update(TESTING=True)
    return application


@pytest.fixture()
def client(app: Flask) -> FlaskClient:
    """Provide a test client bound to the configured Flask app."""

    return app.test_client()
