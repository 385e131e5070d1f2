"""Unit coverage for pre-calculation input validation."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from ukpayroll.backend.app.models import EmployeeYTD, PaymentComponents
from ukpayroll.backend.app.services.calculators.validation import validate_calculation_input


def test_standard_input_is_valid(make_input) -> None:
    assert validate_calculation_input(make_input()) == []


def test_every_violation_is_reported_at_once(make_input) -> None:
    payload = make_input(
        gross_pay=Decimal("-100"),
        employee={"tax_code": "K475", "ni_category": "Q"},
    )

    violations = validate_calculation_input(payload)

    assert "gross pay cannot be negative" in violations
    assert "K tax codes are not supported" in " ".join(violations)
    assert "unrecognised NI category 'Q'" in violations
    assert len(violations) == 3


def test_negative_payment_component(make_input) -> None:
    payload = make_input(payments=PaymentComponents(bonus=Decimal("-1")))

    assert validate_calculation_input(payload) == ["payments.bonus cannot be negative"]


def test_salary_sacrifice_cannot_exceed_earnings(make_input) -> None:
    payload = make_input(payments=PaymentComponents(salary_sacrifice=Decimal("600")))

    assert validate_calculation_input(payload) == [
        "salary sacrifice cannot exceed earnings for the period"
    ]


def test_period_dates_must_be_ordered(make_input) -> None:
    payload = make_input(period_start=date(2024, 4, 12), period_end=date(2024, 4, 6))

    assert validate_calculation_input(payload) == [
        "period start must not be after period end"
    ]


@pytest.mark.parametrize(
    ("period_type", "number", "fragment"),
    [
        ("daily", 1, "unknown period type 'daily'"),
        ("weekly", 54, "period number 54 is outside 1-53"),
        ("monthly", 0, "period number 0 is outside 1-12"),
    ],
)
def test_period_type_and_number(make_input, period_type: str, number: int, fragment: str) -> None:
    payload = make_input(period_type=period_type, period_number=number)

    violations = validate_calculation_input(payload)

    assert len(violations) == 1
    assert fragment in violations[0]


def test_period_outside_configured_tax_year(make_input) -> None:
    payload = make_input(period_start=date(2025, 4, 6), period_end=date(2025, 4, 12))

    violations = validate_calculation_input(payload)

    assert violations == ["period start 2025-04-06 is outside tax year 2024-25"]


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"employee_id": " "}, "employee id is required"),
        ({"tax_code": None}, "employee tax code is required"),
        ({"ni_category": ""}, "employee NI category is required"),
        ({"student_loan_plans": ("plan9",)}, "unrecognised student loan plan 'plan9'"),
        ({"pension_employee_rate": "1.5"}, "pension employee rate must be between 0 and 1"),
    ],
)
def test_employee_record_checks(make_input, overrides: dict, message: str) -> None:
    payload = make_input(employee=overrides)

    violations = validate_calculation_input(payload)

    assert message in violations


def test_lowercase_ni_category_is_accepted(make_input) -> None:
    assert validate_calculation_input(make_input(employee={"ni_category": "c"})) == []


def test_year_to_date_must_match_year_and_employee(make_input) -> None:
    payload = make_input(employee_ytd=EmployeeYTD.zero("E999", "2023-24"))

    violations = validate_calculation_input(payload)

    assert "year-to-date record belongs to tax year 2023-24, not 2024-25" in violations
    assert "year-to-date record belongs to a different employee" in violations
