"""Behavioural tests for the payroll calculation service."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from ukpayroll.backend.app.models import EmployeeYTD, PaymentComponents
from ukpayroll.backend.app.services import calculation_service
from ukpayroll.backend.app.services.calculation_service import (
    build_calculation_input,
    calculate_payroll,
)
from ukpayroll.backend.app.services.errors import PUBLIC_FAILURE_MESSAGE, ErrorKind

MONTH_1 = {
    "period_type": "monthly",
    "period_start": date(2024, 4, 6),
    "period_end": date(2024, 5, 5),
}


def _completed(payload):
    outcome = calculate_payroll(payload)
    assert outcome.completed, outcome.errors
    assert outcome.result is not None
    return outcome.result


def test_weekly_basic_rate_payslip(make_input) -> None:
    result = _completed(make_input())

    assert result.tax.tax_due == Decimal("51.65")
    assert result.national_insurance.employee_ni == Decimal("20.64")
    assert result.national_insurance.employer_ni == Decimal("44.85")
    assert result.total_deductions == Decimal("72.29")
    assert result.net_pay == Decimal("427.71")
    assert result.employer_cost == Decimal("544.85")
    assert result.warnings == ()


def test_monthly_payslip(make_input) -> None:
    result = _completed(make_input(gross_pay=Decimal("3000"), **MONTH_1))

    assert result.tax.tax_due == Decimal("390.50")
    assert result.national_insurance.employee_ni == Decimal("156.16")
    assert result.national_insurance.employer_ni == Decimal("309.40")
    assert result.net_pay == Decimal("2453.34")


def test_student_loans_reduce_net_pay(make_input) -> None:
    payload = make_input(
        gross_pay=Decimal("3000"),
        employee={"student_loan_plans": ("plan2",), "has_postgraduate_loan": True},
        **MONTH_1,
    )

    result = _completed(payload)

    assert result.student_loans.total_deduction == Decimal("140.29")
    assert result.net_pay == Decimal("2313.05")
    assert result.updated_ytd.student_loan_for("plan2") == Decimal("65.29")
    assert result.updated_ytd.postgraduate_loan_paid_ytd == Decimal("75.00")
    assert [entry.paid_ytd for entry in result.student_loans.plans] == [
        Decimal("65.29"),
        Decimal("75.00"),
    ]


def test_pension_contributions(make_input) -> None:
    payload = make_input(
        gross_pay=Decimal("2000"), employee={"pension_enrolled": True}, **MONTH_1
    )

    result = _completed(payload)

    assert result.pension.employee_contribution == Decimal("74.00")
    assert result.pension.employer_contribution == Decimal("44.40")
    assert result.net_pay == Decimal("1659.34")
    assert result.employer_cost == Decimal("2215.80")
    assert result.updated_ytd.employer_pension_paid_ytd == Decimal("44.40")


def test_net_pay_reconciles_with_deductions(make_input) -> None:
    payload = make_input(
        gross_pay=Decimal("2750.55"),
        employee={"pension_enrolled": True, "student_loan_plans": ("plan1",)},
        payments=PaymentComponents(bonus=Decimal("125.10"), non_taxable=Decimal("30")),
        **MONTH_1,
    )

    result = _completed(payload)

    components = (
        result.tax.tax_due
        + result.national_insurance.employee_ni
        + result.pension.employee_contribution
        + result.student_loans.total_deduction
    )
    assert result.total_deductions == components
    assert result.net_pay + result.total_deductions == result.gross_pay_before_deductions


def test_second_period_updates_year_to_date(make_input) -> None:
    first = _completed(make_input(payroll_run_id="run-1"))

    second = _completed(
        make_input(
            period_start=date(2024, 4, 13),
            period_end=date(2024, 4, 19),
            period_number=2,
            employee_ytd=first.updated_ytd,
        )
    )

    assert second.tax.tax_due == Decimal("51.66")
    assert second.updated_ytd.tax_paid_ytd == Decimal("103.31")
    assert second.updated_ytd.gross_pay_ytd == Decimal("1000")
    assert second.updated_ytd.last_period_number == 2
    assert second.updated_ytd.last_payroll_run_id == "run-1"
    assert second.updated_ytd.version == 2


def test_missing_employee_fields_fall_back_to_defaults(make_input, caplog) -> None:
    payload = make_input(
        employee={"tax_code": None, "tax_code_basis": None, "ni_category": None}
    )

    with caplog.at_level(logging.WARNING):
        result = _completed(payload)

    assert result.tax.tax_code == "1257L"
    assert result.national_insurance.category == "A"
    assert result.net_pay == Decimal("427.71")
    assert len(result.warnings) == 3
    assert "default 1257L" in result.warnings[0]
    assert sum("E001" in record.getMessage() for record in caplog.records) == 3


def test_salary_sacrifice_reduces_every_base(make_input) -> None:
    payload = make_input(payments=PaymentComponents(salary_sacrifice=Decimal("100")))

    result = _completed(payload)

    assert result.gross_pay_before_deductions == Decimal("400")
    assert result.tax.tax_due == Decimal("31.65")
    assert result.national_insurance.employee_ni == Decimal("12.64")


def test_non_taxable_payment_is_paid_without_deductions(make_input) -> None:
    payload = make_input(payments=PaymentComponents(non_taxable=Decimal("50")))

    result = _completed(payload)

    assert result.gross_pay_before_deductions == Decimal("550")
    assert result.taxable_gross_pay == Decimal("500")
    assert result.net_pay == Decimal("477.71")


def test_tronc_is_taxed_but_not_niable(make_input) -> None:
    payload = make_input(payments=PaymentComponents(tronc=Decimal("100")))

    result = _completed(payload)

    assert result.taxable_gross_pay == Decimal("600")
    assert result.niable_gross_pay == Decimal("500")
    assert result.tax.tax_due == Decimal("71.65")
    assert result.national_insurance.employee_ni == Decimal("20.64")
    assert result.net_pay == Decimal("507.71")


def test_withheld_refund_is_reported_as_warning(make_input) -> None:
    ytd = EmployeeYTD(
        employee_id="E001",
        tax_year="2024-25",
        taxable_pay_ytd=Decimal("500"),
        tax_paid_ytd=Decimal("200"),
    )
    payload = make_input(
        period_start=date(2024, 4, 13),
        period_end=date(2024, 4, 19),
        period_number=2,
        employee_ytd=ytd,
    )

    result = _completed(payload)

    assert result.tax.tax_due == 0
    assert any("refund of £96.69" in warning for warning in result.warnings)


def test_period_number_mismatch_is_reported_as_warning(make_input) -> None:
    result = _completed(make_input(period_number=3))

    assert result.period_number == 3
    assert any("falls in period 1" in warning for warning in result.warnings)


def test_week_53_is_taxed_on_non_cumulative_basis(make_input) -> None:
    payload = make_input(
        period_start=date(2025, 4, 5), period_end=date(2025, 4, 5), period_number=53
    )

    result = _completed(payload)

    assert result.tax.basis == "week1month1"
    assert result.tax.tax_due == Decimal("51.65")


def test_validation_failures_are_returned_together(make_input) -> None:
    outcome = calculate_payroll(
        make_input(gross_pay=Decimal("-1"), employee={"ni_category": "Q"})
    )

    assert not outcome.completed
    assert outcome.error_kind is ErrorKind.VALIDATION
    assert [failure.message for failure in outcome.errors] == [
        "gross pay cannot be negative",
        "unrecognised NI category 'Q'",
    ]
    assert outcome.as_dict()["errors"][0] == {
        "kind": "validation",
        "message": "gross pay cannot be negative",
    }


def test_configuration_failure_hides_details(make_input, caplog) -> None:
    with caplog.at_level(logging.ERROR):
        outcome = calculate_payroll(make_input(employee={"tax_code": "D2"}))

    assert outcome.error_kind is ErrorKind.CONFIGURATION
    assert outcome.errors[0].public_message == PUBLIC_FAILURE_MESSAGE
    assert outcome.as_dict()["errors"] == [
        {"kind": "configuration", "message": PUBLIC_FAILURE_MESSAGE}
    ]
    assert any("configuration failure" in record.getMessage() for record in caplog.records)


def test_deductions_exceeding_pay_are_rejected(make_input) -> None:
    payload = make_input(
        gross_pay=Decimal("5000"),
        employee={
            "pension_enrolled": True,
            "pension_employee_rate": "1",
            "student_loan_plans": ("plan2",),
            "has_postgraduate_loan": True,
        },
        **MONTH_1,
    )

    outcome = calculate_payroll(payload)

    assert outcome.error_kind is ErrorKind.VALIDATION
    assert outcome.errors[0].message == (
        "Deductions of £5,329.46 exceed pay of £5,000.00 for the period"
    )


def test_negative_deduction_is_an_invariant_failure(
    make_input, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(
        calculation_service,
        "calculate_student_loans",
        lambda **_: SimpleNamespace(total_deduction=Decimal("-1"), plans=()),
    )

    outcome = calculate_payroll(make_input(gross_pay=Decimal("2000"), **MONTH_1))

    assert outcome.error_kind is ErrorKind.ARITHMETIC_INVARIANT
    assert "student_loans deduction is negative" in outcome.errors[0].message
    assert outcome.errors[0].public_message == PUBLIC_FAILURE_MESSAGE


def test_non_mapping_payload_is_rejected() -> None:
    outcome = calculate_payroll(["not", "a", "payload"])  # type: ignore[arg-type]

    assert outcome.error_kind is ErrorKind.VALIDATION
    assert outcome.errors[0].message == "Payload must be a mapping"


def test_incomplete_mapping_is_rejected() -> None:
    outcome = calculate_payroll({"gross_pay": 500})

    assert outcome.error_kind is ErrorKind.VALIDATION
    assert outcome.errors[0].message.startswith("Invalid payroll payload:")


def test_mapping_payload_is_accepted(make_input) -> None:
    payload = dict(make_input())

    result = _completed(payload)

    assert result.net_pay == Decimal("427.71")


def test_profiling_logs_section_timings(make_input, monkeypatch, caplog) -> None:
    monkeypatch.setenv("UKPAYROLL_PROFILE_CALCULATIONS", "1")

    with caplog.at_level(logging.DEBUG):
        _completed(make_input())

    assert any("timings" in record.getMessage() for record in caplog.records)


def test_build_calculation_input_derives_defaults() -> None:
    calculation_input = build_calculation_input(
        {
            "employee": {"employee_id": "E001", "tax_code": "1257L"},
            "gross_pay": "500",
            "period_start": "2024-04-13",
            "period_end": "2024-04-19",
            "period_type": "weekly",
        }
    )

    assert calculation_input.tax_year_config.tax_year == "2024-25"
    assert calculation_input.period_number == 2
    assert calculation_input.employee_ytd.employee_id == "E001"
    assert calculation_input.employee_ytd.version == 0


def test_build_calculation_input_derives_undeclared_tax_year() -> None:
    calculation_input = build_calculation_input(
        {
            "employee": {"employee_id": "E001"},
            "gross_pay": "500",
            "period_start": "2031-04-06",
            "period_end": "2031-04-12",
            "period_type": "weekly",
        }
    )

    config = calculation_input.tax_year_config
    assert config.tax_year == "2031-32"
    assert config.effective_from == date(2031, 4, 6)
    assert config.meta["derived_from"] == "2025-26"
    assert calculation_input.period_number == 1


def test_build_calculation_input_rejects_malformed_payload() -> None:
    with pytest.raises(ValueError, match="Invalid payroll payload"):
        build_calculation_input({"employee": {}, "gross_pay": "abc"})
