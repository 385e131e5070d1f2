"""Utilities for validating tax year configuration data and surfacing issues."""

from __future__ import annotations

import argparse
import re
from decimal import Decimal
from typing import Mapping, Sequence

from .year_config import (
    PERIODS_PER_YEAR,
    ConfigurationError,
    LoanPlanConfig,
    NationalInsuranceConfig,
    PensionConfig,
    TaxBand,
    TaxYearConfiguration,
    Threshold,
    available_tax_years,
    load_tax_year_configuration,
)

_STANDARD_CODE = re.compile(r"^(?P<digits>\d+)[LMNT]$")

# Published period figures are rounded, so allow a few pounds of drift from
# the straight annual division.
_PERIOD_TOLERANCE = Decimal("5")


def _format_scope(scope: str, message: str) -> str:
    return f"{scope}: {message}"


def _validate_threshold(scope: str, threshold: Threshold) -> list[str]:
    errors: list[str] = []

    for period_type, published in (
        ("weekly", threshold.weekly),
        ("monthly", threshold.monthly),
    ):
        if published is None:
            continue
        derived = threshold.annual / PERIODS_PER_YEAR[period_type]
        if abs(published - derived) > _PERIOD_TOLERANCE:
            errors.append(
                _format_scope(
                    scope,
                    (
                        f"{period_type} figure {published} differs from the annual "
                        f"equivalent {derived:.2f}"
                    ),
                )
            )

    return errors


def _validate_bands(region: str, bands: Sequence[TaxBand]) -> list[str]:
    errors: list[str] = []
    scope = f"income_tax.regions.{region}"

    rates = [band.rate for band in bands]
    if rates != sorted(rates):
        errors.append(_format_scope(scope, "band rates should not decrease"))

    names = [band.name for band in bands]
    if len(set(names)) != len(names):
        errors.append(_format_scope(scope, "band names must be unique"))

    return errors


def _validate_national_insurance(config: NationalInsuranceConfig) -> list[str]:
    errors: list[str] = []

    for letter, category in config.categories.items():
        scope = f"national_insurance.categories.{letter}"
        if len(letter) != 1 or not letter.isalpha():
            errors.append(_format_scope(scope, "category keys must be single letters"))
        errors.extend(
            _validate_threshold(f"{scope}.primary_threshold", category.primary_threshold)
        )
        errors.extend(
            _validate_threshold(
                f"{scope}.upper_earnings_limit", category.upper_earnings_limit
            )
        )
        errors.extend(
            _validate_threshold(f"{scope}.secondary_threshold", category.secondary_threshold)
        )

    if "A" not in config.categories:
        errors.append(
            _format_scope("national_insurance.categories", "category 'A' is required")
        )

    return errors


def _validate_pension(pension: PensionConfig) -> list[str]:
    errors: list[str] = []

    errors.extend(
        _validate_threshold(
            "pension.lower_qualifying_earnings", pension.lower_qualifying_earnings
        )
    )
    errors.extend(
        _validate_threshold(
            "pension.upper_qualifying_earnings", pension.upper_qualifying_earnings
        )
    )
    if pension.earnings_trigger < pension.lower_qualifying_earnings.annual:
        errors.append(
            _format_scope(
                "pension",
                "earnings trigger should not be below the lower qualifying earnings",
            )
        )

    return errors


def _validate_student_loans(
    plans: Mapping[str, LoanPlanConfig], postgraduate: LoanPlanConfig
) -> list[str]:
    errors: list[str] = []

    if "postgraduate" in plans:
        errors.append(
            _format_scope(
                "student_loans.plans",
                "the postgraduate loan belongs in 'student_loans.postgraduate'",
            )
        )

    for plan_id, plan in plans.items():
        if plan.threshold == 0:
            errors.append(
                _format_scope(f"student_loans.plans.{plan_id}", "threshold must be positive")
            )

    if postgraduate.threshold == 0:
        errors.append(
            _format_scope("student_loans.postgraduate", "threshold must be positive")
        )

    return errors


def _validate_default_tax_code(config: TaxYearConfiguration) -> list[str]:
    match = _STANDARD_CODE.match(config.default_tax_code.strip().upper())
    if match is None:
        return [
            _format_scope(
                "default_tax_code",
                f"'{config.default_tax_code}' is not a standard suffix tax code",
            )
        ]

    allowance = Decimal(int(match.group("digits")) * 10)
    if allowance != config.personal_allowance:
        return [
            _format_scope(
                "default_tax_code",
                (
                    f"allowance {allowance} does not match the personal allowance "
                    f"{config.personal_allowance}"
                ),
            )
        ]
    return []


def validate_year_configuration(config: TaxYearConfiguration) -> list[str]:
    """Return a list of validation issues for the provided configuration."""

    errors: list[str] = []

    for region, bands in config.income_tax.regions.items():
        errors.extend(_validate_bands(region, bands))

    errors.extend(_validate_national_insurance(config.national_insurance))
    errors.extend(_validate_pension(config.pension))
    errors.extend(
        _validate_student_loans(
            config.student_loans.plans, config.student_loans.postgraduate
        )
    )
    errors.extend(_validate_default_tax_code(config))

    return errors


def validate_all_tax_years(
    tax_years: Sequence[str] | None = None,
) -> dict[str, list[str]]:
    """Validate all configured tax years and return issues keyed by tax year."""

    targets = tax_years or available_tax_years()
    results: dict[str, list[str]] = {}

    for tax_year in targets:
        config = load_tax_year_configuration(tax_year)
        results[tax_year] = validate_year_configuration(config)

    return results


def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate configured tax years and report issues to operators."
    )
    parser.add_argument(
        "tax_years",
        nargs="*",
        help="Specific tax years such as 2024-25 (defaults to all configured years)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for running validations from the command line."""

    parser = _build_argument_parser()
    args = parser.parse_args(argv)
    tax_years = args.tax_years or available_tax_years()

    if not tax_years:
        parser.print_help()
        return 1

    exit_code = 0

    for tax_year in tax_years:
        try:
            config = load_tax_year_configuration(tax_year)
        except (FileNotFoundError, ConfigurationError) as error:
            print(f"[{tax_year}] failed to load configuration: {error}")
            exit_code = 1
            continue

        issues = validate_year_configuration(config)
        if issues:
            exit_code = 1
            print(f"[{tax_year}] {len(issues)} issue(s) detected:")
            for issue in issues:
                print(f"  - {issue}")
        else:
            print(f"[{tax_year}] OK")

    return exit_code


if __name__ == "__main__":  # pragma: no cover - CLI invocation
    raise SystemExit(main())
