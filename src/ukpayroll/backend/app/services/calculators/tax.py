"""PAYE income tax on the cumulative and week1/month1 bases."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from decimal import Decimal

from ukpayroll.backend.app.models import EmployeeYTD, TaxCalculation
from ukpayroll.backend.config.year_config import (
    ConfigurationError,
    TaxBand,
    TaxYearConfiguration,
)

from .period import PeriodContext
from .tax_codes import ParsedTaxCode, parse_tax_code
from .utils import (
    ZERO,
    calculate_banded_tax,
    clamp_non_negative,
    format_currency,
    format_percentage,
    round_currency,
    scale_amount,
)

_LOGGER = logging.getLogger(__name__)


def _flat_rate_band(parsed: ParsedTaxCode, bands: Sequence[TaxBand]) -> TaxBand:
    basic_index = next(index for index, band in enumerate(bands) if band.name == "basic")
    target = basic_index + parsed.band_offset
    if target >= len(bands):
        raise ConfigurationError(
            f"Tax code {parsed.code} refers to a band beyond the configured "
            f"{parsed.region} bands"
        )
    return bands[target]


def _flat_rate_tax(
    parsed: ParsedTaxCode,
    taxable_pay: Decimal,
    bands: Sequence[TaxBand],
    basis: str,
) -> TaxCalculation:
    band = _flat_rate_band(parsed, bands)
    tax_due = round_currency(clamp_non_negative(taxable_pay) * band.rate)
    return TaxCalculation(
        tax_code=parsed.code,
        basis=basis,
        region=parsed.region,
        taxable_pay=taxable_pay,
        allowance_applied=ZERO,
        tax_due=tax_due,
        calculation=(
            f"{parsed.code}: {format_currency(taxable_pay)} taxed at the {band.name} "
            f"rate of {format_percentage(band.rate)} = {format_currency(tax_due)}"
        ),
    )


def _non_cumulative_tax(
    parsed: ParsedTaxCode,
    taxable_pay: Decimal,
    bands: Sequence[TaxBand],
    period: PeriodContext,
    basis: str,
) -> TaxCalculation:
    allowance = period.period_equivalent(parsed.allowance)
    taxable_after_allowance = clamp_non_negative(taxable_pay - allowance)
    raw_tax, breakdown = calculate_banded_tax(
        taxable_after_allowance, bands, 1, period.periods_per_year
    )
    tax_due = round_currency(raw_tax)

    return TaxCalculation(
        tax_code=parsed.code,
        basis=basis,
        region=parsed.region,
        taxable_pay=taxable_pay,
        allowance_applied=round_currency(allowance),
        tax_due=tax_due,
        bands=tuple(breakdown),
        calculation=(
            f"Non-cumulative: ({format_currency(taxable_pay)} - allowance "
            f"{format_currency(allowance)}) over bands at 1/{period.periods_per_year} "
            f"= {format_currency(tax_due)}"
        ),
    )


def _cumulative_tax(
    parsed: ParsedTaxCode,
    taxable_pay: Decimal,
    bands: Sequence[TaxBand],
    period: PeriodContext,
    ytd: EmployeeYTD,
) -> TaxCalculation:
    numerator = period.period_number
    denominator = period.periods_per_year

    allowance_to_date = scale_amount(parsed.allowance, numerator, denominator)
    pay_to_date = ytd.taxable_pay_ytd + taxable_pay
    taxable_to_date = clamp_non_negative(pay_to_date - allowance_to_date)
    raw_tax, breakdown = calculate_banded_tax(
        taxable_to_date, bands, numerator, denominator
    )
    tax_due_to_date = round_currency(raw_tax)

    difference = tax_due_to_date - ytd.tax_paid_ytd
    refund_withheld = ZERO
    if difference < 0:
        refund_withheld = -difference
        _LOGGER.info(
            "Cumulative tax for period %s implies a refund of %s; deducting zero",
            period.period_number,
            refund_withheld,
        )
    tax_due = clamp_non_negative(difference)

    return TaxCalculation(
        tax_code=parsed.code,
        basis="cumulative",
        region=parsed.region,
        taxable_pay=taxable_pay,
        allowance_applied=round_currency(allowance_to_date),
        taxable_pay_to_date=pay_to_date,
        tax_due_to_date=tax_due_to_date,
        tax_due=tax_due,
        refund_withheld=refund_withheld,
        bands=tuple(breakdown),
        calculation=(
            f"Cumulative: tax on {format_currency(pay_to_date)} to date less allowance "
            f"{format_currency(allowance_to_date)} at {numerator}/{denominator} = "
            f"{format_currency(tax_due_to_date)}; less {format_currency(ytd.tax_paid_ytd)} "
            f"paid = {format_currency(tax_due)}"
        ),
    )


def calculate_income_tax(
    *,
    taxable_pay: Decimal,
    tax_code: str,
    basis: str,
    period: PeriodContext,
    config: TaxYearConfiguration,
    ytd: EmployeeYTD,
) -> TaxCalculation:
    """Return the income tax due for the period.

    Leap periods (week 53, fortnight 27, four-week 14) are always taxed on the
    non-cumulative basis.
    """

    parsed = parse_tax_code(tax_code)

    if parsed.kind == "no_tax":
        return TaxCalculation(
            tax_code=parsed.code,
            basis=basis,
            region=parsed.region,
            taxable_pay=taxable_pay,
            allowance_applied=ZERO,
            tax_due=ZERO,
            calculation="NT: no tax deducted",
        )

    bands = config.income_tax.bands_for(parsed.region)

    if parsed.kind == "flat":
        return _flat_rate_tax(parsed, taxable_pay, bands, basis)

    if basis == "cumulative" and not period.is_leap_period:
        return _cumulative_tax(parsed, taxable_pay, bands, period, ytd)

    effective_basis = basis
    if basis == "cumulative":
        effective_basis = "week1month1"
        _LOGGER.debug(
            "Leap period %s taxed on the non-cumulative basis", period.period_number
        )
    return _non_cumulative_tax(parsed, taxable_pay, bands, period, effective_basis)


__all__ = ["calculate_income_tax"]
