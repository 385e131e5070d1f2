"""Unit coverage for PAYE income tax on both bases."""

from __future__ import annotations

from decimal import Decimal

import pytest

from ukpayroll.backend.app.models import EmployeeYTD
from ukpayroll.backend.app.services.calculators.period import PeriodContext
from ukpayroll.backend.app.services.calculators.tax import calculate_income_tax
from ukpayroll.backend.app.services.calculators.utils import round_currency
from ukpayroll.backend.config.year_config import ConfigurationError, TaxYearConfiguration


def _period(period_type: str, number: int, periods: int) -> PeriodContext:
    return PeriodContext(
        tax_year="2024-25",
        period_type=period_type,
        period_number=number,
        periods_per_year=periods,
    )


WEEK_1 = _period("weekly", 1, 52)
WEEK_2 = _period("weekly", 2, 52)
WEEK_53 = _period("weekly", 53, 52)
MONTH_1 = _period("monthly", 1, 12)


def _tax(
    config: TaxYearConfiguration,
    pay: str,
    *,
    code: str = "1257L",
    basis: str = "cumulative",
    period: PeriodContext = WEEK_1,
    ytd: EmployeeYTD | None = None,
):
    return calculate_income_tax(
        taxable_pay=Decimal(pay),
        tax_code=code,
        basis=basis,
        period=period,
        config=config,
        ytd=ytd or EmployeeYTD(),
    )


def test_cumulative_period_one_uses_accrued_allowance(
    config_2024: TaxYearConfiguration,
) -> None:
    result = _tax(config_2024, "500")

    basic_rate = config_2024.income_tax.bands_for("rest_of_uk")[0].rate
    expected = round_currency((Decimal("500") - config_2024.personal_allowance / 52) * basic_rate)
    assert result.tax_due == expected == Decimal("51.65")
    assert result.tax_due_to_date == expected
    assert result.allowance_applied == Decimal("241.73")
    assert result.basis == "cumulative"
    assert [band.name for band in result.bands] == ["basic"]


def test_cumulative_period_two_deducts_tax_already_paid(
    config_2024: TaxYearConfiguration,
) -> None:
    ytd = EmployeeYTD(taxable_pay_ytd=Decimal("500"), tax_paid_ytd=Decimal("51.65"))

    result = _tax(config_2024, "500", period=WEEK_2, ytd=ytd)

    assert result.taxable_pay_to_date == Decimal("1000")
    assert result.tax_due_to_date == Decimal("103.31")
    assert result.tax_due == Decimal("51.66")
    assert result.refund_withheld == 0


def test_cumulative_refund_is_floored_at_zero(config_2024: TaxYearConfiguration) -> None:
    ytd = EmployeeYTD(taxable_pay_ytd=Decimal("500"), tax_paid_ytd=Decimal("200"))

    result = _tax(config_2024, "500", period=WEEK_2, ytd=ytd)

    assert result.tax_due == 0
    assert result.refund_withheld == Decimal("96.69")


def test_non_cumulative_ignores_year_to_date(config_2024: TaxYearConfiguration) -> None:
    ytd = EmployeeYTD(taxable_pay_ytd=Decimal("10000"), tax_paid_ytd=Decimal("5000"))

    result = _tax(config_2024, "500", basis="week1month1", period=WEEK_2, ytd=ytd)

    assert result.tax_due == Decimal("51.65")
    assert result.tax_due_to_date is None
    assert result.basis == "week1month1"


def test_leap_period_switches_to_non_cumulative(config_2024: TaxYearConfiguration) -> None:
    ytd = EmployeeYTD(taxable_pay_ytd=Decimal("26000"), tax_paid_ytd=Decimal("2685.80"))

    result = _tax(config_2024, "500", period=WEEK_53, ytd=ytd)

    assert result.basis == "week1month1"
    assert result.tax_due == Decimal("51.65")


def test_pay_above_basic_band_uses_higher_rate(config_2024: TaxYearConfiguration) -> None:
    result = _tax(config_2024, "5000", basis="week1month1", period=MONTH_1)

    # 5000 - 1047.50 = 3952.50; 3141.67 at 20% and 810.83 at 40%
    assert [band.name for band in result.bands] == ["basic", "higher"]
    assert result.tax_due == Decimal("952.67")


def test_tax_is_continuous_at_band_edge(config_2024: TaxYearConfiguration) -> None:
    edge = round_currency(config_2024.personal_allowance / 12 + Decimal("37700") / 12)
    penny = Decimal("0.01")
    below, at_edge, above = (
        _tax(config_2024, str(pay), basis="week1month1", period=MONTH_1)
        for pay in (edge - penny, edge, edge + penny)
    )

    assert at_edge.tax_due - below.tax_due <= Decimal("0.01")
    assert above.tax_due - at_edge.tax_due <= Decimal("0.01")


def test_scottish_prefix_uses_scottish_bands(config_2024: TaxYearConfiguration) -> None:
    result = _tax(config_2024, "500", code="S1257L")

    assert result.region == "scotland"
    assert [band.name for band in result.bands] == ["starter", "basic"]
    assert result.tax_due == Decimal("51.21")


@pytest.mark.parametrize(
    ("code", "expected"),
    [("BR", "100.00"), ("D0", "200.00"), ("D1", "225.00"), ("SD2", "225.00"), ("NT", "0")],
)
def test_flat_rate_and_no_tax_codes(
    config_2024: TaxYearConfiguration, code: str, expected: str
) -> None:
    result = _tax(config_2024, "500", code=code)

    assert result.tax_due == Decimal(expected)
    assert result.allowance_applied == 0


def test_zero_t_taxes_all_pay_through_the_bands(config_2024: TaxYearConfiguration) -> None:
    result = _tax(config_2024, "500", code="0T", basis="week1month1")

    assert result.tax_due == Decimal("100.00")


def test_flat_code_beyond_configured_bands_is_a_configuration_error(
    config_2024: TaxYearConfiguration,
) -> None:
    with pytest.raises(ConfigurationError):
        _tax(config_2024, "500", code="D2")
