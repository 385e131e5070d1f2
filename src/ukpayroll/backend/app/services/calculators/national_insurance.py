"""Class 1 National Insurance for a single pay period."""

from __future__ import annotations

from decimal import Decimal

from ukpayroll.backend.app.models import NICalculation
from ukpayroll.backend.config.year_config import TaxYearConfiguration

from .period import PeriodContext
from .utils import clamp_non_negative, format_currency, format_percentage, round_currency


def calculate_national_insurance(
    *,
    niable_pay: Decimal,
    category: str,
    period: PeriodContext,
    config: TaxYearConfiguration,
) -> NICalculation:
    """Return employee and employer contributions for ``category``.

    NI is always non-cumulative: each period is measured against the
    period-equivalent thresholds on its own.
    """

    settings = config.national_insurance.category(category)
    period_type = period.period_type

    primary = settings.primary_threshold.for_period(period_type)
    upper_limit = settings.upper_earnings_limit.for_period(period_type)
    secondary = settings.secondary_threshold.for_period(period_type)

    main_band = clamp_non_negative(min(niable_pay, upper_limit) - primary)
    above_band = clamp_non_negative(niable_pay - max(upper_limit, primary))
    employee_ni = round_currency(
        main_band * settings.employee_rate
        + above_band * settings.employee_rate_above_uel
    )

    employer_band = clamp_non_negative(niable_pay - secondary)
    employer_ni = round_currency(employer_band * settings.employer_rate)

    calculation = (
        f"Category {category.upper()}: {format_currency(main_band)} between PT "
        f"{format_currency(primary)} and UEL {format_currency(upper_limit)} at "
        f"{format_percentage(settings.employee_rate)}"
    )
    if above_band > 0:
        calculation += (
            f", {format_currency(above_band)} above UEL at "
            f"{format_percentage(settings.employee_rate_above_uel)}"
        )
    calculation += (
        f" = {format_currency(employee_ni)}; employer {format_currency(employer_band)} "
        f"above ST {format_currency(secondary)} at "
        f"{format_percentage(settings.employer_rate)} = {format_currency(employer_ni)}"
    )

    return NICalculation(
        category=category.upper(),
        niable_pay=niable_pay,
        primary_threshold=round_currency(primary),
        upper_earnings_limit=round_currency(upper_limit),
        secondary_threshold=round_currency(secondary),
        employee_rate=settings.employee_rate,
        employee_rate_above_uel=settings.employee_rate_above_uel,
        employer_rate=settings.employer_rate,
        employee_ni=employee_ni,
        employer_ni=employer_ni,
        calculation=calculation,
    )


__all__ = ["calculate_national_insurance"]
