"""Auto-enrolment pension contributions on qualifying earnings."""

from __future__ import annotations

from decimal import Decimal

from ukpayroll.backend.app.models import PensionCalculation
from ukpayroll.backend.config.year_config import TaxYearConfiguration

from .period import PeriodContext
from .utils import clamp_non_negative, format_currency, format_percentage, round_currency


def calculate_pension(
    *,
    pensionable_pay: Decimal,
    enrolled: bool,
    employee_rate_override: Decimal | None,
    period: PeriodContext,
    config: TaxYearConfiguration,
) -> PensionCalculation:
    """Return contributions on the qualifying-earnings band for the period."""

    if not enrolled:
        return PensionCalculation(
            enrolled=False,
            pensionable_pay=pensionable_pay,
            calculation="Not enrolled in a pension scheme",
        )

    scheme = config.pension
    lower = scheme.lower_qualifying_earnings.for_period(period.period_type)
    upper = scheme.upper_qualifying_earnings.for_period(period.period_type)
    qualifying = round_currency(clamp_non_negative(min(pensionable_pay, upper) - lower))

    employee_rate = (
        employee_rate_override if employee_rate_override is not None else scheme.employee_rate
    )
    employer_rate = scheme.employer_rate
    employee_contribution = round_currency(qualifying * employee_rate)
    employer_contribution = round_currency(qualifying * employer_rate)

    annualised = pensionable_pay * period.periods_per_year
    meets_trigger = annualised >= scheme.earnings_trigger

    return PensionCalculation(
        enrolled=True,
        pensionable_pay=pensionable_pay,
        qualifying_earnings=qualifying,
        lower_qualifying_earnings=round_currency(lower),
        upper_qualifying_earnings=round_currency(upper),
        employee_rate=employee_rate,
        employer_rate=employer_rate,
        employee_contribution=employee_contribution,
        employer_contribution=employer_contribution,
        meets_earnings_trigger=meets_trigger,
        calculation=(
            f"Qualifying earnings {format_currency(qualifying)} between "
            f"{format_currency(lower)} and {format_currency(upper)}; employee "
            f"{format_percentage(employee_rate)} = {format_currency(employee_contribution)}, "
            f"employer {format_percentage(employer_rate)} = "
            f"{format_currency(employer_contribution)}"
        ),
    )


__all__ = ["calculate_pension"]
