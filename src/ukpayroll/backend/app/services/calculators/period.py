"""Tax-year and pay-period arithmetic shared by every calculator."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Mapping

from ukpayroll.backend.config.year_config import PERIODS_PER_YEAR

# Highest period number per type, including the leap period that appears when
# 5 April falls on a pay day.
MAX_PERIOD_NUMBER: Mapping[str, int] = {
    "weekly": 53,
    "fortnightly": 27,
    "four_weekly": 14,
    "monthly": 12,
}

_PERIOD_LENGTH_DAYS: Mapping[str, int] = {
    "weekly": 7,
    "fortnightly": 14,
    "four_weekly": 28,
}

_TAX_YEAR_START_MONTH = 4
_TAX_YEAR_START_DAY = 6


@dataclass(frozen=True, slots=True)
class PeriodContext:
    """Normalised view of a pay period within its tax year."""

    tax_year: str
    period_type: str
    period_number: int
    periods_per_year: int

    @property
    def is_leap_period(self) -> bool:
        return self.period_number > self.periods_per_year

    def period_equivalent(self, annual: Decimal) -> Decimal:
        """Return the single-period share of an annual figure."""

        return annual / self.periods_per_year


def periods_per_year(period_type: str) -> int:
    try:
        return PERIODS_PER_YEAR[period_type]
    except KeyError as exc:
        raise ValueError(f"Unknown period type '{period_type}'") from exc


def tax_year_start(day: date) -> date:
    """Return the 6 April on or before ``day``."""

    start = date(day.year, _TAX_YEAR_START_MONTH, _TAX_YEAR_START_DAY)
    if day < start:
        return date(day.year - 1, _TAX_YEAR_START_MONTH, _TAX_YEAR_START_DAY)
    return start


def tax_year_label(start_year: int) -> str:
    return f"{start_year}-{(start_year + 1) % 100:02d}"


def tax_year_for(day: date) -> str:
    """Return the ``YYYY-YY`` tax year containing ``day``."""

    return tax_year_label(tax_year_start(day).year)


def period_number_for(day: date, period_type: str) -> int:
    """Return the 1-based period of ``period_type`` containing ``day``.

    Out-of-range results clamp to the valid range for the period type.
    """

    if period_type not in MAX_PERIOD_NUMBER:
        raise ValueError(f"Unknown period type '{period_type}'")

    start = tax_year_start(day)
    if period_type == "monthly":
        elapsed = (day.year - start.year) * 12 + day.month - start.month
        if day.day < _TAX_YEAR_START_DAY:
            elapsed -= 1
    else:
        elapsed = (day - start).days // _PERIOD_LENGTH_DAYS[period_type]

    return max(1, min(elapsed + 1, MAX_PERIOD_NUMBER[period_type]))


def default_period_number(day: date, period_type: str) -> int:
    """Return the period containing ``day``, or 0 for an unknown period type."""

    if period_type not in MAX_PERIOD_NUMBER:
        return 0
    return period_number_for(day, period_type)


def is_valid_period_number(period_number: int, period_type: str) -> bool:
    maximum = MAX_PERIOD_NUMBER.get(period_type)
    return maximum is not None and 1 <= period_number <= maximum


def normalise_period(
    period_start: date,
    period_type: str,
    period_number: int | None = None,
) -> PeriodContext:
    """Resolve the tax year and period number for a pay period."""

    divisor = periods_per_year(period_type)
    number = period_number
    if number is None:
        number = period_number_for(period_start, period_type)
    number = max(1, min(number, MAX_PERIOD_NUMBER[period_type]))

    return PeriodContext(
        tax_year=tax_year_for(period_start),
        period_type=period_type,
        period_number=number,
        periods_per_year=divisor,
    )


__all__ = [
    "MAX_PERIOD_NUMBER",
    "PeriodContext",
    "default_period_number",
    "is_valid_period_number",
    "normalise_period",
    "period_number_for",
    "periods_per_year",
    "tax_year_for",
    "tax_year_label",
    "tax_year_start",
]
