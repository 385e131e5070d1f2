"""Utility helpers for calculator modules."""

from __future__ import annotations

from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal

from ukpayroll.backend.app.models import TaxBandDetail
from ukpayroll.backend.config.year_config import TaxBand

ZERO = Decimal("0")
_PENNY = Decimal("0.01")


def round_currency(value: Decimal) -> Decimal:
    """Round monetary amounts to pence, halves rounding away from zero."""

    return value.quantize(_PENNY, rounding=ROUND_HALF_UP)


def clamp_non_negative(value: Decimal) -> Decimal:
    return value if value > ZERO else ZERO


def scale_amount(value: Decimal, numerator: int, denominator: int) -> Decimal:
    """Return ``value * numerator / denominator`` multiplying before dividing."""

    return value * numerator / denominator


def format_percentage(value: Decimal) -> str:
    """Return a human-readable percentage label for ``value``."""

    percentage = (value * 100).normalize()
    if percentage == percentage.to_integral_value():
        return f"{int(percentage)}%"
    return f"{percentage:.2f}%"


def format_currency(value: Decimal) -> str:
    return f"£{value:,.2f}"


def calculate_banded_tax(
    amount: Decimal,
    bands: Sequence[TaxBand],
    numerator: int = 1,
    denominator: int = 1,
) -> tuple[Decimal, list[TaxBandDetail]]:
    """Allocate ``amount`` across ``bands`` scaled by ``numerator / denominator``.

    Returns the unrounded total alongside a per-band breakdown whose figures
    are rounded for presentation only.
    """

    total = ZERO
    breakdown: list[TaxBandDetail] = []
    if amount <= 0:
        return total, breakdown

    for band in bands:
        lower = scale_amount(band.lower, numerator, denominator)
        if amount <= lower:
            break

        if band.upper is None:
            portion = amount - lower
        else:
            upper = scale_amount(band.upper, numerator, denominator)
            portion = min(amount, upper) - lower

        tax = portion * band.rate
        total += tax
        breakdown.append(
            TaxBandDetail(
                name=band.name,
                rate=band.rate,
                taxable_amount=round_currency(portion),
                tax=round_currency(tax),
            )
        )

    return total, breakdown


__all__ = [
    "ZERO",
    "calculate_banded_tax",
    "clamp_non_negative",
    "format_currency",
    "format_percentage",
    "round_currency",
    "scale_amount",
]
