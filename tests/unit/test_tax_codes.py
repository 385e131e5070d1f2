"""Unit coverage for PAYE tax code parsing."""

from __future__ import annotations

from decimal import Decimal

import pytest

from ukpayroll.backend.app.services.calculators.tax_codes import (
    TaxCodeError,
    parse_tax_code,
)


@pytest.mark.parametrize(
    ("code", "region", "allowance"),
    [
        ("1257L", "rest_of_uk", Decimal("12570")),
        (" 1257l ", "rest_of_uk", Decimal("12570")),
        ("S1257L", "scotland", Decimal("12570")),
        ("C1257L", "wales", Decimal("12570")),
        ("1100M", "rest_of_uk", Decimal("11000")),
        ("0T", "rest_of_uk", Decimal("0")),
        ("S0T", "scotland", Decimal("0")),
    ],
)
def test_standard_codes_grant_ten_times_the_digits(
    code: str, region: str, allowance: Decimal
) -> None:
    parsed = parse_tax_code(code)

    assert parsed.kind == "standard"
    assert parsed.region == region
    assert parsed.allowance == allowance


@pytest.mark.parametrize(
    ("code", "region", "offset"),
    [("BR", "rest_of_uk", 0), ("D0", "rest_of_uk", 1), ("D1", "rest_of_uk", 2), ("SD2", "scotland", 3)],
)
def test_flat_rate_codes(code: str, region: str, offset: int) -> None:
    parsed = parse_tax_code(code)

    assert parsed.kind == "flat"
    assert parsed.region == region
    assert parsed.band_offset == offset
    assert parsed.allowance == 0


def test_nt_means_no_tax() -> None:
    assert parse_tax_code("NT").kind == "no_tax"


def test_k_codes_are_rejected_explicitly() -> None:
    with pytest.raises(TaxCodeError, match="K tax codes are not supported"):
        parse_tax_code("K475")


@pytest.mark.parametrize("code", ["", "1257", "L1257", "1257X", "XBR", "12345678L"])
def test_malformed_codes_are_rejected(code: str) -> None:
    with pytest.raises(TaxCodeError):
        parse_tax_code(code)
