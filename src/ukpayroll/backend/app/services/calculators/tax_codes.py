"""Parsing of PAYE tax codes into allowance, region and treatment."""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Literal, Mapping

TaxCodeKind = Literal["standard", "flat", "no_tax"]

_REGION_PREFIXES: Mapping[str, str] = {
    "": "rest_of_uk",
    "S": "scotland",
    "C": "wales",
}

_STANDARD_CODE = re.compile(r"^(?P<prefix>[SC]?)(?P<digits>\d{1,4})(?P<suffix>[LMNT])$")
_FLAT_CODE = re.compile(r"^(?P<prefix>[SC]?)(?P<code>BR|D(?P<offset>\d))$")
_K_CODE = re.compile(r"^[SC]?K\d+$")


@dataclass(frozen=True, slots=True)
class ParsedTaxCode:
    """Structured view of a tax code."""

    code: str
    kind: TaxCodeKind
    region: str
    allowance: Decimal = Decimal("0")
    # Bands after the ``basic`` band for BR (0), D0 (1), D1 (2) and so on.
    band_offset: int = 0


class TaxCodeError(ValueError):
    """Raised when a tax code cannot be interpreted."""


def normalise_tax_code(code: str) -> str:
    return code.strip().upper().replace(" ", "")


def parse_tax_code(code: str) -> ParsedTaxCode:
    """Return the structured form of ``code``.

    ``1257L`` grants a £12,570 allowance, the ``S`` and ``C`` prefixes select
    Scottish and Welsh bands, ``BR``/``D0``/``D1`` tax every pound at a single
    band's rate and ``NT`` means no tax is deducted.
    """

    normalised = normalise_tax_code(code)

    if normalised == "NT":
        return ParsedTaxCode(code=normalised, kind="no_tax", region="rest_of_uk")

    match = _STANDARD_CODE.match(normalised)
    if match:
        return ParsedTaxCode(
            code=normalised,
            kind="standard",
            region=_REGION_PREFIXES[match.group("prefix")],
            allowance=Decimal(int(match.group("digits")) * 10),
        )

    match = _FLAT_CODE.match(normalised)
    if match:
        offset = match.group("offset")
        return ParsedTaxCode(
            code=normalised,
            kind="flat",
            region=_REGION_PREFIXES[match.group("prefix")],
            band_offset=0 if offset is None else int(offset) + 1,
        )

    if _K_CODE.match(normalised):
        raise TaxCodeError(f"K tax codes are not supported: '{code}'")
    raise TaxCodeError(f"Unrecognised tax code '{code}'")


__all__ = [
    "ParsedTaxCode",
    "TaxCodeError",
    "TaxCodeKind",
    "normalise_tax_code",
    "parse_tax_code",
]
