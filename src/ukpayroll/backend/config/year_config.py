"""Configuration loader wrapping the shared schema models."""

from __future__ import annotations

import logging
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Any, Sequence

import yaml
from pydantic import ValidationError

from .schema import (
    PERIODS_PER_YEAR,
    ConfigurationError,
    EarningsConfig,
    IncomeTaxConfig,
    LoanPlanConfig,
    NationalInsuranceConfig,
    NICategoryConfig,
    NIThresholds,
    PensionConfig,
    StudentLoanConfig,
    TaxBand,
    TaxYearConfiguration,
    TaxYearManifest,
    TaxYearManifestEntry,
    Threshold,
    validate_tax_year_label,
)

_LOGGER = logging.getLogger(__name__)

CONFIG_DIRECTORY = Path(__file__).resolve().parent / "data"
MANIFEST_FILE = CONFIG_DIRECTORY / "manifest.yaml"


def _load_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration file must define a mapping at the top level")
    return data


@lru_cache(maxsize=1)
def load_manifest() -> TaxYearManifest:
    """Load and cache the configuration manifest."""

    if not MANIFEST_FILE.exists():
        raise FileNotFoundError("Configuration manifest not found")

    raw_manifest = _load_yaml(MANIFEST_FILE)

    try:
        return TaxYearManifest.model_validate(raw_manifest)
    except ValidationError as error:  # pragma: no cover - defensive
        raise ConfigurationError(f"Manifest validation failed: {error}") from error


def manifest_entries() -> Sequence[TaxYearManifestEntry]:
    """Expose the configured manifest entries."""

    return load_manifest().years


@lru_cache(maxsize=8)
def load_tax_year_configuration(tax_year: str) -> TaxYearConfiguration:
    """Load configuration for the specified tax year (``YYYY-YY``) from disk."""

    tax_year = validate_tax_year_label(tax_year)
    try:
        manifest_entry = load_manifest().get_entry(tax_year)
    except KeyError as exc:
        raise FileNotFoundError(
            f"Configuration for tax year {tax_year} not declared in manifest"
        ) from exc

    config_file = CONFIG_DIRECTORY / manifest_entry.resolved_filename
    if not config_file.exists():
        raise FileNotFoundError(
            f"Configuration file for tax year {tax_year} missing: {config_file.name}"
        )

    raw_config = _load_yaml(config_file)
    raw_config.setdefault("tax_year", tax_year)

    try:
        configuration = TaxYearConfiguration.model_validate(raw_config)
    except ValidationError as error:
        raise ConfigurationError(
            f"Configuration validation failed for {tax_year}: {error}"
        ) from error

    if configuration.tax_year != tax_year:
        raise ConfigurationError(
            f"Configuration tax year mismatch: expected {tax_year}, found {configuration.tax_year}"
        )

    return configuration


def available_tax_years() -> Sequence[str]:
    """Return the tax years declared in the manifest."""

    return load_manifest().supported_tax_years


def default_tax_year() -> str | None:
    """Return the most recent configured tax year."""

    years = available_tax_years()
    return years[-1] if years else None


def derive_tax_year_configuration(tax_year: str) -> TaxYearConfiguration:
    """Return the most recent shipped configuration re-labelled for ``tax_year``.

    Raises ``FileNotFoundError`` when no tax year is configured at all.
    """

    tax_year = validate_tax_year_label(tax_year)
    source_year = default_tax_year()
    if source_year is None:
        raise FileNotFoundError("No tax year configurations are available")

    source = load_tax_year_configuration(source_year)
    start_year = int(tax_year[:4])
    return source.model_copy(
        update={
            "tax_year": tax_year,
            "effective_from": date(start_year, 4, 6),
            "effective_to": date(start_year + 1, 4, 5),
            "meta": {**source.meta, "derived_from": source_year},
        }
    )


def load_or_derive_tax_year_configuration(tax_year: str) -> TaxYearConfiguration:
    """Load ``tax_year`` when it is declared, otherwise derive a default for it."""

    tax_year = validate_tax_year_label(tax_year)
    if tax_year in available_tax_years():
        return load_tax_year_configuration(tax_year)

    configuration = derive_tax_year_configuration(tax_year)
    _LOGGER.warning(
        "No configuration declared for tax year %s; using figures from %s",
        tax_year,
        configuration.meta["derived_from"],
    )
    return configuration


__all__ = [
    "CONFIG_DIRECTORY",
    "ConfigurationError",
    "EarningsConfig",
    "IncomeTaxConfig",
    "LoanPlanConfig",
    "MANIFEST_FILE",
    "NationalInsuranceConfig",
    "NICategoryConfig",
    "NIThresholds",
    "PERIODS_PER_YEAR",
    "PensionConfig",
    "StudentLoanConfig",
    "TaxBand",
    "TaxYearConfiguration",
    "TaxYearManifest",
    "TaxYearManifestEntry",
    "Threshold",
    "available_tax_years",
    "default_tax_year",
    "derive_tax_year_configuration",
    "load_manifest",
    "load_or_derive_tax_year_configuration",
    "load_tax_year_configuration",
    "manifest_entries",
]
