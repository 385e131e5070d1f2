"""Pydantic models describing the tax year configuration schema."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Annotated, Any, Mapping, Sequence

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    ValidationError,
    computed_field,
    field_validator,
    model_validator,
)

PERIODS_PER_YEAR: Mapping[str, int] = {
    "weekly": 52,
    "fortnightly": 26,
    "four_weekly": 13,
    "monthly": 12,
}

# Multiples of the published weekly threshold used for longer weekly-based periods.
_WEEKLY_MULTIPLIERS: Mapping[str, int] = {
    "weekly": 1,
    "fortnightly": 2,
    "four_weekly": 4,
}


class ConfigurationError(ValueError):
    """Raised when configuration values violate schema expectations."""


def to_decimal(value: Any) -> Any:
    """Coerce YAML/JSON numbers into exact decimals."""

    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, int):
        return Decimal(value)
    return value


Amount = Annotated[
    Decimal,
    BeforeValidator(to_decimal),
    PlainSerializer(float, return_type=float, when_used="json"),
]


class ImmutableModel(BaseModel):
    """Base class that freezes instances and rejects unknown fields."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


def _check_rate(value: Decimal, label: str) -> None:
    if value < 0 or value > 1:
        raise ConfigurationError(f"{label} must be between 0 and 1")


class Threshold(ImmutableModel):
    """Annual threshold with optional HMRC-published period equivalents."""

    annual: Amount
    weekly: Amount | None = None
    monthly: Amount | None = None

    @model_validator(mode="before")
    @classmethod
    def _coerce_scalar(cls, data: Any) -> Any:
        if isinstance(data, (Mapping, Threshold)):
            return data
        return {"annual": data}

    @model_validator(mode="after")
    def _validate_values(self) -> Threshold:
        for label, value in (
            ("annual", self.annual),
            ("weekly", self.weekly),
            ("monthly", self.monthly),
        ):
            if value is not None and value < 0:
                raise ConfigurationError(f"Threshold {label} values must be non-negative")
        return self

    def for_period(self, period_type: str) -> Decimal:
        """Return the threshold applicable to a single period of ``period_type``."""

        if period_type == "monthly" and self.monthly is not None:
            return self.monthly
        multiplier = _WEEKLY_MULTIPLIERS.get(period_type)
        if multiplier is not None and self.weekly is not None:
            return self.weekly * multiplier
        try:
            periods = PERIODS_PER_YEAR[period_type]
        except KeyError as exc:
            raise ConfigurationError(f"Unknown period type '{period_type}'") from exc
        return self.annual / periods


class TaxBand(ImmutableModel):
    """Represents a single income tax band over pay above the allowance."""

    name: str
    lower: Amount = Decimal("0")
    upper: Amount | None = None
    rate: Amount

    @model_validator(mode="after")
    def _validate_values(self) -> TaxBand:
        _check_rate(self.rate, f"Tax band '{self.name}' rate")
        if self.lower < 0:
            raise ConfigurationError("Tax band lower bounds must be non-negative")
        if self.upper is not None and self.upper <= self.lower:
            raise ConfigurationError(
                f"Tax band '{self.name}' upper bound must exceed its lower bound"
            )
        return self


class IncomeTaxConfig(ImmutableModel):
    """Regional band tables keyed by ``rest_of_uk``, ``scotland`` and ``wales``."""

    regions: Mapping[str, Sequence[TaxBand]]

    @model_validator(mode="after")
    def _validate_regions(self) -> IncomeTaxConfig:
        if "rest_of_uk" not in self.regions:
            raise ConfigurationError("Income tax configuration requires 'rest_of_uk' bands")
        for region, bands in self.regions.items():
            _validate_band_sequence(region, bands)
        return self

    def bands_for(self, region: str) -> Sequence[TaxBand]:
        try:
            return self.regions[region]
        except KeyError as exc:
            raise ConfigurationError(
                f"No income tax bands configured for region '{region}'"
            ) from exc


def _validate_band_sequence(region: str, bands: Sequence[TaxBand]) -> None:
    if not bands:
        raise ConfigurationError(f"At least one tax band must be defined for '{region}'")
    if bands[0].lower != 0:
        raise ConfigurationError(f"The first '{region}' tax band must start at zero")
    for previous, current in zip(bands, bands[1:]):
        if previous.upper is None or previous.upper != current.lower:
            raise ConfigurationError(
                f"Tax bands for '{region}' must be contiguous and in ascending order"
            )
    if bands[-1].upper is not None:
        raise ConfigurationError(f"Final '{region}' tax band must have an open upper bound")
    if not any(band.name == "basic" for band in bands):
        raise ConfigurationError(f"Tax bands for '{region}' must include a 'basic' band")


class NIThresholds(ImmutableModel):
    """Thresholds shared by every National Insurance category."""

    primary_threshold: Threshold
    upper_earnings_limit: Threshold
    secondary_threshold: Threshold


class NICategoryConfig(ImmutableModel):
    """Fully resolved rates and thresholds for one NI category letter."""

    description: str = ""
    employee_rate: Amount
    employee_rate_above_uel: Amount
    employer_rate: Amount
    primary_threshold: Threshold
    upper_earnings_limit: Threshold
    secondary_threshold: Threshold

    @model_validator(mode="after")
    def _validate_rates(self) -> NICategoryConfig:
        _check_rate(self.employee_rate, "NI employee rate")
        _check_rate(self.employee_rate_above_uel, "NI employee rate above UEL")
        _check_rate(self.employer_rate, "NI employer rate")
        if self.upper_earnings_limit.annual < self.primary_threshold.annual:
            raise ConfigurationError(
                "NI upper earnings limit cannot be below the primary threshold"
            )
        return self


class NationalInsuranceConfig(ImmutableModel):
    """Category table with thresholds merged from the shared defaults."""

    defaults: NIThresholds
    categories: Mapping[str, NICategoryConfig]

    @model_validator(mode="before")
    @classmethod
    def _merge_defaults(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            raise ConfigurationError("'national_insurance' section must be a mapping")

        prepared = dict(data)
        defaults = prepared.get("defaults")
        categories = prepared.get("categories")
        if not isinstance(defaults, Mapping):
            raise ConfigurationError("National insurance requires a 'defaults' section")
        if not isinstance(categories, Mapping) or not categories:
            raise ConfigurationError("National insurance requires a 'categories' table")

        merged: dict[str, Any] = {}
        for letter, category in categories.items():
            if not isinstance(category, Mapping):
                raise ConfigurationError(f"NI category '{letter}' must be a mapping")
            entry = {**defaults, **category}
            merged[str(letter).upper()] = entry
        prepared["categories"] = merged
        return prepared

    def category(self, letter: str) -> NICategoryConfig:
        try:
            return self.categories[letter.upper()]
        except KeyError as exc:
            raise ConfigurationError(
                f"No National Insurance configuration for category '{letter}'"
            ) from exc


class PensionConfig(ImmutableModel):
    """Auto-enrolment qualifying earnings band and default rates."""

    lower_qualifying_earnings: Threshold
    upper_qualifying_earnings: Threshold
    earnings_trigger: Amount
    employee_rate: Amount
    employer_rate: Amount

    @model_validator(mode="after")
    def _validate_config(self) -> PensionConfig:
        _check_rate(self.employee_rate, "Pension employee rate")
        _check_rate(self.employer_rate, "Pension employer rate")
        if self.upper_qualifying_earnings.annual <= self.lower_qualifying_earnings.annual:
            raise ConfigurationError(
                "Pension upper qualifying earnings must exceed the lower bound"
            )
        return self


class LoanPlanConfig(ImmutableModel):
    """Annual repayment threshold and rate for a loan plan."""

    threshold: Amount
    rate: Amount

    @model_validator(mode="after")
    def _validate_values(self) -> LoanPlanConfig:
        if self.threshold < 0:
            raise ConfigurationError("Loan thresholds must be non-negative")
        _check_rate(self.rate, "Loan repayment rate")
        return self


class StudentLoanConfig(ImmutableModel):
    """Undergraduate plan table plus the postgraduate loan."""

    plans: Mapping[str, LoanPlanConfig]
    postgraduate: LoanPlanConfig

    def plan(self, plan_id: str) -> LoanPlanConfig:
        if plan_id == "postgraduate":
            return self.postgraduate
        try:
            return self.plans[plan_id]
        except KeyError as exc:
            raise ConfigurationError(
                f"No student loan configuration for plan '{plan_id}'"
            ) from exc


class EarningsConfig(ImmutableModel):
    """Treatment of supplemental payment types."""

    tronc_niable: bool = False
    tronc_pensionable: bool = False


class TaxYearConfiguration(ImmutableModel):
    """Complete statutory configuration for one UK tax year."""

    tax_year: str
    effective_from: date
    effective_to: date
    personal_allowance: Amount
    default_tax_code: str = "1257L"
    income_tax: IncomeTaxConfig
    national_insurance: NationalInsuranceConfig
    pension: PensionConfig
    student_loans: StudentLoanConfig
    earnings: EarningsConfig = Field(default_factory=EarningsConfig)
    meta: Mapping[str, Any] = Field(default_factory=dict)

    @field_validator("tax_year")
    @classmethod
    def _validate_tax_year_label(cls, value: str) -> str:
        return validate_tax_year_label(value)

    @model_validator(mode="after")
    def _validate_dates(self) -> TaxYearConfiguration:
        start_year = int(self.tax_year[:4])
        if self.effective_from != date(start_year, 4, 6):
            raise ConfigurationError(
                f"Tax year {self.tax_year} must start on 6 April {start_year}"
            )
        if self.effective_to != date(start_year + 1, 4, 5):
            raise ConfigurationError(
                f"Tax year {self.tax_year} must end on 5 April {start_year + 1}"
            )
        return self

    def covers(self, day: date) -> bool:
        return self.effective_from <= day <= self.effective_to


def validate_tax_year_label(value: str) -> str:
    """Ensure ``value`` looks like ``2024-25`` with consecutive years."""

    text = str(value).strip()
    if len(text) != 7 or text[4] != "-" or not (text[:4] + text[5:]).isdigit():
        raise ConfigurationError(f"Tax year '{value}' must use the YYYY-YY format")
    start = int(text[:4])
    if (start + 1) % 100 != int(text[5:]):
        raise ConfigurationError(f"Tax year '{value}' must span consecutive years")
    return text


class TaxYearManifestEntry(ImmutableModel):
    """Entry describing a supported tax year in the manifest."""

    tax_year: str
    filename: str | None = None
    status: str = "active"
    notes_url: str | None = None

    @field_validator("tax_year", mode="before")
    @classmethod
    def _coerce_label(cls, value: Any) -> str:
        return validate_tax_year_label(str(value))

    @computed_field
    @property
    def resolved_filename(self) -> str:
        return self.filename or f"{self.tax_year}.yaml"


class TaxYearManifest(ImmutableModel):
    """Manifest describing the available tax year configuration files."""

    years: Sequence[TaxYearManifestEntry]

    @model_validator(mode="after")
    def _validate_years(self) -> TaxYearManifest:
        seen: set[str] = set()
        for entry in self.years:
            if entry.tax_year in seen:
                raise ConfigurationError(
                    f"Duplicate tax year {entry.tax_year} declared in the configuration manifest"
                )
            seen.add(entry.tax_year)
        return self

    def get_entry(self, tax_year: str) -> TaxYearManifestEntry:
        for entry in self.years:
            if entry.tax_year == tax_year:
                return entry
        raise KeyError(tax_year)

    @computed_field
    @property
    def supported_tax_years(self) -> tuple[str, ...]:
        return tuple(sorted(entry.tax_year for entry in self.years))


__all__ = [
    "Amount",
    "ConfigurationError",
    "EarningsConfig",
    "ImmutableModel",
    "IncomeTaxConfig",
    "LoanPlanConfig",
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
    "ValidationError",
    "to_decimal",
    "validate_tax_year_label",
]
