"""
Rate-table value objects.

The selector turns rate-table rows into these immutable values for a given
calculation date; the PAYE engine consumes them without any I/O.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal


@dataclass(frozen=True)
class TaxBand:
    """
    One progressive band.

    width is max_amount - min_amount; an open max_amount makes the band
    unbounded.
    """

    band_order: int
    min_amount: Decimal
    max_amount: Decimal | None
    rate: Decimal
    description: str = ""

    def __post_init__(self) -> None:
        if self.rate < Decimal("0"):
            raise ValueError("Tax band rate cannot be negative")
        if self.max_amount is not None and self.max_amount < self.min_amount:
            raise ValueError("Tax band max_amount is below min_amount")

    @property
    def width(self) -> Decimal | None:
        if self.max_amount is None:
            return None
        return self.max_amount - self.min_amount


@dataclass(frozen=True)
class HealthInsuranceBracket:
    """Flat contribution for min_gross <= gross <= max_gross."""

    min_gross: Decimal
    max_gross: Decimal | None
    contribution: Decimal
    description: str = ""

    def contains(self, gross: Decimal) -> bool:
        if gross < self.min_gross:
            return False
        return self.max_gross is None or gross <= self.max_gross


@dataclass(frozen=True)
class SocialSecurityTiers:
    tier1_limit: Decimal
    tier1_rate: Decimal
    tier2_limit: Decimal
    tier2_rate: Decimal
    description: str = ""


@dataclass(frozen=True)
class RateSnapshot:
    """Everything one PAYE calculation needs, resolved for one date and gross."""

    as_of: date
    bands: tuple[TaxBand, ...]
    health_insurance: HealthInsuranceBracket
    social_security: SocialSecurityTiers
    housing_levy_rate: Decimal


@dataclass(frozen=True)
class TaxTables:
    """All four tables as active on one date, for display."""

    as_of: date
    bands: tuple[TaxBand, ...]
    health_insurance_brackets: tuple[HealthInsuranceBracket, ...]
    social_security: SocialSecurityTiers
    housing_levy_rate: Decimal


@dataclass(frozen=True)
class RateTableVersion:
    """A complete set of the four tables sharing one effective period."""

    effective_from: date
    effective_to: date | None
    tax_year: int
    bands: tuple[TaxBand, ...]
    health_insurance_brackets: tuple[HealthInsuranceBracket, ...]
    social_security: SocialSecurityTiers
    housing_levy_rate: Decimal
    housing_levy_description: str = ""
