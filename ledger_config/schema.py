"""
Rate-set and settings schema.

A rate set is the human-authored, reviewable source artifact for one
version of the statutory payroll tables: the PAYE bands, the health
insurance brackets, the social-security tiers, the housing-levy rate and
the relief policy, all sharing one effective date.  YAML files under
``ledger_config/sets/`` are parsed into these types by the loader and
translated into kernel values by ``ledger_config.bridges``.

LedgerSettings carries the runtime knobs (database URL, echo, log level,
default currency).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

# ---------------------------------------------------------------------------
# Rate tables
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaxBandDef:
    """One progressive PAYE band.  max_amount None = unbounded."""

    band_order: int
    min_amount: Decimal
    max_amount: Decimal | None
    rate: Decimal
    description: str = ""


@dataclass(frozen=True)
class HealthBracketDef:
    """Flat health-insurance contribution for a gross range."""

    min_gross: Decimal
    max_gross: Decimal | None
    contribution: Decimal
    description: str = ""


@dataclass(frozen=True)
class SocialSecurityDef:
    tier1_limit: Decimal
    tier1_rate: Decimal
    tier2_limit: Decimal
    tier2_rate: Decimal
    description: str = ""


@dataclass(frozen=True)
class HousingLevyDef:
    rate: Decimal
    description: str = ""


@dataclass(frozen=True)
class ReliefPolicyDef:
    """Relief parameters; the defaults are the 2024 Kenyan values."""

    personal_relief: Decimal = Decimal("2400")
    insurance_rate: Decimal = Decimal("0.15")
    insurance_cap: Decimal = Decimal("5000")
    pension_rate: Decimal = Decimal("0.30")
    pension_cap: Decimal = Decimal("20000")
    mortgage_cap: Decimal = Decimal("25000")


@dataclass(frozen=True)
class RateTableSet:
    """
    Root artifact: one version of all four rate tables.

    checksum is the SHA-256 of the YAML document it was parsed from.
    """

    name: str
    jurisdiction: str
    currency: str
    tax_year: int
    effective_from: date
    effective_to: date | None
    tax_bands: tuple[TaxBandDef, ...]
    health_brackets: tuple[HealthBracketDef, ...]
    social_security: SocialSecurityDef
    housing_levy: HousingLevyDef
    reliefs: ReliefPolicyDef = field(default_factory=ReliefPolicyDef)
    checksum: str = ""


# ---------------------------------------------------------------------------
# Runtime settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerSettings:
    """Runtime settings, read once at start-up."""

    database_url: str = "sqlite://"
    echo: bool = False
    log_level: str = "INFO"
    default_currency: str = "KES"
    rate_set: str = "ke_2024"
