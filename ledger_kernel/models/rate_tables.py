"""
Module: ledger_kernel.models.rate_tables
Responsibility: ORM persistence for the date-versioned statutory rate tables:
    income tax bands, health-insurance brackets, social-security tiers and the
    housing-levy rate.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Every row carries effective_from and an optional effective_to
      (NULL = still active).  Historical versions coexist.
    - For any date exactly one version per table must be active.  The
      store does not enforce this with a constraint; the selector treats zero
      or several matches as a configuration error.

Audit relevance:
    Rows are never edited to change a rate.  A new version is inserted and
    the previous one is closed, so past payroll calculations stay
    reproducible from the table.
"""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base


class RateTableKind(str, Enum):
    """The four rate tables."""

    TAX_BANDS = "tax_bands"
    HEALTH_INSURANCE = "health_insurance_brackets"
    SOCIAL_SECURITY = "social_security_configs"
    HOUSING_LEVY = "housing_levy_configs"


class _EffectiveDated:
    """Columns shared by every rate table."""

    effective_from: Mapped[date] = mapped_column(Date, nullable=False)

    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)

    description: Mapped[str | None] = mapped_column(String(255), nullable=True)


class TaxBandRow(_EffectiveDated, Base):
    """One progressive income-tax band.  max_amount NULL = unbounded."""

    __tablename__ = "tax_bands"

    __table_args__ = (
        Index("idx_tax_bands_effective", "effective_from", "effective_to"),
        Index("idx_tax_bands_order", "band_order"),
    )

    tax_year: Mapped[int] = mapped_column(Integer, nullable=False)

    band_order: Mapped[int] = mapped_column(Integer, nullable=False)

    min_amount: Mapped[Decimal] = mapped_column(nullable=False)

    max_amount: Mapped[Decimal | None] = mapped_column(nullable=True)

    rate: Mapped[Decimal] = mapped_column(nullable=False)


class HealthInsuranceBracketRow(_EffectiveDated, Base):
    """Flat contribution for a gross-income range.  max_gross NULL = no cap."""

    __tablename__ = "health_insurance_brackets"

    __table_args__ = (
        Index("idx_health_brackets_effective", "effective_from", "effective_to"),
        Index("idx_health_brackets_range", "min_gross", "max_gross"),
    )

    min_gross: Mapped[Decimal] = mapped_column(nullable=False)

    max_gross: Mapped[Decimal | None] = mapped_column(nullable=True)

    contribution: Mapped[Decimal] = mapped_column(nullable=False)


class SocialSecurityConfigRow(_EffectiveDated, Base):
    """Two-tier social-security contribution parameters."""

    __tablename__ = "social_security_configs"

    __table_args__ = (
        Index("idx_social_security_effective", "effective_from", "effective_to"),
    )

    tier1_limit: Mapped[Decimal] = mapped_column(nullable=False)

    tier1_rate: Mapped[Decimal] = mapped_column(nullable=False)

    tier2_limit: Mapped[Decimal] = mapped_column(nullable=False)

    tier2_rate: Mapped[Decimal] = mapped_column(nullable=False)


class HousingLevyConfigRow(_EffectiveDated, Base):
    """Flat housing-levy rate on gross pay."""

    __tablename__ = "housing_levy_configs"

    __table_args__ = (
        Index("idx_housing_levy_effective", "effective_from", "effective_to"),
    )

    rate: Mapped[Decimal] = mapped_column(nullable=False)


RATE_TABLE_MODELS = {
    RateTableKind.TAX_BANDS: TaxBandRow,
    RateTableKind.HEALTH_INSURANCE: HealthInsuranceBracketRow,
    RateTableKind.SOCIAL_SECURITY: SocialSecurityConfigRow,
    RateTableKind.HOUSING_LEVY: HousingLevyConfigRow,
}
