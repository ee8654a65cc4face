"""
Config -> Kernel Bridges.

Functions that convert parsed rate sets into kernel and engine inputs.
These live in ledger_config (the producer) because the kernel must never
import ledger_config.

Usage:
    from ledger_config import get_rate_set
    from ledger_config.bridges import to_rate_table_version, to_relief_policy

    rate_set = get_rate_set("ke_2024")
    RateTableService(session).install(to_rate_table_version(rate_set))
    calculator = PayeCalculator(policy=to_relief_policy(rate_set))
"""

from __future__ import annotations

from ledger_config.schema import RateTableSet
from ledger_engines.paye import ReliefPolicy
from ledger_kernel.domain.rates import (
    HealthInsuranceBracket,
    RateTableVersion,
    SocialSecurityTiers,
    TaxBand,
)


def to_rate_table_version(rate_set: RateTableSet) -> RateTableVersion:
    """Translate a RateTableSet into the value RateTableService installs."""
    ss = rate_set.social_security
    return RateTableVersion(
        effective_from=rate_set.effective_from,
        effective_to=rate_set.effective_to,
        tax_year=rate_set.tax_year,
        bands=tuple(
            TaxBand(
                band_order=b.band_order,
                min_amount=b.min_amount,
                max_amount=b.max_amount,
                rate=b.rate,
                description=b.description,
            )
            for b in rate_set.tax_bands
        ),
        health_insurance_brackets=tuple(
            HealthInsuranceBracket(
                min_gross=b.min_gross,
                max_gross=b.max_gross,
                contribution=b.contribution,
                description=b.description,
            )
            for b in rate_set.health_brackets
        ),
        social_security=SocialSecurityTiers(
            tier1_limit=ss.tier1_limit,
            tier1_rate=ss.tier1_rate,
            tier2_limit=ss.tier2_limit,
            tier2_rate=ss.tier2_rate,
            description=ss.description,
        ),
        housing_levy_rate=rate_set.housing_levy.rate,
        housing_levy_description=rate_set.housing_levy.description,
    )


def to_relief_policy(rate_set: RateTableSet) -> ReliefPolicy:
    """The engine's relief parameters for this rate set."""
    r = rate_set.reliefs
    return ReliefPolicy(
        personal_relief=r.personal_relief,
        insurance_rate=r.insurance_rate,
        insurance_cap=r.insurance_cap,
        pension_rate=r.pension_rate,
        pension_cap=r.pension_cap,
        mortgage_cap=r.mortgage_cap,
    )
