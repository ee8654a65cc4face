"""
PAYE Engine - statutory payroll deductions for a gross salary.

Computes progressive income tax over banded rates, capped reliefs, two-tier
social security (NSSF), the bracketed health-insurance contribution (NHIF)
and the flat housing levy.  Pure functions with no I/O: the rate tables
arrive as a RateSnapshot resolved for the calculation date.

Every intermediate monetary value is rounded to 2 dp (half up) as soon as
it is computed, so the stored breakdown adds up to the displayed totals.

Usage:
    from ledger_engines.paye import PayeCalculator, ReliefInputs

    snapshot = RateTableSelector(session).resolve_rate_snapshot(gross, as_of)
    result = PayeCalculator().calculate(
        gross_salary=Decimal("150000"),
        rates=snapshot,
        reliefs=ReliefInputs(pension_contribution=Decimal("10000")),
    )
    print(result.paye)        # Decimal('34383.40')
    print(result.net_salary)
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Sequence

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.money import ZERO, round_money
from ledger_kernel.domain.rates import HealthInsuranceBracket, RateSnapshot
from ledger_kernel.exceptions import ConfigurationMissingError, ValidationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.paye")


@dataclass(frozen=True)
class ReliefPolicy:
    """
    Relief parameters.

    Defaults are the Kenyan monthly values in force since 2024.
    """

    personal_relief: Decimal = Decimal("2400")
    insurance_rate: Decimal = Decimal("0.15")
    insurance_cap: Decimal = Decimal("5000")
    pension_rate: Decimal = Decimal("0.30")
    pension_cap: Decimal = Decimal("20000")
    mortgage_cap: Decimal = Decimal("25000")


@dataclass(frozen=True)
class ReliefInputs:
    """Relief-qualifying amounts paid in the period.  Zero means none."""

    insurance_premium: Decimal = ZERO
    pension_contribution: Decimal = ZERO
    mortgage_interest: Decimal = ZERO

    def __post_init__(self) -> None:
        for name in ("insurance_premium", "pension_contribution", "mortgage_interest"):
            if getattr(self, name) < ZERO:
                raise ValidationError(f"{name} cannot be negative", field=name)


@dataclass(frozen=True)
class DeductionOverrides:
    """
    Manually supplied component values.

    Each non-None value replaces the computed one for that component only.
    """

    paye: Decimal | None = None
    nhif: Decimal | None = None
    nssf_tier1: Decimal | None = None
    nssf_tier2: Decimal | None = None
    housing_levy: Decimal | None = None

    def __post_init__(self) -> None:
        for name in self.supplied():
            if getattr(self, name) < ZERO:
                raise ValidationError(f"{name} override cannot be negative", field=name)

    def supplied(self) -> tuple[str, ...]:
        return tuple(
            name
            for name in ("paye", "nhif", "nssf_tier1", "nssf_tier2", "housing_levy")
            if getattr(self, name) is not None
        )


@dataclass(frozen=True)
class BandLine:
    """Tax contributed by one band."""

    band_description: str
    taxable_amount: Decimal
    rate: Decimal
    tax: Decimal


@dataclass(frozen=True)
class ReliefLine:
    """One relief and its capped value."""

    relief_type: str
    amount: Decimal


@dataclass(frozen=True)
class PayeResult:
    """
    Full deduction breakdown for one gross salary.

    Immutable value object.  total_deductions and net_salary are derived
    from whatever mix of computed and overridden components is in effect.
    """

    gross_salary: Decimal
    calculation_date: date

    paye_before_relief: Decimal
    personal_relief: Decimal
    insurance_relief: Decimal
    pension_relief: Decimal
    mortgage_relief: Decimal
    paye: Decimal

    nhif: Decimal
    nssf_tier1: Decimal
    nssf_tier2: Decimal
    housing_levy: Decimal

    band_lines: tuple[BandLine, ...] = ()
    relief_lines: tuple[ReliefLine, ...] = ()
    overridden: tuple[str, ...] = field(default_factory=tuple)

    @property
    def total_relief(self) -> Decimal:
        return (
            self.personal_relief
            + self.insurance_relief
            + self.pension_relief
            + self.mortgage_relief
        )

    @property
    def nssf_total(self) -> Decimal:
        return self.nssf_tier1 + self.nssf_tier2

    @property
    def total_deductions(self) -> Decimal:
        return self.paye + self.nhif + self.nssf_total + self.housing_levy

    @property
    def net_salary(self) -> Decimal:
        return self.gross_salary - self.total_deductions

    def to_breakdown(self) -> dict:
        """JSON-safe audit trace, stored verbatim on the payroll record."""
        return {
            "calculation_date": self.calculation_date.isoformat(),
            "tax_bands": [
                {
                    "band_description": line.band_description,
                    "taxable_amount": str(line.taxable_amount),
                    "rate": str(line.rate),
                    "tax": str(line.tax),
                }
                for line in self.band_lines
            ],
            "reliefs": [
                {"relief_type": line.relief_type, "amount": str(line.amount)}
                for line in self.relief_lines
            ],
            "overridden": list(self.overridden),
        }


def select_health_bracket(
    brackets: Sequence[HealthInsuranceBracket],
    gross: Decimal,
    as_of: date | None = None,
) -> HealthInsuranceBracket:
    """
    Pick the bracket containing ``gross`` from an in-memory table.

    Raises:
        ConfigurationMissingError: no bracket, or more than one.
    """
    matches = [b for b in brackets if b.contains(gross)]
    if len(matches) != 1:
        raise ConfigurationMissingError(
            table="health_insurance_brackets",
            as_of=as_of.isoformat() if as_of else "",
            detail=f"{len(matches)} brackets contain gross {gross}",
        )
    return matches[0]


class PayeCalculator:
    """
    Calculate statutory payroll deductions.

    Pure functions - no I/O, no database access.  Rates provided as a
    RateSnapshot; the clock only supplies the default calculation date.
    """

    def __init__(self, clock: Clock | None = None, policy: ReliefPolicy | None = None):
        self._clock = clock or SystemClock()
        self._policy = policy or ReliefPolicy()

    def progressive_tax(
        self, gross: Decimal, bands: Sequence
    ) -> tuple[Decimal, tuple[BandLine, ...]]:
        """
        Marginal-rate tax of ``gross`` over ``bands``.

        Bands are applied in band_order.  Each band taxes at most its width
        (max - min, unbounded when max is open) of the income not yet taxed.

        Returns:
            (total tax, one BandLine per band that taxed something)
        """
        remaining = gross
        total = ZERO
        lines: list[BandLine] = []
        for band in sorted(bands, key=lambda b: b.band_order):
            if remaining <= ZERO:
                break
            width = band.width
            taxable = remaining if width is None else min(remaining, width)
            tax = round_money(taxable * band.rate)
            lines.append(
                BandLine(
                    band_description=band.description or f"Band {band.band_order}",
                    taxable_amount=round_money(taxable),
                    rate=band.rate,
                    tax=tax,
                )
            )
            total += tax
            remaining -= taxable
        return total, tuple(lines)

    def reliefs(
        self, gross: Decimal, inputs: ReliefInputs, policy: ReliefPolicy | None = None
    ) -> tuple[Decimal, Decimal, Decimal, Decimal, tuple[ReliefLine, ...]]:
        """
        Capped reliefs.

        Returns:
            (personal, insurance, pension, mortgage, trace lines)
        """
        policy = policy or self._policy
        personal = round_money(policy.personal_relief)
        lines = [ReliefLine("Personal Relief", personal)]

        insurance = ZERO
        if inputs.insurance_premium > ZERO:
            insurance = min(
                round_money(inputs.insurance_premium * policy.insurance_rate),
                round_money(policy.insurance_cap),
            )
            lines.append(ReliefLine("Insurance Relief", insurance))

        pension = ZERO
        if inputs.pension_contribution > ZERO:
            gross_cap = min(
                round_money(gross * policy.pension_rate),
                round_money(policy.pension_cap),
            )
            pension = min(
                round_money(inputs.pension_contribution * policy.pension_rate),
                gross_cap,
            )
            lines.append(ReliefLine("Pension Relief", pension))

        mortgage = ZERO
        if inputs.mortgage_interest > ZERO:
            mortgage = min(
                round_money(inputs.mortgage_interest),
                round_money(policy.mortgage_cap),
            )
            lines.append(ReliefLine("Mortgage Interest Relief", mortgage))

        return personal, insurance, pension, mortgage, tuple(lines)

    def social_security(self, gross: Decimal, rates: RateSnapshot) -> tuple[Decimal, Decimal]:
        """Tier-1 and tier-2 contributions."""
        tiers = rates.social_security
        tier1 = round_money(min(gross, tiers.tier1_limit) * tiers.tier1_rate)
        tier2 = ZERO
        if gross > tiers.tier1_limit:
            tier2 = round_money(
                (min(gross, tiers.tier2_limit) - tiers.tier1_limit) * tiers.tier2_rate
            )
        return tier1, tier2

    def calculate(
        self,
        gross_salary: Decimal,
        rates: RateSnapshot,
        reliefs: ReliefInputs | None = None,
        overrides: DeductionOverrides | None = None,
        calculation_date: date | None = None,
        policy: ReliefPolicy | None = None,
    ) -> PayeResult:
        """
        Calculate the full deduction breakdown.

        Args:
            gross_salary: Positive Decimal gross pay for the period.
            rates: Tables resolved for the calculation date and this gross.
            reliefs: Relief-qualifying payments.
            overrides: Manual component values.
            calculation_date: Defaults to the clock's today.
            policy: Relief parameters for this call only; defaults to the
                calculator's policy.

        Returns:
            PayeResult with every component and the band/relief trace.

        Raises:
            ValidationError: gross is not a positive Decimal in whole cents.
            ConfigurationMissingError: the snapshot's bracket does not
                contain the gross.
        """
        if not isinstance(gross_salary, Decimal) or not gross_salary.is_finite():
            raise ValidationError("gross_salary must be a finite Decimal", field="gross_salary")
        if gross_salary <= ZERO:
            raise ValidationError("gross_salary must be greater than zero", field="gross_salary")
        if gross_salary != round_money(gross_salary):
            raise ValidationError(
                "gross_salary cannot have more than 2 decimal places", field="gross_salary"
            )

        reliefs = reliefs or ReliefInputs()
        overrides = overrides or DeductionOverrides()
        calculation_date = calculation_date or self._clock.today()

        t0 = time.monotonic()
        logger.info("paye_calculation_started", extra={
            "gross_salary": str(gross_salary),
            "calculation_date": calculation_date.isoformat(),
            "band_count": len(rates.bands),
            "overrides": list(overrides.supplied()),
        })

        if not rates.health_insurance.contains(gross_salary):
            logger.error("health_bracket_mismatch", extra={
                "gross_salary": str(gross_salary),
                "min_gross": str(rates.health_insurance.min_gross),
                "max_gross": str(rates.health_insurance.max_gross),
            })
            raise ConfigurationMissingError(
                table="health_insurance_brackets",
                as_of=calculation_date.isoformat(),
                detail=f"bracket does not contain gross {gross_salary}",
            )

        before_relief, band_lines = self.progressive_tax(gross_salary, rates.bands)
        personal, insurance, pension, mortgage, relief_lines = self.reliefs(
            gross_salary, reliefs, policy
        )
        total_relief = personal + insurance + pension + mortgage
        paye = max(ZERO, before_relief - total_relief)

        nhif = round_money(rates.health_insurance.contribution)
        tier1, tier2 = self.social_security(gross_salary, rates)
        housing = round_money(gross_salary * rates.housing_levy_rate)

        if overrides.paye is not None:
            paye = round_money(overrides.paye)
        if overrides.nhif is not None:
            nhif = round_money(overrides.nhif)
        if overrides.nssf_tier1 is not None:
            tier1 = round_money(overrides.nssf_tier1)
        if overrides.nssf_tier2 is not None:
            tier2 = round_money(overrides.nssf_tier2)
        if overrides.housing_levy is not None:
            housing = round_money(overrides.housing_levy)

        result = PayeResult(
            gross_salary=round_money(gross_salary),
            calculation_date=calculation_date,
            paye_before_relief=before_relief,
            personal_relief=personal,
            insurance_relief=insurance,
            pension_relief=pension,
            mortgage_relief=mortgage,
            paye=paye,
            nhif=nhif,
            nssf_tier1=tier1,
            nssf_tier2=tier2,
            housing_levy=housing,
            band_lines=band_lines,
            relief_lines=relief_lines,
            overridden=overrides.supplied(),
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("paye_calculation_completed", extra={
            "gross_salary": str(result.gross_salary),
            "paye_before_relief": str(result.paye_before_relief),
            "total_relief": str(result.total_relief),
            "paye": str(result.paye),
            "total_deductions": str(result.total_deductions),
            "net_salary": str(result.net_salary),
            "duration_ms": duration_ms,
        })

        return result
