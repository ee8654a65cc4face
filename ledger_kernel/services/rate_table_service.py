"""
RateTableService -- loads versions of the statutory rate tables.

Responsibility:
    Insert a RateTableVersion (all four tables with one effective period)
    and close the open-ended rows it supersedes, so that exactly one
    version of each table is active on any date.

Architecture position:
    Kernel > Services.  Flush-only.  Receives kernel values; translating a
    YAML rate set into a RateTableVersion is ledger_config.bridges' job.

Invariants enforced:
    - Existing rows are never edited except to set effective_to on the row
      being superseded (the day before the new version starts).
    - A version may not start on or before the start of an existing one
      for the same table; history is appended, not rewritten.

Failure modes:
    - ValidationError on overlapping or empty versions.
"""

from datetime import timedelta

from sqlalchemy import select

from ledger_kernel.domain.rates import RateTableVersion
from ledger_kernel.exceptions import ValidationError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.rate_tables import (
    HealthInsuranceBracketRow,
    HousingLevyConfigRow,
    RateTableKind,
    SocialSecurityConfigRow,
    TaxBandRow,
)
from ledger_kernel.services.base import BaseService

logger = get_logger("services.rate_tables")

_TABLES = (
    (RateTableKind.TAX_BANDS, TaxBandRow),
    (RateTableKind.HEALTH_INSURANCE, HealthInsuranceBracketRow),
    (RateTableKind.SOCIAL_SECURITY, SocialSecurityConfigRow),
    (RateTableKind.HOUSING_LEVY, HousingLevyConfigRow),
)


class RateTableService(BaseService):
    """Appends rate-table versions."""

    def _check_appendable(self, kind: RateTableKind, model, version: RateTableVersion) -> None:
        later = self.session.scalars(
            select(model).where(model.effective_from >= version.effective_from)
        ).first()
        if later is not None:
            raise ValidationError(
                f"{kind.value} already has a version starting "
                f"{later.effective_from.isoformat()}, on or after "
                f"{version.effective_from.isoformat()}",
                field="effective_from",
            )

    def _close_open_rows(self, model, version: RateTableVersion) -> int:
        closing = version.effective_from - timedelta(days=1)
        open_rows = self.session.scalars(
            select(model).where(
                (model.effective_to.is_(None)) | (model.effective_to > closing)
            )
        ).all()
        for row in open_rows:
            row.effective_to = closing
        return len(open_rows)

    def install(self, version: RateTableVersion) -> None:
        """
        Add ``version`` as the current rate tables from its effective date.

        Raises:
            ValidationError: empty band or bracket list, or a version that
                does not start after every existing one.
        """
        if not version.bands:
            raise ValidationError("Rate version has no tax bands", field="bands")
        if not version.health_insurance_brackets:
            raise ValidationError(
                "Rate version has no health-insurance brackets",
                field="health_insurance_brackets",
            )

        for kind, model in _TABLES:
            self._check_appendable(kind, model, version)
        closed = sum(self._close_open_rows(model, version) for _, model in _TABLES)

        dated = {
            "effective_from": version.effective_from,
            "effective_to": version.effective_to,
        }
        for band in version.bands:
            self.session.add(
                TaxBandRow(
                    tax_year=version.tax_year,
                    band_order=band.band_order,
                    min_amount=band.min_amount,
                    max_amount=band.max_amount,
                    rate=band.rate,
                    description=band.description,
                    **dated,
                )
            )
        for bracket in version.health_insurance_brackets:
            self.session.add(
                HealthInsuranceBracketRow(
                    min_gross=bracket.min_gross,
                    max_gross=bracket.max_gross,
                    contribution=bracket.contribution,
                    description=bracket.description,
                    **dated,
                )
            )
        tiers = version.social_security
        self.session.add(
            SocialSecurityConfigRow(
                tier1_limit=tiers.tier1_limit,
                tier1_rate=tiers.tier1_rate,
                tier2_limit=tiers.tier2_limit,
                tier2_rate=tiers.tier2_rate,
                description=tiers.description,
                **dated,
            )
        )
        self.session.add(
            HousingLevyConfigRow(
                rate=version.housing_levy_rate,
                description=version.housing_levy_description,
                **dated,
            )
        )
        self.session.flush()

        logger.info(
            "rate_tables_installed",
            extra={
                "effective_from": version.effective_from.isoformat(),
                "tax_year": version.tax_year,
                "band_count": len(version.bands),
                "bracket_count": len(version.health_insurance_brackets),
                "superseded_rows": closed,
            },
        )
