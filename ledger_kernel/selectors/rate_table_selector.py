"""
Module: ledger_kernel.selectors.rate_table_selector
Responsibility: Date-parameterized lookups over the statutory rate tables.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - A row is active on ``as_of`` when effective_from <= as_of and
      (effective_to is NULL or effective_to >= as_of).
    - Exactly one active row per single-row table (and per band_order, and
      per matching bracket).  Zero or several matches raise
      ConfigurationMissingError; nothing falls back to a guessed rate.
    - Nothing is cached: every calculation resolves its own date.

Failure modes:
    - ConfigurationMissingError (fatal, operator must load rate data).
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import or_, select

from ledger_kernel.domain.rates import (
    HealthInsuranceBracket,
    RateSnapshot,
    SocialSecurityTiers,
    TaxBand,
    TaxTables,
)
from ledger_kernel.exceptions import ConfigurationMissingError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.rate_tables import (
    HealthInsuranceBracketRow,
    HousingLevyConfigRow,
    RateTableKind,
    SocialSecurityConfigRow,
    TaxBandRow,
)
from ledger_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.rate_tables")


def _active_on(model, as_of: date):
    return select(model).where(
        model.effective_from <= as_of,
        or_(model.effective_to.is_(None), model.effective_to >= as_of),
    )


class RateTableSelector(BaseSelector):
    """
    Resolves the rate-table versions in force on a date.

    Contract:
        ``resolve(kind, as_of)`` returns the value object for that table.
        Health-insurance lookups also need the gross income.

    Non-goals:
        - No writes.  Loading rate data is RateTableService's job.
    """

    def _missing(self, kind: RateTableKind, as_of: date, detail: str):
        logger.error(
            "rate_table_missing",
            extra={"table": kind.value, "as_of": as_of.isoformat(), "detail": detail},
        )
        return ConfigurationMissingError(
            table=kind.value, as_of=as_of.isoformat(), detail=detail
        )

    def _exactly_one(self, kind: RateTableKind, rows: list, as_of: date):
        if not rows:
            raise self._missing(kind, as_of, "no active row")
        if len(rows) > 1:
            raise self._missing(kind, as_of, f"{len(rows)} active rows")
        logger.debug(
            "rate_table_resolved",
            extra={"table": kind.value, "as_of": as_of.isoformat(), "row_id": str(rows[0].id)},
        )
        return rows[0]

    def resolve_tax_bands(self, as_of: date) -> tuple[TaxBand, ...]:
        """
        Active income-tax bands, ascending by band_order.

        Raises:
            ConfigurationMissingError: no bands, or two active versions of
                the same band.
        """
        rows = self.session.scalars(
            _active_on(TaxBandRow, as_of).order_by(TaxBandRow.band_order)
        ).all()
        if not rows:
            raise self._missing(RateTableKind.TAX_BANDS, as_of, "no active row")
        orders = [r.band_order for r in rows]
        if len(set(orders)) != len(orders):
            raise self._missing(
                RateTableKind.TAX_BANDS, as_of, "overlapping band versions"
            )
        return tuple(
            TaxBand(
                band_order=r.band_order,
                min_amount=r.min_amount,
                max_amount=r.max_amount,
                rate=r.rate,
                description=r.description or "",
            )
            for r in rows
        )

    def resolve_health_insurance_bracket(
        self, gross: Decimal, as_of: date
    ) -> HealthInsuranceBracket:
        """
        The bracket whose range contains ``gross`` on ``as_of``.

        Raises:
            ConfigurationMissingError: no bracket, or overlapping brackets.
        """
        stmt = _active_on(HealthInsuranceBracketRow, as_of).where(
            HealthInsuranceBracketRow.min_gross <= gross,
            or_(
                HealthInsuranceBracketRow.max_gross.is_(None),
                HealthInsuranceBracketRow.max_gross >= gross,
            ),
        )
        row = self._exactly_one(
            RateTableKind.HEALTH_INSURANCE, self.session.scalars(stmt).all(), as_of
        )
        return _bracket(row)

    def list_health_insurance_brackets(
        self, as_of: date
    ) -> tuple[HealthInsuranceBracket, ...]:
        """All brackets active on ``as_of`` ordered by min_gross."""
        rows = self.session.scalars(
            _active_on(HealthInsuranceBracketRow, as_of).order_by(
                HealthInsuranceBracketRow.min_gross
            )
        ).all()
        if not rows:
            raise self._missing(RateTableKind.HEALTH_INSURANCE, as_of, "no active row")
        return tuple(_bracket(r) for r in rows)

    def resolve_social_security(self, as_of: date) -> SocialSecurityTiers:
        row = self._exactly_one(
            RateTableKind.SOCIAL_SECURITY,
            self.session.scalars(_active_on(SocialSecurityConfigRow, as_of)).all(),
            as_of,
        )
        return SocialSecurityTiers(
            tier1_limit=row.tier1_limit,
            tier1_rate=row.tier1_rate,
            tier2_limit=row.tier2_limit,
            tier2_rate=row.tier2_rate,
            description=row.description or "",
        )

    def resolve_housing_levy_rate(self, as_of: date) -> Decimal:
        row = self._exactly_one(
            RateTableKind.HOUSING_LEVY,
            self.session.scalars(_active_on(HousingLevyConfigRow, as_of)).all(),
            as_of,
        )
        return row.rate

    def resolve(self, kind: RateTableKind, as_of: date, gross: Decimal | None = None):
        """
        Generic entry point: the active value for ``kind`` on ``as_of``.

        Raises:
            ValueError: health-insurance lookup without ``gross``.
            ConfigurationMissingError: see the per-table methods.
        """
        kind = RateTableKind(kind)
        if kind is RateTableKind.TAX_BANDS:
            return self.resolve_tax_bands(as_of)
        if kind is RateTableKind.HEALTH_INSURANCE:
            if gross is None:
                raise ValueError("Health-insurance lookup needs a gross amount")
            return self.resolve_health_insurance_bracket(gross, as_of)
        if kind is RateTableKind.SOCIAL_SECURITY:
            return self.resolve_social_security(as_of)
        return self.resolve_housing_levy_rate(as_of)

    def resolve_rate_snapshot(self, gross: Decimal, as_of: date) -> RateSnapshot:
        """Every table one PAYE calculation needs, resolved for ``as_of``."""
        return RateSnapshot(
            as_of=as_of,
            bands=self.resolve_tax_bands(as_of),
            health_insurance=self.resolve_health_insurance_bracket(gross, as_of),
            social_security=self.resolve_social_security(as_of),
            housing_levy_rate=self.resolve_housing_levy_rate(as_of),
        )

    def get_tax_tables(self, year: int) -> TaxTables:
        """All four tables as in force on 1 January of ``year``."""
        as_of = date(year, 1, 1)
        return TaxTables(
            as_of=as_of,
            bands=self.resolve_tax_bands(as_of),
            health_insurance_brackets=self.list_health_insurance_brackets(as_of),
            social_security=self.resolve_social_security(as_of),
            housing_levy_rate=self.resolve_housing_levy_rate(as_of),
        )


def _bracket(row: HealthInsuranceBracketRow) -> HealthInsuranceBracket:
    return HealthInsuranceBracket(
        min_gross=row.min_gross,
        max_gross=row.max_gross,
        contribution=row.contribution,
        description=row.description or "",
    )
