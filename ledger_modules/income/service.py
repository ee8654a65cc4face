"""
Income Module Service (``ledger_modules.income.service``).

Responsibility
--------------
Orchestrates income recording -- PAYE calculation, persistence of the
payroll record, the optional salary posting to the ledger -- plus
employer management and income reporting.  Pure computation is delegated
to ``ledger_engines.paye`` and ``helpers.py``; rate lookup to
``RateTableSelector``; ledger writes to the kernel ``LedgerService`` and
``AccountService``.

Architecture position
---------------------
**Modules layer** -- thin glue.  ``IncomeService`` is the sole public
entry point for income operations.

Invariants enforced
-------------------
* Each public write method owns the transaction boundary (``commit`` on
  success, ``rollback`` and re-raise on any exception).
* Recording is all-or-nothing: the payroll record, the lazily created
  salary account, the posted transaction and the link between them are
  written in one unit of work.  A failed posting leaves no payroll record.
* The salary posting is DEBIT bank / CREDIT "Salary Income" for the net
  amount, so it always balances.
* At most one current employer per owner.

Failure modes
-------------
* ``ValidationError`` -- bad amounts, blank description, or
  ``create_transaction`` without a bank account.
* ``InvalidAccountError`` -- bank account missing, foreign or inactive.
* ``EmployerNotFoundError`` -- employer reference of another owner.
* ``ConfigurationMissingError`` -- no rate tables for the income date.
* Any kernel error from posting -- session rolled back, re-raised.

Audit relevance
---------------
``income_recorded`` is logged after commit with the entry id, the linked
transaction id and the gross/net amounts; the stored breakdown explains
every component.

Usage::

    service = IncomeService(session, clock=clock)
    record = service.record_income(owner_id, RecordIncomeRequest(
        gross_amount=Decimal("150000"),
        income_date=date(2024, 1, 31),
        description="January salary",
        create_transaction=True,
        bank_account_id=bank.id,
    ))
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from ledger_engines.paye import (
    DeductionOverrides,
    PayeCalculator,
    PayeResult,
    ReliefInputs,
    ReliefPolicy,
)
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.money import ZERO, round_money
from ledger_kernel.domain.rates import TaxTables
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    EmployerNotFoundError,
    IncomeEntryNotFoundError,
    InvalidAccountError,
    ValidationError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import AccountSubtype, AccountType
from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.selectors.rate_table_selector import RateTableSelector
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.ledger_service import LedgerService
from ledger_modules.income.helpers import (
    SALARY_ACCOUNT_DESCRIPTION,
    SALARY_ACCOUNT_NAME,
    compute_net_amount,
    deduction_overrides,
    relief_inputs,
    require_amount,
    salary_notes,
    salary_posting_entries,
)
from ledger_modules.income.models import (
    EmployerRecord,
    IncomeEntryRecord,
    IncomeSummary,
    IncomeType,
    RecordIncomeRequest,
)
from ledger_modules.income.orm import EmployerModel, IncomeEntryModel

logger = get_logger("modules.income.service")


class IncomeService:
    """
    Records income events and reports on them.

    Contract
    --------
    * ``record_income`` returns the persisted ``IncomeEntryRecord`` or
      raises with nothing written.
    * Read methods (``calculate_tax``, listings, summary) never commit.

    Guarantees
    ----------
    * Engine output, payroll record and ledger posting share a single
      session transaction.  LedgerService only flushes.
    * Clock is injectable for deterministic testing.

    Non-goals
    ---------
    * Does NOT recompute stored records when rate tables change.
    * Does NOT commit rate tables; seeding is RateTableService's job.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: ReliefPolicy | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._rates = RateTableSelector(session)
        self._calculator = PayeCalculator(clock=self._clock, policy=policy)
        self._ledger = LedgerService(session, clock=self._clock)
        self._accounts = AccountService(session, clock=self._clock)
        self._account_reader = AccountSelector(session)

    # =========================================================================
    # Tax calculation
    # =========================================================================

    def calculate_tax(
        self,
        gross_salary,
        calculation_date: date | None = None,
        reliefs: ReliefInputs | None = None,
        overrides: DeductionOverrides | None = None,
    ) -> PayeResult:
        """
        PAYE breakdown of ``gross_salary`` with the rates in force on
        ``calculation_date`` (default: today).

        Raises:
            ValidationError: gross not a positive amount in whole cents.
            ConfigurationMissingError: no rate tables for the date.
        """
        gross = require_amount(gross_salary, "gross_salary", positive=True, cents=True)
        as_of = calculation_date or self._clock.today()
        snapshot = self._rates.resolve_rate_snapshot(gross, as_of)
        return self._calculator.calculate(
            gross_salary=gross,
            rates=snapshot,
            reliefs=reliefs,
            overrides=overrides,
            calculation_date=as_of,
        )

    def get_tax_tables(self, year: int) -> TaxTables:
        """All four rate tables as in force on 1 January of ``year``."""
        return self._rates.get_tax_tables(year)

    # =========================================================================
    # Employers
    # =========================================================================

    def create_employer(
        self,
        owner_id: UUID,
        name: str,
        pin_number: str | None = None,
        address: str | None = None,
        phone: str | None = None,
        email: str | None = None,
        is_current: bool = True,
    ) -> EmployerRecord:
        """
        Register an employer.  Marking it current clears the flag on the
        owner's other employers.
        """
        try:
            if not name or not name.strip():
                raise ValidationError("name is required", field="name")

            if is_current:
                self._session.execute(
                    update(EmployerModel)
                    .where(
                        EmployerModel.owner_id == owner_id,
                        EmployerModel.is_current.is_(True),
                    )
                    .values(is_current=False, updated_by_id=owner_id)
                    .execution_options(synchronize_session="fetch")
                )

            employer = EmployerModel(
                owner_id=owner_id,
                name=name.strip(),
                pin_number=pin_number,
                address=address,
                phone=phone,
                email=email,
                is_current=is_current,
                created_by_id=owner_id,
            )
            self._session.add(employer)
            self._session.flush()
            record = employer.to_dto()
            self._session.commit()

            logger.info("employer_created", extra={
                "employer_id": str(record.id),
                "owner_id": str(owner_id),
                "is_current": is_current,
            })
            return record

        except Exception:
            self._session.rollback()
            raise

    def list_employers(self, owner_id: UUID) -> list[EmployerRecord]:
        """Current employer first, then by name."""
        stmt = (
            select(EmployerModel)
            .where(EmployerModel.owner_id == owner_id)
            .order_by(EmployerModel.is_current.desc(), EmployerModel.name)
        )
        return [e.to_dto() for e in self._session.scalars(stmt)]

    def _require_employer(self, owner_id: UUID, employer_id: UUID) -> EmployerModel:
        employer = self._session.scalars(
            select(EmployerModel).where(
                EmployerModel.id == employer_id,
                EmployerModel.owner_id == owner_id,
            )
        ).first()
        if employer is None:
            raise EmployerNotFoundError(str(employer_id))
        return employer

    # =========================================================================
    # Recording
    # =========================================================================

    def _require_bank_account(self, owner_id: UUID, account_id: UUID):
        try:
            account = self._account_reader.get_account(owner_id, account_id)
        except AccountNotFoundError:
            raise InvalidAccountError(str(account_id), "not found") from None
        if not account.is_active:
            raise InvalidAccountError(str(account_id), "inactive")
        return account

    def record_income(self, owner_id: UUID, request: RecordIncomeRequest) -> IncomeEntryRecord:
        """
        Calculate deductions, persist the payroll record and, when asked,
        post the net salary to the ledger.

        Steps:
            1. PAYE breakdown for the income date.
            2. net = gross - (statutory deductions + other deductions).
            3. Insert the payroll record with the full breakdown.
            4. If ``create_transaction``: check the bank account, get or
               create the "Salary Income" account and post DEBIT bank /
               CREDIT salary for the net amount.
            5. Link the transaction to the record and commit.

        Raises:
            ValidationError, InvalidAccountError, EmployerNotFoundError,
            ConfigurationMissingError, UnbalancedTransactionError.
        """
        with LogContext.bind(owner_id=str(owner_id)):
            try:
                if not request.description or not request.description.strip():
                    raise ValidationError("description is required", field="description")
                if request.income_date is None:
                    raise ValidationError("income_date is required", field="income_date")
                if request.create_transaction and request.bank_account_id is None:
                    raise ValidationError(
                        "bank_account_id is required to create a transaction",
                        field="bank_account_id",
                    )
                income_type = IncomeType(request.income_type)
                other = round_money(require_amount(request.other_deductions, "other_deductions"))
                if request.employer_id is not None:
                    self._require_employer(owner_id, request.employer_id)

                result = self.calculate_tax(
                    request.gross_amount,
                    calculation_date=request.income_date,
                    reliefs=relief_inputs(request),
                    overrides=deduction_overrides(request),
                )
                net = compute_net_amount(result.gross_salary, result.total_deductions, other)

                entry = IncomeEntryModel(
                    owner_id=owner_id,
                    employer_id=request.employer_id,
                    income_type=income_type.value,
                    income_date=request.income_date,
                    description=request.description.strip(),
                    gross_amount=result.gross_salary,
                    paye_before_relief=result.paye_before_relief,
                    personal_relief=result.personal_relief,
                    insurance_relief=result.insurance_relief,
                    pension_relief=result.pension_relief,
                    mortgage_relief=result.mortgage_relief,
                    paye=result.paye,
                    nhif=result.nhif,
                    nssf_tier1=result.nssf_tier1,
                    nssf_tier2=result.nssf_tier2,
                    nssf_total=result.nssf_total,
                    housing_levy=result.housing_levy,
                    other_deductions=other,
                    other_deductions_notes=request.other_deductions_notes,
                    net_amount=net,
                    is_manual_override=request.is_manual_override or bool(result.overridden),
                    override_notes=request.override_notes,
                    calculation_breakdown=result.to_breakdown(),
                    created_by_id=owner_id,
                )
                self._session.add(entry)
                self._session.flush()

                if request.create_transaction:
                    bank = self._require_bank_account(owner_id, request.bank_account_id)
                    salary_account = self._accounts.get_or_create_system_account(
                        owner_id=owner_id,
                        account_type=AccountType.INCOME,
                        subtype=AccountSubtype.SALARY,
                        name=SALARY_ACCOUNT_NAME,
                        description=SALARY_ACCOUNT_DESCRIPTION,
                        currency=bank.currency,
                    )
                    txn = self._ledger.create_transaction(
                        owner_id=owner_id,
                        description=entry.description,
                        transaction_date=request.income_date,
                        entries=salary_posting_entries(bank.id, salary_account.id, net),
                        notes=salary_notes(result.gross_salary),
                        metadata={"kind": "income", "income_entry_id": str(entry.id)},
                    )
                    entry.transaction_id = txn.id
                    entry.updated_by_id = owner_id
                    self._session.flush()

                record = entry.to_dto()
                self._session.commit()

            except Exception:
                self._session.rollback()
                logger.warning("income_recording_rolled_back", extra={
                    "owner_id": str(owner_id),
                    "create_transaction": request.create_transaction,
                })
                raise

            logger.info("income_recorded", extra={
                "income_entry_id": str(record.id),
                "transaction_id": str(record.transaction_id) if record.transaction_id else None,
                "gross_amount": str(record.gross_amount),
                "net_amount": str(record.net_amount),
                "income_date": record.income_date.isoformat(),
            })
            return record

    # =========================================================================
    # Queries
    # =========================================================================

    def get_income_entry(self, owner_id: UUID, income_entry_id: UUID) -> IncomeEntryRecord:
        """
        Raises:
            IncomeEntryNotFoundError: unknown id or another owner's.
        """
        entry = self._session.scalars(
            select(IncomeEntryModel).where(
                IncomeEntryModel.id == income_entry_id,
                IncomeEntryModel.owner_id == owner_id,
            )
        ).first()
        if entry is None:
            raise IncomeEntryNotFoundError(str(income_entry_id))
        return entry.to_dto()

    def _filtered(self, stmt, owner_id, from_date, to_date):
        stmt = stmt.where(IncomeEntryModel.owner_id == owner_id)
        if from_date is not None:
            stmt = stmt.where(IncomeEntryModel.income_date >= from_date)
        if to_date is not None:
            stmt = stmt.where(IncomeEntryModel.income_date <= to_date)
        return stmt

    def list_income_entries(
        self,
        owner_id: UUID,
        income_type: IncomeType | str | None = None,
        employer_id: UUID | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[IncomeEntryRecord]:
        """Newest first: income_date desc, then created_at desc."""
        stmt = self._filtered(select(IncomeEntryModel), owner_id, from_date, to_date)
        if income_type is not None:
            stmt = stmt.where(IncomeEntryModel.income_type == IncomeType(income_type).value)
        if employer_id is not None:
            stmt = stmt.where(IncomeEntryModel.employer_id == employer_id)
        stmt = (
            stmt.order_by(IncomeEntryModel.income_date.desc(), IncomeEntryModel.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return [e.to_dto() for e in self._session.scalars(stmt)]

    def income_summary(
        self,
        owner_id: UUID,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> IncomeSummary:
        """Sums of gross, net and each deduction over the date range."""
        columns = (
            IncomeEntryModel.gross_amount,
            IncomeEntryModel.net_amount,
            IncomeEntryModel.paye,
            IncomeEntryModel.nhif,
            IncomeEntryModel.nssf_total,
            IncomeEntryModel.housing_levy,
            IncomeEntryModel.other_deductions,
        )
        stmt = self._filtered(
            select(func.count(IncomeEntryModel.id), *(func.sum(c) for c in columns)),
            owner_id,
            from_date,
            to_date,
        )
        count, *sums = self._session.execute(stmt).one()
        gross, net, paye, nhif, nssf, housing, other = (
            round_money(Decimal(s)) if s is not None else ZERO for s in sums
        )
        return IncomeSummary(
            entry_count=count or 0,
            total_gross=gross,
            total_net=net,
            total_paye=paye,
            total_nhif=nhif,
            total_nssf=nssf,
            total_housing_levy=housing,
            total_other_deductions=other,
            from_date=from_date,
            to_date=to_date,
        )
