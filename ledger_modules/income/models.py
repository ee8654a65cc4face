"""
Income Domain Models (``ledger_modules.income.models``).

Responsibility
--------------
Frozen dataclass value objects for income recording: the request to
record an income event, the persisted payroll record, employers and the
period summary.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Consumed by
``IncomeService`` and returned to callers.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.

Failure modes
-------------
* Construction with invalid enum values raises ``ValueError``.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class IncomeType(Enum):
    """Kinds of income event."""
    SALARY = "salary"
    BUSINESS = "business"
    INVESTMENT = "investment"
    OTHER = "other"


@dataclass(frozen=True)
class RecordIncomeRequest:
    """
    Input for IncomeService.record_income.

    gross_amount, income_date and description are required.  The relief
    fields feed the PAYE engine; each ``*_override`` replaces exactly one
    computed component.  ``create_transaction`` needs ``bank_account_id``.
    """
    gross_amount: Decimal
    income_date: date
    description: str
    income_type: IncomeType = IncomeType.SALARY
    employer_id: UUID | None = None

    insurance_premium: Decimal = Decimal("0")
    pension_contribution: Decimal = Decimal("0")
    mortgage_interest: Decimal = Decimal("0")

    paye_override: Decimal | None = None
    nhif_override: Decimal | None = None
    nssf_tier1_override: Decimal | None = None
    nssf_tier2_override: Decimal | None = None
    housing_levy_override: Decimal | None = None

    other_deductions: Decimal = Decimal("0")
    other_deductions_notes: str | None = None
    is_manual_override: bool = False
    override_notes: str | None = None

    create_transaction: bool = False
    bank_account_id: UUID | None = None


@dataclass(frozen=True)
class IncomeEntryRecord:
    """A recorded payroll snapshot.  Never recomputed."""
    id: UUID
    owner_id: UUID
    income_type: IncomeType
    income_date: date
    description: str
    gross_amount: Decimal
    paye_before_relief: Decimal
    personal_relief: Decimal
    insurance_relief: Decimal
    pension_relief: Decimal
    mortgage_relief: Decimal
    paye: Decimal
    nhif: Decimal
    nssf_tier1: Decimal
    nssf_tier2: Decimal
    nssf_total: Decimal
    housing_levy: Decimal
    other_deductions: Decimal
    net_amount: Decimal
    employer_id: UUID | None = None
    transaction_id: UUID | None = None
    other_deductions_notes: str | None = None
    is_manual_override: bool = False
    override_notes: str | None = None
    calculation_breakdown: dict = field(default_factory=dict)
    created_at: datetime | None = None

    @property
    def total_deductions(self) -> Decimal:
        """Statutory deductions plus other deductions."""
        return self.gross_amount - self.net_amount


@dataclass(frozen=True)
class EmployerRecord:
    """An employer paying an owner."""
    id: UUID
    owner_id: UUID
    name: str
    pin_number: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    is_current: bool = True


@dataclass(frozen=True)
class IncomeSummary:
    """Totals over an owner's income entries in a date range."""
    entry_count: int
    total_gross: Decimal
    total_net: Decimal
    total_paye: Decimal
    total_nhif: Decimal
    total_nssf: Decimal
    total_housing_levy: Decimal
    total_other_deductions: Decimal
    from_date: date | None = None
    to_date: date | None = None
