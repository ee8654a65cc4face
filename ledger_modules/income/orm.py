"""
Income ORM Persistence Models (``ledger_modules.income.orm``).

Responsibility:
    SQLAlchemy ORM models that persist employers and payroll records.
    Each ORM class mirrors a DTO in ``ledger_modules.income.models`` and
    provides ``to_dto()``.

Architecture position:
    **Modules layer** -- persistence companions to the pure DTO models.
    Inherits from ``TrackedBase`` (kernel DB base) which provides:
    id (UUID PK, auto-generated), created_at, updated_at,
    created_by_id (NOT NULL UUID), updated_by_id (nullable UUID).

Invariants enforced:
    - All monetary fields use Decimal (maps to Numeric(38,9)) -- NEVER float.
    - Enum fields stored as String containing the enum .value string.
    - Deleting the owner cascades; deleting the employer or the ledger
      transaction only clears the reference.
    - A payroll record is never updated after creation except to set its
      ledger link once (model-level listener at the end of this module).

Audit relevance:
    calculation_breakdown keeps the band-by-band and relief-by-relief trace
    exactly as computed, so a record can be explained after the rate tables
    have moved on.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Boolean, Date, ForeignKey, Index, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.db.immutability import blocked_violation, changed_fields

# ---------------------------------------------------------------------------
# EmployerModel
# ---------------------------------------------------------------------------

class EmployerModel(TrackedBase):
    """
    ORM model for ``EmployerRecord``.

    Guarantees:
        - At most one ``is_current`` employer per owner; IncomeService
          clears the flag on the others when it sets it.
    """

    __tablename__ = "employers"

    owner_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    pin_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_current: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    employer_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)

    __table_args__ = (
        Index("idx_employers_owner", "owner_id"),
        Index("idx_employers_owner_current", "owner_id", "is_current"),
    )

    def to_dto(self):
        from ledger_modules.income.models import EmployerRecord
        return EmployerRecord(
            id=self.id,
            owner_id=self.owner_id,
            name=self.name,
            pin_number=self.pin_number,
            address=self.address,
            phone=self.phone,
            email=self.email,
            is_current=self.is_current,
        )

    def __repr__(self) -> str:
        return f"<EmployerModel {self.name}{' (current)' if self.is_current else ''}>"


# ---------------------------------------------------------------------------
# IncomeEntryModel
# ---------------------------------------------------------------------------

class IncomeEntryModel(TrackedBase):
    """
    ORM model for ``IncomeEntryRecord`` -- one payroll snapshot.

    Contract:
        Every deduction component is stored as computed (or overridden) at
        recording time.  net_amount = gross_amount - (statutory deductions
        + other_deductions).
    """

    __tablename__ = "income_entries"

    owner_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    employer_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("employers.id", ondelete="SET NULL"),
        nullable=True,
    )
    transaction_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("transactions.id", ondelete="SET NULL"),
        nullable=True,
    )
    income_type: Mapped[str] = mapped_column(String(20), nullable=False)
    income_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)

    gross_amount: Mapped[Decimal] = mapped_column(nullable=False)
    paye_before_relief: Mapped[Decimal] = mapped_column(nullable=False)
    personal_relief: Mapped[Decimal] = mapped_column(nullable=False)
    insurance_relief: Mapped[Decimal] = mapped_column(nullable=False)
    pension_relief: Mapped[Decimal] = mapped_column(nullable=False)
    mortgage_relief: Mapped[Decimal] = mapped_column(nullable=False)
    paye: Mapped[Decimal] = mapped_column(nullable=False)
    nhif: Mapped[Decimal] = mapped_column(nullable=False)
    nssf_tier1: Mapped[Decimal] = mapped_column(nullable=False)
    nssf_tier2: Mapped[Decimal] = mapped_column(nullable=False)
    nssf_total: Mapped[Decimal] = mapped_column(nullable=False)
    housing_levy: Mapped[Decimal] = mapped_column(nullable=False)
    other_deductions: Mapped[Decimal] = mapped_column(nullable=False)
    other_deductions_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    net_amount: Mapped[Decimal] = mapped_column(nullable=False)

    is_manual_override: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    override_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    calculation_breakdown: Mapped[dict] = mapped_column(JSON, nullable=False)

    __table_args__ = (
        Index("idx_income_entries_owner_date", "owner_id", "income_date"),
        Index("idx_income_entries_employer", "employer_id"),
        Index("idx_income_entries_type", "owner_id", "income_type"),
    )

    def to_dto(self):
        from ledger_modules.income.models import IncomeEntryRecord, IncomeType
        return IncomeEntryRecord(
            id=self.id,
            owner_id=self.owner_id,
            income_type=IncomeType(self.income_type),
            income_date=self.income_date,
            description=self.description,
            gross_amount=self.gross_amount,
            paye_before_relief=self.paye_before_relief,
            personal_relief=self.personal_relief,
            insurance_relief=self.insurance_relief,
            pension_relief=self.pension_relief,
            mortgage_relief=self.mortgage_relief,
            paye=self.paye,
            nhif=self.nhif,
            nssf_tier1=self.nssf_tier1,
            nssf_tier2=self.nssf_tier2,
            nssf_total=self.nssf_total,
            housing_levy=self.housing_levy,
            other_deductions=self.other_deductions,
            net_amount=self.net_amount,
            employer_id=self.employer_id,
            transaction_id=self.transaction_id,
            other_deductions_notes=self.other_deductions_notes,
            is_manual_override=self.is_manual_override,
            override_notes=self.override_notes,
            calculation_breakdown=dict(self.calculation_breakdown or {}),
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return (
            f"<IncomeEntryModel {self.income_date} {self.income_type}: "
            f"gross {self.gross_amount} net {self.net_amount}>"
        )


# ---------------------------------------------------------------------------
# ORM-level immutability
# ---------------------------------------------------------------------------
# Active whenever this module is imported; payroll records are snapshots.


@event.listens_for(IncomeEntryModel, "before_update")
def prevent_income_entry_update(mapper, connection, target):
    """Only the ledger link may change, and only from unset to set."""
    for field in changed_fields(target):
        if field == "transaction_id":
            previous = [v for v in get_history(target, field).deleted if v is not None]
            if not previous:
                continue
            raise blocked_violation(
                "IncomeEntry", target.id, "UPDATE",
                "Ledger link of a payroll record cannot be replaced",
                field=field,
            )
        raise blocked_violation(
            "IncomeEntry", target.id, "UPDATE",
            f"Cannot modify field '{field}' on a recorded payroll entry",
            field=field,
        )
