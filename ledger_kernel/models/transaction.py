"""
Module: ledger_kernel.models.transaction
Responsibility: ORM persistence for ledger transactions and their entries,
    the only records that move account balances.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Lifecycle DRAFT -> POSTED -> VOID.  A POSTED row is immutable except
      for the move to VOID; a VOID row is terminal (db/immutability.py).
    - ledger_entries.amount > 0 (CHECK constraint).
    - Every entry belongs to exactly one transaction (NOT NULL FK, CASCADE).
    - Entries may not reference a deleted account (FK RESTRICT).
    - idempotency_key is unique across the table.
    - Debits equal credits for every POSTED transaction.  Checked by
      LedgerService before the DRAFT row is written; never relaxed.

Failure modes:
    - IntegrityError on a non-positive amount, duplicate idempotency key or
      dangling account reference.
    - ImmutabilityViolationError on edits to a posted or void transaction.

Audit relevance:
    Entries keep the currency copied from the account at post time and stay
    in place after a void, so the original movement remains readable.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account


class TransactionStatus(str, Enum):
    """Lifecycle status of a transaction.

    DRAFT exists only inside the posting unit of work.
    """

    DRAFT = "draft"
    POSTED = "posted"
    VOID = "void"


class EntryType(str, Enum):
    """Side of a ledger entry."""

    DEBIT = "debit"
    CREDIT = "credit"


class Transaction(TrackedBase):
    """
    A dated, described group of balanced ledger entries.

    Contract:
        Created as DRAFT and advanced to POSTED inside one unit of work by
        LedgerService.create_transaction.  Voided only from POSTED.

    Guarantees:
        - posted_at is set exactly when status becomes POSTED.
        - voided_at and void_reason are set exactly when status becomes VOID.

    Non-goals:
        - Voiding does not create reversing entries.  Balances exclude VOID
          transactions by filtering on status.
    """

    __tablename__ = "transactions"

    __table_args__ = (
        UniqueConstraint("idempotency_key", name="uq_transactions_idempotency_key"),
        Index("idx_transactions_owner", "owner_id"),
        Index("idx_transactions_owner_date", "owner_id", "transaction_date"),
        Index("idx_transactions_owner_status", "owner_id", "status"),
    )

    owner_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    description: Mapped[str] = mapped_column(String(500), nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[TransactionStatus] = mapped_column(
        String(10),
        nullable=False,
        default=TransactionStatus.DRAFT,
    )

    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    voided_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    void_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    idempotency_key: Mapped[str | None] = mapped_column(String(255), nullable=True)

    transaction_metadata: Mapped[dict | None] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
    )

    entries: Mapped[list["LedgerEntry"]] = relationship(
        back_populates="transaction",
        order_by="LedgerEntry.line_seq",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Transaction {self.id} {self.status}>"

    @property
    def is_posted(self) -> bool:
        return self.status == TransactionStatus.POSTED

    @property
    def is_void(self) -> bool:
        return self.status == TransactionStatus.VOID

    @property
    def total_debits(self) -> Decimal:
        return sum(
            (e.amount for e in self.entries if e.entry_type == EntryType.DEBIT),
            Decimal("0"),
        )

    @property
    def total_credits(self) -> Decimal:
        return sum(
            (e.amount for e in self.entries if e.entry_type == EntryType.CREDIT),
            Decimal("0"),
        )


class LedgerEntry(TrackedBase):
    """
    One DEBIT or CREDIT line of a transaction.

    Guarantees:
        - amount is strictly positive.
        - currency equals the account's currency at the time of posting.
        - line_seq preserves the order in which the caller supplied entries.
    """

    __tablename__ = "ledger_entries"

    __table_args__ = (
        CheckConstraint("amount > 0", name="chk_ledger_entries_amount_positive"),
        Index("idx_ledger_entries_transaction", "transaction_id"),
        Index("idx_ledger_entries_account", "account_id"),
    )

    transaction_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id", ondelete="RESTRICT"),
        nullable=False,
    )

    entry_type: Mapped[EntryType] = mapped_column(String(10), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    line_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    transaction: Mapped["Transaction"] = relationship(back_populates="entries")

    account: Mapped["Account"] = relationship(back_populates="entries")

    def __repr__(self) -> str:
        return f"<LedgerEntry {self.entry_type} {self.amount} {self.currency}>"
