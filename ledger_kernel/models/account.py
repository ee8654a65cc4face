"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for owner accounts, the target of every
    ledger entry.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - account_type never changes after creation (db/immutability.py).
    - Balance is never stored on the row.  It is always derived from posted
      ledger entries (selectors/balance_selector.py).
    - At most one system account per (owner, subtype), backed by a partial
      unique index, so lazily created defaults cannot be duplicated.

Failure modes:
    - IntegrityError on a second system account for the same owner/subtype.
    - IntegrityError when deleting an account that ledger entries reference
      (FK ON DELETE RESTRICT); the ORM listener raises AccountReferencedError
      first.

Audit relevance:
    The classification decides the sign of the derived balance.  Changing it
    would silently flip every historical balance, hence the lock.
"""

from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.transaction import LedgerEntry


class AccountType(str, Enum):
    """Account classification."""

    ASSET = "asset"
    LIABILITY = "liability"
    INCOME = "income"
    EXPENSE = "expense"
    EQUITY = "equity"


class NormalBalance(str, Enum):
    """Side on which an account's balance grows."""

    DEBIT = "debit"
    CREDIT = "credit"


DEBIT_NORMAL_TYPES = frozenset({AccountType.ASSET, AccountType.EXPENSE})


def normal_balance_for(account_type: AccountType | str) -> NormalBalance:
    """ASSET and EXPENSE are debit-normal; everything else is credit-normal."""
    if AccountType(account_type) in DEBIT_NORMAL_TYPES:
        return NormalBalance.DEBIT
    return NormalBalance.CREDIT


class AccountSubtype:
    """Subtypes the engine itself relies on.  Callers may use any string."""

    BANK = "BANK"
    CASH = "CASH"
    MPESA = "MPESA"
    INVESTMENT = "INVESTMENT"
    VIRTUAL = "VIRTUAL"
    SALARY = "SALARY"

    LIQUID = frozenset({BANK, CASH, MPESA})


DEFAULT_CURRENCY = "KES"


class Account(TrackedBase):
    """
    An owner's account.

    Contract:
        subtype is an open string so new kinds of account need no schema
        change.  currency is recorded but never converted.

    Guarantees:
        - account_type is one of ASSET, LIABILITY, INCOME, EXPENSE, EQUITY.
        - is_system rows are unique per (owner_id, subtype).

    Non-goals:
        - No hierarchy and no stored balance.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        Index("idx_accounts_owner", "owner_id"),
        Index("idx_accounts_owner_type", "owner_id", "account_type"),
        Index("idx_accounts_owner_active", "owner_id", "is_active"),
        Index(
            "uq_accounts_system_subtype",
            "owner_id",
            "subtype",
            unique=True,
            postgresql_where=text("is_system = true"),
            sqlite_where=text("is_system = 1"),
        ),
    )

    owner_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)

    subtype: Mapped[str] = mapped_column(String(100), nullable=False)

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default=DEFAULT_CURRENCY,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Created by the engine (e.g. the salary income account), not the owner
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    account_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)

    entries: Mapped[list["LedgerEntry"]] = relationship(
        back_populates="account",
        lazy="dynamic",
        passive_deletes="all",
    )

    def __repr__(self) -> str:
        return f"<Account {self.name} ({self.account_type})>"

    @property
    def normal_balance(self) -> NormalBalance:
        return normal_balance_for(self.account_type)

    @property
    def is_debit_normal(self) -> bool:
        return self.normal_balance == NormalBalance.DEBIT
