"""
Frozen DTOs crossing the service and selector boundaries.

Services accept these as input; selectors return them instead of ORM
instances so callers never hold a live, mutable row.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID


@dataclass(frozen=True)
class EntryInput:
    """One requested ledger entry.  amount may be Decimal, int or a string."""

    account_id: UUID
    entry_type: str
    amount: Any
    description: str | None = None


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of entry validation.  errors lists every rule violated."""

    valid: bool
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class AccountInfo:
    id: UUID
    owner_id: UUID
    name: str
    account_type: str
    subtype: str
    currency: str
    is_active: bool
    is_system: bool
    account_number: str | None = None
    description: str | None = None
    metadata: dict | None = None


@dataclass(frozen=True)
class AccountBalance:
    """Derived balance of one account over POSTED transactions."""

    account_id: UUID
    name: str
    account_type: str
    subtype: str
    currency: str
    total_debits: Decimal
    total_credits: Decimal
    balance: Decimal


@dataclass(frozen=True)
class AccountSummary:
    """Owner-level roll-up of active account balances."""

    accounts: tuple[AccountBalance, ...]
    total_assets: Decimal
    total_liabilities: Decimal
    net_worth: Decimal
    liquid_cash: Decimal
    investments: Decimal
    virtual: Decimal


@dataclass(frozen=True)
class EntryView:
    id: UUID
    account_id: UUID
    account_name: str
    account_type: str
    entry_type: str
    amount: Decimal
    currency: str
    description: str | None


@dataclass(frozen=True)
class TransactionView:
    id: UUID
    owner_id: UUID
    description: str
    transaction_date: date
    status: str
    notes: str | None = None
    idempotency_key: str | None = None
    posted_at: datetime | None = None
    voided_at: datetime | None = None
    void_reason: str | None = None
    metadata: dict | None = None
    entries: tuple[EntryView, ...] = field(default_factory=tuple)

    @property
    def total_debits(self) -> Decimal:
        return sum(
            (e.amount for e in self.entries if e.entry_type == "debit"),
            Decimal("0"),
        )

    @property
    def total_credits(self) -> Decimal:
        return sum(
            (e.amount for e in self.entries if e.entry_type == "credit"),
            Decimal("0"),
        )
