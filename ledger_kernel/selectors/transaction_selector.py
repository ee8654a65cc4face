"""
Module: ledger_kernel.selectors.transaction_selector
Responsibility: Read access to an owner's transactions with their entries.
Architecture position: Kernel > Selectors.  Read-only.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from ledger_kernel.domain.dtos import EntryView, TransactionView
from ledger_kernel.exceptions import TransactionNotFoundError
from ledger_kernel.models.account import AccountType
from ledger_kernel.models.transaction import (
    EntryType,
    LedgerEntry,
    Transaction,
    TransactionStatus,
)
from ledger_kernel.selectors.base import BaseSelector


def to_transaction_view(txn: Transaction) -> TransactionView:
    return TransactionView(
        id=txn.id,
        owner_id=txn.owner_id,
        description=txn.description,
        transaction_date=txn.transaction_date,
        status=TransactionStatus(txn.status).value,
        notes=txn.notes,
        idempotency_key=txn.idempotency_key,
        posted_at=txn.posted_at,
        voided_at=txn.voided_at,
        void_reason=txn.void_reason,
        metadata=txn.transaction_metadata,
        entries=tuple(
            EntryView(
                id=e.id,
                account_id=e.account_id,
                account_name=e.account.name,
                account_type=AccountType(e.account.account_type).value,
                entry_type=EntryType(e.entry_type).value,
                amount=e.amount,
                currency=e.currency,
                description=e.description,
            )
            for e in txn.entries
        ),
    )


class TransactionSelector(BaseSelector):
    """Owner-scoped transaction reads."""

    def _with_entries(self):
        return select(Transaction).options(
            selectinload(Transaction.entries).selectinload(LedgerEntry.account)
        )

    def get_transaction(self, owner_id: UUID, transaction_id: UUID) -> TransactionView:
        """
        Raises:
            TransactionNotFoundError: unknown id or another owner's row.
        """
        txn = self.session.scalars(
            self._with_entries().where(
                Transaction.id == transaction_id,
                Transaction.owner_id == owner_id,
            )
        ).first()
        if txn is None:
            raise TransactionNotFoundError(str(transaction_id))
        return to_transaction_view(txn)

    def list_transactions(
        self,
        owner_id: UUID,
        status: TransactionStatus | str | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[TransactionView]:
        """Newest first: transaction_date desc, then created_at desc."""
        stmt = self._with_entries().where(Transaction.owner_id == owner_id)
        if status is not None:
            stmt = stmt.where(Transaction.status == TransactionStatus(status).value)
        if from_date is not None:
            stmt = stmt.where(Transaction.transaction_date >= from_date)
        if to_date is not None:
            stmt = stmt.where(Transaction.transaction_date <= to_date)
        stmt = (
            stmt.order_by(Transaction.transaction_date.desc(), Transaction.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return [to_transaction_view(t) for t in self.session.scalars(stmt)]
