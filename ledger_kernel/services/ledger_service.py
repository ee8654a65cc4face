"""
LedgerService -- double-entry validation, posting and voiding.

Responsibility:
    Validate requested entries, write a transaction with its entries and
    move it DRAFT -> POSTED inside the caller's unit of work; void posted
    transactions; post transfers between two accounts.

Architecture position:
    Kernel > Services.  Flush-only: the caller commits (session_scope() or a
    module service such as IncomeService).

Invariants enforced:
    - sum(DEBIT) == sum(CREDIT) for every posted transaction.  The
      difference must stay below 0.0001 or nothing is written.
    - Every amount is a positive Decimal.  Floats are refused.
    - Every referenced account exists, belongs to the owner and is active.
    - Entry currency is copied from the account.
    - DRAFT is never visible outside the unit of work: header, entries and
      the POSTED status are flushed together before control returns.
    - Only POSTED transactions can be voided.  Voiding flips status and
      keeps the entries; no reversing entries are written.

Failure modes:
    - UnbalancedTransactionError with every violation collected.
    - InvalidAccountError for a missing, foreign or inactive account.
    - DuplicateIdempotencyKeyError when another owner holds the key.
    - TransactionNotFoundError / InvalidStateTransitionError on void.

Audit relevance:
    transaction_posted / transaction_voided log lines carry the totals and
    ids needed to trace any balance back to its entries.
"""

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ledger_kernel.domain.dtos import EntryInput, ValidationResult
from ledger_kernel.domain.money import BALANCE_TOLERANCE, ZERO, to_decimal
from ledger_kernel.exceptions import (
    DuplicateIdempotencyKeyError,
    InvalidAccountError,
    InvalidStateTransitionError,
    TransactionNotFoundError,
    UnbalancedTransactionError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.transaction import (
    EntryType,
    LedgerEntry,
    Transaction,
    TransactionStatus,
)
from ledger_kernel.services.base import BaseService

logger = get_logger("services.ledger")


def _parse_entry_type(value) -> EntryType | None:
    if isinstance(value, EntryType):
        return value
    if isinstance(value, str):
        try:
            return EntryType(value.strip().lower())
        except ValueError:
            return None
    return None


# Scale of the Numeric(38, 9) amount column
_AMOUNT_PLACES = 9


def _parse_amount(value) -> Decimal | None:
    try:
        amount = to_decimal(value)
    except ValueError:
        return None
    if amount.normalize().as_tuple().exponent < -_AMOUNT_PLACES:
        return None
    return amount if amount > ZERO else None


class LedgerService(BaseService):
    """
    Posts and voids ledger transactions.

    Contract:
        create_transaction returns a POSTED Transaction or raises without
        leaving any row behind in the caller's session.

    Non-goals:
        - No commit.  No currency conversion.
    """

    # =========================================================================
    # Validation
    # =========================================================================

    def validate_entries(self, entries: Sequence[EntryInput]) -> ValidationResult:
        """
        Check entries against the double-entry rules.

        All violations are collected, not just the first: fewer than two
        entries, non-numeric or non-positive amounts, unknown entry types,
        and a debit/credit difference of 0.0001 or more.
        """
        errors: list[str] = []

        if len(entries) < 2:
            errors.append("Transaction must have at least 2 entries (debit and credit)")

        debits = ZERO
        credits = ZERO
        for entry in entries:
            amount = _parse_amount(entry.amount)
            entry_type = _parse_entry_type(entry.entry_type)
            if amount is None:
                errors.append(f"Invalid amount: {entry.amount}")
            if entry_type is None:
                errors.append(f"Invalid entry type: {entry.entry_type}")
            if amount is None or entry_type is None:
                continue
            if entry_type is EntryType.DEBIT:
                debits += amount
            else:
                credits += amount

        if abs(debits - credits) >= BALANCE_TOLERANCE:
            errors.append(
                f"Transaction not balanced: Debits ({debits}) != Credits ({credits})"
            )

        return ValidationResult(valid=not errors, errors=tuple(errors))

    def _load_postable_accounts(
        self, owner_id: UUID, account_ids: set[UUID]
    ) -> dict[UUID, Account]:
        accounts = {
            a.id: a
            for a in self.session.scalars(
                select(Account).where(Account.id.in_(account_ids))
            )
        }
        for account_id in account_ids:
            account = accounts.get(account_id)
            if account is None or account.owner_id != owner_id:
                reason = "not found"
            elif not account.is_active:
                reason = "inactive"
            else:
                continue
            logger.warning(
                "posting_invalid_account",
                extra={"account_id": str(account_id), "reason": reason},
            )
            raise InvalidAccountError(str(account_id), reason)
        return accounts

    # =========================================================================
    # Posting
    # =========================================================================

    def create_transaction(
        self,
        owner_id: UUID,
        description: str,
        transaction_date: date,
        entries: Sequence[EntryInput],
        idempotency_key: str | None = None,
        notes: str | None = None,
        metadata: dict | None = None,
    ) -> Transaction:
        """
        Validate, write and post a transaction.

        Preconditions:
            - entries balance and every account is the owner's and active.
        Postconditions:
            - A Transaction with status POSTED, posted_at set and all entries
              is flushed to the session.  Nothing is written on failure.
            - A key already used by this owner returns the stored
              transaction unchanged.

        Raises:
            ValidationError: blank description or missing date.
            UnbalancedTransactionError: entry rules violated.
            InvalidAccountError: bad account reference.
            DuplicateIdempotencyKeyError: key held by another owner.
        """
        if not description or not description.strip():
            raise ValidationError("description is required", field="description")
        if transaction_date is None:
            raise ValidationError("transaction_date is required", field="transaction_date")

        if idempotency_key is not None:
            existing = self._replay(owner_id, idempotency_key)
            if existing is not None:
                return existing

        result = self.validate_entries(entries)
        if not result.valid:
            logger.warning(
                "transaction_validation_failed",
                extra={"owner_id": str(owner_id), "errors": list(result.errors)},
            )
            raise UnbalancedTransactionError(list(result.errors))

        accounts = self._load_postable_accounts(owner_id, {e.account_id for e in entries})

        txn = Transaction(
            owner_id=owner_id,
            description=description.strip(),
            notes=notes,
            transaction_date=transaction_date,
            status=TransactionStatus.DRAFT.value,
            idempotency_key=idempotency_key,
            transaction_metadata=metadata,
            created_by_id=owner_id,
        )
        for seq, entry in enumerate(entries):
            txn.entries.append(
                LedgerEntry(
                    account_id=entry.account_id,
                    entry_type=_parse_entry_type(entry.entry_type).value,
                    amount=to_decimal(entry.amount),
                    currency=accounts[entry.account_id].currency,
                    description=entry.description,
                    line_seq=seq,
                    created_by_id=owner_id,
                )
            )
        try:
            with self.session.begin_nested():
                self.session.add(txn)
                self.session.flush()
        except IntegrityError:
            # A concurrent post took the key between the lookup and the insert
            if idempotency_key is None:
                raise
            existing = self._replay(owner_id, idempotency_key)
            if existing is None:
                raise
            return existing

        txn.status = TransactionStatus.POSTED.value
        txn.posted_at = self.clock.now()
        self.session.flush()

        logger.info(
            "transaction_posted",
            extra={
                "transaction_id": str(txn.id),
                "owner_id": str(owner_id),
                "entry_count": len(txn.entries),
                "total_debits": str(txn.total_debits),
                "total_credits": str(txn.total_credits),
                "transaction_date": transaction_date.isoformat(),
            },
        )
        return txn

    def _replay(self, owner_id: UUID, idempotency_key: str) -> Transaction | None:
        """The transaction already stored under the key, if it is this owner's."""
        existing = self.session.scalars(
            select(Transaction).where(Transaction.idempotency_key == idempotency_key)
        ).first()
        if existing is None:
            return None
        if existing.owner_id != owner_id:
            raise DuplicateIdempotencyKeyError(idempotency_key)
        logger.info(
            "transaction_idempotent_replay",
            extra={
                "transaction_id": str(existing.id),
                "idempotency_key": idempotency_key,
            },
        )
        return existing

    def transfer(
        self,
        owner_id: UUID,
        from_account_id: UUID,
        to_account_id: UUID,
        amount,
        transaction_date: date,
        description: str | None = None,
    ) -> Transaction:
        """
        Move ``amount`` between two of the owner's accounts.

        Posts DEBIT destination / CREDIT source.

        Raises:
            ValidationError: same account on both sides or non-positive amount.
            InvalidAccountError: either account missing, foreign or inactive.
        """
        if from_account_id == to_account_id:
            raise ValidationError("Cannot transfer to the same account", field="to_account_id")
        value = _parse_amount(amount)
        if value is None:
            raise ValidationError(f"Invalid amount: {amount}", field="amount")

        accounts = self._load_postable_accounts(owner_id, {from_account_id, to_account_id})
        source = accounts[from_account_id]
        destination = accounts[to_account_id]

        return self.create_transaction(
            owner_id=owner_id,
            description=description or f"Transfer from {source.name} to {destination.name}",
            transaction_date=transaction_date,
            entries=[
                EntryInput(
                    account_id=to_account_id,
                    entry_type=EntryType.DEBIT,
                    amount=value,
                    description=f"Transfer from {source.name}",
                ),
                EntryInput(
                    account_id=from_account_id,
                    entry_type=EntryType.CREDIT,
                    amount=value,
                    description=f"Transfer to {destination.name}",
                ),
            ],
            metadata={"kind": "transfer"},
        )

    # =========================================================================
    # Voiding
    # =========================================================================

    def void_transaction(
        self, owner_id: UUID, transaction_id: UUID, reason: str
    ) -> Transaction:
        """
        Void a posted transaction.

        Postconditions:
            - status VOID, voided_at and void_reason set, ``void_reason``
              merged into metadata.  Entries are kept as they were and drop
              out of balances through the POSTED status filter.

        Raises:
            ValidationError: blank reason.
            TransactionNotFoundError: unknown id or another owner's.
            InvalidStateTransitionError: the transaction is not POSTED.
        """
        if not reason or not reason.strip():
            raise ValidationError("reason is required", field="reason")

        txn = self.session.scalars(
            select(Transaction).where(
                Transaction.id == transaction_id,
                Transaction.owner_id == owner_id,
            )
        ).first()
        if txn is None:
            raise TransactionNotFoundError(str(transaction_id))

        current = TransactionStatus(txn.status)
        if current is not TransactionStatus.POSTED:
            logger.warning(
                "transaction_void_rejected",
                extra={"transaction_id": str(transaction_id), "status": current.value},
            )
            raise InvalidStateTransitionError(
                str(transaction_id), current.value, TransactionStatus.VOID.value
            )

        txn.status = TransactionStatus.VOID.value
        txn.voided_at = self.clock.now()
        txn.void_reason = reason.strip()
        txn.transaction_metadata = {
            **(txn.transaction_metadata or {}),
            "void_reason": reason.strip(),
        }
        txn.updated_by_id = owner_id
        self.session.flush()

        logger.info(
            "transaction_voided",
            extra={"transaction_id": str(transaction_id), "reason": reason.strip()},
        )
        return txn
