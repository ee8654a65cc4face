"""
Module: ledger_kernel.selectors.balance_selector
Responsibility: Derive account balances from ledger entries.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - Only entries of POSTED transactions count.  VOID transactions drop
      out because of the status filter; their entries are never deleted.
    - One sign convention, applied by signed_balance(): ASSET and EXPENSE
      balances are debits - credits, LIABILITY, INCOME and EQUITY balances
      are credits - debits.
    - No stored balances.  The same query over the same entries returns
      the same figure regardless of insertion order.

Failure modes:
    - AccountNotFoundError for an unknown account (or one of another owner).
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, select

from ledger_kernel.domain.dtos import AccountBalance, AccountSummary
from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.models.account import (
    Account,
    AccountSubtype,
    AccountType,
    NormalBalance,
    normal_balance_for,
)
from ledger_kernel.models.transaction import EntryType, LedgerEntry, Transaction, TransactionStatus
from ledger_kernel.selectors.base import BaseSelector

ZERO = Decimal("0")


def signed_balance(account_type: AccountType | str, debits: Decimal, credits: Decimal) -> Decimal:
    """Net debits and credits by the account's natural side."""
    if normal_balance_for(account_type) == NormalBalance.DEBIT:
        return debits - credits
    return credits - debits


class BalanceSelector(BaseSelector):
    """
    Balance queries over posted entries.

    Guarantees:
        - Idempotent: no writes, no caching.
    """

    def _posted_totals(self, account_ids: list[UUID]) -> dict[UUID, tuple[Decimal, Decimal]]:
        if not account_ids:
            return {}

        debit_sum = func.sum(
            case(
                (LedgerEntry.entry_type == EntryType.DEBIT.value, LedgerEntry.amount),
                else_=0,
            )
        ).label("debit_total")

        credit_sum = func.sum(
            case(
                (LedgerEntry.entry_type == EntryType.CREDIT.value, LedgerEntry.amount),
                else_=0,
            )
        ).label("credit_total")

        stmt = (
            select(LedgerEntry.account_id, debit_sum, credit_sum)
            .join(Transaction, LedgerEntry.transaction_id == Transaction.id)
            .where(
                Transaction.status == TransactionStatus.POSTED.value,
                LedgerEntry.account_id.in_(account_ids),
            )
            .group_by(LedgerEntry.account_id)
        )

        return {
            row.account_id: (
                Decimal(row.debit_total or ZERO),
                Decimal(row.credit_total or ZERO),
            )
            for row in self.session.execute(stmt)
        }

    def _balance_of(self, account: Account, totals) -> AccountBalance:
        debits, credits = totals.get(account.id, (ZERO, ZERO))
        return AccountBalance(
            account_id=account.id,
            name=account.name,
            account_type=AccountType(account.account_type).value,
            subtype=account.subtype,
            currency=account.currency,
            total_debits=debits,
            total_credits=credits,
            balance=signed_balance(account.account_type, debits, credits),
        )

    def compute_account_balance(
        self, account_id: UUID, owner_id: UUID | None = None
    ) -> AccountBalance:
        """
        Current balance of one account.

        Args:
            account_id: Account to query.
            owner_id: When given, the account must belong to this owner.

        Raises:
            AccountNotFoundError: unknown account, or owner mismatch.
        """
        stmt = select(Account).where(Account.id == account_id)
        if owner_id is not None:
            stmt = stmt.where(Account.owner_id == owner_id)
        account = self.session.scalars(stmt).first()
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return self._balance_of(account, self._posted_totals([account.id]))

    def account_balances(
        self, owner_id: UUID, include_inactive: bool = False
    ) -> list[AccountBalance]:
        """Balances of all of an owner's accounts, by classification then name."""
        stmt = select(Account).where(Account.owner_id == owner_id)
        if not include_inactive:
            stmt = stmt.where(Account.is_active.is_(True))
        accounts = list(
            self.session.scalars(stmt.order_by(Account.account_type, Account.name))
        )
        totals = self._posted_totals([a.id for a in accounts])
        return [self._balance_of(a, totals) for a in accounts]

    def account_summary(self, owner_id: UUID) -> AccountSummary:
        """
        Net-worth roll-up over active accounts.

        Asset balances are also split into liquid cash (BANK, CASH, MPESA),
        investments (INVESTMENT) and virtual (VIRTUAL) by subtype.
        """
        balances = self.account_balances(owner_id)

        total_assets = liquid = investments = virtual = ZERO
        total_liabilities = ZERO
        for b in balances:
            if b.account_type == AccountType.ASSET.value:
                total_assets += b.balance
                if b.subtype in AccountSubtype.LIQUID:
                    liquid += b.balance
                elif b.subtype == AccountSubtype.INVESTMENT:
                    investments += b.balance
                elif b.subtype == AccountSubtype.VIRTUAL:
                    virtual += b.balance
            elif b.account_type == AccountType.LIABILITY.value:
                total_liabilities += b.balance

        return AccountSummary(
            accounts=tuple(balances),
            total_assets=total_assets,
            total_liabilities=total_liabilities,
            net_worth=total_assets - total_liabilities,
            liquid_cash=liquid,
            investments=investments,
            virtual=virtual,
        )
