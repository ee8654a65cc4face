"""
Module: ledger_kernel.selectors.account_selector
Responsibility: Read access to an owner's accounts.
Architecture position: Kernel > Selectors.  Read-only.
"""

from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.dtos import AccountInfo
from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.selectors.base import BaseSelector


def to_account_info(account: Account) -> AccountInfo:
    return AccountInfo(
        id=account.id,
        owner_id=account.owner_id,
        name=account.name,
        account_type=AccountType(account.account_type).value,
        subtype=account.subtype,
        currency=account.currency,
        is_active=account.is_active,
        is_system=account.is_system,
        account_number=account.account_number,
        description=account.description,
        metadata=account.account_metadata,
    )


class AccountSelector(BaseSelector):
    """Owner-scoped account reads."""

    def get_account(self, owner_id: UUID, account_id: UUID) -> AccountInfo:
        """
        Raises:
            AccountNotFoundError: unknown id, or the account belongs to
                another owner.
        """
        account = self.session.scalars(
            select(Account).where(Account.id == account_id, Account.owner_id == owner_id)
        ).first()
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return to_account_info(account)

    def list_accounts(
        self,
        owner_id: UUID,
        account_type: AccountType | str | None = None,
        is_active: bool | None = None,
    ) -> list[AccountInfo]:
        """Accounts ordered by classification, then name."""
        stmt = select(Account).where(Account.owner_id == owner_id)
        if account_type is not None:
            stmt = stmt.where(Account.account_type == AccountType(account_type).value)
        if is_active is not None:
            stmt = stmt.where(Account.is_active == is_active)
        stmt = stmt.order_by(Account.account_type, Account.name)
        return [to_account_info(a) for a in self.session.scalars(stmt)]
