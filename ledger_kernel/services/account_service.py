"""
AccountService -- account registry writes.

Responsibility:
    Create accounts, lazily provide the system accounts the engine posts to
    (e.g. the salary income account), and deactivate accounts.

Architecture position:
    Kernel > Services.  Flush-only.

Invariants enforced:
    - account_type is a valid classification at creation and never changes
      afterwards (the ORM listener refuses the update).
    - get_or_create_system_account is idempotent per (owner, subtype): a
      concurrent creator that loses the race on the partial unique index
      reads the winner's row instead of failing.

Failure modes:
    - ValidationError for a blank name/subtype, unknown classification or a
      malformed currency code.
    - AccountNotFoundError when deactivating an unknown account.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ledger_kernel.exceptions import AccountNotFoundError, ValidationError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import DEFAULT_CURRENCY, Account, AccountType
from ledger_kernel.services.base import BaseService

logger = get_logger("services.accounts")


def _require_text(value: str | None, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required", field=field)
    return str(value).strip()


def _parse_account_type(value: AccountType | str) -> AccountType:
    try:
        return AccountType(str(getattr(value, "value", value)).lower())
    except ValueError:
        raise ValidationError(
            f"Invalid account type: {value}", field="account_type"
        ) from None


def _parse_currency(value: str | None) -> str:
    if value is None:
        return DEFAULT_CURRENCY
    code = value.strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValidationError(f"Invalid currency code: {value}", field="currency")
    return code


class AccountService(BaseService):
    """Account registry writes, scoped to an owner."""

    def create_account(
        self,
        owner_id: UUID,
        name: str,
        account_type: AccountType | str,
        subtype: str,
        currency: str | None = None,
        account_number: str | None = None,
        description: str | None = None,
        metadata: dict | None = None,
    ) -> Account:
        """
        Create an account.

        subtype is free-form; only name, classification and subtype are
        required.

        Raises:
            ValidationError: missing or malformed fields.
        """
        account = Account(
            owner_id=owner_id,
            name=_require_text(name, "name"),
            account_type=_parse_account_type(account_type).value,
            subtype=_require_text(subtype, "subtype"),
            currency=_parse_currency(currency),
            account_number=account_number,
            description=description,
            account_metadata=metadata,
            is_active=True,
            is_system=False,
            created_by_id=owner_id,
        )
        self.session.add(account)
        self.session.flush()

        logger.info(
            "account_created",
            extra={
                "account_id": str(account.id),
                "owner_id": str(owner_id),
                "account_type": account.account_type,
                "subtype": account.subtype,
                "currency": account.currency,
            },
        )
        return account

    def _find_default(
        self, owner_id: UUID, account_type: AccountType, subtype: str
    ) -> Account | None:
        stmt = (
            select(Account)
            .where(
                Account.owner_id == owner_id,
                Account.account_type == account_type.value,
                Account.subtype == subtype,
                Account.is_active.is_(True),
            )
            .order_by(Account.is_system.desc(), Account.created_at)
        )
        return self.session.scalars(stmt).first()

    def get_or_create_system_account(
        self,
        owner_id: UUID,
        account_type: AccountType | str,
        subtype: str,
        name: str,
        description: str | None = None,
        currency: str | None = None,
    ) -> Account:
        """
        Return the owner's active account of this classification/subtype,
        creating a system account when none exists.

        An account the owner created with the same classification and
        subtype is reused.  The insert runs in a SAVEPOINT; losing a race
        on the (owner, subtype) unique index rolls back only the savepoint
        and the existing row is returned.
        """
        account_type = _parse_account_type(account_type)
        existing = self._find_default(owner_id, account_type, subtype)
        if existing is not None:
            return existing

        account = Account(
            owner_id=owner_id,
            name=_require_text(name, "name"),
            account_type=account_type.value,
            subtype=_require_text(subtype, "subtype"),
            currency=_parse_currency(currency),
            description=description,
            is_active=True,
            is_system=True,
            created_by_id=owner_id,
        )
        try:
            with self.session.begin_nested():
                self.session.add(account)
                self.session.flush()
        except IntegrityError:
            existing = self._find_default(owner_id, account_type, subtype)
            if existing is None:
                raise
            logger.info(
                "system_account_race_resolved",
                extra={"owner_id": str(owner_id), "subtype": subtype},
            )
            return existing

        logger.info(
            "system_account_created",
            extra={
                "account_id": str(account.id),
                "owner_id": str(owner_id),
                "account_type": account.account_type,
                "subtype": subtype,
            },
        )
        return account

    def deactivate_account(self, owner_id: UUID, account_id: UUID) -> Account:
        """
        Mark an account inactive.  Its entries and balance are untouched;
        it simply cannot be posted to any more.

        Raises:
            AccountNotFoundError: unknown account or another owner's.
        """
        account = self.session.scalars(
            select(Account).where(Account.id == account_id, Account.owner_id == owner_id)
        ).first()
        if account is None:
            raise AccountNotFoundError(str(account_id))
        account.is_active = False
        account.updated_by_id = owner_id
        self.session.flush()
        logger.info("account_deactivated", extra={"account_id": str(account_id)})
        return account
