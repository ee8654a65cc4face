"""
ORM-level immutability enforcement.

SQLAlchemy fires mapper events before an UPDATE or DELETE reaches the
database.  The listeners registered here inspect attribute history and raise
ImmutabilityViolationError (or AccountReferencedError) so the flush aborts
and nothing is written.

    session.flush()
         |
         v
    [before_flush]  --> account deletions with entries --> AccountReferencedError
         |
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
         |
    [before_delete] --> _check_*_delete() ---------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Entity        | When immutable                   | What stays writable
--------------|----------------------------------|------------------------------------------
Transaction   | status POSTED                    | POSTED -> VOID with voided_at,
              |                                  | void_reason, metadata
Transaction   | status VOID                      | nothing
LedgerEntry   | parent POSTED or VOID            | nothing
Account       | always                           | everything except account_type
Account       | once referenced by entries       | currency frozen, delete refused

updated_at and updated_by_id are audit metadata and are always writable.
Modules protect their own tables with model-level listeners built on
changed_fields() and blocked_violation() (see ledger_modules.income.orm).

Usage:

    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # init_engine_from_url() does this

    unregister_immutability_listeners()  # tests only
"""

from sqlalchemy import event, exists, inspect, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.exceptions import AccountReferencedError, ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})

# Fields the POSTED -> VOID transition may touch
_VOID_TRANSITION_FIELDS = frozenset(
    {"status", "voided_at", "void_reason", "transaction_metadata"}
)


def blocked_violation(
    entity_type: str, entity_id, operation: str, reason: str, field: str | None = None
) -> ImmutabilityViolationError:
    """Log a refused change and return the error for the caller to raise."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "field": field,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def changed_fields(target) -> list[str]:
    """Attribute keys with pending changes, audit fields excluded."""
    insp = inspect(target)
    return [
        attr.key
        for attr in insp.attrs
        if attr.key not in _AUDIT_FIELDS and attr.history.has_changes()
    ]


def _status_before_flush(target) -> str:
    """The status the row had before the pending change, as a plain string."""
    history = get_history(target, "status")
    old = history.deleted[0] if history.deleted else target.status
    return getattr(old, "value", old)


# =============================================================================
# Transactions and entries
# =============================================================================


def _check_transaction_immutability(mapper, connection, target):
    """
    Block edits to POSTED and VOID transactions.

    DRAFT -> POSTED is the posting itself and is allowed.  From POSTED the
    only legal change is the void transition.  VOID is terminal.
    """
    from ledger_kernel.models.transaction import TransactionStatus

    old_status = _status_before_flush(target)
    if old_status == TransactionStatus.DRAFT.value:
        return

    changed = changed_fields(target)
    if not changed:
        return

    if old_status == TransactionStatus.VOID.value:
        raise blocked_violation(
            "Transaction", target.id, "UPDATE",
            f"Cannot modify field '{changed[0]}' on void transaction",
            field=changed[0],
        )

    # old_status is POSTED
    new_status = getattr(target.status, "value", target.status)
    illegal = [f for f in changed if f not in _VOID_TRANSITION_FIELDS]
    if illegal or new_status != TransactionStatus.VOID.value:
        field = illegal[0] if illegal else "status"
        raise blocked_violation(
            "Transaction", target.id, "UPDATE",
            f"Cannot modify field '{field}' on posted transaction",
            field=field,
        )


def _check_transaction_delete(mapper, connection, target):
    """Posted and void transactions cannot be deleted."""
    from ledger_kernel.models.transaction import TransactionStatus

    if _status_before_flush(target) != TransactionStatus.DRAFT.value:
        raise blocked_violation(
            "Transaction", target.id, "DELETE",
            "Posted or void transactions cannot be deleted",
        )


def _parent_is_final(target) -> bool:
    from ledger_kernel.models.transaction import TransactionStatus

    parent = target.transaction
    if parent is None:
        return False
    return _status_before_flush(parent) != TransactionStatus.DRAFT.value


def _check_ledger_entry_immutability(mapper, connection, target):
    """Entries are frozen once their transaction is posted."""
    if _parent_is_final(target):
        raise blocked_violation(
            "LedgerEntry", target.id, "UPDATE",
            "Ledger entries cannot be modified after the transaction is posted",
        )


def _check_ledger_entry_delete(mapper, connection, target):
    """Entries cannot be deleted once their transaction is posted."""
    if _parent_is_final(target):
        raise blocked_violation(
            "LedgerEntry", target.id, "DELETE",
            "Ledger entries cannot be deleted after the transaction is posted",
        )


# =============================================================================
# Accounts
# =============================================================================


def _account_is_referenced(connection, account_id) -> bool:
    from ledger_kernel.models.transaction import LedgerEntry

    stmt = select(exists().where(LedgerEntry.account_id == account_id))
    return bool(connection.execute(stmt).scalar())


def _check_account_immutability(mapper, connection, target):
    """Classification never changes; currency freezes once referenced."""
    if get_history(target, "account_type").deleted:
        raise blocked_violation(
            "Account", target.id, "UPDATE",
            "Account classification cannot change after creation",
            field="account_type",
        )
    if get_history(target, "currency").deleted and _account_is_referenced(
        connection, target.id
    ):
        raise blocked_violation(
            "Account", target.id, "UPDATE",
            "Account currency cannot change once ledger entries reference it",
            field="currency",
        )


def _check_account_deletion_before_flush(session, flush_context, instances):
    """
    Refuse to delete accounts that ledger entries reference.

    Runs in before_flush, before the flush plan is fixed.  The FK on
    ledger_entries.account_id is ON DELETE RESTRICT as well.
    """
    from ledger_kernel.models.account import Account
    from ledger_kernel.models.transaction import LedgerEntry

    for obj in list(session.deleted):
        if not isinstance(obj, Account):
            continue
        with session.no_autoflush:
            referenced = session.execute(
                select(exists().where(LedgerEntry.account_id == obj.id))
            ).scalar()
        if referenced:
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "Account",
                    "entity_id": str(obj.id),
                    "operation": "DELETE",
                    "reason": "account_has_entries",
                },
            )
            raise AccountReferencedError(account_id=str(obj.id))


# =============================================================================
# Registration
# =============================================================================


def _listeners():
    from ledger_kernel.models.account import Account
    from ledger_kernel.models.transaction import LedgerEntry, Transaction

    return (
        (Session, "before_flush", _check_account_deletion_before_flush),
        (Transaction, "before_update", _check_transaction_immutability),
        (Transaction, "before_delete", _check_transaction_delete),
        (LedgerEntry, "before_update", _check_ledger_entry_immutability),
        (LedgerEntry, "before_delete", _check_ledger_entry_delete),
        (Account, "before_update", _check_account_immutability),
    )


def register_immutability_listeners():
    """Register all immutability listeners (idempotent)."""
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)
    logger.debug("immutability_listeners_registered")


def unregister_immutability_listeners():
    """Remove the immutability listeners. FOR TESTING ONLY."""
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
    logger.debug("immutability_listeners_unregistered")
