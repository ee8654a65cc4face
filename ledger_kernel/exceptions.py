"""
Typed exception hierarchy for the ledger kernel.

Every failure in the kernel, the PAYE engine and the income module surfaces
as a subclass of LedgerKernelError.  Callers catch by type, read the
machine-readable ``code`` attribute, and use the structured attributes
(account ids, statuses, the collected validation errors) to build their own
messages.  No error here is transient: all of them are deterministic
functions of the input and the persisted state, so retrying without a change
will fail again.

    LedgerKernelError (base)
    |
    +-- ValidationError
    |
    +-- PostingError
    |   +-- UnbalancedTransactionError
    |   +-- InvalidAccountError
    |   +-- DuplicateIdempotencyKeyError
    |
    +-- LifecycleError
    |   +-- TransactionNotFoundError
    |   +-- InvalidStateTransitionError
    |
    +-- AccountError
    |   +-- AccountNotFoundError
    |   +-- AccountReferencedError
    |
    +-- ConfigurationError
    |   +-- ConfigurationMissingError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- IncomeError
        +-- EmployerNotFoundError
        +-- IncomeEntryNotFoundError

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Missing or malformed caller input
----------------|-----------------------------|-----------------------------------------
Posting         | UNBALANCED_TRANSACTION      | Entry rules violated, debits != credits
                | INVALID_ACCOUNT             | Missing, foreign or inactive account
                | DUPLICATE_IDEMPOTENCY_KEY   | Key already used by another owner
----------------|-----------------------------|-----------------------------------------
Lifecycle       | TRANSACTION_NOT_FOUND       | Transaction id unknown for this owner
                | INVALID_STATE_TRANSITION    | e.g. voiding a VOID transaction
----------------|-----------------------------|-----------------------------------------
Account         | ACCOUNT_NOT_FOUND           | Account id unknown for this owner
                | ACCOUNT_REFERENCED          | Delete of an account with entries
----------------|-----------------------------|-----------------------------------------
Configuration   | CONFIGURATION_MISSING       | No (or ambiguous) active rate row
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Edit/delete of a posted record
----------------|-----------------------------|-----------------------------------------
Income          | EMPLOYER_NOT_FOUND          | Employer id unknown for this owner
                | INCOME_ENTRY_NOT_FOUND      | Income entry id unknown for this owner
"""


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must define a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


class ValidationError(LedgerKernelError):
    """Caller input is missing or malformed."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


# Posting exceptions


class PostingError(LedgerKernelError):
    """Base exception for posting errors."""

    code: str = "POSTING_ERROR"


class UnbalancedTransactionError(PostingError):
    """
    Transaction entries failed validation.

    ``errors`` carries every violation found, not just the first one, so the
    caller can report them all at once.
    """

    code: str = "UNBALANCED_TRANSACTION"

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("Invalid transaction: " + "; ".join(self.errors))


class InvalidAccountError(PostingError):
    """Account cannot be posted to by this owner."""

    code: str = "INVALID_ACCOUNT"

    def __init__(self, account_id: str, reason: str):
        self.account_id = account_id
        self.reason = reason
        super().__init__(f"Invalid account {account_id}: {reason}")


class DuplicateIdempotencyKeyError(PostingError):
    """Idempotency key already belongs to a transaction of another owner."""

    code: str = "DUPLICATE_IDEMPOTENCY_KEY"

    def __init__(self, idempotency_key: str):
        self.idempotency_key = idempotency_key
        super().__init__(f"Idempotency key already in use: {idempotency_key}")


# Lifecycle exceptions


class LifecycleError(LedgerKernelError):
    """Base exception for transaction lifecycle errors."""

    code: str = "LIFECYCLE_ERROR"


class TransactionNotFoundError(LifecycleError):
    """Transaction does not exist or belongs to another owner."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


class InvalidStateTransitionError(LifecycleError):
    """Requested status change is not allowed by the lifecycle."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, transaction_id: str, from_status: str, to_status: str):
        self.transaction_id = transaction_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Transaction {transaction_id} cannot move from "
            f"{from_status} to {to_status}"
        )


# Account exceptions


class AccountError(LedgerKernelError):
    """Base exception for account errors."""

    code: str = "ACCOUNT_ERROR"


class AccountNotFoundError(AccountError):
    """Account does not exist or belongs to another owner."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class AccountReferencedError(AccountError):
    """Account has ledger entries and cannot be deleted."""

    code: str = "ACCOUNT_REFERENCED"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(
            f"Account {account_id} is referenced by ledger entries and cannot be deleted"
        )


# Configuration exceptions


class ConfigurationError(LedgerKernelError):
    """Base exception for rate configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class ConfigurationMissingError(ConfigurationError):
    """
    No single active rate row exists for the requested date.

    Fatal: the calculation must not fall back to a guessed rate.
    """

    code: str = "CONFIGURATION_MISSING"

    def __init__(self, table: str, as_of: str, detail: str):
        self.table = table
        self.as_of = as_of
        self.detail = detail
        super().__init__(f"Rate table {table} unusable for {as_of}: {detail}")


# Immutability exceptions


class ImmutabilityError(LedgerKernelError):
    """Base exception for immutability errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete a protected record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )


# Income exceptions


class IncomeError(LedgerKernelError):
    """Base exception for income recording errors."""

    code: str = "INCOME_ERROR"


class EmployerNotFoundError(IncomeError):
    """Employer does not exist or belongs to another owner."""

    code: str = "EMPLOYER_NOT_FOUND"

    def __init__(self, employer_id: str):
        self.employer_id = employer_id
        super().__init__(f"Employer not found: {employer_id}")


class IncomeEntryNotFoundError(IncomeError):
    """Income entry does not exist or belongs to another owner."""

    code: str = "INCOME_ENTRY_NOT_FOUND"

    def __init__(self, income_entry_id: str):
        self.income_entry_id = income_entry_id
        super().__init__(f"Income entry not found: {income_entry_id}")
