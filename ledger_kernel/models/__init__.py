"""Domain models for the ledger kernel."""

from ledger_kernel.models.account import (
    Account,
    AccountSubtype,
    AccountType,
    NormalBalance,
    normal_balance_for,
)
from ledger_kernel.models.owner import Owner
from ledger_kernel.models.rate_tables import (
    HealthInsuranceBracketRow,
    HousingLevyConfigRow,
    RateTableKind,
    SocialSecurityConfigRow,
    TaxBandRow,
)
from ledger_kernel.models.transaction import (
    EntryType,
    LedgerEntry,
    Transaction,
    TransactionStatus,
)

__all__ = [
    "Account",
    "AccountSubtype",
    "AccountType",
    "NormalBalance",
    "normal_balance_for",
    "Owner",
    "Transaction",
    "TransactionStatus",
    "LedgerEntry",
    "EntryType",
    "RateTableKind",
    "TaxBandRow",
    "HealthInsuranceBracketRow",
    "SocialSecurityConfigRow",
    "HousingLevyConfigRow",
]
