"""Read-only selectors: balances, transactions, accounts and rate tables."""

from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.selectors.balance_selector import BalanceSelector
from ledger_kernel.selectors.rate_table_selector import RateTableSelector
from ledger_kernel.selectors.transaction_selector import TransactionSelector

__all__ = [
    "AccountSelector",
    "BalanceSelector",
    "RateTableSelector",
    "TransactionSelector",
]
