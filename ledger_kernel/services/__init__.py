"""Write services for the ledger kernel.  All of them flush, none commit."""

from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.ledger_service import LedgerService
from ledger_kernel.services.rate_table_service import RateTableService

__all__ = [
    "AccountService",
    "LedgerService",
    "RateTableService",
]
