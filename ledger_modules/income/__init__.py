"""
Income recording: employers, payroll records and the salary posting.
"""

from ledger_modules.income.models import (
    EmployerRecord,
    IncomeEntryRecord,
    IncomeSummary,
    IncomeType,
    RecordIncomeRequest,
)
from ledger_modules.income.service import IncomeService

__all__ = [
    "EmployerRecord",
    "IncomeEntryRecord",
    "IncomeService",
    "IncomeSummary",
    "IncomeType",
    "RecordIncomeRequest",
]
