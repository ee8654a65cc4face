"""
Income Helpers (``ledger_modules.income.helpers``).

Responsibility
--------------
Pure functions used by ``IncomeService``: turning a RecordIncomeRequest
into engine inputs, the net-pay arithmetic and the two salary posting
lines.

Architecture position
---------------------
**Modules layer** -- pure helper functions.  No I/O, no session, no
clock.

Invariants enforced
-------------------
* All numeric inputs and outputs use ``Decimal`` -- NEVER ``float``.
* The salary posting is always one DEBIT and one CREDIT of the same
  amount, so it balances by construction.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from ledger_engines.paye import DeductionOverrides, ReliefInputs
from ledger_kernel.domain.dtos import EntryInput
from ledger_kernel.domain.money import ZERO, round_money, to_decimal
from ledger_kernel.exceptions import ValidationError
from ledger_kernel.models.transaction import EntryType
from ledger_modules.income.models import RecordIncomeRequest

SALARY_ACCOUNT_NAME = "Salary Income"
SALARY_ACCOUNT_DESCRIPTION = "Salary and employment income"


def require_amount(
    value, field: str, *, positive: bool = False, cents: bool = False
) -> Decimal:
    """
    Convert ``value`` to Decimal or raise ValidationError.

    Zero is accepted unless ``positive``; negatives never are.  With
    ``cents`` the amount may not carry fractions of a cent.
    """
    try:
        amount = to_decimal(value)
    except ValueError as exc:
        raise ValidationError(str(exc), field=field) from None
    if amount < ZERO or (positive and amount == ZERO):
        raise ValidationError(
            f"{field} must be {'greater than zero' if positive else 'zero or more'}",
            field=field,
        )
    if cents and amount != round_money(amount):
        raise ValidationError(f"{field} cannot have more than 2 decimal places", field=field)
    return amount


def relief_inputs(request: RecordIncomeRequest) -> ReliefInputs:
    return ReliefInputs(
        insurance_premium=require_amount(request.insurance_premium, "insurance_premium"),
        pension_contribution=require_amount(request.pension_contribution, "pension_contribution"),
        mortgage_interest=require_amount(request.mortgage_interest, "mortgage_interest"),
    )


def deduction_overrides(request: RecordIncomeRequest) -> DeductionOverrides:
    def _opt(value, field):
        return None if value is None else require_amount(value, field)

    return DeductionOverrides(
        paye=_opt(request.paye_override, "paye_override"),
        nhif=_opt(request.nhif_override, "nhif_override"),
        nssf_tier1=_opt(request.nssf_tier1_override, "nssf_tier1_override"),
        nssf_tier2=_opt(request.nssf_tier2_override, "nssf_tier2_override"),
        housing_levy=_opt(request.housing_levy_override, "housing_levy_override"),
    )


def compute_net_amount(
    gross: Decimal, statutory_deductions: Decimal, other_deductions: Decimal
) -> Decimal:
    """net = gross - (statutory + other), rounded to the cent."""
    return round_money(gross - (statutory_deductions + other_deductions))


def format_kes(amount: Decimal) -> str:
    """``Decimal("150000")`` -> ``"KES 150,000.00"``."""
    return f"KES {round_money(amount):,.2f}"


def salary_notes(gross: Decimal) -> str:
    return f"Net salary after deductions. Gross: {format_kes(gross)}"


def salary_posting_entries(
    bank_account_id: UUID, salary_account_id: UUID, net_amount: Decimal
) -> list[EntryInput]:
    """DEBIT the bank for net pay, CREDIT salary income for the same amount."""
    return [
        EntryInput(
            account_id=bank_account_id,
            entry_type=EntryType.DEBIT,
            amount=net_amount,
            description="Salary received (net)",
        ),
        EntryInput(
            account_id=salary_account_id,
            entry_type=EntryType.CREDIT,
            amount=net_amount,
            description="Salary earned",
        ),
    ]
