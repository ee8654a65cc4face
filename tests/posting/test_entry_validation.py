"""
Tests for double-entry validation.

Covers:
- Every violation is collected
- The 0.0001 balance tolerance
- Amount and entry-type parsing
- Nothing is written when validation fails
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from ledger_kernel.domain.dtos import EntryInput
from ledger_kernel.exceptions import UnbalancedTransactionError
from ledger_kernel.models.transaction import EntryType, LedgerEntry, Transaction
from ledger_kernel.services.ledger_service import LedgerService

A = uuid4()
B = uuid4()


def entry(entry_type, amount, account_id=A):
    return EntryInput(account_id=account_id, entry_type=entry_type, amount=amount)


@pytest.fixture
def validator(session):
    return LedgerService(session)


class TestValidateEntries:
    """validate_entries collects every rule violation."""

    def test_balanced_pair(self, validator):
        result = validator.validate_entries([
            entry(EntryType.DEBIT, Decimal("100")),
            entry(EntryType.CREDIT, Decimal("100"), B),
        ])
        assert result.valid
        assert result.errors == ()

    def test_single_entry(self, validator):
        result = validator.validate_entries([entry(EntryType.DEBIT, Decimal("100"))])
        assert not result.valid
        assert "Transaction must have at least 2 entries (debit and credit)" in result.errors

    def test_empty(self, validator):
        result = validator.validate_entries([])
        assert result.errors == ("Transaction must have at least 2 entries (debit and credit)",)

    def test_split_transaction_balances(self, validator):
        """100 + 50 debits against a single 150 credit."""
        result = validator.validate_entries([
            entry(EntryType.DEBIT, Decimal("100")),
            entry(EntryType.DEBIT, Decimal("50")),
            entry(EntryType.CREDIT, Decimal("150"), B),
        ])
        assert result.valid

    def test_imbalance_at_tolerance_rejected(self, validator):
        result = validator.validate_entries([
            entry(EntryType.DEBIT, Decimal("100")),
            entry(EntryType.DEBIT, Decimal("50")),
            entry(EntryType.CREDIT, Decimal("150.0001"), B),
        ])
        assert not result.valid
        assert result.errors == (
            "Transaction not balanced: Debits (150) != Credits (150.0001)",
        )

    def test_imbalance_below_tolerance_accepted(self, validator):
        result = validator.validate_entries([
            entry(EntryType.DEBIT, Decimal("150")),
            entry(EntryType.CREDIT, Decimal("150.00009"), B),
        ])
        assert result.valid

    @pytest.mark.parametrize(
        "amount", [Decimal("0"), Decimal("-5"), "abc", 10.5, None, Decimal("1.0000000001")]
    )
    def test_invalid_amount(self, validator, amount):
        result = validator.validate_entries([
            entry(EntryType.DEBIT, amount),
            entry(EntryType.CREDIT, Decimal("10"), B),
        ])
        assert not result.valid
        assert f"Invalid amount: {amount}" in result.errors

    def test_nine_decimal_places_accepted(self, validator):
        result = validator.validate_entries([
            entry(EntryType.DEBIT, Decimal("10.123456789")),
            entry(EntryType.CREDIT, Decimal("10.123456789000"), B),
        ])
        assert result.valid

    def test_invalid_entry_type(self, validator):
        result = validator.validate_entries([
            entry("SIDEWAYS", Decimal("10")),
            entry(EntryType.CREDIT, Decimal("10"), B),
        ])
        assert "Invalid entry type: SIDEWAYS" in result.errors

    def test_entry_type_strings_accepted(self, validator):
        result = validator.validate_entries([
            entry("DEBIT", "10.00"),
            entry("credit", 10, B),
        ])
        assert result.valid

    def test_all_errors_collected(self, validator):
        result = validator.validate_entries([entry("SIDEWAYS", Decimal("-1"))])
        assert len(result.errors) == 3


class TestRejectedPostingWritesNothing:
    """A failed create_transaction leaves no rows behind."""

    def test_unbalanced_raises_with_errors(self, session, ledger_service, owner_id, bank, rent):
        with pytest.raises(UnbalancedTransactionError) as exc_info:
            ledger_service.create_transaction(
                owner_id=owner_id,
                description="Rent",
                transaction_date=date(2024, 3, 1),
                entries=[
                    entry(EntryType.DEBIT, Decimal("100"), rent.id),
                    entry(EntryType.DEBIT, Decimal("50"), rent.id),
                    entry(EntryType.CREDIT, Decimal("150.0001"), bank.id),
                ],
            )
        assert exc_info.value.code == "UNBALANCED_TRANSACTION"
        assert exc_info.value.errors == [
            "Transaction not balanced: Debits (150) != Credits (150.0001)",
        ]
        session.rollback()
        assert session.query(Transaction).count() == 0
        assert session.query(LedgerEntry).count() == 0


class TestBalanceProperty:
    """Validation agrees with exact Decimal arithmetic."""

    @given(
        debits=st.lists(
            st.decimals(min_value=Decimal("0.01"), max_value=Decimal("1000000"), places=2),
            min_size=1,
            max_size=6,
        ),
    )
    @settings(max_examples=100)
    def test_mirrored_entries_always_balance(self, debits):
        validator = LedgerService(session=None)
        entries = [entry(EntryType.DEBIT, d) for d in debits]
        entries.append(entry(EntryType.CREDIT, sum(debits), B))
        assert validator.validate_entries(entries).valid

    @given(
        amount=st.decimals(min_value=Decimal("0.01"), max_value=Decimal("1000000"), places=2),
        skew=st.decimals(min_value=Decimal("0.0001"), max_value=Decimal("10"), places=4),
    )
    @settings(max_examples=100)
    def test_skewed_entries_never_balance(self, amount, skew):
        validator = LedgerService(session=None)
        result = validator.validate_entries([
            entry(EntryType.DEBIT, amount),
            entry(EntryType.CREDIT, amount + skew, B),
        ])
        assert not result.valid
