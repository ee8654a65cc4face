"""
Tests for derived balances, transfers and the account registry.

Covers:
- Sign convention per classification
- VOID transactions drop out of balances
- Transfers between two of the owner's accounts
- Net-worth roll-up
- AccountService validation and system accounts
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.exceptions import (
    AccountNotFoundError,
    InvalidAccountError,
    ValidationError,
)
from ledger_kernel.models.account import Account, AccountSubtype, AccountType
from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.selectors.balance_selector import BalanceSelector, signed_balance


@pytest.fixture
def balances(session):
    return BalanceSelector(session)


class TestSignConvention:
    """ASSET/EXPENSE are debit-normal, the rest credit-normal."""

    @pytest.mark.parametrize(
        "account_type,expected",
        [
            (AccountType.ASSET, Decimal("70")),
            (AccountType.EXPENSE, Decimal("70")),
            (AccountType.LIABILITY, Decimal("-70")),
            (AccountType.INCOME, Decimal("-70")),
            ("equity", Decimal("-70")),
        ],
    )
    def test_signed_balance(self, account_type, expected):
        assert signed_balance(account_type, Decimal("100"), Decimal("30")) == expected

    def test_balances_after_postings(self, post, balances, create_account, bank, rent, credit_card):
        salary = create_account("Salary", AccountType.INCOME, "SALARY")
        post(bank, salary, Decimal("100000"))
        post(rent, bank, Decimal("25000"))
        post(rent, credit_card, Decimal("5000"))

        assert balances.compute_account_balance(bank.id).balance == Decimal("75000")
        assert balances.compute_account_balance(rent.id).balance == Decimal("30000")
        assert balances.compute_account_balance(credit_card.id).balance == Decimal("5000")
        assert balances.compute_account_balance(salary.id).balance == Decimal("100000")

    def test_untouched_account_is_zero(self, balances, bank):
        result = balances.compute_account_balance(bank.id)
        assert result.balance == Decimal("0")
        assert result.total_debits == result.total_credits == Decimal("0")

    def test_order_independent(self, post, balances, bank, rent, mpesa):
        post(rent, bank, Decimal("10.25"))
        post(mpesa, bank, Decimal("3.75"))
        post(bank, mpesa, Decimal("1.00"))
        assert balances.compute_account_balance(bank.id).balance == Decimal("-13.00")

    def test_owner_scoped(self, balances, bank, other_owner):
        with pytest.raises(AccountNotFoundError):
            balances.compute_account_balance(bank.id, owner_id=other_owner.id)

    def test_unknown_account(self, balances):
        with pytest.raises(AccountNotFoundError):
            balances.compute_account_balance(uuid4())


class TestVoidedTransactionsExcluded:
    def test_void_restores_balance(
        self, session, post, balances, ledger_service, owner_id, bank, rent
    ):
        post(rent, bank, Decimal("500"))
        mistake = post(rent, bank, Decimal("500"))
        assert balances.compute_account_balance(bank.id).balance == Decimal("-1000")

        ledger_service.void_transaction(owner_id, mistake.id, "Duplicate")
        session.commit()

        assert balances.compute_account_balance(bank.id).balance == Decimal("-500")
        assert balances.compute_account_balance(rent.id).balance == Decimal("500")


class TestTransfer:
    """Transfers post DEBIT destination / CREDIT source."""

    def test_transfer_moves_funds(
        self, session, post, ledger_service, balances, owner_id, create_account, bank, mpesa
    ):
        salary = create_account("Salary", AccountType.INCOME, "SALARY")
        post(bank, salary, Decimal("10000"))

        txn = ledger_service.transfer(
            owner_id, bank.id, mpesa.id, Decimal("2500"), date(2024, 3, 5)
        )
        session.commit()

        assert txn.description == "Transfer from Equity Bank to M-Pesa"
        assert txn.transaction_metadata == {"kind": "transfer"}
        assert balances.compute_account_balance(bank.id).balance == Decimal("7500")
        assert balances.compute_account_balance(mpesa.id).balance == Decimal("2500")

    def test_custom_description(self, ledger_service, owner_id, bank, mpesa):
        txn = ledger_service.transfer(
            owner_id, bank.id, mpesa.id, "100", date(2024, 3, 5), description="Top up"
        )
        assert txn.description == "Top up"

    def test_same_account_rejected(self, ledger_service, owner_id, bank):
        with pytest.raises(ValidationError):
            ledger_service.transfer(owner_id, bank.id, bank.id, Decimal("1"), date(2024, 3, 5))

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-10"), "ten"])
    def test_bad_amount_rejected(self, ledger_service, owner_id, bank, mpesa, amount):
        with pytest.raises(ValidationError):
            ledger_service.transfer(owner_id, bank.id, mpesa.id, amount, date(2024, 3, 5))

    def test_foreign_destination_rejected(
        self, ledger_service, owner_id, bank, other_owner, create_account
    ):
        theirs = create_account("Their M-Pesa", subtype="MPESA", owner=other_owner.id)
        with pytest.raises(InvalidAccountError):
            ledger_service.transfer(owner_id, bank.id, theirs.id, Decimal("1"), date(2024, 3, 5))


class TestAccountSummary:
    def test_net_worth_rollup(self, post, balances, owner_id, create_account, bank, mpesa, credit_card):
        salary = create_account("Salary", AccountType.INCOME, "SALARY")
        mmf = create_account("Money market fund", AccountType.ASSET, AccountSubtype.INVESTMENT)
        chama = create_account("Chama pot", AccountType.ASSET, AccountSubtype.VIRTUAL)
        groceries = create_account("Groceries", AccountType.EXPENSE, "FOOD")

        post(bank, salary, Decimal("100000"))
        post(mpesa, bank, Decimal("5000"))
        post(mmf, bank, Decimal("20000"))
        post(chama, bank, Decimal("3000"))
        post(groceries, credit_card, Decimal("4000"))

        summary = balances.account_summary(owner_id)
        assert summary.liquid_cash == Decimal("77000")
        assert summary.investments == Decimal("20000")
        assert summary.virtual == Decimal("3000")
        assert summary.total_assets == Decimal("100000")
        assert summary.total_liabilities == Decimal("4000")
        assert summary.net_worth == Decimal("96000")
        assert len(summary.accounts) == 7

    def test_inactive_accounts_excluded(
        self, session, account_service, balances, owner_id, bank, mpesa
    ):
        account_service.deactivate_account(owner_id, mpesa.id)
        session.commit()
        names = [b.name for b in balances.account_summary(owner_id).accounts]
        assert names == ["Equity Bank"]
        assert len(balances.account_balances(owner_id, include_inactive=True)) == 2


class TestAccountService:
    def test_create_defaults(self, create_account):
        account = create_account("Cash", AccountType.ASSET, "CASH")
        assert account.currency == "KES"
        assert account.is_active is True
        assert account.is_system is False

    def test_type_accepts_strings(self, create_account):
        assert create_account("Loan", "LIABILITY", "LOAN").account_type == "liability"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"name": " "},
            {"subtype": ""},
            {"account_type": "savings"},
            {"currency": "KSHS"},
            {"currency": "K1S"},
        ],
    )
    def test_invalid_fields(self, account_service, owner_id, kwargs):
        fields = {
            "owner_id": owner_id,
            "name": "Cash",
            "account_type": AccountType.ASSET,
            "subtype": "CASH",
            **kwargs,
        }
        with pytest.raises(ValidationError):
            account_service.create_account(**fields)

    def test_system_account_created_once(self, session, account_service, owner_id, captured_logs):
        first = account_service.get_or_create_system_account(
            owner_id, AccountType.INCOME, AccountSubtype.SALARY, "Salary Income"
        )
        second = account_service.get_or_create_system_account(
            owner_id, "income", AccountSubtype.SALARY, "Salary Income"
        )
        session.commit()

        assert first.id == second.id
        assert first.is_system is True
        assert session.query(Account).filter_by(owner_id=owner_id).count() == 1
        created = [r for r in captured_logs() if r["message"] == "system_account_created"]
        assert len(created) == 1

    def test_system_account_reuses_owner_account(
        self, account_service, owner_id, create_account
    ):
        mine = create_account("My salary", AccountType.INCOME, AccountSubtype.SALARY)
        found = account_service.get_or_create_system_account(
            owner_id, AccountType.INCOME, AccountSubtype.SALARY, "Salary Income"
        )
        assert found.id == mine.id

    def test_system_accounts_are_per_owner(self, account_service, owner_id, other_owner):
        mine = account_service.get_or_create_system_account(
            owner_id, AccountType.INCOME, AccountSubtype.SALARY, "Salary Income"
        )
        theirs = account_service.get_or_create_system_account(
            other_owner.id, AccountType.INCOME, AccountSubtype.SALARY, "Salary Income"
        )
        assert mine.id != theirs.id

    def test_deactivate(self, session, account_service, owner_id, bank):
        account_service.deactivate_account(owner_id, bank.id)
        session.commit()
        info = AccountSelector(session).get_account(owner_id, bank.id)
        assert info.is_active is False

    def test_deactivate_foreign(self, account_service, other_owner, bank):
        with pytest.raises(AccountNotFoundError):
            account_service.deactivate_account(other_owner.id, bank.id)


class TestAccountSelector:
    def test_list_filters(self, session, owner_id, bank, rent, credit_card):
        selector = AccountSelector(session)
        assert [a.name for a in selector.list_accounts(owner_id)] == [
            "Equity Bank",
            "Rent",
            "Credit Card",
        ]
        assert [a.name for a in selector.list_accounts(owner_id, account_type="expense")] == [
            "Rent"
        ]

    def test_get_foreign(self, session, other_owner, bank):
        with pytest.raises(AccountNotFoundError):
            AccountSelector(session).get_account(other_owner.id, bank.id)
