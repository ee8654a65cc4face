"""
Tests for IncomeService.

Covers:
- Recording the worked example and its stored breakdown
- Posting net salary to the ledger and the lazily created salary account
- All-or-nothing recording when the posting fails
- Overrides and other deductions
- Employers, listings and the income summary
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.exceptions import (
    ConfigurationMissingError,
    EmployerNotFoundError,
    IncomeEntryNotFoundError,
    InvalidAccountError,
    ValidationError,
)
from ledger_kernel.models.account import Account, AccountSubtype
from ledger_kernel.models.transaction import Transaction
from ledger_kernel.selectors.balance_selector import BalanceSelector
from ledger_kernel.selectors.transaction_selector import TransactionSelector
from ledger_modules.income import IncomeService, IncomeType, RecordIncomeRequest
from ledger_modules.income.orm import IncomeEntryModel
from tests.conftest import GROSS_150K

MARCH = date(2024, 3, 31)


@pytest.fixture
def income_service(session, deterministic_clock) -> IncomeService:
    return IncomeService(session, clock=deterministic_clock)


def salary(gross=GROSS_150K, income_date=MARCH, **kwargs) -> RecordIncomeRequest:
    return RecordIncomeRequest(
        gross_amount=gross,
        income_date=income_date,
        description=kwargs.pop("description", "Salary"),
        **kwargs,
    )


class TestCalculateTax:
    def test_uses_installed_rates(self, seeded_rates, income_service):
        result = income_service.calculate_tax(Decimal("150000"), calculation_date=MARCH)
        assert result.paye == Decimal("37383.40")
        assert result.net_salary == Decimal("106506.60")

    def test_defaults_to_today(self, seeded_rates, income_service):
        assert income_service.calculate_tax("150000").calculation_date == MARCH

    @pytest.mark.parametrize("gross", [Decimal("0"), Decimal("-1"), "abc", 1500.0])
    def test_invalid_gross(self, seeded_rates, income_service, gross):
        with pytest.raises(ValidationError):
            income_service.calculate_tax(gross)

    def test_gross_between_health_brackets_rejected(self, seeded_rates, income_service):
        with pytest.raises(ValidationError) as exc_info:
            income_service.calculate_tax(Decimal("5999.995"), calculation_date=MARCH)
        assert exc_info.value.field == "gross_salary"

    def test_top_of_lowest_health_bracket(self, seeded_rates, income_service):
        result = income_service.calculate_tax(Decimal("5999.99"), calculation_date=MARCH)
        assert result.nhif == Decimal("150")

    def test_no_rates_installed(self, income_service):
        with pytest.raises(ConfigurationMissingError):
            income_service.calculate_tax(GROSS_150K, calculation_date=MARCH)

    def test_tax_tables(self, seeded_rates, income_service):
        tables = income_service.get_tax_tables(2024)
        assert len(tables.bands) == 5
        assert tables.housing_levy_rate == Decimal("0.015")


class TestRecordIncome:
    def test_worked_example_recorded(self, seeded_rates, session, income_service, owner_id):
        record = income_service.record_income(owner_id, salary(description="March salary"))

        assert record.income_type is IncomeType.SALARY
        assert record.gross_amount == Decimal("150000")
        assert record.paye_before_relief == Decimal("39783.40")
        assert record.personal_relief == Decimal("2400")
        assert record.paye == Decimal("37383.40")
        assert record.nhif == Decimal("1700")
        assert record.nssf_total == Decimal("2160")
        assert record.housing_levy == Decimal("2250")
        assert record.net_amount == Decimal("106506.60")
        assert record.total_deductions == Decimal("43493.40")
        assert record.transaction_id is None
        assert record.is_manual_override is False

        breakdown = record.calculation_breakdown
        assert breakdown["calculation_date"] == "2024-03-31"
        assert [b["tax"] for b in breakdown["tax_bands"]] == ["2400.00", "2083.00", "35300.40"]

        stored = session.get(IncomeEntryModel, record.id)
        assert stored.calculation_breakdown == breakdown

    def test_reliefs_recorded(self, seeded_rates, income_service, owner_id):
        record = income_service.record_income(
            owner_id,
            salary(
                insurance_premium=Decimal("10000"),
                pension_contribution=Decimal("10000"),
                mortgage_interest=Decimal("30000"),
            ),
        )
        assert record.insurance_relief == Decimal("1500")
        assert record.pension_relief == Decimal("3000")
        assert record.mortgage_relief == Decimal("25000")
        assert record.paye == Decimal("7883.40")

    def test_other_deductions_reduce_net(self, seeded_rates, income_service, owner_id):
        record = income_service.record_income(
            owner_id,
            salary(other_deductions=Decimal("5000"), other_deductions_notes="SACCO"),
        )
        assert record.other_deductions == Decimal("5000")
        assert record.net_amount == Decimal("101506.60")
        assert record.total_deductions == Decimal("48493.40")

    def test_overrides_mark_record(self, seeded_rates, income_service, owner_id):
        record = income_service.record_income(
            owner_id,
            salary(paye_override=Decimal("30000"), override_notes="Per payslip"),
        )
        assert record.paye == Decimal("30000")
        assert record.net_amount == Decimal("113890.00")
        assert record.is_manual_override is True
        assert record.override_notes == "Per payslip"
        assert record.calculation_breakdown["overridden"] == ["paye"]

    def test_logged_with_owner_context(self, seeded_rates, income_service, owner_id, captured_logs):
        record = income_service.record_income(owner_id, salary())
        recorded = [r for r in captured_logs() if r["message"] == "income_recorded"]
        assert recorded[0]["income_entry_id"] == str(record.id)
        assert recorded[0]["owner_id"] == str(owner_id)
        assert recorded[0]["net_amount"] == "106506.60"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"description": " "},
            {"other_deductions": Decimal("-1")},
            {"insurance_premium": Decimal("-5")},
            {"nhif_override": Decimal("-1")},
            {"create_transaction": True},
        ],
    )
    def test_invalid_requests(self, seeded_rates, session, income_service, owner_id, kwargs):
        with pytest.raises(ValidationError):
            income_service.record_income(owner_id, salary(**kwargs))
        assert session.query(IncomeEntryModel).count() == 0

    def test_unknown_employer(self, seeded_rates, income_service, owner_id):
        with pytest.raises(EmployerNotFoundError):
            income_service.record_income(owner_id, salary(employer_id=uuid4()))

    def test_date_before_rates(self, seeded_rates, session, income_service, owner_id):
        with pytest.raises(ConfigurationMissingError):
            income_service.record_income(owner_id, salary(income_date=date(2023, 12, 31)))
        assert session.query(IncomeEntryModel).count() == 0


class TestLedgerPosting:
    def test_net_salary_posted(self, seeded_rates, session, income_service, owner_id, bank):
        record = income_service.record_income(
            owner_id, salary(create_transaction=True, bank_account_id=bank.id)
        )

        assert record.transaction_id is not None
        view = TransactionSelector(session).get_transaction(owner_id, record.transaction_id)
        assert view.description == "Salary"
        assert view.notes == "Net salary after deductions. Gross: KES 150,000.00"
        assert view.metadata == {"kind": "income", "income_entry_id": str(record.id)}
        assert view.total_debits == Decimal("106506.60")

        balances = BalanceSelector(session)
        assert balances.compute_account_balance(bank.id).balance == Decimal("106506.60")

    def test_salary_account_created_once(self, seeded_rates, session, income_service, owner_id, bank):
        for month in (date(2024, 2, 29), MARCH):
            income_service.record_income(
                owner_id,
                salary(income_date=month, create_transaction=True, bank_account_id=bank.id),
            )

        salary_accounts = (
            session.query(Account)
            .filter_by(owner_id=owner_id, subtype=AccountSubtype.SALARY)
            .all()
        )
        assert len(salary_accounts) == 1
        assert salary_accounts[0].name == "Salary Income"
        assert salary_accounts[0].account_type == "income"
        assert salary_accounts[0].is_system is True
        assert BalanceSelector(session).compute_account_balance(
            salary_accounts[0].id
        ).balance == Decimal("213013.20")

    def test_inactive_bank_rolls_back_everything(
        self, seeded_rates, session, income_service, account_service, owner_id, bank, captured_logs
    ):
        account_service.deactivate_account(owner_id, bank.id)
        session.commit()

        with pytest.raises(InvalidAccountError):
            income_service.record_income(
                owner_id, salary(create_transaction=True, bank_account_id=bank.id)
            )

        assert session.query(IncomeEntryModel).count() == 0
        assert session.query(Transaction).count() == 0
        assert session.query(Account).filter_by(subtype=AccountSubtype.SALARY).count() == 0
        assert any(r["message"] == "income_recording_rolled_back" for r in captured_logs())

    def test_foreign_bank_rejected(
        self, seeded_rates, session, income_service, owner_id, other_owner, create_account
    ):
        theirs = create_account("Their bank", owner=other_owner.id)
        with pytest.raises(InvalidAccountError):
            income_service.record_income(
                owner_id, salary(create_transaction=True, bank_account_id=theirs.id)
            )
        assert session.query(IncomeEntryModel).count() == 0


class TestEmployers:
    def test_current_flag_is_exclusive(self, income_service, owner_id):
        first = income_service.create_employer(owner_id, "Safaricom PLC", pin_number="P051234567X")
        second = income_service.create_employer(owner_id, "KCB Group")

        employers = income_service.list_employers(owner_id)
        assert [e.name for e in employers] == ["KCB Group", "Safaricom PLC"]
        assert [e.is_current for e in employers] == [True, False]
        assert {first.id, second.id} == {e.id for e in employers}

    def test_non_current_keeps_existing(self, income_service, owner_id):
        income_service.create_employer(owner_id, "Safaricom PLC")
        income_service.create_employer(owner_id, "Consulting client", is_current=False)
        employers = income_service.list_employers(owner_id)
        assert employers[0].name == "Safaricom PLC"
        assert employers[0].is_current is True

    def test_blank_name(self, income_service, owner_id):
        with pytest.raises(ValidationError):
            income_service.create_employer(owner_id, "")

    def test_scoped_to_owner(self, income_service, owner_id, other_owner):
        income_service.create_employer(owner_id, "Safaricom PLC")
        assert income_service.list_employers(other_owner.id) == []

    def test_income_linked_to_employer(self, seeded_rates, income_service, owner_id):
        employer = income_service.create_employer(owner_id, "Safaricom PLC")
        record = income_service.record_income(owner_id, salary(employer_id=employer.id))
        assert record.employer_id == employer.id


class TestQueries:
    @pytest.fixture
    def history(self, seeded_rates, income_service, owner_id):
        employer = income_service.create_employer(owner_id, "Safaricom PLC")
        records = [
            income_service.record_income(
                owner_id, salary(income_date=date(2024, 1, 31), employer_id=employer.id)
            ),
            income_service.record_income(
                owner_id, salary(income_date=date(2024, 2, 29), employer_id=employer.id)
            ),
            income_service.record_income(
                owner_id,
                salary(
                    gross=Decimal("20000"),
                    income_date=date(2024, 3, 15),
                    description="Dividends",
                    income_type=IncomeType.INVESTMENT,
                ),
            ),
        ]
        return employer, records

    def test_get_entry(self, history, income_service, owner_id):
        _, records = history
        assert income_service.get_income_entry(owner_id, records[0].id) == records[0]

    def test_get_entry_other_owner(self, history, income_service, other_owner):
        _, records = history
        with pytest.raises(IncomeEntryNotFoundError):
            income_service.get_income_entry(other_owner.id, records[0].id)

    def test_list_newest_first(self, history, income_service, owner_id):
        _, records = history
        listed = income_service.list_income_entries(owner_id)
        assert [r.id for r in listed] == [records[2].id, records[1].id, records[0].id]

    def test_list_filters(self, history, income_service, owner_id):
        employer, records = history
        assert [r.id for r in income_service.list_income_entries(owner_id, income_type="investment")] == [
            records[2].id
        ]
        assert len(income_service.list_income_entries(owner_id, employer_id=employer.id)) == 2
        assert [
            r.id
            for r in income_service.list_income_entries(
                owner_id, from_date=date(2024, 2, 1), to_date=date(2024, 2, 29)
            )
        ] == [records[1].id]
        assert [r.id for r in income_service.list_income_entries(owner_id, limit=1, offset=2)] == [
            records[0].id
        ]

    def test_summary(self, history, income_service, owner_id):
        _, records = history
        summary = income_service.income_summary(owner_id)
        assert summary.entry_count == 3
        assert summary.total_gross == Decimal("320000.00")
        assert summary.total_net == sum(r.net_amount for r in records)
        assert summary.total_paye == sum(r.paye for r in records)
        assert summary.total_nhif == sum(r.nhif for r in records)
        assert summary.total_housing_levy == sum(r.housing_levy for r in records)

    def test_summary_range(self, history, income_service, owner_id):
        summary = income_service.income_summary(
            owner_id, from_date=date(2024, 1, 1), to_date=date(2024, 2, 29)
        )
        assert summary.entry_count == 2
        assert summary.total_gross == Decimal("300000.00")
        assert summary.total_paye == Decimal("74766.80")
        assert summary.from_date == date(2024, 1, 1)

    def test_empty_summary(self, income_service, owner_id):
        summary = income_service.income_summary(owner_id)
        assert summary.entry_count == 0
        assert summary.total_gross == Decimal("0")
