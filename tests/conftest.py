"""
Pytest fixtures for the ledger test suite.

Provides:
- A fresh in-memory SQLite database per test, with every table created;
  engine initialization registers the immutability listeners
- The 2024 Kenyan rate set, loaded through ledger_config and installed
  through RateTableService
- Owner, account and clock fixtures
- Structured log capture

Environment Variables:
- LEDGER_TEST_DATABASE_URL: run against another database (e.g. a
  disposable PostgreSQL).  Defaults to in-memory SQLite.
"""

import json
import logging
import os
from datetime import UTC, date, datetime
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import UUID

import pytest
from sqlalchemy.orm import Session

from ledger_config import get_rate_set
from ledger_config.bridges import to_rate_table_version
from ledger_config.schema import RateTableSet
from ledger_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.dtos import EntryInput
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.owner import Owner
from ledger_kernel.models.transaction import EntryType
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.ledger_service import LedgerService
from ledger_kernel.services.rate_table_service import RateTableService

DEFAULT_TEST_URL = "sqlite://"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger_service):
            ledger_service.create_transaction(...)
            logs = captured_logs()
            assert any(r["message"] == "transaction_posted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    """A fresh database with every table, torn down after the test."""
    eng = init_engine_from_url(os.environ.get("LEDGER_TEST_DATABASE_URL", DEFAULT_TEST_URL))
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    """Provide a database session for testing."""
    sess = get_session()
    yield sess
    sess.rollback()
    sess.close()


# Clock fixtures


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock fixed at 2024-03-31 12:00 UTC."""
    return DeterministicClock(datetime(2024, 3, 31, 12, 0, 0, tzinfo=UTC))


# =============================================================================
# Reference data
# =============================================================================


@pytest.fixture
def ke_2024() -> RateTableSet:
    """The shipped 2024 Kenyan rate set, parsed."""
    return get_rate_set("ke_2024")


@pytest.fixture
def seeded_rates(session, deterministic_clock, ke_2024) -> RateTableSet:
    """Install the 2024 rate tables and commit."""
    RateTableService(session, clock=deterministic_clock).install(to_rate_table_version(ke_2024))
    session.commit()
    return ke_2024


def make_owner(session: Session, email: str) -> Owner:
    owner = Owner(email=email, display_name=email.split("@")[0])
    session.add(owner)
    session.commit()
    return owner


@pytest.fixture
def owner(session) -> Owner:
    return make_owner(session, "wanjiku@example.com")


@pytest.fixture
def other_owner(session) -> Owner:
    return make_owner(session, "otieno@example.com")


@pytest.fixture
def owner_id(owner) -> UUID:
    return owner.id


# Service fixtures


@pytest.fixture
def account_service(session, deterministic_clock) -> AccountService:
    return AccountService(session, clock=deterministic_clock)


@pytest.fixture
def ledger_service(session, deterministic_clock) -> LedgerService:
    return LedgerService(session, clock=deterministic_clock)


@pytest.fixture
def create_account(session, account_service, owner_id):
    """Factory fixture to create committed accounts for the default owner."""

    def _create_account(
        name: str,
        account_type: AccountType | str = AccountType.ASSET,
        subtype: str = "BANK",
        currency: str | None = None,
        owner: UUID | None = None,
    ) -> Account:
        account = account_service.create_account(
            owner_id=owner or owner_id,
            name=name,
            account_type=account_type,
            subtype=subtype,
            currency=currency,
        )
        session.commit()
        return account

    return _create_account


@pytest.fixture
def bank(create_account) -> Account:
    return create_account("Equity Bank", AccountType.ASSET, "BANK")


@pytest.fixture
def mpesa(create_account) -> Account:
    return create_account("M-Pesa", AccountType.ASSET, "MPESA")


@pytest.fixture
def rent(create_account) -> Account:
    return create_account("Rent", AccountType.EXPENSE, "HOUSING")


@pytest.fixture
def credit_card(create_account) -> Account:
    return create_account("Credit Card", AccountType.LIABILITY, "CARD")


@pytest.fixture
def post(session, ledger_service, owner_id):
    """Post a balanced two-line transaction and commit.  Debit first."""

    def _post(
        debit_account: Account,
        credit_account: Account,
        amount,
        transaction_date: date = date(2024, 3, 1),
        description: str = "Test transaction",
        idempotency_key: str | None = None,
    ):
        txn = ledger_service.create_transaction(
            owner_id=owner_id,
            description=description,
            transaction_date=transaction_date,
            entries=make_pair(debit_account.id, credit_account.id, amount),
            idempotency_key=idempotency_key,
        )
        session.commit()
        return txn

    return _post


def make_pair(debit_account_id: UUID, credit_account_id: UUID, amount) -> list[EntryInput]:
    """One DEBIT and one CREDIT for the same amount."""
    return [
        EntryInput(account_id=debit_account_id, entry_type=EntryType.DEBIT, amount=amount),
        EntryInput(account_id=credit_account_id, entry_type=EntryType.CREDIT, amount=amount),
    ]


GROSS_150K = Decimal("150000")
