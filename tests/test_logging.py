"""Tests for the structured logging system (ledger_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite's setup."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "ledger_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("posted", extra={"entry_count": 2, "status": "posted"})

        record = _parse_log(stream)
        assert record["entry_count"] == 2
        assert record["status"] == "posted"

    def test_decimal_and_uuid_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info("amounts", extra={"account_id": uid, "amount": Decimal("106506.60")})

        record = _parse_log(stream)
        assert record["account_id"] == str(uid)
        assert record["amount"] == "106506.60"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", owner_id="owner-1")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["owner_id"] == "owner-1"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "owner_id" not in record

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_code_extracted(self):
        """Kernel exceptions carry a .code attribute and structured fields."""
        from ledger_kernel.exceptions import ConfigurationMissingError

        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ConfigurationMissingError("tax_bands", "2023-12-31", "no active rows")
        except ConfigurationMissingError:
            get_logger("test").error("rates_missing", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "CONFIGURATION_MISSING"
        assert record["exc_type"] == "ConfigurationMissingError"
        assert record["exc_table"] == "tax_bands"
        assert record["exc_as_of"] == "2023-12-31"


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    def test_set_ignores_none(self):
        LogContext.set(owner_id="owner-1")
        LogContext.set(owner_id=None, transaction_id="txn-1")
        assert LogContext.get_all() == {"owner_id": "owner-1", "transaction_id": "txn-1"}

    def test_unknown_field(self):
        with pytest.raises(KeyError):
            LogContext.set(tenant="x")

    def test_bind_restores(self):
        LogContext.set(owner_id="outer")
        with LogContext.bind(owner_id="inner", income_entry_id="inc-1"):
            assert LogContext.get_all() == {"owner_id": "inner", "income_entry_id": "inc-1"}
        assert LogContext.get_all() == {"owner_id": "outer"}

    def test_bind_stringifies(self):
        uid = uuid4()
        with LogContext.bind(owner_id=uid):
            assert LogContext.get_all()["owner_id"] == str(uid)

    def test_clear(self):
        LogContext.set(correlation_id="abc")
        LogContext.clear()
        assert LogContext.get_all() == {}


# ---------------------------------------------------------------------------
# Configuration tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    def test_idempotent(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=handler)
        get_logger("test").info("once")
        assert len(_parse_all_logs(stream)) == 1

    def test_level_respected(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.WARNING, handler=handler)
        logger = get_logger("test")
        logger.info("hidden")
        logger.warning("shown")
        assert [r["message"] for r in _parse_all_logs(stream)] == ["shown"]

    def test_loggers_share_namespace(self):
        assert get_logger("services.ledger").name == "ledger_kernel.services.ledger"
