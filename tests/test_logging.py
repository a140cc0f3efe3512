"""Tests for the structured logging system (rent_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from rent_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


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
        assert record["logger"] == "rent_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info(
            "billing_run_completed", extra={"records_created": 3, "skipped": 1},
        )

        record = _parse_log(stream)
        assert record["records_created"] == 3
        assert record["skipped"] == 1

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(run_id="run-1", tenant_id="tenant-9")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["run_id"] == "run-1"
        assert record["tenant_id"] == "tenant-9"

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

    def test_billing_exception_code_extracted(self):
        """Billing exceptions carry a .code attribute and structured fields."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        from rent_kernel.exceptions import LeaseValidationError

        try:
            raise LeaseValidationError("t-1", "due_day_of_month", "is required")
        except LeaseValidationError:
            get_logger("test").error("lease_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "LEASE_VALIDATION_FAILED"
        assert record["exc_type"] == "LeaseValidationError"
        assert record["exc_tenant_id"] == "t-1"
        assert record["exc_field"] == "due_day_of_month"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "run_id" not in record
        assert "tenant_id" not in record

    def test_uuid_date_decimal_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info(
            "with_values",
            extra={
                "record_id": uid,
                "due_date": date(2025, 11, 30),
                "amount": Decimal("15000.00"),
            },
        )

        record = _parse_log(stream)
        assert record["record_id"] == str(uid)
        assert record["due_date"] == "2025-11-30"
        assert record["amount"] == "15000.00"

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")  # below the default INFO level

        logs = _parse_all_logs(stream)
        assert len(logs) == 2
        for record in logs:
            assert {"ts", "level", "logger", "message"} <= set(record)


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(run_id="x", trigger="manual")
        assert LogContext.get_all() == {"run_id": "x", "trigger": "manual"}

    def test_clear(self):
        LogContext.set(run_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(tenant_id="outer")
        with LogContext.bind(tenant_id="inner"):
            assert LogContext.get_all()["tenant_id"] == "inner"
        assert LogContext.get_all()["tenant_id"] == "outer"

    def test_bind_restores_none(self):
        assert "run_id" not in LogContext.get_all()
        with LogContext.bind(run_id="temp"):
            assert LogContext.get_all()["run_id"] == "temp"
        assert "run_id" not in LogContext.get_all()

    def test_bind_ignores_unknown_fields(self):
        with LogContext.bind(run_id="r", not_a_field="x"):
            assert LogContext.get_all() == {"run_id": "r"}

    def test_all_fields(self):
        LogContext.set(run_id="r", tenant_id="t", actor_id="a", trigger="scheduled")

        assert LogContext.get_all() == {
            "run_id": "r",
            "trigger": "scheduled",
            "tenant_id": "t",
            "actor_id": "a",
        }

    def test_set_rejects_unknown_field(self):
        with pytest.raises(TypeError, match="correlation_id"):
            LogContext.set(correlation_id="c")

    def test_set_none_keeps_value(self):
        LogContext.set(run_id="r")
        LogContext.set(run_id=None, trigger="manual")
        assert LogContext.get_all() == {"run_id": "r", "trigger": "manual"}

    def test_bind_restores_after_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(run_id="r", tenant_id="t"):
                raise RuntimeError("worker crashed")
        assert LogContext.get_all() == {}


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is no-op

        handlers = logging.getLogger("rent_kernel").handlers
        assert h1 in handlers
        assert h2 not in handlers

    def test_reset_leaves_foreign_handlers(self):
        """Only the handler configure_logging installed is detached."""
        foreign, _ = _make_handler()
        root = logging.getLogger("rent_kernel")
        root.addHandler(foreign)
        try:
            installed, _ = _make_handler()
            configure_logging(handler=installed)

            reset_logging()

            assert foreign in root.handlers
            assert installed not in root.handlers
        finally:
            root.removeHandler(foreign)

    def test_reset_allows_reconfigure(self):
        first, _ = _make_handler()
        configure_logging(handler=first)
        reset_logging()
        second, stream = _make_handler()
        configure_logging(handler=second)

        get_logger("test").warning("after_reset")

        assert _parse_log(stream)["message"] == "after_reset"

    def test_get_logger_returns_child(self):
        assert get_logger("billing.driver").name == "rent_kernel.billing.driver"

    def test_logger_hierarchy(self):
        """Child loggers inherit the rent_kernel root config."""
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "rent_kernel.deep.nested.module"

    def test_level_accepts_name(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level="WARNING")
        logger = get_logger("test")
        logger.info("dropped")
        logger.warning("kept")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["kept"]
