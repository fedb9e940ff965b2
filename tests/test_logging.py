"""Tests for the structured logging system (showroom_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from showroom_kernel.logging_config import (
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
        logger = get_logger("test")
        logger.info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "showroom_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("posted", extra={"attempt": 2, "status": "posted"})

        record = _parse_log(stream)
        assert record["attempt"] == 2
        assert record["status"] == "posted"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        with LogContext.bind(command_id="cmd-123", employee_id="emp-7"):
            get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["command_id"] == "cmd-123"
        assert record["employee_id"] == "emp-7"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_code_extracted(self):
        """Kernel exceptions carry a .code attribute and structured fields."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        from showroom_kernel.exceptions import InsufficientStockError

        try:
            raise InsufficientStockError("AFL-SOF-103", 2, 1)
        except InsufficientStockError:
            logger.error("stock_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "INSUFFICIENT_STOCK"
        assert record["exc_type"] == "InsufficientStockError"
        assert record["exc_product_code"] == "AFL-SOF-103"
        assert record["exc_requested"] == 2
        assert record["exc_available"] == 1

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "command_id" not in record
        assert "invoice_id" not in record

    def test_uuid_and_decimal_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info("amounts", extra={"invoice_ref": uid, "final_amount": Decimal("45000.00")})

        record = _parse_log(stream)
        assert record["invoice_ref"] == str(uid)
        assert record["final_amount"] == "45000.00"

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # Default level is INFO, so the debug line is dropped
        assert len(logs) == 2
        for record in logs:
            assert {"ts", "level", "logger", "message"} <= set(record)

# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------

class TestLogContext:
    """Tests for context propagation."""

    def test_empty_by_default(self):
        assert LogContext.get_all() == {}

    def test_bind_nests_and_restores(self):
        with LogContext.bind(command_id="outer", correlation_id="req-1"):
            with LogContext.bind(command_id="inner", invoice_id="inv"):
                assert LogContext.get_all() == {
                    "command_id": "inner",
                    "correlation_id": "req-1",
                    "invoice_id": "inv",
                }
            assert LogContext.get_all() == {"command_id": "outer", "correlation_id": "req-1"}
        assert LogContext.get_all() == {}

    def test_bind_restores_after_exception(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(product_id="temp"):
                raise RuntimeError("boom")
        assert "product_id" not in LogContext.get_all()

    def test_bind_skips_none_and_unknown_fields(self):
        with LogContext.bind(command_id="c", employee_id=None, shelf="A3"):
            assert LogContext.get_all() == {"command_id": "c"}

    def test_get_all_is_a_copy(self):
        with LogContext.bind(command_id="c"):
            LogContext.get_all()["command_id"] = "tampered"
            assert LogContext.get_all()["command_id"] == "c"

    def test_clear(self):
        with LogContext.bind(command_id="x"):
            LogContext.clear()
            assert LogContext.get_all() == {}

    def test_all_fields(self):
        with LogContext.bind(
            correlation_id="c",
            command_id="m",
            employee_id="e",
            product_id="p",
            invoice_id="i",
        ):
            ctx = LogContext.get_all()
        assert len(ctx) == 5
        assert ctx["invoice_id"] == "i"

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
        assert len(logging.getLogger("showroom_kernel").handlers) == 1

    def test_get_logger_returns_child(self):
        assert get_logger("services.invoice_coordinator").name == (
            "showroom_kernel.services.invoice_coordinator"
        )

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "showroom_kernel.deep.nested.module"
