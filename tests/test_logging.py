"""Tests for the structured logging system (treasury_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from treasury_kernel.logging_config import (
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
        assert record["logger"] == "treasury_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("imported", extra={"inserted": 42, "status": "committed"})

        record = _parse_log(stream)
        assert record["inserted"] == 42
        assert record["status"] == "committed"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", period_key="2025-09")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["period_key"] == "2025-09"

    def test_money_and_dates_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info(
            "figures",
            extra={"closing": Decimal("80.00"), "day": date(2025, 9, 30), "movement": uid},
        )

        record = _parse_log(stream)
        assert record["closing"] == "80.00"
        assert record["day"] == "2025-09-30"
        assert record["movement"] == str(uid)

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

    def test_treasury_exception_code_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        from treasury_kernel.exceptions import PeriodClosedError

        try:
            raise PeriodClosedError(2025, 9, date(2025, 9, 15))
        except PeriodClosedError:
            get_logger("test").error("period_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "PERIOD_CLOSED"
        assert record["exc_type"] == "PeriodClosedError"
        assert record["exc_period_key"] == "2025-09"
        assert record["exc_movement_date"] == "2025-09-15"

    def test_foreign_exception_attributes_not_copied(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        error = ValueError("bad sheet")
        error.sheet = "CORTE SEPTIEMBRE"
        try:
            raise error
        except ValueError:
            get_logger("test").error("read_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert "exc_code" not in record
        assert "exc_sheet" not in record

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "period_key" not in record

    def test_debug_filtered_at_info(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        assert [r["message"] for r in logs] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", actor="treasurer")
        assert LogContext.get_all() == {"correlation_id": "x", "actor": "treasurer"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(period_key="2025-08")
        with LogContext.bind(period_key="2025-09"):
            assert LogContext.get_all()["period_key"] == "2025-09"
        assert LogContext.get_all()["period_key"] == "2025-08"

    def test_bind_restores_none(self):
        assert "movement_id" not in LogContext.get_all()
        with LogContext.bind(movement_id="m-1"):
            assert LogContext.get_all()["movement_id"] == "m-1"
        assert "movement_id" not in LogContext.get_all()

    def test_bind_ignores_none_values(self):
        LogContext.set(actor="treasurer")
        with LogContext.bind(actor=None, producer="historical_import"):
            assert LogContext.get_all() == {"actor": "treasurer", "producer": "historical_import"}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            actor="a",
            producer="p",
            period_key="2025-09",
            movement_id="m",
        )
        assert len(LogContext.get_all()) == 5


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)

        handlers = logging.getLogger("treasury_kernel").handlers
        assert h1 in handlers
        assert h2 not in handlers

    def test_get_logger_returns_child(self):
        assert get_logger("services.closing_workflow").name == "treasury_kernel.services.closing_workflow"

    def test_level_by_name(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level="WARNING")
        logger = get_logger("test")
        logger.info("hidden")
        logger.warning("shown")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["shown"]
