"""Tests for the structured logging system (stock_kernel/logging_config.py)."""

import json
import logging
from io import StringIO
from uuid import uuid4

import pytest

from stock_kernel.exceptions import InsufficientStockError
from stock_kernel.logging_config import (
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
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


class TestStructuredFormatter:

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)

        get_logger("test").info("hello")

        record = _parse_all_logs(stream)[0]
        assert record["message"] == "hello"
        assert record["level"] == "INFO"
        assert record["logger"] == "stock_kernel.test"
        assert "ts" in record

    def test_extra_fields_are_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        item_id = uuid4()

        get_logger("test").info("stock_restocked", extra={"item_id": item_id, "new_quantity": 12})

        record = _parse_all_logs(stream)[0]
        assert record["item_id"] == str(item_id)
        assert record["new_quantity"] == 12

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")

        try:
            raise InsufficientStockError("item-1", "Gauze", 5, 3)
        except InsufficientStockError:
            logger.warning("refused", exc_info=True)

        record = _parse_all_logs(stream)[0]
        assert record["exc_type"] == "InsufficientStockError"
        assert record["exc_code"] == "INSUFFICIENT_STOCK"
        assert record["exc_requested"] == 5
        assert record["exc_available"] == 3
        assert "traceback" in record


class TestLogContext:

    def test_bound_fields_appear_on_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")

        with LogContext.bind(correlation_id="corr-1", operation="approve_request"):
            logger.info("first")
            logger.info("second")
        logger.info("outside")

        records = _parse_all_logs(stream)
        assert records[0]["correlation_id"] == "corr-1"
        assert records[1]["operation"] == "approve_request"
        assert "correlation_id" not in records[2]

    def test_bind_restores_outer_values(self):
        with LogContext.bind(actor_id="outer"):
            with LogContext.bind(actor_id="inner", item_id="i-1"):
                assert LogContext.get_all() == {"actor_id": "inner", "item_id": "i-1"}
            assert LogContext.get_all() == {"actor_id": "outer"}

    def test_bind_stringifies_uuids(self):
        request_id = uuid4()
        with LogContext.bind(request_id=request_id):
            assert LogContext.get_all()["request_id"] == str(request_id)

    def test_clear(self):
        with LogContext.bind(correlation_id="c", actor_id="a"):
            LogContext.clear()

            assert LogContext.get_all() == {}

    def test_none_values_are_not_bound(self):
        with LogContext.bind(actor_id=None, operation="list_requests"):
            assert LogContext.get_all() == {"operation": "list_requests"}

    def test_unknown_field_is_rejected(self):
        with pytest.raises(TypeError, match="ward"):
            with LogContext.bind(ward="3"):
                pass

    def test_context_wins_over_extra(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)

        with LogContext.bind(item_id="bound"):
            get_logger("test").info("stock_deducted", extra={"item_id": "extra"})

        assert _parse_all_logs(stream)[0]["item_id"] == "bound"


def test_configure_logging_is_idempotent():
    handler, stream = _make_handler()
    configure_logging(handler=handler)
    configure_logging(handler=handler)

    get_logger("test").info("once")

    assert len(_parse_all_logs(stream)) == 1
