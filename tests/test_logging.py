"""Structured JSON logging: formatter output, bound context, initialization."""

import json
import logging
from io import StringIO
from uuid import uuid4

import pytest

from warehouse_kernel.domain.dtos import StockEventType
from warehouse_kernel.exceptions import (
    InsufficientStockError,
    LocationFormatError,
    PersistenceError,
)
from warehouse_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _isolated_logging():
    """Each test configures logging itself; the suite-wide setup comes back after."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())


@pytest.fixture
def emitted():
    """Configure logging into a buffer; return a reader for the parsed lines."""
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    configure_logging(handler=handler)

    def _read() -> list[dict]:
        return [json.loads(line) for line in stream.getvalue().splitlines() if line]

    return _read


log = get_logger("test")


class TestStructuredFormatter:

    def test_base_fields(self, emitted):
        log.info("hello")

        [record] = emitted()
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "warehouse_kernel.test"
        assert "ts" in record

    def test_extras_are_top_level_keys(self, emitted):
        log.info("stock_deducted", extra={"after": "0/0/2", "deleted": False})

        [record] = emitted()
        assert record["after"] == "0/0/2"
        assert record["deleted"] is False

    def test_extras_do_not_override_base_fields(self, emitted):
        log.info("real", extra={"level": "fake"})
        assert emitted()[0]["level"] == "INFO"

    def test_uuid_and_enum_values(self, emitted):
        uid = uuid4()
        log.info("merged", extra={"merged_into": uid, "event_type": StockEventType.MERGE})

        [record] = emitted()
        assert record["merged_into"] == str(uid)
        assert record["event_type"] == "merge"

    def test_plain_exception(self, emitted):
        try:
            raise ValueError("boom")
        except ValueError:
            log.error("failed", exc_info=True)

        [record] = emitted()
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "exc_code" not in record
        assert "traceback" in record

    def test_kernel_exception_attributes_flattened(self, emitted):
        try:
            raise InsufficientStockError(1, 10, 5, sku="SKU-7", tier_name="carton")
        except InsufficientStockError:
            log.error("deduction_failed", exc_info=True)

        [record] = emitted()
        assert record["exc_code"] == "INSUFFICIENT_STOCK"
        assert (record["exc_requested"], record["exc_available"]) == (10, 5)
        assert record["exc_sku"] == "SKU-7"
        assert record["exc_tier_name"] == "carton"

    def test_location_error_code(self, emitted):
        try:
            raise LocationFormatError("ZZ")
        except LocationFormatError:
            log.warning("bad_location", exc_info=True)

        [record] = emitted()
        assert record["exc_code"] == "INVALID_LOCATION_FORMAT"
        assert record["exc_raw"] == "ZZ"

    def test_chained_cause_reported(self, emitted):
        try:
            try:
                raise ConnectionError("gateway down")
            except ConnectionError as exc:
                raise PersistenceError("update_location", uuid4(), (("gateway", "down"),)) from exc
        except PersistenceError:
            log.error("write_failed", exc_info=True)

        [record] = emitted()
        assert record["exc_cause_type"] == "ConnectionError"
        assert record["exc_cause_message"] == "gateway down"

    def test_default_level_drops_debug(self, emitted):
        log.info("first")
        log.warning("second")
        log.debug("third")

        assert [r["message"] for r in emitted()] == ["first", "second"]


class TestLogContext:

    def test_bound_fields_on_records(self, emitted):
        with LogContext.bind(item_id="item-1", batch_id="batch-9"):
            log.info("transfer_planned")
        log.info("after")

        inside, outside = emitted()
        assert (inside["item_id"], inside["batch_id"]) == ("item-1", "batch-9")
        assert "item_id" not in outside

    def test_set_get_clear(self):
        LogContext.set(correlation_id="x", actor_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "actor_id": "y"}
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_nested_bind_restores_outer(self):
        with LogContext.bind(batch_id="outer"):
            with LogContext.bind(batch_id="inner", item_id="i"):
                assert LogContext.get_all() == {"batch_id": "inner", "item_id": "i"}
            assert LogContext.get_all() == {"batch_id": "outer"}
        assert LogContext.get_all() == {}

    def test_bind_stringifies_and_skips_none(self):
        uid = uuid4()
        with LogContext.bind(item_id=uid, actor_id=None):
            assert LogContext.get_all() == {"item_id": str(uid)}

    def test_bind_restores_after_exception(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(batch_id="b"):
                raise RuntimeError
        assert LogContext.get_all() == {}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError, match="warehouse"):
            LogContext.set(warehouse="MAIN")


class TestConfigureLogging:

    def test_only_first_call_counts(self):
        configure_logging(handler=logging.StreamHandler(StringIO()))
        configure_logging(handler=logging.StreamHandler(StringIO()))
        assert len(logging.getLogger("warehouse_kernel").handlers) == 1

    def test_level_name_from_config_file(self):
        configure_logging(level="debug", stream=StringIO())
        assert logging.getLogger("warehouse_kernel").level == logging.DEBUG

    def test_children_share_the_handler(self):
        stream = StringIO()
        configure_logging(level=logging.DEBUG, stream=stream)
        get_logger("engines.tracer").debug("hierarchy_test")

        record = json.loads(stream.getvalue().splitlines()[0])
        assert record["logger"] == "warehouse_kernel.engines.tracer"
