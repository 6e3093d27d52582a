"""Tests for JSON log records and the per-task log context."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from invoflow_kernel.domain.dtos import InvoiceStatus
from invoflow_kernel.exceptions import InvoiceNotFoundError, PaymentExceedsBalanceError
from invoflow_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _fresh_logging():
    """Each test configures logging itself; the suite-wide setup is restored afterwards."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


@pytest.fixture
def emitted():
    """
    Configure logging onto an in-memory stream and return a reader.

    ``emitted()`` returns every record so far as a list of dicts.
    """
    stream = StringIO()
    configure_logging(handler=logging.StreamHandler(stream))

    def _read() -> list[dict]:
        return [json.loads(line) for line in stream.getvalue().splitlines() if line]

    return _read


class TestRecordShape:

    def test_base_fields(self, emitted):
        get_logger("services.invoice").info("invoice_created")

        (record,) = emitted()
        assert record["message"] == "invoice_created"
        assert record["level"] == "INFO"
        assert record["logger"] == "invoflow.services.invoice"
        assert record["ts"].endswith("+00:00")

    def test_extras_become_top_level_keys(self, emitted):
        get_logger("services.invoice").info(
            "invoice_reminded", extra={"reminder_count": 3, "number": "INV-012"},
        )

        (record,) = emitted()
        assert record["reminder_count"] == 3
        assert record["number"] == "INV-012"

    def test_typed_values_are_rendered_as_text(self, emitted):
        client_id = uuid4()
        get_logger("services.client").info(
            "client_summary",
            extra={
                "client_id": client_id,
                "outstanding": Decimal("275.50"),
                "status": InvoiceStatus.OVERDUE,
                "due_date": date(2026, 4, 1),
            },
        )

        (record,) = emitted()
        assert record["client_id"] == str(client_id)
        assert record["outstanding"] == "275.50"
        assert record["status"] == "overdue"
        assert record["due_date"] == "2026-04-01"

    def test_records_below_level_are_dropped(self, emitted):
        log = get_logger("batch.runner")
        log.debug("noise")
        log.warning("batch_item_failed")

        assert [r["message"] for r in emitted()] == ["batch_item_failed"]

    def test_string_level_is_accepted(self):
        stream = StringIO()
        configure_logging(level="debug", handler=logging.StreamHandler(stream))

        get_logger("engines.tracer").debug("visible")

        assert json.loads(stream.getvalue())["message"] == "visible"

    def test_formatter_works_on_a_foreign_handler(self):
        stream = StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(StructuredFormatter())
        foreign = logging.getLogger("tests.foreign")
        foreign.addHandler(handler)
        try:
            foreign.warning("outside_invoflow")
        finally:
            foreign.removeHandler(handler)

        assert json.loads(stream.getvalue())["logger"] == "tests.foreign"


class TestExceptionFields:

    def test_plain_exception(self, emitted):
        try:
            raise KeyError("missing")
        except KeyError:
            get_logger("batch.runner").exception("batch_item_failed")

        (record,) = emitted()
        assert record["level"] == "ERROR"
        assert record["exc_type"] == "KeyError"
        assert "exc_code" not in record
        assert "Traceback" in record["traceback"]

    def test_domain_error_attributes_are_prefixed(self, emitted):
        try:
            raise PaymentExceedsBalanceError("inv-9", Decimal("80.00"), Decimal("60.00"))
        except PaymentExceedsBalanceError:
            get_logger("services.payment").exception("payment_rejected")

        (record,) = emitted()
        assert record["exc_code"] == "PAYMENT_EXCEEDS_BALANCE"
        assert record["exc_invoice_id"] == "inv-9"
        assert record["exc_balance_due"] == "60.00"

    def test_not_found_error_carries_code(self, emitted):
        invoice_id = uuid4()
        try:
            raise InvoiceNotFoundError(invoice_id)
        except InvoiceNotFoundError:
            get_logger("services.invoice").exception("lookup_failed")

        (record,) = emitted()
        assert record["exc_type"] == "InvoiceNotFoundError"
        assert record["exc_code"] == InvoiceNotFoundError.code


class TestLogContext:

    def test_context_is_stamped_on_records(self, emitted):
        user_id = uuid4()
        LogContext.set(user_id=user_id, actor="web")

        get_logger("services.client").info("client_created")

        (record,) = emitted()
        assert record["user_id"] == str(user_id)
        assert record["actor"] == "web"
        assert "invoice_id" not in record

    def test_context_wins_over_same_named_extra(self, emitted):
        LogContext.set(invoice_id="from-context")

        get_logger("services.invoice").info("invoice_sent", extra={"invoice_id": "from-extra"})

        assert emitted()[0]["invoice_id"] == "from-context"

    def test_set_merges_with_existing_fields(self):
        LogContext.set(correlation_id="run-1")
        LogContext.set(user_id="u-1")

        assert LogContext.get_all() == {"correlation_id": "run-1", "user_id": "u-1"}

    @pytest.mark.parametrize("fields", [{"tenant": "t-1"}, {"user_id": None}])
    def test_unknown_names_and_none_values_are_ignored(self, fields):
        LogContext.set(**fields)

        assert LogContext.get_all() == {}

    def test_bind_restores_previous_fields(self):
        LogContext.set(correlation_id="outer")

        with LogContext.bind(correlation_id="inner", invoice_id="inv-1"):
            assert LogContext.get_all() == {"correlation_id": "inner", "invoice_id": "inv-1"}

        assert LogContext.get_all() == {"correlation_id": "outer"}

    def test_bind_restores_on_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(actor="batch"):
                raise RuntimeError("abort")

        assert LogContext.get_all() == {}

    def test_clear(self):
        LogContext.set(correlation_id="c", user_id="u", invoice_id="i", actor="batch")

        LogContext.clear()

        assert LogContext.get_all() == {}


class TestConfigureLogging:

    def test_only_first_call_installs_a_handler(self):
        configure_logging(handler=logging.StreamHandler(StringIO()))
        configure_logging(handler=logging.StreamHandler(StringIO()))

        assert len(logging.getLogger("invoflow").handlers) == 1

    def test_records_do_not_reach_the_root_logger(self):
        configure_logging(handler=logging.StreamHandler(StringIO()))

        assert logging.getLogger("invoflow").propagate is False

    def test_reset_removes_handlers(self):
        configure_logging(handler=logging.StreamHandler(StringIO()))

        reset_logging()

        assert logging.getLogger("invoflow").handlers == []

    def test_child_loggers_share_the_handler(self, emitted):
        get_logger("deep.nested.module").warning("nested")

        assert emitted()[0]["logger"] == "invoflow.deep.nested.module"
