import json
import logging

import pytest

from swift_invoice.config.logging import JsonFormatter, bind_context
from swift_invoice.config.observability import (
    INVOICE_OPERATIONS,
    record_invoice_operation,
    trace_operation,
)

pytestmark = [pytest.mark.unit]


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("swift_invoice.test", logging.WARNING, __file__, 1,
                               "Slow response: %sms", (1200,), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_emits_one_object_with_context():
    line = json.loads(JsonFormatter().format(_record(request_id="req-1", invoice_number="INV-1")))
    assert line["level"] == "WARNING"
    assert line["logger"] == "swift_invoice.test"
    assert line["message"] == "Slow response: 1200ms"
    assert line["request_id"] == "req-1"
    assert line["invoice_number"] == "INV-1"
    assert "user_id" not in line


def test_bind_context_without_fields_returns_logger():
    logger = logging.getLogger("swift_invoice.test")
    assert bind_context(logger) is logger
    adapter = bind_context(logger, request_id="req-2")
    assert adapter.extra == {"request_id": "req-2"}


def test_trace_operation_passes_through_and_reraises():
    with trace_operation("unit_ok", invoice_id="abc") as span:
        assert span is not None

    with pytest.raises(RuntimeError, match="boom"):
        with trace_operation("unit_fail"):
            raise RuntimeError("boom")


def test_record_invoice_operation_increments_counter():
    before = INVOICE_OPERATIONS.labels("unit_check")._value.get()
    record_invoice_operation("unit_check")
    assert INVOICE_OPERATIONS.labels("unit_check")._value.get() == before + 1
