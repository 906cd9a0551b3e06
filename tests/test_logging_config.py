"""
Tests for log record filters and the JSON formatter.
"""

import json
import logging

from movietime_booking.middleware.logging import request_id_var
from movietime_booking.utils.logging_config import (
    CorrelationIDFilter,
    JSONFormatter,
    SensitiveDataFilter,
)


def make_record(msg, **extra):
    record = logging.LogRecord("movietime_booking.test", logging.INFO, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_correlation_id_from_request():
    token = request_id_var.set("req-123")
    try:
        record = make_record("reserved")
        CorrelationIDFilter().filter(record)
    finally:
        request_id_var.reset(token)

    assert record.correlation_id == "req-123"


def test_correlation_id_outside_request_and_task():
    record = make_record("sweep")
    CorrelationIDFilter().filter(record)

    assert record.correlation_id == "no-request-id"


def test_sensitive_data_is_masked():
    record = make_record(
        "Sent reminder to bob@example.com",
        details={"smtp_password": "hunter2", "recipients": ["alice@example.com"]},
    )

    SensitiveDataFilter().filter(record)

    assert record.msg == "Sent reminder to ***EMAIL***"
    assert record.details == {"smtp_password": "***MASKED***", "recipients": ["***EMAIL***"]}


def test_json_formatter_keeps_extras():
    record = make_record("Business event: booking.paid", event_type="booking.paid", correlation_id="req-1")

    entry = json.loads(JSONFormatter().format(record))

    assert entry["message"] == "Business event: booking.paid"
    assert entry["correlation_id"] == "req-1"
    assert entry["extra"] == {"event_type": "booking.paid"}
