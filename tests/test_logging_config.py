"""
Unit tests for the JSON and console log formatters.
"""

import json
import logging

from intake.core.logging_config import ConsoleFormatter, CustomJsonFormatter


def make_record(message, level=logging.INFO, **extra):
    record = logging.LogRecord("intake.request", level, __file__, 42, message, None, None)
    record.__dict__.update(extra)
    return record


REQUEST_EXTRA = {
    "method": "POST",
    "path": "/api/applications",
    "status_code": 201,
    "duration_ms": 87,
    "client_ip": "203.0.113.7",
}


class TestJsonFormatter:
    def setup_method(self):
        self.formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(logger)s %(message)s", service="intake-test")

    def test_request_fields_nested(self):
        line = json.loads(self.formatter.format(make_record("request_completed", **REQUEST_EXTRA)))

        assert line["message"] == "request_completed"
        assert line["request"] == REQUEST_EXTRA
        assert "method" not in line
        assert "module" not in line
        assert line["service"] == "intake-test"
        assert line["level"] == "INFO"
        assert line["logger"] == "intake.request"
        assert line["timestamp"].endswith("Z")

    def test_plain_record(self):
        line = json.loads(self.formatter.format(make_record("Submission state: PARSED")))

        assert "request" not in line
        assert line["module"] == "test_logging_config"
        assert "line" not in line

    def test_source_location_on_warnings(self):
        line = json.loads(self.formatter.format(make_record("Orphaned storage object", level=logging.WARNING)))
        assert line["line"] == 42
        assert line["pathname"] == __file__


class TestConsoleFormatter:
    def test_request_fields_appended(self):
        formatter = ConsoleFormatter("%(levelname)s %(message)s")
        line = formatter.format(make_record("request_completed", **REQUEST_EXTRA))

        assert line.startswith("INFO request_completed ")
        assert "method=POST" in line
        assert "status_code=201" in line
        assert "duration_ms=87" in line

    def test_plain_record_unchanged(self):
        formatter = ConsoleFormatter("%(levelname)s %(message)s")
        assert formatter.format(make_record("Saved 2 file records")) == "INFO Saved 2 file records"
