"""
Unit Tests for the logging setup
"""

import json
import logging

import pytest

from dukkan.core.logging_config import (
    JsonFormatter,
    RequestContextFilter,
    bind_request,
    build_logging_config,
    current_request_id,
    reset_request,
)

pytestmark = pytest.mark.unit


def make_record(msg: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("dukkan.services.stock_ledger", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestRequestContext:

    def test_record_carries_bound_request(self):
        token = bind_request("req_abc", "POST", "/api/v1/sales")
        try:
            record = make_record("Stock updated")
            RequestContextFilter().filter(record)
            assert current_request_id() == "req_abc"
        finally:
            reset_request(token)

        assert record.request_id == "req_abc"
        assert record.route == "POST /api/v1/sales"
        assert current_request_id() is None

    def test_outside_request(self):
        record = make_record("startup")
        RequestContextFilter().filter(record)

        assert record.request_id == "-"
        assert record.route == "-"


class TestJsonFormatter:

    def test_includes_extra_fields(self):
        record = make_record("Stock updated", product_id="P1", request_id="req_1", route="DELETE /api/v1/sales/s1")

        entry = json.loads(JsonFormatter().format(record))

        assert entry["msg"] == "Stock updated"
        assert entry["level"] == "INFO"
        assert entry["product_id"] == "P1"
        assert entry["route"] == "DELETE /api/v1/sales/s1"
        assert "args" not in entry


class TestBuildLoggingConfig:

    def test_console_only_by_default(self):
        config = build_logging_config("INFO", "text")

        assert list(config["handlers"]) == ["console"]
        assert config["handlers"]["console"]["formatter"] == "text"
        assert config["loggers"]["botocore"]["level"] == "WARNING"

    def test_log_file_adds_rotating_json_handler(self, tmp_path):
        config = build_logging_config("DEBUG", "text", str(tmp_path / "dukkan.log"))

        assert config["root"]["handlers"] == ["console", "file"]
        assert config["handlers"]["file"]["class"] == "logging.handlers.RotatingFileHandler"
        assert config["handlers"]["file"]["formatter"] == "json"
