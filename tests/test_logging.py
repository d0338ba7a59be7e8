"""Tests for structured logging and the correlation ID middleware."""

import json
import logging
import sys
import uuid

import pytest

from sugar_monitor.logging_config import (
    JsonFormatter,
    TextFormatter,
    correlation_id_ctx,
    get_logger,
    setup_logging,
)
from sugar_monitor.middleware.correlation import (
    CORRELATION_ID_HEADER,
    resolve_correlation_id,
)


def _record(level=logging.INFO, msg="Test", extra_fields=None, exc_info=None):
    record = logging.LogRecord(
        name="test.logger",
        level=level,
        pathname="/app/weekly.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    if extra_fields is not None:
        record.extra_fields = extra_fields
    return record


class TestJsonFormatter:
    def test_basic_fields(self):
        parsed = json.loads(
            JsonFormatter(service_name="sugar-test").format(_record(msg="Reading recorded"))
        )

        assert parsed["level"] == "INFO"
        assert parsed["service"] == "sugar-test"
        assert parsed["message"] == "Reading recorded"
        assert parsed["logger"] == "test.logger"
        assert "timestamp" in parsed
        assert "correlation_id" not in parsed

    def test_includes_correlation_id_and_extra_fields(self):
        token = correlation_id_ctx.set("req-123")
        try:
            parsed = json.loads(
                JsonFormatter().format(
                    _record(extra_fields={"user_id": "u1", "alert_type": "high_glucose"})
                )
            )
        finally:
            correlation_id_ctx.reset(token)

        assert parsed["correlation_id"] == "req-123"
        assert parsed["user_id"] == "u1"
        assert parsed["alert_type"] == "high_glucose"

    def test_error_includes_location_and_exception(self):
        try:
            raise ValueError("smtp down")
        except ValueError:
            exc_info = sys.exc_info()

        parsed = json.loads(
            JsonFormatter().format(_record(level=logging.ERROR, exc_info=exc_info))
        )

        assert parsed["location"]["file"] == "/app/weekly.py"
        assert parsed["location"]["line"] == 42
        assert "ValueError" in parsed["exception"]

    def test_non_serializable_extra_is_stringified(self):
        user_id = uuid.uuid4()
        parsed = json.loads(JsonFormatter().format(_record(extra_fields={"id": user_id})))
        assert parsed["id"] == str(user_id)


class TestTextFormatter:
    def test_format_with_correlation_id_and_extras(self):
        formatter = TextFormatter(service_name="sugar-test")
        token = correlation_id_ctx.set("abc-123")
        try:
            output = formatter.format(
                _record(msg="Weekly report sent", extra_fields={"sent": 3})
            )
        finally:
            correlation_id_ctx.reset(token)

        assert "sugar-test" in output
        assert "[abc-123]" in output
        assert output.endswith("Weekly report sent sent=3")

    def test_missing_correlation_id_renders_dash(self):
        output = TextFormatter().format(_record())
        assert "[-]" in output


class TestStructuredLogger:
    def test_info_with_extra_fields(self, caplog):
        logger = get_logger("sugar_monitor.test")

        with caplog.at_level(logging.INFO):
            logger.info("Alert recorded", alert_type="low_glucose")

        assert "Alert recorded" in caplog.text
        assert caplog.records[-1].extra_fields == {"alert_type": "low_glucose"}

    def test_exception_attaches_traceback(self, caplog):
        logger = get_logger("sugar_monitor.test")

        with caplog.at_level(logging.ERROR):
            try:
                raise RuntimeError("boom")
            except RuntimeError:
                logger.exception("Job failed", job="weekly_reports")

        record = caplog.records[-1]
        assert record.levelno == logging.ERROR
        assert record.exc_info is not None

    def test_name(self):
        assert get_logger("sugar_monitor.x").name == "sugar_monitor.x"


class TestSetupLogging:
    def test_json_logging(self):
        setup_logging(log_format="json", log_level="DEBUG", service_name="custom")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert root.handlers[0].formatter.service_name == "custom"

    def test_text_logging_quiets_scheduler(self):
        setup_logging(log_format="text", log_level="INFO")

        assert isinstance(logging.getLogger().handlers[0].formatter, TextFormatter)
        assert logging.getLogger("apscheduler").level == logging.WARNING


class TestCorrelationId:
    def test_keeps_well_formed_client_id(self):
        assert resolve_correlation_id(b"client-req_42") == "client-req_42"

    @pytest.mark.parametrize("raw", [None, b"", b"bad id\nwith newline", b"x" * 200])
    def test_generates_uuid_otherwise(self, raw):
        value = resolve_correlation_id(raw)
        assert str(uuid.UUID(value)) == value

    @pytest.mark.asyncio
    async def test_response_echoes_header(self, client):
        response = await client.get(
            "/health/live", headers={CORRELATION_ID_HEADER: "trace-7"}
        )

        assert response.status_code == 200
        assert response.headers[CORRELATION_ID_HEADER] == "trace-7"
