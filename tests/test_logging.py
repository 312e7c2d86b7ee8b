"""
Tests for Logging Infrastructure
"""
import pytest
import json
import logging
from io import StringIO

from payhook.core.logging import (
    CorrelationIdFilter,
    JSONFormatter,
    generate_correlation_id,
    get_correlation_id,
    get_logger,
    set_correlation_id,
)


class TestCorrelationId:
    """Tests for correlation ID management"""

    @pytest.mark.unit
    def test_generate_correlation_id(self):
        cid = generate_correlation_id()

        assert len(cid) == 8
        assert cid.isalnum()

    @pytest.mark.unit
    def test_set_and_get_correlation_id(self):
        result = set_correlation_id("test1234")

        assert result == "test1234"
        assert get_correlation_id() == "test1234"

    @pytest.mark.unit
    def test_set_correlation_id_generates_if_none(self):
        result = set_correlation_id(None)

        assert len(result) == 8
        assert get_correlation_id() == result


class TestJSONFormatter:
    """Tests for JSON log formatting"""

    @pytest.fixture
    def log_stream(self) -> StringIO:
        return StringIO()

    @pytest.fixture
    def json_handler(self, log_stream: StringIO) -> logging.Handler:
        handler = logging.StreamHandler(log_stream)
        handler.setFormatter(JSONFormatter())
        return handler

    @pytest.mark.unit
    def test_json_format_with_correlation_id(
        self,
        log_stream: StringIO,
        json_handler: logging.Handler
    ):
        set_correlation_id("batch001")

        logger = logging.getLogger("test_json_corr")
        logger.addHandler(json_handler)
        logger.setLevel(logging.INFO)

        logger.info("Processing 3 pending webhooks")

        log_entry = json.loads(log_stream.getvalue())
        assert log_entry["level"] == "INFO"
        assert log_entry["message"] == "Processing 3 pending webhooks"
        assert log_entry["logger"] == "test_json_corr"
        assert log_entry["correlation_id"] == "batch001"
        assert log_entry["timestamp"].endswith("Z")

    @pytest.mark.unit
    def test_json_format_with_exception(
        self,
        log_stream: StringIO,
        json_handler: logging.Handler
    ):
        logger = logging.getLogger("test_json_exc")
        logger.addHandler(json_handler)
        logger.setLevel(logging.ERROR)

        try:
            raise ValueError("Test error")
        except ValueError:
            logger.error("Webhook handler error", exc_info=True)

        log_entry = json.loads(log_stream.getvalue())
        assert "ValueError" in log_entry["exception"]


class TestStructuredLogger:

    @pytest.mark.unit
    def test_logger_with_extra_data(self):
        log_stream = StringIO()
        handler = logging.StreamHandler(log_stream)
        handler.setFormatter(JSONFormatter())

        logger = get_logger("test.extra")
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)

        logger.info(
            "Webhook retry scheduled",
            extra_data={"event_id": "abc", "attempts": 2},
        )

        log_entry = json.loads(log_stream.getvalue())
        assert log_entry["extra"] == {"event_id": "abc", "attempts": 2}

    @pytest.mark.unit
    def test_correlation_id_filter_defaults_to_dash(self):
        from payhook.core.logging import correlation_id_var

        token = correlation_id_var.set("")
        try:
            record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", (), None)
            assert CorrelationIdFilter().filter(record) is True
            assert record.correlation_id == "-"
        finally:
            correlation_id_var.reset(token)


class TestLogJobRun:

    @pytest.mark.unit
    async def test_sets_fresh_correlation_id_and_returns_result(self):
        from payhook.core.logging import log_job_run

        set_correlation_id("outer123")
        seen = []

        @log_job_run("test job")
        async def job():
            seen.append(get_correlation_id())
            return "ok"

        assert await job() == "ok"
        assert seen[0] != "outer123"

    @pytest.mark.unit
    async def test_failure_is_reraised(self):
        from payhook.core.logging import log_job_run

        @log_job_run("failing job")
        async def job():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            await job()
