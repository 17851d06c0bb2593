"""Unit tests for logging configuration."""

from __future__ import annotations

import json
import logging

import pytest

from masterq.models import LogLevel, ObservabilityConfig
from masterq.utils.exceptions import ProtocolError
from masterq.utils.logging_config import (
    CorrelationFilter,
    FileFormatter,
    LoggingContext,
    StructuredFormatter,
    get_correlation_id,
    get_logger,
    set_correlation_id,
    setup_logging,
)

pytestmark = [pytest.mark.unit]


class ListHandler(logging.Handler):
    """Collects records for inspection."""

    def __init__(self):
        super().__init__(logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def records():
    """Capture records of the masterq logger."""
    setup_logging(ObservabilityConfig(log_level=LogLevel.DEBUG))
    handler = ListHandler()
    logger = logging.getLogger("masterq")
    logger.addHandler(handler)
    yield handler.records
    logger.removeHandler(handler)


def _record(msg="hello %s", args=("world",)) -> logging.LogRecord:
    return logging.LogRecord("masterq.test", logging.INFO, __file__, 1, msg, args, None)


class TestLoggers:
    """Test logger naming and correlation IDs."""

    def test_get_logger_prefixes_namespace(self):
        """Test loggers end up under the masterq namespace."""
        assert get_logger("fetch").name == "masterq.fetch"
        assert get_logger("masterq.master").name == "masterq.master"

    def test_correlation_id(self):
        """Test IDs are generated or taken as given."""
        generated = set_correlation_id()
        assert get_correlation_id() == generated

        assert set_correlation_id("fetch-1") == "fetch-1"
        record = _record()
        CorrelationFilter().filter(record)
        assert record.correlation_id == "fetch-1"


class TestFormatters:
    """Test file formatters."""

    def test_structured(self):
        """Test JSON records carry message and operation context."""
        record = _record()
        record.context = {"region": "EUROPE"}
        record.unrelated = "dropped"
        CorrelationFilter().filter(record)

        entry = json.loads(StructuredFormatter().format(record))

        assert entry["message"] == "hello world"
        assert entry["level"] == "INFO"
        assert entry["context"] == {"region": "EUROPE"}
        assert "unrelated" not in entry
        assert "correlation_id" in entry

    def test_file_formatter_strips_markup(self):
        """Test rich markup does not reach log files."""
        formatter = FileFormatter("%(message)s")

        assert formatter.format(_record("[green]%s[/green]", ("done",))) == "done"


class TestLoggingContext:
    """Test operation logging."""

    @pytest.mark.asyncio
    async def test_success(self, records):
        """Test start and completion lines."""
        async with LoggingContext("server list fetch", region="ALL"):
            pass

        messages = [r.getMessage() for r in records]
        assert messages[0] == "Starting server list fetch"
        assert messages[1].startswith("Completed server list fetch")
        assert records[0].context == {"region": "ALL"}

    def test_failure_propagates(self, records):
        """Test failures are logged and re-raised."""
        with pytest.raises(ProtocolError):
            with LoggingContext("info query"):
                raise ProtocolError("bad")

        assert records[-1].levelno == logging.ERROR
        assert "Failed info query" in records[-1].getMessage()
