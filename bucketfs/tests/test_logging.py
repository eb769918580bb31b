"""
Unit Tests: Structured Logging
"""

import json
import logging

from bucketfs.observability.logging import (
    JsonFormatter,
    LogLevel,
    StructuredLogger,
    current_context,
)


def _record(message="hello", **extra):
    record = logging.LogRecord("bucketfs.test", logging.INFO, __file__, 1, message, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    """Tests for JSON output."""

    def test_basic_fields(self):
        data = json.loads(JsonFormatter().format(_record()))
        assert data["message"] == "hello"
        assert data["level"] == "INFO"
        assert data["logger"] == "bucketfs.test"
        assert "operation_id" not in data

    def test_record_extras_included(self):
        data = json.loads(JsonFormatter().format(_record(path="/a", size=3)))
        assert data["path"] == "/a"
        assert data["size"] == 3

    def test_operation_context(self):
        with StructuredLogger.operation("read", path="/f"):
            context = current_context()
            data = json.loads(JsonFormatter().format(_record()))

        assert data["operation"] == "read"
        assert data["path"] == "/f"
        assert data["operation_id"] == context["operation_id"]
        assert current_context() == {}


class TestStructuredLogger:
    """Tests for StructuredLogger."""

    def test_default_extra_attached(self, caplog):
        log = StructuredLogger("bucketfs.test.extra", LogLevel.DEBUG).with_extra(repository="docs")

        with caplog.at_level(logging.DEBUG, logger="bucketfs.test.extra"):
            log.debug("lookup", key="docs/a")

        (record,) = caplog.records
        assert record.repository == "docs"
        assert record.key == "docs/a"

    def test_disabled_level_skipped(self, caplog):
        log = StructuredLogger("bucketfs.test.quiet", LogLevel.ERROR)

        with caplog.at_level(logging.ERROR, logger="bucketfs.test.quiet"):
            log.info("ignored")

        assert caplog.records == []

    def test_nested_contexts_merge(self):
        with StructuredLogger.context(repository="docs"):
            with StructuredLogger.context(path="/a"):
                assert current_context() == {"repository": "docs", "path": "/a"}
            assert current_context() == {"repository": "docs"}

    def test_level_from_name(self):
        assert LogLevel.from_name("warning") is LogLevel.WARNING
