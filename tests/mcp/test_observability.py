"""Tests for logging setup and the JSON formatter."""

import json
import logging
import sys

from cmdrunner_mcp.config import McpObservabilityConfig
from cmdrunner_mcp.observability import (
    JsonLogFormatter,
    generate_correlation_id,
    setup_logging,
)


def _record(msg: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("cmdrunner_mcp.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_correlation_ids_are_short_and_unique():
    ids = {generate_correlation_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(len(cid) == 8 for cid in ids)


def test_json_formatter_fields():
    line = JsonLogFormatter().format(
        _record(correlation_id="abc12345", tool="ls_tool", latency_ms=1.5, status="ok")
    )
    data = json.loads(line)
    assert data["level"] == "info"
    assert data["logger"] == "cmdrunner_mcp.test"
    assert data["msg"] == "hello"
    assert data["cid"] == "abc12345"
    assert data["tool"] == "ls_tool"
    assert data["latency_ms"] == 1.5
    assert data["status"] == "ok"
    assert data["ts"].endswith("Z")


def test_json_formatter_can_omit_correlation_id():
    formatter = JsonLogFormatter(include_correlation_id=False)
    data = json.loads(formatter.format(_record(correlation_id="abc12345")))
    assert "cid" not in data


def test_json_formatter_includes_exception():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = _record()
        record.exc_info = sys.exc_info()
    data = json.loads(JsonLogFormatter().format(record))
    assert "RuntimeError: boom" in data["exc"]


def test_setup_logging_json():
    logger = setup_logging(
        McpObservabilityConfig(log_format="json", log_level="debug"),
        logger_name="cmdrunner_mcp.test_json",
    )
    assert logger.level == logging.DEBUG
    assert logger.propagate is False
    assert len(logger.handlers) == 1
    handler = logger.handlers[0]
    assert isinstance(handler.formatter, JsonLogFormatter)
    assert handler.stream is sys.stderr


def test_setup_logging_text_replaces_handlers():
    name = "cmdrunner_mcp.test_text"
    setup_logging(McpObservabilityConfig(), logger_name=name)
    logger = setup_logging(McpObservabilityConfig(log_level="warning"), logger_name=name)
    assert len(logger.handlers) == 1
    assert logger.level == logging.WARNING
    assert not isinstance(logger.handlers[0].formatter, JsonLogFormatter)
