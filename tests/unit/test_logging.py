"""
Unit tests for structured logging utilities.
"""

import json
import logging
from io import StringIO

import pytest

from authsnitch.utils.logging import (
    JSONFormatter,
    get_logger,
    log_api_call,
    log_channel_decision,
    log_error_with_context,
    log_phase_transition,
)


@pytest.fixture
def captured():
    """Attach a JSON handler to a fresh logger and capture its output."""
    base = logging.getLogger("authsnitch.test_capture")
    base.setLevel(logging.DEBUG)
    base.propagate = False
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JSONFormatter())
    base.addHandler(handler)

    def records():
        return [json.loads(line) for line in stream.getvalue().splitlines()]

    yield get_logger("authsnitch.test_capture"), records

    base.removeHandler(handler)


def test_json_formatter(captured):
    """Test JSON formatter produces valid JSON output."""
    logger, records = captured

    logger.info("Test message", extra={"run_id": "run_1", "repo": "octo/shop", "attempt": 2})

    log_data = records()[0]
    assert "timestamp" in log_data
    assert log_data["level"] == "INFO"
    assert log_data["logger"] == "authsnitch.test_capture"
    assert log_data["message"] == "Test message"
    assert log_data["run_id"] == "run_1"
    assert log_data["repo"] == "octo/shop"
    assert log_data["context"] == {"attempt": 2}
    assert "source" in log_data


def test_get_logger_with_context():
    """Test getting logger with context."""
    logger = get_logger("test_module", run_id="run_1", pr_number=42)

    assert logger.extra["run_id"] == "run_1"
    assert logger.extra["pr_number"] == 42


def test_with_context_merges(captured):
    """Adapter context is merged and per-call extra wins."""
    logger, records = captured

    child = logger.with_context(run_id="run_1", phase="detect")
    child.info("hello", extra={"phase": "score"})

    log_data = records()[0]
    assert log_data["run_id"] == "run_1"
    assert log_data["phase"] == "score"
    assert "run_id" not in logger.extra


def test_log_phase_transition(captured):
    """Phase transitions carry run id, phase and status."""
    logger, records = captured

    log_phase_transition(logger, "run_1", "detect", "started")

    log_data = records()[0]
    assert log_data["message"] == "Analysis phase started: detect"
    assert log_data["phase"] == "detect"
    assert log_data["context"]["status"] == "started"


def test_log_api_call_error(captured):
    """Failed API calls are logged at error level."""
    logger, records = captured

    log_api_call(logger, "github", "/repos/a/b", "GET", duration_ms=12.3456, error="HTTP 500")

    log_data = records()[0]
    assert log_data["level"] == "ERROR"
    assert log_data["context"]["duration_ms"] == 12.35
    assert log_data["context"]["error"] == "HTTP 500"


@pytest.mark.parametrize("action,level", [
    ("sent", "INFO"),
    ("skipped", "INFO"),
    ("failed", "WARNING"),
])
def test_log_channel_decision(captured, action, level):
    """Channel outcomes are logged with the channel name."""
    logger, records = captured

    log_channel_decision(logger, "slack", action, "because")

    log_data = records()[0]
    assert log_data["level"] == level
    assert log_data["channel"] == "slack"
    assert log_data["context"]["action"] == action


def test_log_error_with_context(captured):
    """Errors include type and stack trace."""
    logger, records = captured

    try:
        raise ValueError("bad value")
    except ValueError as e:
        log_error_with_context(logger, "Scoring failed", e, run_id="run_1")

    log_data = records()[0]
    assert log_data["level"] == "ERROR"
    assert log_data["run_id"] == "run_1"
    assert log_data["context"]["error_type"] == "ValueError"
    assert log_data["error"]["message"] == "bad value"
    assert "Traceback" in log_data["error"]["stack_trace"]
