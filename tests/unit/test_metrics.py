"""
Unit tests for analysis metrics.
"""

import pytest

from authsnitch.utils.logging import get_logger
from authsnitch.utils.metrics import AnalysisMetrics, emit_metric, track_api_call


def test_metrics_lifecycle():
    """Test starting, recording and completing a run."""
    metrics = AnalysisMetrics("run_1", repo="octo/shop", pr_number=42)
    assert metrics.status == "running"

    metrics.start()
    metrics.record_files(analyzed=5, auth_sensitive=2)
    metrics.record_findings(3)
    metrics.record_score(75, "CRITICAL")
    metrics.record_channel_action("slack", "sent")
    metrics.record_channel_action("teams", "skipped")
    metrics.complete()

    summary = metrics.get_metrics_summary()
    assert summary["run_id"] == "run_1"
    assert summary["repo"] == "octo/shop"
    assert summary["status"] == "completed"
    assert summary["files_analyzed"] == 5
    assert summary["auth_sensitive_files"] == 2
    assert summary["findings_count"] == 3
    assert summary["score"] == 75
    assert summary["label"] == "CRITICAL"
    assert summary["channel_actions"] == {"slack": "sent", "teams": "skipped"}
    assert summary["duration_ms"] is not None
    assert summary["start_time"] is not None
    assert "error_message" not in summary


def test_failed_run_includes_error():
    """Test that a failed run reports its error message."""
    metrics = AnalysisMetrics("run_2")
    metrics.start()
    metrics.complete(status="failed", error_message="boom")

    summary = metrics.get_metrics_summary()
    assert summary["status"] == "failed"
    assert summary["error_message"] == "boom"


def test_api_latency_stats():
    """Test API call counts and latency statistics."""
    metrics = AnalysisMetrics("run_3")

    metrics.record_api_call("github", 10.0)
    metrics.record_api_call("github", 30.0)
    metrics.record_api_call("openai", 1500.0)

    summary = metrics.get_metrics_summary()
    assert summary["api_calls"] == {"github": 2, "openai": 1}
    assert summary["api_latencies"]["github"] == {
        "count": 2,
        "min_ms": 10.0,
        "max_ms": 30.0,
        "avg_ms": 20.0,
    }


def test_no_latencies_without_calls():
    """Latency stats are omitted when no calls were made."""
    assert "api_latencies" not in AnalysisMetrics("run_4").get_metrics_summary()


@pytest.mark.asyncio
async def test_track_api_call_records_success():
    """Successful calls are counted."""
    metrics = AnalysisMetrics("run_5")

    async with track_api_call(metrics, "github", get_logger("test"), endpoint="/x", method="GET"):
        pass

    assert metrics.api_calls == {"github": 1}


@pytest.mark.asyncio
async def test_track_api_call_records_failure():
    """Failed calls are counted and the error propagates."""
    metrics = AnalysisMetrics("run_6")

    with pytest.raises(ValueError):
        async with track_api_call(metrics, "openai", get_logger("test"), endpoint="chat"):
            raise ValueError("bad")

    assert metrics.api_calls == {"openai": 1}


@pytest.mark.asyncio
async def test_track_api_call_without_metrics():
    """Tracking works when no metrics collector is supplied."""
    async with track_api_call(None, "github", get_logger("test")):
        pass


def test_emit_metric(caplog):
    """Metrics are emitted as log records with tags."""
    with caplog.at_level("INFO"):
        emit_metric("analysis.score", 75, repo="octo/shop")

    record = next(r for r in caplog.records if r.getMessage() == "Metric: analysis.score")
    assert record.metric_value == 75
    assert record.metric_tags == {"repo": "octo/shop"}
