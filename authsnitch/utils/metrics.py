"""
Metrics collection and emission for analysis runs.

Tracks run duration, files analyzed, the resulting score, per-channel
outcomes, and outbound API call latency. Metrics are emitted through the
structured logger; nothing is persisted between runs.
"""

import time
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List
from contextlib import asynccontextmanager

from authsnitch.utils.logging import get_logger, log_api_call

logger = get_logger(__name__)


class AnalysisMetrics:
    """
    Collects metrics during one analysis run.

    Tracks:
    - Run start/end time
    - Files analyzed and auth-sensitive files
    - Findings count, score and label
    - Channel actions
    - API call counts and latency
    """

    def __init__(self, run_id: str, repo: Optional[str] = None, pr_number: Optional[int] = None):
        self.run_id = run_id
        self.repo = repo
        self.pr_number = pr_number

        # Timing metrics
        self.start_time: Optional[datetime] = None
        self.end_time: Optional[datetime] = None
        self.duration_ms: Optional[int] = None

        # Analysis metrics
        self.files_analyzed: int = 0
        self.auth_sensitive_files: int = 0
        self.findings_count: int = 0
        self.score: Optional[int] = None
        self.label: Optional[str] = None
        self.channel_actions: Dict[str, str] = {}

        # API metrics
        self.api_calls: Dict[str, int] = {}
        self.api_latencies: Dict[str, List[float]] = {}

        # Status
        self.status: str = "running"
        self.error_message: Optional[str] = None

    def _context(self) -> Dict[str, Any]:
        return {"run_id": self.run_id, "repo": self.repo, "pr_number": self.pr_number}

    def start(self) -> None:
        """Mark run start."""
        self.start_time = datetime.now(timezone.utc)
        self.status = "running"
        logger.info(f"Metrics collection started for run {self.run_id}", extra=self._context())

    def complete(self, status: str = "completed", error_message: Optional[str] = None) -> None:
        """
        Mark run completion.

        Args:
            status: Final status ('completed', 'failed')
            error_message: Error message if failed
        """
        self.end_time = datetime.now(timezone.utc)
        self.status = status
        self.error_message = error_message

        if self.start_time:
            duration = (self.end_time - self.start_time).total_seconds()
            self.duration_ms = int(duration * 1000)

        extra = self._context()
        extra.update({
            "status": self.status,
            "duration_ms": self.duration_ms,
            "files_analyzed": self.files_analyzed,
            "auth_sensitive_files": self.auth_sensitive_files,
            "score": self.score,
        })
        logger.info(f"Metrics collection completed for run {self.run_id}", extra=extra)

    def record_files(self, analyzed: int, auth_sensitive: int) -> None:
        """Record number of files analyzed and how many were auth-sensitive."""
        self.files_analyzed = analyzed
        self.auth_sensitive_files = auth_sensitive

    def record_findings(self, count: int) -> None:
        self.findings_count = count

    def record_score(self, score: int, label: str) -> None:
        self.score = score
        self.label = label

    def record_channel_action(self, channel: str, action: str) -> None:
        self.channel_actions[channel] = action

    def record_api_call(self, service: str, duration_ms: float) -> None:
        """
        Record API call and latency.

        Args:
            service: Service name (e.g., 'github', 'openai')
            duration_ms: Call duration in milliseconds
        """
        self.api_calls[service] = self.api_calls.get(service, 0) + 1
        self.api_latencies.setdefault(service, []).append(duration_ms)

    def get_metrics_summary(self) -> Dict[str, Any]:
        """
        Get summary of collected metrics.

        Returns:
            Dictionary of metrics
        """
        summary = {
            "run_id": self.run_id,
            "repo": self.repo,
            "pr_number": self.pr_number,
            "status": self.status,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_ms": self.duration_ms,
            "files_analyzed": self.files_analyzed,
            "auth_sensitive_files": self.auth_sensitive_files,
            "findings_count": self.findings_count,
            "score": self.score,
            "label": self.label,
            "channel_actions": dict(self.channel_actions),
            "api_calls": dict(self.api_calls),
        }

        if self.api_latencies:
            latency_stats = {}
            for service, latencies in self.api_latencies.items():
                if latencies:
                    latency_stats[service] = {
                        "count": len(latencies),
                        "min_ms": round(min(latencies), 2),
                        "max_ms": round(max(latencies), 2),
                        "avg_ms": round(sum(latencies) / len(latencies), 2),
                    }
            summary["api_latencies"] = latency_stats

        if self.error_message:
            summary["error_message"] = self.error_message

        return summary


@asynccontextmanager
async def track_api_call(
    metrics: Optional[AnalysisMetrics],
    service: str,
    logger_adapter,
    endpoint: str = "",
    method: str = ""
):
    """
    Context manager to track API call timing.

    Usage:
        async with track_api_call(metrics, "github", logger, endpoint=url, method="GET"):
            response = await client.get(url)
    """
    start_time = time.time()
    error = None

    try:
        yield
    except Exception as e:
        error = e
        raise
    finally:
        duration_ms = (time.time() - start_time) * 1000

        if metrics:
            metrics.record_api_call(service, duration_ms)

        log_api_call(
            logger_adapter,
            service=service,
            endpoint=endpoint,
            method=method,
            duration_ms=duration_ms,
            error=str(error) if error else None
        )


def emit_metric(metric_name: str, value: float, **tags: Any) -> None:
    """
    Emit a metric through the structured logger.

    Args:
        metric_name: Metric name
        value: Metric value
        **tags: Metric tags/labels
    """
    logger.info(
        f"Metric: {metric_name}",
        extra={
            "metric_name": metric_name,
            "metric_value": value,
            "metric_tags": tags,
        }
    )
