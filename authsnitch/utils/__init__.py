"""
Utility modules for AuthSnitch.
"""

from authsnitch.utils.logging import (
    get_logger,
    setup_logging,
    log_phase_transition,
    log_api_call,
    log_channel_decision,
    log_error_with_context,
)
from authsnitch.utils.metrics import (
    AnalysisMetrics,
    track_api_call,
    emit_metric,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "log_phase_transition",
    "log_api_call",
    "log_channel_decision",
    "log_error_with_context",
    "AnalysisMetrics",
    "track_api_call",
    "emit_metric",
]
