"""Data models for the AuthSnitch analysis pipeline."""

from .detection import DetectionResult, Finding, ParseFallback, RiskLevel
from .file_change import ChangedFile, ChangeStatus, FileChange
from .notification import (
    ChannelAction,
    ChannelConfig,
    ChannelDecision,
    ChannelKind,
    DeliveryResult,
    NotificationMode,
    NotificationSignals,
    SignalPolicy,
)
from .pr_info import PRContext, PRInfo
from .report import AnalysisReport
from .score import RiskLabel, ScoreBreakdown, ScoreModifier, ScoreResult
from .summary import FormattedFinding, NotificationSummary, PRSection, RiskDisplay

__all__ = [
    # File change models
    "ChangeStatus",
    "ChangedFile",
    "FileChange",
    # Detection models
    "RiskLevel",
    "Finding",
    "DetectionResult",
    "ParseFallback",
    # Score models
    "RiskLabel",
    "ScoreModifier",
    "ScoreBreakdown",
    "ScoreResult",
    # Notification models
    "ChannelKind",
    "ChannelAction",
    "NotificationMode",
    "NotificationSignals",
    "SignalPolicy",
    "ChannelConfig",
    "ChannelDecision",
    "DeliveryResult",
    # Pull request models
    "PRContext",
    "PRInfo",
    # Summary models
    "FormattedFinding",
    "PRSection",
    "RiskDisplay",
    "NotificationSummary",
    # Report models
    "AnalysisReport",
]
