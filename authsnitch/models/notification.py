"""Notification channel and decision data models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ChannelKind(str, Enum):
    """Transport used by a notification channel."""

    PR_COMMENT = "pr_comment"
    SLACK = "slack"
    TEAMS = "teams"


class ChannelAction(str, Enum):
    """Outcome recorded for a channel."""

    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


class NotificationMode(str, Enum):
    """How the notify decision is derived."""

    SCORE = "score"
    SIGNALS = "signals"


class NotificationSignals(BaseModel):
    """Independent boolean signals used by the signals mode."""

    detector_flagged: bool = False
    keyword_matched: bool = False


class SignalPolicy(BaseModel):
    """Decision table for the signals mode.

    Both signals true always notifies and both false never does; a single
    signal only notifies when the matching flag is widened here.
    """

    notify_on_detector_only: bool = False
    notify_on_keyword_only: bool = False


class ChannelConfig(BaseModel):
    """Configuration for one notification channel."""

    name: str
    kind: ChannelKind
    threshold: Optional[int] = None
    policy: Optional[SignalPolicy] = None
    webhook_url: Optional[str] = None


class ChannelDecision(BaseModel):
    """Notify/skip decision for one channel."""

    model_config = ConfigDict(frozen=True)

    channel: str
    action: ChannelAction
    reason: Optional[str] = None


class DeliveryResult(BaseModel):
    """Result of a transport delivery attempt."""

    channel: str
    success: bool
    error: Optional[str] = None
