"""
Notification gate resolving per-channel notify/skip decisions.

The gate is synchronous and has no side effects: decisions are computed once
and handed to the notifier, which records delivery outcomes afterwards via
``record_delivery``. Channels are evaluated independently of each other.
"""

from typing import Dict, Mapping, Optional, Union

from authsnitch.models.notification import (
    ChannelAction,
    ChannelConfig,
    ChannelDecision,
    ChannelKind,
    DeliveryResult,
    NotificationSignals,
    SignalPolicy,
)
from authsnitch.models.score import ScoreResult


DEFAULT_RISK_THRESHOLD = 50

ScoreOrSignals = Union[int, ScoreResult, NotificationSignals]


class NotificationGate:
    """Decides which configured channels should be notified."""

    def __init__(
        self,
        default_threshold: int = DEFAULT_RISK_THRESHOLD,
        default_policy: Optional[SignalPolicy] = None,
    ):
        """
        Initialize the gate.

        Args:
            default_threshold: Threshold for channels without their own
            default_policy: Signal policy for channels without their own
        """
        self.default_threshold = default_threshold
        self.default_policy = default_policy or SignalPolicy()

    def decide(
        self,
        score_or_signals: ScoreOrSignals,
        channels: Mapping[str, ChannelConfig],
    ) -> Dict[str, ChannelDecision]:
        """
        Resolve a decision for every configured channel.

        Args:
            score_or_signals: Numeric score, ScoreResult, or boolean signals
            channels: Channel name -> configuration

        Returns:
            Channel name -> ChannelDecision (``sent`` means cleared for delivery)
        """
        decisions: Dict[str, ChannelDecision] = {}
        for name, channel in channels.items():
            if isinstance(score_or_signals, NotificationSignals):
                decisions[name] = self._decide_signals(name, channel, score_or_signals)
            else:
                score = (
                    score_or_signals.score
                    if isinstance(score_or_signals, ScoreResult)
                    else int(score_or_signals)
                )
                decisions[name] = self._decide_score(name, channel, score)
        return decisions

    def effective_threshold(self, channel: ChannelConfig) -> int:
        if channel.threshold is None:
            return self.default_threshold
        return channel.threshold

    def _decide_score(self, name: str, channel: ChannelConfig, score: int) -> ChannelDecision:
        threshold = self.effective_threshold(channel)
        if score >= threshold:
            return ChannelDecision(channel=name, action=ChannelAction.SENT)
        return ChannelDecision(
            channel=name,
            action=ChannelAction.SKIPPED,
            reason=f"Score {score} below threshold {threshold}",
        )

    def _decide_signals(
        self,
        name: str,
        channel: ChannelConfig,
        signals: NotificationSignals,
    ) -> ChannelDecision:
        policy = channel.policy or self.default_policy
        detector, keyword = signals.detector_flagged, signals.keyword_matched

        if detector and keyword:
            return ChannelDecision(channel=name, action=ChannelAction.SENT)

        if detector:
            if policy.notify_on_detector_only:
                return ChannelDecision(channel=name, action=ChannelAction.SENT)
            reason = "detector flagged changes but no keyword matched"
        elif keyword:
            if policy.notify_on_keyword_only:
                return ChannelDecision(channel=name, action=ChannelAction.SENT)
            reason = "keywords matched but detector did not flag changes"
        else:
            reason = "no detector or keyword signal"

        return ChannelDecision(
            channel=name,
            action=ChannelAction.SKIPPED,
            reason=f"Notification not triggered: {reason}",
        )


def record_delivery(decision: ChannelDecision, result: DeliveryResult) -> ChannelDecision:
    """
    Fold a delivery outcome into a decision.

    Only ``sent`` decisions are affected; a failed delivery becomes ``failed``
    with the error message as its reason.
    """
    if decision.action != ChannelAction.SENT or result.success:
        return decision
    return ChannelDecision(
        channel=decision.channel,
        action=ChannelAction.FAILED,
        reason=result.error or "Delivery failed",
    )


def build_channel_configs(settings) -> Dict[str, ChannelConfig]:
    """
    Build the channel map from resolved settings.

    Args:
        settings: Settings instance (or anything with the same attributes)

    Returns:
        Channel name -> ChannelConfig for every enabled channel
    """
    channels: Dict[str, ChannelConfig] = {}

    if settings.post_pr_comment:
        channels["pr_comment"] = ChannelConfig(
            name="pr_comment",
            kind=ChannelKind.PR_COMMENT,
            threshold=settings.pr_comment_threshold,
        )

    if settings.slack_webhook_url:
        channels["slack"] = ChannelConfig(
            name="slack",
            kind=ChannelKind.SLACK,
            threshold=settings.slack_threshold,
            webhook_url=settings.slack_webhook_url,
        )

    if settings.teams_webhook_url:
        channels["teams"] = ChannelConfig(
            name="teams",
            kind=ChannelKind.TEAMS,
            threshold=settings.teams_threshold,
            webhook_url=settings.teams_webhook_url,
        )

    return channels
