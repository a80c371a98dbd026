"""
Notifier.

Delivers a NotificationSummary to every channel the gate cleared. Deliveries
run concurrently; a failure on one channel is caught here and recorded as a
``failed`` decision without affecting the others.
"""

import asyncio
from typing import Any, Dict, List, Mapping, Optional

import httpx

from authsnitch.models.notification import (
    ChannelAction,
    ChannelConfig,
    ChannelDecision,
    ChannelKind,
    DeliveryResult,
)
from authsnitch.models.pr_info import PRInfo
from authsnitch.models.summary import NotificationSummary
from authsnitch.services.github_client import GitHubClient
from authsnitch.services.notification_gate import record_delivery
from authsnitch.services.summarizer import Summarizer, truncate
from authsnitch.utils.logging import get_logger
from authsnitch.utils.metrics import AnalysisMetrics, track_api_call


logger = get_logger(__name__)

ALERT_COLOR = "#ff9800"
MAX_SUMMARY_LENGTH = 500
MAX_LISTED_FILES = 5
MAX_LISTED_KEYWORDS = 10


def build_slack_payload(summary: NotificationSummary, pr_info: PRInfo) -> Dict[str, Any]:
    """Slack Block Kit payload wrapped in a colored attachment."""
    risk = summary.risk_display
    blocks: List[Dict[str, Any]] = [
        {"type": "header", "text": {"type": "plain_text", "text": summary.title, "emoji": True}},
    ]

    if risk:
        blocks.append({
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*Risk Score:* {risk.score} ({risk.label})"},
                {"type": "mrkdwn", "text": risk.bar},
            ],
        })

    blocks.append({"type": "divider"})

    if pr_info.title:
        blocks.append({
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f'*PR:* #{pr_info.number} "{pr_info.title}"'},
                {"type": "mrkdwn", "text": f"*Author:* {pr_info.author or 'Unknown'}"},
                {"type": "mrkdwn", "text": f"*Repository:* {pr_info.repo}"},
            ],
        })
        blocks.append({"type": "divider"})

    blocks.append({
        "type": "section",
        "text": {
            "type": "mrkdwn",
            "text": f"*Summary:*\n{truncate(summary.summary, MAX_SUMMARY_LENGTH)}",
        },
    })

    files = summary.files_affected
    if files:
        files_text = "\n".join(f"• `{name}`" for name in files[:MAX_LISTED_FILES])
        if len(files) > MAX_LISTED_FILES:
            files_text += f"\n_...and {len(files) - MAX_LISTED_FILES} more_"
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"*Files Affected:*\n{files_text}"},
        })

    if summary.keywords:
        keywords_text = ", ".join(f"`{kw}`" for kw in summary.keywords[:MAX_LISTED_KEYWORDS])
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"*Keywords Detected:* {keywords_text}"},
        })

    if pr_info.url:
        blocks.append({"type": "divider"})
        blocks.append({
            "type": "actions",
            "elements": [
                {
                    "type": "button",
                    "text": {"type": "plain_text", "text": "View PR", "emoji": True},
                    "url": pr_info.url,
                    "style": "primary",
                },
                {
                    "type": "button",
                    "text": {"type": "plain_text", "text": "View Diff", "emoji": True},
                    "url": f"{pr_info.url}/files",
                },
            ],
        })

    color = risk.color if risk else ALERT_COLOR
    return {"attachments": [{"color": color, "blocks": blocks}]}


def build_teams_payload(summary: NotificationSummary, pr_info: PRInfo) -> Dict[str, Any]:
    """Microsoft Teams MessageCard payload."""
    risk = summary.risk_display
    facts: List[Dict[str, str]] = []
    if risk:
        facts.append({"title": "Risk Score", "value": f"{risk.score} ({risk.label})"})
    if pr_info.title:
        facts.append({"title": "PR", "value": f"#{pr_info.number} - {pr_info.title}"})
    if pr_info.author:
        facts.append({"title": "Author", "value": pr_info.author})
    if pr_info.repo:
        facts.append({"title": "Repository", "value": pr_info.repo})

    files = summary.files_affected
    if files:
        files_text = ", ".join(files[:MAX_LISTED_FILES])
        if len(files) > MAX_LISTED_FILES:
            files_text += f"... +{len(files) - MAX_LISTED_FILES} more"
        facts.append({"title": "Files Affected", "value": files_text})

    if summary.keywords:
        facts.append({
            "title": "Keywords",
            "value": ", ".join(summary.keywords[:MAX_LISTED_KEYWORDS]),
        })

    actions: List[Dict[str, Any]] = []
    if pr_info.url:
        actions.append({
            "@type": "OpenUri",
            "name": "View PR",
            "targets": [{"os": "default", "uri": pr_info.url}],
        })
        actions.append({
            "@type": "OpenUri",
            "name": "View Diff",
            "targets": [{"os": "default", "uri": f"{pr_info.url}/files"}],
        })

    color = risk.color if risk else ALERT_COLOR
    return {
        "@type": "MessageCard",
        "@context": "http://schema.org/extensions",
        "themeColor": color.lstrip("#"),
        "summary": summary.title,
        "sections": [{
            "activityTitle": summary.title,
            "activitySubtitle": pr_info.repo,
            "facts": facts,
            "text": truncate(summary.summary, MAX_SUMMARY_LENGTH),
            "markdown": True,
        }],
        "potentialAction": actions,
    }


class Notifier:
    """Sends summaries to PR comments, Slack and Teams."""

    def __init__(
        self,
        github_client: GitHubClient,
        summarizer: Optional[Summarizer] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[AnalysisMetrics] = None,
    ):
        self.github_client = github_client
        self.summarizer = summarizer or Summarizer()
        self._http = http_client or httpx.AsyncClient(timeout=30.0)
        self.metrics = metrics

    async def close(self) -> None:
        await self._http.aclose()

    async def deliver(
        self,
        decisions: Mapping[str, ChannelDecision],
        summary: NotificationSummary,
        pr_info: PRInfo,
        channels: Mapping[str, ChannelConfig],
    ) -> Dict[str, ChannelDecision]:
        """
        Deliver to every channel with a ``sent`` decision.

        Args:
            decisions: Gate decisions by channel name
            summary: Summary to deliver
            pr_info: Pull request metadata
            channels: Channel configurations by name

        Returns:
            Final decisions; failed deliveries become ``failed``
        """
        pending = [
            name for name, decision in decisions.items()
            if decision.action == ChannelAction.SENT and name in channels
        ]

        results = await asyncio.gather(*(
            self._deliver_one(channels[name], summary, pr_info) for name in pending
        ))

        final = dict(decisions)
        for name, result in zip(pending, results):
            final[name] = record_delivery(decisions[name], result)
        return final

    async def _deliver_one(
        self,
        channel: ChannelConfig,
        summary: NotificationSummary,
        pr_info: PRInfo,
    ) -> DeliveryResult:
        try:
            if channel.kind == ChannelKind.PR_COMMENT:
                await self.post_pr_comment(summary, pr_info)
            elif channel.kind == ChannelKind.SLACK:
                await self._post_webhook(
                    "slack", channel.webhook_url, build_slack_payload(summary, pr_info)
                )
            elif channel.kind == ChannelKind.TEAMS:
                await self._post_webhook(
                    "teams", channel.webhook_url, build_teams_payload(summary, pr_info)
                )
            else:
                raise ValueError(f"Unsupported channel kind: {channel.kind}")
        except Exception as e:
            logger.warning(
                f"Delivery to {channel.name} failed: {e}",
                extra={"channel": channel.name},
            )
            return DeliveryResult(channel=channel.name, success=False, error=str(e))

        return DeliveryResult(channel=channel.name, success=True)

    async def post_pr_comment(self, summary: NotificationSummary, pr_info: PRInfo) -> None:
        body = self.summarizer.to_markdown(summary)
        await self.github_client.create_pr_comment(pr_info.repo, pr_info.number, body)

    async def _post_webhook(self, service: str, url: Optional[str], payload: Dict[str, Any]) -> None:
        if not url:
            raise ValueError(f"No webhook URL configured for {service}")

        async with track_api_call(self.metrics, service, logger, endpoint=service, method="POST"):
            response = await self._http.post(url, json=payload)

        if response.is_error:
            raise RuntimeError(f"HTTP {response.status_code}: {response.text}")
