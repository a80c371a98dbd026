"""Unit tests for the Analysis Agent workflow."""

from unittest.mock import AsyncMock, Mock

import pytest

from authsnitch.agents.analysis_agent import AnalysisAgent, after_parse
from authsnitch.exceptions import DetectorError, PermanentGitHubError
from authsnitch.models.detection import DetectionResult, RiskLevel
from authsnitch.models.file_change import ChangedFile
from authsnitch.models.notification import (
    ChannelAction,
    ChannelConfig,
    ChannelDecision,
    ChannelKind,
    NotificationMode,
)
from authsnitch.models.pr_info import PRContext, PRInfo
from authsnitch.models.score import RiskLabel


PR_CONTEXT = PRContext(repo="octo/shop", pr_number=42)

CHANGED_FILES = [
    ChangedFile(
        filename="app/controllers/sessions_controller.rb",
        status="modified",
        patch="@@ -1 +1 @@\n-    session[:user_id] = user.id\n+    session[:access_token] = token",
    ),
    ChangedFile(
        filename="lib/auth/oauth_handler.rb",
        status="added",
        patch="@@ -0,0 +1 @@\n+class OauthHandler; end",
    ),
]

FLAGGED = DetectionResult(
    auth_changes_detected=True,
    highest_risk=RiskLevel.HIGH,
    summary="Session handling changed.",
)


@pytest.fixture
def github_client():
    """Mock GitHub client returning two changed files."""
    client = Mock()
    client.pull_request = AsyncMock(return_value=PRInfo(repo="octo/shop", number=42, title="Login"))
    client.pull_request_files = AsyncMock(return_value=CHANGED_FILES)
    client.pull_request_diff = AsyncMock()
    return client


@pytest.fixture
def detector():
    """Mock detector flagging the change."""
    detector = Mock()
    detector.all_keywords.return_value = ["session", "password"]
    detector.analyze = AsyncMock(return_value=FLAGGED)
    return detector


@pytest.fixture
def notifier():
    """Mock notifier that delivers everything successfully."""
    notifier = Mock()
    notifier.deliver = AsyncMock(side_effect=lambda decisions, summary, pr_info, channels: dict(decisions))
    return notifier


@pytest.fixture
def channels():
    """Two channels with different thresholds."""
    return {
        "pr_comment": ChannelConfig(name="pr_comment", kind=ChannelKind.PR_COMMENT, threshold=50),
        "slack": ChannelConfig(name="slack", kind=ChannelKind.SLACK, threshold=90, webhook_url="https://x"),
    }


def _agent(github_client, detector, notifier, channels, **kwargs):
    return AnalysisAgent(
        github_client=github_client,
        detector=detector,
        notifier=notifier,
        channels=channels,
        run_id="run_1",
        **kwargs,
    )


class TestWorkflow:
    """Tests for the end-to-end graph."""

    @pytest.mark.asyncio
    async def test_full_run(self, github_client, detector, notifier, channels):
        """Changes are parsed, scored, gated and delivered."""
        agent = _agent(github_client, detector, notifier, channels)

        report = await agent.run(PR_CONTEXT)

        assert report.run_id == "run_1"
        assert report.phase == "completed"
        assert report.errors == []
        assert report.pr_info.title == "Login"
        assert [c.auth_sensitive for c in report.file_changes] == [True, True]
        assert report.keywords_detected == ["session"]
        assert report.score_result.score == 75
        assert report.score_result.label == RiskLabel.CRITICAL
        assert report.decisions["pr_comment"].action == ChannelAction.SENT
        assert report.decisions["slack"].action == ChannelAction.SKIPPED
        assert report.decisions["slack"].reason == "Score 75 below threshold 90"

        detector.analyze.assert_awaited_once()
        diff_content = detector.analyze.await_args.args[0]
        assert "=== lib/auth/oauth_handler.rb ===" in diff_content

        summary = notifier.deliver.await_args.args[1]
        assert summary.title == "AuthSnitch - Authentication Changes Detected"
        assert summary.risk_display.score == 75

        assert agent.metrics.status == "completed"
        assert agent.metrics.files_analyzed == 2
        assert agent.metrics.channel_actions == {"pr_comment": "sent", "slack": "skipped"}

    @pytest.mark.asyncio
    async def test_nothing_to_analyze_skips(self, github_client, detector, notifier, channels):
        """An empty change set stops before detection."""
        github_client.pull_request_files.return_value = []
        agent = _agent(github_client, detector, notifier, channels)

        report = await agent.run(PR_CONTEXT)

        assert report.phase == "skipped"
        assert report.detection_result is None
        assert report.decisions == {}
        detector.analyze.assert_not_awaited()
        notifier.deliver.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_delivery_when_everything_skipped(self, github_client, detector, notifier, channels):
        """Nothing is delivered when no channel clears its threshold."""
        detector.analyze.return_value = DetectionResult(auth_changes_detected=False)
        agent = _agent(github_client, detector, notifier, channels)

        report = await agent.run(PR_CONTEXT)

        assert report.score_result.score == 0
        assert all(d.action == ChannelAction.SKIPPED for d in report.decisions.values())
        notifier.deliver.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_detector_failure_is_recorded(self, github_client, detector, notifier, channels):
        """A detector error is recorded and the run carries on with a zero score."""
        detector.analyze.side_effect = DetectorError("circuit open")
        agent = _agent(github_client, detector, notifier, channels)

        report = await agent.run(PR_CONTEXT)

        assert report.phase == "completed"
        assert report.errors == ["Detection error: circuit open"]
        assert report.score_result.score == 0
        assert agent.metrics.status == "completed_with_errors"

    @pytest.mark.asyncio
    async def test_metadata_failure_falls_back(self, github_client, detector, notifier, channels):
        """Missing PR metadata does not stop the analysis."""
        github_client.pull_request.side_effect = PermanentGitHubError("HTTP 404")
        agent = _agent(github_client, detector, notifier, channels)

        report = await agent.run(PR_CONTEXT)

        assert report.pr_info == PRInfo(repo="octo/shop", number=42)
        assert report.errors == ["PR metadata error: HTTP 404"]
        assert report.score_result.score == 75

    @pytest.mark.asyncio
    async def test_unified_diff_source(self, github_client, detector, notifier, channels):
        """The raw diff is fetched and parsed when requested."""
        github_client.pull_request_diff.return_value = (
            "diff --git a/lib/auth/a.rb b/lib/auth/a.rb\n+x\n"
            "diff --git a/README.md b/README.md\n+y\n"
        )
        agent = _agent(github_client, detector, notifier, channels, use_unified_diff=True)

        report = await agent.run(PR_CONTEXT)

        github_client.pull_request_files.assert_not_awaited()
        assert [c.filename for c in report.file_changes] == ["lib/auth/a.rb", "README.md"]
        # Only one auth-sensitive file, so no modifier
        assert report.score_result.score == 65

    @pytest.mark.asyncio
    async def test_signals_mode(self, github_client, detector, notifier, channels):
        """Signals mode notifies every channel when both signals fire."""
        agent = _agent(github_client, detector, notifier, channels, mode=NotificationMode.SIGNALS)

        report = await agent.run(PR_CONTEXT)

        assert report.signals.detector_flagged is True
        assert report.signals.keyword_matched is True
        assert all(d.action == ChannelAction.SENT for d in report.decisions.values())
        summary = notifier.deliver.await_args.args[1]
        assert summary.risk_display is None

    @pytest.mark.asyncio
    async def test_delivery_failure_reported(self, github_client, detector, notifier, channels):
        """Final decisions come from the notifier."""
        notifier.deliver.side_effect = lambda decisions, summary, pr_info, channels: {
            **decisions,
            "pr_comment": ChannelDecision(
                channel="pr_comment", action=ChannelAction.FAILED, reason="forbidden"
            ),
        }
        agent = _agent(github_client, detector, notifier, channels)

        report = await agent.run(PR_CONTEXT)

        assert report.decisions["pr_comment"].action == ChannelAction.FAILED
        assert agent.metrics.channel_actions["pr_comment"] == "failed"


def test_after_parse_routing():
    """Routing depends on whether there is diff content."""
    assert after_parse({"diff_content": "=== a ==="}) == "detect"
    assert after_parse({"diff_content": "  \n"}) == "skip"
    assert after_parse({}) == "skip"
