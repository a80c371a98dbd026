"""
Unit tests for the Action entry point.
"""

import os
from unittest.mock import AsyncMock, Mock, patch

import pytest

from authsnitch.config import Settings, get_settings
from authsnitch.main import build_outputs, main, run, write_outputs
from authsnitch.models.detection import DetectionResult, Finding, RiskLevel
from authsnitch.models.pr_info import PRContext, PRInfo
from authsnitch.models.report import AnalysisReport
from authsnitch.models.score import RiskLabel, ScoreBreakdown, ScoreResult


def _report(phase="completed", summary="Session handling changed."):
    return AnalysisReport(
        run_id="run_1",
        pr_info=PRInfo(repo="octo/shop", number=42),
        detection_result=DetectionResult(
            auth_changes_detected=True,
            highest_risk=RiskLevel.HIGH,
            summary=summary,
            findings=[Finding(category="session_fixation", risk_level=RiskLevel.HIGH)],
        ),
        score_result=ScoreResult(
            score=65, label=RiskLabel.HIGH, color="#ff9800", breakdown=ScoreBreakdown()
        ),
        phase=phase,
    )


def _settings(tmp_path, **env):
    values = {"GITHUB_TOKEN": "ghp_test", "GITHUB_OUTPUT": str(tmp_path / "output.txt")}
    values.update(env)
    with patch.dict(os.environ, values, clear=True):
        return Settings(_env_file=None)


class TestOutputs:
    """Tests for step outputs."""

    def test_build_outputs(self):
        """Outputs are stringified for the Actions runner."""
        assert build_outputs(_report()) == {
            "risk_score": "65",
            "risk_label": "HIGH",
            "auth_changes_detected": "true",
            "findings_count": "1",
            "summary": "Session handling changed.",
        }

    def test_no_outputs_when_skipped(self):
        """A skipped run produces no outputs."""
        assert build_outputs(AnalysisReport(run_id="run_1", phase="skipped")) == {}

    def test_write_single_line(self, tmp_path):
        """Single-line values use name=value."""
        path = tmp_path / "output.txt"

        write_outputs({"risk_score": "65", "risk_label": "HIGH"}, str(path))

        assert path.read_text() == "risk_score=65\nrisk_label=HIGH\n"

    def test_write_multi_line(self, tmp_path):
        """Multi-line values use a heredoc delimiter."""
        path = tmp_path / "output.txt"

        write_outputs({"summary": "line one\nline two"}, str(path))

        lines = path.read_text().splitlines()
        assert lines[0].startswith("summary<<ghadelimiter_")
        delimiter = lines[0].split("<<", 1)[1]
        assert lines[1:] == ["line one", "line two", delimiter]

    def test_write_without_path(self, tmp_path):
        """Nothing is written without an output path."""
        write_outputs({"risk_score": "65"}, None)

        assert list(tmp_path.iterdir()) == []


class TestRun:
    """Tests for the async run."""

    @pytest.mark.asyncio
    async def test_no_pr_context(self, tmp_path):
        """Non pull request events exit cleanly."""
        settings = _settings(tmp_path)

        with patch("authsnitch.main.pr_context_from_env", return_value=None), \
             patch("authsnitch.main.build_llm_client") as mock_build:
            assert await run(settings) == 0

        mock_build.assert_not_called()

    @pytest.mark.asyncio
    async def test_successful_run_writes_outputs(self, tmp_path):
        """A completed run writes outputs and exits 0."""
        settings = _settings(
            tmp_path,
            OPENAI_API_KEY="sk-test",
            POST_PR_COMMENT="true",
            SLACK_WEBHOOK_URL="https://hooks.slack.test/x",
            SLACK_THRESHOLD="80",
        )
        agent = Mock()
        agent.run = AsyncMock(return_value=_report())

        with patch("authsnitch.main.pr_context_from_env", return_value=PRContext(repo="octo/shop", pr_number=42)), \
             patch("authsnitch.main.build_llm_client", return_value=Mock()), \
             patch("authsnitch.main.AnalysisAgent", return_value=agent) as mock_agent:
            exit_code = await run(settings)

        assert exit_code == 0
        agent.run.assert_awaited_once_with(PRContext(repo="octo/shop", pr_number=42))
        kwargs = mock_agent.call_args.kwargs
        assert set(kwargs["channels"]) == {"pr_comment", "slack"}
        assert kwargs["channels"]["slack"].threshold == 80
        assert kwargs["use_unified_diff"] is False
        assert "risk_score=65\n" in (tmp_path / "output.txt").read_text()

    @pytest.mark.asyncio
    async def test_failed_run_exits_nonzero(self, tmp_path):
        """A failed run returns exit code 1."""
        settings = _settings(tmp_path, OPENAI_API_KEY="sk-test")
        agent = Mock()
        agent.run = AsyncMock(return_value=AnalysisReport(run_id="run_1", phase="failed"))

        with patch("authsnitch.main.pr_context_from_env", return_value=PRContext(repo="octo/shop", pr_number=1)), \
             patch("authsnitch.main.build_llm_client", return_value=Mock()), \
             patch("authsnitch.main.AnalysisAgent", return_value=agent):
            assert await run(settings) == 1

        assert not (tmp_path / "output.txt").exists()


class TestMain:
    """Tests for the console entry point."""

    def test_missing_token_exits_2(self, tmp_path, monkeypatch):
        """Invalid settings exit with code 2."""
        monkeypatch.chdir(tmp_path)
        get_settings.cache_clear()
        with patch.dict(os.environ, {}, clear=True), \
             patch("authsnitch.main.setup_logging"):
            with pytest.raises(SystemExit) as exc_info:
                main()
        get_settings.cache_clear()

        assert exc_info.value.code == 2

    def test_missing_llm_credentials_exits_2(self, tmp_path):
        """A configuration error exits with code 2."""
        settings = _settings(tmp_path)

        with patch("authsnitch.main.get_settings", return_value=settings), \
             patch("authsnitch.main.setup_logging"), \
             patch("authsnitch.main.pr_context_from_env", return_value=PRContext(repo="octo/shop", pr_number=1)):
            with pytest.raises(SystemExit) as exc_info:
                main()

        assert exc_info.value.code == 2

    def test_exit_code_propagated(self, tmp_path):
        """The run's exit code becomes the process exit code."""
        settings = _settings(tmp_path)

        with patch("authsnitch.main.get_settings", return_value=settings), \
             patch("authsnitch.main.setup_logging"), \
             patch("authsnitch.main.run", new=AsyncMock(return_value=0)):
            with pytest.raises(SystemExit) as exc_info:
                main()

        assert exc_info.value.code == 0
