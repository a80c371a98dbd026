"""
GitHub Action entry point.

Reads settings from the environment, analyzes the pull request that
triggered the workflow, and writes step outputs to $GITHUB_OUTPUT.
"""

import asyncio
import sys
import uuid
from typing import Dict, Optional

from pydantic import ValidationError

from authsnitch.agents.analysis_agent import AnalysisAgent
from authsnitch.analyzers.detection_parser import DetectionResultParser
from authsnitch.analyzers.diff_parser import DiffParser
from authsnitch.analyzers.risk_scorer import RiskScorer
from authsnitch.analyzers.sensitivity import SensitivityClassifier
from authsnitch.config import (
    Settings,
    get_settings,
    load_analysis_config,
    resolve_config_path,
)
from authsnitch.exceptions import ConfigurationError
from authsnitch.models.notification import SignalPolicy
from authsnitch.models.report import AnalysisReport
from authsnitch.services.detector import AuthChangeDetector, build_llm_client
from authsnitch.services.github_client import GitHubClient, pr_context_from_env
from authsnitch.services.notification_gate import NotificationGate, build_channel_configs
from authsnitch.services.notifier import Notifier
from authsnitch.services.summarizer import Summarizer
from authsnitch.utils.logging import get_logger, setup_logging
from authsnitch.utils.metrics import AnalysisMetrics, emit_metric


logger = get_logger(__name__)


def build_outputs(report: AnalysisReport) -> Dict[str, str]:
    """Step outputs for a finished run; empty when nothing was analyzed."""
    detection = report.detection_result
    score = report.score_result
    if detection is None or score is None:
        return {}

    return {
        "risk_score": str(score.score),
        "risk_label": score.label.value,
        "auth_changes_detected": "true" if detection.auth_changes_detected else "false",
        "findings_count": str(len(detection.findings)),
        "summary": detection.summary,
    }


def write_outputs(outputs: Dict[str, str], output_path: Optional[str]) -> None:
    """
    Append outputs to the Actions output file.

    Multi-line values use the ``name<<delimiter`` form.
    """
    if not output_path or not outputs:
        return

    with open(output_path, "a", encoding="utf-8") as f:
        for name, value in outputs.items():
            if "\n" in value:
                delimiter = f"ghadelimiter_{uuid.uuid4().hex}"
                f.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")
            else:
                f.write(f"{name}={value}\n")


async def run(settings: Settings) -> int:
    """
    Analyze the triggering pull request.

    Returns:
        Process exit code
    """
    pr_context = pr_context_from_env(settings.github_event_path, settings.github_repository)
    if pr_context is None:
        logger.info("Not a pull request event or missing context. Skipping.")
        return 0

    config_path = resolve_config_path(settings.github_workspace, settings.detection_config_path)
    analysis_config = load_analysis_config(config_path)

    run_id = str(uuid.uuid4())
    metrics = AnalysisMetrics(run_id, repo=pr_context.repo, pr_number=pr_context.pr_number)

    llm_client = build_llm_client(settings)
    model = settings.azure_openai_deployment or settings.llm_model
    detector = AuthChangeDetector(
        client=llm_client,
        model=model,
        config=analysis_config,
        parser=DetectionResultParser(fallback=settings.parse_fallback),
        custom_keywords=settings.custom_keywords,
        custom_prompt=settings.detection_prompt,
        max_tokens=settings.llm_max_tokens,
        metrics=metrics,
    )

    classifier = SensitivityClassifier(extra_patterns=analysis_config.sensitivity_patterns)
    gate = NotificationGate(
        default_threshold=settings.risk_threshold,
        default_policy=SignalPolicy(
            notify_on_detector_only=settings.notify_on_detector_only,
            notify_on_keyword_only=settings.notify_on_keyword_only,
        ),
    )
    summarizer = Summarizer()

    async with GitHubClient(settings.github_token, metrics=metrics) as github_client:
        notifier = Notifier(github_client, summarizer=summarizer, metrics=metrics)
        try:
            agent = AnalysisAgent(
                github_client=github_client,
                detector=detector,
                notifier=notifier,
                channels=build_channel_configs(settings),
                diff_parser=DiffParser(classifier),
                scorer=RiskScorer(analysis_config.scoring),
                gate=gate,
                summarizer=summarizer,
                mode=settings.notification_mode,
                use_unified_diff=settings.use_unified_diff,
                run_id=run_id,
                metrics=metrics,
            )
            report = await agent.run(pr_context)
        finally:
            await notifier.close()

    if report.detection_result is not None:
        logger.info(summarizer.to_text(summarizer.summarize(
            report.detection_result,
            pr_info=report.pr_info,
            keywords_detected=report.keywords_detected,
            score_result=report.score_result,
        )))

    write_outputs(build_outputs(report), settings.github_output)

    summary = metrics.get_metrics_summary()
    if summary.get("duration_ms") is not None:
        emit_metric("analysis.duration_ms", summary["duration_ms"], repo=pr_context.repo)

    if report.phase == "failed":
        return 1

    logger.info("AuthSnitch security review complete.")
    return 0


def main() -> None:
    """Console script entry point."""
    try:
        settings = get_settings()
    except ValidationError as e:
        setup_logging("INFO")
        logger.error(f"Invalid configuration: {e}")
        sys.exit(2)

    setup_logging(settings.log_level.upper())
    logger.info("AuthSnitch security review starting...")

    try:
        exit_code = asyncio.run(run(settings))
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(2)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
