"""
Analysis Agent.

LangGraph-orchestrated workflow that analyzes a single pull request:
fetch changes, parse them, ask the detector, score, decide per channel, and
deliver notifications. Node failures are recorded in the state's error list
and the workflow carries on with whatever it has.
"""

import uuid
from typing import Dict, List, Mapping, Optional, TypedDict

from langgraph.graph import END, StateGraph

from authsnitch.analyzers.diff_parser import DiffParser
from authsnitch.analyzers.keyword_matcher import detect_keywords
from authsnitch.analyzers.risk_scorer import RiskScorer
from authsnitch.exceptions import AuthSnitchError
from authsnitch.models.detection import DetectionResult
from authsnitch.models.file_change import ChangedFile, FileChange
from authsnitch.models.notification import (
    ChannelAction,
    ChannelConfig,
    ChannelDecision,
    NotificationMode,
    NotificationSignals,
)
from authsnitch.models.pr_info import PRContext, PRInfo
from authsnitch.models.report import AnalysisReport
from authsnitch.models.score import ScoreResult
from authsnitch.services.detector import AuthChangeDetector
from authsnitch.services.github_client import GitHubClient
from authsnitch.services.notification_gate import NotificationGate
from authsnitch.services.notifier import Notifier
from authsnitch.services.summarizer import Summarizer
from authsnitch.utils.logging import (
    get_logger,
    log_channel_decision,
    log_error_with_context,
    log_phase_transition,
)
from authsnitch.utils.metrics import AnalysisMetrics


logger = get_logger(__name__)


class AnalysisState(TypedDict):
    """State schema for the Analysis Agent."""
    run_id: str
    pr_context: PRContext
    pr_info: Optional[PRInfo]
    changed_files: List[ChangedFile]
    diff_text: Optional[str]
    file_changes: List[FileChange]
    diff_content: str
    keywords_detected: List[str]
    detection_result: Optional[DetectionResult]
    score_result: Optional[ScoreResult]
    signals: Optional[NotificationSignals]
    decisions: Dict[str, ChannelDecision]
    errors: List[str]
    phase: str


def after_parse(state: AnalysisState) -> str:
    """Route after parsing.

    Returns:
        "detect" when there is diff content to analyze, otherwise "skip"
    """
    if state.get("diff_content", "").strip():
        return "detect"
    return "skip"


class AnalysisAgent:
    """Runs the authentication change analysis for one pull request."""

    def __init__(
        self,
        github_client: GitHubClient,
        detector: AuthChangeDetector,
        notifier: Notifier,
        channels: Mapping[str, ChannelConfig],
        diff_parser: Optional[DiffParser] = None,
        scorer: Optional[RiskScorer] = None,
        gate: Optional[NotificationGate] = None,
        summarizer: Optional[Summarizer] = None,
        mode: NotificationMode = NotificationMode.SCORE,
        use_unified_diff: bool = False,
        run_id: Optional[str] = None,
        metrics: Optional[AnalysisMetrics] = None,
    ):
        """
        Initialize the agent.

        Args:
            github_client: GitHub API client
            detector: Authentication change detector
            notifier: Notification transport
            channels: Configured channels by name
            diff_parser: Diff parser (default classifier if omitted)
            scorer: Risk scorer
            gate: Notification gate
            summarizer: Summary formatter
            mode: Whether decisions use the numeric score or the boolean signals
            use_unified_diff: Fetch the raw unified diff instead of the file listing
            run_id: Run identifier (generated if omitted)
            metrics: Run metrics collector
        """
        self.github_client = github_client
        self.detector = detector
        self.notifier = notifier
        self.channels = dict(channels)
        self.diff_parser = diff_parser or DiffParser()
        self.scorer = scorer or RiskScorer()
        self.gate = gate or NotificationGate()
        self.summarizer = summarizer or Summarizer()
        self.mode = mode
        self.use_unified_diff = use_unified_diff
        self.run_id = run_id or str(uuid.uuid4())
        self.metrics = metrics or AnalysisMetrics(self.run_id)

        self.graph = self._build_state_graph()

    def _build_state_graph(self):
        workflow = StateGraph(AnalysisState)

        workflow.add_node("fetch_changes", self._fetch_changes_node)
        workflow.add_node("parse_diff", self._parse_diff_node)
        workflow.add_node("detect", self._detect_node)
        workflow.add_node("score", self._score_node)
        workflow.add_node("decide", self._decide_node)
        workflow.add_node("notify", self._notify_node)
        workflow.add_node("skip", self._skip_node)

        workflow.set_entry_point("fetch_changes")
        workflow.add_edge("fetch_changes", "parse_diff")
        workflow.add_conditional_edges(
            "parse_diff",
            after_parse,
            {"detect": "detect", "skip": "skip"},
        )
        workflow.add_edge("detect", "score")
        workflow.add_edge("score", "decide")
        workflow.add_edge("decide", "notify")
        workflow.add_edge("notify", END)
        workflow.add_edge("skip", END)

        return workflow.compile()

    async def run(self, pr_context: PRContext) -> AnalysisReport:
        """
        Execute the workflow for a pull request.

        Args:
            pr_context: Repository and PR number

        Returns:
            AnalysisReport describing the run
        """
        run_logger = logger.with_context(
            run_id=self.run_id, repo=pr_context.repo, pr_number=pr_context.pr_number
        )
        run_logger.info(f"Starting analysis of PR #{pr_context.pr_number} in {pr_context.repo}")

        self.metrics.repo = pr_context.repo
        self.metrics.pr_number = pr_context.pr_number
        self.metrics.start()

        initial_state: AnalysisState = {
            "run_id": self.run_id,
            "pr_context": pr_context,
            "pr_info": None,
            "changed_files": [],
            "diff_text": None,
            "file_changes": [],
            "diff_content": "",
            "keywords_detected": [],
            "detection_result": None,
            "score_result": None,
            "signals": None,
            "decisions": {},
            "errors": [],
            "phase": "initialize",
        }

        try:
            final_state = await self.graph.ainvoke(initial_state)
        except Exception as e:
            log_error_with_context(run_logger, f"Analysis run {self.run_id} failed", e)
            self.metrics.complete(status="failed", error_message=str(e))
            return AnalysisReport(
                run_id=self.run_id,
                phase="failed",
                errors=initial_state["errors"] + [str(e)],
            )

        status = "completed" if not final_state["errors"] else "completed_with_errors"
        self.metrics.complete(status=status)

        return AnalysisReport(
            run_id=self.run_id,
            pr_info=final_state.get("pr_info"),
            file_changes=final_state["file_changes"],
            detection_result=final_state.get("detection_result"),
            score_result=final_state.get("score_result"),
            signals=final_state.get("signals"),
            keywords_detected=final_state["keywords_detected"],
            decisions=final_state["decisions"],
            phase=final_state["phase"],
            errors=final_state["errors"],
        )

    async def _fetch_changes_node(self, state: AnalysisState) -> AnalysisState:
        log_phase_transition(logger, state["run_id"], "fetch_changes", "started")
        state["phase"] = "fetch_changes"
        ctx = state["pr_context"]

        try:
            state["pr_info"] = await self.github_client.pull_request(ctx.repo, ctx.pr_number)
        except AuthSnitchError as e:
            logger.error(f"PR metadata fetch failed: {e}", extra={"run_id": state["run_id"]})
            state["errors"].append(f"PR metadata error: {e}")
            state["pr_info"] = PRInfo(repo=ctx.repo, number=ctx.pr_number)

        try:
            if self.use_unified_diff:
                state["diff_text"] = await self.github_client.pull_request_diff(
                    ctx.repo, ctx.pr_number
                )
            else:
                state["changed_files"] = await self.github_client.pull_request_files(
                    ctx.repo, ctx.pr_number
                )
        except AuthSnitchError as e:
            logger.error(f"Change retrieval failed: {e}", extra={"run_id": state["run_id"]})
            state["errors"].append(f"Change retrieval error: {e}")

        log_phase_transition(logger, state["run_id"], "fetch_changes", "completed")
        return state

    async def _parse_diff_node(self, state: AnalysisState) -> AnalysisState:
        log_phase_transition(logger, state["run_id"], "parse_diff", "started")
        state["phase"] = "parse_diff"

        if state["diff_text"] is not None:
            file_changes = self.diff_parser.parse(state["diff_text"])
        else:
            file_changes = self.diff_parser.parse_from_file_list(state["changed_files"])

        diff_content = self.diff_parser.extract_changes_for_analysis(file_changes)
        auth_count = self.diff_parser.count_auth_sensitive(file_changes)

        state["file_changes"] = file_changes
        state["diff_content"] = diff_content
        state["keywords_detected"] = detect_keywords(diff_content, self.detector.all_keywords())

        self.metrics.record_files(len(file_changes), auth_count)
        logger.info(
            f"Found {len(file_changes)} changed files ({auth_count} auth-sensitive)",
            extra={"run_id": state["run_id"]},
        )

        log_phase_transition(logger, state["run_id"], "parse_diff", "completed")
        return state

    async def _skip_node(self, state: AnalysisState) -> AnalysisState:
        logger.info("No code changes to analyze", extra={"run_id": state["run_id"]})
        state["phase"] = "skipped"
        return state

    async def _detect_node(self, state: AnalysisState) -> AnalysisState:
        log_phase_transition(logger, state["run_id"], "detect", "started")
        state["phase"] = "detect"

        try:
            result = await self.detector.analyze(state["diff_content"], state["file_changes"])
        except AuthSnitchError as e:
            logger.error(f"Detection failed: {e}", extra={"run_id": state["run_id"]})
            state["errors"].append(f"Detection error: {e}")
            result = DetectionResult(summary=f"Detector unavailable: {e}")

        state["detection_result"] = result
        self.metrics.record_findings(len(result.findings))

        if result.auth_changes_detected:
            logger.info(
                f"Auth changes detected, highest risk: {result.highest_risk.value}",
                extra={"run_id": state["run_id"]},
            )
        else:
            logger.info("No authentication-related changes detected", extra={"run_id": state["run_id"]})

        log_phase_transition(logger, state["run_id"], "detect", "completed")
        return state

    async def _score_node(self, state: AnalysisState) -> AnalysisState:
        log_phase_transition(logger, state["run_id"], "score", "started")
        state["phase"] = "score"

        detection = state["detection_result"]
        score_result = self.scorer.score(detection, state["file_changes"])
        state["score_result"] = score_result
        state["signals"] = NotificationSignals(
            detector_flagged=detection.auth_changes_detected,
            keyword_matched=bool(state["keywords_detected"]),
        )

        self.metrics.record_score(score_result.score, score_result.label.value)
        logger.info(
            f"Risk score: {score_result.score} ({score_result.label.value})",
            extra={"run_id": state["run_id"]},
        )

        log_phase_transition(logger, state["run_id"], "score", "completed")
        return state

    async def _decide_node(self, state: AnalysisState) -> AnalysisState:
        log_phase_transition(logger, state["run_id"], "decide", "started")
        state["phase"] = "decide"

        if self.mode == NotificationMode.SIGNALS:
            state["decisions"] = self.gate.decide(state["signals"], self.channels)
        else:
            state["decisions"] = self.gate.decide(state["score_result"], self.channels)

        log_phase_transition(logger, state["run_id"], "decide", "completed")
        return state

    async def _notify_node(self, state: AnalysisState) -> AnalysisState:
        log_phase_transition(logger, state["run_id"], "notify", "started")
        state["phase"] = "notify"

        decisions = state["decisions"]
        should_notify = any(d.action == ChannelAction.SENT for d in decisions.values())

        if should_notify:
            summary = self.summarizer.summarize(
                state["detection_result"],
                pr_info=state["pr_info"],
                keywords_detected=state["keywords_detected"],
                score_result=state["score_result"] if self.mode == NotificationMode.SCORE else None,
                should_notify=True,
            )
            decisions = await self.notifier.deliver(
                decisions, summary, state["pr_info"], self.channels
            )
            state["decisions"] = decisions

        for name, decision in decisions.items():
            self.metrics.record_channel_action(name, decision.action.value)
            log_channel_decision(logger, name, decision.action.value, decision.reason)

        state["phase"] = "completed"
        log_phase_transition(logger, state["run_id"], "notify", "completed")
        return state
