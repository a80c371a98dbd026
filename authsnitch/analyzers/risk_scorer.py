"""
Risk scorer converting detection results into a 0-100 score.

The base score is the larger of the table score for the reported highest
risk and the (floored) mean of per-finding table scores. Independent
modifiers add points for several auth-sensitive files, identity provider
changes, and credential handling. Without a positive detection signal the
score is zero regardless of the files touched.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from authsnitch.config import ScoringConfig
from authsnitch.models.detection import DetectionResult, RiskLevel
from authsnitch.models.file_change import FileChange
from authsnitch.models.score import RiskLabel, ScoreBreakdown, ScoreModifier, ScoreResult


logger = logging.getLogger(__name__)

MAX_SCORE = 100
MIN_SCORE = 0
UNKNOWN_COLOR = "#808080"
ZERO_SCORE_COLOR = "#36a64f"


def _parse_range(text: str) -> Optional[Tuple[int, int]]:
    try:
        low, high = text.split("-", 1)
        return int(low.strip()), int(high.strip())
    except ValueError:
        return None


class RiskScorer:
    """Scores a detection result against the changed files."""

    def __init__(self, config: Optional[ScoringConfig] = None):
        self.config = config or ScoringConfig()
        self._label_ranges: List[Tuple[int, int, str]] = []
        for range_text, label in self.config.risk_labels.items():
            bounds = _parse_range(range_text)
            if bounds is None:
                logger.warning(f"Ignoring malformed risk label range {range_text!r}")
                continue
            self._label_ranges.append((bounds[0], bounds[1], label))

    def score(
        self,
        detection_result: DetectionResult,
        file_changes: Optional[Sequence[FileChange]] = None,
    ) -> ScoreResult:
        """
        Calculate the risk score.

        Args:
            detection_result: Parsed detector output
            file_changes: Parsed file changes

        Returns:
            ScoreResult with score, label, color and breakdown
        """
        if not detection_result.auth_changes_detected:
            return self.zero_score()

        base_score = self._base_score(detection_result)
        modifiers = self._modifiers(detection_result, file_changes or [])
        modifier_total = sum(modifier.points for modifier in modifiers)

        total = max(MIN_SCORE, min(MAX_SCORE, base_score + modifier_total))

        return ScoreResult(
            score=total,
            label=self.score_label(total),
            color=self.score_color(total),
            breakdown=ScoreBreakdown(
                base_score=base_score,
                highest_risk=detection_result.highest_risk,
                modifiers=modifiers,
                modifier_total=modifier_total,
            ),
        )

    def score_label(self, score: int) -> RiskLabel:
        """Label for a score; UNKNOWN when no configured range covers it."""
        for low, high, label in self._label_ranges:
            if low <= score <= high:
                try:
                    return RiskLabel(label.upper())
                except ValueError:
                    return RiskLabel.UNKNOWN
        return RiskLabel.UNKNOWN

    def score_color(self, score: int) -> str:
        label = self.score_label(score).value.lower()
        return self.config.risk_colors.get(label, UNKNOWN_COLOR)

    def zero_score(self) -> ScoreResult:
        return ScoreResult(
            score=0,
            label=RiskLabel.NONE,
            color=self.config.risk_colors.get("none", ZERO_SCORE_COLOR),
            breakdown=ScoreBreakdown(
                base_score=0,
                highest_risk=RiskLevel.NONE,
                modifiers=[],
                modifier_total=0,
            ),
        )

    def _risk_points(self, level: RiskLevel) -> int:
        return self.config.risk_scores.get(level.value, 0)

    def _base_score(self, detection_result: DetectionResult) -> int:
        base = self._risk_points(detection_result.highest_risk)

        finding_scores = [self._risk_points(f.risk_level) for f in detection_result.findings]
        if not finding_scores:
            return base

        average = sum(finding_scores) // len(finding_scores)
        return max(base, average)

    def _modifiers(
        self,
        detection_result: DetectionResult,
        file_changes: Sequence[FileChange],
    ) -> List[ScoreModifier]:
        points = self.config.modifiers
        applied: List[ScoreModifier] = []

        auth_file_count = sum(1 for change in file_changes if change.auth_sensitive)
        if auth_file_count >= 2:
            applied.append(ScoreModifier(
                name="multiple_auth_files",
                points=points.get("multiple_auth_files", 10),
                reason=f"{auth_file_count} auth-sensitive files",
            ))

        text = self._findings_text(detection_result)

        if any(keyword.lower() in text for keyword in self.config.identity_provider_keywords):
            applied.append(ScoreModifier(
                name="identity_provider_change",
                points=points.get("identity_provider_change", 15),
                reason="Identity provider modification",
            ))

        if any(keyword.lower() in text for keyword in self.config.credential_keywords):
            applied.append(ScoreModifier(
                name="credential_handling",
                points=points.get("credential_handling", 20),
                reason="Credential/secret handling",
            ))

        return applied

    @staticmethod
    def _findings_text(detection_result: DetectionResult) -> str:
        parts = [detection_result.summary or ""]
        for finding in detection_result.findings:
            parts.append(finding.category or "")
            parts.append(finding.description or "")
            parts.append(finding.security_relevance or "")
        return " ".join(parts).lower()
