"""
Summarizer.

Formats detection and score results into a NotificationSummary and renders it
as plain text (logs) or markdown (PR comments).
"""

from typing import List, Optional, Sequence

from authsnitch.models.detection import DetectionResult, Finding
from authsnitch.models.pr_info import PRInfo
from authsnitch.models.score import ScoreResult
from authsnitch.models.summary import (
    FormattedFinding,
    NotificationSummary,
    PRSection,
    RiskDisplay,
)


ALERT_TITLE = "AuthSnitch - Authentication Changes Detected"
REVIEW_TITLE = "AuthSnitch - Review Summary"
BAR_WIDTH = 10
MAX_MARKDOWN_EXCERPT = 500


def humanize_category(category: Optional[str]) -> str:
    """``session_handling`` -> ``Session Handling``."""
    if not category:
        return "Unknown Change"
    return " ".join(word.capitalize() for word in category.replace("_", " ").split())


def risk_bar(score: int) -> str:
    """Ten-cell bar, one filled cell per ten points."""
    filled = max(0, min(BAR_WIDTH, score // 10))
    return "█" * filled + "░" * (BAR_WIDTH - filled)


def truncate(text: Optional[str], max_length: int) -> Optional[str]:
    if text is None or len(text) <= max_length:
        return text
    return f"{text[:max_length - 3]}..."


class Summarizer:
    """Builds human-readable summaries of an analysis."""

    def summarize(
        self,
        detection_result: DetectionResult,
        pr_info: Optional[PRInfo] = None,
        keywords_detected: Sequence[str] = (),
        score_result: Optional[ScoreResult] = None,
        should_notify: bool = False,
    ) -> NotificationSummary:
        """
        Build a summary.

        Args:
            detection_result: Parsed detector output
            pr_info: Pull request metadata
            keywords_detected: Keywords found in the diff
            score_result: Risk score, when numeric scoring ran
            should_notify: Whether any channel is being notified

        Returns:
            NotificationSummary
        """
        return NotificationSummary(
            title=ALERT_TITLE if should_notify else REVIEW_TITLE,
            pr_section=self._pr_section(pr_info),
            summary=detection_result.summary,
            findings=[self._format_finding(f) for f in detection_result.findings],
            files_affected=self._affected_files(detection_result.findings),
            keywords=list(keywords_detected),
            risk_display=self._risk_display(score_result),
        )

    def to_text(self, summary: NotificationSummary) -> str:
        """Render a summary as plain text."""
        lines = [summary.title, "=" * len(summary.title), "", f"Summary: {summary.summary}", ""]

        if summary.risk_display:
            risk = summary.risk_display
            lines.append(f"Risk Score: {risk.score} ({risk.label}) {risk.bar}")
            lines.append("")

        if summary.findings:
            lines.append("Findings:")
            for i, finding in enumerate(summary.findings, start=1):
                lines.append(f"  {i}. {finding.category_display}")
                lines.append(f"     File: {finding.file or 'unknown'}")
                lines.append(f"     {finding.description or ''}")
                lines.append("")

        if summary.files_affected:
            lines.append(f"Files Affected: {', '.join(summary.files_affected)}")
            lines.append("")

        if summary.keywords:
            lines.append(f"Keywords: {', '.join(summary.keywords)}")

        return "\n".join(lines)

    def to_markdown(self, summary: NotificationSummary) -> str:
        """Render a summary as a GitHub-flavored markdown comment."""
        lines: List[str] = [f"## {summary.title}", ""]

        pr = summary.pr_section
        details = [
            ("PR", pr.title),
            ("Author", pr.author),
            ("Repository", pr.repo),
        ]
        for name, value in details:
            if value:
                lines.append(f"**{name}:** {value}  ")

        if summary.risk_display:
            risk = summary.risk_display
            lines.append(f"**Risk Score:** {risk.score} ({risk.label}) `{risk.bar}`")
        lines.append("")

        lines.extend(["### Summary", "", summary.summary, ""])

        if summary.findings:
            lines.extend(["### Findings", ""])
            for i, finding in enumerate(summary.findings, start=1):
                heading = f"{i}. **{finding.category_display}**"
                if finding.risk_level and finding.risk_level.value != "none":
                    heading += f" ({finding.risk_level.value})"
                lines.append(heading)
                if finding.file:
                    lines.append(f"   - File: `{finding.file}`")
                if finding.description:
                    lines.append(f"   - {finding.description}")
                if finding.recommendation:
                    lines.append(f"   - Recommendation: {finding.recommendation}")
                if finding.code_excerpt:
                    lines.append("")
                    lines.append("   ```")
                    for code_line in truncate(finding.code_excerpt, MAX_MARKDOWN_EXCERPT).splitlines():
                        lines.append(f"   {code_line}")
                    lines.append("   ```")
            lines.append("")

        if summary.files_affected:
            lines.extend(["### Files Affected", ""])
            lines.extend(f"- `{name}`" for name in summary.files_affected)
            lines.append("")

        if summary.keywords:
            keywords = ", ".join(f"`{kw}`" for kw in summary.keywords)
            lines.extend([f"**Keywords Detected:** {keywords}", ""])

        return "\n".join(lines).rstrip() + "\n"

    @staticmethod
    def _pr_section(pr_info: Optional[PRInfo]) -> PRSection:
        if pr_info is None:
            return PRSection()
        return PRSection(
            title=f'#{pr_info.number} "{pr_info.title}"' if pr_info.title else None,
            number=pr_info.number,
            author=f"@{pr_info.author}" if pr_info.author else None,
            repo=pr_info.repo,
            url=pr_info.url,
        )

    @staticmethod
    def _format_finding(finding: Finding) -> FormattedFinding:
        return FormattedFinding(
            category=finding.category,
            category_display=humanize_category(finding.category),
            file=finding.file,
            code_excerpt=finding.code_excerpt,
            description=finding.description,
            risk_level=finding.risk_level,
            recommendation=finding.recommendation,
        )

    @staticmethod
    def _affected_files(findings: Sequence[Finding]) -> List[str]:
        return list(dict.fromkeys(f.file for f in findings if f.file))

    @staticmethod
    def _risk_display(score_result: Optional[ScoreResult]) -> Optional[RiskDisplay]:
        if score_result is None:
            return None
        return RiskDisplay(
            score=score_result.score,
            label=score_result.label.value,
            color=score_result.color,
            bar=risk_bar(score_result.score),
        )
