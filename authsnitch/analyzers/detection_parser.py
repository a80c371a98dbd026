"""
Detection result parser for free-text detector responses.

The detector is asked for JSON but may wrap it in prose or markdown fences,
or return something else entirely. ``decode`` reports either a parsed result
or a malformed response; ``parse`` collapses the malformed case into a
fallback DetectionResult according to the configured ParseFallback, and
never raises.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict

from authsnitch.models.detection import DetectionResult, Finding, ParseFallback, RiskLevel


logger = logging.getLogger(__name__)

_FENCED_BLOCK_RE = re.compile(r"```\w*\s*(.*?)\s*```", re.DOTALL)
_AUTH_HINT_RE = re.compile(r"auth|password|token|session|login|credential", re.IGNORECASE)

DEFAULT_SUMMARY = "Analysis complete."
EMPTY_INPUT_SUMMARY = "No diff content provided for analysis."
PREVIEW_LENGTH = 200


class ParsedResponse(BaseModel):
    """Detector output decoded into a DetectionResult."""

    model_config = ConfigDict(frozen=True)

    result: DetectionResult


class MalformedResponse(BaseModel):
    """Detector output that could not be decoded."""

    model_config = ConfigDict(frozen=True)

    raw_text: str
    reason: str


DecodeOutcome = Union[ParsedResponse, MalformedResponse]


def json_candidates(text: str) -> List[str]:
    """
    List the substrings that may hold the JSON payload, in the order tried.

    1. The interior of the first fenced code block.
    2. The span from the first ``{`` to the last ``}``, only when it mentions
       ``"findings"`` or ``"summary"`` so stray braces in prose are ignored.
    3. The stripped text itself.
    """
    candidates: List[str] = []

    if "```" in text:
        match = _FENCED_BLOCK_RE.search(text)
        if match:
            candidates.append(match.group(1).strip())

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        span = text[start:end + 1]
        if '"findings"' in span or '"summary"' in span:
            candidates.append(span)

    candidates.append(text.strip())
    return candidates


def empty_result() -> DetectionResult:
    """Result used when there was nothing to analyze."""
    return DetectionResult(
        findings=[],
        summary=EMPTY_INPUT_SUMMARY,
        auth_changes_detected=False,
        highest_risk=RiskLevel.NONE,
        raw_response=None,
    )


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value) if isinstance(value, (dict, list)) else str(value)


def _as_flag(value: Any) -> bool:
    """Accept JSON booleans and the string "true"; anything else is False."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def _build_finding(data: Dict[str, Any]) -> Finding:
    return Finding(
        category=_optional_text(data.get("type")),
        file=_optional_text(data.get("file")),
        code_excerpt=_optional_text(data.get("code_section")),
        description=_optional_text(data.get("description")),
        security_relevance=_optional_text(data.get("security_relevance")),
        risk_level=RiskLevel.normalize(data.get("risk_level")),
        recommendation=_optional_text(data.get("recommendation")),
    )


class DetectionResultParser:
    """Extracts a DetectionResult from detector output."""

    def __init__(self, fallback: ParseFallback = ParseFallback.NEUTRAL):
        self.fallback = fallback

    def decode(self, raw_text: str) -> DecodeOutcome:
        """
        Decode detector output without applying any fallback policy.

        Args:
            raw_text: Untouched detector response

        Returns:
            ParsedResponse or MalformedResponse
        """
        data: Optional[Dict[str, Any]] = None
        reason = "no JSON content"
        for candidate in json_candidates(raw_text):
            try:
                decoded = json.loads(candidate)
            except (json.JSONDecodeError, RecursionError) as e:
                reason = f"invalid JSON: {e}"
                continue
            if not isinstance(decoded, dict):
                reason = f"expected a JSON object, got {type(decoded).__name__}"
                continue
            data = decoded
            break

        if data is None:
            return MalformedResponse(raw_text=raw_text, reason=reason)

        raw_findings = data.get("findings") or []
        if not isinstance(raw_findings, list):
            return MalformedResponse(raw_text=raw_text, reason="'findings' is not a list")

        findings: List[Finding] = []
        for item in raw_findings:
            if not isinstance(item, dict):
                logger.debug(f"Skipping non-object finding: {item!r}")
                continue
            findings.append(_build_finding(item))

        summary = data.get("summary")
        auth_detected = _as_flag(data.get("auth_changes_detected"))
        highest_risk = RiskLevel.normalize(data.get("highest_risk"))
        if not findings and not auth_detected:
            highest_risk = RiskLevel.NONE

        return ParsedResponse(result=DetectionResult(
            findings=findings,
            summary=summary if isinstance(summary, str) and summary else DEFAULT_SUMMARY,
            auth_changes_detected=auth_detected,
            highest_risk=highest_risk,
            raw_response=raw_text,
        ))

    def parse(self, raw_text: Optional[str]) -> DetectionResult:
        """
        Parse detector output into a DetectionResult.

        Args:
            raw_text: Untouched detector response

        Returns:
            Decoded result, or the configured fallback result when the
            response is malformed
        """
        if raw_text is None:
            return empty_result()
        if not isinstance(raw_text, str):
            raw_text = str(raw_text)

        outcome = self.decode(raw_text)
        if isinstance(outcome, ParsedResponse):
            return outcome.result

        logger.warning(f"Detector response could not be parsed: {outcome.reason}")
        return self.fallback_result(outcome)

    def fallback_result(self, outcome: MalformedResponse) -> DetectionResult:
        """Collapse a malformed response according to the fallback policy."""
        if self.fallback == ParseFallback.KEYWORD_HEURISTIC:
            preview = outcome.raw_text[:PREVIEW_LENGTH]
            return DetectionResult(
                findings=[],
                summary=(
                    "Detector analysis completed but response format was unexpected. "
                    f"Manual review recommended. Raw response preview: {preview}..."
                ),
                auth_changes_detected=_AUTH_HINT_RE.search(outcome.raw_text) is not None,
                highest_risk=RiskLevel.NONE,
                raw_response=outcome.raw_text,
            )

        return DetectionResult(
            findings=[],
            summary=f"Failed to parse detector response: {outcome.reason}",
            auth_changes_detected=False,
            highest_risk=RiskLevel.NONE,
            raw_response=outcome.raw_text,
        )
