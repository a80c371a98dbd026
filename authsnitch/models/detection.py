"""Detection result data models."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class RiskLevel(str, Enum):
    """Risk level reported for a finding."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @classmethod
    def normalize(cls, value: object) -> "RiskLevel":
        """Map a free-form value onto a risk level, defaulting to NONE."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return cls.NONE
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.NONE


class Finding(BaseModel):
    """A single authentication-relevant observation about the change."""

    model_config = ConfigDict(frozen=True)

    category: Optional[str] = None
    file: Optional[str] = None
    code_excerpt: Optional[str] = None
    description: Optional[str] = None
    security_relevance: Optional[str] = None
    risk_level: RiskLevel = RiskLevel.NONE
    recommendation: Optional[str] = None


class DetectionResult(BaseModel):
    """Structured output of the external detector."""

    model_config = ConfigDict(frozen=True)

    findings: List[Finding] = []
    summary: str = "Analysis complete."
    auth_changes_detected: bool = False
    highest_risk: RiskLevel = RiskLevel.NONE
    raw_response: Optional[str] = None


class ParseFallback(str, Enum):
    """Policy applied when detector output cannot be decoded."""

    NEUTRAL = "neutral"
    KEYWORD_HEURISTIC = "keyword_heuristic"
