"""Risk score data models."""

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict

from .detection import RiskLevel


class RiskLabel(str, Enum):
    """Label attached to a risk score."""

    NONE = "NONE"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"
    UNKNOWN = "UNKNOWN"


class ScoreModifier(BaseModel):
    """Additive adjustment applied to the base score."""

    model_config = ConfigDict(frozen=True)

    name: str
    points: int
    reason: str


class ScoreBreakdown(BaseModel):
    """Auditable breakdown of how a score was reached."""

    model_config = ConfigDict(frozen=True)

    base_score: int = 0
    highest_risk: RiskLevel = RiskLevel.NONE
    modifiers: List[ScoreModifier] = []
    modifier_total: int = 0


class ScoreResult(BaseModel):
    """Bounded risk score with label, color hint, and breakdown."""

    model_config = ConfigDict(frozen=True)

    score: int
    label: RiskLabel
    color: str
    breakdown: ScoreBreakdown
