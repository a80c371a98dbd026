"""Diff classification and risk scoring."""

from .detection_parser import (
    DetectionResultParser,
    MalformedResponse,
    ParsedResponse,
    empty_result,
)
from .diff_parser import DiffParser
from .keyword_matcher import detect_keywords
from .risk_scorer import RiskScorer
from .sensitivity import DEFAULT_SENSITIVITY_RULES, SensitivityClassifier, SensitivityRule

__all__ = [
    "DetectionResultParser",
    "MalformedResponse",
    "ParsedResponse",
    "empty_result",
    "DiffParser",
    "detect_keywords",
    "RiskScorer",
    "DEFAULT_SENSITIVITY_RULES",
    "SensitivityClassifier",
    "SensitivityRule",
]
