"""Analysis run report data model."""

from typing import Dict, List, Optional

from pydantic import BaseModel

from .detection import DetectionResult
from .file_change import FileChange
from .notification import ChannelDecision, NotificationSignals
from .pr_info import PRInfo
from .score import ScoreResult


class AnalysisReport(BaseModel):
    """Everything produced by a single analysis run."""

    run_id: str
    pr_info: Optional[PRInfo] = None
    file_changes: List[FileChange] = []
    detection_result: Optional[DetectionResult] = None
    score_result: Optional[ScoreResult] = None
    signals: Optional[NotificationSignals] = None
    keywords_detected: List[str] = []
    decisions: Dict[str, ChannelDecision] = {}
    phase: str = "initialize"
    errors: List[str] = []
