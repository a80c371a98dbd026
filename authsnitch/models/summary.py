"""Notification summary data models."""

from typing import List, Optional

from pydantic import BaseModel

from .detection import RiskLevel


class FormattedFinding(BaseModel):
    """Finding prepared for display."""

    category: Optional[str] = None
    category_display: str
    file: Optional[str] = None
    code_excerpt: Optional[str] = None
    description: Optional[str] = None
    risk_level: RiskLevel = RiskLevel.NONE
    recommendation: Optional[str] = None


class PRSection(BaseModel):
    """Pull request header block of a summary."""

    title: Optional[str] = None
    number: Optional[int] = None
    author: Optional[str] = None
    repo: Optional[str] = None
    url: Optional[str] = None


class RiskDisplay(BaseModel):
    """Risk score rendering hints."""

    score: int
    label: str
    color: str
    bar: str


class NotificationSummary(BaseModel):
    """Human-readable payload handed to the notification transports."""

    title: str
    pr_section: PRSection
    summary: str
    findings: List[FormattedFinding] = []
    files_affected: List[str] = []
    keywords: List[str] = []
    risk_display: Optional[RiskDisplay] = None
