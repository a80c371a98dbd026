"""LangGraph workflow for pull request analysis."""

from authsnitch.agents.analysis_agent import AnalysisAgent, AnalysisState, after_parse

__all__ = ["AnalysisAgent", "AnalysisState", "after_parse"]
