"""Training analysis: insights and the shareable status report."""

from .insights import Insight, InsightSeverity, generate_insights
from .report import build_analysis_report

__all__ = [
    "Insight",
    "InsightSeverity",
    "build_analysis_report",
    "generate_insights",
]
