from __future__ import annotations  # Session report package exports

from .generator import generate, load_report
from .models import (
    AnalysisMetric,
    CardMetric,
    CoachRewrite,
    ConversationAnalysis,
    LearningPlan,
    QAItem,
    Report,
    ReportMeta,
    SidebarData,
)
from .pdf import render_report_pdf
from .scoring import ScoreSheet, TranscriptScorer, TurnCountScorer, fit_label, resolve_scorer

__all__ = [
    "AnalysisMetric",
    "CardMetric",
    "CoachRewrite",
    "ConversationAnalysis",
    "LearningPlan",
    "QAItem",
    "Report",
    "ReportMeta",
    "ScoreSheet",
    "SidebarData",
    "TranscriptScorer",
    "TurnCountScorer",
    "fit_label",
    "generate",
    "load_report",
    "render_report_pdf",
    "resolve_scorer",
]
