from __future__ import annotations  # Performance report domain models

from datetime import datetime, timezone
from typing import List, Tuple

from pydantic import BaseModel, Field

from session_store import TranscriptMessage



class ReportMeta(BaseModel):  # Headline scores and verdict
    fit_score: float = Field(ge=0.0, le=10.0)
    fit_label: str
    potential_score: float = Field(ge=0.0, le=10.0)
    summary: str


class SidebarData(BaseModel):  # Trait lists shown beside the scores
    top_traits: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    motivators: List[str] = Field(default_factory=list)
    derailers: List[str] = Field(default_factory=list)


class CardMetric(BaseModel):  # One scored competency card
    name: str
    score: float = Field(ge=0.0, le=10.0)
    text: str


class AnalysisMetric(BaseModel):
    label: str
    score: float = Field(ge=0.0, le=10.0)


class ConversationAnalysis(BaseModel):  # Flow-of-conversation commentary
    analysis_text: str
    metrics: List[AnalysisMetric] = Field(default_factory=list)


class CoachRewrite(BaseModel):  # Rewritten-response example
    title: str
    context: str
    original_user_response: str
    pro_rewrite: str
    why_it_works: str


class LearningPlan(BaseModel):
    priority_focus: str
    recommended_drill: str
    suggested_reading: str


class QAItem(BaseModel):  # Counterpart line paired with the user's answer
    question: str
    answer: str
    feedback: str
    score: float = Field(ge=0.0, le=10.0)


class Report(BaseModel):  # Derived, read-only report for one session
    session_id: str
    scenario: str
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    meta: ReportMeta
    sidebar_data: SidebarData
    functional_cards: List[CardMetric]
    behavioral_cards: List[CardMetric]
    conversation_analysis: ConversationAnalysis
    coach_rewrite_card: CoachRewrite
    learning_plan: LearningPlan
    qa_analysis: List[QAItem] = Field(default_factory=list)
    transcript: Tuple[TranscriptMessage, ...] = ()


__all__ = [
    "AnalysisMetric",
    "CardMetric",
    "CoachRewrite",
    "ConversationAnalysis",
    "LearningPlan",
    "QAItem",
    "Report",
    "ReportMeta",
    "SidebarData",
]
