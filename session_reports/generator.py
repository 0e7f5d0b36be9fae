"""Report generation from persisted sessions."""
from __future__ import annotations

from typing import Dict, List, Optional

from errors import PersistenceError, ReportUnavailable, SessionNotFound
from session_store import Session, SessionStore

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
from .scoring import ScoreSheet, TranscriptScorer, clamp, fit_label, resolve_scorer

ENGAGED_TURNS = 3

CARD_TEXT: Dict[str, str] = {
    "Communication": "Clear articulation of ideas with room for improvement in persuasive language.",
    "Problem Solving": "Showed ability to think on your feet and address concerns.",
    "Professionalism": "Maintained appropriate tone throughout the interaction.",
    "Adaptability": "Adjusted approach based on feedback received.",
    "Active Listening": "Demonstrated attention to detail in responses.",
    "Emotional Intelligence": "Showed awareness of the other party's perspective.",
    "Confidence": "Room for improvement in assertive communication.",
}

ENGAGED_SUMMARY = (
    "You demonstrated good engagement throughout the conversation. There were moments of strong "
    "communication, with opportunities for improvement in handling objections."
)
BRIEF_SUMMARY = "The session was brief. Consider longer practice sessions to develop your skills further."

PLACEHOLDER_RESPONSE = "Your response here"


def generate(session: Optional[Session], *, scorer: Optional[TranscriptScorer] = None) -> Report:
    """Derive a scored report from ``session``.

    Raises ``ReportUnavailable`` for a missing session or an empty
    transcript instead of inventing scores.
    """

    if session is None:
        raise ReportUnavailable("<none>", "no session data")
    if not session.transcript:
        raise ReportUnavailable(session.id, "the transcript is empty")

    sheet = (scorer or resolve_scorer()).score(session)
    user_turns = session.user_turns
    first_user_line = next((m.content for m in session.transcript if m.role == "user"), PLACEHOLDER_RESPONSE)

    return Report(
        session_id=session.id,
        scenario=session.scenario,
        meta=ReportMeta(
            fit_score=clamp(sheet.fit),
            fit_label=fit_label(sheet.base),
            potential_score=clamp(sheet.potential),
            summary=ENGAGED_SUMMARY if user_turns >= ENGAGED_TURNS else BRIEF_SUMMARY,
        ),
        sidebar_data=SidebarData(
            top_traits=["Adaptability", "Active Listening", "Empathy"],
            improvements=["Handling objections", "Closing techniques", "Asking follow-up questions"],
            motivators=["Achievement", "Recognition", "Growth"],
            derailers=["Time pressure", "Unclear expectations"],
        ),
        functional_cards=_cards(sheet.functional),
        behavioral_cards=_cards(sheet.behavioral),
        conversation_analysis=ConversationAnalysis(
            analysis_text="The conversation flow was natural with good turn-taking patterns.",
            metrics=[AnalysisMetric(label=label, score=clamp(value)) for label, value in sheet.metrics.items()],
        ),
        coach_rewrite_card=CoachRewrite(
            title="Key Learning Moment",
            context="When addressing resistance or objections",
            original_user_response=first_user_line,
            pro_rewrite=(
                "I understand your concern about [specific issue]. Let me address that by explaining how "
                "[solution] could work for your situation specifically."
            ),
            why_it_works="This reframe acknowledges the concern while pivoting to a solution-oriented approach.",
        ),
        learning_plan=LearningPlan(
            priority_focus="Focus on building rapport before addressing objections directly.",
            recommended_drill="Practice the 'feel, felt, found' technique for handling objections.",
            suggested_reading="Start with Why by Simon Sinek - for understanding motivational communication.",
        ),
        qa_analysis=_qa_items(session, sheet),
        transcript=session.transcript,
    )


def load_report(store: SessionStore, session_id: str, *, scorer: Optional[TranscriptScorer] = None) -> Report:
    """Fetch ``session_id`` from ``store`` and generate its report."""

    try:
        session = store.get(session_id)
    except SessionNotFound as exc:
        raise ReportUnavailable(session_id, "session not found") from exc
    except PersistenceError as exc:
        raise ReportUnavailable(session_id, exc.message) from exc
    return generate(session, scorer=scorer)


def _cards(scores: Dict[str, float]) -> List[CardMetric]:
    return [CardMetric(name=name, score=clamp(value), text=CARD_TEXT.get(name, "")) for name, value in scores.items()]


def _feedback(score: float) -> str:
    if score >= 7.0:
        return "Confident, well-structured reply."
    if score >= 5.0:
        return "Solid reply; add a concrete next step or example."
    return "Brief reply; acknowledge the concern before answering."


def _qa_items(session: Session, sheet: ScoreSheet) -> List[QAItem]:
    lines = session.transcript
    pairs = [
        (previous.content, current.content)
        for previous, current in zip(lines, lines[1:])
        if previous.role == "assistant" and current.role == "user"
    ]
    items: List[QAItem] = []
    for (question, answer), score in zip(pairs, sheet.exchanges):
        value = clamp(score)
        items.append(QAItem(question=question, answer=answer, feedback=_feedback(value), score=value))
    return items


__all__ = ["generate", "load_report"]
