"""Transcript scoring policy for performance reports.

The reference policy is deliberately soft: a base score grows with the
number of user turns and saturates at a cap, and individual scores add a
bounded symmetric perturbation on top of it.  Labels depend only on the
base score, so repeated reports for the same session always agree on the
verdict even when the numbers wobble.
"""
from __future__ import annotations

import random
from typing import Dict, List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from config import SCORER_KEY, Settings, get_model, is_bound, settings as default_settings
from session_store import Session

MIN_SCORE = 0.0
MAX_SCORE = 10.0

FIT_FLOOR = 3.0
POTENTIAL_FLOOR = 5.0
CARD_FLOOR = 3.0
POTENTIAL_OFFSET = 1.0

STRONG_THRESHOLD = 7.0
GOOD_THRESHOLD = 5.0

FUNCTIONAL_OFFSETS: Dict[str, float] = {
    "Communication": 0.0,
    "Problem Solving": 0.0,
    "Professionalism": 0.5,
    "Adaptability": 0.0,
}
BEHAVIORAL_OFFSETS: Dict[str, float] = {
    "Active Listening": 0.0,
    "Emotional Intelligence": 0.0,
    "Confidence": -0.5,
}
METRIC_OFFSETS: Dict[str, float] = {
    "Engagement": 0.0,
    "Clarity": 0.5,
    "Impact": -0.5,
}


class ScoreSheet(BaseModel):
    base: float = Field(ge=MIN_SCORE, le=MAX_SCORE)
    fit: float = Field(ge=MIN_SCORE, le=MAX_SCORE)
    potential: float = Field(ge=MIN_SCORE, le=MAX_SCORE)
    functional: Dict[str, float] = Field(default_factory=dict)
    behavioral: Dict[str, float] = Field(default_factory=dict)
    metrics: Dict[str, float] = Field(default_factory=dict)
    exchanges: List[float] = Field(default_factory=list)


@runtime_checkable
class TranscriptScorer(Protocol):
    def score(self, session: Session) -> ScoreSheet: ...


def clamp(value: float, low: float = MIN_SCORE, high: float = MAX_SCORE) -> float:
    return max(low, min(high, value))


def _round1(value: float) -> float:
    """Round a float to one decimal place with stable formatting."""
    return float(f"{value:.1f}")


def fit_label(base: float) -> str:
    if base >= STRONG_THRESHOLD:
        return "Strong Performance"
    if base >= GOOD_THRESHOLD:
        return "Good Progress"
    return "Needs Practice"


def count_exchanges(session: Session) -> int:
    """Number of counterpart lines immediately answered by the user."""

    lines = session.transcript
    return sum(
        1
        for previous, current in zip(lines, lines[1:])
        if previous.role == "assistant" and current.role == "user"
    )


class TurnCountScorer:
    def __init__(
        self,
        *,
        base_score: float = 5.0,
        per_turn: float = 0.5,
        cap: float = 9.5,
        variance: float = 1.5,
        rng: Optional[random.Random] = None,
    ) -> None:
        if variance < 0:
            raise ValueError("variance must be non-negative")
        self._base_score = base_score
        self._per_turn = per_turn
        self._cap = clamp(cap)
        self._variance = variance
        self._rng = rng or random.Random()

    @classmethod
    def from_settings(cls, cfg: Settings) -> "TurnCountScorer":
        return cls(
            base_score=cfg.BASE_SCORE,
            per_turn=cfg.SCORE_PER_TURN,
            cap=cfg.BASE_SCORE_CAP,
            variance=cfg.SCORE_VARIANCE,
            rng=random.Random(cfg.REPORT_SEED),
        )

    @property
    def max_perturbation(self) -> float:
        return self._variance / 2.0

    def base_for(self, user_turns: int) -> float:
        """Non-decreasing in ``user_turns``; flat once the cap is reached."""
        return clamp(min(self._base_score + max(0, user_turns) * self._per_turn, self._cap))

    def _jitter(self) -> float:
        return (self._rng.random() - 0.5) * self._variance

    def _perturbed(self, value: float, floor: float) -> float:
        return _round1(clamp(max(floor, value + self._jitter())))

    def score(self, session: Session) -> ScoreSheet:
        base = self.base_for(session.user_turns)
        return ScoreSheet(
            base=base,
            fit=self._perturbed(base, FIT_FLOOR),
            potential=self._perturbed(base + POTENTIAL_OFFSET, POTENTIAL_FLOOR),
            functional={name: self._perturbed(base + offset, CARD_FLOOR) for name, offset in FUNCTIONAL_OFFSETS.items()},
            behavioral={name: self._perturbed(base + offset, CARD_FLOOR) for name, offset in BEHAVIORAL_OFFSETS.items()},
            metrics={name: _round1(clamp(base + offset)) for name, offset in METRIC_OFFSETS.items()},
            exchanges=[self._perturbed(base, CARD_FLOOR) for _ in range(count_exchanges(session))],
        )


def resolve_scorer(cfg: Optional[Settings] = None) -> TranscriptScorer:
    """Return the bound scorer factory's product, else the settings-based policy."""

    if is_bound(SCORER_KEY):
        return get_model(SCORER_KEY)()
    return TurnCountScorer.from_settings(cfg or default_settings)


__all__ = [
    "BEHAVIORAL_OFFSETS",
    "FUNCTIONAL_OFFSETS",
    "METRIC_OFFSETS",
    "ScoreSheet",
    "TranscriptScorer",
    "TurnCountScorer",
    "clamp",
    "count_exchanges",
    "fit_label",
    "resolve_scorer",
]
