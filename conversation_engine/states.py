from __future__ import annotations  # Turn-taking states and runtime snapshots

from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, computed_field

from errors import PracticeError
from session_store import TranscriptMessage


class EngineState(str, Enum):  # Turn-taking state machine positions
    IDLE = "idle"
    LISTENING = "listening"
    DRAFTED = "drafted"
    SENDING = "sending"
    AWAITING_RESPONSE = "awaiting_response"
    SPEAKING = "speaking"
    ENDED = "ended"


class Notice(BaseModel):  # User-visible, non-fatal condition
    model_config = ConfigDict(frozen=True)

    code: str
    message: str

    @classmethod
    def from_error(cls, error: PracticeError) -> "Notice":
        return cls(code=error.code, message=error.message)


class ConversationRuntimeState(BaseModel):  # Transient display state; never persisted
    phase: EngineState = EngineState.IDLE
    transcript: Tuple[TranscriptMessage, ...] = ()
    turn_count: int = 0
    elapsed_seconds: int = 0
    current_draft: str = ""
    transcript_panel_visible: bool = False
    manual_entry: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def recording(self) -> bool:
        return self.phase is EngineState.LISTENING

    @computed_field  # type: ignore[prop-decorator]
    @property
    def processing(self) -> bool:
        return self.phase in (EngineState.SENDING, EngineState.AWAITING_RESPONSE)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def speaking(self) -> bool:
        return self.phase is EngineState.SPEAKING


class TransitionResult(BaseModel):  # Outcome of a user/system action on the engine
    accepted: bool
    state: EngineState
    notice: Optional[Notice] = None


class TurnResult(TransitionResult):  # Outcome of sending the draft
    user_message: Optional[TranscriptMessage] = None
    assistant_message: Optional[TranscriptMessage] = None
    discarded: bool = False


def format_elapsed(seconds: int) -> str:
    """Render a clock value as ``m:ss``."""

    mins, secs = divmod(max(0, int(seconds)), 60)
    return f"{mins}:{secs:02d}"


__all__ = [
    "ConversationRuntimeState",
    "EngineState",
    "Notice",
    "TransitionResult",
    "TurnResult",
    "format_elapsed",
]
