from __future__ import annotations  # Conversation engine exports

from .engine import ConversationEngine, opening_greeting
from .states import ConversationRuntimeState, EngineState, Notice, TransitionResult, TurnResult, format_elapsed

__all__ = [
    "ConversationEngine",
    "ConversationRuntimeState",
    "EngineState",
    "Notice",
    "TransitionResult",
    "TurnResult",
    "format_elapsed",
    "opening_greeting",
]
