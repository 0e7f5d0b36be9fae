from __future__ import annotations  # Canned counterpart replies

import asyncio
import random
from typing import Optional, Sequence

from .base import ResponseRequest

CANNED_REPLIES: Sequence[str] = (
    "That's an interesting point. Can you tell me more about how you would handle that situation?",
    "I understand your perspective. However, I'm still not fully convinced. What else can you offer?",
    "Good approach! But have you considered the implications from my point of view?",
    "I appreciate you trying to address this. Let me think about what you said...",
    "That's helpful context. How would you ensure this works for everyone involved?",
    "Interesting! Can you walk me through the specific steps you'd take?",
    "I see what you're trying to do. But I still have some concerns about the timeline.",
    "That sounds reasonable. What would be the next steps if I agreed to this?",
)


class CannedResponseProvider:  # Picks a stock reply after a short "thinking" pause
    def __init__(
        self,
        *,
        replies: Sequence[str] = CANNED_REPLIES,
        rng: Optional[random.Random] = None,
        min_delay_s: float = 0.0,
        max_delay_s: float = 0.0,
    ) -> None:
        if not replies:
            raise ValueError("at least one canned reply is required")
        if max_delay_s < min_delay_s:
            raise ValueError("max_delay_s must be >= min_delay_s")
        self._replies = tuple(replies)
        self._rng = rng or random.Random()
        self._min_delay_s = min_delay_s
        self._max_delay_s = max_delay_s

    async def respond(self, request: ResponseRequest) -> str:
        delay = self._rng.uniform(self._min_delay_s, self._max_delay_s)
        if delay > 0:
            await asyncio.sleep(delay)
        return self._rng.choice(self._replies)


__all__ = ["CANNED_REPLIES", "CannedResponseProvider"]
