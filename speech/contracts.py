"""Contracts for speech capture (speech-to-text) and output (text-to-speech).

Platform bindings implement these two interfaces; the conversation engine
only ever talks to them through the operations below.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import AsyncIterator

from pydantic import BaseModel, ConfigDict


class RecognitionEvent(BaseModel):
    """One partial or final recognition result."""

    model_config = ConfigDict(frozen=True)

    text: str
    is_final: bool = False


class PlaybackOutcome(str, Enum):
    ENDED = "ended"
    ERROR = "error"


class SpeechCaptureAdapter(ABC):
    """Streams recognition events from the audio input device."""

    @abstractmethod
    def start(self, locale: str) -> AsyncIterator[RecognitionEvent]:
        """Open the device and return a stream of recognition events.

        Raises ``Unsupported`` when the platform cannot recognise speech and
        ``PermissionDenied`` when the device refuses access.  The returned
        stream may also raise ``PermissionDenied`` while it is iterated.
        The stream ends on its own or after :meth:`stop`.
        """

    @abstractmethod
    async def stop(self) -> None:
        """Stop recognition and release the device. Safe to call repeatedly."""


class SpeechOutputAdapter(ABC):
    """Plays synthesized speech, one utterance at a time."""

    @abstractmethod
    async def speak(self, text: str) -> PlaybackOutcome:
        """Play ``text`` and return once playback has ended or failed.

        Implementations cancel any utterance still playing before starting.
        """

    @abstractmethod
    async def cancel(self) -> None:
        """Stop playback. Safe to call when nothing is playing."""


__all__ = [
    "PlaybackOutcome",
    "RecognitionEvent",
    "SpeechCaptureAdapter",
    "SpeechOutputAdapter",
]
