"""Terminal speech adapters used by the command-line practice loop."""
from __future__ import annotations

from typing import AsyncIterator, Callable, Optional

from errors import Unsupported

from .contracts import PlaybackOutcome, RecognitionEvent, SpeechCaptureAdapter, SpeechOutputAdapter


class TypedEntryCapture(SpeechCaptureAdapter):  # No microphone: the user types instead
    def start(self, locale: str) -> AsyncIterator[RecognitionEvent]:
        raise Unsupported("speech recognition is not available in the terminal; type your reply instead")

    async def stop(self) -> None:
        return None


class ConsoleOutput(SpeechOutputAdapter):  # "Speaks" by printing the counterpart's line
    def __init__(self, speaker: str, write: Optional[Callable[[str], None]] = None) -> None:
        self._speaker = speaker
        self._write = write or print
        self.spoken: list[str] = []

    async def speak(self, text: str) -> PlaybackOutcome:
        self.spoken.append(text)
        try:
            self._write(f"{self._speaker}: {text}")
        except OSError:
            return PlaybackOutcome.ERROR
        return PlaybackOutcome.ENDED

    async def cancel(self) -> None:
        return None


__all__ = ["ConsoleOutput", "TypedEntryCapture"]
