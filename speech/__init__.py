"""Speech capture/output contracts and terminal adapters."""
from .console import ConsoleOutput, TypedEntryCapture
from .contracts import PlaybackOutcome, RecognitionEvent, SpeechCaptureAdapter, SpeechOutputAdapter

__all__ = [
    "ConsoleOutput",
    "PlaybackOutcome",
    "RecognitionEvent",
    "SpeechCaptureAdapter",
    "SpeechOutputAdapter",
    "TypedEntryCapture",
]
