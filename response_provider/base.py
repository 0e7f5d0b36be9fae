from __future__ import annotations  # Response provider contract

from typing import Protocol, Tuple, runtime_checkable

from pydantic import BaseModel, ConfigDict

from session_store import TranscriptMessage


class ResponseRequest(BaseModel):  # Everything a provider may use to pick the next line
    model_config = ConfigDict(frozen=True)

    scenario: str
    counterpart_role: str
    user_role: str = ""
    transcript: Tuple[TranscriptMessage, ...] = ()

    @property
    def last_user_line(self) -> str:
        for message in reversed(self.transcript):
            if message.role == "user":
                return message.content
        return ""


@runtime_checkable
class ResponseProvider(Protocol):
    """Produces the counterpart's next utterance.

    Implementations raise ``ProviderError`` on failure.  Any other exception
    is treated the same way by the engine.
    """

    async def respond(self, request: ResponseRequest) -> str: ...


__all__ = ["ResponseProvider", "ResponseRequest"]
