from __future__ import annotations  # Session record and transcript models

import json
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from errors import PersistenceError

Role = Literal["user", "assistant"]

KEY_PREFIX = "session_"


class TranscriptMessage(BaseModel):  # One spoken line; immutable once appended
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


class Session(BaseModel):  # Persisted practice conversation
    """A practice conversation as stored under ``session_<id>``.

    Field aliases match the stored record (``role``, ``ai_role``,
    ``createdAt``, ``sessionId``).  The model is frozen and the transcript
    is a tuple: every mutation produces a new ``Session`` through
    :meth:`with_turn`, :meth:`with_message` or :meth:`mark_completed`, so a
    transcript can only grow and ``completed`` can only go from false to
    true.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(alias="sessionId", min_length=1)
    user_role: str = Field(alias="role")
    counterpart_role: str = Field(alias="ai_role")
    scenario: str
    created_at: datetime = Field(
        alias="createdAt", default_factory=lambda: datetime.now(timezone.utc)
    )
    transcript: Tuple[TranscriptMessage, ...] = ()
    completed: bool = False

    @property
    def user_turns(self) -> int:
        return sum(1 for message in self.transcript if message.role == "user")

    @property
    def latest(self) -> TranscriptMessage | None:
        return self.transcript[-1] if self.transcript else None

    def with_message(self, message: TranscriptMessage) -> "Session":
        return self.model_copy(update={"transcript": self.transcript + (message,)})

    def with_turn(self, user: TranscriptMessage, assistant: TranscriptMessage) -> "Session":
        """Append a user line and its reply together."""
        if user.role != "user" or assistant.role != "assistant":
            raise ValueError("a turn is a user line followed by an assistant line")
        return self.model_copy(update={"transcript": self.transcript + (user, assistant)})

    def mark_completed(self) -> "Session":
        if self.completed:
            return self
        return self.model_copy(update={"completed": True})


def session_key(session_id: str) -> str:  # Storage key derived from the identifier
    return f"{KEY_PREFIX}{session_id}"


def to_record(session: Session) -> Dict[str, Any]:
    return session.model_dump(mode="json", by_alias=True)


def serialize(session: Session) -> str:
    return json.dumps(to_record(session), ensure_ascii=False)


def deserialize(payload: str | bytes) -> Session:
    """Parse a stored record, raising ``PersistenceError`` on corrupt data."""
    try:
        return Session.model_validate_json(payload)
    except ValidationError as exc:
        raise PersistenceError(f"stored session record is invalid: {exc.error_count()} error(s)") from exc


__all__ = [
    "KEY_PREFIX",
    "Role",
    "Session",
    "TranscriptMessage",
    "deserialize",
    "serialize",
    "session_key",
    "to_record",
]
