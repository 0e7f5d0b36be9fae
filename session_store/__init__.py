from __future__ import annotations  # Session store package exports

from .models import KEY_PREFIX, Session, TranscriptMessage, deserialize, serialize, session_key, to_record
from .store import InMemorySessionStore, JsonFileSessionStore, SessionStore, SqliteSessionStore, open_store

__all__ = [
    "KEY_PREFIX",
    "InMemorySessionStore",
    "JsonFileSessionStore",
    "Session",
    "SessionStore",
    "SqliteSessionStore",
    "TranscriptMessage",
    "deserialize",
    "open_store",
    "serialize",
    "session_key",
    "to_record",
]
