"""Helpers for creating and loading practice sessions."""
from __future__ import annotations

import secrets
import string
import time
from typing import Optional

from pydantic import BaseModel, Field

from session_store import Session, SessionStore, TranscriptMessage
from session_store.models import KEY_PREFIX

from .scenarios import ScenarioPreset, find_preset

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


class SessionLaunch(BaseModel):
    """Roles and scenario chosen when a practice session is launched."""

    role: str = Field(min_length=1)
    ai_role: str = Field(min_length=1)
    scenario: str = Field(min_length=1)

    model_config = {"str_strip_whitespace": True}

    @classmethod
    def from_preset(cls, preset: ScenarioPreset) -> "SessionLaunch":
        return cls(role=preset.user_role, ai_role=preset.ai_role, scenario=preset.scenario)


def new_session_id(now_ms: Optional[int] = None) -> str:
    """Generate ``session_<epoch-ms>_<9 random chars>``."""

    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(9))
    return f"{KEY_PREFIX}{stamp}_{suffix}"


def opening_line(ai_role: str, scenario: str) -> str:
    return f"Hello! I'm your {ai_role}. Let's practice: {scenario}. Ready when you are!"


def new_session(launch: SessionLaunch) -> Session:
    """Create a session whose transcript starts with the counterpart's greeting."""

    return Session(
        id=new_session_id(),
        user_role=launch.role,
        counterpart_role=launch.ai_role,
        scenario=launch.scenario,
        transcript=(TranscriptMessage(role="assistant", content=opening_line(launch.ai_role, launch.scenario)),),
    )


def create_session(store: SessionStore, launch: SessionLaunch) -> Session:
    session = new_session(launch)
    store.put(session.id, session)
    return session


def create_preset_session(store: SessionStore, title: str) -> Session:
    preset = find_preset(title)
    if preset is None:
        raise KeyError(f"Unknown scenario preset: {title}")
    return create_session(store, SessionLaunch.from_preset(preset))


def load_session(store: SessionStore, session_id: str) -> Session:
    """Load the stored session for ``session_id`` (raises ``SessionNotFound``)."""

    return store.get(session_id)


__all__ = [
    "SessionLaunch",
    "create_preset_session",
    "create_session",
    "load_session",
    "new_session",
    "new_session_id",
    "opening_line",
]
