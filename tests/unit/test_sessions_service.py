import re

import pytest
from pydantic import ValidationError

from services.scenarios import CATEGORIES, all_presets, find_preset
from services.sessions import (
    SessionLaunch,
    create_preset_session,
    create_session,
    load_session,
    new_session_id,
    opening_line,
)


def test_session_id_format():
    assert re.fullmatch(r"session_1700000000000_[a-z0-9]{9}", new_session_id(1700000000000))
    assert new_session_id() != new_session_id()


def test_create_session_persists_greeting(store):
    launch = SessionLaunch(role="Sales Rep", ai_role="Buyer", scenario="renewal pricing")
    session = create_session(store, launch)

    stored = load_session(store, session.id)
    assert stored.transcript[0].role == "assistant"
    assert stored.transcript[0].content == opening_line("Buyer", "renewal pricing")
    assert stored.transcript[0].content == "Hello! I'm your Buyer. Let's practice: renewal pricing. Ready when you are!"
    assert stored.completed is False


def test_launch_requires_all_fields():
    with pytest.raises(ValidationError):
        SessionLaunch(role="Sales Rep", ai_role="   ", scenario="renewal")


def test_presets_catalogue():
    assert [c.name for c in CATEGORIES] == ["Change Management"]
    titles = [p.title for p in all_presets()]
    assert len(titles) == 5
    assert "Legacy Plan Migration" in titles
    assert find_preset("  legacy plan migration ").ai_role_short == "Stubborn Customer"
    assert find_preset("Unknown") is None


def test_create_preset_session(store):
    session = create_preset_session(store, "Legacy Plan Migration")
    assert session.user_role == "Sales Rep"
    assert load_session(store, session.id) == session

    with pytest.raises(KeyError):
        create_preset_session(store, "Not A Preset")
