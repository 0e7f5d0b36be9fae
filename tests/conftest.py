import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config.registry import PROVIDER_KEY, SCORER_KEY, unbind_model
from config.settings import Settings, settings
from services.sessions import SessionLaunch, create_session
from session_store import InMemorySessionStore


@pytest.fixture(autouse=True)
def tmp_storage(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "STORE_DIR", str(tmp_path / "sessions"), raising=False)
    monkeypatch.setattr(settings, "DB_PATH", str(tmp_path / "sessions.db"), raising=False)
    monkeypatch.setattr(settings, "OPENING_DELAY_S", 0.0, raising=False)
    monkeypatch.setattr(settings, "PROVIDER_DELAY_MIN_S", 0.0, raising=False)
    monkeypatch.setattr(settings, "PROVIDER_DELAY_MAX_S", 0.0, raising=False)
    yield tmp_path


@pytest.fixture(autouse=True)
def clean_registry():
    yield
    unbind_model(PROVIDER_KEY)
    unbind_model(SCORER_KEY)


@pytest.fixture
def cfg() -> Settings:
    return Settings(_env_file=None, OPENING_DELAY_S=0.0, TICK_SECONDS=0.01, STORE_BACKEND="memory")


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def session(store):
    launch = SessionLaunch(
        role="Account Manager",
        ai_role="Procurement Lead",
        scenario="negotiate pricing for a renewal",
    )
    return create_session(store, launch)
