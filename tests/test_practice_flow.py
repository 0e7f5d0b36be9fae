import random

import pytest

from conversation_engine import ConversationEngine, EngineState
from services.sessions import SessionLaunch, create_session
from session_reports import TurnCountScorer, load_report
from session_store import JsonFileSessionStore
from tests.fakes import ScriptedCapture, ScriptedOutput, SequenceProvider, final


@pytest.mark.asyncio
async def test_negotiate_pricing_rehearsal(tmp_path, cfg):
    store = JsonFileSessionStore(tmp_path / "sessions")
    session = create_session(
        store,
        SessionLaunch(role="Account Manager", ai_role="Procurement Lead", scenario="negotiate pricing"),
    )
    capture = ScriptedCapture()
    output = ScriptedOutput()
    provider = SequenceProvider(["That is still too high.", "What about support?", "Let me check with finance."])
    utterances = ["We can hold the price for twelve months.", "Support is included.", "Can we sign this week?"]

    engine = await ConversationEngine.open(
        session.id,
        store=store,
        capture=capture,
        output=output,
        provider=provider,
        cfg=cfg,
        start_clock=False,
    )
    await engine.wait_for_playback()

    for text in utterances:
        capture.events = [final(text)]
        assert (await engine.start_capture()).accepted
        await engine.wait_for_capture()
        assert engine.state is EngineState.DRAFTED
        result = await engine.send()
        assert result.accepted
        await engine.wait_for_playback()

    assert engine.turn_count == 3
    stored = store.get(session.id)
    assert len(stored.transcript) == 7
    assert stored.completed is False
    assert [m.content for m in stored.transcript if m.role == "user"] == utterances

    await engine.end()
    report = load_report(store, session.id, scorer=TurnCountScorer(rng=random.Random(0)))
    assert report.meta.fit_label == "Good Progress"
    assert len(report.qa_analysis) == 3
