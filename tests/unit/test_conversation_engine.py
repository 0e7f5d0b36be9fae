import asyncio

import pytest

from conversation_engine import ConversationEngine, EngineState, format_elapsed, opening_greeting
from errors import PermissionDenied, Unsupported
from session_store import Session
from speech import PlaybackOutcome
from tests.fakes import (
    FailingProvider,
    FlakyStore,
    ScriptedCapture,
    ScriptedOutput,
    SequenceProvider,
    final,
    interim,
)


async def _open(store, session, cfg, *, capture=None, output=None, provider=None, settle=True, **kwargs):
    engine = await ConversationEngine.open(
        session.id,
        store=store,
        capture=capture or ScriptedCapture(),
        output=output or ScriptedOutput(),
        provider=provider or SequenceProvider(),
        cfg=cfg,
        start_clock=kwargs.pop("start_clock", False),
        **kwargs,
    )
    if settle:
        await engine.wait_for_playback()
    return engine


async def _say(engine, text):
    engine.type_draft(text)
    result = await engine.send()
    await engine.wait_for_playback()
    return result


@pytest.mark.asyncio
async def test_open_speaks_existing_greeting_then_idles(store, session, cfg):
    output = ScriptedOutput()
    engine = await _open(store, session, cfg, output=output)

    assert output.spoken == [session.transcript[0].content]
    assert engine.state is EngineState.IDLE
    assert engine.turn_count == 0
    await engine.close()


@pytest.mark.asyncio
async def test_open_seeds_greeting_for_empty_transcript(store, cfg):
    blank = Session(id="blank", user_role="Manager", counterpart_role="Engineer", scenario="a tough review")
    store.put(blank.id, blank)

    engine = await _open(store, blank, cfg)

    expected = opening_greeting(blank)
    assert expected == "Hello! I'm your Engineer. We are here to practice: a tough review. Ready?"
    assert [m.content for m in store.get("blank").transcript] == [expected]
    await engine.close()


@pytest.mark.asyncio
async def test_completed_session_opens_ended(store, session, cfg):
    store.put(session.id, session.mark_completed())
    capture = ScriptedCapture()

    engine = await _open(store, session, cfg, capture=capture)
    result = await engine.start_capture()

    assert engine.state is EngineState.ENDED
    assert not result.accepted and result.notice.code == "busy"
    assert capture.starts == 0


@pytest.mark.asyncio
async def test_only_final_fragments_reach_the_draft(store, session, cfg):
    capture = ScriptedCapture([interim("we could"), final("We could  "), interim("offer"), final(" offer a discount")])
    engine = await _open(store, session, cfg, capture=capture)

    started = await engine.start_capture()
    assert started.accepted and engine.state is EngineState.LISTENING
    await engine.wait_for_capture()

    assert engine.draft == "We could offer a discount "
    assert engine.state is EngineState.DRAFTED
    assert capture.locales == ["en-US"]
    assert capture.stops >= 1


@pytest.mark.asyncio
async def test_stop_without_final_result_returns_to_idle(store, session, cfg):
    capture = ScriptedCapture([interim("um")], hold=True)
    engine = await _open(store, session, cfg, capture=capture)

    await engine.start_capture()
    await capture.drained.wait()
    result = await engine.stop_capture()

    assert result.accepted
    assert engine.draft == ""
    assert engine.state is EngineState.IDLE
    assert capture.stops >= 1


@pytest.mark.asyncio
async def test_capture_is_rejected_while_counterpart_speaks(store, session, cfg):
    output = ScriptedOutput(hold=True)
    capture = ScriptedCapture()
    engine = await _open(store, session, cfg, capture=capture, output=output, settle=False)

    assert engine.state is EngineState.SPEAKING
    result = await engine.start_capture()
    assert not result.accepted
    assert result.notice.code == "busy"
    assert capture.starts == 0
    assert not engine.type_draft("hello").accepted
    assert not (await engine.send()).accepted

    output.release.set()
    await engine.wait_for_playback()
    assert engine.state is EngineState.IDLE
    assert (await engine.start_capture()).accepted
    await engine.close()


@pytest.mark.asyncio
async def test_send_records_user_line_and_reply_together(store, session, cfg):
    output = ScriptedOutput()
    provider = SequenceProvider(["What discount did you have in mind?"])
    engine = await _open(store, session, cfg, output=output, provider=provider)

    engine.type_draft("We can hold the price for a year.")
    result = await engine.send()

    assert result.accepted
    assert engine.state is EngineState.SPEAKING
    assert result.user_message.content == "We can hold the price for a year."
    assert result.assistant_message.content == "What discount did you have in mind?"
    assert engine.draft == ""
    assert engine.turn_count == 1
    stored = store.get(session.id)
    assert [m.role for m in stored.transcript] == ["assistant", "user", "assistant"]
    assert provider.requests[0].last_user_line == "We can hold the price for a year."

    await engine.wait_for_playback()
    assert engine.state is EngineState.IDLE
    assert output.spoken[-1] == "What discount did you have in mind?"


@pytest.mark.asyncio
async def test_send_while_listening_stops_capture_first(store, session, cfg):
    capture = ScriptedCapture([final("Hi there")], hold=True)
    engine = await _open(store, session, cfg, capture=capture)

    await engine.start_capture()
    await capture.drained.wait()
    result = await engine.send()

    assert result.accepted
    assert result.user_message.content == "Hi there"
    assert capture.stops >= 1
    await engine.close()


@pytest.mark.asyncio
async def test_empty_draft_is_not_sent(store, session, cfg):
    provider = SequenceProvider()
    engine = await _open(store, session, cfg, provider=provider)

    engine.type_draft("   ")
    result = await engine.send()

    assert not result.accepted
    assert result.notice is None
    assert provider.requests == []
    assert engine.state is EngineState.IDLE
    assert len(store.get(session.id).transcript) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [None, RuntimeError("socket closed")])
async def test_provider_failure_keeps_draft_and_transcript(store, session, cfg, error):
    provider = FailingProvider(failures=1, error=error)
    engine = await _open(store, session, cfg, provider=provider)

    engine.type_draft("Can we talk numbers?")
    failed = await engine.send()

    assert not failed.accepted
    assert failed.notice.code == "provider_error"
    assert engine.state is EngineState.DRAFTED
    assert engine.draft == "Can we talk numbers?"
    assert len(engine.session.transcript) == 1
    assert len(store.get(session.id).transcript) == 1

    retried = await engine.send()
    assert retried.accepted
    assert len(store.get(session.id).transcript) == 3
    await engine.close()


@pytest.mark.asyncio
async def test_blank_reply_counts_as_provider_error(store, session, cfg):
    engine = await _open(store, session, cfg, provider=SequenceProvider(["   "]))

    engine.type_draft("Hello?")
    result = await engine.send()

    assert result.notice.code == "provider_error"
    assert engine.turn_count == 0


@pytest.mark.asyncio
async def test_second_send_while_waiting_is_busy(store, session, cfg):
    gate = asyncio.Event()
    provider = SequenceProvider(["Okay."], gate=gate)
    engine = await _open(store, session, cfg, provider=provider)

    engine.type_draft("First")
    pending = asyncio.create_task(engine.send())
    await provider.started.wait()
    assert engine.snapshot().processing

    second = await engine.send()
    assert not second.accepted and second.notice.code == "busy"

    gate.set()
    assert (await pending).accepted
    assert len(provider.requests) == 1
    await engine.close()


@pytest.mark.asyncio
async def test_concurrent_sends_from_listening_record_one_turn(store, session, cfg):
    gate = asyncio.Event()
    capture = ScriptedCapture([final("lower the price")], hold=True)
    provider = SequenceProvider(["One.", "Two."], gate=gate)
    engine = await _open(store, session, cfg, capture=capture, provider=provider)

    await engine.start_capture()
    await capture.drained.wait()
    first = asyncio.create_task(engine.send())
    second = asyncio.create_task(engine.send())
    await provider.started.wait()
    gate.set()
    results = await asyncio.gather(first, second)
    await engine.wait_for_playback()

    assert sorted(r.accepted for r in results) == [False, True]
    rejected = next(r for r in results if not r.accepted)
    assert rejected.notice.code == "busy"
    assert len(provider.requests) == 1
    stored = store.get(session.id)
    assert [m.content for m in stored.transcript if m.role == "user"] == ["lower the price"]
    assert engine.turn_count == 1
    assert engine.state is EngineState.IDLE


@pytest.mark.asyncio
async def test_restarting_capture_replaces_the_live_stream(store, session, cfg):
    capture = ScriptedCapture([final("first part")], hold=True)
    engine = await _open(store, session, cfg, capture=capture)

    await engine.start_capture()
    await capture.drained.wait()
    capture.events = []
    restarted = await engine.start_capture()
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    assert restarted.accepted
    assert capture.starts == 2
    assert capture.stops >= 1
    assert capture.active == 1
    assert engine.state is EngineState.LISTENING
    assert engine.draft == "first part "
    await engine.close()
    assert capture.active == 0


@pytest.mark.asyncio
async def test_replay_cancels_the_playing_utterance(store, session, cfg):
    output = ScriptedOutput(hold=True)
    engine = await _open(store, session, cfg, output=output, settle=False)
    await asyncio.sleep(0)
    assert output.active == 1

    replayed = await engine.repeat_last()
    await asyncio.sleep(0)

    assert replayed.accepted
    assert output.cancels >= 1
    assert output.active == 1
    assert output.spoken == [session.transcript[0].content] * 2
    assert engine.state is EngineState.SPEAKING

    output.release.set()
    await engine.wait_for_playback()
    assert output.active == 0
    assert engine.state is EngineState.IDLE


@pytest.mark.asyncio
async def test_replay_is_busy_while_listening(store, session, cfg):
    capture = ScriptedCapture(hold=True)
    engine = await _open(store, session, cfg, capture=capture)
    await engine.start_capture()

    assert (await engine.repeat_last()).notice.code == "busy"
    await engine.close()


@pytest.mark.asyncio
async def test_turn_count_and_transcript_grow_per_turn(store, session, cfg):
    engine = await _open(store, session, cfg)

    for index in range(4):
        result = await _say(engine, f"point {index}")
        assert result.accepted

    assert engine.turn_count == 4
    stored = store.get(session.id)
    assert len(stored.transcript) == 9
    assert stored.user_turns == 4
    await engine.close()


@pytest.mark.asyncio
async def test_end_marks_completed_and_rejects_further_actions(store, session, cfg):
    capture = ScriptedCapture([final("so")], hold=True)
    engine = await _open(store, session, cfg, capture=capture)
    await engine.start_capture()
    await capture.drained.wait()

    ended = await engine.end()

    assert ended.accepted
    assert engine.state is EngineState.ENDED
    assert capture.stops >= 1
    assert store.get(session.id).completed is True
    assert (await engine.start_capture()).notice.code == "busy"
    assert (await engine.send()).notice.code == "busy"
    assert not engine.type_draft("late").accepted
    assert not (await engine.end()).accepted


@pytest.mark.asyncio
async def test_end_cancels_playback(store, session, cfg):
    output = ScriptedOutput(hold=True)
    engine = await _open(store, session, cfg, output=output, settle=False)

    await engine.end()

    assert output.cancels >= 1
    assert engine.state is EngineState.ENDED


@pytest.mark.asyncio
async def test_reply_arriving_after_end_is_discarded(store, session, cfg):
    gate = asyncio.Event()
    provider = SequenceProvider(["Too late."], gate=gate)
    engine = await _open(store, session, cfg, provider=provider)

    engine.type_draft("Are you there?")
    pending = asyncio.create_task(engine.send())
    await provider.started.wait()
    await engine.end()
    gate.set()
    result = await pending

    assert result.discarded and not result.accepted
    stored = store.get(session.id)
    assert stored.completed is True
    assert len(stored.transcript) == 1


@pytest.mark.asyncio
async def test_permission_denied_leaves_engine_idle(store, session, cfg):
    capture = ScriptedCapture(fail_on_start=PermissionDenied("microphone access was denied"))
    notices = []
    engine = await _open(store, session, cfg, capture=capture, on_notice=notices.append)

    result = await engine.start_capture()

    assert not result.accepted
    assert result.notice.code == "permission_denied"
    assert notices == [result.notice]
    assert engine.state is EngineState.IDLE
    assert not engine.snapshot().manual_entry


@pytest.mark.asyncio
async def test_permission_revoked_mid_stream_keeps_final_text(store, session, cfg):
    capture = ScriptedCapture([final("Let me explain")], fail_after_events=PermissionDenied("revoked"))
    engine = await _open(store, session, cfg, capture=capture)

    await engine.start_capture()
    await engine.wait_for_capture()

    assert engine.notices[-1].code == "permission_denied"
    assert engine.state is EngineState.DRAFTED
    assert engine.draft == "Let me explain "


@pytest.mark.asyncio
async def test_unsupported_capture_switches_to_manual_entry(store, session, cfg):
    capture = ScriptedCapture(fail_on_start=Unsupported("no recognizer"))
    engine = await _open(store, session, cfg, capture=capture)

    result = await engine.start_capture()
    assert result.notice.code == "unsupported"
    assert engine.snapshot().manual_entry

    assert engine.type_draft("Typed instead").accepted
    assert engine.state is EngineState.DRAFTED
    assert (await engine.send()).accepted
    await engine.close()


@pytest.mark.asyncio
async def test_failed_persist_is_retried_on_next_change(session, cfg):
    store = FlakyStore()
    store.put(session.id, session)
    engine = await _open(store, session, cfg)

    store.fail_puts = 1
    first = await _say(engine, "first")
    assert first.accepted
    assert first.notice.code == "persistence_error"
    assert len(engine.session.transcript) == 3
    assert len(store.get(session.id).transcript) == 1

    await _say(engine, "second")
    assert len(store.get(session.id).transcript) == 5


@pytest.mark.asyncio
async def test_close_leaves_session_open(store, session, cfg):
    engine = await _open(store, session, cfg)
    await _say(engine, "one more thing")

    async with engine:
        pass

    assert engine.detached
    assert store.get(session.id).completed is False
    assert (await engine.start_capture()).notice.code == "busy"


@pytest.mark.asyncio
async def test_playback_error_degrades_to_idle(store, session, cfg):
    engine = await _open(store, session, cfg, output=ScriptedOutput(outcome=PlaybackOutcome.ERROR))
    assert engine.state is EngineState.IDLE

    await _say(engine, "hello")
    assert engine.state is EngineState.IDLE


@pytest.mark.asyncio
async def test_transitions_are_reported(store, session, cfg):
    seen = []
    engine = await _open(store, session, cfg, on_transition=lambda old, new: seen.append((old, new)))
    await _say(engine, "hi")

    assert (EngineState.IDLE, EngineState.DRAFTED) in seen
    assert (EngineState.DRAFTED, EngineState.SENDING) in seen
    assert (EngineState.AWAITING_RESPONSE, EngineState.SPEAKING) in seen
    assert any(event["span"] == "provider" for event in engine.events)


@pytest.mark.asyncio
async def test_clock_and_transcript_panel(store, session, cfg):
    engine = await _open(store, session, cfg, start_clock=True)
    await asyncio.sleep(0.05)
    assert engine.snapshot().elapsed_seconds >= 1

    engine.show_transcript()
    assert engine.snapshot().transcript_panel_visible
    engine.hide_transcript()
    assert not engine.snapshot().transcript_panel_visible
    await engine.end()


def test_format_elapsed():
    assert format_elapsed(0) == "0:00"
    assert format_elapsed(65) == "1:05"
    assert format_elapsed(600) == "10:00"
