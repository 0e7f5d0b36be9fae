import pytest

import practice_cli
from config.settings import settings
from response_provider import CannedResponseProvider
from session_store import JsonFileSessionStore, open_store


def _reader(lines):
    pending = list(lines)

    async def read_line(prompt):
        return pending.pop(0) if pending else None

    return read_line


def test_scenarios_lists_presets(capsys):
    assert practice_cli.main(["scenarios"]) == 0
    out = capsys.readouterr().out
    assert "Change Management" in out
    assert "Legacy Plan Migration" in out


def test_start_requires_preset_or_full_launch():
    with pytest.raises(SystemExit):
        practice_cli.main(["start", "--role", "Sales Rep"])


def test_start_then_report(capsys, tmp_path):
    assert practice_cli.main(["start", "--preset", "Training Skeptic"]) == 0
    session_id = capsys.readouterr().out.strip().splitlines()[-1]
    assert isinstance(open_store(settings), JsonFileSessionStore)

    pdf_path = tmp_path / "out" / "report.pdf"
    assert practice_cli.main(["report", session_id, "--pdf", str(pdf_path)]) == 0
    out = capsys.readouterr().out
    assert "Fit:" in out
    assert pdf_path.read_bytes().startswith(b"%PDF")


def test_unknown_preset_and_session_exit_nonzero(capsys):
    assert practice_cli.main(["start", "--preset", "Nope"]) == 2
    assert practice_cli.main(["report", "missing"]) == 1
    assert "report_unavailable" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_talk_loop_records_turns_and_ends(store, session):
    written = []
    provider = CannedResponseProvider(replies=["Tell me more."])

    engine = await practice_cli.talk(
        session.id,
        store=store,
        provider=provider,
        read_line=_reader(["We can offer a loyalty discount.", "/time", "Two months free.", "/end"]),
        write=written.append,
    )

    stored = store.get(session.id)
    assert stored.completed is True
    assert stored.user_turns == 2
    assert engine.turn_count == 2
    assert any(line.startswith("! ") for line in written)
    assert "Procurement Lead: Tell me more." in written


@pytest.mark.asyncio
async def test_talk_quit_leaves_session_open(store, session):
    engine = await practice_cli.talk(
        session.id,
        store=store,
        provider=CannedResponseProvider(replies=["Okay."]),
        read_line=_reader(["/quit"]),
        write=lambda line: None,
    )
    assert engine.detached
    assert store.get(session.id).completed is False


@pytest.mark.parametrize("route_file", [None, "{not json"])
def test_talk_with_unusable_llm_routes_exits_cleanly(monkeypatch, capsys, tmp_path, route_file):
    config_path = tmp_path / "routes.json"
    if route_file is not None:
        config_path.write_text(route_file, encoding="utf-8")
    monkeypatch.setattr(settings, "RESPONSE_PROVIDER", "llm")
    monkeypatch.setattr(settings, "LLM_CONFIG_PATH", str(config_path))
    assert practice_cli.main(["start", "--preset", "Training Skeptic"]) == 0
    session_id = capsys.readouterr().out.strip().splitlines()[-1]

    assert practice_cli.main(["talk", session_id]) == 1
    assert "invalid configuration" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_talk_repeat_replays_last_reply(store, session):
    written = []
    await practice_cli.talk(
        session.id,
        store=store,
        provider=CannedResponseProvider(replies=["Okay."]),
        read_line=_reader(["/repeat", "/quit"]),
        write=written.append,
    )
    greeting = f"Procurement Lead: {session.transcript[0].content}"
    assert written.count(greeting) == 2
