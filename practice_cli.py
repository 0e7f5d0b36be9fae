"""Command-line front end for rehearsing conversations in a terminal."""
from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence

from pydantic import ValidationError

from config.settings import Settings, settings
from conversation_engine import ConversationEngine, EngineState, Notice, format_elapsed
from errors import PracticeError
from response_provider import ResponseProvider, resolve_provider
from services.scenarios import CATEGORIES
from services.sessions import SessionLaunch, create_preset_session, create_session, load_session
from session_reports import load_report, render_report_pdf
from session_store import SessionStore, open_store
from speech import ConsoleOutput, TypedEntryCapture

LineReader = Callable[[str], Awaitable[Optional[str]]]
Writer = Callable[[str], None]

END_COMMANDS = ("/end", "/done")
QUIT_COMMANDS = ("/quit", "/exit")


async def _read_stdin(prompt: str) -> Optional[str]:
    try:
        return await asyncio.to_thread(input, prompt)
    except EOFError:
        return None


def list_scenarios(write: Writer = print) -> None:
    for category in CATEGORIES:
        write(category.name)
        for preset in category.scenarios:
            write(f"  {preset.title} - {preset.description}")
            write(f"    you: {preset.user_role} | partner: {preset.ai_role_short}")


def start_session(store: SessionStore, args: argparse.Namespace, write: Writer = print) -> str:
    if args.preset:
        session = create_preset_session(store, args.preset)
    else:
        session = create_session(store, SessionLaunch(role=args.role or "", ai_role=args.ai_role or "", scenario=args.scenario or ""))
    write(session.id)
    return session.id


async def talk(
    session_id: str,
    *,
    store: SessionStore,
    provider: ResponseProvider,
    cfg: Optional[Settings] = None,
    read_line: LineReader = _read_stdin,
    write: Writer = print,
) -> ConversationEngine:
    """Run a typed conversation until the user ends or quits it.

    ``/end`` completes the session, ``/quit`` leaves it open for later,
    ``/transcript`` reprints the conversation, ``/repeat`` replays the last
    reply and ``/time`` shows the clock.
    """

    session = load_session(store, session_id)
    cfg = (cfg or settings).model_copy(update={"OPENING_DELAY_S": 0.0})

    def show_notice(notice: Notice) -> None:
        write(f"! {notice.message}")

    engine = await ConversationEngine.open(
        session_id,
        store=store,
        capture=TypedEntryCapture(),
        output=ConsoleOutput(session.counterpart_role, write=write),
        provider=provider,
        cfg=cfg,
        on_notice=show_notice,
    )
    async with engine:
        if engine.state is EngineState.ENDED:
            write("This session is already completed.")
            return engine
        await engine.wait_for_playback()
        await engine.start_capture()
        while engine.state is not EngineState.ENDED:
            line = await read_line("You: ")
            if line is None:
                break
            command = line.strip().lower()
            if command in QUIT_COMMANDS:
                break
            if command in END_COMMANDS:
                await engine.end()
                write(f"Session ended after {engine.turn_count} turns ({format_elapsed(engine.snapshot().elapsed_seconds)}).")
                break
            if command == "/repeat":
                await engine.repeat_last()
                await engine.wait_for_playback()
                continue
            if command == "/time":
                write(format_elapsed(engine.snapshot().elapsed_seconds))
                continue
            if command == "/transcript":
                for message in engine.session.transcript:
                    speaker = "You" if message.role == "user" else engine.session.counterpart_role
                    write(f"  {speaker}: {message.content}")
                continue
            if not engine.type_draft(line).accepted:
                continue
            await engine.send()
            await engine.wait_for_playback()
    return engine


def print_report(store: SessionStore, session_id: str, pdf_path: Optional[Path], write: Writer = print) -> None:
    report = load_report(store, session_id)
    meta = report.meta
    write(f"{report.scenario}")
    write(f"Fit: {meta.fit_score:.1f}/10 ({meta.fit_label})  Potential: {meta.potential_score:.1f}/10")
    write(meta.summary)
    for card in report.functional_cards + report.behavioral_cards:
        write(f"  {card.name}: {card.score:.1f}")
    if pdf_path is not None:
        counterpart = load_session(store, session_id).counterpart_role
        pdf_path.parent.mkdir(parents=True, exist_ok=True)
        pdf_path.write_bytes(render_report_pdf(report, counterpart=counterpart))
        write(f"PDF written to {pdf_path}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="practice", description="Rehearse workplace conversations")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("scenarios", help="List the preset scenarios")

    start = commands.add_parser("start", help="Create a practice session and print its id")
    start.add_argument("--preset", help="Title of a preset scenario")
    start.add_argument("--role", help="Your role in the conversation")
    start.add_argument("--ai-role", dest="ai_role", help="The counterpart's role")
    start.add_argument("--scenario", help="What the conversation is about")

    talk_cmd = commands.add_parser("talk", help="Talk through a session by typing")
    talk_cmd.add_argument("session_id")

    report = commands.add_parser("report", help="Print a session's performance report")
    report.add_argument("session_id")
    report.add_argument("--pdf", type=Path, help="Also write the report as a PDF")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "scenarios":
        list_scenarios()
        return 0
    if args.command == "start" and not args.preset and not (args.role and args.ai_role and args.scenario):
        parser.error("start needs --preset or all of --role, --ai-role and --scenario")

    try:
        store = open_store(settings)
        if args.command == "start":
            start_session(store, args)
        elif args.command == "talk":
            asyncio.run(talk(args.session_id, store=store, provider=resolve_provider(settings)))
        elif args.command == "report":
            print_report(store, args.session_id, args.pdf)
    except PracticeError as exc:
        print(f"error ({exc.code}): {exc.message}", file=sys.stderr)
        return 1
    except KeyError as exc:
        print(f"error: {exc.args[0]}", file=sys.stderr)
        return 2
    except (OSError, ValidationError) as exc:
        print(f"error (invalid configuration): {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
