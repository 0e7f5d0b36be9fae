"""Turn-taking engine for one live practice conversation.

The engine owns a single state machine::

    Idle -> Listening -> Drafted -> Sending -> AwaitingResponse -> Speaking -> Idle
                                  (any state) -> Ended

Every external event (recognition results, provider completion, playback
completion, user actions) is applied on the event loop one at a time, and
every change to the transcript or to ``completed`` is written back to the
session store before the engine reports it.  Capture and playback never own
the audio device at the same time.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Type, TypeVar

from config.settings import Settings, settings as default_settings
from errors import Busy, PermissionDenied, PersistenceError, PracticeError, ProviderError, Unsupported
from observability import log_event, span
from response_provider import ResponseProvider, ResponseRequest
from session_store import Session, SessionStore, TranscriptMessage
from speech import PlaybackOutcome, RecognitionEvent, SpeechCaptureAdapter, SpeechOutputAdapter

from .states import ConversationRuntimeState, EngineState, Notice, TransitionResult, TurnResult

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=TransitionResult)

_IN_FLIGHT = (EngineState.SENDING, EngineState.AWAITING_RESPONSE)


def opening_greeting(session: Session) -> str:
    return (
        f"Hello! I'm your {session.counterpart_role}. "
        f"We are here to practice: {session.scenario}. Ready?"
    )


class ConversationEngine:
    def __init__(
        self,
        session: Session,
        *,
        store: SessionStore,
        capture: SpeechCaptureAdapter,
        output: SpeechOutputAdapter,
        provider: ResponseProvider,
        cfg: Optional[Settings] = None,
        on_notice: Optional[Callable[[Notice], None]] = None,
        on_transition: Optional[Callable[[EngineState, EngineState], None]] = None,
    ) -> None:
        self._session = session
        self._store = store
        self._capture = capture
        self._output = output
        self._provider = provider
        self._cfg = cfg or default_settings
        self._on_notice = on_notice
        self._on_transition = on_transition
        self._runtime = ConversationRuntimeState(
            phase=EngineState.ENDED if session.completed else EngineState.IDLE,
            transcript=session.transcript,
            turn_count=session.user_turns,
        )
        self.notices: List[Notice] = []
        self.events: List[Dict[str, Any]] = []
        self._turn_lock = asyncio.Lock()
        self._capture_task: Optional[asyncio.Task[None]] = None
        self._playback_task: Optional[asyncio.Task[None]] = None
        self._opening_task: Optional[asyncio.Task[None]] = None
        self._clock_task: Optional[asyncio.Task[None]] = None
        self._audio_owner: Optional[str] = None
        self._detached = False
        self._dirty = False

    @classmethod
    async def open(
        cls,
        session_id: str,
        *,
        store: SessionStore,
        capture: SpeechCaptureAdapter,
        output: SpeechOutputAdapter,
        provider: ResponseProvider,
        cfg: Optional[Settings] = None,
        start_clock: bool = True,
        on_notice: Optional[Callable[[Notice], None]] = None,
        on_transition: Optional[Callable[[EngineState, EngineState], None]] = None,
    ) -> "ConversationEngine":
        """Load ``session_id`` and get the conversation ready to talk.

        Raises ``SessionNotFound`` or ``PersistenceError`` when the session
        cannot be read; nothing has been started at that point.
        """

        session = store.get(session_id)
        engine = cls(
            session,
            store=store,
            capture=capture,
            output=output,
            provider=provider,
            cfg=cfg,
            on_notice=on_notice,
            on_transition=on_transition,
        )
        await engine._prime(start_clock=start_clock)
        return engine

    async def _prime(self, *, start_clock: bool) -> None:
        if self._session.completed:
            return
        if not self._session.transcript:
            greeting = TranscriptMessage(role="assistant", content=opening_greeting(self._session))
            self._apply(self._session.with_message(greeting))
            self._persist()
        if start_clock:
            self.start_clock()
        latest = self._session.latest
        if latest is not None and latest.role == "assistant":
            delay = self._cfg.OPENING_DELAY_S
            if delay > 0:
                self._opening_task = asyncio.create_task(self._speak_opening(latest.content, delay))
            else:
                await self._begin_speaking(latest.content)

    async def _speak_opening(self, text: str, delay: float) -> None:
        await asyncio.sleep(delay)
        if self._runtime.phase is EngineState.IDLE and not self._detached:
            await self._begin_speaking(text)

    # -- read access -------------------------------------------------------

    @property
    def session(self) -> Session:
        return self._session

    @property
    def state(self) -> EngineState:
        return self._runtime.phase

    @property
    def draft(self) -> str:
        return self._runtime.current_draft

    @property
    def turn_count(self) -> int:
        return self._runtime.turn_count

    @property
    def detached(self) -> bool:
        return self._detached

    def snapshot(self) -> ConversationRuntimeState:
        return self._runtime.model_copy()

    # -- capture -----------------------------------------------------------

    async def start_capture(self) -> TransitionResult:
        """Begin listening. Rejected with ``Busy`` while the counterpart talks."""

        phase = self._runtime.phase
        if self._detached or phase is EngineState.ENDED:
            return self._busy("the conversation is over")
        if phase is EngineState.SPEAKING:
            return self._busy("cannot record while the counterpart is speaking")
        if phase in _IN_FLIGHT:
            return self._busy("waiting for the counterpart's reply")

        await self._teardown_capture()
        try:
            stream = self._capture.start(self._cfg.CAPTURE_LOCALE)
        except Unsupported as exc:
            self._runtime.manual_entry = True
            await self._capture.stop()
            return self._rejected(exc)
        except PermissionDenied as exc:
            await self._capture.stop()
            return self._rejected(exc)

        self._transition(EngineState.LISTENING)
        self._capture_task = asyncio.create_task(self._consume(stream))
        return TransitionResult(accepted=True, state=self.state)

    async def stop_capture(self) -> TransitionResult:
        if self._runtime.phase is not EngineState.LISTENING:
            return TransitionResult(accepted=False, state=self.state)
        await self._teardown_capture()
        return TransitionResult(accepted=True, state=self.state)

    @asynccontextmanager
    async def _capture_scope(self, stream: AsyncIterator[RecognitionEvent]) -> AsyncIterator[AsyncIterator[RecognitionEvent]]:
        self._audio_owner = "capture"
        try:
            yield stream
        finally:
            try:
                closer = getattr(stream, "aclose", None)
                if closer is not None:
                    await closer()
            finally:
                await self._capture.stop()
                if self._audio_owner == "capture":
                    self._audio_owner = None

    async def _consume(self, stream: AsyncIterator[RecognitionEvent]) -> None:
        try:
            async with self._capture_scope(stream) as events:
                async for event in events:
                    if event.is_final:
                        self._append_fragment(event.text)
        except Unsupported as exc:
            self._runtime.manual_entry = True
            self._notify(Notice.from_error(exc))
        except PermissionDenied as exc:
            self._notify(Notice.from_error(exc))
        finally:
            self._settle_after_capture()

    def _append_fragment(self, text: str) -> None:
        fragment = text.strip()
        if fragment:
            self._runtime.current_draft += fragment + " "

    def _settle_after_capture(self) -> None:
        if self._runtime.phase is EngineState.LISTENING:
            has_draft = bool(self._runtime.current_draft.strip())
            self._transition(EngineState.DRAFTED if has_draft else EngineState.IDLE)

    async def _teardown_capture(self) -> None:
        task, self._capture_task = self._capture_task, None
        if task is None:
            return
        if not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        # A task cancelled before its first step never reaches its cleanup.
        await self._capture.stop()
        if self._audio_owner == "capture":
            self._audio_owner = None
        self._settle_after_capture()

    async def wait_for_capture(self) -> None:
        task = self._capture_task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    def type_draft(self, text: str) -> TransitionResult:
        """Replace the draft with typed text (manual entry path)."""

        phase = self._runtime.phase
        if self._detached or phase is EngineState.ENDED:
            return self._busy("the conversation is over")
        if phase in (EngineState.LISTENING, EngineState.SPEAKING) or phase in _IN_FLIGHT:
            return self._busy(f"cannot edit the draft while {phase.value}")
        self._runtime.current_draft = text
        self._transition(EngineState.DRAFTED if text.strip() else EngineState.IDLE)
        return TransitionResult(accepted=True, state=self.state)

    # -- turns -------------------------------------------------------------

    async def send(self) -> TurnResult:
        """Send the draft and record the reply as one turn.

        The user line and the counterpart's reply are appended together or
        not at all.  On provider failure the draft is kept and the engine
        returns to ``Drafted`` so the user can resend.
        """

        phase = self._runtime.phase
        if self._detached or phase is EngineState.ENDED:
            return self._busy("the conversation is over", TurnResult)
        if phase in _IN_FLIGHT or self._turn_lock.locked():
            return self._busy("a reply is already on its way", TurnResult)
        if phase is EngineState.SPEAKING:
            return self._busy("wait for the counterpart to finish speaking", TurnResult)
        # Claim the turn before the first await so a concurrent send sees it in flight.
        self._transition(EngineState.SENDING)
        if phase is EngineState.LISTENING:
            await self._teardown_capture()
            if self._abandoned():
                return TurnResult(accepted=False, state=self.state)

        message = self._runtime.current_draft.strip()
        if not message:
            self._transition(EngineState.IDLE)
            return TurnResult(accepted=False, state=self.state)

        async with self._turn_lock:
            user_line = TranscriptMessage(role="user", content=message)
            request = ResponseRequest(
                scenario=self._session.scenario,
                counterpart_role=self._session.counterpart_role,
                user_role=self._session.user_role,
                transcript=self._session.transcript + (user_line,),
            )
            try:
                with span(self.events, "provider"):
                    reply = await self._request_reply(request)
            except ProviderError as exc:
                if self._abandoned():
                    return self._discarded(user_line)
                self._transition(EngineState.DRAFTED)
                log_event("turn", self._session.id, outcome="provider_error", turn=self.turn_count + 1)
                return self._rejected(exc, TurnResult)

            if self._abandoned():
                return self._discarded(user_line)

            self._transition(EngineState.AWAITING_RESPONSE)
            assistant_line = TranscriptMessage(role="assistant", content=reply)
            self._apply(self._session.with_turn(user_line, assistant_line))
            self._runtime.current_draft = ""
            self._runtime.turn_count += 1
            persist_notice = self._persist()
            log_event("turn", self._session.id, outcome="recorded", turn=self.turn_count)

        await self._begin_speaking(reply)
        return TurnResult(
            accepted=True,
            state=self.state,
            notice=persist_notice,
            user_message=user_line,
            assistant_message=assistant_line,
        )

    async def _request_reply(self, request: ResponseRequest) -> str:
        try:
            reply = await self._provider.respond(request)
        except ProviderError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error("Response provider failed: %s", exc)
            raise ProviderError("the counterpart could not reply, please try again") from exc
        if not isinstance(reply, str) or not reply.strip():
            raise ProviderError("the counterpart returned an empty reply")
        return reply.strip()

    def _abandoned(self) -> bool:
        return self._detached or self._runtime.phase is EngineState.ENDED

    def _discarded(self, user_line: TranscriptMessage) -> TurnResult:
        log_event("turn", self._session.id, outcome="discarded", turn=self.turn_count + 1)
        return TurnResult(accepted=False, state=self.state, discarded=True, user_message=user_line)

    # -- playback ----------------------------------------------------------

    async def _begin_speaking(self, text: str) -> None:
        await self._teardown_capture()
        await self._teardown_playback()
        self._transition(EngineState.SPEAKING)
        self._audio_owner = "output"
        self._playback_task = asyncio.create_task(self._play(text))

    async def _play(self, text: str) -> None:
        try:
            outcome = await self._output.speak(text)
            if outcome is PlaybackOutcome.ERROR:
                logger.warning("Playback reported an error for session %s", self._session.id)
        except PracticeError as exc:
            logger.warning("Playback failed for session %s: %s", self._session.id, exc)
        except Exception:  # noqa: BLE001
            logger.exception("Playback crashed for session %s", self._session.id)
        finally:
            if self._audio_owner == "output":
                self._audio_owner = None
            if self._runtime.phase is EngineState.SPEAKING:
                has_draft = bool(self._runtime.current_draft.strip())
                self._transition(EngineState.DRAFTED if has_draft else EngineState.IDLE)

    async def _teardown_playback(self) -> None:
        task, self._playback_task = self._playback_task, None
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        await self._output.cancel()

    async def repeat_last(self) -> TransitionResult:
        """Speak the counterpart's latest line again, replacing any playback in progress."""

        phase = self._runtime.phase
        if self._detached or phase is EngineState.ENDED:
            return self._busy("the conversation is over")
        if phase is EngineState.LISTENING or phase in _IN_FLIGHT:
            return self._busy(f"cannot replay while {phase.value}")
        latest = next((m for m in reversed(self._session.transcript) if m.role == "assistant"), None)
        if latest is None:
            return TransitionResult(accepted=False, state=self.state)
        await self._begin_speaking(latest.content)
        return TransitionResult(accepted=True, state=self.state)

    async def wait_for_playback(self) -> None:
        task = self._playback_task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    # -- clock and panel ---------------------------------------------------

    def start_clock(self) -> None:
        if self._clock_task is None and self._runtime.phase is not EngineState.ENDED:
            self._clock_task = asyncio.create_task(self._run_clock())

    async def _run_clock(self) -> None:
        while True:
            await asyncio.sleep(self._cfg.TICK_SECONDS)
            self.tick()

    def tick(self, seconds: int = 1) -> None:
        self._runtime.elapsed_seconds += seconds

    def show_transcript(self) -> None:
        self._runtime.transcript_panel_visible = True

    def hide_transcript(self) -> None:
        self._runtime.transcript_panel_visible = False

    # -- ending ------------------------------------------------------------

    async def end(self) -> TransitionResult:
        """Finish the session: stop all audio, mark it completed, persist."""

        if self._runtime.phase is EngineState.ENDED:
            return TransitionResult(accepted=False, state=EngineState.ENDED)
        if self._detached:
            return self._busy("the conversation was closed")
        self._transition(EngineState.ENDED)
        await self._release_all()
        self._apply(self._session.mark_completed())
        notice = self._persist()
        log_event("session_end", self._session.id, turn=self.turn_count, outcome="completed")
        return TransitionResult(accepted=True, state=EngineState.ENDED, notice=notice)

    async def close(self) -> None:
        """Leave the conversation without completing it."""

        if self._detached:
            return
        self._detached = True
        await self._release_all()
        if self._runtime.phase is not EngineState.ENDED:
            self._transition(EngineState.IDLE)
        if self._dirty:
            self._persist()

    async def __aenter__(self) -> "ConversationEngine":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _release_all(self) -> None:
        for name in ("_opening_task", "_clock_task"):
            task = getattr(self, name)
            setattr(self, name, None)
            if task is not None and not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
        await self._teardown_capture()
        await self._teardown_playback()
        await self._output.cancel()
        self._audio_owner = None

    # -- internals ---------------------------------------------------------

    def _apply(self, session: Session) -> None:
        self._session = session
        self._runtime.transcript = session.transcript

    def _persist(self) -> Optional[Notice]:
        try:
            with span(self.events, "persist"):
                self._store.put(self._session.id, self._session)
        except PersistenceError as exc:
            self._dirty = True
            logger.warning("Persist failed for session %s; will retry on next change: %s", self._session.id, exc)
            return self._notify(Notice.from_error(exc))
        self._dirty = False
        return None

    def _transition(self, new: EngineState) -> None:
        old = self._runtime.phase
        if old is new:
            return
        self._runtime.phase = new
        log_event("transition", self._session.id, from_state=old.value, to_state=new.value)
        if self._on_transition is not None:
            self._on_transition(old, new)

    def _notify(self, notice: Notice) -> Notice:
        self.notices.append(notice)
        log_event("notice", self._session.id, code=notice.code)
        if self._on_notice is not None:
            self._on_notice(notice)
        return notice

    def _rejected(self, error: PracticeError, result_type: Type[R] = TransitionResult) -> R:  # type: ignore[assignment]
        notice = self._notify(Notice.from_error(error))
        return result_type(accepted=False, state=self.state, notice=notice)

    def _busy(self, reason: str, result_type: Type[R] = TransitionResult) -> R:  # type: ignore[assignment]
        return self._rejected(Busy(reason), result_type)


__all__ = ["ConversationEngine", "opening_greeting"]
