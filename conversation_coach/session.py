"""CoachingSession: real-time orchestration of the coaching engines.

Architecture overview:
  1. ``start()`` acquires the audio source (if any) inside an
     AsyncExitStack so it is released on every exit path, then launches
     two background loops.
  2. The energy loop reads the latest audio frame every
     ``energy_interval_s`` and runs one EnergyScoreEngine tick. Ticks are
     strictly sequential: the next sleep only starts once a tick is done.
  3. Transcript growth (``append_transcript``) triggers an immediate
     sentiment update. A fallback loop runs the same update every
     ``sentiment_interval_s``. Both paths share one asyncio.Lock.
  4. ``observe_turn`` is called once per conversational turn. It advances
     the state machine, updates the persona simulator and applies the
     termination guard synchronously.
  5. ``stop()`` cancels both loops, releases audio, and resets every
     engine so the next session starts clean.

Audio acquisition failures do not abort the session: a SessionErrorEvent
is emitted, energy scoring stays disabled (``energy_active`` is False),
and transcript-driven scoring keeps running.
"""

import asyncio
import contextlib
import logging
import time
import uuid
from collections.abc import Callable

from ._audio_source import AudioAcquisitionError, AudioSource
from ._config import EnergyConfig, SentimentConfig
from ._energy import EnergyScoreEngine
from ._persona import PersonaSimulator
from ._sentiment import SentimentScoreEngine
from ._state_machine import ConversationStateMachine, analyze_conversation_quality
from ._telemetry import LatencyTracker
from ._types import (
    ConversationState,
    EnergyResult,
    Persona,
    QualityReport,
    SentimentResult,
    Speaker,
    StepResult,
    TerminalResult,
    TranscriptEntry,
)
from .events import (
    CalibrationCompleteEvent,
    CoachEvent,
    ConversationStepEvent,
    EnergyScoreEvent,
    EventBus,
    SentimentScoreEvent,
    SessionErrorEvent,
)

logger = logging.getLogger(__name__)

_DEFAULT_ENERGY_INTERVAL_S = 0.5
_DEFAULT_SENTIMENT_INTERVAL_S = 2.0


class CoachingSession:
    """One live coaching session: energy, sentiment, phase and persona state.

    Every session owns its own engines, transcript, event bus and latency
    tracker. Nothing is shared between sessions.

    Args:
        persona: Counterpart definition; sets the starting sentiment and
            drives the persona simulator.
        audio_source: Optional source of audio frames. Without one, energy
            scoring is disabled.
        session_id: Identifier stamped on every emitted event.
        energy_interval_s: Energy tick period.
        sentiment_interval_s: Fallback sentiment recompute period.
        energy_config: Overrides for the energy engine.
        sentiment_config: Overrides for the sentiment engine.
        clock: Monotonic time source shared by all engines.

    Raises:
        ValueError: If an interval is not positive.
    """

    def __init__(
        self,
        persona: Persona,
        audio_source: AudioSource | None = None,
        session_id: str | None = None,
        energy_interval_s: float = _DEFAULT_ENERGY_INTERVAL_S,
        sentiment_interval_s: float = _DEFAULT_SENTIMENT_INTERVAL_S,
        energy_config: EnergyConfig | None = None,
        sentiment_config: SentimentConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if energy_interval_s <= 0 or sentiment_interval_s <= 0:
            raise ValueError("intervals must be positive")

        self.session_id = session_id or uuid.uuid4().hex[:12]
        self._persona = persona
        self._audio_source = audio_source
        self._energy_interval_s = energy_interval_s
        self._sentiment_interval_s = sentiment_interval_s
        self._clock = clock

        self._energy = EnergyScoreEngine(config=energy_config, clock=clock)
        self._sentiment = SentimentScoreEngine(
            starting_sentiment=persona.starting_sentiment,
            config=sentiment_config,
            clock=clock,
        )
        self._fsm = ConversationStateMachine()
        self._persona_sim = PersonaSimulator(persona)
        self._latency = LatencyTracker()
        self._events = EventBus()

        self._transcript: list[TranscriptEntry] = []
        self._session_start = clock()
        self._sentiment_lock = asyncio.Lock()
        self._audio_stack: contextlib.AsyncExitStack | None = None
        self._energy_task: asyncio.Task | None = None
        self._sentiment_task: asyncio.Task | None = None
        self._running = False
        self._energy_active = False
        self._calibration_announced = False
        self._last_energy: EnergyResult | None = None
        self._last_sentiment: SentimentResult | None = None

    # ── Properties ────────────────────────────────────────────────────────

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def energy_active(self) -> bool:
        """False when there is no audio source or it could not be acquired."""
        return self._energy_active

    @property
    def transcript(self) -> tuple[TranscriptEntry, ...]:
        return tuple(self._transcript)

    @property
    def state(self) -> ConversationState:
        return self._fsm.state

    @property
    def terminal_result(self) -> TerminalResult | None:
        return self._fsm.terminal_result

    @property
    def persona(self) -> PersonaSimulator:
        return self._persona_sim

    @property
    def last_energy(self) -> EnergyResult | None:
        return self._last_energy

    @property
    def last_sentiment(self) -> SentimentResult | None:
        return self._last_sentiment

    def elapsed(self) -> float:
        return self._clock() - self._session_start

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Acquire audio and start the background loops."""
        if self._running:
            return
        self._session_start = self._clock()
        self._energy.start(self._session_start)
        self._sentiment.start(self._session_start)
        self._running = True

        if self._audio_source is not None:
            await self._acquire_audio(self._audio_source)
        else:
            logger.info("Session %s has no audio source; energy scoring disabled", self.session_id)

        if self._energy_active:
            self._energy_task = asyncio.create_task(self._energy_loop(), name=f"energy_loop[{self.session_id}]")
        self._sentiment_task = asyncio.create_task(
            self._sentiment_loop(), name=f"sentiment_loop[{self.session_id}]"
        )
        logger.info(
            "CoachingSession %s started (persona=%s energy=%.2fs sentiment=%.1fs)",
            self.session_id,
            self._persona.name,
            self._energy_interval_s,
            self._sentiment_interval_s,
        )

    async def _acquire_audio(self, source: AudioSource) -> None:
        stack = contextlib.AsyncExitStack()
        try:
            await stack.enter_async_context(source)
        except AudioAcquisitionError as exc:
            await stack.aclose()
            self._energy_active = False
            logger.error("Audio acquisition failed for session %s: %s", self.session_id, exc)
            self._emit(SessionErrorEvent(session_id=self.session_id, stage="audio_acquisition", message=str(exc)))
            return
        self._audio_stack = stack
        self._energy_active = True

    async def stop(self) -> None:
        """Cancel loops, release audio, and reset engines to defaults."""
        was_running = self._running
        self._running = False
        try:
            for task in (self._energy_task, self._sentiment_task):
                if task is not None and not task.done():
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task
        finally:
            self._energy_task = None
            self._sentiment_task = None
            if self._audio_stack is not None:
                stack, self._audio_stack = self._audio_stack, None
                await stack.aclose()
            self._energy_active = False
            self._reset_engines()

        if was_running:
            logger.info(
                "CoachingSession %s stopped; latency stats: %s",
                self.session_id,
                self._latency.get_stats(),
            )

    async def close(self) -> None:
        await self.stop()

    def _reset_engines(self) -> None:
        self._energy.reset()
        self._sentiment.reset()
        self._fsm.reset()
        self._persona_sim.reset()
        self._calibration_announced = False

    async def __aenter__(self) -> "CoachingSession":
        await self.start()
        return self

    async def __aexit__(self, *_) -> None:
        await self.stop()

    # ── Energy path ───────────────────────────────────────────────────────

    async def _energy_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._energy_interval_s)
            try:
                self.run_energy_tick()
            except asyncio.CancelledError:
                raise
            except (ValueError, RuntimeError, OSError) as exc:
                logger.exception("Energy tick failed")
                self._emit(SessionErrorEvent(session_id=self.session_id, stage="energy_tick", message=str(exc)))

    def run_energy_tick(self) -> EnergyResult | None:
        """Read the latest frame and run one energy tick.

        Returns:
            The emitted result, or None when energy is disabled, no audio
            has arrived yet, or the baseline is still calibrating.
        """
        if not self._energy_active or self._audio_source is None:
            return None

        with self._latency.measure("end_to_end"):
            with self._latency.measure("audio_read"):
                frame = self._audio_source.read_frame()
            if frame is None:
                logger.debug("No audio frame available yet")
                return None

            with self._latency.measure("energy_tick"):
                result = self._energy.tick(frame, self._transcript)

        if result is None:
            return None

        if not self._calibration_announced:
            self._calibration_announced = True
            self._emit(CalibrationCompleteEvent(session_id=self.session_id, baseline=self._energy.baseline))

        self._last_energy = result
        self._emit(
            EnergyScoreEvent(
                session_id=self.session_id,
                score=result.score,
                level=result.level,
                factors=result.factors,
                voice_active=result.voice_active,
                wpm=result.wpm,
                pace_source=result.pace_source,
            )
        )
        return result

    # ── Sentiment path ────────────────────────────────────────────────────

    async def append_transcript(self, entry: TranscriptEntry) -> SentimentResult:
        """Append one utterance and recompute sentiment immediately."""
        self._transcript.append(entry)
        return await self.on_transcript_appended()

    async def append_utterance(self, speaker: Speaker, text: str) -> SentimentResult:
        """Convenience wrapper stamping the utterance with the session clock."""
        return await self.append_transcript(TranscriptEntry(speaker=speaker, text=text, timestamp=self._clock()))

    async def on_transcript_appended(self) -> SentimentResult:
        async with self._sentiment_lock:
            return self._run_sentiment_update()

    async def _sentiment_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._sentiment_interval_s)
            try:
                async with self._sentiment_lock:
                    self._run_sentiment_update()
            except asyncio.CancelledError:
                raise
            except (ValueError, RuntimeError, OSError) as exc:
                logger.exception("Sentiment update failed")
                self._emit(
                    SessionErrorEvent(session_id=self.session_id, stage="sentiment_update", message=str(exc))
                )

    def _run_sentiment_update(self) -> SentimentResult:
        with self._latency.measure("sentiment_update"):
            result = self._sentiment.update(self._transcript)
        self._last_sentiment = result
        self._emit(
            SentimentScoreEvent(
                session_id=self.session_id,
                score=result.score,
                level=result.level,
                factors=result.factors,
                objection_count=result.objection_count,
                objections_resolved=result.objections_resolved,
            )
        )
        return result

    # ── Turn path ─────────────────────────────────────────────────────────

    def observe_turn(self, rep_text: str, counterpart_text: str) -> StepResult:
        """Advance phase and persona state for one rep/counterpart exchange.

        The rep turn is applied to the persona before the counterpart's
        reply is recorded, so the ignored-question rule compares the rep
        against the counterpart's previous line.
        """
        previous = self._fsm.state
        with self._latency.measure("state_step"):
            result, decision = self._fsm.advance(rep_text, counterpart_text)
            if previous is not ConversationState.TERMINAL:
                self._persona_sim.observe_rep_turn(rep_text)
                self._persona_sim.observe_counterpart_turn(counterpart_text)

        self._emit(
            ConversationStepEvent(
                session_id=self.session_id,
                turn=self._fsm.turn_count,
                previous_state=previous.value,
                state=result.state.value,
                terminal_result=result.terminal_result.value if result.terminal_result else None,
                reason=decision.reason if decision.terminal else None,
                directive=self._persona_sim.behavioral_directive(),
            )
        )
        return result

    def behavioral_directive(self) -> str:
        return self._persona_sim.behavioral_directive()

    def check_success(self) -> bool:
        history = [e.text for e in self._transcript] or None
        return self._persona_sim.check_success_criteria(history)

    def quality_report(self) -> QualityReport:
        return analyze_conversation_quality(self._transcript)

    def get_latency_stats(self) -> dict[str, dict[str, float]]:
        return self._latency.get_stats()

    # ── Emission ──────────────────────────────────────────────────────────

    def _emit(self, event: CoachEvent) -> None:
        if not self._running:
            logger.debug("Dropping %s: session %s is stopped", event.type, self.session_id)
            return
        self._events.emit(event)
