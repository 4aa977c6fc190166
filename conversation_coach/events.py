import asyncio
import inspect
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ._types import Baseline, EnergyFactors, SentimentFactors

logger = logging.getLogger(__name__)


@dataclass
class CoachEvent:
    """Base class for everything a CoachingSession emits."""

    type: str = field(default="coach.event", init=False)
    session_id: str = ""
    timestamp: float = field(default_factory=time.time)


@dataclass
class EnergyScoreEvent(CoachEvent):
    """Emitted on every energy tick after calibration.

    ``score`` is in [0, 100]. On silent ticks every factor is 0 and the
    score has decayed by a fixed step.
    """

    type: str = field(default="coach.energy_score", init=False)

    score: float = 50.0
    level: str = "good"
    """'low', 'good' or 'high'."""

    factors: EnergyFactors = field(default_factory=EnergyFactors)
    voice_active: bool = False

    wpm: float | None = None
    """Speaking pace used for this tick. None on silent ticks."""

    pace_source: str = "none"
    """'transcript', 'audio' or 'none'."""


@dataclass
class SentimentScoreEvent(CoachEvent):
    """Emitted on every sentiment update (transcript growth or fallback timer)."""

    type: str = field(default="coach.sentiment_score", init=False)

    score: float = 0.0
    level: str = "low"
    """'low', 'building' or 'positive'."""

    factors: SentimentFactors = field(default_factory=SentimentFactors)
    objection_count: int = 0
    objections_resolved: int = 0


@dataclass
class ConversationStepEvent(CoachEvent):
    """Emitted once per observed turn with the state-machine outcome."""

    type: str = field(default="coach.conversation_step", init=False)

    turn: int = 0
    previous_state: str = "opening"
    state: str = "opening"
    terminal_result: str | None = None
    """'rejected', 'advanced' or 'closed' once the conversation ends."""

    reason: str | None = None
    directive: str = ""
    """Persona behavioral directive after this turn."""


@dataclass
class CalibrationCompleteEvent(CoachEvent):
    """Emitted once when the volume baseline freezes."""

    type: str = field(default="coach.calibration_complete", init=False)

    baseline: Baseline | None = None


@dataclass
class SessionErrorEvent(CoachEvent):
    """Emitted when a stage fails; the session decides whether it keeps running."""

    type: str = field(default="coach.session_error", init=False)

    stage: str = ""
    message: str = ""


EventHandler = Callable[[CoachEvent], Any]


class EventBus:
    """Per-session publish/subscribe hub.

    Handlers may be plain callables or coroutine functions. Coroutines
    are scheduled on the running loop. A failing handler is logged and
    never blocks delivery to the others.
    """

    def __init__(self) -> None:
        self._handlers: dict[type[CoachEvent], list[EventHandler]] = {}
        self._global_handlers: list[EventHandler] = []
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, event_type: type[CoachEvent], handler: EventHandler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug("Subscribed handler to %s", event_type.__name__)

    def subscribe_all(self, handler: EventHandler) -> None:
        self._global_handlers.append(handler)

    def unsubscribe(self, event_type: type[CoachEvent], handler: EventHandler) -> None:
        try:
            self._handlers.get(event_type, []).remove(handler)
        except ValueError:
            logger.warning("Handler not found for %s", event_type.__name__)

    def emit(self, event: CoachEvent) -> None:
        """Deliver ``event`` to type-specific subscribers, then global ones."""
        logger.debug("Emitting %s for session %s", event.type, event.session_id)
        for handler in [*self._handlers.get(type(event), []), *self._global_handlers]:
            self._dispatch(handler, event)

    def _dispatch(self, handler: EventHandler, event: CoachEvent) -> None:
        try:
            result = handler(event)
        except Exception:
            logger.exception("Event handler failed for %s", event.type)
            return

        if not inspect.isawaitable(result):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Async handler for %s dropped: no running event loop", event.type)
            if inspect.iscoroutine(result):
                result.close()
            return
        task = loop.create_task(result)
        self._pending.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Async event handler failed", exc_info=exc)

    async def drain(self) -> None:
        """Wait for all scheduled async handlers to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def clear(self) -> None:
        self._handlers.clear()
        self._global_handlers.clear()
