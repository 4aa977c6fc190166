"""Deterministic conversation-phase state machine.

``step`` is a pure function of (state, rep text, counterpart text):

  1. Hard terminal checks on the counterpart text from any state, in order:
     rejection -> REJECTED, advancement -> ADVANCED, close -> CLOSED.
  2. Otherwise keyword categories (rep CTA, counterpart objection,
     counterpart question, counterpart value interest) drive a fixed
     per-state precedence table. Every state has an explicit default.

``should_terminate`` is an independent guard on turn count and
conversation-ending phrases. ``analyze_conversation_quality`` is a
post-hoc rubric over the whole transcript; it never drives transitions.
"""

import logging
import re
from collections.abc import Sequence

from ._types import (
    ConversationState,
    QualityReport,
    Speaker,
    StepResult,
    TerminalResult,
    TerminationDecision,
    TranscriptEntry,
)

logger = logging.getLogger(__name__)

_MAX_TURNS = 20

REJECTION_PHRASES = (
    "not interested",
    "go away",
    "no soliciting",
    "leave me alone",
    "don't need pest control",
    "we're fine",
    "get off my property",
    "don't come back",
    "absolutely not",
    "we handle it ourselves",
)

ADVANCEMENT_PHRASES = (
    "schedule the inspection",
    "book the service",
    "when can you come",
    "let's set up the appointment",
    "sounds good, when",
    "yes, let's do it",
    "sign me up",
    "we'll try it",
    "let's get started",
    "come back tomorrow",
    "what time works",
)

CLOSE_PHRASES = (
    "we'll sign",
    "where do i sign",
    "let's get started",
    "we want to move forward",
    "you have a deal",
    "we're ready to buy",
)

CTA_PHRASES = (
    "book", "schedule", "calendar", "demo", "call", "meeting",
    "15 min", "20 min", "tomorrow at", "next week", "available",
    "when would", "what time", "send you a link",
)

OBJECTION_PHRASES = (
    "too expensive", "don't have bugs", "use diy sprays", "no time",
    "not a priority", "maybe later", "need to think about it", "talk to spouse",
    "not in the budget", "happy with current", "what chemicals",
    "safe for pets", "safe for kids", "had bad experience", "send me information",
)

QUESTION_PHRASES = (
    "how does", "what is", "can you explain", "tell me more",
    "how much", "what about", "how long", "what chemicals",
    "how often", "what's included", "safe for", "what pests",
    "how do you", "what if", "do you guarantee",
)

VALUE_PHRASES = (
    "peace of mind", "prevention", "protect family", "health benefits",
    "safe treatment", "effective", "results", "benefits", "guarantee",
    "prevent damage", "save money", "professional grade",
)

SCHEDULING_CUES = ("when", "time", "available")
CONFIRMATION_CUES = ("calendar", "confirm")

DONE_PHRASES = (
    "i have to go",
    "this isn't working",
    "i'm not interested",
    "please stop",
    "goodbye",
    "have a nice day",
)

REP_WRAP_UP_PHRASES = (
    "thanks for your time",
    "have a great day",
    "i'll follow up",
    "talk soon",
)

_DISCOVERY_QUESTION = re.compile(r"(what|how|when|where|why|tell me|can you|would you)", re.IGNORECASE)
_VALUE_STATEMENT = re.compile(r"(save|reduce|increase|improve|roi|return|benefit|value)", re.IGNORECASE)
_COUNTERPART_CONCERN = re.compile(r"(but|however|concern|worry|problem|expensive|budget|time)", re.IGNORECASE)
_ACKNOWLEDGEMENT = re.compile(r"(understand|appreciate|makes sense)", re.IGNORECASE)
_CTA_ATTEMPT = re.compile(r"(schedule|book|calendar|demo|call|meeting|next step|move forward)", re.IGNORECASE)


def _normalize(text: str | None) -> str:
    # Transcribers emit typographic apostrophes; the phrase tables use ASCII.
    return (text or "").lower().replace("’", "'")


def _contains_any(text: str, phrases: Sequence[str]) -> bool:
    return any(phrase in text for phrase in phrases)


def step(current: ConversationState, rep_text: str, counterpart_text: str) -> StepResult:
    """Compute the next conversation state.

    Rejection, advancement and close phrases win from any state, TERMINAL
    included. Otherwise TERMINAL is absorbing.

    Args:
        current: State before this turn.
        rep_text: What the rep said this turn.
        counterpart_text: What the counterpart said this turn.

    Returns:
        The next state, with a terminal result when it is TERMINAL.
    """
    rep = _normalize(rep_text)
    counterpart = _normalize(counterpart_text)

    if _contains_any(counterpart, REJECTION_PHRASES):
        return StepResult(ConversationState.TERMINAL, TerminalResult.REJECTED)
    if _contains_any(counterpart, ADVANCEMENT_PHRASES):
        return StepResult(ConversationState.TERMINAL, TerminalResult.ADVANCED)
    if _contains_any(counterpart, CLOSE_PHRASES):
        return StepResult(ConversationState.TERMINAL, TerminalResult.CLOSED)

    if current is ConversationState.TERMINAL:
        return StepResult(ConversationState.TERMINAL)

    rep_cta = _contains_any(rep, CTA_PHRASES)
    objection = _contains_any(counterpart, OBJECTION_PHRASES)
    question = _contains_any(counterpart, QUESTION_PHRASES)
    value = _contains_any(counterpart, VALUE_PHRASES)
    combined = f"{rep} {counterpart}"

    s = ConversationState
    if current is s.OPENING:
        nxt = s.OBJECTION if objection else s.DISCOVERY
    elif current is s.DISCOVERY:
        if objection:
            nxt = s.OBJECTION
        elif value or question:
            nxt = s.VALUE
        elif rep_cta:
            nxt = s.CTA
        else:
            nxt = s.VALUE
    elif current is s.VALUE:
        if objection:
            nxt = s.OBJECTION
        elif rep_cta:
            nxt = s.CTA
        elif question:
            nxt = s.VALUE
        else:
            nxt = s.CTA
    elif current is s.OBJECTION:
        if rep_cta:
            nxt = s.CTA
        elif value:
            nxt = s.VALUE
        elif question:
            nxt = s.DISCOVERY
        elif objection:
            nxt = s.OBJECTION
        else:
            nxt = s.VALUE
    elif current is s.CTA:
        if objection:
            nxt = s.OBJECTION
        elif _contains_any(combined, SCHEDULING_CUES):
            nxt = s.SCHEDULING
        else:
            nxt = s.CTA
    elif current is s.SCHEDULING:
        if objection:
            nxt = s.OBJECTION
        elif _contains_any(combined, CONFIRMATION_CUES):
            return StepResult(s.TERMINAL, TerminalResult.ADVANCED)
        else:
            nxt = s.SCHEDULING
    else:
        nxt = s.DISCOVERY
    return StepResult(nxt)


def should_terminate(
    turn_count: int,
    state: ConversationState,
    last_counterpart_text: str,
    last_rep_text: str,
) -> TerminationDecision:
    """Independent guard that can end a conversation regardless of ``step``."""
    if turn_count > _MAX_TURNS:
        return TerminationDecision(
            terminal=True,
            result=TerminalResult.REJECTED,
            reason="Conversation exceeded maximum length without resolution",
        )

    if _contains_any(_normalize(last_counterpart_text), DONE_PHRASES):
        return TerminationDecision(terminal=True, result=TerminalResult.REJECTED, reason="Counterpart ended conversation")

    if state is not ConversationState.TERMINAL and _contains_any(_normalize(last_rep_text), REP_WRAP_UP_PHRASES):
        if state in (ConversationState.CTA, ConversationState.SCHEDULING):
            return TerminationDecision(
                terminal=True, result=TerminalResult.ADVANCED, reason="Rep concluded with next steps"
            )
        return TerminationDecision(
            terminal=True, result=TerminalResult.REJECTED, reason="Rep concluded without advancement"
        )

    return TerminationDecision(terminal=False)


def analyze_conversation_quality(turns: Sequence[TranscriptEntry]) -> QualityReport:
    """Score discovery, value, objection handling and CTA, each out of 25."""
    rep_turns = [t for t in turns if t.speaker is Speaker.REP]
    counterpart_turns = [t for t in turns if t.speaker is Speaker.COUNTERPART]
    suggestions: list[str] = []

    discovery_questions = sum(1 for t in rep_turns if "?" in t.text and _DISCOVERY_QUESTION.search(t.text))
    discovery = min(25.0, discovery_questions * 5.0)
    if discovery < 15:
        suggestions.append("Ask more discovery questions to understand their specific needs")

    value_statements = sum(1 for t in rep_turns if _VALUE_STATEMENT.search(t.text))
    value = min(25.0, value_statements * 8.0)
    if value < 15:
        suggestions.append("Connect your solution more clearly to their specific value")

    concerns = sum(1 for t in counterpart_turns if _COUNTERPART_CONCERN.search(t.text))
    acknowledged = sum(
        1
        for t in rep_turns
        if _ACKNOWLEDGEMENT.search(t.text) and any(c.timestamp > t.timestamp for c in counterpart_turns)
    )
    objection = min(25.0, acknowledged / concerns * 25.0) if concerns else 20.0
    if objection < 15:
        suggestions.append("Acknowledge concerns before responding to them")

    cta_attempts = sum(1 for t in rep_turns if _CTA_ATTEMPT.search(t.text))
    cta = min(25.0, cta_attempts * 12.0)
    if cta < 15:
        suggestions.append("Include a clear call-to-action with specific next steps")

    return QualityReport(
        discovery_score=discovery,
        value_score=value,
        objection_score=objection,
        cta_score=cta,
        suggestions=suggestions,
    )


class ConversationStateMachine:
    """Stateful convenience wrapper over ``step`` and ``should_terminate``.

    Holds the current state and turn count for one session. The
    transition logic itself stays in the pure module functions.
    """

    def __init__(self, initial: ConversationState = ConversationState.OPENING) -> None:
        self._initial = initial
        self._state = initial
        self._result: TerminalResult | None = None
        self._turns = 0

    @property
    def state(self) -> ConversationState:
        return self._state

    @property
    def terminal_result(self) -> TerminalResult | None:
        return self._result

    @property
    def turn_count(self) -> int:
        return self._turns

    def advance(self, rep_text: str, counterpart_text: str) -> tuple[StepResult, TerminationDecision]:
        """Apply one conversational turn and the termination guard.

        Once terminal, further turns are ignored and the terminal result
        is reported unchanged.
        """
        if self._state is ConversationState.TERMINAL:
            return StepResult(self._state, self._result), TerminationDecision(terminal=True, result=self._result)

        self._turns += 1
        previous = self._state
        result = step(previous, rep_text, counterpart_text)
        decision = should_terminate(self._turns, previous, counterpart_text, rep_text)

        if result.is_terminal:
            decision = TerminationDecision(terminal=True, result=result.terminal_result, reason="Phrase match")
        elif decision.terminal:
            result = StepResult(ConversationState.TERMINAL, decision.result)

        self._state = result.state
        self._result = result.terminal_result
        if result.is_terminal:
            logger.info(
                "Conversation terminal after %d turns: %s -> %s (%s)",
                self._turns,
                previous.value,
                self._result.value if self._result else "none",
                decision.reason,
            )
        return result, decision

    def reset(self) -> None:
        self._state = self._initial
        self._result = None
        self._turns = 0
