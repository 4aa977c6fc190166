"""Unit tests for conversation phase tracking and persona simulation.

Test matrix covers:
  - step(): terminal precedence, per-state transition table, apostrophe
    normalization, determinism, terminal absorption
  - should_terminate(): turn cap, counterpart exit, rep wrap-up
  - ConversationStateMachine: turn counting, guard integration
  - analyze_conversation_quality(): rubric scoring and suggestions
  - PersonaSimulator: trust/interest rules, clamping, ignored safety
    questions, directives, success criteria, presets

Never mock. All tests exercise real code paths.
"""

import pytest

from conversation_coach._persona import (
    PERSONA_PRESETS,
    TEMPERATURE_STARTING_SENTIMENT,
    PersonaSimulator,
    persona_by_type,
)
from conversation_coach._state_machine import (
    ConversationStateMachine,
    analyze_conversation_quality,
    should_terminate,
    step,
)
from conversation_coach._types import ConversationState, Speaker, TerminalResult, TranscriptEntry

S = ConversationState


# ---------------------------------------------------------------------------
# step()
# ---------------------------------------------------------------------------


class TestStep:
    @pytest.mark.parametrize("current", list(S))
    def test_rejection_from_any_state(self, current: S) -> None:
        result = step(current, "Can I book you for tomorrow at 3?", "Not interested, go away.")
        assert result.state is S.TERMINAL
        assert result.terminal_result is TerminalResult.REJECTED

    def test_rejection_preempts_everything(self) -> None:
        result = step(S.VALUE, "Let's schedule you in.", "I'm not interested, but what time works?")
        assert result.state is S.TERMINAL
        assert result.terminal_result is TerminalResult.REJECTED

    def test_advancement(self) -> None:
        result = step(S.VALUE, "Sound fair?", "OK, let's schedule the inspection.")
        assert result.state is S.TERMINAL
        assert result.terminal_result is TerminalResult.ADVANCED

    def test_advancement_checked_before_close(self) -> None:
        # "let's get started" is both an advancement and a close phrase
        assert step(S.CTA, "", "Great, let's get started.").terminal_result is TerminalResult.ADVANCED

    def test_close(self) -> None:
        result = step(S.SCHEDULING, "", "Where do I sign?")
        assert result.terminal_result is TerminalResult.CLOSED

    def test_typographic_apostrophe(self) -> None:
        assert step(S.OPENING, "", "We’re fine, thanks.").terminal_result is TerminalResult.REJECTED

    @pytest.mark.parametrize(
        "current,rep,counterpart,expected",
        [
            (S.OPENING, "Hi there!", "Hello.", S.DISCOVERY),
            (S.OPENING, "Hi there!", "It's too expensive.", S.OBJECTION),
            (S.DISCOVERY, "Any bugs lately?", "How much is it?", S.VALUE),
            (S.DISCOVERY, "Can I book you in?", "Hmm.", S.CTA),
            (S.DISCOVERY, "Any bugs lately?", "A few.", S.VALUE),
            (S.DISCOVERY, "Any bugs lately?", "Maybe later.", S.OBJECTION),
            (S.VALUE, "Here's how it works.", "What pests do you cover?", S.VALUE),
            (S.VALUE, "Here's how it works.", "Okay.", S.CTA),
            (S.VALUE, "Here's how it works.", "We use DIY sprays.", S.OBJECTION),
            (S.OBJECTION, "Can I book you for Tuesday?", "Hmm.", S.CTA),
            (S.OBJECTION, "I hear you.", "I want peace of mind.", S.VALUE),
            (S.OBJECTION, "I hear you.", "How long does it take?", S.DISCOVERY),
            (S.OBJECTION, "I hear you.", "Maybe later.", S.OBJECTION),
            (S.OBJECTION, "I hear you.", "Okay.", S.VALUE),
            (S.CTA, "Are you available Thursday?", "Maybe Thursday.", S.SCHEDULING),
            (S.CTA, "Shall we?", "It's too expensive.", S.OBJECTION),
            (S.CTA, "Shall we?", "Hmm.", S.CTA),
            (S.SCHEDULING, "Does Thursday suit?", "Hmm.", S.SCHEDULING),
            (S.SCHEDULING, "Does Thursday suit?", "Maybe later.", S.OBJECTION),
        ],
    )
    def test_transition_table(self, current: S, rep: str, counterpart: str, expected: S) -> None:
        result = step(current, rep, counterpart)
        assert result.state is expected
        assert result.terminal_result is None

    def test_scheduling_confirmation_advances(self) -> None:
        result = step(S.SCHEDULING, "I'll put it on the calendar.", "Great.")
        assert result.state is S.TERMINAL
        assert result.terminal_result is TerminalResult.ADVANCED

    def test_terminal_absorbs_plain_turns(self) -> None:
        result = step(S.TERMINAL, "Hello?", "Hmm, okay.")
        assert result.state is S.TERMINAL
        assert result.terminal_result is None

    def test_phrase_match_applies_in_terminal(self) -> None:
        result = step(S.TERMINAL, "Hello?", "Sign me up!")
        assert result.state is S.TERMINAL
        assert result.terminal_result is TerminalResult.ADVANCED

    def test_deterministic(self) -> None:
        args = (S.DISCOVERY, "Can I book you in?", "How much is it?")
        assert step(*args) == step(*args)

    def test_empty_text_uses_state_default(self) -> None:
        assert step(S.OPENING, "", "").state is S.DISCOVERY
        assert step(S.CTA, "", "").state is S.CTA


# ---------------------------------------------------------------------------
# should_terminate()
# ---------------------------------------------------------------------------


class TestShouldTerminate:
    def test_under_turn_cap(self) -> None:
        assert not should_terminate(20, S.CTA, "ok", "ok").terminal

    def test_turn_cap(self) -> None:
        decision = should_terminate(21, S.CTA, "ok", "ok")
        assert decision.terminal
        assert decision.result is TerminalResult.REJECTED
        assert decision.reason == "Conversation exceeded maximum length without resolution"

    def test_counterpart_exit(self) -> None:
        decision = should_terminate(3, S.VALUE, "Goodbye!", "Wait")
        assert decision.result is TerminalResult.REJECTED
        assert decision.reason == "Counterpart ended conversation"

    def test_rep_wrap_up_after_cta(self) -> None:
        decision = should_terminate(5, S.SCHEDULING, "Sure.", "Thanks for your time!")
        assert decision.result is TerminalResult.ADVANCED

    def test_rep_wrap_up_without_cta(self) -> None:
        decision = should_terminate(5, S.DISCOVERY, "Sure.", "Thanks for your time!")
        assert decision.result is TerminalResult.REJECTED
        assert decision.reason == "Rep concluded without advancement"


# ---------------------------------------------------------------------------
# ConversationStateMachine
# ---------------------------------------------------------------------------


class TestConversationStateMachine:
    def test_turn_cap_rejects(self) -> None:
        fsm = ConversationStateMachine()
        for turn in range(1, 21):
            result, decision = fsm.advance("Let me tell you about our service.", "Okay.")
            assert not result.is_terminal, f"terminal too early at turn {turn}"
            assert not decision.terminal
        assert fsm.state is S.CTA

        result, decision = fsm.advance("Let me tell you about our service.", "Okay.")
        assert result.is_terminal
        assert result.terminal_result is TerminalResult.REJECTED
        assert fsm.turn_count == 21
        assert decision.reason == "Conversation exceeded maximum length without resolution"

    def test_terminal_ignores_further_turns(self) -> None:
        fsm = ConversationStateMachine()
        fsm.advance("Hi!", "Not interested.")
        result, decision = fsm.advance("Please?", "Sign me up!")
        assert result.terminal_result is TerminalResult.REJECTED
        assert decision.terminal
        assert fsm.turn_count == 1

    def test_wrap_up_checked_against_previous_state(self) -> None:
        fsm = ConversationStateMachine()
        result, decision = fsm.advance("Thanks for your time, have a great day.", "Bye now.")
        assert result.terminal_result is TerminalResult.REJECTED
        assert decision.reason == "Rep concluded without advancement"

    def test_reset(self) -> None:
        fsm = ConversationStateMachine()
        fsm.advance("Hi!", "Go away.")
        fsm.reset()
        assert fsm.state is S.OPENING
        assert fsm.terminal_result is None
        assert fsm.turn_count == 0


# ---------------------------------------------------------------------------
# analyze_conversation_quality()
# ---------------------------------------------------------------------------


class TestQualityReport:
    def test_empty_conversation(self) -> None:
        report = analyze_conversation_quality([])
        assert report.discovery_score == 0.0
        assert report.value_score == 0.0
        assert report.objection_score == 20.0
        assert report.cta_score == 0.0
        assert report.total == 20.0
        assert len(report.suggestions) == 3

    def test_scored_conversation(self) -> None:
        turns = [
            TranscriptEntry(Speaker.REP, "What pests have you seen lately?", 0.0),
            TranscriptEntry(Speaker.COUNTERPART, "Ants, but I worry about the cost.", 1.0),
            TranscriptEntry(Speaker.REP, "I understand. Our plan can save you money on repairs.", 2.0),
            TranscriptEntry(Speaker.COUNTERPART, "Okay.", 3.0),
            TranscriptEntry(Speaker.REP, "Can we schedule a visit next week?", 4.0),
        ]
        report = analyze_conversation_quality(turns)
        assert report.discovery_score == 5.0
        assert report.value_score == 8.0
        assert report.objection_score == 25.0
        assert report.cta_score == 12.0
        assert report.total == 50.0
        assert "Acknowledge concerns before responding to them" not in report.suggestions

    def test_scores_capped(self) -> None:
        turns = [TranscriptEntry(Speaker.REP, "What would you save? Could we book a call?", float(i)) for i in range(10)]
        report = analyze_conversation_quality(turns)
        for score in (report.discovery_score, report.value_score, report.cta_score):
            assert score == 25.0


# ---------------------------------------------------------------------------
# PersonaSimulator
# ---------------------------------------------------------------------------


class TestPersonaSimulator:
    def setup_method(self) -> None:
        self.sim = PersonaSimulator(PERSONA_PRESETS["suburban_family"])

    def test_initial_state(self) -> None:
        assert self.sim.trust_level == -2
        assert self.sim.interest_level == 8
        assert self.sim.turns_elapsed == 0

    def test_pressure_tactics_cost_trust(self) -> None:
        self.sim.observe_rep_turn("This is a today only, special deal.")
        assert self.sim.trust_level == -4
        assert self.sim.turns_elapsed == 1

    def test_trust_clamped_low(self) -> None:
        for _ in range(10):
            self.sim.observe_rep_turn("Today only, special deal!")
        assert self.sim.trust_level == -10

    def test_trust_clamped_high(self) -> None:
        for _ in range(5):
            self.sim.observe_rep_turn("Your neighbor uses our guarantee-backed EPA plan, free inspection.")
        assert self.sim.trust_level == 10

    def test_ignored_safety_question(self) -> None:
        self.sim.observe_counterpart_turn("Is it safe for my kids?")
        self.sim.observe_rep_turn("We have great prices.")
        assert self.sim.trust_level == -3

    def test_answered_safety_question(self) -> None:
        self.sim.observe_counterpart_turn("Is it safe for my kids?")
        self.sim.observe_rep_turn("Yes, it's EPA approved.")
        assert self.sim.trust_level == -1

    def test_monologue_costs_trust(self) -> None:
        self.sim.observe_rep_turn("Our service covers the whole property. " * 8)
        assert self.sim.trust_level == -3

    def test_pain_points_raise_interest(self) -> None:
        self.sim.observe_rep_turn("We deal with ants in kitchen all the time and help prevent them.")
        assert self.sim.interest_level == 10

    def test_generic_pitch_lowers_interest(self) -> None:
        self.sim.observe_rep_turn("Everyone needs this.")
        assert self.sim.interest_level == 7

    def test_directive(self) -> None:
        directive = self.sim.behavioral_directive()
        assert directive.startswith("Trust Level: -2/10, Interest Level: 8/10.")
        assert "SKEPTICAL" in directive
        assert "HIGH INTEREST" in directive
        assert "GETTING IMPATIENT" not in directive

    def test_impatience_after_many_turns(self) -> None:
        for _ in range(8):
            self.sim.observe_rep_turn("Okay.")
        assert "GETTING IMPATIENT" not in self.sim.behavioral_directive()
        self.sim.observe_rep_turn("Okay.")
        assert "GETTING IMPATIENT" in self.sim.behavioral_directive()

    def test_role_modifier(self) -> None:
        sim = PersonaSimulator(PERSONA_PRESETS["busy_professional"])
        directive = sim.behavioral_directive()
        assert "Busy persona" in directive
        assert sim.trust_level == -1

    def test_success_criteria(self) -> None:
        self.sim.observe_rep_turn("Your neighbor down the street uses our EPA approved, family safe plan with a guarantee.")
        assert self.sim.trust_level == 2
        history = ["It fits your budget and we can schedule Tuesday.", "It's safe for your family."]
        assert self.sim.check_success_criteria(history)
        assert not self.sim.check_success_criteria(["It fits your budget.", "It's safe."])
        # Own log mentions no scheduling or budget
        assert not self.sim.check_success_criteria()

    def test_success_requires_trust(self) -> None:
        history = ["It fits your budget and we can schedule Tuesday.", "It's safe for your family."]
        assert not self.sim.check_success_criteria(history)

    def test_snapshot_is_a_copy(self) -> None:
        snap = self.sim.snapshot()
        self.sim.observe_counterpart_turn("Hello.")
        self.sim.observe_rep_turn("Hi!")
        assert snap.turns_elapsed == 0
        assert snap.utterance_log == []

    def test_reset(self) -> None:
        self.sim.observe_rep_turn("Today only!")
        self.sim.reset()
        assert self.sim.trust_level == -2
        assert self.sim.turns_elapsed == 0
        assert self.sim.snapshot().utterance_log == []


class TestPersonaPresets:
    def test_starting_sentiment_by_temperature(self) -> None:
        assert TEMPERATURE_STARTING_SENTIMENT["cold"] < TEMPERATURE_STARTING_SENTIMENT["warm"]
        assert PERSONA_PRESETS["elderly_couple"].starting_sentiment == 5.0
        assert PERSONA_PRESETS["busy_professional"].starting_sentiment == 15.0
        assert PERSONA_PRESETS["new_homeowner"].starting_sentiment == 35.0

    def test_skeptical_variant(self) -> None:
        persona = persona_by_type("skeptical")
        assert persona.role == "Skeptical Homeowner"
        assert persona.starting_sentiment == TEMPERATURE_STARTING_SENTIMENT["cold"]
        assert "sounds like a scam" in persona.objections

    def test_budget_variant(self) -> None:
        assert persona_by_type("budget_conscious").budget == "$50-100/month"

    def test_safety_variant(self) -> None:
        assert "chemical sensitivity" in persona_by_type("safety_focused").pain

    def test_unknown_kind_returns_base(self) -> None:
        assert persona_by_type("something_else") == PERSONA_PRESETS["suburban_family"]

    def test_unknown_base_raises(self) -> None:
        with pytest.raises(KeyError):
            persona_by_type("skeptical", base="castle")
