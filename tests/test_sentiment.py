"""Unit tests for transcript-driven sentiment scoring.

Test matrix covers:
  - Signal library (category weights, speaker separation, recency boost)
  - Objection detection (categories, small-talk suppression, authority context)
  - Technique and micro-commitment detection
  - Objection handling assessment and recovery-scaled penalties
  - Secondary factors (buying signals, positive language)
  - SentimentScoreEngine (starting value, windows, progression, ramp,
    determinism, smoothing convergence, range, persona-dependent
    starting point)

Never mock. All tests exercise real code paths.
"""

import pytest

from conversation_coach._config import SentimentConfig
from conversation_coach._objections import (
    assess_objection_handling,
    detect_micro_commitment,
    detect_objection,
    detect_technique,
    objection_penalty,
    recovery_key,
)
from conversation_coach._sentiment import (
    SentimentScoreEngine,
    WindowScores,
    buying_signals_score,
    positive_language_score,
)
from conversation_coach._signals import TextSignalLibrary
from conversation_coach._types import HandlingAssessment, SentimentFactors, Speaker, TranscriptEntry


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _Clock:
    def __init__(self, t: float = 0.0) -> None:
        self.t = t

    def __call__(self) -> float:
        return self.t


def _c(text: str, ts: float = 0.0) -> TranscriptEntry:
    return TranscriptEntry(speaker=Speaker.COUNTERPART, text=text, timestamp=ts)


def _r(text: str, ts: float = 0.0) -> TranscriptEntry:
    return TranscriptEntry(speaker=Speaker.REP, text=text, timestamp=ts)


_RESOLVED_PRICE = [
    _c("That's too expensive for us."),
    _r("Imagine what a termite repair would cost compared to this."),
    _c("Oh I see, that makes sense. Sounds good."),
]

_UNRESOLVED_PRICE = [
    _c("It's too expensive."),
    _r("Okay."),
    _c("Still too expensive, no thanks."),
]

_CONVERSATION = [
    _r("Hi, my name is Sam, I'm with Acme Pest. We're licensed and insured."),
    _c("Okay, what's this about?"),
    _r("We're treating a few homes in your area. Have you noticed any ants?"),
    _c("We've had some ants in the kitchen, I guess."),
    _r("That makes sense this time of year. Our plan is family safe and comes with a guarantee."),
    _c("How much is it?"),
    _r("It's less than a dollar a day, and the first inspection is free."),
    _c("That sounds good. When can you start?"),
]


# ---------------------------------------------------------------------------
# TextSignalLibrary
# ---------------------------------------------------------------------------


class TestTextSignalLibrary:
    def setup_method(self) -> None:
        self.lib = TextSignalLibrary()

    def test_counterpart_buying_signal(self) -> None:
        hits = self.lib.match(_c("Sign me up!"))
        assert [h.category for h in hits] == ["strong_buying"]
        assert self.lib.score(_c("Sign me up!")) == (18.0, 0.0)

    def test_rep_pushy_language_is_negative(self) -> None:
        positive, negative = self.lib.score(_r("This is today only, sign today."))
        assert positive == 0.0
        assert negative == pytest.approx(30.0)

    def test_tables_are_speaker_specific(self) -> None:
        # "today only" is a rep pressure tactic, not a counterpart signal
        assert self.lib.match(_c("Is this today only?")) == []

    def test_multiplier_scales_both_sides(self) -> None:
        assert self.lib.score(_c("Sign me up!"), multiplier=1.5) == (pytest.approx(27.0), 0.0)

    def test_recency_multiplier(self) -> None:
        assert self.lib.recency_multiplier(0, 0) == 1.0
        assert self.lib.recency_multiplier(0, 10) == 1.0
        assert self.lib.recency_multiplier(5, 10) == 1.0
        assert self.lib.recency_multiplier(6, 10) == pytest.approx(1.275)
        assert self.lib.recency_multiplier(9, 10) == pytest.approx(1.5)


# ---------------------------------------------------------------------------
# Objection detection
# ---------------------------------------------------------------------------


class TestObjectionDetection:
    def test_price_objection(self) -> None:
        match = detect_objection("That's way too expensive for us.")
        assert match is not None
        assert match.type == "price"
        assert match.severity == "high"
        assert match.confidence == pytest.approx(0.5)
        assert match.sub_category == "price_value_perception"
        assert match.approach == "Pivot to value, ROI, and payment options"

    def test_refusal_language_raises_confidence(self) -> None:
        match = detect_objection("We can't afford that, the price is too much money.")
        assert match is not None
        assert match.type == "price"
        assert match.confidence > 0.7
        assert match.sub_category == "price_affordability"

    def test_casual_family_mention_ignored(self) -> None:
        assert detect_objection("Yeah, my wife and kids love the yard.") is None

    def test_authority_requires_decision_language(self) -> None:
        match = detect_objection("I need to speak to my wife first.")
        assert match is not None
        assert match.type == "authority"
        assert match.severity == "medium"

    def test_renter(self) -> None:
        match = detect_objection("We're renting this place.")
        assert match is not None
        assert match.type == "renter_ownership"
        assert match.approach == "Offer to contact landlord or provide tenant-friendly solutions"

    def test_neutral_text_is_not_an_objection(self) -> None:
        assert detect_objection("That sounds great.") is None
        assert detect_objection("") is None

    def test_technique_detection(self) -> None:
        assert detect_technique("Imagine never seeing another ant.") == "Future Pacing"
        assert detect_technique("Would you prefer morning or afternoon?") == "Alternative Close"
        assert detect_technique("Hello.") is None

    def test_micro_commitments(self) -> None:
        assert detect_micro_commitment("When can you start?") == "buying"
        assert detect_micro_commitment("I like that") == "strong"
        assert detect_micro_commitment("Tell me more") == "moderate"
        assert detect_micro_commitment("Uh huh") == "minimal"
        assert detect_micro_commitment("Yes.", follows_question=True) == "minimal"
        assert detect_micro_commitment("Yes.") is None


# ---------------------------------------------------------------------------
# Handling assessment and penalties
# ---------------------------------------------------------------------------


class TestObjectionHandling:
    def test_resolved_objection(self) -> None:
        assessment = assess_objection_handling(0, _RESOLVED_PRICE, "price")
        assert assessment.was_handled
        assert assessment.is_resolved
        assert assessment.quality == "excellent"
        assert assessment.technique_used == "Future Pacing"
        assert "Explicit acceptance" in assessment.resolution_signals
        assert recovery_key(assessment) == "resolved"

    def test_repeated_objection_is_unhandled(self) -> None:
        assessment = assess_objection_handling(0, _UNRESOLVED_PRICE, "price")
        assert not assessment.was_handled
        assert not assessment.is_resolved
        assert assessment.quality == "poor"
        assert "Same objection repeated - not resolved" in assessment.resolution_signals
        assert recovery_key(assessment) == "unhandled"

    def test_no_followup(self) -> None:
        assessment = assess_objection_handling(0, [_c("Too expensive.")], "price")
        assert not assessment.was_handled
        assert assessment.quality is None
        assert assessment.response_text == ""

    @pytest.mark.parametrize(
        "handled,resolved,quality,expected",
        [
            (True, True, "excellent", "resolved"),
            (True, True, "good", "resolved"),
            (True, False, "good", "good"),
            (True, False, "adequate", "adequate"),
            (False, False, "poor", "unhandled"),
            (False, False, None, "unhandled"),
        ],
    )
    def test_recovery_key(self, handled: bool, resolved: bool, quality: str | None, expected: str) -> None:
        assessment = HandlingAssessment(was_handled=handled, is_resolved=resolved, quality=quality)
        assert recovery_key(assessment) == expected

    def test_recovery_penalties_monotonic(self) -> None:
        cfg = SentimentConfig()
        penalties = [
            objection_penalty("high", 1.0, key, cfg.severity_penalties, cfg.recovery_factors)
            for key in ("resolved", "excellent", "good", "adequate", "unhandled")
        ]
        assert penalties == sorted(penalties)
        assert len(set(penalties)) == len(penalties)
        assert penalties[-1] == pytest.approx(16.0)

    def test_penalty_scales_with_severity_and_recency(self) -> None:
        cfg = SentimentConfig()

        def pen(severity: str, recency: float = 1.0) -> float:
            return objection_penalty(severity, recency, "unhandled", cfg.severity_penalties, cfg.recovery_factors)

        assert pen("low") < pen("medium") < pen("high") < pen("critical")
        assert pen("high", 1.5) == pytest.approx(pen("high") * 1.5)
        assert pen("unknown") == 0.0


# ---------------------------------------------------------------------------
# Secondary factors
# ---------------------------------------------------------------------------


class TestSecondaryFactors:
    def test_buying_signals_points(self) -> None:
        transcript = [_r("Sounds good?"), _c("Sounds good, when can you start?")]
        assert buying_signals_score(transcript) == pytest.approx(30.0)

    def test_buying_signals_capped(self) -> None:
        transcript = [_c("Sounds good, that works, I'm ready, let's do it, count me in.")] * 3
        assert buying_signals_score(transcript) == 100.0

    def test_positive_language(self) -> None:
        assert positive_language_score([]) == 50.0
        assert positive_language_score([_c("Not interested.")]) == 0.0
        assert positive_language_score([_c("That's great, I see.")]) == 100.0
        assert positive_language_score([_c("That's great but too expensive.")]) == pytest.approx(50.0)


# ---------------------------------------------------------------------------
# SentimentScoreEngine
# ---------------------------------------------------------------------------


class TestSentimentScoreEngine:
    def setup_method(self) -> None:
        self.clock = _Clock()
        self.engine = SentimentScoreEngine(starting_sentiment=25.0, clock=self.clock)
        self.engine.start(0.0)

    def test_empty_transcript_yields_starting_value(self) -> None:
        result = self.engine.update([])
        assert result.score == 25.0
        assert result.factors == SentimentFactors()
        assert result.objection_count == 0
        assert result.level == "low"

    def test_empty_transcript_resets_after_updates(self) -> None:
        self.engine.update(_CONVERSATION)
        assert self.engine.update([]).score == 25.0

    def test_window_scores(self) -> None:
        transcript = (
            [_c("Thank you, that makes sense.")] * 3
            + [_c("The weather is nice.")] * 3
            + [_c("Not interested, go away.")] * 4
        )
        windows = self.engine.window_scores(transcript)
        assert windows.early == pytest.approx(100.0)
        assert windows.middle == pytest.approx(50.0)
        assert windows.recent == pytest.approx(0.0)

    def test_progression_modifier(self) -> None:
        assert self.engine.progression_modifier(WindowScores(50.0, 50.0, 50.0)) == 0.0
        # trend capped at +15, momentum (30 * 0.15) added
        assert self.engine.progression_modifier(WindowScores(20.0, 50.0, 80.0)) == pytest.approx(19.5)
        # decline floored at -10
        assert self.engine.progression_modifier(WindowScores(80.0, 50.0, 20.0)) == pytest.approx(-10.0)
        assert self.engine.progression_modifier(WindowScores(50.0, 50.0, 40.0)) == pytest.approx(-2.0)

    @pytest.mark.parametrize(
        "elapsed,expected",
        [(0.0, 0.2), (5.0, 0.275), (10.0, 0.35), (20.0, 0.475), (30.0, 0.6), (60.0, 0.8), (90.0, 1.0), (600.0, 1.0)],
    )
    def test_confidence_ramp(self, elapsed: float, expected: float) -> None:
        assert self.engine.confidence_ramp(elapsed) == pytest.approx(expected)

    def test_resolved_objection_counted(self) -> None:
        result = self.engine.update(_RESOLVED_PRICE)
        assert result.objection_count == 1
        assert result.objections_resolved == 1
        assert result.factors.objection_resolution == pytest.approx(100.0)

    def test_unresolved_objections(self) -> None:
        result = self.engine.update(_UNRESOLVED_PRICE)
        assert result.objection_count == 2
        assert result.objections_resolved == 0
        assert result.factors.objection_resolution == 0.0

    def test_factors_depend_only_on_transcript(self) -> None:
        early = SentimentScoreEngine(starting_sentiment=25.0, clock=_Clock(0.0))
        late_clock = _Clock(0.0)
        late = SentimentScoreEngine(starting_sentiment=25.0, clock=late_clock)
        late_clock.t = 120.0

        a = early.update(_CONVERSATION)
        b = late.update(_CONVERSATION)
        assert a.factors == b.factors
        # Elapsed time only enters through the confidence ramp
        assert b.score > a.score

    def test_deterministic(self) -> None:
        other = SentimentScoreEngine(starting_sentiment=25.0, clock=self.clock)
        other.start(0.0)
        a = self.engine.update(_CONVERSATION)
        b = other.update(_CONVERSATION)
        assert a == b

    def test_repeated_update_converges(self) -> None:
        self.clock.t = 30.0
        results = [self.engine.update(_CONVERSATION) for _ in range(40)]
        assert all(r.factors == results[0].factors for r in results)

        scores = [r.score for r in results]
        steps = [b - a for a, b in zip(scores, scores[1:])]
        assert steps[0] != 0.0
        # Each step covers the same fraction of the remaining gap: no overshoot
        for prev, nxt in zip(steps, steps[1:]):
            assert nxt * prev >= 0.0
            assert abs(nxt) <= abs(prev)
            assert nxt == pytest.approx(prev * 0.8, abs=1e-9)
        assert abs(steps[-1]) < 0.01

    def test_scores_stay_in_range(self) -> None:
        hostile = [_c("Not interested. Go away. No thanks, it's a scam and too expensive.")] * 12
        hostile += [_r("Whatever, you people are ridiculous. Today only!")] * 12
        friendly = [_c("Sign me up! Sounds good, that works, thank you, when can you start?")] * 24
        self.clock.t = 300.0
        for transcript in (hostile, friendly):
            engine = SentimentScoreEngine(starting_sentiment=45.0, clock=self.clock)
            for _ in range(50):
                result = engine.update(transcript)
                assert 0.0 <= result.score <= 100.0
                assert 0.0 <= result.factors.transcript_sentiment <= 100.0
                assert 0.0 <= result.factors.buying_signals <= 100.0
                assert 0.0 <= result.factors.objection_resolution <= 100.0
                assert 0.0 <= result.factors.positive_language <= 100.0

    def test_positive_conversation_beats_hostile(self) -> None:
        self.clock.t = 120.0
        positive = SentimentScoreEngine(starting_sentiment=25.0, clock=self.clock)
        hostile = SentimentScoreEngine(starting_sentiment=25.0, clock=self.clock)
        for _ in range(10):
            p = positive.update(_CONVERSATION)
            h = hostile.update([_c("Not interested, go away."), _c("No thanks, absolutely not.")])
        assert p.score > h.score

    def test_colder_persona_scores_lower(self) -> None:
        cold = SentimentScoreEngine(starting_sentiment=5.0, clock=self.clock)
        warm = SentimentScoreEngine(starting_sentiment=45.0, clock=self.clock)
        assert cold.update(_CONVERSATION).score < warm.update(_CONVERSATION).score

    def test_levels(self) -> None:
        assert self.engine.level(29.9) == "low"
        assert self.engine.level(30.0) == "building"
        assert self.engine.level(59.9) == "building"
        assert self.engine.level(60.0) == "positive"

    def test_invalid_config(self) -> None:
        with pytest.raises(ValueError):
            SentimentConfig(early_fraction=0.7, recent_fraction=0.5)
        with pytest.raises(ValueError):
            SentimentConfig(window_weights=(0.5, 0.5, 0.5))
