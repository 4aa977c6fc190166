"""SentimentScoreEngine: smoothed 0-100 conversation sentiment.

Scoring pipeline for one update:

    transcript ─┬─ early / middle / recent windows ─► window scores
                │                                     │
                │                          progression modifier
                ├─ objections ─► handling assessment ─► penalty
                │                                     ▼
                │                          transcriptSentiment
                ├─ buying signals ─────────────────────┤
                ├─ positive / negative language ───────┤
                └─ objection resolution rate ──────────┤
                                                       ▼
                        weighted raw × confidence ramp + starting sentiment
                                                       ▼
                                             exponential smoothing

Windows are index-proportional so short and long conversations are
treated alike. Feature values depend only on the transcript; elapsed
time enters only through the confidence ramp.
"""

import logging
import math
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from ._config import SentimentConfig
from ._objections import assess_objection_handling, detect_objection, objection_penalty, recovery_key
from ._signals import (
    BUYING_SIGNAL_PATTERNS,
    NEGATIVE_LANGUAGE_PATTERNS,
    POSITIVE_LANGUAGE_PATTERNS,
    TextSignalLibrary,
)
from ._types import SentimentFactors, SentimentLevel, SentimentResult, Speaker, TranscriptEntry

logger = logging.getLogger(__name__)

_NEUTRAL = 50.0
_TREND_SCALE = 0.3
_DECLINE_SCALE = 0.2
_MOMENTUM_SCALE = 0.15


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    if math.isnan(value):
        return _NEUTRAL
    return min(max(value, low), high)


@dataclass
class WindowScores:
    early: float
    middle: float
    recent: float


@dataclass
class ObjectionSummary:
    count: int
    resolved: int
    penalty: float


class SentimentScoreEngine:
    """Turns the live transcript into a smoothed sentiment score.

    Args:
        starting_sentiment: Persona-dependent initial score; harder
            personas start lower.
        config: Window fractions, weights, penalties and ramp bands.
        signals: Phrase tables; defaults to the built-in library.
        clock: Monotonic time source in seconds.
    """

    def __init__(
        self,
        starting_sentiment: float = 5.0,
        config: SentimentConfig | None = None,
        signals: TextSignalLibrary | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or SentimentConfig()
        self._starting = _clamp(starting_sentiment)
        self._signals = signals or TextSignalLibrary(
            recency_start_fraction=self._config.recency_start_fraction,
            recency_min=self._config.recency_multiplier_min,
            recency_max=self._config.recency_multiplier_max,
        )
        self._clock = clock
        self._session_start = clock()
        self._score = self._starting
        self._factors = SentimentFactors()

    @property
    def score(self) -> float:
        return self._score

    @property
    def factors(self) -> SentimentFactors:
        return self._factors

    @property
    def starting_sentiment(self) -> float:
        return self._starting

    def start(self, session_start: float | None = None) -> None:
        self.reset()
        if session_start is not None:
            self._session_start = session_start

    def reset(self) -> None:
        self._score = self._starting
        self._factors = SentimentFactors()
        self._session_start = self._clock()

    def level(self, score: float | None = None) -> SentimentLevel:
        s = self._score if score is None else score
        if s < self._config.low_threshold:
            return "low"
        if s < self._config.positive_threshold:
            return "building"
        return "positive"

    # ── Public update path ────────────────────────────────────────────────

    def update(self, transcript: Sequence[TranscriptEntry]) -> SentimentResult:
        """Recompute the score from the full transcript.

        Args:
            transcript: Ordered transcript, both speakers. Not mutated.
        """
        if not transcript:
            self._score = self._starting
            self._factors = SentimentFactors()
            return SentimentResult(score=self._score, level=self.level(), factors=self._factors)

        cfg = self._config
        windows = self.window_scores(transcript)
        objections = self.objection_summary(transcript)

        w_early, w_middle, w_recent = cfg.window_weights
        base = w_early * windows.early + w_middle * windows.middle + w_recent * windows.recent
        transcript_sentiment = _clamp(base + self.progression_modifier(windows) - objections.penalty)

        factors = SentimentFactors(
            transcript_sentiment=transcript_sentiment,
            buying_signals=buying_signals_score(transcript, cfg.buying_signal_points),
            objection_resolution=(
                _clamp(objections.resolved / objections.count * 100.0) if objections.count else 100.0
            ),
            positive_language=positive_language_score(transcript),
        )

        fw = cfg.factor_weights
        raw = (
            fw["transcript_sentiment"] * factors.transcript_sentiment
            + fw["buying_signals"] * factors.buying_signals
            + fw["positive_language"] * factors.positive_language
            + fw["objection_resolution"] * factors.objection_resolution
        )

        elapsed = max(0.0, self._clock() - self._session_start)
        final = self._starting + raw * self.confidence_ramp(elapsed)
        if factors.buying_signals > 50:
            final += (factors.buying_signals - 50.0) / 50.0 * cfg.max_buying_bonus
        if factors.objection_resolution < 50:
            final -= (50.0 - factors.objection_resolution) / 50.0 * cfg.max_resolution_penalty
        final = _clamp(final)

        alpha = cfg.smoothing_alpha
        self._score = _clamp(self._score * (1.0 - alpha) + final * alpha)
        self._factors = factors

        logger.debug(
            "Sentiment update: windows=(%.0f, %.0f, %.0f) penalty=%.1f raw=%.1f final=%.1f score=%.1f",
            windows.early,
            windows.middle,
            windows.recent,
            objections.penalty,
            raw,
            final,
            self._score,
        )
        return SentimentResult(
            score=self._score,
            level=self.level(),
            factors=factors,
            objection_count=objections.count,
            objections_resolved=objections.resolved,
        )

    # ── Components ────────────────────────────────────────────────────────

    def window_scores(self, transcript: Sequence[TranscriptEntry]) -> WindowScores:
        n = len(transcript)
        early_end = int(n * self._config.early_fraction)
        recent_start = max(early_end, n - math.ceil(n * self._config.recent_fraction))
        return WindowScores(
            early=self._score_span(transcript, 0, early_end),
            middle=self._score_span(transcript, early_end, recent_start),
            recent=self._score_span(transcript, recent_start, n),
        )

    def _score_span(self, transcript: Sequence[TranscriptEntry], start: int, end: int) -> float:
        positive = 0.0
        negative = 0.0
        total = len(transcript)
        for i in range(start, end):
            p, n = self._signals.score(transcript[i], self._signals.recency_multiplier(i, total))
            positive += p
            negative += n
        if positive + negative <= 0:
            return _NEUTRAL
        return positive / (positive + negative) * 100.0

    def progression_modifier(self, windows: WindowScores) -> float:
        """Bonus for an improving conversation, penalty for a souring one."""
        cfg = self._config
        trend = windows.recent - windows.early
        if trend > 0:
            modifier = min(cfg.max_improving_bonus, trend * _TREND_SCALE)
        else:
            modifier = max(-cfg.max_declining_penalty, trend * _DECLINE_SCALE)

        jump = windows.recent - windows.middle
        if jump > cfg.momentum_threshold:
            modifier += min(cfg.max_momentum_bonus, jump * _MOMENTUM_SCALE)
        return modifier

    def objection_summary(self, transcript: Sequence[TranscriptEntry]) -> ObjectionSummary:
        cfg = self._config
        count = 0
        resolved = 0
        penalty = 0.0
        total = len(transcript)
        for i, entry in enumerate(transcript):
            if entry.speaker is not Speaker.COUNTERPART:
                continue
            objection = detect_objection(entry.text, transcript, i)
            if objection is None:
                continue
            count += 1
            assessment = assess_objection_handling(i, transcript, objection.type)
            if assessment.is_resolved or assessment.was_handled:
                resolved += 1
            penalty += objection_penalty(
                objection.severity,
                self._signals.recency_multiplier(i, total),
                recovery_key(assessment),
                cfg.severity_penalties,
                cfg.recovery_factors,
            )
        return ObjectionSummary(count=count, resolved=resolved, penalty=penalty)

    def confidence_ramp(self, elapsed_s: float) -> float:
        """Piecewise-linear evidence ramp from ~0.2 at start to 1.0 after 90 s."""
        bands = self._config.ramp_bands
        if elapsed_s <= bands[0][0]:
            return bands[0][1]
        for (t0, f0), (t1, f1) in zip(bands, bands[1:]):
            if elapsed_s < t1:
                return f0 + (f1 - f0) * (elapsed_s - t0) / (t1 - t0)
        return bands[-1][1]


def _counterpart_texts(transcript: Sequence[TranscriptEntry]) -> list[str]:
    return [e.text for e in transcript if e.speaker is Speaker.COUNTERPART]


def buying_signals_score(transcript: Sequence[TranscriptEntry], points: float = 15.0) -> float:
    """Points per counterpart buying-signal hit, capped at 100."""
    hits = sum(1 for text in _counterpart_texts(transcript) for p in BUYING_SIGNAL_PATTERNS if p.search(text))
    return min(100.0, hits * points)


def positive_language_score(transcript: Sequence[TranscriptEntry]) -> float:
    """Two-sided net language score; 50 when neither side registers."""
    positive = 0
    negative = 0
    for text in _counterpart_texts(transcript):
        positive += sum(1 for p in POSITIVE_LANGUAGE_PATTERNS if p.search(text))
        negative += sum(1 for p in NEGATIVE_LANGUAGE_PATTERNS if p.search(text))
    if positive + negative == 0:
        return _NEUTRAL
    return positive / (positive + negative) * 100.0
