"""EnergyScoreEngine: smoothed 0-100 vocal energy score.

Per tick:
  1. Extract (pitch, volume, VAD) from the latest frame and push them
     into the rolling histories.
  2. Inside the calibration window, feed the baseline and emit nothing.
  3. If the frame is not voice-active, decay the score by a fixed step
     and zero every factor.
  4. Otherwise score volume (baseline-relative), pitch variation,
     speaking pace and speaking ratio, blend with fixed weights and
     smooth exponentially.
"""

import logging
import statistics
import time
from collections import deque
from collections.abc import Callable, Sequence

from ._audio_features import AudioFeatureExtractor
from ._baseline import BaselineCalibrator
from ._config import EnergyConfig
from ._pace import estimate_pace, normalize_pace
from ._types import AudioFrame, Baseline, EnergyFactors, EnergyLevel, EnergyResult, TranscriptEntry

logger = logging.getLogger(__name__)


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return min(max(value, low), high)


def pitch_variation_percent(pitches: Sequence[float]) -> float:
    """Coefficient of variation (std / mean * 100) of the voiced pitch samples."""
    voiced = [p for p in pitches if p > 0]
    if len(voiced) < 2:
        return 0.0
    mean = statistics.fmean(voiced)
    if mean <= 0:
        return 0.0
    return statistics.pstdev(voiced, mu=mean) / mean * 100.0


def normalize_pitch_variation(cv_percent: float) -> float:
    """Map pitch CV onto 0-100.

    <10% is monotone (0-30), 10-30% is the healthy range (30-75),
    above 30% is highly dynamic (75-100, capped).
    """
    if cv_percent <= 0:
        return 0.0
    if cv_percent < 10:
        return cv_percent / 10.0 * 30.0
    if cv_percent < 30:
        return 30.0 + (cv_percent - 10.0) / 20.0 * 45.0
    return min(100.0, 75.0 + (cv_percent - 30.0) / 20.0 * 25.0)


def normalize_volume(volume_db: float, baseline: Baseline | None, min_std: float = 5.0, std_weight: float = 0.7) -> float:
    """Score volume relative to the session baseline.

    The std-scaled deviation from the baseline mean is blended with the
    frame's position inside the observed calibration range. Returns the
    neutral 50 when no baseline was learned.
    """
    if baseline is None or baseline.sample_count == 0:
        return 50.0
    deviation_score = 50.0 + 25.0 * (volume_db - baseline.volume_mean) / max(baseline.volume_std, min_std)
    span = baseline.volume_max - baseline.volume_min
    if span > 0:
        range_score = (volume_db - baseline.volume_min) / span * 100.0
    else:
        range_score = 50.0
    blended = std_weight * _clamp(deviation_score) + (1.0 - std_weight) * _clamp(range_score)
    return _clamp(blended)


def speaking_ratio(volume_samples: Sequence[float], threshold_db: float = -45.0) -> float:
    if not volume_samples:
        return 0.0
    speaking = sum(1 for v in volume_samples if v > threshold_db)
    return speaking / len(volume_samples) * 100.0


class EnergyScoreEngine:
    """Combines frame features and speaking pace into a smoothed energy score.

    One instance per session. Not thread-safe; ticks must be sequential.

    Args:
        config: Tunable thresholds, weights and history lengths.
        clock: Monotonic time source in seconds (injectable for tests).
    """

    def __init__(
        self,
        config: EnergyConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or EnergyConfig()
        self._clock = clock
        self._extractor = AudioFeatureExtractor(self._config)
        self._calibrator = BaselineCalibrator(
            calibration_window_s=self._config.calibration_window_s,
            history_len=self._config.volume_history,
        )
        self._pitch_history: deque[float] = deque(maxlen=self._config.pitch_history)
        self._volume_history: deque[float] = deque(maxlen=self._config.volume_history)
        self._activity_history: deque[float] = deque(maxlen=self._config.activity_history)
        self._score = self._config.initial_score
        self._factors = EnergyFactors()
        self._session_start = clock()

    @property
    def score(self) -> float:
        return self._score

    @property
    def factors(self) -> EnergyFactors:
        return self._factors

    @property
    def baseline(self) -> Baseline | None:
        return self._calibrator.baseline

    @property
    def is_calibrating(self) -> bool:
        return self._calibrator.in_window(self._clock() - self._session_start)

    @property
    def session_start(self) -> float:
        return self._session_start

    def start(self, session_start: float | None = None) -> None:
        """Reset all state and anchor the calibration window at session_start."""
        self.reset()
        if session_start is not None:
            self._session_start = session_start

    def reset(self) -> None:
        self._calibrator.reset()
        self._pitch_history.clear()
        self._volume_history.clear()
        self._activity_history.clear()
        self._score = self._config.initial_score
        self._factors = EnergyFactors()
        self._session_start = self._clock()

    def level(self, score: float | None = None) -> EnergyLevel:
        s = self._score if score is None else score
        if s < self._config.low_threshold:
            return "low"
        if s >= self._config.high_threshold:
            return "high"
        return "good"

    def tick(
        self,
        frame: AudioFrame,
        transcript: Sequence[TranscriptEntry] = (),
    ) -> EnergyResult | None:
        """Run one analysis tick.

        Args:
            frame: Latest audio window from the source.
            transcript: Session transcript, read-only.

        Returns:
            The emitted result, or None while the baseline is calibrating.
        """
        cfg = self._config
        now = self._clock()
        elapsed = now - self._session_start

        features = self._extractor.extract(frame)
        self._volume_history.append(features.volume_db)
        self._activity_history.append(features.volume_db)
        if features.pitch_hz > 0:
            self._pitch_history.append(features.pitch_hz)

        if self._calibrator.in_window(elapsed):
            self._calibrator.record(features.volume_db, elapsed)
            return None
        self._calibrator.freeze()

        if not features.is_voice_active:
            self._score = max(0.0, self._score - cfg.silence_decay)
            self._factors = EnergyFactors()
            logger.debug("Silent tick: energy decayed to %.1f", self._score)
            return EnergyResult(
                score=self._score,
                level=self.level(),
                factors=self._factors,
                voice_active=False,
            )

        wpm, source = estimate_pace(
            transcript,
            now,
            self._session_start,
            self._volume_history,
            self._activity_history,
            window_s=cfg.wpm_window_s,
            cap=cfg.wpm_cap,
            min_fallback_minutes=cfg.min_fallback_minutes,
            threshold_db=cfg.speech_db_threshold,
        )

        factors = EnergyFactors(
            volume_level=normalize_volume(
                features.volume_db,
                self._calibrator.baseline,
                min_std=cfg.min_volume_std,
                std_weight=cfg.volume_std_weight,
            ),
            pitch_variation=_clamp(normalize_pitch_variation(pitch_variation_percent(self._pitch_history))),
            speaking_pace=normalize_pace(wpm),
            speaking_ratio=_clamp(speaking_ratio(self._activity_history, cfg.speech_db_threshold)),
        )

        w = cfg.weights
        raw = (
            w["speaking_pace"] * factors.speaking_pace
            + w["pitch_variation"] * factors.pitch_variation
            + w["volume_level"] * factors.volume_level
            + w["speaking_ratio"] * factors.speaking_ratio
        )
        self._score = _clamp(cfg.smoothing_alpha * self._score + (1.0 - cfg.smoothing_alpha) * raw)
        self._factors = factors

        logger.debug(
            "Energy tick: raw=%.1f score=%.1f wpm=%.0f(%s) vol=%.1fdB pitch=%.0fHz",
            raw,
            self._score,
            wpm,
            source,
            features.volume_db,
            features.pitch_hz,
        )
        return EnergyResult(
            score=self._score,
            level=self.level(),
            factors=factors,
            voice_active=True,
            wpm=wpm,
            pace_source=source,
        )
