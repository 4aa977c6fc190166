"""Tunable constants for the energy and sentiment engines.

The defaults are empirically chosen values carried over from the field
deployment of the coaching engine. They are kept as overridable fields
rather than hard-coded so they can be retuned without touching control
flow::

    import dataclasses
    cfg = dataclasses.replace(EnergyConfig(), smoothing_alpha=0.5)
    engine = EnergyScoreEngine(config=cfg)
"""

from dataclasses import dataclass, field

_WEIGHT_TOLERANCE = 1e-9


def _check_weights(name: str, weights: dict[str, float]) -> None:
    total = sum(weights.values())
    if abs(total - 1.0) > _WEIGHT_TOLERANCE:
        raise ValueError(f"{name} must sum to 1.0, got {total:.6f}")


@dataclass(frozen=True)
class EnergyConfig:
    """Constants for AudioFeatureExtractor, BaselineCalibrator and EnergyScoreEngine.

    Attributes:
        vad_rms_threshold: Linear RMS a frame must exceed to count as speech.
        vad_db_threshold: Volume (dB) a frame must exceed to count as speech.
        pitch_gate_db: Pitch is only estimated above this volume.
        pitch_min_hz / pitch_max_hz: Autocorrelation lag search range.
        pitch_min_correlation: Normalized correlation a lag must reach to
            count as a pitch peak.
        calibration_window_s: Baseline learning duration.
        smoothing_alpha: Weight of the previous score in exponential smoothing.
        silence_decay: Points removed from the score on each silent tick.
        speech_db_threshold: dB level counted as "speaking" for the ratio factor.
        wpm_window_s: Rolling transcript window for words-per-minute.
        wpm_cap: Upper bound on any WPM estimate.
        weights: Factor weights, must sum to 1.0.
    """

    vad_rms_threshold: float = 0.02
    vad_db_threshold: float = -45.0
    pitch_gate_db: float = -50.0
    pitch_min_hz: float = 80.0
    pitch_max_hz: float = 300.0
    pitch_min_correlation: float = 0.3
    min_db: float = -60.0
    max_db: float = 0.0

    calibration_window_s: float = 5.0
    min_volume_std: float = 5.0
    volume_std_weight: float = 0.7

    pitch_history: int = 100
    volume_history: int = 100
    activity_history: int = 200

    initial_score: float = 50.0
    smoothing_alpha: float = 0.7
    silence_decay: float = 5.0
    speech_db_threshold: float = -45.0

    wpm_window_s: float = 15.0
    wpm_cap: float = 200.0
    min_fallback_minutes: float = 0.5

    low_threshold: float = 40.0
    high_threshold: float = 70.0

    weights: dict[str, float] = field(
        default_factory=lambda: {
            "speaking_pace": 0.30,
            "pitch_variation": 0.30,
            "volume_level": 0.20,
            "speaking_ratio": 0.20,
        }
    )

    def __post_init__(self) -> None:
        _check_weights("EnergyConfig.weights", self.weights)
        if self.pitch_min_hz <= 0 or self.pitch_max_hz <= self.pitch_min_hz:
            raise ValueError("pitch range must satisfy 0 < pitch_min_hz < pitch_max_hz")


@dataclass(frozen=True)
class SentimentConfig:
    """Constants for SentimentScoreEngine and the objection penalty model.

    Attributes:
        early_fraction: Share of utterances forming the early window.
        recent_fraction: Share of utterances forming the recent window.
        window_weights: Early/middle/recent blend, must sum to 1.0.
        recency_start_fraction: Utterances past this point of the
            conversation get the recency multiplier.
        recency_multiplier_min / recency_multiplier_max: Multiplier range,
            growing linearly toward the last utterance.
        severity_penalties: Base penalty per objection severity.
        recovery_factors: Penalty scale per handling outcome. The handling
            assessment only grades an objection "excellent" once it is also
            resolved, so recovery_key reports such objections as "resolved";
            the "excellent" tier applies only when a caller passes that key
            to objection_penalty directly.
        ramp_bands: (seconds, factor) breakpoints for the confidence ramp.
        smoothing_alpha: Weight of the new value in exponential smoothing.
    """

    early_fraction: float = 0.30
    recent_fraction: float = 0.35
    window_weights: tuple[float, float, float] = (0.15, 0.25, 0.60)

    recency_start_fraction: float = 0.60
    recency_multiplier_min: float = 1.2
    recency_multiplier_max: float = 1.5

    max_improving_bonus: float = 15.0
    max_declining_penalty: float = 10.0
    momentum_threshold: float = 10.0
    max_momentum_bonus: float = 8.0

    severity_penalties: dict[str, float] = field(
        default_factory=lambda: {"critical": 22.0, "high": 16.0, "medium": 10.0, "low": 5.0}
    )
    recovery_factors: dict[str, float] = field(
        default_factory=lambda: {
            "resolved": 0.3,
            "excellent": 0.4,
            "good": 0.5,
            "adequate": 0.7,
            "unhandled": 1.0,
        }
    )

    buying_signal_points: float = 15.0

    factor_weights: dict[str, float] = field(
        default_factory=lambda: {
            "transcript_sentiment": 0.45,
            "buying_signals": 0.30,
            "positive_language": 0.15,
            "objection_resolution": 0.10,
        }
    )

    ramp_bands: tuple[tuple[float, float], ...] = (
        (0.0, 0.2),
        (10.0, 0.35),
        (30.0, 0.6),
        (90.0, 1.0),
    )

    max_buying_bonus: float = 7.5
    max_resolution_penalty: float = 5.0

    smoothing_alpha: float = 0.2
    low_threshold: float = 30.0
    positive_threshold: float = 60.0

    def __post_init__(self) -> None:
        _check_weights("SentimentConfig.factor_weights", self.factor_weights)
        _check_weights(
            "SentimentConfig.window_weights",
            dict(zip(("early", "middle", "recent"), self.window_weights)),
        )
        if self.early_fraction + self.recent_fraction > 1.0:
            raise ValueError("early_fraction + recent_fraction must not exceed 1.0")
