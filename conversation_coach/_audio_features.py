"""Per-frame pitch, volume and voice-activity extraction.

Pitch uses normalized autocorrelation over the lag range of a speaking
voice (80 to 300 Hz). Volume is frame RMS in dB clamped to [-60, 0].
Voice activity requires both the linear RMS gate and the dB gate, so a
loud hum below the RMS gate or a quiet broadband noise floor does not
register as speech.
"""

import logging

import numpy as np

from ._config import EnergyConfig
from ._types import AudioFrame, FrameFeatures

logger = logging.getLogger(__name__)

_EPSILON = 1e-10


def frame_rms(samples: np.ndarray) -> float:
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(samples, dtype=np.float64))))


def rms_to_db(rms: float, min_db: float = -60.0, max_db: float = 0.0) -> float:
    db = 20.0 * np.log10(rms + _EPSILON)
    return float(min(max(db, min_db), max_db))


def detect_pitch(
    samples: np.ndarray,
    sample_rate: int,
    min_hz: float = 80.0,
    max_hz: float = 300.0,
    min_correlation: float = 0.3,
) -> float:
    """Estimate the fundamental frequency of a frame.

    Args:
        samples: Mono float samples.
        sample_rate: Samples per second.
        min_hz: Lowest pitch searched (longest lag).
        max_hz: Highest pitch searched (shortest lag).
        min_correlation: Normalized correlation the best lag must exceed.

    Returns:
        Pitch in Hz, or 0.0 when no correlation peak is found.
    """
    n = samples.size
    min_lag = int(sample_rate // max_hz)
    max_lag = min(int(sample_rate // min_hz), n // 2)
    if min_lag < 1 or max_lag <= min_lag:
        return 0.0

    x = samples.astype(np.float64) - float(np.mean(samples))
    energy = float(np.dot(x, x))
    if energy <= _EPSILON:
        return 0.0

    lags = np.arange(min_lag, max_lag)
    corr = np.array([np.dot(x[: n - lag], x[lag:]) for lag in lags]) / energy

    best = int(np.argmax(corr))
    if corr[best] <= min_correlation:
        return 0.0
    return float(sample_rate / lags[best])


class AudioFeatureExtractor:
    """Turns one audio frame into (pitch, volume, voice activity).

    Args:
        config: Thresholds and pitch search range.
    """

    def __init__(self, config: EnergyConfig | None = None) -> None:
        self._config = config or EnergyConfig()

    def extract(self, frame: AudioFrame) -> FrameFeatures:
        if frame.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {frame.sample_rate}")

        cfg = self._config
        samples = np.nan_to_num(np.asarray(frame.samples, dtype=np.float64).ravel())
        rms = frame_rms(samples)
        volume_db = rms_to_db(rms, cfg.min_db, cfg.max_db)

        pitch = 0.0
        if volume_db > cfg.pitch_gate_db:
            pitch = detect_pitch(
                samples,
                frame.sample_rate,
                min_hz=cfg.pitch_min_hz,
                max_hz=cfg.pitch_max_hz,
                min_correlation=cfg.pitch_min_correlation,
            )

        is_active = rms > cfg.vad_rms_threshold and volume_db > cfg.vad_db_threshold
        return FrameFeatures(pitch_hz=pitch, volume_db=volume_db, is_voice_active=is_active)
