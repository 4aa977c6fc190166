import logging
import math
from collections import deque

from ._types import Baseline

logger = logging.getLogger(__name__)

_CALIBRATION_WINDOW_S = 5.0
_HISTORY_LEN = 100


class BaselineCalibrator:
    """Learns a per-session volume baseline during the first ~5 seconds.

    Every volume sample inside the calibration window updates an online
    mean, the running min/max, and a std-dev recomputed from the
    accumulated volume history. Once the window has elapsed the baseline
    freezes and further samples are ignored.

    The reference is self-referential (the rep's own mic level) rather
    than a population norm, since raw input levels vary widely by device
    and distance.
    """

    def __init__(
        self,
        calibration_window_s: float = _CALIBRATION_WINDOW_S,
        history_len: int = _HISTORY_LEN,
    ) -> None:
        self._calibration_window_s = calibration_window_s
        self._history: deque[float] = deque(maxlen=history_len)
        self._baseline: Baseline | None = None
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def baseline(self) -> Baseline | None:
        """The learned baseline, or None before the first sample."""
        return self._baseline

    def in_window(self, elapsed_s: float) -> bool:
        return not self._frozen and elapsed_s < self._calibration_window_s

    def record(self, volume_db: float, elapsed_s: float) -> bool:
        """Ingest one volume sample.

        Args:
            volume_db: Frame volume in dB.
            elapsed_s: Seconds since the session started.

        Returns:
            True if the sample was absorbed into the baseline, False if the
            window has closed (the baseline is frozen as a side effect).
        """
        if not self.in_window(elapsed_s):
            self.freeze()
            return False

        self._history.append(volume_db)
        b = self._baseline
        if b is None:
            self._baseline = Baseline(
                volume_mean=volume_db,
                volume_std=0.0,
                volume_min=volume_db,
                volume_max=volume_db,
                sample_count=1,
            )
            return True

        b.sample_count += 1
        b.volume_mean += (volume_db - b.volume_mean) / b.sample_count
        b.volume_min = min(b.volume_min, volume_db)
        b.volume_max = max(b.volume_max, volume_db)
        variance = sum((v - b.volume_mean) ** 2 for v in self._history) / len(self._history)
        b.volume_std = math.sqrt(variance)
        return True

    def freeze(self) -> None:
        if self._frozen:
            return
        self._frozen = True
        if self._baseline is not None:
            logger.info(
                "Baseline frozen: mean=%.1fdB std=%.1f range=[%.1f, %.1f] samples=%d",
                self._baseline.volume_mean,
                self._baseline.volume_std,
                self._baseline.volume_min,
                self._baseline.volume_max,
                self._baseline.sample_count,
            )

    def reset(self) -> None:
        self._history.clear()
        self._baseline = None
        self._frozen = False
