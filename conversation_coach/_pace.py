"""Speaking-pace estimation.

Two strategies, selected explicitly by ``estimate_pace``:

- ``transcript``: words per minute from the rep's entries in a rolling
  15-second window. If the window is empty, all rep words over the whole
  session (with a 30-second minimum duration) are used instead.
- ``audio``: used only when the transcript has no rep entries at all.
  Mean volume and the non-silent share of recent frames are combined
  into an activity score mapped onto a 100 to 180 WPM range.
"""

from collections.abc import Sequence

from ._types import PaceSource, Speaker, TranscriptEntry

_MIN_SILENCE_SAMPLES = 10
_AUDIO_WPM_FLOOR = 100.0
_AUDIO_WPM_SPAN = 80.0


def _word_count(text: str) -> int:
    return len(text.split())


def transcript_wpm(
    transcript: Sequence[TranscriptEntry],
    now: float,
    session_start: float,
    window_s: float = 15.0,
    cap: float = 200.0,
    min_fallback_minutes: float = 0.5,
) -> float | None:
    """Words per minute spoken by the rep, or None if the rep has not spoken."""
    rep_entries = [e for e in transcript if e.speaker is Speaker.REP]
    if not rep_entries:
        return None

    window_start = now - window_s
    recent = [e for e in rep_entries if e.timestamp >= window_start]
    if not recent:
        total_words = sum(_word_count(e.text) for e in rep_entries)
        minutes = max(min_fallback_minutes, (now - session_start) / 60.0)
        return min(cap, total_words / minutes)

    words = sum(_word_count(e.text) for e in recent)
    return min(cap, max(0.0, words / (window_s / 60.0)))


def silence_percent(volume_samples: Sequence[float], threshold_db: float = -45.0) -> float:
    """Percentage of samples below the speech threshold (0 with too few samples)."""
    if len(volume_samples) < _MIN_SILENCE_SAMPLES:
        return 0.0
    silent = sum(1 for v in volume_samples if v < threshold_db)
    return silent / len(volume_samples) * 100.0


def audio_activity_wpm(
    volume_history: Sequence[float],
    activity_samples: Sequence[float],
    threshold_db: float = -45.0,
) -> float:
    avg_volume = sum(volume_history) / len(volume_history) if volume_history else -60.0
    volume_norm = min(max((avg_volume + 60.0) / 60.0, 0.0), 1.0)
    activity = volume_norm * (1.0 - silence_percent(activity_samples, threshold_db) / 100.0)
    return _AUDIO_WPM_FLOOR + activity * _AUDIO_WPM_SPAN


def estimate_pace(
    transcript: Sequence[TranscriptEntry],
    now: float,
    session_start: float,
    volume_history: Sequence[float],
    activity_samples: Sequence[float],
    window_s: float = 15.0,
    cap: float = 200.0,
    min_fallback_minutes: float = 0.5,
    threshold_db: float = -45.0,
) -> tuple[float, PaceSource]:
    """Pick the pace strategy and return (wpm, source)."""
    wpm = transcript_wpm(transcript, now, session_start, window_s, cap, min_fallback_minutes)
    if wpm is not None:
        return wpm, "transcript"
    return audio_activity_wpm(volume_history, activity_samples, threshold_db), "audio"


def normalize_pace(wpm: float) -> float:
    """Map WPM onto 0-100, peaking across the 140-160 WPM ideal band.

    100 WPM -> 30, 140 -> 70, 160 -> 85, 180 -> 70, very fast floors at 40.
    """
    if wpm < 100:
        score = max(wpm, 0.0) / 100.0 * 30.0
    elif wpm < 140:
        score = 30.0 + (wpm - 100.0) / 40.0 * 40.0
    elif wpm < 160:
        score = 70.0 + (wpm - 140.0) / 20.0 * 15.0
    elif wpm < 180:
        score = 85.0 - (wpm - 160.0) / 20.0 * 15.0
    else:
        score = max(40.0, 70.0 - (wpm - 180.0) / 20.0 * 30.0)
    return min(max(score, 0.0), 100.0)
