"""Per-stage latency instrumentation for a coaching session.

Tracks latency with budget thresholds and logs warnings when a budget
is exceeded. Samples are kept in memory and also recorded into an
OpenTelemetry histogram, which is a no-op until the host process
installs a MeterProvider.

Stage budgets (ms):
    audio_read          5
    energy_tick        20
    sentiment_update   50
    state_step          2
    end_to_end        100
"""

import logging
import time
from collections import defaultdict
from contextlib import contextmanager
from typing import Iterator

from opentelemetry import metrics as otel_metrics

logger = logging.getLogger(__name__)

LATENCY_BUDGETS_MS: dict[str, float] = {
    "audio_read": 5.0,
    "energy_tick": 20.0,
    "sentiment_update": 50.0,
    "state_step": 2.0,
    "end_to_end": 100.0,
}

_MAX_SAMPLES_PER_STAGE = 2000


class LatencyTracker:
    """Measures and records per-stage latency.

    Usage::

        tracker = LatencyTracker()

        with tracker.measure("energy_tick"):
            result = engine.tick(frame, transcript)

        stats = tracker.get_stats()
        # {"energy_tick": {"mean_ms": 1.2, "p95_ms": 2.8, "max_ms": 4.1, "count": 240.0}}

    Args:
        service_name: Meter name for the OTEL histogram.
        budgets_ms: Per-stage budgets; defaults to LATENCY_BUDGETS_MS.
    """

    def __init__(
        self,
        service_name: str = "conversation_coach",
        budgets_ms: dict[str, float] | None = None,
    ) -> None:
        self._budgets = dict(LATENCY_BUDGETS_MS if budgets_ms is None else budgets_ms)
        self._samples: dict[str, list[float]] = defaultdict(list)
        meter = otel_metrics.get_meter(service_name)
        self._histogram = meter.create_histogram(
            name="conversation_coach.stage_latency_ms",
            description="Per-stage coaching pipeline latency in milliseconds",
            unit="ms",
        )

    @contextmanager
    def measure(self, stage: str) -> Iterator[None]:
        """Time the enclosed block and record it under ``stage``."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self._record(stage, (time.perf_counter() - start) * 1000.0)

    def _record(self, stage: str, elapsed_ms: float) -> None:
        samples = self._samples[stage]
        samples.append(elapsed_ms)
        if len(samples) > _MAX_SAMPLES_PER_STAGE:
            del samples[0]

        self._histogram.record(elapsed_ms, {"stage": stage})

        budget = self._budgets.get(stage)
        if budget is not None and elapsed_ms > budget:
            logger.warning(
                "Latency budget exceeded: stage=%s elapsed=%.1fms budget=%.1fms",
                stage,
                elapsed_ms,
                budget,
            )

    def get_stats(self) -> dict[str, dict[str, float]]:
        """Return mean_ms, max_ms, p95_ms and count per stage."""
        result: dict[str, dict[str, float]] = {}
        for stage, samples in self._samples.items():
            if not samples:
                continue
            sorted_s = sorted(samples)
            n = len(sorted_s)
            p95_idx = max(0, int(n * 0.95) - 1)
            result[stage] = {
                "mean_ms": round(sum(samples) / n, 2),
                "max_ms": round(sorted_s[-1], 2),
                "p95_ms": round(sorted_s[p95_idx], 2),
                "count": float(n),
            }
        return result

    def reset(self) -> None:
        self._samples.clear()

    def prometheus_text(self) -> str:
        """Format latency stats in Prometheus text exposition format."""
        lines: list[str] = []
        for stage, s in self.get_stats().items():
            base = "conversation_coach_stage_latency_ms"
            label = f'{{stage="{stage}"}}'
            lines += [
                f"# HELP {base} Stage latency in ms",
                f"# TYPE {base} gauge",
                f"{base}_mean{label} {s['mean_ms']}",
                f"{base}_max{label} {s['max_ms']}",
                f"{base}_p95{label} {s['p95_ms']}",
                f"{base}_count{label} {s['count']}",
            ]
        return "\n".join(lines)
