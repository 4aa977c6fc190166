"""
Local demo: runs a scripted doorstep sales conversation through a
CoachingSession without a microphone, a transport, or real time.

Synthetic voiced audio is pushed into a FrameBufferSource and the session
clock is simulated, so the whole 90-second conversation runs instantly.

Usage:
    python examples/demo_local.py
    python examples/demo_local.py --persona elderly_couple
"""

import argparse
import asyncio
import logging

import numpy as np

from conversation_coach import (
    PERSONA_PRESETS,
    CoachingSession,
    ConversationStepEvent,
    FrameBufferSource,
    SentimentScoreEvent,
    Speaker,
)

# ── Colour helpers ────────────────────────────────────────────────────────────

RESET = "\033[0m"
BOLD = "\033[1m"
RED = "\033[31m"
YELLOW = "\033[33m"
GREEN = "\033[32m"
CYAN = "\033[36m"
MAGENTA = "\033[35m"
DIM = "\033[2m"

SAMPLE_RATE = 16000


def _c(text: str, colour: str) -> str:
    return f"{colour}{text}{RESET}"


def _bar(score: float, width: int = 20) -> str:
    filled = int(score / 100.0 * width)
    bar = "█" * filled + "░" * (width - filled)
    if score < 30:
        colour = RED
    elif score < 60:
        colour = YELLOW
    else:
        colour = GREEN
    return f"{colour}{bar}{RESET} {score:5.1f}"


# ── Scripted conversation ─────────────────────────────────────────────────────

_SCRIPT = [
    ("Hi there, my name is Sam, I'm with Acme Pest. We're licensed and insured.", "Okay, what's this about?"),
    ("We're treating a few homes in your area this week. Have you noticed any ants?", "We've had ants in the kitchen, I guess."),
    ("That makes sense this time of year. Is it mostly near the sink?", "Yeah. Is the spray safe for my kids?"),
    ("Absolutely, it's EPA registered and family safe. Pets too.", "Honestly it sounds too expensive for us."),
    ("I hear you. It's less than a dollar a day, and the inspection is free, no obligation.", "Oh I see, that makes sense."),
    ("Would a morning or afternoon visit work better for the free inspection?", "Afternoons are better. What time works?"),
]


class _SimClock:
    def __init__(self) -> None:
        self.t = 0.0

    def __call__(self) -> float:
        return self.t


def _speech(rng: np.random.Generator, n: int = 2048) -> np.ndarray:
    """Synthetic voiced frame: a wandering fundamental plus breath noise."""
    f0 = rng.uniform(110.0, 220.0)
    amp = rng.uniform(0.08, 0.4)
    t = np.arange(n) / SAMPLE_RATE
    tone = amp * np.sin(2 * np.pi * f0 * t) + 0.3 * amp * np.sin(4 * np.pi * f0 * t)
    return (tone + rng.normal(0.0, 0.01, n)).astype(np.float32)


async def run(persona_key: str) -> None:
    persona = PERSONA_PRESETS[persona_key]
    clock = _SimClock()
    source = FrameBufferSource(sample_rate=SAMPLE_RATE)
    rng = np.random.default_rng(42)

    # Intervals are irrelevant here: ticks are driven manually on the sim clock
    session = CoachingSession(
        persona,
        audio_source=source,
        session_id="demo-001",
        energy_interval_s=3600.0,
        sentiment_interval_s=3600.0,
        clock=clock,
    )

    def on_sentiment(event: SentimentScoreEvent) -> None:
        print(f"    {DIM}sentiment{RESET} {_bar(event.score)} {DIM}({event.level}, objections {event.objections_resolved}/{event.objection_count}){RESET}")

    def on_step(event: ConversationStepEvent) -> None:
        label = f"{event.previous_state} → {event.state}"
        if event.terminal_result:
            label += f" [{event.terminal_result}]"
        print(f"    {MAGENTA}phase{RESET}     {label}")

    session.events.subscribe(SentimentScoreEvent, on_sentiment)
    session.events.subscribe(ConversationStepEvent, on_step)

    print(f"\n{BOLD}{CYAN}{'═' * 66}{RESET}")
    print(f"{BOLD}{CYAN}  Conversation Coach — Local Demo  ({persona.name}){RESET}")
    print(f"{BOLD}{CYAN}{'═' * 66}{RESET}\n")

    async with session:
        # Calibration: 5 s of the rep's normal speaking level
        for _ in range(10):
            source.push(_speech(rng))
            session.run_energy_tick()
            clock.t += 0.5
        print(f"{DIM}Baseline calibrated on {session.elapsed():.0f}s of audio{RESET}\n")

        for rep_text, counterpart_text in _SCRIPT:
            print(f"  {BOLD}REP{RESET}: {rep_text}")
            for _ in range(12):
                source.push(_speech(rng))
                session.run_energy_tick()
                clock.t += 0.5
            await session.append_utterance(Speaker.REP, rep_text)
            energy = session.last_energy
            if energy is not None:
                print(f"    {DIM}energy{RESET}    {_bar(energy.score)} {DIM}({energy.level}, {energy.wpm or 0:.0f} wpm via {energy.pace_source}){RESET}")

            clock.t += 3.0
            print(f"  {BOLD}COUNTERPART{RESET}: {counterpart_text}")
            await session.append_utterance(Speaker.COUNTERPART, counterpart_text)
            session.observe_turn(rep_text, counterpart_text)
            print(f"    {DIM}persona{RESET}   trust={session.persona.trust_level:+d} interest={session.persona.interest_level}\n")
            if session.terminal_result is not None:
                break

        report = session.quality_report()
        success = session.check_success()
        directive = session.behavioral_directive()
        latency = session.get_latency_stats()

    print(f"{BOLD}{CYAN}{'═' * 66}{RESET}")
    print(f"{BOLD}{CYAN}  Post-call review{RESET}")
    print(f"{BOLD}{CYAN}{'═' * 66}{RESET}\n")
    print(f"  Discovery         : {report.discovery_score:.0f}/25")
    print(f"  Value             : {report.value_score:.0f}/25")
    print(f"  Objection handling: {report.objection_score:.0f}/25")
    print(f"  Call to action    : {report.cta_score:.0f}/25")
    print(f"  Total             : {_bar(report.total)}")
    print(f"  Success criteria  : {_c('met', GREEN) if success else _c('not met', YELLOW)}")
    print(f"  Last directive    : {DIM}{directive}{RESET}")

    if report.suggestions:
        print(f"\n  {BOLD}{YELLOW}Suggestions:{RESET}")
        for s in report.suggestions:
            print(f"    • {s}")

    print(f"\n  {BOLD}{DIM}Stage latency (ms):{RESET}")
    for stage, stats in latency.items():
        print(f"    {stage:<17} mean={stats['mean_ms']:.2f} p95={stats['p95_ms']:.2f} max={stats['max_ms']:.2f}")
    print()


def main() -> None:
    parser = argparse.ArgumentParser(description="Run a scripted coaching session locally.")
    parser.add_argument("--persona", default="suburban_family", choices=sorted(PERSONA_PRESETS))
    parser.add_argument("--verbose", action="store_true", help="Show engine debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(run(args.persona))


if __name__ == "__main__":
    main()
