"""Real-time coaching engine for sales conversations.

Core components:
  CoachingSession       — owns the engines, background loops and event bus
  EnergyScoreEngine     — 0-100 vocal energy from pitch, volume, pace, speaking ratio
  SentimentScoreEngine  — 0-100 conversation sentiment from the live transcript
  ConversationStateMachine — deterministic phase tracking with terminal outcomes
  PersonaSimulator      — trust / interest model of a scripted counterpart

Supporting modules:
  AudioFeatureExtractor — per-frame pitch, volume and voice activity
  BaselineCalibrator    — per-session volume baseline (first ~5 seconds)
  TextSignalLibrary     — weighted phrase tables for transcript scoring
  detect_objection / assess_objection_handling — objection model
  LatencyTracker        — per-stage latency budgeting with OTEL export

Minimal wiring example::

    from conversation_coach import (
        CoachingSession, FrameBufferSource, PERSONA_PRESETS,
        EnergyScoreEvent, SentimentScoreEvent, ConversationStepEvent, Speaker,
    )

    source = FrameBufferSource(sample_rate=16000)
    session = CoachingSession(PERSONA_PRESETS["suburban_family"], audio_source=source)

    session.events.subscribe(EnergyScoreEvent, lambda e: print(f"energy={e.score:.0f} ({e.level})"))
    session.events.subscribe(SentimentScoreEvent, lambda e: print(f"sentiment={e.score:.0f}"))

    async with session:
        source.push(pcm_chunk)                      # from your transport
        await session.append_utterance(Speaker.REP, "Hi, I'm with Acme Pest.")
        await session.append_utterance(Speaker.COUNTERPART, "What chemicals do you use?")
        step = session.observe_turn("Hi, I'm with Acme Pest.", "What chemicals do you use?")
        print(step.state, session.behavioral_directive())
"""

from .session import CoachingSession
from .events import (
    CalibrationCompleteEvent,
    CoachEvent,
    ConversationStepEvent,
    EnergyScoreEvent,
    EventBus,
    SentimentScoreEvent,
    SessionErrorEvent,
)
from ._audio_features import AudioFeatureExtractor, detect_pitch, frame_rms, rms_to_db
from ._audio_source import (
    AudioAcquisitionError,
    AudioSource,
    FrameBufferSource,
    MicrophoneSource,
)
from ._baseline import BaselineCalibrator
from ._config import EnergyConfig, SentimentConfig
from ._energy import EnergyScoreEngine
from ._objections import (
    assess_objection_handling,
    detect_micro_commitment,
    detect_objection,
    detect_technique,
    objection_penalty,
)
from ._persona import PERSONA_PRESETS, TEMPERATURE_STARTING_SENTIMENT, PersonaSimulator, persona_by_type
from ._sentiment import SentimentScoreEngine
from ._signals import OBJECTION_CATEGORIES, TextSignalLibrary
from ._state_machine import (
    ConversationStateMachine,
    analyze_conversation_quality,
    should_terminate,
    step,
)
from ._telemetry import LATENCY_BUDGETS_MS, LatencyTracker
from ._types import (
    AudioFrame,
    Baseline,
    ConversationState,
    EnergyFactors,
    EnergyResult,
    FrameFeatures,
    HandlingAssessment,
    ObjectionMatch,
    Persona,
    PersonaState,
    QualityReport,
    SentimentFactors,
    SentimentResult,
    Speaker,
    StepResult,
    SuccessCriteria,
    TerminalResult,
    TerminationDecision,
    TranscriptEntry,
)

__all__ = [
    # Session
    "CoachingSession",
    # Events
    "CalibrationCompleteEvent",
    "CoachEvent",
    "ConversationStepEvent",
    "EnergyScoreEvent",
    "EventBus",
    "SentimentScoreEvent",
    "SessionErrorEvent",
    # Audio
    "AudioAcquisitionError",
    "AudioFeatureExtractor",
    "AudioSource",
    "BaselineCalibrator",
    "FrameBufferSource",
    "MicrophoneSource",
    "detect_pitch",
    "frame_rms",
    "rms_to_db",
    # Energy
    "EnergyConfig",
    "EnergyScoreEngine",
    # Sentiment
    "OBJECTION_CATEGORIES",
    "SentimentConfig",
    "SentimentScoreEngine",
    "TextSignalLibrary",
    "assess_objection_handling",
    "detect_micro_commitment",
    "detect_objection",
    "detect_technique",
    "objection_penalty",
    # Conversation state
    "ConversationStateMachine",
    "analyze_conversation_quality",
    "should_terminate",
    "step",
    # Persona
    "PERSONA_PRESETS",
    "TEMPERATURE_STARTING_SENTIMENT",
    "PersonaSimulator",
    "persona_by_type",
    # Telemetry
    "LATENCY_BUDGETS_MS",
    "LatencyTracker",
    # Data types
    "AudioFrame",
    "Baseline",
    "ConversationState",
    "EnergyFactors",
    "EnergyResult",
    "FrameFeatures",
    "HandlingAssessment",
    "ObjectionMatch",
    "Persona",
    "PersonaState",
    "QualityReport",
    "SentimentFactors",
    "SentimentResult",
    "Speaker",
    "StepResult",
    "SuccessCriteria",
    "TerminalResult",
    "TerminationDecision",
    "TranscriptEntry",
]
