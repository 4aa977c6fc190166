from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

import numpy as np


class Speaker(str, Enum):
    """Which party of the conversation produced an utterance."""

    REP = "rep"
    COUNTERPART = "counterpart"


class ConversationState(str, Enum):
    OPENING = "opening"
    DISCOVERY = "discovery"
    VALUE = "value"
    OBJECTION = "objection"
    CTA = "cta"
    SCHEDULING = "scheduling"
    TERMINAL = "terminal"


class TerminalResult(str, Enum):
    REJECTED = "rejected"
    ADVANCED = "advanced"
    CLOSED = "closed"


EnergyLevel = Literal["low", "good", "high"]
SentimentLevel = Literal["low", "building", "positive"]
Severity = Literal["low", "medium", "high", "critical"]
HandlingQuality = Literal["excellent", "good", "adequate", "poor"]
PaceSource = Literal["transcript", "audio", "none"]


@dataclass(frozen=True)
class TranscriptEntry:
    """One utterance in the live transcript.

    Attributes:
        speaker: Who said it.
        text: Raw utterance text.
        timestamp: Seconds on the session clock when the utterance ended.
    """

    speaker: Speaker
    text: str
    timestamp: float


@dataclass
class AudioFrame:
    """A fixed-size window of normalized float samples in [-1, 1]."""

    samples: np.ndarray
    sample_rate: int


@dataclass
class FrameFeatures:
    """Per-frame output of the feature extractor."""

    pitch_hz: float
    volume_db: float
    is_voice_active: bool


@dataclass
class Baseline:
    """Per-session volume baseline learned during calibration.

    Frozen once the calibration window has elapsed.
    """

    volume_mean: float = 0.0
    volume_std: float = 0.0
    volume_min: float = 0.0
    volume_max: float = 0.0
    sample_count: int = 0


@dataclass
class EnergyFactors:
    volume_level: float = 0.0
    pitch_variation: float = 0.0
    speaking_pace: float = 0.0
    speaking_ratio: float = 0.0


@dataclass
class EnergyResult:
    """Output of one energy tick."""

    score: float
    level: EnergyLevel
    factors: EnergyFactors
    voice_active: bool
    wpm: float | None = None
    pace_source: PaceSource = "none"


@dataclass
class SentimentFactors:
    transcript_sentiment: float = 50.0
    buying_signals: float = 0.0
    objection_resolution: float = 100.0
    positive_language: float = 50.0


@dataclass
class SentimentResult:
    """Output of one sentiment update."""

    score: float
    level: SentimentLevel
    factors: SentimentFactors
    objection_count: int = 0
    objections_resolved: int = 0


@dataclass
class ObjectionMatch:
    """A detected counterpart objection and the suggested handling approach."""

    type: str
    severity: Severity
    confidence: float
    sub_category: str | None = None
    approach: str | None = None


@dataclass
class HandlingAssessment:
    """How well an objection was handled in the follow-up window."""

    was_handled: bool
    is_resolved: bool
    quality: HandlingQuality | None
    response_text: str = ""
    technique_used: str | None = None
    resolution_signals: list[str] = field(default_factory=list)


@dataclass
class StepResult:
    """Result of a single state-machine step."""

    state: ConversationState
    terminal_result: TerminalResult | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state is ConversationState.TERMINAL


@dataclass
class TerminationDecision:
    terminal: bool
    result: TerminalResult | None = None
    reason: str | None = None


@dataclass
class QualityReport:
    """Post-hoc rubric, each sub-score out of 25."""

    discovery_score: float
    value_score: float
    objection_score: float
    cta_score: float
    suggestions: list[str] = field(default_factory=list)

    @property
    def total(self) -> float:
        return self.discovery_score + self.value_score + self.objection_score + self.cta_score


@dataclass(frozen=True)
class SuccessCriteria:
    requires_scheduling: bool = False
    requires_budget_check: bool = False
    requires_roi_quant: bool = False


@dataclass(frozen=True)
class Persona:
    """Static definition of a simulated counterpart.

    Created once per session and never mutated.
    """

    name: str
    role: str
    pain: tuple[str, ...]
    objections: tuple[str, ...]
    budget: str
    urgency: Literal["low", "medium", "high"]
    hidden_goal: str
    success_criteria: SuccessCriteria = SuccessCriteria()
    starting_sentiment: float = 5.0


@dataclass
class PersonaState:
    trust_level: int
    interest_level: int
    turns_elapsed: int = 0
    utterance_log: list[str] = field(default_factory=list)
