"""Objection detection and follow-up handling assessment.

An objection is a counterpart utterance matching one of the
OBJECTION_CATEGORIES tables. Handling is judged from the next eight
transcript entries: which technique the rep used in their first four
responses, and whether the counterpart's replies read as acceptance,
continued resistance, or a repeat of the same objection.
"""

import logging
import re
from collections.abc import Sequence

from ._signals import (
    MICRO_COMMITMENTS,
    NEGATIVE_INDICATORS,
    OBJECTION_CATEGORIES,
    POSITIVE_INDICATORS,
    TECHNIQUE_PATTERNS,
)
from ._types import HandlingAssessment, ObjectionMatch, Speaker, TranscriptEntry

logger = logging.getLogger(__name__)

_FOLLOWUP_WINDOW = 8
_REP_RESPONSES_CHECKED = 4
_CONTEXT_LOOKBACK = 3

_FAMILY = re.compile(r"(wife|husband|spouse|partner|kids|children|dog|pet|family)", re.IGNORECASE)
_DECISION_LANGUAGE = re.compile(
    r"(need|have|must|should|can'?t|won'?t|not my decision|speak to|ask|check|discuss|approval|permission|talk it over)",
    re.IGNORECASE,
)
_AFFIRMATIVE_OPENER = re.compile(r"^(yeah|yes|yep|uh huh|mm|hmm|okay|sure|alright|well|so|and|or)\b", re.IGNORECASE)
_DISCOVERY_PROMPT = re.compile(r"(tell me|how|what|who|where|when|do you|have you|are you)", re.IGNORECASE)
_EXPLICIT_REFUSAL = re.compile(r"(can'?t|won'?t|don'?t|\bnot\b|never|no way|impossible)", re.IGNORECASE)
_REP_EXPLAINING = re.compile(r"(explain|tell|show|here'?s|this is|\bwe\b)", re.IGNORECASE)

_ACCEPTANCE = re.compile(r"(i see|i understand|that makes sense|i get it)", re.IGNORECASE)
_NEXT_STEP = re.compile(r"(what.*include|how.*work|when.*start|what.*next)", re.IGNORECASE)
_AGREEMENT = re.compile(r"(sounds good|that works|i'?m ready|let'?s do it)", re.IGNORECASE)

_SUB_CATEGORIES: dict[str, tuple[tuple[str, re.Pattern[str]], ...]] = {
    "price": (
        ("price_affordability", re.compile(r"can'?t afford|can'?t pay|beyond.*budget|too much money|don'?t have.*money", re.IGNORECASE)),
        ("price_value_perception", re.compile(r"worth it|value|expensive|too much|overpriced|rip off", re.IGNORECASE)),
    ),
    "timing": (
        ("timing_busy", re.compile(r"busy|schedule|appointment|time|right now|today|this week", re.IGNORECASE)),
        ("timing_not_ready", re.compile(r"not ready|think about|decide|consider|need time|think it over", re.IGNORECASE)),
    ),
    "trust": (
        ("trust_legitimacy", re.compile(r"legitimate|real|scam|sketchy|door to door|never heard", re.IGNORECASE)),
        ("trust_references", re.compile(r"references|proof|guarantee|how do i know|who else|customers", re.IGNORECASE)),
    ),
}
_SUB_CATEGORY_DEFAULTS = {
    "price": "price_affordability",
    "timing": "timing_not_ready",
    "trust": "trust_legitimacy",
}


def _follows_discovery_question(context: Sequence[TranscriptEntry] | None, index: int | None) -> bool:
    if not context or index is None or index <= 0 or index > len(context):
        return False
    prev = context[index - 1].text.strip()
    return prev.endswith("?") and bool(_DISCOVERY_PROMPT.search(prev))


def _is_casual_family_mention(text: str, context: Sequence[TranscriptEntry] | None, index: int | None) -> bool:
    """True for rapport small-talk that mentions family without any decision language."""
    if not _FAMILY.search(text) or _DECISION_LANGUAGE.search(text):
        return False
    return bool(_AFFIRMATIVE_OPENER.search(text.strip())) or _follows_discovery_question(context, index)


def _sub_category(objection_type: str, text: str) -> str | None:
    for name, pattern in _SUB_CATEGORIES.get(objection_type, ()):
        if pattern.search(text):
            return name
    return _SUB_CATEGORY_DEFAULTS.get(objection_type)


def _matches(objection_type: str, pattern: re.Pattern[str], text: str) -> bool:
    if not pattern.search(text):
        return False
    if OBJECTION_CATEGORIES[objection_type].requires_context:
        return bool(_DECISION_LANGUAGE.search(text))
    return True


def _confidence(
    objection_type: str,
    text: str,
    context: Sequence[TranscriptEntry] | None,
    index: int | None,
) -> float:
    category = OBJECTION_CATEGORIES[objection_type]
    matching = sum(1 for p in category.patterns if _matches(objection_type, p, text))
    confidence = 0.5
    if matching > 1:
        confidence += 0.2
    if matching > 2:
        confidence += 0.1
    if _EXPLICIT_REFUSAL.search(text):
        confidence += 0.1
    if context and index is not None and 0 < index <= len(context):
        prev = context[index - 1]
        if prev.speaker is Speaker.REP and _REP_EXPLAINING.search(prev.text):
            confidence += 0.1
    return min(1.0, confidence)


def detect_objection(
    text: str,
    context: Sequence[TranscriptEntry] | None = None,
    index: int | None = None,
) -> ObjectionMatch | None:
    """Classify a counterpart utterance as an objection.

    Categories are checked in table order; the first match wins.

    Args:
        text: Counterpart utterance.
        context: Full transcript, used to suppress small-talk false positives.
        index: Position of ``text`` in ``context``.

    Returns:
        The matched objection, or None.
    """
    if not text or _is_casual_family_mention(text, context, index):
        return None

    for objection_type, category in OBJECTION_CATEGORIES.items():
        for pattern in category.patterns:
            if _matches(objection_type, pattern, text):
                return ObjectionMatch(
                    type=objection_type,
                    severity=category.severity,  # type: ignore[arg-type]
                    confidence=_confidence(objection_type, text, context, index),
                    sub_category=_sub_category(objection_type, text),
                    approach=category.approach,
                )
    return None


def detect_technique(text: str) -> str | None:
    """Return the display name of the first sales technique found in rep text."""
    for name, patterns in TECHNIQUE_PATTERNS.items():
        if any(p.search(text) for p in patterns):
            return name
    return None


def detect_micro_commitment(text: str, follows_question: bool = False) -> str | None:
    """Return the strongest commitment level in a counterpart utterance.

    Levels are checked buying -> strong -> moderate -> minimal. A bare
    "yes"/"yeah" only counts as minimal when answering a question.
    """
    for level, patterns in MICRO_COMMITMENTS.items():
        if any(p.search(text) for p in patterns):
            return level
    bare = text.strip().lower().rstrip(".!")
    if bare in ("yes", "yeah") and follows_question:
        return "minimal"
    return None


def assess_objection_handling(
    objection_index: int,
    transcript: Sequence[TranscriptEntry],
    objection_type: str | None = None,
) -> HandlingAssessment:
    """Judge how the objection at ``objection_index`` was handled.

    Args:
        objection_index: Index of the objection in ``transcript``.
        transcript: Full ordered transcript.
        objection_type: Category returned by detect_objection, used to spot
            the counterpart repeating the same objection.
    """
    window = list(transcript[objection_index + 1 : objection_index + 1 + _FOLLOWUP_WINDOW])
    signals: list[str] = []
    positive = 0
    negative = 0
    technique: str | None = None
    response_text = ""

    rep_responses = [e for e in window if e.speaker is Speaker.REP][:_REP_RESPONSES_CHECKED]
    if rep_responses:
        response_text = rep_responses[0].text
        for response in rep_responses:
            technique = detect_technique(response.text)
            if technique:
                signals.append(f"Technique used: {technique}")
                break

    counterpart_replies = [e for e in window if e.speaker is Speaker.COUNTERPART]
    previous_text = transcript[objection_index].text if 0 <= objection_index < len(transcript) else ""
    for entry in window:
        if entry.speaker is not Speaker.COUNTERPART:
            previous_text = entry.text
            continue
        text = entry.text
        for pattern in POSITIVE_INDICATORS:
            if pattern.search(text):
                positive += 1
        if _ACCEPTANCE.search(text):
            signals.append("Explicit acceptance")
        if _NEXT_STEP.search(text):
            signals.append("Buying signal - asking about next steps")
        if _AGREEMENT.search(text):
            signals.append("Strong agreement")
        for pattern in NEGATIVE_INDICATORS:
            if pattern.search(text):
                negative += 1
        commitment = detect_micro_commitment(text, follows_question=previous_text.strip().endswith("?"))
        if commitment in ("strong", "buying"):
            signals.append(f"Strong buying signal: {commitment}")
            positive += 2
        previous_text = text

    if objection_type in OBJECTION_CATEGORIES and counterpart_replies:
        joined = " ".join(e.text for e in counterpart_replies)
        if any(p.search(joined) for p in OBJECTION_CATEGORIES[objection_type].patterns):
            negative += 2
            signals.append("Same objection repeated - not resolved")

    has_acceptance = any(s in ("Explicit acceptance", "Strong agreement") for s in signals)
    has_buying = any("buying signal" in s.lower() for s in signals)
    has_multiple = len(signals) >= 2

    was_handled = bool(technique) or has_acceptance or (positive > negative and positive >= 2)
    is_resolved = was_handled and negative == 0 and (has_acceptance or has_buying or has_multiple)

    if was_handled:
        if is_resolved and (technique or has_buying or positive >= 4):
            quality = "excellent"
        elif technique or positive >= 3 or has_acceptance:
            quality = "good"
        else:
            quality = "adequate"
    elif negative > 0:
        quality = "poor"
    else:
        quality = None

    return HandlingAssessment(
        was_handled=was_handled,
        is_resolved=is_resolved,
        quality=quality,  # type: ignore[arg-type]
        response_text=response_text,
        technique_used=technique,
        resolution_signals=signals,
    )


def recovery_key(assessment: HandlingAssessment) -> str:
    """Map an assessment onto a key of SentimentConfig.recovery_factors.

    Resolution outranks handling quality, so an "excellent" assessment
    (always resolved) maps to "resolved".
    """
    if assessment.is_resolved:
        return "resolved"
    if assessment.was_handled and assessment.quality in ("excellent", "good", "adequate"):
        return assessment.quality
    return "unhandled"


def objection_penalty(
    severity: str,
    recency_multiplier: float,
    recovery: str,
    severity_penalties: dict[str, float],
    recovery_factors: dict[str, float],
) -> float:
    """Penalty for one objection: base(severity) x recency x recovery factor."""
    base = severity_penalties.get(severity, 0.0)
    return base * recency_multiplier * recovery_factors.get(recovery, 1.0)
