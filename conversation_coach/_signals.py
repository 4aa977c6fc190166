"""Weighted phrase-pattern tables for transcript scoring.

Every table is plain data: category -> (weight, patterns). The scoring
engines iterate these tables and never hard-code phrases in control
flow, so tuning a weight or adding a phrase touches this module only.

Counterpart and rep tables are scored separately. Rep negativity is
weighted harder than counterpart negativity since the rep's tone is the
one thing the rep controls.
"""

import re
from dataclasses import dataclass
from typing import Iterable

from ._types import Speaker, TranscriptEntry


def _compile(patterns: Iterable[str]) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


# ── Counterpart-side signal categories ──────────────────────────────────────────

COUNTERPART_SIGNALS: dict[str, tuple[float, tuple[str, ...]]] = {
    "strong_buying": (18.0, (
        r"when can (you|we) (start|come)",
        r"let'?s do it",
        r"sign me up",
        r"where do i sign",
        r"how do i sign up",
        r"count me in",
        r"i'?m ready",
        r"let'?s get (it )?started",
        r"what'?s next",
        r"see you (tomorrow|then|at)",
        r"i'?ll be (here|ready)",
        r"coming back (tomorrow|today|at|on)",
    )),
    "moderate_buying": (10.0, (
        r"sounds good",
        r"that works",
        r"i'?m interested",
        r"i like that",
        r"we need that",
        r"definitely need",
        r"that'?s reasonable",
        r"i can do that",
        r"i'?m okay with that",
        r"that would help",
        r"been looking for",
    )),
    "engagement": (6.0, (
        r"how does (it|that) work",
        r"what'?s included",
        r"tell me more",
        r"how much",
        r"how often",
        r"what (kind|type) of",
        r"do you guarantee",
        r"\binteresting\b",
        r"good to know",
        r"didn'?t (know|realize)",
    )),
    "rapport": (8.0, (
        r"thank(s| you)",
        r"appreciate",
        r"you'?re right",
        r"good point",
        r"fair enough",
        r"i hear you",
        r"that makes sense",
        r"i (see|understand)\b",
        r"nice to meet",
    )),
    "soft_positive": (4.0, (
        r"^\s*(okay|ok|sure|yeah|yes|alright)\b",
        r"i suppose",
        r"could be",
        r"that might",
        r"i'?ll consider",
    )),
    "dismissal": (-18.0, (
        r"not interested",
        r"go away",
        r"leave me alone",
        r"get off my property",
        r"no soliciting",
        r"absolutely not",
        r"don'?t come back",
        r"get lost",
    )),
    "strong_negative": (-15.0, (
        r"no thanks",
        r"not for me",
        r"don'?t want",
        r"don'?t need",
        r"waste of (time|money)",
        r"\bscam\b",
        r"don'?t trust",
        r"i'?ll pass",
        r"no way",
        r"definitely not",
    )),
    "moderate_negative": (-10.0, (
        r"too expensive",
        r"can'?t afford",
        r"not right now",
        r"not a good time",
        r"maybe later",
        r"i'?m (too )?busy",
    )),
    "resistance": (-8.0, (
        r"\bexpensive\b",
        r"\bpricey\b",
        r"cost too much",
        r"already have (someone|a guy|a company)",
        r"under contract",
        r"\blandlord\b",
    )),
    "hesitation": (-4.0, (
        r"i don'?t know",
        r"let me think",
        r"think about it",
        r"\bi guess\b",
        r"\bhmm+\b",
        r"not sure",
        r"we'?ll see",
    )),
}

# ── Rep-side signal categories ──────────────────────────────────────────────────

REP_SIGNALS: dict[str, tuple[float, tuple[str, ...]]] = {
    "rapport": (5.0, (
        r"thank(s| you)",
        r"appreciate",
        r"great question",
        r"i (completely |totally )?understand",
        r"that makes sense",
        r"no pressure",
    )),
    "professionalism": (4.0, (
        r"my name is",
        r"i'?m with",
        r"\blicensed\b",
        r"\binsured\b",
        r"\bguarantee",
        r"\bneighbou?rs?\b",
        r"in your area",
    )),
    "unprofessional": (-25.0, (
        r"\bstupid\b",
        r"\bidiot\b",
        r"\bdumb\b",
        r"shut up",
        r"you people",
        r"\bridiculous\b",
    )),
    "mocking": (-20.0, (
        r"are you (kidding|serious)",
        r"you don'?t get it",
        r"not my problem",
        r"\bwhatever\b",
        r"\blol\b",
    )),
    "pushy": (-15.0, (
        r"today only",
        r"last chance",
        r"you (have|need) to decide",
        r"sign (it )?today",
        r"right now or never",
    )),
    "dismissive": (-12.0, (
        r"doesn'?t matter",
        r"no big deal",
        r"calm down",
        r"trust me",
        r"just listen",
    )),
}


@dataclass(frozen=True)
class SignalRule:
    category: str
    weight: float
    pattern: re.Pattern[str]


@dataclass
class SignalHit:
    speaker: Speaker
    category: str
    weight: float
    phrase: str


def _build_rules(table: dict[str, tuple[float, tuple[str, ...]]]) -> tuple[SignalRule, ...]:
    return tuple(
        SignalRule(category=category, weight=weight, pattern=pattern)
        for category, (weight, patterns) in table.items()
        for pattern in _compile(patterns)
    )


class TextSignalLibrary:
    """Applies the weighted phrase tables to transcript utterances.

    Args:
        counterpart_signals: Category table for counterpart utterances.
        rep_signals: Category table for rep utterances.
        recency_start_fraction: Utterances beyond this fraction of the
            conversation receive the recency multiplier.
        recency_min / recency_max: Multiplier at the start of the recent
            span and at the last utterance.
    """

    def __init__(
        self,
        counterpart_signals: dict[str, tuple[float, tuple[str, ...]]] | None = None,
        rep_signals: dict[str, tuple[float, tuple[str, ...]]] | None = None,
        recency_start_fraction: float = 0.60,
        recency_min: float = 1.2,
        recency_max: float = 1.5,
    ) -> None:
        self._rules = {
            Speaker.COUNTERPART: _build_rules(counterpart_signals or COUNTERPART_SIGNALS),
            Speaker.REP: _build_rules(rep_signals or REP_SIGNALS),
        }
        self._recency_start = recency_start_fraction
        self._recency_min = recency_min
        self._recency_max = recency_max

    def match(self, entry: TranscriptEntry) -> list[SignalHit]:
        """Return every rule that matches the utterance, one hit per pattern."""
        hits: list[SignalHit] = []
        for rule in self._rules[entry.speaker]:
            m = rule.pattern.search(entry.text)
            if m:
                hits.append(
                    SignalHit(
                        speaker=entry.speaker,
                        category=rule.category,
                        weight=rule.weight,
                        phrase=m.group(0),
                    )
                )
        return hits

    def score(self, entry: TranscriptEntry, multiplier: float = 1.0) -> tuple[float, float]:
        """Return (positive, negative) weighted totals, both non-negative."""
        positive = 0.0
        negative = 0.0
        for hit in self.match(entry):
            if hit.weight > 0:
                positive += hit.weight * multiplier
            else:
                negative += -hit.weight * multiplier
        return positive, negative

    def recency_multiplier(self, index: int, total: int) -> float:
        """Weight boost for utterance ``index`` of ``total``.

        1.0 before the recent span, then rising linearly from
        recency_min to recency_max at the last utterance.
        """
        if total <= 0:
            return 1.0
        position = (index + 1) / total
        if position <= self._recency_start:
            return 1.0
        span = 1.0 - self._recency_start
        progress = (position - self._recency_start) / span if span > 0 else 1.0
        return self._recency_min + (self._recency_max - self._recency_min) * min(progress, 1.0)


# ── Secondary factor tables (counterpart only) ──────────────────────────────────

BUYING_SIGNAL_PATTERNS = _compile((
    r"sounds good",
    r"that works",
    r"i'?m interested",
    r"let'?s do it",
    r"count me in",
    r"i'?m ready",
    r"when can you start",
    r"what'?s next",
    r"how do i sign up",
    r"that makes sense",
    r"i like that",
    r"we need that",
    r"definitely need",
    r"that'?s reasonable",
    r"i can do that",
    r"i'?m okay with that",
    r"what'?s included",
    r"how does it work",
    r"when can we start",
    r"coming back (tomorrow|today|at|on)",
    r"i'?ll see you",
    r"see you (tomorrow|then|at)",
    r"i'?ll be here",
    r"i'?ll be ready",
))

POSITIVE_LANGUAGE_PATTERNS = _compile((
    r"that'?s great",
    r"that'?s good",
    r"i understand",
    r"i see",
    r"that makes sense",
    r"you'?re right",
    r"fair enough",
    r"i hear you",
    r"good point",
    r"tell me more",
    r"interesting",
    r"that'?s helpful",
    r"good to know",
    r"i like that",
    r"that sounds",
))

NEGATIVE_LANGUAGE_PATTERNS = _compile((
    r"not interested",
    r"don'?t want",
    r"can'?t afford",
    r"too expensive",
    r"no thanks",
    r"not for me",
    r"don'?t need",
    r"maybe later",
    r"i'?ll think about it",
    r"not right now",
))

# ── Objection tables ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ObjectionCategory:
    severity: str
    approach: str
    patterns: tuple[re.Pattern[str], ...]
    requires_context: bool = False


OBJECTION_CATEGORIES: dict[str, ObjectionCategory] = {
    "price": ObjectionCategory(
        severity="high",
        approach="Pivot to value, ROI, and payment options",
        patterns=_compile((r"too expensive", r"can'?t afford", r"cost too much", r"price", r"money", r"cheaper", r"financial")),
    ),
    "timing": ObjectionCategory(
        severity="medium",
        approach="Create urgency and highlight immediate benefits",
        patterns=_compile((
            r"not (a good|the right) time", r"maybe later", r"think about it", r"not right now",
            r"busy", r"come back", r"another time", r"let me think",
        )),
    ),
    "trust": ObjectionCategory(
        severity="critical",
        approach="Build credibility with social proof and guarantees",
        patterns=_compile((
            r"don'?t trust", r"scam", r"legitimate", r"never heard of", r"references",
            r"proof", r"how do i know", r"sketchy", r"door to door",
        )),
    ),
    "need": ObjectionCategory(
        severity="medium",
        approach="Discover hidden pain points and educate on risks",
        patterns=_compile((
            r"don'?t need", r"not interested", r"don'?t want", r"no problems",
            r"doing fine", r"already have", r"handle it myself",
        )),
    ),
    "authority": ObjectionCategory(
        severity="medium",
        approach="Get commitment for follow-up or include decision maker",
        patterns=_compile((
            r"speak to my (spouse|husband|wife|partner)",
            r"not my decision",
            r"need to ask (my|the) (spouse|husband|wife|partner)",
            r"can'?t decide",
            r"talk it over (with|to)",
            r"need approval",
            r"have to (ask|check with|discuss with) (my|the) (spouse|husband|wife|partner)",
            r"(spouse|husband|wife|partner) (needs|has) to (decide|approve|agree)",
        )),
        requires_context=True,
    ),
    "comparison": ObjectionCategory(
        severity="low",
        approach="Highlight unique value propositions and create urgency",
        patterns=_compile((
            r"shop around", r"get other quotes", r"compare prices",
            r"what makes you different", r"why should i choose", r"competitors",
        )),
    ),
    "skepticism": ObjectionCategory(
        severity="medium",
        approach="Share success stories and offer guarantees",
        patterns=_compile((
            r"does it really work", r"guarantee", r"what if it doesn'?t",
            r"seen this before", r"tired of", r"promises",
        )),
    ),
    "renter_ownership": ObjectionCategory(
        severity="medium",
        approach="Offer to contact landlord or provide tenant-friendly solutions",
        patterns=_compile((
            r"renting", r"don'?t own", r"landlord", r"tenant", r"not my house", r"apartment", r"rental",
        )),
    ),
    "existing_service": ObjectionCategory(
        severity="medium",
        approach="Discover contract end date and highlight switching benefits",
        patterns=_compile((
            r"already have someone", r"under contract", r"current provider", r"already use",
            r"have a guy", r"already have a", r"current company", r"already signed",
        )),
    ),
    "no_problem": ObjectionCategory(
        severity="high",
        approach="Educate on hidden infestations and preventive value",
        patterns=_compile((
            r"no bugs", r"haven'?t seen any", r"don'?t have pests", r"not a problem",
            r"no issues", r"no problems", r"haven'?t noticed", r"don'?t see any",
        )),
    ),
    "contract_fear": ObjectionCategory(
        severity="medium",
        approach="Clarify flexible terms and cancellation policy",
        patterns=_compile((
            r"is this a contract", r"locked in", r"cancel anytime", r"commitment",
            r"how long", r"contract term", r"long term", r"obligation",
        )),
    ),
    "door_policy": ObjectionCategory(
        severity="critical",
        approach="Respect policy, offer alternative contact method",
        patterns=_compile((
            r"don'?t buy at the door", r"no soliciting", r"don'?t do business this way",
            r"never buy from", r"no door to door", r"don'?t buy door to door", r"no solicitation",
        )),
    ),
    "brush_off": ObjectionCategory(
        severity="high",
        approach="Create urgency and get commitment for follow-up",
        patterns=_compile((
            r"i'?ll call you", r"leave a card", r"give me your number", r"reach out later",
            r"call you later", r"contact you later", r"get back to you", r"follow up later",
        )),
    ),
    "bad_experience": ObjectionCategory(
        severity="high",
        approach="Acknowledge concern, differentiate your service",
        patterns=_compile((
            r"tried that before", r"didn'?t work", r"waste of money", r"last company",
            r"burned before", r"previous company", r"didn'?t help", r"wasn'?t worth it",
        )),
    ),
    "just_moved": ObjectionCategory(
        severity="low",
        approach="Welcome them, offer new homeowner special",
        patterns=_compile((
            r"just moved", r"new to the area", r"just bought", r"settling in",
            r"recently moved", r"new homeowner", r"just purchased",
        )),
    ),
}

POSITIVE_INDICATORS = _compile((
    # acceptance
    r"i see", r"that makes sense", r"i understand", r"i get it", r"that'?s true", r"you'?re right",
    r"fair enough", r"i hear you", r"i can see why", r"that'?s understandable", r"that'?s reasonable",
    r"makes sense",
    # engagement
    r"good point", r"tell me more", r"interesting", r"didn'?t know that", r"oh really",
    r"i didn'?t realize", r"i hadn'?t thought of that", r"that'?s helpful", r"good to know",
    # next-step questions
    r"what.*include", r"how.*work", r"when.*start", r"what.*next", r"how.*sign up", r"where.*sign",
    r"what.*process", r"how.*get started", r"what.*cost", r"how much", r"what.*price",
    # agreement
    r"okay", r"sure", r"\byes\b", r"yeah", r"alright", r"sounds good", r"that works", r"that'?s fine",
    r"i'?m okay with", r"i can do that", r"let'?s do it", r"count me in", r"i'?m ready",
    # softening
    r"i guess.*could", r"maybe.*work", r"i suppose", r"that might", r"could be", r"i'?ll consider",
    r"i'?ll think about it",
    # solution acknowledged
    r"that solves", r"that addresses", r"that helps", r"that would work", r"that'?s better",
    r"i like that", r"that sounds",
))

NEGATIVE_INDICATORS = _compile((
    # persistent objections
    r"still not", r"still don'?t", r"still can'?t", r"still won'?t", r"still skeptical",
    r"still not convinced", r"still not sure", r"still have concerns", r"still worried",
    # rejection
    r"don'?t think so", r"no thanks", r"not interested", r"not convinced", r"i'?ll pass",
    r"not for me", r"not what i want", r"don'?t want it", r"not going to", r"won'?t work", r"can'?t do it",
    # dismissal
    r"goodbye", r"not today", r"\bleave\b", r"go away", r"get lost", r"no way", r"absolutely not",
    r"definitely not",
    # repeated objection
    r"but.*still.*(expensive|cost|price|money)",
    r"but.*still.*(can'?t afford|too much)",
    r"but.*still.*(not ready|later|think)",
    r"but.*still.*(don'?t trust|sketchy|scam)",
    # doubt
    r"i doubt", r"i'?m skeptical", r"seems like", r"sounds like", r"probably not", r"unlikely", r"doubtful",
    # exiting
    r"i have to go", r"need to go", r"gotta go", r"have to leave", r"busy right now", r"not a good time",
))

TECHNIQUE_PATTERNS: dict[str, tuple[re.Pattern[str], ...]] = {
    "Tie-Down": _compile((
        r"\bright\?", r"wouldn'?t you agree", r"makes sense", r"don'?t you think", r"fair enough",
        r"\bright\b", r"doesn'?t it", r"wouldn'?t it",
    )),
    "Future Pacing": _compile((
        r"\bimagine\b", r"picture this", r"\bthink about\b", r"wouldn'?t it be nice",
        r"what if you could", r"picture yourself", r"envision",
    )),
    "Pain Discovery": _compile((
        r"have you noticed", r"what kind of bugs", r"how often do you see", r"what'?s been your experience",
        r"what problems", r"what issues", r"what challenges",
    )),
    "Takeaway": _compile((
        r"might not be for you", r"not for everyone", r"\bonly if\b", r"no pressure",
        r"totally understand if", r"might not work", r"not right for",
    )),
    "Alternative Close": _compile((
        r"morning or afternoon", r"this week or next", r"would you prefer", r"which works better",
        r"today or tomorrow", r"this or that", r"option a or b",
    )),
    "Price Reframe": _compile((
        r"less than a dollar", r"cost of a coffee", r"pennies a day", r"\bcompared to\b",
        r"cheaper than", r"only.*per day", r"just.*per", r"that'?s only",
    )),
    "Third-Party Story": _compile((
        r"had a customer", r"talked to someone", r"neighbor down the street", r"just last week",
        r"funny story", r"customer of mine", r"someone i know", r"neighbor of yours",
    )),
    "Pattern Interrupt": _compile((
        r"before you say no", r"i know what you'?re thinking", r"hear me out", r"quick question",
        r"before you decide", r"hold on", r"wait a second",
    )),
}

MICRO_COMMITMENTS: dict[str, tuple[re.Pattern[str], ...]] = {
    "buying": _compile((
        r"when can you start", r"what'?s next", r"how do i sign up", r"where do i sign",
        r"let'?s do it", r"i'?m ready", r"count me in", r"what'?s the process",
    )),
    "strong": _compile((
        r"i like that", r"that would help", r"we need that", r"sounds good",
        r"that'?s important", r"definitely need", r"been looking for",
    )),
    "moderate": _compile((
        r"that'?s interesting", r"tell me more", r"how does that work", r"what.*include",
        r"explain", r"good to know", r"didn'?t realize",
    )),
    "minimal": _compile((r"uh huh", r"i see", r"\bright\b", r"\bmhm\b")),
}
