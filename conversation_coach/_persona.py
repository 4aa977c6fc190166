"""Trust / interest simulation for a scripted counterpart.

The simulator never writes the counterpart's reply. It tracks how the
rep's turns move the counterpart's trust and interest and renders that
state as a behavioral directive for an external dialogue generator.
"""

import logging
import re
from dataclasses import replace

from ._types import Persona, PersonaState, SuccessCriteria

logger = logging.getLogger(__name__)

_TRUST_RANGE = (-10, 10)
_INTEREST_RANGE = (0, 10)
_IMPATIENCE_TURNS = 8
_MONOLOGUE_CHARS = 200

_INITIAL_TRUST_BY_ROLE = {
    "Retired Homeowner": -3,
    "Busy Professional": -1,
    "Homeowner": -2,
}
_DEFAULT_INITIAL_TRUST = -2

_ROLE_MODIFIERS = {
    "Retired Homeowner": (
        "Elderly persona: be more cautious about new things, mention fixed income, "
        "ask about senior discounts. "
    ),
    "Busy Professional": (
        "Busy persona: value time highly, want quick solutions, ask about scheduling flexibility. "
    ),
}

_REP_PREFIX = "REP: "
_COUNTERPART_PREFIX = "COUNTERPART: "

# (phrases, delta) rules applied to the lower-cased rep turn
_TRUST_RULES: tuple[tuple[tuple[str, ...], int], ...] = (
    (("neighbor", "your area"), 2),
    (("guarantee", "warranty"), 1),
    (("epa", "safe", "family"), 1),
    (("free inspection", "no obligation"), 1),
    (("today only", "special deal"), -2),
)
_GENERIC_PITCH = ("everyone needs", "all homes")

_SCHEDULING = re.compile(r"schedule|appointment|when|time|calendar|book")
_BUDGET = re.compile(r"cost|price|budget|afford|expensive|cheap")
_ROI = re.compile(r"save|reduce|prevent|worth|value|benefit")
_SAFETY = re.compile(r"safe|epa|family|pet|child|toxic")

TEMPERATURE_STARTING_SENTIMENT = {
    "cold": 5.0,
    "skeptical": 15.0,
    "neutral": 25.0,
    "interested": 35.0,
    "warm": 45.0,
}


def _clamp(value: int, bounds: tuple[int, int]) -> int:
    return min(max(value, bounds[0]), bounds[1])


class PersonaSimulator:
    """Maintains one counterpart's trust and interest across a session.

    Args:
        persona: Static persona definition.
    """

    def __init__(self, persona: Persona) -> None:
        self._persona = persona
        self._state = self._initial_state()

    @property
    def persona(self) -> Persona:
        return self._persona

    @property
    def trust_level(self) -> int:
        return self._state.trust_level

    @property
    def interest_level(self) -> int:
        return self._state.interest_level

    @property
    def turns_elapsed(self) -> int:
        return self._state.turns_elapsed

    def _initial_state(self) -> PersonaState:
        trust = _INITIAL_TRUST_BY_ROLE.get(self._persona.role, _DEFAULT_INITIAL_TRUST)
        interest = len(self._persona.pain) * 2
        return PersonaState(
            trust_level=_clamp(trust, _TRUST_RANGE),
            interest_level=_clamp(interest, _INTEREST_RANGE),
        )

    def reset(self) -> None:
        self._state = self._initial_state()

    def snapshot(self) -> PersonaState:
        """Copy of the current state for monitoring."""
        return replace(self._state, utterance_log=list(self._state.utterance_log))

    def observe_counterpart_turn(self, text: str) -> None:
        """Record what the counterpart said; does not change trust or interest."""
        self._state.utterance_log.append(f"{_COUNTERPART_PREFIX}{text or ''}")

    def observe_rep_turn(self, text: str) -> None:
        """Apply the rule list to one rep turn and clamp the result."""
        text = text or ""
        lower = text.lower()
        ignored_question = self._ignored_safety_question(lower)

        self._state.turns_elapsed += 1
        self._state.utterance_log.append(f"{_REP_PREFIX}{text}")

        trust_delta = 0
        for phrases, delta in _TRUST_RULES:
            if any(p in lower for p in phrases):
                trust_delta += delta
        if ignored_question:
            trust_delta -= 1
        if len(lower) > _MONOLOGUE_CHARS and "?" not in lower:
            trust_delta -= 1

        interest_delta = 0
        pain = self._persona.pain
        if any(p.lower() in lower for p in pain):
            interest_delta += 2
        if "prevent" in lower and pain:
            interest_delta += 1
        if any(p in lower for p in _GENERIC_PITCH):
            interest_delta -= 1

        self._state.trust_level = _clamp(self._state.trust_level + trust_delta, _TRUST_RANGE)
        self._state.interest_level = _clamp(self._state.interest_level + interest_delta, _INTEREST_RANGE)
        logger.debug(
            "Persona %s turn %d: trust=%d (%+d) interest=%d (%+d)",
            self._persona.name,
            self._state.turns_elapsed,
            self._state.trust_level,
            trust_delta,
            self._state.interest_level,
            interest_delta,
        )

    def _ignored_safety_question(self, rep_lower: str) -> bool:
        """True if the counterpart's last line asked about safety and the rep skipped it."""
        last = next(
            (m for m in reversed(self._state.utterance_log) if m.startswith(_COUNTERPART_PREFIX)),
            None,
        )
        if last is None or "?" not in last:
            return False
        asked = last.lower()
        if "safe" not in asked and "chemical" not in asked:
            return False
        return "safe" not in rep_lower and "epa" not in rep_lower

    def behavioral_directive(self) -> str:
        """Render the current state as instructions for the dialogue generator."""
        s = self._state
        parts = [f"Trust Level: {s.trust_level}/10, Interest Level: {s.interest_level}/10. "]

        if s.trust_level < -5:
            parts.append("VERY SKEPTICAL - be defensive, ask for credentials, mention bad experiences. ")
        elif s.trust_level < 0:
            parts.append("SKEPTICAL - be cautious, ask probing questions, need convincing. ")
        elif s.trust_level > 5:
            parts.append("TRUSTING - be more open, share concerns readily, ask helpful questions. ")

        if s.interest_level < 3:
            parts.append("LOW INTEREST - focus on objections, mention you don't really need this. ")
        elif s.interest_level > 7:
            parts.append("HIGH INTEREST - ask detailed questions, show engagement, move toward decision. ")

        if s.turns_elapsed > _IMPATIENCE_TURNS:
            parts.append("GETTING IMPATIENT - mention you have other things to do, need to wrap up. ")

        modifier = _ROLE_MODIFIERS.get(self._persona.role)
        if modifier:
            parts.append(modifier)
        return "".join(parts).strip()

    def check_success_criteria(self, history: list[str] | None = None) -> bool:
        """Whether the persona's declared requirements and trust/interest gates are met.

        Args:
            history: Utterances to search; defaults to the simulator's own log.
        """
        text = " ".join(history if history is not None else self._state.utterance_log).lower()
        criteria = self._persona.success_criteria

        if criteria.requires_scheduling and not _SCHEDULING.search(text):
            return False
        if criteria.requires_budget_check and not _BUDGET.search(text):
            return False
        if criteria.requires_roi_quant and not _ROI.search(text):
            return False
        safety_sensitive = self._persona.role == "Homeowner" or any("safe" in p.lower() for p in self._persona.pain)
        if safety_sensitive and not _SAFETY.search(text):
            return False

        return self._state.trust_level > 0 and self._state.interest_level > 5


# ── Presets ───────────────────────────────────────────────────────────────────

_SCHEDULING_AND_BUDGET = SuccessCriteria(requires_scheduling=True, requires_budget_check=True)

PERSONA_PRESETS: dict[str, Persona] = {
    "suburban_family": Persona(
        name="Suburban Family Home",
        role="Homeowner",
        pain=("ants in kitchen", "spiders in basement", "mice in garage", "wants prevention"),
        objections=(
            "we don't have bugs right now",
            "too expensive",
            "we use DIY sprays",
            "need to talk to my spouse",
            "had bad experience before",
            "what chemicals do you use",
        ),
        budget="$100-300/month",
        urgency="medium",
        hidden_goal="will buy if rep demonstrates value for current pest issues AND offers family-safe treatment",
        success_criteria=_SCHEDULING_AND_BUDGET,
        starting_sentiment=TEMPERATURE_STARTING_SENTIMENT["neutral"],
    ),
    "elderly_couple": Persona(
        name="Elderly Couple Home",
        role="Retired Homeowner",
        pain=("termites concern", "general prevention", "fixed income budget", "health worries"),
        objections=(
            "on fixed income",
            "don't trust door-to-door sales",
            "need to research first",
            "what chemicals do you use",
            "we're too old for this",
            "is it really necessary",
        ),
        budget="$50-150/month",
        urgency="low",
        hidden_goal="will consider service if rep is patient, explains safety, and offers senior discount",
        success_criteria=_SCHEDULING_AND_BUDGET,
        starting_sentiment=TEMPERATURE_STARTING_SENTIMENT["cold"],
    ),
    "busy_professional": Persona(
        name="Young Professional Home",
        role="Busy Professional",
        pain=("no time for pest issues", "roaches in apartment", "wants preventive care", "convenience important"),
        objections=(
            "too busy to deal with this",
            "rent, not own",
            "landlord should handle",
            "need it done quickly",
            "what's included",
            "can you work evenings",
        ),
        budget="$150-400/month",
        urgency="high",
        hidden_goal="will buy if rep offers quick scheduling and comprehensive service",
        success_criteria=SuccessCriteria(requires_scheduling=True),
        starting_sentiment=TEMPERATURE_STARTING_SENTIMENT["skeptical"],
    ),
    "new_homeowner": Persona(
        name="New Homeowner",
        role="First-time Homeowner",
        pain=("don't know about pest control", "worried about property damage", "want to do things right"),
        objections=(
            "never had pest control before",
            "don't know if we need it",
            "what do other neighbors do",
            "is this normal",
            "how do I know you're legitimate",
        ),
        budget="$75-200/month",
        urgency="medium",
        hidden_goal="will buy if rep educates them on prevention and provides social proof",
        success_criteria=_SCHEDULING_AND_BUDGET,
        starting_sentiment=TEMPERATURE_STARTING_SENTIMENT["interested"],
    ),
    "young_family": Persona(
        name="Large Family Home",
        role="Parent of Young Children",
        pain=("kids' safety paramount", "ants attracted to food", "spiders scare children"),
        objections=(
            "safe around children",
            "what if kids touch treated areas",
            "natural alternatives",
            "need spouse approval",
            "when can you come when kids aren't home",
        ),
        budget="$120-350/month",
        urgency="high",
        hidden_goal="will buy if rep thoroughly addresses child safety and offers flexible scheduling",
        success_criteria=_SCHEDULING_AND_BUDGET,
        starting_sentiment=TEMPERATURE_STARTING_SENTIMENT["neutral"],
    ),
}


def persona_by_type(kind: str, base: str = "suburban_family") -> Persona:
    """Derive a persona variant from a preset.

    Args:
        kind: 'skeptical', 'budget_conscious', 'safety_focused', or anything
            else for the unmodified base.
        base: Key into PERSONA_PRESETS.

    Raises:
        KeyError: If ``base`` is not a known preset.
    """
    persona = PERSONA_PRESETS[base]
    if kind == "skeptical":
        return replace(
            persona,
            role="Skeptical Homeowner",
            objections=persona.objections
            + ("don't trust door-to-door sales", "sounds like a scam", "prove you're legitimate"),
            starting_sentiment=TEMPERATURE_STARTING_SENTIMENT["cold"],
        )
    if kind == "budget_conscious":
        return replace(
            persona,
            budget="$50-100/month",
            objections=("too expensive", "can't afford that", "do it myself cheaper", "need payment plan"),
        )
    if kind == "safety_focused":
        return replace(
            persona,
            pain=persona.pain + ("chemical sensitivity", "organic lifestyle"),
            objections=(
                "what chemicals exactly",
                "safe for organic garden",
                "natural alternatives",
                "chemical-free options",
            ),
        )
    return persona
