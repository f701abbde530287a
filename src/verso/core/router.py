"""
Cognitive state router.

A deterministic, ordered rule table: each rule is a (predicate, decision)
pair and the first predicate that holds decides the turn. The order of
ROUTING_TABLE is behaviour; arousal sits ahead of the NEXT_STEP rule so a
panicking user asking "what do I do" is grounded before being planned for.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Tuple

from .context import (
    INTENT_CALM,
    INTENT_CLARITY,
    INTENT_LISTEN,
    INTENT_MEANING,
    INTENT_NEXT_STEP,
    EngineDecision,
)
from .signals import (
    AROUSAL_THRESHOLD,
    DISTORTION_THRESHOLD,
    detect_action_request,
    detect_thanks_or_resolution,
    distortion_likelihood,
    high_arousal_score,
    user_seems_flooded,
)

logger = logging.getLogger(__name__)

# ── States and interventions ───────────────────────────────────────────────
STATE_REGULATE = "REGULATE"
STATE_CLARIFY = "CLARIFY"
STATE_MAP = "MAP"
STATE_RESTRUCTURE = "RESTRUCTURE"
STATE_PLAN = "PLAN"
STATE_PRESENCE = "PRESENCE"

GROUND = "GROUND"
SEPARATE_FACTS = "SEPARATE_FACTS"
REFLECT_MAP = "REFLECT_MAP"
CBT_REFRAME = "CBT_REFRAME"
TINY_PLAN = "TINY_PLAN"
VALIDATE_ONLY = "VALIDATE_ONLY"


@dataclass(frozen=True)
class RouterSignals:
    """Every input the router looks at, computed once per message."""
    intent: str
    grounding_mode: bool
    thanks: bool
    arousal: float
    flooded: bool
    action_request: bool
    distortion: float

    @classmethod
    def from_text(cls, text: str, intent: str, grounding_mode: bool) -> "RouterSignals":
        return cls(
            intent=intent,
            grounding_mode=grounding_mode,
            thanks=detect_thanks_or_resolution(text),
            arousal=high_arousal_score(text),
            flooded=user_seems_flooded(text),
            action_request=detect_action_request(text),
            distortion=distortion_likelihood(text),
        )


@dataclass(frozen=True)
class RoutingRule:
    name: str
    applies: Callable[[RouterSignals], bool]
    state: str
    intervention: str
    confidence: float
    ask_question: bool
    explain: Callable[[RouterSignals], List[str]]

    def decide(self, signals: RouterSignals) -> EngineDecision:
        return EngineDecision(
            state=self.state,
            intervention=self.intervention,
            confidence=self.confidence,
            reasons=tuple(self.explain(signals)),
            ask_question=self.ask_question,
        )


def _flag(value: bool) -> str:
    return "true" if value else "false"


ROUTING_TABLE: Tuple[RoutingRule, ...] = (
    RoutingRule(
        name="grounding_or_calm",
        applies=lambda s: s.grounding_mode or s.intent == INTENT_CALM,
        state=STATE_REGULATE, intervention=GROUND, confidence=0.85, ask_question=False,
        explain=lambda s: [f"groundingMode={_flag(s.grounding_mode)}", f"intent={s.intent}"],
    ),
    RoutingRule(
        name="listen",
        applies=lambda s: s.intent == INTENT_LISTEN,
        state=STATE_PRESENCE, intervention=VALIDATE_ONLY, confidence=0.85, ask_question=False,
        explain=lambda s: [f"intent={s.intent}"],
    ),
    RoutingRule(
        name="relief",
        applies=lambda s: s.thanks,
        state=STATE_PRESENCE, intervention=VALIDATE_ONLY, confidence=0.75, ask_question=False,
        explain=lambda s: [f"thanksOrRelief={_flag(s.thanks)}"],
    ),
    RoutingRule(
        name="high_arousal",
        applies=lambda s: s.arousal >= AROUSAL_THRESHOLD or s.flooded,
        state=STATE_REGULATE, intervention=GROUND, confidence=0.8, ask_question=False,
        explain=lambda s: [f"highArousal={s.arousal:.2f}", f"flooded={_flag(s.flooded)}"],
    ),
    RoutingRule(
        name="next_step",
        applies=lambda s: s.intent == INTENT_NEXT_STEP or s.action_request,
        state=STATE_PLAN, intervention=TINY_PLAN, confidence=0.75, ask_question=True,
        explain=lambda s: [f"intent={s.intent}", f"actionRequest={_flag(s.action_request)}"],
    ),
    RoutingRule(
        name="clarity",
        applies=lambda s: s.intent == INTENT_CLARITY,
        state=STATE_CLARIFY, intervention=SEPARATE_FACTS, confidence=0.8, ask_question=True,
        explain=lambda s: [f"intent={s.intent}"],
    ),
    RoutingRule(
        name="meaning",
        applies=lambda s: s.intent == INTENT_MEANING,
        state=STATE_MAP, intervention=REFLECT_MAP, confidence=0.75, ask_question=True,
        explain=lambda s: [f"intent={s.intent}"],
    ),
    RoutingRule(
        name="distortion",
        applies=lambda s: s.distortion >= DISTORTION_THRESHOLD,
        state=STATE_RESTRUCTURE, intervention=CBT_REFRAME, confidence=0.7, ask_question=True,
        explain=lambda s: [f"distortionLikely={s.distortion:.2f}"],
    ),
    RoutingRule(
        name="default",
        applies=lambda s: True,
        state=STATE_MAP, intervention=REFLECT_MAP, confidence=0.65, ask_question=True,
        explain=lambda s: [f"distortionLikely={s.distortion:.2f} -> MAP"],
    ),
)


def route(signals: RouterSignals, table: Tuple[RoutingRule, ...] = ROUTING_TABLE) -> EngineDecision:
    for rule in table:
        if rule.applies(signals):
            logger.debug(f"[Router] rule={rule.name} state={rule.state} intervention={rule.intervention}")
            return rule.decide(signals)
    # The default rule always applies; only reachable with a custom table.
    raise ValueError("Routing table has no matching rule")


def decide_engine_state(user_text: str, intent: str, grounding_mode: bool) -> EngineDecision:
    """Route one message. Same inputs always give the same decision."""
    return route(RouterSignals.from_text(user_text, intent, grounding_mode))
