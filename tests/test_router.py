"""
Tests for the cognitive state router.

The router is an ordered rule table, so most tests pin down which rule
wins when several could apply.
"""

import pytest

from verso.core.context import (
    INTENT_AUTO,
    INTENT_CALM,
    INTENT_CLARITY,
    INTENT_LISTEN,
    INTENT_MEANING,
    INTENT_NEXT_STEP,
)
from verso.core.router import (
    CBT_REFRAME,
    GROUND,
    REFLECT_MAP,
    ROUTING_TABLE,
    SEPARATE_FACTS,
    STATE_CLARIFY,
    STATE_MAP,
    STATE_PLAN,
    STATE_PRESENCE,
    STATE_REGULATE,
    STATE_RESTRUCTURE,
    TINY_PLAN,
    VALIDATE_ONLY,
    RouterSignals,
    decide_engine_state,
    route,
)

NEUTRAL = "My manager moved the deadline"


class TestRuleTable:
    def test_rule_order(self):
        assert [r.name for r in ROUTING_TABLE] == [
            "grounding_or_calm",
            "listen",
            "relief",
            "high_arousal",
            "next_step",
            "clarity",
            "meaning",
            "distortion",
            "default",
        ]

    def test_empty_table_raises(self):
        signals = RouterSignals.from_text(NEUTRAL, INTENT_AUTO, False)
        with pytest.raises(ValueError):
            route(signals, table=())

    def test_deterministic(self):
        a = decide_engine_state("I always ruin everything", INTENT_AUTO, False)
        b = decide_engine_state("I always ruin everything", INTENT_AUTO, False)
        assert a == b


class TestDecisions:
    def test_relief_gets_presence_without_question(self):
        decision = decide_engine_state("thanks, I feel a little better now", INTENT_AUTO, False)
        assert decision.state == STATE_PRESENCE
        assert decision.intervention == VALIDATE_ONLY
        assert decision.ask_question is False
        assert decision.confidence == pytest.approx(0.75)
        assert decision.reasons == ("thanksOrRelief=true",)

    def test_panic_is_grounded_before_planning(self):
        decision = decide_engine_state("I can't breathe, I'm panicking, what do I do!!", INTENT_AUTO, False)
        assert decision.state == STATE_REGULATE
        assert decision.intervention == GROUND
        assert decision.ask_question is False
        assert decision.reasons == ("highArousal=1.00", "flooded=false")

    def test_panicking_alone_is_regulated(self):
        decision = decide_engine_state("I'm panicking about tomorrow", INTENT_AUTO, False)
        assert (decision.state, decision.intervention) == (STATE_REGULATE, GROUND)
        assert decision.reasons == ("highArousal=0.67", "flooded=false")

    def test_flooded_is_grounded(self):
        decision = decide_engine_state("I don't know, my mind is blank", INTENT_AUTO, False)
        assert decision.state == STATE_REGULATE
        assert "flooded=true" in decision.reasons

    def test_grounding_mode_wins_over_everything(self):
        decision = decide_engine_state("thanks", INTENT_LISTEN, True)
        assert decision.state == STATE_REGULATE
        assert decision.confidence == pytest.approx(0.85)
        assert decision.reasons == ("groundingMode=true", f"intent={INTENT_LISTEN}")

    def test_calm_intent(self):
        decision = decide_engine_state(NEUTRAL, INTENT_CALM, False)
        assert (decision.state, decision.intervention) == (STATE_REGULATE, GROUND)

    def test_listen_intent_beats_relief(self):
        decision = decide_engine_state("thanks", INTENT_LISTEN, False)
        assert decision.state == STATE_PRESENCE
        assert decision.confidence == pytest.approx(0.85)

    def test_action_request_plans(self):
        decision = decide_engine_state("What should I do about my inbox?", INTENT_AUTO, False)
        assert (decision.state, decision.intervention) == (STATE_PLAN, TINY_PLAN)
        assert decision.ask_question is True

    def test_next_step_intent_plans(self):
        decision = decide_engine_state(NEUTRAL, INTENT_NEXT_STEP, False)
        assert decision.state == STATE_PLAN
        assert decision.reasons == (f"intent={INTENT_NEXT_STEP}", "actionRequest=false")

    def test_clarity_intent(self):
        decision = decide_engine_state(NEUTRAL, INTENT_CLARITY, False)
        assert (decision.state, decision.intervention) == (STATE_CLARIFY, SEPARATE_FACTS)

    def test_meaning_intent(self):
        decision = decide_engine_state(NEUTRAL, INTENT_MEANING, False)
        assert (decision.state, decision.intervention) == (STATE_MAP, REFLECT_MAP)
        assert decision.confidence == pytest.approx(0.75)

    def test_strong_distortion_restructures(self):
        decision = decide_engine_state("I always ruin everything and they think I should quit", INTENT_AUTO, False)
        assert (decision.state, decision.intervention) == (STATE_RESTRUCTURE, CBT_REFRAME)
        assert decision.reasons == ("distortionLikely=1.00",)

    def test_default_maps(self):
        decision = decide_engine_state(NEUTRAL, INTENT_AUTO, False)
        assert (decision.state, decision.intervention) == (STATE_MAP, REFLECT_MAP)
        assert decision.confidence == pytest.approx(0.65)
        assert decision.reasons == ("distortionLikely=0.00 -> MAP",)

    @pytest.mark.parametrize("intent", [INTENT_CALM, INTENT_LISTEN])
    def test_no_question_intents(self, intent):
        assert decide_engine_state(NEUTRAL, intent, False).ask_question is False
