"""
Tests for the per-turn trackers: intent, grounding mode, conversation
layer and progress.
"""

import pytest

from verso.core.context import (
    INTENT_AUTO,
    INTENT_CALM,
    LAYER_CORE_WOUND,
    LAYER_EMOTION,
    LAYER_SURFACE,
    LAYER_TRANSITION,
    SessionContext,
)
from verso.core.grounding import MAX_GROUNDING_TURNS, GroundingState, next_grounding_state, track_grounding
from verso.core.intent import resolve_intent
from verso.core.layers import classify_layer, layer_for_turn, turn_count_for
from verso.core.progress import project_progress

SCENARIO_A = "I always fail at everything, I'm such a failure"


def _history(turns):
    """Build a history with the given number of completed exchanges."""
    msgs = []
    for i in range(turns):
        msgs.append({"role": "user", "content": f"message {i}"})
        msgs.append({"role": "assistant", "content": f"reply {i}"})
    return msgs


# =============================================================================
# INTENT
# =============================================================================

class TestIntent:
    @pytest.mark.parametrize("declared,expected", [
        ("CALM", INTENT_CALM),
        ("AUTO", INTENT_AUTO),
        ("calm", INTENT_AUTO),
        (None, INTENT_AUTO),
        (42, INTENT_AUTO),
        ("SOMETHING_ELSE", INTENT_AUTO),
    ])
    def test_resolve(self, declared, expected):
        assert resolve_intent(declared) == expected


# =============================================================================
# GROUNDING
# =============================================================================

class TestGrounding:
    def test_choosing_grounding_starts_mode(self):
        assert next_grounding_state("I want to take a break") == GroundingState(True, 1)

    def test_mode_counts_up(self):
        assert next_grounding_state("still here", True, 1) == GroundingState(True, 2)

    def test_mode_expires_after_max_turns(self):
        assert MAX_GROUNDING_TURNS == 3
        assert next_grounding_state("still here", True, 3) == GroundingState(False, 0)

    def test_new_choice_restarts_counter(self):
        assert next_grounding_state("a walk sounds good", True, 3) == GroundingState(True, 1)

    def test_no_mode_stays_off(self):
        assert next_grounding_state("still here", False, 0) == GroundingState(False, 0)

    def test_full_decay_sequence(self):
        state = next_grounding_state("maybe some tea")
        seen = [state]
        for _ in range(3):
            state = next_grounding_state("ok", state.mode, state.turns)
            seen.append(state)
        assert [(s.mode, s.turns) for s in seen] == [(True, 1), (True, 2), (True, 3), (False, 0)]

    def test_track_from_context(self):
        ctx = SessionContext(grounding_mode=True, grounding_turns=2)
        assert track_grounding("ok", ctx) == GroundingState(True, 3)
        assert track_grounding("ok") == GroundingState(False, 0)


# =============================================================================
# LAYERS
# =============================================================================

class TestLayers:
    @pytest.mark.parametrize("turn,layer", [
        (1, LAYER_SURFACE),
        (2, LAYER_SURFACE),
        (3, LAYER_TRANSITION),
        (4, LAYER_TRANSITION),
        (5, LAYER_EMOTION),
        (6, LAYER_EMOTION),
        (7, LAYER_CORE_WOUND),
        (12, LAYER_CORE_WOUND),
    ])
    def test_layer_for_turn(self, turn, layer):
        assert layer_for_turn(turn) == layer

    def test_turn_count(self):
        assert turn_count_for([]) == 1
        assert turn_count_for(_history(2)) == 3

    def test_depth_follows_history(self):
        reading = classify_layer("My manager moved the deadline", _history(4))
        assert reading.layer == LAYER_EMOTION
        assert reading.turn_count == 5
        assert reading.iceberg_layer == "emotion"

    def test_core_belief_jumps_to_core(self):
        reading = classify_layer(SCENARIO_A, [])
        assert reading.layer == LAYER_CORE_WOUND
        assert reading.turn_count == 1
        assert reading.core_belief_detected is True
        assert reading.iceberg_layer == "coreBelief"

    def test_core_is_sticky(self):
        reading = classify_layer("The weather is fine", [], core_belief_already_detected=True)
        assert reading.layer == LAYER_CORE_WOUND
        assert reading.core_belief_detected is False
        assert reading.core_belief_ever is True


# =============================================================================
# PROGRESS
# =============================================================================

class TestProgress:
    def test_first_turn(self):
        progress = project_progress(1)
        assert progress.score == 12
        assert progress.layers == {"surface": 25, "trigger": 0, "emotion": 0, "coreBelief": 0}

    def test_third_turn(self):
        progress = project_progress(3)
        assert progress.score == 36
        assert progress.layers == {"surface": 75, "trigger": 60, "emotion": 35, "coreBelief": 0}

    def test_core_belief_floors_progress(self):
        progress = project_progress(1, core_belief_detected=True)
        assert progress.score == 84
        assert progress.layers == {"surface": 100, "trigger": 100, "emotion": 100, "coreBelief": 90}

    def test_values_are_capped(self):
        progress = project_progress(20)
        assert progress.score == 100
        assert all(v == 100 for v in progress.layers.values())
