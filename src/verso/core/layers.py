"""
Layer classifier: how deep the conversation has gone.

Depth follows turn count, except that a core-belief statement jumps straight
to CORE_WOUND. Once a session has reached CORE_WOUND through a core belief,
callers pass core_belief_already_detected and the layer stays pinned there.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .context import (
    ICEBERG_LAYERS,
    LAYER_CORE_WOUND,
    LAYER_EMOTION,
    LAYER_SURFACE,
    LAYER_TRANSITION,
)
from .signals import reveals_core_belief


@dataclass(frozen=True)
class LayerReading:
    layer: str
    turn_count: int
    core_belief_detected: bool   # matched on this message
    core_belief_ever: bool       # matched now or earlier in the session

    @property
    def iceberg_layer(self) -> str:
        return ICEBERG_LAYERS[self.layer]


def turn_count_for(history: Sequence) -> int:
    return len(history) // 2 + 1


def layer_for_turn(turn_count: int) -> str:
    if turn_count <= 2:
        return LAYER_SURFACE
    if turn_count <= 4:
        return LAYER_TRANSITION
    if turn_count <= 6:
        return LAYER_EMOTION
    return LAYER_CORE_WOUND


def classify_layer(
    user_text: str,
    history: Sequence,
    core_belief_already_detected: bool = False,
) -> LayerReading:
    turn = turn_count_for(history)
    detected = reveals_core_belief(user_text)
    ever = detected or core_belief_already_detected
    layer = LAYER_CORE_WOUND if ever else layer_for_turn(turn)
    return LayerReading(
        layer=layer,
        turn_count=turn,
        core_belief_detected=detected,
        core_belief_ever=ever,
    )
