"""
Progress projector: pure arithmetic from turn count to completion percentages.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

CORE_BELIEF_TURN_FLOOR = 7
CORE_BELIEF_PROGRESS_FLOOR = 60


@dataclass(frozen=True)
class Progress:
    score: int
    layers: Dict[str, int]


def project_progress(turn_count: int, core_belief_detected: bool = False) -> Progress:
    turn = max(turn_count, CORE_BELIEF_TURN_FLOOR) if core_belief_detected else turn_count
    core = min(max(0, turn - 4) * 30, 100)
    if core_belief_detected:
        core = max(core, CORE_BELIEF_PROGRESS_FLOOR)
    return Progress(
        score=min(turn * 12, 100),
        layers={
            "surface": min(turn * 25, 100),
            "trigger": min(max(0, turn - 1) * 30, 100),
            "emotion": min(max(0, turn - 2) * 35, 100),
            "coreBelief": core,
        },
    )
