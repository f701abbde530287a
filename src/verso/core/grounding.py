"""
Grounding-mode tracker.

A short-lived, self-expiring mode that favours calming, present-moment
content. Choosing grounding (by phrase) always restarts the counter; without
a new choice the mode lasts until the counter reaches MAX_GROUNDING_TURNS.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .context import SessionContext
from .signals import user_chose_grounding

MAX_GROUNDING_TURNS = 3


@dataclass(frozen=True)
class GroundingState:
    mode: bool
    turns: int


def next_grounding_state(
    user_text: str,
    was_grounding: bool = False,
    previous_turns: int = 0,
) -> GroundingState:
    """
    Transition (mode, turns):
        phrase match          -> (True, 1)
        (True, n), n < 3      -> (True, n + 1)
        otherwise             -> (False, 0)
    """
    if user_chose_grounding(user_text):
        return GroundingState(mode=True, turns=1)
    if was_grounding and previous_turns < MAX_GROUNDING_TURNS:
        return GroundingState(mode=True, turns=previous_turns + 1)
    return GroundingState(mode=False, turns=0)


def track_grounding(user_text: str, context: Optional[SessionContext] = None) -> GroundingState:
    ctx = context or SessionContext()
    return next_grounding_state(user_text, ctx.grounding_mode, ctx.grounding_turns)
