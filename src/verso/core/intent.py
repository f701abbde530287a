"""
Intent resolution.

Intent is always explicit (declared by the client) or AUTO. It is never
inferred from the message text.
"""

from __future__ import annotations

from typing import Any

from .context import INTENT_AUTO, INTENTS


def resolve_intent(declared: Any = None) -> str:
    """Map a client-declared hint onto the fixed intent set; anything else is AUTO."""
    if isinstance(declared, str) and declared in INTENTS:
        return declared
    return INTENT_AUTO
