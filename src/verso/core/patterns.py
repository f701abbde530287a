"""
Thought-pattern (distortion label) governance.

The model's label is advisory. It is mapped onto a canonical name, then
gated by layer: "Core Belief" exists only at CORE_WOUND, and at CORE_WOUND
it is the only label. Identity statements read as Labeling, and a previous
label is reused when the new message still fits it.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Optional, Pattern

from .context import INTENT_CALM, INTENT_LISTEN, LAYER_CORE_WOUND
from .signals import is_identity_statement
from .utils import fold_text

logger = logging.getLogger(__name__)

CORE_BELIEF = "Core Belief"
LABELING = "Labeling"
RUMINATION = "Rumination"
CATASTROPHIZING = "Catastrophizing"
ALL_OR_NOTHING = "All-or-nothing thinking"

# Checked in order; the first key found inside the raw label wins.
THOUGHT_PATTERN_SYNONYMS: Dict[str, str] = {
    "black-and-white": ALL_OR_NOTHING,
    "black and white": ALL_OR_NOTHING,
    "all-or-nothing": ALL_OR_NOTHING,
    "all or nothing": ALL_OR_NOTHING,
    "catastrophizing": CATASTROPHIZING,
    "catastrophe": CATASTROPHIZING,
    "mind reading": "Mind reading",
    "mindreading": "Mind reading",
    "overgeneralization": "Overgeneralization",
    "over-generalization": "Overgeneralization",
    "personalization": "Personalization",
    "labeling": LABELING,
    "emotional reasoning": "Emotional reasoning",
    "should statements": "Should statements",
    "fortune telling": "Fortune telling",
    "discounting positives": "Discounting positives",
    "mental filter": "Mental filter",
    "jumping to conclusions": "Jumping to conclusions",
    "core belief": CORE_BELIEF,
    "identity belief": CORE_BELIEF,
}

# Heuristic inference when the model gave no label, tried in order
_FALLBACK_RULES = (
    (LABELING, re.compile(
        r"(i am|i'm)\s+(a\s+)?(failure|loser|mess|burden|worthless|broken|unlovable|undesirable)",
        re.IGNORECASE)),
    (RUMINATION, re.compile(
        r"(replay|loop|can'?t stop thinking|ruminat|over and over|again and again)", re.IGNORECASE)),
    (CATASTROPHIZING, re.compile(
        r"(ruin|disaster|everything will|i'?ll be fired|worst case|end of the world)", re.IGNORECASE)),
    (ALL_OR_NOTHING, re.compile(
        r"\b(always|never|everything|nothing|completely|totally|either|only)\b", re.IGNORECASE)),
)

# A previous label is kept while the new message still matches its trigger
PREVIOUS_LABEL_TRIGGERS: Dict[str, Pattern[str]] = {
    LABELING: re.compile(r"(i am|i'm|i feel like i'm)", re.IGNORECASE),
    CATASTROPHIZING: re.compile(r"\b(worst|ruin|disaster|end|fired)\b", re.IGNORECASE),
    ALL_OR_NOTHING: re.compile(
        r"\b(always|never|everything|nothing|either|only|completely|totally)\b", re.IGNORECASE),
}


def normalize_thought_pattern(label: Optional[str]) -> str:
    """Map a free-text label to its canonical name; unknown labels pass through trimmed."""
    if not label:
        return ""
    raw = str(label).strip()
    lower = " ".join(raw.lower().split())
    for key, canonical in THOUGHT_PATTERN_SYNONYMS.items():
        if key in lower:
            return canonical
    return raw


def infer_fallback_thought_pattern(user_text: str, layer: str) -> str:
    if layer == LAYER_CORE_WOUND:
        return CORE_BELIEF
    folded = fold_text(user_text)
    for label, pattern in _FALLBACK_RULES:
        if pattern.search(folded):
            return label
    return ""


def is_core_belief_label(label: str) -> bool:
    return normalize_thought_pattern(label).lower() == CORE_BELIEF.lower()


def coerce_by_layer(label: str, layer: str) -> str:
    if layer == LAYER_CORE_WOUND:
        return CORE_BELIEF
    canonical = normalize_thought_pattern(label)
    if is_core_belief_label(canonical):
        return CATASTROPHIZING
    return canonical


def adjust_for_identity_statement(user_text: str, layer: str, label: str) -> str:
    if layer != LAYER_CORE_WOUND and is_identity_statement(user_text):
        return LABELING
    return label


def previous_label_fits(previous: str, user_text: str) -> bool:
    trigger = PREVIOUS_LABEL_TRIGGERS.get(previous)
    return bool(trigger and trigger.search(fold_text(user_text)))


def resolve_thought_pattern(
    model_label: Optional[str],
    user_text: str,
    layer: str,
    grounding_mode: bool = False,
    intent: str = "",
    previous_distortion: Optional[str] = None,
) -> str:
    """
    Final user-visible label for one turn.

    Order of precedence:
        CORE_WOUND                       -> "Core Belief" (grounding included)
        grounding mode                   -> ""
        CALM / LISTEN with no model label -> ""
        previous label still fits        -> previous label
        otherwise                        -> model label (or heuristic), layer-gated,
                                            then identity statements -> Labeling
    """
    if layer == LAYER_CORE_WOUND:
        return CORE_BELIEF
    if grounding_mode:
        return ""

    provided = normalize_thought_pattern(model_label)
    if intent in (INTENT_CALM, INTENT_LISTEN) and not provided:
        return ""

    previous = normalize_thought_pattern(previous_distortion)
    if previous and not is_core_belief_label(previous) and previous_label_fits(previous, user_text):
        logger.debug(f"[Patterns] reusing previous label {previous}")
        return previous

    candidate = provided or infer_fallback_thought_pattern(user_text, layer)
    label = coerce_by_layer(candidate, layer)
    return adjust_for_identity_statement(user_text, layer, label)
