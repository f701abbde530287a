"""
Canned text for Verso.

Fallback pools used when the model returns nothing usable, keyed by layer
and theme. Selection among a pool goes through a seedable generator
(see core.sanitizer.CannedSelector), so tests can pin it.
"""

from __future__ import annotations

from typing import Dict, List

# Themes read from the analysis (core wound / underlying fear)
THEME_ABANDONMENT = "abandonment"
THEME_FAILURE = "failure"
THEME_NEUTRAL = "neutral"

# =============================================================================
# CRISIS
# =============================================================================

CRISIS_ACKNOWLEDGMENT = (
    "You're sharing something really serious, and I want to make sure you get the right support."
)
CRISIS_THOUGHT_PATTERN = "Crisis Response"
CRISIS_PATTERN_NOTE = "Right now your safety is the priority."
CRISIS_REFRAME = "This moment doesn't define you. There are people trained to help."
CRISIS_QUESTION = "Would you like me to connect you with someone who can help right now?"
CRISIS_LAYER_INSIGHT = "Your safety matters most right now."

CRISIS_RESOURCES = (
    "If you are in immediate danger, call your local emergency number.\n"
    "US: call or text 988 (Suicide & Crisis Lifeline).\n"
    "UK & ROI: call Samaritans on 116 123.\n"
    "Elsewhere: findahelpline.com lists free, confidential lines near you."
)

CRISIS_MESSAGES: Dict[str, str] = {
    "HIGH": (
        "I'm really glad you told me. You don't have to carry this alone, "
        "and you deserve support from a real person right now.\n\n" + CRISIS_RESOURCES
    ),
    "MEDIUM": (
        "It sounds like things feel very heavy. Talking to someone you trust, "
        "or a support line, can help.\n\n" + CRISIS_RESOURCES
    ),
    "LOW": "",
}

# =============================================================================
# ACKNOWLEDGMENTS
# =============================================================================

# "{snippet}" is filled with the start of the user's message when it is short.
ACKNOWLEDGMENTS_CORE: List[str] = [
    "Ouch. That's heavy to carry.",
    "That cuts deep.",
    "That's a painful place to be — and you're naming it.",
]
ACKNOWLEDGMENTS_DEFAULT: List[str] = [
    "Okay.",
    "Yeah — that makes sense.",
    "Got it.",
]
ACKNOWLEDGMENT_SNIPPET_CORE = "\"{snippet}\" — yeah. That hurts."
ACKNOWLEDGMENT_SNIPPET_DEFAULT = "\"{snippet}\" — noted."
ACKNOWLEDGMENT_LONG_CORE = "I get why this feels so sharp."
ACKNOWLEDGMENT_LONG_DEFAULT = "Thanks for putting words to it."

# =============================================================================
# PATTERN NOTES
# =============================================================================

PATTERN_NOTES: Dict[str, List[str]] = {
    "core": [
        "That belief shows up fast when the pressure hits.",
        "There's a deep fear driving this.",
        "This lands at identity-level, not just a passing thought.",
    ],
    "repeated_effort": [
        "This sounds less like a distortion and more like exhaustion.",
        "When effort keeps hitting walls, the mind reaches for a harsh explanation.",
    ],
    "default": [
        "When the stakes feel high, the mind tries to \"solve\" it by predicting outcomes.",
        "When you're depleted, thoughts get more absolute.",
    ],
}

# =============================================================================
# REFRAMES
# =============================================================================

# Used when the model gave no reframe at all
EMPTY_REFRAMES: Dict[str, Dict[str, List[str]]] = {
    "core": {
        THEME_ABANDONMENT: ["That fear is real — but it doesn't mean you're unlovable."],
        THEME_FAILURE: [
            "Not meeting expectations isn't proof you're a disappointment — it's pressure talking.",
        ],
        THEME_NEUTRAL: [
            "A painful moment can shake your confidence — but it still doesn't get to decide your worth.",
            "It feels true right now — but pressure can make it feel bigger than it is.",
        ],
    },
    "default": {
        THEME_ABANDONMENT: ["That fear is loud right now, but it isn't the whole truth about you."],
        THEME_FAILURE: [
            "This feels like a verdict, but it's still a thought under stress — not a final fact.",
        ],
        THEME_NEUTRAL: [
            "The feeling is real — but the conclusion might be harsher than the facts support.",
            "It can make emotional sense and still not be the full picture.",
        ],
    },
}

REPEATED_EFFORT_REFRAMES: List[str] = [
    "Effort without results doesn't erase the effort. Timing and constraints are real.",
    "The harsh conclusion isn't the only explanation here.",
]

GROUNDING_REFRAME = "You don't have to solve everything right now — just take the next breath."

# Replacement when a "what if" opener repeats
WHAT_IF_REPLACEMENTS: Dict[str, str] = {
    "core": "That fear is real — but it doesn't mean you're unlovable or alone forever.",
    "default": "The feeling is real, but the conclusion may be harsher than the facts.",
}

# Replacement when a metaphor cluster repeats
METAPHOR_REPLACEMENT = (
    "Let's keep this simple: the feeling is real, but the label you're putting "
    "on yourself may be harsher than the facts."
)

# Replacement when a CORE_WOUND reframe leans on a banned metaphor
CORE_BANNED_REPLACEMENT = (
    "This belief is your brain trying to protect you from getting hurt again — "
    "but it isn't a verdict on you."
)

# Replacement when a reframe still duplicates history
PAUSE_REFRAMES: Dict[str, List[str]] = {
    "grounding": [
        "Let's take one small breath here.",
        "Nothing needs deciding in this minute.",
        "Let's let your shoulders drop for a moment before anything else.",
    ],
    "default": [
        "Let's pause for a second — this is feeling more final than it actually is.",
        "Let's slow this down: what you feel is real, and it's still not the last word.",
        "This moment is loud, but it isn't the whole picture yet.",
    ],
}
PAUSE_ANCHORED = "Let's stay with \"{snippet}\" for a moment, without deciding what it means yet."

# =============================================================================
# QUESTIONS & ENCOURAGEMENT
# =============================================================================

CHOICE_QUESTION = "Do you want comfort right now, or a tiny practical step?"

GROUNDING_ENCOURAGEMENT = "Taking care of yourself is valid."

# Lines that read as templated filler; a reframe or encouragement containing
# one of these triggers regeneration.
GENERIC_LINES: List[str] = [
    "you're engaging with this",
    "that takes real effort",
    "just talking about it is a step",
    "it matters that you're showing up",
    "let's slow it down",
    "pressure makes everything feel final",
    "the feeling is real",
    "not a verdict",
    "i'm with you",
    "that makes sense",
    "you're not alone",
    "storm inside",
    "weather this storm",
]
GENERIC_MIN_CHARS = 12
