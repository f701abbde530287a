"""
Lexical signal detectors for the reflection engine.

Every heuristic is a small scoring function over a fixed phrase or pattern
table, so thresholds can be tested on their own. No model calls here.

Phrase tables are matched against folded text (lowercase, straight
apostrophes). Single words match on word boundaries, phrases as substrings;
arousal markers count as plain substrings, so "panicking" also scores "panic".
"""

from __future__ import annotations

import re
from typing import List, Pattern

from .utils import any_phrase, clamp01, count_substrings, fold_text

# =============================================================================
# THRESHOLDS
# =============================================================================

AROUSAL_THRESHOLD = 0.6
DISTORTION_THRESHOLD = 0.6

AROUSAL_MARKER_DIVISOR = 3.0
AROUSAL_EXCLAMATION_BONUS = 0.5
AROUSAL_LONG_TEXT_BONUS = 0.5
AROUSAL_LONG_TEXT_CHARS = 180

DISTORTION_WEIGHT_ABSOLUTIST = 0.4
DISTORTION_WEIGHT_CATASTROPHIC = 0.4
DISTORTION_WEIGHT_SHOULD = 0.25
DISTORTION_WEIGHT_MIND_READING = 0.25

# =============================================================================
# PHRASE TABLES
# =============================================================================

THANKS_PHRASES = (
    "thanks", "thank you", "i feel better", "feeling better",
    "a little better", "ok now", "i'm okay", "that helped", "this helped",
)

ACTION_REQUEST_PHRASES = (
    "what should i do", "what do i do", "next step", "how do i",
    "help me", "plan", "steps", "what now",
)

FLOOD_INDICATORS = (
    "i don't know", "dont know", "can't recall", "cant recall",
    "can't pinpoint", "cant pinpoint", "not sure", "idk",
    "whatever", "nothing", "blank", "mind is blank",
    "i can't think", "too much", "overwhelmed",
)

AROUSAL_MARKERS = (
    "panic", "panicking", "super anxious", "very anxious", "anxious",
    "can't breathe", "cant breathe", "heart racing", "overwhelmed",
    "all-consuming", "spiraling", "i can't handle", "i cant handle",
    "i feel sick", "terrified", "scared", "shaking",
)

GROUNDING_INDICATORS = (
    "grounding", "something grounding", "shift toward",
    "take a break", "step back", "pause", "reset",
    "comfort", "something calming", "gentle",
    "ice cream", "coffee", "walk", "tea", "breathe",
    "small thing", "tiny step", "practical step",
)

REPEATED_EFFORT_PHRASES = (
    "no matter how much", "no matter what", "no matter how hard",
    "over and over", "again and again", "keep trying", "keeps happening",
    "nothing works", "nothing i do", "always fails", "never works",
    "every time", "each time", "repeatedly", "keep failing",
    "tired of trying", "sick of trying", "gave up", "given up",
    "nothing ever goes", "nothing ever works", "can never",
    "doesn't matter what", "does not matter what",
)

THERAPIST_PROBE_PHRASES = (
    "earliest memory", "when did you first", "how long have you",
    "when did this start", "childhood", "growing up", "in your past",
    "timeline", "first started feeling", "memory you have of",
    "where did you learn", "what happened when you were",
    "where in your body", "where do you feel it", "where in your head",
    "pin point", "pinpoint", "describe where",
    "chapter", "ending", "story",
)

_ABSOLUTIST_RE = re.compile(r"\b(always|never|everyone|no one|nothing|everything)\b", re.IGNORECASE)
_CATASTROPHIC_RE = re.compile(r"\b(worst|ruin|disaster|fired|hopeless|pointless)\b", re.IGNORECASE)
_SHOULD_RE = re.compile(r"\b(should|must|have to)\b", re.IGNORECASE)
_MIND_READING_RE = re.compile(r"\b(they think|they'll think|they will think)\b", re.IGNORECASE)

# First-person deficiency, hopelessness and abandonment statements.
# Any match forces the deepest layer.
CORE_BELIEF_PATTERNS: List[Pattern[str]] = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"i am not (built|made|cut out|good|smart|capable|worthy|enough|lovable|deserving)",
        r"i'm not (built|made|cut out|good|smart|capable|worthy|enough|lovable|deserving)",
        r"i am (a failure|worthless|hopeless|broken|fraud|burden|loser|mess|disappointment|undesirable)",
        r"i'm (a failure|worthless|hopeless|broken|fraud|burden|loser|mess|disappointment|undesirable)",
        r"i can't (do|be|handle|figure|seem to|ever)",
        r"i (don't|do not) (deserve|belong|matter|fit in)",
        r"i will never (be|find|get|have|become|amount)",
        r"i'?ll never (be|find|get|have|become|amount)",
        r"nothing i (do|try) (matters|works|is enough|ever)",
        r"no one('s| is| will| would| can| going to| gonna) (love|want|care|stay|be there)",
        r"no-?one('s| is| will| would| can| going to| gonna) (love|want|care|stay|be there)",
        r"nobody('s| is| will| would| can| going to| gonna) (love|want|care|stay|be there)",
        r"no one will ever",
        r"nobody will ever",
        r"everyone (leaves|leaving|left|abandons)",
        r"they'?re all (going to|gonna) leave",
        r"i'?ll (always|forever) be (alone|lonely|single)",
        r"i will die alone",
        r"i'?ve always been",
        r"i always (fail|mess up|screw up|ruin|destroy)",
        r"everything i (do|try) (fails|is wrong|is not enough)",
        r"that means i'?m (not|a|an)",
        r"that'?s just who i am",
        r"i don't (have any|have no) (worth|value|purpose)",
        r"i (have no|don't have any) (business|right|place)",
        r"i (feel|think|believe) (like )?i'?m (not|a|an)",
        r"i don't believe in (myself|me)",
        r"what'?s (wrong|the matter) with me",
        r"why (can't|do|am) i (not|never|always)",
        r"i (give up|quit|can't do this anymore)",
    )
]

# Identity statements ("I am a failure") read as Labeling below the core layer
IDENTITY_PATTERNS: List[Pattern[str]] = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^i am [a-z]+\.?$",
        r"^i'?m [a-z]+\.?$",
        r"^i am not [a-z]+\.?$",
        r"^i'?m not [a-z]+\.?$",
        r"i am (undesirable|unlovable|worthless|hopeless|broken|a failure|a fraud|a burden|a mess|a loser|a disappointment)",
        r"i'?m (undesirable|unlovable|worthless|hopeless|broken|a failure|a fraud|a burden|a mess|a loser|a disappointment)",
    )
]


# =============================================================================
# DETECTORS
# =============================================================================

def detect_thanks_or_resolution(text: str) -> bool:
    return any_phrase(text, THANKS_PHRASES)


def detect_action_request(text: str) -> bool:
    return any_phrase(text, ACTION_REQUEST_PHRASES)


def user_seems_flooded(text: str) -> bool:
    """Language of overwhelm or inability to name specifics."""
    return any_phrase(text, FLOOD_INDICATORS)


def user_chose_grounding(text: str) -> bool:
    return any_phrase(text, GROUNDING_INDICATORS)


def detect_repeated_effort(text: str) -> bool:
    return any_phrase(text, REPEATED_EFFORT_PHRASES)


def high_arousal_score(text: str) -> float:
    """
    Arousal in [0, 1].

    markers/3, plus 0.5 for two or more "!", plus 0.5 for a long message
    that talks about "everything" or "nothing".
    """
    raw = text or ""
    folded = fold_text(raw)
    score = count_substrings(raw, AROUSAL_MARKERS) / AROUSAL_MARKER_DIVISOR
    if raw.count("!") >= 2:
        score += AROUSAL_EXCLAMATION_BONUS
    if len(raw) > AROUSAL_LONG_TEXT_CHARS and ("everything" in folded or "nothing" in folded):
        score += AROUSAL_LONG_TEXT_BONUS
    return clamp01(score)


def distortion_likelihood(text: str) -> float:
    """Weighted sum of distortion cues, clamped to [0, 1]."""
    folded = fold_text(text)
    score = 0.0
    if _ABSOLUTIST_RE.search(folded):
        score += DISTORTION_WEIGHT_ABSOLUTIST
    if _CATASTROPHIC_RE.search(folded):
        score += DISTORTION_WEIGHT_CATASTROPHIC
    if _SHOULD_RE.search(folded):
        score += DISTORTION_WEIGHT_SHOULD
    if _MIND_READING_RE.search(folded):
        score += DISTORTION_WEIGHT_MIND_READING
    return clamp01(score)


def reveals_core_belief(text: str) -> bool:
    folded = fold_text(text)
    return any(p.search(folded) for p in CORE_BELIEF_PATTERNS)


def is_identity_statement(text: str) -> bool:
    folded = fold_text(text)
    return any(p.search(folded) for p in IDENTITY_PATTERNS)


def is_therapist_probe(question: str) -> bool:
    """Timeline, childhood, body-location and narrative probes."""
    folded = fold_text(question)
    if not folded:
        return False
    if any_phrase(folded, THERAPIST_PROBE_PHRASES):
        return True
    return bool(re.match(r"^when did\b", folded))


def is_choice_question_text(question: str) -> bool:
    """Forced-choice prompts such as "comfort or a practical step?"."""
    s = fold_text(question)
    if not s:
        return False
    return (
        "comfort right now" in s
        or "tiny practical step" in s
        or ("comfort" in s and "practical" in s)
        or ("do you want" in s and re.search(r"\bor\b", s) is not None)
    )
