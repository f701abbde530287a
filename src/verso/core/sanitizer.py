"""
Output sanitizer and anti-repetition engine.

Takes whatever the model returned (possibly nothing) and produces the
user-visible fields. The model is never trusted on policy: duplicates are
removed against session memory, labels are layer-gated, questions pass
through a small state machine, and empty fields fall back to canned pools.

Canned selection goes through CannedSelector, which wraps a seedable numpy
Generator so that tests can pin every choice.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Tuple

import numpy as np

from ..content import templates
from .context import (
    LAYER_CORE_WOUND,
    AnalysisResult,
    ResponseFields,
)
from .patterns import resolve_thought_pattern
from .signals import (
    detect_repeated_effort,
    is_choice_question_text,
    is_therapist_probe,
    user_seems_flooded,
)
from .utils import (
    as_question,
    compact_one_sentence,
    compact_two_sentences,
    first_sentence,
    fold_text,
    is_duplicate,
    normalize_for_compare,
)

logger = logging.getLogger(__name__)

SNIPPET_CHARS = 90
SHORT_SNIPPET_CHARS = 25

_METAPHOR_CLUSTER = re.compile(
    r"(chapter|ending|just a story|black and white|spectrum|math problem|fixed point)", re.IGNORECASE
)
CORE_BANNED_PHRASES = (
    "just a story", "one chapter", "not the ending", "whole truth",
    "black and white photo", "spectrum of experiences", "math problem", "fixed point on a scale",
)
GROUNDING_QUESTION_BANNED = ("explore", "grounding", "deep")


class CannedSelector:
    """Uniform choice among canned options, reproducible under a seed."""

    def __init__(self, seed: Optional[int] = None):
        self.rng = np.random.default_rng(seed)

    def choose(self, options: Sequence[str]) -> str:
        if not options:
            return ""
        return options[int(self.rng.integers(len(options)))]

    def choose_fresh(self, options: Sequence[str], previous: Sequence[str] = ()) -> str:
        """Prefer options not already used; fall back to any option."""
        fresh = [o for o in options if o and not is_duplicate(o, previous)]
        return self.choose(fresh or list(options))


# =============================================================================
# THEMES & REFRAMES
# =============================================================================

def detect_theme(analysis: AnalysisResult) -> str:
    wound = fold_text(analysis.core_wound)
    fear = fold_text(analysis.underlying_fear)
    if any(k in wound for k in ("love", "alon", "leave", "want")) or any(k in fear for k in ("love", "alon")):
        return templates.THEME_ABANDONMENT
    if any(k in wound or k in fear for k in ("fail", "enough")):
        return templates.THEME_FAILURE
    return templates.THEME_NEUTRAL


def _layer_key(layer: str) -> str:
    return "core" if layer == LAYER_CORE_WOUND else "default"


def sanitize_reframe(
    reframe: str,
    previous_reframes: Sequence[str],
    analysis: AnalysisResult,
    layer: str,
) -> str:
    """Replace reframes that loop on an earlier opener or metaphor, or break CORE_WOUND style."""
    r = (reframe or "").strip()
    theme = detect_theme(analysis)

    if not r:
        return templates.EMPTY_REFRAMES[_layer_key(layer)][theme][0]

    cur = normalize_for_compare(r)
    prev = [normalize_for_compare(p) for p in previous_reframes]

    if cur.startswith("what if") and any(p.startswith("what if") for p in prev):
        if theme == templates.THEME_ABANDONMENT or layer == LAYER_CORE_WOUND:
            return templates.WHAT_IF_REPLACEMENTS["core"]
        return templates.WHAT_IF_REPLACEMENTS["default"]

    if _METAPHOR_CLUSTER.search(r) and any(_METAPHOR_CLUSTER.search(p) for p in prev):
        return templates.METAPHOR_REPLACEMENT

    if layer == LAYER_CORE_WOUND:
        lower = fold_text(r)
        if any(b in lower for b in CORE_BANNED_PHRASES):
            return templates.CORE_BANNED_REPLACEMENT

    return r


def ensure_unique_reframe(
    reframe: str,
    previous_reframes: Sequence[str],
    grounding_mode: bool = False,
    user_text: str = "",
) -> str:
    """
    Guarantee the reframe is not a normalized duplicate of any earlier one.

    Duplicates go to the pause pool (first unused line), then to a line
    anchored on the user's own words, then to silence.
    """
    if not is_duplicate(reframe, previous_reframes):
        return reframe
    pool = templates.PAUSE_REFRAMES["grounding" if grounding_mode else "default"]
    for candidate in pool:
        if not is_duplicate(candidate, previous_reframes):
            return candidate
    snippet = " ".join((user_text or "").split())[:40].strip()
    if snippet:
        anchored = templates.PAUSE_ANCHORED.format(snippet=snippet)
        if not is_duplicate(anchored, previous_reframes):
            return anchored
    logger.warning("[Sanitizer] every pause reframe already used; returning empty reframe")
    return ""


# =============================================================================
# QUESTIONS
# =============================================================================

def finalize_question(
    question: str,
    layer: str,
    user_text: str,
    previous_questions: Sequence[str],
    grounding_mode: bool = False,
    last_question_type: str = "",
) -> str:
    q = (question or "").strip()
    flooded = user_seems_flooded(user_text)
    probe = is_therapist_probe(q) if q else False
    dup = is_duplicate(q, previous_questions) if q else False

    if grounding_mode:
        if not q or probe:
            return ""
        one = first_sentence(q)
        if any(word in one.lower() for word in GROUNDING_QUESTION_BANNED):
            return ""
        out = as_question(one)
        return "" if is_duplicate(out, previous_questions) else out

    # No forced choice right after another one
    if last_question_type == "choice" and is_choice_question_text(q):
        return ""

    if layer != LAYER_CORE_WOUND:
        if not q or probe:
            return ""
        one = first_sentence(q)
        if is_duplicate(one, previous_questions):
            return ""
        out = as_question(one)
        return "" if is_duplicate(out, previous_questions) else out

    # CORE_WOUND: silence unless the question is clean
    out = as_question(first_sentence(q)) if q else ""
    if not q or probe or dup or is_therapist_probe(out) or is_duplicate(out, previous_questions):
        return _core_fallback_question(flooded, previous_questions, last_question_type)
    return out


def _core_fallback_question(flooded: bool, previous_questions: Sequence[str], last_question_type: str) -> str:
    if not flooded or last_question_type == "choice":
        return ""
    choice = templates.CHOICE_QUESTION
    return "" if is_duplicate(choice, previous_questions) else choice


def question_type(question: str) -> str:
    if not question:
        return ""
    return "choice" if is_choice_question_text(question) else "open"


# =============================================================================
# QUALITY GATE
# =============================================================================

def is_generic_line(text: str) -> bool:
    t = fold_text(normalize_for_compare(text))
    if not t or len(t) < templates.GENERIC_MIN_CHARS:
        return True
    return any(g in t for g in templates.GENERIC_LINES)


def needs_regeneration(
    fields: ResponseFields,
    previous_reframes: Sequence[str],
    previous_questions: Sequence[str],
) -> bool:
    q = fields.question.strip()
    r = fields.reframe.strip()
    e = fields.encouragement.strip()
    if q and is_duplicate(q, previous_questions):
        return True
    if r and is_duplicate(r, previous_reframes):
        return True
    if not r or is_generic_line(r):
        return True
    return bool(e) and is_generic_line(e)


# =============================================================================
# ASSEMBLY
# =============================================================================

@dataclass(frozen=True)
class TurnFrame:
    """Everything the sanitizer needs to know about the current turn."""
    user_text: str
    layer: str
    analysis: AnalysisResult
    intent: str = ""
    grounding_mode: bool = False
    ask_question: bool = True
    previous_questions: Tuple[str, ...] = ()
    previous_reframes: Tuple[str, ...] = ()
    previous_acknowledgments: Tuple[str, ...] = ()
    previous_encouragements: Tuple[str, ...] = ()
    previous_distortion: Optional[str] = None
    last_question_type: str = ""


def _text(parsed: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = parsed.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


class OutputSanitizer:
    def __init__(self, selector: Optional[CannedSelector] = None):
        self.selector = selector or CannedSelector()

    def assemble(self, parsed: Optional[Mapping[str, Any]], frame: TurnFrame) -> ResponseFields:
        """Turn a parsed model object (or None) into policy-clean fields."""
        parsed = parsed if isinstance(parsed, Mapping) else {}

        acknowledgment = _text(parsed, "acknowledgment") or self._fallback_acknowledgment(frame)

        thought_pattern = resolve_thought_pattern(
            _text(parsed, "thoughtPattern", "distortionType"),
            frame.user_text,
            frame.layer,
            grounding_mode=frame.grounding_mode,
            intent=frame.intent,
            previous_distortion=frame.previous_distortion,
        )

        pattern_note = self._pattern_note(_text(parsed, "patternNote", "distortionExplanation"), frame)

        reframe = _text(parsed, "reframe") or self._fallback_reframe(frame)
        reframe = sanitize_reframe(reframe, frame.previous_reframes, frame.analysis, frame.layer)
        reframe = ensure_unique_reframe(
            reframe, frame.previous_reframes, frame.grounding_mode, frame.user_text
        )

        question = finalize_question(
            _text(parsed, "question"),
            frame.layer,
            frame.user_text,
            frame.previous_questions,
            grounding_mode=frame.grounding_mode,
            last_question_type=frame.last_question_type,
        )
        if not frame.ask_question:
            question = ""

        encouragement = _text(parsed, "encouragement")
        # a repeated encouragement is dropped rather than replaced
        if is_duplicate(encouragement, frame.previous_encouragements):
            encouragement = ""
        if not encouragement and frame.grounding_mode:
            encouragement = templates.GROUNDING_ENCOURAGEMENT

        layer_insight = frame.analysis.core_wound or frame.analysis.underlying_fear or ""

        return ResponseFields(
            acknowledgment=acknowledgment,
            thought_pattern=thought_pattern,
            pattern_note=pattern_note,
            reframe=reframe,
            question=question,
            encouragement=encouragement,
            layer_insight=layer_insight,
        )

    def _fallback_acknowledgment(self, frame: TurnFrame) -> str:
        core = frame.layer == LAYER_CORE_WOUND
        snippet = frame.user_text.strip()[:SNIPPET_CHARS]
        if len(snippet) < SHORT_SNIPPET_CHARS:
            tail = (templates.ACKNOWLEDGMENT_SNIPPET_CORE if core
                    else templates.ACKNOWLEDGMENT_SNIPPET_DEFAULT).format(snippet=snippet)
        else:
            tail = templates.ACKNOWLEDGMENT_LONG_CORE if core else templates.ACKNOWLEDGMENT_LONG_DEFAULT
        pool = list(templates.ACKNOWLEDGMENTS_CORE if core else templates.ACKNOWLEDGMENTS_DEFAULT)
        pool.append(tail)
        return self.selector.choose_fresh(pool, frame.previous_acknowledgments)

    def _pattern_note(self, raw: str, frame: TurnFrame) -> str:
        if frame.grounding_mode:
            return ""
        if frame.layer == LAYER_CORE_WOUND:
            pool = templates.PATTERN_NOTES["core"]
        elif detect_repeated_effort(frame.user_text):
            pool = templates.PATTERN_NOTES["repeated_effort"]
        else:
            pool = templates.PATTERN_NOTES["default"]
        fallback = self.selector.choose_fresh(pool, frame.previous_questions + frame.previous_reframes)
        if frame.layer == LAYER_CORE_WOUND:
            return compact_one_sentence(raw) or fallback
        return compact_two_sentences(raw) or fallback

    def _fallback_reframe(self, frame: TurnFrame) -> str:
        if frame.grounding_mode:
            return templates.GROUNDING_REFRAME
        if frame.layer != LAYER_CORE_WOUND and detect_repeated_effort(frame.user_text):
            return self.selector.choose_fresh(templates.REPEATED_EFFORT_REFRAMES, frame.previous_reframes)
        theme = detect_theme(frame.analysis)
        pool = templates.EMPTY_REFRAMES[_layer_key(frame.layer)][theme]
        return self.selector.choose_fresh(pool, frame.previous_reframes)
