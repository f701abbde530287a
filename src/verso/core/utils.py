"""
Text and numeric helpers shared by the reflection engine.

Comparison normalization, sentence compaction, and bounded scores.
"""

from __future__ import annotations

import re
from typing import Iterable

import numpy as np

_SENTENCE_BREAK = re.compile(r"[.!?]\s")
_TERMINAL_PUNCT = re.compile(r"[.!?]$")


def clamp01(x: float) -> float:
    """Clamp a score into [0, 1]."""
    return float(np.clip(x, 0.0, 1.0))


def normalize_for_compare(text: str) -> str:
    """Lowercase, collapse whitespace, trim. Used for every duplicate check."""
    return " ".join((text or "").lower().split()).strip()


def fold_text(text: str) -> str:
    """Lowercase and fold typographic apostrophes for phrase matching."""
    return (text or "").replace("’", "'").replace("‘", "'").lower().strip()


def contains_phrase(text: str, phrase: str) -> bool:
    """
    Match a phrase inside already-folded text.

    Multi-word phrases match as substrings; single words match on word
    boundaries so "tea" does not fire on "team".
    """
    if not text or not phrase:
        return False
    if " " in phrase or not phrase[0].isalnum() or not phrase[-1].isalnum():
        return phrase in text
    return bool(re.search(rf"\b{re.escape(phrase)}\b", text))


def count_substrings(text: str, phrases: Iterable[str]) -> int:
    """Count phrases occurring anywhere in the folded text, inside words too."""
    folded = fold_text(text)
    return sum(1 for p in phrases if p and p in folded)


def any_phrase(text: str, phrases: Iterable[str]) -> bool:
    folded = fold_text(text)
    return any(contains_phrase(folded, p) for p in phrases)


def is_duplicate(candidate: str, previous: Iterable[str]) -> bool:
    """Exact match after normalization against any prior string."""
    cur = normalize_for_compare(candidate)
    return any(normalize_for_compare(p) == cur for p in previous)


def first_sentence(text: str) -> str:
    t = (text or "").strip()
    if not t:
        return ""
    return _SENTENCE_BREAK.split(t)[0].strip() or t


def as_question(text: str) -> str:
    return text if text.endswith("?") else f"{text}?"


def compact_one_sentence(text: str) -> str:
    one = first_sentence(text)
    if not one:
        return ""
    return one if _TERMINAL_PUNCT.search(one) else f"{one}."


def compact_two_sentences(text: str) -> str:
    t = (text or "").strip()
    if not t:
        return ""
    parts = [p for p in _SENTENCE_BREAK.split(t) if p]
    out = ". ".join(parts[:2]).strip()
    if not out:
        return ""
    return out if _TERMINAL_PUNCT.search(out) else f"{out}."
