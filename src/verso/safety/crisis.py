"""
Crisis detection and the fixed safety response.

The checker is a lexicon grader: HIGH for explicit self-harm or suicidal
phrasing, MEDIUM for hopeless-intent phrasing, LOW otherwise. The engine
accepts any object with a compatible check() method.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Pattern, Sequence

from ..content import templates
from ..core.context import ICEBERG_LAYERS, LAYER_SURFACE, EngineOutput
from ..core.utils import fold_text

logger = logging.getLogger(__name__)

SEVERITY_LOW = "LOW"
SEVERITY_MEDIUM = "MEDIUM"
SEVERITY_HIGH = "HIGH"
SEVERITY_LEVELS = (SEVERITY_LOW, SEVERITY_MEDIUM, SEVERITY_HIGH)

HIGH_RISK_PATTERNS: List[Pattern[str]] = [
    re.compile(p)
    for p in (
        r"\b(kill|hurt|harm|cut) (myself|me)\b",
        r"\bend (it all|my life|things)\b",
        r"\b(want|going|plan|planning) to die\b",
        r"\bsuicid(e|al)\b",
        r"\bself[- ]harm\b",
        r"\btake my (own )?life\b",
        r"\b(better off|world would be better) without me\b",
        r"\bdon'?t want to (live|be alive|wake up)\b",
        r"\bno reason to live\b",
    )
]

MEDIUM_RISK_PATTERNS: List[Pattern[str]] = [
    re.compile(p)
    for p in (
        r"\bwant to disappear\b",
        r"\bcan'?t go on\b",
        r"\bcan'?t keep going\b",
        r"\bwhat'?s the point of (living|anything|going on)\b",
        r"\bgive up on (everything|life)\b",
        r"\bno way out\b",
        r"\bnobody would (care|notice) if i (was|were) gone\b",
    )
]


@dataclass(frozen=True)
class CrisisCheck:
    level: str
    matches: List[str] = field(default_factory=list)

    @property
    def is_high(self) -> bool:
        return self.level == SEVERITY_HIGH


class KeywordCrisisChecker:
    """Grades text against fixed HIGH / MEDIUM pattern banks."""

    def __init__(
        self,
        high_patterns: Optional[Sequence[Pattern[str]]] = None,
        medium_patterns: Optional[Sequence[Pattern[str]]] = None,
    ):
        self.high_patterns = list(high_patterns or HIGH_RISK_PATTERNS)
        self.medium_patterns = list(medium_patterns or MEDIUM_RISK_PATTERNS)

    def check(self, text: str) -> CrisisCheck:
        folded = fold_text(text)
        high = [p.pattern for p in self.high_patterns if p.search(folded)]
        if high:
            logger.warning(f"[Crisis] HIGH severity ({len(high)} pattern(s))")
            return CrisisCheck(level=SEVERITY_HIGH, matches=high)
        medium = [p.pattern for p in self.medium_patterns if p.search(folded)]
        if medium:
            logger.info(f"[Crisis] MEDIUM severity ({len(medium)} pattern(s))")
            return CrisisCheck(level=SEVERITY_MEDIUM, matches=medium)
        return CrisisCheck(level=SEVERITY_LOW)


def generate_crisis_response(level: str) -> str:
    return templates.CRISIS_MESSAGES.get(level, "")


def build_crisis_output() -> EngineOutput:
    """The fixed safety payload returned instead of any model output."""
    return EngineOutput(
        acknowledgment=templates.CRISIS_ACKNOWLEDGMENT,
        thought_pattern=templates.CRISIS_THOUGHT_PATTERN,
        pattern_note=templates.CRISIS_PATTERN_NOTE,
        reframe=templates.CRISIS_REFRAME,
        question=templates.CRISIS_QUESTION,
        encouragement=generate_crisis_response(SEVERITY_HIGH),
        iceberg_layer=ICEBERG_LAYERS[LAYER_SURFACE],
        layer_insight=templates.CRISIS_LAYER_INSIGHT,
        is_crisis_response=True,
    )
