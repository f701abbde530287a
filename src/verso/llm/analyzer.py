"""
EmotionAnalyzer: phase one of the two-phase pipeline.

Reads beneath the user's words (trigger, interpretation, fear, need, wound)
and returns an AnalysisResult. Like a sensor, it never fails the request:
empty or unparsable output falls back to neutral defaults, and partial
objects are repaired key by key.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from ..core.context import HISTORY_WINDOW, AnalysisResult, ChatMessage
from .client import LLMGateway
from .parsing import parse_ai_json

logger = logging.getLogger(__name__)

ANALYSIS_PROMPT = """\
You have world-class emotional intelligence. You see beneath words - the unspoken fears, old wounds, hidden meanings.

Analyze this message with your full emotional intelligence. Return ONLY JSON.

{
  "trigger_event": "What specific thing happened? Name it precisely.",
  "likely_interpretation": "What meaning did they assign to this? What story are they telling themselves?",
  "underlying_fear": "What are they afraid this reveals about them? Go to the deepest core fear.",
  "emotional_need": "What do they deeply need right now? (to feel worthy, safe, seen, accepted, in control, understood)",
  "core_wound": "What old wound is this touching? What belief about themselves is being activated from their past?"
}

Be precise. Go deep."""


def history_messages(history: Sequence[ChatMessage]) -> List[Dict[str, str]]:
    """The last HISTORY_WINDOW turns as gateway messages."""
    return [m.to_dict() for m in list(history)[-HISTORY_WINDOW:]]


class EmotionAnalyzer:

    DEFAULT_ANALYSIS = {
        "trigger_event": "Something happened that triggered a reaction",
        "likely_interpretation": "This situation has meaning to them",
        "underlying_fear": "There's a fear underneath",
        "emotional_need": "Understanding",
        "core_wound": "",
    }

    def __init__(self, gateway: LLMGateway):
        self.gateway = gateway

    def build_messages(self, user_text: str, history: Sequence[ChatMessage]) -> List[Dict[str, str]]:
        messages = [{"role": "system", "content": ANALYSIS_PROMPT}]
        messages.extend(history_messages(history))
        messages.append({"role": "user", "content": user_text})
        return messages

    def analyze(self, user_text: str, history: Sequence[ChatMessage] = ()) -> AnalysisResult:
        response = self.gateway.send_with_retry(self.build_messages(user_text, history))
        parsed = parse_ai_json(response.content) if response else None
        if parsed is None:
            logger.warning("[Analyzer] No usable analysis, using neutral defaults")
            return self.default_analysis()
        return AnalysisResult(**self._validate_and_repair(parsed))

    def default_analysis(self) -> AnalysisResult:
        return AnalysisResult(**self.DEFAULT_ANALYSIS)

    def _validate_and_repair(self, result: Dict[str, Any]) -> Dict[str, str]:
        """Keep known string fields, fill anything missing or blank from defaults."""
        repaired = dict(self.DEFAULT_ANALYSIS)
        for key in self.DEFAULT_ANALYSIS:
            value = result.get(key)
            if isinstance(value, str) and value.strip():
                repaired[key] = value.strip()
        return repaired
