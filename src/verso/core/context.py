"""
Request-scoped data model for the reflection engine.

Everything here is created fresh per request. SessionContext is supplied by
the caller (rebuilt from persisted history) and is never mutated; the engine
returns a new EngineOutput and callers derive the next context from it.

Wire form (JSON) uses camelCase keys; attributes are snake_case.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

# Intents a client may declare
INTENT_AUTO = "AUTO"
INTENT_CALM = "CALM"
INTENT_CLARITY = "CLARITY"
INTENT_NEXT_STEP = "NEXT_STEP"
INTENT_MEANING = "MEANING"
INTENT_LISTEN = "LISTEN"
INTENTS = (
    INTENT_AUTO,
    INTENT_CALM,
    INTENT_CLARITY,
    INTENT_NEXT_STEP,
    INTENT_MEANING,
    INTENT_LISTEN,
)

# Conversation depth
LAYER_SURFACE = "SURFACE"
LAYER_TRANSITION = "TRANSITION"
LAYER_EMOTION = "EMOTION"
LAYER_CORE_WOUND = "CORE_WOUND"
LAYERS = (LAYER_SURFACE, LAYER_TRANSITION, LAYER_EMOTION, LAYER_CORE_WOUND)

# User-visible iceberg names per layer
ICEBERG_LAYERS = {
    LAYER_SURFACE: "surface",
    LAYER_TRANSITION: "trigger",
    LAYER_EMOTION: "emotion",
    LAYER_CORE_WOUND: "coreBelief",
}

# Memory caps (most-recent-first)
MAX_PREVIOUS_QUESTIONS = 25
MAX_PREVIOUS_REFRAMES = 25
MAX_PREVIOUS_DISTORTIONS = 10
MAX_PREVIOUS_LINES = 25

# Only this many history turns are ever sent to the model
HISTORY_WINDOW = 6

QUESTION_TYPES = ("choice", "open", "")


def _str_tuple(values: Any, cap: int) -> Tuple[str, ...]:
    if not values:
        return ()
    out = [str(v).strip() for v in values if isinstance(v, str) and v.strip()]
    return tuple(out[:cap])


@dataclass(frozen=True)
class ChatMessage:
    """One conversation turn."""
    role: str  # "user" | "assistant"
    content: str

    def __post_init__(self):
        if self.role not in ("user", "assistant"):
            raise ValueError(f"Invalid role: {self.role!r}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChatMessage":
        return cls(role=str(data.get("role", "")), content=str(data.get("content") or ""))

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class SessionContext:
    """Per-session carry-over state supplied by the caller."""
    previous_questions: Tuple[str, ...] = ()
    previous_reframes: Tuple[str, ...] = ()
    previous_distortions: Tuple[str, ...] = ()
    previous_acknowledgments: Tuple[str, ...] = ()
    previous_encouragements: Tuple[str, ...] = ()
    original_trigger: Optional[str] = None
    core_belief_already_detected: bool = False
    grounding_mode: bool = False
    grounding_turns: int = 0
    last_question_type: str = ""
    user_intent: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "SessionContext":
        """Build from the camelCase wire form, applying the memory caps."""
        if not data:
            return cls()
        trigger = data.get("originalTrigger")
        qtype = data.get("lastQuestionType") or ""
        turns = data.get("groundingTurns")
        return cls(
            previous_questions=_str_tuple(data.get("previousQuestions"), MAX_PREVIOUS_QUESTIONS),
            previous_reframes=_str_tuple(data.get("previousReframes"), MAX_PREVIOUS_REFRAMES),
            previous_distortions=_str_tuple(data.get("previousDistortions"), MAX_PREVIOUS_DISTORTIONS),
            previous_acknowledgments=_str_tuple(data.get("previousAcknowledgments"), MAX_PREVIOUS_LINES),
            previous_encouragements=_str_tuple(data.get("previousEncouragements"), MAX_PREVIOUS_LINES),
            original_trigger=trigger if isinstance(trigger, str) and trigger.strip() else None,
            core_belief_already_detected=bool(data.get("coreBeliefAlreadyDetected", False)),
            grounding_mode=bool(data.get("groundingMode", False)),
            grounding_turns=int(turns) if isinstance(turns, (int, float)) else 0,
            last_question_type=qtype if qtype in QUESTION_TYPES else "",
            user_intent=data.get("userIntent"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "previousQuestions": list(self.previous_questions),
            "previousReframes": list(self.previous_reframes),
            "previousDistortions": list(self.previous_distortions),
            "previousAcknowledgments": list(self.previous_acknowledgments),
            "previousEncouragements": list(self.previous_encouragements),
            "originalTrigger": self.original_trigger,
            "coreBeliefAlreadyDetected": self.core_belief_already_detected,
            "groundingMode": self.grounding_mode,
            "groundingTurns": self.grounding_turns,
            "lastQuestionType": self.last_question_type,
            "userIntent": self.user_intent,
        }


@dataclass
class AnalysisResult:
    """Phase-1 reading of the message. All free text from the model."""
    trigger_event: str
    likely_interpretation: str
    underlying_fear: str
    emotional_need: str
    core_wound: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "trigger_event": self.trigger_event,
            "likely_interpretation": self.likely_interpretation,
            "underlying_fear": self.underlying_fear,
            "emotional_need": self.emotional_need,
            "core_wound": self.core_wound,
        }


@dataclass(frozen=True)
class EngineDecision:
    """Router output. Fully determined by its inputs."""
    state: str
    intervention: str
    confidence: float
    reasons: Tuple[str, ...]
    ask_question: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state,
            "intervention": self.intervention,
            "confidence": self.confidence,
            "reasons": list(self.reasons),
            "askQuestion": self.ask_question,
        }


@dataclass(frozen=True)
class ResponseFields:
    """The sanitized, user-visible text fields of one response."""
    acknowledgment: str = ""
    thought_pattern: str = ""
    pattern_note: str = ""
    reframe: str = ""
    question: str = ""
    encouragement: str = ""
    layer_insight: str = ""


@dataclass(frozen=True)
class EngineOutput:
    """The user-visible contract returned for one request."""
    acknowledgment: str
    thought_pattern: str
    pattern_note: str
    reframe: str
    question: str
    encouragement: str
    iceberg_layer: str
    layer_insight: str
    grounding_mode: bool = False
    grounding_turns: int = 0
    progress_score: int = 0
    layer_progress: Dict[str, int] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)
    is_crisis_response: bool = False

    @property
    def effective_layer(self) -> Optional[str]:
        return self.meta.get("effectiveLayer")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "acknowledgment": self.acknowledgment,
            "thoughtPattern": self.thought_pattern,
            "patternNote": self.pattern_note,
            "reframe": self.reframe,
            "question": self.question,
            "encouragement": self.encouragement,
            "icebergLayer": self.iceberg_layer,
            "layerInsight": self.layer_insight,
            "groundingMode": self.grounding_mode,
            "groundingTurns": self.grounding_turns,
            "progressScore": self.progress_score,
            "layerProgress": dict(self.layer_progress),
            "_meta": dict(self.meta),
            "_isCrisisResponse": self.is_crisis_response,
        }


def coerce_history(history: Optional[Sequence[Any]]) -> List[ChatMessage]:
    """Accept ChatMessage objects or role/content dicts."""
    out: List[ChatMessage] = []
    for msg in history or ():
        if isinstance(msg, ChatMessage):
            out.append(msg)
        else:
            out.append(ChatMessage.from_dict(msg))
    return out
