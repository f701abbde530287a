"""
ReflectionEngine: one user message in, one EngineOutput out.

Control flows strictly in order:

    validate -> crisis check -> intent -> grounding -> layer -> route
             -> analysis call -> response call -> sanitize (+ one regeneration)
             -> progress

Everything before the model calls is deterministic. The model path never
fails a request: empty or broken output degrades to canned content. Only
invalid input raises.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from ..llm.analyzer import EmotionAnalyzer
from ..llm.client import LLMGateway
from ..llm.generator import ResponseBrief, ResponseGenerator
from ..llm.parsing import parse_ai_json
from ..safety.crisis import SEVERITY_HIGH, KeywordCrisisChecker, build_crisis_output
from ..safety.validation import require_valid_thought
from .context import ChatMessage, EngineOutput, SessionContext, coerce_history
from .grounding import track_grounding
from .intent import resolve_intent
from .layers import classify_layer
from .memory import hydrate_memory_from_history, last_question_type_for
from .progress import project_progress
from .router import decide_engine_state
from .sanitizer import CannedSelector, OutputSanitizer, TurnFrame, needs_regeneration

logger = logging.getLogger(__name__)

FALLBACK_PROVIDER = "fallback"

ContextLike = Union[SessionContext, Mapping[str, Any], None]


def _as_context(value: ContextLike) -> SessionContext:
    if isinstance(value, SessionContext):
        return value
    return SessionContext.from_dict(value)


def resolve_original_trigger(ctx: SessionContext, history: Sequence[ChatMessage], user_text: str) -> str:
    if ctx.original_trigger:
        return ctx.original_trigger
    for msg in history:
        if msg.role == "user" and msg.content.strip():
            return msg.content
    return user_text


class ReflectionEngine:
    """
    Stateless pipeline around a language model gateway.

    Collaborators are injected: the gateway, the crisis checker (anything
    with check(text) returning an object with a .level), and an optional
    seed for canned-pool selection.
    """

    def __init__(
        self,
        gateway: LLMGateway,
        crisis_checker: Optional[Any] = None,
        seed: Optional[int] = None,
    ):
        self.gateway = gateway
        self.crisis_checker = crisis_checker or KeywordCrisisChecker()
        self.analyzer = EmotionAnalyzer(gateway)
        self.generator = ResponseGenerator(gateway)
        self.sanitizer = OutputSanitizer(CannedSelector(seed))

    def run(
        self,
        user_message: str,
        conversation_history: Sequence[Any] = (),
        session_context: ContextLike = None,
    ) -> EngineOutput:
        text = require_valid_thought(user_message)

        crisis = self.crisis_checker.check(text)
        if crisis.level == SEVERITY_HIGH:
            logger.warning("[ReflectionEngine] Crisis response returned")
            return build_crisis_output()

        ctx = _as_context(session_context)
        history = coerce_history(conversation_history)

        intent = resolve_intent(ctx.user_intent)
        grounding = track_grounding(text, ctx)
        reading = classify_layer(text, history, ctx.core_belief_already_detected)
        decision = decide_engine_state(text, intent, grounding.mode)
        logger.info(
            f"[ReflectionEngine] turn={reading.turn_count} layer={reading.layer} intent={intent} "
            f"state={decision.state}/{decision.intervention} grounding={grounding.mode} "
            f"len={len(text)}"
        )

        analysis = self.analyzer.analyze(text, history)

        previous_questions, previous_reframes = hydrate_memory_from_history(
            history, ctx.previous_questions, ctx.previous_reframes
        )
        brief = ResponseBrief(
            user_text=text,
            analysis=analysis,
            layer=reading.layer,
            decision=decision,
            intent=intent,
            grounding_mode=grounding.mode,
            original_trigger=resolve_original_trigger(ctx, history, text),
            previous_questions=previous_questions,
            previous_reframes=previous_reframes,
        )
        frame = TurnFrame(
            user_text=text,
            layer=reading.layer,
            analysis=analysis,
            intent=intent,
            grounding_mode=grounding.mode,
            ask_question=decision.ask_question,
            previous_questions=previous_questions,
            previous_reframes=previous_reframes,
            previous_acknowledgments=ctx.previous_acknowledgments,
            previous_encouragements=ctx.previous_encouragements,
            previous_distortion=ctx.previous_distortions[0] if ctx.previous_distortions else None,
            last_question_type=ctx.last_question_type or last_question_type_for(ctx.previous_questions),
        )

        fields, response, regenerated = self._respond(brief, frame, history)

        progress = project_progress(reading.turn_count, reading.core_belief_ever)
        meta: Dict[str, Any] = {
            "provider": response.provider if response else FALLBACK_PROVIDER,
            "model": response.model if response else None,
            "turn": reading.turn_count,
            "effectiveLayer": reading.layer,
            "coreBeliefDetected": reading.core_belief_detected,
            "intent": intent,
            "state": decision.state,
            "intervention": decision.intervention,
            "confidence": decision.confidence,
            "reasons": list(decision.reasons),
            "regenerated": regenerated,
        }
        return EngineOutput(
            acknowledgment=fields.acknowledgment,
            thought_pattern=fields.thought_pattern,
            pattern_note=fields.pattern_note,
            reframe=fields.reframe,
            question=fields.question,
            encouragement=fields.encouragement,
            iceberg_layer=reading.iceberg_layer,
            layer_insight=fields.layer_insight,
            grounding_mode=grounding.mode,
            grounding_turns=grounding.turns,
            progress_score=progress.score,
            layer_progress=progress.layers,
            meta=meta,
        )

    def _respond(self, brief: ResponseBrief, frame: TurnFrame, history: Sequence[ChatMessage]):
        """
        Phase two plus the quality gate. Returns (fields, response, regenerated).

        At most one regeneration call is made per request.
        """
        response = self.generator.generate(brief, history)

        if response is None:
            logger.warning("[ReflectionEngine] Response phase empty, trying a fresh regeneration")
            regen = self.generator.regenerate(brief)
            parsed = parse_ai_json(regen.content) if regen else None
            return self.sanitizer.assemble(parsed, frame), regen if parsed is not None else None, True

        fields = self.sanitizer.assemble(parse_ai_json(response.content), frame)
        if not needs_regeneration(fields, frame.previous_reframes, frame.previous_questions):
            return fields, response, False

        logger.info("[ReflectionEngine] Output generic or repeated, regenerating once")
        regen = self.generator.regenerate(brief)
        parsed = parse_ai_json(regen.content) if regen else None
        if parsed is None:
            return fields, response, True
        return self.sanitizer.assemble(parsed, frame), regen, True


def run_engine(
    engine: ReflectionEngine,
    user_message: str,
    conversation_history: Sequence[Any] = (),
    session_context: ContextLike = None,
) -> Dict[str, Any]:
    """Run one turn and return the wire-form dict."""
    return engine.run(user_message, conversation_history, session_context).to_dict()
