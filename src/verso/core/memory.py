"""
Session memory: rebuilding SessionContext from stored turns.

The engine is stateless; everything it remembers arrives as a SessionContext.
These helpers derive that context from persisted engine outputs and compute
the next context after a turn, without mutating the old one.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..llm.parsing import parse_ai_json
from .context import (
    MAX_PREVIOUS_DISTORTIONS,
    MAX_PREVIOUS_LINES,
    MAX_PREVIOUS_QUESTIONS,
    MAX_PREVIOUS_REFRAMES,
    ChatMessage,
    EngineOutput,
    SessionContext,
)
from .sanitizer import question_type
from .utils import normalize_for_compare

logger = logging.getLogger(__name__)

STORED_OUTPUTS_SCANNED = 20
HYDRATE_ASSISTANT_TURNS = 10


def uniq_recent(items: Iterable[str], limit: int) -> Tuple[str, ...]:
    """Keep first occurrences by normalized text, up to limit. Input order is preserved."""
    seen = set()
    out: List[str] = []
    for item in items:
        key = normalize_for_compare(item)
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(item.strip())
        if len(out) >= limit:
            break
    return tuple(out)


def last_question_type_for(previous_questions: Sequence[str]) -> str:
    return question_type(previous_questions[0]) if previous_questions else ""


def hydrate_memory_from_history(
    history: Sequence[ChatMessage],
    previous_questions: Sequence[str] = (),
    previous_reframes: Sequence[str] = (),
) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
    """
    Extend the exclusion lists with questions and reframes found in
    JSON-shaped assistant turns among the last few of the history.
    """
    questions = list(previous_questions)
    reframes = list(previous_reframes)
    assistant = [m for m in history if m.role == "assistant"][-HYDRATE_ASSISTANT_TURNS:]
    for msg in assistant:
        parsed = parse_ai_json(msg.content)
        if not parsed:
            continue
        q = parsed.get("question") or parsed.get("probingQuestion")
        r = parsed.get("reframe")
        if isinstance(q, str) and q.strip():
            questions.append(q.strip())
        if isinstance(r, str) and r.strip():
            reframes.append(r.strip())
    return (
        uniq_recent(questions, MAX_PREVIOUS_QUESTIONS),
        uniq_recent(reframes, MAX_PREVIOUS_REFRAMES),
    )


def _field(output: Mapping[str, Any], key: str) -> str:
    value = output.get(key)
    return value.strip() if isinstance(value, str) else ""


def build_session_context(
    outputs: Sequence[Mapping[str, Any]],
    user_messages: Sequence[str] = (),
    original_trigger: Optional[str] = None,
    grounding_mode: bool = False,
    grounding_turns: int = 0,
    core_belief_already_detected: bool = False,
    user_intent: Optional[str] = None,
) -> SessionContext:
    """
    Derive a SessionContext from stored engine outputs (oldest first, wire form).

    The most recent outputs come first in every list.
    """
    recent = list(outputs)[-STORED_OUTPUTS_SCANNED:][::-1]
    questions = [_field(o, "question") for o in recent]
    reframes = [_field(o, "reframe") for o in recent]
    distortions = [_field(o, "thoughtPattern") for o in recent]
    acknowledgments = [_field(o, "acknowledgment") for o in recent]
    encouragements = [_field(o, "encouragement") for o in recent]

    previous_questions = uniq_recent(questions, MAX_PREVIOUS_QUESTIONS)
    trigger = original_trigger.strip() if original_trigger and original_trigger.strip() else None
    if trigger is None and user_messages:
        trigger = user_messages[0]

    return SessionContext(
        previous_questions=previous_questions,
        previous_reframes=uniq_recent(reframes, MAX_PREVIOUS_REFRAMES),
        previous_distortions=uniq_recent(distortions, MAX_PREVIOUS_DISTORTIONS),
        previous_acknowledgments=uniq_recent(acknowledgments, MAX_PREVIOUS_LINES),
        previous_encouragements=uniq_recent(encouragements, MAX_PREVIOUS_LINES),
        original_trigger=trigger,
        core_belief_already_detected=core_belief_already_detected,
        grounding_mode=grounding_mode,
        grounding_turns=grounding_turns,
        last_question_type=last_question_type_for(previous_questions),
        user_intent=user_intent,
    )


def next_context(ctx: Optional[SessionContext], user_message: str, output: EngineOutput) -> SessionContext:
    """
    The context for the following turn.

    Crisis responses are not recorded in memory; they leave the context
    as it was apart from fixing the original trigger.
    """
    ctx = ctx or SessionContext()
    trigger = ctx.original_trigger or user_message
    if output.is_crisis_response:
        return replace(ctx, original_trigger=trigger)

    def prepend(value: str, existing: Sequence[str], cap: int) -> Tuple[str, ...]:
        return uniq_recent([value, *existing], cap)

    return SessionContext(
        previous_questions=prepend(output.question, ctx.previous_questions, MAX_PREVIOUS_QUESTIONS),
        previous_reframes=prepend(output.reframe, ctx.previous_reframes, MAX_PREVIOUS_REFRAMES),
        previous_distortions=prepend(
            output.thought_pattern, ctx.previous_distortions, MAX_PREVIOUS_DISTORTIONS
        ),
        previous_acknowledgments=prepend(
            output.acknowledgment, ctx.previous_acknowledgments, MAX_PREVIOUS_LINES
        ),
        previous_encouragements=prepend(
            output.encouragement, ctx.previous_encouragements, MAX_PREVIOUS_LINES
        ),
        original_trigger=trigger,
        core_belief_already_detected=(
            ctx.core_belief_already_detected or bool(output.meta.get("coreBeliefDetected"))
        ),
        grounding_mode=output.grounding_mode,
        grounding_turns=output.grounding_turns,
        last_question_type=question_type(output.question),
        user_intent=ctx.user_intent,
    )
