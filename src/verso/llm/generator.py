"""
ResponseGenerator: phase two of the two-phase pipeline.

Builds the response prompt from everything the deterministic layers decided
(analysis, layer, router decision, grounding, intent) and asks the gateway
for the structured JSON reply. Prior questions and reframes are listed in
the prompt as things not to repeat; the sanitizer enforces it regardless.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from ..core.context import (
    INTENT_AUTO,
    LAYER_CORE_WOUND,
    LAYER_EMOTION,
    LAYER_SURFACE,
    LAYER_TRANSITION,
    AnalysisResult,
    ChatMessage,
    EngineDecision,
)
from .analyzer import history_messages
from .client import GatewayResponse, LLMGateway

logger = logging.getLogger(__name__)

PROMPT_QUESTIONS_SHOWN = 10
PROMPT_REFRAMES_SHOWN = 8
REGEN_ITEMS_SHOWN = 25

INTENT_GUIDANCE: Dict[str, str] = {
    "CALM": """\
INTENT: CALM
- Prioritize grounding + nervous-system settling.
- Short, concrete, present-tense.
- Avoid cognitive labels unless the user explicitly asks.
- Question optional.""",
    "CLARITY": """\
INTENT: CLARITY
- Separate facts vs story.
- If a distortion isn't clearly present, leave thoughtPattern empty.
- Offer one clean reframe. One question max.""",
    "NEXT_STEP": """\
INTENT: NEXT_STEP
- Convert overwhelm into a tiny plan (1-3 steps).
- Practical, not preachy.
- Ask a narrowing question only if it helps action.""",
    "MEANING": """\
INTENT: MEANING
- Help them name what this touches (fear/need/value).
- Keep it grounded. Avoid cliches.
- One reflective question max.""",
    "LISTEN": """\
INTENT: LISTEN
- Validate + mirror with specificity.
- Minimal advice. Do not force reframes.
- Labels optional. Question may be empty.""",
    INTENT_AUTO: """\
INTENT: AUTO
- Choose the most helpful mode based on the user's message.
- If they seem flooded/overwhelmed, lean CALM.
- If they ask what to do, lean NEXT_STEP.""",
}

LAYER_GUIDANCE: Dict[str, str] = {
    LAYER_SURFACE: """\
CURRENT LAYER: SURFACE
- Be curious, not clinical.
- Track what happened + what it means.
- At most ONE question, and only if it helps.""",
    LAYER_TRANSITION: """\
CURRENT LAYER: TRANSITION
- Connect the trigger to what it MEANS to them.
- At most ONE question, and only if it helps.""",
    LAYER_EMOTION: """\
CURRENT LAYER: EMOTION
- Sit with the feeling. Slow down.
- No timeline probing.
- At most ONE question, and only if it helps.""",
    LAYER_CORE_WOUND: """\
CURRENT LAYER: CORE WOUND (PRESENCE MODE)
- thoughtPattern MUST be exactly "Core Belief".
- No timelines. No "when did this start".
- patternNote: ONE sentence max.
- question is OPTIONAL (prefer "" if unsure).
- Avoid cliches and motivational poster language.""",
}

INTERVENTION_GUIDANCE: Dict[str, str] = {
    "GROUND": "Settle the body first: slow, concrete, present-moment. No analysis.",
    "VALIDATE_ONLY": "Reflect and validate. Do not fix, teach or reframe hard.",
    "TINY_PLAN": "Offer a tiny plan (1-3 small steps) inside the reframe.",
    "SEPARATE_FACTS": "Gently separate what happened from the story about it.",
    "REFLECT_MAP": "Mirror what this touches for them: the fear, the need, the value.",
    "CBT_REFRAME": "Name the thinking pattern lightly and offer one grounded alternative view.",
}

GROUNDING_PROMPT = """\
You are a deeply emotionally intelligent FRIEND. The user asked for something grounding or comforting.

{intent_block}

Return ONLY valid JSON:

{{
  "acknowledgment": "Brief, warm. No cognitive analysis. Just presence.",
  "thoughtPattern": "",
  "patternNote": "",
  "reframe": "Gentle, practical. Present-moment. Sensory if helpful.",
  "question": "Optional simple present-moment question, or empty string.",
  "encouragement": "Optional, natural (no motivational poster lines)."
}}

STYLE RULES:
- NO distortion labels
- NO deep probing
- Keep it human and specific, not templated."""

RESPONSE_PROMPT = """\
You are a deeply emotionally intelligent FRIEND. Not a therapist. Not a coach.
{trigger_block}

{intent_block}

YOUR ANALYSIS (beneath the words):
- What happened: {trigger_event}
- Their interpretation: {likely_interpretation}
- The fear underneath: {underlying_fear}
- What they need: {emotional_need}
- The wound this touches: {core_wound}
{questions_block}{reframes_block}
{layer_block}

APPROACH: {state} / {intervention}
- {intervention_guidance}
{question_rule}

Return ONLY valid JSON:

{{
  "acknowledgment": "Specific, grounded, human. Avoid canned empathy.",
  "thoughtPattern": "CORE WOUND: must be 'Core Belief'. Otherwise: pattern name OR empty string.",
  "patternNote": "Brief. CORE WOUND: one sentence max.",
  "reframe": "Fresh angle, specific to their situation. If intent=NEXT_STEP, include a tiny plan (1-3 steps) inside reframe.",
  "question": "ONE question max. Can be empty string.",
  "encouragement": "Optional, natural, NOT generic."
}}

STYLE RULES:
- Do not force anxiety framing. Respond to the actual content.
- If the message is mostly factual (deadline, tasks), do NOT force a distortion label.
- Avoid repeating questions/reframes from warnings.
- Avoid: "I hear you", "you're not alone", "storm inside", "weather this storm", etc."""

REGENERATION_PROMPT = """\
You are writing as a deeply emotionally intelligent FRIEND.

User message: "{user_text}"

Intent: {intent}
Layer: {layer}
Grounding mode: {grounding}

What happened: {trigger_event}
Fear underneath: {underlying_fear}
Need: {emotional_need}

DO NOT reuse or lightly paraphrase any of these questions:
{questions}

DO NOT reuse or lightly paraphrase any of these reframes:
{reframes}

Hard rules:
- Sound natural and situation-specific. No therapy cliches. No motivational poster lines.
- Don't force anxiety framing if it's about work/deadlines/etc.
- Distortion labels ONLY if clearly present and actually helpful; otherwise set thoughtPattern to "".
- If intent is NEXT_STEP, put a tiny plan (1-3 steps) inside the reframe.
- Ask at most ONE question, only if it genuinely helps.
- Return ONLY valid JSON.

JSON:
{{
  "acknowledgment": "...",
  "thoughtPattern": "",
  "patternNote": "",
  "reframe": "...",
  "question": "",
  "encouragement": ""
}}"""


@dataclass(frozen=True)
class ResponseBrief:
    """What the deterministic layers decided about this turn."""
    user_text: str
    analysis: AnalysisResult
    layer: str
    decision: EngineDecision
    intent: str = INTENT_AUTO
    grounding_mode: bool = False
    original_trigger: str = ""
    previous_questions: Tuple[str, ...] = ()
    previous_reframes: Tuple[str, ...] = ()


def _warning_block(title: str, items: Sequence[str], limit: int) -> str:
    if not items:
        return ""
    lines = "\n".join(f'- "{item}"' for item in list(items)[:limit])
    return f"\n\n{title} - NEVER REPEAT OR PARAPHRASE:\n{lines}"


def _plain_list(items: Sequence[str], limit: int) -> str:
    return "\n".join(f"- {item}" for item in list(items)[:limit]) or "- (none)"


def build_response_prompt(brief: ResponseBrief) -> str:
    intent_block = INTENT_GUIDANCE.get(brief.intent, INTENT_GUIDANCE[INTENT_AUTO])
    if brief.grounding_mode:
        return GROUNDING_PROMPT.format(intent_block=intent_block)

    analysis = brief.analysis
    decision = brief.decision
    trigger_block = f'\nORIGINAL TRIGGER: "{brief.original_trigger}"' if brief.original_trigger else ""
    question_rule = (
        "- Ask at most ONE question, only if it genuinely helps."
        if decision.ask_question
        else '- Do NOT ask a question. Set "question" to "".'
    )
    return RESPONSE_PROMPT.format(
        trigger_block=trigger_block,
        intent_block=intent_block,
        trigger_event=analysis.trigger_event,
        likely_interpretation=analysis.likely_interpretation,
        underlying_fear=analysis.underlying_fear,
        emotional_need=analysis.emotional_need,
        core_wound=analysis.core_wound,
        questions_block=_warning_block(
            "QUESTIONS YOU'VE ALREADY ASKED", brief.previous_questions, PROMPT_QUESTIONS_SHOWN
        ),
        reframes_block=_warning_block(
            "REFRAMES YOU'VE ALREADY USED", brief.previous_reframes, PROMPT_REFRAMES_SHOWN
        ),
        layer_block=LAYER_GUIDANCE[brief.layer],
        state=decision.state,
        intervention=decision.intervention,
        intervention_guidance=INTERVENTION_GUIDANCE.get(decision.intervention, ""),
        question_rule=question_rule,
    )


def build_regeneration_prompt(brief: ResponseBrief) -> str:
    return REGENERATION_PROMPT.format(
        user_text=brief.user_text,
        intent=brief.intent,
        layer=brief.layer,
        grounding="true" if brief.grounding_mode else "false",
        trigger_event=brief.analysis.trigger_event,
        underlying_fear=brief.analysis.underlying_fear,
        emotional_need=brief.analysis.emotional_need,
        questions=_plain_list(brief.previous_questions, REGEN_ITEMS_SHOWN),
        reframes=_plain_list(brief.previous_reframes, REGEN_ITEMS_SHOWN),
    )


class ResponseGenerator:
    """Phase-two prompt assembly and gateway calls."""

    def __init__(self, gateway: LLMGateway):
        self.gateway = gateway

    def build_messages(self, brief: ResponseBrief, history: Sequence[ChatMessage]) -> List[Dict[str, str]]:
        messages = [{"role": "system", "content": build_response_prompt(brief)}]
        messages.extend(history_messages(history))
        messages.append({"role": "user", "content": brief.user_text})
        return messages

    def generate(self, brief: ResponseBrief, history: Sequence[ChatMessage] = ()) -> Optional[GatewayResponse]:
        messages = self.build_messages(brief, history)
        logger.info(
            f"[Generator] Sending {len(messages)} messages "
            f"(layer={brief.layer}, state={brief.decision.state}, grounding={brief.grounding_mode})"
        )
        response = self.gateway.send_with_retry(messages)
        if response is None or not response.content.strip():
            logger.warning("[Generator] Empty response after retry")
            return None
        return response

    def regenerate(self, brief: ResponseBrief) -> Optional[GatewayResponse]:
        """One fresh call with the negative-constraint prompt; no retry."""
        logger.info(
            f"[Generator] Regenerating (excluding {len(brief.previous_questions)} questions, "
            f"{len(brief.previous_reframes)} reframes)"
        )
        response = self.gateway.send([{"role": "system", "content": build_regeneration_prompt(brief)}])
        if response is None or not response.content.strip():
            logger.warning("[Generator] Regeneration returned nothing")
            return None
        return response
