"""
Pydantic request/response models for the Verso API.

Wire names are camelCase (plus the underscored _meta / _isCrisisResponse);
Python attributes are snake_case.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# REQUEST MODELS
# =============================================================================

class ChatMessageModel(_WireModel):
    role: str = Field(..., pattern="^(user|assistant)$")
    content: str = ""


class SessionContextModel(_WireModel):
    """Caller-supplied carry-over state; every field optional."""
    previous_questions: List[str] = Field(default_factory=list, alias="previousQuestions")
    previous_reframes: List[str] = Field(default_factory=list, alias="previousReframes")
    previous_distortions: List[str] = Field(default_factory=list, alias="previousDistortions")
    previous_acknowledgments: List[str] = Field(default_factory=list, alias="previousAcknowledgments")
    previous_encouragements: List[str] = Field(default_factory=list, alias="previousEncouragements")
    original_trigger: Optional[str] = Field(None, alias="originalTrigger")
    core_belief_already_detected: bool = Field(False, alias="coreBeliefAlreadyDetected")
    grounding_mode: bool = Field(False, alias="groundingMode")
    grounding_turns: int = Field(0, ge=0, alias="groundingTurns")
    last_question_type: str = Field("", alias="lastQuestionType")
    user_intent: Optional[str] = Field(None, alias="userIntent")


class ReframeRequest(_WireModel):
    """One stateless engine turn."""
    user_message: Any = Field(..., alias="userMessage", description="The user's thought")
    conversation_history: List[ChatMessageModel] = Field(default_factory=list, alias="conversationHistory")
    session_context: Optional[SessionContextModel] = Field(None, alias="sessionContext")


class StartSessionRequest(_WireModel):
    user_intent: Optional[str] = Field(None, alias="userIntent", description="AUTO, CALM, CLARITY, NEXT_STEP, MEANING or LISTEN")


class SessionMessageRequest(_WireModel):
    user_message: Any = Field(..., alias="userMessage")
    user_intent: Optional[str] = Field(None, alias="userIntent", description="Overrides the session intent from now on")


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class EngineOutputModel(_WireModel):
    acknowledgment: str
    thought_pattern: str = Field(..., alias="thoughtPattern")
    pattern_note: str = Field(..., alias="patternNote")
    reframe: str
    question: str
    encouragement: str
    iceberg_layer: str = Field(..., alias="icebergLayer")
    layer_insight: str = Field(..., alias="layerInsight")
    grounding_mode: bool = Field(False, alias="groundingMode")
    grounding_turns: int = Field(0, alias="groundingTurns")
    progress_score: int = Field(0, alias="progressScore")
    layer_progress: Dict[str, int] = Field(default_factory=dict, alias="layerProgress")
    meta: Dict[str, Any] = Field(default_factory=dict, alias="_meta")
    is_crisis_response: bool = Field(False, alias="_isCrisisResponse")


class StatusResponse(BaseModel):
    llm_available: bool
    providers: List[str]


class StartSessionResponse(BaseModel):
    session_id: str


class SessionStateResponse(_WireModel):
    session_id: str
    history: List[ChatMessageModel]
    session_context: SessionContextModel = Field(..., alias="sessionContext")
