"""
REST API routes for Verso.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from fastapi import APIRouter, HTTPException

from ..core.engine import ReflectionEngine
from ..llm.client import LLMGateway
from ..safety.validation import InvalidInputError, validate_thought
from .schemas import (
    ChatMessageModel,
    EngineOutputModel,
    ReframeRequest,
    SessionContextModel,
    SessionMessageRequest,
    SessionStateResponse,
    StartSessionRequest,
    StartSessionResponse,
    StatusResponse,
)
from .session import SessionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

# Globals, created lazily; tests replace them directly
session_manager: Optional[SessionManager] = None
engine: Optional[ReflectionEngine] = None


def get_session_manager() -> SessionManager:
    global session_manager
    if session_manager is None:
        session_manager = SessionManager()
    return session_manager


def get_engine() -> ReflectionEngine:
    global engine
    if engine is None:
        seed = os.environ.get("VERSO_SEED", "").strip()
        engine = ReflectionEngine(LLMGateway.from_env(), seed=int(seed) if seed.isdigit() else None)
    return engine


def _run(user_message, history, context) -> EngineOutputModel:
    try:
        output = get_engine().run(user_message, history, context)
    except InvalidInputError as e:
        raise HTTPException(400, str(e))
    return EngineOutputModel.model_validate(output.to_dict())


@router.get("/status", response_model=StatusResponse)
async def status():
    """Check whether any model provider is configured."""
    gateway = get_engine().gateway
    return StatusResponse(llm_available=gateway.is_available, providers=gateway.provider_names)


@router.post("/reframe", response_model=EngineOutputModel)
def reframe(request: ReframeRequest):
    """Run one stateless turn; the caller supplies history and context."""
    history = [m.model_dump() for m in request.conversation_history]
    context = request.session_context.model_dump(by_alias=True) if request.session_context else None
    return _run(request.user_message, history, context)


@router.post("/session/start", response_model=StartSessionResponse)
async def start_session(request: StartSessionRequest = StartSessionRequest()):
    """Start a new reflection session."""
    session_id = get_session_manager().create_session(user_intent=request.user_intent)
    logger.info(f"[API] Started session {session_id}")
    return StartSessionResponse(session_id=session_id)


@router.post("/session/{session_id}/message", response_model=EngineOutputModel)
def session_message(session_id: str, request: SessionMessageRequest):
    """Run one turn against the stored history and record it."""
    sm = get_session_manager()
    if not sm.session_exists(session_id):
        raise HTTPException(404, "Session not found")

    validation = validate_thought(request.user_message)
    if not validation.valid:
        raise HTTPException(400, validation.error)

    sm.set_intent(session_id, request.user_intent)
    output = get_engine().run(validation.sanitized, sm.get_history(session_id), sm.get_context(session_id))
    sm.record_turn(session_id, validation.sanitized, output)
    return EngineOutputModel.model_validate(output.to_dict())


@router.get("/session/{session_id}", response_model=SessionStateResponse)
async def get_session(session_id: str):
    """Conversation history plus the derived session context."""
    sm = get_session_manager()
    if not sm.session_exists(session_id):
        raise HTTPException(404, "Session not found")
    return SessionStateResponse(
        session_id=session_id,
        history=[ChatMessageModel(**m) for m in sm.get_history(session_id)],
        session_context=SessionContextModel.model_validate(sm.get_context(session_id).to_dict()),
    )
