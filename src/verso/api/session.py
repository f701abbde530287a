"""
In-memory session manager for the Verso API.

Stands in for the persistence store: per session it keeps the conversation
history (assistant turns stored as the JSON of their output) and the
SessionContext derived after each turn.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import replace
from typing import Dict, List, Optional

from ..core.context import INTENTS, EngineOutput, SessionContext
from ..core.memory import next_context


class SessionManager:
    """
    Manages reflection sessions in memory.

    Not safe for concurrent writes to the same session; callers serialize
    requests per session.
    """

    def __init__(self):
        self._sessions: Dict[str, Dict] = {}

    def create_session(self, user_intent: Optional[str] = None) -> str:
        """Create a new session and return its ID."""
        session_id = str(uuid.uuid4())[:8]
        self._sessions[session_id] = {
            "conversation_history": [],
            "context": SessionContext(user_intent=user_intent if user_intent in INTENTS else None),
        }
        return session_id

    def session_exists(self, session_id: str) -> bool:
        return session_id in self._sessions

    def get_history(self, session_id: str) -> List[Dict[str, str]]:
        session = self._sessions.get(session_id)
        return list(session["conversation_history"]) if session else []

    def get_context(self, session_id: str) -> Optional[SessionContext]:
        session = self._sessions.get(session_id)
        return session["context"] if session else None

    def set_intent(self, session_id: str, user_intent: Optional[str]) -> None:
        session = self._sessions.get(session_id)
        if session and user_intent:
            session["context"] = replace(session["context"], user_intent=user_intent)

    def record_turn(self, session_id: str, user_message: str, output: EngineOutput) -> None:
        """Append both turns and advance the session context."""
        session = self._sessions.get(session_id)
        if not session:
            return
        wire = output.to_dict()
        session["conversation_history"].append({"role": "user", "content": user_message})
        session["conversation_history"].append({"role": "assistant", "content": json.dumps(wire)})
        session["context"] = next_context(session["context"], user_message, output)
