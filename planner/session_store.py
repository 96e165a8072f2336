"""
Session store - explicit owner of per-session planner components.

Each session gets its own IntentRecognizer, SmartRouter and WorkflowEngine.
Sessions live in memory until reset or dropped; there is no eviction here,
callers that need bounded memory drop sessions themselves.
"""

import logging
from dataclasses import dataclass

from planner.nlu.intent_recognizer import IntentRecognizer
from planner.routing.smart_router import SmartRouter
from planner.workflow.engine import WorkflowEngine
from shared.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """Planner components bound to one session id."""

    session_id: str
    recognizer: IntentRecognizer
    router: SmartRouter
    workflow: WorkflowEngine
    plan_generated: bool = False

    def reset(self) -> None:
        self.recognizer.clear_context()
        self.router.clear_context()
        self.workflow.reset()
        self.plan_generated = False


class SessionStore:
    """In-memory session_id → Session mapping."""

    def __init__(self, settings: Settings | None = None):
        self._settings = settings or get_settings()
        self._sessions: dict[str, Session] = {}

    def _create(self, session_id: str) -> Session:
        return Session(
            session_id=session_id,
            recognizer=IntentRecognizer(session_id=session_id, settings=self._settings),
            router=SmartRouter(session_id=session_id),
            workflow=WorkflowEngine(session_id=session_id),
        )

    def get_or_create(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            session = self._create(session_id)
            self._sessions[session_id] = session
            logger.info("Session created", extra={"session_id": session_id})
        return session

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def reset(self, session_id: str) -> None:
        """Clear conversation, routing and workflow state. Unknown ids are ignored."""
        session = self._sessions.get(session_id)
        if session is None:
            return
        session.reset()
        logger.info("Session reset", extra={"session_id": session_id})

    def drop(self, session_id: str) -> bool:
        """Forget a session entirely. Returns whether it existed."""
        return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions
