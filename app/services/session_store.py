"""
Interpreter session registry for the HTTP layer.

Each session owns one independent InterpreterPipeline; the registry
only maps session IDs to pipelines.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional
from uuid import uuid4

from app.config import settings
from app.services.interpreter_pipeline import InterpreterPipeline
from app.utils.logger import get_logger

logger = get_logger("session_store")


@dataclass
class InterpreterSession:
    """An interpreter pipeline bound to one UI context."""

    session_id: str
    pipeline: InterpreterPipeline
    user_id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_used_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SessionStore:
    """
    In-memory registry of interpreter sessions.

    Sessions left open by clients are closed once idle for longer than
    max_idle; the sweep runs whenever a session is created.
    """

    def __init__(
        self,
        pipeline_factory: Callable[[], InterpreterPipeline] = InterpreterPipeline,
        max_idle: Optional[timedelta] = None
    ):
        self._pipeline_factory = pipeline_factory
        self.max_idle = max_idle or timedelta(minutes=settings.session_max_idle_minutes)
        self._sessions: Dict[str, InterpreterSession] = {}

    def create_session(self, user_id: Optional[str] = None) -> InterpreterSession:
        """
        Create a new interpreter session.

        Args:
            user_id: Identity from the auth context, if any

        Returns:
            InterpreterSession in the IDLE state
        """
        self.expire_idle_sessions()

        session = InterpreterSession(
            session_id=str(uuid4()),
            pipeline=self._pipeline_factory(),
            user_id=user_id
        )
        self._sessions[session.session_id] = session

        logger.info("Interpreter session created", session_id=session.session_id)
        return session

    def get_session(self, session_id: str) -> Optional[InterpreterSession]:
        """Get a session by ID and mark it as used."""
        session = self._sessions.get(session_id)
        if session is not None:
            session.last_used_at = datetime.now(timezone.utc)
        return session

    def expire_idle_sessions(self, now: Optional[datetime] = None) -> int:
        """Close sessions idle past max_idle. Sessions still loading are kept."""
        cutoff = (now or datetime.now(timezone.utc)) - self.max_idle
        expired = [
            session_id
            for session_id, session in self._sessions.items()
            if session.last_used_at < cutoff and not session.pipeline.state.is_loading
        ]
        for session_id in expired:
            self.close_session(session_id)

        if expired:
            logger.info("Idle sessions expired", count=len(expired))
        return len(expired)

    def close_session(self, session_id: str) -> bool:
        """Tear down a session; in-flight responses are discarded."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False

        session.pipeline.close()
        logger.info("Interpreter session closed", session_id=session_id)
        return True

    def close_all(self) -> int:
        """Close every session, e.g. on shutdown. Returns how many were closed."""
        session_ids = list(self._sessions)
        for session_id in session_ids:
            self.close_session(session_id)
        return len(session_ids)

    def __len__(self) -> int:
        return len(self._sessions)


# Singleton instance
session_store = SessionStore()
