"""
In-memory store for editing sessions.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from creative_editor.config import get_settings
from creative_editor.errors import SessionNotFound
from creative_editor.models.session import EditorSession

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Keeps sessions for the lifetime of the process. Nothing is persisted.

    Sessions idle for longer than ``ttl_seconds`` are dropped on the next
    create or lookup, unless work is still running on them.
    """

    def __init__(self, ttl_seconds: Optional[float] = None) -> None:
        self._sessions: Dict[str, EditorSession] = {}
        self.ttl_seconds = ttl_seconds

    def create_session(self) -> EditorSession:
        self.prune_expired()
        session = EditorSession()
        self._sessions[session.session_id] = session
        logger.info(f"Created session: {session.session_id}")
        return session

    def get_session(self, session_id: str) -> EditorSession:
        """
        Get a session by id and mark it active.

        Raises:
            SessionNotFound: unknown or expired id
        """
        self.prune_expired()
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(f"Session not found: {session_id}")
        session.touch()
        return session

    def delete_session(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is None:
            raise SessionNotFound(f"Session not found: {session_id}")
        logger.info(f"Deleted session: {session_id}")

    def prune_expired(self, now: Optional[datetime] = None) -> int:
        """
        Drop idle sessions.

        Returns:
            Number of sessions removed
        """
        if not self.ttl_seconds:
            return 0
        cutoff = (now or datetime.utcnow()) - timedelta(seconds=self.ttl_seconds)
        expired = [
            sid
            for sid, session in self._sessions.items()
            if session.last_active < cutoff
            and not (session.is_batch_running or session.is_analyzing)
        ]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info(f"Expired {len(expired)} idle sessions")
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)


_session_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """Get the process-wide session store."""
    global _session_store
    if _session_store is None:
        _session_store = SessionStore(ttl_seconds=get_settings().SESSION_TTL_SECONDS)
    return _session_store
