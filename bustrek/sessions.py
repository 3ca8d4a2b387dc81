"""
sessions.py - in-process session store for bearer tokens.

Tokens map to {user_id, email, created_at} and live until logout or clear().
Nothing is persisted: a process restart signs everybody out.

One SessionStore is created per application in create_app() and stored on
app.state.sessions; handlers reach it through get_session_store().
Logs only user_id - never tokens or email addresses.
"""
import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from fastapi import Request

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    token: str
    user_id: str
    email: str
    created_at: datetime


class SessionStore:
    """Thread-safe token -> Session mapping."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def create(self, user_id: str, email: str) -> str:
        """Open a session and return its freshly generated token."""
        token = str(uuid.uuid4())
        session = Session(
            token=token,
            user_id=user_id,
            email=email,
            created_at=datetime.now(timezone.utc),
        )
        with self._lock:
            self._sessions[token] = session
        logger.info("Session created user_id=%s", user_id)
        return token

    def get(self, token: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(token)

    def delete(self, token: str) -> bool:
        """Remove a session. Returns True if it existed."""
        with self._lock:
            session = self._sessions.pop(token, None)
        if session is None:
            return False
        logger.info("Session deleted user_id=%s", session.user_id)
        return True

    def has(self, token: str) -> bool:
        with self._lock:
            return token in self._sessions

    def clear(self) -> None:
        with self._lock:
            count = len(self._sessions)
            self._sessions.clear()
        logger.info("Cleared %d session(s)", count)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


def get_session_store(request: Request) -> SessionStore:
    """FastAPI dependency returning the application's SessionStore."""
    return request.app.state.sessions
