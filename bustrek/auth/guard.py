"""
auth/guard.py - bearer-token gate in front of protected routes.

resolve_identity() holds the rules; require_identity() is the FastAPI dependency
that feeds it the Authorization header and the application's SessionStore.

Rules, in order:
  1. No (or empty) Authorization header       -> 401 "No token provided"
  2. Strip a literal, case-sensitive "Bearer " prefix; otherwise the whole
     header value is the token
  3. Empty token after stripping               -> 401 "Invalid token format"
  4. Token not in the SessionStore             -> 401 "Invalid token"
Sessions never expire; a token stays valid until logout.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header

from bustrek.errors import InternalError, UnauthenticatedError
from bustrek.sessions import SessionStore, get_session_store

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class Identity:
    """Caller resolved from a session token."""
    id: str
    email: str
    token: str


def extract_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise UnauthenticatedError("Access denied. No token provided.")
    if authorization.startswith(BEARER_PREFIX):
        token = authorization[len(BEARER_PREFIX):]
    else:
        token = authorization
    if not token:
        raise UnauthenticatedError("Access denied. Invalid token format.")
    return token


def resolve_identity(authorization: Optional[str], sessions: SessionStore) -> Identity:
    token = extract_token(authorization)
    try:
        session = sessions.get(token)
    except Exception as exc:
        logger.error("Session lookup failed", exc_info=True)
        raise InternalError("Internal server error during authentication") from exc
    if session is None:
        raise UnauthenticatedError("Access denied. Invalid token.")
    return Identity(id=session.user_id, email=session.email, token=token)


async def require_identity(
    authorization: Optional[str] = Header(None),
    sessions: SessionStore = Depends(get_session_store),
) -> Identity:
    """FastAPI dependency: the authenticated caller, or a 401."""
    return resolve_identity(authorization, sessions)
