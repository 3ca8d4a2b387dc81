"""
Auth HTTP routes - POST /api/auth/signup, POST /api/auth/login,
                   POST /api/auth/logout, GET  /api/auth/profile

Signup and login both open a session and return its token. Tokens never expire;
logout is the only way to revoke one.
Logs only user_id - never emails, passwords or tokens.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from bustrek import store
from bustrek.auth.guard import Identity, require_identity
from bustrek.auth.schemas import LoginRequest, SignupRequest, UserProfile, UserRecord
from bustrek.auth.security import hash_password, verify_password
from bustrek.database import Database, get_database
from bustrek.errors import ConflictError, NotFoundError, UnauthenticatedError
from bustrek.sessions import SessionStore, get_session_store

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger(__name__)

DUPLICATE_EMAIL_MESSAGE = "User with this email already exists"
INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"


def _public_user(user: UserRecord) -> dict:
    return UserProfile.model_validate(user.model_dump()).model_dump(mode="json", by_alias=True)


@router.post("/signup")
async def signup(
    payload: SignupRequest,
    database: Database = Depends(get_database),
    sessions: SessionStore = Depends(get_session_store),
) -> JSONResponse:
    """
    Register a new user and sign them in.

    Email uniqueness is case-insensitive. The pre-check gives the normal 409;
    the unique index catches a concurrent signup racing past it.
    """
    if await database.with_connection(lambda db: store.get_user_by_email(db, payload.email)):
        raise ConflictError(DUPLICATE_EMAIL_MESSAGE)

    password_hash = hash_password(payload.password)
    try:
        user = await database.with_connection(
            lambda db: store.save_user(
                db,
                name=payload.name,
                email=payload.email,
                phone=payload.phone,
                password_hash=password_hash,
            )
        )
    except IntegrityError:
        raise ConflictError(DUPLICATE_EMAIL_MESSAGE) from None

    token = sessions.create(user.id, user.email)
    logger.info("User signed up user_id=%s", user.id)
    return JSONResponse(
        status_code=201,
        content={
            "status": "success",
            "message": "User registered successfully",
            "data": {"user": _public_user(user), "token": token},
        },
    )


@router.post("/login")
async def login(
    payload: LoginRequest,
    database: Database = Depends(get_database),
    sessions: SessionStore = Depends(get_session_store),
) -> JSONResponse:
    user = await database.with_connection(lambda db: store.get_user_by_email(db, payload.email))
    # Same message for unknown email and wrong password
    if user is None or not verify_password(payload.password, user.password_hash):
        raise UnauthenticatedError(INVALID_CREDENTIALS_MESSAGE)

    token = sessions.create(user.id, user.email)
    logger.info("User logged in user_id=%s", user.id)
    return JSONResponse(
        status_code=200,
        content={
            "status": "success",
            "message": "Login successful",
            "data": {"user": _public_user(user), "token": token},
        },
    )


@router.post("/logout")
async def logout(
    identity: Identity = Depends(require_identity),
    sessions: SessionStore = Depends(get_session_store),
) -> JSONResponse:
    sessions.delete(identity.token)
    logger.info("User logged out user_id=%s", identity.id)
    return JSONResponse(
        status_code=200,
        content={"status": "success", "message": "Logged out successfully"},
    )


@router.get("/profile")
async def profile(
    identity: Identity = Depends(require_identity),
    database: Database = Depends(get_database),
) -> JSONResponse:
    user = await database.with_connection(lambda db: store.get_user_by_id(db, identity.id))
    if user is None:
        raise NotFoundError("User not found")
    return JSONResponse(
        status_code=200,
        content={"status": "success", "data": {"user": _public_user(user)}},
    )
