"""
main.py - BusTrek FastAPI application entry point.

Start with: uvicorn bustrek.main:app --reload --port 8000
(DATABASE_URL must be set, e.g. in .env)
"""
import logging
import os
import subprocess
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from bustrek.auth.routes import router as auth_router
from bustrek.bookings.routes import router as bookings_router
from bustrek.config import Settings, settings
from bustrek.database import Database
from bustrek.errors import BusTrekError
from bustrek.schemas import ErrorBody, ErrorDetail, ErrorResponse
from bustrek.sessions import SessionStore

# ---------------------------------------------------------------------------
# Logging - configured before anything else
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _run_migrations() -> None:
    """Apply Alembic migrations (alembic.ini lives next to this file)."""
    package_dir = os.path.dirname(os.path.abspath(__file__))
    result = subprocess.run(
        [sys.executable, "-m", "alembic", "upgrade", "head"],
        capture_output=True,
        text=True,
        cwd=package_dir,
    )
    if result.returncode != 0:
        logger.error("Alembic migration failed:\n%s", result.stderr)
        raise RuntimeError(f"Alembic migration failed: {result.stderr}")
    msg = result.stdout.strip() or "No pending migrations"
    logger.info("Alembic: %s", msg)


# ---------------------------------------------------------------------------
# Lifespan - startup & shutdown hooks
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
      1. Run Alembic migrations (when AUTO_MIGRATE is on)
      2. Initialize Redis connection pool (when REDIS_URL is set)
      3. Warm the database connection outside production - failure is not fatal,
         the first request retries
    Shutdown:
      1. Close Redis pool
      2. Dispose the database engine
      3. Drop every session
    """
    app_settings: Settings = app.state.settings

    # --- 1. Database schema ---
    if app_settings.auto_migrate:
        _run_migrations()

    # --- 2. Redis: optional booking cache ---
    if app_settings.redis_url:
        from bustrek.cache import create_redis_pool
        app.state.redis = await create_redis_pool(app_settings.redis_url)

    # --- 3. Database: eager connect in development ---
    if not app_settings.production:
        try:
            await app.state.database.connect()
        except Exception as exc:
            logger.warning("Database not reachable at startup, will retry on demand: %s", exc)

    logger.info("BusTrek v%s starting up (%s)", app_settings.app_version, app_settings.environment)
    yield

    # --- Shutdown ---
    if app.state.redis is not None:
        await app.state.redis.aclose()
        logger.info("Redis connection pool closed")
    await app.state.database.close()
    app.state.sessions.clear()
    logger.info("BusTrek shutting down")


# ---------------------------------------------------------------------------
# Error response helper
# ---------------------------------------------------------------------------
def _make_error_response(
    code: str,
    message: str,
    details: Optional[list[dict[str, Any]]] = None,
    status_code: int = 500,
) -> JSONResponse:
    """Build a standard {status, message, error: {code, message, details}} response."""
    body = ErrorResponse(
        message=message,
        error=ErrorBody(
            code=code,
            message=message,
            details=[ErrorDetail(**d) for d in (details or [])],
        ),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


def _register_exception_handlers(app: FastAPI, app_settings: Settings) -> None:
    @app.exception_handler(BusTrekError)
    async def bustrek_error_handler(request: Request, exc: BusTrekError) -> JSONResponse:
        """Domain errors carry their own status and code (see errors.py)."""
        if exc.status_code >= 500:
            logger.error(
                "%s on %s %s: %s",
                type(exc).__name__, request.method, request.url.path, exc.message,
            )
        return _make_error_response(
            code=exc.code,
            message=exc.message,
            details=exc.details,
            status_code=exc.status_code,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """
        Converts Pydantic / FastAPI validation errors to a 400 in the standard format.
        Returns ALL field violations in one response.
        """
        details = []
        for error in exc.errors():
            # Build dot-notation field path, excluding the top-level 'body' loc
            field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
            details.append({"field": field or None, "issue": error["msg"]})
        return _make_error_response(
            code="VALIDATION_ERROR",
            message="Request validation failed",
            details=details,
            status_code=400,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Converts HTTPException (unknown route, wrong method...) to the standard format."""
        code_map = {
            400: "BAD_REQUEST",
            401: "UNAUTHORIZED",
            403: "FORBIDDEN",
            404: "NOT_FOUND",
            405: "METHOD_NOT_ALLOWED",
            409: "CONFLICT",
            422: "VALIDATION_ERROR",
            429: "RATE_LIMITED",
        }
        code = code_map.get(exc.status_code, f"HTTP_{exc.status_code}")
        return _make_error_response(
            code=code,
            message=str(exc.detail),
            status_code=exc.status_code,
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        """Explicit ValueError raises from business logic surface as a 400."""
        return _make_error_response(
            code="VALIDATION_ERROR",
            message=str(exc),
            status_code=400,
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Catch-all for unexpected errors.
        DEBUG=true  -> includes exception type & message in details (dev only).
        DEBUG=false -> generic message; full traceback logged server-side only.
        """
        logger.error(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
            exc_info=True,
        )
        if app_settings.debug:
            details = [{"issue": f"{type(exc).__name__}: {exc}"}]
            message = "An unexpected error occurred (debug details included)"
        else:
            details = []
            message = "Internal server error"
        return _make_error_response(
            code="INTERNAL_ERROR",
            message=message,
            details=details,
            status_code=500,
        )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------
def create_app(
    app_settings: Settings = settings,
    *,
    database: Optional[Database] = None,
    sessions: Optional[SessionStore] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    The Database and SessionStore are created here (not in lifespan) so they exist
    even when the app is driven without lifespan events, e.g. by httpx ASGITransport.
    """
    app = FastAPI(
        title="BusTrek API",
        version=app_settings.app_version,
        description="Bus ticket booking API: signup/login sessions, booking creation and history.",
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.database = database if database is not None else Database.from_settings(app_settings)
    # An empty SessionStore is falsy (__len__), so compare against None
    app.state.sessions = sessions if sessions is not None else SessionStore()
    app.state.redis = None
    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers are registered BEFORE routers
    _register_exception_handlers(app, app_settings)

    @app.get("/")
    async def root() -> dict:
        return {
            "message": "Welcome to BusTrek API",
            "version": app_settings.app_version,
            "status": "Server is running successfully!",
            "endpoints": {
                "auth": {
                    "signup": "POST /api/auth/signup",
                    "login": "POST /api/auth/login",
                    "logout": "POST /api/auth/logout (requires auth token)",
                    "profile": "GET /api/auth/profile (requires auth token)",
                },
                "booking": {
                    "bookTicket": "POST /api/bookTicket (requires auth token)",
                    "getBookingHistory": "GET /api/getBookingHistory/{id}",
                    "getBooking": "GET /api/getBooking/{bookingId}",
                },
                "health": "GET /health",
            },
        }

    @app.get("/health")
    async def health(request: Request) -> JSONResponse:
        """Liveness plus a database connectivity snapshot."""
        uptime = round(time.monotonic() - request.app.state.started_at, 3)
        timestamp = datetime.now(timezone.utc).isoformat()
        try:
            db_health = await request.app.state.database.check_health()
        except Exception as exc:
            logger.error("Health check failed", exc_info=True)
            return JSONResponse(
                status_code=500,
                content={
                    "status": "ERROR",
                    "timestamp": timestamp,
                    "uptime": uptime,
                    "error": str(exc),
                    "environment": app_settings.environment,
                },
            )
        return JSONResponse(
            status_code=200,
            content={
                "status": "OK",
                "timestamp": timestamp,
                "uptime": uptime,
                "database": db_health,
                "environment": app_settings.environment,
            },
        )

    app.include_router(auth_router)
    app.include_router(bookings_router)
    return app


app = create_app()
