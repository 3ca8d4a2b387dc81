"""
database.py - SQLAlchemy 2.0 async engine lifecycle for BusTrek.

This module owns ALL database connection infrastructure.
Nothing else in the codebase creates engines or sessions directly.

The Database object is created once in create_app() and stored on app.state.database.
The engine is established lazily by the first caller; concurrent callers share that
single in-flight attempt. Every unit of work goes through with_connection(), which
applies a per-operation timeout and retries transient failures with exponential backoff.

Usage in routes (via dependency injection):
    from bustrek.database import Database, get_database
    async def my_route(database: Database = Depends(get_database)):
        user = await database.with_connection(lambda db: store.get_user(db, user_id))
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, TypeVar

from fastapi import Request
from sqlalchemy import JSON, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import make_url
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from bustrek.errors import TransientDatabaseError
from bustrek.single_flight import AsyncInitializer

logger = logging.getLogger(__name__)

T = TypeVar("T")

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests / local runs)
JSONDocument = JSON().with_variant(JSONB(), "postgresql")

# Failures worth another attempt
_TRANSIENT_ERRORS = (
    OperationalError,
    InterfaceError,
    PoolTimeoutError,
    asyncio.TimeoutError,
    TimeoutError,
    OSError,
)
# Failures that mean the cached engine itself is suspect
_NETWORK_ERRORS = (
    InterfaceError,
    PoolTimeoutError,
    asyncio.TimeoutError,
    TimeoutError,
    OSError,
)


# ---------------------------------------------------------------------------
# Declarative base - ALL ORM models inherit from this
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """
    SQLAlchemy declarative base.
    All ORM models in bustrek/models/ inherit from Base.
    Defined here (not in models/) to prevent circular imports in alembic/env.py.
    """
    pass


def _is_network_error(exc: BaseException) -> bool:
    if isinstance(exc, _NETWORK_ERRORS):
        return True
    return isinstance(exc, DBAPIError) and bool(exc.connection_invalidated)


# ---------------------------------------------------------------------------
# Connectivity shim
# ---------------------------------------------------------------------------
class Database:
    """
    Lazily connected async engine with retry, timeout and health reporting.

    Args:
        url: SQLAlchemy async URL (postgresql+asyncpg://... or sqlite+aiosqlite://...).
        pool_size / max_overflow: ignored for SQLite, which manages its own pool.
        connect_timeout: seconds allowed for establishing the engine (SELECT 1 ping).
        operation_timeout: seconds allowed for each with_connection() attempt.
        retries: extra attempts after the first for transient failures.
        retry_delay: base backoff in seconds; attempt n waits retry_delay * 2**n.
    """

    def __init__(
        self,
        url: str,
        *,
        echo: bool = False,
        pool_size: int = 10,
        max_overflow: int = 10,
        connect_timeout: float = 10.0,
        operation_timeout: float = 30.0,
        retries: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        self.url = make_url(url)
        self.echo = echo
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.connect_timeout = connect_timeout
        self.operation_timeout = operation_timeout
        self.retries = retries
        self.retry_delay = retry_delay
        self._engine: AsyncInitializer[AsyncEngine] = AsyncInitializer(
            self._establish, name="database engine", release=self._dispose
        )

    @classmethod
    def from_settings(cls, settings) -> "Database":
        pool = settings.pool_options
        return cls(
            settings.database_url,
            echo=settings.debug,
            pool_size=pool["pool_size"],
            max_overflow=pool["max_overflow"],
            connect_timeout=pool["connect_timeout"],
            operation_timeout=pool["operation_timeout"],
            retries=settings.db_retries,
            retry_delay=settings.db_retry_delay,
        )

    @property
    def safe_url(self) -> str:
        return self.url.render_as_string(hide_password=True)

    @property
    def is_connected(self) -> bool:
        return self._engine.ready

    def _engine_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {
            "echo": self.echo,
            "pool_pre_ping": True,    # Detect and discard stale connections before each use
        }
        if self.url.get_backend_name() != "sqlite":
            options["pool_size"] = self.pool_size
            options["max_overflow"] = self.max_overflow
        return options

    async def _establish(self) -> AsyncEngine:
        logger.info("Establishing new database connection to %s", self.safe_url)
        engine = create_async_engine(self.url, **self._engine_options())
        try:
            await asyncio.wait_for(self._ping(engine), self.connect_timeout)
        except Exception as exc:
            logger.error("Database connection failed: %s", exc)
            await engine.dispose()
            raise
        logger.info("Database connected: %s", self.safe_url)
        return engine

    @staticmethod
    async def _ping(engine: AsyncEngine) -> None:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def connect(self) -> AsyncEngine:
        """Return the shared engine, establishing it on first use."""
        return await self._engine.get()

    @staticmethod
    async def _dispose(engine: AsyncEngine) -> None:
        await engine.dispose()

    async def invalidate(self, failed: Optional[AsyncEngine] = None) -> None:
        """
        Forget the cached engine so the next call reconnects from scratch.

        With `failed`, only that engine is dropped: if another caller already
        replaced it, the newer engine is left alone.
        """
        engine = self._engine.reset(failed)
        if engine is not None:
            logger.warning("Invalidating cached database connection")
            await self._dispose(engine)

    async def close(self) -> None:
        engine = self._engine.reset()
        if engine is not None:
            await self._dispose(engine)
            logger.info("Database connection closed")

    async def with_connection(
        self,
        operation: Callable[[AsyncSession], Awaitable[T]],
        *,
        retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> T:
        """
        Run operation(session) inside its own AsyncSession and commit on success.

        Transient failures (see _TRANSIENT_ERRORS) are retried with exponential
        backoff; network-classified ones also drop the cached engine first.
        Anything else (IntegrityError, domain errors) propagates immediately.

        Raises:
            TransientDatabaseError: every attempt failed with a transient error.
        """
        retries = self.retries if retries is None else retries
        retry_delay = self.retry_delay if retry_delay is None else retry_delay
        timeout = self.operation_timeout if timeout is None else timeout
        attempts = retries + 1

        for attempt in range(attempts):
            engine: Optional[AsyncEngine] = None
            try:
                engine = await self.connect()
                session_factory = async_sessionmaker(
                    bind=engine,
                    class_=AsyncSession,
                    expire_on_commit=False,   # Keep objects usable after commit without re-querying
                )
                # Closing the session rolls back anything left uncommitted
                async with session_factory() as session:
                    result = await asyncio.wait_for(operation(session), timeout)
                    await session.commit()
                    return result
            except _TRANSIENT_ERRORS as exc:
                logger.warning(
                    "Database operation attempt %d/%d failed: %s: %s",
                    attempt + 1, attempts, type(exc).__name__, exc,
                )
                if attempt == retries:
                    raise TransientDatabaseError(
                        f"Database operation failed after {attempts} attempts: {exc}",
                        attempts=attempts,
                    ) from exc
                # engine is None when connect() itself failed; its slot is already clear
                if engine is not None and _is_network_error(exc):
                    await self.invalidate(engine)
                delay = retry_delay * (2 ** attempt)
                logger.info("Retrying database operation in %.2fs", delay)
                await asyncio.sleep(delay)

        # range() always yields at least once and every path above returns or raises
        raise AssertionError("unreachable")

    async def check_health(self) -> dict[str, Any]:
        """
        Connectivity snapshot for GET /health. Never raises.

        status: "connected" (ping ok), "disconnected" (engine up, ping failed),
                "error" (engine could not be established).
        """
        snapshot: dict[str, Any] = {
            "dialect": self.url.get_backend_name(),
            "database": self.url.database,
        }
        try:
            engine = await self.connect()
        except Exception as exc:
            snapshot.update(status="error", error=str(exc))
        else:
            try:
                await asyncio.wait_for(self._ping(engine), self.connect_timeout)
            except Exception as exc:
                logger.warning("Database health ping failed: %s", exc)
                snapshot.update(status="disconnected", error=str(exc))
            else:
                snapshot["status"] = "connected"
        snapshot["timestamp"] = datetime.now(timezone.utc).isoformat()
        return snapshot


# ---------------------------------------------------------------------------
# FastAPI dependency
# ---------------------------------------------------------------------------
def get_database(request: Request) -> Database:
    """Return the Database created by create_app()."""
    return request.app.state.database
