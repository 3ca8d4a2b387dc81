"""
store.py - Data access facade for BusTrek.

Provides a consistent, high-level API for persisting and retrieving users and bookings.
All routes use these functions through Database.with_connection() - no route touches
SQLAlchemy directly.

Design principles:
  - All functions are async and accept an AsyncSession parameter
  - No raw SQL: ORM-only queries
  - Uses flush() (not commit()) - Database.with_connection() owns the transaction
  - Logs only user_id / booking_id - never emails, phones or password hashes
  - Returns Pydantic objects or plain dicts (not ORM instances) so callers are
    persistence-agnostic
"""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bustrek.auth.schemas import UserRecord
from bustrek.bookings.schemas import BookingRecord
from bustrek.models.booking import BookingORM
from bustrek.models.user import UserORM

logger = logging.getLogger(__name__)


def _user_record(orm: UserORM) -> UserRecord:
    return UserRecord(
        id=orm.id,
        name=orm.name,
        email=orm.email,
        phone=orm.phone,
        created_at=orm.created_at,
        password_hash=orm.password_hash,
    )


def _booking_document(orm: BookingORM) -> dict:
    """Stored document plus the storage-added createdAt timestamp."""
    return {**orm.document, "createdAt": orm.created_at.isoformat()}


# ---------------------------------------------------------------------------
# User operations
# ---------------------------------------------------------------------------

async def save_user(
    db: AsyncSession,
    *,
    name: str,
    email: str,
    password_hash: str,
    phone: Optional[str] = None,
) -> UserRecord:
    """
    Insert a new user. `email` must already be normalised (lower-cased).

    A duplicate email surfaces as sqlalchemy IntegrityError at flush time;
    the caller maps it to a 409.
    """
    orm = UserORM(
        name=name,
        email=email,
        phone=phone,
        password_hash=password_hash,
    )
    db.add(orm)
    await db.flush()
    logger.info("Saved user user_id=%s", orm.id)
    return _user_record(orm)


async def get_user_by_id(db: AsyncSession, user_id: str) -> Optional[UserRecord]:
    """Returns None if no user has this public id (caller raises 404)."""
    result = await db.execute(select(UserORM).where(UserORM.id == user_id))
    orm = result.scalar_one_or_none()
    if orm is None:
        return None
    return _user_record(orm)


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[UserRecord]:
    result = await db.execute(
        select(UserORM).where(UserORM.email == email.strip().lower())
    )
    orm = result.scalar_one_or_none()
    if orm is None:
        return None
    return _user_record(orm)


# ---------------------------------------------------------------------------
# Booking operations
# ---------------------------------------------------------------------------

async def save_booking(db: AsyncSession, booking: BookingRecord) -> str:
    """
    Persist a booking as a single insert and return its booking_id.
    No seat-availability check is made against other bookings.

    Safe to repeat: if a retried attempt finds the row already stored (the earlier
    commit reached the server before the connection dropped), the existing
    booking_id is returned instead of inserting again.
    """
    existing = await db.get(BookingORM, booking.booking_id)
    if existing is not None:
        logger.info("Booking already stored booking_id=%s", booking.booking_id)
        return existing.booking_id

    orm = BookingORM(
        booking_id=booking.booking_id,
        user_email=booking.user_details.email.lower(),
        booking_time=booking.booking_time,
        document=booking.to_document(),
    )
    db.add(orm)
    await db.flush()
    logger.info("Saved booking booking_id=%s seats=%d", booking.booking_id, len(booking.selected_seats))
    return booking.booking_id


async def get_booking(db: AsyncSession, booking_id: str) -> Optional[dict]:
    """Exact lookup by booking_id. Returns None if absent (caller raises 404)."""
    result = await db.execute(
        select(BookingORM).where(BookingORM.booking_id == booking_id)
    )
    orm = result.scalar_one_or_none()
    if orm is None:
        return None
    return _booking_document(orm)


async def get_bookings_by_email(db: AsyncSession, email: str) -> list[dict]:
    """
    All bookings owned by `email`, newest booking_time first
    (ties: most recently stored first). Returns an empty list if there are none.
    """
    result = await db.execute(
        select(BookingORM)
        .where(BookingORM.user_email == email.strip().lower())
        .order_by(BookingORM.booking_time.desc(), BookingORM.created_at.desc())
    )
    rows = result.scalars().all()
    return [_booking_document(row) for row in rows]
