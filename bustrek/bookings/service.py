"""
bookings/service.py - booking ledger operations behind the HTTP routes.

Each function does its database work through Database.with_connection(), so
transient failures are retried and surface as TransientDatabaseError (500)
only after the retry budget is spent.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from bustrek import store
from bustrek.auth.guard import Identity
from bustrek.bookings.validator import build_booking
from bustrek.database import Database
from bustrek.errors import NotFoundError

logger = logging.getLogger(__name__)


async def create_booking(
    database: Database,
    identity: Identity,
    payload: dict[str, Any],
    *,
    now: Optional[datetime] = None,
) -> str:
    """
    Validate and persist one booking for the authenticated caller.

    Returns the new bookingId.

    Raises:
        NotFoundError: the session is valid but its user record is gone.
        BookingValidationError: the body failed validation (see validator.py).
    """
    user = await database.with_connection(lambda db: store.get_user_by_id(db, identity.id))
    if user is None:
        logger.warning("Booking attempted for missing user user_id=%s", identity.id)
        raise NotFoundError("User not found")

    booking = build_booking(user, payload, now=now)
    booking_id = await database.with_connection(lambda db: store.save_booking(db, booking))
    logger.info("Booking created booking_id=%s user_id=%s", booking_id, user.id)
    return booking_id


async def get_booking_history(database: Database, user_id: str) -> dict[str, Any]:
    """
    The user's summary plus every booking under their email, newest first.

    Raises:
        NotFoundError: no user has this id. A user with no bookings is NOT an error.
    """

    async def _load(db):
        user = await store.get_user_by_id(db, user_id)
        if user is None:
            return None, []
        return user, await store.get_bookings_by_email(db, user.email)

    user, bookings = await database.with_connection(_load)
    if user is None:
        raise NotFoundError("User not found")
    logger.info("Loaded booking history user_id=%s count=%d", user.id, len(bookings))
    return {
        "user": {"id": user.id, "name": user.name, "email": user.email},
        "bookings": bookings,
    }


async def get_booking(database: Database, booking_id: str) -> dict[str, Any]:
    """Raises NotFoundError if no booking has this id."""
    booking = await database.with_connection(lambda db: store.get_booking(db, booking_id))
    if booking is None:
        raise NotFoundError("Booking not found")
    return booking
