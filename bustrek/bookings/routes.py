"""
Booking HTTP routes - POST /api/bookTicket,
                      GET  /api/getBookingHistory/{id},
                      GET  /api/getBooking/{bookingId}

Only bookTicket requires a session token. Booking history is looked up by the user
id in the path with no authentication (see "Open questions" in DESIGN.md).
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from bustrek.auth.guard import Identity, require_identity
from bustrek.bookings import service
from bustrek.cache import get_cached_booking, get_redis, set_cached_booking
from bustrek.database import Database, get_database
from bustrek.errors import BookingValidationError

router = APIRouter(prefix="/api", tags=["bookings"])
logger = logging.getLogger(__name__)


def _require_param(value: Optional[str], message: str) -> str:
    if value is None or not value.strip():
        raise BookingValidationError(message)
    return value.strip()


@router.post("/bookTicket")
async def book_ticket(
    request_body: dict[str, Any],
    identity: Identity = Depends(require_identity),
    database: Database = Depends(get_database),
) -> JSONResponse:
    """
    Book seats on a bus for the authenticated caller.

    userDetails.email is always taken from the caller's account, whatever the
    body says. Seats are not checked against other bookings.
    """
    booking_id = await service.create_booking(database, identity, request_body)
    return JSONResponse(
        status_code=201,
        content={
            "status": "success",
            "message": "Booking successfully created",
            "bookingId": booking_id,
            "data": {"bookingId": booking_id},
        },
    )


@router.get("/getBookingHistory", include_in_schema=False)
async def booking_history_without_id() -> JSONResponse:
    raise BookingValidationError("User ID is required")


@router.get("/getBookingHistory/{id}")
async def booking_history(
    id: str,
    database: Database = Depends(get_database),
) -> JSONResponse:
    """Every booking of user `id`, newest bookingTime first. Unauthenticated."""
    user_id = _require_param(id, "User ID is required")
    data = await service.get_booking_history(database, user_id)
    return JSONResponse(status_code=200, content={"status": "success", "data": data})


@router.get("/getBooking", include_in_schema=False)
async def booking_without_id() -> JSONResponse:
    raise BookingValidationError("Booking ID is required")


@router.get("/getBooking/{booking_id}")
async def get_booking(
    booking_id: str,
    database: Database = Depends(get_database),
    redis=Depends(get_redis),
) -> JSONResponse:
    booking_id = _require_param(booking_id, "Booking ID is required")
    booking = await get_cached_booking(redis, booking_id)
    if booking is None:
        logger.debug("Booking cache miss booking_id=%s", booking_id)
        booking = await service.get_booking(database, booking_id)
        await set_cached_booking(redis, booking_id, booking)
    return JSONResponse(status_code=200, content={"status": "success", "data": booking})
