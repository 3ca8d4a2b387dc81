"""
bookings/validator.py - turns a raw POST /api/bookTicket body into a BookingRecord.

Checks run in a fixed order and stop at the first failure, so a client always
gets the same error for the same body:

  1. passenger snapshot: name / phone from passengerDetails, then the stored user
     (phone finally falls back to body.phone); email is ALWAYS the stored user's
  2. selectedSeats    non-empty list of seat labels
  3. phone            must be resolvable from step 1
  4. busDetails       busName and busType required, other fields defaulted
  5. journeyDetails   from, to, date required
  6. totalAmount      positive number
  7. phone format     10-15 digits once non-digits are stripped
  8. bookingTime      optional ISO-8601 timestamp, naive values are UTC

Every failure raises BookingValidationError (HTTP 400). Seat availability is not
checked: two bookings may hold the same seats on the same bus.
"""
from __future__ import annotations

import math
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from bustrek.auth.schemas import UserRecord
from bustrek.bookings.schemas import BookingRecord
from bustrek.errors import BookingValidationError

# ---------------------------------------------------------------------------
# Defaults applied to missing busDetails fields
# ---------------------------------------------------------------------------
DEFAULT_RATING = 4.0
DEFAULT_AMENITIES = ["Basic"]
DEFAULT_TOTAL_SEATS = 40
DEFAULT_BUS_ID = "unknown"
NOT_AVAILABLE = "N/A"
CALCULATED_DURATION = "Calculated"

PHONE_PATTERN = re.compile(r"^[0-9]{10,15}$")

_datetime_adapter = TypeAdapter(datetime)


def _fail(field: Optional[str], message: str) -> BookingValidationError:
    return BookingValidationError(message, details=[{"field": field, "issue": message}])


def _missing(value: Any) -> bool:
    """None and blank strings count as not supplied."""
    return value is None or (isinstance(value, str) and not value.strip())


def _first(*values: Any) -> Any:
    for value in values:
        if not _missing(value):
            return value
    return None


def _as_text(value: Any) -> Optional[str]:
    if _missing(value):
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        return None
    return str(value).strip()


def _is_positive_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def normalise_phone(phone: str) -> str:
    """Digits only: '+1-987-654-3210' -> '19876543210'."""
    return re.sub(r"\D", "", phone)


def is_valid_phone(phone: str) -> bool:
    return bool(PHONE_PATTERN.match(normalise_phone(phone)))


def parse_booking_time(value: Any, now: Optional[datetime] = None) -> datetime:
    """Parse an optional client timestamp into an aware UTC datetime."""
    if _missing(value):
        return now or datetime.now(timezone.utc)
    try:
        parsed = _datetime_adapter.validate_python(value)
    except ValidationError:
        raise _fail("bookingTime", "bookingTime must be an ISO-8601 timestamp") from None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _complete_bus_details(
    payload: dict[str, Any],
    bus_details: dict[str, Any],
    journey_details: Any,
    seat_count: int,
    total_amount: float,
) -> dict[str, Any]:
    journey = journey_details if isinstance(journey_details, dict) else {}
    departure = _first(journey.get("departureTime"), bus_details.get("departureTime"))
    arrival = _first(journey.get("arrivalTime"), bus_details.get("arrivalTime"))

    duration = bus_details.get("duration")
    if _missing(duration):
        duration = CALCULATED_DURATION if departure and arrival else NOT_AVAILABLE

    price = bus_details.get("price")
    if price is None:
        price = round_half_up(total_amount / seat_count)

    bus_id = _first(payload.get("busId"), bus_details.get("busId"), DEFAULT_BUS_ID)

    return {
        "busName": bus_details["busName"],
        "busType": bus_details["busType"],
        "duration": duration,
        "departureTime": departure or NOT_AVAILABLE,
        "arrivalTime": arrival or NOT_AVAILABLE,
        "price": price,
        "rating": DEFAULT_RATING if bus_details.get("rating") is None else bus_details["rating"],
        "amenities": DEFAULT_AMENITIES if bus_details.get("amenities") is None else bus_details["amenities"],
        "totalSeats": DEFAULT_TOTAL_SEATS if bus_details.get("totalSeats") is None else bus_details["totalSeats"],
        "busId": str(bus_id),
    }


def build_booking(
    user: UserRecord,
    payload: dict[str, Any],
    *,
    now: Optional[datetime] = None,
) -> BookingRecord:
    """
    Validate a booking request for `user` and assemble the record to store.

    Args:
        user: the authenticated caller's stored profile.
        payload: the decoded JSON body of POST /api/bookTicket.
        now: booking time to use when the body has none (tests pin this).

    Raises:
        BookingValidationError: on the first failed check (see module docstring).
    """
    # ---- 1. Passenger snapshot -------------------------------------------
    passenger = payload.get("passengerDetails")
    if passenger is None:
        passenger = {}
    if not isinstance(passenger, dict):
        raise _fail("passengerDetails", "Passenger details must be an object")

    user_details = {
        "name": _first(_as_text(passenger.get("name")), user.name),
        "email": user.email,
        "phone": _first(
            _as_text(passenger.get("phone")),
            _as_text(user.phone),
            _as_text(payload.get("phone")),
        ),
    }

    # ---- 2. Seats ----------------------------------------------------------
    seats = payload.get("selectedSeats")
    if not isinstance(seats, list) or not seats:
        raise _fail("selectedSeats", "Selected seats are required and must be a non-empty array")
    seat_labels = [_as_text(seat) for seat in seats]
    if any(label is None for label in seat_labels):
        raise _fail("selectedSeats", "Each selected seat must be a non-empty seat label")

    # ---- 3. Phone present --------------------------------------------------
    if user_details["phone"] is None:
        raise _fail("phone", "Phone number is required for booking")

    # ---- 4. Bus details ----------------------------------------------------
    bus_details = payload.get("busDetails")
    if (
        not isinstance(bus_details, dict)
        or _missing(bus_details.get("busName"))
        or _missing(bus_details.get("busType"))
    ):
        raise _fail("busDetails", "Bus details are incomplete. Required: busName, busType")

    # ---- 5. Journey details ------------------------------------------------
    journey = payload.get("journeyDetails")
    if not isinstance(journey, dict) or any(
        _missing(journey.get(key)) for key in ("from", "to", "date")
    ):
        raise _fail("journeyDetails", "Journey details (from, to, date) are required")

    # ---- 6. Amount ---------------------------------------------------------
    total_amount = payload.get("totalAmount")
    if not _is_positive_number(total_amount):
        raise _fail("totalAmount", "Total amount is required and must be greater than 0")

    # ---- 7. Phone format ---------------------------------------------------
    if not is_valid_phone(user_details["phone"]):
        raise _fail("phone", "Please provide a valid phone number")

    # ---- 8. Booking time ---------------------------------------------------
    booking_time = parse_booking_time(payload.get("bookingTime"), now=now)

    # ---- Assemble ----------------------------------------------------------
    document = {
        "bookingId": str(uuid.uuid4()),
        "selectedSeats": seat_labels,
        "userDetails": user_details,
        "busDetails": _complete_bus_details(
            payload, bus_details, journey, len(seat_labels), total_amount
        ),
        "journeyDetails": {
            "from": journey["from"],
            "to": journey["to"],
            "date": journey["date"],
        },
        "totalAmount": total_amount,
        "bookingTime": booking_time,
    }
    try:
        return BookingRecord.model_validate(document)
    except ValidationError as exc:
        details = [
            {"field": ".".join(str(loc) for loc in err["loc"]), "issue": err["msg"]}
            for err in exc.errors()
        ]
        raise BookingValidationError("Booking details are invalid", details=details) from None
