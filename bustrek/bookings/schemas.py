"""
bookings/schemas.py - Pydantic v2 contracts for the booking ledger.

Defines:
  - UserDetails     (passenger snapshot taken at booking time)
  - BusDetails      (bus description, defaults already applied)
  - JourneyDetails  (from / to / date)
  - BookingRecord   (the immutable stored booking)

Field names are snake_case in Python and camelCase on the wire and in the stored
JSON document (alias_generator=to_camel). Always dump with by_alias=True.
"""
from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class UserDetails(_CamelModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)


class BusDetails(_CamelModel):
    bus_name: str = Field(..., min_length=1)
    bus_type: str = Field(..., min_length=1)
    duration: str
    departure_time: str
    arrival_time: str
    price: float = Field(..., ge=0)
    rating: float = Field(..., ge=0, le=5)
    amenities: List[str]
    total_seats: int = Field(..., ge=1)
    bus_id: str


class JourneyDetails(_CamelModel):
    from_: str = Field(..., alias="from", min_length=1)
    to: str = Field(..., min_length=1)
    date: str = Field(..., min_length=1)


class BookingRecord(_CamelModel):
    """
    A booking exactly as persisted and returned by GET /api/getBooking/{bookingId}.

    user_details.email is always the authenticated user's stored email.
    """

    booking_id: str
    selected_seats: List[str] = Field(..., min_length=1)
    user_details: UserDetails
    bus_details: BusDetails
    journey_details: JourneyDetails
    total_amount: float = Field(..., gt=0)
    booking_time: datetime

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
