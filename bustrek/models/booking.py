"""
models/booking.py - SQLAlchemy ORM model for the booking ledger.

Table: bookings
Storage strategy: the whole booking (camelCase keys, as returned by the API) lives
in the `document` JSON blob. `user_email` and `booking_time` are denormalised out
of the blob so history lookups can filter and sort without touching JSON.
Rows are insert-only: there is no update or delete path.
"""
from datetime import datetime, timezone

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from bustrek.database import Base, JSONDocument


class BookingORM(Base):
    __tablename__ = "bookings"

    booking_id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        comment="UUID generated at creation - matches document['bookingId']",
    )
    user_email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Owner email snapshot (lower-cased) - no FK to users",
    )
    booking_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    document: Mapped[dict] = mapped_column(
        JSONDocument,
        nullable=False,
        comment="Full booking record as JSON",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
